"""
Tests for PoolStateReader / PriceAggregator
"""

from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from flasharb.config import ZERO_ADDRESS
from flasharb.exceptions import PoolReadError
from flasharb.onchain import make_address
from flasharb.pairs import USDC, WETH, Venue
from flasharb.quote_engine import PoolStateReader, PriceAggregator
from flasharb.uniswap_v3 import price_to_sqrt_price_x96

UNI = Venue("Uniswap", make_address("factory:uni"), make_address("router:uni"))
SUSHI = Venue("SushiSwap", make_address("factory:sushi"), make_address("router:sushi"))


def _call(value):
    fn = MagicMock()
    fn.return_value.call.return_value = value
    return fn


def make_pool_contract(price, fee, liquidity=10**15, token0=WETH, token1=USDC):
    contract = MagicMock()
    sqrt_price = price_to_sqrt_price_x96(Decimal(price), 18, 6)
    contract.functions.slot0 = _call((sqrt_price, 200000, 0, 1, 1, 0, True))
    contract.functions.liquidity = _call(liquidity)
    contract.functions.token0 = _call(token0)
    contract.functions.token1 = _call(token1)
    contract.functions.fee = _call(fee)
    return contract


def make_factory(pools):
    """pools: {fee: address}; missing fees resolve to the zero address"""
    factory = MagicMock()

    def get_pool(token_a, token_b, fee):
        call = MagicMock()
        call.call.return_value = pools.get(fee, ZERO_ADDRESS)
        return call

    factory.functions.getPool.side_effect = get_pool
    return factory


def make_w3(contracts):
    w3 = MagicMock()

    def contract(address, abi):
        if address not in contracts:
            raise KeyError(address)
        return contracts[address]

    w3.eth.contract.side_effect = contract
    return w3


class TestPoolStateReader:

    def test_reads_price_and_liquidity(self):
        pool = make_address("pool:1")
        w3 = make_w3({pool: make_pool_contract("3000", 500, liquidity=12345)})

        quote = PoolStateReader(w3).read("Uniswap", pool)

        assert quote.venue == "Uniswap"
        assert quote.fee_tier == 500
        assert quote.liquidity == 12345
        assert quote.token0 == WETH
        assert quote.token1 == USDC
        assert abs(quote.price - Decimal("3000")) < Decimal("1e-6")

    def test_uninitialized_pool_raises(self):
        pool = make_address("pool:empty")
        contract = make_pool_contract("3000", 500)
        contract.functions.slot0 = _call((0, 0, 0, 0, 0, 0, False))
        w3 = make_w3({pool: contract})

        with pytest.raises(PoolReadError):
            PoolStateReader(w3).read("Uniswap", pool)


class TestPriceAggregator:

    def test_quotes_across_venues_in_stable_order(self):
        uni_500 = make_address("pool:uni:500")
        uni_3000 = make_address("pool:uni:3000")
        sushi_500 = make_address("pool:sushi:500")
        w3 = make_w3({
            UNI.factory: make_factory({500: uni_500, 3000: uni_3000}),
            SUSHI.factory: make_factory({500: sushi_500}),
            uni_500: make_pool_contract("3000", 500),
            uni_3000: make_pool_contract("3010", 3000),
            sushi_500: make_pool_contract("3050", 500),
        })

        aggregator = PriceAggregator(w3, venues=[UNI, SUSHI], fee_tiers=[100, 500, 3000, 10000])
        quotes = aggregator.get_quotes(WETH, USDC)

        assert [(q.venue, q.fee_tier) for q in quotes] == [
            ("Uniswap", 500),
            ("Uniswap", 3000),
            ("SushiSwap", 500),
        ]

    def test_zero_address_pools_are_not_cached(self):
        w3 = make_w3({UNI.factory: make_factory({})})
        aggregator = PriceAggregator(w3, venues=[UNI], fee_tiers=[500])

        assert aggregator.get_quotes(WETH, USDC) == []
        assert aggregator.cached_pool_count() == 0

    def test_pool_address_cache_hit_skips_factory(self):
        pool = make_address("pool:uni:500")
        factory = make_factory({500: pool})
        w3 = make_w3({UNI.factory: factory, pool: make_pool_contract("3000", 500)})
        aggregator = PriceAggregator(w3, venues=[UNI], fee_tiers=[500])

        aggregator.get_quotes(WETH, USDC)
        aggregator.get_quotes(WETH, USDC)

        assert factory.functions.getPool.call_count == 1
        assert aggregator.cached_pool_count() == 1

    def test_failing_pool_is_skipped(self):
        good = make_address("pool:good")
        bad = make_address("pool:bad")
        broken = make_pool_contract("3000", 3000)
        broken.functions.slot0.return_value.call.side_effect = ConnectionError("rpc timeout")

        w3 = make_w3({
            UNI.factory: make_factory({500: good, 3000: bad}),
            good: make_pool_contract("3000", 500),
            bad: broken,
        })
        aggregator = PriceAggregator(w3, venues=[UNI], fee_tiers=[500, 3000])

        quotes = aggregator.get_quotes(WETH, USDC)

        assert len(quotes) == 1
        assert quotes[0].pool_address == good

    def test_factory_revert_is_skipped(self):
        factory = MagicMock()
        factory.functions.getPool.return_value.call.side_effect = ValueError("execution reverted")
        w3 = make_w3({UNI.factory: factory})
        aggregator = PriceAggregator(w3, venues=[UNI], fee_tiers=[500])

        assert aggregator.get_quotes(WETH, USDC) == []
