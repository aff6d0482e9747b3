"""
Shared fixtures for flasharb tests
"""

import time
from decimal import Decimal

import pytest

from flasharb.config import BotConfig
from flasharb.pairs import USDC, WETH
from flasharb.quote_engine import PoolQuote
from flasharb.onchain import (
    AaveLendingPool,
    Chain,
    FixedRateRouter,
    FlashloanExecutor,
    make_address,
)


def make_quote(
    price,
    fee_tier=500,
    venue="Uniswap",
    liquidity=10**12,
    token0=WETH,
    token1=USDC,
    pool=None,
):
    """PoolQuote factory; price is token0 in token1 units"""
    return PoolQuote(
        venue=venue,
        pool_address=pool or make_address(f"pool:{venue}:{fee_tier}:{price}"),
        fee_tier=fee_tier,
        token0=token0,
        token1=token1,
        price=Decimal(str(price)),
        liquidity=liquidity,
        tick=0,
        timestamp=time.time(),
    )


@pytest.fixture
def config():
    return BotConfig()


@pytest.fixture
def viable_config():
    """Sizing at 0.1% of binding liquidity keeps 5 bps pools under the slippage cap"""
    return BotConfig(max_flashloan_percent=1)


@pytest.fixture
def wide_spread_quotes():
    return [
        make_quote("3000", fee_tier=500, venue="Uniswap"),
        make_quote("3050", fee_tier=500, venue="SushiSwap"),
    ]


# =============================================================================
# ON-CHAIN FIXTURES
# =============================================================================

class OnchainEnv:
    """Chain with two tokens, a lending pool, two routers and a deployed executor"""

    def __init__(self, min_profit_bps=10, premium_bps=5, token_a=None, token_b=None):
        self.chain = Chain()
        self.owner = make_address("owner")
        self.vault = make_address("vault")
        self.attacker = make_address("attacker")

        self.token_a = token_a or make_address("token:A")  # intermediate
        self.token_b = token_b or make_address("token:B")  # borrowed

        self.pool = AaveLendingPool(self.chain, make_address("aave:pool"), premium_bps=premium_bps)
        self.router1 = FixedRateRouter(self.chain, make_address("router:1"))
        self.router2 = FixedRateRouter(self.chain, make_address("router:2"))

        self.executor = FlashloanExecutor(
            self.chain,
            owner=self.owner,
            vault=self.vault,
            lending_pool=self.pool.address,
            min_profit_bps=min_profit_bps,
        )

        ledger = self.chain.ledger
        ledger.mint(self.token_b, self.pool.address, 10**12)
        ledger.mint(self.token_a, self.router1.address, 10**12)
        ledger.mint(self.token_b, self.router2.address, 10**12)

    def balance(self, token, holder):
        return self.chain.ledger.balance_of(token, holder)


@pytest.fixture
def onchain():
    return OnchainEnv()
