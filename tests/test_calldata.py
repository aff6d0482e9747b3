"""
Tests for TransactionBuilder and the executor ABI codec
"""

from dataclasses import replace
from decimal import Decimal

import pytest

from conftest import make_quote
from flasharb.arbitrage_scanner import OpportunityDetector
from flasharb.calldata import (
    EXECUTE_WITH_AAVE_SELECTOR,
    FULL_BALANCE,
    ArbitrageParams,
    SwapInstruction,
    TransactionBuilder,
    calculate_min_output,
    decode_callback_payload,
    decode_execute_with_aave,
    encode_execute_with_aave,
    encode_callback_payload,
    format_transaction,
)
from flasharb.config import SUSHI_V3_ROUTER, UNISWAP_V3_ROUTER
from flasharb.exceptions import NotViableError
from flasharb.onchain import make_address
from flasharb.pairs import USDC, WETH
from flasharb.profit_calculator import CostModel, SizingEngine

EXECUTOR = make_address("executor")
PROVIDER = make_address("aave:pool")


@pytest.fixture
def opportunity():
    return OpportunityDetector().compare(
        make_quote("3000", venue="Uniswap"),
        make_quote("3050", venue="SushiSwap"),
    )


@pytest.fixture
def priced(viable_config, opportunity):
    sizing = SizingEngine.from_config(viable_config).size(opportunity)
    analysis = CostModel(viable_config).analyze(opportunity, sizing.optimal_amount)
    return sizing, analysis


@pytest.fixture
def builder(viable_config):
    return TransactionBuilder(viable_config, EXECUTOR, PROVIDER)


class TestMinOutput:

    def test_default_half_percent(self):
        assert calculate_min_output(1000) == 995

    def test_floor(self):
        assert calculate_min_output(1, 50) == 0
        assert calculate_min_output(10**18, 0) == 10**18


class TestBuildArbitrageParams:

    def test_two_legs_borrow_token1(self, builder, opportunity, priced):
        sizing, analysis = priced
        params = builder.build_arbitrage_params(opportunity, sizing, analysis)

        assert params.flashloan_provider == PROVIDER
        assert params.borrow_token == USDC
        assert params.borrow_amount == 10**9

        leg1, leg2 = params.swaps
        assert leg1.router == UNISWAP_V3_ROUTER
        assert (leg1.token_in, leg1.token_out, leg1.fee) == (USDC, WETH, 500)
        assert leg1.amount_in == 10**9

        assert leg2.router == SUSHI_V3_ROUTER
        assert (leg2.token_in, leg2.token_out, leg2.fee) == (WETH, USDC, 500)
        assert leg2.amount_in == FULL_BALANCE

    def test_leg1_min_out_within_slippage(self, builder, opportunity, priced):
        sizing, analysis = priced
        leg1 = builder.build_arbitrage_params(opportunity, sizing, analysis).swaps[0]

        expected = builder.expected_leg1_output(opportunity, 10**9)
        # 1000 USDC at 3000 less the 0.05% pool fee
        assert expected == 333166666666666666
        assert leg1.min_amount_out == expected * 9950 // 10000

    def test_leg2_guards_principal(self, builder, opportunity, priced):
        sizing, analysis = priced
        params = builder.build_arbitrage_params(opportunity, sizing, analysis)
        assert params.swaps[1].min_amount_out == params.borrow_amount

    def test_min_profit_is_safety_fraction_of_estimate(self, builder, opportunity, priced):
        sizing, analysis = priced
        params = builder.build_arbitrage_params(opportunity, sizing, analysis)

        floor = analysis.net_profit_after_gas * Decimal("0.5") * Decimal(10**6)
        assert params.min_profit == int(floor)
        assert params.min_profit == 5513937

    def test_min_profit_never_below_bps_of_borrow(self, viable_config, opportunity, priced):
        sizing, analysis = priced
        strict = TransactionBuilder(replace(viable_config, min_profit_bps=100), EXECUTOR, PROVIDER)

        params = strict.build_arbitrage_params(opportunity, sizing, analysis)

        # 100 bps of 1000 USDC outweighs half the estimated profit
        assert params.min_profit == 10**9 * 100 // 10000

    def test_bps_floor_without_safety_fraction(self, viable_config, opportunity, priced):
        sizing, analysis = priced
        cfg = replace(viable_config, safety_fraction=Decimal(0))

        min_profit = TransactionBuilder(cfg, EXECUTOR, PROVIDER).min_profit_units(opportunity, analysis)

        assert min_profit == 10**9 * 10 // 10000

    def test_non_viable_rejected(self, config, opportunity):
        sizing = SizingEngine.from_config(config).size(opportunity)
        analysis = CostModel(config).analyze(opportunity, sizing.optimal_amount)
        builder = TransactionBuilder(config, EXECUTOR, PROVIDER)

        with pytest.raises(NotViableError):
            builder.build_arbitrage_params(opportunity, sizing, analysis)

    def test_zero_amount_rejected(self, builder, opportunity, priced):
        sizing, analysis = priced
        with pytest.raises(NotViableError):
            builder.build_arbitrage_params(opportunity, replace(sizing, optimal_amount=0), analysis)

    def test_mismatched_sizing_rejected(self, builder, opportunity, priced):
        sizing, analysis = priced
        with pytest.raises(NotViableError):
            builder.build_arbitrage_params(
                opportunity, replace(sizing, optimal_amount=sizing.optimal_amount + 1), analysis
            )

    def test_unknown_venue_rejected(self, viable_config, opportunity, priced):
        sizing, analysis = priced
        builder = TransactionBuilder(viable_config, EXECUTOR, PROVIDER, routers={})
        with pytest.raises(NotViableError):
            builder.build_arbitrage_params(opportunity, sizing, analysis)


class TestEncoding:

    def test_transaction_round_trip(self, builder, opportunity, priced):
        sizing, analysis = priced
        tx = builder.build_execution_transaction(opportunity, sizing, analysis)

        assert tx["to"] == EXECUTOR
        assert tx["gas"] == 350_000
        assert tx["data"].startswith("0x" + EXECUTE_WITH_AAVE_SELECTOR.hex())
        assert tx["meta"]["borrow_token"] == "USDC"
        assert tx["meta"]["min_profit_enforced"] == tx["params"].min_profit

        decoded = decode_execute_with_aave(bytes.fromhex(tx["data"][2:]))
        assert decoded == tx["params"]

    def test_unknown_selector(self):
        with pytest.raises(ValueError):
            decode_execute_with_aave(b"\x00\x00\x00\x00" + b"\x00" * 32)

    def test_callback_payload_round_trip(self):
        swaps = (
            SwapInstruction(UNISWAP_V3_ROUTER, USDC, WETH, 500, 10**9, 1),
            SwapInstruction(SUSHI_V3_ROUTER, WETH, USDC, 3000, FULL_BALANCE, 10**9),
        )
        decoded_swaps, min_profit = decode_callback_payload(encode_callback_payload(swaps, 42))
        assert decoded_swaps == swaps
        assert min_profit == 42

    def test_empty_swaps_encode(self):
        params = ArbitrageParams(PROVIDER, USDC, 1, 0, ())
        assert decode_execute_with_aave(encode_execute_with_aave(params)) == params

    def test_format_transaction(self, builder, opportunity, priced):
        sizing, analysis = priced
        text = format_transaction(builder.build_execution_transaction(opportunity, sizing, analysis))
        assert "Route: Uniswap(500) -> SushiSwap(500)" in text
        assert "Min Profit Enforced: 5513937" in text
