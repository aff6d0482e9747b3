# flasharb/calldata.py
"""
Calldata Builder for the Flashloan Executor
Turns a viable opportunity into the swap sequence, minimum profit floor and
ABI-encoded executeWithAave call consumed by the on-chain executor
"""

from web3 import Web3
from eth_abi import encode, decode
from decimal import Decimal, ROUND_FLOOR
from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple
import logging

from flasharb.arbitrage_scanner import Opportunity
from flasharb.config import BotConfig
from flasharb.exceptions import NotViableError
from flasharb.pairs import VENUES, get_decimals, get_reference_price_usd, get_symbol
from flasharb.profit_calculator import ProfitAnalysis, SizingResult

logger = logging.getLogger(__name__)

# =============================================================================
# ABI TYPES
# =============================================================================

SWAP_TUPLE = "(address,address,address,uint24,uint256,uint256)"
SWAPS_TYPE = f"{SWAP_TUPLE}[]"
ARBITRAGE_PARAMS_TYPE = f"(address,address,uint256,uint256,{SWAPS_TYPE})"
CALLBACK_PAYLOAD_TYPES = [SWAPS_TYPE, "uint256"]

EXECUTE_WITH_AAVE_SIGNATURE = f"executeWithAave({ARBITRAGE_PARAMS_TYPE})"
EXECUTE_WITH_AAVE_SELECTOR = bytes(Web3.keccak(text=EXECUTE_WITH_AAVE_SIGNATURE)[:4])

# amount_in sentinel: swap the executor's full balance of token_in
FULL_BALANCE = 0


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass(frozen=True)
class SwapInstruction:
    """One exactInputSingle leg"""
    router: str
    token_in: str
    token_out: str
    fee: int
    amount_in: int
    min_amount_out: int

    def as_tuple(self) -> tuple:
        return (
            Web3.to_checksum_address(self.router),
            Web3.to_checksum_address(self.token_in),
            Web3.to_checksum_address(self.token_out),
            self.fee,
            self.amount_in,
            self.min_amount_out,
        )

    @classmethod
    def from_tuple(cls, values: Sequence) -> "SwapInstruction":
        router, token_in, token_out, fee, amount_in, min_amount_out = values
        return cls(
            router=Web3.to_checksum_address(router),
            token_in=Web3.to_checksum_address(token_in),
            token_out=Web3.to_checksum_address(token_out),
            fee=int(fee),
            amount_in=int(amount_in),
            min_amount_out=int(min_amount_out),
        )


@dataclass(frozen=True)
class ArbitrageParams:
    """Complete argument set of executeWithAave"""
    flashloan_provider: str
    borrow_token: str
    borrow_amount: int
    min_profit: int
    swaps: Tuple[SwapInstruction, ...]

    def as_tuple(self) -> tuple:
        return (
            Web3.to_checksum_address(self.flashloan_provider),
            Web3.to_checksum_address(self.borrow_token),
            self.borrow_amount,
            self.min_profit,
            [swap.as_tuple() for swap in self.swaps],
        )


# =============================================================================
# ENCODING
# =============================================================================

def encode_arbitrage_params(params: ArbitrageParams) -> bytes:
    return encode([ARBITRAGE_PARAMS_TYPE], [params.as_tuple()])


def decode_arbitrage_params(data: bytes) -> ArbitrageParams:
    (values,) = decode([ARBITRAGE_PARAMS_TYPE], bytes(data))
    provider, borrow_token, borrow_amount, min_profit, swaps = values
    return ArbitrageParams(
        flashloan_provider=Web3.to_checksum_address(provider),
        borrow_token=Web3.to_checksum_address(borrow_token),
        borrow_amount=int(borrow_amount),
        min_profit=int(min_profit),
        swaps=tuple(SwapInstruction.from_tuple(s) for s in swaps),
    )


def encode_callback_payload(swaps: Sequence[SwapInstruction], min_profit: int) -> bytes:
    """Opaque payload handed to the lender and returned in executeOperation"""
    return encode(CALLBACK_PAYLOAD_TYPES, [[s.as_tuple() for s in swaps], min_profit])


def decode_callback_payload(data: bytes) -> Tuple[Tuple[SwapInstruction, ...], int]:
    swaps, min_profit = decode(CALLBACK_PAYLOAD_TYPES, bytes(data))
    return tuple(SwapInstruction.from_tuple(s) for s in swaps), int(min_profit)


def encode_execute_with_aave(params: ArbitrageParams) -> bytes:
    """4-byte selector followed by the ABI-encoded params tuple"""
    return EXECUTE_WITH_AAVE_SELECTOR + encode_arbitrage_params(params)


def decode_execute_with_aave(calldata: bytes) -> ArbitrageParams:
    calldata = bytes(calldata)
    if calldata[:4] != EXECUTE_WITH_AAVE_SELECTOR:
        raise ValueError(f"Unknown selector 0x{calldata[:4].hex()}")
    return decode_arbitrage_params(calldata[4:])


def calculate_min_output(expected_output: int, slippage_bps: int = 50) -> int:
    """Minimum output with slippage protection"""
    return (int(expected_output) * (10000 - slippage_bps)) // 10000


# =============================================================================
# TRANSACTION BUILDER
# =============================================================================

class TransactionBuilder:
    """
    Builds executor parameters for a viable two-venue opportunity
    """

    def __init__(
        self,
        config: BotConfig,
        executor_address: str,
        flashloan_provider: str,
        routers: Optional[Dict[str, str]] = None,
    ):
        self.config = config
        self.executor_address = Web3.to_checksum_address(executor_address)
        self.flashloan_provider = Web3.to_checksum_address(flashloan_provider)
        if routers is None:
            routers = {venue.name: venue.router for venue in VENUES}
        self.routers = {name: Web3.to_checksum_address(addr) for name, addr in routers.items()}

    def _router_for(self, venue: str) -> str:
        router = self.routers.get(venue)
        if router is None:
            raise NotViableError(f"No router configured for venue {venue}")
        return router

    def expected_leg1_output(self, opportunity: Opportunity, borrow_amount: int) -> int:
        """token0 received for borrow_amount of token1 at the buy price, after pool fee"""
        dec0 = get_decimals(opportunity.token0)
        dec1 = get_decimals(opportunity.token1)
        amount_in = Decimal(borrow_amount) / Decimal(10 ** dec1)
        fee_factor = Decimal(1) - Decimal(opportunity.buy_quote.fee_tier) / Decimal(1_000_000)
        out_human = amount_in / opportunity.buy_price * fee_factor
        return int((out_human * Decimal(10 ** dec0)).to_integral_value(rounding=ROUND_FLOOR))

    def min_profit_units(self, opportunity: Opportunity, analysis: ProfitAnalysis) -> int:
        """
        On-chain profit floor in borrowed-token smallest units
        Safety fraction of the estimated net profit, never below min_profit_bps
        of the borrow amount; the executor enforces exactly this value.
        """
        bps_floor = analysis.borrow_amount * self.config.min_profit_bps // 10000
        price_usd = get_reference_price_usd(opportunity.token1, self.config.eth_price_usd)
        if price_usd <= 0 or analysis.net_profit_after_gas <= 0:
            return bps_floor
        decimals = get_decimals(opportunity.token1)
        enforced_usd = analysis.net_profit_after_gas * Decimal(self.config.safety_fraction)
        units = enforced_usd / price_usd * Decimal(10 ** decimals)
        return max(bps_floor, int(units.to_integral_value(rounding=ROUND_FLOOR)))

    def build_arbitrage_params(
        self,
        opportunity: Opportunity,
        sizing: SizingResult,
        analysis: ProfitAnalysis,
    ) -> ArbitrageParams:
        if not analysis.is_viable:
            raise NotViableError(f"Opportunity not viable: {analysis.reason}")
        if sizing.optimal_amount <= 0:
            raise NotViableError("Zero borrow amount")
        if analysis.borrow_amount != sizing.optimal_amount:
            raise NotViableError(
                "Profit analysis was computed for a different borrow size",
                {"analysis": analysis.borrow_amount, "sizing": sizing.optimal_amount},
            )

        borrow_token = opportunity.token1
        intermediate = opportunity.token0
        borrow_amount = sizing.optimal_amount

        leg1_expected = self.expected_leg1_output(opportunity, borrow_amount)
        leg1_min_out = max(1, calculate_min_output(leg1_expected, self.config.max_slippage_bps))

        swaps = (
            # Buy the cheap token0 with the borrowed token1
            SwapInstruction(
                router=self._router_for(opportunity.buy_quote.venue),
                token_in=borrow_token,
                token_out=intermediate,
                fee=opportunity.buy_quote.fee_tier,
                amount_in=borrow_amount,
                min_amount_out=leg1_min_out,
            ),
            # Sell the whole token0 balance back; never accept a principal loss
            SwapInstruction(
                router=self._router_for(opportunity.sell_quote.venue),
                token_in=intermediate,
                token_out=borrow_token,
                fee=opportunity.sell_quote.fee_tier,
                amount_in=FULL_BALANCE,
                min_amount_out=borrow_amount,
            ),
        )

        return ArbitrageParams(
            flashloan_provider=self.flashloan_provider,
            borrow_token=borrow_token,
            borrow_amount=borrow_amount,
            min_profit=self.min_profit_units(opportunity, analysis),
            swaps=swaps,
        )

    def build_execution_transaction(
        self,
        opportunity: Opportunity,
        sizing: SizingResult,
        analysis: ProfitAnalysis,
        gas_limit: Optional[int] = None,
    ) -> dict:
        """Unsigned transaction dict plus metadata for logging"""
        params = self.build_arbitrage_params(opportunity, sizing, analysis)
        calldata = encode_execute_with_aave(params)

        return {
            "to": self.executor_address,
            "data": "0x" + calldata.hex(),
            "gas": gas_limit or self.config.gas_units,
            "params": params,
            "meta": {
                "route": opportunity.route,
                "price_diff_percent": opportunity.price_diff_percent,
                "borrow_token": get_symbol(params.borrow_token),
                "borrow_amount": params.borrow_amount,
                "expected_profit_usd": analysis.net_profit_after_gas,
                "min_profit_enforced": params.min_profit,
            },
        }


def format_transaction(tx: dict) -> str:
    meta = tx["meta"]
    return (
        f"=== Encoded Transaction ===\n"
        f"To: {tx['to']}\n"
        f"Gas Limit: {tx['gas']}\n"
        f"Data Length: {len(tx['data'])} chars\n"
        f"Route: {meta['route']}\n"
        f"Borrow: {meta['borrow_amount']} {meta['borrow_token']}\n"
        f"Expected Profit: ${meta['expected_profit_usd']:.6f}\n"
        f"Min Profit Enforced: {meta['min_profit_enforced']}"
    )
