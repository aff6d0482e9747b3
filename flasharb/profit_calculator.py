# flasharb/profit_calculator.py
"""
Trade Sizing & Profit Calculator
Sizes a flashloan against the binding pool liquidity and prices the trade after
flashloan fee, modeled slippage and gas
"""

from decimal import Decimal, getcontext
from dataclasses import dataclass
from typing import Optional, Tuple
import logging

from flasharb.arbitrage_scanner import Opportunity
from flasharb.config import BotConfig, MAX_FLASHLOAN_PERCENT
from flasharb.gas import GasCost, estimate_gas_cost
from flasharb.pairs import get_decimals, get_reference_price_usd, get_symbol

getcontext().prec = 50
logger = logging.getLogger(__name__)

BPS = 10000
UNLIMITED_SLIPPAGE_BPS = 10000

# Lower fee tiers sit in tighter ranges, so the same size moves price more
SLIPPAGE_MULTIPLIERS = {
    100: 3,
    500: 2,
}


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass(frozen=True)
class SizingResult:
    """Borrow size derived from the binding liquidity"""
    optimal_amount: int
    max_flashloan: int
    binding_liquidity: int
    limiting_side: str  # "buy" or "sell"


@dataclass(frozen=True)
class SlippageEstimate:
    slippage_bps: int
    acceptable: bool
    max_allowed_bps: int


@dataclass(frozen=True)
class ProfitAnalysis:
    """Profit breakdown in USD for one borrow size"""
    # Input
    borrow_token: str
    borrow_amount: int
    borrow_amount_human: Decimal
    borrow_amount_usd: Decimal

    # Gross
    gross_profit_percent: Decimal
    gross_profit: Decimal

    # Costs
    flash_fee: Decimal
    buy_slippage_bps: int
    sell_slippage_bps: int
    slippage_cost: Decimal
    gas_cost: GasCost

    # Net
    net_profit_before_gas: Decimal
    net_profit_after_gas: Decimal
    profit_bps: Decimal

    # Acceptability flags
    buy_slippage_acceptable: bool
    sell_slippage_acceptable: bool
    profit_acceptable: bool
    bps_acceptable: bool

    @property
    def slippage_acceptable(self) -> bool:
        return self.buy_slippage_acceptable and self.sell_slippage_acceptable

    @property
    def is_viable(self) -> bool:
        return self.slippage_acceptable and self.profit_acceptable and self.bps_acceptable

    @property
    def reason(self) -> str:
        if not self.slippage_acceptable:
            return (
                f"Slippage exceeds threshold "
                f"(buy {self.buy_slippage_bps} bps, sell {self.sell_slippage_bps} bps)"
            )
        if not self.profit_acceptable:
            return f"Net profit ${self.net_profit_after_gas:.6f} below absolute floor"
        if not self.bps_acceptable:
            return f"Profit {self.profit_bps:.2f} bps below relative floor"
        return "All criteria met"


# =============================================================================
# COST MODEL
# =============================================================================

class CostModel:
    """
    Estimates flashloan fee, per-side slippage and gas for a trial size
    """

    def __init__(self, config: BotConfig):
        self.config = config

    def model_slippage(self, trade_size: int, liquidity: int, fee_tier: int) -> SlippageEstimate:
        """Price impact in bps scaled by a fee-tier multiplier"""
        max_bps = self.config.max_slippage_bps
        if liquidity <= 0:
            return SlippageEstimate(UNLIMITED_SLIPPAGE_BPS, False, max_bps)

        impact_ratio = (int(trade_size) * BPS) // int(liquidity)
        slippage_bps = impact_ratio * SLIPPAGE_MULTIPLIERS.get(fee_tier, 1)

        return SlippageEstimate(slippage_bps, slippage_bps <= max_bps, max_bps)

    def max_size_within_slippage(self, liquidity: int, fee_tier: int) -> int:
        """Largest trade size whose modeled slippage stays within the cap"""
        if liquidity <= 0:
            return 0
        allowed_ratio = self.config.max_slippage_bps // SLIPPAGE_MULTIPLIERS.get(fee_tier, 1)
        return ((allowed_ratio + 1) * int(liquidity) - 1) // BPS

    def estimate_gas(self) -> GasCost:
        return estimate_gas_cost(
            gas_price_gwei=self.config.gas_price_gwei,
            eth_price_usd=self.config.eth_price_usd,
            gas_units=self.config.gas_units,
        )

    def borrow_token_price_usd(self, opportunity: Opportunity) -> Decimal:
        return get_reference_price_usd(opportunity.token1, self.config.eth_price_usd)

    def analyze(self, opportunity: Opportunity, borrow_amount: int) -> ProfitAnalysis:
        """Net profit and viability verdict for borrowing `borrow_amount` of token1"""
        cfg = self.config
        borrow_token = opportunity.token1
        decimals = get_decimals(borrow_token)

        borrow_human = Decimal(borrow_amount) / Decimal(10 ** decimals)
        borrow_usd = borrow_human * self.borrow_token_price_usd(opportunity)

        gross_profit = borrow_usd * opportunity.gross_profit_percent / Decimal(100)
        flash_fee = borrow_usd * Decimal(cfg.flash_fee_bps) / Decimal(BPS)

        buy = self.model_slippage(
            borrow_amount, opportunity.buy_quote.liquidity, opportunity.buy_quote.fee_tier
        )
        sell = self.model_slippage(
            borrow_amount, opportunity.sell_quote.liquidity, opportunity.sell_quote.fee_tier
        )
        slippage_cost = borrow_usd * Decimal(buy.slippage_bps + sell.slippage_bps) / Decimal(BPS)

        gas_cost = self.estimate_gas()

        net_before_gas = gross_profit - flash_fee - slippage_cost
        net_after_gas = net_before_gas - gas_cost.gas_cost_usd

        if borrow_usd > 0:
            profit_bps = net_after_gas / borrow_usd * Decimal(BPS)
        else:
            profit_bps = Decimal(0)

        return ProfitAnalysis(
            borrow_token=borrow_token,
            borrow_amount=int(borrow_amount),
            borrow_amount_human=borrow_human,
            borrow_amount_usd=borrow_usd,
            gross_profit_percent=opportunity.gross_profit_percent,
            gross_profit=gross_profit,
            flash_fee=flash_fee,
            buy_slippage_bps=buy.slippage_bps,
            sell_slippage_bps=sell.slippage_bps,
            slippage_cost=slippage_cost,
            gas_cost=gas_cost,
            net_profit_before_gas=net_before_gas,
            net_profit_after_gas=net_after_gas,
            profit_bps=profit_bps,
            buy_slippage_acceptable=buy.acceptable,
            sell_slippage_acceptable=sell.acceptable,
            profit_acceptable=net_after_gas >= cfg.min_profit_usd,
            bps_acceptable=profit_bps >= Decimal(cfg.min_profit_bps),
        )


# =============================================================================
# SIZING ENGINE
# =============================================================================

class SizingEngine:
    """
    Borrow size from the binding liquidity constraint
    """

    def __init__(self, max_flashloan_percent: int = MAX_FLASHLOAN_PERCENT, trial_divisor: int = 10):
        self.max_flashloan_percent = max_flashloan_percent
        self.trial_divisor = trial_divisor

    @classmethod
    def from_config(cls, config: BotConfig) -> "SizingEngine":
        return cls(max_flashloan_percent=config.max_flashloan_percent)

    def size(self, opportunity: Opportunity) -> SizingResult:
        buy_liquidity = int(opportunity.buy_quote.liquidity)
        sell_liquidity = int(opportunity.sell_quote.liquidity)

        if buy_liquidity < sell_liquidity:
            binding, side = buy_liquidity, "buy"
        else:
            binding, side = sell_liquidity, "sell"

        max_flashloan = max(0, binding * self.max_flashloan_percent // 100)

        return SizingResult(
            optimal_amount=max_flashloan // self.trial_divisor,
            max_flashloan=max_flashloan,
            binding_liquidity=binding,
            limiting_side=side,
        )

    def search_optimal_amount(
        self,
        opportunity: Opportunity,
        cost_model: CostModel,
        steps: int = 10,
    ) -> Tuple[SizingResult, Optional[ProfitAnalysis]]:
        """
        Grid search for the best net profit over (0, upper], where upper is the
        smaller of max_flashloan and the largest size both pools accept under
        the slippage cap; falls back to the fixed fraction when nothing qualifies
        """
        base = self.size(opportunity)
        if base.max_flashloan <= 0 or steps <= 0:
            return base, None

        upper = min(
            base.max_flashloan,
            cost_model.max_size_within_slippage(
                opportunity.buy_quote.liquidity, opportunity.buy_quote.fee_tier
            ),
            cost_model.max_size_within_slippage(
                opportunity.sell_quote.liquidity, opportunity.sell_quote.fee_tier
            ),
        )

        best_amount = None
        best_analysis = None

        for i in range(1, steps + 1):
            amount = upper * i // steps
            if amount <= 0:
                continue

            analysis = cost_model.analyze(opportunity, amount)
            if not analysis.slippage_acceptable:
                continue

            if best_analysis is None or analysis.net_profit_after_gas > best_analysis.net_profit_after_gas:
                best_amount = amount
                best_analysis = analysis

        if best_amount is None:
            return base, None

        return SizingResult(
            optimal_amount=best_amount,
            max_flashloan=base.max_flashloan,
            binding_liquidity=base.binding_liquidity,
            limiting_side=base.limiting_side,
        ), best_analysis


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def format_profit_analysis(opportunity: Opportunity, sizing: SizingResult, analysis: ProfitAnalysis) -> str:
    """Format sizing and profit breakdown for logging"""
    symbol = get_symbol(analysis.borrow_token)
    return (
        f"=== Opportunity Evaluation ===\n"
        f"Route: {opportunity.route}\n"
        f"Price Diff: {opportunity.price_diff_percent:.4f}% "
        f"(fees {opportunity.fee_percent:.4f}%, gross {opportunity.gross_profit_percent:.4f}%)\n"
        f"--- Sizing ---\n"
        f"Borrow: {analysis.borrow_amount_human:.6f} {symbol} (${analysis.borrow_amount_usd:.2f})\n"
        f"Max Flashloan: {sizing.max_flashloan} (limiting: {sizing.limiting_side})\n"
        f"--- Costs ---\n"
        f"Gross Profit: ${analysis.gross_profit:.6f}\n"
        f"Flash Fee: -${analysis.flash_fee:.6f}\n"
        f"Slippage: -${analysis.slippage_cost:.6f} "
        f"(buy {analysis.buy_slippage_bps} bps, sell {analysis.sell_slippage_bps} bps)\n"
        f"Gas Cost: -${analysis.gas_cost.gas_cost_usd:.6f} "
        f"({analysis.gas_cost.gas_units} gas @ {analysis.gas_cost.gas_price_gwei} gwei)\n"
        f"--- Result ---\n"
        f"Net Profit: ${analysis.net_profit_after_gas:.6f} ({analysis.profit_bps:.2f} bps)\n"
        f"Decision: {'EXECUTE' if analysis.is_viable else 'SKIP'}\n"
        f"Reason: {analysis.reason}"
    )
