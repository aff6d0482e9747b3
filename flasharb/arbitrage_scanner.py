# flasharb/arbitrage_scanner.py
"""
Pairwise Arbitrage Scanner
Compares every pair of pool quotes for one token pair and emits candidates whose
price gap exceeds the combined pool fees
"""

from decimal import Decimal, getcontext
from dataclasses import dataclass
from typing import List, Sequence
import logging

from flasharb.exceptions import QuoteEvaluationError
from flasharb.pairs import get_symbol
from flasharb.quote_engine import PoolQuote

getcontext().prec = 50
logger = logging.getLogger(__name__)


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass(frozen=True)
class Opportunity:
    """Buy on the cheaper pool, sell on the dearer one"""
    buy_quote: PoolQuote
    sell_quote: PoolQuote
    price_diff_percent: Decimal
    fee_percent: Decimal
    gross_profit_percent: Decimal

    @property
    def token0(self) -> str:
        return self.buy_quote.token0

    @property
    def token1(self) -> str:
        return self.buy_quote.token1

    @property
    def buy_price(self) -> Decimal:
        return self.buy_quote.price

    @property
    def sell_price(self) -> Decimal:
        return self.sell_quote.price

    @property
    def route(self) -> str:
        return (
            f"{self.buy_quote.venue}({self.buy_quote.fee_tier}) -> "
            f"{self.sell_quote.venue}({self.sell_quote.fee_tier})"
        )


# =============================================================================
# OPPORTUNITY DETECTOR
# =============================================================================

def fee_tier_percent(fee_tier: int) -> Decimal:
    """Uniswap fee tier to percent (500 -> 0.05)"""
    return Decimal(fee_tier) / Decimal(100) / Decimal(100)


class OpportunityDetector:
    """
    O(n^2) comparison over the quote set of one pair
    """

    def compare(self, quote_a: PoolQuote, quote_b: PoolQuote) -> Opportunity:
        """
        Price gap between two quotes net of both pool fees
        Raises QuoteEvaluationError for quotes that cannot be compared.
        """
        if (quote_a.token0, quote_a.token1) != (quote_b.token0, quote_b.token1):
            raise QuoteEvaluationError(
                "Quotes are for different token orderings",
                {"a": quote_a.pool_address, "b": quote_b.pool_address},
            )
        if quote_a.price <= 0 or quote_b.price <= 0:
            raise QuoteEvaluationError(
                "Non-positive price",
                {"a": str(quote_a.price), "b": str(quote_b.price)},
            )
        if quote_a.fee_tier < 0 or quote_b.fee_tier < 0:
            raise QuoteEvaluationError("Negative fee tier")

        p1 = Decimal(quote_a.price)
        p2 = Decimal(quote_b.price)
        avg = (p1 + p2) / 2
        price_diff_percent = abs(p1 - p2) / avg * 100
        fee_percent = fee_tier_percent(quote_a.fee_tier + quote_b.fee_tier)
        gross_profit_percent = price_diff_percent - fee_percent

        if p1 < p2:
            buy, sell = quote_a, quote_b
        else:
            buy, sell = quote_b, quote_a

        return Opportunity(
            buy_quote=buy,
            sell_quote=sell,
            price_diff_percent=price_diff_percent,
            fee_percent=fee_percent,
            gross_profit_percent=gross_profit_percent,
        )

    def find_opportunities(self, quotes: Sequence[PoolQuote]) -> List[Opportunity]:
        """All profitable pairwise candidates, best gross margin first"""
        opportunities = []

        for i in range(len(quotes)):
            for j in range(i + 1, len(quotes)):
                try:
                    opp = self.compare(quotes[i], quotes[j])
                except (QuoteEvaluationError, ArithmeticError, TypeError, ValueError) as e:
                    logger.warning(
                        f"Skipping pair {quotes[i].venue}/{quotes[j].venue}: {e}"
                    )
                    continue

                # Equal prices have no buy side
                if opp.gross_profit_percent > 0 and opp.buy_price < opp.sell_price:
                    opportunities.append(opp)

        opportunities.sort(key=lambda o: o.gross_profit_percent, reverse=True)

        if opportunities:
            best = opportunities[0]
            logger.info(
                f"Found {len(opportunities)} candidates for "
                f"{get_symbol(best.token0)}/{get_symbol(best.token1)}, "
                f"best {best.route} gross {best.gross_profit_percent:.4f}%"
            )
        return opportunities
