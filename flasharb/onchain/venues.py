# flasharb/onchain/venues.py
"""
Swap venue capability interface and a fixed-rate router implementation
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Tuple

from flasharb.onchain.errors import TooLittleReceived
from flasharb.onchain.ledger import Chain


class SwapStatus(Enum):
    SUCCESS = "success"
    REVERTED = "reverted"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class SwapResult:
    """Outcome of one swap step inside the executor"""
    status: SwapStatus
    amount_out: int = 0
    reason: str = ""

    @property
    def ok(self) -> bool:
        return self.status == SwapStatus.SUCCESS


class SwapVenue(ABC):
    """Anything that can quote and execute an exact-input single-pool swap"""

    def __init__(self, chain: Chain, address: str):
        self.chain = chain
        self.address = address
        chain.register(self)

    @abstractmethod
    def quote_exact_input_single(self, token_in: str, token_out: str, fee: int, amount_in: int) -> int:
        ...

    @abstractmethod
    def exact_input_single(
        self,
        token_in: str,
        token_out: str,
        fee: int,
        recipient: str,
        amount_in: int,
        min_amount_out: int,
        *,
        sender: str,
    ) -> int:
        ...


class FixedRateRouter(SwapVenue):
    """
    Router paying out at a fixed rational rate from its own inventory
    rates: {(token_in, token_out): (numerator, denominator)}
    """

    def __init__(self, chain: Chain, address: str, rates: Dict[Tuple[str, str], Tuple[int, int]] = None):
        super().__init__(chain, address)
        self.rates = dict(rates or {})

    def set_rate(self, token_in: str, token_out: str, numerator: int, denominator: int):
        self.rates[(token_in, token_out)] = (numerator, denominator)

    def quote_exact_input_single(self, token_in: str, token_out: str, fee: int, amount_in: int) -> int:
        if (token_in, token_out) not in self.rates:
            raise TooLittleReceived(f"No route {token_in} -> {token_out}")
        num, den = self.rates[(token_in, token_out)]
        return amount_in * num // den

    def exact_input_single(
        self,
        token_in: str,
        token_out: str,
        fee: int,
        recipient: str,
        amount_in: int,
        min_amount_out: int,
        *,
        sender: str,
    ) -> int:
        ledger = self.chain.ledger
        amount_out = self.quote_exact_input_single(token_in, token_out, fee, amount_in)

        ledger.transfer_from(token_in, self.address, sender, self.address, amount_in)
        if amount_out < min_amount_out:
            raise TooLittleReceived(
                f"Too little received: {amount_out} < {min_amount_out}",
                {"amount_out": amount_out, "min_amount_out": min_amount_out},
            )
        ledger.transfer(token_out, self.address, recipient, amount_out)

        self.chain.emit(
            self.address, "Swap",
            sender=sender, recipient=recipient, token_in=token_in,
            token_out=token_out, fee=fee, amount_in=amount_in, amount_out=amount_out,
        )
        return amount_out
