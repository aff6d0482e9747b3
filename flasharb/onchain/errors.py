# flasharb/onchain/errors.py
"""
Revert reasons raised by the simulated contracts
Every revert unwinds the enclosing transaction; `is_market_condition` separates
expected market outcomes from programming or access errors for monitoring.
"""

from typing import Any, Dict, Optional


class Revert(Exception):
    """Base revert; `kind` mirrors the Solidity custom error name"""
    kind = "Revert"
    is_market_condition = False

    def __init__(self, message: str = "", details: Optional[Dict[str, Any]] = None):
        super().__init__(message or self.kind)
        self.details = details or {}


# -----------------------------
# Access / state errors
# -----------------------------

class Unauthorized(Revert):
    kind = "Unauthorized"


class InvalidCallbackCaller(Unauthorized):
    """Callback not from the configured lending pool or not self-initiated"""
    kind = "InvalidCallbackCaller"


class ContractPaused(Revert):
    kind = "Paused"


class ReentrancyDetected(Revert):
    kind = "ReentrancyDetected"


# -----------------------------
# Validation errors
# -----------------------------

class ZeroBorrowAmount(Revert):
    kind = "ZeroBorrowAmount"


class EmptySwaps(Revert):
    kind = "EmptySwaps"


class InvalidVault(Revert):
    kind = "InvalidVault"


# -----------------------------
# Market condition errors
# -----------------------------

class InsufficientProfit(Revert):
    kind = "InsufficientProfit"
    is_market_condition = True

    def __init__(self, actual: int, required: int):
        super().__init__(
            f"Insufficient profit: gained {actual} < required {required}",
            {"actual": actual, "required": required},
        )
        self.actual = actual
        self.required = required

    @property
    def shortfall(self) -> int:
        return self.required - self.actual


class SwapFailed(Revert):
    kind = "SwapFailed"
    is_market_condition = True

    def __init__(self, index: int, reason: str = ""):
        super().__init__(f"Swap {index} failed: {reason}", {"index": index, "reason": reason})
        self.index = index
        self.reason = reason


# -----------------------------
# Token / venue level errors
# -----------------------------

class InsufficientBalance(Revert):
    kind = "InsufficientBalance"


class InsufficientAllowance(Revert):
    kind = "InsufficientAllowance"


class TooLittleReceived(Revert):
    kind = "TooLittleReceived"


class FlashLoanCallbackFailed(Revert):
    kind = "FlashLoanCallbackFailed"
