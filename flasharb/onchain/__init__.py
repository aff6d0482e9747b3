# flasharb/onchain/__init__.py
"""
Executable model of the on-chain side: token ledger, lending pool, swap venues
and the flashloan executor contract
"""

from flasharb.onchain.errors import (
    Revert,
    Unauthorized,
    InvalidCallbackCaller,
    ContractPaused,
    ReentrancyDetected,
    ZeroBorrowAmount,
    EmptySwaps,
    InvalidVault,
    InsufficientProfit,
    SwapFailed,
)
from flasharb.onchain.ledger import Chain, Event, TokenLedger, make_address
from flasharb.onchain.venues import FixedRateRouter, SwapResult, SwapStatus, SwapVenue
from flasharb.onchain.lending_pool import AaveLendingPool
from flasharb.onchain.executor import ExecutionPhase, ExecutorState, FlashloanExecutor

__all__ = [
    "Revert",
    "Unauthorized",
    "InvalidCallbackCaller",
    "ContractPaused",
    "ReentrancyDetected",
    "ZeroBorrowAmount",
    "EmptySwaps",
    "InvalidVault",
    "InsufficientProfit",
    "SwapFailed",
    "Chain",
    "Event",
    "TokenLedger",
    "make_address",
    "FixedRateRouter",
    "SwapResult",
    "SwapStatus",
    "SwapVenue",
    "AaveLendingPool",
    "ExecutionPhase",
    "ExecutorState",
    "FlashloanExecutor",
]
