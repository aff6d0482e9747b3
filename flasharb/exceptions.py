# flasharb/exceptions.py
"""
Off-chain error hierarchy
Pool read and evaluation errors are recoverable; RPC loss at cycle start is not
"""

from typing import Any, Dict, Optional


class FlashArbError(Exception):
    """Base exception for the off-chain decision engine"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.details = details or {}


class ConfigError(FlashArbError):
    """Invalid or missing configuration value"""
    pass


class PoolReadError(FlashArbError):
    """A single pool could not be read (revert, bad data, network)"""

    def __init__(
        self,
        message: str,
        venue: Optional[str] = None,
        pool_address: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.venue = venue
        self.pool_address = pool_address


class QuoteEvaluationError(FlashArbError):
    """Two quotes could not be compared (malformed price or token mismatch)"""
    pass


class RpcUnavailableError(FlashArbError):
    """RPC endpoint unreachable or unhealthy at cycle start"""

    def __init__(self, message: str, rpc_url: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.rpc_url = rpc_url


class NotViableError(FlashArbError):
    """Refusal to build on-chain parameters for a non-viable candidate"""
    pass
