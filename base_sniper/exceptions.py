"""
Typed exceptions for the sniper engine.

Each class maps to one failure category of the engine. Execution-time
failures are normally converted into a ``TradeResult`` carrying the class
name in ``error_kind``; only input and lookup errors reach callers, and the
controller layer turns those into response envelopes.
"""

from __future__ import annotations


class SniperError(Exception):
    """Base exception for all sniper errors."""

    kind = "SniperError"

    def __init__(self, message: str, **context):
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self):
        if self.context:
            ctx_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} [{ctx_str}]"
        return self.message


class InvalidInputError(SniperError):
    """Raised before any mutation when caller parameters are out of range."""
    kind = "InvalidInput"


class SessionNotFoundError(SniperError):
    """Raised when a session id is unknown."""
    kind = "NotFound"


class ChainUnavailableError(SniperError):
    """Raised when the RPC endpoint(s) cannot serve a call after retries."""
    kind = "ChainUnavailable"


class InsufficientBalanceError(SniperError):
    """Raised when the signer cannot cover the requested buy amount."""
    kind = "InsufficientBalance"


class TransactionRevertedError(SniperError):
    """Raised when a submitted transaction is mined with a failed status."""
    kind = "TransactionReverted"


class NoSignerError(SniperError):
    """Raised when an execution is attempted without a configured signer."""
    kind = "NoSigner"
