"""
Application-level exceptions.

Only ProviderUnavailableError (and TransactionNotFoundError on the CLI path)
reach the top-level caller. The others are raised inside a component and
absorbed there into degraded data.
"""

from __future__ import annotations


class TxLensError(Exception):
    """Base class for all TxLens errors."""


class AccountLookupError(TxLensError):
    """Account fetch failed (RPC error, transport error, retries exhausted)."""

    def __init__(self, message: str, address: str | None = None):
        super().__init__(message)
        self.address = address


class DecodeError(TxLensError):
    """Bytes or payload could not be decoded into the expected layout."""


class MalformedInstructionError(TxLensError):
    """A recognized instruction is missing a field needed to build a transfer."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class ProviderUnavailableError(TxLensError):
    """No usable account lookup capability was supplied."""


class TransactionNotFoundError(TxLensError):
    """The RPC returned no transaction for the given signature."""

    def __init__(self, signature: str):
        super().__init__(f"Transaction not found: {signature}")
        self.signature = signature
