"""
Error taxonomy for wallet session operations.

Every operation is a single attempt: these errors are raised to the caller
and nothing in the package retries after catching them.
"""
from __future__ import annotations

from typing import Any, Optional


class ChainsyncError(Exception):
    """Base class for all wallet session errors."""


class WalletConnectionError(ChainsyncError):
    """Account request or provider initialization failed; no session exists."""


class ChainSwitchError(ChainsyncError):
    """The provider rejected or failed a chain switch request."""

    def __init__(self, message: str, target_chain_id: Optional[int], code: Optional[int] = None):
        super().__init__(message)
        self.target_chain_id = target_chain_id
        self.code = code


class SigningRejected(ChainsyncError):
    """A signature request was declined or produced an unverifiable signature."""

    def __init__(self, message: str, code: Optional[int] = None):
        super().__init__(message)
        self.code = code


class TransactionError(ChainsyncError):
    """Submission or confirmation of a transaction failed."""

    def __init__(self, message: str, reason: Any = None, tx_hash: Optional[str] = None):
        super().__init__(message)
        self.reason = reason
        self.tx_hash = tx_hash


class TransactionRejected(TransactionError):
    """The provider declined the submission (user rejection, insufficient funds...)."""


class TransactionReverted(TransactionError):
    """On-chain execution failed."""


class CatalogEntryMalformed(ChainsyncError):
    """A provider-reported currency cannot be turned into an asset."""

    def __init__(self, message: str, entry: Any = None):
        super().__init__(message)
        self.entry = entry
