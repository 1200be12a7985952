"""Ledger access: configuration, connections, retries and error classification."""

from .config import ConfirmationPolicy, LedgerClientConfig, RetryPolicy
from .errors import classify_error, extract_revert_reason
from .events import ContractEvent, EventWatcher
from .gateway import Web3LedgerGateway
from .retry import with_retry

__all__ = [
    "LedgerClientConfig",
    "RetryPolicy",
    "ConfirmationPolicy",
    "Web3LedgerGateway",
    "EventWatcher",
    "ContractEvent",
    "classify_error",
    "extract_revert_reason",
    "with_retry",
]
