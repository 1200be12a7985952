"""Access Grants client - grant lifecycle on the AccessGrant contracts.

This library lets issuers publish grants, applicants submit proposals and
issuers adjudicate them, with every write checked against the network and
the issuer registry before it is signed.
"""

from .authorization import AuthorizationService
from .base import LedgerGateway
from .client import AccessGrantsClient
from .exceptions import (
    ConfirmationError,
    ConfirmationTimeout,
    ContractRevert,
    GrantClientError,
    InsufficientFunds,
    InvalidState,
    NotConnected,
    ReadError,
    Unauthorized,
    ValidationError,
    WriteRejected,
    WrongNetwork,
)
from .formatting import (
    addresses_equal,
    derive_grant_view,
    format_amount,
    format_deadline,
    format_time_remaining,
    is_expired,
    to_smallest_unit,
)
from .grant_requests import RequestRegistry
from .grants import GrantOrchestrator
from .ledger import LedgerClientConfig, Web3LedgerGateway
from .network import NetworkGuard
from .tracker import TransactionTracker
from .types import (
    ActionResult,
    Address,
    Application,
    ApplicationStatus,
    Grant,
    GrantRequest,
    GrantView,
    OperationState,
    OperationStatus,
    ProposalPayload,
    RequestStatus,
    Role,
    TransactionHandle,
    TransactionKind,
    TransactionStatus,
    Wei,
)

__version__ = "0.1.0"

__all__ = [
    # Client and services
    "AccessGrantsClient",
    "LedgerGateway",
    "Web3LedgerGateway",
    "LedgerClientConfig",
    "NetworkGuard",
    "AuthorizationService",
    "GrantOrchestrator",
    "RequestRegistry",
    "TransactionTracker",
    # Types and enums
    "ActionResult",
    "Address",
    "Application",
    "ApplicationStatus",
    "Grant",
    "GrantRequest",
    "GrantView",
    "OperationState",
    "OperationStatus",
    "ProposalPayload",
    "RequestStatus",
    "Role",
    "TransactionHandle",
    "TransactionKind",
    "TransactionStatus",
    "Wei",
    # Exceptions
    "GrantClientError",
    "ValidationError",
    "NotConnected",
    "WrongNetwork",
    "Unauthorized",
    "ReadError",
    "WriteRejected",
    "InsufficientFunds",
    "ContractRevert",
    "InvalidState",
    "ConfirmationError",
    "ConfirmationTimeout",
    # Formatting helpers
    "to_smallest_unit",
    "format_amount",
    "format_deadline",
    "format_time_remaining",
    "is_expired",
    "addresses_equal",
    "derive_grant_view",
]
