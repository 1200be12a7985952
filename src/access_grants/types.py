"""Type definitions and data models for the access grants client."""

import json
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from enum import Enum, IntEnum
from typing import Any

from eth_typing import ChecksumAddress
from web3 import Web3

from .constants import MAX_TIMESTAMP, ContractName, is_valid_address
from .exceptions import GrantClientError, ValidationError

Address = str  # Ethereum address, any casing
Wei = int  # Amount in the ledger's smallest unit


class ApplicationStatus(IntEnum):
    """Application status as stored by the grants contract."""

    PENDING = 0
    APPROVED = 1
    REJECTED = 2


class RequestStatus(IntEnum):
    """Grant request status as stored by the request registry."""

    PENDING = 0
    APPROVED = 1
    REJECTED = 2


class Role(str, Enum):
    """Registry roles the client checks before writes."""

    ISSUER = "issuer"
    ADMIN = "admin"
    NONE = "none"


class TransactionKind(str, Enum):
    """Write operations tracked by the client."""

    CREATE_GRANT = "create-grant"
    APPLY = "apply"
    APPROVE = "approve"
    REJECT = "reject"
    ADD_ISSUER = "add-issuer"
    REMOVE_ISSUER = "remove-issuer"
    SUBMIT_REQUEST = "submit-request"
    UPDATE_REQUEST = "update-request"


class TransactionStatus(str, Enum):
    SUBMITTED = "submitted"
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class OperationStatus(str, Enum):
    """UI-facing lifecycle of one logical write action."""

    IDLE = "idle"
    SUBMITTING = "submitting"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class ContractCall:
    """A read or write entry point on one of the contracts."""

    contract: ContractName
    function: str
    args: tuple[Any, ...] = ()
    kind: TransactionKind | None = None
    context: Mapping[str, Any] = field(default_factory=dict)


def _coerce_address(value: Any, field_name: str) -> ChecksumAddress:
    if isinstance(value, bytes | bytearray) and len(value) == 20:
        value = "0x" + bytes(value).hex()
    if not isinstance(value, str) or not is_valid_address(value):
        raise ValidationError("Malformed address in ledger record", field=field_name, value=value)
    if int(value, 16) == 0:
        raise ValidationError("Zero address in ledger record", field=field_name, value=value)
    return Web3.to_checksum_address(value)


def _pick(raw: Any, index: int, *keys: str) -> Any:
    if isinstance(raw, Mapping):
        for key in keys:
            if key in raw:
                return raw[key]
        return None
    if isinstance(raw, Sequence) and not isinstance(raw, str | bytes):
        return raw[index] if index < len(raw) else None
    for key in keys:
        if hasattr(raw, key):
            return getattr(raw, key)
    return None


def _coerce_int(value: Any, field_name: str) -> int:
    if isinstance(value, bool) or value is None:
        raise ValidationError("Expected an integer in ledger record", field=field_name, value=value)
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(
            "Expected an integer in ledger record", field=field_name, value=value
        ) from exc


def _coerce_deadline(value: Any) -> int:
    deadline = _coerce_int(value, "deadline")
    if not 0 <= deadline <= MAX_TIMESTAMP:
        raise ValidationError("Deadline out of range in ledger record", field="deadline", value=value)
    return deadline


@dataclass(frozen=True)
class Grant:
    """Grant record as read from the grants contract."""

    id: int
    title: str
    description: str
    amount: Wei
    deadline: int
    issuer: ChecksumAddress
    is_active: bool

    @classmethod
    def from_raw(cls, raw: Any) -> "Grant":
        """Coerce a contract tuple, mapping or attribute dict into a Grant."""

        return cls(
            id=_coerce_int(_pick(raw, 0, "id"), "id"),
            title=str(_pick(raw, 1, "title") or ""),
            description=str(_pick(raw, 2, "description") or ""),
            amount=_coerce_int(_pick(raw, 3, "amount"), "amount"),
            deadline=_coerce_deadline(_pick(raw, 4, "deadline")),
            issuer=_coerce_address(_pick(raw, 5, "issuer", "ngo"), "issuer"),
            is_active=bool(_pick(raw, 6, "isActive", "is_active")),
        )


@dataclass(frozen=True)
class GrantView:
    """Presentation-ready grant derived on the client; never written back."""

    grant: Grant
    is_expired: bool
    is_owned_by_caller: bool
    deadline_date: str
    amount_display: str
    time_remaining: str

    @property
    def id(self) -> int:
        return self.grant.id

    @property
    def is_active(self) -> bool:
        return self.grant.is_active

    @property
    def can_apply(self) -> bool:
        # Expiry wins over the contract flag for the apply decision.
        return self.grant.is_active and not self.is_expired


@dataclass(frozen=True)
class Application:
    """Application record for one applicant on one grant."""

    grant_id: int
    applicant: ChecksumAddress
    proposal: str
    status: ApplicationStatus
    submitted_at: int

    @classmethod
    def from_raw(cls, raw: Any, grant_id: int) -> "Application":
        status_raw = _coerce_int(_pick(raw, 2, "status"), "status")
        try:
            status = ApplicationStatus(status_raw)
        except ValueError as exc:
            raise ValidationError(
                "Unknown application status", field="status", value=status_raw
            ) from exc

        return cls(
            grant_id=int(grant_id),
            applicant=_coerce_address(_pick(raw, 0, "applicant"), "applicant"),
            proposal=str(_pick(raw, 1, "proposal") or ""),
            status=status,
            submitted_at=_coerce_int(_pick(raw, 3, "submittedAt", "submitted_at") or 0, "submittedAt"),
        )

    @property
    def is_pending(self) -> bool:
        return self.status is ApplicationStatus.PENDING


@dataclass(frozen=True)
class GrantRequest:
    """Funding request held by the request registry."""

    id: int
    applicant: ChecksumAddress
    metadata_uri: str
    status: RequestStatus

    @classmethod
    def from_raw(cls, raw: Any, request_id: int | None = None) -> "GrantRequest":
        """Coerce a ``getAllGrantRequests`` entry, or a ``requests(id)`` tuple when ``request_id`` is given."""

        offset = 0 if request_id is not None else 1
        status_raw = _coerce_int(_pick(raw, 2 + offset, "status"), "status")
        try:
            status = RequestStatus(status_raw)
        except ValueError as exc:
            raise ValidationError(
                "Unknown request status", field="status", value=status_raw
            ) from exc

        if request_id is None:
            request_id = _coerce_int(_pick(raw, 0, "id", "requestId"), "id")
        return cls(
            id=int(request_id),
            applicant=_coerce_address(_pick(raw, offset, "applicant"), "applicant"),
            metadata_uri=str(_pick(raw, 1 + offset, "metadataURI", "metadata_uri") or ""),
            status=status,
        )

    @property
    def is_pending(self) -> bool:
        return self.status is RequestStatus.PENDING


@dataclass
class AuthorizationRecord:
    """Last-read role flag for one address."""

    address: str
    role: Role
    authorized: bool = False
    fetched_at: float | None = None
    loading: bool = False


@dataclass
class ProposalPayload:
    """Fixed-shape application proposal serialised to JSON for review tooling."""

    project_title: str = ""
    project_summary: str = ""
    objectives: str = ""
    methodology: str = ""
    target_beneficiaries: str = ""
    beneficiary_count: str = ""
    implementation_strategy: str = ""
    sustainability_plan: str = ""
    monitoring_evaluation: str = ""
    risk_mitigation: str = ""
    timeline: str = ""
    milestones: str = ""
    budget: str = ""
    project_duration: str = ""
    additional_info: str = ""
    organization_name: str = ""
    contact_person: str = ""
    contact_email: str = ""
    contact_phone: str = ""

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "ProposalPayload":
        """Build a payload from snake_case or camelCase form data."""

        if data is None:
            return cls()

        values: dict[str, str] = {}
        for item in fields(cls):
            camel = _camel(item.name)
            raw = data.get(item.name, data.get(camel))
            values[item.name] = "" if raw is None else str(raw)
        return cls(**values)

    def to_json(self, applicant_address: str, submitted_at: datetime | None = None) -> str:
        when = submitted_at or datetime.now(timezone.utc)
        document: dict[str, str] = {_camel(item.name): getattr(self, item.name) for item in fields(self)}
        document["applicantAddress"] = applicant_address
        document["submissionDate"] = when.astimezone(timezone.utc).isoformat()
        return json.dumps(document, separators=(",", ":"))


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


@dataclass
class TransactionHandle:
    """Client-local record of a submitted write."""

    tx_hash: str
    kind: TransactionKind
    submitted_at: float
    status: TransactionStatus = TransactionStatus.SUBMITTED
    error: GrantClientError | None = None
    receipt: dict[str, Any] | None = None
    still_pending: bool = False
    context: dict[str, Any] = field(default_factory=dict)

    @property
    def is_settled(self) -> bool:
        return self.status in (TransactionStatus.CONFIRMED, TransactionStatus.FAILED)

    @property
    def block_number(self) -> int | None:
        if self.receipt is None:
            return None
        return self.receipt.get("blockNumber")


@dataclass
class OperationState:
    """Observable state for one logical action, safe to abandon on teardown."""

    kind: TransactionKind
    status: OperationStatus = OperationStatus.IDLE
    error: GrantClientError | None = None
    tx_hash: str | None = None
    attached: bool = True

    @property
    def is_pending(self) -> bool:
        return self.status in (OperationStatus.SUBMITTING, OperationStatus.AWAITING_CONFIRMATION)

    @property
    def is_success(self) -> bool:
        return self.status is OperationStatus.SUCCEEDED

    def begin(self) -> bool:
        if not self.attached:
            return False
        self.status = OperationStatus.SUBMITTING
        self.error = None
        self.tx_hash = None
        return True

    def awaiting(self, tx_hash: str) -> bool:
        if not self.attached:
            return False
        self.status = OperationStatus.AWAITING_CONFIRMATION
        self.tx_hash = tx_hash
        return True

    def succeed(self) -> bool:
        if not self.attached:
            return False
        self.status = OperationStatus.SUCCEEDED
        self.error = None
        return True

    def fail(self, error: GrantClientError) -> bool:
        if not self.attached:
            return False
        self.status = OperationStatus.FAILED
        self.error = error
        return True

    def detach(self) -> None:
        """Stop accepting updates; late results are dropped."""
        self.attached = False


@dataclass
class ActionResult:
    """Structured outcome of a write-capable action."""

    success: bool
    handle: TransactionHandle | None = None
    error: GrantClientError | None = None

    @property
    def message(self) -> str | None:
        if self.error is None:
            return None
        return self.error.user_message

    @property
    def tx_hash(self) -> str | None:
        return self.handle.tx_hash if self.handle else None


__all__ = [
    "Address",
    "Wei",
    "ApplicationStatus",
    "RequestStatus",
    "Role",
    "TransactionKind",
    "TransactionStatus",
    "OperationStatus",
    "ContractCall",
    "Grant",
    "GrantView",
    "Application",
    "GrantRequest",
    "AuthorizationRecord",
    "ProposalPayload",
    "TransactionHandle",
    "OperationState",
    "ActionResult",
]
