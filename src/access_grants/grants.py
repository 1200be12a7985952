"""Grant lifecycle orchestration: create, list, apply, approve, reject."""

from __future__ import annotations

import inspect
import logging
import time
from collections.abc import Callable, Mapping
from datetime import datetime, timezone, tzinfo
from decimal import Decimal, InvalidOperation
from typing import Any

from web3 import Web3

from .actions import ActionExecutor
from .authorization import AuthorizationService
from .base import LedgerGateway
from .constants import (
    NATIVE_DECIMALS,
    NATIVE_SYMBOL,
    ONE_DAY_SECONDS,
    ContractName,
    GrantEvent,
    is_valid_address,
)
from .exceptions import (
    ContractRevert,
    GrantClientError,
    InvalidState,
    Unauthorized,
    ValidationError,
)
from .formatting import addresses_equal, derive_grant_view, format_amount, to_smallest_unit
from .ledger.events import ContractEvent, EventCallback, EventWatcher
from .network import NetworkGuard
from .tracker import TransactionTracker
from .types import (
    ActionResult,
    Application,
    ContractCall,
    Grant,
    GrantView,
    OperationState,
    ProposalPayload,
    Role,
    TransactionHandle,
    TransactionKind,
)

logger = logging.getLogger(__name__)

_GRANT_KINDS = (
    TransactionKind.CREATE_GRANT,
    TransactionKind.APPLY,
    TransactionKind.APPROVE,
    TransactionKind.REJECT,
)


class GrantOrchestrator:
    """Central coordinator between UI actions and the grants contract.

    Every write passes local validation, the network guard and role checks
    before it reaches the gateway. After a write confirms, the grant list is
    re-read and that read replaces whatever the client held before.
    """

    def __init__(
        self,
        gateway: LedgerGateway,
        guard: NetworkGuard,
        authorization: AuthorizationService,
        tracker: TransactionTracker,
        *,
        clock: Callable[[], float] = time.time,
        decimals: int = NATIVE_DECIMALS,
        symbol: str | None = NATIVE_SYMBOL,
        min_deadline_lead: int = ONE_DAY_SECONDS,
        tz: tzinfo | None = None,
    ) -> None:
        self._gateway = gateway
        self._guard = guard
        self._authorization = authorization
        self._clock = clock
        self._decimals = decimals
        self._symbol = symbol
        self._min_deadline_lead = min_deadline_lead
        self._tz = tz

        self._grants: list[Grant] = []
        self._grants_error: GrantClientError | None = None
        self._loading = 0
        # Bumped whenever the ledger is known to have changed; a listing that
        # started under an older epoch may not replace a newer one.
        self._epoch = 0
        self._stored_epoch = -1
        self._watchers: list[EventWatcher] = []

        self._actions = ActionExecutor(
            gateway, tracker, _GRANT_KINDS, on_confirmed=self._refresh_after_write
        )

    # ------------------------------------------------------------------
    # Observable state
    # ------------------------------------------------------------------
    @property
    def grants(self) -> list[GrantView]:
        return self.grant_views()

    @property
    def is_loading_grants(self) -> bool:
        return self._loading > 0

    @property
    def grants_error(self) -> GrantClientError | None:
        return self._grants_error

    def operation_state(self, kind: TransactionKind) -> OperationState:
        return self._actions.state(kind)

    def grant_views(self, now: float | None = None) -> list[GrantView]:
        """Re-derive views from the last authoritative listing without reading the ledger."""
        return self._derive(self._grants, now)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    async def list_grants(self) -> list[GrantView]:
        """Read every grant, drop malformed records and return fresh views.

        Raises ``ReadError`` once read retries are exhausted; the error is
        also kept on :attr:`grants_error`.
        """
        started_epoch = self._epoch
        self._loading += 1
        try:
            raw = await self._gateway.read(ContractCall(ContractName.GRANTS, "listGrants"))
        except GrantClientError as exc:
            self._grants_error = exc
            raise
        finally:
            self._loading -= 1

        grants = self._coerce_grants(raw)
        if started_epoch >= self._stored_epoch:
            self._grants = grants
            self._stored_epoch = started_epoch
            self._grants_error = None
        else:
            logger.debug(
                "Discarding listing from epoch %s; epoch %s already stored",
                started_epoch,
                self._stored_epoch,
            )
        return self._derive(grants)

    async def get_grant(self, grant_id: int) -> GrantView | None:
        grant = await self._fetch_grant(self._validate_grant_id(grant_id))
        if grant is None:
            return None
        return self._derive([grant])[0]

    async def get_grant_applications(self, grant_id: int) -> list[Application]:
        gid = self._validate_grant_id(grant_id)
        raw = await self._gateway.read(
            ContractCall(ContractName.GRANTS, "getGrantApplications", (gid,))
        )
        applications: list[Application] = []
        for entry in raw or []:
            try:
                applications.append(Application.from_raw(entry, gid))
            except ValidationError as exc:
                logger.warning(
                    "Dropping application on grant %s with malformed %s: %r",
                    gid,
                    exc.field,
                    exc.value,
                )
        return applications

    async def get_application(self, grant_id: int, application_id: int) -> Application:
        gid = self._validate_grant_id(grant_id)
        raw = await self._gateway.read(
            ContractCall(ContractName.GRANTS, "getApplication", (gid, int(application_id)))
        )
        return Application.from_raw(raw, gid)

    async def get_issuer_balance(self, address: str) -> str:
        """Native balance of an issuer, formatted for the donations view."""
        if not is_valid_address(address):
            raise ValidationError("Invalid Ethereum address format", field="address", value=address)
        balance = await self._gateway.get_balance(address)
        return format_amount(balance, self._decimals, symbol=self._symbol)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    async def create_grant(
        self,
        title: str,
        description: str,
        amount: float | Decimal | int | str,
        deadline_unix: int,
    ) -> ActionResult:
        async def prepare() -> ContractCall:
            clean_title = self._require_text(title, "title", "Grant title is required")
            clean_description = self._require_text(
                description, "description", "Grant description is required"
            )
            amount_wei = self._validate_amount(amount)
            deadline = self._validate_deadline(deadline_unix)

            caller = await self._guard.ensure_ready()
            if not await self._authorization.is_authorized_issuer(caller):
                raise Unauthorized("Only authorized issuers can create grants", role=Role.ISSUER.value)

            logger.info(
                "Creating grant %r amount=%s deadline=%s", clean_title, amount_wei, deadline
            )
            return ContractCall(
                ContractName.GRANTS,
                "createGrant",
                (clean_title, clean_description, amount_wei, deadline),
                kind=TransactionKind.CREATE_GRANT,
                context={"title": clean_title, "amount": amount_wei, "deadline": deadline},
            )

        return await self._actions.execute(TransactionKind.CREATE_GRANT, prepare)

    async def apply_for_grant(
        self,
        grant_id: int,
        proposal: ProposalPayload | Mapping[str, Any],
    ) -> ActionResult:
        """Submit an application; expired or inactive grants are refused with a redirect hint."""

        async def prepare() -> ContractCall:
            gid = self._validate_grant_id(grant_id)
            payload = (
                proposal
                if isinstance(proposal, ProposalPayload)
                else ProposalPayload.from_mapping(proposal)
            )
            if payload == ProposalPayload():
                raise ValidationError("Proposal is empty", field="proposal")

            caller = await self._guard.ensure_ready()
            grant = await self._require_grant(gid)
            view = self._derive([grant])[0]
            if view.is_expired:
                raise InvalidState(
                    "This grant has expired",
                    details={"grant_id": gid, "reason": "expired", "redirect": True},
                )
            if not view.is_active:
                raise InvalidState(
                    "This grant is no longer active",
                    details={"grant_id": gid, "reason": "inactive", "redirect": True},
                )

            submitted = datetime.fromtimestamp(self._clock(), tz=timezone.utc)
            document = payload.to_json(caller, submitted)
            return ContractCall(
                ContractName.GRANTS,
                "applyForGrant",
                (gid, document),
                kind=TransactionKind.APPLY,
                context={"grant_id": gid, "applicant": caller},
            )

        return await self._actions.execute(TransactionKind.APPLY, prepare)

    async def approve_application(self, grant_id: int, applicant: str) -> ActionResult:
        return await self._adjudicate(TransactionKind.APPROVE, "approveApplication", grant_id, applicant)

    async def reject_application(self, grant_id: int, applicant: str) -> ActionResult:
        return await self._adjudicate(TransactionKind.REJECT, "rejectApplication", grant_id, applicant)

    async def _adjudicate(
        self,
        kind: TransactionKind,
        function: str,
        grant_id: int,
        applicant: str,
    ) -> ActionResult:
        verb = "approve" if kind is TransactionKind.APPROVE else "reject"

        async def prepare() -> ContractCall:
            gid = self._validate_grant_id(grant_id)
            if not is_valid_address(applicant):
                raise ValidationError(
                    "Invalid applicant address", field="applicant", value=applicant
                )
            target = Web3.to_checksum_address(applicant)

            caller = await self._guard.ensure_ready()
            # Ownership is checked against a fresh read, never the cached list.
            grant = await self._require_grant(gid)
            if not addresses_equal(grant.issuer, caller):
                raise Unauthorized(
                    f"Only the grant creator can {verb} applications", role=Role.ISSUER.value
                )

            application = await self._find_application(gid, target)
            if application is None:
                raise InvalidState(
                    f"No application from {target} for grant {gid}",
                    details={"grant_id": gid, "applicant": target},
                )
            if not application.is_pending:
                raise InvalidState(
                    f"Application is already {application.status.name.lower()}",
                    details={
                        "grant_id": gid,
                        "applicant": target,
                        "status": application.status.name.lower(),
                    },
                )

            return ContractCall(
                ContractName.GRANTS,
                function,
                (gid, target),
                kind=kind,
                context={"grant_id": gid, "applicant": target},
            )

        return await self._actions.execute(kind, prepare)

    # ------------------------------------------------------------------
    # Events and teardown
    # ------------------------------------------------------------------
    async def watch_events(
        self,
        on_events: EventCallback | None = None,
        *,
        poll_interval: float = 5.0,
    ) -> EventWatcher:
        """Re-list grants whenever grant or application events appear."""

        async def handle(batch: list[ContractEvent]) -> None:
            logger.info("Received %d grant event(s); refreshing grants", len(batch))
            self._epoch += 1
            try:
                await self.list_grants()
            except GrantClientError as exc:
                logger.warning("Refresh after grant events failed: %s", exc.message)
            if on_events is not None:
                result = on_events(batch)
                if inspect.isawaitable(result):
                    await result

        watcher = EventWatcher(
            self._gateway,
            ContractName.GRANTS,
            [event.value for event in GrantEvent],
            handle,
            poll_interval=poll_interval,
        )
        await watcher.start()
        self._watchers.append(watcher)
        return watcher

    def close(self) -> None:
        """Detach operation states and stop event watchers."""
        self._actions.close()
        for watcher in self._watchers:
            watcher.unsubscribe()
        self._watchers.clear()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    async def _refresh_after_write(self, handle: TransactionHandle) -> None:
        self._epoch += 1
        logger.info("Refreshing grants after %s %s", handle.kind.value, handle.tx_hash)
        await self.list_grants()

    async def _fetch_grant(self, grant_id: int) -> Grant | None:
        try:
            raw = await self._gateway.read(
                ContractCall(ContractName.GRANTS, "getGrant", (grant_id,))
            )
        except ContractRevert:
            return None
        try:
            return Grant.from_raw(raw)
        except ValidationError as exc:
            logger.warning("Grant %s has malformed %s: %r", grant_id, exc.field, exc.value)
            return None

    async def _require_grant(self, grant_id: int) -> Grant:
        grant = await self._fetch_grant(grant_id)
        if grant is None:
            raise ValidationError("Grant not found", field="grant_id", value=grant_id)
        return grant

    async def _find_application(self, grant_id: int, applicant: str) -> Application | None:
        for application in await self.get_grant_applications(grant_id):
            if addresses_equal(application.applicant, applicant):
                return application
        return None

    def _coerce_grants(self, raw: Any) -> list[Grant]:
        grants: list[Grant] = []
        for entry in raw or []:
            try:
                grants.append(Grant.from_raw(entry))
            except ValidationError as exc:
                logger.warning(
                    "Dropping grant record with malformed %s: %r", exc.field, exc.value
                )
        return grants

    def _derive(self, grants: list[Grant], now: float | None = None) -> list[GrantView]:
        moment = self._clock() if now is None else now
        address = self._gateway.connected_address
        return [
            derive_grant_view(
                grant,
                address,
                moment,
                decimals=self._decimals,
                symbol=self._symbol,
                tz=self._tz,
            )
            for grant in grants
        ]

    @staticmethod
    def _require_text(value: Any, field: str, message: str) -> str:
        if not isinstance(value, str) or not value.strip():
            raise ValidationError(message, field=field, value=value)
        return value.strip()

    @staticmethod
    def _validate_grant_id(grant_id: Any) -> int:
        if isinstance(grant_id, bool):
            raise ValidationError("Grant id must be an integer", field="grant_id", value=grant_id)
        try:
            gid = int(grant_id)
        except (TypeError, ValueError) as exc:
            raise ValidationError(
                "Grant id must be an integer", field="grant_id", value=grant_id
            ) from exc
        if gid < 0:
            raise ValidationError("Grant id cannot be negative", field="grant_id", value=grant_id)
        return gid

    def _validate_amount(self, amount: Any) -> int:
        try:
            value = Decimal(str(amount).strip())
        except InvalidOperation as exc:
            raise ValidationError(
                "Grant amount must be a positive number", field="amount", value=amount
            ) from exc
        if not value.is_finite() or value <= 0:
            raise ValidationError("Grant amount must be a positive number", field="amount", value=amount)
        return to_smallest_unit(value, self._decimals)

    def _validate_deadline(self, deadline_unix: Any) -> int:
        if isinstance(deadline_unix, bool):
            raise ValidationError("Deadline must be a unix timestamp", field="deadline", value=deadline_unix)
        try:
            deadline = int(deadline_unix)
        except (TypeError, ValueError) as exc:
            raise ValidationError(
                "Deadline must be a unix timestamp", field="deadline", value=deadline_unix
            ) from exc

        now = self._clock()
        if deadline <= now:
            raise ValidationError("deadline must be in the future", field="deadline", value=deadline)
        if deadline < now + self._min_deadline_lead:
            raise ValidationError(
                "deadline must be at least one day in the future",
                field="deadline",
                value=deadline,
            )
        return deadline
