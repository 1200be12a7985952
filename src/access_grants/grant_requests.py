"""Grant requests: funding requests filed with the request registry and reviewed by its admin."""

from __future__ import annotations

import logging
from typing import Any

from web3 import Web3

from .actions import ActionExecutor
from .authorization import AuthorizationService
from .base import LedgerGateway
from .constants import ContractName, RequestEvent, is_valid_address
from .exceptions import ContractRevert, GrantClientError, InvalidState, Unauthorized, ValidationError
from .ledger.events import ContractEvent, EventWatcher
from .network import NetworkGuard
from .tracker import TransactionTracker
from .types import (
    ActionResult,
    ContractCall,
    GrantRequest,
    OperationState,
    RequestStatus,
    Role,
    TransactionHandle,
    TransactionKind,
)

logger = logging.getLogger(__name__)

_REQUEST_KINDS = (TransactionKind.SUBMIT_REQUEST, TransactionKind.UPDATE_REQUEST)
_FINAL_STATUSES = (RequestStatus.APPROVED, RequestStatus.REJECTED)


class RequestRegistry:
    """Submit grant requests and move them out of ``PENDING``.

    Anyone on the required network may submit; only the registry admin may
    approve or reject. A confirmed write re-reads the request list.
    """

    def __init__(
        self,
        gateway: LedgerGateway,
        guard: NetworkGuard,
        authorization: AuthorizationService,
        tracker: TransactionTracker,
    ) -> None:
        self._gateway = gateway
        self._guard = guard
        self._authorization = authorization
        self._requests: list[GrantRequest] = []
        self._requests_error: GrantClientError | None = None
        self._loading = 0
        self._listed = False
        self._watcher: EventWatcher | None = None
        self._actions = ActionExecutor(
            gateway, tracker, _REQUEST_KINDS, on_confirmed=self._refresh_after_write
        )

    @property
    def requests(self) -> list[GrantRequest]:
        return list(self._requests)

    @property
    def is_loading_requests(self) -> bool:
        return self._loading > 0

    @property
    def requests_error(self) -> GrantClientError | None:
        return self._requests_error

    def operation_state(self, kind: TransactionKind) -> OperationState:
        return self._actions.state(kind)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    async def list_requests(self) -> list[GrantRequest]:
        """Read every request, dropping malformed entries."""
        self._loading += 1
        try:
            raw = await self._gateway.read(
                ContractCall(ContractName.REQUESTS, "getAllGrantRequests")
            )
        except GrantClientError as exc:
            self._requests_error = exc
            raise
        finally:
            self._loading -= 1

        requests: list[GrantRequest] = []
        for entry in raw or []:
            try:
                requests.append(GrantRequest.from_raw(entry))
            except ValidationError as exc:
                logger.warning(
                    "Dropping grant request with malformed %s: %r", exc.field, exc.value
                )
        self._requests = requests
        self._requests_error = None
        self._listed = True
        return list(requests)

    async def get_request(self, request_id: int) -> GrantRequest | None:
        rid = self._validate_request_id(request_id)
        try:
            raw = await self._gateway.read(ContractCall(ContractName.REQUESTS, "requests", (rid,)))
        except ContractRevert:
            return None
        try:
            return GrantRequest.from_raw(raw, rid)
        except ValidationError as exc:
            logger.warning("Grant request %s has malformed %s: %r", rid, exc.field, exc.value)
            return None

    async def get_user_requests(self, address: str | None = None) -> list[GrantRequest]:
        """Requests filed by ``address``, defaulting to the connected wallet."""
        user = address or self._gateway.connected_address
        if not user:
            return []
        if not is_valid_address(user):
            raise ValidationError("Invalid Ethereum address format", field="address", value=user)

        ids = await self._gateway.read(
            ContractCall(ContractName.REQUESTS, "getUserRequests", (Web3.to_checksum_address(user),))
        )
        requests: list[GrantRequest] = []
        for request_id in ids or []:
            request = await self.get_request(request_id)
            if request is not None:
                requests.append(request)
        return requests

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    async def submit_request(self, metadata_uri: str) -> ActionResult:
        async def prepare() -> ContractCall:
            if not isinstance(metadata_uri, str) or not metadata_uri.strip():
                raise ValidationError(
                    "Request metadata URI is required", field="metadata_uri", value=metadata_uri
                )
            uri = metadata_uri.strip()
            caller = await self._guard.ensure_ready()
            return ContractCall(
                ContractName.REQUESTS,
                "submitRequest",
                (uri,),
                kind=TransactionKind.SUBMIT_REQUEST,
                context={"applicant": caller, "metadata_uri": uri},
            )

        return await self._actions.execute(TransactionKind.SUBMIT_REQUEST, prepare)

    async def update_request_status(
        self, request_id: int, status: RequestStatus | int
    ) -> ActionResult:
        """Approve or reject a pending request; admin only."""

        async def prepare() -> ContractCall:
            rid = self._validate_request_id(request_id)
            new_status = self._validate_status(status)

            caller = await self._guard.ensure_ready()
            if not await self._authorization.is_admin(caller):
                raise Unauthorized(
                    "Only the registry admin can update grant requests", role=Role.ADMIN.value
                )

            request = await self.get_request(rid)
            if request is None:
                raise ValidationError("Grant request not found", field="request_id", value=rid)
            if not request.is_pending:
                raise InvalidState(
                    f"Grant request is already {request.status.name.lower()}",
                    details={"request_id": rid, "status": request.status.name.lower()},
                )

            return ContractCall(
                ContractName.REQUESTS,
                "updateRequestStatus",
                (rid, int(new_status)),
                kind=TransactionKind.UPDATE_REQUEST,
                context={"request_id": rid, "status": new_status.name.lower()},
            )

        return await self._actions.execute(TransactionKind.UPDATE_REQUEST, prepare)

    # ------------------------------------------------------------------
    # Events and teardown
    # ------------------------------------------------------------------
    async def watch_events(self, *, poll_interval: float = 5.0) -> EventWatcher:
        """Re-list requests whenever the registry reports a submission or status change."""

        async def handle(batch: list[ContractEvent]) -> None:
            logger.info("Received %d request event(s); refreshing requests", len(batch))
            try:
                await self.list_requests()
            except GrantClientError as exc:
                logger.warning("Refresh after request events failed: %s", exc.message)

        if self._watcher is None or not self._watcher.active:
            self._watcher = EventWatcher(
                self._gateway,
                ContractName.REQUESTS,
                [event.value for event in RequestEvent],
                handle,
                poll_interval=poll_interval,
            )
            await self._watcher.start()
        return self._watcher

    def close(self) -> None:
        self._actions.close()
        if self._watcher is not None:
            self._watcher.unsubscribe()
            self._watcher = None

    async def _refresh_after_write(self, handle: TransactionHandle) -> None:
        if not self._listed:
            return
        logger.info("Refreshing grant requests after %s %s", handle.kind.value, handle.tx_hash)
        await self.list_requests()

    @staticmethod
    def _validate_request_id(request_id: Any) -> int:
        if isinstance(request_id, bool):
            raise ValidationError(
                "Request id must be an integer", field="request_id", value=request_id
            )
        try:
            rid = int(request_id)
        except (TypeError, ValueError) as exc:
            raise ValidationError(
                "Request id must be an integer", field="request_id", value=request_id
            ) from exc
        if rid < 0:
            raise ValidationError(
                "Request id cannot be negative", field="request_id", value=request_id
            )
        return rid

    @staticmethod
    def _validate_status(status: Any) -> RequestStatus:
        try:
            value = RequestStatus(status)
        except ValueError as exc:
            raise ValidationError("Unknown request status", field="status", value=status) from exc
        if value not in _FINAL_STATUSES:
            raise ValidationError(
                "A request can only be approved or rejected", field="status", value=status
            )
        return value
