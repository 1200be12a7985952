"""Tests for grant requests filed with the request registry."""

import pytest

from access_grants.authorization import AuthorizationService
from access_grants.exceptions import (
    ContractRevert,
    InvalidState,
    Unauthorized,
    ValidationError,
    WrongNetwork,
)
from access_grants.grant_requests import RequestRegistry
from access_grants.network import NetworkGuard
from access_grants.tracker import TransactionTracker
from access_grants.types import OperationStatus, RequestStatus, TransactionKind

from conftest import ADMIN, APPLICANT, STRANGER, FakeLedger

URI = "ipfs://bafy-request-metadata"


def _registry(ledger: FakeLedger) -> tuple[RequestRegistry, TransactionTracker]:
    guard = NetworkGuard(ledger, 57054)
    tracker = TransactionTracker(ledger, pending_warning_after=None)
    authorization = AuthorizationService(ledger, guard, tracker)
    return RequestRegistry(ledger, guard, authorization, tracker), tracker


def _ledger(address: str | None = ADMIN, **kwargs) -> FakeLedger:
    ledger = FakeLedger(address=address, **kwargs)
    stored = {
        0: (APPLICANT, URI, 0),
        1: (APPLICANT, "ipfs://second", 1),
        2: (STRANGER, "ipfs://third", 0),
    }

    def lookup(request_id):
        if request_id not in stored:
            raise ContractRevert("Transaction rejected by contract", reason="Invalid request")
        return stored[request_id]

    ledger.responses.update(
        {
            "isAdmin": lambda address: address.lower() == ADMIN,
            "requests": lookup,
            "getUserRequests": lambda user: [
                rid for rid, entry in stored.items() if entry[0].lower() == user.lower()
            ],
            "getAllGrantRequests": [(rid, *entry) for rid, entry in stored.items()],
        }
    )
    return ledger


class TestReads:
    @pytest.mark.asyncio
    async def test_list_requests_drops_malformed_entries(self):
        ledger = _ledger()
        ledger.responses["getAllGrantRequests"] = [
            (0, APPLICANT, URI, 0),
            (1, "0x1234", URI, 0),
            (2, STRANGER, URI, 7),
        ]
        registry, _ = _registry(ledger)

        requests = await registry.list_requests()

        assert [request.id for request in requests] == [0]
        assert requests[0].metadata_uri == URI
        assert requests[0].status is RequestStatus.PENDING
        assert registry.requests == requests
        assert registry.requests_error is None

    @pytest.mark.asyncio
    async def test_user_requests_default_to_connected_wallet(self):
        ledger = _ledger(address=APPLICANT)
        registry, _ = _registry(ledger)

        requests = await registry.get_user_requests()

        assert [(request.id, request.status) for request in requests] == [
            (0, RequestStatus.PENDING),
            (1, RequestStatus.APPROVED),
        ]
        assert all(request.applicant.lower() == APPLICANT for request in requests)

    @pytest.mark.asyncio
    async def test_user_requests_without_wallet(self):
        ledger = _ledger(address=None)
        registry, _ = _registry(ledger)

        assert await registry.get_user_requests() == []
        assert ledger.network_calls == 0

    @pytest.mark.asyncio
    async def test_missing_request_returns_none(self):
        registry, _ = _registry(_ledger())

        assert await registry.get_request(9) is None


class TestSubmit:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("uri", ["", "   ", None])
    async def test_blank_metadata_rejected_locally(self, uri):
        ledger = _ledger(address=APPLICANT)
        registry, _ = _registry(ledger)

        result = await registry.submit_request(uri)

        assert isinstance(result.error, ValidationError)
        assert result.error.field == "metadata_uri"
        assert ledger.network_calls == 0

    @pytest.mark.asyncio
    async def test_wrong_network_never_writes(self):
        ledger = _ledger(address=APPLICANT, chain_id=1)
        registry, _ = _registry(ledger)

        result = await registry.submit_request(URI)

        assert isinstance(result.error, WrongNetwork)
        assert ledger.writes == []

    @pytest.mark.asyncio
    async def test_confirmed_submission_relists(self):
        ledger = _ledger(address=APPLICANT, auto_confirm=False)
        registry, tracker = _registry(ledger)
        await registry.list_requests()

        result = await registry.submit_request(f"  {URI}  ")

        assert result.success, result.message
        (call,) = ledger.writes
        assert call.function == "submitRequest"
        assert call.args == (URI,)
        state = registry.operation_state(TransactionKind.SUBMIT_REQUEST)
        assert state.status is OperationStatus.AWAITING_CONFIRMATION

        ledger.release(result.tx_hash)
        await tracker.wait(result.handle)

        assert state.is_success
        assert len(ledger.reads_of("getAllGrantRequests")) == 2


class TestUpdateStatus:
    @pytest.mark.asyncio
    async def test_admin_approves_pending_request(self):
        ledger = _ledger()
        registry, tracker = _registry(ledger)

        result = await registry.update_request_status(0, RequestStatus.APPROVED)
        await tracker.wait(result.handle)

        assert result.success, result.message
        (call,) = ledger.writes
        assert call.function == "updateRequestStatus"
        assert call.args == (0, 1)
        assert registry.operation_state(TransactionKind.UPDATE_REQUEST).is_success

    @pytest.mark.asyncio
    async def test_non_admin_refused(self):
        ledger = _ledger(address=APPLICANT)
        registry, _ = _registry(ledger)

        result = await registry.update_request_status(0, RequestStatus.REJECTED)

        assert isinstance(result.error, Unauthorized)
        assert result.error.role == "admin"
        assert ledger.writes == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [RequestStatus.PENDING, 5, "approved"])
    async def test_only_final_statuses_accepted(self, status):
        ledger = _ledger()
        registry, _ = _registry(ledger)

        result = await registry.update_request_status(0, status)

        assert isinstance(result.error, ValidationError)
        assert result.error.field == "status"
        assert ledger.network_calls == 0

    @pytest.mark.asyncio
    async def test_settled_request_cannot_change(self):
        ledger = _ledger()
        registry, _ = _registry(ledger)

        result = await registry.update_request_status(1, RequestStatus.REJECTED)

        assert isinstance(result.error, InvalidState)
        assert result.error.details["status"] == "approved"
        assert ledger.writes == []

    @pytest.mark.asyncio
    async def test_unknown_request(self):
        ledger = _ledger()
        registry, _ = _registry(ledger)

        result = await registry.update_request_status(9, RequestStatus.APPROVED)

        assert isinstance(result.error, ValidationError)
        assert result.error.field == "request_id"
        assert ledger.writes == []


@pytest.mark.asyncio
async def test_request_events_trigger_relist():
    ledger = _ledger()
    registry, _ = _registry(ledger)

    watcher = await registry.watch_events(poll_interval=3600)
    ledger.block = 102
    ledger.events["RequestSubmitted"] = [
        {"args": {"requestId": 3, "applicant": APPLICANT}, "blockNumber": 102, "transactionHash": "0x03"}
    ]
    await watcher.poll_once()

    assert len(ledger.reads_of("getAllGrantRequests")) == 1
    registry.close()
    assert not watcher.active
