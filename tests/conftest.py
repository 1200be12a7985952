from __future__ import annotations

import asyncio
import inspect
from collections.abc import Callable
from typing import Any

import pytest

from access_grants.authorization import AuthorizationService
from access_grants.base import LedgerGateway
from access_grants.constants import DEFAULT_CHAIN_ID, ContractName
from access_grants.grants import GrantOrchestrator
from access_grants.network import NetworkGuard
from access_grants.tracker import TransactionTracker
from access_grants.types import ContractCall

NOW = 1_700_000_000
DAY = 86_400

ISSUER = "0x00000000000000000000000000000000000000aa"
ADMIN = "0x00000000000000000000000000000000000000ad"
APPLICANT = "0x00000000000000000000000000000000000000bb"
STRANGER = "0x00000000000000000000000000000000000000cc"


def grant_tuple(
    grant_id: int = 1,
    *,
    title: str = "Clean Water",
    description: str = "Wells for rural schools",
    amount: int = 5 * 10**18,
    deadline: int = NOW + 2 * DAY,
    issuer: str = ISSUER,
    is_active: bool = True,
) -> tuple[Any, ...]:
    return (grant_id, title, description, amount, deadline, issuer, is_active)


def application_tuple(
    applicant: str = APPLICANT,
    *,
    proposal: str = "{}",
    status: int = 0,
    submitted_at: int = NOW - DAY,
) -> tuple[Any, ...]:
    return (applicant, proposal, status, submitted_at)


class FakeLedger(LedgerGateway):
    """In-memory gateway that records every call it receives.

    ``responses`` maps a contract function name to a value, an exception
    instance to raise, or a callable receiving the call arguments.
    """

    def __init__(
        self,
        *,
        address: str | None = ISSUER,
        chain_id: int = DEFAULT_CHAIN_ID,
        auto_confirm: bool = True,
    ) -> None:
        self.address = address
        self.chain_id = chain_id
        self.auto_confirm = auto_confirm
        self.responses: dict[str, Any] = {}
        self.reads: list[ContractCall] = []
        self.writes: list[ContractCall] = []
        self.write_error: Exception | None = None
        self.chain_id_calls = 0
        self.balance_calls: list[str] = []
        self.balances: dict[str, int] = {}
        self.block = 100
        self.events: dict[str, list[dict[str, Any]]] = {}
        self.event_queries: list[tuple[str, int, int | None]] = []
        self.receipts: dict[str, dict[str, Any]] = {}
        self.confirmation_errors: dict[str, Exception] = {}
        self.receipt_error: Exception | None = None
        self._released: dict[str, asyncio.Event] = {}
        self.connected = False

    # -- spies -----------------------------------------------------------
    @property
    def network_calls(self) -> int:
        return (
            len(self.reads)
            + len(self.writes)
            + self.chain_id_calls
            + len(self.balance_calls)
            + len(self.event_queries)
        )

    def reads_of(self, function: str) -> list[ContractCall]:
        return [call for call in self.reads if call.function == function]

    def release(self, tx_hash: str, *, status: int = 1, block: int = 101) -> None:
        self.receipts[tx_hash] = {"transactionHash": tx_hash, "status": status, "blockNumber": block}
        self._event_for(tx_hash).set()

    def fail_confirmation(self, tx_hash: str, error: Exception) -> None:
        self.confirmation_errors[tx_hash] = error
        self._event_for(tx_hash).set()

    def _event_for(self, tx_hash: str) -> asyncio.Event:
        if tx_hash not in self._released:
            self._released[tx_hash] = asyncio.Event()
        return self._released[tx_hash]

    # -- gateway ---------------------------------------------------------
    async def connect(self) -> None:
        self.connected = True

    def disconnect(self) -> None:
        self.connected = False

    async def read(self, call: ContractCall) -> Any:
        self.reads.append(call)
        response = self.responses.get(call.function)
        if isinstance(response, Exception):
            raise response
        if callable(response):
            result = response(*call.args)
            if inspect.isawaitable(result):
                return await result
            return result
        return response

    async def write(self, call: ContractCall) -> str:
        self.writes.append(call)
        if self.write_error is not None:
            raise self.write_error
        tx_hash = "0x" + f"{len(self.writes):064x}"
        if self.auto_confirm:
            self.release(tx_hash)
        return tx_hash

    async def wait_for_confirmation(
        self, tx_hash: str, timeout: float | None = None
    ) -> dict[str, Any]:
        await self._event_for(tx_hash).wait()
        if tx_hash in self.confirmation_errors:
            raise self.confirmation_errors[tx_hash]
        return self.receipts[tx_hash]

    async def get_receipt(self, tx_hash: str) -> dict[str, Any] | None:
        if self.receipt_error is not None:
            raise self.receipt_error
        return self.receipts.get(tx_hash)

    async def get_chain_id(self) -> int:
        self.chain_id_calls += 1
        return self.chain_id

    async def get_balance(self, address: str) -> int:
        self.balance_calls.append(address)
        return self.balances.get(address.lower(), 0)

    async def block_number(self) -> int:
        return self.block

    async def get_events(
        self,
        contract: ContractName,
        event_name: str,
        from_block: int,
        to_block: int | None = None,
    ) -> list[dict[str, Any]]:
        self.event_queries.append((event_name, from_block, to_block))
        return [
            log
            for log in self.events.get(event_name, [])
            if from_block <= log["blockNumber"] <= (to_block if to_block is not None else self.block)
        ]

    @property
    def connected_address(self) -> str | None:
        return self.address


class Clock:
    def __init__(self, now: float = NOW) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> Clock:
    return Clock()


@pytest.fixture
def ledger() -> FakeLedger:
    ledger = FakeLedger()
    ledger.responses.update(
        {
            "isAuthorizedIssuer": lambda address: address.lower() == ISSUER,
            "isAdmin": lambda address: address.lower() == ADMIN,
            "listGrants": [grant_tuple(1), grant_tuple(2, issuer=STRANGER)],
            "getGrant": lambda grant_id: grant_tuple(grant_id),
            "getGrantApplications": lambda grant_id: [application_tuple()],
        }
    )
    return ledger


@pytest.fixture
def services(ledger: FakeLedger, clock: Clock) -> Callable[[], tuple[Any, ...]]:
    def build() -> tuple[NetworkGuard, TransactionTracker, AuthorizationService, GrantOrchestrator]:
        guard = NetworkGuard(ledger, DEFAULT_CHAIN_ID)
        tracker = TransactionTracker(ledger, pending_warning_after=None, clock=clock)
        authorization = AuthorizationService(ledger, guard, tracker)
        orchestrator = GrantOrchestrator(ledger, guard, authorization, tracker, clock=clock)
        return guard, tracker, authorization, orchestrator

    return build
