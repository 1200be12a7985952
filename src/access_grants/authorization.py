"""Issuer and admin authorization checks backed by the issuer registry."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from eth_typing import ChecksumAddress
from web3 import Web3

from .actions import ActionExecutor
from .base import LedgerGateway
from .constants import ContractName, RegistryEvent, is_valid_address
from .exceptions import InvalidState, Unauthorized, ValidationError
from .ledger.events import ContractEvent, EventWatcher
from .network import NetworkGuard
from .tracker import TransactionTracker
from .types import (
    ActionResult,
    AuthorizationRecord,
    ContractCall,
    OperationState,
    Role,
    TransactionHandle,
    TransactionKind,
)

logger = logging.getLogger(__name__)

_ROLE_FUNCTIONS = {
    Role.ISSUER: "isAuthorizedIssuer",
    Role.ADMIN: "isAdmin",
}


class AuthorizationService:
    """Cache role reads per address and run the issuer registration flow.

    The cache is written only here. Local checks are a fast path for the UI;
    the registry contract still enforces every rule on-chain.
    """

    def __init__(
        self,
        gateway: LedgerGateway,
        guard: NetworkGuard,
        tracker: TransactionTracker,
        *,
        ttl: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._gateway = gateway
        self._guard = guard
        self._ttl = ttl
        self._clock = clock
        self._cache: dict[tuple[str, Role], AuthorizationRecord] = {}
        self._watcher: EventWatcher | None = None
        self._actions = ActionExecutor(
            gateway,
            tracker,
            (TransactionKind.ADD_ISSUER, TransactionKind.REMOVE_ISSUER),
            on_confirmed=self._refresh_after_write,
        )

    # ------------------------------------------------------------------
    # Role checks
    # ------------------------------------------------------------------
    async def is_authorized_issuer(self, address: str | None, *, force: bool = False) -> bool:
        return await self._check(address, Role.ISSUER, force=force)

    async def is_admin(self, address: str | None, *, force: bool = False) -> bool:
        return await self._check(address, Role.ADMIN, force=force)

    def is_loading(self, address: str | None, role: Role = Role.ISSUER) -> bool:
        if not address:
            return False
        record = self._cache.get((address.lower(), role))
        return bool(record and record.loading)

    def cached(self, address: str, role: Role = Role.ISSUER) -> AuthorizationRecord | None:
        record = self._cache.get((address.lower(), role))
        if record is None:
            return None
        return AuthorizationRecord(
            address=record.address,
            role=record.role,
            authorized=record.authorized,
            fetched_at=record.fetched_at,
            loading=record.loading,
        )

    def invalidate(self, address: str | None = None) -> None:
        if address is None:
            self._cache.clear()
            return
        for role in _ROLE_FUNCTIONS:
            self._cache.pop((address.lower(), role), None)

    async def list_issuers(self) -> list[ChecksumAddress]:
        raw = await self._gateway.read(ContractCall(ContractName.REGISTRY, "getIssuers"))
        issuers: list[ChecksumAddress] = []
        for entry in raw or []:
            if isinstance(entry, str) and is_valid_address(entry):
                issuers.append(Web3.to_checksum_address(entry))
            else:
                logger.warning("Dropping malformed issuer entry %r", entry)
        return issuers

    async def _check(self, address: str | None, role: Role, *, force: bool) -> bool:
        if not address:
            return False

        key = (address.lower(), role)
        record = self._cache.get(key)
        now = self._clock()
        if (
            not force
            and record is not None
            and record.fetched_at is not None
            and now - record.fetched_at <= self._ttl
        ):
            logger.debug("Authorization cache hit for %s (%s)", address, role.value)
            return record.authorized

        if record is None:
            record = AuthorizationRecord(address=address, role=role)
            self._cache[key] = record

        record.loading = True
        try:
            result = await self._gateway.read(
                ContractCall(ContractName.REGISTRY, _ROLE_FUNCTIONS[role], (address,))
            )
        finally:
            record.loading = False

        record.authorized = bool(result)
        record.fetched_at = self._clock()
        return record.authorized

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------
    def operation_state(self, kind: TransactionKind) -> OperationState:
        return self._actions.state(kind)

    async def request_issuer_registration(self, address: str) -> ActionResult:
        """Validate, check the caller is admin, then submit ``addIssuer``."""

        async def prepare() -> ContractCall:
            target = self._validate_target(address)
            await self._require_admin()
            if await self.is_authorized_issuer(target, force=True):
                raise InvalidState(
                    "This address is already registered as an issuer",
                    details={"address": target},
                )
            return ContractCall(
                ContractName.REGISTRY,
                "addIssuer",
                (target,),
                kind=TransactionKind.ADD_ISSUER,
                context={"address": target},
            )

        return await self._actions.execute(TransactionKind.ADD_ISSUER, prepare)

    async def request_issuer_removal(self, address: str) -> ActionResult:
        async def prepare() -> ContractCall:
            target = self._validate_target(address)
            await self._require_admin()
            if not await self.is_authorized_issuer(target, force=True):
                raise InvalidState(
                    "This address is not a registered issuer", details={"address": target}
                )
            return ContractCall(
                ContractName.REGISTRY,
                "removeIssuer",
                (target,),
                kind=TransactionKind.REMOVE_ISSUER,
                context={"address": target},
            )

        return await self._actions.execute(TransactionKind.REMOVE_ISSUER, prepare)

    async def watch_events(self, *, poll_interval: float = 5.0) -> EventWatcher:
        """Drop cached issuer flags whenever the registry reports a change."""

        def handle(batch: list[ContractEvent]) -> None:
            for event in batch:
                issuer = event.args.get("issuer")
                if isinstance(issuer, str):
                    logger.info("%s for %s; invalidating cache", event.name, issuer)
                    self.invalidate(issuer)

        if self._watcher is None or not self._watcher.active:
            self._watcher = EventWatcher(
                self._gateway,
                ContractName.REGISTRY,
                [event.value for event in RegistryEvent],
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

    def _validate_target(self, address: str) -> ChecksumAddress:
        if not is_valid_address(address):
            raise ValidationError("Invalid Ethereum address format", field="address", value=address)
        return Web3.to_checksum_address(address)

    async def _require_admin(self) -> str:
        caller = await self._guard.ensure_ready()
        if not await self.is_admin(caller):
            raise Unauthorized("Only the registry admin can manage issuers", role=Role.ADMIN.value)
        return caller

    async def _refresh_after_write(self, handle: TransactionHandle) -> None:
        target = handle.context.get("address")
        if not target:
            return
        self.invalidate(target)
        await self.is_authorized_issuer(target, force=True)
