"""Shared write pipeline: prepare, submit, track, fold the outcome into state."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable

from .base import LedgerGateway
from .exceptions import GrantClientError, InvalidState
from .ledger.errors import classify_error
from .tracker import TransactionTracker
from .types import (
    ActionResult,
    ContractCall,
    OperationState,
    TransactionHandle,
    TransactionKind,
    TransactionStatus,
)

logger = logging.getLogger(__name__)


class ActionExecutor:
    """Run write actions for a fixed set of kinds, one in flight per kind."""

    def __init__(
        self,
        gateway: LedgerGateway,
        tracker: TransactionTracker,
        kinds: Iterable[TransactionKind],
        *,
        on_confirmed: Callable[[TransactionHandle], Awaitable[None]] | None = None,
    ) -> None:
        self._gateway = gateway
        self._tracker = tracker
        self._states = {kind: OperationState(kind) for kind in kinds}
        self._on_confirmed = on_confirmed
        self._subscription = tracker.subscribe(self._on_settled, kinds=self._states.keys())

    def state(self, kind: TransactionKind) -> OperationState:
        return self._states[kind]

    async def execute(
        self,
        kind: TransactionKind,
        prepare: Callable[[], Awaitable[ContractCall]],
    ) -> ActionResult:
        """Validate via ``prepare``, submit the resulting call and start tracking it.

        Failures never escape: they are classified, stored on the operation
        state and returned in the result.
        """
        state = self._states[kind]
        if not state.attached:
            return ActionResult(
                success=False, error=InvalidState(f"{kind.value} is no longer available")
            )
        if state.is_pending:
            return ActionResult(
                success=False,
                error=InvalidState(
                    f"A {kind.value} transaction is already in progress",
                    details={"tx_hash": state.tx_hash},
                ),
            )

        state.begin()
        try:
            call = await prepare()
            tx_hash = await self._gateway.write(call)
        except GrantClientError as exc:
            logger.warning("%s not submitted: %s", kind.value, exc.message)
            state.fail(exc)
            return ActionResult(success=False, error=exc)
        except Exception as exc:
            logger.exception("Unexpected %s failure", kind.value)
            error = classify_error(exc)
            state.fail(error)
            return ActionResult(success=False, error=error)

        handle = self._tracker.track(tx_hash, kind, call.context)
        state.awaiting(tx_hash)
        return ActionResult(success=True, handle=handle)

    def close(self) -> None:
        self._subscription.unsubscribe()
        for state in self._states.values():
            state.detach()

    async def _on_settled(self, handle: TransactionHandle) -> None:
        if handle.status is TransactionStatus.CONFIRMED and self._on_confirmed is not None:
            try:
                await self._on_confirmed(handle)
            except Exception:
                logger.exception("Refresh after %s %s failed", handle.kind.value, handle.tx_hash)

        state = self._states.get(handle.kind)
        if state is None or state.tx_hash != handle.tx_hash:
            return

        if handle.status is TransactionStatus.CONFIRMED:
            state.succeed()
        elif handle.error is not None:
            state.fail(handle.error)
