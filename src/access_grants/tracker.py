"""Lifecycle tracking for submitted writes.

Every write goes ``submitted -> pending -> confirmed | failed``. Subscribers
are told exactly once when a handle settles, which is where dependent caches
get invalidated and re-fetched. Failed transactions are classified and handed
back; they are never resubmitted.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from collections.abc import Awaitable, Callable, Iterable, Mapping
from types import MappingProxyType
from typing import Any, Union

from .base import LedgerGateway
from .exceptions import ContractRevert, GrantClientError
from .ledger.errors import classify_error
from .types import TransactionHandle, TransactionKind, TransactionStatus

logger = logging.getLogger(__name__)

TransactionCallback = Callable[[TransactionHandle], Union[Awaitable[None], None]]


class Subscription:
    """Registration returned by :meth:`TransactionTracker.subscribe`."""

    def __init__(
        self,
        callback: TransactionCallback,
        kinds: frozenset[TransactionKind] | None,
        registry: list[Subscription],
    ) -> None:
        self.callback = callback
        self.kinds = kinds
        self._registry = registry
        self.active = True

    def matches(self, handle: TransactionHandle) -> bool:
        return self.active and (self.kinds is None or handle.kind in self.kinds)

    def unsubscribe(self) -> None:
        self.active = False
        if self in self._registry:
            self._registry.remove(self)


class TransactionTracker:
    """Own the in-flight transaction map and notify subscribers on settlement."""

    def __init__(
        self,
        gateway: LedgerGateway,
        *,
        receipt_timeout: float | None = None,
        pending_warning_after: float | None = 60.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._gateway = gateway
        self._receipt_timeout = receipt_timeout
        self._pending_warning_after = pending_warning_after
        self._clock = clock
        self._in_flight: dict[str, TransactionHandle] = {}
        self._tasks: dict[str, asyncio.Task[TransactionHandle]] = {}
        self._subscribers: list[Subscription] = []
        self._pending_subscribers: list[Subscription] = []

    # ------------------------------------------------------------------
    # Read-only accessors
    # ------------------------------------------------------------------
    @property
    def in_flight(self) -> Mapping[str, TransactionHandle]:
        return MappingProxyType(self._in_flight)

    def get(self, tx_hash: str) -> TransactionHandle | None:
        return self._in_flight.get(tx_hash)

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------
    def subscribe(
        self,
        callback: TransactionCallback,
        kinds: Iterable[TransactionKind] | None = None,
    ) -> Subscription:
        """Call ``callback`` once per handle when it is confirmed or fails."""
        subscription = Subscription(
            callback, frozenset(kinds) if kinds is not None else None, self._subscribers
        )
        self._subscribers.append(subscription)
        return subscription

    def on_still_pending(
        self,
        callback: TransactionCallback,
        kinds: Iterable[TransactionKind] | None = None,
    ) -> Subscription:
        subscription = Subscription(
            callback, frozenset(kinds) if kinds is not None else None, self._pending_subscribers
        )
        self._pending_subscribers.append(subscription)
        return subscription

    # ------------------------------------------------------------------
    # Tracking
    # ------------------------------------------------------------------
    def track(
        self,
        tx_hash: str,
        kind: TransactionKind,
        context: Mapping[str, Any] | None = None,
    ) -> TransactionHandle:
        """Register a freshly submitted write and start watching for its receipt."""

        handle = TransactionHandle(
            tx_hash=tx_hash,
            kind=kind,
            submitted_at=self._clock(),
            context=dict(context or {}),
        )
        self._in_flight[tx_hash] = handle
        self._tasks[tx_hash] = asyncio.create_task(self._watch(handle))
        logger.info("Tracking %s transaction %s", kind.value, tx_hash)
        return handle

    async def wait(self, handle: TransactionHandle) -> TransactionHandle:
        """Wait until ``handle`` is confirmed or failed."""
        task = self._tasks.get(handle.tx_hash)
        if task is not None and not handle.is_settled:
            try:
                await asyncio.shield(task)
            except asyncio.CancelledError:
                if not task.cancelled():
                    raise
        return handle

    async def refresh(self, tx_hash: str) -> TransactionHandle | None:
        """Manually re-check a slow transaction without blocking on it."""

        handle = self._in_flight.get(tx_hash)
        if handle is None:
            return None

        try:
            receipt = await self._gateway.get_receipt(tx_hash)
        except ContractRevert as exc:
            await self._settle(handle, error=exc)
        except Exception as exc:
            # the receipt lookup failed, not the transaction; keep watching
            error = classify_error(exc, context={"tx_hash": tx_hash})
            logger.warning("Receipt lookup for %s failed: %s", tx_hash, error.message)
            return handle
        else:
            if receipt is None:
                return handle
            await self._settle(handle, receipt=receipt)

        task = self._tasks.pop(tx_hash, None)
        if task is not None and task is not asyncio.current_task():
            task.cancel()
        return handle

    async def close(self) -> None:
        """Stop watching; submitted writes themselves cannot be cancelled."""

        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        self._in_flight.clear()
        self._subscribers.clear()
        self._pending_subscribers.clear()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    async def _watch(self, handle: TransactionHandle) -> TransactionHandle:
        handle.status = TransactionStatus.PENDING
        try:
            receipt = await self._wait_for_receipt(handle)
        except Exception as exc:
            await self._settle(handle, error=classify_error(exc, context={"tx_hash": handle.tx_hash}))
        else:
            await self._settle(handle, receipt=receipt)
        finally:
            self._tasks.pop(handle.tx_hash, None)
        return handle

    async def _wait_for_receipt(self, handle: TransactionHandle) -> dict[str, Any]:
        waiter = asyncio.ensure_future(
            self._gateway.wait_for_confirmation(handle.tx_hash, timeout=self._receipt_timeout)
        )
        try:
            if self._pending_warning_after is not None:
                done, _ = await asyncio.wait({waiter}, timeout=self._pending_warning_after)
                if not done:
                    handle.still_pending = True
                    logger.warning(
                        "Transaction %s still pending after %.0fs",
                        handle.tx_hash,
                        self._pending_warning_after,
                    )
                    await self._dispatch(self._pending_subscribers, handle)
            return await waiter
        except asyncio.CancelledError:
            waiter.cancel()
            raise

    async def _settle(
        self,
        handle: TransactionHandle,
        *,
        receipt: dict[str, Any] | None = None,
        error: GrantClientError | None = None,
    ) -> None:
        if handle.is_settled:
            return

        if error is not None:
            handle.status = TransactionStatus.FAILED
            handle.error = error
            logger.warning("Transaction %s failed: %s", handle.tx_hash, error.message)
        else:
            handle.status = TransactionStatus.CONFIRMED
            handle.receipt = receipt
            logger.info("Transaction %s confirmed (%s)", handle.tx_hash, handle.kind.value)

        handle.still_pending = False
        try:
            await self._dispatch(self._subscribers, handle)
        finally:
            self._in_flight.pop(handle.tx_hash, None)

    async def _dispatch(self, subscriptions: list[Subscription], handle: TransactionHandle) -> None:
        for subscription in list(subscriptions):
            if not subscription.matches(handle):
                continue
            try:
                result = subscription.callback(handle)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(
                    "Subscriber failed while handling transaction %s", handle.tx_hash
                )
