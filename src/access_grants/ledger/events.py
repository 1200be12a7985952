"""Best-effort polling of contract events used as refresh triggers."""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, Union

from ..base import LedgerGateway
from ..constants import ContractName
from ..exceptions import GrantClientError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ContractEvent:
    name: str
    args: dict[str, Any] = field(default_factory=dict)
    block_number: int | None = None
    tx_hash: str | None = None

    @classmethod
    def from_log(cls, name: str, log: dict[str, Any]) -> ContractEvent:
        return cls(
            name=name,
            args=dict(log.get("args") or {}),
            block_number=log.get("blockNumber"),
            tx_hash=log.get("transactionHash"),
        )


EventCallback = Callable[[list[ContractEvent]], Union[Awaitable[None], None]]


class EventWatcher:
    """Poll logs for a set of events and hand each non-empty batch to a callback.

    Missed batches are tolerated: consumers re-read the ledger instead of
    trusting events as the source of truth.
    """

    def __init__(
        self,
        gateway: LedgerGateway,
        contract: ContractName,
        event_names: Sequence[str],
        callback: EventCallback,
        *,
        poll_interval: float = 5.0,
    ) -> None:
        self._gateway = gateway
        self._contract = contract
        self._event_names = tuple(event_names)
        self._callback = callback
        self._poll_interval = poll_interval
        self._next_block: int | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> EventWatcher:
        if self.active:
            return self
        self._next_block = await self._gateway.block_number() + 1
        self._task = asyncio.create_task(self._run())
        logger.info(
            "Watching %s events %s from block %s",
            self._contract.value,
            ", ".join(self._event_names),
            self._next_block,
        )
        return self

    def unsubscribe(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def poll_once(self) -> list[ContractEvent]:
        """Fetch events since the last poll and dispatch them."""

        if self._next_block is None:
            self._next_block = await self._gateway.block_number() + 1
            return []

        latest = await self._gateway.block_number()
        if latest < self._next_block:
            return []

        batch: list[ContractEvent] = []
        for name in self._event_names:
            logs = await self._gateway.get_events(self._contract, name, self._next_block, latest)
            batch.extend(ContractEvent.from_log(name, log) for log in logs)
        self._next_block = latest + 1

        if batch:
            batch.sort(key=lambda event: event.block_number or 0)
            result = self._callback(batch)
            if inspect.isawaitable(result):
                await result
        return batch

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._poll_interval)
            try:
                await self.poll_once()
            except GrantClientError as exc:
                logger.warning("Event poll for %s failed: %s", self._contract.value, exc.message)
            except Exception:
                logger.exception("Unexpected failure while polling %s events", self._contract.value)
