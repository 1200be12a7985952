"""Top-level client wiring the gateway, guard, tracker and services together."""

from __future__ import annotations

import logging
from datetime import tzinfo

from .authorization import AuthorizationService
from .grant_requests import RequestRegistry
from .grants import GrantOrchestrator
from .ledger.config import LedgerClientConfig
from .ledger.events import EventCallback, EventWatcher
from .ledger.gateway import Web3LedgerGateway
from .network import NetworkGuard
from .tracker import TransactionTracker

logger = logging.getLogger(__name__)


class AccessGrantsClient:
    """Interact with the AccessGrant and issuer registry contracts.

    Example::

        config = LedgerClientConfig.from_env()
        async with AccessGrantsClient(config) as client:
            views = await client.grants.list_grants()
    """

    def __init__(
        self,
        config: LedgerClientConfig,
        *,
        gateway: Web3LedgerGateway | None = None,
        tz: tzinfo | None = None,
    ) -> None:
        self.config = config
        self.gateway = gateway or Web3LedgerGateway(config)
        self.guard = NetworkGuard(self.gateway, config.required_chain_id)
        self.tracker = TransactionTracker(
            self.gateway,
            receipt_timeout=config.confirmation.receipt_timeout,
            pending_warning_after=config.confirmation.pending_warning_after,
        )
        self.authorization = AuthorizationService(
            self.gateway, self.guard, self.tracker, ttl=config.authorization_ttl
        )
        self.grants = GrantOrchestrator(
            self.gateway, self.guard, self.authorization, self.tracker, tz=tz
        )
        self.requests = RequestRegistry(
            self.gateway, self.guard, self.authorization, self.tracker
        )

    async def connect(self) -> None:
        await self.gateway.connect()
        logger.info(
            "Access grants client ready (grants=%s registry=%s chain=%s)",
            self.config.grants_address,
            self.config.registry_address,
            self.config.required_chain_id,
        )

    async def watch_events(self, on_events: EventCallback | None = None) -> list[EventWatcher]:
        """Poll grant and registry events; missed batches are recovered by the next re-read."""
        interval = self.config.event_poll_interval
        watchers = [
            await self.grants.watch_events(on_events, poll_interval=interval),
            await self.authorization.watch_events(poll_interval=interval),
        ]
        if self.config.requests_address:
            watchers.append(await self.requests.watch_events(poll_interval=interval))
        return watchers

    async def close(self) -> None:
        """Tear down services; writes already submitted keep running on-chain."""
        self.grants.close()
        self.requests.close()
        self.authorization.close()
        await self.tracker.close()
        self.gateway.disconnect()

    async def __aenter__(self) -> AccessGrantsClient:
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
