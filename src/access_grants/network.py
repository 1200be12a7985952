"""Chain id guard for write-capable operations."""

from __future__ import annotations

import logging

from .base import LedgerGateway
from .exceptions import NotConnected, WrongNetwork

logger = logging.getLogger(__name__)


class NetworkGuard:
    """Compare the live chain id with the required one before any write."""

    def __init__(self, gateway: LedgerGateway, required_chain_id: int) -> None:
        self._gateway = gateway
        self._required_chain_id = required_chain_id
        self._last_chain_id: int | None = None

    @property
    def required_chain_id(self) -> int:
        return self._required_chain_id

    @property
    def last_chain_id(self) -> int | None:
        return self._last_chain_id

    async def is_correct_network(self) -> bool:
        chain_id = await self._gateway.get_chain_id()
        self._last_chain_id = chain_id
        return chain_id == self._required_chain_id

    async def ensure_ready(self) -> str:
        """Return the connected address, or raise NotConnected / WrongNetwork."""

        address = self._gateway.connected_address
        if not address:
            raise NotConnected()

        if not await self.is_correct_network():
            logger.warning(
                "Wrong network: connected to chain %s, expected %s",
                self._last_chain_id,
                self._required_chain_id,
            )
            raise WrongNetwork(self._required_chain_id, self._last_chain_id)

        return address
