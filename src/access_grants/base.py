"""Ledger gateway base interface."""

from abc import ABC, abstractmethod
from typing import Any

from .constants import ContractName
from .types import ContractCall


class LedgerGateway(ABC):
    """Reads and signed writes against the grants ledger."""

    @abstractmethod
    async def read(self, call: ContractCall) -> Any:
        pass

    @abstractmethod
    async def write(self, call: ContractCall) -> str:
        pass

    @abstractmethod
    async def wait_for_confirmation(
        self, tx_hash: str, timeout: float | None = None
    ) -> dict[str, Any]:
        pass

    @abstractmethod
    async def get_receipt(self, tx_hash: str) -> dict[str, Any] | None:
        pass

    @abstractmethod
    async def get_chain_id(self) -> int:
        pass

    @abstractmethod
    async def get_balance(self, address: str) -> int:
        pass

    @abstractmethod
    async def block_number(self) -> int:
        pass

    @abstractmethod
    async def get_events(
        self,
        contract: ContractName,
        event_name: str,
        from_block: int,
        to_block: int | None = None,
    ) -> list[dict[str, Any]]:
        pass

    @property
    @abstractmethod
    def connected_address(self) -> str | None:
        pass

    def is_connected(self) -> bool:
        return self.connected_address is not None
