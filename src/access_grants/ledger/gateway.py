"""web3.py implementation of the ledger gateway."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from web3 import Web3
from web3.exceptions import ContractLogicError, TimeExhausted, TransactionNotFound

from ..base import LedgerGateway
from ..constants import ContractName
from ..exceptions import (
    ConfirmationError,
    ConfirmationTimeout,
    ContractRevert,
    GrantClientError,
    NotConnected,
)
from ..types import ContractCall
from ..utils import serialise_receipt, to_tx_hex
from .config import LedgerClientConfig
from .connections import Web3Connections
from .errors import classify_error
from .retry import with_retry

logger = logging.getLogger(__name__)


def _is_transient(exc: BaseException) -> bool:
    return not isinstance(exc, ContractLogicError | GrantClientError)


class Web3LedgerGateway(LedgerGateway):
    """Submit reads with backoff and signed writes through an AsyncWeb3 connection."""

    def __init__(
        self,
        config: LedgerClientConfig,
        connections: Web3Connections | None = None,
        *,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        self._config = config
        self._connections = connections or Web3Connections(config)
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def connect(self) -> None:
        try:
            await self._connections.connect()
        except GrantClientError:
            self.disconnect()
            raise
        except Exception as exc:
            self.disconnect()
            raise GrantClientError(
                "Failed to initialise ledger connection",
                details={"endpoint": self._config.rpc_url, "error": str(exc)},
            ) from exc

    def disconnect(self) -> None:
        self._connections.disconnect()

    def attach_signer(self, private_key: str) -> str:
        return self._connections.attach_signer(private_key).address

    @property
    def connected_address(self) -> str | None:
        if not self._connections.is_connected():
            return None
        return self._connections.address

    @property
    def config(self) -> LedgerClientConfig:
        return self._config

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    async def read(self, call: ContractCall) -> Any:
        self._connections.ensure_connected()
        contract = self._connections.contract(call.contract)
        description = f"{call.contract.value}.{call.function}"

        async def attempt() -> Any:
            return await getattr(contract.functions, call.function)(*call.args).call()

        try:
            return await self._retry(attempt, description)
        except ContractLogicError as exc:
            raise classify_error(exc, context={"function": description}) from exc

    async def get_chain_id(self) -> int:
        self._connections.ensure_connected()
        web3 = self._connections.web3

        async def attempt() -> int:
            return int(await web3.eth.chain_id)

        return await self._retry(attempt, "eth_chainId")

    async def get_balance(self, address: str) -> int:
        self._connections.ensure_connected()
        web3 = self._connections.web3
        checksum = Web3.to_checksum_address(address)

        async def attempt() -> int:
            return int(await web3.eth.get_balance(checksum))

        return await self._retry(attempt, "eth_getBalance")

    async def block_number(self) -> int:
        self._connections.ensure_connected()
        web3 = self._connections.web3

        async def attempt() -> int:
            return int(await web3.eth.block_number)

        return await self._retry(attempt, "eth_blockNumber")

    async def get_events(
        self,
        contract: ContractName,
        event_name: str,
        from_block: int,
        to_block: int | None = None,
    ) -> list[dict[str, Any]]:
        self._connections.ensure_connected()
        handle = self._connections.contract(contract)
        event = getattr(handle.events, event_name)()

        async def attempt() -> list[dict[str, Any]]:
            logs = await event.get_logs(
                from_block=from_block, to_block=to_block if to_block is not None else "latest"
            )
            return [serialise_receipt(log) for log in logs]

        return await self._retry(attempt, f"{contract.value}.{event_name} logs")

    async def _retry(self, fn: Callable[[], Awaitable[Any]], description: str) -> Any:
        kwargs: dict[str, Any] = {"retry_if": _is_transient, "description": description}
        if self._sleep is not None:
            kwargs["sleep"] = self._sleep
        return await with_retry(
            fn, self._config.retry.attempts, self._config.retry.base_delay, **kwargs
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    async def write(self, call: ContractCall) -> str:
        self._connections.ensure_connected()
        if self._connections.address is None:
            raise NotConnected()

        accounts = await self._connections.request_accounts()
        sender = accounts[0]
        contract = self._connections.contract(call.contract)
        contract_function = getattr(contract.functions, call.function)(*call.args)
        action = call.kind.value if call.kind else call.function
        logger.info("Dispatching %s via %s.%s", action, call.contract.value, call.function)

        tx_params = {
            "from": sender,
            "chainId": self._config.required_chain_id,
            "gas": self._config.gas_limit,
        }
        try:
            tx_hash = await contract_function.transact(tx_params)
        except Exception as exc:
            error = classify_error(
                exc,
                context={"function": call.function, "args": [str(arg) for arg in call.args]},
            )
            logger.warning("Write %s failed: %s", action, error.message)
            raise error from exc

        tx_hex = to_tx_hex(tx_hash)
        logger.info("Transaction sent for action=%s hash=%s", action, tx_hex)
        return tx_hex

    async def wait_for_confirmation(
        self, tx_hash: str, timeout: float | None = None
    ) -> dict[str, Any]:
        self._connections.ensure_connected()
        web3 = self._connections.web3
        policy = self._config.confirmation

        try:
            receipt = await web3.eth.wait_for_transaction_receipt(
                tx_hash,  # type: ignore[arg-type]
                timeout=timeout if timeout is not None else policy.receipt_timeout,
                poll_latency=policy.poll_latency,
            )
        except TimeExhausted as exc:
            raise ConfirmationTimeout(
                "Transaction is still pending confirmation", tx_hash=tx_hash
            ) from exc
        except Exception as exc:
            raise ConfirmationError(
                "Failed to confirm transaction",
                tx_hash=tx_hash,
                details={"error": str(exc)},
            ) from exc

        return self._check_receipt(tx_hash, receipt)

    async def get_receipt(self, tx_hash: str) -> dict[str, Any] | None:
        self._connections.ensure_connected()
        web3 = self._connections.web3

        async def attempt() -> Any:
            try:
                return await web3.eth.get_transaction_receipt(tx_hash)  # type: ignore[arg-type]
            except TransactionNotFound:
                return None

        receipt = await self._retry(attempt, "eth_getTransactionReceipt")
        if receipt is None:
            return None
        return self._check_receipt(tx_hash, receipt)

    def _check_receipt(self, tx_hash: str, receipt: Any) -> dict[str, Any]:
        serialised = serialise_receipt(receipt)
        if serialised.get("status", 1) == 0:
            raise ContractRevert(
                "Transaction reverted",
                details={"tx_hash": tx_hash, "block_number": serialised.get("blockNumber")},
            )
        logger.info(
            "Transaction confirmed hash=%s block=%s", tx_hash, serialised.get("blockNumber")
        )
        return serialised
