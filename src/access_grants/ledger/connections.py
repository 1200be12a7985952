"""Connection helpers for the ledger gateway."""

from __future__ import annotations

import logging
from typing import cast

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.contract import AsyncContract
from web3.middleware import SignAndSendRawMiddlewareBuilder

from ..abi import AccessGrant_abi, IssuerRegistry_abi, RequestRegistry_abi
from ..constants import ContractName
from ..exceptions import GrantClientError, NotConnected, ValidationError
from .config import LedgerClientConfig

logger = logging.getLogger(__name__)


class Web3Connections:
    """Manage the async Web3 provider, wallet signer and contract handles."""

    def __init__(self, config: LedgerClientConfig):
        self.config = config
        self._provider: AsyncHTTPProvider | None = None
        self._web3: AsyncWeb3 | None = None
        self._account: LocalAccount | None = None
        self._contracts: dict[ContractName, AsyncContract] = {}
        self._accounts_granted = False
        self._connected = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def connect(self) -> None:
        """Initialise the provider, contract handles and, if a key is configured, the signer."""

        provider = AsyncHTTPProvider(
            self.config.rpc_url, request_kwargs={"timeout": self.config.request_timeout}
        )
        web3 = AsyncWeb3(provider)
        if not await web3.is_connected():
            raise GrantClientError(
                "Unable to connect to ledger RPC", details={"endpoint": self.config.rpc_url}
            )

        self._provider = provider
        self._web3 = web3
        self._contracts = {
            ContractName.GRANTS: web3.eth.contract(
                address=self.config.grants_address, abi=AccessGrant_abi
            ),
            ContractName.REGISTRY: web3.eth.contract(
                address=self.config.registry_address, abi=IssuerRegistry_abi
            ),
        }
        if self.config.requests_address:
            self._contracts[ContractName.REQUESTS] = web3.eth.contract(
                address=self.config.requests_address, abi=RequestRegistry_abi
            )

        if self.config.private_key:
            self.attach_signer(self.config.private_key)

        self._connected = True
        logger.info("Connected to ledger RPC at %s", self.config.rpc_url)

    def attach_signer(self, private_key: str) -> LocalAccount:
        """Use ``private_key`` as the wallet session for writes."""

        try:
            signer = cast(LocalAccount, Account.from_key(private_key))  # type: ignore[arg-type]
        except Exception as exc:
            raise ValidationError(
                "Failed to derive signer account from provided private key",
                field="private_key",
                details={"error": str(exc)},
            ) from exc

        web3 = self.web3
        web3.middleware_onion.add(SignAndSendRawMiddlewareBuilder.build(signer))  # type: ignore[arg-type]
        web3.eth.default_account = signer.address
        self._account = signer
        self._accounts_granted = False
        logger.info("Wallet session attached for %s", signer.address)
        return signer

    def disconnect(self) -> None:
        self._provider = None
        self._web3 = None
        self._account = None
        self._contracts = {}
        self._accounts_granted = False
        self._connected = False

    def is_connected(self) -> bool:
        return self._connected and self._web3 is not None

    def ensure_connected(self) -> None:
        if not self.is_connected():
            raise GrantClientError(
                "Ledger gateway is not connected", details={"endpoint": self.config.rpc_url}
            )

    async def request_accounts(self) -> list[str]:
        """Request account access from the wallet session; granted once per session."""

        account = self.account
        if not self._accounts_granted:
            logger.debug("Account access granted for %s", account.address)
            self._accounts_granted = True
        return [account.address]

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------
    @property
    def web3(self) -> AsyncWeb3:
        if self._web3 is None:
            raise GrantClientError(
                "Ledger RPC provider not connected", details={"endpoint": self.config.rpc_url}
            )
        return self._web3

    @property
    def account(self) -> LocalAccount:
        if self._account is None:
            raise NotConnected()
        return self._account

    @property
    def address(self) -> str | None:
        return self._account.address if self._account is not None else None

    def contract(self, name: ContractName) -> AsyncContract:
        if name is ContractName.REQUESTS and not self.config.requests_address:
            raise ValidationError(
                "Request registry address is not configured", field="requests_address"
            )
        try:
            return self._contracts[name]
        except KeyError:
            raise GrantClientError(
                f"{name.value} contract not available; call connect() first",
                details={"endpoint": self.config.rpc_url},
            ) from None
