"""Configuration containers for the ledger client."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field, replace

from eth_typing import ChecksumAddress
from web3 import Web3

from ..constants import DEFAULT_CHAIN_ID, DEFAULT_GAS_LIMIT, DEFAULT_RPC_URL
from ..exceptions import ValidationError

DEFAULT_REQUEST_TIMEOUT = 10.0
DEFAULT_READ_ATTEMPTS = 3
DEFAULT_READ_BASE_DELAY = 1.0
DEFAULT_RECEIPT_TIMEOUT = 300.0
DEFAULT_RECEIPT_POLL_LATENCY = 1.0
DEFAULT_PENDING_WARNING_AFTER = 60.0
DEFAULT_AUTHORIZATION_TTL = 30.0
DEFAULT_EVENT_POLL_INTERVAL = 5.0


@dataclass(frozen=True)
class RetryPolicy:
    """Backoff for read calls: delay = base_delay * 2**attempt."""

    attempts: int = DEFAULT_READ_ATTEMPTS
    base_delay: float = DEFAULT_READ_BASE_DELAY


@dataclass(frozen=True)
class ConfirmationPolicy:
    """How long to wait for receipts and when to flag a write as slow."""

    receipt_timeout: float = DEFAULT_RECEIPT_TIMEOUT
    poll_latency: float = DEFAULT_RECEIPT_POLL_LATENCY
    pending_warning_after: float = DEFAULT_PENDING_WARNING_AFTER


@dataclass(frozen=True)
class LedgerClientConfig:
    """Aggregated configuration used to construct the ledger gateway."""

    rpc_url: str
    grants_address: ChecksumAddress
    registry_address: ChecksumAddress
    requests_address: ChecksumAddress | None = None
    private_key: str | None = None
    required_chain_id: int = DEFAULT_CHAIN_ID
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    gas_limit: int = DEFAULT_GAS_LIMIT
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    confirmation: ConfirmationPolicy = field(default_factory=ConfirmationPolicy)
    authorization_ttl: float = DEFAULT_AUTHORIZATION_TTL
    event_poll_interval: float = DEFAULT_EVENT_POLL_INTERVAL

    def checksummed(self) -> LedgerClientConfig:
        """Return a copy with checksummed contract addresses."""

        try:
            grants = Web3.to_checksum_address(self.grants_address)
            registry = Web3.to_checksum_address(self.registry_address)
            requests = (
                Web3.to_checksum_address(self.requests_address)
                if self.requests_address
                else None
            )
        except ValueError as exc:
            raise ValidationError(
                "Contract address is not a valid hex address",
                field="contract_address",
                details={"error": str(exc)},
            ) from exc

        return replace(
            self,
            rpc_url=self.rpc_url.rstrip("/"),
            grants_address=grants,
            registry_address=registry,
            requests_address=requests,
        )

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> LedgerClientConfig:
        """Build a config from ``RPC_URL``, ``GRANTS_CONTRACT``, ``REGISTRY_CONTRACT``,
        ``REQUEST_REGISTRY_CONTRACT`` (optional), ``PRIVATE_KEY`` and ``REQUIRED_CHAIN_ID``.

        Call ``dotenv.load_dotenv()`` first to pick up a ``.env`` file.
        """

        env = os.environ if environ is None else environ

        grants = env.get("GRANTS_CONTRACT")
        registry = env.get("REGISTRY_CONTRACT")
        if not grants or not registry:
            raise ValidationError(
                "GRANTS_CONTRACT and REGISTRY_CONTRACT must be set",
                field="contract_address",
            )

        chain_raw = env.get("REQUIRED_CHAIN_ID")
        try:
            chain_id = int(chain_raw, 0) if chain_raw else DEFAULT_CHAIN_ID
        except ValueError as exc:
            raise ValidationError(
                "REQUIRED_CHAIN_ID must be an integer", field="required_chain_id", value=chain_raw
            ) from exc

        config = cls(
            rpc_url=env.get("RPC_URL", DEFAULT_RPC_URL),
            grants_address=grants,  # type: ignore[arg-type]
            registry_address=registry,  # type: ignore[arg-type]
            requests_address=env.get("REQUEST_REGISTRY_CONTRACT") or None,  # type: ignore[arg-type]
            private_key=env.get("PRIVATE_KEY") or None,
            required_chain_id=chain_id,
        )
        return config.checksummed()
