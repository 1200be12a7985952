"""Tests for ledger configuration helpers."""

import pytest
from web3 import Web3

from access_grants.constants import DEFAULT_CHAIN_ID, DEFAULT_GAS_LIMIT, DEFAULT_RPC_URL
from access_grants.exceptions import ValidationError
from access_grants.ledger.config import LedgerClientConfig

GRANTS = "0x5fbdb2315678afecb367f032d93f642f64180aa3"
REGISTRY = "0xe7f1725e7734ce288f8367e1bb143e90bb3f0512"
REQUESTS = "0xc880064656d06317a55ec3cd9036d8ce8e217497"


def test_from_env_defaults() -> None:
    config = LedgerClientConfig.from_env({"GRANTS_CONTRACT": GRANTS, "REGISTRY_CONTRACT": REGISTRY})

    assert config.rpc_url == DEFAULT_RPC_URL
    assert config.required_chain_id == DEFAULT_CHAIN_ID
    assert config.gas_limit == DEFAULT_GAS_LIMIT
    assert config.private_key is None
    assert config.grants_address == "0x5FbDB2315678afecb367f032d93F642f64180aa3"
    assert config.retry.attempts == 3
    assert config.confirmation.pending_warning_after == 60.0
    assert config.requests_address is None


def test_from_env_overrides() -> None:
    config = LedgerClientConfig.from_env(
        {
            "GRANTS_CONTRACT": GRANTS,
            "REGISTRY_CONTRACT": REGISTRY,
            "RPC_URL": "http://localhost:8545/",
            "REQUIRED_CHAIN_ID": "0x7a69",
            "PRIVATE_KEY": "",
            "REQUEST_REGISTRY_CONTRACT": REQUESTS,
        }
    )

    assert config.rpc_url == "http://localhost:8545"
    assert config.requests_address == Web3.to_checksum_address(REQUESTS)
    assert config.required_chain_id == 31337
    assert config.private_key is None


def test_from_env_requires_contracts() -> None:
    with pytest.raises(ValidationError):
        LedgerClientConfig.from_env({"GRANTS_CONTRACT": GRANTS})


def test_from_env_rejects_bad_chain_id() -> None:
    with pytest.raises(ValidationError) as exc_info:
        LedgerClientConfig.from_env(
            {"GRANTS_CONTRACT": GRANTS, "REGISTRY_CONTRACT": REGISTRY, "REQUIRED_CHAIN_ID": "sonic"}
        )
    assert exc_info.value.field == "required_chain_id"


def test_checksummed_rejects_bad_address() -> None:
    config = LedgerClientConfig(
        rpc_url="http://localhost:8545",
        grants_address="not-an-address",  # type: ignore[arg-type]
        registry_address=REGISTRY,  # type: ignore[arg-type]
    )
    with pytest.raises(ValidationError):
        config.checksummed()
