"""Constants and mappings for the access grants client."""

import re
from enum import Enum

# Sonic Blaze testnet, where the AccessGrant contracts are deployed
DEFAULT_CHAIN_ID = 57054
DEFAULT_RPC_URL = "https://rpc.blaze.soniclabs.com"
NATIVE_SYMBOL = "SONIC"
NATIVE_DECIMALS = 18

DEFAULT_GAS_LIMIT = 3_000_000
ADDRESS_PATTERN = re.compile(r"^0x[a-fA-F0-9]{40}$")

ONE_DAY_SECONDS = 24 * 60 * 60
# 9999-12-31T23:59:59Z, the last second datetime can represent
MAX_TIMESTAMP = 253_402_300_799


class ContractName(str, Enum):
    """Contracts the client talks to."""

    GRANTS = "grants"
    REGISTRY = "registry"
    REQUESTS = "requests"


class GrantEvent(str, Enum):
    """Grants contract events used as refresh triggers."""

    GRANT_CREATED = "GrantCreated"
    APPLICATION_SUBMITTED = "ApplicationSubmitted"
    APPLICATION_APPROVED = "ApplicationApproved"
    APPLICATION_REJECTED = "ApplicationRejected"


class RegistryEvent(str, Enum):
    """Issuer registry events."""

    ISSUER_ADDED = "IssuerAdded"
    ISSUER_REMOVED = "IssuerRemoved"


class RequestEvent(str, Enum):
    """Grant request registry events."""

    REQUEST_SUBMITTED = "RequestSubmitted"
    REQUEST_STATUS_UPDATED = "RequestStatusUpdated"


def is_valid_address(address: str | None) -> bool:
    """Return True when ``address`` is a 20-byte 0x-prefixed hex string."""
    if not address or not isinstance(address, str):
        return False
    return ADDRESS_PATTERN.fullmatch(address) is not None
