"""Contract ABIs for the grants contract, the issuer registry and the request registry."""

from typing import Any


def _fn(
    name: str,
    inputs: list[tuple[str, str]],
    outputs: list[dict[str, Any]] | None = None,
    mutability: str = "nonpayable",
) -> dict[str, Any]:
    return {
        "type": "function",
        "name": name,
        "inputs": [{"name": arg, "type": typ, "internalType": typ} for arg, typ in inputs],
        "outputs": outputs or [],
        "stateMutability": mutability,
    }


def _event(name: str, inputs: list[tuple[str, str, bool]]) -> dict[str, Any]:
    return {
        "type": "event",
        "name": name,
        "anonymous": False,
        "inputs": [
            {"name": arg, "type": typ, "internalType": typ, "indexed": indexed}
            for arg, typ, indexed in inputs
        ],
    }


_GRANT_COMPONENTS = [
    {"name": "id", "type": "uint256", "internalType": "uint256"},
    {"name": "title", "type": "string", "internalType": "string"},
    {"name": "description", "type": "string", "internalType": "string"},
    {"name": "amount", "type": "uint256", "internalType": "uint256"},
    {"name": "deadline", "type": "uint256", "internalType": "uint256"},
    {"name": "issuer", "type": "address", "internalType": "address"},
    {"name": "isActive", "type": "bool", "internalType": "bool"},
]

_APPLICATION_COMPONENTS = [
    {"name": "applicant", "type": "address", "internalType": "address"},
    {"name": "proposal", "type": "string", "internalType": "string"},
    {"name": "status", "type": "uint8", "internalType": "enum AccessGrant.ApplicationStatus"},
    {"name": "submittedAt", "type": "uint256", "internalType": "uint256"},
]

AccessGrant_abi: list[dict[str, Any]] = [
    _fn(
        "createGrant",
        [("title", "string"), ("description", "string"), ("amount", "uint256"), ("deadline", "uint256")],
    ),
    _fn("applyForGrant", [("grantId", "uint256"), ("proposal", "string")]),
    _fn("approveApplication", [("grantId", "uint256"), ("applicant", "address")]),
    _fn("rejectApplication", [("grantId", "uint256"), ("applicant", "address")]),
    _fn(
        "listGrants",
        [],
        [
            {
                "name": "",
                "type": "tuple[]",
                "internalType": "struct AccessGrant.Grant[]",
                "components": _GRANT_COMPONENTS,
            }
        ],
        "view",
    ),
    _fn(
        "getGrant",
        [("grantId", "uint256")],
        [
            {
                "name": "",
                "type": "tuple",
                "internalType": "struct AccessGrant.Grant",
                "components": _GRANT_COMPONENTS,
            }
        ],
        "view",
    ),
    _fn(
        "getApplication",
        [("grantId", "uint256"), ("applicationId", "uint256")],
        [
            {
                "name": "",
                "type": "tuple",
                "internalType": "struct AccessGrant.Application",
                "components": _APPLICATION_COMPONENTS,
            }
        ],
        "view",
    ),
    _fn(
        "getGrantApplications",
        [("grantId", "uint256")],
        [
            {
                "name": "",
                "type": "tuple[]",
                "internalType": "struct AccessGrant.Application[]",
                "components": _APPLICATION_COMPONENTS,
            }
        ],
        "view",
    ),
    _event("GrantCreated", [("grantId", "uint256", True), ("issuer", "address", True)]),
    _event("ApplicationSubmitted", [("grantId", "uint256", True), ("applicant", "address", True)]),
    _event("ApplicationApproved", [("grantId", "uint256", True), ("applicant", "address", True)]),
    _event("ApplicationRejected", [("grantId", "uint256", True), ("applicant", "address", True)]),
]

IssuerRegistry_abi: list[dict[str, Any]] = [
    _fn("addIssuer", [("issuer", "address")]),
    _fn("removeIssuer", [("issuer", "address")]),
    _fn(
        "isAuthorizedIssuer",
        [("account", "address")],
        [{"name": "", "type": "bool", "internalType": "bool"}],
        "view",
    ),
    _fn(
        "isAdmin",
        [("account", "address")],
        [{"name": "", "type": "bool", "internalType": "bool"}],
        "view",
    ),
    _fn(
        "getIssuers",
        [],
        [{"name": "", "type": "address[]", "internalType": "address[]"}],
        "view",
    ),
    _fn(
        "owner",
        [],
        [{"name": "", "type": "address", "internalType": "address"}],
        "view",
    ),
    _event("IssuerAdded", [("issuer", "address", True)]),
    _event("IssuerRemoved", [("issuer", "address", True)]),
]

_REQUEST_COMPONENTS = [
    {"name": "id", "type": "uint256", "internalType": "uint256"},
    {"name": "applicant", "type": "address", "internalType": "address"},
    {"name": "metadataURI", "type": "string", "internalType": "string"},
    {"name": "status", "type": "uint8", "internalType": "enum RequestRegistry.RequestStatus"},
]

RequestRegistry_abi: list[dict[str, Any]] = [
    _fn("submitRequest", [("metadataURI", "string")]),
    _fn("updateRequestStatus", [("requestId", "uint256"), ("newStatus", "uint8")]),
    _fn(
        "getUserRequests",
        [("user", "address")],
        [{"name": "", "type": "uint256[]", "internalType": "uint256[]"}],
        "view",
    ),
    _fn(
        "getAllGrantRequests",
        [],
        [
            {
                "name": "",
                "type": "tuple[]",
                "internalType": "struct RequestRegistry.GrantRequest[]",
                "components": _REQUEST_COMPONENTS,
            }
        ],
        "view",
    ),
    _fn(
        "requests",
        [("", "uint256")],
        [
            {"name": "applicant", "type": "address", "internalType": "address"},
            {"name": "metadataURI", "type": "string", "internalType": "string"},
            {"name": "status", "type": "uint8", "internalType": "enum RequestRegistry.RequestStatus"},
        ],
        "view",
    ),
    _event("RequestSubmitted", [("requestId", "uint256", True), ("applicant", "address", True)]),
    _event("RequestStatusUpdated", [("requestId", "uint256", True), ("status", "uint8", False)]),
]
