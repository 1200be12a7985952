"""Classification of provider and signer failures into client errors."""

from __future__ import annotations

import re
from typing import Any

from web3.exceptions import ContractLogicError, TimeExhausted

from ..exceptions import (
    ConfirmationTimeout,
    ContractRevert,
    GrantClientError,
    InsufficientFunds,
    WriteRejected,
)

_REASON_STRING = re.compile(r"reverted with reason string '([^']+)'")
_EXECUTION_REVERTED = re.compile(r"execution reverted:?\s*([^'\"]*)", re.IGNORECASE)
_USER_REJECTED = ("user rejected", "user denied", "rejected by user")


def extract_revert_reason(text: str) -> str | None:
    """Pull a human revert reason out of a provider error message."""

    match = _REASON_STRING.search(text)
    if match:
        return match.group(1)

    match = _EXECUTION_REVERTED.search(text)
    if match:
        reason = match.group(1).strip().strip("'\"")
        return reason or None

    return None


def _error_text(exc: BaseException) -> str:
    parts: list[str] = [str(exc)]
    for arg in getattr(exc, "args", ()):
        if isinstance(arg, dict):
            message = arg.get("message")
            if message:
                parts.append(str(message))
    message = getattr(exc, "message", None)
    if isinstance(message, str):
        parts.append(message)
    return " ".join(parts)


def classify_error(exc: BaseException, *, context: dict[str, Any] | None = None) -> GrantClientError:
    """Map a raw exception onto the client's error taxonomy.

    Errors that are already classified are returned unchanged.
    """

    if isinstance(exc, GrantClientError):
        return exc

    details = {"error": str(exc), **(context or {})}

    if isinstance(exc, TimeExhausted):
        return ConfirmationTimeout("Transaction is still pending confirmation", details=details)

    text = _error_text(exc)
    lowered = text.lower()

    if isinstance(exc, ContractLogicError):
        message = getattr(exc, "message", None)
        reason = extract_revert_reason(message or text)
        if reason is None and isinstance(message, str):
            reason = message.strip() or None
        if reason and reason.lower() in ("execution reverted", "execution reverted:"):
            reason = None
        return ContractRevert("Transaction rejected by contract", reason=reason, details=details)

    if any(marker in lowered for marker in _USER_REJECTED):
        return WriteRejected("Transaction was rejected in the wallet", details=details)

    if "insufficient funds" in lowered:
        return InsufficientFunds("Insufficient funds for value and gas", details=details)

    reason = extract_revert_reason(text)
    if reason is not None:
        return ContractRevert("Transaction rejected by contract", reason=reason, details=details)

    if "internal json-rpc error" in lowered or "revert" in lowered:
        return ContractRevert("Transaction rejected by contract", details=details)

    return GrantClientError(str(exc) or exc.__class__.__name__, details=details)
