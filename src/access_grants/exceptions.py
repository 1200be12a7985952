"""Exception hierarchy for the access grants client."""

from typing import Any


class GrantClientError(Exception):
    """Base exception for all grant client errors."""

    code = "error"
    default_user_message = "Something went wrong while talking to the ledger."

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    @property
    def user_message(self) -> str:
        return self.message or self.default_user_message


class ValidationError(GrantClientError):
    """Raised when input validation fails before any network call."""

    code = "validation_error"

    def __init__(
        self,
        message: str,
        field: str | None = None,
        value: Any | None = None,
        details: dict | None = None,
    ):
        super().__init__(message, details)
        self.field = field
        self.value = value


class NotConnected(GrantClientError):
    """Raised when no wallet session is available."""

    code = "not_connected"

    def __init__(self, message: str = "Please connect your wallet first", details: dict | None = None):
        super().__init__(message, details)


class WrongNetwork(GrantClientError):
    """Raised when the live chain id does not match the required one."""

    code = "wrong_network"

    def __init__(
        self,
        expected: int,
        actual: int | None,
        details: dict | None = None,
    ):
        super().__init__(
            f"Please switch to chain id {expected} (connected to {actual})",
            details,
        )
        self.expected = expected
        self.actual = actual


class Unauthorized(GrantClientError):
    """Raised by local role pre-checks; the contract remains the authority."""

    code = "unauthorized"

    def __init__(self, message: str, role: str | None = None, details: dict | None = None):
        super().__init__(message, details)
        self.role = role


class ReadError(GrantClientError):
    """Raised when a read call exhausted its retries."""

    code = "read_error"

    def __init__(self, message: str, attempts: int = 0, details: dict | None = None):
        super().__init__(message, details)
        self.attempts = attempts


class WriteRejected(GrantClientError):
    """Raised when the signer or user declined the transaction."""

    code = "write_rejected"
    default_user_message = "Transaction was rejected in your wallet."

    @property
    def user_message(self) -> str:
        return self.default_user_message


class InsufficientFunds(GrantClientError):
    """Raised when the account cannot cover value plus gas."""

    code = "insufficient_funds"
    default_user_message = "Insufficient funds for gas fees. Please add funds to your wallet."

    @property
    def user_message(self) -> str:
        return self.default_user_message


class ContractRevert(GrantClientError):
    """Raised when the contract rejected a call, with the revert reason if known."""

    code = "contract_revert"
    default_user_message = (
        "Contract error: The transaction was rejected by the contract. "
        "Check if you have required permissions or if the parameters are valid."
    )

    def __init__(self, message: str, reason: str | None = None, details: dict | None = None):
        super().__init__(message, details)
        self.reason = reason

    @property
    def user_message(self) -> str:
        if self.reason:
            return f"Contract error: {self.reason}"
        return self.default_user_message


class InvalidState(GrantClientError):
    """Raised when a grant or application is not in the expected status."""

    code = "invalid_state"


class ConfirmationError(GrantClientError):
    """Raised when a submitted transaction could not be confirmed."""

    code = "confirmation_error"

    def __init__(self, message: str, tx_hash: str | None = None, details: dict | None = None):
        super().__init__(message, details)
        self.tx_hash = tx_hash


class ConfirmationTimeout(ConfirmationError):
    """Raised when a receipt did not appear within the configured timeout."""

    code = "confirmation_timeout"
