"""Tests for provider error classification."""

import pytest
from web3.exceptions import ContractLogicError, TimeExhausted

from access_grants.exceptions import (
    ConfirmationTimeout,
    ContractRevert,
    GrantClientError,
    InsufficientFunds,
    NotConnected,
    WriteRejected,
)
from access_grants.ledger.errors import classify_error, extract_revert_reason


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        (
            "VM Exception: reverted with reason string 'Only NGO can create grants'",
            "Only NGO can create grants",
        ),
        ("execution reverted: Grant expired", "Grant expired"),
        ("execution reverted", None),
        ("nonce too low", None),
    ],
)
def test_extract_revert_reason(text, expected):
    assert extract_revert_reason(text) == expected


def test_user_rejection():
    error = classify_error(Exception("MetaMask Tx Signature: User denied transaction signature."))
    assert isinstance(error, WriteRejected)
    assert error.user_message == "Transaction was rejected in your wallet."


def test_insufficient_funds():
    error = classify_error(ValueError({"code": -32000, "message": "insufficient funds for gas * price + value"}))
    assert isinstance(error, InsufficientFunds)
    assert "Insufficient funds" in error.user_message


def test_reason_string_becomes_contract_revert():
    error = classify_error(
        RuntimeError("Internal JSON-RPC error. reverted with reason string 'Already applied'")
    )
    assert isinstance(error, ContractRevert)
    assert error.reason == "Already applied"
    assert error.user_message == "Contract error: Already applied"


def test_internal_rpc_error_without_reason():
    error = classify_error(RuntimeError("Internal JSON-RPC error."))
    assert isinstance(error, ContractRevert)
    assert error.reason is None
    assert "rejected by the contract" in error.user_message


def test_contract_logic_error():
    error = classify_error(ContractLogicError("execution reverted: Not authorized"))
    assert isinstance(error, ContractRevert)
    assert error.reason == "Not authorized"

    bare = classify_error(ContractLogicError("execution reverted"))
    assert isinstance(bare, ContractRevert)
    assert bare.reason is None


def test_timeout_maps_to_confirmation_timeout():
    error = classify_error(TimeExhausted("no receipt"), context={"tx_hash": "0xabc"})
    assert isinstance(error, ConfirmationTimeout)
    assert error.details["tx_hash"] == "0xabc"


def test_classified_errors_pass_through():
    original = NotConnected()
    assert classify_error(original) is original


def test_unknown_error_keeps_message():
    error = classify_error(OSError("connection reset"), context={"function": "createGrant"})
    assert type(error) is GrantClientError
    assert error.message == "connection reset"
    assert error.details == {"error": "connection reset", "function": "createGrant"}
