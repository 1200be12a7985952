"""Helper functions for ledger responses."""

from collections.abc import Mapping, Sequence
from typing import Any

from hexbytes import HexBytes


def serialise_receipt(receipt: Any) -> Any:
    """Serialise web3 receipt objects into JSON-friendly structures."""
    if receipt is None:
        return None
    if isinstance(receipt, Mapping):
        return {key: serialise_receipt(value) for key, value in receipt.items()}
    if isinstance(receipt, Sequence) and not isinstance(
        receipt, str | bytes | bytearray | HexBytes
    ):
        return [serialise_receipt(item) for item in receipt]
    if isinstance(receipt, bytes | bytearray | HexBytes):
        return HexBytes(receipt).to_0x_hex()
    return receipt


def to_tx_hex(tx_hash: Any) -> str:
    """Normalise a transaction hash to a 0x-prefixed lowercase hex string."""
    if isinstance(tx_hash, bytes | bytearray | HexBytes):
        return HexBytes(tx_hash).to_0x_hex()
    text = str(tx_hash).lower()
    return text if text.startswith("0x") else f"0x{text}"
