"""Validation and normalization of chain identifiers."""

import re

from reconciler.config.constants import NATIVE_TOKEN_ADDRESS
from reconciler.utils.exceptions import InvalidTransactionHashError

_TX_HASH_RE = re.compile(r"^0x[0-9a-fA-F]{64}$")
_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


def validate_transaction_hash(tx_hash: str) -> bool:
    """
    Validate transaction hash.

    Args:
        tx_hash: Transaction hash

    Returns:
        True if 0x followed by 64 hex characters
    """
    if not tx_hash or not isinstance(tx_hash, str):
        return False
    return bool(_TX_HASH_RE.match(tx_hash))


def normalize_tx_hash(tx_hash: str) -> str:
    """
    Normalize transaction hash to lowercase with 0x prefix.

    Raises:
        InvalidTransactionHashError: If hash is malformed
    """
    candidate = (tx_hash or "").strip()
    if candidate and not candidate.lower().startswith("0x"):
        candidate = f"0x{candidate}"
    if not validate_transaction_hash(candidate):
        raise InvalidTransactionHashError(f"Invalid transaction hash: {tx_hash!r}")
    return candidate.lower()


def validate_address(address: str | None) -> bool:
    """Check 0x-prefixed 20-byte hex address format (checksum not enforced)."""
    if not address or not isinstance(address, str):
        return False
    return bool(_ADDRESS_RE.match(address))


def normalize_address(address: str | None) -> str | None:
    """Lowercase address for case-insensitive comparison."""
    if not address:
        return None
    return address.strip().lower()


def addresses_equal(left: str | None, right: str | None) -> bool:
    """Case-insensitive address comparison; missing addresses never match."""
    left_norm = normalize_address(left)
    right_norm = normalize_address(right)
    return left_norm is not None and left_norm == right_norm


def is_native_token(token_address: str | None) -> bool:
    """True when token_address marks a native-asset transfer."""
    return token_address is None or token_address == NATIVE_TOKEN_ADDRESS
