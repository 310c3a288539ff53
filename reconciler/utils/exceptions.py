"""
Exception handling utilities.

Defines reconciliation error types and categorized exception groups
for choosing between "log and retry" and "log and stop".
"""

from collections.abc import Iterable

from sqlalchemy.exc import OperationalError
from web3.exceptions import Web3Exception


class ReconciliationError(Exception):
    """Base class for errors surfaced to callers of the engine."""


class UnsupportedNetworkError(ReconciliationError):
    """Raised when a network id is not in the network registry."""

    def __init__(self, network_id: int, supported: Iterable[int] = ()) -> None:
        self.network_id = network_id
        self.supported = tuple(supported)
        supported_text = ", ".join(str(item) for item in self.supported)
        super().__init__(
            f"Unsupported network ID: {network_id}. "
            f"Supported networks: {supported_text}"
        )


class UserNotFoundError(ReconciliationError):
    """Raised when the acting user does not exist."""

    def __init__(self, user_id: int) -> None:
        self.user_id = user_id
        super().__init__(f"User not found: {user_id}")


class WalletAddressMissingError(ReconciliationError):
    """Raised when the acting user has no primary wallet address."""

    def __init__(self, user_id: int) -> None:
        self.user_id = user_id
        super().__init__(f"User wallet address not found: {user_id}")


class InvalidTransactionHashError(ReconciliationError):
    """Raised for malformed transaction hashes."""


class InvalidTransactionDataError(ReconciliationError):
    """Raised when the ledger returns a transaction without sender or recipient."""


# Must log but can continue - transient infrastructure failures
MUST_LOG = (
    OperationalError,  # Database unavailable (next attempt may succeed)
    Web3Exception,     # Blockchain RPC errors
    TimeoutError,
    ConnectionError,
)

# Must raise - programming or data errors, retrying will not help
MUST_RAISE = (
    ValueError,
    TypeError,
    ReconciliationError,
)


def must_log(exc: Exception) -> bool:
    """
    Check if exception is transient and must only be logged.

    Args:
        exc: Exception to check

    Returns:
        True if exception is a transient failure
    """
    return isinstance(exc, MUST_LOG)


def must_raise(exc: Exception) -> bool:
    """
    Check if exception must stop the current operation.

    Args:
        exc: Exception to check

    Returns:
        True if retrying cannot fix the exception
    """
    return isinstance(exc, MUST_RAISE) and not must_log(exc)
