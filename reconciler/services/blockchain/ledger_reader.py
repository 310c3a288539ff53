"""
Ledger Reader contract.

The reconciler only consumes this interface; Web3LedgerReader is the
production implementation and tests substitute scripted fakes.
"""

from dataclasses import dataclass
from typing import Protocol

from reconciler.models.enums import LedgerStatus


@dataclass(frozen=True)
class TokenTransfer:
    """First ERC-20 Transfer event decoded from a receipt."""

    from_address: str
    to_address: str
    token_address: str
    amount: str  # base units, decimal string


@dataclass(frozen=True)
class TransactionDetails:
    """
    Transaction as currently seen by the ledger.

    `to_address` and `value` are the outer call's; for token transfers
    the effective recipient and amount live in `token_transfer`.
    """

    hash: str
    from_address: str | None
    to_address: str | None
    value: str
    status: LedgerStatus
    gas: str | None = None
    gas_price: str | None = None
    nonce: int | None = None
    block_number: int | None = None  # None while unmined
    confirmations: int = 0
    timestamp: int | None = None
    token_transfer: TokenTransfer | None = None
    transfer_event_count: int = 0

    @property
    def is_erc20_transfer(self) -> bool:
        """Receipt carried at least one Transfer event."""
        return self.token_transfer is not None

    @property
    def is_mined(self) -> bool:
        """Included in a block."""
        return self.block_number is not None


class LedgerReader(Protocol):
    """Resolves transaction hashes to on-chain state."""

    async def get_transaction_details(
        self, network_name: str, tx_hash: str
    ) -> TransactionDetails | None:
        """Return details, or None while the transaction is not visible."""
        ...
