"""Blockchain access: network registry and ledger readers."""

from reconciler.services.blockchain.ledger_reader import (
    LedgerReader,
    TokenTransfer,
    TransactionDetails,
)
from reconciler.services.blockchain.network_registry import NetworkRegistry
from reconciler.services.blockchain.web3_ledger_reader import Web3LedgerReader

__all__ = [
    "LedgerReader",
    "NetworkRegistry",
    "TokenTransfer",
    "TransactionDetails",
    "Web3LedgerReader",
]
