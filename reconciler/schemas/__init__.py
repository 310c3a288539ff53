"""Pydantic schemas."""

from reconciler.schemas.transaction_metadata import (
    AttributionInfo,
    BlockchainDetails,
    DiagnosticInfo,
    TransactionMetadata,
)

__all__ = [
    "AttributionInfo",
    "BlockchainDetails",
    "DiagnosticInfo",
    "TransactionMetadata",
]
