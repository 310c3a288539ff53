"""
Standard type definitions for database models.
"""

from sqlalchemy import JSON, String
from sqlalchemy.dialects.postgresql import JSONB

# Raw on-chain amount as decimal string (uint256 max is 78 digits)
AmountType = String(78)

# 0x + 40 hex chars, also holds the "pending" sentinel
AddressType = String(42)

# 0x + 64 hex chars
TxHashType = String(66)

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
MetadataType = JSON().with_variant(JSONB(), "postgresql")
