"""
Reconciliation constants.

Sentinel values stored on placeholder records and blockchain defaults.
"""

# ========================================================================
# PLACEHOLDER SENTINELS
# ========================================================================

# Stored in from_address / to_address until the transaction is discovered
PENDING_ADDRESS = "pending"

# Stored in amount until the transaction is discovered
PLACEHOLDER_AMOUNT = "0"

# token_address of native-asset transfers (ETH, BNB)
NATIVE_TOKEN_ADDRESS = "0x0"

# ========================================================================
# BLOCKCHAIN CONSTANTS
# ========================================================================

# Blockchain operation timeouts (in seconds)
BLOCKCHAIN_TIMEOUT = 30.0

# keccak256("Transfer(address,address,uint256)")
ERC20_TRANSFER_TOPIC = (
    "0xddf252ad1be2c89b69c2b068fc378daa952ba7f163c4a11628f55a4df523b3ef"
)

# Network used when a caller does not pass one (Ethereum mainnet)
DEFAULT_NETWORK_ID = 1

# ========================================================================
# RECORD DEFAULTS
# ========================================================================

DEFAULT_TRANSACTION_TYPE = "payment"
DEFAULT_CATEGORY = "blockchain_transaction"

# Metadata keys promoted to record columns at intake
RECORD_COLUMN_KEYS = ("type", "category")

METADATA_VERSION = 1

# ========================================================================
# NOTIFICATIONS
# ========================================================================

# Telegram API operations timeout (in seconds)
TELEGRAM_TIMEOUT = 10.0
