"""
Log masking for on-chain identifiers.

Addresses and hashes are linkable to people; logs carry only enough of
them to correlate lines.
"""


def mask_address(address: str | None) -> str:
    """
    Shorten an address to 0x1234...5678.

    Sentinel values ("pending", "0x0") are returned unchanged.

    Examples:
        >>> mask_address("0x1234567890abcdef1234567890abcdef12345678")
        '0x1234...5678'
        >>> mask_address("pending")
        'pending'
    """
    if not address:
        return "***"
    if len(address) < 10:
        return address
    return f"{address[:6]}...{address[-4:]}"


def mask_tx_hash(tx_hash: str | None) -> str:
    """Shorten a transaction hash to its first 10 and last 6 characters."""
    if not tx_hash or len(tx_hash) < 16:
        return "***"
    return f"{tx_hash[:10]}...{tx_hash[-6:]}"
