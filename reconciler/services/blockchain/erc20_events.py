"""
ERC-20 Transfer event decoding.

Works on raw receipt logs (no ABI): Transfer(address indexed from,
address indexed to, uint256 value) has topic0 = ERC20_TRANSFER_TOPIC,
the two addresses in topics[1..2] and the value in data. ERC-721
transfers share topic0 but index the token id as a fourth topic and are
ignored.
"""

from collections.abc import Iterable, Mapping
from typing import Any

from eth_utils import to_checksum_address
from loguru import logger

from reconciler.config.constants import ERC20_TRANSFER_TOPIC
from reconciler.services.blockchain.ledger_reader import TokenTransfer


def _to_hex(value: Any) -> str:
    """Lowercase 0x-prefixed hex from bytes/HexBytes/str."""
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    text = str(value).lower()
    return text if text.startswith("0x") else f"0x{text}"


def _topic_to_address(topic: Any) -> str:
    """Last 20 bytes of a 32-byte topic as checksum address."""
    return to_checksum_address("0x" + _to_hex(topic)[-40:])


def decode_transfer_log(log: Mapping[str, Any]) -> TokenTransfer | None:
    """
    Decode a single log entry.

    Args:
        log: Receipt log (web3 AttributeDict or plain dict)

    Returns:
        TokenTransfer or None if the log is not an ERC-20 Transfer
    """
    topics = list(log.get("topics") or [])
    if len(topics) != 3 or _to_hex(topics[0]) != ERC20_TRANSFER_TOPIC:
        return None

    data = _to_hex(log.get("data") or b"")
    amount = int(data, 16) if data != "0x" else 0

    return TokenTransfer(
        from_address=_topic_to_address(topics[1]),
        to_address=_topic_to_address(topics[2]),
        token_address=to_checksum_address(log["address"]),
        amount=str(amount),
    )


def decode_transfer_logs(
    logs: Iterable[Mapping[str, Any]],
) -> tuple[TokenTransfer | None, int]:
    """
    Decode all Transfer events of a receipt.

    Only the first event is returned; multi-leg transfers (swaps,
    batched payouts) are not reconciled.

    Returns:
        (first transfer or None, number of Transfer events)
    """
    transfers: list[TokenTransfer] = []
    for log in logs:
        try:
            transfer = decode_transfer_log(log)
        except (KeyError, ValueError) as e:
            logger.warning(f"Skipping undecodable Transfer log: {e}")
            continue
        if transfer is not None:
            transfers.append(transfer)

    if not transfers:
        return None, 0
    return transfers[0], len(transfers)
