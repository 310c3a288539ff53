"""
Web3-backed Ledger Reader.

One AsyncWeb3 client per configured network. Every RPC call is bounded
by BLOCKCHAIN_TIMEOUT; RPC failures are logged and reported as "not
found" so that pollers simply retry on their next attempt.
"""

import asyncio
from collections.abc import Awaitable, Mapping
from typing import Any, TypeVar

from loguru import logger
from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.exceptions import TransactionNotFound, Web3Exception

from reconciler.config.constants import BLOCKCHAIN_TIMEOUT
from reconciler.models.enums import LedgerStatus
from reconciler.services.blockchain.erc20_events import decode_transfer_logs
from reconciler.services.blockchain.ledger_reader import TransactionDetails
from reconciler.utils.security import mask_tx_hash

T = TypeVar("T")


class Web3LedgerReader:
    """
    Reads transaction state over JSON-RPC.

    Features:
    - Per-network AsyncWeb3 clients
    - Receipt-based success/failure detection
    - ERC-20 Transfer decoding from receipt logs
    - Timeout handling
    """

    def __init__(
        self,
        clients: Mapping[str, AsyncWeb3],
        timeout: float = BLOCKCHAIN_TIMEOUT,
    ) -> None:
        """
        Initialize ledger reader.

        Args:
            clients: AsyncWeb3 instance per network name
            timeout: Seconds allowed for a single RPC call
        """
        self.clients = dict(clients)
        self.timeout = timeout

    @classmethod
    def from_rpc_urls(
        cls, rpc_urls: Mapping[str, str], timeout: float = BLOCKCHAIN_TIMEOUT
    ) -> "Web3LedgerReader":
        """Build clients from network name -> RPC URL."""
        clients = {
            name: AsyncWeb3(AsyncHTTPProvider(url))
            for name, url in rpc_urls.items()
        }
        logger.info(f"Ledger reader configured for networks: {', '.join(clients) or '-'}")
        return cls(clients, timeout=timeout)

    def supported_networks(self) -> list[str]:
        """Networks with a configured RPC client."""
        return list(self.clients)

    async def _call(self, awaitable: Awaitable[T]) -> T:
        return await asyncio.wait_for(awaitable, timeout=self.timeout)

    async def get_transaction_details(
        self, network_name: str, tx_hash: str
    ) -> TransactionDetails | None:
        """
        Get transaction details.

        Args:
            network_name: Registered network name
            tx_hash: Transaction hash

        Returns:
            TransactionDetails, or None if not visible or RPC failed
        """
        w3 = self.clients.get(network_name)
        if w3 is None:
            logger.error(f"No RPC client configured for network {network_name}")
            return None

        masked = mask_tx_hash(tx_hash)
        try:
            try:
                tx = await self._call(w3.eth.get_transaction(tx_hash))
            except TransactionNotFound:
                logger.debug(f"Transaction {masked} not found on {network_name}")
                return None

            if not tx:
                return None

            try:
                receipt = await self._call(w3.eth.get_transaction_receipt(tx_hash))
            except TransactionNotFound:
                receipt = None

            return await self._build_details(w3, tx_hash, tx, receipt)

        except TimeoutError:
            logger.error(f"Timeout getting transaction {masked} on {network_name}")
            return None
        except (Web3Exception, ConnectionError, OSError) as e:
            logger.error(
                f"Blockchain communication error for {masked} on {network_name}: {e}"
            )
            return None

    async def _build_details(
        self,
        w3: AsyncWeb3,
        tx_hash: str,
        tx: Mapping[str, Any],
        receipt: Mapping[str, Any] | None,
    ) -> TransactionDetails:
        common = {
            "hash": tx_hash,
            "from_address": tx.get("from"),
            "to_address": tx.get("to"),
            "value": str(tx.get("value", 0)),
            "gas": str(tx["gas"]) if tx.get("gas") is not None else None,
            "gas_price": (
                str(tx["gasPrice"]) if tx.get("gasPrice") is not None else None
            ),
            "nonce": tx.get("nonce"),
        }

        if receipt is None:
            # In mempool: no block, no logs yet
            return TransactionDetails(status=LedgerStatus.PENDING, **common)

        block_number = receipt["blockNumber"]
        latest_block = await self._call(w3.eth.get_block_number())
        block = await self._call(w3.eth.get_block(block_number))
        token_transfer, event_count = decode_transfer_logs(receipt.get("logs") or [])

        status = (
            LedgerStatus.CONFIRMED if receipt["status"] == 1 else LedgerStatus.FAILED
        )
        return TransactionDetails(
            status=status,
            block_number=block_number,
            confirmations=max(0, latest_block - block_number),
            timestamp=block.get("timestamp"),
            token_transfer=token_transfer,
            transfer_event_count=event_count,
            **common,
        )
