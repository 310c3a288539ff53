"""
Transfer normalization.

For contract calls carrying an ERC-20 Transfer event the outer `to` is
the token contract and the outer `value` is usually zero; the effective
recipient and amount come from the decoded event instead.
"""

from dataclasses import dataclass

from loguru import logger

from reconciler.config.constants import NATIVE_TOKEN_ADDRESS
from reconciler.services.blockchain.ledger_reader import TransactionDetails
from reconciler.utils.security import mask_tx_hash


@dataclass(frozen=True)
class NormalizedTransfer:
    """Effective parties and amount of a transaction."""

    from_address: str | None
    to_address: str | None
    amount: str
    token_address: str
    contract_address: str | None
    is_erc20: bool


def normalize_transfer(
    details: TransactionDetails,
    default_token_address: str = NATIVE_TOKEN_ADDRESS,
) -> NormalizedTransfer:
    """
    Apply the ERC-20 recipient/amount correction.

    Args:
        details: Ledger view of the transaction
        default_token_address: Token for native transfers (or a
            caller-supplied token for placeholder records)

    Returns:
        NormalizedTransfer
    """
    transfer = details.token_transfer
    if transfer is None:
        return NormalizedTransfer(
            from_address=details.from_address,
            to_address=details.to_address,
            amount=details.value,
            token_address=default_token_address,
            contract_address=None,
            is_erc20=False,
        )

    if details.transfer_event_count > 1:
        logger.warning(
            f"Transaction {mask_tx_hash(details.hash)} has "
            f"{details.transfer_event_count} Transfer events, "
            f"reconciling the first one only"
        )

    return NormalizedTransfer(
        # Outer sender signed the call
        from_address=details.from_address,
        to_address=transfer.to_address,
        amount=transfer.amount,
        token_address=transfer.token_address,
        contract_address=details.to_address,
        is_erc20=True,
    )
