"""
Address attribution.

Maps the on-chain sender/recipient of a transaction to internal users,
relative to the user who asked for the transaction to be tracked.
"""

from dataclasses import dataclass

from loguru import logger

from reconciler.repositories.user_repository import UserRepository
from reconciler.utils.security import mask_address
from reconciler.utils.validation import addresses_equal

ROLE_SENDER = "sender"
ROLE_RECIPIENT = "recipient"
ROLE_TRACKING = "tracking"


@dataclass(frozen=True)
class Attribution:
    """Internal users on each side of a transfer."""

    from_user_id: int | None
    to_user_id: int | None
    role: str
    # Recipient is not a known user; to_user_id holds the sender instead
    external_counterparty: bool = False


class AddressAttributionResolver:
    """
    Classifies a transfer relative to the acting user.

    Three cases, compared case-insensitively:
    1. Acting user sent it: recipient looked up by wallet, falling back
       to the acting user when the recipient is unknown.
    2. Acting user received it: sender looked up by wallet, may stay
       unresolved (external sender).
    3. Acting user is neither party (tracking someone else's transfer,
       or has no wallet): acting user becomes the recipient and the
       sender stays unresolved.
    """

    def __init__(self, user_repository: UserRepository) -> None:
        self.user_repository = user_repository

    async def classify(
        self,
        tx_from: str | None,
        tx_to: str | None,
        acting_user_id: int,
        acting_user_wallet: str | None,
    ) -> Attribution:
        """
        Resolve user ids for both sides of a transfer.

        Args:
            tx_from: On-chain sender
            tx_to: Effective on-chain recipient
            acting_user_id: User who submitted the hash
            acting_user_wallet: Acting user's primary wallet, if any

        Returns:
            Attribution
        """
        if addresses_equal(tx_from, acting_user_wallet):
            recipient = await self.user_repository.get_by_wallet_address(tx_to)
            if recipient is not None:
                return Attribution(
                    from_user_id=acting_user_id,
                    to_user_id=recipient.id,
                    role=ROLE_SENDER,
                )

            logger.debug(
                f"Recipient {mask_address(tx_to)} is not a known user, "
                f"attributing to sender {acting_user_id}"
            )
            return Attribution(
                from_user_id=acting_user_id,
                to_user_id=acting_user_id,
                role=ROLE_SENDER,
                external_counterparty=True,
            )

        if addresses_equal(tx_to, acting_user_wallet):
            sender = await self.user_repository.get_by_wallet_address(tx_from)
            return Attribution(
                from_user_id=sender.id if sender else None,
                to_user_id=acting_user_id,
                role=ROLE_RECIPIENT,
            )

        return Attribution(
            from_user_id=None,
            to_user_id=acting_user_id,
            role=ROLE_TRACKING,
        )
