"""
Bounty Service (Domain Logic).

Creating a bounty debits the stake from the requester (kind bounty_stake)
in the same transaction that registers the bounty, under the requester's
credit lock. Fulfilment and cancellation live in BountyMatcher.
"""

import logging
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession

from inspectswap.app.core.config import settings
from inspectswap.app.core.exceptions import InsufficientCreditsError, InvalidStakeError
from inspectswap.app.db.transaction import ledger_transaction, credit_lock_key
from inspectswap.app.domain.bounties.bounty_matcher import BountyMatcher
from inspectswap.app.domain.credits.ledger_store import LedgerStore
from inspectswap.app.models.bounty import Bounty
from inspectswap.app.models.enums import LedgerEntryKind
from inspectswap.app.services.audit import log_event, AuditAction

logger = logging.getLogger("inspectswap.bounties")


class BountyService:

    @staticmethod
    async def create_bounty(
        db: AsyncSession,
        user_id: str,
        property_address: str,
        staked_credits: Optional[int] = None,
    ) -> Bounty:
        """
        Stake credits on a request for a report at an address.

        Args:
            db: Database session
            user_id: Requester
            property_address: Address the report should cover
            staked_credits: Stake; defaults to MIN_BOUNTY_STAKE

        Returns:
            The OPEN bounty

        Raises:
            InvalidStakeError: Blank address or stake below the minimum
            InsufficientCreditsError: Balance cannot cover the stake
        """
        address = (property_address or "").strip()
        if not address:
            raise InvalidStakeError("Property address is required")

        minimum = settings.min_bounty_stake
        stake = minimum if staked_credits is None else staked_credits
        if stake < minimum:
            raise InvalidStakeError(
                f"Minimum stake is {minimum} credits",
                details={"staked_credits": stake, "minimum": minimum}
            )

        async with ledger_transaction(db, credit_lock_key(user_id)):
            balance = await LedgerStore.get_balance(db, user_id)
            if balance < stake:
                raise InsufficientCreditsError(balance=balance, required=stake)

            bounty = await BountyMatcher.create(
                db,
                requester_user_id=user_id,
                property_address=address,
                staked_credits=stake,
            )

            await LedgerStore.record_entry(
                db,
                user_id=user_id,
                amount=-stake,
                kind=LedgerEntryKind.BOUNTY_STAKE,
                bounty_id=bounty.id,
                description=f"Staked for bounty: {address}",
            )

            await log_event(
                db=db,
                action=AuditAction.BOUNTY_CREATED,
                actor_id=user_id,
                metadata={"bounty_id": bounty.id, "staked_credits": stake, "property_address": address}
            )

        logger.info("Bounty %s created by %s for '%s' (stake %s)", bounty.id, user_id, address, stake)
        return bounty

    @staticmethod
    async def cancel_bounty(db: AsyncSession, user_id: str, bounty_id: int) -> Bounty:
        return await BountyMatcher.cancel(db, bounty_id, user_id)

    @staticmethod
    async def list_bounties(db: AsyncSession, user_id: str) -> tuple[list[Bounty], list[Bounty]]:
        """(the user's own bounties, other users' open bounties)"""
        mine = await BountyMatcher.list_by_requester(db, user_id)
        open_bounties = await BountyMatcher.list_open(db, exclude_user_id=user_id)
        return mine, open_bounties
