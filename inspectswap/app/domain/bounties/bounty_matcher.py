"""
Bounty Matcher (Domain Logic).

Finds open bounties matching an uploaded report's address and performs the
two terminal transitions of a bounty:

    OPEN -> FULFILLED   (stake credited to the uploader, kind bounty_earned)
    OPEN -> CANCELLED   (stake refunded to the requester, kind bounty_stake)

Both transitions are conditional UPDATEs guarded by ``status = 'open'`` and
commit together with their ledger entry, so of any number of racing
fulfil/cancel calls exactly one wins and the rest see a zero row count.

Address matching is a permissive, case-insensitive substring test in either
direction ("123 Main St" matches "123 Main St Apt 2" and vice versa). It is
known to produce false positives ("123 Main St" also matches
"123 Main Street West") and is kept as-is pending a product decision.
"""

import logging
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, desc, asc

from inspectswap.app.core.exceptions import (
    NotFoundError,
    NotOwnerError,
    NotOpenError,
    AlreadyFulfilledError,
    SelfFulfillmentError,
)
from inspectswap.app.db.transaction import ledger_transaction, bounty_lock_key, storage_guard
from inspectswap.app.domain.credits.ledger_store import LedgerStore
from inspectswap.app.models.bounty import Bounty
from inspectswap.app.models.enums import BountyStatus, LedgerEntryKind
from inspectswap.app.services.audit import log_event, AuditAction

logger = logging.getLogger("inspectswap.bounties")


def addresses_match(requested: str, reported: str) -> bool:
    """Case-insensitive substring match in either direction; blanks never match."""
    requested = (requested or "").strip().casefold()
    reported = (reported or "").strip().casefold()
    if not requested or not reported:
        return False
    return requested in reported or reported in requested


class BountyMatcher:

    @staticmethod
    @storage_guard
    async def get(db: AsyncSession, bounty_id: int) -> Optional[Bounty]:
        result = await db.execute(
            select(Bounty)
            .where(Bounty.id == bounty_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    @staticmethod
    @storage_guard
    async def create(
        db: AsyncSession,
        requester_user_id: str,
        property_address: str,
        staked_credits: int,
    ) -> Bounty:
        """Register an OPEN bounty inside the caller's transaction (stake is debited by the caller)."""
        bounty = Bounty(
            requester_user_id=requester_user_id,
            property_address=property_address,
            staked_credits=staked_credits,
            status=BountyStatus.OPEN,
        )
        db.add(bounty)
        await db.flush()
        return bounty

    @staticmethod
    @storage_guard
    async def list_by_requester(db: AsyncSession, user_id: str) -> list[Bounty]:
        result = await db.execute(
            select(Bounty)
            .where(Bounty.requester_user_id == user_id)
            .order_by(desc(Bounty.created_at), desc(Bounty.id))
        )
        return list(result.scalars().all())

    @staticmethod
    @storage_guard
    async def list_open(db: AsyncSession, exclude_user_id: Optional[str] = None) -> list[Bounty]:
        """Open bounties, largest stake first, optionally hiding one requester's own."""
        query = select(Bounty).where(Bounty.status == BountyStatus.OPEN)
        if exclude_user_id:
            query = query.where(Bounty.requester_user_id != exclude_user_id)
        query = query.order_by(desc(Bounty.staked_credits), asc(Bounty.created_at), asc(Bounty.id))

        result = await db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    @storage_guard
    async def find_open_by_address(
        db: AsyncSession,
        address: str,
        exclude_requester_id: Optional[str] = None,
    ) -> Optional[Bounty]:
        """
        Return the oldest open bounty whose address matches, if any.

        Args:
            db: Database session
            address: Address of the incoming report
            exclude_requester_id: Skip bounties requested by this user

        Returns:
            Matching Bounty or None
        """
        query = select(Bounty).where(Bounty.status == BountyStatus.OPEN)
        if exclude_requester_id:
            query = query.where(Bounty.requester_user_id != exclude_requester_id)
        query = query.order_by(asc(Bounty.created_at), asc(Bounty.id))

        result = await db.execute(query)
        for bounty in result.scalars():
            if addresses_match(bounty.property_address, address):
                return bounty
        return None

    @staticmethod
    async def fulfill(
        db: AsyncSession,
        bounty_id: int,
        fulfiller_user_id: str,
        report_id: int,
    ) -> Bounty:
        """
        Mark a bounty fulfilled and credit its stake to the fulfiller, atomically.

        Args:
            db: Database session
            bounty_id: Bounty to fulfil
            fulfiller_user_id: Uploader receiving the stake
            report_id: Report that satisfies the bounty

        Returns:
            The fulfilled Bounty

        Raises:
            NotFoundError: Unknown bounty
            SelfFulfillmentError: Fulfiller is the requester
            AlreadyFulfilledError: Bounty is no longer open (lost the race)
        """
        async with ledger_transaction(db, bounty_lock_key(bounty_id)):
            bounty = await BountyMatcher.get(db, bounty_id)
            if not bounty:
                raise NotFoundError("Bounty", bounty_id)

            if bounty.requester_user_id == fulfiller_user_id:
                raise SelfFulfillmentError(bounty_id)

            if bounty.status != BountyStatus.OPEN:
                raise AlreadyFulfilledError(bounty_id)

            result = await db.execute(
                update(Bounty)
                .where(Bounty.id == bounty_id, Bounty.status == BountyStatus.OPEN)
                .values(
                    status=BountyStatus.FULFILLED,
                    fulfilled_by_user_id=fulfiller_user_id,
                    fulfilled_report_id=report_id,
                    fulfilled_at=datetime.now(timezone.utc),
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise AlreadyFulfilledError(bounty_id)

            await LedgerStore.record_entry(
                db,
                user_id=fulfiller_user_id,
                amount=bounty.staked_credits,
                kind=LedgerEntryKind.BOUNTY_EARNED,
                report_id=report_id,
                bounty_id=bounty_id,
                description=f"Bounty fulfilled for: {bounty.property_address}",
            )

            await log_event(
                db=db,
                action=AuditAction.BOUNTY_FULFILLED,
                actor_id=fulfiller_user_id,
                metadata={
                    "bounty_id": bounty_id,
                    "report_id": report_id,
                    "requester_user_id": bounty.requester_user_id,
                    "staked_credits": bounty.staked_credits,
                }
            )

            await db.refresh(bounty)

        logger.info(
            "Bounty %s fulfilled by %s with report %s (+%s credits)",
            bounty_id, fulfiller_user_id, report_id, bounty.staked_credits,
        )
        return bounty

    @staticmethod
    async def cancel(db: AsyncSession, bounty_id: int, requester_user_id: str) -> Bounty:
        """
        Cancel an open bounty and refund its stake to the requester, atomically.

        Raises:
            NotFoundError: Unknown bounty
            NotOwnerError: Caller did not request this bounty
            NotOpenError: Bounty already fulfilled or cancelled
        """
        async with ledger_transaction(db, bounty_lock_key(bounty_id)):
            bounty = await BountyMatcher.get(db, bounty_id)
            if not bounty:
                raise NotFoundError("Bounty", bounty_id)

            if bounty.requester_user_id != requester_user_id:
                raise NotOwnerError("bounty", bounty_id)

            if bounty.status != BountyStatus.OPEN:
                raise NotOpenError(bounty_id)

            result = await db.execute(
                update(Bounty)
                .where(Bounty.id == bounty_id, Bounty.status == BountyStatus.OPEN)
                .values(
                    status=BountyStatus.CANCELLED,
                    cancelled_at=datetime.now(timezone.utc),
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise NotOpenError(bounty_id)

            await LedgerStore.record_entry(
                db,
                user_id=requester_user_id,
                amount=bounty.staked_credits,
                kind=LedgerEntryKind.BOUNTY_STAKE,
                bounty_id=bounty_id,
                description=f"Refund for cancelled bounty: {bounty.property_address}",
            )

            await log_event(
                db=db,
                action=AuditAction.BOUNTY_CANCELLED,
                actor_id=requester_user_id,
                metadata={"bounty_id": bounty_id, "refunded_credits": bounty.staked_credits}
            )

            await db.refresh(bounty)

        logger.info("Bounty %s cancelled by %s (refund %s)", bounty_id, requester_user_id, bounty.staked_credits)
        return bounty
