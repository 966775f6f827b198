"""
Ledger Store (Domain Logic).

Append-only record of credit movements and the single source of truth for
balances. Balances are summed from the entry log on every call; nothing is
cached and no balance column exists.
"""

from dataclasses import dataclass
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, case, desc

from inspectswap.app.db.transaction import storage_guard
from inspectswap.app.models.ledger_entry import LedgerEntry
from inspectswap.app.models.enums import LedgerEntryKind


@dataclass(frozen=True)
class CreditStats:
    """Lifetime totals for one user. balance == earned - spent by construction."""
    earned: int
    spent: int

    @property
    def net(self) -> int:
        return self.earned - self.spent


class LedgerStore:

    @staticmethod
    @storage_guard
    async def record_entry(
        db: AsyncSession,
        user_id: str,
        amount: int,
        kind: LedgerEntryKind,
        report_id: Optional[int] = None,
        bounty_id: Optional[int] = None,
        description: Optional[str] = None,
    ) -> LedgerEntry:
        """
        Append one immutable entry to the ledger.

        The entry is flushed, not committed: the caller's transaction decides
        whether it becomes durable together with the rest of the unit of work.

        Args:
            db: Database session
            user_id: Account being credited (amount > 0) or debited (amount < 0)
            amount: Signed credit amount
            kind: Entry kind
            report_id: Optional linked report
            bounty_id: Optional linked bounty
            description: Human readable description

        Returns:
            Flushed LedgerEntry
        """
        entry = LedgerEntry(
            user_id=user_id,
            amount=amount,
            kind=kind,
            report_id=report_id,
            bounty_id=bounty_id,
            description=description[:255] if description else description,
        )
        db.add(entry)
        await db.flush()
        return entry

    @staticmethod
    @storage_guard
    async def get_balance(db: AsyncSession, user_id: str) -> int:
        """Return SUM(amount) over the user's entries; 0 when there are none."""
        result = await db.execute(
            select(func.coalesce(func.sum(LedgerEntry.amount), 0)).where(
                LedgerEntry.user_id == user_id
            )
        )
        return int(result.scalar_one())

    @staticmethod
    @storage_guard
    async def get_stats(db: AsyncSession, user_id: str) -> CreditStats:
        """Return the sum of credits (earned) and of absolute debits (spent)."""
        earned = func.coalesce(
            func.sum(case((LedgerEntry.amount > 0, LedgerEntry.amount), else_=0)), 0
        )
        spent = func.coalesce(
            func.sum(case((LedgerEntry.amount < 0, -LedgerEntry.amount), else_=0)), 0
        )
        result = await db.execute(
            select(earned, spent).where(LedgerEntry.user_id == user_id)
        )
        row = result.one()
        return CreditStats(earned=int(row[0]), spent=int(row[1]))

    @staticmethod
    @storage_guard
    async def list_entries(
        db: AsyncSession,
        user_id: str,
        limit: Optional[int] = None,
    ) -> list[LedgerEntry]:
        """Return the user's entries, newest first."""
        query = (
            select(LedgerEntry)
            .where(LedgerEntry.user_id == user_id)
            .order_by(desc(LedgerEntry.created_at), desc(LedgerEntry.id))
        )
        if limit is not None:
            query = query.limit(limit)

        result = await db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    @storage_guard
    async def has_entries(db: AsyncSession, user_id: str) -> bool:
        result = await db.execute(
            select(LedgerEntry.id).where(LedgerEntry.user_id == user_id).limit(1)
        )
        return result.scalar_one_or_none() is not None
