"""
Credit Service (Domain Logic).

Signup bonus and read-side summaries over the ledger.
"""

import logging
from dataclasses import dataclass
from sqlalchemy.ext.asyncio import AsyncSession

from inspectswap.app.core.config import settings
from inspectswap.app.db.transaction import ledger_transaction, credit_lock_key
from inspectswap.app.domain.credits.ledger_store import LedgerStore
from inspectswap.app.domain.marketplace.download_service import DownloadService
from inspectswap.app.domain.reports.report_registry import ReportRegistry
from inspectswap.app.models.enums import LedgerEntryKind
from inspectswap.app.models.ledger_entry import LedgerEntry
from inspectswap.app.models.report import Report
from inspectswap.app.services.audit import log_event, AuditAction

logger = logging.getLogger("inspectswap.credits")


@dataclass
class CreditSummary:
    balance: int
    total_earned: int
    total_spent: int
    transactions: list[LedgerEntry]


@dataclass
class Dashboard:
    credit_balance: int
    recent_reports: list[Report]
    recent_transactions: list[LedgerEntry]
    total_reports: int
    total_downloads: int
    credits_earned: int
    credits_spent: int


class CreditService:

    @staticmethod
    async def claim_signup_bonus(db: AsyncSession, user_id: str) -> tuple[bool, int]:
        """
        Grant SIGNUP_BONUS to a user whose ledger is still empty.

        Returns:
            (granted, amount) - amount is 0 when already claimed
        """
        bonus = settings.signup_bonus

        async with ledger_transaction(db, credit_lock_key(user_id)):
            if await LedgerStore.has_entries(db, user_id):
                return False, 0

            await LedgerStore.record_entry(
                db,
                user_id=user_id,
                amount=bonus,
                kind=LedgerEntryKind.SIGNUP_BONUS,
                description="Welcome bonus for joining InspectSwap!",
            )

            await log_event(
                db=db,
                action=AuditAction.SIGNUP_BONUS_GRANTED,
                actor_id=user_id,
                metadata={"amount": bonus}
            )

        logger.info("Signup bonus of %s granted to %s", bonus, user_id)
        return True, bonus

    @staticmethod
    async def credit_summary(db: AsyncSession, user_id: str) -> CreditSummary:
        balance = await LedgerStore.get_balance(db, user_id)
        stats = await LedgerStore.get_stats(db, user_id)
        entries = await LedgerStore.list_entries(db, user_id)
        return CreditSummary(
            balance=balance,
            total_earned=stats.earned,
            total_spent=stats.spent,
            transactions=entries,
        )

    @staticmethod
    async def dashboard(db: AsyncSession, user_id: str) -> Dashboard:
        balance = await LedgerStore.get_balance(db, user_id)
        stats = await LedgerStore.get_stats(db, user_id)
        reports = await ReportRegistry.list_by_owner(db, user_id)
        entries = await LedgerStore.list_entries(db, user_id, limit=10)
        downloads = await DownloadService.list_by_user(db, user_id)

        return Dashboard(
            credit_balance=balance,
            recent_reports=reports[:5],
            recent_transactions=entries,
            total_reports=len(reports),
            total_downloads=len(downloads),
            credits_earned=stats.earned,
            credits_spent=stats.spent,
        )
