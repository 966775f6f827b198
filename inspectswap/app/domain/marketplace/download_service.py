"""
Download Service (Domain Logic).

Unlocking someone else's report costs DOWNLOAD_COST credits, once.

Owners and users who already unlocked a report get it back for free. The
balance check, the Download row, the debit and the download counter all run
under the requester's credit lock in one transaction, so two concurrent
unlocks by an under-funded user cannot both pass the balance check.
"""

import logging
from dataclasses import dataclass
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc

from inspectswap.app.core.config import settings
from inspectswap.app.core.exceptions import NotFoundError, InsufficientCreditsError
from inspectswap.app.db.transaction import ledger_transaction, credit_lock_key, storage_guard
from inspectswap.app.domain.credits.ledger_store import LedgerStore
from inspectswap.app.domain.reports.report_registry import ReportRegistry
from inspectswap.app.models.download import Download
from inspectswap.app.models.enums import LedgerEntryKind
from inspectswap.app.models.report import Report
from inspectswap.app.services.audit import log_event, AuditAction

logger = logging.getLogger("inspectswap.download")


@dataclass
class DownloadResult:
    report: Report
    charged: bool
    credits_spent: int = 0
    message: Optional[str] = None


@dataclass
class MyReports:
    uploaded: list[Report]
    downloaded: list[Report]


class DownloadService:

    @staticmethod
    @storage_guard
    async def has_downloaded(db: AsyncSession, user_id: str, report_id: int) -> bool:
        result = await db.execute(
            select(Download.id).where(
                Download.user_id == user_id,
                Download.report_id == report_id
            )
        )
        return result.scalar_one_or_none() is not None

    @staticmethod
    @storage_guard
    async def list_by_user(db: AsyncSession, user_id: str) -> list[Download]:
        result = await db.execute(
            select(Download)
            .where(Download.user_id == user_id)
            .order_by(desc(Download.created_at), desc(Download.id))
        )
        return list(result.scalars().all())

    @staticmethod
    async def download_report(db: AsyncSession, user_id: str, report_id: int) -> DownloadResult:
        """
        Unlock a report for a user.

        Flow:
        1. Load report (404 if missing)
        2. Owner -> free
        3. Already unlocked -> free
        4. Under the user's credit lock: re-check 3, check balance
        5. Same transaction: Download row, debit entry, download_count + 1

        Returns:
            DownloadResult with the (refreshed) report

        Raises:
            NotFoundError: Unknown report
            InsufficientCreditsError: Balance below DOWNLOAD_COST
        """
        report = await ReportRegistry.get(db, report_id)
        if not report:
            raise NotFoundError("Report", report_id)

        if report.owner_user_id == user_id:
            return DownloadResult(report=report, charged=False, message="You own this report")

        if await DownloadService.has_downloaded(db, user_id, report_id):
            return DownloadResult(report=report, charged=False, message="Already downloaded")

        cost = settings.download_cost
        already_downloaded = False

        async with ledger_transaction(db, credit_lock_key(user_id)):
            # A concurrent request may have finished while we waited for the lock
            if await DownloadService.has_downloaded(db, user_id, report_id):
                already_downloaded = True
            else:
                balance = await LedgerStore.get_balance(db, user_id)
                if balance < cost:
                    raise InsufficientCreditsError(balance=balance, required=cost)

                report = await ReportRegistry.get(db, report_id)
                if not report:
                    raise NotFoundError("Report", report_id)

                db.add(Download(user_id=user_id, report_id=report_id, credit_spent=cost))
                await db.flush()

                await LedgerStore.record_entry(
                    db,
                    user_id=user_id,
                    amount=-cost,
                    kind=LedgerEntryKind.DOWNLOAD,
                    report_id=report_id,
                    description=f"Downloaded report: {report.property_address}",
                )

                await ReportRegistry.increment_download_count(db, report_id)

                await log_event(
                    db=db,
                    action=AuditAction.REPORT_DOWNLOADED,
                    actor_id=user_id,
                    metadata={"report_id": report_id, "credits_spent": cost}
                )

                await db.refresh(report)

        if already_downloaded:
            return DownloadResult(report=report, charged=False, message="Already downloaded")

        logger.info("Report %s unlocked by %s (-%s credits)", report_id, user_id, cost)
        return DownloadResult(report=report, charged=True, credits_spent=cost)

    @staticmethod
    async def my_reports(db: AsyncSession, user_id: str) -> MyReports:
        """Reports the user uploaded and reports they unlocked (deleted ones skipped)."""
        uploaded = await ReportRegistry.list_by_owner(db, user_id)
        downloads = await DownloadService.list_by_user(db, user_id)
        downloaded = await ReportRegistry.get_many(db, [d.report_id for d in downloads])
        return MyReports(uploaded=uploaded, downloaded=downloaded)
