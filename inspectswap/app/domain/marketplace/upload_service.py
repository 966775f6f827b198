"""
Upload Service (Domain Logic).

Orchestrates a report upload:

1. Hash the raw bytes (SHA-256)
2. Fail fast if the hash is already registered (by anyone)
3. Run the external analysis (never fails; degrades to a fallback)
4. Create the report AND credit the upload reward in ONE transaction
5. Best-effort: fulfil a matching open bounty in a separate transaction

Step 4's two writes are both-or-neither. Step 5 runs only after step 4 has
committed, so a bounty failure can never take back the report or its reward;
it is logged and returned to the caller as a warning.
"""

import hashlib
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession

from inspectswap.app.core.config import settings
from inspectswap.app.core.exceptions import (
    AppException,
    DuplicateContentError,
    DuplicateUploadError,
    InvalidUploadError,
    NotFoundError,
    NotOwnerError,
)
from inspectswap.app.db.transaction import ledger_transaction
from inspectswap.app.domain.bounties.bounty_matcher import BountyMatcher
from inspectswap.app.domain.credits.ledger_store import LedgerStore
from inspectswap.app.domain.reports.report_registry import ReportRegistry
from inspectswap.app.models.bounty import Bounty
from inspectswap.app.models.enums import LedgerEntryKind
from inspectswap.app.models.report import Report
from inspectswap.app.services.analysis import AnalysisProvider
from inspectswap.app.services.audit import log_event, AuditAction

logger = logging.getLogger("inspectswap.upload")

PDF_CONTENT_TYPES = {"application/pdf", "application/x-pdf"}


@dataclass
class UploadResult:
    report: Report
    credits_earned: int
    analysis: Dict[str, Any]
    bounty: Optional[Bounty] = None
    bounty_credits_earned: int = 0
    warnings: List[str] = field(default_factory=list)


def compute_content_hash(content: bytes) -> str:
    return hashlib.sha256(content).hexdigest()


def derive_property_address(file_name: str) -> str:
    """'123_Main_St.pdf' -> '123 Main St'."""
    stem = file_name or ""
    if stem.lower().endswith(".pdf"):
        stem = stem[:-4]
    return stem.replace("_", " ").strip() or "Unknown Address"


def validate_upload_size(size: Optional[int]) -> None:
    """Reject a declared size over the limit; unknown sizes pass."""
    if size is None:
        return

    max_bytes = settings.max_upload_size_mb * 1024 * 1024
    if size > max_bytes:
        raise InvalidUploadError(f"File exceeds the {settings.max_upload_size_mb}MB limit")


def validate_upload(file_name: str, content_type: Optional[str], content: bytes) -> None:
    """
    Raises:
        InvalidUploadError: Empty, oversized, or not a PDF
    """
    is_pdf = (content_type or "").lower() in PDF_CONTENT_TYPES or (file_name or "").lower().endswith(".pdf")
    if not is_pdf:
        raise InvalidUploadError("Only PDF files are allowed")

    if not content:
        raise InvalidUploadError("Uploaded file is empty")

    validate_upload_size(len(content))


class UploadService:

    @staticmethod
    async def upload_report(
        db: AsyncSession,
        owner_user_id: str,
        content: bytes,
        file_name: str,
        analysis_provider: AnalysisProvider,
        property_address: Optional[str] = None,
        inspection_date: Optional[datetime] = None,
    ) -> UploadResult:
        """
        Upload a report, pay the upload reward and try to fulfil a bounty.

        Args:
            db: Database session
            owner_user_id: Uploading user
            content: Raw file bytes
            file_name: Original file name
            analysis_provider: External analysis collaborator
            property_address: Explicit address; derived from file name if omitted
            inspection_date: Optional inspection date

        Returns:
            UploadResult

        Raises:
            DuplicateUploadError: Identical bytes were uploaded before (by anyone)
            StorageError: Report + reward transaction failed (nothing was written)
        """
        # 1-2. Hash and fail fast on duplicates
        content_hash = compute_content_hash(content)
        if await ReportRegistry.find_by_hash(db, content_hash):
            raise DuplicateUploadError(content_hash)

        # End the read transaction so no connection is held during analysis
        await db.commit()

        # 3. External analysis (never raises by contract)
        analysis = await analysis_provider.analyze(file_name, content)

        address = (property_address or "").strip() or derive_property_address(file_name)
        reward = settings.upload_reward

        # 4. Report + reward: both or neither
        try:
            async with ledger_transaction(db):
                report = await ReportRegistry.create(
                    db,
                    owner_user_id=owner_user_id,
                    property_address=address,
                    content_hash=content_hash,
                    file_name=file_name,
                    file_size=len(content),
                    analysis=analysis,
                    inspection_date=inspection_date,
                )

                await LedgerStore.record_entry(
                    db,
                    user_id=owner_user_id,
                    amount=reward,
                    kind=LedgerEntryKind.UPLOAD,
                    report_id=report.id,
                    description=f"Uploaded report: {report.property_address}",
                )

                await log_event(
                    db=db,
                    action=AuditAction.REPORT_UPLOADED,
                    actor_id=owner_user_id,
                    metadata={
                        "report_id": report.id,
                        "content_hash": content_hash,
                        "reward": reward,
                    }
                )
        except DuplicateContentError as exc:
            # Lost a concurrent race on the unique hash index
            raise DuplicateUploadError(content_hash) from exc

        # A rollback in the bounty step expires every attached instance
        db.expunge(report)

        logger.info("Report %s uploaded by %s (+%s credits)", report.id, owner_user_id, reward)

        result = UploadResult(report=report, credits_earned=reward, analysis=analysis)

        # 5. Best-effort bounty fulfilment
        await UploadService._fulfil_matching_bounty(db, result, owner_user_id)

        return result

    @staticmethod
    async def _fulfil_matching_bounty(db: AsyncSession, result: UploadResult, owner_user_id: str) -> None:
        report = result.report
        try:
            bounty = await BountyMatcher.find_open_by_address(
                db, report.property_address, exclude_requester_id=owner_user_id
            )
            if not bounty:
                return

            fulfilled = await BountyMatcher.fulfill(db, bounty.id, owner_user_id, report.id)
        except AppException as exc:
            warning = f"Bounty fulfilment skipped: {exc.message}"
            logger.warning("Report %s: %s (%s)", report.id, warning, exc.error_code)
            result.warnings.append(warning)
            return

        result.bounty = fulfilled
        result.bounty_credits_earned = fulfilled.staked_credits

    @staticmethod
    async def delete_report(db: AsyncSession, user_id: str, report_id: int) -> None:
        """
        Owner-only delete. Ledger entries and downloads that reference the
        report are left untouched.

        Raises:
            NotFoundError: Unknown report
            NotOwnerError: Caller is not the uploader
        """
        async with ledger_transaction(db):
            report = await ReportRegistry.get(db, report_id)
            if not report:
                raise NotFoundError("Report", report_id)

            if report.owner_user_id != user_id:
                raise NotOwnerError("report", report_id)

            await ReportRegistry.delete(db, report_id)

            await log_event(
                db=db,
                action=AuditAction.REPORT_DELETED,
                actor_id=user_id,
                metadata={"report_id": report_id, "content_hash": report.content_hash}
            )

        logger.info("Report %s deleted by owner %s", report_id, user_id)
