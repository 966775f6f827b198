"""
Report Registry (Domain Logic).

Stores report metadata and enforces global content-hash uniqueness. The
unique index on reports.content_hash is the authoritative duplicate guard;
find_by_hash only lets callers fail fast before doing expensive work.
"""

from datetime import datetime
from typing import Any, Dict, Iterable, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, delete, desc
from sqlalchemy.exc import IntegrityError

from inspectswap.app.core.exceptions import DuplicateContentError
from inspectswap.app.db.transaction import storage_guard
from inspectswap.app.models.report import Report


class ReportRegistry:

    @staticmethod
    @storage_guard
    async def get(db: AsyncSession, report_id: int) -> Optional[Report]:
        result = await db.execute(
            select(Report)
            .where(Report.id == report_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    @staticmethod
    @storage_guard
    async def find_by_hash(db: AsyncSession, content_hash: str) -> Optional[Report]:
        """Return the report registered for these bytes, by anyone, if any."""
        result = await db.execute(
            select(Report).where(Report.content_hash == content_hash)
        )
        return result.scalar_one_or_none()

    @staticmethod
    @storage_guard
    async def create(
        db: AsyncSession,
        owner_user_id: str,
        property_address: str,
        content_hash: str,
        file_name: str,
        file_size: int,
        analysis: Optional[Dict[str, Any]] = None,
        inspection_date: Optional[datetime] = None,
    ) -> Report:
        """
        Register a new report inside the caller's transaction.

        Args:
            db: Database session
            owner_user_id: Uploading user
            property_address: Free-text address
            content_hash: SHA-256 hex digest of the raw bytes
            file_name: Original file name
            file_size: Size in bytes
            analysis: Analysis result; display fields are copied to columns
            inspection_date: Optional inspection date

        Returns:
            Flushed Report

        Raises:
            DuplicateContentError: If another report already has this hash
        """
        analysis = analysis or {}
        report = Report(
            owner_user_id=owner_user_id,
            property_address=property_address,
            content_hash=content_hash,
            file_name=file_name,
            file_size=file_size,
            inspection_date=inspection_date,
            major_defects=analysis.get("majorDefects"),
            summary_findings=analysis.get("summaryFindings"),
            negotiation_points=analysis.get("negotiationPoints"),
            estimated_credit=analysis.get("estimatedCredit"),
            analysis=analysis or None,
            is_public=True,
            download_count=0,
        )
        db.add(report)
        try:
            await db.flush()
        except IntegrityError as exc:
            raise DuplicateContentError(content_hash) from exc
        return report

    @staticmethod
    @storage_guard
    async def increment_download_count(db: AsyncSession, report_id: int) -> None:
        await db.execute(
            update(Report)
            .where(Report.id == report_id)
            .values(download_count=Report.download_count + 1)
            .execution_options(synchronize_session=False)
        )

    @staticmethod
    @storage_guard
    async def search(db: AsyncSession, query: Optional[str] = None) -> list[Report]:
        """
        Public reports, newest first.

        Args:
            db: Database session
            query: Optional case-insensitive substring of the property address
        """
        stmt = select(Report).where(Report.is_public.is_(True))
        if query:
            stmt = stmt.where(Report.property_address.icontains(query, autoescape=True))
        stmt = stmt.order_by(desc(Report.created_at), desc(Report.id))

        result = await db.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    @storage_guard
    async def list_by_owner(db: AsyncSession, owner_user_id: str) -> list[Report]:
        result = await db.execute(
            select(Report)
            .where(Report.owner_user_id == owner_user_id)
            .order_by(desc(Report.created_at), desc(Report.id))
        )
        return list(result.scalars().all())

    @staticmethod
    @storage_guard
    async def get_many(db: AsyncSession, report_ids: Iterable[int]) -> list[Report]:
        """Reports for the given ids; ids of deleted reports are silently absent."""
        ids = list(report_ids)
        if not ids:
            return []
        result = await db.execute(select(Report).where(Report.id.in_(ids)))
        by_id = {report.id: report for report in result.scalars().all()}
        return [by_id[report_id] for report_id in ids if report_id in by_id]

    @staticmethod
    @storage_guard
    async def delete(db: AsyncSession, report_id: int) -> None:
        """Unconditional delete; ownership is enforced by the workflow."""
        await db.execute(
            delete(Report)
            .where(Report.id == report_id)
            .execution_options(synchronize_session=False)
        )
