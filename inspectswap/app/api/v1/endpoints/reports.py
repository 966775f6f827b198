"""
Report API Endpoints.

Upload, browse, unlock and delete inspection reports.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from inspectswap.app.core.dependencies import get_current_user
from inspectswap.app.core.exceptions import NotFoundError
from inspectswap.app.db.session import get_db
from inspectswap.app.domain.marketplace.download_service import DownloadService
from inspectswap.app.domain.marketplace.upload_service import (
    UploadService,
    validate_upload,
    validate_upload_size,
)
from inspectswap.app.domain.reports.report_registry import ReportRegistry
from inspectswap.app.schemas.bounty import BountyResponse
from inspectswap.app.schemas.report import (
    MyReportsResponse,
    ReportAccessResponse,
    ReportDeleteResponse,
    ReportDownloadResponse,
    ReportSummary,
    ReportUploadResponse,
)
from inspectswap.app.services.analysis import AnalysisProvider, get_analysis_provider

router = APIRouter(prefix="/reports", tags=["Reports"])
library_router = APIRouter(tags=["Reports"])


@router.post("/upload", response_model=ReportUploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_report(
    file: UploadFile = File(...),
    property_address: Optional[str] = Form(None),
    inspection_date: Optional[datetime] = Form(None),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    analysis_provider: AnalysisProvider = Depends(get_analysis_provider),
):
    """
    Upload a PDF inspection report.

    Pays the upload reward and, when an open bounty from another user matches
    the address, the bounty stake as well. Identical bytes can only ever be
    uploaded once (409).
    """
    validate_upload_size(file.size)
    content = await file.read()
    file_name = file.filename or "report.pdf"
    validate_upload(file_name, file.content_type, content)

    result = await UploadService.upload_report(
        db,
        owner_user_id=current_user["user_id"],
        content=content,
        file_name=file_name,
        analysis_provider=analysis_provider,
        property_address=property_address,
        inspection_date=inspection_date,
    )

    message = f"Report uploaded successfully! You earned {result.credits_earned} credits."
    if result.bounty is not None:
        message += f" Bounty fulfilled: +{result.bounty_credits_earned} credits."

    return ReportUploadResponse(
        report=ReportSummary.model_validate(result.report),
        analysis=result.analysis,
        credits_earned=result.credits_earned,
        bounty_credits_earned=result.bounty_credits_earned,
        bounty=BountyResponse.model_validate(result.bounty) if result.bounty is not None else None,
        warnings=result.warnings,
        message=message,
    )


@router.get("", response_model=List[ReportSummary])
async def search_reports(
    search: Optional[str] = Query(None, max_length=200),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Browse public reports, optionally filtered by address substring."""
    return await ReportRegistry.search(db, search)


@router.get("/{report_id}", response_model=ReportAccessResponse)
async def get_report(
    report_id: int,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Report summary; the full battlecard only for the owner or a buyer."""
    report = await ReportRegistry.get(db, report_id)
    if not report:
        raise NotFoundError("Report", report_id)

    user_id = current_user["user_id"]
    is_owner = report.owner_user_id == user_id
    has_downloaded = not is_owner and await DownloadService.has_downloaded(db, user_id, report_id)

    return ReportAccessResponse(
        report=ReportSummary.model_validate(report),
        is_owner=is_owner,
        has_downloaded=has_downloaded,
        analysis=report.analysis if (is_owner or has_downloaded) else None,
    )


@router.post("/{report_id}/download", response_model=ReportDownloadResponse)
async def download_report(
    report_id: int,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Unlock a report (DOWNLOAD_COST credits; free for owners and repeat unlocks)."""
    result = await DownloadService.download_report(db, current_user["user_id"], report_id)

    return ReportDownloadResponse(
        report=ReportSummary.model_validate(result.report),
        analysis=result.report.analysis,
        charged=result.charged,
        credits_spent=result.credits_spent,
        message=result.message,
    )


@router.delete("/{report_id}", response_model=ReportDeleteResponse)
async def delete_report(
    report_id: int,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Owner-only delete. Credits already earned or spent are not reversed."""
    await UploadService.delete_report(db, current_user["user_id"], report_id)
    return ReportDeleteResponse(report_id=report_id, message="Report deleted")


@library_router.get("/my-reports", response_model=MyReportsResponse)
async def my_reports(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Reports the caller uploaded and reports they unlocked."""
    library = await DownloadService.my_reports(db, current_user["user_id"])
    return MyReportsResponse.model_validate(library)
