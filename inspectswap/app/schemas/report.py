"""
Report Schemas.
"""

from pydantic import BaseModel
from datetime import datetime
from typing import Optional, List, Dict, Any
from inspectswap.app.schemas.bounty import BountyResponse


class ReportSummary(BaseModel):
    """Public view of a report (no full battlecard)."""
    id: int
    owner_user_id: str
    property_address: str
    file_name: str
    file_size: int
    inspection_date: Optional[datetime] = None
    major_defects: Optional[List[Any]] = None
    summary_findings: Optional[str] = None
    negotiation_points: Optional[List[Any]] = None
    estimated_credit: Optional[int] = None
    download_count: int
    created_at: datetime

    class Config:
        from_attributes = True


class ReportAccessResponse(BaseModel):
    """Single report; the battlecard is included only for owners and buyers."""
    report: ReportSummary
    is_owner: bool
    has_downloaded: bool
    analysis: Optional[Dict[str, Any]] = None


class ReportUploadResponse(BaseModel):
    report: ReportSummary
    analysis: Dict[str, Any]
    credits_earned: int
    bounty_credits_earned: int = 0
    bounty: Optional[BountyResponse] = None
    warnings: List[str] = []
    message: str


class ReportDownloadResponse(BaseModel):
    report: ReportSummary
    analysis: Optional[Dict[str, Any]] = None
    charged: bool
    credits_spent: int
    message: Optional[str] = None


class ReportDeleteResponse(BaseModel):
    report_id: int
    message: str


class MyReportsResponse(BaseModel):
    """Reports uploaded by and unlocked by the caller."""
    uploaded: List[ReportSummary]
    downloaded: List[ReportSummary]

    class Config:
        from_attributes = True
