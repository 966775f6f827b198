"""
Credit Schemas.
"""

from pydantic import BaseModel
from datetime import datetime
from typing import Optional, List
from inspectswap.app.models.enums import LedgerEntryKind
from inspectswap.app.schemas.report import ReportSummary


class LedgerEntryResponse(BaseModel):
    """One immutable credit movement."""
    id: int
    amount: int
    kind: LedgerEntryKind
    description: Optional[str] = None
    report_id: Optional[int] = None
    bounty_id: Optional[int] = None
    created_at: datetime

    class Config:
        from_attributes = True


class CreditSummaryResponse(BaseModel):
    balance: int
    total_earned: int
    total_spent: int
    transactions: List[LedgerEntryResponse]

    class Config:
        from_attributes = True


class SignupBonusResponse(BaseModel):
    granted: bool
    amount: int
    balance: int
    message: str


class DashboardResponse(BaseModel):
    credit_balance: int
    recent_reports: List[ReportSummary]
    recent_transactions: List[LedgerEntryResponse]
    total_reports: int
    total_downloads: int
    credits_earned: int
    credits_spent: int

    class Config:
        from_attributes = True
