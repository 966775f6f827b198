"""
Bounty Schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List
from inspectswap.app.models.enums import BountyStatus


class BountyCreate(BaseModel):
    """Schema for staking credits on a report request."""
    property_address: str = Field(..., max_length=500)
    staked_credits: Optional[int] = None


class BountyResponse(BaseModel):
    id: int
    requester_user_id: str
    property_address: str
    staked_credits: int
    status: BountyStatus
    fulfilled_by_user_id: Optional[str] = None
    fulfilled_report_id: Optional[int] = None
    fulfilled_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class BountyListResponse(BaseModel):
    my_bounties: List[BountyResponse]
    open_bounties: List[BountyResponse]
