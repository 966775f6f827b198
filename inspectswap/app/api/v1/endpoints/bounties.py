"""
Bounty API Endpoints.

Stake credits on a report request for an address; the first matching
upload by another user collects the stake.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from inspectswap.app.core.dependencies import get_current_user
from inspectswap.app.db.session import get_db
from inspectswap.app.domain.marketplace.bounty_service import BountyService
from inspectswap.app.schemas.bounty import BountyCreate, BountyListResponse, BountyResponse

router = APIRouter(prefix="/bounties", tags=["Bounties"])


@router.get("", response_model=BountyListResponse)
async def list_bounties(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """The caller's bounties (any status) and other users' open bounties."""
    mine, open_bounties = await BountyService.list_bounties(db, current_user["user_id"])
    return BountyListResponse(
        my_bounties=[BountyResponse.model_validate(b) for b in mine],
        open_bounties=[BountyResponse.model_validate(b) for b in open_bounties],
    )


@router.post("", response_model=BountyResponse, status_code=status.HTTP_201_CREATED)
async def create_bounty(
    bounty_data: BountyCreate,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Create a bounty; the stake is debited immediately."""
    return await BountyService.create_bounty(
        db,
        user_id=current_user["user_id"],
        property_address=bounty_data.property_address,
        staked_credits=bounty_data.staked_credits,
    )


@router.delete("/{bounty_id}", response_model=BountyResponse)
async def cancel_bounty(
    bounty_id: int,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Cancel an open bounty and refund the stake (requester only)."""
    return await BountyService.cancel_bounty(db, current_user["user_id"], bounty_id)
