"""
Credit API Endpoints.

Balance, history, signup bonus and the user dashboard.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from inspectswap.app.core.dependencies import get_current_user
from inspectswap.app.db.session import get_db
from inspectswap.app.domain.credits.ledger_store import LedgerStore
from inspectswap.app.domain.marketplace.credit_service import CreditService
from inspectswap.app.schemas.credits import (
    CreditSummaryResponse,
    DashboardResponse,
    SignupBonusResponse,
)

router = APIRouter(prefix="/credits", tags=["Credits"])
dashboard_router = APIRouter(tags=["Dashboard"])


@router.get("", response_model=CreditSummaryResponse)
async def get_credits(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Balance, lifetime earned/spent and every ledger entry, newest first."""
    summary = await CreditService.credit_summary(db, current_user["user_id"])
    return CreditSummaryResponse.model_validate(summary)


@router.post("/signup-bonus", response_model=SignupBonusResponse)
async def claim_signup_bonus(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Grant the one-time signup bonus to a user with an empty ledger."""
    user_id = current_user["user_id"]
    granted, amount = await CreditService.claim_signup_bonus(db, user_id)
    balance = await LedgerStore.get_balance(db, user_id)

    return SignupBonusResponse(
        granted=granted,
        amount=amount,
        balance=balance,
        message=f"Welcome! You received {amount} credits." if granted else "Signup bonus already claimed",
    )


@dashboard_router.get("/dashboard", response_model=DashboardResponse)
async def get_dashboard(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    dashboard = await CreditService.dashboard(db, current_user["user_id"])
    return DashboardResponse.model_validate(dashboard)
