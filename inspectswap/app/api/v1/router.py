"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from inspectswap.app.api.v1.endpoints import reports, credits, bounties

router = APIRouter()

# Reports (upload / browse / unlock / delete)
router.include_router(reports.router)
router.include_router(reports.library_router)

# Credits and dashboard
router.include_router(credits.router)
router.include_router(credits.dashboard_router)

# Bounties
router.include_router(bounties.router)
