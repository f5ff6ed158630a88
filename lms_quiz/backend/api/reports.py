"""
LMS Quiz Engine
Learner report API routes
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..database.connection import get_db
from ..dependencies import CurrentUser, require_authentication
from ..schemas import ApiResponse, PerformanceReport, XPLedger
from ..services import reports
from ..utils.helpers import success_response

# Router instance
router = APIRouter()


@router.get("/performance", response_model=ApiResponse[PerformanceReport])
async def get_performance_report(
    current_user: CurrentUser = Depends(require_authentication),
    db: AsyncSession = Depends(get_db)
):
    """Quiz results summary for the current user"""
    report = await reports.performance_report(db, current_user.id)
    return success_response("Performance report fetched successfully", report)


@router.get("/xp", response_model=ApiResponse[XPLedger])
async def get_xp_ledger(
    current_user: CurrentUser = Depends(require_authentication),
    db: AsyncSession = Depends(get_db)
):
    ledger = await reports.xp_ledger(db, current_user.id)
    return success_response("XP ledger fetched successfully", ledger)


__all__ = ["router"]
