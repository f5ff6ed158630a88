"""
LMS Quiz Engine
Lesson completion API routes
"""

import logging

from fastapi import APIRouter, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession

from ..database.connection import get_db
from ..dependencies import CurrentUser, require_authentication
from ..schemas import ApiResponse, RewardOutcome
from ..services import rewards
from ..utils.helpers import success_response

# Configure logging
logger = logging.getLogger(__name__)

# Router instance
router = APIRouter()


@router.post("/{lesson_id}/complete", response_model=ApiResponse[RewardOutcome])
async def complete_lesson(
    lesson_id: int = Path(..., ge=1, description="Lesson ID"),
    current_user: CurrentUser = Depends(require_authentication),
    db: AsyncSession = Depends(get_db)
):
    """Mark a lesson complete; its XP is credited at most once per user"""
    outcome = await rewards.complete_lesson(db, current_user.id, lesson_id)
    return success_response(outcome.message, outcome)


__all__ = ["router"]
