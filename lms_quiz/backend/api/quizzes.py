"""
LMS Quiz Engine
Quiz-related API routes
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..database.connection import get_db
from ..dependencies import (
    CurrentUser,
    require_authentication,
    require_catalog_editor,
    submit_rate_limit,
    get_leaderboard_cache
)
from ..schemas import (
    ApiResponse,
    AttemptDetail,
    AttemptResult,
    LearnerQuiz,
    Leaderboard,
    QuizCreateRequest,
    QuizOut,
    QuizSubmissionRequest,
    QuizUpdateRequest,
    RewardOutcome
)
from ..services import grading, quizzes, reports, rewards
from ..utils.helpers import success_response
from ...config import get_settings

# Configure logging
logger = logging.getLogger(__name__)

# Router instance
router = APIRouter()


@router.post("", response_model=ApiResponse[QuizOut], status_code=status.HTTP_201_CREATED)
async def create_quiz(
    request: QuizCreateRequest,
    current_user: CurrentUser = Depends(require_catalog_editor),
    db: AsyncSession = Depends(get_db)
):
    """Create a quiz attached to one course, subject, module, chapter or lesson"""
    quiz = await quizzes.create_quiz(db, request)
    logger.info(f"Quiz {quiz.id} created by user {current_user.id}")
    return success_response("Quiz created successfully", quiz)


@router.get("/attempt/{attempt_id}", response_model=ApiResponse[AttemptDetail])
async def get_attempt(
    attempt_id: int = Path(..., ge=1, description="Attempt ID"),
    current_user: CurrentUser = Depends(require_authentication),
    db: AsyncSession = Depends(get_db)
):
    """Get one of the current user's attempts with per-question answers"""
    attempt = await reports.get_attempt_detail(db, attempt_id, current_user.id)
    return success_response("Quiz attempt fetched successfully", attempt)


@router.post("/attempt/{attempt_id}/reward", response_model=ApiResponse[RewardOutcome])
async def retry_attempt_reward(
    attempt_id: int = Path(..., ge=1, description="Attempt ID"),
    current_user: CurrentUser = Depends(require_authentication),
    db: AsyncSession = Depends(get_db)
):
    """Re-evaluate lesson XP for an attempt whose reward is pending"""
    outcome = await rewards.reconcile_attempt_reward(db, current_user.id, attempt_id)
    return success_response(outcome.message, outcome)


@router.get("/slug/{slug}", response_model=ApiResponse[LearnerQuiz])
async def get_quiz_by_slug(
    slug: str = Path(..., min_length=1, max_length=255, description="Quiz slug"),
    current_user: CurrentUser = Depends(require_authentication),
    db: AsyncSession = Depends(get_db)
):
    quiz = await quizzes.get_quiz_by_slug(db, slug)
    return success_response("Quiz fetched successfully", quiz)


@router.patch("/status/{quiz_id}", response_model=ApiResponse[QuizOut])
async def toggle_quiz_status(
    quiz_id: int = Path(..., ge=1, description="Quiz ID"),
    current_user: CurrentUser = Depends(require_catalog_editor),
    db: AsyncSession = Depends(get_db)
):
    """Open or close a quiz to learners"""
    quiz = await quizzes.toggle_quiz_status(db, quiz_id)
    logger.info(f"Quiz {quiz_id} status changed by user {current_user.id}")
    return success_response("Quiz status updated successfully", quiz)


@router.get("/{quiz_id}", response_model=ApiResponse[LearnerQuiz])
async def get_quiz(
    quiz_id: int = Path(..., ge=1, description="Quiz ID"),
    current_user: CurrentUser = Depends(require_authentication),
    db: AsyncSession = Depends(get_db)
):
    """Get quiz details with its active questions"""
    quiz = await quizzes.get_quiz_for_learner(db, quiz_id)
    return success_response("Quiz fetched successfully", quiz)


@router.patch("/{quiz_id}", response_model=ApiResponse[QuizOut])
async def update_quiz(
    request: QuizUpdateRequest,
    quiz_id: int = Path(..., ge=1, description="Quiz ID"),
    current_user: CurrentUser = Depends(require_catalog_editor),
    db: AsyncSession = Depends(get_db)
):
    """Rename a quiz or move it to another content level"""
    quiz = await quizzes.update_quiz(db, quiz_id, request)
    return success_response("Quiz updated successfully", quiz)


@router.post(
    "/{quiz_id}/submit",
    response_model=ApiResponse[AttemptResult],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(submit_rate_limit())]
)
async def submit_quiz(
    request: QuizSubmissionRequest,
    quiz_id: int = Path(..., ge=1, description="Quiz ID"),
    current_user: CurrentUser = Depends(require_authentication),
    db: AsyncSession = Depends(get_db)
):
    """Submit quiz answers for grading"""
    result = await grading.submit_quiz(
        db,
        current_user.id,
        quiz_id,
        request.answers,
        request.time_taken,
        leaderboard_cache=get_leaderboard_cache()
    )
    return success_response("Quiz submitted successfully", result)


@router.get("/{quiz_id}/attempts", response_model=ApiResponse[List[AttemptDetail]])
async def get_quiz_attempts(
    quiz_id: int = Path(..., ge=1, description="Quiz ID"),
    current_user: CurrentUser = Depends(require_authentication),
    db: AsyncSession = Depends(get_db)
):
    """Get the current user's attempts for a quiz"""
    attempts = await reports.list_attempts(db, current_user.id, quiz_id)
    return success_response("Quiz attempts fetched successfully", attempts)


@router.get("/{quiz_id}/leaderboard", response_model=ApiResponse[Leaderboard])
async def get_quiz_leaderboard(
    quiz_id: int = Path(..., ge=1, description="Quiz ID"),
    limit: Optional[int] = Query(None, ge=1, le=100, description="Number of entries"),
    current_user: CurrentUser = Depends(require_authentication),
    db: AsyncSession = Depends(get_db)
):
    """Quiz ranking by marks, ties broken by time taken"""
    settings = get_settings()

    leaderboard = await reports.quiz_leaderboard(
        db,
        quiz_id,
        limit=limit or settings.LEADERBOARD_LIMIT,
        user_id=current_user.id,
        cache=get_leaderboard_cache()
    )
    return success_response("Leaderboard fetched successfully", leaderboard)


__all__ = ["router"]
