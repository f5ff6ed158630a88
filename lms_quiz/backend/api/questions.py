"""
LMS Quiz Engine
Question bank API routes
"""

import logging
from typing import List, Optional, Union

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..database.connection import get_db
from ..dependencies import (
    CATALOG_ROLES,
    CurrentUser,
    require_authentication,
    require_catalog_editor
)
from ..schemas import (
    ApiResponse,
    LearnerQuestion,
    QuestionCreateRequest,
    QuestionOut,
    QuestionUpdateRequest
)
from ..services import questions
from ..utils.helpers import success_response

# Configure logging
logger = logging.getLogger(__name__)

# Router instance
router = APIRouter()


@router.post("", response_model=ApiResponse[List[QuestionOut]], status_code=status.HTTP_201_CREATED)
async def create_questions(
    request: QuestionCreateRequest,
    current_user: CurrentUser = Depends(require_catalog_editor),
    db: AsyncSession = Depends(get_db)
):
    """Add a batch of questions to a quiz"""
    created = await questions.create_questions(db, request.quiz_id, request.questions)
    logger.info(f"User {current_user.id} added {len(created)} question(s) to quiz {request.quiz_id}")
    return success_response(
        "Questions created successfully",
        [QuestionOut.model_validate(question) for question in created]
    )


@router.get("", response_model=ApiResponse[Union[List[QuestionOut], List[LearnerQuestion]]])
async def list_questions(
    quiz_id: Optional[int] = Query(None, alias="quizId", ge=1),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: CurrentUser = Depends(require_authentication),
    db: AsyncSession = Depends(get_db)
):
    """List active questions; answer keys are only shown to catalog editors"""
    found = await questions.list_questions(db, quiz_id=quiz_id, page=page, limit=limit)

    if current_user.has_any_role(CATALOG_ROLES):
        data = [QuestionOut.model_validate(question) for question in found]
    else:
        data = [LearnerQuestion.model_validate(question) for question in found]

    return success_response("Questions fetched successfully", data)


@router.patch("/status/{question_id}", response_model=ApiResponse[QuestionOut])
async def toggle_question_status(
    question_id: int = Path(..., ge=1, description="Question ID"),
    current_user: CurrentUser = Depends(require_catalog_editor),
    db: AsyncSession = Depends(get_db)
):
    """Activate or deactivate a question"""
    question = await questions.toggle_question_status(db, question_id)
    return success_response("Question status updated successfully", QuestionOut.model_validate(question))


@router.get("/{question_id}", response_model=ApiResponse[QuestionOut])
async def get_question(
    question_id: int = Path(..., ge=1, description="Question ID"),
    current_user: CurrentUser = Depends(require_catalog_editor),
    db: AsyncSession = Depends(get_db)
):
    question = await questions.get_question(db, question_id)
    return success_response("Question fetched successfully", QuestionOut.model_validate(question))


@router.patch("/{question_id}", response_model=ApiResponse[QuestionOut])
async def update_question(
    request: QuestionUpdateRequest,
    question_id: int = Path(..., ge=1, description="Question ID"),
    current_user: CurrentUser = Depends(require_catalog_editor),
    db: AsyncSession = Depends(get_db)
):
    question = await questions.update_question(db, question_id, request)
    return success_response("Question updated successfully", QuestionOut.model_validate(question))


@router.delete("/{question_id}", response_model=ApiResponse[QuestionOut])
async def delete_question(
    question_id: int = Path(..., ge=1, description="Question ID"),
    current_user: CurrentUser = Depends(require_catalog_editor),
    db: AsyncSession = Depends(get_db)
):
    """Soft delete a question"""
    question = await questions.remove_question(db, question_id)
    return success_response("Question deleted successfully", QuestionOut.model_validate(question))


__all__ = ["router"]
