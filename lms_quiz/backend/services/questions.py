"""
LMS Quiz Engine
Question bank mutations; every write re-derives the owning quiz's aggregates
"""

import logging
from typing import List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..database.models import Question, QuestionOption, Quiz
from ..exceptions import (
    QuestionNotFoundException, QuizNotFoundException, ValidationException
)
from ..schemas import (
    OptionIn, QuestionCreateItem, QuestionUpdateRequest, check_choice_options
)
from .aggregates import recompute_quiz_aggregates

# Configure logging
logger = logging.getLogger(__name__)


def build_options(options: Optional[Sequence[OptionIn]]) -> List[QuestionOption]:
    return [
        QuestionOption(option=opt.option, is_correct=opt.is_correct, position=position)
        for position, opt in enumerate(options or [], start=1)
    ]


async def get_question(db: AsyncSession, question_id: int) -> Question:
    result = await db.execute(
        select(Question)
        .where(Question.id == question_id)
        .execution_options(populate_existing=True)
    )
    question = result.scalar_one_or_none()
    if not question:
        raise QuestionNotFoundException(question_id)
    return question


async def list_questions(
    db: AsyncSession,
    quiz_id: Optional[int] = None,
    page: int = 1,
    limit: int = 20
) -> List[Question]:
    """Active questions, newest first"""
    query = select(Question).where(Question.status.is_(True))
    if quiz_id is not None:
        query = query.where(Question.quiz_id == quiz_id)

    query = (
        query.order_by(Question.created_at.desc(), Question.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    result = await db.execute(query)
    return list(result.scalars().all())


async def create_questions(
    db: AsyncSession,
    quiz_id: int,
    items: Sequence[QuestionCreateItem]
) -> List[Question]:
    """Create a batch of questions for one quiz"""
    quiz = await db.get(Quiz, quiz_id)
    if not quiz:
        raise QuizNotFoundException(quiz_id)

    questions = []
    for item in items:
        is_choice = item.type.is_choice
        question = Question(
            quiz_id=quiz_id,
            question=item.question_text,
            type=item.type,
            marks=item.marks,
            duration=item.duration,
            # Choice questions are graded from their options only
            answer=None if is_choice else item.answer,
            options=build_options(item.options) if is_choice else [],
        )
        db.add(question)
        questions.append(question)

    await db.flush()
    await recompute_quiz_aggregates(db, quiz_id)
    await db.commit()

    logger.info(f"Created {len(questions)} question(s) for quiz {quiz_id}")
    return questions


async def update_question(
    db: AsyncSession,
    question_id: int,
    changes: QuestionUpdateRequest
) -> Question:
    question = await get_question(db, question_id)

    is_choice = changes.type.is_choice
    if is_choice and changes.options is None:
        # Keeping the stored options: they must still fit the new type
        existing = [
            OptionIn(option=opt.option, is_correct=opt.is_correct)
            for opt in question.options
        ]
        try:
            check_choice_options(changes.type, existing)
        except ValueError as e:
            raise ValidationException(str(e), field="options")

    question.question = changes.question_text
    question.type = changes.type
    question.marks = changes.marks
    question.duration = changes.duration
    question.answer = None if is_choice else changes.answer

    if changes.options is not None:
        question.options = build_options(changes.options) if is_choice else []
    elif not is_choice:
        question.options = []

    await db.flush()
    await recompute_quiz_aggregates(db, question.quiz_id)
    await db.commit()

    logger.info(f"Updated question {question_id}")
    return await get_question(db, question_id)


async def toggle_question_status(db: AsyncSession, question_id: int) -> Question:
    """Flip the active flag"""
    question = await get_question(db, question_id)
    question.status = not question.status

    await db.flush()
    await recompute_quiz_aggregates(db, question.quiz_id)
    await db.commit()

    logger.info(f"Question {question_id} status set to {question.status}")
    return question


async def remove_question(db: AsyncSession, question_id: int) -> Question:
    """Soft delete: the row stays for attempt history"""
    question = await get_question(db, question_id)
    question.status = False

    await db.flush()
    await recompute_quiz_aggregates(db, question.quiz_id)
    await db.commit()

    logger.info(f"Question {question_id} removed")
    return question


__all__ = [
    "get_question",
    "list_questions",
    "create_questions",
    "update_question",
    "toggle_question_status",
    "remove_question",
]
