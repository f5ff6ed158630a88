"""
LMS Quiz Engine
Quiz catalog operations and the learner-facing quiz view
"""

import logging
from typing import Any, Dict, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..database.models import ContentLevel, Lesson, Quiz, QuizAttachment
from ..exceptions import LessonNotFoundException, QuizNotFoundException
from ..schemas import LearnerQuiz, QuizCreateRequest, QuizOut, QuizUpdateRequest
from ..utils.helpers import slugify

# Configure logging
logger = logging.getLogger(__name__)


async def unique_slug(db: AsyncSession, title: str, exclude_id: Optional[int] = None) -> str:
    base = slugify(title)
    slug = base
    suffix = 1
    while True:
        query = select(Quiz.id).where(Quiz.slug == slug)
        if exclude_id is not None:
            query = query.where(Quiz.id != exclude_id)
        result = await db.execute(query)
        if result.first() is None:
            return slug
        suffix += 1
        slug = f"{base}-{suffix}"


def quiz_summary(quiz: Quiz) -> Dict[str, Any]:
    attachment = quiz.attachment
    return {
        "id": quiz.id,
        "title": quiz.title,
        "slug": quiz.slug,
        "description": quiz.description,
        "total_marks": quiz.total_marks,
        "pass_marks": quiz.pass_marks,
        "time_limit": quiz.time_limit,
        "status": quiz.status,
        "level": attachment.level if attachment else None,
        "content_id": attachment.content_id if attachment else None,
    }


async def _check_target(db: AsyncSession, level: ContentLevel, content_id: int):
    # Only lessons live in this service; other levels are trusted as given
    if level == ContentLevel.LESSON:
        lesson = await db.get(Lesson, content_id)
        if not lesson:
            raise LessonNotFoundException(content_id)


async def _load_quiz(db: AsyncSession, quiz_id: int) -> Quiz:
    result = await db.execute(
        select(Quiz)
        .options(selectinload(Quiz.attachment))
        .where(Quiz.id == quiz_id)
        .execution_options(populate_existing=True)
    )
    quiz = result.scalar_one_or_none()
    if not quiz:
        raise QuizNotFoundException(quiz_id)
    return quiz


async def create_quiz(db: AsyncSession, payload: QuizCreateRequest) -> QuizOut:
    """Create an empty quiz attached to exactly one content level"""
    level, content_id = payload.attachment()
    await _check_target(db, level, content_id)

    quiz = Quiz(
        title=payload.title,
        slug=await unique_slug(db, payload.title),
        description=payload.description,
        total_marks=0,
        pass_marks=0,
        time_limit=0,
        attachment=QuizAttachment(level=level, content_id=content_id),
    )
    db.add(quiz)
    await db.commit()

    logger.info(f"Quiz '{quiz.title}' created ({level.value} {content_id})")
    return QuizOut(**quiz_summary(quiz))


async def update_quiz(db: AsyncSession, quiz_id: int, payload: QuizUpdateRequest) -> QuizOut:
    """
    Change title, description or attachment of a quiz.

    A new title regenerates the slug. A new target replaces the current
    attachment, which also decides which lesson (if any) a pass rewards.
    Aggregates are left to the question bank.
    """
    quiz = await _load_quiz(db, quiz_id)

    if payload.title is not None and payload.title != quiz.title:
        quiz.title = payload.title
        quiz.slug = await unique_slug(db, payload.title, exclude_id=quiz_id)

    if payload.description is not None:
        quiz.description = payload.description

    target = payload.attachment()
    if target is not None:
        level, content_id = target
        await _check_target(db, level, content_id)

        # Updated in place: quiz_id is unique on the attachment table
        if quiz.attachment is None:
            quiz.attachment = QuizAttachment(level=level, content_id=content_id)
        else:
            quiz.attachment.level = level
            quiz.attachment.content_id = content_id

        logger.info(f"Quiz {quiz_id} attached to {level.value} {content_id}")

    await db.commit()

    logger.info(f"Quiz {quiz_id} updated")
    return QuizOut(**quiz_summary(quiz))


async def toggle_quiz_status(db: AsyncSession, quiz_id: int) -> QuizOut:
    """Flip the active flag; inactive quizzes are hidden from learners and closed to submissions"""
    quiz = await _load_quiz(db, quiz_id)
    quiz.status = not quiz.status
    await db.commit()

    logger.info(f"Quiz {quiz_id} status set to {quiz.status}")
    return QuizOut(**quiz_summary(quiz))


async def _learner_view(db: AsyncSession, *criteria) -> Optional[LearnerQuiz]:
    result = await db.execute(
        select(Quiz)
        .options(
            selectinload(Quiz.questions),
            selectinload(Quiz.attachment)
        )
        .where(Quiz.status.is_(True), *criteria)
        .execution_options(populate_existing=True)
    )
    quiz = result.scalar_one_or_none()
    if not quiz:
        return None

    questions = [
        {
            "id": question.id,
            "question": question.question,
            "type": question.type,
            "marks": question.marks,
            "options": [{"option": opt.option} for opt in question.options],
        }
        for question in quiz.questions
        if question.status
    ]

    return LearnerQuiz(**quiz_summary(quiz), questions=questions)


async def get_quiz_for_learner(db: AsyncSession, quiz_id: int) -> LearnerQuiz:
    """Quiz with its active questions; correctness flags and answers are never exposed"""
    quiz = await _learner_view(db, Quiz.id == quiz_id)
    if quiz is None:
        raise QuizNotFoundException(quiz_id)
    return quiz


async def get_quiz_by_slug(db: AsyncSession, slug: str) -> LearnerQuiz:
    quiz = await _learner_view(db, Quiz.slug == slug)
    if quiz is None:
        raise QuizNotFoundException(slug)
    return quiz


__all__ = [
    "create_quiz",
    "update_quiz",
    "toggle_quiz_status",
    "get_quiz_for_learner",
    "get_quiz_by_slug",
    "unique_slug",
]
