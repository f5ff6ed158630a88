"""
LMS Quiz Engine
Lesson XP rewards shared by quiz passes and direct lesson completion
"""

import logging
from typing import Optional

from sqlalchemy import and_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..database.models import (
    ContentLevel, Lesson, QuizAttachment, QuizAttempt, UserXPEarned, XPSource
)
from ..exceptions import AttemptNotFoundException, LessonNotFoundException
from ..schemas import RewardOutcome

# Configure logging
logger = logging.getLogger(__name__)

# Reward statuses
AWARDED = "awarded"
ALREADY_REWARDED = "already_rewarded"
NOT_APPLICABLE = "not_applicable"
PENDING = "pending"


async def find_quiz_lesson(db: AsyncSession, quiz_id: int) -> Optional[Lesson]:
    """Lesson the quiz is attached to, or None for other levels"""
    result = await db.execute(
        select(Lesson)
        .join(
            QuizAttachment,
            and_(
                QuizAttachment.content_id == Lesson.id,
                QuizAttachment.level == ContentLevel.LESSON
            )
        )
        .where(QuizAttachment.quiz_id == quiz_id)
    )
    return result.scalar_one_or_none()


async def has_lesson_reward(db: AsyncSession, user_id: int, lesson_id: int) -> bool:
    """True if the ledger holds any row for (user, lesson), whatever its source"""
    result = await db.execute(
        select(UserXPEarned.id)
        .where(
            UserXPEarned.user_id == user_id,
            UserXPEarned.lesson_id == lesson_id
        )
        .limit(1)
    )
    return result.first() is not None


def _already_rewarded(lesson_id: int) -> RewardOutcome:
    return RewardOutcome(
        status=ALREADY_REWARDED,
        lesson_id=lesson_id,
        xp_awarded=0,
        message="XP already earned for this lesson"
    )


async def _credit(
    db: AsyncSession,
    user_id: int,
    lesson: Lesson,
    source: XPSource,
    quiz_id: Optional[int] = None
) -> RewardOutcome:
    """Insert one ledger row for (user, lesson) unless one already exists.

    The unique (user_id, lesson_id) constraint decides races between the
    quiz path and the lesson completion path. The ledger row is committed
    on its own.
    """
    lesson_id = lesson.id
    xp_points = lesson.no_of_xp_points or 0

    if await has_lesson_reward(db, user_id, lesson_id):
        return _already_rewarded(lesson_id)

    db.add(UserXPEarned(
        user_id=user_id,
        lesson_id=lesson_id,
        quiz_id=quiz_id,
        xp_points=xp_points,
        source=source
    ))

    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        logger.info(f"Lesson {lesson_id} XP for user {user_id} was credited concurrently")
        return _already_rewarded(lesson_id)

    logger.info(
        f"Credited {xp_points} XP to user {user_id} for lesson {lesson_id} "
        f"({source.value})"
    )

    return RewardOutcome(
        status=AWARDED,
        lesson_id=lesson_id,
        xp_awarded=xp_points,
        message="XP awarded"
    )


async def maybe_award_lesson_xp(
    db: AsyncSession,
    user_id: int,
    quiz_id: int,
    passed: bool,
    total_marks: Optional[int] = None
) -> RewardOutcome:
    """Award the bound lesson's XP after a passing attempt, at most once per lesson.

    An attempt on a quiz with no marks to earn passes trivially and is never rewarded.
    """
    if not passed:
        return RewardOutcome(status=NOT_APPLICABLE, message="Quiz not passed")

    if total_marks == 0:
        return RewardOutcome(status=NOT_APPLICABLE, message="Quiz has no marks to earn")

    lesson = await find_quiz_lesson(db, quiz_id)
    if lesson is None:
        return RewardOutcome(status=NOT_APPLICABLE, message="Quiz is not linked to a lesson")

    return await _credit(db, user_id, lesson, XPSource.QUIZ_PASS, quiz_id=quiz_id)


async def complete_lesson(db: AsyncSession, user_id: int, lesson_id: int) -> RewardOutcome:
    lesson = await db.get(Lesson, lesson_id)
    if not lesson:
        raise LessonNotFoundException(lesson_id)

    outcome = await _credit(db, user_id, lesson, XPSource.LESSON_COMPLETION)
    if outcome.status == ALREADY_REWARDED:
        outcome.message = "Lesson already completed"

    return outcome


async def reconcile_attempt_reward(
    db: AsyncSession,
    user_id: int,
    attempt_id: int
) -> RewardOutcome:
    """Re-run the reward decision for a stored attempt (e.g. after a failed credit)"""
    result = await db.execute(
        select(QuizAttempt.quiz_id, QuizAttempt.passed, QuizAttempt.total_marks)
        .where(
            QuizAttempt.id == attempt_id,
            QuizAttempt.user_id == user_id
        )
    )
    row = result.first()
    if row is None:
        raise AttemptNotFoundException(attempt_id)

    return await maybe_award_lesson_xp(
        db, user_id, row.quiz_id, row.passed, total_marks=row.total_marks
    )


__all__ = [
    "AWARDED", "ALREADY_REWARDED", "NOT_APPLICABLE", "PENDING",
    "find_quiz_lesson",
    "has_lesson_reward",
    "maybe_award_lesson_xp",
    "complete_lesson",
    "reconcile_attempt_reward",
]
