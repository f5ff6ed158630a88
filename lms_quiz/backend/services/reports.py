"""
LMS Quiz Engine
Read models over attempts and the XP ledger
"""

import logging
from typing import List, Optional

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..database.models import AttemptAnswer, Question, Quiz, QuizAttempt, User, UserXPEarned
from ..dependencies import CacheManager
from ..exceptions import AttemptNotFoundException, QuizNotFoundException
from ..schemas import (
    AttemptAnswerOut, AttemptDetail, Leaderboard, LeaderboardEntry,
    PerformanceReport, QuizPerformance, XPEntry, XPLedger
)
from .grading import correct_answer_for

# Configure logging
logger = logging.getLogger(__name__)


def attempt_detail(attempt: QuizAttempt) -> AttemptDetail:
    return AttemptDetail(
        id=attempt.id,
        quiz_id=attempt.quiz_id,
        quiz_title=attempt.quiz.title if attempt.quiz else None,
        obtained_marks=attempt.obtained_marks,
        total_marks=attempt.total_marks,
        pass_marks=attempt.pass_marks,
        correct_answers=attempt.correct_answers,
        total_questions=attempt.total_questions,
        percentage=attempt.percentage,
        passed=attempt.passed,
        time_taken=attempt.time_taken,
        created_at=attempt.created_at,
        answers=[
            AttemptAnswerOut(
                question_id=answer.question_id,
                question=answer.question.question if answer.question else None,
                submitted_answer=answer.submitted_answer,
                is_correct=answer.is_correct,
                obtained_marks=answer.obtained_marks,
                total_marks=answer.total_marks,
                time_spent=answer.time_spent,
                correct_answer=correct_answer_for(answer.question) if answer.question else None,
            )
            for answer in attempt.answers
        ]
    )


def _attempt_query():
    return select(QuizAttempt).options(
        selectinload(QuizAttempt.quiz),
        selectinload(QuizAttempt.answers)
        .selectinload(AttemptAnswer.question)
        .selectinload(Question.options),
    ).execution_options(populate_existing=True)


async def list_attempts(db: AsyncSession, user_id: int, quiz_id: int) -> List[AttemptDetail]:
    """The user's attempts for a quiz, newest first"""
    result = await db.execute(
        _attempt_query()
        .where(
            QuizAttempt.user_id == user_id,
            QuizAttempt.quiz_id == quiz_id
        )
        .order_by(QuizAttempt.created_at.desc(), QuizAttempt.id.desc())
    )
    return [attempt_detail(attempt) for attempt in result.scalars().all()]


async def get_attempt_detail(db: AsyncSession, attempt_id: int, user_id: int) -> AttemptDetail:
    result = await db.execute(
        _attempt_query().where(
            QuizAttempt.id == attempt_id,
            QuizAttempt.user_id == user_id
        )
    )
    attempt = result.scalar_one_or_none()

    # Another user's attempt is reported exactly like a missing one
    if not attempt:
        raise AttemptNotFoundException(attempt_id)

    return attempt_detail(attempt)


async def _user_position(db: AsyncSession, quiz_id: int, user_id: int) -> Optional[int]:
    result = await db.execute(
        select(QuizAttempt.id, QuizAttempt.obtained_marks, QuizAttempt.time_taken)
        .where(
            QuizAttempt.quiz_id == quiz_id,
            QuizAttempt.user_id == user_id
        )
    )
    own = result.first()
    if own is None:
        return None

    ahead_result = await db.execute(
        select(func.count(QuizAttempt.id)).where(
            QuizAttempt.quiz_id == quiz_id,
            or_(
                QuizAttempt.obtained_marks > own.obtained_marks,
                and_(
                    QuizAttempt.obtained_marks == own.obtained_marks,
                    QuizAttempt.time_taken < own.time_taken
                ),
                and_(
                    QuizAttempt.obtained_marks == own.obtained_marks,
                    QuizAttempt.time_taken == own.time_taken,
                    QuizAttempt.id < own.id
                )
            )
        )
    )
    return ahead_result.scalar_one() + 1


async def quiz_leaderboard(
    db: AsyncSession,
    quiz_id: int,
    limit: int = 50,
    user_id: Optional[int] = None,
    cache: Optional[CacheManager] = None
) -> Leaderboard:
    """Attempts ranked by marks (desc) then time taken (asc)"""
    # One key per quiz; a board cached with a smaller limit is refetched
    cache_key = str(quiz_id)
    cached = await cache.get(cache_key) if cache else None
    if cached is not None and cached["limit"] < limit:
        cached = None

    if cached is not None:
        entries = [LeaderboardEntry.model_validate(entry) for entry in cached["entries"][:limit]]
        total_participants = cached["total_participants"]
    else:
        quiz = await db.get(Quiz, quiz_id)
        if not quiz:
            raise QuizNotFoundException(quiz_id)

        result = await db.execute(
            select(QuizAttempt, User)
            .outerjoin(User, User.id == QuizAttempt.user_id)
            .where(QuizAttempt.quiz_id == quiz_id)
            .order_by(
                QuizAttempt.obtained_marks.desc(),
                QuizAttempt.time_taken.asc(),
                QuizAttempt.id.asc()
            )
            .limit(limit)
        )
        entries = [
            LeaderboardEntry(
                rank=rank,
                user_id=attempt.user_id,
                name=user.full_name if user else None,
                obtained_marks=attempt.obtained_marks,
                total_marks=attempt.total_marks,
                percentage=attempt.percentage,
                passed=attempt.passed,
                time_taken=attempt.time_taken,
            )
            for rank, (attempt, user) in enumerate(result.all(), start=1)
        ]

        count_result = await db.execute(
            select(func.count(QuizAttempt.id)).where(QuizAttempt.quiz_id == quiz_id)
        )
        total_participants = count_result.scalar_one()

        if cache:
            await cache.set(cache_key, {
                "limit": limit,
                "entries": [entry.model_dump() for entry in entries],
                "total_participants": total_participants,
            })

    user_position = await _user_position(db, quiz_id, user_id) if user_id is not None else None

    return Leaderboard(
        quiz_id=quiz_id,
        entries=entries,
        user_position=user_position,
        total_participants=total_participants
    )


async def total_xp(db: AsyncSession, user_id: int) -> int:
    result = await db.execute(
        select(func.coalesce(func.sum(UserXPEarned.xp_points), 0))
        .where(UserXPEarned.user_id == user_id)
    )
    return int(result.scalar_one())


async def performance_report(db: AsyncSession, user_id: int) -> PerformanceReport:
    result = await db.execute(
        select(QuizAttempt, Quiz.title)
        .join(Quiz, Quiz.id == QuizAttempt.quiz_id)
        .where(QuizAttempt.user_id == user_id)
        .order_by(QuizAttempt.created_at.desc(), QuizAttempt.id.desc())
    )
    rows = result.all()

    quizzes = [
        QuizPerformance(
            quiz_id=attempt.quiz_id,
            quiz_title=title,
            obtained_marks=attempt.obtained_marks,
            total_marks=attempt.total_marks,
            percentage=attempt.percentage,
            passed=attempt.passed,
            attempted_at=attempt.created_at,
        )
        for attempt, title in rows
    ]
    passed = sum(1 for row in quizzes if row.passed)
    average = sum(row.percentage for row in quizzes) / len(quizzes) if quizzes else 0.0

    return PerformanceReport(
        user_id=user_id,
        attempts=len(quizzes),
        passed=passed,
        failed=len(quizzes) - passed,
        average_percentage=round(average, 2),
        total_xp=await total_xp(db, user_id),
        quizzes=quizzes
    )


async def xp_ledger(db: AsyncSession, user_id: int) -> XPLedger:
    result = await db.execute(
        select(UserXPEarned)
        .where(UserXPEarned.user_id == user_id)
        .order_by(UserXPEarned.created_at.desc(), UserXPEarned.id.desc())
    )
    entries = [XPEntry.model_validate(row) for row in result.scalars().all()]

    return XPLedger(
        user_id=user_id,
        total_xp=sum(entry.xp_points for entry in entries),
        entries=entries
    )


__all__ = [
    "list_attempts",
    "get_attempt_detail",
    "quiz_leaderboard",
    "performance_report",
    "xp_ledger",
    "total_xp",
]
