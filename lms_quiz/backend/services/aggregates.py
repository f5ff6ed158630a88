"""
LMS Quiz Engine
Quiz aggregate maintenance (total marks, pass marks, time limit)
"""

import logging
import math
from fractions import Fraction

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..database.models import Question, Quiz
from ..exceptions import QuizNotFoundException

# Configure logging
logger = logging.getLogger(__name__)

# Pass threshold as a share of total marks
PASS_MARK_RATIO = Fraction(2, 5)


def pass_marks_for(total_marks: int) -> int:
    """ceil(40% of total), exact for every integer total"""
    return math.ceil(Fraction(total_marks) * PASS_MARK_RATIO)


async def recompute_quiz_aggregates(db: AsyncSession, quiz_id: int) -> Quiz:
    """
    Recalculate a quiz's derived fields from its active questions.

    Must run inside the same transaction as the question mutation that
    triggered it, after that mutation has been flushed. The quiz row is
    locked so concurrent recomputes for one quiz apply in order. The caller
    commits.
    """
    quiz_result = await db.execute(
        select(Quiz).where(Quiz.id == quiz_id).with_for_update()
    )
    quiz = quiz_result.scalar_one_or_none()
    if not quiz:
        raise QuizNotFoundException(quiz_id)

    totals_result = await db.execute(
        select(
            func.coalesce(func.sum(Question.marks), 0),
            func.coalesce(func.sum(Question.duration), 0),
        ).where(
            Question.quiz_id == quiz_id,
            Question.status.is_(True)
        )
    )
    total_marks, total_duration = totals_result.one()

    quiz.total_marks = int(total_marks)
    quiz.pass_marks = pass_marks_for(quiz.total_marks)
    quiz.time_limit = int(total_duration)

    await db.flush()

    logger.debug(
        f"Quiz {quiz_id} aggregates: total={quiz.total_marks} "
        f"pass={quiz.pass_marks} time_limit={quiz.time_limit}"
    )

    return quiz


__all__ = ["PASS_MARK_RATIO", "pass_marks_for", "recompute_quiz_aggregates"]
