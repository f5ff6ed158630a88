"""
LMS Quiz Engine
Grading engine: per-question graders and quiz submission
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Union

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..database.models import (
    AttemptAnswer, Question, QuestionOption, QuestionType, Quiz, QuizAttempt
)
from ..dependencies import CacheManager
from ..exceptions import (
    AlreadyAttemptedException, InvalidSubmissionException, QuizNotFoundException
)
from ..schemas import AnswerBreakdown, AnswerSubmission, AttemptResult, RewardOutcome
from . import rewards

# Configure logging
logger = logging.getLogger(__name__)

SubmittedAnswer = Union[str, List[str], None]

NO_ANSWER = "N/A"


@dataclass
class GradedAnswer:
    question_id: int
    is_correct: bool
    obtained_marks: int
    total_marks: int


def first_correct_option(question: Question) -> Optional[QuestionOption]:
    for option in question.options:
        if option.is_correct:
            return option
    return None


def correct_answer_for(question: Question) -> str:
    """Canonical answer shown to the learner after grading"""
    if question.type.is_choice:
        option = first_correct_option(question)
        return option.option if option else NO_ANSWER
    return question.answer if question.answer else NO_ANSWER


def grade_answer(question: Question, submitted: SubmittedAnswer) -> GradedAnswer:
    """Grade one answer against the stored question. Never raises."""
    is_correct = False

    if question.type in (QuestionType.MCQ, QuestionType.TRUEORFALSE):
        option = first_correct_option(question)
        is_correct = (
            option is not None
            and isinstance(submitted, str)
            and submitted == option.option
        )

    elif question.type == QuestionType.FILLINTHEBLANK:
        if isinstance(submitted, list):
            submitted = ",".join(submitted)
        if question.answer is not None and submitted is not None:
            is_correct = submitted.strip().lower() == question.answer.strip().lower()

    # SHORTANSWER and DESCRIPTIVE need manual review: never auto-credited

    return GradedAnswer(
        question_id=question.id,
        is_correct=is_correct,
        obtained_marks=question.marks if is_correct else 0,
        total_marks=question.marks
    )


async def has_attempted(db: AsyncSession, user_id: int, quiz_id: int) -> bool:
    result = await db.execute(
        select(QuizAttempt.id)
        .where(
            QuizAttempt.user_id == user_id,
            QuizAttempt.quiz_id == quiz_id
        )
        .limit(1)
    )
    return result.first() is not None


def calculate_percentage(obtained_marks: int, total_marks: int) -> float:
    if total_marks <= 0:
        return 0.0
    return obtained_marks / total_marks * 100


async def submit_quiz(
    db: AsyncSession,
    user_id: int,
    quiz_id: int,
    answers: Sequence[AnswerSubmission],
    time_taken: Optional[int] = None,
    leaderboard_cache: Optional[CacheManager] = None
) -> AttemptResult:
    """
    Grade a learner's answers, persist the attempt and settle lesson XP.

    The attempt and its answers are committed together. The reward step runs
    only after that commit, as its own unit of work; a storage failure there
    leaves the attempt recorded with its reward pending.
    """
    quiz_result = await db.execute(
        select(Quiz)
        .options(selectinload(Quiz.questions))
        .where(Quiz.id == quiz_id, Quiz.status.is_(True))
        .execution_options(populate_existing=True)
    )
    quiz = quiz_result.scalar_one_or_none()
    if not quiz:
        raise QuizNotFoundException(quiz_id)

    if await has_attempted(db, user_id, quiz_id):
        raise AlreadyAttemptedException(quiz_id)

    questions = {question.id: question for question in quiz.questions}
    active_questions = [question for question in quiz.questions if question.status]

    # Grade everything before anything is written
    graded = []
    seen = set()
    for submission in answers:
        question = questions.get(submission.question_id)
        if question is None:
            raise InvalidSubmissionException(
                "Question does not belong to this quiz",
                quiz_id,
                question_id=submission.question_id
            )
        if submission.question_id in seen:
            raise InvalidSubmissionException(
                "Question answered more than once",
                quiz_id,
                question_id=submission.question_id
            )
        seen.add(submission.question_id)

        result = grade_answer(question, submission.answer)
        if not question.status:
            # Inactive questions are kept for audit; no marks, not counted as correct
            result.obtained_marks = 0
        graded.append((submission, question, result))

    total_marks = sum(question.marks for question in active_questions)
    obtained_marks = sum(result.obtained_marks for _, _, result in graded)
    correct_answers = sum(
        1 for _, question, result in graded
        if result.is_correct and question.status
    )
    percentage = calculate_percentage(obtained_marks, total_marks)
    passed = obtained_marks >= quiz.pass_marks

    attempt = QuizAttempt(
        user_id=user_id,
        quiz_id=quiz_id,
        obtained_marks=obtained_marks,
        total_marks=total_marks,
        pass_marks=quiz.pass_marks,
        correct_answers=correct_answers,
        total_questions=len(active_questions),
        percentage=percentage,
        passed=passed,
        time_taken=time_taken or 0,
        answers=[
            AttemptAnswer(
                question_id=question.id,
                position=position,
                submitted_answer=submission.answer,
                obtained_marks=result.obtained_marks,
                total_marks=result.total_marks,
                is_correct=result.is_correct,
                time_spent=submission.time_spent
            )
            for position, (submission, question, result) in enumerate(graded, start=1)
        ]
    )
    db.add(attempt)

    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        # Lost a race with a concurrent submission for the same quiz
        if await has_attempted(db, user_id, quiz_id):
            raise AlreadyAttemptedException(quiz_id)
        raise

    if leaderboard_cache:
        await leaderboard_cache.delete(str(quiz_id))

    logger.info(
        f"Quiz {quiz_id} attempt {attempt.id} recorded for user {user_id}: "
        f"{obtained_marks}/{total_marks} passed={passed}"
    )

    attempt_result = AttemptResult(
        attempt_id=attempt.id,
        quiz_id=quiz_id,
        obtained_marks=obtained_marks,
        total_marks=total_marks,
        pass_marks=attempt.pass_marks,
        correct_answers=correct_answers,
        total_questions=attempt.total_questions,
        percentage=percentage,
        passed=passed,
        time_taken=attempt.time_taken,
        answers=[
            AnswerBreakdown(
                question_id=question.id,
                question=question.question,
                submitted_answer=submission.answer,
                is_correct=result.is_correct,
                obtained_marks=result.obtained_marks,
                total_marks=result.total_marks,
                correct_answer=correct_answer_for(question)
            )
            for submission, question, result in graded
        ]
    )

    try:
        attempt_result.reward = await rewards.maybe_award_lesson_xp(
            db, user_id, quiz_id, passed, total_marks=total_marks
        )
    except SQLAlchemyError:
        logger.exception(f"XP reward for attempt {attempt_result.attempt_id} failed; left pending")
        await db.rollback()
        attempt_result.reward = RewardOutcome(
            status=rewards.PENDING,
            message="Reward pending re-evaluation"
        )

    return attempt_result


__all__ = [
    "GradedAnswer",
    "grade_answer",
    "correct_answer_for",
    "calculate_percentage",
    "has_attempted",
    "submit_quiz",
]
