import pytest
from pydantic import ValidationError

from lms_quiz.backend.database.models import ContentLevel
from lms_quiz.backend.exceptions import LessonNotFoundException, QuizNotFoundException
from lms_quiz.backend.schemas import AnswerSubmission, QuizUpdateRequest
from lms_quiz.backend.services import grading, quizzes, rewards


async def pass_quiz(db, user_id, scenario):
    five, ten = scenario["questions"]
    return await grading.submit_quiz(db, user_id, scenario["quiz"].id, [
        AnswerSubmission(question_id=five.id, answer="Paris"),
        AnswerSubmission(question_id=ten.id, answer="Rome"),
    ])


async def test_rename_regenerates_unique_slug(db, make_quiz):
    await make_quiz(title="Europe")
    asia = await make_quiz(title="Asia")

    updated = await quizzes.update_quiz(db, asia.id, QuizUpdateRequest(title="Europe", description="Capitals"))

    assert updated.title == "Europe"
    assert updated.slug == "europe-2"
    assert updated.description == "Capitals"
    assert (updated.level, updated.content_id) == (ContentLevel.COURSE, 1)


async def test_keeping_the_title_keeps_the_slug(db, make_quiz):
    quiz = await make_quiz(title="Europe")

    updated = await quizzes.update_quiz(db, quiz.id, QuizUpdateRequest(title="Europe"))

    assert updated.slug == "europe"


async def test_reattach_to_another_lesson_moves_the_reward(db, scenario_quiz, make_lesson):
    rivers = await make_lesson(xp=80, title="Rivers")
    quiz_id = scenario_quiz["quiz"].id

    updated = await quizzes.update_quiz(db, quiz_id, QuizUpdateRequest(lesson_id=rivers.id))

    assert (updated.level, updated.content_id) == (ContentLevel.LESSON, rivers.id)
    lesson = await rewards.find_quiz_lesson(db, quiz_id)
    assert lesson.id == rivers.id

    result = await pass_quiz(db, 7, scenario_quiz)

    assert result.reward.status == rewards.AWARDED
    assert result.reward.lesson_id == rivers.id
    assert result.reward.xp_awarded == 80


async def test_reattach_away_from_lessons_drops_the_reward(db, scenario_quiz):
    quiz_id = scenario_quiz["quiz"].id

    await quizzes.update_quiz(db, quiz_id, QuizUpdateRequest(chapter_id=4))

    assert await rewards.find_quiz_lesson(db, quiz_id) is None
    result = await pass_quiz(db, 7, scenario_quiz)
    assert result.reward.status == rewards.NOT_APPLICABLE


async def test_reattach_to_unknown_lesson(db, make_quiz):
    quiz = await make_quiz()

    with pytest.raises(LessonNotFoundException):
        await quizzes.update_quiz(db, quiz.id, QuizUpdateRequest(lesson_id=999))


def test_update_accepts_at_most_one_level():
    with pytest.raises(ValidationError):
        QuizUpdateRequest(course_id=1, lesson_id=2)

    assert QuizUpdateRequest(title="Only a title").attachment() is None


async def test_update_unknown_quiz(db):
    with pytest.raises(QuizNotFoundException):
        await quizzes.update_quiz(db, 9999, QuizUpdateRequest(title="Ghost"))

    with pytest.raises(QuizNotFoundException):
        await quizzes.toggle_quiz_status(db, 9999)


async def test_toggle_status_hides_quiz_from_learners(db, make_quiz):
    quiz = await make_quiz(title="Europe")

    closed = await quizzes.toggle_quiz_status(db, quiz.id)

    assert closed.status is False
    with pytest.raises(QuizNotFoundException):
        await quizzes.get_quiz_for_learner(db, quiz.id)
    with pytest.raises(QuizNotFoundException):
        await quizzes.get_quiz_by_slug(db, "europe")

    reopened = await quizzes.toggle_quiz_status(db, quiz.id)

    assert reopened.status is True
    assert (await quizzes.get_quiz_for_learner(db, quiz.id)).id == quiz.id


async def test_quiz_by_slug_hides_answer_keys(db, scenario_quiz):
    quiz = await quizzes.get_quiz_by_slug(db, "europe")

    assert quiz.id == scenario_quiz["quiz"].id
    assert quiz.total_marks == 15
    assert [question.question for question in quiz.questions] == ["Capital of France?", "Capital of Italy?"]
    assert "is_correct" not in str(quiz.model_dump())

    with pytest.raises(QuizNotFoundException):
        await quizzes.get_quiz_by_slug(db, "no-such-quiz")
