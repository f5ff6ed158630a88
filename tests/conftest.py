import os

os.environ["ENVIRONMENT"] = "testing"

import jwt
import pytest
from httpx import ASGITransport, AsyncClient

from lms_quiz.config import get_settings

get_settings.cache_clear()

from lms_quiz.backend.app import create_app
from lms_quiz.backend.database import connection
from lms_quiz.backend.database.models import Lesson, QuestionType, User
from lms_quiz.backend.schemas import OptionIn, QuestionCreateItem, QuizCreateRequest
from lms_quiz.backend.services import questions, quizzes


@pytest.fixture
async def database():
    await connection.init_database("sqlite+aiosqlite://")
    yield
    await connection.drop_tables()
    await connection.close_database_connections()


@pytest.fixture
async def db(database):
    async with connection.get_async_session() as session:
        yield session


@pytest.fixture
async def client(database):
    app = create_app()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


def make_token(user_id, roles=("student",)):
    settings = get_settings()
    return jwt.encode(
        {"sub": str(user_id), "roles": list(roles)},
        settings.JWT_SECRET_KEY,
        algorithm=settings.JWT_ALGORITHM
    )


@pytest.fixture
def auth_headers():
    def _headers(user_id, roles=("student",)):
        return {"Authorization": f"Bearer {make_token(user_id, roles)}"}
    return _headers


@pytest.fixture
def make_lesson(db):
    async def _make(xp=50, title="Capitals of Europe"):
        lesson = Lesson(title=title, slug=f"{title.lower().replace(' ', '-')}-{xp}", no_of_xp_points=xp)
        db.add(lesson)
        await db.commit()
        return lesson
    return _make


@pytest.fixture
def make_user(db):
    async def _make(email, first_name=None, last_name=None):
        user = User(email=email, first_name=first_name, last_name=last_name)
        db.add(user)
        await db.commit()
        return user
    return _make


@pytest.fixture
def make_quiz(db):
    async def _make(title="Geography", lesson_id=None, course_id=None):
        if lesson_id is None and course_id is None:
            course_id = 1
        payload = QuizCreateRequest(title=title, lesson_id=lesson_id, course_id=course_id)
        return await quizzes.create_quiz(db, payload)
    return _make


def mcq(text, marks, correct, wrong=("Wrong",), duration=1):
    options = [OptionIn(option=correct, is_correct=True)]
    options += [OptionIn(option=option) for option in wrong]
    return QuestionCreateItem(
        question_text=text,
        type=QuestionType.MCQ,
        marks=marks,
        duration=duration,
        options=options
    )


def fill_in(text, marks, answer, duration=1):
    return QuestionCreateItem(
        question_text=text,
        type=QuestionType.FILLINTHEBLANK,
        marks=marks,
        duration=duration,
        answer=answer
    )


@pytest.fixture
def make_questions(db):
    async def _make(quiz_id, items):
        return await questions.create_questions(db, quiz_id, items)
    return _make


@pytest.fixture
async def scenario_quiz(make_lesson, make_quiz, make_questions):
    """Lesson worth 50 XP with a bound quiz of two MCQs (5 and 10 marks)"""
    lesson = await make_lesson(xp=50)
    quiz = await make_quiz(title="Europe", lesson_id=lesson.id)
    created = await make_questions(quiz.id, [
        mcq("Capital of France?", 5, "Paris", wrong=("Lyon", "Nice")),
        mcq("Capital of Italy?", 10, "Rome", wrong=("Milan",)),
    ])
    return {"lesson": lesson, "quiz": quiz, "questions": created}
