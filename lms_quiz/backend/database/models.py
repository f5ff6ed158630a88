"""
LMS Quiz Engine
SQLAlchemy Database Models
"""

import enum
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean, Column, DateTime, Integer, String, Text, Float,
    ForeignKey, JSON, Enum, UniqueConstraint, Index, CheckConstraint
)
from sqlalchemy.orm import declarative_base, relationship

# Base class for all models
Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


# Enums
class QuestionType(enum.Enum):
    MCQ = "MCQ"
    TRUEORFALSE = "TRUEORFALSE"
    FILLINTHEBLANK = "FILLINTHEBLANK"
    SHORTANSWER = "SHORTANSWER"
    DESCRIPTIVE = "DESCRIPTIVE"

    @property
    def is_choice(self) -> bool:
        return self in (QuestionType.MCQ, QuestionType.TRUEORFALSE)


class ContentLevel(enum.Enum):
    COURSE = "COURSE"
    SUBJECT = "SUBJECT"
    MODULE = "MODULE"
    CHAPTER = "CHAPTER"
    LESSON = "LESSON"


class XPSource(enum.Enum):
    LESSON_COMPLETION = "LESSON_COMPLETION"
    QUIZ_PASS = "QUIZ_PASS"


# Base model with common fields
class BaseModel(Base):
    __abstract__ = True

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


# Identity mirror (read-only; owned by the identity service)
class User(BaseModel):
    __tablename__ = "users"

    email = Column(String(255), unique=True, nullable=False, index=True)
    first_name = Column(String(100))
    last_name = Column(String(100))
    is_active = Column(Boolean, default=True, nullable=False)

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)


# Catalog Models (read by the engine, owned by the catalog subsystem)
class Lesson(BaseModel):
    __tablename__ = "lessons"

    title = Column(String(255), nullable=False)
    slug = Column(String(255), unique=True, nullable=False)
    no_of_xp_points = Column(Integer, default=0, nullable=False)
    status = Column(Boolean, default=True, nullable=False)


# Quiz and Assessment Models
class Quiz(BaseModel):
    __tablename__ = "quizzes"

    title = Column(String(255), nullable=False)
    slug = Column(String(255), unique=True, nullable=False, index=True)
    description = Column(Text)
    # Derived from active questions; only written by the aggregate maintainer
    total_marks = Column(Integer, default=0, nullable=False)
    pass_marks = Column(Integer, default=0, nullable=False)
    time_limit = Column(Integer, default=0, nullable=False)  # minutes
    status = Column(Boolean, default=True, nullable=False)

    # Relationships
    questions = relationship(
        "Question",
        back_populates="quiz",
        order_by="Question.id",
        cascade="all, delete-orphan"
    )
    attachment = relationship(
        "QuizAttachment",
        back_populates="quiz",
        uselist=False,
        cascade="all, delete-orphan"
    )
    attempts = relationship("QuizAttempt", back_populates="quiz")


class QuizAttachment(BaseModel):
    """One-to-one binding of a quiz to a single content-hierarchy level"""
    __tablename__ = "quiz_attachments"

    quiz_id = Column(Integer, ForeignKey("quizzes.id", ondelete="CASCADE"), unique=True, nullable=False)
    level = Column(Enum(ContentLevel), nullable=False)
    content_id = Column(Integer, nullable=False)

    # Relationships
    quiz = relationship("Quiz", back_populates="attachment")

    # Constraints
    __table_args__ = (
        Index("idx_quiz_attachment_level_content", "level", "content_id"),
    )


class Question(BaseModel):
    __tablename__ = "questions"

    quiz_id = Column(Integer, ForeignKey("quizzes.id"), nullable=False, index=True)
    question = Column(Text, nullable=False)
    type = Column(Enum(QuestionType), nullable=False)
    marks = Column(Integer, nullable=False)
    duration = Column(Integer, default=0, nullable=False)  # minutes
    answer = Column(Text)  # Canonical answer for non-choice types
    status = Column(Boolean, default=True, nullable=False)

    # Relationships
    quiz = relationship("Quiz", back_populates="questions")
    options = relationship(
        "QuestionOption",
        back_populates="question",
        order_by="QuestionOption.position",
        cascade="all, delete-orphan",
        lazy="selectin"
    )

    # Constraints
    __table_args__ = (
        Index("idx_question_quiz_status", "quiz_id", "status"),
        CheckConstraint("marks > 0", name="positive_marks"),
        CheckConstraint("duration >= 0", name="non_negative_duration"),
    )


class QuestionOption(BaseModel):
    __tablename__ = "question_options"

    question_id = Column(Integer, ForeignKey("questions.id", ondelete="CASCADE"), nullable=False, index=True)
    option = Column(Text, nullable=False)
    is_correct = Column(Boolean, default=False, nullable=False)
    position = Column(Integer, default=0, nullable=False)

    # Relationships
    question = relationship("Question", back_populates="options")


class QuizAttempt(BaseModel):
    """Immutable record of one learner's graded submission"""
    __tablename__ = "quiz_attempts"

    user_id = Column(Integer, nullable=False, index=True)
    quiz_id = Column(Integer, ForeignKey("quizzes.id"), nullable=False)
    obtained_marks = Column(Integer, default=0, nullable=False)
    total_marks = Column(Integer, nullable=False)  # Snapshot at grading time
    pass_marks = Column(Integer, nullable=False)  # Snapshot at grading time
    correct_answers = Column(Integer, default=0, nullable=False)
    total_questions = Column(Integer, default=0, nullable=False)
    percentage = Column(Float, default=0.0, nullable=False)
    passed = Column(Boolean, default=False, nullable=False)
    time_taken = Column(Integer, default=0, nullable=False)  # seconds

    # Relationships
    quiz = relationship("Quiz", back_populates="attempts")
    answers = relationship(
        "AttemptAnswer",
        back_populates="attempt",
        order_by="AttemptAnswer.position",
        cascade="all, delete-orphan",
        lazy="selectin"
    )

    # Constraints
    __table_args__ = (
        UniqueConstraint("user_id", "quiz_id", name="_user_quiz_attempt_uc"),
        Index("idx_attempt_quiz_score", "quiz_id", "obtained_marks"),
    )


class AttemptAnswer(BaseModel):
    __tablename__ = "attempt_answers"

    attempt_id = Column(Integer, ForeignKey("quiz_attempts.id", ondelete="CASCADE"), nullable=False, index=True)
    question_id = Column(Integer, ForeignKey("questions.id"), nullable=False)
    position = Column(Integer, nullable=False)
    submitted_answer = Column(JSON)
    obtained_marks = Column(Integer, default=0, nullable=False)
    total_marks = Column(Integer, nullable=False)  # Question marks snapshot
    is_correct = Column(Boolean, default=False, nullable=False)
    time_spent = Column(Integer)  # seconds

    # Relationships
    attempt = relationship("QuizAttempt", back_populates="answers")
    question = relationship("Question")

    # Constraints
    __table_args__ = (
        UniqueConstraint("attempt_id", "question_id", name="_attempt_question_uc"),
    )


# Gamification Models
class UserXPEarned(BaseModel):
    """XP ledger; the single source of truth for "already rewarded"."""
    __tablename__ = "user_xp_earned"

    user_id = Column(Integer, nullable=False, index=True)
    lesson_id = Column(Integer, ForeignKey("lessons.id"), nullable=True)
    quiz_id = Column(Integer, ForeignKey("quizzes.id"), nullable=True)
    xp_points = Column(Integer, default=0, nullable=False)
    source = Column(Enum(XPSource), nullable=False)

    # Constraints
    __table_args__ = (
        # NULL lesson ids never collide, so only lesson rewards are deduplicated
        UniqueConstraint("user_id", "lesson_id", name="_user_lesson_xp_uc"),
        Index("idx_xp_user_quiz", "user_id", "quiz_id"),
    )


# Export all models
__all__ = [
    "Base", "BaseModel",
    "User", "Lesson",
    "Quiz", "QuizAttachment", "Question", "QuestionOption",
    "QuizAttempt", "AttemptAnswer", "UserXPEarned",
    # Enums
    "QuestionType", "ContentLevel", "XPSource",
]
