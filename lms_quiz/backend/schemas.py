"""
LMS Quiz Engine
Request/response models (camelCase on the wire)
"""

from datetime import datetime
from typing import Any, Generic, List, Optional, Tuple, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .database.models import ContentLevel, QuestionType, XPSource

T = TypeVar("T")


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class ApiResponse(CamelModel, Generic[T]):
    status: bool = True
    message: str
    data: Optional[T] = None


# Question bank
class OptionIn(CamelModel):
    option: str = Field(..., min_length=1)
    is_correct: bool = False


class QuestionFields(CamelModel):
    question_text: str = Field(..., min_length=1)
    type: QuestionType
    marks: int = Field(..., ge=1, le=100)
    options: Optional[List[OptionIn]] = None
    answer: Optional[str] = None
    duration: int = Field(0, ge=0)  # minutes

    @field_validator("question_text")
    @classmethod
    def validate_question_text(cls, v):
        if not v.strip():
            raise ValueError("Question text is required")
        return v.strip()

    @model_validator(mode="after")
    def validate_options(self):
        if self.type.is_choice and self.options is not None:
            check_choice_options(self.type, self.options)
        return self


class QuestionCreateItem(QuestionFields):

    @model_validator(mode="after")
    def require_options_for_choice(self):
        if self.type.is_choice and not self.options:
            raise ValueError(f"{self.type.value} questions require options")
        return self


class QuestionCreateRequest(CamelModel):
    quiz_id: int = Field(..., ge=1)
    questions: List[QuestionCreateItem] = Field(..., min_length=1)


class QuestionUpdateRequest(QuestionFields):
    pass


def check_choice_options(question_type: QuestionType, options: List[OptionIn]) -> None:
    """Shape rules for MCQ / TRUEORFALSE option sets"""
    if question_type == QuestionType.TRUEORFALSE and len(options) != 2:
        raise ValueError("TRUE/FALSE questions must have exactly 2 options")
    if not options:
        raise ValueError(f"{question_type.value} questions require options")

    texts = [opt.option for opt in options]
    if len(set(texts)) != len(texts):
        raise ValueError("Option texts must be unique within a question")
    if not any(opt.is_correct for opt in options):
        raise ValueError("At least one option must be marked correct")


class OptionOut(CamelModel):
    id: int
    option: str
    is_correct: bool


class QuestionOut(CamelModel):
    id: int
    quiz_id: int
    question: str
    type: QuestionType
    marks: int
    duration: int
    answer: Optional[str] = None
    status: bool
    options: List[OptionOut] = []


# Quizzes
class QuizTarget(CamelModel):
    """Content level a quiz is attached to; at most one id is set"""
    course_id: Optional[int] = None
    subject_id: Optional[int] = None
    module_id: Optional[int] = None
    chapter_id: Optional[int] = None
    lesson_id: Optional[int] = None

    def targets(self) -> List[Tuple[ContentLevel, int]]:
        return [
            (level, value) for level, value in (
                (ContentLevel.COURSE, self.course_id),
                (ContentLevel.SUBJECT, self.subject_id),
                (ContentLevel.MODULE, self.module_id),
                (ContentLevel.CHAPTER, self.chapter_id),
                (ContentLevel.LESSON, self.lesson_id),
            )
            if value is not None
        ]

    def attachment(self) -> Optional[Tuple[ContentLevel, int]]:
        targets = self.targets()
        return targets[0] if targets else None


class QuizCreateRequest(QuizTarget):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v):
        if not v.strip():
            raise ValueError("Title is required")
        return v.strip()

    @model_validator(mode="after")
    def validate_single_level(self):
        # Attach quiz to ONE level only
        if len(self.targets()) != 1:
            raise ValueError(
                "Quiz must be attached to exactly one of course, subject, module, chapter or lesson"
            )
        return self


class QuizUpdateRequest(QuizTarget):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v):
        if v is not None and not v.strip():
            raise ValueError("Title cannot be blank")
        return v.strip() if v else v

    @model_validator(mode="after")
    def validate_single_level(self):
        if len(self.targets()) > 1:
            raise ValueError(
                "Quiz can be moved to only one of course, subject, module, chapter or lesson"
            )
        return self


class QuizOut(CamelModel):
    id: int
    title: str
    slug: str
    description: Optional[str] = None
    total_marks: int
    pass_marks: int
    time_limit: int
    status: bool
    level: Optional[ContentLevel] = None
    content_id: Optional[int] = None


class LearnerOption(CamelModel):
    option: str


class LearnerQuestion(CamelModel):
    id: int
    question: str
    type: QuestionType
    marks: int
    options: List[LearnerOption] = []


class LearnerQuiz(QuizOut):
    questions: List[LearnerQuestion] = []


# Submission
class AnswerSubmission(CamelModel):
    question_id: int
    answer: Union[str, List[str]]
    type: Optional[str] = None  # echoed by clients, grading uses the stored type
    time_spent: Optional[int] = Field(None, ge=0)


class QuizSubmissionRequest(CamelModel):
    answers: List[AnswerSubmission]
    time_taken: Optional[int] = Field(None, ge=0)  # seconds


class AnswerBreakdown(CamelModel):
    question_id: int
    question: str
    submitted_answer: Any = None
    is_correct: bool
    obtained_marks: int
    total_marks: int
    correct_answer: str


class RewardOutcome(CamelModel):
    status: str  # awarded | already_rewarded | not_applicable | pending
    lesson_id: Optional[int] = None
    xp_awarded: int = 0
    message: str


class AttemptResult(CamelModel):
    attempt_id: int
    quiz_id: int
    obtained_marks: int
    total_marks: int
    pass_marks: int
    correct_answers: int
    total_questions: int
    percentage: float
    passed: bool
    time_taken: int
    answers: List[AnswerBreakdown] = []
    reward: Optional[RewardOutcome] = None


# Attempt/report read models
class AttemptAnswerOut(CamelModel):
    question_id: int
    question: Optional[str] = None
    submitted_answer: Any = None
    is_correct: bool
    obtained_marks: int
    total_marks: int
    time_spent: Optional[int] = None
    correct_answer: Optional[str] = None


class AttemptDetail(CamelModel):
    id: int
    quiz_id: int
    quiz_title: Optional[str] = None
    obtained_marks: int
    total_marks: int
    pass_marks: int
    correct_answers: int
    total_questions: int
    percentage: float
    passed: bool
    time_taken: int
    created_at: datetime
    answers: List[AttemptAnswerOut] = []


class LeaderboardEntry(CamelModel):
    rank: int
    user_id: int
    name: Optional[str] = None
    obtained_marks: int
    total_marks: int
    percentage: float
    passed: bool
    time_taken: int


class Leaderboard(CamelModel):
    quiz_id: int
    entries: List[LeaderboardEntry] = []
    user_position: Optional[int] = None
    total_participants: int = 0


class QuizPerformance(CamelModel):
    quiz_id: int
    quiz_title: str
    obtained_marks: int
    total_marks: int
    percentage: float
    passed: bool
    attempted_at: datetime


class PerformanceReport(CamelModel):
    user_id: int
    attempts: int
    passed: int
    failed: int
    average_percentage: float
    total_xp: int
    quizzes: List[QuizPerformance] = []


class XPEntry(CamelModel):
    id: int
    lesson_id: Optional[int] = None
    quiz_id: Optional[int] = None
    xp_points: int
    source: XPSource
    created_at: datetime


class XPLedger(CamelModel):
    user_id: int
    total_xp: int
    entries: List[XPEntry] = []
