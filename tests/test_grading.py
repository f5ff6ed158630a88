import pytest

from lms_quiz.backend.database.models import Question, QuestionOption, QuestionType
from lms_quiz.backend.services.aggregates import pass_marks_for
from lms_quiz.backend.services.grading import (
    calculate_percentage, correct_answer_for, grade_answer
)


def choice_question(options, question_type=QuestionType.MCQ, marks=5):
    return Question(
        id=1,
        question="Pick one",
        type=question_type,
        marks=marks,
        status=True,
        options=[
            QuestionOption(option=text, is_correct=is_correct, position=position)
            for position, (text, is_correct) in enumerate(options, start=1)
        ]
    )


def text_question(question_type, answer, marks=3):
    return Question(id=2, question="Fill in", type=question_type, marks=marks, answer=answer, status=True)


def test_mcq_exact_match_is_correct():
    question = choice_question([("Paris", True), ("Lyon", False)])

    graded = grade_answer(question, "Paris")

    assert graded.is_correct
    assert graded.obtained_marks == 5
    assert graded.total_marks == 5


@pytest.mark.parametrize("submitted", ["paris", " Paris", "Lyon", ["Paris"], None])
def test_mcq_mismatch_is_incorrect(submitted):
    question = choice_question([("Paris", True), ("Lyon", False)])

    graded = grade_answer(question, submitted)

    assert not graded.is_correct
    assert graded.obtained_marks == 0


def test_mcq_without_correct_option_never_raises():
    question = choice_question([("A", False), ("B", False)])

    assert not grade_answer(question, "A").is_correct
    assert correct_answer_for(question) == "N/A"


def test_mcq_uses_first_correct_option():
    question = choice_question([("A", False), ("B", True), ("C", True)])

    assert grade_answer(question, "B").is_correct
    assert not grade_answer(question, "C").is_correct
    assert correct_answer_for(question) == "B"


def test_true_false():
    question = choice_question([("True", False), ("False", True)], QuestionType.TRUEORFALSE)

    assert grade_answer(question, "False").is_correct
    assert not grade_answer(question, "True").is_correct


def test_fill_in_the_blank_ignores_case_and_surrounding_space():
    question = text_question(QuestionType.FILLINTHEBLANK, "Paris")

    assert grade_answer(question, "  paris ").is_correct
    assert not grade_answer(question, "London").is_correct
    assert correct_answer_for(question) == "Paris"


def test_fill_in_the_blank_joins_list_answers():
    question = text_question(QuestionType.FILLINTHEBLANK, "red,green")

    assert grade_answer(question, ["Red", "green"]).is_correct
    assert not grade_answer(question, ["red", " green"]).is_correct


def test_fill_in_the_blank_without_canonical_answer():
    question = text_question(QuestionType.FILLINTHEBLANK, None)

    assert not grade_answer(question, "").is_correct
    assert correct_answer_for(question) == "N/A"


@pytest.mark.parametrize("question_type", [QuestionType.SHORTANSWER, QuestionType.DESCRIPTIVE])
def test_open_ended_types_are_never_auto_credited(question_type):
    question = text_question(question_type, "Photosynthesis")

    graded = grade_answer(question, "Photosynthesis")

    assert not graded.is_correct
    assert graded.obtained_marks == 0
    assert graded.total_marks == 3


def test_grading_does_not_touch_the_question():
    question = choice_question([("Paris", True), ("Lyon", False)])

    first = grade_answer(question, "Paris")
    second = grade_answer(question, "Paris")

    assert first == second
    assert [opt.is_correct for opt in question.options] == [True, False]
    assert question.marks == 5


def test_percentage_guards_zero_total():
    assert calculate_percentage(0, 0) == 0
    assert calculate_percentage(5, 15) == pytest.approx(100 / 3)
    assert calculate_percentage(15, 15) == 100


@pytest.mark.parametrize(
    "total, expected",
    [(0, 0), (1, 1), (5, 2), (10, 4), (15, 6), (35, 14), (100, 40), (101, 41)]
)
def test_pass_marks_are_forty_percent_rounded_up(total, expected):
    assert pass_marks_for(total) == expected
