from __future__ import annotations

from app.modules.questions.grading import (
    blank_answer_matches,
    check_fill_in_blanks_answers,
    check_matching_answers,
    check_mcq_answer,
)
from app.modules.questions.models import MCQ, FillInBlanksQuestion, MatchingQuestion


def test_blank_matching_is_case_and_space_insensitive():
    assert blank_answer_matches("  Paris ", "paris")
    assert blank_answer_matches("color", "colour | color")
    assert not blank_answer_matches("", "paris")
    assert not blank_answer_matches("???", "???")


def test_fill_in_blanks_answers_are_checked_per_blank():
    q = FillInBlanksQuestion(
        id="fib-1",
        question="Fill",
        text_with_blanks="[BLANK_0] is the capital of [BLANK_1]",
        correct_answers=["Paris", "France"],
    )
    assert check_fill_in_blanks_answers(q, ["paris", "Spain"]) == [True, False]
    assert check_fill_in_blanks_answers(q, ["Paris"]) == [True, False]


def test_mcq_answer():
    q = MCQ(question="Q", options=["a", "b"], correct_answer=1)
    assert check_mcq_answer(q, 1)
    assert not check_mcq_answer(q, 0)


def test_matching_answers():
    q = MatchingQuestion(
        id=1,
        question="M",
        left_items=["a", "b", "c"],
        right_items=["x", "y", "z"],
        correct_matches=[2, 0, 1],
    )
    assert check_matching_answers(q, [2, 1, 1]) == [True, False, True]
