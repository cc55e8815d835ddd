"""Answer checking for generated questions."""

from __future__ import annotations

from typing import Sequence

from app.modules.questions.models import MCQ, FillInBlanksQuestion, MatchingQuestion
from app.modules.questions.schema import MISSING_ANSWER


def _normalize(answer: str) -> str:
    return answer.strip().lower()


def blank_answer_matches(user_answer: str, correct_answer: str) -> bool:
    """Case-insensitive match; ``correct_answer`` may list ``|``-separated alternatives."""
    if correct_answer == MISSING_ANSWER:
        return False
    given = _normalize(user_answer)
    if not given:
        return False
    expected = _normalize(correct_answer)
    if given == expected:
        return True
    return given in (alt.strip() for alt in expected.split("|"))


def check_fill_in_blanks_answers(
    question: FillInBlanksQuestion, user_answers: Sequence[str]
) -> list[bool]:
    """One result per blank; blanks with no user answer are wrong."""
    return [
        i < len(user_answers) and blank_answer_matches(user_answers[i], correct)
        for i, correct in enumerate(question.correct_answers)
    ]


def check_mcq_answer(question: MCQ, selected: int) -> bool:
    return selected == question.correct_answer


def check_matching_answers(
    question: MatchingQuestion, user_matches: Sequence[int]
) -> list[bool]:
    """One result per left item: whether the chosen right index is its pair."""
    return [
        i < len(user_matches) and user_matches[i] == expected
        for i, expected in enumerate(question.correct_matches)
    ]
