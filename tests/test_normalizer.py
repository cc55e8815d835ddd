from __future__ import annotations

import itertools
import random

import pytest

from app.modules.questions.fallback import fallback_records
from app.modules.questions.models import (
    MCQ,
    Category,
    FillInBlanksQuestion,
    Flashcard,
    MatchingQuestion,
    QuestionSet,
    TrueFalseQuestion,
)
from app.modules.questions.normalizer import (
    CategoryNormalizer,
    valid_fill_in_blanks,
    valid_mcq,
)
from app.modules.questions.schema import count_blanks, fill_blanks


@pytest.mark.parametrize("seed", range(20))
def test_mcq_shuffle_keeps_correct_option(seed):
    normalizer = CategoryNormalizer(random.Random(seed))
    mcq = MCQ(question="Capital of France?", options=["Paris", "London", "Berlin", "Rome"])
    shuffled = normalizer.shuffle_mcq(mcq)
    assert shuffled.options[shuffled.correct_answer] == "Paris"
    assert sorted(shuffled.options) == sorted(mcq.options)


@pytest.mark.parametrize("seed", range(20))
def test_matching_shuffle_keeps_pairs(seed):
    normalizer = CategoryNormalizer(random.Random(seed))
    q = MatchingQuestion(
        id=1,
        question="Match",
        left_items=["H2O", "NaCl", "CO2"],
        right_items=["salt", "carbon dioxide", "water"],
        correct_matches=[2, 0, 1],
    )
    shuffled = normalizer.shuffle_matching(q)
    for i in range(len(q.left_items)):
        assert (
            shuffled.right_items[shuffled.correct_matches[i]]
            == q.right_items[q.correct_matches[i]]
        )


def _tf(values):
    return [
        TrueFalseQuestion(id=i, question=f"S{i}", is_true=v, explanation=f"E{i}")
        for i, v in enumerate(values, 1)
    ]


def _longest_run(values):
    return max(len(list(group)) for _, group in itertools.groupby(values))


@pytest.mark.parametrize(
    "values",
    [
        [True] * 6 + [False] * 2,
        [False] * 3 + [True] * 3,
        [True, True, True, True, False],
        [True] * 4,
    ],
)
def test_true_false_balancing_only_reorders(values):
    questions = _tf(values)
    balanced = CategoryNormalizer.balance_true_false(questions)
    assert sorted(balanced, key=lambda q: q.id) == questions
    trues, falses = values.count(True), values.count(False)
    major, minor = max(trues, falses), min(trues, falses)
    assert _longest_run([q.is_true for q in balanced]) == -(-major // (minor + 1))


def test_fill_in_blanks_pads_missing_answers():
    q = FillInBlanksQuestion(
        id="fib-1",
        question="Fill",
        text_with_blanks="[BLANK_3] then [BLANK_7] then [BLANK_9]",
        correct_answers=["one"],
    )
    repaired = CategoryNormalizer.repair_fill_in_blanks(q)
    assert repaired.text_with_blanks == "[BLANK_0] then [BLANK_1] then [BLANK_2]"
    assert repaired.correct_answers == ["one", "???", "???"]
    assert repaired.complete_text == "one then ??? then ???"
    assert valid_fill_in_blanks(repaired)


def test_fill_in_blanks_truncates_extra_answers():
    q = FillInBlanksQuestion(
        id="fib-1",
        question="Fill",
        text_with_blanks="A [BLANK_0] B",
        correct_answers=["x", "y", "z"],
        complete_text="stale",
    )
    repaired = CategoryNormalizer.repair_fill_in_blanks(q)
    assert repaired.correct_answers == ["x"]
    assert repaired.complete_text == "A x B"


def test_normalized_output_satisfies_properties(normalizer):
    batch = QuestionSet(
        flashcards=[Flashcard(question=" Q ", answer=" A ")],
        mcqs=[MCQ(question="Q", options=["a", "b", "c"], correct_answer=2)],
        matching_questions=[
            MatchingQuestion(
                id=1,
                question="M",
                left_items=["l1", "l2"],
                right_items=["r1", "r2"],
                correct_matches=[0, 1],
            )
        ],
        true_false_questions=_tf([True, False]),
        fill_in_blanks_questions=[
            FillInBlanksQuestion(
                id="fib-1",
                question="F",
                text_with_blanks="[BLANK_0] and [BLANK_1]",
                correct_answers=["a"],
            )
        ],
    )
    result, fallbacks = normalizer.normalize(batch)
    assert fallbacks == []
    assert result.flashcards[0].question == "Q"
    assert result.flashcards[0].front == "Q"
    assert result.mcqs[0].options[result.mcqs[0].correct_answer] == "c"
    for q in result.fill_in_blanks_questions:
        assert count_blanks(q.text_with_blanks) == len(q.correct_answers)
        assert fill_blanks(q.text_with_blanks, q.correct_answers) == q.complete_text


def test_invalid_batch_is_replaced_wholesale(normalizer):
    good = MCQ(question="Good", options=["a", "b"], correct_answer=1)
    bad = MCQ(question="Bad", options=["only"], correct_answer=0)
    records, used_fallback = normalizer.normalize_category(Category.MCQS, [good, bad])
    assert used_fallback
    assert [r.question for r in records] == [r.question for r in fallback_records(Category.MCQS)]
    assert valid_mcq(records[0])


def test_out_of_range_answer_is_invalid():
    assert not valid_mcq(MCQ(question="Q", options=["a", "b"], correct_answer=2))


def test_empty_category_falls_back(normalizer):
    result, fallbacks = normalizer.normalize(QuestionSet())
    assert set(fallbacks) == set(Category)
    assert all(result.counts()[c] >= 1 for c in Category)
