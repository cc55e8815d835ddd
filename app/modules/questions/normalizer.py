"""Per-category post-processing of extracted questions.

Each category goes through shape repair, an all-or-nothing validation gate
(a batch that fails is replaced wholesale by the demo set) and presentation
shuffling. Shuffles only move answers around; index fields are remapped so
they keep pointing at the same text.
"""

from __future__ import annotations

import random
from typing import Callable, Optional

from app.core.logging import get_logger
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
from app.modules.questions.schema import (
    MISSING_ANSWER,
    count_blanks,
    fill_blanks,
    renumber_blanks,
)

logger = get_logger(__name__)


def valid_flashcard(card: Flashcard) -> bool:
    return bool(card.question.strip() and card.answer.strip())


def valid_mcq(mcq: MCQ) -> bool:
    return (
        bool(mcq.question.strip())
        and len(mcq.options) >= 2
        and 0 <= mcq.correct_answer < len(mcq.options)
    )


def valid_matching(q: MatchingQuestion) -> bool:
    if not q.question.strip() or not q.left_items or not q.right_items:
        return False
    if len(q.correct_matches) != len(q.left_items):
        return False
    return all(0 <= m < len(q.right_items) for m in q.correct_matches)


def valid_true_false(q: TrueFalseQuestion) -> bool:
    return bool(q.question.strip())


def valid_fill_in_blanks(q: FillInBlanksQuestion) -> bool:
    blanks = count_blanks(q.text_with_blanks)
    return (
        blanks >= 1
        and blanks == len(q.correct_answers)
        and q.complete_text == fill_blanks(q.text_with_blanks, q.correct_answers)
    )


VALIDATORS: dict[Category, Callable[[object], bool]] = {
    Category.FLASHCARDS: valid_flashcard,
    Category.MCQS: valid_mcq,
    Category.MATCHING: valid_matching,
    Category.TRUE_FALSE: valid_true_false,
    Category.FILL_IN_BLANKS: valid_fill_in_blanks,
}


class CategoryNormalizer:
    def __init__(self, rng: Optional[random.Random] = None) -> None:
        self.rng = rng or random.Random()

    def permutation(self, size: int) -> list[int]:
        order = list(range(size))
        self.rng.shuffle(order)
        return order

    def shuffle_mcq(self, mcq: MCQ) -> MCQ:
        order = self.permutation(len(mcq.options))
        return mcq.model_copy(
            update={
                "options": [mcq.options[i] for i in order],
                "correct_answer": order.index(mcq.correct_answer),
            }
        )

    def shuffle_matching(self, q: MatchingQuestion) -> MatchingQuestion:
        order = self.permutation(len(q.right_items))
        return q.model_copy(
            update={
                "right_items": [q.right_items[i] for i in order],
                "correct_matches": [order.index(m) for m in q.correct_matches],
            }
        )

    @staticmethod
    def balance_true_false(
        questions: list[TrueFalseQuestion],
    ) -> list[TrueFalseQuestion]:
        """Reorder so neither answer appears in long runs.

        The rarer answer is spread evenly through the more common one, giving
        the shortest possible longest run. Truth values are never changed.
        """
        trues = [q for q in questions if q.is_true]
        falses = [q for q in questions if not q.is_true]
        if not trues or not falses:
            return list(questions)
        major, minor = (trues, falses) if len(trues) >= len(falses) else (falses, trues)
        slots = len(minor) + 1
        base, extra = divmod(len(major), slots)
        ordered: list[TrueFalseQuestion] = []
        taken = 0
        for i in range(slots):
            size = base + (1 if i < extra else 0)
            ordered.extend(major[taken : taken + size])
            taken += size
            if i < len(minor):
                ordered.append(minor[i])
        return ordered

    @staticmethod
    def repair_fill_in_blanks(q: FillInBlanksQuestion) -> FillInBlanksQuestion:
        text = renumber_blanks(q.text_with_blanks)
        blanks = count_blanks(text)
        answers = list(q.correct_answers)
        if blanks != len(answers):
            logger.warning(
                "Question %s has %d blanks but %d answers",
                q.id,
                blanks,
                len(answers),
                extra={"category": Category.FILL_IN_BLANKS.value},
            )
            if blanks > len(answers):
                answers += [MISSING_ANSWER] * (blanks - len(answers))
            else:
                answers = answers[:blanks]
        return q.model_copy(
            update={
                "text_with_blanks": text,
                "correct_answers": answers,
                "complete_text": fill_blanks(text, answers),
            }
        )

    @staticmethod
    def normalize_flashcard(card: Flashcard) -> Flashcard:
        return Flashcard(question=card.question.strip(), answer=card.answer.strip())

    def _repair(self, category: Category, records: list) -> list:
        if category is Category.FLASHCARDS:
            return [self.normalize_flashcard(c) for c in records]
        if category is Category.FILL_IN_BLANKS:
            return [self.repair_fill_in_blanks(q) for q in records]
        if category is Category.MATCHING:
            for q in records:
                if q.inferred_matches:
                    logger.warning(
                        "Matching question %s had no correctMatches; assumed pairs in order",
                        q.id,
                        extra={"category": category.value},
                    )
        return list(records)

    def _present(self, category: Category, records: list) -> list:
        if category is Category.MCQS:
            return [self.shuffle_mcq(q) for q in records]
        if category is Category.MATCHING:
            return [self.shuffle_matching(q) for q in records]
        if category is Category.TRUE_FALSE:
            return self.balance_true_false(records)
        return records

    def normalize_category(self, category: Category, records: list) -> tuple[list, bool]:
        """Return presentable records and whether the demo set replaced them."""
        used_fallback = False
        repaired = self._repair(category, records)
        if not repaired:
            logger.warning(
                "No %s extracted; using demo set",
                category.value,
                extra={"category": category.value},
            )
            repaired, used_fallback = fallback_records(category), True
        elif not all(VALIDATORS[category](r) for r in repaired):
            logger.warning(
                "Validation failed for %s batch of %d; using demo set",
                category.value,
                len(repaired),
                extra={"category": category.value},
            )
            repaired, used_fallback = fallback_records(category), True
        return self._present(category, repaired), used_fallback

    def normalize_additional(self, category: Category, records: list) -> list:
        """Repair and present extra records, dropping invalid ones one by one.

        Unlike ``normalize_category`` no demo set is substituted.
        """
        repaired = self._repair(category, records)
        valid = [r for r in repaired if VALIDATORS[category](r)]
        if len(valid) < len(repaired):
            logger.warning(
                "Dropped %d invalid %s record(s)",
                len(repaired) - len(valid),
                category.value,
                extra={"category": category.value},
            )
        return self._present(category, valid)

    def normalize(self, questions: QuestionSet) -> tuple[QuestionSet, list[Category]]:
        lists: dict[Category, list] = {}
        fallbacks: list[Category] = []
        for category in Category:
            lists[category], used_fallback = self.normalize_category(
                category, questions.get(category)
            )
            if used_fallback:
                fallbacks.append(category)
        return QuestionSet.from_lists(lists), fallbacks
