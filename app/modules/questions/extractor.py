"""Incremental extraction of question records from a streamed model response.

``StreamingExtractor.extract`` is called with the cumulative response text
after every received delta. It returns, per category, every usable record
found so far. Calling it again with the same buffer returns the same records.

Work already done is not repeated: for each category, records followed by a
later match can no longer change (the buffer only grows), so they are kept
and the next scan resumes after them. Only the last match of each category
is rebuilt on every call, since trailing optional fields may still arrive. A
category with no match yet resumes at the last occurrence of its leading key.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from app.core.logging import get_logger
from app.modules.questions.models import (
    MCQ,
    Category,
    FillInBlanksQuestion,
    Flashcard,
    MatchingQuestion,
    QuestionSet,
    TrueFalseQuestion,
)
from app.modules.questions.scanner import TolerantScanner
from app.modules.questions.schema import SCHEMAS, fill_blanks

logger = get_logger(__name__)

DEFAULT_FILL_IN_PROMPT = "Complete the sentence:"


def _flashcard(values: dict[str, Any], _: int) -> Optional[Flashcard]:
    if not values["question"] or not values["answer"]:
        return None
    return Flashcard(question=values["question"], answer=values["answer"])


def _mcq(values: dict[str, Any], _: int) -> Optional[MCQ]:
    # Fewer options than asked for is still a record; the validator decides
    if not values["question"] or not values["options"]:
        return None
    return MCQ(
        question=values["question"],
        options=values["options"],
        correct_answer=values["correctAnswer"],
    )


def _matching(values: dict[str, Any], ordinal: int) -> Optional[MatchingQuestion]:
    left, right = values["leftItems"], values["rightItems"]
    if not values["question"] or not left or not right:
        return None
    matches = values["correctMatches"]
    inferred = not matches
    if inferred:
        # Pair items positionally; extra left items have nothing to match
        size = min(len(left), len(right))
        left = left[:size]
        matches = list(range(size))
    return MatchingQuestion(
        id=ordinal,
        question=values["question"],
        left_items=left,
        right_items=right,
        correct_matches=matches,
        inferred_matches=inferred,
    )


def _true_false(values: dict[str, Any], ordinal: int) -> Optional[TrueFalseQuestion]:
    if not values["question"]:
        return None
    return TrueFalseQuestion(
        id=ordinal,
        question=values["question"],
        is_true=values["isTrue"],
        explanation=values["explanation"] or None,
    )


def _fill_in_blanks(
    values: dict[str, Any], ordinal: int
) -> Optional[FillInBlanksQuestion]:
    text, answers = values["textWithBlanks"], values["correctAnswers"]
    if not text or not answers:
        return None
    return FillInBlanksQuestion(
        id=f"fib-{ordinal}",
        question=values["question"] or DEFAULT_FILL_IN_PROMPT,
        text_with_blanks=text,
        correct_answers=answers,
        complete_text=fill_blanks(text, answers),
    )


_BUILDERS: dict[Category, Callable[[dict[str, Any], int], Any]] = {
    Category.FLASHCARDS: _flashcard,
    Category.MCQS: _mcq,
    Category.MATCHING: _matching,
    Category.TRUE_FALSE: _true_false,
    Category.FILL_IN_BLANKS: _fill_in_blanks,
}

_SCANNERS: dict[Category, TolerantScanner] = {
    c: TolerantScanner(schema) for c, schema in SCHEMAS.items()
}
_FINAL_SCANNERS: dict[Category, TolerantScanner] = {
    c: TolerantScanner(schema, final=True) for c, schema in SCHEMAS.items()
}


@dataclass
class _Cursor:
    # Buffer position right after the last settled match
    offset: int = 0
    settled: list = field(default_factory=list)


class StreamingExtractor:
    """Stateful extractor for one model stream.

    Pass ``final=True`` when the buffer will not grow any more.
    """

    def __init__(self, *, final: bool = False) -> None:
        self._buffer = ""
        self._cursors = {c: _Cursor() for c in Category}
        self._scanners = _FINAL_SCANNERS if final else _SCANNERS

    @property
    def buffer(self) -> str:
        return self._buffer

    def reset(self) -> None:
        self._buffer = ""
        self._cursors = {c: _Cursor() for c in Category}

    def feed(self, delta: str) -> QuestionSet:
        """Append ``delta`` to the buffer and extract."""
        return self.extract(self._buffer + delta)

    def extract(self, buffer: str) -> QuestionSet:
        if not buffer.startswith(self._buffer):
            # Not a continuation of what we saw; start over
            self.reset()
        self._buffer = buffer
        found = {c: self._scan_category(c, buffer) for c in Category}
        logger.debug(
            "Extracted %s from %d chars",
            ", ".join(f"{c.value}={len(r)}" for c, r in found.items()),
            len(buffer),
        )
        return QuestionSet.from_lists(found)

    def _scan_category(self, category: Category, buffer: str) -> list:
        cursor = self._cursors[category]
        scanner = self._scanners[category]
        build = _BUILDERS[category]
        pending: list[tuple[Any, int]] = []
        ordinal = len(cursor.settled)
        try:
            for fragment in scanner.scan(buffer, cursor.offset):
                ordinal += 1
                try:
                    record = build(fragment.values, ordinal)
                except (ValueError, TypeError) as e:
                    logger.debug(
                        "Skipping malformed %s candidate at %d: %s",
                        category.value,
                        fragment.start,
                        e,
                        extra={"category": category.value},
                    )
                    record = None
                if record is None:
                    ordinal -= 1
                pending.append((record, fragment.end))
        except Exception:  # noqa: BLE001
            # Extraction must never break a running stream
            logger.exception(
                "Scanner failed for %s", category.value, extra={"category": category.value}
            )
            return list(cursor.settled)

        if not pending:
            # Nothing before the last occurrence of the leading key can still match
            cursor.offset = scanner.restart_point(buffer, cursor.offset)
            return list(cursor.settled)
        for record, end in pending[:-1]:
            if record is not None:
                cursor.settled.append(record)
            cursor.offset = end
        tail, _ = pending[-1]
        return cursor.settled + ([tail] if tail is not None else [])


def extract_questions(buffer: str) -> QuestionSet:
    """One-shot extraction over a complete (or abandoned) response."""
    return StreamingExtractor(final=True).extract(buffer)
