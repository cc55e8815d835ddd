"""Declarative field layout for each question category.

The prompt builder renders its output-format directive from these descriptors
and the tolerant scanner compiles its patterns from the same descriptors, so
the field names the model is asked for and the ones the scanner searches for
cannot drift apart.
"""

from __future__ import annotations

import itertools
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any

from app.modules.questions.models import Category


class FieldKind(str, Enum):
    STRING = "string"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    STRING_LIST = "string_list"
    INTEGER_LIST = "integer_list"


class FieldRole(str, Enum):
    # Part of the adjacent key/value run a record must contain to be usable
    REQUIRED = "required"
    # Scanned when present at its position in the run, tolerated when absent
    OPTIONAL = "optional"
    # Requested from the model but ignored by the scanner
    PROMPT_ONLY = "prompt_only"


@dataclass(frozen=True)
class FieldSpec:
    name: str
    kind: FieldKind
    example: Any
    role: FieldRole = FieldRole.REQUIRED

    @property
    def scanned(self) -> bool:
        return self.role is not FieldRole.PROMPT_ONLY


@dataclass(frozen=True)
class CategorySchema:
    category: Category
    # Used in the numbered "create the following" list of the prompt
    label: str
    fields: tuple[FieldSpec, ...]
    # Extra constraints spelled out to the model below the format example
    rules: tuple[str, ...] = ()

    @property
    def scan_fields(self) -> tuple[FieldSpec, ...]:
        return tuple(f for f in self.fields if f.scanned)

    def example_record(self) -> dict[str, Any]:
        return {f.name: f.example for f in self.fields}


BLANK_TOKEN = "[BLANK_{index}]"
BLANK_PATTERN = re.compile(r"\[BLANK_(\d+)\]")
# Stands in for answers the model did not supply
MISSING_ANSWER = "???"


def count_blanks(text: str) -> int:
    return len(BLANK_PATTERN.findall(text))


def fill_blanks(text: str, answers: list[str], missing: str = MISSING_ANSWER) -> str:
    """Substitute the i-th placeholder occurrence with ``answers[i]``."""
    position = itertools.count()

    def _sub(_: re.Match) -> str:
        i = next(position)
        return answers[i] if i < len(answers) else missing

    return BLANK_PATTERN.sub(_sub, text)


def renumber_blanks(text: str) -> str:
    """Rewrite placeholders as [BLANK_0], [BLANK_1], ... in reading order."""
    position = itertools.count()
    return BLANK_PATTERN.sub(
        lambda _: BLANK_TOKEN.format(index=next(position)), text
    )


FLASHCARDS = CategorySchema(
    category=Category.FLASHCARDS,
    label="Flashcards (question and answer pairs)",
    fields=(
        FieldSpec("question", FieldKind.STRING, "..."),
        FieldSpec("answer", FieldKind.STRING, "..."),
    ),
)

MCQS = CategorySchema(
    category=Category.MCQS,
    label="Multiple Choice Questions with 4 options each",
    fields=(
        FieldSpec("question", FieldKind.STRING, "..."),
        FieldSpec("options", FieldKind.STRING_LIST, ["...", "...", "...", "..."]),
        FieldSpec("correctAnswer", FieldKind.INTEGER, 0),
    ),
    rules=("correctAnswer is the 0-based index of the correct entry in options.",),
)

MATCHING = CategorySchema(
    category=Category.MATCHING,
    label="Matching Questions (with at least 4 pairs to match)",
    fields=(
        FieldSpec("id", FieldKind.INTEGER, 1, FieldRole.PROMPT_ONLY),
        FieldSpec("question", FieldKind.STRING, "..."),
        FieldSpec("leftItems", FieldKind.STRING_LIST, ["...", "...", "...", "..."]),
        FieldSpec("rightItems", FieldKind.STRING_LIST, ["...", "...", "...", "..."]),
        FieldSpec(
            "correctMatches", FieldKind.INTEGER_LIST, [0, 1, 2, 3], FieldRole.OPTIONAL
        ),
    ),
    rules=(
        "leftItems and rightItems have the same length.",
        "correctMatches[i] is the 0-based index in rightItems that matches leftItems[i].",
    ),
)

TRUE_FALSE = CategorySchema(
    category=Category.TRUE_FALSE,
    label="True/False Questions",
    fields=(
        FieldSpec("id", FieldKind.INTEGER, 1, FieldRole.PROMPT_ONLY),
        FieldSpec("question", FieldKind.STRING, "..."),
        FieldSpec("isTrue", FieldKind.BOOLEAN, True),
        FieldSpec("explanation", FieldKind.STRING, "...", FieldRole.OPTIONAL),
    ),
    rules=("isTrue is a JSON boolean (true or false), never a string.",),
)

FILL_IN_BLANKS = CategorySchema(
    category=Category.FILL_IN_BLANKS,
    label="Fill-in-the-blanks Questions",
    fields=(
        FieldSpec("id", FieldKind.STRING, "fib-1", FieldRole.PROMPT_ONLY),
        FieldSpec(
            "question", FieldKind.STRING, "Complete the sentence:", FieldRole.OPTIONAL
        ),
        FieldSpec(
            "textWithBlanks",
            FieldKind.STRING,
            "Text with [BLANK_0] and [BLANK_1] placeholders",
        ),
        FieldSpec("correctAnswers", FieldKind.STRING_LIST, ["answer1", "answer2"]),
        FieldSpec(
            "completeText",
            FieldKind.STRING,
            "Text with answer1 and answer2 placeholders",
            FieldRole.PROMPT_ONLY,
        ),
        FieldSpec(
            "explanation",
            FieldKind.STRING,
            "Explanation of the correct answers",
            FieldRole.PROMPT_ONLY,
        ),
        FieldSpec("difficulty", FieldKind.STRING, "easy", FieldRole.PROMPT_ONLY),
    ),
    rules=(
        "Mark each blank in textWithBlanks as [BLANK_0], [BLANK_1], ... in order.",
        "correctAnswers lists one answer per blank, in the same order.",
        "difficulty is one of easy, medium or hard.",
    ),
)

SCHEMAS: dict[Category, CategorySchema] = {
    s.category: s for s in (FLASHCARDS, MCQS, MATCHING, TRUE_FALSE, FILL_IN_BLANKS)
}
