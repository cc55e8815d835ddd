"""Pydantic models for generated study questions.

Records use snake_case attributes and camelCase aliases so that the JSON on
the wire matches what the model is prompted to produce (``correctAnswer``,
``leftItems`` ...). Records are frozen: the normalizer derives new instances
with ``model_copy(update=...)`` instead of mutating.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    model_validator,
)
from pydantic.alias_generators import to_camel


class Category(str, Enum):
    FLASHCARDS = "flashcards"
    MCQS = "mcqs"
    MATCHING = "matchingQuestions"
    TRUE_FALSE = "trueFalseQuestions"
    FILL_IN_BLANKS = "fillInBlanksQuestions"

    @property
    def attr(self) -> str:
        """Attribute name on ``QuestionSet`` holding this category."""
        return _CATEGORY_ATTRS[self]

    @property
    def quantity_key(self) -> str:
        """Attribute name on ``Quantities`` holding this category's count."""
        return _QUANTITY_KEYS[self]

    @property
    def record_type(self) -> type:
        return _RECORD_TYPES[self]

    @classmethod
    def parse(cls, value: Any) -> "Category":
        """Accept a result key (``trueFalseQuestions``) or a quantity key (``trueFalse``)."""
        if isinstance(value, cls):
            return value
        for category in cls:
            if value in (category.value, to_camel(category.quantity_key)):
                return category
        raise ValueError(f"Unknown question category: {value!r}")


_CATEGORY_ATTRS = {
    Category.FLASHCARDS: "flashcards",
    Category.MCQS: "mcqs",
    Category.MATCHING: "matching_questions",
    Category.TRUE_FALSE: "true_false_questions",
    Category.FILL_IN_BLANKS: "fill_in_blanks_questions",
}

_QUANTITY_KEYS = {
    Category.FLASHCARDS: "flashcards",
    Category.MCQS: "mcqs",
    Category.MATCHING: "matching",
    Category.TRUE_FALSE: "true_false",
    Category.FILL_IN_BLANKS: "fill_in_blanks",
}


class _Record(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class Flashcard(_Record):
    """Question/answer card; ``front`` mirrors ``question`` for older consumers."""

    question: str
    answer: str

    @model_validator(mode="before")
    @classmethod
    def _accept_front_back(cls, data: Any) -> Any:
        if isinstance(data, dict):
            data = dict(data)
            if not data.get("question") and data.get("front"):
                data["question"] = data["front"]
            if not data.get("answer") and data.get("back"):
                data["answer"] = data["back"]
            data.pop("front", None)
            data.pop("back", None)
        return data

    @computed_field
    @property
    def front(self) -> str:
        return self.question


class MCQ(_Record):
    question: str
    options: list[str] = Field(default_factory=list)
    correct_answer: int = 0


class MatchingQuestion(_Record):
    id: int
    question: str
    left_items: list[str] = Field(default_factory=list)
    right_items: list[str] = Field(default_factory=list)
    # correct_matches[i] is the index into right_items matching left_items[i]
    correct_matches: list[int] = Field(default_factory=list)
    # True when the pairs were not in the model output and identity was assumed
    inferred_matches: bool = Field(default=False, exclude=True)


class TrueFalseQuestion(_Record):
    id: int
    question: str
    is_true: bool
    explanation: Optional[str] = None


class FillInBlanksQuestion(_Record):
    id: str
    question: str
    text_with_blanks: str
    correct_answers: list[str] = Field(default_factory=list)
    complete_text: str = ""
    explanation: Optional[str] = None
    difficulty: Optional[Literal["easy", "medium", "hard"]] = None


class Quantities(BaseModel):
    """Requested number of items per category."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    flashcards: int = Field(default=5, ge=1)
    mcqs: int = Field(default=5, ge=1)
    matching: int = Field(default=2, ge=1)
    true_false: int = Field(default=5, ge=1)
    fill_in_blanks: int = Field(default=5, ge=1)

    def for_category(self, category: Category) -> int:
        return getattr(self, category.quantity_key)


class QuestionSet(BaseModel):
    """One list of records per category."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    flashcards: list[Flashcard] = Field(default_factory=list)
    mcqs: list[MCQ] = Field(default_factory=list)
    matching_questions: list[MatchingQuestion] = Field(default_factory=list)
    true_false_questions: list[TrueFalseQuestion] = Field(default_factory=list)
    fill_in_blanks_questions: list[FillInBlanksQuestion] = Field(
        default_factory=list
    )

    def get(self, category: Category) -> list:
        return getattr(self, category.attr)

    def counts(self) -> dict[Category, int]:
        return {c: len(self.get(c)) for c in Category}

    def replace(self, category: Category, records: list) -> "QuestionSet":
        return self.model_copy(update={category.attr: list(records)})

    @classmethod
    def from_lists(cls, lists: dict[Category, list]) -> "QuestionSet":
        return cls(**{c.attr: list(lists.get(c, [])) for c in Category})


class GenerationResult(QuestionSet):
    """Final, capped and normalized questions plus degradation flags."""

    fallback_categories: list[Category] = Field(default_factory=list)
    notice: Optional[str] = None
    chunks_processed: int = 0
    chunks_failed: int = 0
    cached: bool = False

    @computed_field(alias="usedFallback")
    @property
    def used_fallback(self) -> bool:
        return bool(self.fallback_categories)


class CategoryProgress(BaseModel):
    """Partial progress for one category during a generation run."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    category: Category
    count: int
    requested: int
    percent: int


_RECORD_TYPES = {
    Category.FLASHCARDS: Flashcard,
    Category.MCQS: MCQ,
    Category.MATCHING: MatchingQuestion,
    Category.TRUE_FALSE: TrueFalseQuestion,
    Category.FILL_IN_BLANKS: FillInBlanksQuestion,
}

AnyQuestion = Union[Flashcard, MCQ, MatchingQuestion, TrueFalseQuestion, FillInBlanksQuestion]


class AdditionalQuestions(BaseModel):
    """Extra records for one category, numbered after the ones the caller has."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    category: Category
    requested: int
    questions: list[AnyQuestion] = Field(default_factory=list)
    # Candidates dropped for repeating an existing or earlier record
    duplicates: int = 0
    notice: Optional[str] = None
