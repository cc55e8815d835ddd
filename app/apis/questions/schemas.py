from __future__ import annotations

from typing import Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from app.modules.questions.models import (
    MCQ,
    Category,
    FillInBlanksQuestion,
    MatchingQuestion,
    Quantities,
)


class _Schema(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class GenerateRequest(_Schema):
    content: str = Field(
        ..., description="Document text, or a base64 data URL for binary files"
    )
    file_name: str = Field(default="input.txt", min_length=1)
    file_type: Optional[str] = Field(
        default=None, description="Defaults to the type implied by file_name"
    )
    quantities: Quantities = Field(default_factory=Quantities)
    custom_instruction: Optional[str] = None


class GenerateMoreRequest(_Schema):
    content: str = Field(
        ..., description="Document text, or a base64 data URL for binary files"
    )
    file_name: str = Field(default="input.txt", min_length=1)
    file_type: Optional[str] = Field(
        default=None, description="Defaults to the type implied by file_name"
    )
    category: Category = Field(
        ..., description="Result key (mcqs, trueFalseQuestions) or quantity key (trueFalse)"
    )
    count: int = Field(default=5, ge=1, le=50)
    existing: list[Any] = Field(
        default_factory=list, description="Records of this category the caller already has"
    )
    custom_instruction: Optional[str] = None

    @field_validator("category", mode="before")
    @classmethod
    def _parse_category(cls, value: Any) -> Category:
        return Category.parse(value)

    @model_validator(mode="after")
    def _parse_existing(self) -> "GenerateMoreRequest":
        record_type = self.category.record_type
        try:
            self.existing = [record_type.model_validate(r) for r in self.existing]
        except ValidationError as e:
            raise ValueError(f"Invalid existing {self.category.value} record: {e}") from e
        return self


class FillInBlanksCheckRequest(_Schema):
    question: FillInBlanksQuestion
    answers: list[str] = Field(default_factory=list)


class MCQCheckRequest(_Schema):
    question: MCQ
    selected: int


class MatchingCheckRequest(_Schema):
    question: MatchingQuestion
    matches: list[int] = Field(default_factory=list)


class BlanksCheckResponse(_Schema):
    results: list[bool]
    correct: int
    total: int


class MCQCheckResponse(_Schema):
    correct: bool
    correct_answer: int
