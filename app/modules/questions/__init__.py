"""Question generation module exports."""

from .models import (
    MCQ,
    AdditionalQuestions,
    Category,
    CategoryProgress,
    FillInBlanksQuestion,
    Flashcard,
    GenerationResult,
    MatchingQuestion,
    QuestionSet,
    Quantities,
    TrueFalseQuestion,
)
from .errors import GenerationError, ModelConfigurationError, TransientGenerationError
from .extractor import StreamingExtractor, extract_questions
from .merger import IncrementalMerger, ProgressObserver
from .generator import QuestionGenerator, generate_questions

__all__ = [
    "MCQ",
    "AdditionalQuestions",
    "Category",
    "CategoryProgress",
    "FillInBlanksQuestion",
    "Flashcard",
    "GenerationResult",
    "MatchingQuestion",
    "QuestionSet",
    "Quantities",
    "TrueFalseQuestion",
    "GenerationError",
    "ModelConfigurationError",
    "TransientGenerationError",
    "StreamingExtractor",
    "extract_questions",
    "IncrementalMerger",
    "ProgressObserver",
    "QuestionGenerator",
    "generate_questions",
]
