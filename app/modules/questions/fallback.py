"""Fixed placeholder questions used when generation yields nothing usable."""

from __future__ import annotations

from app.modules.questions.models import (
    MCQ,
    Category,
    FillInBlanksQuestion,
    Flashcard,
    MatchingQuestion,
    QuestionSet,
    TrueFalseQuestion,
)

FALLBACK_NOTICE = "Demo questions were used because generation did not succeed."


def fallback_records(category: Category) -> list:
    """A fresh, always-valid demo list for ``category``."""
    if category is Category.FLASHCARDS:
        return [
            Flashcard(
                question="What does this document cover?",
                answer="Content from the uploaded file",
            )
        ]
    if category is Category.MCQS:
        return [
            MCQ(
                question="What is contained in this document?",
                options=["File content", "Random data", "Empty data", "Unknown"],
                correct_answer=0,
            )
        ]
    if category is Category.MATCHING:
        return [
            MatchingQuestion(
                id=1,
                question="Match items from the document:",
                left_items=["Item 1", "Item 2", "Item 3", "Item 4"],
                right_items=[
                    "Description 1",
                    "Description 2",
                    "Description 3",
                    "Description 4",
                ],
                correct_matches=[0, 1, 2, 3],
            )
        ]
    if category is Category.TRUE_FALSE:
        return [
            TrueFalseQuestion(
                id=1,
                question="This is content from the uploaded file.",
                is_true=True,
                explanation="This is a basic true/false question about the document content.",
            )
        ]
    return [
        FillInBlanksQuestion(
            id="fib-1",
            question="Complete the sentence about the document:",
            text_with_blanks="This document contains [BLANK_0] from the uploaded [BLANK_1].",
            correct_answers=["content", "file"],
            complete_text="This document contains content from the uploaded file.",
            explanation="This is a simple fill-in-the-blanks question about the document.",
            difficulty="easy",
        )
    ]


def fallback_question_set() -> QuestionSet:
    return QuestionSet.from_lists({c: fallback_records(c) for c in Category})
