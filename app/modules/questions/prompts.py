"""Prompt construction for question generation.

The output-format directive is rendered from ``schema.SCHEMAS``; the scanner
in ``extractor`` reads the same descriptors. Output is deterministic for
identical inputs.
"""

from __future__ import annotations

import json
from typing import Iterable, Optional, Sequence

from app.modules.questions.chunking import Chunk
from app.modules.questions.models import Category, Quantities
from app.modules.questions.schema import SCHEMAS, CategorySchema

PREAMBLE = (
    "You are an educational content creator. Based on the following content, "
    "generate educational quiz questions in JSON format."
)

# Below this many characters the input is treated as a bare topic
SHORT_INPUT_CHARS = 50

SHORT_INPUT_HINT = (
    "This is a very short input, possibly just a single word or phrase. "
    "Please generate questions about this concept, using your knowledge to "
    "expand on the topic and create meaningful educational content related to it."
)

DOCUMENT_HINT = "Create questions based on the document content."

COVERAGE_RULES = (
    "The questions should cover the main concepts and important information "
    "related to the topic.\n"
    "Do not ask any questions about the file name, the file type or the "
    "document format itself."
)

FORMAT_INTRO = (
    "Return your response in the following JSON format exactly. Do not include "
    "any explanations or markdown formatting, just the raw JSON:"
)


def _render_example(schema: CategorySchema) -> str:
    record = json.dumps(schema.example_record(), ensure_ascii=False)
    return f'  "{schema.category.value}": [\n    {record},\n    ...\n  ]'


def format_directive(categories: Optional[Iterable[Category]] = None) -> str:
    """JSON layout and field rules every response must follow."""
    schemas = [SCHEMAS[c] for c in (categories or Category)]
    body = ",\n".join(_render_example(s) for s in schemas)
    lines = [FORMAT_INTRO, "{\n" + body + "\n}"]
    rules = [rule for s in schemas for rule in s.rules]
    if rules:
        lines.append("Field rules:\n" + "\n".join(f"- {r}" for r in rules))
    return "\n\n".join(lines)


def _quantity_list(quantities: Quantities) -> str:
    lines = ["Create the following types of questions:", ""]
    for n, category in enumerate(Category, start=1):
        schema = SCHEMAS[category]
        lines.append(f"{n}. {quantities.for_category(category)} {schema.label}")
    return "\n".join(lines)


def build_prompt(
    content: str,
    *,
    file_name: str,
    file_type: str,
    quantities: Quantities,
    custom_instruction: Optional[str] = None,
    chunk: Optional[Chunk] = None,
) -> str:
    partial = chunk is not None and chunk.is_partial
    body = content
    if partial:
        body = f"[THIS IS CHUNK {chunk.index} OF {chunk.total}]\n\n{content}"

    sections = [
        PREAMBLE,
        f"File name: {file_name}\nFile type: {file_type}",
        f"Content:\n{body}",
        SHORT_INPUT_HINT if len(content.strip()) < SHORT_INPUT_CHARS else DOCUMENT_HINT,
        _quantity_list(quantities),
        COVERAGE_RULES,
    ]
    if custom_instruction and custom_instruction.strip():
        sections.append(f"Additional Instructions:\n{custom_instruction}")
    sections.append(format_directive())
    if partial:
        sections.append(
            f"IMPORTANT: This is chunk {chunk.index} of {chunk.total}. "
            "Focus on generating questions ONLY from this section of the document."
        )
    return "\n\n".join(sections)


MORE_PREAMBLE = (
    "You are an educational content creator. Based on the following content, "
    "generate additional educational quiz questions in JSON format."
)

MORE_RULES = (
    "Use only information that is explicitly mentioned in the content. "
    "Make sure the new questions cover different topics than the questions "
    "that were already created."
)

# Most recent existing questions listed in a "generate more" prompt
MAX_EXISTING_LISTED = 30


def build_more_prompt(
    content: str,
    *,
    file_name: str,
    file_type: str,
    category: Category,
    count: int,
    existing: Sequence[str] = (),
    custom_instruction: Optional[str] = None,
) -> str:
    """Prompt for ``count`` more records of one category.

    ``existing`` holds the question texts the caller already has; the model is
    told not to repeat them.
    """
    sections = [
        MORE_PREAMBLE,
        f"File name: {file_name}\nFile type: {file_type}",
        f"Content:\n{content}",
        SHORT_INPUT_HINT if len(content.strip()) < SHORT_INPUT_CHARS else DOCUMENT_HINT,
        f"Create {count} new {SCHEMAS[category].label}.",
        MORE_RULES,
        COVERAGE_RULES,
    ]
    listed = [text for text in existing if text.strip()][-MAX_EXISTING_LISTED:]
    if listed:
        sections.append(
            "Questions already created (do not repeat or rephrase them):\n"
            + "\n".join(f"- {text}" for text in listed)
        )
    if custom_instruction and custom_instruction.strip():
        sections.append(f"Additional Instructions:\n{custom_instruction}")
    sections.append(format_directive([category]))
    return "\n\n".join(sections)
