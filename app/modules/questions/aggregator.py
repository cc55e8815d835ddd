"""Sequential multi-chunk driver.

Each chunk gets its own prompt and model stream. Every delta is pushed through
the extractor and into the run's ``IncrementalMerger`` (together with what
earlier chunks produced) so progress keeps moving across chunk boundaries.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from app.core.logging import bind_logger, get_logger
from app.modules.questions.chunking import ChunkPlan
from app.modules.questions.client import GenerationOptions, TextGenerationClient
from app.modules.questions.errors import GenerationError
from app.modules.questions.extractor import StreamingExtractor, extract_questions
from app.modules.questions.merger import IncrementalMerger
from app.modules.questions.models import Category, QuestionSet, Quantities
from app.modules.questions.prompts import build_prompt

logger = get_logger(__name__)

# How many items per category to keep for the normalizer, relative to the request
HEADROOM = 2


def _text_key(value: str) -> str:
    return " ".join(value.split()).lower()


_DEDUPE_KEYS: dict[Category, Callable[[Any], Any]] = {
    Category.FLASHCARDS: lambda r: _text_key(r.question),
    Category.MCQS: lambda r: _text_key(r.question),
    Category.MATCHING: lambda r: (
        _text_key(r.question),
        tuple(_text_key(i) for i in r.left_items),
    ),
    Category.TRUE_FALSE: lambda r: _text_key(r.question),
    Category.FILL_IN_BLANKS: lambda r: _text_key(r.text_with_blanks),
}


def dedupe_key(category: Category, record: Any) -> Any:
    return _DEDUPE_KEYS[category](record)


def renumber(category: Category, records: list, start: int = 1) -> list:
    if category in (Category.MATCHING, Category.TRUE_FALSE):
        return [r.model_copy(update={"id": n}) for n, r in enumerate(records, start)]
    if category is Category.FILL_IN_BLANKS:
        return [
            r.model_copy(update={"id": f"fib-{n}"}) for n, r in enumerate(records, start)
        ]
    return records


def combine(*sets: QuestionSet) -> QuestionSet:
    """Concatenate per category in order, dropping repeats and renumbering ids."""
    lists: dict[Category, list] = {}
    for category in Category:
        seen: set = set()
        records = []
        for qs in sets:
            for record in qs.get(category):
                k = dedupe_key(category, record)
                if k in seen:
                    continue
                seen.add(k)
                records.append(record)
        lists[category] = renumber(category, records)
    return QuestionSet.from_lists(lists)


def cap(questions: QuestionSet, quantities: Quantities, factor: int = 1) -> QuestionSet:
    return QuestionSet.from_lists(
        {
            c: questions.get(c)[: quantities.for_category(c) * factor]
            for c in Category
        }
    )


@dataclass
class AggregateOutcome:
    questions: QuestionSet
    chunks_processed: int = 0
    chunks_failed: int = 0


class ChunkAggregator:
    def __init__(
        self, client: TextGenerationClient, options: Optional[GenerationOptions] = None
    ) -> None:
        self.client = client
        self.options = options or GenerationOptions()

    async def _stream_chunk(
        self,
        prompt: str,
        combined: QuestionSet,
        merger: IncrementalMerger,
    ) -> QuestionSet:
        extractor = StreamingExtractor()
        async for delta in self.client.generate(prompt, self.options):
            current = extractor.feed(delta)
            merger.merge(combine(combined, current))
        return extract_questions(extractor.buffer)

    async def run(
        self,
        plan: ChunkPlan,
        *,
        file_name: str,
        file_type: str,
        quantities: Quantities,
        custom_instruction: Optional[str] = None,
        merger: Optional[IncrementalMerger] = None,
        log: Optional[logging.LoggerAdapter] = None,
    ) -> AggregateOutcome:
        """Generate over every chunk in order and combine the results.

        With a single chunk a failure is raised as ``GenerationError``. With
        several, a failed chunk is logged and skipped.
        """
        merger = merger or IncrementalMerger(quantities)
        log = log or bind_logger(logger)
        outcome = AggregateOutcome(questions=QuestionSet())

        for chunk in plan:
            chunk_log = bind_logger(
                log.logger, **{**(log.extra or {}), "chunk": f"{chunk.index}/{chunk.total}"}
            )
            prompt = build_prompt(
                chunk.text,
                file_name=file_name,
                file_type=file_type,
                quantities=quantities,
                custom_instruction=custom_instruction,
                chunk=chunk,
            )
            chunk_log.info("Requesting chunk (%d chars)", len(chunk.text))
            try:
                found = await self._stream_chunk(prompt, outcome.questions, merger)
            except Exception as e:  # noqa: BLE001
                if not plan.is_chunked:
                    if isinstance(e, GenerationError):
                        raise
                    raise GenerationError(str(e)) from e
                outcome.chunks_failed += 1
                chunk_log.warning("Chunk failed, continuing with the next one: %s", e)
                continue

            outcome.chunks_processed += 1
            chunk_log.info(
                "Chunk done: %s",
                ", ".join(f"{c.value}={n}" for c, n in found.counts().items()),
            )
            outcome.questions = combine(outcome.questions, found)
            merger.merge(outcome.questions)

        outcome.questions = cap(outcome.questions, quantities, HEADROOM)
        return outcome
