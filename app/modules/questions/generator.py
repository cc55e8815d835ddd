"""Top-level question generation entry point.

``QuestionGenerator.generate`` always resolves with a usable question set:
model failures, empty categories and invalid batches are replaced by demo
questions and flagged on the result instead of raised.
"""

from __future__ import annotations

import uuid
from functools import lru_cache
from typing import Optional, Sequence

from app.core.config import GenerationSettings, settings
from app.core.logging import bind_logger, get_logger
from app.modules.questions.aggregator import ChunkAggregator, cap, dedupe_key, renumber
from app.modules.questions.cache import (
    DocumentIdentity,
    InMemoryResponseCache,
    ResponseCache,
    request_fingerprint,
)
from app.modules.questions.chunking import plan_chunks
from app.modules.questions.client import (
    GenerationOptions,
    PydanticAIStreamClient,
    TextGenerationClient,
)
from app.modules.questions.errors import GenerationError
from app.modules.questions.extractor import StreamingExtractor, extract_questions
from app.modules.questions.fallback import FALLBACK_NOTICE, fallback_question_set
from app.modules.questions.merger import IncrementalMerger, ProgressObserver
from app.modules.questions.models import (
    AdditionalQuestions,
    Category,
    GenerationResult,
    QuestionSet,
    Quantities,
)
from app.modules.questions.normalizer import CategoryNormalizer
from app.modules.questions.prompts import build_more_prompt
from app.modules.questions.text import normalize_content

logger = get_logger(__name__)


def _result(questions: QuestionSet, **flags) -> GenerationResult:
    return GenerationResult(**{c.attr: questions.get(c) for c in Category}, **flags)


NO_NEW_QUESTIONS_NOTICE = (
    "No new questions could be generated that differ from the existing ones."
)


def _question_text(category: Category, record) -> str:
    if category is Category.FILL_IN_BLANKS:
        return record.text_with_blanks
    return record.question


class QuestionGenerator:
    """Chunk, stream, extract, normalize and cap questions for one document."""

    def __init__(
        self,
        client: Optional[TextGenerationClient] = None,
        *,
        cache: Optional[ResponseCache] = None,
        normalizer: Optional[CategoryNormalizer] = None,
        generation: Optional[GenerationSettings] = None,
    ) -> None:
        self.generation = generation or settings.generation
        self.client = client or PydanticAIStreamClient()
        self.cache = cache
        self.normalizer = normalizer or CategoryNormalizer()
        self.aggregator = ChunkAggregator(
            self.client, GenerationOptions.from_settings(self.generation)
        )

    async def generate(
        self,
        content: str,
        file_name: str,
        file_type: str,
        quantities: Optional[Quantities] = None,
        custom_instruction: Optional[str] = None,
        *,
        observer: Optional[ProgressObserver] = None,
        identity: Optional[DocumentIdentity] = None,
    ) -> GenerationResult:
        quantities = quantities or Quantities()
        log = bind_logger(logger, request_id=uuid.uuid4().hex[:8])
        content = normalize_content(content)

        fingerprint = None
        if self.cache is not None:
            identity = identity or DocumentIdentity.for_text(file_name, content)
            fingerprint = request_fingerprint(identity, quantities, custom_instruction)
            cached = self.cache.get(fingerprint)
            if cached is not None:
                log.info("Serving cached questions for %s", file_name)
                return cached.model_copy(update={"cached": True})

        plan = plan_chunks(
            content, self.generation.chunk_threshold, self.generation.chunk_size
        )
        log.info(
            "Generating questions for %s (%s, %d chars, %d chunk(s))",
            file_name,
            file_type,
            len(content),
            plan.total,
        )

        try:
            outcome = await self.aggregator.run(
                plan,
                file_name=file_name,
                file_type=file_type,
                quantities=quantities,
                custom_instruction=custom_instruction,
                merger=IncrementalMerger(quantities, observer),
                log=log,
            )
        except GenerationError as e:
            log.warning("Generation failed, using demo questions: %s", e)
            return _result(
                fallback_question_set(),
                fallback_categories=list(Category),
                notice=FALLBACK_NOTICE,
                chunks_failed=plan.total,
            )

        normalized, fallbacks = self.normalizer.normalize(outcome.questions)
        result = _result(
            cap(normalized, quantities),
            fallback_categories=fallbacks,
            notice=FALLBACK_NOTICE if fallbacks else None,
            chunks_processed=outcome.chunks_processed,
            chunks_failed=outcome.chunks_failed,
        )
        log.info(
            "Generated %s%s",
            ", ".join(f"{c.value}={n}" for c, n in result.counts().items()),
            f" (demo: {', '.join(c.value for c in fallbacks)})" if fallbacks else "",
        )

        if fingerprint is not None and len(fallbacks) < len(Category):
            self.cache.put(fingerprint, result, self.cache_ttl)
        return result

    async def generate_more(
        self,
        content: str,
        file_name: str,
        file_type: str,
        category: Category,
        count: int,
        existing: Sequence = (),
        custom_instruction: Optional[str] = None,
    ) -> AdditionalQuestions:
        """Generate ``count`` more records of one category.

        Records repeating one in ``existing`` (or each other) are dropped, and
        ids continue after the existing records. Model failures are raised as
        ``GenerationError``; no demo questions are substituted.
        """
        log = bind_logger(
            logger, request_id=uuid.uuid4().hex[:8], category=category.value
        )
        content = normalize_content(content)
        if len(content) > self.generation.chunk_threshold:
            content = content[: self.generation.chunk_size]

        prompt = build_more_prompt(
            content,
            file_name=file_name,
            file_type=file_type,
            category=category,
            count=count,
            existing=[_question_text(category, r) for r in existing],
            custom_instruction=custom_instruction,
        )
        log.info("Generating %d more %s for %s", count, category.value, file_name)

        extractor = StreamingExtractor()
        try:
            async for delta in self.client.generate(prompt, self.aggregator.options):
                extractor.feed(delta)
        except GenerationError:
            raise
        except Exception as e:  # noqa: BLE001
            raise GenerationError(str(e)) from e

        seen = {dedupe_key(category, r) for r in existing}
        fresh, duplicates = [], 0
        for record in extract_questions(extractor.buffer).get(category):
            key = dedupe_key(category, record)
            if key in seen:
                duplicates += 1
                continue
            seen.add(key)
            fresh.append(record)

        fresh = self.normalizer.normalize_additional(category, fresh)[:count]
        questions = renumber(category, fresh, start=len(existing) + 1)
        log.info(
            "Generated %d more %s (%d duplicate(s) dropped)",
            len(questions),
            category.value,
            duplicates,
        )
        return AdditionalQuestions(
            category=category,
            requested=count,
            questions=questions,
            duplicates=duplicates,
            notice=None if questions else NO_NEW_QUESTIONS_NOTICE,
        )

    @property
    def cache_ttl(self) -> float:
        return float(settings.cache.ttl_seconds)

    def generate_sync(self, *args, **kwargs) -> GenerationResult:
        import asyncio

        return asyncio.run(self.generate(*args, **kwargs))


@lru_cache(maxsize=1)
def get_default_generator() -> QuestionGenerator:
    return QuestionGenerator(
        cache=InMemoryResponseCache(
            ttl_seconds=settings.cache.ttl_seconds,
            max_entries=settings.cache.max_entries,
        )
    )


async def generate_questions(
    content: str,
    file_name: str,
    file_type: str,
    quantities: Optional[Quantities] = None,
    custom_instruction: Optional[str] = None,
    *,
    observer: Optional[ProgressObserver] = None,
    identity: Optional[DocumentIdentity] = None,
) -> GenerationResult:
    """Generate questions with the process-wide generator (shared cache)."""
    return await get_default_generator().generate(
        content,
        file_name,
        file_type,
        quantities,
        custom_instruction,
        observer=observer,
        identity=identity,
    )
