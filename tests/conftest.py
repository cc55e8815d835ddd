from __future__ import annotations

import random

import pytest

from app.core.config import GenerationSettings
from app.modules.questions.cache import InMemoryResponseCache
from app.modules.questions.generator import QuestionGenerator
from app.modules.questions.models import Quantities
from app.modules.questions.normalizer import CategoryNormalizer

from .fakes import FailingClient, ScriptedClient, response_json, split_text


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture
def normalizer(rng: random.Random) -> CategoryNormalizer:
    return CategoryNormalizer(rng)


@pytest.fixture
def quantities() -> Quantities:
    return Quantities(flashcards=2, mcqs=2, matching=2, true_false=2, fill_in_blanks=2)


@pytest.fixture
def streaming_client() -> ScriptedClient:
    """Streams a full three-per-category response in small deltas."""
    return ScriptedClient(split_text(response_json(3), 17))


@pytest.fixture
def failing_client() -> FailingClient:
    return FailingClient()


@pytest.fixture
def small_chunks() -> GenerationSettings:
    return GenerationSettings(CHUNK_THRESHOLD_CHARS=100, CHUNK_SIZE_CHARS=60)


@pytest.fixture
def make_generator(normalizer: CategoryNormalizer):
    def _make(client, *, cache=None, generation=None) -> QuestionGenerator:
        return QuestionGenerator(
            client,
            cache=cache,
            normalizer=normalizer,
            generation=generation or GenerationSettings(),
        )

    return _make


@pytest.fixture
def cache() -> InMemoryResponseCache:
    return InMemoryResponseCache(ttl_seconds=60, max_entries=10)
