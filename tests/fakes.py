from __future__ import annotations

import asyncio
import json
from typing import Any, AsyncIterator, Iterable, Union

from app.modules.questions.client import GenerationOptions
from app.modules.questions.errors import TransientGenerationError

Script = Union[BaseException, Iterable[Union[str, BaseException]]]


def split_text(text: str, size: int) -> list[str]:
    return [text[i : i + size] for i in range(0, len(text), size)]


class ScriptedClient:
    """Replays one script per ``generate`` call.

    A script is either an exception raised before any text, or a sequence of
    deltas in which an exception item is raised at that point of the stream.
    The last script is reused once the list runs out.
    """

    def __init__(self, *scripts: Script) -> None:
        self.scripts = list(scripts)
        self.prompts: list[str] = []
        self.options: list[GenerationOptions] = []

    @property
    def calls(self) -> int:
        return len(self.prompts)

    async def generate(
        self, prompt: str, options: GenerationOptions
    ) -> AsyncIterator[str]:
        self.prompts.append(prompt)
        self.options.append(options)
        script = self.scripts[min(len(self.prompts), len(self.scripts)) - 1]
        if isinstance(script, BaseException):
            raise script
        for delta in script:
            if isinstance(delta, BaseException):
                raise delta
            yield delta


class StallingClient(ScriptedClient):
    """Streams its deltas and then hangs until cancelled.

    ``stalled`` is set once every delta was handed out, ``closed`` once the
    stream was torn down.
    """

    def __init__(self, deltas: Iterable[str]) -> None:
        super().__init__(deltas)
        self.stalled = asyncio.Event()
        self.closed = asyncio.Event()

    async def generate(
        self, prompt: str, options: GenerationOptions
    ) -> AsyncIterator[str]:
        try:
            async for delta in super().generate(prompt, options):
                yield delta
            self.stalled.set()
            await asyncio.Event().wait()
        finally:
            self.closed.set()


class FailingClient(ScriptedClient):
    def __init__(self) -> None:
        super().__init__(TransientGenerationError("model unavailable"))


def flashcard(n: int, prefix: str = "") -> dict[str, Any]:
    return {"question": f"{prefix}Question {n}?", "answer": f"{prefix}Answer {n}"}


def mcq(n: int, prefix: str = "") -> dict[str, Any]:
    return {
        "question": f"{prefix}Which option is {n}?",
        "options": [f"{prefix}right {n}", "wrong a", "wrong b", "wrong c"],
        "correctAnswer": 0,
    }


def matching(n: int, prefix: str = "") -> dict[str, Any]:
    return {
        "id": n,
        "question": f"{prefix}Match set {n}:",
        "leftItems": [f"{prefix}L{n}-{i}" for i in range(4)],
        "rightItems": [f"{prefix}R{n}-{i}" for i in range(4)],
        "correctMatches": [0, 1, 2, 3],
    }


def true_false(n: int, prefix: str = "") -> dict[str, Any]:
    return {
        "id": n,
        "question": f"{prefix}Statement {n}.",
        "isTrue": n % 2 == 0,
        "explanation": f"Because {n}.",
    }


def fill_in_blanks(n: int, prefix: str = "") -> dict[str, Any]:
    return {
        "id": f"fib-{n}",
        "question": "Complete the sentence:",
        "textWithBlanks": f"{prefix}Item {n} has [BLANK_0] and [BLANK_1].",
        "correctAnswers": [f"alpha{n}", f"beta{n}"],
        "completeText": f"{prefix}Item {n} has alpha{n} and beta{n}.",
        "explanation": "Both are listed.",
        "difficulty": "easy",
    }


def response_json(count: int = 3, prefix: str = "") -> str:
    """A well-formed model response with ``count`` items per category."""
    items = range(1, count + 1)
    return json.dumps(
        {
            "flashcards": [flashcard(n, prefix) for n in items],
            "mcqs": [mcq(n, prefix) for n in items],
            "matchingQuestions": [matching(n, prefix) for n in items],
            "trueFalseQuestions": [true_false(n, prefix) for n in items],
            "fillInBlanksQuestions": [fill_in_blanks(n, prefix) for n in items],
        },
        indent=2,
    )
