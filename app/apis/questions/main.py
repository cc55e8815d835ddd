from __future__ import annotations

import asyncio
import json
from typing import Annotated, Any, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import StreamingResponse

from app.core.config import settings
from app.core.logging import get_logger
from app.modules.questions.errors import GenerationError
from app.modules.questions.generator import QuestionGenerator, get_default_generator
from app.modules.questions.grading import (
    check_fill_in_blanks_answers,
    check_matching_answers,
    check_mcq_answer,
)
from app.modules.questions.models import (
    AdditionalQuestions,
    Category,
    CategoryProgress,
    GenerationResult,
)
from app.modules.questions.text import classify_file_type
from .schemas import (
    BlanksCheckResponse,
    FillInBlanksCheckRequest,
    GenerateMoreRequest,
    GenerateRequest,
    MatchingCheckRequest,
    MCQCheckRequest,
    MCQCheckResponse,
)


router = APIRouter()
logger = get_logger(__name__)

PREFIX = f"/{settings.app.version}/questions"


def get_question_generator() -> QuestionGenerator:
    return get_default_generator()


GeneratorDep = Annotated[QuestionGenerator, Depends(get_question_generator)]


def _file_type(req: GenerateRequest | GenerateMoreRequest) -> str:
    return req.file_type or classify_file_type(req.file_name).value


def _sse(event: str | None, data: Any) -> bytes:
    payload = json.dumps(data, ensure_ascii=False)
    parts = []
    if event:
        parts.append(f"event: {event}")
    parts.append(f"data: {payload}")
    parts.append("")
    return ("\n".join(parts) + "\n").encode("utf-8")


class _QueueObserver:
    """Forwards merger progress into the SSE queue."""

    def __init__(self, queue: asyncio.Queue) -> None:
        self.queue = queue

    def on_partial_result(
        self, category: Category, records: list, progress: CategoryProgress
    ) -> None:
        data = progress.model_dump(by_alias=True, mode="json")
        data["records"] = [r.model_dump(by_alias=True, mode="json") for r in records]
        self.queue.put_nowait(("progress", data))


@router.post(
    f"{PREFIX}/generate",
    response_model=GenerationResult,
    status_code=status.HTTP_200_OK,
    tags=["questions"],
)
async def generate(req: GenerateRequest, generator: GeneratorDep) -> GenerationResult:
    return await generator.generate(
        req.content,
        req.file_name,
        _file_type(req),
        req.quantities,
        req.custom_instruction,
    )


@router.post(f"{PREFIX}/generate/stream", tags=["questions"])
async def generate_stream(req: GenerateRequest, generator: GeneratorDep) -> StreamingResponse:
    queue: asyncio.Queue[Optional[tuple[str, Any]]] = asyncio.Queue()

    async def run() -> None:
        try:
            result = await generator.generate(
                req.content,
                req.file_name,
                _file_type(req),
                req.quantities,
                req.custom_instruction,
                observer=_QueueObserver(queue),
            )
            queue.put_nowait(("result", result.model_dump(by_alias=True, mode="json")))
        except asyncio.CancelledError:
            raise
        except Exception as e:  # noqa: BLE001
            logger.exception("Streaming generation failed")
            queue.put_nowait(("error", {"detail": str(e)}))
        finally:
            queue.put_nowait(None)

    async def gen():
        task = asyncio.create_task(run())
        last_event = None
        try:
            while True:
                item = await queue.get()
                if item is None:
                    break
                last_event, data = item
                yield _sse(last_event, data)
            yield _sse(
                "end", {"status": "failed" if last_event == "error" else "completed"}
            )
        finally:
            # Client disconnected before the run finished
            if not task.done():
                task.cancel()

    return StreamingResponse(
        gen(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
        },
    )


@router.post(
    f"{PREFIX}/generate-more",
    response_model=AdditionalQuestions,
    status_code=status.HTTP_200_OK,
    tags=["questions"],
)
async def generate_more(
    req: GenerateMoreRequest, generator: GeneratorDep
) -> AdditionalQuestions:
    try:
        return await generator.generate_more(
            req.content,
            req.file_name,
            _file_type(req),
            req.category,
            req.count,
            req.existing,
            req.custom_instruction,
        )
    except GenerationError as e:
        logger.warning("Generating more %s failed: %s", req.category.value, e)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Failed to generate more {req.category.value}: {e}",
        )


@router.post(
    f"{PREFIX}/check/fill-in-blanks",
    response_model=BlanksCheckResponse,
    tags=["questions"],
)
async def check_fill_in_blanks(req: FillInBlanksCheckRequest) -> BlanksCheckResponse:
    results = check_fill_in_blanks_answers(req.question, req.answers)
    return BlanksCheckResponse(results=results, correct=sum(results), total=len(results))


@router.post(
    f"{PREFIX}/check/mcq",
    response_model=MCQCheckResponse,
    tags=["questions"],
)
async def check_mcq(req: MCQCheckRequest) -> MCQCheckResponse:
    return MCQCheckResponse(
        correct=check_mcq_answer(req.question, req.selected),
        correct_answer=req.question.correct_answer,
    )


@router.post(
    f"{PREFIX}/check/matching",
    response_model=BlanksCheckResponse,
    tags=["questions"],
)
async def check_matching(req: MatchingCheckRequest) -> BlanksCheckResponse:
    results = check_matching_answers(req.question, req.matches)
    return BlanksCheckResponse(results=results, correct=sum(results), total=len(results))
