from __future__ import annotations

import asyncio
import json

import pytest
from fastapi.testclient import TestClient

from app.apis.questions.main import PREFIX, generate_stream, get_question_generator
from app.apis.questions.schemas import GenerateRequest
from main import create_app

from .fakes import ScriptedClient, StallingClient, response_json, split_text, true_false

QUANTITIES = {"flashcards": 2, "mcqs": 2, "matching": 1, "trueFalse": 2, "fillInBlanks": 2}


@pytest.fixture
def client_for(make_generator):
    def _make(model_client):
        app = create_app()
        generator = make_generator(model_client)
        app.dependency_overrides[get_question_generator] = lambda: generator
        return TestClient(app)

    return _make


def _events(body: str) -> list[tuple[str, dict]]:
    events = []
    for block in body.strip().split("\n\n"):
        lines = dict(line.split(": ", 1) for line in block.splitlines())
        events.append((lines["event"], json.loads(lines["data"])))
    return events


def test_health(client_for):
    resp = client_for(ScriptedClient()).get("/")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


def test_generate_returns_camel_case_result(client_for):
    http = client_for(ScriptedClient(split_text(response_json(3), 50)))
    resp = http.post(
        f"{PREFIX}/generate",
        json={"content": "Some study notes " * 5, "fileName": "notes.txt", "quantities": QUANTITIES},
    )
    assert resp.status_code == 200
    body = resp.json()
    assert len(body["flashcards"]) == 2
    assert body["flashcards"][0]["front"] == body["flashcards"][0]["question"]
    assert len(body["matchingQuestions"]) == 1
    assert "correctMatches" in body["matchingQuestions"][0]
    assert "inferredMatches" not in body["matchingQuestions"][0]
    assert body["usedFallback"] is False
    assert body["fallbackCategories"] == []


def test_generate_degrades_instead_of_failing(client_for, failing_client):
    resp = client_for(failing_client).post(f"{PREFIX}/generate", json={"content": "x"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["usedFallback"] is True
    assert body["notice"]
    assert all(body[c] for c in ("flashcards", "mcqs", "matchingQuestions", "trueFalseQuestions", "fillInBlanksQuestions"))


def test_invalid_quantity_is_rejected(client_for):
    resp = client_for(ScriptedClient()).post(
        f"{PREFIX}/generate", json={"content": "x", "quantities": {"mcqs": 0}}
    )
    assert resp.status_code == 422


def test_stream_emits_progress_then_result(client_for):
    http = client_for(ScriptedClient(split_text(response_json(2), 20)))
    resp = http.post(
        f"{PREFIX}/generate/stream",
        json={"content": "Some study notes " * 5, "quantities": QUANTITIES},
    )
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/event-stream")
    events = _events(resp.text)
    names = [name for name, _ in events]
    assert names[-2:] == ["result", "end"]
    assert set(names[:-2]) == {"progress"}
    progress = [data for name, data in events if name == "progress" and data["category"] == "flashcards"]
    assert [p["count"] for p in progress] == [1, 2]
    assert progress[-1]["percent"] == 100
    assert len(progress[-1]["records"]) == 2
    assert events[-1][1] == {"status": "completed"}


def test_check_fill_in_blanks(client_for):
    resp = client_for(ScriptedClient()).post(
        f"{PREFIX}/check/fill-in-blanks",
        json={
            "question": {
                "id": "fib-1",
                "question": "Fill",
                "textWithBlanks": "[BLANK_0] and [BLANK_1]",
                "correctAnswers": ["salt", "pepper|spice"],
            },
            "answers": ["Salt", "spice"],
        },
    )
    assert resp.json() == {"results": [True, True], "correct": 2, "total": 2}


def test_check_mcq(client_for):
    resp = client_for(ScriptedClient()).post(
        f"{PREFIX}/check/mcq",
        json={"question": {"question": "Q", "options": ["a", "b"], "correctAnswer": 1}, "selected": 0},
    )
    assert resp.json() == {"correct": False, "correctAnswer": 1}


def test_check_matching(client_for):
    resp = client_for(ScriptedClient()).post(
        f"{PREFIX}/check/matching",
        json={
            "question": {
                "id": 1,
                "question": "M",
                "leftItems": ["a", "b"],
                "rightItems": ["x", "y"],
                "correctMatches": [1, 0],
            },
            "matches": [1, 1],
        },
    )
    assert resp.json() == {"results": [True, False], "correct": 1, "total": 2}


def test_generate_more_accepts_quantity_style_category(client_for):
    http = client_for(ScriptedClient(split_text(response_json(3), 50)))
    resp = http.post(
        f"{PREFIX}/generate-more",
        json={
            "content": "Some study notes " * 5,
            "category": "trueFalse",
            "count": 2,
            "existing": [true_false(1)],
        },
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["category"] == "trueFalseQuestions"
    assert body["requested"] == 2
    assert body["duplicates"] == 1
    assert sorted(q["id"] for q in body["questions"]) == [2, 3]
    assert all("isTrue" in q for q in body["questions"])


def test_generate_more_rejects_unknown_category(client_for):
    resp = client_for(ScriptedClient()).post(
        f"{PREFIX}/generate-more", json={"content": "x", "category": "essays"}
    )
    assert resp.status_code == 422


def test_generate_more_rejects_malformed_existing_records(client_for):
    resp = client_for(ScriptedClient()).post(
        f"{PREFIX}/generate-more",
        json={"content": "x", "category": "mcqs", "existing": [{"options": ["a"]}]},
    )
    assert resp.status_code == 422


def test_generate_more_reports_model_failure(client_for, failing_client):
    resp = client_for(failing_client).post(
        f"{PREFIX}/generate-more", json={"content": "x", "category": "flashcards"}
    )
    assert resp.status_code == 503
    assert "flashcards" in resp.json()["detail"]


async def test_stream_disconnect_cancels_the_run(make_generator):
    response = response_json(2)
    client = StallingClient(split_text(response[: len(response) // 2], 20))
    req = GenerateRequest(content="Some study notes " * 5)

    streaming = await generate_stream(req, make_generator(client))
    body = streaming.body_iterator
    first = await body.__anext__()
    assert first.startswith(b"event: progress")

    await body.aclose()
    await asyncio.wait_for(client.closed.wait(), timeout=5)
