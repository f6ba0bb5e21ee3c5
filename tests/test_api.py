"""Tests for API routes."""
import asyncio
import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import HTTPException

from godeep.api.routes import chat as chat_routes
from godeep.models.research import FinalReport, ResearchOutcome, ResearchRequest
from godeep.models.schemas import ChatRequest
from godeep.services.documents import MemoryDocumentStore
from godeep.services.progress import ProgressChannel, ProgressRegistry


@pytest.fixture
def app():
    from godeep.main import app
    yield app


@pytest.fixture
def client(app):
    from fastapi.testclient import TestClient
    return TestClient(app)


def _decode(events: list[dict]) -> list[tuple[str, dict]]:
    return [(e["event"], json.loads(e["data"])) for e in events]


def _start(request: ChatRequest) -> asyncio.Task:
    return chat_routes._start_deep_research(request, ProgressChannel(request.chat_id, grace_seconds=0))


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["service"] == "godeep"


def test_list_models(client):
    response = client.get("/api/models")
    assert response.status_code == 200
    model_ids = [m["id"] for m in response.json()["models"]]
    assert model_ids == ["wander-mode", "deep-research-mode"]


def test_progress_requires_chat_id(client):
    response = client.get("/api/research-progress")
    assert response.status_code == 400
    assert response.json()["detail"] == "Chat ID is required"


def test_get_document(client):
    store = MemoryDocumentStore()
    document = asyncio.run(store.create("Research Report: fusion", "# Report"))

    with patch("godeep.api.routes.documents.get_document_store", return_value=store):
        found = client.get(f"/api/documents/{document.id}")
        missing = client.get("/api/documents/does-not-exist")

    assert found.status_code == 200
    assert found.json()["content"] == "# Report"
    assert missing.status_code == 404
    assert missing.json()["detail"] == "Document not found"


def test_chat_rejects_empty_query(client):
    response = client.post("/api/chat", json={"chat_id": "c1", "query": ""})
    assert response.status_code == 422


def test_chat_rejects_unknown_mode(client):
    response = client.post("/api/chat", json={"chat_id": "c1", "query": "hi", "mode": "turbo"})
    assert response.status_code == 422


def test_deep_research_conflict(client):
    registry = MagicMock()
    registry.open.side_effect = chat_routes.ProgressStateError("Research already in progress for chat c1")

    with patch("godeep.api.routes.chat.get_progress_registry", return_value=registry):
        response = client.post("/api/chat", json={"chat_id": "c1", "query": "q", "mode": "deep-research-mode"})

    assert response.status_code == 409


@pytest.mark.asyncio
async def test_second_deep_request_conflicts_before_first_run_emits():
    release = asyncio.Event()

    async def slow_run(request, progress=None):
        await release.wait()
        progress.emit("error", 0, 1, "stopped")
        return ResearchOutcome(request=request, error="stopped")

    orchestrator = MagicMock()
    orchestrator.run = slow_run
    registry = ProgressRegistry(grace_seconds=0)
    request = ChatRequest(chat_id="c1", query="q", mode="deep-research-mode")

    with patch("godeep.api.routes.chat.get_progress_registry", return_value=registry), patch(
        "godeep.api.routes.chat.ResearchOrchestrator", return_value=orchestrator
    ):
        await chat_routes.chat(request)
        with pytest.raises(HTTPException) as excinfo:
            await chat_routes.chat(request)
        assert excinfo.value.status_code == 409

        release.set()
        await asyncio.gather(*list(chat_routes._research_tasks))

    assert registry.open("c1").claimed


class TestChatStreams:
    @pytest.mark.asyncio
    async def test_wander_streams_text_then_finish(self):
        async def fake_stream(**kwargs):
            for chunk in ["Hello", " there"]:
                yield chunk

        fake_client = MagicMock()
        fake_client.stream_text = fake_stream
        request = ChatRequest(chat_id="c1", query="hi")

        with patch("godeep.api.routes.chat.llm_client", return_value=fake_client):
            events = _decode([e async for e in chat_routes._wander_events(request)])

        assert events == [
            ("text-delta", {"text": "Hello"}),
            ("text-delta", {"text": " there"}),
            ("finish", {"reason": "stop"}),
        ]

    @pytest.mark.asyncio
    async def test_wander_failure_yields_error_event(self):
        async def broken_stream(**kwargs):
            raise RuntimeError("upstream down")
            yield  # pragma: no cover

        fake_client = MagicMock()
        fake_client.stream_text = broken_stream

        with patch("godeep.api.routes.chat.llm_client", return_value=fake_client):
            events = _decode([e async for e in chat_routes._wander_events(ChatRequest(chat_id="c1", query="hi"))])

        assert events == [("error", {"message": chat_routes.APOLOGY_MESSAGE, "recoverable": False})]

    @pytest.mark.asyncio
    async def test_deep_research_stores_report_and_emits_artifact(self):
        request = ChatRequest(chat_id="c1", query="Compare X and Y", mode="deep-research-mode", user_id="u1")
        outcome = ResearchOutcome(
            request=ResearchRequest(query=request.query, chat_id="c1"),
            report=FinalReport(text="# Report"),
        )
        orchestrator = MagicMock()
        orchestrator.run = AsyncMock(return_value=outcome)
        store = MemoryDocumentStore()

        with patch("godeep.api.routes.chat.ResearchOrchestrator", return_value=orchestrator), patch(
            "godeep.api.routes.chat.get_document_store", return_value=store
        ):
            events = _decode(
                [e async for e in chat_routes._deep_research_events(request, _start(request))]
            )

        names = [name for name, _ in events]
        assert names == ["research-started", "artifact", "text-delta", "finish"]
        artifact = events[1][1]
        assert artifact["title"] == "Research Report: Compare X and Y"
        stored = await store.get(artifact["id"])
        assert stored.content == "# Report"
        assert stored.user_id == "u1"
        assert events[2][1]["text"] == chat_routes.REPORT_READY_MESSAGE
        assert events[3][1]["document_id"] == artifact["id"]

    @pytest.mark.asyncio
    async def test_deep_research_failure_yields_error_event(self):
        request = ChatRequest(chat_id="c1", query="q", mode="deep-research-mode")
        outcome = ResearchOutcome(
            request=ResearchRequest(query="q", chat_id="c1"),
            report=FinalReport(text="Sorry, research failed."),
            error="boom",
        )
        orchestrator = MagicMock()
        orchestrator.run = AsyncMock(return_value=outcome)

        with patch("godeep.api.routes.chat.ResearchOrchestrator", return_value=orchestrator):
            events = _decode(
                [e async for e in chat_routes._deep_research_events(request, _start(request))]
            )

        assert [name for name, _ in events] == ["research-started", "error"]
        assert events[1][1]["message"] == "Sorry, research failed."
