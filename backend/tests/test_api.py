"""API integration tests."""

from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest
from conftest import FakeCompletionSession, FakeResponse, completion_payload
from fastapi.testclient import TestClient

from campus_chat.api import dependencies as deps
from campus_chat.app import app
from campus_chat.chat.completion import CompletionClient
from campus_chat.chat.events import EventRecord, InMemoryEventStore
from campus_chat.chat.handler import EventQueryHandler
from campus_chat.chat.service import ChatService
from campus_chat.core.ratelimit import FixedWindowRateLimiter
from campus_chat.ingest.freshness import FreshnessMaintainer
from campus_chat.ingest.pipeline import IngestPipeline
from campus_chat.retrieval import KeywordScorer, RetrievalService

BASE_URL = "http://campus.test"
CORPUS = {
    "home": "Welcome to CampusCrew, the campus event platform.",
    "contact": "Reach us at campuscrew@gmail.com or visit our office in Dhaka.",
}


@pytest.fixture
def llm() -> FakeCompletionSession:
    return FakeCompletionSession(FakeResponse(200, completion_payload("Email campuscrew@gmail.com.")))


@pytest.fixture
def wire(settings, store, embeddings, llm) -> Callable[..., ChatService]:
    """Install overrides backed by the fake Qdrant and completion session."""

    def install(api_key: str | None = "test-key", limit: int = 100) -> ChatService:
        events = InMemoryEventStore()
        events.add(EventRecord(id="e1", title="Spring Hackathon", category="Career"))
        retrieval = RetrievalService(embeddings, store, KeywordScorer(CORPUS))
        completion = CompletionClient(api_key, "default-model", "http://llm.test/v1", session=llm)
        pipeline = IngestPipeline(settings, embeddings, store)
        service = ChatService(
            memory=deps.get_memory(),
            retrieval=retrieval,
            handler=EventQueryHandler(events, BASE_URL),
            completion=completion,
            limiter=FixedWindowRateLimiter(limit=limit, window=60),
            base_url=BASE_URL,
        )
        app.dependency_overrides.update(
            {
                deps.get_chat_service: lambda: service,
                deps.get_vector_store: lambda: store,
                deps.get_completion_client: lambda: completion,
                deps.get_event_store: lambda: events,
                deps.get_retrieval_service: lambda: retrieval,
                deps.get_ingest_pipeline: lambda: pipeline,
                deps.get_freshness_maintainer: lambda: FreshnessMaintainer(store, pipeline),
            }
        )
        return service

    yield install
    app.dependency_overrides.clear()


@pytest.fixture
def client() -> TestClient:
    with TestClient(app) as test_client:
        yield test_client


def test_health(wire, client: TestClient) -> None:
    wire()
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"ok": True, "vectorStore": True}


def test_missing_message_is_rejected(wire, client: TestClient) -> None:
    wire()
    resp = client.post("/chat", json={"userId": "u1"})
    assert resp.status_code == 400
    assert resp.json() == {"success": False, "error": "Message is required and must be a string"}
    assert client.post("/chat", json={"message": 42}).status_code == 400


def test_missing_api_key_returns_server_error(wire, client: TestClient) -> None:
    wire(api_key=None)
    resp = client.post("/chat", json={"message": "hi"})
    assert resp.status_code == 500
    assert "CCHAT_CHAT_API_KEY" in resp.json()["error"]


def test_rate_limit_returns_429(wire, client: TestClient) -> None:
    wire(limit=1)
    assert client.post("/chat", json={"message": "hi"}).status_code == 200
    resp = client.post("/chat", json={"message": "hi"})
    assert resp.status_code == 429
    assert resp.json()["success"] is False


def test_greeting_conversation_flow(wire, client: TestClient) -> None:
    wire()
    resp = client.post("/chat", json={"message": "hi", "userId": "u1"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["model"] == "intent-greeting"
    assert body["intent"] == "GREETING"
    assert "metadata" not in body

    conversation = client.get("/chat/conversation/u1").json()["conversation"]
    assert [m["role"] for m in conversation["messages"]] == ["user", "assistant"]
    assert conversation["hasOngoing"] is True

    greeting = client.post("/chat/greeting/u1").json()
    assert greeting["greeting"] == "Welcome back! We've chatted 2 times. What can I help you with today?"
    assert greeting["conversationSummary"]["messageCount"] == 2

    status = client.get("/chat/memory-status").json()["memory"]
    assert status["totalUsers"] == 1
    assert status["sessionTimeout"] == 24 * 60

    cleared = client.delete("/chat/conversation/u1").json()
    assert cleared["cleared"] is True
    assert client.get("/chat/conversation/u1").json()["conversation"]["messages"] == []


def test_platform_question_through_api(wire, client: TestClient, llm: FakeCompletionSession) -> None:
    wire()
    resp = client.post(
        "/chat",
        json={"message": "how do I contact campuscrew"},
        headers={"x-forwarded-for": "203.0.113.7, 10.0.0.1"},
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["response"] == "Email campuscrew@gmail.com."
    assert body["metadata"]["retrievalMethod"] == "keyword"
    assert body["conversationInfo"]["messageCount"] == 1
    assert len(llm.calls) == 1
    assert len(client.get("/chat/conversation/203.0.113.7").json()["conversation"]["messages"]) == 2


def test_chat_health_and_stats(wire, client: TestClient, store) -> None:
    wire()
    store.ensure_collection()

    health = client.get("/chat/health").json()
    assert health["status"] == "ready"
    assert health["chatConfigured"] is True
    assert health["vectorStore"] == {"reachable": True, "collection": "docs"}

    stats = client.get("/chat/stats").json()
    assert stats["events"]["totalEvents"] == 1
    assert stats["vectorStore"]["pointsCount"] == 0
    assert stats["retrieval"]["queries"] == 0


def test_ingest_and_freshness_flow(wire, client: TestClient, content_dir: Path) -> None:
    wire()
    document = content_dir / "faq.md"
    document.write_text("# FAQ\n\n" + " ".join(f"Answer {i} about registering for events." for i in range(10)))

    ingest = client.post("/ingest", json={"paths": [str(document)]})
    assert ingest.status_code == 200
    assert ingest.json()["trigger"] == "api"
    assert ingest.json()["stats"]["stored"] == 1

    report = client.get("/freshness").json()["report"]
    assert report["recommendation"] == "NO_ACTION"
    assert report["totalPoints"] == 1

    assert client.post("/freshness/update").json()["updated"] is False
    forced = client.post("/freshness/update", json={"force": True}).json()
    assert forced["trigger"] == "force"
    assert forced["cleared"] == 1


def test_metrics(wire, client: TestClient) -> None:
    wire()
    client.post("/chat", json={"message": "hi"})
    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert "cchat_chat_requests_total" in resp.text
