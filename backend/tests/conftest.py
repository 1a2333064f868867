"""Test fixtures for Campus Chat."""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any

import httpx
import pytest
import requests
from qdrant_client import QdrantClient
from qdrant_client.http.exceptions import UnexpectedResponse

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from campus_chat.core.config import Settings  # noqa: E402
from campus_chat.core.retry import RetryPolicy  # noqa: E402
from campus_chat.ingest.embeddings import EmbeddingService, HashedEmbeddingProvider  # noqa: E402
from campus_chat.vectorstore.client import VectorStoreClient  # noqa: E402

DIM = 64


class FakeResponse:
    """The slice of ``requests.Response`` the clients rely on."""

    def __init__(self, status_code: int = 200, payload: Any = None, text: str | None = None) -> None:
        self.status_code = status_code
        self._payload = payload
        self.text = text if text is not None else (json.dumps(payload) if payload is not None else "")
        self.content = self.text.encode("utf-8")

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def json(self) -> Any:
        if self._payload is None:
            raise ValueError("no JSON body")
        return self._payload

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


class FlakyQdrant:
    """In-memory ``QdrantClient`` that first raises the queued ``failures``.

    Each entry is an exception, or an HTTP status turned into
    ``UnexpectedResponse``, raised by the next client call.
    """

    def __init__(self) -> None:
        self.client = QdrantClient(location=":memory:")
        self.failures: list[Any] = []
        self.calls: list[str] = []

    def __getattr__(self, name: str) -> Any:
        target = getattr(self.client, name)
        if not callable(target):
            return target

        def call(*args: Any, **kwargs: Any) -> Any:
            self.calls.append(name)
            if self.failures:
                failure = self.failures.pop(0)
                if isinstance(failure, int):
                    failure = unexpected_response(failure)
                raise failure
            return target(*args, **kwargs)

        return call


def unexpected_response(status_code: int, body: bytes = b'{"status": "error"}') -> UnexpectedResponse:
    return UnexpectedResponse(
        status_code=status_code,
        reason_phrase="error",
        content=body,
        headers=httpx.Headers(),
    )


class FakeCompletionSession:
    """Records completion POSTs and answers each with the same response."""

    def __init__(self, response: FakeResponse) -> None:
        self.response = response
        self.calls: list[dict[str, Any]] = []

    def post(self, url: str, json: Any = None, headers: Any = None, timeout: Any = None) -> FakeResponse:
        self.calls.append({"url": url, "json": json, "headers": headers})
        return self.response

    @property
    def system_prompt(self) -> str:
        return self.calls[-1]["json"]["messages"][0]["content"]


def completion_payload(content: str) -> dict[str, Any]:
    return {"model": "provider-model", "choices": [{"message": {"role": "assistant", "content": content}}]}


class RecordingSleep:
    def __init__(self) -> None:
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture(autouse=True)
def reset_state(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """Reset global singletons and environment between tests."""
    monkeypatch.delenv("CCHAT_CONFIG", raising=False)
    monkeypatch.setenv("CCHAT_CONTENT_DIR", str(tmp_path / "content"))
    monkeypatch.setenv("CCHAT_EMBEDDING_PROVIDER", "hashed")
    monkeypatch.delenv("CCHAT_CHAT_API_KEY", raising=False)
    monkeypatch.delenv("CCHAT_EVENT_DB_PATH", raising=False)

    from campus_chat.api import dependencies as deps

    deps.reset_dependencies()
    yield
    deps.reset_dependencies()


@pytest.fixture
def sleeper() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def policy(sleeper: RecordingSleep) -> RetryPolicy:
    return RetryPolicy(max_attempts=3, base_delay=1.0, sleep=sleeper)


@pytest.fixture
def qdrant() -> FlakyQdrant:
    return FlakyQdrant()


@pytest.fixture
def store(qdrant: FlakyQdrant, policy: RetryPolicy) -> VectorStoreClient:
    return VectorStoreClient("docs", DIM, client=qdrant, policy=policy, batch_size=4)


@pytest.fixture
def embeddings(policy: RetryPolicy) -> EmbeddingService:
    return EmbeddingService(HashedEmbeddingProvider(dim=DIM), DIM, policy=policy, item_delay=0.0)


@pytest.fixture
def content_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "content"
    directory.mkdir(exist_ok=True)
    return directory


@pytest.fixture
def settings(content_dir: Path) -> Settings:
    return Settings(
        content_dir=content_dir,
        embedding_provider="hashed",
        vector_size=DIM,
        chunk_min_size=500,
        chunk_max_size=800,
        chunk_overlap=50,
    )


@pytest.fixture(scope="session")
def sample_text() -> str:
    sentences = [
        f"Sentence number {i} describes how CampusCrew students register for campus events and workshops."
        for i in range(40)
    ]
    return " ".join(sentences)
