"""Tests for keyword scoring and the vector retrieval fallback chain."""

import json
from pathlib import Path

from conftest import DIM, FakeResponse

from campus_chat.core.errors import EmbeddingProviderError, VectorStoreError
from campus_chat.ingest.embeddings import EmbeddingService, HuggingFaceEmbeddingProvider
from campus_chat.ingest.pipeline import IngestPipeline
from campus_chat.retrieval import NO_INFORMATION, KeywordScorer, RetrievalService

CORPUS = {
    "home": "Welcome to CampusCrew, the campus event platform.",
    "contact": "Reach us at campuscrew@gmail.com or visit our office in Dhaka.",
    "events": "Browse events, register for workshops, and download certificates after events.",
}


class BrokenStore:
    def search(self, vector, limit=5, min_score=0.0):
        raise VectorStoreError("connection refused")


class DownProvider:
    name = "down"
    model = "down-model"

    def embed(self, text: str) -> list[float]:
        raise EmbeddingProviderError("encoder offline")


class ProxySession:
    """Answers every POST with an HTML error page and a 200 status."""

    def __init__(self) -> None:
        self.calls = 0

    def post(self, url, json=None, headers=None, timeout=None):
        self.calls += 1
        return FakeResponse(200, None, text="<html>proxy error</html>")


def test_keyword_scores_by_occurrence() -> None:
    hits = KeywordScorer(CORPUS).score("how do I register for events")
    assert hits[0].source == "events"
    assert hits[0].score >= 3


def test_contact_queries_rank_contact_first() -> None:
    hits = KeywordScorer(CORPUS).score("what is your email address")
    assert hits[0].source == "contact"
    assert hits[0].score >= 1000


def test_no_overlap_returns_home_document() -> None:
    hits = KeywordScorer(CORPUS).score("zzz qqq")
    assert [hit.source for hit in hits] == ["home"]
    assert KeywordScorer({}).score("anything") == []


def test_keyword_corpus_loads_from_directory(tmp_path: Path) -> None:
    (tmp_path / "home.txt").write_text("Welcome to CampusCrew.")
    scorer = KeywordScorer(content_dir=tmp_path)
    assert scorer.corpus == {"home": "Welcome to CampusCrew."}
    (tmp_path / "faq.md").write_text("# FAQ\n\nHow to register.")
    assert scorer.reload() == 2


def test_vector_hits_become_context(settings, store, embeddings, content_dir: Path) -> None:
    (content_dir / "events.txt").write_text(CORPUS["events"] * 3)
    IngestPipeline(settings, embeddings, store).ingest_directory()
    service = RetrievalService(embeddings, store, KeywordScorer(CORPUS), similarity_threshold=0.1)

    result = service.retrieve("register for workshops and download certificates")

    assert result.method == "vector"
    assert result.sources == ["events"]
    assert result.context.startswith("[Source: events]\n")
    assert service.stats()["vectorHits"] == 1


def test_empty_vector_results_fall_back_to_keywords(store, embeddings) -> None:
    store.ensure_collection()
    service = RetrievalService(embeddings, store, KeywordScorer(CORPUS))

    result = service.retrieve("register for events")

    assert result.method == "keyword"
    assert result.context
    assert result.fallback_reason == "no results above similarity threshold"
    assert service.stats()["fallbacks"] == 1


def test_store_failure_falls_back_to_keywords(embeddings) -> None:
    service = RetrievalService(embeddings, BrokenStore(), KeywordScorer(CORPUS))
    result = service.retrieve("register for events")
    assert result.method == "keyword"
    assert result.fallback_reason.startswith("VectorStoreError")


def test_empty_corpus_yields_canned_message(embeddings) -> None:
    service = RetrievalService(embeddings, BrokenStore(), KeywordScorer({}))
    result = service.retrieve("anything")
    assert result.method == "none"
    assert result.context == NO_INFORMATION
    assert not result.found
    assert service.stats()["failures"] == 1


def test_contact_query_without_contact_hit_uses_keywords(settings, store, embeddings, content_dir: Path) -> None:
    (content_dir / "home.txt").write_text("CampusCrew email and phone support for every campus address. " * 2)
    IngestPipeline(settings, embeddings, store).ingest_directory()
    service = RetrievalService(embeddings, store, KeywordScorer(CORPUS), similarity_threshold=0.05)

    result = service.retrieve("email address phone")

    assert result.method == "keyword"
    assert result.sources[0] == "contact"


def test_disabled_retrieval_uses_keywords(store, embeddings) -> None:
    service = RetrievalService(embeddings, store, KeywordScorer(CORPUS), enabled=False)
    assert service.retrieve("events").method == "keyword"
    assert service.stats()["vectorSearches"] == 0


def test_embedding_failure_is_recorded_as_the_fallback_reason(store, policy) -> None:
    store.ensure_collection()
    service = RetrievalService(EmbeddingService(DownProvider(), DIM, policy=policy), store, KeywordScorer(CORPUS))

    result = service.retrieve("register for events")

    assert result.method == "keyword"
    assert result.fallback_reason == "EmbeddingProviderError: down: encoder offline"
    assert service.stats()["lastFallbackReason"] == result.fallback_reason
    assert service.stats()["vectorSearches"] == 0


def test_html_embedding_response_falls_back_to_keywords(store, policy) -> None:
    session = ProxySession()
    provider = HuggingFaceEmbeddingProvider("mini", session=session, base_url="http://hf.test")
    service = RetrievalService(EmbeddingService(provider, DIM, policy=policy), store, KeywordScorer(CORPUS))

    result = service.retrieve("events")

    assert result.method == "keyword"
    assert result.fallback_reason.startswith("EmbeddingProviderError")
    assert session.calls == policy.max_attempts


def test_unreadable_store_response_falls_back_to_keywords(store, qdrant, embeddings) -> None:
    store.ensure_collection()
    qdrant.failures = [json.JSONDecodeError("Expecting value", "<html>proxy error</html>", 0)]
    service = RetrievalService(embeddings, store, KeywordScorer(CORPUS))

    result = service.retrieve("events")

    assert result.method == "keyword"
    assert result.fallback_reason.startswith("VectorStoreError")
