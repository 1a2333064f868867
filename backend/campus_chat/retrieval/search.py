"""Search orchestration: embed the query, search the collection, fall back to keywords."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Any

from campus_chat.core.errors import CampusChatError
from campus_chat.core.logging import get_logger
from campus_chat.core.metrics import RETRIEVAL_FALLBACKS, VECTOR_SEARCH_LATENCY
from campus_chat.ingest.embeddings import EmbeddingService
from campus_chat.models.entities import SearchHit
from campus_chat.retrieval.keyword import KeywordScorer
from campus_chat.vectorstore.client import VectorStoreClient

logger = get_logger(__name__)

NO_INFORMATION = (
    "I have access to information about CampusCrew, but I'm having trouble retrieving it right now. "
    "Please try again in a moment or contact support for help."
)


@dataclass(slots=True)
class RetrievalResult:
    context: str
    sources: list[str]
    method: str  # "vector", "keyword" or "none"
    hits: list[SearchHit] = field(default_factory=list)
    fallback_reason: str | None = None

    @property
    def found(self) -> bool:
        return self.method != "none"


class RetrievalService:
    """Embed -> vector search, degrading to keyword search and then to a canned message."""

    def __init__(
        self,
        embeddings: EmbeddingService,
        store: VectorStoreClient,
        keyword: KeywordScorer,
        similarity_threshold: float = 0.3,
        max_results: int = 5,
        enabled: bool = True,
    ) -> None:
        self.embeddings = embeddings
        self.store = store
        self.keyword = keyword
        self.similarity_threshold = similarity_threshold
        self.max_results = max_results
        self.enabled = enabled
        self._lock = threading.Lock()
        self._counters = {"queries": 0, "vectorSearches": 0, "vectorHits": 0, "fallbacks": 0, "failures": 0}
        self._last_fallback: str | None = None

    def retrieve(self, query: str) -> RetrievalResult:
        self._bump("queries")
        if not self.enabled:
            return self._fallback(query, "vector retrieval disabled")

        started = time.perf_counter()
        try:
            vector = self.embeddings.embed_query(query)
            self._bump("vectorSearches")
            hits = self.store.search(vector.values, limit=self.max_results, min_score=self.similarity_threshold)
        except CampusChatError as exc:
            return self._fallback(query, f"{type(exc).__name__}: {exc.message}")
        finally:
            VECTOR_SEARCH_LATENCY.observe(time.perf_counter() - started)

        if not hits:
            return self._fallback(query, "no results above similarity threshold")
        if (
            self.keyword.wants_contact(query)
            and self.keyword.contact_document in self.keyword.corpus
            and not any(self.keyword.contact_document in hit.source.lower() for hit in hits)
        ):
            return self._fallback(query, "contact document missing from vector results")

        self._bump("vectorHits")
        context = "\n\n---\n\n".join(f"[Source: {hit.source}]\n{hit.content}" for hit in hits)
        return RetrievalResult(
            context=context,
            sources=[hit.source for hit in hits],
            method="vector",
            hits=hits,
        )

    def stats(self) -> dict[str, Any]:
        with self._lock:
            counters = dict(self._counters)
        counters["lastFallbackReason"] = self._last_fallback
        counters["similarityThreshold"] = self.similarity_threshold
        counters["maxResults"] = self.max_results
        counters["enabled"] = self.enabled
        return counters

    def _fallback(self, query: str, reason: str) -> RetrievalResult:
        logger.warning("Vector retrieval fell back to keyword search: %s", reason)
        self._bump("fallbacks")
        self._last_fallback = reason
        RETRIEVAL_FALLBACKS.labels(reason=_reason_label(reason)).inc()

        keyword_hits = self.keyword.score(query)
        if not keyword_hits:
            self._bump("failures")
            return RetrievalResult(context=NO_INFORMATION, sources=[], method="none", fallback_reason=reason)
        context = "\n\n---\n\n".join(f"[Source: {hit.source}]\n{hit.content}" for hit in keyword_hits)
        return RetrievalResult(
            context=context,
            sources=[hit.source for hit in keyword_hits],
            method="keyword",
            fallback_reason=reason,
        )

    def _bump(self, counter: str) -> None:
        with self._lock:
            self._counters[counter] += 1


def _reason_label(reason: str) -> str:
    if reason.startswith("no results"):
        return "empty"
    if reason.endswith("disabled"):
        return "disabled"
    if reason.startswith("contact"):
        return "contact"
    return reason.split(":", 1)[0]


__all__ = ["RetrievalService", "RetrievalResult", "NO_INFORMATION"]
