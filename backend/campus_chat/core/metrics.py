"""Prometheus metrics instrumentation."""

from __future__ import annotations

from fastapi import Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

REGISTRY = CollectorRegistry()

CHAT_REQUESTS = Counter(
    "cchat_chat_requests_total",
    "Chat requests by classified intent and answering strategy",
    labelnames=("intent", "strategy"),
    registry=REGISTRY,
)

RETRIEVAL_FALLBACKS = Counter(
    "cchat_retrieval_fallbacks_total",
    "Vector retrieval fallbacks to keyword search",
    labelnames=("reason",),
    registry=REGISTRY,
)

VECTOR_SEARCH_LATENCY = Histogram(
    "cchat_vector_search_seconds",
    "Latency of embed + vector search",
    registry=REGISTRY,
)

INGEST_DURATION = Histogram(
    "cchat_ingest_duration_seconds",
    "Ingest pipeline duration",
    labelnames=("trigger",),
    registry=REGISTRY,
)

INGESTED_POINTS = Counter(
    "cchat_ingested_points_total",
    "Points handled by ingestion",
    labelnames=("outcome",),
    registry=REGISTRY,
)

INDEX_SIZE = Gauge(
    "cchat_index_points",
    "Number of points stored in the vector collection",
    registry=REGISTRY,
)


def metrics_response() -> Response:
    """Return Prometheus metrics as an HTTP response."""
    payload = generate_latest(REGISTRY)
    return Response(content=payload, media_type=CONTENT_TYPE_LATEST)


__all__ = [
    "REGISTRY",
    "CHAT_REQUESTS",
    "RETRIEVAL_FALLBACKS",
    "VECTOR_SEARCH_LATENCY",
    "INGEST_DURATION",
    "INGESTED_POINTS",
    "INDEX_SIZE",
    "metrics_response",
]
