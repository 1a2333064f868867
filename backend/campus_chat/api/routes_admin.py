"""Administrative routes: ingestion, freshness maintenance, health and metrics."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from fastapi import APIRouter, Depends

from campus_chat.api.dependencies import get_freshness_maintainer, get_ingest_pipeline, get_vector_store
from campus_chat.core.metrics import metrics_response
from campus_chat.ingest.freshness import FreshnessMaintainer
from campus_chat.ingest.pipeline import IngestPipeline
from campus_chat.models.dto import FreshnessUpdateRequest, IngestRequest, IngestResponse
from campus_chat.utils.time import iso_now
from campus_chat.vectorstore.client import VectorStoreClient

router = APIRouter()


@router.post("/ingest", response_model=IngestResponse, summary="Ingest the knowledge base")
def trigger_ingest(
    request: IngestRequest | None = None,
    pipeline: IngestPipeline = Depends(get_ingest_pipeline),
) -> IngestResponse:
    if request is not None and request.paths:
        paths = [Path(path).expanduser() for path in request.paths]
        stats = pipeline.ingest_paths(paths, trigger="api")
    else:
        stats = pipeline.ingest_directory(trigger="api")
    return IngestResponse(trigger="api", stats=stats)


@router.get("/freshness", summary="Audit the vector collection for duplicates and stale points")
def freshness_report(maintainer: FreshnessMaintainer = Depends(get_freshness_maintainer)) -> dict[str, Any]:
    return {"success": True, "report": maintainer.audit().to_dict(), "timestamp": iso_now()}


@router.post("/freshness/update", summary="Rebuild the collection when stale, or unconditionally with force")
def freshness_update(
    request: FreshnessUpdateRequest | None = None,
    maintainer: FreshnessMaintainer = Depends(get_freshness_maintainer),
) -> dict[str, Any]:
    force = request is not None and request.force
    result = maintainer.force_update() if force else maintainer.auto_update()
    return {"success": True, **result}


@router.get("/health", summary="Liveness and vector store connectivity")
def health(store: VectorStoreClient = Depends(get_vector_store)) -> dict[str, Any]:
    return {"ok": True, "vectorStore": store.health()}


@router.get("/metrics", summary="Prometheus metrics")
def get_metrics():
    return metrics_response()


__all__ = ["router"]
