"""Ingest pipeline orchestration."""

from __future__ import annotations

import time
from pathlib import Path
from typing import Sequence

from campus_chat.core.config import Settings
from campus_chat.core.errors import VectorStoreError
from campus_chat.core.logging import get_logger
from campus_chat.core.metrics import INDEX_SIZE, INGEST_DURATION, INGESTED_POINTS
from campus_chat.ingest.chunker import chunk_text
from campus_chat.ingest.dedupe import dedupe_chunks, dedupe_documents
from campus_chat.ingest.embeddings import EmbeddingService
from campus_chat.ingest.loaders import LoaderRegistry
from campus_chat.ingest.types import IngestStats, LoadedDocument
from campus_chat.models.entities import DocumentChunk, EmbeddingVector, VectorPoint
from campus_chat.utils.ids import point_id
from campus_chat.utils.time import iso_now
from campus_chat.vectorstore.client import VectorStoreClient

logger = get_logger(__name__)

MIN_DOCUMENT_CHARS = 50


class IngestPipeline:
    """Coordinate loaders, chunking, embeddings, and vector storage."""

    def __init__(
        self,
        settings: Settings,
        embeddings: EmbeddingService,
        store: VectorStoreClient,
        loader_registry: LoaderRegistry | None = None,
    ) -> None:
        self.settings = settings
        self.embeddings = embeddings
        self.store = store
        self.loader_registry = loader_registry or LoaderRegistry()

    def ingest_directory(self, directory: Path | None = None, trigger: str = "manual") -> dict[str, object]:
        base = (directory or self.settings.content_dir).expanduser()
        if not base.is_dir():
            logger.warning("Content directory %s does not exist", base)
            return IngestStats().to_dict()
        return self.ingest_paths(list(self.loader_registry.iter_directory(base)), trigger=trigger)

    def ingest_paths(self, paths: Sequence[Path], trigger: str = "manual") -> dict[str, object]:
        stats = IngestStats()
        started = time.perf_counter()
        self.store.ensure_collection()

        documents: list[LoadedDocument] = []
        for path in paths:
            try:
                document = self.loader_registry.load(path)
            except (OSError, ValueError) as exc:
                logger.warning("Failed to load %s: %s", path, exc)
                stats.errors.append(f"{path.name}: {exc}")
                continue
            if len(document.text.strip()) < MIN_DOCUMENT_CHARS:
                logger.info("Skipping %s: shorter than %s characters", path.name, MIN_DOCUMENT_CHARS)
                continue
            documents.append(document)

        for document in dedupe_documents(documents):
            self._ingest_document(document, stats)

        elapsed = time.perf_counter() - started
        INGEST_DURATION.labels(trigger=trigger).observe(elapsed)
        self._update_index_metric()
        summary = stats.to_dict()
        logger.info(
            "Ingestion finished: %s documents, %s stored, %s skipped, %s failed",
            stats.documents,
            stats.stored,
            stats.skipped,
            stats.failed,
            extra={"ctx_trigger": trigger, "ctx_elapsed": round(elapsed, 3)},
        )
        return summary

    def ingest_document(self, document: LoadedDocument) -> dict[str, object]:
        stats = IngestStats()
        self.store.ensure_collection()
        self._ingest_document(document, stats)
        return stats.to_dict()

    # Internal helpers -------------------------------------------------

    def _ingest_document(self, document: LoadedDocument, stats: IngestStats) -> None:
        stats.documents += 1
        chunks = chunk_text(
            document.text,
            source_id=document.source_id,
            min_size=self.settings.chunk_min_size,
            max_size=self.settings.chunk_max_size,
            overlap=self.settings.chunk_overlap,
        )
        stats.chunks += len(chunks)
        unique, duplicates = dedupe_chunks(chunks)
        stats.skipped += duplicates
        if not unique:
            logger.warning("Document %s produced no chunks", document.path)
            return

        # Only embed what the store does not already hold.
        try:
            existing = self.store.existing_hashes(chunk.content_hash for chunk in unique)
        except VectorStoreError as exc:
            self._record_store_failure(document, len(unique), exc, stats)
            return
        fresh = [chunk for chunk in unique if chunk.content_hash not in existing]
        stats.skipped += len(unique) - len(fresh)
        if not fresh:
            INGESTED_POINTS.labels(outcome="skipped").inc(len(unique))
            return

        batch = self.embeddings.embed([chunk.content for chunk in fresh])
        points: list[VectorPoint] = []
        uploaded_at = iso_now()
        for chunk, vector, error in zip(fresh, batch.vectors, batch.errors):
            if vector is None:
                stats.failed += 1
                stats.embedding_errors += 1
                stats.errors.append(f"{document.source_id}#{chunk.chunk_index}: {error}")
                continue
            points.append(self._build_point(document, chunk, vector, uploaded_at))

        if not points:
            return
        try:
            result = self.store.upsert(points, check_existing=False)
        except VectorStoreError as exc:
            self._record_store_failure(document, len(points), exc, stats)
            return
        stats.stored += result.stored
        stats.skipped += result.skipped
        INGESTED_POINTS.labels(outcome="stored").inc(result.stored)
        INGESTED_POINTS.labels(outcome="skipped").inc(result.skipped + len(unique) - len(fresh))

    def _record_store_failure(
        self, document: LoadedDocument, count: int, exc: VectorStoreError, stats: IngestStats
    ) -> None:
        logger.error("Vector store failed for %s: %s", document.source_id, exc.message)
        stats.failed += count
        stats.errors.append(f"{document.source_id}: {exc.message}")
        INGESTED_POINTS.labels(outcome="failed").inc(count)

    def _build_point(
        self,
        document: LoadedDocument,
        chunk: DocumentChunk,
        vector: EmbeddingVector,
        uploaded_at: str,
    ) -> VectorPoint:
        source = document.source_id if chunk.total_chunks == 1 else f"{document.source_id}-chunk-{chunk.chunk_index}"
        payload = chunk.payload()
        payload.update(
            {
                "source": source,
                "originalSource": document.source_id,
                "sourceTitle": document.title,
                "uploadedAt": uploaded_at,
                "dataVersion": self.settings.data_version,
                "embeddingModel": vector.model,
                "embeddingProvider": vector.provider,
                "embeddingGeneratedAt": vector.generated_at,
            }
        )
        return VectorPoint(id=point_id(chunk.content_hash), vector=vector.values, payload=payload)

    def _update_index_metric(self) -> None:
        try:
            INDEX_SIZE.set(self.store.stats().points_count)
        except VectorStoreError as exc:
            logger.debug("Could not refresh index size: %s", exc.message)


__all__ = ["IngestPipeline", "MIN_DOCUMENT_CHARS"]
