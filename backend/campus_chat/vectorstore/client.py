"""Qdrant client wrapper: collection lifecycle, deduplicated upsert, search and scroll."""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, Iterator, Mapping, Sequence, TypeVar

import httpx
from qdrant_client import QdrantClient
from qdrant_client.http.exceptions import ResponseHandlingException, UnexpectedResponse
from qdrant_client.http.models import (
    Distance,
    FieldCondition,
    Filter,
    FilterSelector,
    MatchAny,
    MatchValue,
    PointIdsList,
    PointStruct,
    VectorParams,
)

from campus_chat.core.config import Settings
from campus_chat.core.errors import EmbeddingDimensionMismatch, VectorStoreClientError, VectorStoreError
from campus_chat.core.retry import RetryPolicy
from campus_chat.models.entities import CollectionStats, SearchHit, UpsertResult, VectorPoint

logger = logging.getLogger(__name__)

T = TypeVar("T")


class VectorStoreClient:
    """Collection-scoped wrapper over :class:`qdrant_client.QdrantClient`.

    4xx responses raise :class:`VectorStoreClientError` immediately. Transport
    failures and 5xx responses are retried with ``policy`` and then raised as
    :class:`VectorStoreError`. A response the client cannot decode is raised as
    :class:`VectorStoreError` without retrying.
    """

    def __init__(
        self,
        collection: str,
        vector_size: int,
        *,
        url: str | None = None,
        api_key: str | None = None,
        client: QdrantClient | None = None,
        distance: str = "Cosine",
        policy: RetryPolicy | None = None,
        timeout: float = 30.0,
        batch_size: int = 100,
    ) -> None:
        if client is None and url is None:
            raise ValueError("either url or client is required")
        self.collection = collection
        self.vector_size = vector_size
        self.distance = Distance(distance)
        if client is None:
            client = QdrantClient(url=url, api_key=api_key, timeout=int(timeout), check_compatibility=False)
        self.client = client
        self.policy = policy or RetryPolicy()
        self.batch_size = batch_size

    @classmethod
    def from_settings(cls, settings: Settings, client: QdrantClient | None = None) -> "VectorStoreClient":
        return cls(
            settings.qdrant_collection,
            settings.vector_size,
            url=settings.qdrant_url,
            api_key=settings.qdrant_api_key,
            client=client,
            distance=settings.vector_distance,
            policy=RetryPolicy(max_attempts=settings.store_max_retries, base_delay=settings.store_retry_delay),
            timeout=settings.store_timeout,
            batch_size=settings.store_batch_size,
        )

    # Collection lifecycle ----------------------------------------------

    def create_collection(self) -> bool:
        """Create the collection; returns False when it already existed."""
        if self.collection_exists():
            logger.info("Collection %s already exists", self.collection)
            return False
        self._call(
            "create_collection",
            lambda: self.client.create_collection(
                collection_name=self.collection,
                vectors_config=VectorParams(size=self.vector_size, distance=self.distance),
            ),
        )
        logger.info("Created collection %s (size=%s)", self.collection, self.vector_size)
        return True

    def collection_exists(self) -> bool:
        return bool(self._call("collection_exists", lambda: self.client.collection_exists(self.collection)))

    def ensure_collection(self) -> None:
        if not self.collection_exists():
            self.create_collection()

    def stats(self) -> CollectionStats:
        info = self._call("get_collection", lambda: self.client.get_collection(self.collection))
        vectors = info.config.params.vectors
        size = getattr(vectors, "size", None) or self.vector_size
        distance = getattr(vectors, "distance", None) or self.distance
        return CollectionStats(
            collection=self.collection,
            points_count=int(info.points_count or 0),
            vector_size=int(size),
            distance=_enum_value(distance),
            status=_enum_value(info.status),
        )

    def health(self) -> bool:
        try:
            self._call("get_collections", self.client.get_collections)
        except VectorStoreError as exc:
            logger.warning("Vector store health check failed: %s", exc.message)
            return False
        return True

    # Writes -------------------------------------------------------------

    def upsert(self, points: Sequence[VectorPoint], check_existing: bool = True) -> UpsertResult:
        """Store points, skipping ones whose ``contentHash`` is already present."""
        result = UpsertResult()
        for point in points:
            self._check_dimension(point.vector)

        existing: set[str] = set()
        if check_existing:
            existing = self.existing_hashes(p.content_hash for p in points if p.content_hash)

        pending: list[VectorPoint] = []
        seen: set[str] = set()
        for point in points:
            digest = point.content_hash
            if digest and (digest in existing or digest in seen):
                result.skipped += 1
                continue
            if digest:
                seen.add(digest)
            pending.append(point)

        for start in range(0, len(pending), self.batch_size):
            batch = [
                PointStruct(id=p.id, vector=list(p.vector), payload=p.payload)
                for p in pending[start : start + self.batch_size]
            ]
            self._call(
                "upsert",
                lambda: self.client.upsert(collection_name=self.collection, points=batch, wait=True),
            )
            result.stored += len(batch)

        logger.info(
            "Upserted points",
            extra={"ctx_stored": result.stored, "ctx_skipped": result.skipped, "ctx_collection": self.collection},
        )
        return result

    def existing_hashes(self, hashes: Iterable[str]) -> set[str]:
        wanted = sorted(set(hashes))
        found: set[str] = set()
        for start in range(0, len(wanted), self.batch_size):
            batch = wanted[start : start + self.batch_size]
            for point in self.scroll(conditions={"contentHash": batch}, page_size=len(batch)):
                digest = point.payload.get("contentHash")
                if digest:
                    found.add(digest)
        return found

    def delete_points(self, ids: Sequence[str]) -> int:
        deleted = 0
        for start in range(0, len(ids), self.batch_size):
            batch = list(ids[start : start + self.batch_size])
            self._call(
                "delete",
                lambda: self.client.delete(
                    collection_name=self.collection,
                    points_selector=PointIdsList(points=batch),
                    wait=True,
                ),
            )
            deleted += len(batch)
        return deleted

    def delete_by_filter(self, conditions: Mapping[str, Any]) -> None:
        """Delete every point whose payload matches all ``conditions``.

        A list value matches any of its items; anything else must match exactly.
        """
        selector = FilterSelector(filter=_build_filter(conditions))
        self._call(
            "delete",
            lambda: self.client.delete(collection_name=self.collection, points_selector=selector, wait=True),
        )

    def clear(self) -> int:
        """Remove every point, page by page; returns the number deleted."""
        ids = [point.id for point in self.scroll()]
        deleted = self.delete_points(ids)
        logger.info("Cleared %s points from %s", deleted, self.collection)
        return deleted

    # Reads ---------------------------------------------------------------

    def search(self, vector: Sequence[float], limit: int = 5, min_score: float = 0.0) -> list[SearchHit]:
        self._check_dimension(vector)
        response = self._call(
            "query_points",
            lambda: self.client.query_points(
                collection_name=self.collection,
                query=list(vector),
                limit=limit,
                score_threshold=min_score,
                with_payload=True,
            ),
        )
        hits = [SearchHit(id=str(p.id), score=float(p.score), payload=p.payload or {}) for p in response.points]
        return [hit for hit in hits if hit.score >= min_score][:limit]

    def scroll(self, conditions: Mapping[str, Any] | None = None, page_size: int = 100) -> Iterator[VectorPoint]:
        """Yield every point (without vectors), following the next page offset."""
        scroll_filter = _build_filter(conditions) if conditions else None
        offset: Any = None
        while True:
            records, offset = self._call(
                "scroll",
                lambda: self.client.scroll(
                    collection_name=self.collection,
                    scroll_filter=scroll_filter,
                    limit=page_size,
                    offset=offset,
                    with_payload=True,
                    with_vectors=False,
                ),
            )
            for record in records:
                yield VectorPoint(id=str(record.id), vector=[], payload=record.payload or {})
            if offset is None:
                return

    # Internal helpers -------------------------------------------------

    def _check_dimension(self, vector: Sequence[float]) -> None:
        if len(vector) != self.vector_size:
            raise EmbeddingDimensionMismatch(expected=self.vector_size, actual=len(vector))

    def _call(self, operation: str, func: Callable[[], T]) -> T:
        last_error = "no attempts made"
        for attempt in range(1, self.policy.max_attempts + 1):
            try:
                return func()
            except UnexpectedResponse as exc:
                status = exc.status_code or 0
                if 400 <= status < 500:
                    detail = exc.content.decode("utf-8", "replace")[:300] if exc.content else exc.reason_phrase
                    raise VectorStoreClientError(f"{operation} -> {status}: {detail}", status) from exc
                last_error = f"{operation} -> {status} {exc.reason_phrase}"
            except (ResponseHandlingException, httpx.TransportError) as exc:
                last_error = f"{operation}: {type(exc).__name__}: {exc}"
            except ValueError as exc:
                raise VectorStoreError(f"{operation} returned an unreadable response: {exc}") from exc
            if attempt < self.policy.max_attempts:
                delay = self.policy.backoff(attempt)
                logger.warning(
                    "Vector store call failed (%s), attempt %s/%s; retrying in %.1fs",
                    last_error,
                    attempt,
                    self.policy.max_attempts,
                    delay,
                )
        raise VectorStoreError(f"Vector store unavailable after {self.policy.max_attempts} attempts: {last_error}")


def _build_filter(conditions: Mapping[str, Any]) -> Filter:
    must = []
    for key, value in conditions.items():
        if isinstance(value, (list, tuple, set)):
            must.append(FieldCondition(key=key, match=MatchAny(any=list(value))))
        else:
            must.append(FieldCondition(key=key, match=MatchValue(value=value)))
    return Filter(must=must)


def _enum_value(value: Any) -> str:
    return str(getattr(value, "value", value))


__all__ = ["VectorStoreClient"]
