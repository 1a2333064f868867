"""Vector store freshness audits and re-ingestion."""

from __future__ import annotations

import threading
from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Callable

from campus_chat.core.logging import get_logger
from campus_chat.ingest.pipeline import IngestPipeline
from campus_chat.models.entities import FreshnessReport, Recommendation
from campus_chat.utils.time import parse_iso, utc_now
from campus_chat.vectorstore.client import VectorStoreClient

logger = get_logger(__name__)


class FreshnessMaintainer:
    """Audit the collection for duplicate or stale points and rebuild it when needed.

    Audits only page through the store, so they run alongside live searches.
    Updates are serialized by a local lock so two rebuilds never interleave.
    """

    def __init__(
        self,
        store: VectorStoreClient,
        pipeline: IngestPipeline,
        stale_after_days: int = 30,
        page_size: int = 100,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.pipeline = pipeline
        self.stale_after = timedelta(days=stale_after_days)
        self.page_size = page_size
        self._clock = clock
        self._update_lock = threading.Lock()
        self.last_update: dict[str, Any] | None = None

    def audit(self) -> FreshnessReport:
        sources: Counter[str] = Counter()
        stale = 0
        total = 0
        cutoff = self._clock() - self.stale_after
        exists = self.store.collection_exists()
        for point in self.store.scroll(page_size=self.page_size) if exists else ():
            total += 1
            source = point.payload.get("source") or point.payload.get("sourceId") or "unknown"
            sources[source] += 1
            uploaded = parse_iso(point.payload.get("uploadedAt"))
            if uploaded is None or uploaded < cutoff:
                stale += 1

        duplicates = {source: count for source, count in sources.items() if count > 1}
        if total == 0:
            recommendation, reason = Recommendation.REINDEX, "collection is empty"
        elif duplicates:
            recommendation, reason = Recommendation.REINDEX, f"{len(duplicates)} sources have duplicate points"
        elif stale:
            recommendation, reason = (
                Recommendation.REINDEX,
                f"{stale} points older than {self.stale_after.days} days",
            )
        else:
            recommendation, reason = Recommendation.NO_ACTION, "data is fresh"

        report = FreshnessReport(
            total_points=total,
            duplicate_groups=duplicates,
            stale_count=stale,
            recommendation=recommendation,
            reason=reason,
        )
        logger.info(
            "Freshness audit: %s",
            reason,
            extra={"ctx_total": total, "ctx_duplicates": len(duplicates), "ctx_stale": stale},
        )
        return report

    def auto_update(self) -> dict[str, Any]:
        """Rebuild only when the audit recommends it."""
        report = self.audit()
        if not report.needs_update:
            return {"updated": False, "report": report.to_dict()}
        return self._rebuild(report, trigger="auto")

    def force_update(self) -> dict[str, Any]:
        return self._rebuild(None, trigger="force")

    def _rebuild(self, report: FreshnessReport | None, trigger: str) -> dict[str, Any]:
        with self._update_lock:
            logger.info("Rebuilding vector collection", extra={"ctx_trigger": trigger})
            cleared = self.store.clear() if self.store.collection_exists() else 0
            ingest = self.pipeline.ingest_directory(trigger=trigger)
            result: dict[str, Any] = {
                "updated": True,
                "trigger": trigger,
                "cleared": cleared,
                "ingest": ingest,
                "completedAt": self._clock().isoformat(),
            }
            if report is not None:
                result["report"] = report.to_dict()
            self.last_update = result
            return result


__all__ = ["FreshnessMaintainer"]
