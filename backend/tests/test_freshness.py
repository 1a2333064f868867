"""Tests for freshness audits and collection rebuilds."""

from datetime import timedelta
from pathlib import Path

import pytest
from conftest import DIM

from campus_chat.core.errors import VectorStoreError
from campus_chat.ingest.freshness import FreshnessMaintainer
from campus_chat.ingest.pipeline import IngestPipeline
from campus_chat.models.entities import Recommendation, VectorPoint
from campus_chat.utils.hashing import content_hash
from campus_chat.utils.ids import point_id
from campus_chat.utils.time import utc_now

TEXT = " ".join(f"Sentence {i} covers registering for CampusCrew events." for i in range(6))


@pytest.fixture
def pipeline(settings, store, embeddings, content_dir: Path) -> IngestPipeline:
    (content_dir / "home.txt").write_text(TEXT)
    return IngestPipeline(settings, embeddings, store)


def duplicate_point(text: str) -> VectorPoint:
    digest = content_hash(text)
    vector = [0.0] * DIM
    vector[1] = 1.0
    payload = {"contentHash": digest, "content": text, "source": "home", "uploadedAt": utc_now().isoformat()}
    return VectorPoint(id=point_id(digest), vector=vector, payload=payload)


def test_empty_collection_needs_reindex(store, pipeline: IngestPipeline) -> None:
    report = FreshnessMaintainer(store, pipeline).audit()
    assert report.total_points == 0
    assert report.recommendation is Recommendation.REINDEX
    assert report.reason == "collection is empty"


def test_freshly_ingested_collection_needs_nothing(store, pipeline: IngestPipeline) -> None:
    pipeline.ingest_directory()
    maintainer = FreshnessMaintainer(store, pipeline)

    report = maintainer.audit()

    assert report.recommendation is Recommendation.NO_ACTION
    assert report.to_dict()["duplicateGroups"] == 0
    assert maintainer.auto_update() == {"updated": False, "report": report.to_dict()}


def test_duplicate_sources_need_reindex(store, pipeline: IngestPipeline) -> None:
    pipeline.ingest_directory()
    store.upsert([duplicate_point("an older copy of the home page")])

    report = FreshnessMaintainer(store, pipeline).audit()

    assert report.recommendation is Recommendation.REINDEX
    assert report.duplicate_groups == {"home": 2}


def test_stale_points_need_reindex(store, pipeline: IngestPipeline) -> None:
    pipeline.ingest_directory()
    later = utc_now() + timedelta(days=31)

    report = FreshnessMaintainer(store, pipeline, stale_after_days=30, clock=lambda: later).audit()

    assert report.recommendation is Recommendation.REINDEX
    assert report.stale_count == report.total_points == 1


def test_auto_update_rebuilds_duplicated_collection(store, pipeline: IngestPipeline) -> None:
    pipeline.ingest_directory()
    store.upsert([duplicate_point("an older copy of the home page")])
    maintainer = FreshnessMaintainer(store, pipeline)

    result = maintainer.auto_update()

    assert result["updated"] is True
    assert result["trigger"] == "auto"
    assert result["cleared"] == 2
    assert result["report"]["duplicateSources"] == {"home": 2}
    assert store.stats().points_count == 1
    assert maintainer.audit().recommendation is Recommendation.NO_ACTION
    assert maintainer.last_update is result


def test_force_update_rebuilds_even_when_fresh(store, pipeline: IngestPipeline) -> None:
    pipeline.ingest_directory()
    result = FreshnessMaintainer(store, pipeline).force_update()
    assert result["trigger"] == "force"
    assert result["cleared"] == 1
    assert result["ingest"]["stored"] == 1
    assert "report" not in result


def test_store_error_mid_rebuild_fails_one_document(
    store, pipeline: IngestPipeline, content_dir: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    (content_dir / "about.txt").write_text(TEXT.replace("registering for", "organizing"))
    pipeline.ingest_directory()
    lookup = store.existing_hashes
    outcomes = [VectorStoreError("Vector store unavailable after 3 attempts: scroll -> 503")]

    def flaky_lookup(hashes):
        if outcomes:
            raise outcomes.pop(0)
        return lookup(hashes)

    monkeypatch.setattr(store, "existing_hashes", flaky_lookup)

    result = FreshnessMaintainer(store, pipeline).force_update()

    assert result["cleared"] == 2
    assert result["ingest"]["stored"] == 1
    assert result["ingest"]["failed"] == 1
    assert "scroll -> 503" in result["ingest"]["errors"][0]
    assert store.stats().points_count == 1
