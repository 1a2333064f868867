"""Common ingestion data structures."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any


@dataclass(slots=True)
class LoadedDocument:
    """A knowledge-base document read from disk."""

    path: Path
    text: str
    title: str
    mime: str
    metadata: dict[str, Any] = field(default_factory=dict)
    modified_ts: int | None = None
    size_bytes: int = 0

    @property
    def source_id(self) -> str:
        return self.path.stem


@dataclass(slots=True)
class IngestStats:
    """Aggregated ingest statistics."""

    documents: int = 0
    chunks: int = 0
    stored: int = 0
    skipped: int = 0
    failed: int = 0
    embedding_errors: int = 0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "documents": self.documents,
            "chunks": self.chunks,
            "stored": self.stored,
            "skipped": self.skipped,
            "failed": self.failed,
            "embeddingErrors": self.embedding_errors,
            "errors": list(self.errors),
        }


__all__ = ["LoadedDocument", "IngestStats"]
