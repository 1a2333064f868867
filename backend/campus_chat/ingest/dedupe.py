"""Deduplication helpers."""

from __future__ import annotations

from typing import Iterable

from campus_chat.ingest.types import LoadedDocument
from campus_chat.models.entities import DocumentChunk
from campus_chat.utils.hashing import content_hash


def dedupe_documents(documents: Iterable[LoadedDocument]) -> list[LoadedDocument]:
    """Drop documents whose normalized text was already seen, preserving order."""
    seen: set[str] = set()
    unique: list[LoadedDocument] = []
    for document in documents:
        digest = content_hash(document.text)
        if digest in seen:
            continue
        seen.add(digest)
        unique.append(document)
    return unique


def dedupe_chunks(chunks: Iterable[DocumentChunk]) -> tuple[list[DocumentChunk], int]:
    """Return chunks with unique content hashes and how many duplicates were dropped."""
    seen: set[str] = set()
    unique: list[DocumentChunk] = []
    dropped = 0
    for chunk in chunks:
        if chunk.content_hash in seen:
            dropped += 1
            continue
        seen.add(chunk.content_hash)
        unique.append(chunk)
    return unique, dropped


__all__ = ["dedupe_documents", "dedupe_chunks"]
