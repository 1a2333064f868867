"""Chunking utilities."""

from __future__ import annotations

import bisect
import re
from dataclasses import dataclass

from campus_chat.models.entities import DocumentChunk
from campus_chat.utils.hashing import content_hash
from campus_chat.utils.text import word_count

# Candidate sentence break: terminator, whitespace, then something that can open a sentence.
_SENTENCE_BREAK_RE = re.compile(r"[.!?][\"')\]]*(\s+)(?=[A-Z0-9\"'(\[#*\-])")
_PARAGRAPH_BREAK_RE = re.compile(r"\n[ \t]*\n\s*")
_WORD_START_RE = re.compile(r"(?<=\s)\S")
_ABBREVIATIONS = frozenset(
    {"mr", "mrs", "ms", "dr", "prof", "sr", "jr", "st", "vs", "etc", "e.g", "i.e", "inc", "ltd", "no"}
)


@dataclass(slots=True)
class ChunkBounds:
    min_size: int = 500
    max_size: int = 800
    overlap: int = 50

    def __post_init__(self) -> None:
        if self.min_size < 1 or self.max_size < self.min_size:
            raise ValueError("chunk bounds require 1 <= min_size <= max_size")
        if not 0 <= self.overlap < self.min_size:
            raise ValueError("chunk overlap must be in [0, min_size)")


def chunk_text(
    text: str,
    source_id: str,
    min_size: int = 500,
    max_size: int = 800,
    overlap: int = 50,
) -> list[DocumentChunk]:
    """Split text into overlapping chunks, preferring sentence boundaries.

    Every chunk is a contiguous slice of ``text``. Chunk ``i > 0`` starts with
    ``chunks[i].overlap`` characters that repeat the tail of chunk ``i - 1``,
    so dropping those prefixes and concatenating gives back the input.
    Non-terminal chunks are between ``min_size`` and ``max_size`` characters;
    a trailing fragment shorter than ``min_size`` is folded into the chunk
    before it.
    """
    bounds = ChunkBounds(min_size=min_size, max_size=max_size, overlap=overlap)
    if not text.strip():
        return []

    sentence_breaks = _sentence_breaks(text)
    word_starts = [m.start() for m in _WORD_START_RE.finditer(text)]
    length = len(text)

    spans: list[tuple[int, int, int]] = []  # (start, end, overlap)
    start = 0
    fresh = 0  # first character not yet covered by an earlier chunk
    while True:
        if length - start <= bounds.max_size:
            if spans and length - fresh < bounds.min_size:
                prev_start, _, prev_overlap = spans[-1]
                spans[-1] = (prev_start, length, prev_overlap)
            else:
                spans.append((start, length, fresh - start))
            break

        low = start + bounds.min_size
        high = start + bounds.max_size
        end = _last_between(sentence_breaks, low, high)
        if end is None:
            end = _last_between(word_starts, low, high)
        if end is None:
            end = high
        spans.append((start, end, fresh - start))

        fresh = end
        start = _overlap_start(word_starts, end, bounds.overlap)

    total = len(spans)
    chunks: list[DocumentChunk] = []
    for index, (span_start, span_end, span_overlap) in enumerate(spans):
        content = text[span_start:span_end]
        chunks.append(
            DocumentChunk(
                content=content,
                content_hash=content_hash(content),
                source_id=source_id,
                chunk_index=index,
                total_chunks=total,
                size=len(content),
                word_count=word_count(content),
                start_char=span_start,
                end_char=span_end,
                overlap=span_overlap,
            )
        )
    return chunks


def reassemble(chunks: list[DocumentChunk]) -> str:
    """Join chunks back into the text they were cut from."""
    return "".join(chunk.content[chunk.overlap :] for chunk in chunks)


def _sentence_breaks(text: str) -> list[int]:
    breaks: set[int] = set()
    for match in _SENTENCE_BREAK_RE.finditer(text):
        if _ends_with_abbreviation(text, match.start()):
            continue
        breaks.add(match.end())
    for match in _PARAGRAPH_BREAK_RE.finditer(text):
        if match.end() < len(text):
            breaks.add(match.end())
    return sorted(breaks)


def _ends_with_abbreviation(text: str, terminator: int) -> bool:
    head = text[max(0, terminator - 6) : terminator].lower()
    word = re.split(r"\s", head)[-1]
    return word in _ABBREVIATIONS


def _last_between(points: list[int], low: int, high: int) -> int | None:
    idx = bisect.bisect_right(points, high) - 1
    if idx >= 0 and points[idx] >= low:
        return points[idx]
    return None


def _overlap_start(word_starts: list[int], end: int, overlap: int) -> int:
    """Start of the carried-over tail: first word start within ``overlap`` characters of ``end``."""
    if overlap <= 0:
        return end
    idx = bisect.bisect_left(word_starts, end - overlap)
    if idx < len(word_starts) and word_starts[idx] < end:
        return word_starts[idx]
    return end - overlap


__all__ = ["ChunkBounds", "chunk_text", "reassemble"]
