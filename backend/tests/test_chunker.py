"""Tests for chunker."""

import pytest

from campus_chat.ingest.chunker import ChunkBounds, chunk_text, reassemble
from campus_chat.utils.hashing import content_hash


def test_chunk_bounds_and_reassembly(sample_text: str) -> None:
    chunks = chunk_text(sample_text, source_id="guide", min_size=500, max_size=800, overlap=50)
    assert len(chunks) > 1
    for chunk in chunks[:-1]:
        assert 500 <= chunk.size <= 800
    assert reassemble(chunks) == sample_text
    assert [c.chunk_index for c in chunks] == list(range(len(chunks)))
    assert all(c.total_chunks == len(chunks) for c in chunks)
    assert chunks[0].overlap == 0
    assert all(0 < c.overlap <= 50 for c in chunks[1:])


def test_chunks_prefer_sentence_boundaries(sample_text: str) -> None:
    chunks = chunk_text(sample_text, source_id="guide")
    for chunk in chunks[:-1]:
        assert chunk.content.rstrip().endswith(".")


def test_chunk_hash_is_stable_across_runs(sample_text: str) -> None:
    first = [c.content_hash for c in chunk_text(sample_text, source_id="a")]
    second = [c.content_hash for c in chunk_text(sample_text, source_id="b")]
    assert first == second
    assert first[0] == content_hash(chunk_text(sample_text, source_id="a")[0].content)


def test_short_text_is_single_chunk() -> None:
    chunks = chunk_text("A short note about registration.", source_id="note")
    assert len(chunks) == 1
    assert chunks[0].content == "A short note about registration."
    assert chunks[0].word_count == 5


def test_blank_text_has_no_chunks() -> None:
    assert chunk_text("   \n\n  ", source_id="empty") == []


def test_unbreakable_text_is_hard_cut() -> None:
    text = "x" * 2000
    chunks = chunk_text(text, source_id="blob", min_size=500, max_size=800, overlap=0)
    assert reassemble(chunks) == text
    assert all(c.size <= 800 for c in chunks[:-1])


def test_trailing_fragment_merges_into_previous_chunk() -> None:
    text = " ".join(f"Word{i}." for i in range(150))
    chunks = chunk_text(text, source_id="words", min_size=500, max_size=800, overlap=20)
    assert reassemble(chunks) == text
    assert chunks[-1].end_char == len(text)


def test_invalid_bounds_rejected() -> None:
    with pytest.raises(ValueError):
        ChunkBounds(min_size=900, max_size=800)
    with pytest.raises(ValueError):
        ChunkBounds(min_size=100, max_size=200, overlap=100)
