"""Hashing utilities."""

from __future__ import annotations

import hashlib

from campus_chat.utils.text import normalize


def sha256_bytes(data: bytes) -> str:
    """Return hex digest for bytes input."""
    return hashlib.sha256(data).hexdigest()


def content_hash(text: str) -> str:
    """Digest of the whitespace-collapsed, lower-cased text.

    Two chunks that differ only in spacing or case hash identically.
    """
    return sha256_bytes(normalize(text).lower().encode("utf-8"))


__all__ = ["sha256_bytes", "content_hash"]
