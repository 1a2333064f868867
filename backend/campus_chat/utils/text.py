"""Text processing helpers."""

from __future__ import annotations

import re


WHITESPACE_RE = re.compile(r"\s+")
_TOKEN_RE = re.compile(r"[a-z0-9]+")


def normalize(text: str) -> str:
    """Collapse whitespace and strip."""
    return WHITESPACE_RE.sub(" ", text).strip()


def tokenize(text: str, min_length: int = 3) -> list[str]:
    """Lower-cased alphanumeric tokens of at least ``min_length`` characters."""
    return [tok for tok in _TOKEN_RE.findall(text.lower()) if len(tok) >= min_length]


def word_count(text: str) -> int:
    return len(text.split())


__all__ = ["normalize", "tokenize", "word_count"]
