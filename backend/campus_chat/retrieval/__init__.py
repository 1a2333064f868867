"""Retrieval orchestration components."""

from .keyword import KeywordHit, KeywordScorer
from .search import NO_INFORMATION, RetrievalResult, RetrievalService

__all__ = [
    "KeywordHit",
    "KeywordScorer",
    "NO_INFORMATION",
    "RetrievalResult",
    "RetrievalService",
]
