"""Keyword-overlap scoring over the local knowledge-base files."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from campus_chat.core.logging import get_logger
from campus_chat.ingest.loaders import LoaderRegistry, load_corpus
from campus_chat.utils.text import tokenize

logger = get_logger(__name__)

CONTACT_KEYWORDS = frozenset({"contact", "address", "phone", "email", "location", "reach", "call"})
CONTACT_BONUS = 1000.0
MAX_RESULTS = 3
MAX_SNIPPET_CHARS = 1500


@dataclass(slots=True)
class KeywordHit:
    source: str
    score: float
    content: str


class KeywordScorer:
    """Rank documents by how often the query's keywords occur in them.

    The contact document gets a large bonus when the query asks how to reach
    someone. When nothing overlaps, the home document (or, failing that, the
    first document) is returned so callers always have some grounding text
    while the corpus is non-empty.
    """

    def __init__(
        self,
        corpus: Mapping[str, str] | None = None,
        content_dir: Path | None = None,
        contact_document: str = "contact",
        home_document: str = "home",
    ) -> None:
        self.content_dir = content_dir
        self.contact_document = contact_document
        self.home_document = home_document
        self._corpus: dict[str, str] | None = dict(corpus) if corpus is not None else None
        self._lock = threading.Lock()

    @property
    def corpus(self) -> dict[str, str]:
        with self._lock:
            if self._corpus is None:
                self._corpus = self._load()
            return self._corpus

    def reload(self) -> int:
        with self._lock:
            self._corpus = self._load()
            return len(self._corpus)

    @staticmethod
    def wants_contact(query: str) -> bool:
        return any(word in CONTACT_KEYWORDS for word in tokenize(query))

    def score(self, query: str, limit: int = MAX_RESULTS) -> list[KeywordHit]:
        corpus = self.corpus
        if not corpus:
            return []
        keywords = tokenize(query)
        wants_contact = self.wants_contact(query)

        hits: list[KeywordHit] = []
        for source, text in corpus.items():
            lowered = text.lower()
            score = float(sum(lowered.count(word) for word in keywords))
            if wants_contact and source == self.contact_document:
                score += CONTACT_BONUS
            if score > 0:
                hits.append(KeywordHit(source=source, score=score, content=text[:MAX_SNIPPET_CHARS]))

        hits.sort(key=lambda hit: (-hit.score, hit.source))
        if hits:
            return hits[:limit]

        default = self.home_document if self.home_document in corpus else next(iter(sorted(corpus)))
        return [KeywordHit(source=default, score=0.0, content=corpus[default][:MAX_SNIPPET_CHARS])]

    def _load(self) -> dict[str, str]:
        if self.content_dir is None or not self.content_dir.is_dir():
            logger.warning("Keyword corpus directory %s is missing", self.content_dir)
            return {}
        registry = LoaderRegistry()
        corpus = load_corpus(registry.iter_directory(self.content_dir), registry)
        logger.info("Loaded %s documents for keyword search", len(corpus))
        return corpus


__all__ = ["KeywordScorer", "KeywordHit", "CONTACT_KEYWORDS", "CONTACT_BONUS"]
