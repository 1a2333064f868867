"""Embedding providers and the batching/retrying service in front of them."""

from __future__ import annotations

import hashlib
import logging
import math
import re
from dataclasses import dataclass, field
from typing import Protocol, Sequence

import requests

from campus_chat.core.config import Settings
from campus_chat.core.errors import EmbeddingDimensionMismatch, EmbeddingProviderError
from campus_chat.core.retry import RetryPolicy
from campus_chat.models.entities import EmbeddingVector
from campus_chat.utils.time import iso_now

logger = logging.getLogger(__name__)

_TOKEN_RE = re.compile(r"\w+")
HF_INFERENCE_URL = "https://api-inference.huggingface.co/pipeline/feature-extraction"


class EmbeddingProvider(Protocol):
    name: str
    model: str

    def embed(self, text: str) -> list[float]:
        """Return one vector or raise :class:`EmbeddingProviderError`."""


class HashedEmbeddingProvider:
    """Lightweight hashed embedding model with deterministic output."""

    name = "hashed"

    def __init__(self, dim: int = 384, model: str = "hashed-bow") -> None:
        self.model = model
        self._dim = dim

    @property
    def dim(self) -> int:
        return self._dim

    def embed(self, text: str) -> list[float]:
        vector = [0.0] * self._dim
        for token in _tokenize(text):
            vector[_hash_token(token, self._dim)] += 1.0
        if not any(vector):
            # Empty input still needs a unit vector for cosine search.
            vector[_hash_token(text or "empty", self._dim)] = 1.0
        _normalize(vector)
        return vector


class HuggingFaceEmbeddingProvider:
    """Feature-extraction calls against the HuggingFace inference API."""

    name = "huggingface"

    def __init__(
        self,
        model: str,
        token: str | None = None,
        session: requests.Session | None = None,
        timeout: float = 30.0,
        base_url: str = HF_INFERENCE_URL,
    ) -> None:
        self.model = model
        self.token = token
        self.session = session or requests.Session()
        self.timeout = timeout
        self.url = f"{base_url.rstrip('/')}/{model}"

    def embed(self, text: str) -> list[float]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        try:
            response = self.session.post(
                self.url,
                json={"inputs": text, "options": {"wait_for_model": False}},
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise EmbeddingProviderError(f"embedding request failed: {exc}") from exc

        if response.status_code == 429:
            raise EmbeddingProviderError("embedding provider rate limited", kind="rate_limited")
        if response.status_code == 503 or (response.status_code != 200 and "loading" in response.text[:200].lower()):
            raise EmbeddingProviderError("embedding model is loading", kind="loading")
        if response.status_code != 200:
            raise EmbeddingProviderError(f"embedding provider returned {response.status_code}: {response.text[:200]}")
        try:
            payload = response.json()
        except ValueError as exc:
            raise EmbeddingProviderError(f"embedding provider returned a non-JSON body: {response.text[:200]}") from exc
        return _pool(payload)


@dataclass(slots=True)
class EmbeddingBatch:
    """Result of :meth:`EmbeddingService.embed`; ``vectors[i]`` is None exactly when ``errors[i]`` is set."""

    vectors: list[EmbeddingVector | None]
    errors: list[str | None]
    fallbacks: int = 0
    attempts: int = 0

    @property
    def failed(self) -> int:
        return sum(1 for err in self.errors if err is not None)


@dataclass(slots=True)
class _ItemOutcome:
    vector: EmbeddingVector | None = None
    error: str | None = None
    attempts: int = 0
    fallback: bool = False
    errors: list[str] = field(default_factory=list)


class EmbeddingService:
    """Turn texts into vectors of exactly ``dimension`` values.

    Each item is tried against the primary provider up to
    ``policy.max_attempts`` times. Rate-limit signals wait
    ``policy.base_delay * attempt``; loading signals wait ``loading_delay``.
    When the primary is exhausted the ``alternate`` provider is tried the same
    way. Without an alternate, :meth:`embed` substitutes a hashed vector so
    that ingestion does not stop on encoder outages. :meth:`embed_query`
    raises :class:`EmbeddingProviderError` instead.
    """

    def __init__(
        self,
        provider: EmbeddingProvider,
        dimension: int,
        *,
        alternate: EmbeddingProvider | None = None,
        policy: RetryPolicy | None = None,
        batch_size: int = 10,
        item_delay: float = 1.0,
        loading_delay: float = 20.0,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self.provider = provider
        self.alternate = alternate
        self.dimension = dimension
        self.policy = policy or RetryPolicy()
        self.batch_size = batch_size
        self.item_delay = item_delay
        self.loading_delay = loading_delay
        self._hashed = HashedEmbeddingProvider(dim=dimension)

    @property
    def model(self) -> str:
        return self.provider.model

    def embed(self, texts: Sequence[str]) -> EmbeddingBatch:
        batch = EmbeddingBatch(vectors=[], errors=[])
        for start in range(0, len(texts), self.batch_size):
            if start:
                self.policy.wait(self.item_delay * 2)
            for offset, text in enumerate(texts[start : start + self.batch_size]):
                if offset:
                    self.policy.wait(self.item_delay)
                outcome = self._embed_item(text, allow_hashed=True)
                batch.vectors.append(outcome.vector)
                batch.errors.append(outcome.error)
                batch.attempts += outcome.attempts
                if outcome.fallback:
                    batch.fallbacks += 1
        logger.info(
            "Embedded %s texts",
            len(texts),
            extra={"ctx_failed": batch.failed, "ctx_fallbacks": batch.fallbacks, "ctx_attempts": batch.attempts},
        )
        return batch

    def embed_query(self, text: str) -> EmbeddingVector:
        """Embed one query; raises when no vector could be produced."""
        outcome = self._embed_item(text, allow_hashed=False)
        if outcome.vector is None:
            raise EmbeddingProviderError(outcome.error or "embedding failed")
        return outcome.vector

    def _embed_item(self, text: str, allow_hashed: bool) -> _ItemOutcome:
        outcome = _ItemOutcome()
        for provider in filter(None, (self.provider, self.alternate)):
            vector = self._with_retries(provider, text, outcome)
            if vector is not None:
                outcome.vector = vector
                return outcome
        if allow_hashed and self.alternate is None:
            logger.warning("Falling back to hashed embedding", extra={"ctx_errors": outcome.errors})
            outcome.vector = self._wrap(self._hashed.embed(text), self._hashed)
            outcome.fallback = True
            return outcome
        outcome.error = outcome.errors[-1] if outcome.errors else "embedding failed"
        return outcome

    def _with_retries(self, provider: EmbeddingProvider, text: str, outcome: _ItemOutcome) -> EmbeddingVector | None:
        for attempt in range(1, self.policy.max_attempts + 1):
            outcome.attempts += 1
            try:
                return self._wrap(provider.embed(text), provider)
            except EmbeddingProviderError as exc:
                outcome.errors.append(f"{provider.name}: {exc.message}")
                if attempt == self.policy.max_attempts:
                    break
                if exc.loading:
                    delay = self.loading_delay
                    self.policy.wait(delay)
                else:
                    delay = self.policy.backoff(attempt)
                logger.warning(
                    "Embedding attempt %s/%s failed (%s); retrying in %.1fs",
                    attempt,
                    self.policy.max_attempts,
                    exc.kind,
                    delay,
                )
        return None

    def _wrap(self, values: list[float], provider: EmbeddingProvider) -> EmbeddingVector:
        if len(values) != self.dimension:
            raise EmbeddingDimensionMismatch(expected=self.dimension, actual=len(values))
        return EmbeddingVector(
            values=list(values),
            dimension=self.dimension,
            model=provider.model,
            provider=provider.name,
            generated_at=iso_now(),
        )


def build_embedding_service(
    settings: Settings,
    session: requests.Session | None = None,
    policy: RetryPolicy | None = None,
) -> EmbeddingService:
    """Construct the configured provider and wrap it in an :class:`EmbeddingService`."""
    provider: EmbeddingProvider
    if settings.embedding_provider == "hashed":
        provider = HashedEmbeddingProvider(dim=settings.vector_size)
    else:
        provider = HuggingFaceEmbeddingProvider(
            model=settings.embedding_model,
            token=settings.hf_token,
            session=session,
            timeout=settings.store_timeout,
        )
    return EmbeddingService(
        provider,
        dimension=settings.vector_size,
        policy=policy
        or RetryPolicy(max_attempts=settings.embedding_max_retries, base_delay=settings.embedding_retry_delay),
        batch_size=settings.embedding_batch_size,
        item_delay=settings.embedding_item_delay,
        loading_delay=settings.embedding_loading_delay,
    )


def _pool(payload: object) -> list[float]:
    """Accept a flat vector or per-token vectors (mean pooled)."""
    if isinstance(payload, dict) and "error" in payload:
        message = str(payload["error"])
        kind = "loading" if "loading" in message.lower() else "error"
        raise EmbeddingProviderError(message, kind=kind)
    if not isinstance(payload, list) or not payload:
        raise EmbeddingProviderError("unexpected embedding response shape")
    while isinstance(payload[0], list) and payload[0] and isinstance(payload[0][0], list):
        payload = payload[0]
    if isinstance(payload[0], list):
        width = len(payload[0])
        return [sum(row[i] for row in payload) / len(payload) for i in range(width)]
    return [float(value) for value in payload]


def _tokenize(text: str) -> list[str]:
    return _TOKEN_RE.findall(text.lower())


def _hash_token(token: str, dim: int) -> int:
    digest = hashlib.blake2b(token.encode("utf-8"), digest_size=8).digest()
    value = int.from_bytes(digest, "big")
    return value % dim


def _normalize(vector: list[float]) -> None:
    norm = math.sqrt(sum(value * value for value in vector))
    if norm == 0:
        return
    inv = 1.0 / norm
    for idx, value in enumerate(vector):
        vector[idx] = value * inv


__all__ = [
    "EmbeddingProvider",
    "HashedEmbeddingProvider",
    "HuggingFaceEmbeddingProvider",
    "EmbeddingBatch",
    "EmbeddingService",
    "build_embedding_service",
]
