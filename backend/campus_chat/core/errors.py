"""Error taxonomy shared by the chat pipeline and its clients."""

from __future__ import annotations


class CampusChatError(Exception):
    """Base error; ``status_code`` is the HTTP status used if it ever reaches a route."""

    status_code: int = 500

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(CampusChatError):
    status_code = 400


class ConfigurationError(CampusChatError):
    status_code = 500


class UpstreamRateLimited(CampusChatError):
    status_code = 429


class UpstreamUnavailable(CampusChatError):
    status_code = 503


class EmbeddingDimensionMismatch(CampusChatError):
    """Vector length differs from the collection's configured size."""

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(f"Embedding dimension ({actual}) doesn't match collection size ({expected})")
        self.expected = expected
        self.actual = actual


class NotFound(CampusChatError):
    status_code = 404


class VectorStoreError(UpstreamUnavailable):
    """Vector store call failed after exhausting retries."""


class VectorStoreClientError(VectorStoreError):
    """Non-retriable 4xx response from the vector store."""

    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code


class EmbeddingProviderError(UpstreamUnavailable):
    """Raised by a provider; ``kind`` is ``rate_limited``, ``loading`` or ``error``."""

    def __init__(self, message: str, kind: str = "error") -> None:
        super().__init__(message)
        self.kind = kind

    @property
    def rate_limited(self) -> bool:
        return self.kind == "rate_limited"

    @property
    def loading(self) -> bool:
        return self.kind == "loading"


__all__ = [
    "CampusChatError",
    "ValidationError",
    "ConfigurationError",
    "UpstreamRateLimited",
    "UpstreamUnavailable",
    "EmbeddingDimensionMismatch",
    "NotFound",
    "VectorStoreError",
    "VectorStoreClientError",
    "EmbeddingProviderError",
]
