"""Application configuration handling."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal, Mapping

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

ENV_PREFIX = "CCHAT_"
DEFAULT_CONFIG_PATH = Path("~/.config/campus-chat/config.yaml")
DEFAULT_CONTENT_DIR = Path("data/website_content")

_YAML_KEY_MAP: Mapping[tuple[str, ...], str] = {
    ("qdrant", "url"): "qdrant_url",
    ("qdrant", "api_key"): "qdrant_api_key",
    ("qdrant", "collection"): "qdrant_collection",
    ("qdrant", "vector_size"): "vector_size",
    ("qdrant", "max_retries"): "store_max_retries",
    ("qdrant", "retry_delay"): "store_retry_delay",
    ("embeddings", "provider"): "embedding_provider",
    ("embeddings", "model"): "embedding_model",
    ("embeddings", "token"): "hf_token",
    ("embeddings", "batch_size"): "embedding_batch_size",
    ("embeddings", "item_delay"): "embedding_item_delay",
    ("embeddings", "max_retries"): "embedding_max_retries",
    ("retrieval", "enabled"): "rag_enabled",
    ("retrieval", "similarity_threshold"): "similarity_threshold",
    ("retrieval", "max_docs"): "max_retrieved_docs",
    ("retrieval", "content_dir"): "content_dir",
    ("chunking", "min_size"): "chunk_min_size",
    ("chunking", "max_size"): "chunk_max_size",
    ("chunking", "overlap"): "chunk_overlap",
    ("freshness", "stale_after_days"): "stale_after_days",
    ("memory", "max_messages"): "memory_max_messages",
    ("memory", "session_timeout"): "memory_session_timeout",
    ("chat", "api_key"): "chat_api_key",
    ("chat", "model"): "chat_model",
    ("chat", "base_url"): "chat_base_url",
    ("chat", "rate_limit_per_minute"): "rate_limit_per_minute",
}


class Settings(BaseModel):
    """Runtime configuration loaded from YAML file and environment variables."""

    # Vector store
    qdrant_url: str = "http://localhost:6333"
    qdrant_api_key: str | None = None
    qdrant_collection: str = "campuscrew_docs"
    vector_size: int = Field(default=384, gt=0)
    vector_distance: str = "Cosine"
    store_max_retries: int = Field(default=3, ge=1)
    store_retry_delay: float = 2.0
    store_timeout: float = 30.0
    store_batch_size: int = Field(default=100, ge=1)

    # Embeddings
    embedding_provider: Literal["huggingface", "hashed"] = "huggingface"
    embedding_model: str = "sentence-transformers/all-MiniLM-L6-v2"
    hf_token: str | None = None
    embedding_batch_size: int = Field(default=10, ge=1)
    embedding_item_delay: float = 1.0
    embedding_max_retries: int = Field(default=3, ge=1)
    embedding_retry_delay: float = 2.0
    embedding_loading_delay: float = 20.0

    # Retrieval
    rag_enabled: bool = True
    similarity_threshold: float = Field(default=0.3, ge=0.0, le=1.0)
    max_retrieved_docs: int = Field(default=5, ge=1)
    content_dir: Path = Field(default=DEFAULT_CONTENT_DIR)
    contact_document: str = "contact"
    home_document: str = "home"
    watch_content: bool = False

    # Chunking
    chunk_min_size: int = Field(default=500, ge=1)
    chunk_max_size: int = Field(default=800, ge=1)
    chunk_overlap: int = Field(default=50, ge=0)

    # Freshness
    stale_after_days: int = Field(default=30, ge=1)
    scroll_page_size: int = Field(default=100, ge=1)
    data_version: str = "v1.0"

    # Conversation memory (seconds)
    memory_max_messages: int = Field(default=10, ge=1)
    memory_max_sessions: int = Field(default=1000, ge=1)
    memory_session_timeout: float = 24 * 60 * 60
    memory_ongoing_window: float = 30 * 60
    memory_sweep_interval: float = 60 * 60

    # Chat
    chat_api_key: str | None = None
    chat_model: str = "gpt-5-mini"
    chat_base_url: str = "https://api.chatanywhere.tech/v1"
    chat_max_tokens: int = 2048
    frontend_base_url: str = "http://localhost:3000"
    rate_limit_per_minute: int = Field(default=10, ge=1)
    event_db_path: Path | None = None

    model_config = {
        "validate_assignment": True,
        "extra": "ignore",
    }

    @field_validator("content_dir", mode="before")
    @classmethod
    def _content_dir_or_default(cls, value: Any) -> Path:
        if value is None or value == "":
            return DEFAULT_CONTENT_DIR
        return _as_path(value)

    @field_validator("event_db_path", mode="before")
    @classmethod
    def _optional_path(cls, value: Any) -> Path | None:
        if value is None or value == "":
            return None
        return _as_path(value)

    @field_validator("qdrant_url", "chat_base_url", "frontend_base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @model_validator(mode="after")
    def _check_chunk_bounds(self) -> "Settings":
        if self.chunk_min_size > self.chunk_max_size:
            raise ValueError(
                f"chunk_min_size ({self.chunk_min_size}) must not exceed chunk_max_size ({self.chunk_max_size})"
            )
        if self.chunk_overlap >= self.chunk_min_size:
            raise ValueError(
                f"chunk_overlap ({self.chunk_overlap}) must be smaller than chunk_min_size ({self.chunk_min_size})"
            )
        return self

    @classmethod
    def from_yaml(cls, path: Path | None = None) -> "Settings":
        """Load YAML config and overlay env vars; fall back to defaults."""
        config_path = cls._resolve_config_path(path)
        data: dict[str, Any] = {}
        if config_path and config_path.exists():
            with config_path.open("r", encoding="utf-8") as fh:
                raw = yaml.safe_load(fh) or {}
            data.update(_flatten_yaml(raw))
        data.update(_load_env_overrides())
        return cls(**data)

    @staticmethod
    def _resolve_config_path(path: Path | None) -> Path | None:
        if path is not None:
            return path.expanduser()
        env_path = os.environ.get(f"{ENV_PREFIX}CONFIG")
        if env_path:
            return Path(env_path).expanduser()
        resolved_default = DEFAULT_CONFIG_PATH.expanduser()
        return resolved_default if resolved_default.exists() else None


def _as_path(value: Any) -> Path:
    if isinstance(value, Path):
        return value.expanduser()
    if isinstance(value, str):
        return Path(value).expanduser()
    raise ValueError("path settings must be a path or string")


def _flatten_yaml(raw: Mapping[str, Any], prefix: tuple[str, ...] = ()) -> dict[str, Any]:
    """Flatten nested YAML configuration to Settings field names."""
    flat: dict[str, Any] = {}
    for key, value in raw.items():
        next_prefix = prefix + (key,)
        if isinstance(value, Mapping):
            flat.update(_flatten_yaml(value, prefix=next_prefix))
        else:
            mapped_key = _YAML_KEY_MAP.get(next_prefix)
            if mapped_key:
                flat[mapped_key] = value
            elif key in Settings.model_fields:
                flat[key] = value
    return flat


def _load_env_overrides() -> dict[str, Any]:
    """Map environment variables with CCHAT_ prefix into Settings fields."""
    overrides: dict[str, Any] = {}
    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        field_name = key[len(ENV_PREFIX) :].lower()
        if field_name in Settings.model_fields:
            overrides[field_name] = value
    return overrides


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Cached settings accessor for dependency injection."""
    return Settings.from_yaml()


__all__ = ["Settings", "get_settings"]
