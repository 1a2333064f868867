"""Shared FastAPI dependencies."""

from __future__ import annotations

from functools import lru_cache

from campus_chat.chat.completion import CompletionClient
from campus_chat.chat.events import EventStore, InMemoryEventStore, SQLiteEventStore
from campus_chat.chat.handler import EventQueryHandler
from campus_chat.chat.memory import ConversationMemory
from campus_chat.chat.service import ChatService
from campus_chat.core.config import Settings, get_settings
from campus_chat.core.ratelimit import FixedWindowRateLimiter
from campus_chat.db.sqlite import SQLiteDatabase
from campus_chat.ingest.embeddings import EmbeddingService, build_embedding_service
from campus_chat.ingest.freshness import FreshnessMaintainer
from campus_chat.ingest.pipeline import IngestPipeline
from campus_chat.retrieval import KeywordScorer, RetrievalService
from campus_chat.vectorstore.client import VectorStoreClient

_MEMORY: ConversationMemory | None = None
_EVENT_STORE: EventStore | None = None


@lru_cache(maxsize=1)
def get_app_settings() -> Settings:
    return get_settings()


@lru_cache(maxsize=1)
def get_vector_store() -> VectorStoreClient:
    return VectorStoreClient.from_settings(get_app_settings())


@lru_cache(maxsize=1)
def get_embedding_service() -> EmbeddingService:
    return build_embedding_service(get_app_settings())


@lru_cache(maxsize=1)
def get_keyword_scorer() -> KeywordScorer:
    settings = get_app_settings()
    return KeywordScorer(
        content_dir=settings.content_dir,
        contact_document=settings.contact_document,
        home_document=settings.home_document,
    )


@lru_cache(maxsize=1)
def get_retrieval_service() -> RetrievalService:
    settings = get_app_settings()
    return RetrievalService(
        embeddings=get_embedding_service(),
        store=get_vector_store(),
        keyword=get_keyword_scorer(),
        similarity_threshold=settings.similarity_threshold,
        max_results=settings.max_retrieved_docs,
        enabled=settings.rag_enabled,
    )


def get_memory() -> ConversationMemory:
    global _MEMORY
    if _MEMORY is None:
        settings = get_app_settings()
        _MEMORY = ConversationMemory(
            max_messages=settings.memory_max_messages,
            max_sessions=settings.memory_max_sessions,
            session_timeout=settings.memory_session_timeout,
            ongoing_window=settings.memory_ongoing_window,
            sweep_interval=settings.memory_sweep_interval,
        )
    return _MEMORY


def get_event_store() -> EventStore:
    global _EVENT_STORE
    if _EVENT_STORE is None:
        settings = get_app_settings()
        if settings.event_db_path is not None:
            _EVENT_STORE = SQLiteEventStore(SQLiteDatabase(settings.event_db_path))
        else:
            _EVENT_STORE = InMemoryEventStore()
    return _EVENT_STORE


@lru_cache(maxsize=1)
def get_event_handler() -> EventQueryHandler:
    return EventQueryHandler(get_event_store(), get_app_settings().frontend_base_url)


@lru_cache(maxsize=1)
def get_completion_client() -> CompletionClient:
    return CompletionClient.from_settings(get_app_settings())


@lru_cache(maxsize=1)
def get_rate_limiter() -> FixedWindowRateLimiter:
    return FixedWindowRateLimiter(limit=get_app_settings().rate_limit_per_minute, window=60.0)


@lru_cache(maxsize=1)
def get_chat_service() -> ChatService:
    return ChatService(
        memory=get_memory(),
        retrieval=get_retrieval_service(),
        handler=get_event_handler(),
        completion=get_completion_client(),
        limiter=get_rate_limiter(),
        base_url=get_app_settings().frontend_base_url,
    )


@lru_cache(maxsize=1)
def get_ingest_pipeline() -> IngestPipeline:
    return IngestPipeline(
        settings=get_app_settings(),
        embeddings=get_embedding_service(),
        store=get_vector_store(),
    )


@lru_cache(maxsize=1)
def get_freshness_maintainer() -> FreshnessMaintainer:
    settings = get_app_settings()
    return FreshnessMaintainer(
        store=get_vector_store(),
        pipeline=get_ingest_pipeline(),
        stale_after_days=settings.stale_after_days,
        page_size=settings.scroll_page_size,
    )


def reset_dependencies() -> None:
    """Drop every cached singleton; the next request rebuilds them from settings."""
    global _MEMORY, _EVENT_STORE
    if _MEMORY is not None:
        _MEMORY.stop()
    if isinstance(_EVENT_STORE, SQLiteEventStore):
        _EVENT_STORE.db.close()
    _MEMORY = None
    _EVENT_STORE = None
    for factory in (
        get_app_settings,
        get_vector_store,
        get_embedding_service,
        get_keyword_scorer,
        get_retrieval_service,
        get_event_handler,
        get_completion_client,
        get_rate_limiter,
        get_chat_service,
        get_ingest_pipeline,
        get_freshness_maintainer,
    ):
        factory.cache_clear()
    get_settings.cache_clear()


__all__ = [
    "get_app_settings",
    "get_vector_store",
    "get_embedding_service",
    "get_keyword_scorer",
    "get_retrieval_service",
    "get_memory",
    "get_event_store",
    "get_event_handler",
    "get_completion_client",
    "get_rate_limiter",
    "get_chat_service",
    "get_ingest_pipeline",
    "get_freshness_maintainer",
    "reset_dependencies",
]
