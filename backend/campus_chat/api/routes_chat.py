"""Chat API routes."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request

from campus_chat.api.dependencies import (
    get_chat_service,
    get_completion_client,
    get_event_store,
    get_memory,
    get_retrieval_service,
    get_vector_store,
)
from campus_chat.chat.completion import CompletionClient
from campus_chat.chat.events import EventStore
from campus_chat.chat.memory import ConversationMemory
from campus_chat.chat.service import ChatService
from campus_chat.core.errors import CampusChatError
from campus_chat.core.logging import get_logger
from campus_chat.models.dto import (
    ChatHealthResponse,
    ChatRequest,
    ChatResponse,
    ConversationResponse,
    GreetingResponse,
)
from campus_chat.retrieval import RetrievalService
from campus_chat.utils.time import iso_now
from campus_chat.vectorstore.client import VectorStoreClient

logger = get_logger(__name__)

router = APIRouter()


def client_address(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


@router.post("/chat", response_model=ChatResponse, response_model_exclude_none=True, summary="Answer a chat message")
def chat(
    payload: ChatRequest,
    request: Request,
    service: ChatService = Depends(get_chat_service),
) -> dict[str, Any]:
    history = [item.model_dump() for item in payload.conversationHistory]
    return service.chat(
        payload.message,
        user_id=payload.userId,
        client_id=client_address(request),
        conversation_history=history,
    )


@router.get("/chat/health", response_model=ChatHealthResponse, summary="Chat readiness")
def chat_health(
    completion: CompletionClient = Depends(get_completion_client),
    store: VectorStoreClient = Depends(get_vector_store),
) -> ChatHealthResponse:
    reachable = store.health()
    configured = completion.configured
    return ChatHealthResponse(
        status="ready" if configured and reachable else "degraded",
        chatConfigured=configured,
        vectorStore={"reachable": reachable, "collection": store.collection},
        model=completion.model,
        timestamp=iso_now(),
    )


@router.get("/chat/stats", summary="Event, vector store and retrieval statistics")
def chat_stats(
    events: EventStore = Depends(get_event_store),
    store: VectorStoreClient = Depends(get_vector_store),
    retrieval: RetrievalService = Depends(get_retrieval_service),
) -> dict[str, Any]:
    body: dict[str, Any] = {"success": True, "retrieval": retrieval.stats(), "timestamp": iso_now()}
    try:
        body["events"] = events.stats().to_dict()
    except CampusChatError as exc:
        logger.warning("Event statistics unavailable: %s", exc.message)
        body["events"] = None
    try:
        body["vectorStore"] = store.stats().to_dict()
    except CampusChatError as exc:
        logger.warning("Vector store statistics unavailable: %s", exc.message)
        body["vectorStore"] = None
    return body


@router.get("/chat/memory-status", summary="Conversation memory statistics")
def memory_status(memory: ConversationMemory = Depends(get_memory)) -> dict[str, Any]:
    stats = memory.stats()
    stats["sessionTimeout"] = memory.session_timeout / 60
    return {"success": True, "memory": stats, "timestamp": iso_now()}


@router.get("/chat/conversation/{user_id}", response_model=ConversationResponse, summary="Conversation history")
def conversation(user_id: str, memory: ConversationMemory = Depends(get_memory)) -> ConversationResponse:
    messages = [
        {"role": m.role.value, "content": m.content, "timestamp": m.timestamp, "metadata": m.metadata}
        for m in memory.history(user_id)
    ]
    return ConversationResponse(
        conversation={
            "messages": messages,
            "summary": memory.summary(user_id),
            "hasOngoing": memory.has_ongoing(user_id),
        },
        timestamp=iso_now(),
    )


@router.delete("/chat/conversation/{user_id}", summary="Clear a conversation")
def clear_conversation(user_id: str, memory: ConversationMemory = Depends(get_memory)) -> dict[str, Any]:
    cleared = memory.clear(user_id)
    return {
        "success": True,
        "message": "Conversation history cleared" if cleared else "No conversation found",
        "cleared": cleared,
        "timestamp": iso_now(),
    }


@router.post("/chat/greeting/{user_id}", response_model=GreetingResponse, summary="Personalized greeting")
def greeting(user_id: str, memory: ConversationMemory = Depends(get_memory)) -> GreetingResponse:
    return GreetingResponse(
        greeting=memory.greeting(user_id),
        conversationSummary=memory.summary(user_id),
        timestamp=iso_now(),
    )


__all__ = ["router", "client_address"]
