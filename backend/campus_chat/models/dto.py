"""Pydantic DTOs exposed via API."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class HistoryItem(BaseModel):
    role: str
    content: str


class ChatRequest(BaseModel):
    # Left untyped so a missing or non-string message reaches the service's own 400.
    message: Any = None
    conversationHistory: list[HistoryItem] = Field(default_factory=list)
    userId: str | None = None


class ChatResponse(BaseModel):
    success: bool = True
    response: str
    model: str
    intent: str | None = None
    timestamp: str
    metadata: dict[str, Any] | None = None
    conversationInfo: dict[str, Any] | None = None


class ErrorResponse(BaseModel):
    success: bool = False
    error: str


class ChatHealthResponse(BaseModel):
    success: bool = True
    status: str
    chatConfigured: bool
    vectorStore: dict[str, Any]
    model: str
    timestamp: str


class ConversationResponse(BaseModel):
    success: bool = True
    conversation: dict[str, Any]
    timestamp: str


class GreetingResponse(BaseModel):
    success: bool = True
    greeting: str
    conversationSummary: dict[str, Any] | None = None
    timestamp: str


class IngestRequest(BaseModel):
    paths: list[str] | None = Field(default=None, description="Explicit filesystem paths; defaults to the content directory")


class IngestResponse(BaseModel):
    success: bool = True
    trigger: str
    stats: dict[str, Any]


class FreshnessUpdateRequest(BaseModel):
    force: bool = Field(default=False, description="Rebuild even when the audit finds nothing to fix")


__all__ = [
    "HistoryItem",
    "ChatRequest",
    "ChatResponse",
    "ErrorResponse",
    "ChatHealthResponse",
    "ConversationResponse",
    "GreetingResponse",
    "IngestRequest",
    "IngestResponse",
    "FreshnessUpdateRequest",
]
