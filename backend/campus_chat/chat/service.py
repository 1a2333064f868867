"""Request orchestration: classify, route, answer, remember."""

from __future__ import annotations

import re
from typing import Any, Sequence

from campus_chat.chat.classifier import classify
from campus_chat.chat.completion import (
    LOCAL_FALLBACK_MODEL,
    CompletionClient,
    build_system_prompt,
    local_fallback,
)
from campus_chat.chat.handler import EventQueryHandler
from campus_chat.chat.memory import ConversationMemory
from campus_chat.chat.router import route_classification
from campus_chat.core.errors import UpstreamRateLimited, UpstreamUnavailable, ValidationError
from campus_chat.core.logging import get_logger
from campus_chat.core.metrics import CHAT_REQUESTS
from campus_chat.core.ratelimit import FixedWindowRateLimiter
from campus_chat.models.entities import (
    ClassificationResult,
    DatabaseStrategy,
    RagStrategy,
    Role,
    SimpleStrategy,
    describe_strategy,
)
from campus_chat.retrieval.search import RetrievalService
from campus_chat.utils.time import iso_now

logger = get_logger(__name__)

GREETING_MODEL = "intent-greeting"
DATABASE_MODEL = "live-db"
HISTORY_MESSAGES = 5

RATE_LIMITED = "Too many requests. Please slow down and try again in a minute."
INVALID_MESSAGE = "Message is required and must be a string"

GREETING_REPLIES = {
    "hi": (
        "👋 **Hello!** Welcome to CampusCrew!\n\n"
        "I'm here to help you discover amazing events on campus. You can ask me about:\n"
        "- Upcoming events\n"
        "- Specific event details\n"
        "- Events by category (Cultural, Career, Sports, etc.)\n"
        "- Platform statistics\n\n"
        "What would you like to know?"
    ),
    "thanks": "You're very welcome! 😊\n\nIf you need anything else about our events or platform, feel free to ask!",
    "bye": "Goodbye! 👋\n\nCome back anytime to explore events on CampusCrew. Have a great day!",
}

_THANKS_RE = re.compile(r"^(thanks|thank\s*you|ty|thx)")
_BYE_RE = re.compile(r"^(bye|goodbye|see\s*you|later|cya)")


def greeting_reply(message: str) -> str:
    lowered = message.strip().lower()
    if _THANKS_RE.match(lowered):
        return GREETING_REPLIES["thanks"]
    if _BYE_RE.match(lowered):
        return GREETING_REPLIES["bye"]
    return GREETING_REPLIES["hi"]


def format_history(history: Sequence[Any]) -> str:
    """Render client-supplied ``{role, content}`` items the way memory context reads."""
    lines = []
    for item in list(history)[-HISTORY_MESSAGES:]:
        if not isinstance(item, dict) or not isinstance(item.get("content"), str):
            continue
        speaker = "User" if item.get("role") == "user" else "Assistant"
        lines.append(f"{speaker}: {item['content']}")
    if not lines:
        return ""
    return "Previous conversation:\n" + "\n".join(lines) + "\n"


class ChatService:
    """Answer one chat message.

    Order of operations: rate limit (per user id, else client address),
    validation, memory append, credential check, classification, then the
    routed strategy. Database strategies that produce nothing fall through to
    RAG. A failing completion provider yields a canned local reply rather than
    an error.
    """

    def __init__(
        self,
        memory: ConversationMemory,
        retrieval: RetrievalService,
        handler: EventQueryHandler,
        completion: CompletionClient,
        limiter: FixedWindowRateLimiter,
        base_url: str,
    ) -> None:
        self.memory = memory
        self.retrieval = retrieval
        self.handler = handler
        self.completion = completion
        self.limiter = limiter
        self.base_url = base_url.rstrip("/")

    def chat(
        self,
        message: Any,
        user_id: str | None = None,
        client_id: str = "unknown",
        conversation_history: Sequence[Any] = (),
    ) -> dict[str, Any]:
        if not self.limiter.is_allowed(user_id or client_id):
            raise UpstreamRateLimited(RATE_LIMITED)
        if not message or not isinstance(message, str):
            raise ValidationError(INVALID_MESSAGE)

        session_id = user_id or client_id
        self.memory.add_message(session_id, Role.USER, message, {"client": client_id})
        self.completion.require_credentials()

        classification = classify(message)
        strategy = route_classification(classification)
        logger.info(
            "Classified chat message",
            extra={
                "ctx_user": session_id,
                "ctx_intent": classification.intent.value,
                "ctx_confidence": round(classification.confidence, 3),
                "ctx_strategy": describe_strategy(strategy),
            },
        )

        if isinstance(strategy, SimpleStrategy):
            reply = greeting_reply(message)
            return self._respond(session_id, classification, strategy.type.value, reply, GREETING_MODEL)

        if isinstance(strategy, DatabaseStrategy):
            live = self.handler.handle(strategy)
            if live:
                return self._respond(session_id, classification, strategy.type.value, live, DATABASE_MODEL)
            logger.info("Database strategy produced no answer; using retrieval", extra={"ctx_user": session_id})

        return self._answer_with_retrieval(session_id, message, classification, conversation_history)

    def _answer_with_retrieval(
        self,
        session_id: str,
        message: str,
        classification: ClassificationResult,
        conversation_history: Sequence[Any],
    ) -> dict[str, Any]:
        strategy_tag = RagStrategy.type.value
        retrieval = self.retrieval.retrieve(message)
        summary = self.memory.summary(session_id)
        memory_context = self.memory.context(session_id)
        if summary is not None and summary["messageCount"] == 1 and conversation_history:
            memory_context = format_history(conversation_history) or memory_context

        system_prompt = build_system_prompt(
            retrieval.context,
            memory_context=memory_context,
            summary=summary,
            vector_sources=len(retrieval.hits) if retrieval.method == "vector" else 0,
        )
        metadata = {
            "vectorSearchUsed": retrieval.method == "vector",
            "retrievalMethod": retrieval.method,
            "documentsFound": len(retrieval.sources),
            "sources": retrieval.sources,
            "fallbackReason": retrieval.fallback_reason,
        }
        try:
            completion = self.completion.complete(system_prompt, message)
        except UpstreamUnavailable as exc:
            logger.warning("Completion provider failed, using local fallback: %s", exc.message)
            reply = local_fallback(message, self.base_url)
            return self._respond(session_id, classification, LOCAL_FALLBACK_MODEL, reply, LOCAL_FALLBACK_MODEL)

        response = self._respond(
            session_id,
            classification,
            strategy_tag,
            completion.text,
            completion.model,
            metadata=metadata,
        )
        response["conversationInfo"] = {
            "messageCount": summary["messageCount"] if summary else 1,
            "topics": summary["topics"] if summary else [],
            "hasMemory": bool(memory_context),
        }
        return response

    def _respond(
        self,
        session_id: str,
        classification: ClassificationResult,
        strategy_tag: str,
        reply: str,
        model: str,
        metadata: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        record = {"model": model, "intent": classification.intent.value}
        if metadata:
            record["retrieval"] = metadata
        self.memory.add_message(session_id, Role.ASSISTANT, reply, record)
        CHAT_REQUESTS.labels(intent=classification.intent.value, strategy=strategy_tag).inc()

        response: dict[str, Any] = {
            "success": True,
            "response": reply,
            "model": model,
            "intent": classification.intent.value,
            "timestamp": iso_now(),
        }
        if metadata is not None:
            response["metadata"] = metadata
        return response


__all__ = ["ChatService", "greeting_reply", "format_history", "GREETING_REPLIES", "RATE_LIMITED"]
