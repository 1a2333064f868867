"""OpenAI-compatible chat completion client and the local fallback replies."""

from __future__ import annotations

import re
from dataclasses import dataclass

import requests

from campus_chat.core.config import Settings
from campus_chat.core.errors import ConfigurationError, UpstreamUnavailable
from campus_chat.core.logging import get_logger

logger = get_logger(__name__)

LOCAL_FALLBACK_MODEL = "local-fallback"
EMPTY_REPLY = (
    "I'd be happy to help you with information about CampusCrew events. Could you please rephrase your question?"
)

_THINK_BLOCK_RE = re.compile(r"<think>[\s\S]*?</think>", re.IGNORECASE)
_THINK_TAG_RE = re.compile(r"</?think>", re.IGNORECASE)
_EXTRA_BLANKS_RE = re.compile(r"\n\s*\n\s*\n")
_SPORTS_RE = re.compile(
    r"\b(sport|sports|football|cricket|badminton|basketball|soccer|volleyball|tennis|athletic|e-?sports)\b",
    re.IGNORECASE,
)

SYSTEM_PROMPT = """You are a specialized customer support assistant EXCLUSIVELY for CampusCrew, an event management platform.

CRITICAL RESTRICTIONS:
- You can ONLY answer questions about CampusCrew platform, its features, events, and services
- If asked about unrelated topics, politely say: "I'm sorry, but I can only assist with questions about CampusCrew platform and its events. Please ask me about CampusCrew features, events, registration, or how to use the platform."

Questions about CampusCrew's address, phone number, email, contact information, team members, or "about us" information ARE CampusCrew-related and should be answered using the context provided below.

Use the following information from the website's knowledge base to answer questions:

{context}
{extras}
If the question is about CampusCrew but the information is not in the provided context, politely inform the user and suggest they contact support or explore the website. Keep responses friendly, concise, and helpful."""


@dataclass(slots=True)
class Completion:
    text: str
    model: str


def clean_reply(text: str | None) -> str:
    """Strip ``<think>`` artefacts and surplus blank lines."""
    if not text:
        return EMPTY_REPLY
    cleaned = _THINK_TAG_RE.sub("", _THINK_BLOCK_RE.sub("", text))
    cleaned = _EXTRA_BLANKS_RE.sub("\n\n", cleaned.strip())
    return cleaned or EMPTY_REPLY


def build_system_prompt(
    context: str,
    memory_context: str = "",
    summary: dict | None = None,
    vector_sources: int = 0,
) -> str:
    extras: list[str] = []
    if vector_sources:
        extras.append(f"This information was retrieved using semantic search from {vector_sources} relevant sources.")
    if memory_context:
        extras.append(
            "CONVERSATION MEMORY:\n"
            f"{memory_context}\n"
            "Use this history to resolve references such as \"it\" or \"that event\" and keep continuity."
        )
    if summary and summary.get("messageCount", 0) > 1:
        topics = ", ".join(summary.get("topics") or []) or "general questions"
        minutes = round(summary.get("duration", 0) / 60)
        extras.append(
            f"CONVERSATION SUMMARY: This user has sent {summary['messageCount']} messages. "
            f"Topics discussed: {topics}. Conversation duration: {minutes} minutes."
        )
    rendered = "\n\n".join(extras)
    return SYSTEM_PROMPT.format(context=context, extras=f"\n{rendered}\n" if rendered else "")


def local_fallback(message: str, base_url: str) -> str:
    """Canned reply chosen by keywords when the completion provider fails."""
    lowered = message.lower()
    upcoming = f"{base_url.rstrip('/')}/upcoming-events"
    if _SPORTS_RE.search(message):
        return (
            "🏆 **Sports Events**\n\nI'm having trouble with my AI models right now, but I can help you find sports "
            f'events! Visit {upcoming} and search for "Sports" to see all available athletic activities.'
        )
    if "hello" in lowered or "hi" in lowered or "hey" in lowered:
        return (
            "👋 **Hello there!**\n\nWelcome to CampusCrew! I'm having some technical difficulties with my AI models, "
            f"but I'm still here to help. You can:\n\n• Browse upcoming events: {upcoming}\n"
            "• Create your own events\n• Join interesting activities\n\nWhat would you like to explore?"
        )
    if "event" in lowered or "activity" in lowered:
        return (
            "📅 **Events & Activities**\n\nI'm currently having AI model issues, but you can still explore all our "
            f"amazing events! Check out {upcoming} to see what's happening on campus."
        )
    return (
        "🤖 **CampusCrew Assistant**\n\nI'm experiencing some technical difficulties with my AI models right now. "
        f"While I work on getting back to full capacity, feel free to:\n\n• Explore events: {upcoming}\n"
        "• Contact support if you need immediate help\n\nSorry for the inconvenience!"
    )


class CompletionClient:
    """POSTs to ``{base_url}/chat/completions`` with bearer auth."""

    def __init__(
        self,
        api_key: str | None,
        model: str,
        base_url: str,
        max_tokens: int = 2048,
        session: requests.Session | None = None,
        timeout: float = 60.0,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.url = f"{base_url.rstrip('/')}/chat/completions"
        self.max_tokens = max_tokens
        self.session = session or requests.Session()
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings, session: requests.Session | None = None) -> "CompletionClient":
        return cls(
            api_key=settings.chat_api_key,
            model=settings.chat_model,
            base_url=settings.chat_base_url,
            max_tokens=settings.chat_max_tokens,
            session=session,
        )

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def require_credentials(self) -> None:
        if not self.api_key:
            raise ConfigurationError("Chat API key not configured. Set CCHAT_CHAT_API_KEY or chat.api_key.")

    def complete(self, system_prompt: str, message: str) -> Completion:
        self.require_credentials()
        body = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": message},
            ],
            "max_tokens": self.max_tokens,
            "temperature": 0.7,
            "top_p": 0.9,
        }
        headers = {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}
        try:
            response = self.session.post(self.url, json=body, headers=headers, timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise UpstreamUnavailable(f"completion request failed: {exc}") from exc

        choices = payload.get("choices") or []
        if not choices:
            error = (payload.get("error") or {}).get("message") or "no choices returned"
            raise UpstreamUnavailable(f"completion provider error: {error}")
        content = (choices[0].get("message") or {}).get("content")
        return Completion(text=clean_reply(content), model=payload.get("model") or self.model)


__all__ = [
    "Completion",
    "CompletionClient",
    "LOCAL_FALLBACK_MODEL",
    "build_system_prompt",
    "clean_reply",
    "local_fallback",
]
