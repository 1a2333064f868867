"""Bounded per-user conversation history with idle-session eviction."""

from __future__ import annotations

import threading
import time
from typing import Any, Callable, Iterable

from campus_chat.core.logging import get_logger
from campus_chat.models.entities import ChatSession, Message, Role

logger = get_logger(__name__)

ANONYMOUS = "anonymous"
CONTEXT_MESSAGES = 6

TOPIC_KEYWORDS: dict[str, tuple[str, ...]] = {
    "events": ("event", "create", "organize", "registration", "attend"),
    "dashboard": ("dashboard", "manage", "analytics", "overview"),
    "payment": ("payment", "bkash", "fee", "cost", "money"),
    "certificates": ("certificate", "download", "completion"),
    "profile": ("profile", "account", "settings", "personal"),
    "help": ("help", "how", "guide", "tutorial", "support"),
}

GENERIC_GREETING = "Hello! How can I help you with CampusCrew today?"


def extract_topics(messages: Iterable[Message]) -> list[str]:
    """Topic families mentioned across the user's messages, in table order."""
    text = " ".join(m.content.lower() for m in messages if m.role is Role.USER)
    return [topic for topic, keywords in TOPIC_KEYWORDS.items() if any(k in text for k in keywords)]


class ConversationMemory:
    """Conversation store keyed by user id.

    Each session keeps at most ``max_messages`` messages (oldest dropped
    first). Writes to one session are serialized by that session's lock, so
    different users never contend. A daemon thread started by :meth:`start`
    evicts sessions idle longer than ``session_timeout`` seconds.
    """

    def __init__(
        self,
        max_messages: int = 10,
        max_sessions: int = 1000,
        session_timeout: float = 24 * 60 * 60,
        ongoing_window: float = 30 * 60,
        sweep_interval: float = 60 * 60,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if max_messages < 1:
            raise ValueError("max_messages must be >= 1")
        self.max_messages = max_messages
        self.max_sessions = max_sessions
        self.session_timeout = session_timeout
        self.ongoing_window = ongoing_window
        self.sweep_interval = sweep_interval
        self._clock = clock
        self._sessions: dict[str, ChatSession] = {}
        self._session_locks: dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()
        self._stop = threading.Event()
        self._sweeper: threading.Thread | None = None

    # Lifecycle ----------------------------------------------------------

    def start(self) -> None:
        if self._sweeper is not None:
            return
        self._stop.clear()
        self._sweeper = threading.Thread(target=self._sweep_loop, name="memory-sweeper", daemon=True)
        self._sweeper.start()

    def stop(self) -> None:
        if self._sweeper is None:
            return
        self._stop.set()
        self._sweeper.join(timeout=5)
        self._sweeper = None

    def _sweep_loop(self) -> None:
        while not self._stop.wait(self.sweep_interval):
            self.sweep()

    # Mutation -----------------------------------------------------------

    def add_message(
        self,
        user_id: str | None,
        role: Role | str,
        content: str,
        metadata: dict[str, Any] | None = None,
    ) -> Message:
        key = user_id or ANONYMOUS
        now = self._clock()
        message = Message(role=Role(role), content=content, timestamp=now, metadata=dict(metadata or {}))
        session, lock = self._session(key, create=True)
        with lock:
            session.messages.append(message)
            session.last_activity = now
            if message.role is Role.USER:
                session.topics.update(extract_topics([message]))
        if len(self._sessions) > self.max_sessions:
            self._enforce_capacity()
        return message

    def clear(self, user_id: str | None) -> bool:
        key = user_id or ANONYMOUS
        with self._registry_lock:
            removed = self._sessions.pop(key, None)
            self._session_locks.pop(key, None)
        if removed is not None:
            logger.info("Cleared conversation history", extra={"ctx_user": key})
        return removed is not None

    def sweep(self) -> int:
        """Evict sessions idle past ``session_timeout``; returns how many were removed."""
        cutoff = self._clock() - self.session_timeout
        with self._registry_lock:
            expired = [key for key, session in self._sessions.items() if session.last_activity < cutoff]
            for key in expired:
                del self._sessions[key]
                self._session_locks.pop(key, None)
        if expired:
            logger.info("Evicted %s idle conversations", len(expired))
        return len(expired)

    # Reads --------------------------------------------------------------

    def history(self, user_id: str | None) -> list[Message]:
        found = self._session(user_id or ANONYMOUS, create=False)
        if found is None:
            return []
        session, lock = found
        with lock:
            session.last_activity = self._clock()
            return list(session.messages)

    def context(self, user_id: str | None, last: int = CONTEXT_MESSAGES) -> str:
        messages = self.history(user_id)
        if not messages:
            return ""
        lines = ["Recent conversation history:"]
        for message in messages[-last:]:
            speaker = "User" if message.role is Role.USER else "Assistant"
            lines.append(f"{speaker}: {message.content}")
        return "\n".join(lines) + "\n"

    def summary(self, user_id: str | None) -> dict[str, Any] | None:
        messages = self.history(user_id)
        if not messages:
            return None
        return {
            "messageCount": len(messages),
            "topics": extract_topics(messages),
            "lastMessage": {
                "role": messages[-1].role.value,
                "content": messages[-1].content,
                "timestamp": messages[-1].timestamp,
            },
            "duration": messages[-1].timestamp - messages[0].timestamp,
        }

    def has_ongoing(self, user_id: str | None) -> bool:
        """True when the user was active within ``ongoing_window`` seconds."""
        found = self._session(user_id or ANONYMOUS, create=False)
        if found is None:
            return False
        return self._clock() - found[0].last_activity < self.ongoing_window

    def greeting(self, user_id: str | None) -> str:
        if not self.has_ongoing(user_id):
            return GENERIC_GREETING
        summary = self.summary(user_id)
        if summary is None:
            return GENERIC_GREETING
        if summary["messageCount"] == 1:
            return "Welcome back! What would you like to know about CampusCrew?"
        topics = summary["topics"]
        if topics:
            return f"Hi again! I see we've been discussing {' and '.join(topics[:2])}. How can I help you further?"
        return f"Welcome back! We've chatted {summary['messageCount']} times. What can I help you with today?"

    def stats(self) -> dict[str, Any]:
        now = self._clock()
        with self._registry_lock:
            sessions = list(self._sessions.values())
        total_messages = sum(len(s.messages) for s in sessions)
        approx_bytes = sum(len(m.content) * 2 + 100 for s in sessions for m in s.messages)
        return {
            "totalUsers": len(sessions),
            "activeUsers": sum(1 for s in sessions if now - s.last_activity < self.session_timeout),
            "totalMessages": total_messages,
            "averageMessages": round(total_messages / len(sessions)) if sessions else 0,
            "maxMessages": self.max_messages,
            "memoryUsage": {"bytes": approx_bytes, "kb": round(approx_bytes / 1024)},
        }

    # Internal helpers -------------------------------------------------

    def _session(self, key: str, create: bool) -> tuple[ChatSession, threading.Lock] | None:
        with self._registry_lock:
            session = self._sessions.get(key)
            if session is None:
                if not create:
                    return None
                session = ChatSession.new(key, self.max_messages, self._clock())
                self._sessions[key] = session
                self._session_locks[key] = threading.Lock()
            return session, self._session_locks[key]

    def _enforce_capacity(self) -> None:
        self.sweep()
        with self._registry_lock:
            overflow = len(self._sessions) - self.max_sessions
            if overflow <= 0:
                return
            oldest = sorted(self._sessions.values(), key=lambda s: s.last_activity)[:overflow]
            for session in oldest:
                del self._sessions[session.id]
                self._session_locks.pop(session.id, None)
        logger.info("Evicted %s conversations over capacity", overflow)


__all__ = ["ConversationMemory", "extract_topics", "TOPIC_KEYWORDS", "GENERIC_GREETING", "ANONYMOUS"]
