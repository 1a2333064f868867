"""Tests for bounded conversation memory."""

from concurrent.futures import ThreadPoolExecutor

import pytest

from campus_chat.chat.memory import GENERIC_GREETING, ConversationMemory, extract_topics
from campus_chat.models.entities import Message, Role


class FakeClock:
    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory(clock: FakeClock) -> ConversationMemory:
    return ConversationMemory(max_messages=4, session_timeout=600, ongoing_window=60, clock=clock)


def test_history_keeps_only_the_newest_messages(memory: ConversationMemory, clock: FakeClock) -> None:
    for i in range(9):
        memory.add_message("u1", Role.USER if i % 2 == 0 else Role.ASSISTANT, f"message {i}")
        clock.advance(1)
    history = memory.history("u1")
    assert [m.content for m in history] == ["message 5", "message 6", "message 7", "message 8"]
    assert memory.history("nobody") == []


def test_missing_user_id_shares_anonymous_session(memory: ConversationMemory) -> None:
    memory.add_message(None, "user", "hello")
    memory.add_message("", "assistant", "hi there")
    assert len(memory.history(None)) == 2


def test_topics_context_and_summary(memory: ConversationMemory, clock: FakeClock) -> None:
    memory.add_message("u1", Role.USER, "How do I pay the fee with bkash?")
    clock.advance(120)
    memory.add_message("u1", Role.ASSISTANT, "You can pay from your dashboard.")

    summary = memory.summary("u1")
    assert summary["messageCount"] == 2
    assert summary["topics"] == ["payment", "help"]
    assert summary["duration"] == 120
    assert summary["lastMessage"]["role"] == "assistant"

    context = memory.context("u1")
    assert context.startswith("Recent conversation history:\n")
    assert "User: How do I pay the fee with bkash?" in context
    assert "Assistant: You can pay from your dashboard." in context
    assert memory.context("nobody") == ""
    assert memory.summary("nobody") is None


def test_extract_topics_ignores_assistant_messages() -> None:
    messages = [
        Message(Role.ASSISTANT, "download your certificate", 0.0),
        Message(Role.USER, "update my profile", 1.0),
    ]
    assert extract_topics(messages) == ["profile"]


def test_greeting_depends_on_recent_activity(memory: ConversationMemory, clock: FakeClock) -> None:
    assert memory.greeting("u1") == GENERIC_GREETING

    memory.add_message("u1", Role.USER, "hello")
    assert memory.greeting("u1") == "Welcome back! What would you like to know about CampusCrew?"

    memory.add_message("u1", Role.USER, "how do I download my certificate")
    assert "certificates" in memory.greeting("u1")

    clock.advance(61)
    assert memory.has_ongoing("u1") is False
    assert memory.greeting("u1") == GENERIC_GREETING


def test_sweep_evicts_idle_sessions(memory: ConversationMemory, clock: FakeClock) -> None:
    memory.add_message("old", Role.USER, "hi")
    clock.advance(500)
    memory.add_message("recent", Role.USER, "hi")
    clock.advance(200)

    assert memory.sweep() == 1
    assert memory.history("old") == []
    assert len(memory.history("recent")) == 1


def test_capacity_evicts_least_recently_active(clock: FakeClock) -> None:
    memory = ConversationMemory(max_messages=4, max_sessions=2, clock=clock)
    for user in ("a", "b", "c"):
        memory.add_message(user, Role.USER, "hi")
        clock.advance(1)
    assert memory.stats()["totalUsers"] == 2
    assert memory.history("a") == []


def test_clear_and_stats(memory: ConversationMemory) -> None:
    memory.add_message("u1", Role.USER, "hi")
    memory.add_message("u2", Role.USER, "hello")
    stats = memory.stats()
    assert stats["totalUsers"] == 2
    assert stats["totalMessages"] == 2
    assert stats["maxMessages"] == 4

    assert memory.clear("u1") is True
    assert memory.clear("u1") is False
    assert memory.stats()["totalUsers"] == 1


def test_concurrent_writers_respect_the_cap() -> None:
    memory = ConversationMemory(max_messages=10)

    def write(i: int) -> None:
        memory.add_message(f"user-{i % 4}", Role.USER, f"message {i}")

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(write, range(200)))

    assert memory.stats()["totalMessages"] == 40
    assert all(len(memory.history(f"user-{i}")) == 10 for i in range(4))


def test_rejects_non_positive_cap() -> None:
    with pytest.raises(ValueError):
        ConversationMemory(max_messages=0)
