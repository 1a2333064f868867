"""Tests for the event store adapters and the structured query handler."""

import sqlite3
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from campus_chat.chat.events import EventRecord, InMemoryEventStore, SQLiteEventStore
from campus_chat.chat.handler import EventQueryHandler, format_fee, long_date
from campus_chat.core.errors import UpstreamUnavailable
from campus_chat.db.sqlite import SCHEMA_PATH, SQLiteDatabase
from campus_chat.models.entities import CategoryQuery, SpecificEventQuery, StatsQuery, UpcomingQuery

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)
BASE_URL = "http://campus.test"


def clock() -> datetime:
    return NOW


@pytest.fixture
def events() -> InMemoryEventStore:
    store = InMemoryEventStore(clock=clock)
    store.add(
        EventRecord(
            id="e1",
            title="Spring Hackathon",
            description="Build things in 24 hours",
            date=NOW + timedelta(days=2),
            location="Main Hall",
            category="Career",
            price=0,
            prize_money=5000,
            registration_deadline=NOW + timedelta(days=1),
            max_participants=2,
        ),
        registrations=2,
    )
    store.add(
        EventRecord(
            id="e2",
            title="Cultural Night",
            description="Music and dance",
            date=NOW + timedelta(days=5),
            category="Cultural",
            price=150,
        ),
        registrations=10,
    )
    store.add(EventRecord(id="e3", title="Cultural Fair 2024", date=NOW - timedelta(days=30), category="Cultural"))
    return store


@pytest.fixture
def handler(events: InMemoryEventStore) -> EventQueryHandler:
    return EventQueryHandler(events, BASE_URL, clock=clock)


def test_stats(handler: EventQueryHandler) -> None:
    text = handler.handle(StatsQuery())
    assert "**Total Events:** **3**" in text
    assert "**Upcoming Events:** **2**" in text
    assert "**Past Events:** **1**" in text
    assert "**Total Registrations:** **12**" in text


def test_upcoming_lists_soonest_first(handler: EventQueryHandler) -> None:
    text = handler.handle(UpcomingQuery(limit=10))
    assert "Found 2 upcoming events" in text
    assert text.index("Spring Hackathon") < text.index("Cultural Night")
    assert "**FREE**" in text
    assert "৳ 150" in text
    assert f"{BASE_URL}/events/e1" in text


def test_no_upcoming_events() -> None:
    handler = EventQueryHandler(InMemoryEventStore(clock=clock), BASE_URL, clock=clock)
    assert "No Upcoming Events" in handler.upcoming()


def test_category_splits_upcoming_and_past(handler: EventQueryHandler) -> None:
    text = handler.handle(CategoryQuery(category="Cultural"))
    assert "Found 2 total events** (1 upcoming, 1 past)" in text
    assert "FEATURED EVENT" in text
    assert "PAST EVENTS" in text


def test_category_without_matches_and_without_name(handler: EventQueryHandler) -> None:
    assert "No Sports Events Found" in handler.handle(CategoryQuery(category="Sports"))
    assert handler.handle(CategoryQuery(category=None)) is None


def test_specific_event_not_found_names_the_query(handler: EventQueryHandler) -> None:
    text = handler.handle(SpecificEventQuery(event_name="fashion show", attribute="fee"))
    assert "No Events Found" in text
    assert '"fashion show"' in text


def test_specific_event_attribute_answer(handler: EventQueryHandler) -> None:
    assert handler.handle(SpecificEventQuery("hackathon", "fee")).startswith(
        "**Spring Hackathon** - Registration fee: **FREE**"
    )
    assert "Prize money: **৳ 5000**" in handler.handle(SpecificEventQuery("hackathon", "prize"))
    assert "Location: **TBA**" in handler.handle(SpecificEventQuery("night", "location"))


def test_specific_event_detail_card_reports_full_event(handler: EventQueryHandler) -> None:
    text = handler.handle(SpecificEventQuery("hackathon", None))
    assert "## 🎉 **Spring Hackathon**" in text
    assert "**2/2**" in text
    assert "Event is FULL" in text


def test_multiple_matches_are_listed(handler: EventQueryHandler) -> None:
    text = handler.handle(SpecificEventQuery("cultural", None))
    assert "Multiple Events Found" in text
    assert "Found **2 events**" in text


def test_formatting_helpers() -> None:
    assert format_fee(0) == "FREE"
    assert format_fee(99.5) == "৳ 99.50"
    assert format_fee(None) is None
    assert long_date(datetime(2025, 3, 3)) == "Monday, March 3, 2025"


def test_sqlite_event_store(tmp_path: Path) -> None:
    path = tmp_path / "events.db"
    seed = sqlite3.connect(path)
    seed.executescript(SCHEMA_PATH.read_text(encoding="utf-8"))
    seed.executemany(
        "INSERT INTO events (id, title, description, date, category, registration_fee, max_participants, created_at) "
        "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
        [
            ("e1", "Spring Hackathon", "Build things", (NOW + timedelta(days=2)).isoformat(), "Career", 0, 50, 0),
            ("e2", "Old Seminar", "Talks", (NOW - timedelta(days=2)).isoformat(), "Seminar", 100, None, 0),
        ],
    )
    seed.executemany(
        "INSERT INTO registrations (id, event_id, status, created_at) VALUES (?, ?, ?, ?)",
        [("r1", "e1", "confirmed", 0), ("r2", "e1", "attended", 0), ("r3", "e1", "cancelled", 0)],
    )
    seed.commit()
    seed.close()
    db = SQLiteDatabase(path)
    store = SQLiteEventStore(db, clock=clock)

    stats = store.stats()
    assert (stats.total_events, stats.upcoming_events, stats.past_events) == (2, 1, 1)
    assert [e.id for e in store.upcoming(5)] == ["e1"]
    assert [e.title for e in store.search("hackathon event")] == ["Spring Hackathon"]
    participants = store.participants("e1")
    assert (participants.participant_count, participants.max_participants) == (2, 50)
    assert store.details("e2").max_participants == 100
    assert store.details("missing") is None
    db.close()


def test_sqlite_event_store_is_read_only(tmp_path: Path) -> None:
    path = tmp_path / "events.db"
    seed = sqlite3.connect(path)
    seed.executescript(SCHEMA_PATH.read_text(encoding="utf-8"))
    seed.close()
    db = SQLiteDatabase(path)

    with pytest.raises(sqlite3.OperationalError, match="readonly"):
        db.connect().execute("DELETE FROM events")
    assert db.scalar("SELECT COUNT(*) FROM events") == 0
    db.close()


def test_sqlite_event_store_missing_file_is_unavailable(tmp_path: Path) -> None:
    store = SQLiteEventStore(SQLiteDatabase(tmp_path / "absent.db"), clock=clock)
    with pytest.raises(UpstreamUnavailable):
        store.stats()
