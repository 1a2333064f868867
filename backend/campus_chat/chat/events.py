"""Read-only access to the events service: records, registrations, aggregates."""

from __future__ import annotations

import sqlite3
import threading
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Callable, Iterable, Protocol, Sequence

from campus_chat.core.errors import UpstreamUnavailable
from campus_chat.db.sqlite import SQLiteDatabase
from campus_chat.utils.time import parse_iso, utc_now

DEFAULT_MAX_PARTICIPANTS = 100
SEARCH_LIMIT = 10
FILLER_WORDS = frozenset({"event", "events", "show", "program", "activity", "competition"})


@dataclass(slots=True)
class EventRecord:
    id: str
    title: str
    description: str = ""
    date: datetime | None = None
    time: str | None = None
    location: str | None = None
    category: str | None = None
    organizer: str | None = None
    price: float | None = None
    prize_money: float | None = None
    registration_deadline: datetime | None = None
    max_participants: int = DEFAULT_MAX_PARTICIPANTS
    participants: int = 0

    @property
    def spots_remaining(self) -> int:
        return self.max_participants - self.participants

    def is_upcoming(self, now: datetime) -> bool:
        return self.date is not None and self.date >= now


@dataclass(slots=True)
class EventStats:
    total_events: int
    upcoming_events: int
    past_events: int
    total_registrations: int

    def to_dict(self) -> dict[str, int]:
        return {
            "totalEvents": self.total_events,
            "upcomingEvents": self.upcoming_events,
            "pastEvents": self.past_events,
            "totalRegistrations": self.total_registrations,
        }


@dataclass(slots=True)
class ParticipantInfo:
    event_title: str
    participant_count: int
    max_participants: int

    @property
    def spots_remaining(self) -> int:
        return self.max_participants - self.participant_count

    @property
    def is_full(self) -> bool:
        return self.participant_count >= self.max_participants


class EventStore(Protocol):
    def stats(self) -> EventStats: ...

    def upcoming(self, limit: int = 5) -> list[EventRecord]: ...

    def by_category(self, category: str, limit: int = 10) -> list[EventRecord]: ...

    def search(self, term: str) -> list[EventRecord]: ...

    def details(self, event_id: str) -> EventRecord | None: ...

    def participants(self, event_id: str) -> ParticipantInfo | None: ...


@dataclass(frozen=True, slots=True)
class SearchTerms:
    """Expansion of a user's search phrase into substrings to look for."""

    phrase: str
    cleaned: str
    words: tuple[str, ...]

    @classmethod
    def parse(cls, keyword: str) -> "SearchTerms":
        phrase = keyword.strip().lower()
        words = tuple(word for word in phrase.split() if word not in FILLER_WORDS and len(word) > 2)
        cleaned = " ".join(words) if words else phrase
        return cls(phrase=phrase, cleaned=cleaned, words=words)

    def matches(self, event: EventRecord) -> bool:
        title = event.title.lower()
        description = (event.description or "").lower()
        category = (event.category or "").lower()
        return (
            self.phrase in title
            or self.phrase in description
            or self.cleaned in title
            or self.cleaned in description
            or any(word in title for word in self.words)
            or (bool(category) and self.phrase in category)
        )


def _by_date(events: Iterable[EventRecord]) -> list[EventRecord]:
    return sorted(events, key=lambda e: (e.date is None, e.date or datetime.min, e.title, e.id))


class InMemoryEventStore:
    """Event store backed by a list of records; registrations are per-event counts."""

    def __init__(
        self,
        events: Sequence[EventRecord] = (),
        registrations: dict[str, int] | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._events = {event.id: event for event in events}
        self._registrations = dict(registrations or {})
        self._clock = clock
        self._lock = threading.Lock()

    def add(self, event: EventRecord, registrations: int = 0) -> None:
        with self._lock:
            self._events[event.id] = event
            self._registrations[event.id] = registrations

    def _snapshot(self) -> list[EventRecord]:
        with self._lock:
            events = list(self._events.values())
            counts = dict(self._registrations)
        return _by_date(replace(e, participants=counts.get(e.id, e.participants)) for e in events)

    def stats(self) -> EventStats:
        now = self._clock()
        events = self._snapshot()
        upcoming = sum(1 for e in events if e.is_upcoming(now))
        return EventStats(
            total_events=len(events),
            upcoming_events=upcoming,
            past_events=len(events) - upcoming,
            total_registrations=sum(self._registrations.values()),
        )

    def upcoming(self, limit: int = 5) -> list[EventRecord]:
        now = self._clock()
        return [e for e in self._snapshot() if e.is_upcoming(now)][:limit]

    def by_category(self, category: str, limit: int = 10) -> list[EventRecord]:
        needle = category.lower()
        return [e for e in self._snapshot() if needle in (e.category or "").lower()][:limit]

    def search(self, term: str) -> list[EventRecord]:
        terms = SearchTerms.parse(term)
        return [e for e in self._snapshot() if terms.matches(e)][:SEARCH_LIMIT]

    def details(self, event_id: str) -> EventRecord | None:
        return next((e for e in self._snapshot() if e.id == event_id), None)

    def participants(self, event_id: str) -> ParticipantInfo | None:
        event = self.details(event_id)
        if event is None:
            return None
        return ParticipantInfo(event.title, event.participants, event.max_participants)


_EVENT_COLUMNS = (
    "e.id, e.title, e.description, e.date, e.time, e.location, e.category, e.organizer, "
    "e.registration_fee, e.prize_money, e.registration_deadline, e.max_participants, "
    "(SELECT COUNT(*) FROM registrations r WHERE r.event_id = e.id AND r.status IN ('confirmed', 'attended')) "
    "AS participants"
)


class SQLiteEventStore:
    """Read-only queries against an ``events``/``registrations`` SQLite file."""

    def __init__(self, db: SQLiteDatabase, clock: Callable[[], datetime] = utc_now) -> None:
        self.db = db
        self._clock = clock

    def stats(self) -> EventStats:
        now = self._clock().isoformat()
        total = self._scalar("SELECT COUNT(*) FROM events")
        upcoming = self._scalar("SELECT COUNT(*) FROM events WHERE date >= ?", [now])
        registrations = self._scalar("SELECT COUNT(*) FROM registrations")
        return EventStats(
            total_events=total,
            upcoming_events=upcoming,
            past_events=total - upcoming,
            total_registrations=registrations,
        )

    def upcoming(self, limit: int = 5) -> list[EventRecord]:
        now = self._clock().isoformat()
        return self._events(f"SELECT {_EVENT_COLUMNS} FROM events e WHERE e.date >= ? ORDER BY e.date LIMIT ?", [now, limit])

    def by_category(self, category: str, limit: int = 10) -> list[EventRecord]:
        return self._events(
            f"SELECT {_EVENT_COLUMNS} FROM events e WHERE lower(e.category) LIKE ? ORDER BY e.date LIMIT ?",
            [f"%{category.lower()}%", limit],
        )

    def search(self, term: str) -> list[EventRecord]:
        terms = SearchTerms.parse(term)
        clauses = [
            "lower(e.title) LIKE ?",
            "lower(e.description) LIKE ?",
            "lower(e.title) LIKE ?",
            "lower(e.description) LIKE ?",
        ]
        params: list[object] = [f"%{terms.phrase}%", f"%{terms.phrase}%", f"%{terms.cleaned}%", f"%{terms.cleaned}%"]
        for word in terms.words:
            clauses.append("lower(e.title) LIKE ?")
            params.append(f"%{word}%")
        clauses.append("lower(e.category) LIKE ?")
        params.append(f"%{terms.phrase}%")
        params.append(SEARCH_LIMIT)
        return self._events(
            f"SELECT {_EVENT_COLUMNS} FROM events e WHERE {' OR '.join(clauses)} ORDER BY e.date LIMIT ?",
            params,
        )

    def details(self, event_id: str) -> EventRecord | None:
        events = self._events(f"SELECT {_EVENT_COLUMNS} FROM events e WHERE e.id = ?", [event_id])
        return events[0] if events else None

    def participants(self, event_id: str) -> ParticipantInfo | None:
        event = self.details(event_id)
        if event is None:
            return None
        return ParticipantInfo(event.title, event.participants, event.max_participants)

    def _scalar(self, sql: str, params: Sequence[object] | None = None) -> int:
        try:
            return int(self.db.scalar(sql, params) or 0)
        except sqlite3.Error as exc:
            raise UpstreamUnavailable(f"event store query failed: {exc}") from exc

    def _events(self, sql: str, params: Sequence[object]) -> list[EventRecord]:
        try:
            rows = self.db.query(sql, params)
        except sqlite3.Error as exc:
            raise UpstreamUnavailable(f"event store query failed: {exc}") from exc
        return [_row_to_event(row) for row in rows]


def _row_to_event(row: sqlite3.Row) -> EventRecord:
    return EventRecord(
        id=str(row["id"]),
        title=row["title"],
        description=row["description"] or "",
        date=parse_iso(row["date"]),
        time=row["time"],
        location=row["location"],
        category=row["category"] or "General",
        organizer=row["organizer"],
        price=row["registration_fee"],
        prize_money=row["prize_money"],
        registration_deadline=parse_iso(row["registration_deadline"]),
        max_participants=row["max_participants"] or DEFAULT_MAX_PARTICIPANTS,
        participants=int(row["participants"] or 0),
    )


__all__ = [
    "DEFAULT_MAX_PARTICIPANTS",
    "FILLER_WORDS",
    "EventRecord",
    "EventStats",
    "ParticipantInfo",
    "EventStore",
    "SearchTerms",
    "InMemoryEventStore",
    "SQLiteEventStore",
]
