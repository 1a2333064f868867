"""Answer database strategies from the event store as markdown."""

from __future__ import annotations

import math
from datetime import datetime
from typing import Callable

from campus_chat.chat.events import EventRecord, EventStore, ParticipantInfo
from campus_chat.core.errors import UpstreamUnavailable
from campus_chat.core.logging import get_logger
from campus_chat.models.entities import (
    CategoryQuery,
    DatabaseStrategy,
    SpecificEventQuery,
    StatsQuery,
    UpcomingQuery,
)
from campus_chat.utils.time import utc_now

logger = get_logger(__name__)

TBA = "TBA"
CURRENCY = "৳"
UPCOMING_SHOWN = 5
PAST_SHOWN = 3
CATEGORY_LIMIT = 10


def is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def format_amount(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else f"{value:.2f}"


def format_fee(value: float | None, free: str = "FREE") -> str | None:
    """``None`` when the fee is unknown so callers choose their own placeholder."""
    if not is_number(value):
        return None
    return free if value == 0 else f"{CURRENCY} {format_amount(value)}"


def format_prize(value: float | None) -> str | None:
    return f"{CURRENCY} {format_amount(value)}" if is_number(value) else None


def long_date(value: datetime | None) -> str | None:
    return f"{value:%A}, {value:%B} {value.day}, {value.year}" if value else None


def short_date(value: datetime | None) -> str | None:
    return f"{value:%B} {value.day}, {value.year}" if value else None


def _bold(value: str | None, placeholder: str = TBA) -> str:
    return f"**{value}**" if value else f"**{placeholder}**"


class EventQueryHandler:
    """Run one database strategy against the event store and render the answer.

    Returns None when the strategy cannot be answered here (missing category or
    event name, or the store is unavailable); callers then fall back to RAG.
    """

    def __init__(self, store: EventStore, base_url: str, clock: Callable[[], datetime] = utc_now) -> None:
        self.store = store
        self.base_url = base_url.rstrip("/")
        self._clock = clock

    def handle(self, strategy: DatabaseStrategy) -> str | None:
        try:
            match strategy:
                case StatsQuery():
                    return self.stats()
                case UpcomingQuery(limit=limit):
                    return self.upcoming(limit)
                case CategoryQuery(category=category):
                    return self.category(category)
                case SpecificEventQuery(event_name=name, attribute=attribute):
                    return self.specific_event(name, attribute)
        except UpstreamUnavailable as exc:
            logger.warning("Event store query failed: %s", exc.message)
            return None
        return None

    def link(self, event_id: str) -> str:
        return f"{self.base_url}/events/{event_id}"

    # Strategies ---------------------------------------------------------

    def stats(self) -> str:
        stats = self.store.stats()
        return (
            "## 📊 **Platform Statistics**\n\n"
            "### 🎯 **Event Overview**\n"
            f"🎪 **Total Events:** **{stats.total_events}**\n"
            f"🚀 **Upcoming Events:** **{stats.upcoming_events}**\n"
            f"📅 **Past Events:** **{stats.past_events}**\n\n"
            "### 👥 **Community Engagement**\n"
            f"📝 **Total Registrations:** **{stats.total_registrations}**\n\n"
            "---\n\n"
            "💡 **Ready to join an event?** Ask me about upcoming events or specific categories!"
        )

    def upcoming(self, limit: int = 10) -> str:
        events = self.store.upcoming(limit)
        if not events:
            return (
                "## 📅 **No Upcoming Events**\n\n"
                "Currently, there are no upcoming events scheduled in our database.\n\n"
                "💡 **Stay tuned!** New events are added regularly. Check back soon for exciting opportunities!"
            )
        shown = events[:UPCOMING_SHOWN]
        cards = "\n\n".join(self._upcoming_card(index, event) for index, event in enumerate(shown, start=1))
        return (
            "## 🚀 **Upcoming Events on CampusCrew**\n\n"
            f"📊 **Found {len(events)} upcoming events!**\n"
            f"👇 **Here are the {len(shown)} soonest events:**\n\n"
            f"{cards}\n\n"
            f"💡 **Want more?** Visit {self.base_url}/upcoming-events to see all upcoming events!"
        )

    def category(self, category: str | None) -> str | None:
        if not category:
            return None
        events = self.store.by_category(category, CATEGORY_LIMIT)
        if not events:
            return (
                f"## ❌ No {category} Events Found\n\n"
                f"We couldn't find any **{category.lower()}** events right now.\n\n"
                "💡 Tip: Check back later or browse all events here: "
                f"[Upcoming Events]({self.base_url}/upcoming-events)"
            )

        now = self._clock()
        upcoming = [e for e in events if e.is_upcoming(now)]
        past = [e for e in events if not e.is_upcoming(now)]
        parts = [
            f"## 🎯 **{category.upper()}** Category Events\n\n"
            f"📊 **Found {len(events)} total events** ({len(upcoming)} upcoming, {len(past)} past)\n"
        ]
        if upcoming:
            single = len(upcoming) == 1
            parts.append("### ✨ **FEATURED EVENT** ✨" if single else "### 🚀 **UPCOMING EVENTS**")
            parts.extend(self._category_card(index, event, single) for index, event in enumerate(upcoming, start=1))
        if past:
            parts.append("### 📚 **PAST EVENTS**")
            for index, event in enumerate(past[:PAST_SHOWN], start=1):
                parts.append(
                    f"#### {index}. **{event.title}**\n\n"
                    f"📅 {_bold(long_date(event.date))}\n"
                    f"📍 {event.location or _bold(None)}\n\n"
                    f"🔗 **[View Details ➤]({self.link(event.id)})**"
                )
            if len(past) > PAST_SHOWN:
                parts.append(f"…and {len(past) - PAST_SHOWN} more past events.")
        return "\n\n".join(parts)

    def specific_event(self, name: str | None, attribute: str | None = None) -> str | None:
        if not name:
            return None
        matches = self.store.search(name)
        if not matches:
            return (
                "## ❌ **No Events Found**\n\n"
                f'Sorry, no events were found matching **"{name}"** in our database.\n\n'
                "💡 **Tip:** Try searching with different keywords or ask about upcoming events in general."
            )
        if len(matches) > 1:
            entries = "\n\n---\n\n".join(self._match_entry(index, event) for index, event in enumerate(matches, start=1))
            return (
                "## 🔍 **Multiple Events Found**\n\n"
                f'Found **{len(matches)} events** matching **"{name}"**:\n\n'
                f"{entries}"
            )

        event_id = matches[0].id
        details = self.store.details(event_id)
        if details is None:
            return None
        if attribute:
            answer = self._attribute_answer(details, attribute)
            if answer is not None:
                return answer
        return self._detail_card(details, self.store.participants(event_id))

    # Rendering helpers --------------------------------------------------

    def _upcoming_card(self, index: int, event: EventRecord) -> str:
        time_suffix = f" at **{event.time}**" if event.time else ""
        return (
            f"#### {index}. 🎪 **{event.title}** ✨\n\n"
            f"📅 **Date:** {long_date(event.date) or _bold(None)}{time_suffix}\n"
            f"📍 **Location:** {event.location or _bold(None)}\n"
            f"💵 **Fee:** {_bold(format_fee(event.price))}\n"
            f"🏆 **Prize:** {_bold(format_prize(event.prize_money))}\n"
            f"👥 **Participants:** **{event.participants}/{event.max_participants}**\n"
            f"💺 **Spots Remaining:** **{event.spots_remaining}**\n\n"
            f"🔗 [**View Details & Register ➤**]({self.link(event.id)})"
        )

    def _category_card(self, index: int, event: EventRecord, single: bool) -> str:
        fee = format_fee(event.price, free="FREE ENTRY")
        if fee is None:
            fee_line = "**Fee: TBA**"
        elif fee == "FREE ENTRY":
            fee_line = "**FREE ENTRY**"
        else:
            fee_line = f"**Fee:** {fee}"
        prize = format_prize(event.prize_money)
        prize_line = f"**Prize:** {prize}" if prize else "**Prize: TBA**"
        heading = "🎭" if single else f"{index}."
        action = "Join Event" if single else "Register Here"
        return (
            f"#### {heading} **{event.title}** ✨\n\n"
            f"📅 {long_date(event.date) or _bold(None)}\n"
            f"📍 {event.location or _bold(None)}\n"
            f"💵 {fee_line}\n"
            f"🏆 {prize_line}\n"
            f"⏰ Deadline: {short_date(event.registration_deadline) or _bold(None)}\n"
            f"👥 {event.participants}/{event.max_participants} registered ({event.spots_remaining} spots left)\n\n"
            f"🔗 **[{action} ➤]({self.link(event.id)})**"
        )

    def _match_entry(self, index: int, event: EventRecord) -> str:
        return (
            f"#### {index}. **{event.title}** 🎯\n\n"
            f"📅 **Date:** {_bold(long_date(event.date), 'Date TBA')}\n"
            f"📍 **Location:** {_bold(event.location, 'Location TBA')}\n"
            f"💵 **Fee:** {_bold(format_fee(event.price))}\n"
            f"🏆 **Prize:** {_bold(format_prize(event.prize_money))}\n\n"
            f"🔗 **[Click to view details ➤]({self.link(event.id)})**"
        )

    def _attribute_answer(self, event: EventRecord, attribute: str) -> str | None:
        labels = {
            "fee": ("Registration fee", format_fee(event.price)),
            "prize": ("Prize money", format_prize(event.prize_money)),
            "deadline": ("Registration deadline", short_date(event.registration_deadline)),
            "date": ("Event date", long_date(event.date)),
            "location": ("Location", event.location),
        }
        if attribute not in labels:
            return None
        label, value = labels[attribute]
        return f"**{event.title}** - {label}: **{value or TBA}**\n\n🔗 [View full details ➤]({self.link(event.id)})"

    def _detail_card(self, event: EventRecord, participants: ParticipantInfo | None) -> str:
        if participants is not None:
            availability = (
                "⚠️ **Event is FULL** - No more registrations accepted"
                if participants.is_full
                else "✅ **Spots Available** - Register now!"
            )
            registration = (
                f"🎯 **Participants:** **{participants.participant_count}/{participants.max_participants}**\n"
                f"💺 **Spots Remaining:** **{participants.spots_remaining}**\n"
                f"{availability}"
            )
        else:
            registration = "Registration information not available"
        deadline = short_date(event.registration_deadline)
        deadline_line = f"\n📆 **Registration Deadline:** {deadline}" if deadline else ""
        return (
            f"## 🎉 **{event.title}**\n\n"
            "### 📋 **Event Details**\n"
            f"📅 **Date:** {long_date(event.date) or _bold(None)}\n"
            f"⏰ **Time:** {event.time or _bold(None)}\n"
            f"📍 **Location:** {event.location or _bold(None)}\n"
            f"🏷️ **Category:** **{event.category or 'General'}**\n"
            f"💵 **Registration Fee:** {_bold(format_fee(event.price))}\n"
            f"🏆 **Prize Money:** {_bold(format_prize(event.prize_money))}\n\n"
            "### 👥 **Registration Info**\n"
            f"{registration}{deadline_line}\n\n"
            "### 🚀 **Take Action**\n"
            f"🔗 **[Click here to view full details and register ➤]({self.link(event.id)})**"
        )


__all__ = [
    "EventQueryHandler",
    "format_fee",
    "format_prize",
    "is_number",
    "long_date",
    "short_date",
]
