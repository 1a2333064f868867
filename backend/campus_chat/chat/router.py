"""Map a classified intent to the strategy that answers it."""

from __future__ import annotations

from typing import Mapping

from campus_chat.models.entities import (
    CategoryQuery,
    ClassificationResult,
    Intent,
    RagStrategy,
    SimpleStrategy,
    SpecificEventQuery,
    StatsQuery,
    Strategy,
    UpcomingQuery,
)

UPCOMING_LIMIT = 10


def route(intent: Intent, entities: Mapping[str, str] | None = None) -> Strategy:
    """Pure and deterministic: equal inputs always give equal strategies."""
    entities = entities or {}
    if intent is Intent.GREETING:
        return SimpleStrategy(template="greeting")
    if intent is Intent.EVENT_STATS:
        return StatsQuery()
    if intent is Intent.GENERAL_EVENT_LIST:
        return UpcomingQuery(limit=UPCOMING_LIMIT)
    if intent is Intent.EVENT_CATEGORY:
        return CategoryQuery(category=entities.get("category"))
    if intent is Intent.SPECIFIC_EVENT:
        return SpecificEventQuery(event_name=entities.get("eventName"), attribute=entities.get("attribute"))
    return RagStrategy(include_context=True)


def route_classification(result: ClassificationResult) -> Strategy:
    return route(result.intent, result.entities)


__all__ = ["route", "route_classification", "UPCOMING_LIMIT"]
