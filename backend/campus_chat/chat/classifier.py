"""Rule-based intent classification for chat queries.

The classifier is a pure function over an ordered rule table: no I/O, no
state. Each :class:`IntentRule` carries a weight and a list of patterns; the
first pattern that matches for an intent sets its confidence, boosted by 0.1
when the match spans more than 70% of the query. The highest confidence wins,
with earlier intents winning ties.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from campus_chat.models.entities import ClassificationResult, Intent

DEFAULT_CONFIDENCE = 0.3
COVERAGE_BOOST = 0.1
COVERAGE_RATIO = 0.7

_CATEGORY_WORDS = r"(cultural|arts?|career|environment|literary|seminar|speaking|sports?)"

KNOWN_CATEGORIES = (
    "Cultural",
    "Arts & Creativity",
    "Arts",
    "Career & Professional Development",
    "Career",
    "Environment",
    "Literary",
    "Speaking",
    "Seminar",
    "Sports",
)


@dataclass(frozen=True, slots=True)
class IntentRule:
    intent: Intent
    weight: float
    patterns: tuple[re.Pattern[str], ...]
    requires_event_name: bool = False


def _compile(*patterns: str) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(pattern, re.IGNORECASE) for pattern in patterns)


INTENT_RULES: tuple[IntentRule, ...] = (
    IntentRule(
        Intent.GREETING,
        1.0,
        _compile(
            r"^(hi|hello|hey|greetings|good\s*(morning|afternoon|evening)|what's\s*up|whatsup|sup)[\s!.?]*$",
            r"^(thanks|thank\s*you|ty|thx)[\s!.?]*$",
            r"^(bye|goodbye|see\s*you|later|cya)[\s!.?]*$",
        ),
    ),
    IntentRule(
        Intent.EVENT_STATS,
        0.95,
        _compile(
            r"how\s+many\s+(total\s+)?(events?|registrations?)",
            r"(total|overall|all)\s+(events?|registrations?|participants?)",
            r"platform\s+stat(istic)?s?",
            r"event\s+stat(istic)?s?",
            r"give\s+me\s+(the\s+)?stat(istic)?s?",
            r"(show|tell)\s+(me\s+)?(the\s+)?(platform|event)\s+stat",
        ),
    ),
    IntentRule(
        Intent.SPECIFIC_EVENT,
        0.9,
        _compile(
            r"^[\w\s:]+?\s+(fee|price|cost|registration\s*fee|entry\s*fee|ticket|prize|details?|info|when|date"
            r"|location|time|deadline)[\s?!.]*$",
            r"what(?:'s| is)?\s+(the\s+)?(fee|price|cost|registration\s*fee|prize|detail)",
            r"how\s+much\s+(is\s+)?(the\s+)?(fee|price|cost|registration|entry)",
            r"when\s+is\s+(the\s+)?[\w\s]+\s*(event|happening|\?)",
            r"where\s+is\s+(the\s+)?[\w\s]+\s*(event|held|\?)",
            r"['\"][\w\s:]+['\"]\s+(event|fee|price|detail)",
            r"(tell|show)\s+me\s+about\s+[\w\s:]{3,}",
            r"how\s+many\s+(people|participants?).*?(in|for|at)\s+[\w\s:]{3,}",
            r"what\s+is\s+the\s+[\w\s:]+\s+(fee|price|prize|date)",
        ),
        requires_event_name=True,
    ),
    IntentRule(
        Intent.EVENT_CATEGORY,
        0.85,
        _compile(
            _CATEGORY_WORDS + r"\s+(events?|activities?|programs?)",
            r"(show|list|tell|give)\s+(me\s+)?(all\s+)?(the\s+)?" + _CATEGORY_WORDS,
            r"events?\s+(in|from|of|about)\s+(the\s+)?" + _CATEGORY_WORDS,
            r"what\s+" + _CATEGORY_WORDS + r"\s+events?",
            r"(any|some|there\s+any)\s+" + _CATEGORY_WORDS + r"\s+events?",
            r"(?:is|are)\s+there\s+(?:any|some)\s+events?\s+(?:is|in|from|for)\s+(?:the\s+)?"
            + _CATEGORY_WORDS
            + r"\s+category",
            r"events?\s+(?:in|from|of)\s+(?:the\s+)?[\w\s&]+\s+category",
        ),
    ),
    IntentRule(
        Intent.GENERAL_EVENT_LIST,
        0.8,
        _compile(
            r"(show|list|tell|give|display)\s+(me\s+)?(all\s+)?(the\s+)?(available\s+|upcoming\s+|current\s+)?events?",
            r"what\s+events?\s+(are\s+)?(available|happening|coming|upcoming|there)",
            r"(any|some)\s+events?\s+(available|happening|here|coming|upcoming)?",
            r"are\s+there\s+(any\s+)?events?",
            r"do\s+you\s+have\s+(any\s+)?events?",
            r"can\s+i\s+(see|know|find|get)\s+(any\s+|some\s+)?events?",
            r"(know|learn|hear)\s+about\s+(any\s+|some\s+)?events?",
            r"events?\s+(from\s+)?here",
            r"which\s+events?\s+(are\s+)?(available|here)",
            r"(upcoming|next|coming|future)\s+events?",
            r"what'?s\s+(happening|coming|next)",
            r"browse\s+events?",
            r"view\s+(all\s+)?events?",
            r"event\s+(list|catalog|directory)",
        ),
    ),
    IntentRule(
        Intent.GENERAL_QUESTION,
        0.7,
        _compile(
            r"what\s+(is|are)\s+(campuscrew|this\s+platform|this\s+site|this\s+website)",
            r"how\s+(does|do|can)\s+(campuscrew|this\s+platform|this)",
            r"tell\s+me\s+about\s+(campuscrew|this\s+platform|your\s+platform)",
            r"(who\s+(are|is)|tell\s+me\s+about|about)\s+(the\s+)?(campuscrew\s+)?"
            r"(team|members?|founders?|creators?|developers?)",
            r"campuscrew\s+(team|members?|founders?|staff)",
            r"(how\s+to|how\s+can\s+i|how\s+do\s+i)\s+(contact|reach|email|call|message)",
            r"contact\s+(us|campuscrew|information|details?)",
            r"(email|phone|address|location)\s+(of\s+)?(campuscrew|platform)",
            r"(give|tell|show|provide)\s+(me\s+)?(the\s+)?(campuscrew\s+)?(email|phone|address|location|contact)",
            r"(what\s+is|what'?s)\s+(the\s+)?(campuscrew\s+)?(email|phone|address|location|contact)",
            r"campuscrew\s+(email|phone|address|location|contact)",
            r"about\s+(us|campuscrew|the\s+platform)",
            r"how\s+(to|do\s+i)\s+(register|sign\s*up|join|participate)",
            r"what\s+(features|services|benefits)",
            r"can\s+i\s+(register|sign\s*up|join|create)",
            r"help",
            r"how\s+does\s+(registration|payment|event)",
            r"what\s+can\s+(i|you)\s+(do|help)",
        ),
    ),
)

# Meta-questions about the platform never name an event.
_NON_EVENT_PATTERNS = _compile(
    r"\b(team|members?|founders?|staff|developers?|creators?)\b",
    r"\b(contact|email|phone|address|location)\b",
    r"\b(about\s+us|about\s+campuscrew|about\s+the\s+platform|about\s+this\s+platform)\b",
    r"\b(this\s+platform|the\s+platform|campuscrew\s+platform)\b",
    r"\b(how\s+to|features|services|benefits|help)\b",
)

_EVENT_NAME_PATTERNS = _compile(
    r"(?:event\s+(?:called|named)?[\"']?([^\"'?.!]+)[\"']?)",
    r"(?:[\"']([^\"']+)[\"']\s+event)",
    r"(?:about|for)\s+[\"']?([^\"'?.!]+)[\"']?\s+event",
    r"^([a-zA-Z\s:]+?)\s+(?:fee|price|cost|registration\s*fee|entry\s*fee|ticket|prize(?:\s*money)?|details?|info"
    r"|information)[\s?!.]*$",
    r"what(?:'s| is)?\s*(?:the\s*)?(?:fee|price|cost|prize)\s*(?:for|of|in)\s+(?:the\s+)?([a-zA-Z\s:]+?)(?:\s*\?|$)",
    r"how\s+much[^?\n]*?(?:for|of|in)\s+(?:the\s+)?([a-zA-Z\s:]+?)(?:\s*\?|$)",
    r"when\s+is\s+(?:the\s+)?([a-zA-Z\s:]+?)(?:\s*\?|$)",
    r"tell\s+me\s+about\s+(?:the\s+)?([a-zA-Z\s:]+?)(?:\s*\?|$)",
    r"participants?\s+(?:in|for|of)\s+(?:the\s+)?([a-zA-Z\s:]+?)(?:\s*\?|$)",
    r"^([a-zA-Z\s:]+?)\s+(?:details?|info|information)[\s?!.]*$",
)

_GENERIC_NAME_RE = re.compile(r"^(any|some|all|there|what|when|where|how|which|events?|from here)$", re.IGNORECASE)
_PLATFORM_NAME_RE = re.compile(r"^(campuscrew|platform|team|member|contact|about|help|feature|service)$", re.IGNORECASE)
_QUESTION_WORD_RE = re.compile(r"(what|when|where|how|which|why|who|can|could|would|should)", re.IGNORECASE)

_CATEGORY_SLOT_PATTERNS = _compile(
    r"(?:is|are)\s+there\s+(?:any|some)\s+events?\s+(?:is|in|from|for)\s+([a-zA-Z\s&]+?)\s+category",
    r"events?\s+(?:in|from|of)\s+(?:the\s+)?([a-zA-Z\s&]+?)\s+category",
    r"(?:in|from|of)\s+(?:the\s+)?([a-zA-Z\s&]+?)\s+category",
    r"([a-zA-Z\s&]+?)\s+(?:events?|category)",
    r"(?:any|some)\s+([a-zA-Z\s&]+?)\s+events?",
)
_CATEGORY_FILLER_RE = re.compile(r"^(any|some|the|all|there|event|events)$", re.IGNORECASE)

# Checked in order; the first family that matches names the attribute.
_ATTRIBUTE_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("fee", re.compile(r"\b(registration\s*)?(fee|cost|price|entry(?:\s*fee)?|ticket(?:\s*price)?)\b", re.I)),
    ("prize", re.compile(r"\b(prize(?:\s*money)?|reward|winnings|price\s*money)\b", re.I)),
    ("deadline", re.compile(r"\b(registration\s*)?(last\s*date|final\s*date|deadline|close\s*date|end\s*date)\b", re.I)),
    ("date", re.compile(r"\b(when|date|time|schedule|timing)\b", re.I)),
    ("location", re.compile(r"\b(where|location|venue|place)\b", re.I)),
    ("participants", re.compile(r"\b(participants?|attendees?|how\s+many\s+people|registrations?)\b", re.I)),
    ("details", re.compile(r"\b(details?|info(?:rmation)?|about|describe)\b", re.I)),
)


def classify(query: str, rules: tuple[IntentRule, ...] = INTENT_RULES) -> ClassificationResult:
    """Classify ``query`` into an :class:`Intent` with confidence and entities."""
    normalized = query.strip().lower()
    best_intent = Intent.GENERAL_QUESTION
    best_confidence = DEFAULT_CONFIDENCE
    event_name: str | None = None

    for rule in rules:
        for pattern in rule.patterns:
            match = pattern.search(normalized)
            if match is None:
                continue
            confidence = rule.weight
            if normalized and len(match.group(0)) / len(normalized) > COVERAGE_RATIO:
                confidence = min(1.0, confidence + COVERAGE_BOOST)

            candidate_name = None
            if rule.requires_event_name:
                candidate_name = extract_event_name(query)
                if not candidate_name or len(candidate_name) < 3:
                    # A weak match without a name; try the next pattern instead.
                    continue

            if confidence > best_confidence:
                best_intent = rule.intent
                best_confidence = confidence
                event_name = candidate_name
            break

    entities: dict[str, str] = {}
    if best_intent is Intent.EVENT_CATEGORY:
        category = extract_category(query)
        if category:
            entities["category"] = category
    if best_intent is Intent.SPECIFIC_EVENT:
        event_name = event_name or extract_event_name(query)
        if event_name:
            entities["eventName"] = event_name
    attribute = extract_attribute(query)
    if attribute:
        entities["attribute"] = attribute

    return ClassificationResult(intent=best_intent, confidence=best_confidence, entities=entities)


def extract_event_name(query: str) -> str | None:
    """Pull a plausible event name out of the query, or None for platform questions."""
    if any(pattern.search(query) for pattern in _NON_EVENT_PATTERNS):
        return None

    for pattern in _EVENT_NAME_PATTERNS:
        match = pattern.search(query)
        if not match or not match.group(1):
            continue
        name = match.group(1).strip()
        name = re.sub(r"^(the|a|an)\s+", "", name, flags=re.I)
        name = re.sub(r"\s+(is|are|was|were)$", "", name, flags=re.I)
        name = re.sub(r"\s+(event|happening)$", "", name, flags=re.I)

        if _GENERIC_NAME_RE.match(name) or _PLATFORM_NAME_RE.match(name):
            continue
        if all(_QUESTION_WORD_RE.search(word) for word in name.split()):
            continue
        if len(name) > 2:
            return name
    return None


def extract_category(query: str) -> str | None:
    """Known category mentioned in the query, else a cleaned slot value."""
    for category in KNOWN_CATEGORIES:
        if re.search(rf"\b{re.escape(category)}\b", query, re.I):
            return category

    for pattern in _CATEGORY_SLOT_PATTERNS:
        match = pattern.search(query)
        if not match or not match.group(1):
            continue
        category = match.group(1).strip()
        category = re.sub(r"^(any|some|the|all|there)\s+", "", category, flags=re.I)
        category = re.sub(r"\s+(event|events|is|are)$", "", category, flags=re.I)
        if not category or _CATEGORY_FILLER_RE.match(category):
            continue
        lowered = category.lower()
        for known in KNOWN_CATEGORIES:
            if known.lower() in lowered or lowered in known.lower():
                return known
        if len(category) > 2:
            return category[0].upper() + category[1:].lower()
    return None


def extract_attribute(query: str) -> str | None:
    for key, pattern in _ATTRIBUTE_PATTERNS:
        if pattern.search(query):
            return key
    return None


__all__ = [
    "IntentRule",
    "INTENT_RULES",
    "KNOWN_CATEGORIES",
    "classify",
    "extract_event_name",
    "extract_category",
    "extract_attribute",
]
