"""Keyword heuristic that picks which tool domains to offer the model for a query."""

from aurora.models.llm import LLMToolDefinition
from aurora.tools.base import ToolDomain
from aurora.tools.registry import ToolCatalog
from aurora.utils.logging import get_logger

logger = get_logger(__name__)

GREETING_WORDS = ("hi", "hello", "hey", "thanks", "thank", "you", "ok", "okay", "sure", "yes", "no", "bye", "goodbye")
IDENTITY_WORDS = ("who", "are", "you", "what", "are", "you", "your", "name", "how", "do", "you")

ACTION_WORDS = (
    "create", "add", "make", "new", "delete", "remove", "update", "edit", "change", "set",
    "show", "list", "get", "fetch", "find", "check", "view", "see", "display",
    "mark", "complete", "toggle", "done", "finish", "start", "stop",
    "move", "put", "assign", "schedule", "record", "log", "track",
)

DATA_WORDS = (
    "my", "what", "how many", "how much", "status", "progress", "today",
    "habit", "goal", "task", "board", "journal", "finance", "calendar", "event",
    "expense", "income", "budget", "streak", "pending", "overdue", "upcoming",
    "summary", "report", "week", "month",
)

DOMAIN_KEYWORDS: dict[ToolDomain, tuple[str, ...]] = {
    ToolDomain.ANALYTICS: ("summary", "report", "analyze", "insight", "overview", "status"),
    ToolDomain.BOARDS: ("task", "board", "column", "kanban", "todo", "card", "move", "priority", "due"),
    ToolDomain.GOALS: ("goal", "quest", "objective", "target", "progress", "milestone"),
    ToolDomain.HABITS: ("habit", "ritual", "routine", "streak"),
    ToolDomain.JOURNAL: ("journal", "entry", "diary", "chronicle", "mood", "energy", "reflect"),
    ToolDomain.FINANCE: (
        "finance", "money", "expense", "income", "budget", "spend", "transaction", "treasury", "dollar", "payment",
    ),
    ToolDomain.CALENDAR: ("calendar", "event", "schedule", "meeting", "appointment", "remind"),
}

# Offered when a query looks actionable but names no specific area
FALLBACK_DOMAINS = (ToolDomain.BOARDS, ToolDomain.HABITS, ToolDomain.ANALYTICS)


def matches_any(text: str, keywords: tuple[str, ...]) -> bool:
    """Substring match, so "habits" hits "habit"."""
    return any(keyword in text for keyword in keywords)


def has_action_intent(query: str) -> bool:
    return matches_any(query, ACTION_WORDS)


def needs_data(query: str) -> bool:
    return matches_any(query, DATA_WORDS)


def is_conversational(query: str) -> bool:
    """Whether a lower-cased query is chat that needs no tools at all."""
    if len(query.split()) <= 3 and matches_any(query, GREETING_WORDS):
        return True
    if matches_any(query, IDENTITY_WORDS) and not needs_data(query):
        return True
    return not has_action_intent(query) and not needs_data(query)


def select_domains(query: str) -> list[ToolDomain]:
    """Domains relevant to a query, in catalog order; empty for pure conversation."""
    query = query.lower()
    if is_conversational(query):
        return []

    matched = {domain for domain, keywords in DOMAIN_KEYWORDS.items() if matches_any(query, keywords)}
    if not matched:
        matched = set(FALLBACK_DOMAINS)
    return [domain for domain in ToolDomain if domain in matched]


class ToolSelector:
    """Maps a free-text query to the subset of tool definitions worth sending with it."""

    def __init__(self, catalog: ToolCatalog):
        self.catalog = catalog

    def select(self, query: str) -> list[LLMToolDefinition]:
        domains = select_domains(query)
        if not domains:
            logger.debug("Query looks conversational, offering no tools")
            return []

        logger.debug(f"Selected tool domains: {', '.join(domains)}")
        return self.catalog.definitions_for(domains)
