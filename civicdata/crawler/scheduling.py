"""Pure priority and re-crawl interval rules used by the frontier."""

from __future__ import annotations

import random
from urllib.parse import urlsplit

from .constants import CATEGORY_PRIORITIES, MAX_PRIORITY, MIN_PRIORITY
from .types import ChangeFrequency, ContentAnalysis, ContentType, StructureKind
from .url import has_file_extension


MINUTE = 60.0
HOUR = 60 * MINUTE
DAY = 24 * HOUR

MIN_RECRAWL_INTERVAL = 30 * MINUTE
MAX_RECRAWL_INTERVAL = 365 * DAY

BASE_INTERVAL_BY_FREQUENCY: dict[ChangeFrequency, float] = {
    ChangeFrequency.ALWAYS: 30 * MINUTE,
    ChangeFrequency.HOURLY: HOUR,
    ChangeFrequency.DAILY: 4 * HOUR,
    ChangeFrequency.WEEKLY: DAY,
    ChangeFrequency.MONTHLY: 7 * DAY,
    ChangeFrequency.YEARLY: 30 * DAY,
    ChangeFrequency.NEVER: 365 * DAY,
}

FREQUENCY_BY_CONTENT_TYPE: dict[ContentType, ChangeFrequency] = {
    ContentType.MEETING: ChangeFrequency.WEEKLY,
    ContentType.PLANNING: ChangeFrequency.DAILY,
    ContentType.FINANCE: ChangeFrequency.MONTHLY,
    ContentType.TRANSPARENCY: ChangeFrequency.MONTHLY,
    ContentType.SERVICE: ChangeFrequency.YEARLY,
    ContentType.CONSULTATION: ChangeFrequency.WEEKLY,
    ContentType.DOCUMENT: ChangeFrequency.YEARLY,
    ContentType.OTHER: ChangeFrequency.MONTHLY,
}

FREQUENCY_BY_CATEGORY: dict[str, ChangeFrequency] = {
    "meetings": ChangeFrequency.WEEKLY,
    "planning": ChangeFrequency.DAILY,
    "finance": ChangeFrequency.MONTHLY,
    "transparency": ChangeFrequency.MONTHLY,
    "services": ChangeFrequency.YEARLY,
    "consultations": ChangeFrequency.WEEKLY,
    "documents": ChangeFrequency.YEARLY,
}

# Ordered: the first category whose keywords appear in the path wins.
PATH_CATEGORY_RULES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("meetings", ("meeting", "committee", "agenda", "minutes", "councillor", "democracy")),
    ("planning", ("planning", "application", "development")),
    ("transparency", ("transparency", "foi", "freedom-of-information", "open-data")),
    ("finance", ("budget", "finance", "spending", "council-tax", "expenditure")),
    ("services", ("service", "bins", "waste", "housing", "parking", "libraries")),
    ("consultations", ("consultation", "survey", "have-your-say")),
    ("documents", ("document", "policy", "policies", "report", "strategy", "download")),
)

STRUCTURE_BONUS: dict[StructureKind, float] = {
    StructureKind.STRUCTURED: 2.0,
    StructureKind.SEMI_STRUCTURED: 1.0,
    StructureKind.UNSTRUCTURED: 0.0,
}

EXTRACTABLE_BONUS_CAP = 3.0


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def categorize_url(url: str) -> str:
    """Map a URL path to a crawl category, falling back to `general`."""

    path = urlsplit(url).path.lower()
    for category, keywords in PATH_CATEGORY_RULES:
        if any(keyword in path for keyword in keywords):
            return category
    return "general"


def category_priority(category: str | None) -> float:
    return CATEGORY_PRIORITIES.get((category or "general").lower(), CATEGORY_PRIORITIES["general"])


def discovered_priority(
    url: str,
    category: str,
    *,
    data_rich_paths: tuple[str, ...] = (),
    document_extensions: tuple[str, ...] = (),
) -> float:
    """Base priority for a URL found by link discovery."""

    priority = category_priority(category)
    path = urlsplit(url).path.lower()
    if any(path.startswith(prefix.lower()) for prefix in data_rich_paths):
        priority += 1.0
    if document_extensions and has_file_extension(url, document_extensions):
        priority += 1.0
    return clamp(priority, MIN_PRIORITY, MAX_PRIORITY)


def compute_dynamic_priority(base_priority: float, analysis: ContentAnalysis) -> float:
    """Recompute a target's priority from its content analysis.

    Result is `base + (importance - 5) + 0.5 * (freshness - 5) + structure
    bonus + min(3, 0.1 * extractable total) + 2 * (confidence - 0.5)`,
    clamped to [1, 20].
    """

    extractable_bonus = min(EXTRACTABLE_BONUS_CAP, 0.1 * analysis.extractable.total)
    value = (
        base_priority
        + (analysis.importance - 5)
        + 0.5 * (analysis.freshness - 5)
        + STRUCTURE_BONUS[analysis.structure]
        + extractable_bonus
        + 2.0 * (analysis.confidence - 0.5)
    )
    return clamp(value, MIN_PRIORITY, MAX_PRIORITY)


def estimate_change_frequency(content_type: ContentType) -> ChangeFrequency:
    return FREQUENCY_BY_CONTENT_TYPE.get(content_type, ChangeFrequency.MONTHLY)


def initial_interval_for_category(category: str | None) -> tuple[ChangeFrequency, float]:
    """Change-frequency guess and re-crawl interval for a freshly enqueued target."""

    frequency = FREQUENCY_BY_CATEGORY.get((category or "").lower(), ChangeFrequency.MONTHLY)
    return frequency, BASE_INTERVAL_BY_FREQUENCY[frequency]


def adaptive_interval(frequency: ChangeFrequency, importance: int, *, changed: bool) -> float:
    """Re-crawl interval in seconds, shortened for important or changing pages."""

    interval = BASE_INTERVAL_BY_FREQUENCY[frequency]
    if importance >= 8:
        interval *= 0.5
    elif importance <= 3:
        interval *= 2.0
    if changed:
        interval *= 0.7
    return clamp(interval, MIN_RECRAWL_INTERVAL, MAX_RECRAWL_INTERVAL)


def exponential_backoff(
    attempt: int,
    *,
    base: float,
    multiplier: float,
    jitter: float,
    rng: random.Random | None = None,
) -> float:
    """Delay before retry number `attempt` (1-based): base * multiplier^(attempt-1) + U(0, jitter)."""

    source = rng or random
    delay = base * (multiplier ** max(0, attempt - 1))
    if jitter > 0:
        delay += source.uniform(0.0, jitter)
    return delay


__all__ = [
    "BASE_INTERVAL_BY_FREQUENCY",
    "DAY",
    "HOUR",
    "MAX_RECRAWL_INTERVAL",
    "MIN_RECRAWL_INTERVAL",
    "adaptive_interval",
    "categorize_url",
    "category_priority",
    "clamp",
    "compute_dynamic_priority",
    "discovered_priority",
    "estimate_change_frequency",
    "exponential_backoff",
    "initial_interval_for_category",
]
