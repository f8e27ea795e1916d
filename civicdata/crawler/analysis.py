"""Deterministic content classification and structural profiling.

Every rule is a small pure function over a `ParsedPage` so each can be
tested on its own; `ContentAnalyzer.analyze` only composes them.
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from .dates import days_since, most_recent, parse_date
from .extractors.contacts import count_contacts
from .extractors.page import ParsedPage
from .patterns import DATE_RE, EMAIL_RE, MONEY_RE, SLASH_DATE_RE, WORD_RE
from .types import (
    Complexity,
    ContentAnalysis,
    ContentType,
    ExtractableData,
    ExtractedRecord,
    PageMetrics,
    StructureKind,
)


LOGGER = logging.getLogger(__name__)

STOP_WORDS = frozenset(
    {
        "about", "after", "also", "been", "before", "being", "both", "could", "does",
        "each", "from", "have", "here", "into", "more", "most", "much", "must", "only",
        "other", "over", "page", "said", "same", "should", "some", "such", "than",
        "that", "their", "them", "then", "there", "these", "they", "this", "those",
        "through", "under", "very", "what", "when", "where", "which", "while", "will",
        "with", "would", "your", "you", "were", "cookies", "cookie", "site", "website",
    }
)

BASE_IMPORTANCE: dict[ContentType, int] = {
    ContentType.MEETING: 9,
    ContentType.PLANNING: 8,
    ContentType.FINANCE: 8,
    ContentType.TRANSPARENCY: 7,
    ContentType.CONSULTATION: 6,
    ContentType.SERVICE: 5,
    ContentType.DOCUMENT: 4,
    ContentType.OTHER: 3,
}

FRESHNESS_BANDS: tuple[tuple[float, int], ...] = ((7, 10), (30, 8), (90, 6), (365, 4))
UNKNOWN_FRESHNESS = 5
STALE_FRESHNESS = 2

DATE_SELECTORS = "time, .date, .published, .updated, .last-modified"
MODIFIED_META_SELECTORS = (
    "meta[name='last-modified'], meta[property='article:modified_time'], "
    "meta[name='dcterms.modified'], meta[property='article:published_time']"
)

SHORT_TEXT_CHARS = 500
KEYWORD_LIMIT = 10


@dataclass(frozen=True, slots=True)
class PageSignals:
    """Lower-cased inputs shared by the classification rules."""

    url: str
    text: str
    title: str

    @classmethod
    def from_page(cls, page: ParsedPage, url: str | None = None) -> "PageSignals":
        return cls(
            url=(url or page.url).lower(),
            text=(page.raw_text or page.text).lower(),
            title=(page.title or "").lower(),
        )


def _any_in(haystack: str, needles: tuple[str, ...]) -> bool:
    return any(needle in haystack for needle in needles)


def is_meeting(signals: PageSignals, page: ParsedPage) -> bool:
    return (
        _any_in(signals.url, ("meeting", "agenda", "minutes"))
        or _any_in(signals.text, ("agenda item", "committee"))
        or _any_in(signals.title, ("meeting", "agenda"))
    )


def is_planning(signals: PageSignals, page: ParsedPage) -> bool:
    return _any_in(signals.url, ("planning", "application")) or _any_in(
        signals.text, ("planning application", "planning permission")
    )


def is_finance(signals: PageSignals, page: ParsedPage) -> bool:
    return (
        _any_in(signals.url, ("budget", "finance", "spending"))
        or _any_in(signals.text, ("£", "budget"))
        or bool(page.select(".budget-item, .financial-data, .spending-data"))
    )


def is_transparency(signals: PageSignals, page: ParsedPage) -> bool:
    return _any_in(signals.url, ("transparency", "foi")) or _any_in(
        signals.text, ("freedom of information", "transparency")
    )


def is_service(signals: PageSignals, page: ParsedPage) -> bool:
    return (
        _any_in(signals.url, ("service", "department"))
        or "service" in signals.title
        or bool(page.select(".service-info"))
    )


def is_consultation(signals: PageSignals, page: ParsedPage) -> bool:
    return (
        _any_in(signals.url, ("consultation", "survey"))
        or "consultation" in signals.text
        or len(page.select("form")) > 2
    )


def is_document(signals: PageSignals, page: ParsedPage) -> bool:
    return _any_in(signals.url, ("document", "policy", "report")) or len(
        page.select(".document-link, .pdf-link")
    ) > 5


# First matching rule wins.
CLASSIFICATION_RULES: tuple[tuple[ContentType, Callable[[PageSignals, ParsedPage], bool]], ...] = (
    (ContentType.MEETING, is_meeting),
    (ContentType.PLANNING, is_planning),
    (ContentType.FINANCE, is_finance),
    (ContentType.TRANSPARENCY, is_transparency),
    (ContentType.SERVICE, is_service),
    (ContentType.CONSULTATION, is_consultation),
    (ContentType.DOCUMENT, is_document),
)


def classify_content_type(page: ParsedPage, url: str | None = None) -> ContentType:
    signals = PageSignals.from_page(page, url)
    for content_type, rule in CLASSIFICATION_RULES:
        if rule(signals, page):
            return content_type
    return ContentType.OTHER


def importance_score(content_type: ContentType, page: ParsedPage) -> int:
    """Base importance per content type adjusted by structural signals, 1..10."""

    text = page.raw_text or page.text
    score = BASE_IMPORTANCE[content_type]
    if page.select("table"):
        score += 1
    if page.select(".data-table, .structured-data"):
        score += 2
    if page.select("a[href^='mailto:'], a[href^='tel:']"):
        score += 1
    if "£" in text:
        score += 1
    if SLASH_DATE_RE.search(text):
        score += 1
    if len(text) < SHORT_TEXT_CHARS:
        score -= 2
    return max(1, min(10, score))


def page_dates(page: ParsedPage) -> list[datetime]:
    """Dates the page declares about itself: header, meta tags and dated elements."""

    candidates: list[str | None] = [page.last_modified_header]
    for meta in page.select(MODIFIED_META_SELECTORS):
        candidates.append(meta.get("content"))
    for element in page.select(DATE_SELECTORS):
        candidates.append(element.get("datetime") or element.get_text(" ", strip=True))

    parsed = (parse_date(str(value)) for value in candidates if value)
    return [value for value in parsed if value is not None]


def freshness_from_date(value: datetime | None, now: datetime) -> int:
    if value is None:
        return UNKNOWN_FRESHNESS
    age = days_since(value, now)
    for limit, score in FRESHNESS_BANDS:
        if age <= limit:
            return score
    return STALE_FRESHNESS


def structure_score(page: ParsedPage) -> int:
    return (
        len(page.select("table")) * 3
        + len(page.select("ul, ol")) * 2
        + len(page.select("form")) * 2
        + len(page.select("h1, h2, h3, h4, h5, h6"))
    )


def structure_kind(page: ParsedPage) -> StructureKind:
    score = structure_score(page)
    if score >= 10:
        return StructureKind.STRUCTURED
    if score >= 4:
        return StructureKind.SEMI_STRUCTURED
    return StructureKind.UNSTRUCTURED


def count_extractable(page: ParsedPage) -> ExtractableData:
    text = page.raw_text or page.text
    contact_links = len(page.select("a[href^='mailto:'], a[href^='tel:']"))
    emails_in_text = len(set(EMAIL_RE.findall(text)))
    return ExtractableData(
        tables=len(page.select("table")),
        forms=len(page.select("form")),
        lists=len(page.select("ul, ol")),
        contacts=contact_links + emails_in_text,
        dates=len(DATE_RE.findall(text)),
        amounts=len(MONEY_RE.findall(text)),
        links=len(page.select("a[href]")),
    )


def top_keywords(text: str, limit: int = KEYWORD_LIMIT) -> tuple[str, ...]:
    words = (word for word in WORD_RE.findall(text.lower()) if len(word) > 3 and word not in STOP_WORDS)
    return tuple(word for word, _ in Counter(words).most_common(limit))


def complexity_of(word_count: int, extractable: ExtractableData) -> Complexity:
    signals = sum(
        (
            word_count > 1000,
            extractable.tables > 2,
            extractable.forms > 1,
            extractable.links > 50,
        )
    )
    if signals >= 3:
        return Complexity.COMPLEX
    if signals >= 1:
        return Complexity.MODERATE
    return Complexity.SIMPLE


def confidence_of(structure: StructureKind, content_type: ContentType, extractable: ExtractableData) -> float:
    confidence = 0.7
    if structure == StructureKind.STRUCTURED:
        confidence += 0.2
    elif structure == StructureKind.SEMI_STRUCTURED:
        confidence += 0.1
    if content_type != ContentType.OTHER:
        confidence += 0.15
    richness = extractable.tables + extractable.forms + extractable.lists + extractable.contacts
    confidence += min(0.15, 0.02 * richness)
    return round(min(1.0, confidence), 3)


class ContentAnalyzer:
    """Compose the rule functions above into one `ContentAnalysis`."""

    def __init__(self, *, now: Callable[[], datetime] | None = None) -> None:
        self._now = now or (lambda: datetime.now(timezone.utc))

    def analyze(self, page: ParsedPage, url: str | None = None) -> ContentAnalysis:
        content_type = classify_content_type(page, url)
        latest = most_recent(page_dates(page))
        structure = structure_kind(page)
        extractable = count_extractable(page)
        text = page.raw_text or page.text

        analysis = ContentAnalysis(
            content_type=content_type,
            importance=importance_score(content_type, page),
            freshness=freshness_from_date(latest, self._now()),
            structure=structure,
            extractable=extractable,
            keywords=top_keywords(text),
            complexity=complexity_of(len(WORD_RE.findall(text.lower())), extractable),
            confidence=confidence_of(structure, content_type, extractable),
            last_modified=latest.isoformat() if latest is not None else None,
        )
        LOGGER.debug(
            "Analyzed %s: type=%s importance=%d freshness=%d structure=%s",
            page.url,
            analysis.content_type.value,
            analysis.importance,
            analysis.freshness,
            analysis.structure.value,
        )
        return analysis


PUBLIC_VALUE_TERMS = (
    "meeting", "agenda", "minutes", "decision", "policy", "budget", "spending",
    "planning", "application", "consultation", "service", "contact", "councillor",
)
SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")


def count_syllables(word: str) -> int:
    """Vowel-group estimate; a trailing silent `e` does not count."""

    word = word.lower()
    if len(word) <= 3:
        return 1
    syllables = 0
    previous_vowel = False
    for char in word:
        vowel = char in "aeiouy"
        if vowel and not previous_vowel:
            syllables += 1
        previous_vowel = vowel
    if word.endswith("e"):
        syllables -= 1
    return max(1, syllables)


def readability(text: str) -> float:
    """Flesch reading ease clamped to [0, 100], scaled to 0..1."""

    words = text.split()
    sentences = [sentence for sentence in SENTENCE_SPLIT_RE.split(text) if sentence.strip()]
    if not words or not sentences:
        return 0.0
    words_per_sentence = len(words) / len(sentences)
    syllables_per_word = sum(count_syllables(word) for word in words) / len(words)
    score = 206.835 - 1.015 * words_per_sentence - 84.6 * syllables_per_word
    return min(100.0, max(0.0, score)) / 100


def data_points(extracted: ExtractedRecord) -> int:
    points = count_contacts(extracted.contacts)
    for values in (extracted.tables, extracted.documents, extracted.entities, extracted.structured_data, extracted.forms):
        points += len(values or [])
    return points


def information_density(extracted: ExtractedRecord, word_count: int) -> float:
    """Extracted data points per hundred words, capped at 1."""

    return min(1.0, data_points(extracted) / max(word_count / 100, 1))


def structural_complexity(page: ParsedPage) -> float:
    weighted = (
        len(page.select("h1, h2, h3, h4, h5, h6"))
        + 2 * len(page.select("ul, ol"))
        + 3 * len(page.select("table"))
        + 4 * len(page.select("form"))
        + len(page.select("section, article, div.content"))
    )
    return min(1.0, weighted / 50)


def data_richness(extracted: ExtractedRecord, analysis: ContentAnalysis) -> float:
    richness = 0.0
    if extracted.tables:
        richness += 0.3
    if extracted.forms:
        richness += 0.2
    if count_contacts(extracted.contacts):
        richness += 0.15
    if extracted.documents:
        richness += 0.15
    if analysis.extractable.amounts:
        richness += 0.2
    return min(1.0, richness)


def public_value(extracted: ExtractedRecord, analysis: ContentAnalysis, text: str) -> float:
    lowered = text.lower()
    value = 0.08 * sum(term in lowered for term in PUBLIC_VALUE_TERMS)
    if count_contacts(extracted.contacts):
        value += 0.2
    if analysis.extractable.amounts:
        value += 0.15
    if extracted.tables:
        value += 0.15
    return min(1.0, value)


def page_metrics(page: ParsedPage, extracted: ExtractedRecord, analysis: ContentAnalysis) -> PageMetrics:
    """Readability, density and value indicators for one processed page."""

    text = page.raw_text or page.text
    return PageMetrics(
        readability=round(readability(text), 4),
        information_density=round(information_density(extracted, len(text.split())), 4),
        structural_complexity=round(structural_complexity(page), 4),
        data_richness=round(data_richness(extracted, analysis), 4),
        public_value=round(public_value(extracted, analysis, text), 4),
        freshness=analysis.freshness / 10,
        importance=analysis.importance / 10,
        confidence=analysis.confidence,
    )


__all__ = [
    "CLASSIFICATION_RULES",
    "ContentAnalyzer",
    "PageSignals",
    "classify_content_type",
    "complexity_of",
    "confidence_of",
    "count_extractable",
    "count_syllables",
    "data_points",
    "data_richness",
    "freshness_from_date",
    "importance_score",
    "information_density",
    "page_dates",
    "page_metrics",
    "public_value",
    "readability",
    "structure_kind",
    "structure_score",
    "structural_complexity",
    "top_keywords",
]
