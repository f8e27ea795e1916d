"""Weighted five-component quality scoring and the per-category quality gate."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Mapping

from .constants import DEFAULT_QUALITY_THRESHOLD, DEFAULT_QUALITY_THRESHOLDS
from .dates import days_since, parse_date
from .extractors.page import ParsedPage
from .extractors.structured_data import has_linked_data
from .extractors.tables import has_significant_table
from .patterns import has_contact_info, has_financial_data
from .types import ContentAnalysis, JSONDict, QualityScore


LOGGER = logging.getLogger(__name__)

HIGH_VALUE_CATEGORIES = frozenset({"planning", "meetings", "transparency"})

RECENCY_BANDS: tuple[tuple[float, float], ...] = (
    (30, 100.0),
    (90, 80.0),
    (180, 60.0),
    (365, 40.0),
    (730, 20.0),
)
OLDEST_RECENCY = 10.0
UNKNOWN_RECENCY = 50.0

TIERS: tuple[tuple[int, str], ...] = ((80, "excellent"), (65, "good"), (45, "fair"))

NAVIGATION_URL_RE = re.compile(r"/index\.|/home|/menu|/navigation|/sitemap", re.IGNORECASE)
MAIN_CONTENT_SELECTORS = ("main", "[role='main']", ".main-content", ".content", "#content", "article", ".article-body")
CONTACT_SELECTORS = (
    "a[href^='mailto:'], a[href^='tel:'], .address, .contact, .contact-info, "
    "[itemtype*='PostalAddress'], [itemtype*='ContactPoint']"
)


@dataclass(frozen=True, slots=True)
class QualityFactors:
    """Observable page properties the score components are built from."""

    has_structured_data: bool
    has_tables: bool
    has_financial_data: bool
    has_contact_info: bool
    is_navigation_page: bool
    content_length: int
    last_modified: datetime | None = None

    def to_json(self) -> JSONDict:
        return {
            "has_structured_data": self.has_structured_data,
            "has_tables": self.has_tables,
            "has_financial_data": self.has_financial_data,
            "has_contact_info": self.has_contact_info,
            "is_navigation_page": self.is_navigation_page,
            "content_length": self.content_length,
            "last_modified": self.last_modified.isoformat() if self.last_modified else None,
        }


@dataclass(frozen=True, slots=True)
class QualityAssessment:
    score: QualityScore
    factors: QualityFactors
    category: str
    threshold: float
    tier: str
    recommendations: list[str] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return self.score.overall >= self.threshold


def main_content_length(page: ParsedPage) -> int:
    for selector in MAIN_CONTENT_SELECTORS:
        for element in page.select(selector):
            length = len(element.get_text(" ", strip=True))
            if length > 100:
                return length
    return len(page.text)


def is_navigation_page(page: ParsedPage, url: str) -> bool:
    if NAVIGATION_URL_RE.search(url):
        return True
    if page.soup is None:
        return False
    return (
        (len(page.select("a")) > 20 and main_content_length(page) < 1000)
        or bool(page.select(".menu, .nav, .navigation, .sitemap"))
        or len(page.select(".breadcrumb, .breadcrumbs")) > 1
    )


def _json_ld_dates(page: ParsedPage) -> list[str]:
    found: list[str] = []
    for script in page.select("script[type='application/ld+json']"):
        try:
            data = json.loads(script.string or script.get_text() or "{}")
        except json.JSONDecodeError:
            continue
        items = data if isinstance(data, list) else [data]
        for item in items:
            if isinstance(item, dict):
                value = item.get("dateModified") or item.get("datePublished")
                if isinstance(value, str):
                    found.append(value)
    return found


def explicit_last_modified(page: ParsedPage) -> datetime | None:
    """Last-Modified header, then modified meta tags, then JSON-LD dates."""

    candidates: list[str | None] = [page.last_modified_header]
    for meta in page.select("meta[name='last-modified'], meta[property='article:modified_time']"):
        candidates.append(meta.get("content"))
    candidates.extend(_json_ld_dates(page))

    for candidate in candidates:
        parsed = parse_date(candidate)
        if parsed is not None:
            return parsed
    return None


def collect_factors(page: ParsedPage, url: str) -> QualityFactors:
    text = page.raw_text or page.text
    if page.is_html:
        contact = bool(page.select(CONTACT_SELECTORS)) or has_contact_info(text)
    else:
        contact = has_contact_info(text)
    return QualityFactors(
        has_structured_data=has_linked_data(page) or bool(page.select("meta[property^='og:']")),
        has_tables=has_significant_table(page),
        has_financial_data=has_financial_data(text),
        has_contact_info=contact,
        is_navigation_page=is_navigation_page(page, url),
        content_length=main_content_length(page),
        last_modified=explicit_last_modified(page),
    )


def _clamp(value: float) -> float:
    return float(max(0, min(100, value)))


def content_quality(factors: QualityFactors) -> float:
    value = 0
    if factors.content_length > 500:
        value += 30
    if factors.content_length > 1500:
        value += 20
    if factors.content_length > 5000:
        value += 15
    if factors.has_financial_data:
        value += 25
    if factors.has_contact_info:
        value += 10
    if factors.is_navigation_page:
        value -= 30
    return _clamp(value)


def structured_data_presence(factors: QualityFactors) -> float:
    value = 0
    if factors.has_structured_data:
        value += 40
    if factors.has_tables:
        value += 35
    if factors.has_financial_data:
        value += 25
    return _clamp(value)


def recency(factors: QualityFactors, analysis: ContentAnalysis | None, now: datetime) -> float:
    if factors.last_modified is None:
        return float(analysis.freshness * 10) if analysis is not None else UNKNOWN_RECENCY
    age = days_since(factors.last_modified, now)
    for limit, value in RECENCY_BANDS:
        if age <= limit:
            return value
    return OLDEST_RECENCY


def completeness(factors: QualityFactors) -> float:
    value = 20
    if factors.has_contact_info:
        value += 15
    if factors.has_structured_data:
        value += 20
    if factors.has_tables:
        value += 20
    if factors.has_financial_data:
        value += 25
    return _clamp(value)


def reliability(factors: QualityFactors, category: str) -> float:
    value = 60
    if category in HIGH_VALUE_CATEGORIES:
        value += 20
    if factors.has_structured_data:
        value += 10
    if factors.has_tables:
        value += 10
    if factors.is_navigation_page:
        value -= 20
    return _clamp(value)


def quality_tier(score: QualityScore | int) -> str:
    overall = score.overall if isinstance(score, QualityScore) else int(score)
    for minimum, name in TIERS:
        if overall >= minimum:
            return name
    return "poor"


def recommendations_for(factors: QualityFactors, score: QualityScore) -> list[str]:
    out: list[str] = []
    if not factors.has_structured_data:
        out.append("Add structured data markup (JSON-LD, microdata) to improve searchability")
    if not factors.has_tables and factors.has_financial_data:
        out.append("Consider presenting financial data in tabular format")
    if factors.content_length < 500:
        out.append("Expand content with more detailed information")
    if not factors.has_contact_info:
        out.append("Include contact information for inquiries")
    if score.recency < 60:
        out.append("Update content more frequently to maintain relevance")
    if factors.is_navigation_page:
        out.append("Consider adding direct links to specific data resources")
    if score.structured_data_presence < 50:
        out.append("Increase use of structured data formats (tables, lists, forms)")
    return out


class QualityEngine:
    """Score pages and apply per-category minimum overall scores."""

    def __init__(
        self,
        thresholds: Mapping[str, float] | None = None,
        *,
        default_threshold: float = DEFAULT_QUALITY_THRESHOLD,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        if thresholds is None:
            thresholds = DEFAULT_QUALITY_THRESHOLDS
        self.thresholds = {key.lower(): float(value) for key, value in thresholds.items()}
        self.default_threshold = float(default_threshold)
        self._now = now or (lambda: datetime.now(timezone.utc))

    def threshold_for(self, category: str | None) -> float:
        return self.thresholds.get((category or "general").lower(), self.default_threshold)

    def score_factors(
        self,
        factors: QualityFactors,
        category: str,
        analysis: ContentAnalysis | None = None,
    ) -> QualityScore:
        return QualityScore(
            content_quality=content_quality(factors),
            structured_data_presence=structured_data_presence(factors),
            recency=recency(factors, analysis, self._now()),
            completeness=completeness(factors),
            reliability=reliability(factors, category.lower()),
        )

    def score(
        self,
        page: ParsedPage,
        url: str | None = None,
        category: str = "general",
        analysis: ContentAnalysis | None = None,
    ) -> QualityScore:
        return self.score_factors(collect_factors(page, url or page.url), category, analysis)

    def meets_threshold(self, score: QualityScore, category: str | None) -> bool:
        return score.overall >= self.threshold_for(category)

    def tier(self, score: QualityScore | int) -> str:
        return quality_tier(score)

    def assess(
        self,
        page: ParsedPage,
        url: str | None = None,
        category: str = "general",
        analysis: ContentAnalysis | None = None,
    ) -> QualityAssessment:
        """Score a page and bundle the gate decision, tier and hints."""

        factors = collect_factors(page, url or page.url)
        score = self.score_factors(factors, category, analysis)
        assessment = QualityAssessment(
            score=score,
            factors=factors,
            category=category,
            threshold=self.threshold_for(category),
            tier=quality_tier(score),
            recommendations=recommendations_for(factors, score),
        )
        LOGGER.debug(
            "Quality %s: overall=%d threshold=%.0f tier=%s",
            page.url,
            score.overall,
            assessment.threshold,
            assessment.tier,
        )
        return assessment


__all__ = [
    "HIGH_VALUE_CATEGORIES",
    "QualityAssessment",
    "QualityEngine",
    "QualityFactors",
    "collect_factors",
    "completeness",
    "content_quality",
    "explicit_last_modified",
    "is_navigation_page",
    "main_content_length",
    "quality_tier",
    "recency",
    "recommendations_for",
    "reliability",
    "structured_data_presence",
]
