"""Core type definitions for the crawler pipeline.

This module is intentionally dependency-light so other crawler modules can import
shared records without introducing cycles.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from hashlib import sha256
from typing import Any

from .constants import QUALITY_WEIGHTS


class ContentKind(str, Enum):
    """Normalized content categories used across fetch/parse/storage."""

    HTML = "html"
    PDF = "pdf"
    TEXT = "text"
    BINARY = "binary"
    UNKNOWN = "unknown"


class CrawlStage(str, Enum):
    """Pipeline stage names for error reporting."""

    FRONTIER = "frontier"
    FETCH = "fetch"
    DEDUP = "dedup"
    ANALYZE = "analyze"
    EXTRACT = "extract"
    PERSIST = "persist"


class TargetStatus(str, Enum):
    """Lifecycle states of a crawl target."""

    PENDING = "pending"
    ANALYZING = "analyzing"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"
    DEFERRED = "deferred"


ALLOWED_TRANSITIONS: dict[TargetStatus, frozenset[TargetStatus]] = {
    TargetStatus.PENDING: frozenset({TargetStatus.ANALYZING}),
    TargetStatus.ANALYZING: frozenset(
        {
            TargetStatus.PROCESSING,
            TargetStatus.FAILED,
            TargetStatus.SKIPPED,
            TargetStatus.PENDING,
        }
    ),
    TargetStatus.PROCESSING: frozenset(
        {TargetStatus.COMPLETED, TargetStatus.FAILED, TargetStatus.PENDING}
    ),
    TargetStatus.COMPLETED: frozenset({TargetStatus.DEFERRED}),
    TargetStatus.SKIPPED: frozenset({TargetStatus.DEFERRED}),
    TargetStatus.DEFERRED: frozenset({TargetStatus.PENDING}),
    TargetStatus.FAILED: frozenset(),
}

IN_FLIGHT_STATUSES = frozenset({TargetStatus.ANALYZING, TargetStatus.PROCESSING})


class InvalidTransition(RuntimeError):
    """Raised when a target is moved along an edge the state machine forbids."""


class ContentType(str, Enum):
    """Closed set of content classifications."""

    MEETING = "meeting"
    PLANNING = "planning"
    FINANCE = "finance"
    TRANSPARENCY = "transparency"
    SERVICE = "service"
    CONSULTATION = "consultation"
    DOCUMENT = "document"
    OTHER = "other"


class StructureKind(str, Enum):
    STRUCTURED = "structured"
    SEMI_STRUCTURED = "semi-structured"
    UNSTRUCTURED = "unstructured"


class Complexity(str, Enum):
    SIMPLE = "simple"
    MODERATE = "moderate"
    COMPLEX = "complex"


class ChangeFrequency(str, Enum):
    """Expected update cadence used for re-crawl intervals."""

    ALWAYS = "always"
    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"
    NEVER = "never"


class EntityType(str, Enum):
    PERSON = "person"
    ORGANIZATION = "organization"
    LOCATION = "location"
    DATE = "date"
    MONEY = "money"
    PHONE = "phone"
    EMAIL = "email"
    POSTCODE = "postcode"


class DedupOutcome(str, Enum):
    NEW = "new"
    CHANGED = "changed"
    DUPLICATE = "duplicate"


class SessionStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


JSONPrimitive = str | int | float | bool | None
JSONValue = JSONPrimitive | list["JSONValue"] | dict[str, "JSONValue"]
JSONDict = dict[str, JSONValue]


def utc_now_iso() -> str:
    """Return an RFC3339-like UTC timestamp string for manifests/JSONL."""

    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def infer_content_kind(content_type: str | None, url: str) -> ContentKind:
    """Infer coarse content kind from HTTP content type and URL."""

    normalized = (content_type or "").split(";", maxsplit=1)[0].strip().lower()
    lower_url = url.lower()

    if "text/html" in normalized or "application/xhtml" in normalized:
        return ContentKind.HTML
    if "application/pdf" in normalized or lower_url.endswith(".pdf"):
        return ContentKind.PDF
    if normalized.startswith("text/") or normalized in {"application/json", "application/xml"}:
        return ContentKind.TEXT
    if normalized:
        return ContentKind.BINARY
    if lower_url.endswith((".html", ".htm")):
        return ContentKind.HTML
    return ContentKind.UNKNOWN


@dataclass(slots=True)
class Scheduling:
    """When a target may next be dispatched and how often it is revisited."""

    next_eligible: float = 0.0
    recrawl_interval_seconds: float = 86_400.0
    adaptive: bool = True
    last_crawled: float | None = None

    def to_json(self) -> JSONDict:
        return {
            "next_eligible": self.next_eligible,
            "recrawl_interval_seconds": self.recrawl_interval_seconds,
            "adaptive": self.adaptive,
            "last_crawled": self.last_crawled,
        }


@dataclass(slots=True)
class TargetMetadata:
    estimated_value: float = 0.0
    change_frequency: ChangeFrequency = ChangeFrequency.MONTHLY
    last_content_hash: str | None = None
    file_size: int | None = None
    revisit: bool = False
    dispatch_count: int = 0
    last_error: str | None = None

    def to_json(self) -> JSONDict:
        return {
            "estimated_value": self.estimated_value,
            "change_frequency": self.change_frequency.value,
            "last_content_hash": self.last_content_hash,
            "file_size": self.file_size,
            "revisit": self.revisit,
            "dispatch_count": self.dispatch_count,
            "last_error": self.last_error,
        }


@dataclass(slots=True)
class CrawlTarget:
    """A discovered URL tracked by the frontier.

    Only the frontier mutates targets; it does so under its own lock through
    `transition` and the scheduling/metadata fields.
    """

    url: str
    domain: str
    base_priority: float
    dynamic_priority: float
    depth: int
    category: str
    subcategory: str | None = None
    parent_url: str | None = None
    status: TargetStatus = TargetStatus.PENDING
    attempts: int = 0
    scheduling: Scheduling = field(default_factory=Scheduling)
    metadata: TargetMetadata = field(default_factory=TargetMetadata)
    discovered_at: str = field(default_factory=utc_now_iso)

    def transition(self, new_status: TargetStatus) -> None:
        allowed = ALLOWED_TRANSITIONS[self.status]
        if new_status not in allowed:
            raise InvalidTransition(
                f"{self.url}: cannot move from {self.status.value} to {new_status.value}"
            )
        self.status = new_status

    @property
    def in_flight(self) -> bool:
        return self.status in IN_FLIGHT_STATUSES

    def to_json(self) -> JSONDict:
        return {
            "url": self.url,
            "domain": self.domain,
            "base_priority": self.base_priority,
            "dynamic_priority": self.dynamic_priority,
            "depth": self.depth,
            "category": self.category,
            "subcategory": self.subcategory,
            "parent_url": self.parent_url,
            "status": self.status.value,
            "attempts": self.attempts,
            "scheduling": self.scheduling.to_json(),
            "metadata": self.metadata.to_json(),
            "discovered_at": self.discovered_at,
        }


@dataclass(slots=True)
class FetchResult:
    """Successful download of one URL."""

    url: str
    final_url: str
    status_code: int
    content_type: str | None
    body: bytes
    elapsed_ms: int = 0
    identity: str | None = None
    attempts: int = 1
    encoding: str | None = None
    last_modified: str | None = None
    fetched_at: str = field(default_factory=utc_now_iso)

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def content_length(self) -> int:
        return len(self.body)

    @property
    def sha256(self) -> str:
        return sha256(self.body).hexdigest()

    @property
    def content_kind(self) -> ContentKind:
        return infer_content_kind(self.content_type, self.final_url or self.url)

    @property
    def text(self) -> str:
        return self.body.decode(self.encoding or "utf-8", errors="replace")


@dataclass(frozen=True, slots=True)
class FetchFailure:
    """Terminal failure after the fetch layer exhausted its attempts."""

    url: str
    error: str
    status_code: int | None = None
    attempts: int = 1
    elapsed_ms: int | None = None
    identity: str | None = None
    failed_at: str = field(default_factory=utc_now_iso)

    @property
    def ok(self) -> bool:
        return False


@dataclass(frozen=True, slots=True)
class DedupResult:
    outcome: DedupOutcome
    hash: str
    previous_hash: str | None = None

    @property
    def is_new_content(self) -> bool:
        return self.outcome != DedupOutcome.DUPLICATE

    @property
    def is_revisit(self) -> bool:
        return self.outcome == DedupOutcome.CHANGED


@dataclass(frozen=True, slots=True)
class ExtractableData:
    """Counts of extractable structures found on a page."""

    tables: int = 0
    forms: int = 0
    lists: int = 0
    contacts: int = 0
    dates: int = 0
    amounts: int = 0
    links: int = 0

    @property
    def total(self) -> int:
        return (
            self.tables
            + self.forms
            + self.lists
            + self.contacts
            + self.dates
            + self.amounts
            + self.links
        )

    def to_json(self) -> JSONDict:
        return {
            "tables": self.tables,
            "forms": self.forms,
            "lists": self.lists,
            "contacts": self.contacts,
            "dates": self.dates,
            "amounts": self.amounts,
            "links": self.links,
        }


@dataclass(frozen=True, slots=True)
class ContentAnalysis:
    """Classification and structural profile of one fetched document."""

    content_type: ContentType
    importance: int
    freshness: int
    structure: StructureKind
    extractable: ExtractableData
    keywords: tuple[str, ...]
    complexity: Complexity
    confidence: float
    last_modified: str | None = None

    def to_json(self) -> JSONDict:
        return {
            "content_type": self.content_type.value,
            "importance": self.importance,
            "freshness": self.freshness,
            "structure": self.structure.value,
            "extractable": self.extractable.to_json(),
            "keywords": list(self.keywords),
            "complexity": self.complexity.value,
            "confidence": self.confidence,
            "last_modified": self.last_modified,
        }


@dataclass(frozen=True, slots=True)
class QualityScore:
    """Five 0..100 components; `overall` is always their weighted sum."""

    content_quality: float
    structured_data_presence: float
    recency: float
    completeness: float
    reliability: float

    @property
    def overall(self) -> int:
        # halves round up, never to even
        return math.floor(
            QUALITY_WEIGHTS["content_quality"] * self.content_quality
            + QUALITY_WEIGHTS["structured_data_presence"] * self.structured_data_presence
            + QUALITY_WEIGHTS["recency"] * self.recency
            + QUALITY_WEIGHTS["completeness"] * self.completeness
            + QUALITY_WEIGHTS["reliability"] * self.reliability
            + 0.5
        )

    def components(self) -> dict[str, float]:
        return {
            "content_quality": self.content_quality,
            "structured_data_presence": self.structured_data_presence,
            "recency": self.recency,
            "completeness": self.completeness,
            "reliability": self.reliability,
        }

    def to_json(self) -> JSONDict:
        payload: JSONDict = dict(self.components())
        payload["overall"] = self.overall
        return payload


@dataclass(frozen=True, slots=True)
class ExtractedEntity:
    type: EntityType
    value: str
    context: str
    confidence: float

    def to_json(self) -> JSONDict:
        return {
            "type": self.type.value,
            "value": self.value,
            "context": self.context,
            "confidence": self.confidence,
        }


@dataclass(slots=True)
class ExtractedRecord:
    """Union of whatever each sub-extractor produced.

    A field left as `None` means that extractor failed; its message is kept in
    `errors` under the extractor name.
    """

    url: str
    tables: list[JSONDict] | None = None
    contacts: JSONDict | None = None
    documents: list[JSONDict] | None = None
    entities: list[ExtractedEntity] | None = None
    structured_data: list[JSONDict] | None = None
    forms: list[JSONDict] | None = None
    navigation: JSONDict | None = None
    links: list[str] = field(default_factory=list)
    text: str | None = None
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def discovered_link_count(self) -> int:
        return len(self.links)

    @property
    def entity_count(self) -> int:
        return len(self.entities or [])

    def to_json(self) -> JSONDict:
        return {
            "url": self.url,
            "tables": self.tables,
            "contacts": self.contacts,
            "documents": self.documents,
            "entities": (
                None
                if self.entities is None
                else [entity.to_json() for entity in self.entities]
            ),
            "structured_data": self.structured_data,
            "forms": self.forms,
            "navigation": self.navigation,
            "discovered_link_count": self.discovered_link_count,
            "errors": dict(self.errors),
        }


@dataclass(frozen=True, slots=True)
class PageMetrics:
    """Per-page 0..1 indicators stored beside the quality score.

    `readability` is Flesch reading ease scaled to 0..1. `freshness`,
    `importance` and `confidence` repeat the classifier's view on the same scale.
    """

    readability: float
    information_density: float
    structural_complexity: float
    data_richness: float
    public_value: float
    freshness: float
    importance: float
    confidence: float

    def to_json(self) -> JSONDict:
        return {
            "readability": self.readability,
            "information_density": self.information_density,
            "structural_complexity": self.structural_complexity,
            "data_richness": self.data_richness,
            "public_value": self.public_value,
            "freshness": self.freshness,
            "importance": self.importance,
            "confidence": self.confidence,
        }


@dataclass(frozen=True, slots=True)
class PersistRecord:
    """Payload handed to the persistence collaborator."""

    url: str
    final_url: str
    title: str | None
    category: str
    content_hash: str
    revisit: bool
    analysis: ContentAnalysis
    quality: QualityScore
    quality_tier: str
    extracted: ExtractedRecord
    advanced_analysis: PageMetrics | None = None
    crawl_metadata: dict[str, JSONValue] = field(default_factory=dict)
    crawled_at: str = field(default_factory=utc_now_iso)

    def to_json(self) -> JSONDict:
        return {
            "url": self.url,
            "final_url": self.final_url,
            "title": self.title,
            "category": self.category,
            "content_hash": self.content_hash,
            "revisit": self.revisit,
            "classification": self.analysis.content_type.value,
            "analysis": self.analysis.to_json(),
            "quality": self.quality.to_json(),
            "quality_tier": self.quality_tier,
            "extracted": self.extracted.to_json(),
            "advanced_analysis": None if self.advanced_analysis is None else self.advanced_analysis.to_json(),
            "crawl_metadata": dict(self.crawl_metadata),
            "crawled_at": self.crawled_at,
        }


@dataclass(frozen=True, slots=True)
class ErrorRecord:
    """One error row written to errors.jsonl."""

    stage: CrawlStage
    url: str
    message: str
    error_type: str | None = None
    status_code: int | None = None
    attempts: int | None = None
    created_at: str = field(default_factory=utc_now_iso)
    metadata: dict[str, JSONValue] = field(default_factory=dict)

    @classmethod
    def from_exception(
        cls,
        *,
        stage: CrawlStage,
        url: str,
        exc: Exception,
        **kwargs: Any,
    ) -> "ErrorRecord":
        return cls(
            stage=stage,
            url=url,
            message=str(exc),
            error_type=exc.__class__.__name__,
            **kwargs,
        )

    @classmethod
    def from_fetch_failure(cls, failure: FetchFailure) -> "ErrorRecord":
        error_type = failure.error.split(":", maxsplit=1)[0].strip() if ":" in failure.error else None
        return cls(
            stage=CrawlStage.FETCH,
            url=failure.url,
            message=failure.error,
            error_type=error_type,
            status_code=failure.status_code,
            attempts=failure.attempts,
            metadata={"identity": failure.identity},
        )

    def to_json(self) -> JSONDict:
        return {
            "stage": self.stage.value,
            "url": self.url,
            "message": self.message,
            "error_type": self.error_type,
            "status_code": self.status_code,
            "attempts": self.attempts,
            "created_at": self.created_at,
            "metadata": self.metadata,
        }


__all__ = [
    "ALLOWED_TRANSITIONS",
    "ChangeFrequency",
    "Complexity",
    "ContentAnalysis",
    "ContentKind",
    "ContentType",
    "CrawlStage",
    "CrawlTarget",
    "DedupOutcome",
    "DedupResult",
    "EntityType",
    "ErrorRecord",
    "ExtractableData",
    "ExtractedEntity",
    "ExtractedRecord",
    "FetchFailure",
    "FetchResult",
    "IN_FLIGHT_STATUSES",
    "InvalidTransition",
    "JSONDict",
    "JSONPrimitive",
    "JSONValue",
    "PageMetrics",
    "PersistRecord",
    "QualityScore",
    "Scheduling",
    "SessionStatus",
    "StructureKind",
    "TargetMetadata",
    "TargetStatus",
    "infer_content_kind",
    "utc_now_iso",
]
