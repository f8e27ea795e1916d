"""Thread-safe crawl session counters and the end-of-crawl report."""

from __future__ import annotations

import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping

from .constants import DEFAULT_CHECKPOINT_INTERVAL
from .types import CrawlTarget, FetchResult, JSONDict, QualityScore, SessionStatus, utc_now_iso


QUALITY_BUCKETS: tuple[tuple[float, str], ...] = ((0.9, "excellent"), (0.7, "high"), (0.5, "medium"))
HISTOGRAM_BINS = 10

FAILURE_RATE_LIMIT = 0.10
AVERAGE_QUALITY_FLOOR = 0.7
ENTITIES_PER_PAGE_FLOOR = 5
DUPLICATE_RATE_LIMIT = 0.30
FAST_RESPONSE_MS = 2000


def quality_bucket(overall: int) -> str:
    """Distribution bucket for an overall score on the 0..100 scale."""

    ratio = overall / 100
    for minimum, name in QUALITY_BUCKETS:
        if ratio >= minimum:
            return name
    return "low"


def histogram_bin(overall: int) -> int:
    return max(0, min(HISTOGRAM_BINS - 1, int(overall) // 10))


def histogram_labels() -> list[str]:
    labels = [f"{idx * 10}-{idx * 10 + 9}" for idx in range(HISTOGRAM_BINS - 1)]
    labels.append("90-100")
    return labels


@dataclass(slots=True)
class Breakdown:
    """Per-category or per-domain outcome counts."""

    processed: int = 0
    failed: int = 0
    duplicates: int = 0
    skipped: int = 0
    quality_total: float = 0.0

    @property
    def average_quality(self) -> float:
        return self.quality_total / self.processed if self.processed else 0.0

    def to_json(self) -> JSONDict:
        return {
            "processed": self.processed,
            "failed": self.failed,
            "duplicates": self.duplicates,
            "skipped": self.skipped,
            "average_quality": round(self.average_quality, 2),
        }


@dataclass(slots=True)
class CrawlSession:
    """Aggregate state of one crawl run, created at start and closed once."""

    session_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    status: SessionStatus = SessionStatus.RUNNING
    started_at: str = field(default_factory=utc_now_iso)
    finished_at: str | None = None

    total_urls: int = 0
    processed_urls: int = 0
    failed_urls: int = 0
    duplicate_urls: int = 0
    skipped_urls: int = 0
    revisits: int = 0

    bytes_downloaded: int = 0
    response_time_ms_total: int = 0
    response_samples: int = 0
    words_total: int = 0

    quality_total: float = 0.0
    entity_count: int = 0
    persist_failures: int = 0
    persist_errors: list[JSONDict] = field(default_factory=list)

    quality_distribution: dict[str, int] = field(
        default_factory=lambda: {"excellent": 0, "high": 0, "medium": 0, "low": 0}
    )
    quality_histogram: list[int] = field(default_factory=lambda: [0] * HISTOGRAM_BINS)
    category_breakdown: dict[str, Breakdown] = field(default_factory=dict)
    domain_breakdown: dict[str, Breakdown] = field(default_factory=dict)

    @property
    def closed(self) -> bool:
        return self.status != SessionStatus.RUNNING

    @property
    def average_quality(self) -> float:
        """Mean overall score of processed pages on a 0..1 scale."""

        return (self.quality_total / self.processed_urls) / 100 if self.processed_urls else 0.0

    @property
    def average_response_time_ms(self) -> float:
        return self.response_time_ms_total / self.response_samples if self.response_samples else 0.0

    def duration_seconds(self) -> float:
        start = datetime.fromisoformat(self.started_at)
        end = datetime.fromisoformat(self.finished_at) if self.finished_at else datetime.now(timezone.utc)
        return max(0.0, (end - start).total_seconds())

    def to_json(self) -> JSONDict:
        return {
            "session_id": self.session_id,
            "status": self.status.value,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "duration_seconds": round(self.duration_seconds(), 3),
            "total_urls": self.total_urls,
            "processed_urls": self.processed_urls,
            "failed_urls": self.failed_urls,
            "duplicate_urls": self.duplicate_urls,
            "skipped_urls": self.skipped_urls,
            "revisits": self.revisits,
            "bytes_downloaded": self.bytes_downloaded,
            "average_response_time_ms": round(self.average_response_time_ms, 1),
            "words_total": self.words_total,
            "average_quality": round(self.average_quality, 4),
            "entity_count": self.entity_count,
            "persist_failures": self.persist_failures,
        }


class SessionAggregator:
    """Single owner of the `CrawlSession`; every mutation takes one lock."""

    def __init__(
        self,
        session: CrawlSession | None = None,
        *,
        checkpoint_interval: int = DEFAULT_CHECKPOINT_INTERVAL,
    ) -> None:
        self._lock = threading.Lock()
        self._session = session or CrawlSession()
        self.checkpoint_interval = checkpoint_interval
        self._last_checkpoint_at = 0

    @property
    def session_id(self) -> str:
        return self._session.session_id

    def _breakdowns(self, target: CrawlTarget) -> tuple[Breakdown, Breakdown]:
        category = self._session.category_breakdown.setdefault(target.category, Breakdown())
        domain = self._session.domain_breakdown.setdefault(target.domain, Breakdown())
        return category, domain

    def _require_open(self) -> None:
        if self._session.closed:
            raise RuntimeError(f"Session {self._session.session_id} is already closed")

    def record_enqueued(self, count: int = 1) -> None:
        if count <= 0:
            return
        with self._lock:
            self._session.total_urls += count

    def record_fetch(self, result: FetchResult) -> None:
        with self._lock:
            self._session.bytes_downloaded += result.content_length
            self._session.response_time_ms_total += int(result.elapsed_ms)
            self._session.response_samples += 1

    def record_processed(
        self,
        target: CrawlTarget,
        score: QualityScore,
        *,
        entities: int = 0,
        words: int = 0,
        revisit: bool = False,
    ) -> None:
        overall = score.overall
        with self._lock:
            self._require_open()
            session = self._session
            session.processed_urls += 1
            session.quality_total += overall
            session.entity_count += entities
            session.words_total += words
            if revisit:
                session.revisits += 1
            session.quality_distribution[quality_bucket(overall)] += 1
            session.quality_histogram[histogram_bin(overall)] += 1
            for breakdown in self._breakdowns(target):
                breakdown.processed += 1
                breakdown.quality_total += overall

    def record_duplicate(self, target: CrawlTarget) -> None:
        with self._lock:
            self._require_open()
            self._session.duplicate_urls += 1
            for breakdown in self._breakdowns(target):
                breakdown.duplicates += 1

    def record_skipped(self, target: CrawlTarget) -> None:
        """Count a quality-gate rejection (not a failure)."""

        with self._lock:
            self._require_open()
            self._session.skipped_urls += 1
            for breakdown in self._breakdowns(target):
                breakdown.skipped += 1

    def record_failed(self, target: CrawlTarget) -> None:
        with self._lock:
            self._require_open()
            self._session.failed_urls += 1
            for breakdown in self._breakdowns(target):
                breakdown.failed += 1

    def record_persist_failure(self, url: str, error: str) -> None:
        with self._lock:
            self._session.persist_failures += 1
            self._session.persist_errors.append({"url": url, "error": error, "at": utc_now_iso()})

    def checkpoint_due(self) -> bool:
        """True once per `checkpoint_interval` processed targets."""

        if self.checkpoint_interval <= 0:
            return False
        with self._lock:
            processed = self._session.processed_urls
            if processed == 0 or processed % self.checkpoint_interval != 0:
                return False
            if processed == self._last_checkpoint_at:
                return False
            self._last_checkpoint_at = processed
            return True

    def close(self, status: SessionStatus = SessionStatus.COMPLETED) -> CrawlSession:
        with self._lock:
            if not self._session.closed:
                self._session.status = status
                self._session.finished_at = utc_now_iso()
            return self._session

    def snapshot(self) -> JSONDict:
        with self._lock:
            return self._session.to_json()

    def counts(self) -> dict[str, int]:
        with self._lock:
            s = self._session
            return {
                "processed": s.processed_urls,
                "failed": s.failed_urls,
                "duplicates": s.duplicate_urls,
                "skipped": s.skipped_urls,
                "persist_failures": s.persist_failures,
            }

    def build_report(
        self,
        *,
        frontier: Mapping[str, Any] | None = None,
        fetcher: Mapping[str, Any] | None = None,
    ) -> JSONDict:
        """Assemble the end-of-session report artifact."""

        with self._lock:
            session = self._session
            report: JSONDict = {
                "summary": session.to_json(),
                "category_breakdown": {key: value.to_json() for key, value in sorted(session.category_breakdown.items())},
                "domain_breakdown": {key: value.to_json() for key, value in sorted(session.domain_breakdown.items())},
                "quality_distribution": dict(session.quality_distribution),
                "quality_histogram": dict(zip(histogram_labels(), session.quality_histogram)),
                "recommendations": generate_recommendations(session),
                "insights": generate_insights(session),
                "persist_errors": list(session.persist_errors),
            }
        if frontier is not None:
            report["frontier"] = dict(frontier)
        if fetcher is not None:
            report["fetcher"] = dict(fetcher)
        return report


def generate_recommendations(session: CrawlSession) -> list[str]:
    recommendations: list[str] = []
    processed = session.processed_urls

    if session.failed_urls > processed * FAILURE_RATE_LIMIT:
        recommendations.append("Consider increasing stealth delays - failure rate above 10%")
    if processed and session.average_quality < AVERAGE_QUALITY_FLOOR:
        recommendations.append("Quality threshold may be too low - consider raising standards")
    if processed and session.entity_count / processed < ENTITIES_PER_PAGE_FLOOR:
        recommendations.append("Entity extraction rate low - consider enhancing extraction patterns")

    fetched = processed + session.duplicate_urls + session.skipped_urls
    if fetched and session.duplicate_urls / fetched > DUPLICATE_RATE_LIMIT:
        recommendations.append("Duplicate rate above 30% - consider lengthening re-crawl intervals")
    if session.persist_failures:
        recommendations.append(
            f"{session.persist_failures} records failed to persist - check the storage backend"
        )
    return recommendations


def generate_insights(session: CrawlSession) -> list[str]:
    processed = session.processed_urls
    if not processed:
        return ["No pages were processed in this session"]

    excellent = session.quality_distribution.get("excellent", 0)
    insights = [
        f"Processed {processed} pages",
        f"Extracted {session.entity_count} entities with confidence scoring",
        f"Achieved {round(session.average_quality * 100)}% average quality score",
        f"Collected {round(session.words_total / 1000)}K words of content",
        f"{round(excellent / processed * 100)}% of pages achieved excellent quality (90%+)",
    ]
    if session.response_samples and session.average_response_time_ms < FAST_RESPONSE_MS:
        insights.append(f"Fast responses: {round(session.average_response_time_ms)}ms average response time")
    return insights


__all__ = [
    "Breakdown",
    "CrawlSession",
    "SessionAggregator",
    "generate_insights",
    "generate_recommendations",
    "histogram_bin",
    "histogram_labels",
    "quality_bucket",
]
