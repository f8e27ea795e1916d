"""End-to-end crawl pipeline orchestration."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Sequence

from .analysis import ContentAnalyzer, page_metrics
from .config import CrawlConfig
from .dedup import ChangeDetector
from .extractors import (
    DocumentConverter,
    ExtractionPipeline,
    PageParser,
    ParsedPage,
    PdfTextConverter,
    build_extraction_pipeline,
)
from .fetcher import StealthFetcher
from .frontier import EnqueueResult, Frontier
from .quality import QualityEngine
from .session import SessionAggregator
from .storage import JsonlStorage, Persistence
from .types import (
    ContentKind,
    CrawlStage,
    CrawlTarget,
    DedupResult,
    ErrorRecord,
    FetchFailure,
    FetchResult,
    PersistRecord,
    SessionStatus,
)


LOGGER = logging.getLogger(__name__)

WORKER_POLL_SECONDS = 0.5


@dataclass(slots=True)
class _TargetContext:
    """Tracks which stage a worker is in so unexpected errors are attributed."""

    target: CrawlTarget
    stage: CrawlStage = CrawlStage.FRONTIER
    dedup: DedupResult | None = None


class CrawlPipeline:
    """Orchestrates frontier, fetcher, dedup, analysis, gate, extraction and persistence.

    Each worker thread takes one target at a time from the frontier and runs
    the whole pass for it. All shared state lives in the frontier, the
    change detector, the stealth controller and the session aggregator,
    each guarding itself with its own lock.
    """

    def __init__(
        self,
        config: CrawlConfig,
        *,
        output_dir: str | Path | None = None,
        persistence: Persistence | None = None,
        fetcher: StealthFetcher | Any | None = None,
        frontier: Frontier | None = None,
        detector: ChangeDetector | None = None,
        analyzer: ContentAnalyzer | None = None,
        quality: QualityEngine | None = None,
        extractor: ExtractionPipeline | None = None,
        page_parser: PageParser | None = None,
        converters: Sequence[DocumentConverter] | None = None,
        session: SessionAggregator | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if persistence is None:
            if output_dir is None:
                raise ValueError("CrawlPipeline needs either `persistence` or `output_dir`")
            persistence = JsonlStorage(output_dir)

        self.config = config
        self.persistence = persistence
        self.artifacts = persistence if isinstance(persistence, JsonlStorage) else None

        self.fetcher = fetcher or StealthFetcher(config)
        self._owns_fetcher = fetcher is None
        self.frontier = frontier or Frontier(config, clock=clock)
        self.detector = detector or ChangeDetector(
            exists_by_hash=persistence.exists_by_hash if config.cross_session_dedup else None
        )
        self.analyzer = analyzer or ContentAnalyzer()
        self.quality = quality or QualityEngine(
            config.quality_thresholds,
            default_threshold=config.default_quality_threshold,
        )
        self.extractor = extractor or build_extraction_pipeline(
            allowed_domains=config.allowed_domains,
            allowed_file_types=config.allowed_file_types,
            ignored_query_params=config.ignored_query_params,
        )
        self.page_parser = page_parser or PageParser()
        self.converters = list(converters) if converters is not None else [PdfTextConverter()]
        self.session = session or SessionAggregator(checkpoint_interval=config.checkpoint_interval)
        self._clock = clock

        self._errors_lock = threading.Lock()
        self.errors: list[ErrorRecord] = []

    # -- run ---------------------------------------------------------------------

    def run(self) -> dict[str, Any]:
        """Crawl until the frontier runs dry or a budget is spent; return the report."""

        if self.artifacts is not None:
            self.artifacts.save_crawl_config(self.config)
            if self.config.cross_session_dedup:
                loaded = self.detector.load(self.artifacts.load_visited_hashes().items())
                LOGGER.info("Loaded %d visited hashes from previous sessions", loaded)

        seed_results = self.frontier.seed(self.config.seeds)
        self._record_enqueue_results(seed_results)
        if self.config.max_duration_seconds is not None:
            self.frontier.set_deadline(self._clock() + self.config.max_duration_seconds)

        LOGGER.info(
            "Session %s starting: %d seeds accepted, concurrency=%d",
            self.session.session_id,
            sum(result.accepted for result in seed_results),
            self.config.concurrency,
        )

        status = SessionStatus.FAILED
        try:
            self._run_workers()
            status = SessionStatus.COMPLETED
        finally:
            self.frontier.close()
            self.session.close(status)
            if self._owns_fetcher:
                self.fetcher.close()

        report = self.session.build_report(
            frontier=self.frontier.snapshot(),
            fetcher=self._fetcher_snapshot(),
        )
        if self.artifacts is not None:
            self.artifacts.save_visited_hashes(self.detector.snapshot())
            self.artifacts.save_report(report)

        summary = report["summary"]
        LOGGER.info(
            "Session %s %s: processed=%s failed=%s duplicates=%s skipped=%s",
            summary["session_id"],
            summary["status"],
            summary["processed_urls"],
            summary["failed_urls"],
            summary["duplicate_urls"],
            summary["skipped_urls"],
        )
        return {
            "session_id": self.session.session_id,
            "paths": self.artifacts.paths if self.artifacts is not None else {},
            "report": report,
        }

    def _run_workers(self) -> None:
        workers = [
            threading.Thread(
                target=self._worker,
                name=f"crawler-worker-{idx}",
                daemon=True,
            )
            for idx in range(self.config.concurrency)
        ]
        for worker in workers:
            worker.start()
        for worker in workers:
            worker.join()

    def _worker(self) -> None:
        while True:
            target = self.frontier.next(timeout=WORKER_POLL_SECONDS)
            if target is None:
                if not self.frontier.has_work():
                    return
                continue

            ctx = _TargetContext(target)
            try:
                self.process_target(target, ctx)
            except Exception as exc:
                self._handle_unexpected(ctx, exc)

    def _handle_unexpected(self, ctx: _TargetContext, exc: Exception) -> None:
        target = ctx.target
        LOGGER.exception("Unexpected error in %s stage for %s", ctx.stage.value, target.url)
        self._record_error(
            ErrorRecord.from_exception(
                stage=ctx.stage,
                url=target.url,
                exc=exc,
                attempts=target.attempts + 1,
            )
        )
        if not target.in_flight:
            return
        if ctx.dedup is not None:
            self.detector.restore(target.url, ctx.dedup.previous_hash)
        will_retry = self.frontier.retry(target, f"{exc.__class__.__name__}: {exc}")
        if not will_retry:
            self.session.record_failed(target)

    # -- per-target pass ---------------------------------------------------------

    def process_target(self, target: CrawlTarget, ctx: _TargetContext | None = None) -> None:
        """Run fetch -> dedup -> analyze -> gate -> extract -> persist -> discover."""

        ctx = ctx or _TargetContext(target)

        ctx.stage = CrawlStage.FETCH
        fetched = self.fetcher.fetch(target.url)
        if isinstance(fetched, FetchFailure):
            self._record_error(ErrorRecord.from_fetch_failure(fetched))
            self.frontier.fail(target, fetched.error)
            self.session.record_failed(target)
            return
        self.session.record_fetch(fetched)

        ctx.stage = CrawlStage.DEDUP
        dedup = self.detector.check_and_record(target.url, fetched.body)
        ctx.dedup = dedup
        if not dedup.is_new_content:
            LOGGER.debug("Duplicate content for %s", target.url)
            self.frontier.skip(target, "duplicate content", content_hash=dedup.hash)
            self.session.record_duplicate(target)
            return

        ctx.stage = CrawlStage.ANALYZE
        page = self.parse(fetched)
        analysis = self.analyzer.analyze(page, target.url)
        self.frontier.reprioritize(target, analysis)
        assessment = self.quality.assess(page, target.url, target.category, analysis)
        if not assessment.passed:
            LOGGER.info(
                "Quality gate rejected %s: %d < %.0f (%s)",
                target.url,
                assessment.score.overall,
                assessment.threshold,
                target.category,
            )
            self.frontier.skip(
                target,
                f"quality {assessment.score.overall} below {assessment.threshold:.0f}",
                content_hash=dedup.hash,
            )
            self.session.record_skipped(target)
            return

        ctx.stage = CrawlStage.EXTRACT
        self.frontier.mark_processing(target)
        extracted = self.extractor.extract(page)

        ctx.stage = CrawlStage.PERSIST
        record = PersistRecord(
            url=target.url,
            final_url=fetched.final_url,
            title=page.title,
            category=target.category,
            content_hash=dedup.hash,
            revisit=dedup.is_revisit,
            analysis=analysis,
            quality=assessment.score,
            quality_tier=assessment.tier,
            extracted=extracted,
            advanced_analysis=page_metrics(page, extracted, analysis),
            crawl_metadata=self._crawl_metadata(target, fetched, assessment.recommendations),
        )
        self._persist(record)

        ctx.stage = CrawlStage.FRONTIER
        self._discover(target, extracted.links)

        self.session.record_processed(
            target,
            assessment.score,
            entities=extracted.entity_count,
            words=page.word_count,
            revisit=dedup.is_revisit,
        )
        self.frontier.complete(
            target,
            content_hash=dedup.hash,
            importance=analysis.importance,
            changed=dedup.is_revisit,
            file_size=fetched.content_length,
        )
        if self.session.checkpoint_due():
            self.checkpoint()

    def parse(self, fetched: FetchResult) -> ParsedPage:
        """Turn a fetch result into a `ParsedPage`, converting documents to text."""

        kind = fetched.content_kind
        url = fetched.final_url or fetched.url
        if kind in {ContentKind.HTML, ContentKind.TEXT}:
            return self.page_parser.parse_fetch(fetched, last_modified=fetched.last_modified)

        for converter in self.converters:
            if not converter.supports(kind):
                continue
            document = converter.convert(fetched.body)
            if not document.ok:
                LOGGER.warning("Document conversion failed for %s: %s", url, document.error)
            return self.page_parser.parse_text(
                url,
                document.text,
                content_kind=kind,
                title=document.title,
                last_modified=fetched.last_modified,
            )

        LOGGER.debug("No converter for %s content at %s", kind.value, url)
        return self.page_parser.parse_text(url, "", content_kind=kind, last_modified=fetched.last_modified)

    def _persist(self, record: PersistRecord) -> None:
        try:
            self.persistence.persist(record)
        except Exception as exc:
            LOGGER.error("Persist failed for %s: %s: %s", record.url, exc.__class__.__name__, exc)
            self.session.record_persist_failure(record.url, f"{exc.__class__.__name__}: {exc}")
            self._record_error(ErrorRecord.from_exception(stage=CrawlStage.PERSIST, url=record.url, exc=exc))

    def _discover(self, target: CrawlTarget, links: list[str]) -> None:
        if not links or target.depth >= self.config.max_depth:
            return
        if len(self.frontier) >= self.config.max_urls:
            return
        results = self.frontier.enqueue_many(links, parent_url=target.url, depth=target.depth + 1)
        self._record_enqueue_results(results)

    def _record_enqueue_results(self, results: list[EnqueueResult]) -> None:
        self.session.record_enqueued(sum(1 for result in results if result.accepted))

    def _crawl_metadata(
        self,
        target: CrawlTarget,
        fetched: FetchResult,
        recommendations: list[str],
    ) -> dict[str, Any]:
        return {
            "session_id": self.session.session_id,
            "domain": target.domain,
            "depth": target.depth,
            "parent_url": target.parent_url,
            "base_priority": target.base_priority,
            "dynamic_priority": target.dynamic_priority,
            "status_code": fetched.status_code,
            "content_type": fetched.content_type,
            "content_length": fetched.content_length,
            "elapsed_ms": fetched.elapsed_ms,
            "identity": fetched.identity,
            "fetch_attempts": fetched.attempts,
            "quality_recommendations": list(recommendations),
        }

    # -- artifacts ---------------------------------------------------------------

    def checkpoint(self) -> None:
        """Write session, frontier and visited-hash state as one checkpoint."""

        if self.artifacts is None:
            return
        counts = self.session.counts()
        payload = {
            "session": self.session.snapshot(),
            "frontier": self.frontier.snapshot(),
            "visited_hashes": self.detector.snapshot(),
        }
        path = self.artifacts.save_checkpoint(payload, label=f"{counts['processed']:06d}")
        LOGGER.info("Checkpoint written after %d processed targets: %s", counts["processed"], path)

    def _record_error(self, error: ErrorRecord) -> None:
        with self._errors_lock:
            self.errors.append(error)
        if self.artifacts is not None:
            try:
                self.artifacts.save_error(error)
            except OSError as exc:
                LOGGER.error("Could not write error record for %s: %s", error.url, exc)

    def _fetcher_snapshot(self) -> dict[str, Any] | None:
        stealth = getattr(self.fetcher, "stealth", None)
        if stealth is None:
            return None
        return stealth.snapshot()


__all__ = ["CrawlPipeline"]
