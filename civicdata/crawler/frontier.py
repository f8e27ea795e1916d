"""Thread-safe priority frontier owning every crawl target's lifecycle."""

from __future__ import annotations

import logging
import random
import threading
import time
from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable

from .config import CrawlConfig, SeedConfig
from .scheduling import (
    adaptive_interval,
    categorize_url,
    compute_dynamic_priority,
    discovered_priority,
    estimate_change_frequency,
    exponential_backoff,
    initial_interval_for_category,
)
from .types import ContentAnalysis, CrawlTarget, Scheduling, TargetMetadata, TargetStatus


LOGGER = logging.getLogger(__name__)

IDLE_WAIT_SECONDS = 0.5


class EnqueueStatus(str, Enum):
    """Result status for frontier enqueue attempts."""

    ENQUEUED = "enqueued"
    SKIPPED_INVALID_URL = "skipped_invalid_url"
    SKIPPED_OUT_OF_SCOPE = "skipped_out_of_scope"
    SKIPPED_DEPTH = "skipped_depth"
    SKIPPED_SEEN = "skipped_seen"
    SKIPPED_GLOBAL_BUDGET = "skipped_global_budget"
    SKIPPED_DOMAIN_QUOTA = "skipped_domain_quota"
    SKIPPED_CLOSED = "skipped_closed"


@dataclass(frozen=True, slots=True)
class EnqueueResult:
    """Outcome of one enqueue attempt."""

    status: EnqueueStatus
    normalized_url: str | None = None
    target: CrawlTarget | None = None

    @property
    def accepted(self) -> bool:
        return self.status == EnqueueStatus.ENQUEUED


class Frontier:
    """Priority frontier used by concurrent crawl workers.

    - Every public method runs under one condition lock, so quota
      check-and-increment and dispatch decisions are atomic.
    - `next()` hands out the eligible target with the highest dynamic
      priority; ties go to the target that has been eligible the longest.
    - Targets are seen at enqueue time, so a URL is never queued twice.
    """

    def __init__(
        self,
        config: CrawlConfig,
        *,
        clock: Callable[[], float] = time.time,
        rng: random.Random | None = None,
    ) -> None:
        self.config = config
        self._clock = clock
        self._rng = rng or random.Random()

        self._cond = threading.Condition()
        self._targets: dict[str, CrawlTarget] = {}
        self._pending: list[CrawlTarget] = []
        self._deferred: list[CrawlTarget] = []

        self._accepted_by_domain: dict[str, int] = defaultdict(int)
        self._dispatched_by_domain: dict[str, int] = defaultdict(int)
        self._skip_counts: dict[str, int] = defaultdict(int)

        self._dispatched = 0
        self._in_flight = 0
        self._peak_in_flight = 0
        self._deadline: float | None = None
        self._closed = False

    # -- enqueue -----------------------------------------------------------------

    def seed(self, seeds: Iterable[SeedConfig]) -> list[EnqueueResult]:
        """Enqueue depth-0 seed targets."""

        return [
            self.enqueue(
                seed.url,
                depth=0,
                category=seed.category,
                base_priority=seed.priority,
            )
            for seed in seeds
        ]

    def enqueue(
        self,
        url: str,
        *,
        parent_url: str | None = None,
        depth: int = 0,
        category: str | None = None,
        base_priority: float | None = None,
    ) -> EnqueueResult:
        """Add a target unless it is invalid, seen, out of scope or over quota."""

        normalized = self.config.canonical_url(url)
        if not normalized:
            return self._skipped(EnqueueStatus.SKIPPED_INVALID_URL)

        if depth > self.config.max_depth:
            return self._skipped(EnqueueStatus.SKIPPED_DEPTH, normalized)

        domain_cfg = self.config.get_domain_config(normalized)
        if domain_cfg is None:
            return self._skipped(EnqueueStatus.SKIPPED_OUT_OF_SCOPE, normalized)

        resolved_category = (category or categorize_url(normalized)).lower()
        if base_priority is None:
            base_priority = discovered_priority(
                normalized,
                resolved_category,
                data_rich_paths=self.config.data_rich_paths,
                document_extensions=self.config.allowed_file_types,
            )

        with self._cond:
            if self._closed:
                return self._skipped_locked(EnqueueStatus.SKIPPED_CLOSED, normalized)
            if normalized in self._targets:
                return self._skipped_locked(EnqueueStatus.SKIPPED_SEEN, normalized)
            if len(self._targets) >= self.config.max_urls:
                return self._skipped_locked(EnqueueStatus.SKIPPED_GLOBAL_BUDGET, normalized)
            if self._accepted_by_domain[domain_cfg.domain] >= domain_cfg.quota:
                return self._skipped_locked(EnqueueStatus.SKIPPED_DOMAIN_QUOTA, normalized)

            frequency, interval = initial_interval_for_category(resolved_category)
            target = CrawlTarget(
                url=normalized,
                domain=domain_cfg.domain,
                base_priority=base_priority,
                dynamic_priority=base_priority,
                depth=depth,
                category=resolved_category,
                parent_url=parent_url,
                scheduling=Scheduling(
                    next_eligible=self._clock(),
                    recrawl_interval_seconds=interval,
                ),
                metadata=TargetMetadata(change_frequency=frequency),
            )
            self._targets[normalized] = target
            self._accepted_by_domain[domain_cfg.domain] += 1
            self._add_pending(target)
            self._cond.notify()

        return EnqueueResult(EnqueueStatus.ENQUEUED, normalized_url=normalized, target=target)

    def enqueue_many(
        self,
        urls: Iterable[str],
        *,
        parent_url: str | None,
        depth: int,
    ) -> list[EnqueueResult]:
        """Enqueue discovered links, preserving input order."""

        return [self.enqueue(url, parent_url=parent_url, depth=depth) for url in urls]

    def _skipped(self, status: EnqueueStatus, normalized: str | None = None) -> EnqueueResult:
        with self._cond:
            return self._skipped_locked(status, normalized)

    def _skipped_locked(self, status: EnqueueStatus, normalized: str | None) -> EnqueueResult:
        self._skip_counts[status.value] += 1
        return EnqueueResult(status, normalized_url=normalized)

    # -- dispatch ----------------------------------------------------------------

    def set_deadline(self, deadline: float | None) -> None:
        """Stop yielding work once `clock()` passes `deadline`."""

        with self._cond:
            self._deadline = deadline
            self._cond.notify_all()

    def next(self, timeout: float | None = None) -> CrawlTarget | None:
        """Return the best eligible target, waiting up to `timeout` seconds.

        Returns `None` when the frontier is closed, the time budget is spent,
        no target can ever become eligible, or the timeout elapses.
        """

        wait_until = None if timeout is None else time.monotonic() + timeout

        with self._cond:
            while True:
                if self._closed or self._deadline_passed():
                    return None

                now = self._clock()
                self._promote_deferred(now)
                target = self._select_eligible(now)
                if target is not None:
                    self._dispatch(target)
                    return target

                if not self._has_work_locked():
                    return None

                wait_for = IDLE_WAIT_SECONDS
                upcoming = [t.scheduling.next_eligible for t in self._pending]
                if upcoming:
                    wait_for = min(wait_for, max(0.0, min(upcoming) - now))
                if wait_until is not None:
                    remaining = wait_until - time.monotonic()
                    if remaining <= 0:
                        return None
                    wait_for = min(wait_for, remaining)
                self._cond.wait(max(wait_for, 0.001))

    def _select_eligible(self, now: float) -> CrawlTarget | None:
        best: CrawlTarget | None = None
        for candidate in self._pending:
            if best is not None and candidate.dynamic_priority < best.dynamic_priority:
                break
            if candidate.scheduling.next_eligible > now:
                continue
            if candidate.attempts > self.config.max_retries:
                continue
            if best is None or (
                candidate.dynamic_priority == best.dynamic_priority
                and candidate.scheduling.next_eligible < best.scheduling.next_eligible
            ):
                best = candidate
        return best

    def _dispatch(self, target: CrawlTarget) -> None:
        self._pending.remove(target)
        target.transition(TargetStatus.ANALYZING)
        target.metadata.dispatch_count += 1
        self._dispatched += 1
        self._dispatched_by_domain[target.domain] += 1
        self._in_flight += 1
        self._peak_in_flight = max(self._peak_in_flight, self._in_flight)

    def _promote_deferred(self, now: float) -> None:
        ready = [t for t in self._deferred if t.scheduling.next_eligible <= now]
        for target in ready:
            self._deferred.remove(target)
            target.transition(TargetStatus.PENDING)
            self._add_pending(target)

    def _add_pending(self, target: CrawlTarget) -> None:
        self._pending.append(target)
        self._pending.sort(key=lambda item: item.dynamic_priority, reverse=True)

    # -- transitions -------------------------------------------------------------

    def reprioritize(self, target: CrawlTarget, analysis: ContentAnalysis) -> float:
        """Recompute dynamic priority from `analysis` and re-sort the frontier."""

        with self._cond:
            target.dynamic_priority = compute_dynamic_priority(target.base_priority, analysis)
            target.metadata.estimated_value = round(analysis.importance * analysis.confidence, 3)
            target.metadata.change_frequency = estimate_change_frequency(analysis.content_type)
            self._pending.sort(key=lambda item: item.dynamic_priority, reverse=True)
            return target.dynamic_priority

    def mark_processing(self, target: CrawlTarget) -> None:
        with self._cond:
            target.transition(TargetStatus.PROCESSING)

    def complete(
        self,
        target: CrawlTarget,
        *,
        content_hash: str | None = None,
        importance: int | None = None,
        changed: bool = False,
        file_size: int | None = None,
    ) -> None:
        """Mark a target completed and, when enabled, schedule its re-crawl."""

        with self._cond:
            target.transition(TargetStatus.COMPLETED)
            self._release()
            now = self._clock()
            target.scheduling.last_crawled = now
            target.metadata.revisit = changed
            if content_hash is not None:
                target.metadata.last_content_hash = content_hash
            if file_size is not None:
                target.metadata.file_size = file_size
            if importance is not None and target.scheduling.adaptive:
                target.scheduling.recrawl_interval_seconds = adaptive_interval(
                    target.metadata.change_frequency,
                    importance,
                    changed=changed,
                )
            if self.config.recrawl_enabled:
                self._defer_locked(target, target.scheduling.recrawl_interval_seconds)
            self._cond.notify_all()

    def skip(self, target: CrawlTarget, reason: str, *, content_hash: str | None = None) -> None:
        """Mark a duplicate or quality-rejected target as skipped."""

        with self._cond:
            target.transition(TargetStatus.SKIPPED)
            self._release()
            target.scheduling.last_crawled = self._clock()
            target.metadata.last_error = reason
            if content_hash is not None:
                target.metadata.last_content_hash = content_hash
            if self.config.recrawl_enabled:
                self._defer_locked(target, target.scheduling.recrawl_interval_seconds)
            self._cond.notify_all()

    def fail(self, target: CrawlTarget, reason: str) -> None:
        with self._cond:
            target.transition(TargetStatus.FAILED)
            self._release()
            target.metadata.last_error = reason
            self._cond.notify_all()

    def retry(self, target: CrawlTarget, reason: str) -> bool:
        """Return a target to pending with backoff, or fail it past the retry ceiling.

        Returns True when the target will be dispatched again.
        """

        with self._cond:
            target.attempts += 1
            target.metadata.last_error = reason
            if target.attempts > self.config.max_retries:
                target.transition(TargetStatus.FAILED)
                self._release()
                self._cond.notify_all()
                LOGGER.warning("Giving up on %s after %d attempts: %s", target.url, target.attempts, reason)
                return False

            delay = exponential_backoff(
                target.attempts,
                base=self.config.retry_backoff_base_seconds,
                multiplier=self.config.retry_backoff_multiplier,
                jitter=self.config.retry_jitter_seconds,
                rng=self._rng,
            )
            target.transition(TargetStatus.PENDING)
            self._release()
            target.scheduling.next_eligible = self._clock() + delay
            self._add_pending(target)
            self._cond.notify_all()

        LOGGER.info("Retrying %s in %.1fs (attempt %d): %s", target.url, delay, target.attempts, reason)
        return True

    def defer(self, target: CrawlTarget, interval: float) -> None:
        """Park a completed or skipped target until `interval` seconds from now."""

        with self._cond:
            self._defer_locked(target, interval)
            self._cond.notify_all()

    def _defer_locked(self, target: CrawlTarget, interval: float) -> None:
        target.transition(TargetStatus.DEFERRED)
        target.scheduling.next_eligible = self._clock() + interval
        self._deferred.append(target)

    def _release(self) -> None:
        self._in_flight -= 1

    # -- state -------------------------------------------------------------------

    def _deadline_passed(self) -> bool:
        return self._deadline is not None and self._clock() >= self._deadline

    def _has_work_locked(self) -> bool:
        if self._closed or self._deadline_passed():
            return False
        if self._in_flight > 0 or self._pending:
            return True
        if self._deadline is None:
            return False
        return any(t.scheduling.next_eligible <= self._deadline for t in self._deferred)

    def has_work(self) -> bool:
        """True while something is pending, in flight, or deferred within the time budget."""

        with self._cond:
            return self._has_work_locked()

    def close(self) -> None:
        """Close the frontier; `next()` returns None and enqueue is refused."""

        with self._cond:
            self._closed = True
            self._cond.notify_all()

    @property
    def closed(self) -> bool:
        with self._cond:
            return self._closed

    @property
    def in_flight(self) -> int:
        with self._cond:
            return self._in_flight

    @property
    def peak_in_flight(self) -> int:
        with self._cond:
            return self._peak_in_flight

    def get(self, url: str) -> CrawlTarget | None:
        normalized = self.config.canonical_url(url)
        with self._cond:
            return self._targets.get(normalized or url)

    def __len__(self) -> int:
        with self._cond:
            return len(self._targets)

    def dispatched_by_domain(self) -> dict[str, int]:
        with self._cond:
            return dict(self._dispatched_by_domain)

    def snapshot(self) -> dict[str, object]:
        """Return frontier counters for logs, checkpoints and the report."""

        with self._cond:
            by_status: dict[str, int] = defaultdict(int)
            for target in self._targets.values():
                by_status[target.status.value] += 1
            return {
                "closed": self._closed,
                "total_targets": len(self._targets),
                "pending": len(self._pending),
                "deferred": len(self._deferred),
                "in_flight": self._in_flight,
                "peak_in_flight": self._peak_in_flight,
                "dispatched": self._dispatched,
                "by_status": dict(by_status),
                "accepted_by_domain": dict(self._accepted_by_domain),
                "dispatched_by_domain": dict(self._dispatched_by_domain),
                "skipped": dict(self._skip_counts),
            }

    def export_targets(self) -> list[dict[str, object]]:
        """Serialize every target, highest priority first."""

        with self._cond:
            ordered = sorted(self._targets.values(), key=lambda t: t.dynamic_priority, reverse=True)
            return [target.to_json() for target in ordered]


__all__ = [
    "EnqueueResult",
    "EnqueueStatus",
    "Frontier",
]
