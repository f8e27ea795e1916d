"""HTTP fetching through the stealth controller with retry and backoff."""

from __future__ import annotations

import logging
import random
import threading
import time
from typing import Callable

import requests

from .config import CrawlConfig
from .scheduling import exponential_backoff
from .stealth import RequestPlan, StealthController
from .types import FetchFailure, FetchResult


LOGGER = logging.getLogger(__name__)


class FetchAttemptError(Exception):
    """One failed attempt; carries the status code when a response arrived."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class StealthFetcher:
    """Fetch URLs with rotating identities, adaptive delays and bounded retries.

    Concurrency model:
    - Each worker thread gets its own `requests.Session`.
    - Pacing state lives in the shared `StealthController`.
    - One `fetch` call makes at most `max_retries` attempts, strictly in
      sequence, and never raises: it returns `FetchResult` or `FetchFailure`.
    """

    def __init__(
        self,
        config: CrawlConfig,
        *,
        stealth: StealthController | None = None,
        session_factory: Callable[[], requests.Session] = requests.Session,
        rng: random.Random | None = None,
    ) -> None:
        self.config = config
        self._rng = rng or random.Random()
        self.stealth = stealth or StealthController(config.stealth, rng=self._rng)
        self._session_factory = session_factory

        self._thread_local = threading.local()
        self._sessions: list[requests.Session] = []
        self._sessions_lock = threading.Lock()

        self._closed = False
        self._closed_lock = threading.Lock()

    @property
    def max_attempts(self) -> int:
        return max(1, self.config.max_retries)

    def fetch(self, url: str) -> FetchResult | FetchFailure:
        normalized = self.config.canonical_url(url)
        if normalized is None:
            return FetchFailure(url=url, error="Invalid or unsupported URL", attempts=0)

        last_error = "Unknown fetch failure"
        last_status: int | None = None
        last_identity: str | None = None
        last_elapsed: int | None = None

        for attempt in range(1, self.max_attempts + 1):
            if self._is_closed():
                return FetchFailure(url=normalized, error="Fetcher is closed", attempts=attempt - 1)

            plan = self.stealth.before_request(normalized)
            last_identity = plan.identity.name
            started = time.perf_counter()
            try:
                result = self._fetch_once(normalized, plan, attempt)
            except FetchAttemptError as exc:
                last_error = str(exc)
                last_status = exc.status_code
                last_elapsed = int((time.perf_counter() - started) * 1000)
                self.stealth.record_outcome(False)
            else:
                self.stealth.record_outcome(True)
                return result

            if attempt < self.max_attempts:
                delay = exponential_backoff(
                    attempt,
                    base=self.config.retry_backoff_base_seconds,
                    multiplier=self.config.retry_backoff_multiplier,
                    jitter=self.config.retry_jitter_seconds,
                    rng=self._rng,
                )
                LOGGER.info(
                    "Fetch attempt %d/%d for %s failed (%s); retrying in %.1fs",
                    attempt,
                    self.max_attempts,
                    normalized,
                    last_error,
                    delay,
                )
                self.stealth.wait(delay)

        LOGGER.warning("Fetch failed for %s after %d attempts: %s", normalized, self.max_attempts, last_error)
        return FetchFailure(
            url=normalized,
            error=last_error,
            status_code=last_status,
            attempts=self.max_attempts,
            elapsed_ms=last_elapsed,
            identity=last_identity,
        )

    def _fetch_once(self, url: str, plan: RequestPlan, attempt: int) -> FetchResult:
        session = self._thread_local_session()
        low, high = self.config.timeout_range_seconds
        timeout = self._rng.uniform(low, high) if high > low else low
        started = time.perf_counter()

        try:
            response = session.get(url, headers=plan.headers, timeout=timeout, allow_redirects=True)
        except requests.RequestException as exc:
            raise FetchAttemptError(f"{exc.__class__.__name__}: {exc}") from exc

        elapsed_ms = int((time.perf_counter() - started) * 1000)
        if not 200 <= response.status_code < 300:
            raise FetchAttemptError(f"HTTP status {response.status_code}", status_code=response.status_code)

        content_type = response.headers.get("Content-Type")
        encoding = response.encoding if "charset" in (content_type or "").lower() else None
        return FetchResult(
            url=url,
            final_url=self.config.canonical_url(response.url) or url,
            status_code=response.status_code,
            content_type=content_type,
            body=response.content or b"",
            elapsed_ms=elapsed_ms,
            identity=plan.identity.name,
            attempts=attempt,
            encoding=encoding,
            last_modified=response.headers.get("Last-Modified"),
        )

    def _thread_local_session(self) -> requests.Session:
        session = getattr(self._thread_local, "session", None)
        if session is None:
            session = self._session_factory()
            self._thread_local.session = session
            with self._sessions_lock:
                self._sessions.append(session)
        return session

    def _is_closed(self) -> bool:
        with self._closed_lock:
            return self._closed

    def close(self) -> None:
        """Close every per-thread session."""

        with self._closed_lock:
            self._closed = True
        with self._sessions_lock:
            sessions, self._sessions = self._sessions, []
        for session in sessions:
            try:
                session.close()
            except Exception as exc:
                LOGGER.debug("Ignoring session close error: %s", exc)

    def __enter__(self) -> "StealthFetcher":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


__all__ = ["FetchAttemptError", "StealthFetcher"]
