"""Identity rotation and adaptive request pacing shared by all fetch workers."""

from __future__ import annotations

import logging
import random
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Mapping

from .config import StealthConfig
from .constants import ACCEPT_LANGUAGES, BROWSER_HEADER_PROFILES, REFERRER_SITES, USER_AGENTS
from .url import homepage_of


LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Identity:
    """One browser persona: a user agent plus its matching header profile."""

    name: str
    browser: str
    user_agent: str
    base_headers: Mapping[str, str] = field(default_factory=dict)


class IdentityPool:
    """Fixed pool of browser identities; one is drawn per request."""

    def __init__(
        self,
        user_agents: Mapping[str, tuple[str, ...]] = USER_AGENTS,
        header_profiles: Mapping[str, Mapping[str, str]] = BROWSER_HEADER_PROFILES,
        *,
        accept_languages: tuple[str, ...] = ACCEPT_LANGUAGES,
        referrer_sites: tuple[str, ...] = REFERRER_SITES,
    ) -> None:
        self.identities: list[Identity] = []
        for browser, agents in user_agents.items():
            profile = dict(header_profiles.get(browser, {}))
            for idx, agent in enumerate(agents):
                self.identities.append(
                    Identity(name=f"{browser}-{idx}", browser=browser, user_agent=agent, base_headers=profile)
                )
        if not self.identities:
            raise ValueError("IdentityPool needs at least one user agent")
        self.accept_languages = accept_languages
        self.referrer_sites = referrer_sites

    def __len__(self) -> int:
        return len(self.identities)

    def choose(self, rng: random.Random) -> Identity:
        return rng.choice(self.identities)

    def headers_for(
        self,
        identity: Identity,
        url: str,
        rng: random.Random,
        *,
        dnt_probability: float,
        referrer_probability: float,
    ) -> dict[str, str]:
        headers = dict(identity.base_headers)
        headers["User-Agent"] = identity.user_agent
        headers["Accept-Language"] = rng.choice(self.accept_languages)
        headers["Connection"] = "keep-alive"
        if rng.random() < dnt_probability:
            headers["DNT"] = "1"
        if rng.random() < referrer_probability:
            candidates = [*self.referrer_sites, homepage_of(url)]
            headers["Referer"] = rng.choice(candidates)
        return headers


@dataclass(frozen=True, slots=True)
class RequestPlan:
    identity: Identity
    headers: dict[str, str]
    delay_seconds: float
    pause_seconds: float = 0.0

    @property
    def wait_seconds(self) -> float:
        return self.delay_seconds + self.pause_seconds


class StealthController:
    """Session-wide pacing state for the fetch layer.

    - Counters (requests, success window, break schedule) change under one
      lock; waits always happen after the lock is released.
    - A stealth break sets a shared pause-until time, so every worker
      that asks for a slot during the break waits it out.
    - Clock, sleep and random source are injectable for tests.
    """

    def __init__(
        self,
        config: StealthConfig | None = None,
        *,
        identities: IdentityPool | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        rng: random.Random | None = None,
    ) -> None:
        self.config = config or StealthConfig()
        self.identities = identities or IdentityPool()
        self._clock = clock
        self._sleep = sleep
        self._rng = rng or random.Random()

        self._lock = threading.Lock()
        now = self._clock()
        self._session_start = now
        self._last_session_break = now
        self._pause_until = now
        self._total_requests = 0
        self._requests_since_break = 0
        self._breaks_taken = 0
        self._next_break_after = self._draw_break_threshold()
        self._request_times: deque[float] = deque(maxlen=self.config.success_window)
        self._outcomes: deque[bool] = deque(maxlen=self.config.success_window)

    def _uniform(self, bounds: tuple[float, float]) -> float:
        low, high = bounds
        return self._rng.uniform(low, high) if high > low else float(low)

    def _draw_break_threshold(self) -> int:
        low, high = (int(value) for value in self.config.break_every_range)
        return self._rng.randint(low, max(low, high))

    def success_rate(self) -> float:
        with self._lock:
            return self._success_rate_locked()

    def _success_rate_locked(self) -> float:
        if not self._outcomes:
            return 1.0
        return sum(self._outcomes) / len(self._outcomes)

    def _average_request_interval_locked(self, now: float) -> float | None:
        if not self._request_times:
            return None
        return (now - self._request_times[0]) / len(self._request_times)

    def compute_delay(self) -> float:
        with self._lock:
            return self._compute_delay_locked(self._clock())

    def _compute_delay_locked(self, now: float) -> float:
        cfg = self.config
        delay = self._uniform((cfg.min_delay, cfg.max_delay))

        average = self._average_request_interval_locked(now)
        if average is not None and average < cfg.burst_floor_per_request:
            delay += self._uniform(cfg.burst_penalty_range)

        if self._success_rate_locked() < cfg.low_success_rate:
            delay *= cfg.low_success_multiplier

        delay += self._uniform(cfg.jitter_range)

        if cfg.long_pause_probability > 0 and self._rng.random() < cfg.long_pause_probability:
            delay += self._uniform(cfg.long_pause_range)

        return max(cfg.delay_floor, delay)

    def _maybe_break_locked(self, now: float) -> float:
        """Start a stealth break when one is due; returns the shared pause length left."""

        cfg = self.config
        if self._requests_since_break >= self._next_break_after:
            duration = self._uniform(cfg.break_duration_range)
            self._pause_until = max(self._pause_until, now + duration)
            self._requests_since_break = 0
            self._next_break_after = self._draw_break_threshold()
            self._breaks_taken += 1
            LOGGER.info("Stealth break for %.1fs after %d requests", duration, self._total_requests)

        every = cfg.session_break_every_seconds
        if every is not None and now - self._last_session_break >= every:
            duration = self._uniform(cfg.session_break_duration_range)
            self._pause_until = max(self._pause_until, now + duration)
            self._last_session_break = now
            self._breaks_taken += 1
            LOGGER.info("Session stealth break for %.1fs", duration)

        return max(0.0, self._pause_until - now)

    def plan_request(self, url: str) -> RequestPlan:
        """Reserve the next request slot without sleeping."""

        with self._lock:
            now = self._clock()
            pause = self._maybe_break_locked(now)
            delay = self._compute_delay_locked(now)
            identity = self.identities.choose(self._rng)
            headers = self.identities.headers_for(
                identity,
                url,
                self._rng,
                dnt_probability=self.config.dnt_probability,
                referrer_probability=self.config.referrer_probability,
            )
            self._total_requests += 1
            self._requests_since_break += 1
        return RequestPlan(identity=identity, headers=headers, delay_seconds=delay, pause_seconds=pause)

    def before_request(self, url: str) -> RequestPlan:
        """Plan the next request and wait out its delay and any active break."""

        plan = self.plan_request(url)
        if plan.wait_seconds > 0:
            self._sleep(plan.wait_seconds)
        self.mark_sent()
        return plan

    def mark_sent(self) -> None:
        """Note that a request is leaving now; feeds the burst window."""

        with self._lock:
            self._request_times.append(self._clock())

    def record_outcome(self, success: bool) -> None:
        with self._lock:
            self._outcomes.append(bool(success))

    def wait(self, seconds: float) -> None:
        if seconds > 0:
            self._sleep(seconds)

    def snapshot(self) -> dict[str, float | int]:
        with self._lock:
            return {
                "total_requests": self._total_requests,
                "requests_since_break": self._requests_since_break,
                "next_break_after": self._next_break_after,
                "breaks_taken": self._breaks_taken,
                "success_rate": round(self._success_rate_locked(), 4),
                "session_seconds": round(self._clock() - self._session_start, 3),
            }


__all__ = [
    "Identity",
    "IdentityPool",
    "RequestPlan",
    "StealthController",
]
