"""Tests for identity rotation and request pacing."""

import random
from dataclasses import replace

import pytest

from civicdata.crawler import StealthConfig
from civicdata.crawler.constants import ACCEPT_LANGUAGES, REFERRER_SITES, USER_AGENTS
from civicdata.crawler.stealth import IdentityPool, StealthController

from conftest import BASE, FakeClock


ALL_AGENTS = {agent for agents in USER_AGENTS.values() for agent in agents}


def fixed_config(**overrides):
    """Instant profile with deterministic ranges, adjusted per test."""
    return replace(StealthConfig.instant(), **overrides)


def controller(config, clock=None, sleeps=None):
    return StealthController(
        config,
        clock=clock or FakeClock(),
        sleep=(sleeps.append if sleeps is not None else lambda _s: None),
        rng=random.Random(7),
    )


class TestIdentityPool:
    """Browser personas and their headers."""

    def test_pool_covers_every_user_agent(self):
        """One identity per configured user agent."""
        pool = IdentityPool()
        assert len(pool) == len(ALL_AGENTS)
        assert {identity.user_agent for identity in pool.identities} == ALL_AGENTS

    def test_empty_pool_is_rejected(self):
        """A pool needs at least one user agent."""
        with pytest.raises(ValueError):
            IdentityPool(user_agents={})

    def test_headers_always_carry_identity(self):
        """User agent, language and connection headers are always set."""
        pool = IdentityPool()
        rng = random.Random(1)
        identity = pool.choose(rng)
        headers = pool.headers_for(identity, f"{BASE}/planning", rng, dnt_probability=0.0, referrer_probability=0.0)

        assert headers["User-Agent"] == identity.user_agent
        assert headers["Accept-Language"] in ACCEPT_LANGUAGES
        assert headers["Connection"] == "keep-alive"
        assert "DNT" not in headers
        assert "Referer" not in headers

    def test_optional_headers_follow_probabilities(self):
        """Certain probabilities always add DNT and a plausible referrer."""
        pool = IdentityPool()
        rng = random.Random(2)
        headers = pool.headers_for(pool.choose(rng), f"{BASE}/planning", rng, dnt_probability=1.0, referrer_probability=1.0)

        assert headers["DNT"] == "1"
        assert headers["Referer"] in {*REFERRER_SITES, f"{BASE}/"}


class TestDelays:
    """Per-request delay computation."""

    def test_delay_floor(self):
        """Delays never drop below the configured floor."""
        stealth = controller(fixed_config(min_delay=0.1, max_delay=0.1, delay_floor=0.8))
        assert stealth.compute_delay() == pytest.approx(0.8)

    def test_delay_within_window(self):
        """Without penalties the delay is drawn from the min/max window."""
        stealth = controller(fixed_config(min_delay=2.0, max_delay=5.0))
        for _ in range(20):
            assert 2.0 <= stealth.compute_delay() <= 5.0

    def test_burst_penalty(self):
        """Requests sent tighter than the burst floor are slowed down."""
        clock = FakeClock()
        stealth = controller(
            fixed_config(min_delay=1.0, max_delay=1.0, burst_floor_per_request=1.5, burst_penalty_range=(2.0, 2.0)),
            clock=clock,
        )
        first = stealth.before_request(f"{BASE}/a")
        second = stealth.before_request(f"{BASE}/b")
        assert first.delay_seconds == pytest.approx(1.0)
        assert second.delay_seconds == pytest.approx(3.0)

    def test_spaced_requests_are_not_penalized(self):
        """Sends spread wider than the burst floor keep the base delay."""
        clock = FakeClock()
        stealth = controller(
            fixed_config(min_delay=1.0, max_delay=1.0, burst_floor_per_request=1.5, burst_penalty_range=(2.0, 2.0)),
            clock=clock,
        )
        stealth.before_request(f"{BASE}/a")
        clock.advance(10.0)
        assert stealth.before_request(f"{BASE}/b").delay_seconds == pytest.approx(1.0)

    def test_overlapping_plans_do_not_count_as_sends(self):
        """Slots reserved by concurrent workers only count once they are sent."""
        clock = FakeClock()
        stealth = controller(
            fixed_config(min_delay=1.0, max_delay=1.0, burst_floor_per_request=1.5, burst_penalty_range=(2.0, 2.0)),
            clock=clock,
        )
        plans = [stealth.plan_request(f"{BASE}/{idx}") for idx in range(3)]
        assert [plan.delay_seconds for plan in plans] == pytest.approx([1.0, 1.0, 1.0])

    def test_low_success_rate_multiplier(self):
        """A poor recent success rate stretches delays by the multiplier."""
        stealth = controller(fixed_config(min_delay=1.0, max_delay=1.0))
        assert stealth.compute_delay() == pytest.approx(1.0)

        for outcome in (False, False, False, True):
            stealth.record_outcome(outcome)
        assert stealth.success_rate() == pytest.approx(0.25)
        assert stealth.compute_delay() == pytest.approx(1.5)


class TestBreaks:
    """Scheduled stealth and session breaks."""

    def test_break_after_request_budget(self):
        """The request after the break threshold waits out the break."""
        clock = FakeClock()
        sleeps = []
        stealth = controller(
            fixed_config(break_every_range=(2, 2), break_duration_range=(10.0, 10.0)),
            clock=clock,
            sleeps=sleeps,
        )

        assert stealth.before_request(f"{BASE}/1").pause_seconds == 0
        assert stealth.before_request(f"{BASE}/2").pause_seconds == 0
        assert stealth.before_request(f"{BASE}/3").pause_seconds == pytest.approx(10.0)
        assert sleeps == [pytest.approx(10.0)]
        assert stealth.snapshot()["breaks_taken"] == 1

    def test_break_is_shared_between_workers(self):
        """A request planned during an active break waits for the rest of it."""
        clock = FakeClock()
        stealth = controller(
            fixed_config(break_every_range=(2, 2), break_duration_range=(10.0, 10.0)),
            clock=clock,
        )
        for idx in range(3):
            stealth.plan_request(f"{BASE}/{idx}")

        clock.advance(3.0)
        assert stealth.plan_request(f"{BASE}/late").pause_seconds == pytest.approx(7.0)

    def test_session_break(self):
        """A long-running session takes a longer periodic break."""
        clock = FakeClock()
        stealth = controller(
            fixed_config(session_break_every_seconds=60.0, session_break_duration_range=(30.0, 30.0)),
            clock=clock,
        )
        assert stealth.plan_request(f"{BASE}/a").pause_seconds == 0
        clock.advance(61.0)
        assert stealth.plan_request(f"{BASE}/b").pause_seconds == pytest.approx(30.0)

    def test_snapshot_counts_requests(self):
        """The snapshot reports request totals and the success rate."""
        stealth = controller(fixed_config())
        stealth.before_request(f"{BASE}/a")
        stealth.record_outcome(True)
        snapshot = stealth.snapshot()
        assert snapshot["total_requests"] == 1
        assert snapshot["success_rate"] == 1.0
