"""Tests for the stealth fetcher's retry and result handling."""

import random

import pytest
import requests

from civicdata.crawler import StealthConfig
from civicdata.crawler.constants import USER_AGENTS
from civicdata.crawler.fetcher import StealthFetcher
from civicdata.crawler.stealth import StealthController
from civicdata.crawler.types import FetchFailure, FetchResult

from conftest import BASE, make_response


URL = f"{BASE}/planning"
ALL_AGENTS = {agent for agents in USER_AGENTS.values() for agent in agents}


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def make_fetcher(make_config, site, sleeps):
    def _make(**overrides):
        config = make_config(**overrides)
        stealth = StealthController(StealthConfig.instant(), sleep=sleeps.append, rng=random.Random(3))
        return StealthFetcher(config, stealth=stealth, session_factory=site.session_factory, rng=random.Random(3))

    return _make


class TestSuccessfulFetch:
    """A 2xx response becomes a FetchResult."""

    def test_result_fields(self, make_fetcher, site):
        """Status, body, headers and the identity used are captured."""
        site.add(
            URL,
            make_response(URL, body="<p>Weekly list</p>", headers={"Last-Modified": "Fri, 08 Mar 2024 09:00:00 GMT"}),
        )
        result = make_fetcher().fetch(URL)

        assert isinstance(result, FetchResult)
        assert result.ok
        assert result.status_code == 200
        assert result.body == b"<p>Weekly list</p>"
        assert result.final_url == URL
        assert result.encoding == "utf-8"
        assert result.last_modified == "Fri, 08 Mar 2024 09:00:00 GMT"
        assert result.attempts == 1
        assert result.identity

    def test_request_carries_identity_headers(self, make_fetcher, site):
        """Each request goes out with a rotating browser identity and a timeout."""
        site.html(URL, "<p>ok</p>")
        make_fetcher().fetch(URL)

        call = site.calls[0]
        assert call["headers"]["User-Agent"] in ALL_AGENTS
        assert call["timeout"] == 5.0
        assert call["allow_redirects"] is True

    def test_invalid_url_is_not_requested(self, make_fetcher, site):
        """URLs outside the allowed schemes fail without a request."""
        result = make_fetcher().fetch("ftp://council.example.gov.uk/file")
        assert isinstance(result, FetchFailure)
        assert result.attempts == 0
        assert site.calls == []


class TestRetries:
    """Attempts are bounded by max_retries."""

    def test_persistent_server_error(self, make_fetcher, site):
        """Three 500 responses mean exactly three attempts and a failure."""
        site.add(URL, make_response(URL, status=500, body="error"))
        result = make_fetcher(max_retries=3).fetch(URL)

        assert isinstance(result, FetchFailure)
        assert result.status_code == 500
        assert result.attempts == 3
        assert site.requests_for(URL) == 3

    def test_client_errors_are_retried_too(self, make_fetcher, site):
        """Any non-2xx status counts as a failed attempt."""
        site.add(URL, make_response(URL, status=404), make_response(URL, body="<p>back</p>"))
        result = make_fetcher().fetch(URL)
        assert result.ok
        assert result.attempts == 2

    def test_transport_error_then_success(self, make_fetcher, site):
        """A connection error is retried and the next attempt can succeed."""
        site.add(URL, requests.ConnectionError("connection reset"), make_response(URL, body="<p>ok</p>"))
        result = make_fetcher().fetch(URL)

        assert isinstance(result, FetchResult)
        assert result.attempts == 2
        assert site.requests_for(URL) == 2

    def test_transport_error_message(self, make_fetcher, site):
        """The failure names the last error seen."""
        site.add(URL, requests.Timeout("read timed out"))
        result = make_fetcher(max_retries=2).fetch(URL)
        assert result.error.startswith("Timeout")
        assert result.status_code is None
        assert result.attempts == 2

    def test_backoff_between_attempts(self, make_fetcher, site, sleeps):
        """Waits grow exponentially and no wait follows the final attempt."""
        site.add(URL, make_response(URL, status=503))
        make_fetcher(retry_backoff_base_seconds=1.0, retry_backoff_multiplier=2.0).fetch(URL)
        assert sleeps == [pytest.approx(1.0), pytest.approx(2.0)]

    def test_single_attempt(self, make_fetcher, site):
        """max_retries=1 disables retrying."""
        site.add(URL, make_response(URL, status=500))
        result = make_fetcher(max_retries=1).fetch(URL)
        assert result.attempts == 1
        assert site.requests_for(URL) == 1


class TestClose:
    """Shutdown behaviour."""

    def test_closed_fetcher_refuses_work(self, make_fetcher, site):
        """After close no request is made."""
        fetcher = make_fetcher()
        fetcher.close()
        result = fetcher.fetch(URL)
        assert isinstance(result, FetchFailure)
        assert result.error == "Fetcher is closed"
        assert site.calls == []

    def test_close_closes_sessions(self, make_config, site):
        """Per-thread sessions are closed with the fetcher."""
        created = []

        def factory():
            session = site.session_factory()
            created.append(session)
            return session

        site.html(URL, "<p>ok</p>")
        with StealthFetcher(make_config(), stealth=StealthController(StealthConfig.instant()), session_factory=factory) as fetcher:
            fetcher.fetch(URL)
            fetcher.fetch(URL)

        assert len(created) == 1
        created[0].close.assert_called_once()
