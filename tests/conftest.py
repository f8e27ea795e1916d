"""
Pytest configuration and fixtures for the crawler test suite.

Nothing here touches the network: HTTP goes through a mocked
`requests.Session` that serves canned responses per URL.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Any, Callable
from unittest.mock import MagicMock

import pytest
import requests
from bs4 import BeautifulSoup
from requests.structures import CaseInsensitiveDict

from civicdata.crawler import CrawlConfig, SeedConfig, StealthConfig
from civicdata.crawler.extractors import ParsedPage, visible_text
from civicdata.crawler.types import ContentKind
from civicdata.crawler.url import normalize_url


BASE = "https://council.example.gov.uk"


PLANNING_HTML = """
<html>
<head>
  <title>Planning applications weekly list</title>
  <meta name="description" content="Planning applications received this week">
  <meta property="og:title" content="Planning applications">
</head>
<body>
  <nav class="breadcrumb"><a href="/">Home</a></nav>
  <main>
    <h1>Planning applications received</h1>
    <h2>Week commencing 1 March 2024</h2>
    <p>
      The council received the following planning application submissions this week.
      Each planning application can be viewed online and comments may be submitted to
      the planning team before the consultation deadline. Decisions are published on
      the register once a planning officer has reviewed each case. Application
      fees totalled £12,500.00 for the period. Contact planning@council.example.gov.uk
      or call 01234 567890 for help with any application.
    </p>
    <table class="data-table">
      <caption>Applications</caption>
      <tr><th>Reference</th><th>Address</th><th>Status</th></tr>
      <tr><td>24/0001/FUL</td><td>1 High Street</td><td>Pending</td></tr>
      <tr><td>24/0002/HOU</td><td>2 Mill Lane</td><td>Approved</td></tr>
      <tr><td>24/0003/LBC</td><td>3 Church Road</td><td>Refused</td></tr>
    </table>
    <ul>
      <li><a href="/planning/applications/24-0001">24/0001/FUL</a></li>
      <li><a href="/planning/applications/24-0002">24/0002/HOU</a></li>
      <li><a href="/documents/planning-register.pdf">Planning register (PDF, 1.2 MB)</a></li>
      <li><a href="https://elsewhere.example.com/page">External site</a></li>
    </ul>
  </main>
</body>
</html>
"""

THIN_HTML = """
<html>
<head><title>Transparency</title></head>
<body><p>Transparency information will appear here.</p></body>
</html>
"""


def link_page(title: str, links: list[str]) -> str:
    """Minimal HTML page linking to `links`."""

    anchors = "".join(f'<li><a href="{href}">{href}</a></li>' for href in links)
    return f"<html><head><title>{title}</title></head><body><h1>{title}</h1><ul>{anchors}</ul></body></html>"


def parsed_page(url: str, html: str, **kwargs: Any) -> ParsedPage:
    """Parse HTML without the main-text extractors so page text is predictable."""

    soup = BeautifulSoup(html, "lxml")
    text = visible_text(soup)
    title = soup.title.get_text(strip=True) if soup.title else None
    return ParsedPage(
        url=url,
        content_kind=ContentKind.HTML,
        text=text,
        title=title,
        soup=soup,
        raw_text=text,
        **kwargs,
    )


def make_response(
    url: str,
    *,
    status: int = 200,
    body: bytes | str = b"",
    content_type: str = "text/html; charset=utf-8",
    headers: dict[str, str] | None = None,
) -> requests.Response:
    response = requests.Response()
    response.status_code = status
    response.url = url
    response._content = body.encode("utf-8") if isinstance(body, str) else body
    response.headers = CaseInsensitiveDict({"Content-Type": content_type, **(headers or {})})
    response.encoding = "utf-8" if "charset" in content_type else None
    return response


class FakeSite:
    """Serves canned responses per normalized URL and records every request.

    A route may hold one response (served every time), a list (served in
    order, the last one repeating) or an exception to raise.
    """

    def __init__(self) -> None:
        self.routes: dict[str, Any] = {}
        self.calls: list[dict[str, Any]] = []
        self.served: dict[str, int] = defaultdict(int)
        self.on_get: Callable[[str], None] | None = None

    def add(self, url: str, *responses: Any) -> None:
        self.routes[normalize_url(url) or url] = list(responses)

    def html(self, url: str, body: str, **kwargs: Any) -> None:
        self.add(url, make_response(normalize_url(url) or url, body=body, **kwargs))

    def get(self, url: str, headers: dict[str, str] | None = None, timeout: float | None = None, **kwargs: Any):
        self.calls.append({"url": url, "headers": dict(headers or {}), "timeout": timeout, **kwargs})
        if self.on_get is not None:
            self.on_get(url)

        queue = self.routes.get(url)
        if not queue:
            return make_response(url, status=404, body="not found")

        idx = min(self.served[url], len(queue) - 1)
        self.served[url] += 1
        item = queue[idx]
        if isinstance(item, BaseException):
            raise item
        return item

    def requests_for(self, url: str) -> int:
        return sum(1 for call in self.calls if call["url"] == url)

    def session_factory(self) -> MagicMock:
        session = MagicMock(spec=requests.Session)
        session.get.side_effect = self.get
        return session


class FakeClock:
    def __init__(self, start: float = 1_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def make_config() -> Callable[..., CrawlConfig]:
    """Build a fast test config; keyword overrides go straight to `CrawlConfig`."""

    def _make(**overrides: Any) -> CrawlConfig:
        params: dict[str, Any] = {
            "seeds": [SeedConfig(url=f"{BASE}/")],
            "domains": ["council.example.gov.uk"],
            "max_depth": 3,
            "max_urls": 100,
            "concurrency": 1,
            "max_retries": 3,
            "retry_backoff_base_seconds": 0.0,
            "retry_backoff_multiplier": 1.0,
            "retry_jitter_seconds": 0.0,
            "timeout_range_seconds": (5.0, 5.0),
            "stealth": StealthConfig.instant(),
        }
        params.update(overrides)
        return CrawlConfig(**params)

    return _make


@pytest.fixture
def site() -> FakeSite:
    return FakeSite()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
