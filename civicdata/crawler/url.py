"""Canonical URLs and allow-list scope for council sites.

Council CMSes hand out the same page under many spellings: session ids in
the path (`;jsessionid=...`), campaign parameters on newsletter links, and
`www.` on some hosts but not others. Everything here collapses those so the
frontier and the change detector see one URL per page.
"""

from __future__ import annotations

import re
from fnmatch import fnmatchcase
from typing import Iterable, Mapping, Sequence
from urllib.parse import parse_qsl, urlencode, urljoin, urlsplit, urlunsplit

from bs4 import BeautifulSoup

from .constants import DEFAULT_IGNORED_QUERY_PARAMS


DEFAULT_PORTS = {"http": 80, "https": 443}
SESSION_PATH_PARAM_RE = re.compile(r";(?:jsessionid|phpsessid|sid)=[^/?#]*", re.IGNORECASE)


def normalize_domain(value: str) -> str:
    """Host of a URL or bare domain, lowercased and without `www.`."""

    raw = (value or "").strip().lower()
    if not raw:
        return ""
    try:
        host = urlsplit(raw if "://" in raw else "//" + raw).hostname or ""
    except ValueError:
        return ""
    host = host.strip(".")
    return host[4:] if host.startswith("www.") else host


def homepage_of(url: str) -> str:
    parts = urlsplit(url)
    return f"{parts.scheme}://{parts.netloc}/"


def is_ignored_param(key: str, patterns: Sequence[str] = DEFAULT_IGNORED_QUERY_PARAMS) -> bool:
    lowered = key.strip().lower()
    return bool(lowered) and any(fnmatchcase(lowered, pattern) for pattern in patterns)


def _canonical_path(path: str) -> str:
    segments: list[str] = []
    for segment in SESSION_PATH_PARAM_RE.sub("", path).split("/"):
        if segment in ("", "."):
            continue
        if segment == "..":
            if segments:
                segments.pop()
            continue
        segments.append(segment)
    return "/" + "/".join(segments)


def _canonical_query(query: str, ignored: Sequence[str]) -> str:
    kept = [(key, value) for key, value in parse_qsl(query, keep_blank_values=True) if not is_ignored_param(key, ignored)]
    return urlencode(sorted(kept))


def normalize_url(
    url: str | None,
    *,
    ignored_params: Sequence[str] = DEFAULT_IGNORED_QUERY_PARAMS,
) -> str | None:
    """Canonical form of an absolute http(s) URL, or None if it is not one.

    The host is lowercased and credentials, default ports, fragments, session
    path parameters and ignored query keys are removed. Dot segments are
    resolved, the trailing slash is dropped and the query is sorted.
    """

    if not url or not url.strip():
        return None
    try:
        parts = urlsplit(url.strip())
        port = parts.port
    except ValueError:
        return None

    scheme = parts.scheme.lower()
    host = (parts.hostname or "").rstrip(".")
    if scheme not in DEFAULT_PORTS or not host:
        return None

    netloc = host if port in (None, DEFAULT_PORTS[scheme]) else f"{host}:{port}"
    return urlunsplit(
        (scheme, netloc, _canonical_path(parts.path), _canonical_query(parts.query, ignored_params), "")
    )


def resolve_url(
    base_url: str,
    href: str | None,
    *,
    ignored_params: Sequence[str] = DEFAULT_IGNORED_QUERY_PARAMS,
) -> str | None:
    """Absolute canonical URL for an href, or None for in-page and non-web links."""

    candidate = (href or "").strip()
    if not candidate or candidate.startswith("#"):
        return None
    try:
        scheme = urlsplit(candidate).scheme.lower()
    except ValueError:
        return None
    if scheme and scheme not in DEFAULT_PORTS:
        # mailto:, tel:, javascript: and friends
        return None
    return normalize_url(urljoin(base_url, candidate), ignored_params=ignored_params)


class DomainScope:
    """Allow-listed domains; a host belongs to its longest matching suffix.

    Subdomains are in scope (`planning.example.gov.uk` under
    `example.gov.uk`) but look-alikes are not (`notexample.gov.uk`).
    """

    def __init__(self, domains: Iterable[str] | Mapping[str, object]) -> None:
        normalized = (normalize_domain(domain) for domain in domains)
        # longest first so the first hit is the most specific
        self.domains = tuple(sorted(dict.fromkeys(d for d in normalized if d), key=len, reverse=True))

    def match(self, url_or_host: str) -> str | None:
        host = normalize_domain(url_or_host)
        if not host:
            return None
        for domain in self.domains:
            if host == domain or host.endswith("." + domain):
                return domain
        return None

    def __contains__(self, url_or_host: str) -> bool:
        return self.match(url_or_host) is not None

    def __len__(self) -> int:
        return len(self.domains)


def has_file_extension(url: str, extensions: Iterable[str]) -> bool:
    """True when the URL path (not its query) ends with one of `extensions`."""

    return urlsplit(url).path.lower().endswith(tuple(ext.lower() for ext in extensions))


def discover_links(
    html: str | bytes | BeautifulSoup,
    *,
    base_url: str,
    scope: DomainScope | None = None,
    include_nofollow: bool = False,
    ignored_params: Sequence[str] = DEFAULT_IGNORED_QUERY_PARAMS,
) -> list[str]:
    """Crawlable links of a page, in document order and without repeats.

    A `<base href>` in the document overrides `base_url` for resolution.
    Links marked `rel="nofollow"` are skipped unless `include_nofollow`.
    """

    soup = html if isinstance(html, BeautifulSoup) else BeautifulSoup(html, "lxml")
    base_tag = soup.find("base", href=True)
    if base_tag is not None:
        base_url = urljoin(base_url, base_tag["href"])

    links: dict[str, None] = {}
    for element in soup.find_all(["a", "area"], href=True):
        rel = {value.lower() for value in element.get("rel") or ()}
        if "nofollow" in rel and not include_nofollow:
            continue
        url = resolve_url(base_url, element["href"], ignored_params=ignored_params)
        if url is None or (scope is not None and url not in scope):
            continue
        links.setdefault(url)
    return list(links)


__all__ = [
    "DEFAULT_PORTS",
    "DomainScope",
    "discover_links",
    "has_file_extension",
    "homepage_of",
    "is_ignored_param",
    "normalize_domain",
    "normalize_url",
    "resolve_url",
]
