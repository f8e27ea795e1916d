"""Parse fetched bytes once into a DOM plus cleaned main text."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from bs4 import BeautifulSoup, Comment
from readability import Document as ReadabilityDocument
import trafilatura

from ..types import ContentKind, FetchResult


LOGGER = logging.getLogger(__name__)

NON_VISIBLE_TAGS = frozenset({"script", "style", "noscript", "template"})


def visible_text(soup: BeautifulSoup) -> str:
    """Whitespace-joined text of every rendered node (scripts and styles excluded)."""

    parts: list[str] = []
    for node in soup.find_all(string=True):
        if isinstance(node, Comment) or node.parent is None or node.parent.name in NON_VISIBLE_TAGS:
            continue
        stripped = node.strip()
        if stripped:
            parts.append(stripped)
    return " ".join(parts)


@dataclass(slots=True)
class PageParserConfig:
    """Config for main-text extraction."""

    use_trafilatura: bool = True
    use_readability: bool = True
    merge_separator: str = "\n\n"


@dataclass(slots=True)
class ParsedPage:
    """One fetched document as seen by analysis, scoring and extraction.

    `soup` is None for non-HTML content; DOM-driven extractors then return
    empty results and text-driven ones work from `text`.
    """

    url: str
    content_kind: ContentKind
    text: str
    title: str | None = None
    description: str | None = None
    soup: BeautifulSoup | None = None
    raw_text: str = ""
    last_modified_header: str | None = None
    metadata: dict[str, object] = field(default_factory=dict)

    @property
    def is_html(self) -> bool:
        return self.soup is not None

    @property
    def lower_text(self) -> str:
        return self.text.lower()

    @property
    def word_count(self) -> int:
        return len(re.findall(r"\b\w+\b", self.text))

    def select(self, selector: str) -> list:
        if self.soup is None:
            return []
        return self.soup.select(selector)


class PageParser:
    """Build `ParsedPage` objects using Trafilatura + Readability on BeautifulSoup."""

    def __init__(self, config: PageParserConfig | None = None) -> None:
        self.config = config or PageParserConfig()

    def parse_html(self, url: str, html: str | bytes, *, last_modified: str | None = None) -> ParsedPage:
        html_text = html.decode("utf-8", errors="replace") if isinstance(html, bytes) else html
        soup = BeautifulSoup(html_text, "lxml")

        title = self._extract_title(soup)
        trafilatura_text = self._extract_with_trafilatura(html_text)
        readability_text, readability_title = self._extract_with_readability(html_text)
        if not title and readability_title:
            title = readability_title

        text = self._merge_texts(trafilatura_text, readability_text)
        raw_text = visible_text(soup)
        if not text:
            text = raw_text

        return ParsedPage(
            url=url,
            content_kind=ContentKind.HTML,
            text=text,
            title=title,
            description=self._extract_description(soup),
            soup=soup,
            raw_text=raw_text,
            last_modified_header=last_modified,
            metadata={
                "raw_chars": len(html_text),
                "trafilatura_chars": len(trafilatura_text),
                "readability_chars": len(readability_text),
            },
        )

    def parse_text(
        self,
        url: str,
        text: str,
        *,
        content_kind: ContentKind = ContentKind.TEXT,
        title: str | None = None,
        last_modified: str | None = None,
    ) -> ParsedPage:
        cleaned = text.strip()
        return ParsedPage(
            url=url,
            content_kind=content_kind,
            text=cleaned,
            title=title,
            raw_text=cleaned,
            last_modified_header=last_modified,
        )

    def parse_fetch(self, fetch_result: FetchResult, *, last_modified: str | None = None) -> ParsedPage:
        """Parse an HTML or text fetch result; other kinds need a converter."""

        url = fetch_result.final_url or fetch_result.url
        if fetch_result.content_kind == ContentKind.HTML:
            return self.parse_html(url, fetch_result.text, last_modified=last_modified)
        return self.parse_text(url, fetch_result.text, last_modified=last_modified)

    def _extract_with_trafilatura(self, html_text: str) -> str:
        if not self.config.use_trafilatura:
            return ""
        try:
            extracted = trafilatura.extract(
                html_text,
                output_format="txt",
                include_comments=False,
                include_tables=True,
                include_images=False,
                deduplicate=True,
                favor_precision=True,
            )
        except Exception as exc:
            LOGGER.debug("Trafilatura extraction failed: %s: %s", exc.__class__.__name__, exc)
            return ""
        return (extracted or "").strip()

    def _extract_with_readability(self, html_text: str) -> tuple[str, str | None]:
        if not self.config.use_readability:
            return "", None
        try:
            doc = ReadabilityDocument(html_text)
            title = (doc.short_title() or "").strip() or None
            summary_html = doc.summary()
        except Exception as exc:
            LOGGER.debug("Readability extraction failed: %s: %s", exc.__class__.__name__, exc)
            return "", None

        if not summary_html:
            return "", title
        text = BeautifulSoup(summary_html, "lxml").get_text("\n", strip=True).strip()
        return text, title

    def _merge_texts(self, *texts: str) -> str:
        ordered_paragraphs: list[str] = []
        seen: set[str] = set()

        for text in texts:
            for paragraph in self._split_paragraphs(text):
                key = re.sub(r"[^a-z0-9]+", " ", paragraph.lower()).strip()
                if not key or key in seen:
                    continue
                seen.add(key)
                ordered_paragraphs.append(paragraph)

        return self.config.merge_separator.join(ordered_paragraphs).strip()

    @staticmethod
    def _split_paragraphs(text: str) -> list[str]:
        normalized = text.replace("\r\n", "\n").replace("\r", "\n").strip()
        if not normalized:
            return []
        paragraphs = []
        for chunk in re.split(r"\n\s*\n+", normalized):
            compact = re.sub(r"[ \t]+", " ", chunk).strip()
            if compact:
                paragraphs.append(compact)
        return paragraphs

    @staticmethod
    def _extract_title(soup: BeautifulSoup) -> str | None:
        if soup.title and soup.title.get_text(strip=True):
            return soup.title.get_text(" ", strip=True)
        heading = soup.find(["h1", "h2"])
        if heading:
            text = heading.get_text(" ", strip=True)
            if text:
                return text
        return None

    @staticmethod
    def _extract_description(soup: BeautifulSoup) -> str | None:
        for attrs in ({"name": "description"}, {"property": "og:description"}):
            tag = soup.find("meta", attrs=attrs)
            if tag and tag.get("content"):
                return str(tag["content"]).strip() or None
        return None


__all__ = [
    "PageParser",
    "PageParserConfig",
    "ParsedPage",
    "visible_text",
]
