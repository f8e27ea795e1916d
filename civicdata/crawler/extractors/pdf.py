"""Pluggable document converters turning binary downloads into plain text."""

from __future__ import annotations

import io
import logging
import re
from dataclasses import dataclass, field
from typing import Protocol

import pdfplumber
from pypdf import PdfReader

from ..types import ContentKind


LOGGER = logging.getLogger(__name__)

TOKEN_RE = re.compile(r"[A-Za-z0-9'£.,]+")

BOILERPLATE_LINE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"^\s*page\s+\d+\s*(of\s*\d+)?\s*$", re.IGNORECASE),
    re.compile(r"^\s*\d+\s*/\s*\d+\s*$", re.IGNORECASE),
    re.compile(r"\ball rights reserved\b", re.IGNORECASE),
    re.compile(r"\bprinted on\b", re.IGNORECASE),
)


@dataclass(slots=True)
class ConvertedDocument:
    text: str
    title: str | None = None
    page_count: int = 0
    extractor: str | None = None
    error: str | None = None
    metadata: dict[str, int | str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.error is None and bool(self.text.strip())


class DocumentConverter(Protocol):
    """Anything that can turn document bytes of a given kind into text."""

    def supports(self, content_kind: ContentKind) -> bool:
        ...

    def convert(self, body: bytes) -> ConvertedDocument:
        ...


@dataclass(slots=True)
class PdfConverterConfig:
    prefer_pypdf: bool = True
    use_pdfplumber_fallback: bool = True
    max_pages: int | None = 200
    min_words_per_page: int = 20
    repeated_line_threshold_ratio: float = 0.6


class PdfTextConverter:
    """Extract PDF text with pypdf, falling back to pdfplumber on low-signal output.

    Repeated running headers/footers and page-number lines are dropped;
    numeric rows are kept because budget and spending PDFs are mostly figures.
    """

    def __init__(self, config: PdfConverterConfig | None = None) -> None:
        self.config = config or PdfConverterConfig()

    def supports(self, content_kind: ContentKind) -> bool:
        return content_kind == ContentKind.PDF

    def convert(self, body: bytes) -> ConvertedDocument:
        pages: list[str] = []
        title: str | None = None
        error: str | None = None
        extractor = "pypdf"

        if self.config.prefer_pypdf:
            pages, title, error = self._extract_with_pypdf(body)

        if self.config.use_pdfplumber_fallback and self._is_low_signal(pages):
            plumber_pages, plumber_error = self._extract_with_pdfplumber(body)
            if self._word_count(plumber_pages) > self._word_count(pages):
                pages = plumber_pages
                extractor = "pdfplumber"
                error = None
            elif not pages:
                error = error or plumber_error

        if not pages:
            return ConvertedDocument(text="", title=title, extractor=extractor, error=error or "No extractable text from PDF")

        text, dropped = self._clean_pages(pages)
        return ConvertedDocument(
            text=text,
            title=title,
            page_count=len(pages),
            extractor=extractor,
            error=None if text else "PDF text was empty after cleaning",
            metadata={"dropped_lines": dropped},
        )

    def _extract_with_pypdf(self, body: bytes) -> tuple[list[str], str | None, str | None]:
        try:
            reader = PdfReader(io.BytesIO(body))
            if reader.is_encrypted:
                try:
                    reader.decrypt("")
                except Exception:
                    return [], None, "PDF is encrypted and could not be decrypted"

            title = None
            if reader.metadata is not None and reader.metadata.title:
                title = str(reader.metadata.title).strip() or None

            limit = self.config.max_pages or len(reader.pages)
            pages = [page.extract_text() or "" for page in reader.pages[:limit]]
            return pages, title, None
        except Exception as exc:
            return [], None, f"pypdf extraction failed: {exc.__class__.__name__}: {exc}"

    def _extract_with_pdfplumber(self, body: bytes) -> tuple[list[str], str | None]:
        try:
            with pdfplumber.open(io.BytesIO(body)) as pdf:
                limit = self.config.max_pages or len(pdf.pages)
                pages = [page.extract_text() or "" for page in pdf.pages[:limit]]
            return pages, None
        except Exception as exc:
            return [], f"pdfplumber extraction failed: {exc.__class__.__name__}: {exc}"

    def _is_low_signal(self, pages: list[str]) -> bool:
        if not pages:
            return True
        return self._word_count(pages) < self.config.min_words_per_page * len(pages)

    @staticmethod
    def _word_count(pages: list[str]) -> int:
        return sum(len(TOKEN_RE.findall(page)) for page in pages)

    def _clean_pages(self, pages: list[str]) -> tuple[str, int]:
        page_lines = [self._normalize_lines(page) for page in pages]

        line_freq: dict[str, int] = {}
        for lines in page_lines:
            for key in {line.lower() for line in lines}:
                line_freq[key] = line_freq.get(key, 0) + 1

        repeated_min = max(2, int(len(page_lines) * self.config.repeated_line_threshold_ratio))
        kept: list[str] = []
        dropped = 0
        for lines in page_lines:
            for line in lines:
                if any(pattern.search(line) for pattern in BOILERPLATE_LINE_PATTERNS):
                    dropped += 1
                    continue
                if len(page_lines) > 1 and line_freq.get(line.lower(), 0) >= repeated_min and len(line) <= 120:
                    dropped += 1
                    continue
                kept.append(line)

        return "\n".join(kept).strip(), dropped

    @staticmethod
    def _normalize_lines(page_text: str) -> list[str]:
        text = page_text.replace("\r\n", "\n").replace("\r", "\n").replace("\xa0", " ")
        lines = []
        for raw in text.split("\n"):
            line = re.sub(r"\s+", " ", raw).strip()
            if line:
                lines.append(line)
        return lines


__all__ = [
    "ConvertedDocument",
    "DocumentConverter",
    "PdfConverterConfig",
    "PdfTextConverter",
]
