"""Outbound links to downloadable documents (PDF, spreadsheets, data files)."""

from __future__ import annotations

from typing import Iterable
from urllib.parse import urlsplit

from ..constants import DEFAULT_ALLOWED_FILE_TYPES
from ..patterns import FILE_SIZE_RE
from ..types import JSONDict
from ..url import DomainScope, has_file_extension, resolve_url
from .page import ParsedPage


MAX_DOCUMENTS = 100

# Ordered: first matching keyword group names the document type.
DOCUMENT_TYPE_RULES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("minutes", ("minutes",)),
    ("agenda", ("agenda",)),
    ("financial", ("budget", "spending", "accounts", "expenditure", "financial", "statement of accounts")),
    ("policy", ("policy", "strategy", "procedure")),
    ("plan", ("local plan", "plan")),
    ("consultation", ("consultation", "survey")),
    ("report", ("report", "review", "assessment")),
    ("form", ("form", "application")),
    ("data", ("dataset", "data", "statistics")),
)


def document_type_from_title(title: str, url: str = "") -> str:
    haystack = f"{title} {urlsplit(url).path}".lower()
    for doc_type, keywords in DOCUMENT_TYPE_RULES:
        if any(keyword in haystack for keyword in keywords):
            return doc_type
    return "document"


def file_type_of(url: str) -> str:
    path = urlsplit(url).path.lower()
    _, dot, ext = path.rpartition(".")
    return ext if dot and ext and "/" not in ext else "unknown"


def extract_documents(
    page: ParsedPage,
    *,
    allowed_file_types: Iterable[str] = DEFAULT_ALLOWED_FILE_TYPES,
    allowed_domains: Iterable[str] | None = None,
    max_documents: int = MAX_DOCUMENTS,
) -> list[JSONDict]:
    """Return `{url, title, type, file_type, size}` for each linked document.

    The size is a hint lifted from the link's surrounding text, e.g.
    "(PDF, 1.2MB)". Links outside `allowed_domains` are dropped.
    """

    if page.soup is None:
        return []

    extensions = tuple(allowed_file_types)
    scope = DomainScope(allowed_domains) if allowed_domains is not None else None
    documents: list[JSONDict] = []
    seen: set[str] = set()

    for anchor in page.soup.find_all("a", href=True):
        if len(documents) >= max_documents:
            break
        url = resolve_url(page.url, anchor.get("href"))
        if not url or url in seen or not has_file_extension(url, extensions):
            continue
        if scope is not None and url not in scope:
            continue
        seen.add(url)

        file_type = file_type_of(url)
        link_text = anchor.get_text(" ", strip=True)
        context = anchor.parent.get_text(" ", strip=True) if anchor.parent is not None else link_text
        size_match = FILE_SIZE_RE.search(context)
        documents.append(
            {
                "url": url,
                "title": link_text or f"{file_type.upper()} file",
                "type": document_type_from_title(link_text, url),
                "file_type": file_type,
                "size": size_match.group(1) if size_match else None,
                "parent_page": page.url,
            }
        )
    return documents


__all__ = [
    "MAX_DOCUMENTS",
    "document_type_from_title",
    "extract_documents",
    "file_type_of",
]
