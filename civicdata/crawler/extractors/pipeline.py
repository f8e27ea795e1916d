"""Run every sub-extractor over a parsed page, isolating their failures."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Callable, Iterable

from ..constants import DEFAULT_ALLOWED_FILE_TYPES, DEFAULT_IGNORED_QUERY_PARAMS
from ..types import ExtractedRecord
from ..url import DomainScope, discover_links
from .contacts import extract_contacts
from .documents import extract_documents
from .entities import extract_entities
from .forms import extract_forms
from .navigation import extract_navigation
from .page import ParsedPage
from .structured_data import extract_structured_data
from .tables import extract_tables


LOGGER = logging.getLogger(__name__)

Extractor = Callable[[ParsedPage], Any]

# Record fields filled by sub-extractors, in run order.
EXTRACTOR_FIELDS = ("tables", "contacts", "documents", "entities", "structured_data", "forms", "navigation")


@dataclass(slots=True)
class ExtractionConfig:
    allowed_domains: list[str] | None = None
    allowed_file_types: tuple[str, ...] = DEFAULT_ALLOWED_FILE_TYPES
    include_nofollow: bool = False
    ignored_query_params: tuple[str, ...] = DEFAULT_IGNORED_QUERY_PARAMS
    keep_text: bool = True
    disabled: frozenset[str] = field(default_factory=frozenset)


class ExtractionPipeline:
    """Union of independently run sub-extractors plus outbound link discovery.

    A sub-extractor that raises leaves its field as None and records the
    error under its name; the others still run.
    """

    def __init__(
        self,
        config: ExtractionConfig | None = None,
        *,
        extractors: dict[str, Extractor] | None = None,
    ) -> None:
        self.config = config or ExtractionConfig()
        allowed = self.config.allowed_domains
        self.scope = DomainScope(allowed) if allowed is not None else None
        self.extractors = extractors if extractors is not None else self._default_extractors()

    def _default_extractors(self) -> dict[str, Extractor]:
        return {
            "tables": extract_tables,
            "contacts": extract_contacts,
            "documents": partial(
                extract_documents,
                allowed_file_types=self.config.allowed_file_types,
                allowed_domains=self.config.allowed_domains,
            ),
            "entities": extract_entities,
            "structured_data": extract_structured_data,
            "forms": extract_forms,
            "navigation": extract_navigation,
        }

    @property
    def names(self) -> list[str]:
        return [name for name in self.extractors if name not in self.config.disabled]

    def extract(self, page: ParsedPage) -> ExtractedRecord:
        record = ExtractedRecord(url=page.url, text=page.text if self.config.keep_text else None)

        for name in self.names:
            try:
                value = self.extractors[name](page)
            except Exception as exc:
                LOGGER.warning("Extractor %s failed for %s: %s: %s", name, page.url, exc.__class__.__name__, exc)
                record.errors[name] = f"{exc.__class__.__name__}: {exc}"
                continue
            if name in EXTRACTOR_FIELDS:
                setattr(record, name, value)

        record.links = self._discover_links(page, record)
        return record

    def _discover_links(self, page: ParsedPage, record: ExtractedRecord) -> list[str]:
        if page.soup is None:
            return []
        try:
            return discover_links(
                page.soup,
                base_url=page.url,
                scope=self.scope,
                include_nofollow=self.config.include_nofollow,
                ignored_params=self.config.ignored_query_params,
            )
        except Exception as exc:
            LOGGER.warning("Link discovery failed for %s: %s", page.url, exc)
            record.errors["links"] = f"{exc.__class__.__name__}: {exc}"
            return []


def build_extraction_pipeline(
    *,
    allowed_domains: Iterable[str] | None,
    allowed_file_types: Iterable[str] = DEFAULT_ALLOWED_FILE_TYPES,
    ignored_query_params: Iterable[str] = DEFAULT_IGNORED_QUERY_PARAMS,
) -> ExtractionPipeline:
    return ExtractionPipeline(
        ExtractionConfig(
            allowed_domains=list(allowed_domains) if allowed_domains is not None else None,
            allowed_file_types=tuple(allowed_file_types),
            ignored_query_params=tuple(ignored_query_params),
        )
    )


__all__ = [
    "EXTRACTOR_FIELDS",
    "ExtractionConfig",
    "ExtractionPipeline",
    "Extractor",
    "build_extraction_pipeline",
]
