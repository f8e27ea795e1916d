"""Pattern-based named entity extraction with per-pattern confidence."""

from __future__ import annotations

import re
from typing import Iterable

from ..patterns import (
    DATE_RE,
    EMAIL_RE,
    MONEY_RE,
    ORGANIZATION_RES,
    PERSON_RES,
    POSTCODE_RE,
    UK_PHONE_RE,
)
from ..types import EntityType, ExtractedEntity
from .page import ParsedPage


MAX_ENTITIES = 50
CONTEXT_CHARS = 100

# (entity type, pattern, capture group holding the value, confidence)
ENTITY_RULES: tuple[tuple[EntityType, re.Pattern[str], int, float], ...] = (
    *((EntityType.PERSON, pattern, 1, 0.85) for pattern in PERSON_RES),
    *((EntityType.ORGANIZATION, pattern, 1, 0.80) for pattern in ORGANIZATION_RES),
    (EntityType.MONEY, MONEY_RE, 0, 0.95),
    (EntityType.DATE, DATE_RE, 1, 0.90),
    (EntityType.PHONE, UK_PHONE_RE, 0, 0.88),
    (EntityType.EMAIL, EMAIL_RE, 0, 0.95),
    (EntityType.POSTCODE, POSTCODE_RE, 0, 0.92),
)


def _context(text: str, start: int, end: int, width: int = CONTEXT_CHARS) -> str:
    pad = max(0, (width - (end - start)) // 2)
    left = max(0, start - pad)
    snippet = text[left : left + max(width, end - start)]
    return re.sub(r"\s+", " ", snippet).strip()


def find_entities(
    text: str,
    rules: Iterable[tuple[EntityType, re.Pattern[str], int, float]] = ENTITY_RULES,
) -> list[ExtractedEntity]:
    """Apply each rule in order, keeping the first hit per `(type, value)`."""

    found: list[ExtractedEntity] = []
    seen: set[tuple[EntityType, str]] = set()
    for entity_type, pattern, group, confidence in rules:
        for match in pattern.finditer(text):
            value = match.group(group).strip()
            key = (entity_type, value.lower())
            if not value or key in seen:
                continue
            seen.add(key)
            found.append(
                ExtractedEntity(
                    type=entity_type,
                    value=value,
                    context=_context(text, match.start(), match.end()),
                    confidence=confidence,
                )
            )
    return found


def extract_entities(page: ParsedPage, *, limit: int = MAX_ENTITIES) -> list[ExtractedEntity]:
    return find_entities(page.raw_text or page.text)[:limit]


__all__ = [
    "CONTEXT_CHARS",
    "ENTITY_RULES",
    "MAX_ENTITIES",
    "extract_entities",
    "find_entities",
]
