"""Lenient date parsing for page metadata, HTTP headers and visible text."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime


TEXT_DATE_FORMATS = (
    "%d/%m/%Y",
    "%d-%m-%Y",
    "%d %B %Y",
    "%d %b %Y",
    "%B %d, %Y",
    "%b %d, %Y",
    "%B %Y",
)

ORDINAL_RE = re.compile(r"(\d{1,2})(st|nd|rd|th)\b", re.IGNORECASE)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_date(value: str | None) -> datetime | None:
    """Parse ISO-8601, RFC 2822 (HTTP) or common UK text dates; None when unparseable."""

    if not value:
        return None
    raw = value.strip()
    if not raw:
        return None

    try:
        return _as_utc(datetime.fromisoformat(raw.replace("Z", "+00:00")))
    except ValueError:
        pass

    try:
        return _as_utc(parsedate_to_datetime(raw))
    except (TypeError, ValueError, IndexError):
        pass

    cleaned = ORDINAL_RE.sub(r"\1", re.sub(r"\s+", " ", raw)).strip(" .,")
    for fmt in TEXT_DATE_FORMATS:
        try:
            return datetime.strptime(cleaned, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
    return None


def days_since(value: datetime, now: datetime | None = None) -> float:
    reference = now or datetime.now(timezone.utc)
    return (reference - _as_utc(value)).total_seconds() / 86_400


def most_recent(values: list[datetime]) -> datetime | None:
    return max(values) if values else None


__all__ = ["days_since", "most_recent", "parse_date"]
