"""Compiled text patterns shared by analysis, scoring and extraction."""

from __future__ import annotations

import re


EMAIL_RE = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")
UK_PHONE_RE = re.compile(r"(?:\+44|0)[\s-]?(?:\d{4}|\d{3})[\s-]?(?:\d{6}|\d{3})(?:[\s-]?\d{3})?")
MONEY_RE = re.compile(r"£\s?(\d{1,3}(?:,\d{3})+(?:\.\d{2})?|\d+(?:\.\d{2})?)(?:\s?(?:m|k|bn|million|billion))?", re.IGNORECASE)
SLASH_DATE_RE = re.compile(r"\b\d{1,2}/\d{1,2}/\d{4}\b")
DATE_RE = re.compile(
    r"\b(\d{1,2}/\d{1,2}/\d{4}|\d{4}-\d{2}-\d{2}|"
    r"\d{1,2}(?:st|nd|rd|th)?\s+(?:Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)[a-z]*\s+\d{4})\b",
    re.IGNORECASE,
)
POSTCODE_RE = re.compile(r"\b[A-Z]{1,2}\d[A-Z\d]?\s*\d[A-Z]{2}\b")
PERSON_RES = (
    re.compile(r"\b(?:Mr|Mrs|Ms|Dr|Prof|Cllr|Councillor)\.?\s+([A-Z][a-z]+(?:\s+[A-Z][a-z]+)+)"),
    re.compile(r"\b([A-Z][a-z]+\s+[A-Z][a-z]+)\s*,\s*(?:Councillor|Mayor|Leader)\b"),
)
ORGANIZATION_RES = (
    re.compile(r"\b((?:[A-Z][a-z]+\s+)+(?:Council|Committee|Department|Service|Team|Board|Authority))\b"),
)
WORD_RE = re.compile(r"\b[a-z][a-z'-]*\b")
FILE_SIZE_RE = re.compile(r"(\d+(?:\.\d+)?\s*(?:KB|MB|GB))", re.IGNORECASE)


def clean_phone(raw: str) -> str:
    return re.sub(r"[\s-]", "", raw)


def has_financial_data(text: str) -> bool:
    """True when the text mentions sterling amounts or budget vocabulary."""

    if MONEY_RE.search(text):
        return True
    lowered = text.lower()
    return any(term in lowered for term in ("budget", "expenditure", "spending", "revenue"))


def has_contact_info(text: str) -> bool:
    return bool(EMAIL_RE.search(text) or UK_PHONE_RE.search(text))


__all__ = [
    "DATE_RE",
    "EMAIL_RE",
    "FILE_SIZE_RE",
    "MONEY_RE",
    "ORGANIZATION_RES",
    "PERSON_RES",
    "POSTCODE_RE",
    "SLASH_DATE_RE",
    "UK_PHONE_RE",
    "WORD_RE",
    "clean_phone",
    "has_contact_info",
    "has_financial_data",
]
