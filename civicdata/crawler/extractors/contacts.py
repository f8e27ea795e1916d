"""Contact details: e-mail addresses, UK phone numbers and postal addresses."""

from __future__ import annotations

from ..patterns import EMAIL_RE, UK_PHONE_RE, clean_phone
from ..types import JSONDict
from .page import ParsedPage


MAX_EMAILS = 15
MAX_PHONES = 10
MIN_PHONE_DIGITS = 10
ADDRESS_SELECTORS = ".address, .contact-address, [itemtype*='PostalAddress']"
ADDRESS_LENGTH_RANGE = (10, 200)


def _is_valid_email(value: str) -> bool:
    return bool(EMAIL_RE.fullmatch(value))


def _add_unique(bucket: list[str], value: str, limit: int) -> None:
    if value and value not in bucket and len(bucket) < limit:
        bucket.append(value)


def extract_emails(page: ParsedPage) -> list[str]:
    emails: list[str] = []
    for anchor in page.select("a[href^='mailto:']"):
        address = str(anchor.get("href", ""))[len("mailto:"):].split("?", maxsplit=1)[0].strip()
        if _is_valid_email(address):
            _add_unique(emails, address, MAX_EMAILS)

    for match in EMAIL_RE.finditer(page.raw_text or page.text):
        _add_unique(emails, match.group(0), MAX_EMAILS)
    return emails


def extract_phones(page: ParsedPage) -> list[str]:
    phones: list[str] = []
    for anchor in page.select("a[href^='tel:']"):
        number = clean_phone(str(anchor.get("href", ""))[len("tel:"):])
        _add_unique(phones, number, MAX_PHONES)

    for match in UK_PHONE_RE.finditer(page.raw_text or page.text):
        number = clean_phone(match.group(0))
        if len(number.lstrip("+")) >= MIN_PHONE_DIGITS:
            _add_unique(phones, number, MAX_PHONES)
    return phones


def extract_addresses(page: ParsedPage) -> list[str]:
    low, high = ADDRESS_LENGTH_RANGE
    addresses: list[str] = []
    for element in page.select(ADDRESS_SELECTORS):
        text = element.get_text(" ", strip=True)
        if low < len(text) < high and text not in addresses:
            addresses.append(text)
    return addresses


def extract_contacts(page: ParsedPage) -> JSONDict:
    """Collect contact details; DOM-only sources are skipped for non-HTML pages."""

    return {
        "emails": extract_emails(page),
        "phones": extract_phones(page),
        "addresses": extract_addresses(page),
    }


def count_contacts(contacts: JSONDict | None) -> int:
    if not contacts:
        return 0
    return sum(len(contacts.get(key) or []) for key in ("emails", "phones", "addresses"))


__all__ = [
    "count_contacts",
    "extract_addresses",
    "extract_contacts",
    "extract_emails",
    "extract_phones",
]
