"""Embedded linked data: JSON-LD blocks, microdata items and OpenGraph tags."""

from __future__ import annotations

import json
import logging

from bs4 import Tag

from ..types import JSONDict
from .page import ParsedPage


LOGGER = logging.getLogger(__name__)


def extract_json_ld(page: ParsedPage) -> list[JSONDict]:
    blocks: list[JSONDict] = []
    for script in page.select("script[type='application/ld+json']"):
        raw = script.string or script.get_text()
        if not raw or not raw.strip():
            continue
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            LOGGER.debug("Ignoring invalid JSON-LD on %s: %s", page.url, exc)
            continue
        blocks.append({"type": "json-ld", "data": data})
    return blocks


def _microdata_value(element: Tag) -> str | None:
    for attr in ("content", "datetime", "href", "src"):
        value = element.get(attr)
        if value:
            return str(value).strip()
    text = element.get_text(" ", strip=True)
    return text or None


def parse_microdata_item(item: Tag) -> JSONDict:
    """Flatten one itemscope into `{@type, prop: value}`; nested scopes are not descended."""

    data: JSONDict = {}
    item_type = item.get("itemtype")
    if item_type:
        data["@type"] = str(item_type)

    for prop in item.find_all(attrs={"itemprop": True}):
        owner = prop.find_parent(attrs={"itemscope": True})
        if owner is not item:
            continue
        name = str(prop.get("itemprop"))
        value = _microdata_value(prop)
        if value is None:
            continue
        existing = data.get(name)
        if existing is None:
            data[name] = value
        elif isinstance(existing, list):
            existing.append(value)
        else:
            data[name] = [existing, value]
    return data


def extract_microdata(page: ParsedPage) -> list[JSONDict]:
    items: list[JSONDict] = []
    for element in page.select("[itemscope]"):
        data = parse_microdata_item(element)
        if data:
            items.append({"type": "microdata", "data": data})
    return items


def extract_open_graph(page: ParsedPage) -> list[JSONDict]:
    properties: JSONDict = {}
    for meta in page.select("meta[property^='og:']"):
        content = meta.get("content")
        if content:
            properties[str(meta["property"])[3:]] = str(content).strip()
    if not properties:
        return []
    return [{"type": "opengraph", "data": properties}]


def extract_structured_data(page: ParsedPage) -> list[JSONDict]:
    return [*extract_json_ld(page), *extract_microdata(page), *extract_open_graph(page)]


def has_linked_data(page: ParsedPage) -> bool:
    """True when the page carries JSON-LD or microdata markup."""

    return bool(page.select("script[type='application/ld+json']") or page.select("[itemscope]"))


__all__ = [
    "extract_json_ld",
    "extract_microdata",
    "extract_open_graph",
    "extract_structured_data",
    "has_linked_data",
    "parse_microdata_item",
]
