"""Site navigation: the main menu and the breadcrumb trail."""

from __future__ import annotations

from bs4 import Tag

from ..types import JSONDict
from ..url import resolve_url
from .page import ParsedPage


MAX_MENU_LINKS = 60
MAX_LINK_TEXT = 100

MENU_SELECTOR = "nav a[href], .nav a[href], .navigation a[href], .menu a[href]"
BREADCRUMB_CONTAINERS = ".breadcrumb, .breadcrumbs, [aria-label='breadcrumb' i]"


def _link(anchor: Tag, base_url: str) -> JSONDict | None:
    text = anchor.get_text(" ", strip=True)
    url = resolve_url(base_url, anchor.get("href"))
    if not text or url is None or len(text) >= MAX_LINK_TEXT:
        return None
    return {"text": text, "url": url}


def extract_breadcrumbs(page: ParsedPage) -> list[JSONDict]:
    if page.soup is None:
        return []
    container = page.soup.select_one(BREADCRUMB_CONTAINERS)
    if container is None:
        return []
    # the current page is usually unlinked and is left out
    crumbs = (_link(anchor, page.url) for anchor in container.select("a[href]"))
    return [crumb for crumb in crumbs if crumb is not None]


def extract_main_menu(page: ParsedPage, *, max_links: int = MAX_MENU_LINKS) -> list[JSONDict]:
    if page.soup is None:
        return []
    breadcrumb_links = {id(anchor) for node in page.soup.select(BREADCRUMB_CONTAINERS) for anchor in node.select("a")}

    menu: list[JSONDict] = []
    seen: set[str] = set()
    for anchor in page.soup.select(MENU_SELECTOR):
        if id(anchor) in breadcrumb_links:
            continue
        link = _link(anchor, page.url)
        if link is None or link["url"] in seen:
            continue
        seen.add(link["url"])
        menu.append(link)
        if len(menu) >= max_links:
            break
    return menu


def extract_navigation(page: ParsedPage) -> JSONDict:
    return {"main_menu": extract_main_menu(page), "breadcrumbs": extract_breadcrumbs(page)}


__all__ = [
    "MAX_MENU_LINKS",
    "extract_breadcrumbs",
    "extract_main_menu",
    "extract_navigation",
]
