"""HTML form descriptions (action, method and named fields)."""

from __future__ import annotations

from bs4 import Tag

from ..types import JSONDict
from .page import ParsedPage


MAX_FORMS = 5


def _field_label(form: Tag, field_id: str | None) -> str | None:
    if not field_id:
        return None
    label = form.find("label", attrs={"for": field_id})
    if label is None:
        return None
    return label.get_text(" ", strip=True) or None


def parse_form(form: Tag) -> JSONDict:
    fields: list[JSONDict] = []
    for element in form.find_all(["input", "select", "textarea"]):
        name = element.get("name")
        field_id = element.get("id")
        if not name and not field_id:
            continue
        fields.append(
            {
                "type": element.get("type") or element.name,
                "name": name,
                "id": field_id,
                "label": _field_label(form, field_id),
                "placeholder": element.get("placeholder"),
                "required": element.has_attr("required"),
            }
        )
    return {
        "action": form.get("action"),
        "method": str(form.get("method") or "GET").upper(),
        "fields": fields,
    }


def extract_forms(page: ParsedPage, *, max_forms: int = MAX_FORMS) -> list[JSONDict]:
    if page.soup is None:
        return []
    return [parse_form(form) for form in page.soup.find_all("form", limit=max_forms)]


__all__ = ["MAX_FORMS", "extract_forms", "parse_form"]
