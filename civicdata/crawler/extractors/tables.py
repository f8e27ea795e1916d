"""HTML table extraction into header/row records."""

from __future__ import annotations

from bs4 import Tag

from ..types import JSONDict
from .page import ParsedPage


MAX_TABLES = 10
MAX_ROWS = 50

SIGNIFICANT_MIN_ROWS = 3
SIGNIFICANT_MIN_CELLS = 6


def _cell_text(cell: Tag) -> str:
    return cell.get_text(" ", strip=True)


def _table_headers(table: Tag) -> list[str]:
    thead = table.find("thead")
    if thead is not None:
        cells = thead.find_all("th")
        if cells:
            return [_cell_text(cell) for cell in cells]

    first_row = table.find("tr")
    if first_row is None:
        return []
    header_cells = first_row.find_all("th")
    if header_cells:
        return [_cell_text(cell) for cell in header_cells]
    return []


def _row_record(headers: list[str], cells: list[str]) -> dict[str, str]:
    record: dict[str, str] = {}
    for idx, value in enumerate(cells):
        key = headers[idx] if idx < len(headers) and headers[idx] else f"column_{idx + 1}"
        if key in record:
            key = f"{key}_{idx + 1}"
        record[key] = value
    return record


def parse_table(table: Tag, *, max_rows: int = MAX_ROWS) -> JSONDict | None:
    """Turn one `<table>` into `{caption, headers, rows, row_count}`.

    A first row made of `<th>` cells is treated as the header and not
    repeated in `rows`. Returns None for a table with no cells at all.
    """

    headers = _table_headers(table)
    caption_tag = table.find("caption")
    caption = _cell_text(caption_tag) if caption_tag is not None else ""

    rows: list[JSONDict] = []
    total_rows = 0
    for tr in table.find_all("tr"):
        cells = tr.find_all(["td", "th"])
        if not cells:
            continue
        values = [_cell_text(cell) for cell in cells]
        if headers and not tr.find("td") and values == headers:
            continue
        total_rows += 1
        if len(rows) < max_rows:
            rows.append(_row_record(headers, values))

    if not headers and not rows:
        return None

    return {
        "caption": caption or None,
        "summary": table.get("summary"),
        "headers": headers,
        "rows": rows,
        "row_count": total_rows,
        "truncated": total_rows > len(rows),
    }


def extract_tables(page: ParsedPage, *, max_tables: int = MAX_TABLES, max_rows: int = MAX_ROWS) -> list[JSONDict]:
    if page.soup is None:
        return []

    tables: list[JSONDict] = []
    for table in page.soup.find_all("table"):
        if len(tables) >= max_tables:
            break
        parsed = parse_table(table, max_rows=max_rows)
        if parsed is not None:
            tables.append(parsed)
    return tables


def is_significant_table(table: Tag) -> bool:
    """A data table worth scoring: at least 3 rows and 6 cells."""

    rows = table.find_all("tr")
    cells = table.find_all(["td", "th"])
    return len(rows) >= SIGNIFICANT_MIN_ROWS and len(cells) >= SIGNIFICANT_MIN_CELLS


def has_significant_table(page: ParsedPage) -> bool:
    if page.soup is None:
        return False
    return any(is_significant_table(table) for table in page.soup.find_all("table"))


__all__ = [
    "MAX_ROWS",
    "MAX_TABLES",
    "extract_tables",
    "has_significant_table",
    "is_significant_table",
    "parse_table",
]
