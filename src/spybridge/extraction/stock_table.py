"""Parse the stat-and-stock tab into a color -> size -> quantity map.

The tab holds one or more boxes, each a small table whose header row
(``tr.tableBackgroundBlack``) lists the sizes. Two box layouts occur:

* per-color box: the header's first cell names the color and each body row
  is labelled with a row type (``Stock``, ``Available``, ``PO Available``);
* color matrix: the header's first cell is a column label, each body row is
  a color, and a row-type labelled summary row names what the table counts.
  A box is a matrix when that label is a known one, or when its typed rows
  all come after its color rows.

Either way the parser collects, for every color, the quantities each row
type offers, then reads the requested type or its nearest fallback.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable

from bs4 import BeautifulSoup, Tag

from spybridge.debug_log import LogSink, sink_or_default
from spybridge.exceptions import RowTypeUnavailable, StockNotFound
from spybridge.extraction.markup import load_markup
from spybridge.models.stock import TOTAL_KEY, RowType, StockRecord

logger = logging.getLogger(__name__)

CONTAINER_SELECTORS = ('div[data-tab-name="statandstock"]', "#stat_and_stock_container")
BOX_SELECTOR = ".statAndStockBox"
HEADER_ROW_CLASS = "tableBackgroundBlack"
HEADER_ROW_SELECTOR = f"tr.{HEADER_ROW_CLASS}"
# First header cell of a color matrix; anything else names the box color.
MATRIX_HEADER_LABELS = frozenset({"", "color", "colour", "farve"})

# Nearest-neighbour substitution when the requested row type is absent.
FALLBACK_ORDER: dict[RowType, tuple[RowType, ...]] = {
    RowType.PO_AVAILABLE: (RowType.PO_AVAILABLE, RowType.AVAILABLE, RowType.STOCK),
    RowType.AVAILABLE: (RowType.AVAILABLE, RowType.STOCK, RowType.PO_AVAILABLE),
    RowType.STOCK: (RowType.STOCK, RowType.AVAILABLE, RowType.PO_AVAILABLE),
}

_ROW_TYPE_BY_LABEL = {rt.value.casefold(): rt for rt in RowType}
_LEADING_INT = re.compile(r"^[+-]?\d+")

# color -> row type -> size -> quantity
_Offers = dict[str, dict[RowType, dict[str, int]]]


def parse_stock(
    html: str,
    row_type: RowType | str,
    *,
    row_used: dict[str, str] | None = None,
    log: LogSink | None = None,
) -> StockRecord:
    """Extract quantities of *row_type* for every color on the page.

    Args:
        html: Page snapshot taken on the stat-and-stock tab.
        row_type: The row type to read.
        row_used: Optional dict filled with ``color -> row type`` for every
            color whose quantities came from a fallback row type.
        log: Optional diagnostic sink.

    Returns:
        ``{color: {size: qty, ..., "Total": sum}}``.

    Raises:
        ParseError: *html* is not text.
        StockNotFound: No stat-and-stock container or boxes on the page.
        RowTypeUnavailable: Neither the requested type nor a fallback
            yielded any color.
    """
    emit = sink_or_default(log)
    requested = RowType(row_type)
    soup = load_markup(html)
    container = _find_container(soup)
    if container is None:
        raise StockNotFound("Stat and Stock tab content not found on page")

    boxes = _find_boxes(container)
    if not boxes:
        raise StockNotFound("No stock data boxes found on page")
    emit(f"Found {len(boxes)} stock boxes")

    offers: _Offers = {}
    failed = 0
    for index, box in enumerate(boxes):
        try:
            _collect_box(box, requested, offers, emit)
        except (AttributeError, IndexError, ValueError, TypeError) as exc:
            failed += 1
            logger.warning("Skipping stock box %d: %s", index, exc)
            emit(f"Skipping stock box {index}: {exc}")
    if failed:
        emit(f"{failed} of {len(boxes)} stock boxes could not be read")

    record: StockRecord = {}
    for color, by_type in offers.items():
        chosen = next((rt for rt in FALLBACK_ORDER[requested] if rt in by_type), None)
        if chosen is None:
            continue
        quantities = dict(by_type[chosen])
        quantities[TOTAL_KEY] = sum(quantities.values())
        record[color] = quantities
        if chosen is not requested:
            emit(f"Color {color}: {requested.value} row missing, using {chosen.value}")
            if row_used is not None:
                row_used[color] = chosen.value

    if not record:
        raise RowTypeUnavailable(requested.value, _row_labels(container))

    emit(f"Parsed stock data for {len(record)} colors")
    return record


def _find_container(soup: BeautifulSoup) -> Tag | None:
    for selector in CONTAINER_SELECTORS:
        found = soup.select_one(selector)
        if found is not None:
            return found
    return None


def _find_boxes(container: Tag) -> list[Tag]:
    boxes = container.select(BOX_SELECTOR)
    if boxes:
        return boxes
    # Structural fallback: the innermost divs that hold a header row.
    candidates = [div for div in container.find_all("div") if div.select_one(HEADER_ROW_SELECTOR)]
    return [
        div
        for div in candidates
        if not any(inner.select_one(HEADER_ROW_SELECTOR) for inner in div.find_all("div"))
    ]


def _cell_label(cell: Tag) -> str:
    strong = cell.find("strong")
    text = (strong or cell).get_text(" ", strip=True)
    return " ".join(text.split())


def _to_quantity(text: str) -> int:
    match = _LEADING_INT.match(text.strip())
    return int(match.group()) if match else 0


def _size_columns(header: Tag) -> tuple[str, list[tuple[int, str]]]:
    """Return the header's first label and ``(column index, size)`` pairs."""
    cells = header.find_all(["td", "th"], recursive=False)
    if not cells:
        raise ValueError("header row has no cells")
    sizes = [
        (index, label)
        for index, label in ((i, _cell_label(c)) for i, c in enumerate(cells))
        if index > 0 and label and label != TOTAL_KEY
    ]
    return _cell_label(cells[0]), sizes


def _read_row(row: Tag, sizes: list[tuple[int, str]]) -> dict[str, int]:
    cells = row.find_all(["td", "th"], recursive=False)
    return {
        size: _to_quantity(cells[index].get_text(strip=True)) if index < len(cells) else 0
        for index, size in sizes
    }


def _collect_box(box: Tag, requested: RowType, offers: _Offers, emit: LogSink) -> None:
    header = box.select_one(HEADER_ROW_SELECTOR)
    if header is None:
        raise ValueError("no header row")
    first_label, sizes = _size_columns(header)

    color_rows: list[tuple[str, Tag]] = []
    typed_rows: list[tuple[RowType, Tag]] = []
    last_color_at = first_typed_at = -1
    for position, row in enumerate(box.find_all("tr")):
        if row is header:
            continue
        first = row.find(["td", "th"], recursive=False)
        if first is None:
            continue
        label = _cell_label(first)
        if not label or label == TOTAL_KEY:
            continue
        row_type = _ROW_TYPE_BY_LABEL.get(label.casefold())
        if row_type is not None:
            typed_rows.append((row_type, row))
            if first_typed_at < 0:
                first_typed_at = position
        else:
            color_rows.append((label, row))
            last_color_at = position

    # A matrix may carry any column label; its typed rows then only trail the colors.
    trailing_summary = bool(color_rows) and bool(typed_rows) and first_typed_at > last_color_at
    is_matrix = first_label.casefold() in MATRIX_HEADER_LABELS or trailing_summary
    if is_matrix and color_rows:
        # The summary row labels say which type this table counts.
        table_types = {rt for rt, _ in typed_rows} or {requested}
        for color, row in color_rows:
            quantities = _read_row(row, sizes)
            for row_type in table_types:
                offers.setdefault(color, {}).setdefault(row_type, quantities)
        emit(f"Matrix box ({', '.join(sorted(rt.value for rt in table_types))}): {len(color_rows)} colors")
    elif not is_matrix and typed_rows:
        color = first_label
        for row_type, row in typed_rows:
            offers.setdefault(color, {}).setdefault(row_type, _read_row(row, sizes))
        emit(f"Color box {color}: {', '.join(rt.value for rt, _ in typed_rows)}")
    else:
        emit("Skipping stock box without colors")


def _row_labels(container: Tag) -> Iterable[str]:
    """Every first-cell label in the container, for the error message."""
    for row in container.find_all("tr"):
        if HEADER_ROW_CLASS in (row.get("class") or []):
            continue
        first = row.find(["td", "th"], recursive=False)
        if first is not None:
            label = _cell_label(first)
            if label:
                yield label
