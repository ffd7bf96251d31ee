"""Unit tests for spybridge.extraction.stock_table."""

from __future__ import annotations

import pytest

from spybridge.exceptions import ParseError, RowTypeUnavailable, StockNotFound
from spybridge.extraction.stock_table import parse_stock
from spybridge.models.stock import RowType

SIZES = ["34", "36", "38", "40", "42", "44", "46", "48", "50"]


def _box(header: str, *rows: tuple[str, int, int]) -> str:
    body = "".join(f"<tr><td>{label}</td><td>{s}</td><td>{m}</td></tr>" for label, s, m in rows)
    return (
        '<div class="statAndStockBox"><table>'
        f'<tr class="tableBackgroundBlack"><td><strong>{header}</strong></td><td>S</td><td>M</td></tr>'
        f"{body}</table></div>"
    )


def _tab(*boxes: str) -> str:
    return f'<div id="stat_and_stock_container">{"".join(boxes)}</div>'


class TestColorMatrix:
    """Boxes whose rows are colors and whose summary row names the type."""

    def test_reads_every_color_with_totals(self, spy_page) -> None:
        record = parse_stock(spy_page("stock_matrix.html"), RowType.STOCK)

        assert set(record) == {"327 DARK DENIM", "BLACK"}
        assert record["327 DARK DENIM"] == {
            **dict(zip(SIZES, [0, 5, 2, 8, 3, 1, 0, 4, 2])),
            "Total": 25,
        }
        assert record["BLACK"] == {
            **dict(zip(SIZES, [1, 3, 7, 5, 2, 0, 1, 6, 3])),
            "Total": 28,
        }

    def test_summary_row_is_not_a_color(self, spy_page) -> None:
        record = parse_stock(spy_page("stock_matrix.html"), "Stock")
        assert "Stock" not in record
        assert "Total" not in record

    def test_missing_type_falls_back_and_reports_it(self, spy_page) -> None:
        row_used: dict[str, str] = {}
        record = parse_stock(spy_page("stock_matrix.html"), RowType.AVAILABLE, row_used=row_used)

        assert record["BLACK"]["Total"] == 28
        assert row_used == {"327 DARK DENIM": "Stock", "BLACK": "Stock"}

    def test_empty_and_suffixed_cells(self, spy_page) -> None:
        record = parse_stock(spy_page("stock_empty_cells.html"), RowType.STOCK)
        assert record == {"TEST COLOR": {"34": 0, "36": 5, "Total": 5}}

    def test_total_row_only_raises_with_available_labels(self, spy_page) -> None:
        with pytest.raises(RowTypeUnavailable) as exc_info:
            parse_stock(spy_page("stock_total_only.html"), RowType.STOCK)

        assert exc_info.value.requested == "Stock"
        assert exc_info.value.available == ["Total"]
        assert 'row type: "Stock"' in str(exc_info.value)


class TestPerColorBoxes:
    """Boxes headed by a color with one row per row type."""

    def test_reads_requested_type(self, spy_page) -> None:
        row_used: dict[str, str] = {}
        record = parse_stock(spy_page("stock_per_color.html"), RowType.AVAILABLE, row_used=row_used)

        assert record["NAVY"] == {"S": 3, "M": 5, "L": 0, "Total": 8}
        assert record["WHITE"] == {"S": 1, "M": 1, "L": 1, "Total": 3}
        assert row_used == {"WHITE": "Stock"}

    def test_po_available(self, spy_page) -> None:
        record = parse_stock(spy_page("stock_per_color.html"), RowType.PO_AVAILABLE)
        assert record["NAVY"] == {"S": 10, "M": 12, "L": 8, "Total": 30}

    def test_unknown_row_labels_are_ignored(self, spy_page) -> None:
        record = parse_stock(spy_page("stock_per_color.html"), RowType.STOCK)
        assert set(record) == {"NAVY", "WHITE"}
        assert record["WHITE"]["Total"] == 3


class TestPageErrors:
    def test_missing_container(self) -> None:
        with pytest.raises(StockNotFound):
            parse_stock("<html><body><p>Style list</p></body></html>", RowType.STOCK)

    def test_container_without_boxes(self) -> None:
        html = '<div id="stat_and_stock_container"><p>Loading...</p></div>'
        with pytest.raises(StockNotFound):
            parse_stock(html, RowType.STOCK)

    def test_non_text_input(self) -> None:
        with pytest.raises(ParseError):
            parse_stock(b"<html></html>", RowType.STOCK)  # type: ignore[arg-type]

    def test_unknown_row_type(self, spy_page) -> None:
        with pytest.raises(ValueError):
            parse_stock(spy_page("stock_matrix.html"), "Reserved")

    def test_log_sink_receives_lines(self, spy_page) -> None:
        lines: list[str] = []
        parse_stock(spy_page("stock_matrix.html"), RowType.STOCK, log=lines.append)
        assert any("stock boxes" in line for line in lines)
        assert lines[-1] == "Parsed stock data for 2 colors"


class TestFallbackOrder:
    """With several fallback rows on offer the nearest one always wins."""

    def test_po_available_prefers_available_over_stock(self) -> None:
        html = _tab(_box("NAVY", ("Stock", 4, 6), ("Available", 3, 5)))
        row_used: dict[str, str] = {}

        record = parse_stock(html, RowType.PO_AVAILABLE, row_used=row_used)

        assert record == {"NAVY": {"S": 3, "M": 5, "Total": 8}}
        assert row_used == {"NAVY": "Available"}

    def test_stock_prefers_available_over_po_available(self) -> None:
        html = _tab(_box("NAVY", ("Available", 3, 5), ("PO Available", 10, 12)))
        row_used: dict[str, str] = {}

        record = parse_stock(html, RowType.STOCK, row_used=row_used)

        assert record == {"NAVY": {"S": 3, "M": 5, "Total": 8}}
        assert row_used == {"NAVY": "Available"}

    def test_available_prefers_stock_over_po_available(self) -> None:
        html = _tab(_box("NAVY", ("PO Available", 10, 12), ("Stock", 4, 6)))
        row_used: dict[str, str] = {}

        record = parse_stock(html, RowType.AVAILABLE, row_used=row_used)

        assert record == {"NAVY": {"S": 4, "M": 6, "Total": 10}}
        assert row_used == {"NAVY": "Stock"}

    def test_exact_type_is_not_reported_as_substitution(self) -> None:
        html = _tab(_box("NAVY", ("Stock", 4, 6), ("Available", 3, 5)))
        row_used: dict[str, str] = {}

        parse_stock(html, RowType.STOCK, row_used=row_used)

        assert row_used == {}


class TestMatrixDetection:
    @pytest.mark.parametrize("header", ["Style", "Colour/Farve", "Variant"])
    def test_renamed_column_label_with_trailing_summary(self, header: str) -> None:
        html = _tab(_box(header, ("BLUE", 1, 2), ("RED", 0, 4), ("Stock", 1, 6)))

        record = parse_stock(html, RowType.STOCK)

        assert record == {
            "BLUE": {"S": 1, "M": 2, "Total": 3},
            "RED": {"S": 0, "M": 4, "Total": 4},
        }

    def test_typed_rows_before_other_labels_stay_a_color_box(self) -> None:
        html = _tab(_box("WHITE", ("Stock", 1, 1), ("Sold", 7, 2)))

        assert parse_stock(html, RowType.STOCK) == {"WHITE": {"S": 1, "M": 1, "Total": 2}}
