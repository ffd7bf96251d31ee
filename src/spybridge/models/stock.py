"""Stock lookup models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

# color -> size -> quantity, each color also carrying "Total"
StockRecord = dict[str, dict[str, int]]

TOTAL_KEY = "Total"


class RowType(str, Enum):
    """Semantic partition of a stat-and-stock quantity table."""

    STOCK = "Stock"
    AVAILABLE = "Available"
    PO_AVAILABLE = "PO Available"


class QueryBy(str, Enum):
    """How the style search interprets the query."""

    NUMBER = "no"
    NAME = "name"


@dataclass
class StockLookupRequest:
    """A stock query for one style."""

    query: str
    query_by: QueryBy = QueryBy.NUMBER
    row: RowType = RowType.STOCK

    def __post_init__(self) -> None:
        self.query_by = QueryBy(self.query_by)
        self.row = RowType(self.row)


@dataclass
class StockCheckResult:
    """Quantities for one style, keyed by color."""

    sku: str
    row: RowType
    data: StockRecord = field(default_factory=dict)
    row_used: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.row = RowType(self.row)

    def to_dict(self) -> dict[str, Any]:
        return {
            "sku": self.sku,
            "row": self.row.value,
            "data": self.data,
            "rowUsed": self.row_used,
        }
