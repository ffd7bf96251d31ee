"""HTML extraction: stock tables and customer listings."""

from __future__ import annotations

from spybridge.extraction.customers import (
    PageClassification,
    classify_empty_page,
    dedupe_customers,
    extract_customer_links,
    extract_listing_rows,
    parse_customer_list,
    validate_customers,
)
from spybridge.extraction.pagination import (
    PageFetch,
    PaginationOutcome,
    StopReason,
    find_next_page_link,
    paginate,
)
from spybridge.extraction.stock_table import parse_stock

__all__ = [
    "PageClassification",
    "PageFetch",
    "PaginationOutcome",
    "StopReason",
    "classify_empty_page",
    "dedupe_customers",
    "extract_customer_links",
    "extract_listing_rows",
    "find_next_page_link",
    "paginate",
    "parse_customer_list",
    "parse_stock",
    "validate_customers",
]
