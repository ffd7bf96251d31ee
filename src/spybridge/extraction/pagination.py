"""Bounded pagination over customer listing pages."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

from spybridge.debug_log import LogSink, sink_or_default
from spybridge.extraction.customers import parse_customer_list
from spybridge.extraction.markup import load_markup
from spybridge.models.customer import Customer

logger = logging.getLogger(__name__)

DEFAULT_MAX_PAGES = 50

NEXT_PAGE_SELECTORS = (".next", ".pagination .next")


def next_page_selectors(current_page: int) -> tuple[str, ...]:
    """Selectors for the affordance leading past *current_page*."""
    return (f'a[href*="page={current_page + 1}"]', *NEXT_PAGE_SELECTORS)


@dataclass
class PageFetch:
    """One fetched listing page."""

    html: str
    has_next: bool


class StopReason(str, Enum):
    NO_NEW_CUSTOMERS = "no_new_customers"
    NO_NEXT_PAGE = "no_next_page"
    PAGE_LIMIT = "page_limit"


@dataclass
class PaginationOutcome:
    customers: list[Customer] = field(default_factory=list)
    pages_visited: int = 0
    stop_reason: StopReason = StopReason.NO_NEW_CUSTOMERS


def find_next_page_link(html: str, current_page: int) -> bool:
    """Return True when the snapshot shows a way to page ``current_page + 1``."""
    soup = load_markup(html)
    return any(soup.select_one(selector) is not None for selector in next_page_selectors(current_page))


def paginate(
    fetch_page: Callable[[int], PageFetch],
    *,
    base_url: str,
    max_pages: int = DEFAULT_MAX_PAGES,
    log: LogSink | None = None,
) -> PaginationOutcome:
    """Walk listing pages from 1 until exhausted.

    Stops when a page adds no new customer ids, when the page shows no next
    affordance, or after *max_pages* pages, whichever comes first. Customers
    are deduplicated by id across pages; the first occurrence wins.

    Args:
        fetch_page: Loads page *n* (1-based) and reports whether it links on.
        base_url: Base for absolutising edit links.
        max_pages: Hard ceiling on pages visited.
        log: Optional diagnostic sink.
    """
    emit = sink_or_default(log)
    collected: dict[str, Customer] = {}
    outcome = PaginationOutcome()

    page_no = 1
    while True:
        emit(f"Processing page {page_no}...")
        fetched = fetch_page(page_no)
        outcome.pages_visited = page_no

        new = [c for c in parse_customer_list(fetched.html, base_url=base_url, log=emit) if c.id not in collected]
        if not new:
            emit(f"No new customers on page {page_no}, stopping pagination")
            outcome.stop_reason = StopReason.NO_NEW_CUSTOMERS
            break
        for customer in new:
            collected[customer.id] = customer
        emit(f"Found {len(new)} new customers on page {page_no}")

        if not fetched.has_next:
            outcome.stop_reason = StopReason.NO_NEXT_PAGE
            break
        if page_no >= max_pages:
            emit(f"Reached maximum page limit ({max_pages}), stopping pagination")
            logger.warning("Pagination stopped at the %d page ceiling", max_pages)
            outcome.stop_reason = StopReason.PAGE_LIMIT
            break
        page_no += 1

    outcome.customers = list(collected.values())
    emit(f"Extracted {len(outcome.customers)} unique customers across {outcome.pages_visited} pages")
    return outcome
