"""Navigation around the SPY customer listing.

The listing is truncated by default and sometimes bounces the session to
the start page. ``ensure_show_all`` is the one corrective retry the sync
performs: if the table is already populated it does nothing, otherwise it
re-navigates with ``show_all=1`` and falls back to the plain listing when
that navigation lands somewhere else.
"""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING

from spybridge.browser.navigation import (
    collect_diagnostics,
    resilient_goto,
    wait_for_any,
    wait_for_selector,
)
from spybridge.debug_log import LogSink, sink_or_default
from spybridge.exceptions import AuthenticationError, NavigationTimeout
from spybridge.extraction.customers import CUSTOMER_LINK
from spybridge.extraction.pagination import next_page_selectors

if TYPE_CHECKING:
    from playwright.sync_api import Page

    from spybridge.settings.config import Settings

logger = logging.getLogger(__name__)

MAIN_CONTENT = "#MainContent"
SHOW_ALL_BUTTON = 'button[name="show_all"]'
LISTING_ROWS = "#CustomerList tr[data-row_no], #CustomerList tbody tr"
FORCE_SEARCH_PARAM = "&Spy\\Model\\Admin\\Customer\\Index\\ListReportSearch[bForceSearch]=true"
CUSTOMER_PAGE_MARKER = "Admin%5CCustomer%5CIndex"

# Where a show-all navigation lands when the system rejects it.
_REJECTED_SHOW_ALL_MARKERS = ("Start&action=Index",)

TABLE_CANDIDATES: tuple[str, ...] = (
    "#CustomerList",
    "#CustomerList tbody",
    'table[id*="Customer"]',
    'table[id*="Customer"] tbody',
    "table tbody",
    '[id*="Customer"]',
    '[id*="Customer"] tbody',
    ".customer-table",
    ".customer-table tbody",
)

# Returned by wait_for_customer_table when only loose links were found.
WHOLE_PAGE = "body"


def listing_url(settings: Settings, *, page_no: int | None = None, force_search: bool = False) -> str:
    url = settings.system_url(settings.system.customer_list_path)
    if force_search:
        url += FORCE_SEARCH_PARAM
    if page_no is not None:
        url += f"&page={page_no}"
    return url


def open_customer_listing(
    page: Page,
    settings: Settings,
    log: LogSink | None = None,
    *,
    url: str | None = None,
    require_main_content: bool = False,
) -> str:
    """Navigate to the customer listing and make sure the session survived.

    Returns:
        The URL that was opened.

    Raises:
        AuthenticationError: The navigation was redirected to the login page.
        NavigationTimeout: *require_main_content* is set and ``#MainContent``
            never appeared.
    """
    emit = sink_or_default(log)
    target = url or listing_url(settings)
    emit(f"Navigating to customer listing: {target}")
    response = resilient_goto(page, target, timeout_ms=settings.browser.timeout_ms)
    if response is not None:
        emit(f"Navigation response status: {response.status}")
    page.wait_for_timeout(settings.sync.settle_ms)

    diagnostics = collect_diagnostics(page)
    emit(f"Current page title: {diagnostics.title!r}, URL: {diagnostics.url}")
    if diagnostics.on_login_page or "login" in diagnostics.title.lower():
        emit("Still on login page, authentication may have failed")
        raise AuthenticationError("Redirected to login page after navigation", diagnostics)

    if require_main_content:
        wait_for_selector(page, MAIN_CONTENT, settings.sync.table_timeout_ms, step="MAIN_CONTENT")
        if CUSTOMER_PAGE_MARKER not in page.url:
            emit(f"Warning: not on the expected customer page. URL: {page.url}")
    return target


def count_listing_rows(page: Page) -> int:
    return page.locator(LISTING_ROWS).count()


def wait_for_row_count(page: Page, min_rows: int, timeout_ms: int, poll_interval_ms: int = 250) -> int:
    """Poll the listing until it holds *min_rows* rows or the budget runs out.

    Returns the last row count seen.
    """
    rounds = max(1, math.ceil(timeout_ms / max(poll_interval_ms, 1)))
    count = 0
    for attempt in range(rounds):
        count = count_listing_rows(page)
        if count >= min_rows:
            break
        if attempt < rounds - 1:
            page.wait_for_timeout(poll_interval_ms)
    return count


def ensure_show_all(page: Page, listing_url: str, settings: Settings, log: LogSink | None = None) -> bool:
    """Expand the listing to all records when it looks truncated.

    Returns:
        True if the page now shows the ``show_all=1`` listing, False if the
        original listing was kept (already populated, no button, or the
        show-all navigation was rejected).
    """
    emit = sink_or_default(log)
    sync = settings.sync
    poll = settings.browser.poll_interval_ms

    rows = wait_for_row_count(page, sync.show_all_min_rows, sync.table_timeout_ms, poll)
    if rows >= sync.show_all_min_rows:
        emit(f"Customer data already available ({rows} rows), skipping Show All")
        return False
    emit(f"Only {rows} rows in #CustomerList, looking for Show All button")

    try:
        wait_for_selector(page, SHOW_ALL_BUTTON, sync.show_all_timeout_ms, step="SHOW_ALL")
    except NavigationTimeout:
        emit("Show All button not found, continuing with available data")
        return False

    show_all_url = page.url + "&show_all=1"
    emit(f"Navigating to Show All URL: {show_all_url}")
    resilient_goto(page, show_all_url, timeout_ms=settings.browser.timeout_ms)
    page.wait_for_timeout(sync.settle_ms)

    landed = page.url
    emit(f"URL after Show All navigation: {landed}")
    if any(marker in landed for marker in _REJECTED_SHOW_ALL_MARKERS) or "Customer" not in landed:
        emit("Show All navigation was redirected, reopening the original listing")
        logger.warning("Show All redirected to %s, falling back to %s", landed, listing_url)
        resilient_goto(page, listing_url, timeout_ms=settings.browser.timeout_ms)
        page.wait_for_timeout(sync.settle_ms)
        return False

    rows = wait_for_row_count(page, sync.show_all_min_rows, sync.table_timeout_ms, poll)
    emit(f"Show All listing has {rows} rows")
    return True


def wait_for_customer_table(page: Page, settings: Settings, log: LogSink | None = None) -> str:
    """Race the known table identities and return the one that appeared.

    When no table appears but the page still has customer links, returns
    ``WHOLE_PAGE`` so the caller parses the whole document.

    Raises:
        NavigationTimeout: Neither a table nor customer links were found.
    """
    emit = sink_or_default(log)
    try:
        selector = wait_for_any(
            page,
            TABLE_CANDIDATES,
            settings.sync.table_timeout_ms,
            poll_interval_ms=settings.browser.poll_interval_ms,
            step="CUSTOMER_TABLE",
        )
    except NavigationTimeout:
        links = page.locator(CUSTOMER_LINK).count()
        emit(f"No customer table found; {links} customer links on page")
        if links > 0:
            return WHOLE_PAGE
        raise
    emit(f"Customer table found with selector: {selector}")
    return selector


def has_next_page(page: Page, current_page: int) -> bool:
    """Live-page counterpart of ``find_next_page_link``."""
    return any(page.locator(selector).count() > 0 for selector in next_page_selectors(current_page))
