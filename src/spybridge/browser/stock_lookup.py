"""Stock lookup: search a style, open its stat-and-stock tab, parse quantities.

The page flow is a fixed sequence of bounded steps::

    SEARCH -> SELECT_RESULT_ROW -> OPEN_DETAIL_TAB -> WAIT_STAT_BOX -> EXTRACT

Every failure names the step it happened in.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING
from urllib.parse import quote

from playwright.sync_api import Error as PlaywrightError

from spybridge.browser.navigation import resilient_goto, wait_for_selector
from spybridge.browser.session import LoginAction, SessionFactory, browser_session, login
from spybridge.exceptions import LookupStepError, NavigationTimeout, RowTypeUnavailable, StockNotFound
from spybridge.extraction.stock_table import parse_stock
from spybridge.models.stock import QueryBy, StockCheckResult, StockLookupRequest

if TYPE_CHECKING:
    from playwright.sync_api import Page

    from spybridge.models.customer import Credentials
    from spybridge.settings.config import Settings

logger = logging.getLogger(__name__)

RESULTS_TABLE = "#TableContainer"
RESULT_ROWS = "#TableContainer tbody tr"
DETAIL_TAB = 'td[data-tab-name="statandstock"]'
STAT_CONTAINER = "#stat_and_stock_container"
STAT_BOX = ".statAndStockBox"

_SEARCH_FORM = "Spy\\Model\\Style\\Index\\ListReportSearch"
_SEARCH_FIELDS = {
    QueryBy.NUMBER: "strStyleNo",
    QueryBy.NAME: "strStyleName",
}


class LookupStep(str, Enum):
    SEARCH = "SEARCH"
    SELECT_RESULT_ROW = "SELECT_RESULT_ROW"
    OPEN_DETAIL_TAB = "OPEN_DETAIL_TAB"
    WAIT_STAT_BOX = "WAIT_STAT_BOX"
    EXTRACT = "EXTRACT"


def build_style_search_url(settings: Settings, query: str, query_by: QueryBy) -> str:
    """Return the style list URL that runs the search for *query*."""
    field = _SEARCH_FIELDS[QueryBy(query_by)]
    return (
        settings.system_url(settings.system.style_search_path)
        + f"&{_SEARCH_FORM}[bForceSearch]=true"
        + f"&{_SEARCH_FORM}[{field}]={quote(query, safe='')}"
    )


def open_style_page(page: Page, query: str, query_by: QueryBy, settings: Settings) -> str:
    """Drive a logged-in *page* to the style's stat-and-stock tab.

    Returns:
        The full page HTML once at least one stat box is present.

    Raises:
        NavigationTimeout: A bounded wait in some step expired.
        LookupStepError: No result row matched, or a page action failed.
    """
    step_timeout = settings.browser.step_timeout_ms
    step = LookupStep.SEARCH
    try:
        url = build_style_search_url(settings, query, query_by)
        logger.info("Searching styles for %r (by %s)", query, QueryBy(query_by).value)
        resilient_goto(page, url, timeout_ms=settings.browser.timeout_ms)
        wait_for_selector(page, RESULTS_TABLE, step_timeout, step=step.value)
        wait_for_selector(page, RESULT_ROWS, step_timeout, step=step.value)

        step = LookupStep.SELECT_RESULT_ROW
        _click_matching_row(page, query)

        step = LookupStep.OPEN_DETAIL_TAB
        wait_for_selector(page, DETAIL_TAB, step_timeout, step=step.value)
        page.click(DETAIL_TAB)

        step = LookupStep.WAIT_STAT_BOX
        wait_for_selector(page, STAT_CONTAINER, step_timeout, step=step.value)
        wait_for_selector(page, STAT_BOX, step_timeout, step=step.value)
        box_count = page.locator(STAT_BOX).count()
        logger.debug("Found %d stat and stock boxes", box_count)
        if box_count == 0:
            raise LookupStepError(step.value, "no stat and stock boxes on the page")

        step = LookupStep.EXTRACT
        return page.content()
    except PlaywrightError as exc:
        raise LookupStepError(step.value, str(exc)) from exc


def _click_matching_row(page: Page, query: str) -> None:
    """Click the link of the first result row whose text contains *query*."""
    needle = query.lower()
    for row in page.query_selector_all(RESULT_ROWS):
        text = row.text_content() or ""
        if needle not in text.lower():
            continue
        link = row.query_selector("a")
        if link is None:
            continue
        logger.debug("Opening result row: %s", " ".join(text.split()))
        link.click()
        return
    raise LookupStepError(LookupStep.SELECT_RESULT_ROW.value, f"no matching result found for query: {query}")


def check_stock(
    request: StockLookupRequest,
    credentials: Credentials,
    settings: Settings,
    session_factory: SessionFactory = browser_session,
) -> StockCheckResult:
    """Log in, open the style page and parse quantities for *request.row*.

    Raises:
        AuthenticationError: Login could not be proven.
        NavigationTimeout | LookupStepError: A lookup step failed. An
            unusable stock table fails the EXTRACT step, chained from the
            ``StockNotFound`` or ``RowTypeUnavailable`` raised by the parser.
    """
    with session_factory(settings) as page:
        login(page, credentials, LoginAction.STOCK_CHECK, settings)
        try:
            html = open_style_page(page, request.query, request.query_by, settings)
        except NavigationTimeout:
            logger.warning("Stock lookup for %r timed out", request.query)
            raise

    row_used: dict[str, str] = {}
    try:
        data = parse_stock(html, request.row, row_used=row_used)
    except (StockNotFound, RowTypeUnavailable) as exc:
        raise LookupStepError(LookupStep.EXTRACT.value, str(exc)) from exc
    logger.info("Parsed stock for %r: %d colors", request.query, len(data))
    return StockCheckResult(sku=request.query, row=request.row, data=data, row_used=row_used)
