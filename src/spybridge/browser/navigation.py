"""Bounded page navigation and the multi-selector race.

The SPY UI is not ours: selectors get renamed, pages redirect to the login
screen, and some listings never reach ``networkidle``. Every wait here has an
explicit timeout, and every failure carries enough page state (URL, title,
visible error messages) to tell a stale selector from a rejected login.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, Literal, Sequence

from playwright.sync_api import Error as PlaywrightError, TimeoutError as PlaywrightTimeout

from spybridge.exceptions import NavigationError, NavigationTimeout

if TYPE_CHECKING:
    from playwright.sync_api import Page, Response

logger = logging.getLogger(__name__)

# Playwright error substrings that indicate non-retryable navigation failures.
_NON_RETRYABLE_ERRORS: tuple[str, ...] = (
    "ERR_NAME_NOT_RESOLVED",
    "ERR_CONNECTION_REFUSED",
    "ERR_CONNECTION_RESET",
    "ERR_CONNECTION_CLOSED",
    "ERR_SSL_PROTOCOL_ERROR",
    "ERR_CERT_AUTHORITY_INVALID",
    "ERR_ADDRESS_UNREACHABLE",
)

# Elements the SPY UI uses to show login and form errors.
ERROR_MESSAGE_SELECTORS: tuple[str, ...] = (
    ".error",
    ".alert-danger",
    ".text-danger",
    '[class*="error"]',
)

# URL fragments meaning the session was bounced back to the login screen.
LOGIN_ROUTE_MARKERS: tuple[str, ...] = ("login", "getloginpage")

WaitUntil = Literal["commit", "domcontentloaded", "load", "networkidle"]

_FALLBACK_STRATEGY: list[WaitUntil] = ["networkidle", "load", "domcontentloaded"]


@dataclass
class PageDiagnostics:
    """Page state captured when a wait or login check fails."""

    url: str = ""
    title: str = ""
    error_messages: list[str] = field(default_factory=list)
    on_login_page: bool = False

    def describe(self) -> str:
        parts = [f"url={self.url!r}", f"title={self.title!r}"]
        if self.on_login_page:
            parts.append("still on login page")
        if self.error_messages:
            parts.append(f"errors={self.error_messages!r}")
        return ", ".join(parts)

    def to_dict(self) -> dict:
        return {
            "url": self.url,
            "title": self.title,
            "errorMessages": self.error_messages,
            "onLoginPage": self.on_login_page,
        }


def is_login_url(url: str) -> bool:
    """Return True when *url* names the SPY login route."""
    lowered = url.lower()
    return any(marker in lowered for marker in LOGIN_ROUTE_MARKERS)


def collect_diagnostics(page: Page) -> PageDiagnostics:
    """Capture URL, title and visible error messages. Never raises."""
    diagnostics = PageDiagnostics()
    try:
        diagnostics.url = str(page.url or "")
        diagnostics.on_login_page = is_login_url(diagnostics.url)
    except PlaywrightError as exc:
        logger.debug("Could not read page URL: %s", exc)
    try:
        diagnostics.title = str(page.title() or "")
    except PlaywrightError as exc:
        logger.debug("Could not read page title: %s", exc)

    for selector in ERROR_MESSAGE_SELECTORS:
        try:
            texts = page.locator(selector).all_inner_texts()
        except PlaywrightError:
            continue
        for text in texts:
            cleaned = " ".join(str(text).split())
            if cleaned and cleaned not in diagnostics.error_messages:
                diagnostics.error_messages.append(cleaned)
    return diagnostics


def _is_present(page: Page, selector: str) -> bool:
    """Read-only check: is at least one element matching *selector* attached?"""
    try:
        return page.locator(selector).count() > 0
    except PlaywrightError as exc:
        logger.debug("Presence check for %s failed: %s", selector, exc)
        return False


def wait_for_any(
    page: Page,
    selectors: Sequence[str],
    timeout_ms: int,
    *,
    poll_interval_ms: int = 250,
    step: str = "",
    ready: Callable[[], bool] | None = None,
) -> str:
    """Race *selectors* and return the first one that appears.

    The timeout budget is split evenly across the candidates. Each candidate
    is polled independently within its share; polls are read-only, so they
    need no coordination. The first candidate found wins and the remaining
    polls are abandoned.

    Args:
        page: Playwright page to poll.
        selectors: Candidate CSS selectors, in preference order.
        timeout_ms: Total budget to split across the candidates.
        poll_interval_ms: Delay between polling rounds.
        step: Name of the calling step, recorded on failure.
        ready: Extra page condition checked each round. A selector only
            wins once it returns True.

    Returns:
        The selector that matched.

    Raises:
        NavigationTimeout: If no candidate appeared within its share.
    """
    if not selectors:
        raise ValueError("wait_for_any needs at least one selector")

    share_ms = timeout_ms / len(selectors)
    rounds = max(1, math.ceil(share_ms / max(poll_interval_ms, 1)))
    logger.debug(
        "Racing %d selectors (%.0fms each, %d rounds): %s",
        len(selectors),
        share_ms,
        rounds,
        ", ".join(selectors),
    )

    for attempt in range(rounds):
        if ready is None or ready():
            for selector in selectors:
                if _is_present(page, selector):
                    logger.debug("Selector won the race: %s", selector)
                    return selector
        if attempt < rounds - 1:
            page.wait_for_timeout(poll_interval_ms)

    diagnostics = collect_diagnostics(page)
    if diagnostics.on_login_page:
        logger.warning("No selector appeared and the page is still the login route")
    raise NavigationTimeout(selectors, step=step, diagnostics=diagnostics)


def wait_for_selector(page: Page, selector: str, timeout_ms: int, *, step: str = "") -> None:
    """``page.wait_for_selector`` that fails with ``NavigationTimeout``."""
    try:
        page.wait_for_selector(selector, timeout=timeout_ms)
    except PlaywrightTimeout as exc:
        raise NavigationTimeout([selector], step=step, diagnostics=collect_diagnostics(page)) from exc


def resilient_goto(
    page: Page,
    url: str,
    *,
    timeout_ms: int = 30_000,
    wait_until: WaitUntil = "domcontentloaded",
) -> Response | None:
    """Navigate to *url* with automatic wait-strategy fallback.

    Tries *wait_until* first. If that times out, retries with progressively
    less strict strategies using the same timeout for each attempt.

    Raises:
        NavigationError: On DNS, connection or TLS failures.
        PlaywrightTimeout: If all fallback strategies also time out.
    """
    strategies = _build_fallback_chain(wait_until)

    last_error: PlaywrightTimeout | None = None
    for strategy in strategies:
        try:
            logger.debug("goto %s (wait_until=%s, timeout=%dms)", url, strategy, timeout_ms)
            return page.goto(url, wait_until=strategy, timeout=timeout_ms)
        except PlaywrightError as exc:
            error_msg = str(exc)
            for pattern in _NON_RETRYABLE_ERRORS:
                if pattern in error_msg:
                    reason = pattern.replace("ERR_", "").replace("_", " ").lower()
                    logger.warning("Navigation to %s failed (non-retryable): %s", url, pattern)
                    raise NavigationError(url, reason) from exc
            if isinstance(exc, PlaywrightTimeout):
                logger.warning(
                    "Navigation to %s timed out with wait_until=%s, retrying with weaker strategy",
                    url,
                    strategy,
                )
                last_error = exc
            else:
                raise

    raise last_error  # type: ignore[misc]


def _build_fallback_chain(preferred: WaitUntil) -> list[WaitUntil]:
    """Return the fallback chain starting from *preferred*."""
    if preferred in _FALLBACK_STRATEGY:
        idx = _FALLBACK_STRATEGY.index(preferred)
        return _FALLBACK_STRATEGY[idx:]
    return [preferred, *_FALLBACK_STRATEGY]
