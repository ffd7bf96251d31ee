"""Browser session lifecycle and SPY login."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from enum import Enum
from typing import TYPE_CHECKING, Callable, ContextManager, Iterator, Sequence

from spybridge.browser.navigation import (
    is_login_url,
    resilient_goto,
    wait_for_any,
    wait_for_selector,
)
from spybridge.exceptions import AuthenticationError, NavigationTimeout

if TYPE_CHECKING:
    from playwright.sync_api import Page

    from spybridge.models.customer import Credentials
    from spybridge.settings.config import Settings

logger = logging.getLogger(__name__)

LOGIN_FORM = "form.spy-login-form"
USERNAME_INPUT = 'input#inputGroup1[name="username"]'
PASSWORD_INPUT = 'input#inputGroup2[name="password"]'
SUBMIT_BUTTON = 'button.login-submit-button[type="submit"]'

DASHBOARD_MARKERS: tuple[str, ...] = (".App",)

# The customer area does not always render the dashboard shell, so any main
# content container counts as proof of login.
CUSTOMER_AREA_MARKERS: tuple[str, ...] = (
    ".App",
    ".main-content",
    ".container",
    "main",
    "#main",
    '[class*="dashboard"]',
    '[class*="main"]',
)

SessionFactory = Callable[["Settings"], ContextManager["Page"]]


class LoginAction(str, Enum):
    """What the caller intends to do after logging in."""

    STOCK_CHECK = "stock_check"
    SALES_ORDER = "sales_order"
    CUSTOMER_SYNC = "customer_sync"


def post_login_markers(action: LoginAction) -> tuple[str, ...]:
    """Return the selectors whose presence proves a login for *action*."""
    if action is LoginAction.CUSTOMER_SYNC:
        return CUSTOMER_AREA_MARKERS
    return DASHBOARD_MARKERS


def login_timeout_ms(action: LoginAction, settings: Settings) -> int:
    if action is LoginAction.CUSTOMER_SYNC:
        return settings.browser.customer_sync_login_timeout_ms
    return settings.browser.login_timeout_ms


@contextmanager
def browser_session(settings: Settings) -> Iterator[Page]:
    """Launch a browser and yield one page, closing everything on exit.

    The context and browser are closed whether the body returns, raises or
    times out. Requires ``playwright install chromium`` to have been run.
    """
    from playwright.sync_api import sync_playwright

    cfg = settings.browser
    with sync_playwright() as pw:
        browser = pw.chromium.launch(headless=cfg.headless, args=list(cfg.launch_args))
        try:
            context = browser.new_context(
                user_agent=cfg.user_agent,
                viewport={"width": cfg.viewport_width, "height": cfg.viewport_height},
            )
            try:
                page = context.new_page()
                page.set_default_timeout(cfg.timeout_ms)
                logger.debug("Browser session opened (headless=%s)", cfg.headless)
                yield page
            finally:
                context.close()
        finally:
            browser.close()
            logger.debug("Browser session closed")


def authenticate(
    page: Page,
    credentials: Credentials,
    markers: Sequence[str],
    *,
    settings: Settings,
    timeout_ms: int | None = None,
) -> str:
    """Log in to SPY and prove it by waiting for a post-login marker.

    Args:
        page: A fresh page from ``browser_session``.
        credentials: SPY username and password.
        markers: Selectors raced after submitting the form. A marker only
            counts once the page has left the login route.
        settings: Active settings (login URL and timeouts).
        timeout_ms: Budget for the post-login race. Defaults to
            ``browser.login_timeout_ms``.

    Returns:
        The marker selector that proved the login.

    Raises:
        AuthenticationError: If the credentials are missing, the login form
            never appears, no marker resolves in time, or the page is still
            on the login route after submitting.
    """
    if not credentials.provided:
        raise AuthenticationError("SPY credentials are missing")

    login_url = settings.system.login_url
    logger.info("Logging in to %s (user provided)", login_url)
    resilient_goto(page, login_url, timeout_ms=settings.browser.timeout_ms)

    try:
        wait_for_selector(page, LOGIN_FORM, settings.browser.login_timeout_ms, step="LOGIN_FORM")
    except NavigationTimeout as exc:
        raise AuthenticationError("Login form did not appear", exc.diagnostics) from exc

    page.fill(USERNAME_INPUT, credentials.username)
    page.fill(PASSWORD_INPUT, credentials.password.get_secret_value())
    page.click(SUBMIT_BUTTON)

    budget = timeout_ms if timeout_ms is not None else settings.browser.login_timeout_ms
    try:
        marker = wait_for_any(
            page,
            markers,
            budget,
            poll_interval_ms=settings.browser.poll_interval_ms,
            step="LOGIN",
            ready=lambda: not is_login_url(page.url),
        )
    except NavigationTimeout as exc:
        if exc.diagnostics is not None and exc.diagnostics.on_login_page:
            raise AuthenticationError(
                "Still on the login page after submitting credentials", exc.diagnostics
            ) from exc
        raise AuthenticationError("No post-login element appeared", exc.diagnostics) from exc

    logger.info("Login confirmed by %s", marker)
    return marker


def login(page: Page, credentials: Credentials, action: LoginAction, settings: Settings) -> str:
    """``authenticate`` with the markers and timeout for *action*."""
    return authenticate(
        page,
        credentials,
        post_login_markers(action),
        settings=settings,
        timeout_ms=login_timeout_ms(action, settings),
    )
