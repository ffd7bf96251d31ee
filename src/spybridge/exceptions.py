"""spybridge exception hierarchy."""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from spybridge.browser.navigation import PageDiagnostics


class SpyBridgeError(Exception):
    """Base exception for all spybridge errors."""


class AuthenticationError(SpyBridgeError):
    """Raised when login cannot be proven by any post-login marker.

    Attributes:
        diagnostics: Page state captured when the login check failed.
    """

    def __init__(self, message: str, diagnostics: PageDiagnostics | None = None) -> None:
        self.diagnostics = diagnostics
        if diagnostics is not None:
            message = f"{message} ({diagnostics.describe()})"
        super().__init__(message)


class NavigationError(SpyBridgeError):
    """Raised when navigation fails for a non-retryable reason (DNS, refused, TLS)."""

    def __init__(self, url: str, reason: str) -> None:
        self.url = url
        self.reason = reason
        super().__init__(f"Navigation to {url} failed: {reason}")


class NavigationTimeout(SpyBridgeError):
    """Raised when a required selector never appeared within its budget.

    Attributes:
        selectors: The candidate selectors that were raced.
        step: Name of the navigation step that failed, if any.
        diagnostics: Page state captured at the time of failure.
    """

    def __init__(
        self,
        selectors: Iterable[str],
        *,
        step: str = "",
        diagnostics: PageDiagnostics | None = None,
    ) -> None:
        self.selectors = list(selectors)
        self.step = step
        self.diagnostics = diagnostics
        prefix = f"Step {step} timed out: " if step else ""
        message = f"{prefix}none of the selectors appeared: {', '.join(self.selectors)}"
        if diagnostics is not None:
            message = f"{message} ({diagnostics.describe()})"
        super().__init__(message)


class LookupStepError(SpyBridgeError):
    """Raised when a stock-lookup step fails for a reason other than a timeout."""

    def __init__(self, step: str, detail: str) -> None:
        self.step = step
        self.detail = detail
        super().__init__(f"Step {step} failed: {detail}")


class StockNotFound(SpyBridgeError):
    """Raised when a page snapshot has no stat-and-stock container or boxes."""


class RowTypeUnavailable(SpyBridgeError):
    """Raised when neither the requested row type nor any fallback yields data."""

    def __init__(self, requested: str, available: Iterable[str]) -> None:
        self.requested = requested
        self.available = sorted(set(available))
        super().__init__(
            f'No stock data could be parsed for row type: "{requested}". '
            f"Available row types: {', '.join(self.available)}"
        )


class ParseError(SpyBridgeError):
    """Raised when markup cannot be read at all."""


class ValidationError(SpyBridgeError):
    """A record is missing a required field. Collected by filters, not propagated."""

    def __init__(self, record_id: str, reasons: list[str]) -> None:
        self.record_id = record_id
        self.reasons = reasons
        super().__init__(f"Customer {record_id or '<no id>'} is invalid: {'; '.join(reasons)}")


class StorageError(SpyBridgeError):
    """Raised when the customer directory cannot be read or written."""
