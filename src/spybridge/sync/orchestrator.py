"""Customer sync orchestrator.

Composes login, listing navigation and customer extraction for one sync run
and produces a ``SyncResult``. Each run owns one browser session for its
duration. Nothing raised inside a run escapes ``SyncOrchestrator.run``: every
failure is folded into ``success=False`` plus the error text, and the run's
diagnostic lines are attached under ``debug_info["logs"]``.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, Callable

from spybridge.browser.customer_listing import (
    ensure_show_all,
    has_next_page,
    listing_url,
    open_customer_listing,
    wait_for_customer_table,
)
from spybridge.browser.navigation import wait_for_any
from spybridge.browser.session import LoginAction, SessionFactory, browser_session, login
from spybridge.debug_log import DebugLog
from spybridge.exceptions import AuthenticationError, SpyBridgeError, StorageError
from spybridge.extraction.customers import parse_customer_list, validate_customers
from spybridge.extraction.pagination import PageFetch, paginate
from spybridge.models.customer import Credentials, Customer, utcnow
from spybridge.models.results import SyncMode, SyncResult

if TYPE_CHECKING:
    from playwright.sync_api import Page

    from spybridge.settings.config import Settings
    from spybridge.store.base import CustomerStorage

logger = logging.getLogger(__name__)

# Any of these means a paginated listing page has rendered.
PAGE_TABLE_SELECTORS = ("table", ".customer-list", ".data-table")


class SyncOrchestrator:
    """Run customer syncs against SPY and persist the result.

    Args:
        settings: Active settings.
        storage: Customer directory backend.
        session_factory: Context manager factory yielding a logged-out page.
        clock: Source of "now" for timestamps.
    """

    def __init__(
        self,
        settings: Settings,
        storage: CustomerStorage,
        *,
        session_factory: SessionFactory = browser_session,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.settings = settings
        self.storage = storage
        self.session_factory = session_factory
        self.clock = clock

    def run(self, mode: SyncMode | str, credentials: Credentials | None = None) -> SyncResult:
        """Execute one sync in *mode*.

        Args:
            mode: quick, full, preview or enhanced.
            credentials: SPY login. Defaults to the configured credentials.

        Returns:
            A ``SyncResult``; failures are reported through ``success`` and
            ``errors`` rather than raised.
        """
        start = time.monotonic()
        log = DebugLog(forward_to=logger, clock=self.clock)
        requested = mode
        try:
            mode = SyncMode(mode)
        except ValueError:
            mode = SyncMode.QUICK
            log(f"Unknown sync mode: {requested!r}")
            result = SyncResult(mode=mode, last_sync=self.clock(), errors=[f"Unknown sync mode: {requested!r}"])
            result.debug_info["logs"] = log.lines
            logger.warning("Rejected customer sync with unknown mode %r", requested)
            return result
        result = SyncResult(mode=mode, last_sync=self.clock())

        if credentials is None:
            creds = self.settings.credentials
            credentials = Credentials(username=creds.username, password=creds.password)

        log(f"Starting {mode.value} customer sync")
        log(f"Username: {'provided' if credentials.username else 'missing'}")

        try:
            if not credentials.provided:
                raise AuthenticationError("Missing SPY_USER or SPY_PASS credentials")

            with self.session_factory(self.settings) as page:
                log("Logging in to SPY system...")
                marker = login(page, credentials, LoginAction.CUSTOMER_SYNC, self.settings)
                log(f"Login successful (marker {marker})")
                customers = self._collect(mode, page, result, log)

            result.customers_found = len(customers)
            if not customers:
                result.errors.append("No customers found in SPY system")
                log("No customers found, leaving the stored directory untouched")
            elif mode is SyncMode.PREVIEW:
                result.success = True
                result.debug_info["previewMode"] = True
                result.debug_info["wouldHaveSaved"] = len(customers)
                log(f"Preview complete: would have saved {len(customers)} customers")
            else:
                self._persist(customers, result, log)
                result.success = True
        except SpyBridgeError as e:
            logger.warning("Customer sync (%s) failed: %s", mode.value, e)
            log(f"Sync failed: {e}")
            result.errors.append(str(e))
            diagnostics = getattr(e, "diagnostics", None)
            if diagnostics is not None:
                result.debug_info["pageTitle"] = diagnostics.title
                result.debug_info["currentUrl"] = diagnostics.url
                result.debug_info["diagnostics"] = diagnostics.to_dict()
        except Exception as e:
            logger.exception("Customer sync (%s) failed unexpectedly", mode.value)
            log(f"Sync failed: {e}")
            result.errors.append(str(e) or type(e).__name__)

        result.duration_ms = int((time.monotonic() - start) * 1000)
        log(f"Sync finished in {result.duration_ms}ms (success={result.success})")
        result.debug_info["logs"] = log.lines

        record_sync = getattr(self.storage, "record_sync", None)
        if callable(record_sync):
            try:
                record_sync(result)
            except Exception:
                logger.warning("Failed to record %s sync run", mode.value, exc_info=True)
        return result

    # ------------------------------------------------------------------
    # Modes
    # ------------------------------------------------------------------

    def _collect(self, mode: SyncMode, page: Page, result: SyncResult, log: DebugLog) -> list[Customer]:
        if mode is SyncMode.FULL:
            return self._collect_paginated(page, result, log)
        if mode is SyncMode.ENHANCED:
            return self._collect_enhanced(page, result, log)
        return self._collect_first_page(page, log)

    def _collect_first_page(self, page: Page, log: DebugLog) -> list[Customer]:
        open_customer_listing(page, self.settings, log)
        customers = parse_customer_list(page.content(), base_url=self.settings.system.base_url, log=log)
        log(f"Extracted {len(customers)} customers from the first listing page")
        return customers

    def _collect_paginated(self, page: Page, result: SyncResult, log: DebugLog) -> list[Customer]:
        settings = self.settings

        def fetch(page_no: int) -> PageFetch:
            open_customer_listing(page, settings, log, url=listing_url(settings, page_no=page_no))
            wait_for_any(
                page,
                PAGE_TABLE_SELECTORS,
                settings.sync.table_timeout_ms,
                poll_interval_ms=settings.browser.poll_interval_ms,
                step="LISTING_PAGE",
            )
            return PageFetch(html=page.content(), has_next=has_next_page(page, page_no))

        outcome = paginate(fetch, base_url=settings.system.base_url, max_pages=settings.sync.max_pages, log=log)
        result.debug_info["totalPages"] = outcome.pages_visited
        result.debug_info["uniqueCustomers"] = len(outcome.customers)
        result.debug_info["stopReason"] = outcome.stop_reason.value
        return outcome.customers

    def _collect_enhanced(self, page: Page, result: SyncResult, log: DebugLog) -> list[Customer]:
        settings = self.settings
        url = listing_url(settings, force_search=True)
        open_customer_listing(page, settings, log, url=url, require_main_content=True)
        result.debug_info["successfulUrl"] = url

        show_all_used = ensure_show_all(page, url, settings, log)
        result.debug_info["showAllUsed"] = show_all_used

        selector = wait_for_customer_table(page, settings, log)
        result.debug_info["tableSelector"] = selector

        extracted = parse_customer_list(page.content(), base_url=settings.system.base_url, log=log)
        valid, invalid = validate_customers(extracted)
        result.debug_info["totalExtracted"] = len(extracted)
        result.debug_info["validatedCount"] = len(valid)
        if invalid:
            result.errors.append(f"Filtered out {len(invalid)} invalid customers")
            result.debug_info["invalidCustomers"] = [
                {"id": err.record_id, "reasons": err.reasons} for err in invalid
            ]
            log(f"Filtered out {len(invalid)} invalid customers")
        log(f"Validated {len(valid)} of {len(extracted)} extracted customers")
        return valid

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _persist(self, customers: list[Customer], result: SyncResult, log: DebugLog) -> None:
        before = self._count_stored()
        log(f"Saving {len(customers)} customers to storage...")
        self.storage.save_customers(customers)
        after = self._count_stored()
        result.customers_saved = len(customers)
        result.debug_info["storageStats"] = {
            "beforeSync": before,
            "afterSync": after,
            "newCustomers": after - before,
        }
        log(f"Customers saved successfully ({before} before, {after} after)")

    def _count_stored(self) -> int:
        try:
            return len(self.storage.load_customers())
        except StorageError:
            logger.warning("Could not count stored customers", exc_info=True)
            return 0


# ---------------------------------------------------------------------------
# Status and health
# ---------------------------------------------------------------------------


@dataclass
class SyncStatus:
    has_data: bool = False
    total_customers: int = 0
    last_sync: datetime | None = None
    hours_since_sync: float | None = None
    is_stale: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "hasData": self.has_data,
            "customerCount": self.total_customers,
            "lastSync": self.last_sync.isoformat() if self.last_sync else None,
            "hoursSinceSync": self.hours_since_sync,
            "isStale": self.is_stale,
        }


@dataclass
class HealthReport:
    healthy: bool = False
    checks: dict[str, bool] = field(default_factory=dict)
    issues: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "isHealthy": self.healthy,
            "checks": self.checks,
            "issues": self.issues,
            "recommendations": self.recommendations,
        }


def sync_status(
    storage: CustomerStorage,
    stale_after_hours: float = 24.0,
    now: datetime | None = None,
) -> SyncStatus:
    """Summarise how much customer data is cached and how old it is.

    A directory that was never synced is always stale.

    Raises:
        StorageError: The backend could not be read.
    """
    customers = storage.load_customers()
    last_sync = storage.get_last_sync_time()
    status = SyncStatus(has_data=bool(customers), total_customers=len(customers), last_sync=last_sync)
    if last_sync is not None:
        hours = ((now or utcnow()) - last_sync).total_seconds() / 3600
        status.hours_since_sync = round(hours, 2)
        status.is_stale = hours > stale_after_hours
    logger.debug(
        "Sync status: %d customers, last sync %s, stale=%s",
        status.total_customers,
        last_sync.isoformat() if last_sync else "never",
        status.is_stale,
    )
    return status


def health_check(settings: Settings, storage: CustomerStorage, now: datetime | None = None) -> HealthReport:
    """Check that a customer sync can run and that cached data is usable."""
    report = HealthReport()
    creds = settings.credentials
    report.checks["credentials"] = bool(creds.username and creds.password.get_secret_value())
    if not report.checks["credentials"]:
        report.issues.append("Missing SPY credentials")
        report.recommendations.append("Set SPY_USER and SPY_PASS environment variables")

    try:
        status = sync_status(storage, settings.lookup.stale_after_hours, now=now)
        metadata = storage.get_metadata()
    except StorageError as e:
        logger.error("Customer storage is not accessible: %s", e)
        report.checks["storage"] = False
        report.issues.append(f"Customer storage is not accessible: {e}")
        report.recommendations.append("Check the storage configuration and file permissions")
        return report

    report.checks["storage"] = True
    report.checks["data"] = status.has_data
    report.checks["fresh"] = status.has_data and not status.is_stale
    report.checks["metadata"] = metadata is not None

    if not status.has_data:
        report.issues.append("No customer data found")
        report.recommendations.append("Run initial customer sync")
    elif status.is_stale:
        age = f"{status.hours_since_sync:.1f} hours old" if status.hours_since_sync is not None else "never synced"
        report.issues.append(f"Customer data is stale ({age})")
        report.recommendations.append("Run a customer sync to refresh data")
    if status.has_data and metadata is None:
        report.issues.append("Customer metadata is missing")
        report.recommendations.append("Run a full customer sync to rebuild metadata")

    report.healthy = not report.issues
    return report
