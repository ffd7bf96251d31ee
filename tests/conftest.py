"""spybridge test configuration: shared fixtures for unit tests."""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import MagicMock

import pytest


# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------

FIXTURES_DIR = Path(__file__).parent / "fixtures"
SPY_PAGES_DIR = FIXTURES_DIR / "spy"

BASE_URL = "https://2-biz.spysystem.dk"
FIXED_NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture()
def spy_page():
    """Return a loader for saved SPY page fixtures by file name."""

    def load(name: str) -> str:
        return (SPY_PAGES_DIR / name).read_text(encoding="utf-8")

    return load


@pytest.fixture()
def fixed_now() -> datetime:
    return FIXED_NOW


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_settings_cache(monkeypatch: pytest.MonkeyPatch):
    """Clear the settings LRU cache and ambient SPY credentials between tests."""
    from spybridge.settings.config import get_settings

    for name in ("SPY_USER", "SPY_PASS", "SYSTEM_URL", "SPYBRIDGE_ENV"):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def settings(tmp_path: Path):
    """Settings with fast timeouts and storage under *tmp_path*."""
    from spybridge.settings.config import Settings

    return Settings(
        project_root=tmp_path,
        system={"base_url": BASE_URL, "login_url": f"{BASE_URL}/login"},
        browser={
            "timeout_ms": 1000,
            "step_timeout_ms": 500,
            "login_timeout_ms": 500,
            "customer_sync_login_timeout_ms": 700,
            "poll_interval_ms": 100,
        },
        sync={"settle_ms": 0, "table_timeout_ms": 300, "show_all_timeout_ms": 200, "show_all_min_rows": 10},
        storage={"backend": "json", "data_dir": str(tmp_path / "data"), "sqlite_path": str(tmp_path / "spy.db")},
    )


@pytest.fixture()
def credentials():
    from spybridge.models.customer import Credentials

    return Credentials(username="agent", password="secret")


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------


@pytest.fixture()
def json_store(tmp_path: Path):
    """Create a disposable ``JsonCustomerStorage`` under a temp dir."""
    from spybridge.store.json_store import JsonCustomerStorage

    return JsonCustomerStorage(tmp_path / "data", clock=lambda: FIXED_NOW)


@pytest.fixture()
def sql_store(tmp_path: Path):
    """Create a disposable ``SqlCustomerStorage`` backed by a temporary SQLite DB."""
    from spybridge.store.sql_store import SqlCustomerStorage

    return SqlCustomerStorage(db_path=tmp_path / "customers.db", clock=lambda: FIXED_NOW)


def make_customer(customer_id: str, name: str, **metadata):
    """Build a ``Customer`` with a well-formed edit URL."""
    from spybridge.models.customer import Customer, CustomerMetadata

    metadata.setdefault("last_sync", FIXED_NOW)
    return Customer(
        id=customer_id,
        name=name,
        edit_url=f"{BASE_URL}/?controller=Admin%5CCustomer%5CIndex&action=Edit&customer_id={customer_id}",
        metadata=CustomerMetadata(**metadata),
    )


# ---------------------------------------------------------------------------
# Mock Playwright page
# ---------------------------------------------------------------------------


def make_page(present: set[str] | frozenset[str] = frozenset(), url: str = f"{BASE_URL}/", title: str = "SPY"):
    """Return a ``MagicMock`` page whose locators count 1 for *present* selectors."""
    page = MagicMock(name="page")
    page.url = url
    page.title.return_value = title

    def locator(selector: str):
        loc = MagicMock(name=f"locator({selector})")
        loc.count.return_value = 1 if selector in present else 0
        loc.all_inner_texts.return_value = []
        return loc

    page.locator.side_effect = locator
    return page


@pytest.fixture()
def page_factory():
    return make_page


@pytest.fixture()
def customer_factory():
    return make_customer


@pytest.fixture()
def fake_session():
    """A session factory yielding the given page and recording that it closed."""

    def build(page):
        state = {"opened": 0, "closed": 0}

        @contextmanager
        def factory(_settings):
            state["opened"] += 1
            try:
                yield page
            finally:
                state["closed"] += 1

        factory.state = state
        return factory

    return build
