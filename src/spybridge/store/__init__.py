"""Customer directory persistence.

Two interchangeable backends implement :class:`CustomerStorage`: a JSON
file (``customers.json`` under ``storage.data_dir``) and a SQLAlchemy
database (``storage.sqlite_path``) that also keeps a sync audit log.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from spybridge.store.base import CustomerStorage, merge_customer

if TYPE_CHECKING:
    from spybridge.settings.config import Settings

__all__ = ["CustomerStorage", "build_customer_storage", "merge_customer"]


def build_customer_storage(settings: "Settings | None" = None) -> CustomerStorage:
    """Factory: return the customer storage backend named by the settings.

    Args:
        settings: Active settings. Defaults to ``get_settings()``.

    Raises:
        ValueError: When ``storage.backend`` is neither ``json`` nor ``sql``.
    """
    if settings is None:
        from spybridge.settings import get_settings

        settings = get_settings()

    backend = settings.storage.backend.strip().lower()
    if backend == "json":
        from spybridge.store.json_store import JsonCustomerStorage

        return JsonCustomerStorage(settings.storage.data_dir)
    if backend in ("sql", "sqlite"):
        from spybridge.store.sql_store import SqlCustomerStorage

        return SqlCustomerStorage(db_path=settings.storage.sqlite_path)
    raise ValueError(f"Unknown storage backend: {settings.storage.backend!r} (expected 'json' or 'sql')")
