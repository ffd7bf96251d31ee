"""SQL-backed customer directory.

``SqlCustomerStorage`` follows the usual store constructor pattern: accept
an optional *db_path* for a local SQLite file or a pre-built
*session_factory* for a shared engine (or a test fixture). It fulfils the
same contract as the JSON backend and additionally keeps an audit log of
sync runs in ``customer_sync_logs``.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Iterator
from uuid import uuid4

import sqlalchemy as sa
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from spybridge.exceptions import StorageError
from spybridge.models.customer import Customer, CustomerMetadata, DirectoryMetadata, utcnow
from spybridge.models.results import SyncResult
from spybridge.store import sql as sql_schema
from spybridge.store.base import merge_customer
from spybridge.store.sql import METADATA, build_session_factory, dialect_insert

logger = logging.getLogger(__name__)

_METADATA_COLUMNS = (
    "email",
    "phone",
    "address",
    "country",
    "salesperson",
    "brand",
    "postal_code",
    "city",
    "uuid",
    "reference",
)


def _aware(value: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; every stored timestamp is UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SqlCustomerStorage:
    """Persist the customer directory and sync audit log via SQLAlchemy.

    Args:
        db_path: Convenience path for a local SQLite file. Mutually
            exclusive with *session_factory*.
        session_factory: Pre-configured ``sessionmaker``.
        clock: Source of "now" for writes.
    """

    def __init__(
        self,
        db_path: str | Path | None = None,
        *,
        session_factory: sessionmaker | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        if session_factory is not None:
            self._session_factory = session_factory
        else:
            self._session_factory = build_session_factory(db_path=db_path)
        self._clock = clock

        # Ensure schema exists (auto-create for SQLite / local dev)
        with self._session() as session:
            METADATA.create_all(session.connection())
            session.commit()

    @contextmanager
    def _session(self) -> Iterator[Session]:
        try:
            with self._session_factory() as session:
                yield session
        except SQLAlchemyError as exc:
            raise StorageError(f"Customer database error: {exc}") from exc

    # ------------------------------------------------------------------
    # Row mapping
    # ------------------------------------------------------------------

    @staticmethod
    def _to_customer(row: Any) -> Customer:
        mapping = row._mapping
        metadata = CustomerMetadata(
            **{col: mapping[col] for col in _METADATA_COLUMNS},
            last_sync=_aware(mapping["last_sync"]),
        )
        return Customer(
            id=mapping["customer_id"],
            name=mapping["name"],
            edit_url=mapping["edit_url"],
            metadata=metadata,
        )

    @staticmethod
    def _to_values(customer: Customer, now: datetime) -> dict[str, Any]:
        values: dict[str, Any] = {
            "customer_id": customer.id,
            "name": customer.name,
            "edit_url": customer.edit_url,
            "last_sync": customer.metadata.last_sync,
            "updated_at": now,
        }
        for col in _METADATA_COLUMNS:
            values[col] = getattr(customer.metadata, col)
        return values

    # ------------------------------------------------------------------
    # CustomerStorage contract
    # ------------------------------------------------------------------

    def save_customers(self, customers: list[Customer]) -> None:
        now = self._clock()
        rows = [self._to_values(c, now) for c in customers]
        with self._session() as session:
            session.execute(sa.delete(sql_schema.customers))
            if rows:
                session.execute(sa.insert(sql_schema.customers), [{**r, "created_at": now} for r in rows])
            session.commit()
        logger.info("Saved %d customers to the customer database", len(rows))

    def load_customers(self) -> list[Customer]:
        with self._session() as session:
            rows = session.execute(sa.select(sql_schema.customers)).all()
        return sorted((self._to_customer(r) for r in rows), key=lambda c: c.name.casefold())

    def get_customer_by_id(self, customer_id: str) -> Customer | None:
        with self._session() as session:
            row = session.execute(
                sa.select(sql_schema.customers).where(sql_schema.customers.c.customer_id == customer_id)
            ).first()
        return self._to_customer(row) if row is not None else None

    def upsert_customer(self, customer: Customer) -> Customer:
        now = self._clock()
        existing = self.get_customer_by_id(customer.id)
        merged = merge_customer(existing, customer, now)
        values = self._to_values(merged, now)
        with self._session() as session:
            stmt = dialect_insert(session, sql_schema.customers).values(**values, created_at=now)
            stmt = stmt.on_conflict_do_update(
                index_elements=[sql_schema.customers.c.customer_id],
                set_={key: stmt.excluded[key] for key in values if key != "customer_id"},
            )
            session.execute(stmt)
            session.commit()
        logger.info("%s customer: %s", "Updated" if existing else "Added", merged.name)
        return merged

    def remove_customer(self, customer_id: str) -> bool:
        with self._session() as session:
            result = session.execute(
                sa.delete(sql_schema.customers).where(sql_schema.customers.c.customer_id == customer_id)
            )
            removed = bool(result.rowcount)
            session.commit()
        logger.info("Remove customer %s: %s", customer_id, "done" if removed else "not found")
        return removed

    def get_metadata(self) -> DirectoryMetadata | None:
        table = sql_schema.customers
        with self._session() as session:
            total, last_sync, last_updated = session.execute(
                sa.select(sa.func.count(), sa.func.max(table.c.last_sync), sa.func.max(table.c.updated_at))
            ).one()
        if not total:
            return None
        return DirectoryMetadata(
            last_sync=_aware(last_sync),
            total_customers=total,
            last_updated=_aware(last_updated),
        )

    def get_last_sync_time(self) -> datetime | None:
        metadata = self.get_metadata()
        return metadata.last_sync if metadata is not None else None

    # ------------------------------------------------------------------
    # Sync audit log
    # ------------------------------------------------------------------

    def record_sync(self, result: SyncResult) -> str:
        """Insert a ``customer_sync_logs`` row for *result* and return its id."""
        log_id = str(uuid4())
        with self._session() as session:
            session.execute(
                sa.insert(sql_schema.customer_sync_logs).values(
                    log_id=log_id,
                    mode=result.mode.value,
                    success=result.success,
                    customers_found=result.customers_found,
                    customers_saved=result.customers_saved,
                    duration_ms=result.duration_ms,
                    errors=list(result.errors),
                    created_at=result.last_sync,
                )
            )
            session.commit()
        logger.debug("Recorded sync run %s (%s)", log_id, result.mode.value)
        return log_id

    def recent_syncs(self, limit: int = 10) -> list[dict[str, Any]]:
        table = sql_schema.customer_sync_logs
        with self._session() as session:
            rows = session.execute(
                sa.select(table).order_by(table.c.created_at.desc()).limit(limit)
            ).all()
        return [
            {**row._mapping, "created_at": _aware(row._mapping["created_at"])}
            for row in rows
        ]
