"""SQLAlchemy table definitions for the customer directory.

Both tables share ``METADATA`` so ``create_all`` builds the whole schema.
"""

from __future__ import annotations

from pathlib import Path

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql
from sqlalchemy.orm import Session, sessionmaker

JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), "postgresql")
TIMESTAMP = sa.DateTime(timezone=True)
UUID_TYPE = sa.String(length=64)

METADATA = sa.MetaData()

# ---------------------------------------------------------------------------
# customers: one row per SPY customer, keyed by the SPY customer_id
# ---------------------------------------------------------------------------

customers = sa.Table(
    "customers",
    METADATA,
    sa.Column("customer_id", sa.String(length=32), primary_key=True),
    sa.Column("name", sa.Text(), nullable=False),
    sa.Column("edit_url", sa.Text(), nullable=False),
    sa.Column("email", sa.Text(), nullable=True),
    sa.Column("phone", sa.Text(), nullable=True),
    sa.Column("address", sa.Text(), nullable=True),
    sa.Column("country", sa.Text(), nullable=True),
    sa.Column("salesperson", sa.Text(), nullable=True),
    sa.Column("brand", sa.Text(), nullable=True),
    sa.Column("postal_code", sa.Text(), nullable=True),
    sa.Column("city", sa.Text(), nullable=True),
    sa.Column("uuid", sa.Text(), nullable=True),
    sa.Column("reference", sa.Text(), nullable=True),
    sa.Column("last_sync", TIMESTAMP, nullable=False),
    sa.Column("created_at", TIMESTAMP, nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    sa.Column("updated_at", TIMESTAMP, nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
)
sa.Index("idx_customers_name", customers.c.name)
sa.Index("idx_customers_last_sync", customers.c.last_sync)

# ---------------------------------------------------------------------------
# customer_sync_logs: audit trail of sync runs
# ---------------------------------------------------------------------------

customer_sync_logs = sa.Table(
    "customer_sync_logs",
    METADATA,
    sa.Column("log_id", UUID_TYPE, primary_key=True),
    sa.Column("mode", sa.Text(), nullable=False, server_default="quick"),
    sa.Column("success", sa.Boolean(), nullable=False, server_default=sa.text("false")),
    sa.Column("customers_found", sa.Integer(), nullable=False, server_default="0"),
    sa.Column("customers_saved", sa.Integer(), nullable=False, server_default="0"),
    sa.Column("duration_ms", sa.Integer(), nullable=False, server_default="0"),
    sa.Column("errors", JSON_TYPE, nullable=True),
    sa.Column("created_at", TIMESTAMP, nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
)
sa.Index("idx_sync_logs_created_at", customer_sync_logs.c.created_at)


# ---------------------------------------------------------------------------
# Engine / session helpers
# ---------------------------------------------------------------------------


def build_engine(*, db_path: str | Path | None = None, echo: bool = False) -> sa.Engine:
    """Create a SQLite engine for the customer directory.

    Args:
        db_path: Path to the SQLite file. Defaults to
            ``settings.storage.sqlite_path``.
        echo: When True, log all SQL statements.
    """
    if db_path is None:
        from spybridge.settings import get_settings

        db_path = get_settings().storage.sqlite_path

    resolved = Path(db_path)
    resolved.parent.mkdir(parents=True, exist_ok=True)
    url = f"sqlite:///{resolved.as_posix()}"
    return sa.create_engine(
        url,
        echo=echo,
        pool_pre_ping=True,
        connect_args={"check_same_thread": False, "timeout": 30},
    )


def build_session_factory(*, db_path: str | Path | None = None) -> sessionmaker:
    """Return a ``sessionmaker`` bound to the customer directory engine."""
    engine = build_engine(db_path=db_path)
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


def dialect_insert(session: Session, table: sa.Table) -> sa.Insert:
    """Return a dialect-aware INSERT that supports ``on_conflict_do_update``."""
    bind = session.get_bind()
    if bind.dialect.name == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    else:
        from sqlalchemy.dialects.sqlite import insert
    return insert(table)
