"""Storage contract shared by the customer directory backends."""

from __future__ import annotations

from datetime import datetime
from typing import Protocol, runtime_checkable

from spybridge.models.customer import Customer, DirectoryMetadata, utcnow


@runtime_checkable
class CustomerStorage(Protocol):
    """Persistence for the cached customer directory."""

    def save_customers(self, customers: list[Customer]) -> None:
        """Replace the whole directory with *customers*."""

    def load_customers(self) -> list[Customer]:
        """Return every stored customer, name-ordered. Empty when nothing is stored."""

    def upsert_customer(self, customer: Customer) -> Customer:
        """Insert or merge one customer and return the stored record."""

    def remove_customer(self, customer_id: str) -> bool:
        """Delete by id. Returns False when the id was unknown."""

    def get_customer_by_id(self, customer_id: str) -> Customer | None: ...

    def get_metadata(self) -> DirectoryMetadata | None: ...

    def get_last_sync_time(self) -> datetime | None: ...


def merge_customer(existing: Customer | None, incoming: Customer, now: datetime | None = None) -> Customer:
    """Merge *incoming* over *existing*, refreshing ``last_sync``.

    Metadata fields the incoming record leaves empty keep their stored value.
    """
    stamp = now or utcnow()
    if existing is None:
        metadata = incoming.metadata.model_copy(update={"last_sync": stamp})
        return incoming.model_copy(update={"metadata": metadata})

    updates = incoming.metadata.model_dump(exclude_none=True, exclude={"last_sync"})
    metadata = existing.metadata.model_copy(update={**updates, "last_sync": stamp})
    return existing.model_copy(
        update={
            "name": incoming.name or existing.name,
            "edit_url": incoming.edit_url or existing.edit_url,
            "metadata": metadata,
        }
    )
