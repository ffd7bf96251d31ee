"""File-backed customer directory (``<data_dir>/customers.json``)."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Callable

import pydantic

from spybridge.exceptions import StorageError
from spybridge.models.customer import Customer, CustomerDirectory, DirectoryMetadata, utcnow
from spybridge.store.base import merge_customer

logger = logging.getLogger(__name__)

CUSTOMERS_FILE = "customers.json"


class JsonCustomerStorage:
    """Keep the directory as one pretty-printed JSON document.

    Every write replaces the file atomically. A corrupt file reads as an
    empty directory so the next sync can overwrite it.

    Args:
        data_dir: Directory holding ``customers.json``.
        clock: Source of "now" for upserts.
    """

    def __init__(self, data_dir: str | Path, *, clock: Callable[[], datetime] = utcnow) -> None:
        self.data_dir = Path(data_dir)
        self.path = self.data_dir / CUSTOMERS_FILE
        self._clock = clock

    def _read(self) -> CustomerDirectory | None:
        if not self.path.is_file():
            logger.debug("No customer data file at %s", self.path)
            return None
        try:
            raw = self.path.read_text(encoding="utf-8")
        except OSError as exc:
            raise StorageError(f"Failed to read {self.path}: {exc}") from exc
        try:
            return CustomerDirectory.model_validate(json.loads(raw))
        except (json.JSONDecodeError, pydantic.ValidationError) as exc:
            logger.warning("Customer data file %s is corrupted, treating as empty: %s", self.path, exc)
            return None

    def _write(self, directory: CustomerDirectory) -> None:
        payload = directory.model_dump(mode="json", by_alias=True, exclude_none=True)
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.data_dir, prefix=".customers-", suffix=".json")
        except OSError as exc:
            raise StorageError(f"Failed to save customers to {self.path}: {exc}") from exc
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(payload, handle, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self.path)
        except OSError as exc:
            raise StorageError(f"Failed to save customers to {self.path}: {exc}") from exc
        finally:
            # Gone already when the replace succeeded.
            Path(tmp_path).unlink(missing_ok=True)

    def save_customers(self, customers: list[Customer]) -> None:
        self._write(CustomerDirectory.build(customers))
        logger.info("Saved %d customers to %s", len(customers), self.path)

    def load_customers(self) -> list[Customer]:
        directory = self._read()
        if directory is None:
            return []
        logger.debug("Loaded %d customers from %s", len(directory.customers), self.path)
        return directory.customers

    def upsert_customer(self, customer: Customer) -> Customer:
        customers = self.load_customers()
        for index, existing in enumerate(customers):
            if existing.id == customer.id:
                merged = merge_customer(existing, customer, self._clock())
                customers[index] = merged
                logger.info("Updated existing customer: %s", merged.name)
                break
        else:
            merged = merge_customer(None, customer, self._clock())
            customers.append(merged)
            logger.info("Added new customer: %s", merged.name)
        self.save_customers(customers)
        return merged

    def remove_customer(self, customer_id: str) -> bool:
        customers = self.load_customers()
        remaining = [c for c in customers if c.id != customer_id]
        if len(remaining) == len(customers):
            logger.info("No customer found with id %s", customer_id)
            return False
        self.save_customers(remaining)
        logger.info("Removed customer with id %s", customer_id)
        return True

    def get_customer_by_id(self, customer_id: str) -> Customer | None:
        return next((c for c in self.load_customers() if c.id == customer_id), None)

    def get_metadata(self) -> DirectoryMetadata | None:
        directory = self._read()
        return directory.metadata if directory is not None else None

    def get_last_sync_time(self) -> datetime | None:
        metadata = self.get_metadata()
        return metadata.last_sync if metadata is not None else None
