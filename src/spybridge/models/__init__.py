"""Domain models for stock lookups, customers and sync results."""

from __future__ import annotations

from spybridge.models.customer import (
    Credentials,
    Customer,
    CustomerDirectory,
    CustomerMetadata,
    DirectoryMetadata,
)
from spybridge.models.results import SearchResult, SyncMode, SyncResult
from spybridge.models.stock import (
    QueryBy,
    RowType,
    StockCheckResult,
    StockLookupRequest,
    StockRecord,
)

__all__ = [
    "Credentials",
    "Customer",
    "CustomerDirectory",
    "CustomerMetadata",
    "DirectoryMetadata",
    "QueryBy",
    "RowType",
    "SearchResult",
    "StockCheckResult",
    "StockLookupRequest",
    "StockRecord",
    "SyncMode",
    "SyncResult",
]
