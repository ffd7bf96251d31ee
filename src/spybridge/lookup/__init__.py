"""Customer resolution: similarity scoring and the lookup service."""

from __future__ import annotations

from spybridge.lookup.customer_lookup import CustomerLookup, CustomerStats, CustomerValidation
from spybridge.lookup.similarity import normalize_name, search, similarity_score

__all__ = [
    "CustomerLookup",
    "CustomerStats",
    "CustomerValidation",
    "normalize_name",
    "search",
    "similarity_score",
]
