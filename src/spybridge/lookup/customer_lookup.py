"""Customer lookup service over the cached directory."""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable

from spybridge.exceptions import StorageError
from spybridge.lookup.similarity import DEFAULT_LIMIT, DEFAULT_MIN_SCORE, search
from spybridge.models.customer import Customer
from spybridge.models.results import SearchResult
from spybridge.store.base import CustomerStorage

logger = logging.getLogger(__name__)

COUNTRY_BOOST = 0.15
PREFERRED_BOOST = 0.10
HISTORY_BOOST = 0.05
PROMOTE_TO_EXACT = 0.95
CONFIDENT_SINGLE = 0.9

MIN_SUGGESTION_QUERY = 2
RECENT_LIMIT = 10


@dataclass
class CustomerValidation:
    is_valid: bool
    customer: Customer | None = None
    error: str | None = None


@dataclass
class CustomerStats:
    total_customers: int = 0
    last_sync_time: datetime | None = None
    customers_by_country: dict[str, int] = field(default_factory=dict)
    recently_updated: list[Customer] = field(default_factory=list)


class CustomerLookup:
    """Resolve free-text customer references against stored customers.

    Args:
        storage: Directory backend to read from.
        min_score: Suggestions must score strictly above this.
        limit: Maximum suggestions returned by ``find_customer``.
    """

    def __init__(
        self,
        storage: CustomerStorage,
        *,
        min_score: float = DEFAULT_MIN_SCORE,
        limit: int = DEFAULT_LIMIT,
    ) -> None:
        self.storage = storage
        self.min_score = min_score
        self.limit = limit

    def find_customer(self, query: str) -> SearchResult:
        """Rank stored customers against *query*.

        A storage failure is logged and reported as an empty result.
        """
        if not query or not query.strip():
            return SearchResult(query=(query or "").strip())
        try:
            customers = self.storage.load_customers()
        except StorageError as exc:
            logger.error("Customer lookup for %r failed: %s", query, exc)
            return SearchResult(query=query.strip())
        result = search(query, customers, min_score=self.min_score, limit=self.limit)
        logger.info(
            "Customer lookup %r: %d suggestions (confidence %.2f)",
            result.query,
            len(result.suggestions),
            result.confidence,
        )
        return result

    def find_customer_with_context(
        self,
        query: str,
        *,
        country: str | None = None,
        preferred_ids: Iterable[str] = (),
        order_history: Iterable[str] = (),
    ) -> SearchResult:
        """``find_customer`` re-ranked with business context.

        Each suggestion's score is boosted for a matching country, for being
        a preferred customer and for appearing in the order history, capped
        at 1.0. A top score of at least 0.95 promotes that suggestion to the
        exact match.
        """
        base = self.find_customer(query)
        preferred = set(preferred_ids)
        history = set(order_history)
        if not base.suggestions or not (country or preferred or history):
            return base

        wanted_country = country.casefold() if country else None
        rescored: list[tuple[float, Customer]] = []
        for score, customer in zip(base.scores, base.suggestions):
            bonus = 0.0
            if wanted_country and (customer.metadata.country or "").casefold() == wanted_country:
                bonus += COUNTRY_BOOST
            if customer.id in preferred:
                bonus += PREFERRED_BOOST
            if customer.id in history:
                bonus += HISTORY_BOOST
            rescored.append((min(round(score + bonus, 6), 1.0), customer))
        rescored.sort(key=lambda pair: pair[0], reverse=True)

        confidence = rescored[0][0]
        logger.debug("Context changed confidence from %.2f to %.2f", base.confidence, confidence)
        return SearchResult(
            query=base.query,
            exact_match=rescored[0][1] if confidence >= PROMOTE_TO_EXACT else base.exact_match,
            suggestions=[c for _, c in rescored],
            confidence=confidence,
            scores=[s for s, _ in rescored],
        )

    def validate_customer_exists(self, customer_id: str) -> CustomerValidation:
        try:
            customer = self.storage.get_customer_by_id(customer_id)
        except StorageError as exc:
            return CustomerValidation(is_valid=False, error=str(exc))
        if customer is None:
            return CustomerValidation(is_valid=False, error=f"Customer with ID {customer_id} not found")
        return CustomerValidation(is_valid=True, customer=customer)

    def get_customer_suggestions(self, partial: str, limit: int = 5) -> list[Customer]:
        """Autocomplete: best matches, or the most recently synced for short input."""
        if not partial or len(partial.strip()) < MIN_SUGGESTION_QUERY:
            return _most_recent(self.storage.load_customers(), limit)
        return self.find_customer(partial).suggestions[:limit]

    @staticmethod
    def clarification_questions(result: SearchResult) -> list[str]:
        """Questions to ask when *result* does not settle on one customer."""
        suggestions = result.suggestions
        if not suggestions:
            return [
                f'I couldn\'t find a customer matching "{result.query}". Please provide the exact customer name.',
                "Is this a new customer, or should I search by a different name?",
            ]
        if len(suggestions) == 1:
            if result.confidence < CONFIDENT_SINGLE:
                return [f'Did you mean "{suggestions[0].name}"?']
            return []
        listing = "\n".join(f"{i}. {c.name}" for i, c in enumerate(suggestions[:3], start=1))
        return [
            f'I found multiple customers matching "{result.query}":',
            listing,
            "Which customer did you mean?",
        ]

    def customer_stats(self) -> CustomerStats:
        customers = self.storage.load_customers()
        by_country = Counter(c.metadata.country or "Unknown" for c in customers)
        return CustomerStats(
            total_customers=len(customers),
            last_sync_time=self.storage.get_last_sync_time(),
            customers_by_country=dict(by_country),
            recently_updated=_most_recent(customers, RECENT_LIMIT),
        )


def _most_recent(customers: list[Customer], limit: int) -> list[Customer]:
    return sorted(customers, key=lambda c: c.metadata.last_sync, reverse=True)[:limit]
