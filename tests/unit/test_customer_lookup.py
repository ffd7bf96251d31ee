"""Unit tests for spybridge.lookup.customer_lookup."""

from __future__ import annotations

from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from spybridge.exceptions import StorageError
from spybridge.lookup.customer_lookup import CustomerLookup
from spybridge.models.results import SearchResult


@pytest.fixture()
def lookup(json_store, customer_factory, fixed_now):
    json_store.save_customers(
        [
            customer_factory("1", "Nordic Fashion AS", country="Norway", last_sync=fixed_now - timedelta(hours=3)),
            customer_factory("2", "Nordic Fashion AB", country="Sweden", last_sync=fixed_now - timedelta(hours=1)),
            customer_factory("3", "Copenhagen Threads", country="Denmark", last_sync=fixed_now - timedelta(hours=2)),
        ]
    )
    return CustomerLookup(json_store)


class TestFindCustomer:
    def test_exact(self, lookup) -> None:
        result = lookup.find_customer("copenhagen threads")
        assert result.exact_match is not None
        assert result.exact_match.id == "3"

    def test_blank_query(self, lookup) -> None:
        result = lookup.find_customer("  ")
        assert result.suggestions == []
        assert result.confidence == 0.0

    def test_storage_failure_is_an_empty_result(self) -> None:
        storage = MagicMock()
        storage.load_customers.side_effect = StorageError("disk gone")

        result = CustomerLookup(storage).find_customer("nordic")

        assert result.suggestions == []
        assert result.query == "nordic"


class TestFindCustomerWithContext:
    def test_country_boost_reorders(self, lookup) -> None:
        plain = lookup.find_customer("nordic fashion")
        boosted = lookup.find_customer_with_context("nordic fashion", country="sweden")

        assert plain.scores[0] == plain.scores[1]
        assert boosted.suggestions[0].id == "2"
        assert boosted.scores[0] == pytest.approx(min(plain.scores[0] + 0.15, 1.0))

    def test_boosts_promote_to_exact(self, lookup) -> None:
        result = lookup.find_customer_with_context(
            "nordic fashion", country="Norway", preferred_ids=["1"], order_history=["1"]
        )
        assert result.exact_match is not None
        assert result.exact_match.id == "1"
        assert result.confidence == 1.0

    def test_no_context_returns_base_result(self, lookup) -> None:
        assert lookup.find_customer_with_context("nordic fashion") == lookup.find_customer("nordic fashion")


class TestDirectoryHelpers:
    def test_validate_customer_exists(self, lookup) -> None:
        assert lookup.validate_customer_exists("2").is_valid
        missing = lookup.validate_customer_exists("99")
        assert not missing.is_valid
        assert missing.error == "Customer with ID 99 not found"

    def test_short_partial_returns_most_recent(self, lookup) -> None:
        assert [c.id for c in lookup.get_customer_suggestions("n", limit=2)] == ["2", "3"]

    def test_partial_suggestions(self, lookup) -> None:
        ids = {c.id for c in lookup.get_customer_suggestions("nordic")}
        assert ids == {"1", "2"}

    def test_customer_stats(self, lookup, fixed_now) -> None:
        stats = lookup.customer_stats()
        assert stats.total_customers == 3
        assert stats.customers_by_country == {"Norway": 1, "Sweden": 1, "Denmark": 1}
        assert stats.last_sync_time == fixed_now - timedelta(hours=1)
        assert stats.recently_updated[0].id == "2"


class TestClarificationQuestions:
    def test_no_suggestions(self) -> None:
        questions = CustomerLookup.clarification_questions(SearchResult(query="acme"))
        assert questions[0].startswith("I couldn't find a customer matching \"acme\"")

    def test_single_uncertain_suggestion(self, customer_factory) -> None:
        result = SearchResult(query="acm", suggestions=[customer_factory("1", "Acme")], confidence=0.6)
        assert CustomerLookup.clarification_questions(result) == ['Did you mean "Acme"?']

    def test_single_confident_suggestion(self, customer_factory) -> None:
        result = SearchResult(query="acme", suggestions=[customer_factory("1", "Acme")], confidence=0.95)
        assert CustomerLookup.clarification_questions(result) == []

    def test_multiple_suggestions(self, customer_factory) -> None:
        result = SearchResult(
            query="nordic",
            suggestions=[customer_factory(str(i), f"Nordic {i}") for i in range(1, 5)],
            confidence=0.9,
        )
        questions = CustomerLookup.clarification_questions(result)
        assert questions[1] == "1. Nordic 1\n2. Nordic 2\n3. Nordic 3"
        assert questions[-1] == "Which customer did you mean?"
