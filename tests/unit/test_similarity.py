"""Unit tests for spybridge.lookup.similarity."""

from __future__ import annotations

import pytest

from spybridge.lookup.similarity import (
    CONTAINMENT_SCORE,
    charset_jaccard,
    edit_similarity,
    normalize_name,
    search,
    similarity_score,
    token_overlap,
)


@pytest.fixture()
def directory(customer_factory):
    return [
        customer_factory("1", "ABC Corporation"),
        customer_factory("2", "XYZ Fashion Store"),
    ]


class TestNormalize:
    def test_lowercases_and_strips_punctuation(self) -> None:
        assert normalize_name("  ABC,  Corp. ") == "abc corp"

    def test_keeps_non_ascii_letters(self) -> None:
        assert normalize_name("Søstrene Grene A/S") == "søstrene grene as"


class TestComponents:
    def test_token_overlap_counts_partial_tokens(self) -> None:
        assert token_overlap("abc corp", "abc corporation") == 1.0
        assert token_overlap("abc store", "abc corporation") == 0.5
        assert token_overlap("", "abc") == 0.0

    def test_edit_similarity(self) -> None:
        assert edit_similarity("abc", "abc") == 1.0
        assert edit_similarity("abc", "abd") == pytest.approx(2 / 3)
        assert edit_similarity("", "") == 1.0

    def test_charset_jaccard(self) -> None:
        assert charset_jaccard("ab", "bc") == pytest.approx(1 / 3)
        assert charset_jaccard("", "") == 0.0


class TestSimilarityScore:
    def test_exact(self) -> None:
        assert similarity_score("abc corporation", "ABC Corporation") == 1.0

    def test_containment_either_way(self) -> None:
        assert similarity_score("abc corp", "ABC Corporation") == CONTAINMENT_SCORE
        assert similarity_score("abc corporation denmark", "ABC Corporation") == CONTAINMENT_SCORE

    def test_fuzzy_is_capped_below_exact(self) -> None:
        score = similarity_score("nordik style", "Nordic Style")
        assert 0.6 < score < 0.95

    def test_unrelated_scores_zero(self) -> None:
        assert similarity_score("qqq", "ABC Corporation") == 0.0

    def test_empty_inputs(self) -> None:
        assert similarity_score("", "ABC Corporation") == 0.0
        assert similarity_score("abc", "!!!") == 0.0


class TestSearch:
    def test_exact_match_short_circuits(self, directory) -> None:
        result = search("abc corporation", directory)

        assert result.exact_match is directory[0]
        assert result.suggestions == [directory[0]]
        assert result.confidence == 1.0

    def test_partial_name(self, directory) -> None:
        result = search("ABC Corp", directory)

        assert result.exact_match is None
        assert [c.name for c in result.suggestions] == ["ABC Corporation"]
        assert result.confidence > 0.7

    def test_nothing_above_threshold(self, directory) -> None:
        result = search("qqq", directory)
        assert result.suggestions == []
        assert result.confidence == 0.0

    def test_blank_query(self, directory) -> None:
        result = search("   ", directory)
        assert result.suggestions == []
        assert result.exact_match is None

    def test_results_are_sorted_and_limited(self, customer_factory) -> None:
        pool = [
            customer_factory("1", "Nordic Fashion Group"),
            customer_factory("2", "Nordic Fashion"),
            customer_factory("3", "Nordik Fashon"),
        ]
        result = search("nordic fashion g", pool, limit=2)

        assert len(result.suggestions) == 2
        assert result.scores == sorted(result.scores, reverse=True)
        assert result.suggestions[0].id in {"1", "2"}
