"""Approximate customer-name matching.

A query is scored against each directory name after normalisation
(lowercase, punctuation removed, whitespace collapsed):

* identical names score 1.0 and end the search;
* containment in either direction scores 0.9;
* otherwise ``0.4 * token overlap + 0.3 * edit similarity + 0.3 * char-set
  Jaccard``, capped at 0.95 so only an exact match reaches 1.0.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable

import Levenshtein

from spybridge.models.customer import Customer
from spybridge.models.results import SearchResult

logger = logging.getLogger(__name__)

EXACT_SCORE = 1.0
CONTAINMENT_SCORE = 0.9
FUZZY_CAP = 0.95

TOKEN_WEIGHT = 0.4
EDIT_WEIGHT = 0.3
CHARSET_WEIGHT = 0.3

DEFAULT_MIN_SCORE = 0.3
DEFAULT_LIMIT = 10

_PUNCTUATION = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")


def normalize_name(text: str) -> str:
    """Lowercase, strip punctuation and collapse whitespace."""
    text = _PUNCTUATION.sub("", text.lower().strip())
    return _WHITESPACE.sub(" ", text).strip()


def token_overlap(query: str, name: str) -> float:
    """Share of query tokens that contain, or are contained in, some name token."""
    query_tokens = query.split()
    name_tokens = name.split()
    if not query_tokens:
        return 0.0
    matched = sum(
        1 for q in query_tokens if any(q in n or n in q for n in name_tokens)
    )
    return matched / len(query_tokens)


def edit_similarity(a: str, b: str) -> float:
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1.0 - Levenshtein.distance(a, b) / longest


def charset_jaccard(a: str, b: str) -> float:
    chars_a, chars_b = set(a), set(b)
    union = chars_a | chars_b
    if not union:
        return 0.0
    return len(chars_a & chars_b) / len(union)


def similarity_score(normalized_query: str, name: str) -> float:
    """Score an already-normalised query against a raw customer *name*."""
    normalized = normalize_name(name)
    if not normalized or not normalized_query:
        return 0.0
    if normalized == normalized_query:
        return EXACT_SCORE
    if normalized_query in normalized or normalized in normalized_query:
        return CONTAINMENT_SCORE
    combined = (
        TOKEN_WEIGHT * token_overlap(normalized_query, normalized)
        + EDIT_WEIGHT * edit_similarity(normalized_query, normalized)
        + CHARSET_WEIGHT * charset_jaccard(normalized_query, normalized)
    )
    return min(combined, FUZZY_CAP)


def search(
    query: str,
    customers: Iterable[Customer],
    *,
    min_score: float = DEFAULT_MIN_SCORE,
    limit: int = DEFAULT_LIMIT,
) -> SearchResult:
    """Rank *customers* by similarity to *query*.

    Returns:
        A ``SearchResult`` whose suggestions are ordered best first. An exact
        match short-circuits with confidence 1.0; otherwise confidence is the
        top suggestion's score, or 0 when nothing beats *min_score*.
    """
    normalized_query = normalize_name(query or "")
    result = SearchResult(query=(query or "").strip())
    if not normalized_query:
        return result

    pool = list(customers)
    for customer in pool:
        if normalize_name(customer.name) == normalized_query:
            logger.debug("Exact match for %r: %s", query, customer.name)
            result.exact_match = customer
            result.suggestions = [customer]
            result.scores = [EXACT_SCORE]
            result.confidence = EXACT_SCORE
            return result

    scored = [(similarity_score(normalized_query, c.name), c) for c in pool]
    ranked = sorted(
        ((score, c) for score, c in scored if score > min_score),
        key=lambda pair: pair[0],
        reverse=True,
    )[:limit]

    result.suggestions = [c for _, c in ranked]
    result.scores = [score for score, _ in ranked]
    result.confidence = ranked[0][0] if ranked else 0.0
    logger.debug(
        "Search %r: %d suggestions (best %.2f)", query, len(ranked), result.confidence
    )
    return result
