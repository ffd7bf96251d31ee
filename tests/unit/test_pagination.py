"""Unit tests for spybridge.extraction.pagination."""

from __future__ import annotations

from spybridge.extraction.pagination import (
    DEFAULT_MAX_PAGES,
    PageFetch,
    StopReason,
    find_next_page_link,
    paginate,
)

BASE_URL = "https://2-biz.spysystem.dk"


def _listing(*ids: int) -> str:
    rows = "".join(
        f'<tr><td><a href="/?customer_id={i}">Customer {i}</a></td></tr>' for i in ids
    )
    return f'<table id="CustomerList"><tbody>{rows}</tbody></table>'


class TestPaginate:
    def test_stops_at_page_ceiling(self) -> None:
        visited: list[int] = []

        def fetch(page_no: int) -> PageFetch:
            visited.append(page_no)
            return PageFetch(html=_listing(page_no * 10, page_no * 10 + 1), has_next=True)

        outcome = paginate(fetch, base_url=BASE_URL)

        assert DEFAULT_MAX_PAGES == 50
        assert visited == list(range(1, 51))
        assert outcome.pages_visited == 50
        assert outcome.stop_reason is StopReason.PAGE_LIMIT
        assert len(outcome.customers) == 100

    def test_custom_ceiling(self) -> None:
        outcome = paginate(
            lambda n: PageFetch(html=_listing(n), has_next=True),
            base_url=BASE_URL,
            max_pages=3,
        )
        assert outcome.pages_visited == 3
        assert [c.id for c in outcome.customers] == ["1", "2", "3"]

    def test_stops_without_next_link(self) -> None:
        pages = {1: PageFetch(_listing(1, 2), True), 2: PageFetch(_listing(3), False)}
        outcome = paginate(pages.__getitem__, base_url=BASE_URL)

        assert outcome.stop_reason is StopReason.NO_NEXT_PAGE
        assert outcome.pages_visited == 2
        assert [c.id for c in outcome.customers] == ["1", "2", "3"]

    def test_stops_when_page_repeats(self) -> None:
        outcome = paginate(lambda n: PageFetch(_listing(1, 2), True), base_url=BASE_URL)

        assert outcome.stop_reason is StopReason.NO_NEW_CUSTOMERS
        assert outcome.pages_visited == 2
        assert len(outcome.customers) == 2

    def test_dedupes_across_pages(self) -> None:
        pages = {1: PageFetch(_listing(1, 2), True), 2: PageFetch(_listing(2, 3), False)}
        outcome = paginate(pages.__getitem__, base_url=BASE_URL)
        assert [c.id for c in outcome.customers] == ["1", "2", "3"]

    def test_empty_first_page(self) -> None:
        outcome = paginate(lambda n: PageFetch("<p>No data</p>", True), base_url=BASE_URL)
        assert outcome.customers == []
        assert outcome.pages_visited == 1


class TestFindNextPageLink:
    def test_numbered_link(self) -> None:
        html = '<div class="pager"><a href="?page=2">2</a></div>'
        assert find_next_page_link(html, 1) is True
        assert find_next_page_link(html, 2) is False

    def test_no_pager(self) -> None:
        assert find_next_page_link(_listing(1), 1) is False
