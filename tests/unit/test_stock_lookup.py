"""Unit tests for spybridge.browser.stock_lookup: the search-to-tab step machine."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeout

from spybridge.browser.stock_lookup import (
    DETAIL_TAB,
    RESULT_ROWS,
    STAT_BOX,
    build_style_search_url,
    check_stock,
    open_style_page,
)
from spybridge.exceptions import AuthenticationError, LookupStepError, NavigationTimeout, StockNotFound
from spybridge.models.stock import QueryBy, RowType, StockLookupRequest


def _row(text: str, with_link: bool = True) -> MagicMock:
    row = MagicMock(name=f"row({text})")
    row.text_content.return_value = text
    row.query_selector.return_value = MagicMock(name="link") if with_link else None
    return row


@pytest.fixture()
def style_page(page_factory, spy_page):
    page = page_factory(present={".App", STAT_BOX})
    page.query_selector_all.return_value = [_row("9999 Other style"), _row("1234 Slim jeans")]
    page.content.return_value = spy_page("stock_matrix.html")
    return page


class TestBuildStyleSearchUrl:
    def test_by_number(self, settings) -> None:
        url = build_style_search_url(settings, "1234", QueryBy.NUMBER)
        assert url.startswith("https://2-biz.spysystem.dk/?controller=Style%5CIndex&action=List")
        assert url.endswith("[bForceSearch]=true&Spy\\Model\\Style\\Index\\ListReportSearch[strStyleNo]=1234")

    def test_by_name_is_url_encoded(self, settings) -> None:
        url = build_style_search_url(settings, "slim fit/blue", "name")
        assert url.endswith("[strStyleName]=slim%20fit%2Fblue")


class TestOpenStylePage:
    def test_happy_path_clicks_matching_row_and_tab(self, style_page, settings) -> None:
        html = open_style_page(style_page, "1234", QueryBy.NUMBER, settings)

        assert "statAndStockBox" in html
        rows = style_page.query_selector_all.return_value
        rows[0].query_selector.return_value.click.assert_not_called()
        rows[1].query_selector.return_value.click.assert_called_once()
        style_page.click.assert_called_once_with(DETAIL_TAB)
        style_page.query_selector_all.assert_called_once_with(RESULT_ROWS)

    def test_row_match_is_case_insensitive(self, style_page, settings) -> None:
        open_style_page(style_page, "SLIM JEANS", QueryBy.NAME, settings)
        style_page.query_selector_all.return_value[1].query_selector.return_value.click.assert_called_once()

    def test_no_matching_row(self, style_page, settings) -> None:
        with pytest.raises(LookupStepError) as exc_info:
            open_style_page(style_page, "0000", QueryBy.NUMBER, settings)

        assert exc_info.value.step == "SELECT_RESULT_ROW"
        assert "no matching result found for query: 0000" in str(exc_info.value)

    def test_row_without_link_is_skipped(self, style_page, settings) -> None:
        style_page.query_selector_all.return_value = [_row("1234 no link", with_link=False)]
        with pytest.raises(LookupStepError):
            open_style_page(style_page, "1234", QueryBy.NUMBER, settings)

    def test_timeout_names_its_step(self, style_page, settings) -> None:
        def wait(selector: str, timeout: int):
            if selector == DETAIL_TAB:
                raise PlaywrightTimeout("timeout")

        style_page.wait_for_selector.side_effect = wait

        with pytest.raises(NavigationTimeout) as exc_info:
            open_style_page(style_page, "1234", QueryBy.NUMBER, settings)
        assert exc_info.value.step == "OPEN_DETAIL_TAB"

    def test_page_errors_name_their_step(self, style_page, settings) -> None:
        style_page.click.side_effect = PlaywrightError("element detached")

        with pytest.raises(LookupStepError) as exc_info:
            open_style_page(style_page, "1234", QueryBy.NUMBER, settings)
        assert exc_info.value.step == "OPEN_DETAIL_TAB"

    def test_no_boxes(self, page_factory, settings) -> None:
        page = page_factory(present=set())
        page.query_selector_all.return_value = [_row("1234")]

        with pytest.raises(LookupStepError) as exc_info:
            open_style_page(page, "1234", QueryBy.NUMBER, settings)
        assert exc_info.value.step == "WAIT_STAT_BOX"


class TestCheckStock:
    def test_returns_parsed_quantities(self, style_page, settings, credentials, fake_session) -> None:
        session = fake_session(style_page)
        request = StockLookupRequest(query="1234", row=RowType.AVAILABLE)

        result = check_stock(request, credentials, settings, session_factory=session)

        assert result.sku == "1234"
        assert result.data["BLACK"]["Total"] == 28
        assert result.row_used == {"327 DARK DENIM": "Stock", "BLACK": "Stock"}
        assert result.to_dict()["rowUsed"]["BLACK"] == "Stock"
        assert session.state == {"opened": 1, "closed": 1}

    def test_session_released_on_login_failure(self, page_factory, settings, credentials, fake_session) -> None:
        session = fake_session(page_factory(present=set()))

        with pytest.raises(AuthenticationError):
            check_stock(StockLookupRequest(query="1234"), credentials, settings, session_factory=session)
        assert session.state["closed"] == 1

    def test_unusable_table_fails_the_extract_step(self, style_page, settings, credentials, fake_session) -> None:
        style_page.content.return_value = "<html><body><p>Nothing here</p></body></html>"

        with pytest.raises(LookupStepError) as exc_info:
            check_stock(StockLookupRequest(query="1234"), credentials, settings, session_factory=fake_session(style_page))

        assert exc_info.value.step == "EXTRACT"
        assert isinstance(exc_info.value.__cause__, StockNotFound)

    def test_plain_string_row_is_accepted(self, style_page, settings, credentials, fake_session) -> None:
        request = StockLookupRequest(query="1234", query_by="no", row="Stock")

        result = check_stock(request, credentials, settings, session_factory=fake_session(style_page))

        assert result.row is RowType.STOCK
        assert result.to_dict()["row"] == "Stock"
