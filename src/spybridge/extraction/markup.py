"""Shared HTML loading for the extractors."""

from __future__ import annotations

from bs4 import BeautifulSoup
from bs4.builder import ParserRejectedMarkup

from spybridge.exceptions import ParseError


def load_markup(html: str) -> BeautifulSoup:
    """Parse *html* with the stdlib-backed parser.

    Raises:
        ParseError: If *html* is not text or the parser rejects it.
    """
    if not isinstance(html, str):
        raise ParseError(f"Expected page HTML as text, got {type(html).__name__}")
    try:
        return BeautifulSoup(html, "html.parser")
    except (ParserRejectedMarkup, AssertionError) as exc:
        raise ParseError(f"Could not parse page HTML: {exc}") from exc


def visible_text(soup: BeautifulSoup) -> str:
    """Whitespace-collapsed text of the document body (or whole document)."""
    root = soup.body or soup
    return " ".join(root.get_text(" ", strip=True).split())
