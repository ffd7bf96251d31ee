"""Customer listing extraction.

Strategies are tried in order until one yields customers:

1. listing rows: rows of ``#CustomerList`` (or, failing that, generic table
   rows) that carry a ``customer_id=`` edit link;
2. customer links: every ``customer_id=`` link anywhere in the document;
3. page classification: decide whether an empty result means "no data" or
   "unexpected structure". Diagnostics only, contributes no records.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from enum import Enum
from typing import Callable, Iterable
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from spybridge.debug_log import LogSink, sink_or_default
from spybridge.exceptions import ValidationError
from spybridge.extraction.markup import load_markup, visible_text
from spybridge.models.customer import Customer, CustomerMetadata, utcnow

logger = logging.getLogger(__name__)

CUSTOMER_LINK = 'a[href*="customer_id="]'
LISTING_ROW_SELECTORS = ("#CustomerList tbody tr", "#CustomerList tr")
GENERIC_ROW_SELECTOR = "table tr, .customer-row, .data-row"

CUSTOMER_ID_RE = re.compile(r"customer_id=(\d+)")
UUID_RE = re.compile(r"uuid=([A-Fa-f0-9-]+)")
EMAIL_RE = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
PHONE_RE = re.compile(r"\+?\d[\d\s\-()]{6,}\d")

KNOWN_COUNTRIES = ("denmark", "norway", "sweden", "finland", "germany", "uk", "netherlands")

# Column offsets of the structured #CustomerList table.
COL_SALESPERSON = 3
COL_BRAND = 4
COL_POSTAL_CODE = 5
COL_CITY = 6
COL_COUNTRY = 7
COL_PHONE = 9
COL_PHONE_ALT = 12

MIN_NAME_LENGTH = 2

CUSTOMER_KEYWORDS = ("customer", "client", "kunde")
NO_DATA_KEYWORDS = ("no data", "no records", "no results", "empty", "ingen")


class PageClassification(str, Enum):
    """Why a listing page yielded no customers."""

    NO_DATA = "no_data"
    UNEXPECTED_STRUCTURE = "unexpected_structure"


Strategy = Callable[..., list[Customer]]


def parse_customer_list(
    html: str,
    *,
    base_url: str,
    log: LogSink | None = None,
    now: datetime | None = None,
) -> list[Customer]:
    """Extract customers from a listing page snapshot.

    Never raises on an empty page; returns ``[]`` instead.

    Raises:
        ParseError: If *html* is not readable markup.
    """
    emit = sink_or_default(log)
    soup = load_markup(html)
    stamp = now or utcnow()

    strategies: list[tuple[str, Strategy]] = [
        ("listing rows", extract_listing_rows),
        ("customer links", extract_customer_links),
    ]
    for name, strategy in strategies:
        customers = dedupe_customers(strategy(soup, base_url=base_url, log=emit, now=stamp))
        emit(f"Strategy {name}: {len(customers)} customers")
        if customers:
            return customers

    classification = classify_empty_page(soup, log=emit)
    emit(f"No customers on page ({classification.value})")
    return []


def extract_listing_rows(
    soup: BeautifulSoup,
    *,
    base_url: str,
    log: LogSink | None = None,
    now: datetime | None = None,
) -> list[Customer]:
    """Strategy 1: rows of the structured listing, else generic table rows."""
    emit = sink_or_default(log)
    stamp = now or utcnow()

    rows: list[Tag] = []
    for selector in LISTING_ROW_SELECTORS:
        rows = soup.select(selector)
        if rows:
            break
    if rows:
        emit(f"Found {len(rows)} rows in #CustomerList")
        return _extract_rows(rows, _customer_from_listing_row, base_url, stamp, emit)

    rows = soup.select(GENERIC_ROW_SELECTOR)
    emit(f"Found {len(rows)} generic table rows")
    return _extract_rows(rows, _customer_from_generic_row, base_url, stamp, emit)


def extract_customer_links(
    soup: BeautifulSoup,
    *,
    base_url: str,
    log: LogSink | None = None,
    now: datetime | None = None,
) -> list[Customer]:
    """Strategy 2: any ``customer_id=`` link in the document."""
    emit = sink_or_default(log)
    stamp = now or utcnow()
    links = soup.select(CUSTOMER_LINK)
    emit(f"Found {len(links)} direct customer links")

    customers: list[Customer] = []
    for link in links:
        name = _clean(link.get_text(" ", strip=True))
        if len(name) < MIN_NAME_LENGTH:
            continue
        customer = _customer_from_link(link, name, base_url, CustomerMetadata(last_sync=stamp))
        if customer is not None:
            customers.append(customer)
    return customers


def classify_empty_page(soup: BeautifulSoup, *, log: LogSink | None = None) -> PageClassification:
    """Strategy 3: keyword heuristics over the visible text."""
    emit = sink_or_default(log)
    text = visible_text(soup).lower()
    emit(f"Page text sample: {text[:200]!r}")
    has_customer_text = any(keyword in text for keyword in CUSTOMER_KEYWORDS)
    emit(f"Page contains customer-related text: {has_customer_text}")
    if any(keyword in text for keyword in NO_DATA_KEYWORDS):
        return PageClassification.NO_DATA
    return PageClassification.UNEXPECTED_STRUCTURE


def dedupe_customers(customers: Iterable[Customer]) -> list[Customer]:
    """Collapse duplicate ids; the first occurrence wins."""
    unique: dict[str, Customer] = {}
    for customer in customers:
        unique.setdefault(customer.id, customer)
    return list(unique.values())


def validate_customer(customer: Customer) -> None:
    """Raise ``ValidationError`` when a required field is missing."""
    reasons = []
    if not customer.id:
        reasons.append("missing id")
    if not customer.name.strip():
        reasons.append("blank name")
    if "customer_id=" not in customer.edit_url:
        reasons.append("edit URL has no customer_id")
    if reasons:
        raise ValidationError(customer.id, reasons)


def validate_customers(
    customers: Iterable[Customer],
) -> tuple[list[Customer], list[ValidationError]]:
    """Split *customers* into valid records and the reasons the rest failed."""
    valid: list[Customer] = []
    invalid: list[ValidationError] = []
    for customer in customers:
        try:
            validate_customer(customer)
        except ValidationError as exc:
            invalid.append(exc)
            continue
        valid.append(customer)
    return valid, invalid


# ---------------------------------------------------------------------------
# Row helpers
# ---------------------------------------------------------------------------


def _extract_rows(
    rows: list[Tag],
    extract: Callable[[Tag, str, datetime], Customer | None],
    base_url: str,
    stamp: datetime,
    emit: LogSink,
) -> list[Customer]:
    customers: list[Customer] = []
    failed = 0
    for index, row in enumerate(rows):
        try:
            customer = extract(row, base_url, stamp)
        except (AttributeError, ValueError, TypeError) as exc:
            failed += 1
            logger.debug("Error processing row %d: %s", index, exc)
            emit(f"Error processing row {index}: {exc}")
            continue
        if customer is not None:
            customers.append(customer)
    if failed:
        emit(f"{failed} of {len(rows)} rows could not be read")
    return customers


def _clean(text: str | None) -> str:
    return " ".join((text or "").split())


def _absolute_url(base_url: str, href: str) -> str:
    if href.startswith(("http://", "https://")):
        return href
    return urljoin(base_url.rstrip("/") + "/", href)


def _customer_from_link(
    link: Tag, name: str, base_url: str, metadata: CustomerMetadata
) -> Customer | None:
    href = link.get("href") or ""
    id_match = CUSTOMER_ID_RE.search(href)
    if id_match is None:
        return None
    uuid_match = UUID_RE.search(href)
    if uuid_match is not None:
        metadata.uuid = uuid_match.group(1)
    return Customer(
        id=id_match.group(1),
        name=name,
        edit_url=_absolute_url(base_url, href),
        metadata=metadata,
    )


def _customer_from_listing_row(row: Tag, base_url: str, stamp: datetime) -> Customer | None:
    """Read one ``#CustomerList`` row using its data attributes and column offsets."""
    link = row.select_one(CUSTOMER_LINK)
    if link is None:
        return None

    title_div = link.select_one("div[title]")
    name = _clean(
        (title_div.get("title") if title_div is not None else "")
        or link.get_text(" ", strip=True)
        or row.get("data-name")
    )
    if len(name) < MIN_NAME_LENGTH:
        return None

    cells = row.find_all("td", recursive=False)

    def column(index: int) -> str:
        return _clean(cells[index].get_text(" ", strip=True)) if index < len(cells) else ""

    postal_code = column(COL_POSTAL_CODE)
    city = column(COL_CITY)
    email = next(
        (text for text in (column(i) for i in range(len(cells))) if "@" in text and "." in text),
        None,
    )
    metadata = CustomerMetadata(
        email=email,
        phone=column(COL_PHONE) or column(COL_PHONE_ALT) or None,
        address=f"{postal_code} {city}" if postal_code and city else None,
        country=column(COL_COUNTRY) or None,
        salesperson=column(COL_SALESPERSON) or None,
        brand=column(COL_BRAND) or None,
        postal_code=postal_code or None,
        city=city or None,
        reference=row.get("data-reference") or None,
        last_sync=stamp,
    )
    return _customer_from_link(link, name, base_url, metadata)


def _customer_from_generic_row(row: Tag, base_url: str, stamp: datetime) -> Customer | None:
    """Read a row of an unknown table using regex heuristics over its text."""
    link = row.select_one(CUSTOMER_LINK)
    if link is None:
        return None
    name = _clean(link.get_text(" ", strip=True))
    if len(name) < MIN_NAME_LENGTH:
        return None

    text = row.get_text(" ", strip=True)
    email = EMAIL_RE.search(text)
    phone = PHONE_RE.search(text)
    metadata = CustomerMetadata(
        email=email.group() if email else None,
        phone=phone.group().strip() if phone else None,
        country=_find_country(text),
        last_sync=stamp,
    )
    return _customer_from_link(link, name, base_url, metadata)


def _find_country(text: str) -> str | None:
    words = set(re.findall(r"[a-z]+", text.lower()))
    for country in KNOWN_COUNTRIES:
        if country in words:
            return country.upper() if len(country) <= 2 else country.capitalize()
    return None
