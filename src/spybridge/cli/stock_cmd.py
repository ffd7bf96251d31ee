"""CLI commands for SPY stock lookups."""

from __future__ import annotations

import json

import typer
from rich.console import Console
from rich.table import Table

from spybridge.models.stock import TOTAL_KEY, QueryBy, RowType, StockCheckResult

stock_app = typer.Typer(help="Look up stock quantities in SPY.")
console = Console()


@stock_app.command("check")
def check(
    query: str = typer.Argument(..., help="Style number or style name."),
    by: QueryBy = typer.Option(QueryBy.NUMBER, "--by", help="Search by style number (no) or name."),
    row: RowType = typer.Option(RowType.STOCK, "--row", "-r", help="Quantity row: Stock, Available or PO Available."),
    as_json: bool = typer.Option(False, "--json", help="Print the raw result as JSON."),
) -> None:
    """Log in to SPY and print per-color, per-size quantities for one style."""
    from playwright.sync_api import Error as PlaywrightError

    from spybridge.browser.stock_lookup import check_stock
    from spybridge.exceptions import SpyBridgeError
    from spybridge.models.customer import Credentials
    from spybridge.models.stock import StockLookupRequest
    from spybridge.settings import get_settings

    settings = get_settings()
    credentials = Credentials(username=settings.credentials.username, password=settings.credentials.password)
    request = StockLookupRequest(query=query, query_by=by, row=row)

    try:
        with console.status(f"Checking {row.value} for {query}..."):
            result = check_stock(request, credentials, settings)
    except (SpyBridgeError, PlaywrightError) as e:
        console.print(f"[red]✗[/red] Stock lookup failed: {e}")
        raise typer.Exit(code=1)

    if as_json:
        console.print_json(json.dumps(result.to_dict()))
        return
    console.print(_stock_table(result))
    for color, used in result.row_used.items():
        console.print(f"[yellow]⚠[/yellow] {color}: {row.value} not listed, showing {used}")


def _stock_table(result: StockCheckResult) -> Table:
    sizes: list[str] = []
    for quantities in result.data.values():
        for size in quantities:
            if size != TOTAL_KEY and size not in sizes:
                sizes.append(size)

    table = Table(title=f"{result.sku}: {result.row.value}")
    table.add_column("Color", style="cyan")
    for size in sizes:
        table.add_column(size, justify="right")
    table.add_column(TOTAL_KEY, justify="right", style="bold")
    for color, quantities in result.data.items():
        table.add_row(color, *(str(quantities.get(s, 0)) for s in sizes), str(quantities.get(TOTAL_KEY, 0)))
    return table
