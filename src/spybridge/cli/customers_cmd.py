"""CLI commands for the customer directory: sync, search, status and health."""

from __future__ import annotations

import json
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from spybridge.models.results import SyncMode

customers_app = typer.Typer(help="Sync and search the SPY customer directory.")
console = Console()


@customers_app.command("sync")
def sync(
    mode: SyncMode = typer.Option(SyncMode.QUICK, "--mode", "-m", help="quick, full, preview or enhanced."),
    as_json: bool = typer.Option(False, "--json", help="Print the full result as JSON."),
    show_logs: bool = typer.Option(False, "--logs", help="Print the run's diagnostic log."),
) -> None:
    """Pull customers from SPY into the local directory."""
    from spybridge.settings import get_settings
    from spybridge.store import build_customer_storage
    from spybridge.sync import SyncOrchestrator

    settings = get_settings()
    orchestrator = SyncOrchestrator(settings, build_customer_storage(settings))
    with console.status(f"Running {mode.value} customer sync..."):
        result = orchestrator.run(mode)

    if as_json:
        typer.echo(json.dumps(result.to_dict(), indent=2, default=str))
    if show_logs:
        for line in result.debug_info.get("logs", []):
            console.print(f"[dim]{line}[/dim]", highlight=False)

    for error in result.errors if result.success else []:
        console.print(f"[yellow]⚠[/yellow] {error}")
    if not result.success:
        console.print(f"[red]✗[/red] Sync failed: {'; '.join(result.errors) or 'unknown error'}")
        raise typer.Exit(code=1)

    console.print(f"[green]✓[/green] {mode.value.capitalize()} sync complete ({result.duration_ms}ms)")
    console.print(f"  Customers found: {result.customers_found}")
    console.print(f"  Customers saved: {result.customers_saved}")
    if "totalPages" in result.debug_info:
        console.print(f"  Pages processed: {result.debug_info['totalPages']}")


@customers_app.command("search")
def search(
    query: str = typer.Argument(..., help="Free-text customer name."),
    country: Optional[str] = typer.Option(None, "--country", help="Boost customers in this country."),
    limit: Optional[int] = typer.Option(None, "--limit", "-n", min=1, help="Maximum suggestions."),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON."),
) -> None:
    """Rank stored customers against QUERY."""
    from spybridge.lookup import CustomerLookup
    from spybridge.settings import get_settings
    from spybridge.store import build_customer_storage

    settings = get_settings()
    lookup = CustomerLookup(
        build_customer_storage(settings),
        min_score=settings.lookup.min_score,
        limit=limit or settings.lookup.max_results,
    )
    if country:
        result = lookup.find_customer_with_context(query, country=country)
    else:
        result = lookup.find_customer(query)

    if as_json:
        typer.echo(json.dumps(result.to_dict(), indent=2, default=str))
        return
    if result.exact_match:
        console.print(f"[green]✓[/green] Exact match: {result.exact_match.name} (ID {result.exact_match.id})")
    if not result.suggestions:
        for question in CustomerLookup.clarification_questions(result):
            console.print(question)
        raise typer.Exit(code=1)

    table = Table(title=f"Customers matching {query!r}")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Country")
    table.add_column("Score", justify="right")
    for customer, score in zip(result.suggestions, result.scores):
        table.add_row(customer.id, customer.name, customer.metadata.country or "", f"{score:.2f}")
    console.print(table)


@customers_app.command("status")
def status(as_json: bool = typer.Option(False, "--json", help="Print the status as JSON.")) -> None:
    """Show how many customers are cached and how fresh they are."""
    from spybridge.exceptions import StorageError
    from spybridge.settings import get_settings
    from spybridge.store import build_customer_storage
    from spybridge.sync import sync_status

    settings = get_settings()
    try:
        current = sync_status(build_customer_storage(settings), settings.lookup.stale_after_hours)
    except StorageError as e:
        console.print(f"[red]✗[/red] Could not read customer storage: {e}")
        raise typer.Exit(code=1)

    if as_json:
        typer.echo(json.dumps(current.to_dict(), indent=2))
        return
    console.print(f"  Customers: {current.total_customers}")
    console.print(f"  Last sync: {current.last_sync.isoformat() if current.last_sync else 'never'}")
    if current.hours_since_sync is not None:
        console.print(f"  Age: {current.hours_since_sync:.1f} hours")
    marker = "[yellow]stale[/yellow]" if current.is_stale else "[green]fresh[/green]"
    console.print(f"  Data is {marker}")


@customers_app.command("health")
def health(as_json: bool = typer.Option(False, "--json", help="Print the report as JSON.")) -> None:
    """Check credentials, storage and data freshness."""
    from spybridge.settings import get_settings
    from spybridge.store import build_customer_storage
    from spybridge.sync import health_check

    settings = get_settings()
    report = health_check(settings, build_customer_storage(settings))
    if as_json:
        typer.echo(json.dumps(report.to_dict(), indent=2))
    else:
        for name, ok in report.checks.items():
            console.print(f"  {'[green]✓[/green]' if ok else '[red]✗[/red]'} {name}")
        for issue, advice in zip(report.issues, report.recommendations):
            console.print(f"[yellow]⚠[/yellow] {issue}: {advice}")
    if not report.healthy:
        raise typer.Exit(code=1)
