"""Unified CLI entry point for spybridge.

Config precedence: settings.default.toml -> settings.<env>.toml -> settings.local.toml -> env vars (SPYBRIDGE_* with double underscores) -> CLI flags.
"""

from __future__ import annotations

import logging

import typer

from spybridge.cli.customers_cmd import customers_app
from spybridge.cli.settings_cmd import settings_app
from spybridge.cli.stock_cmd import stock_app

try:
    from importlib.metadata import version

    VERSION = version("spybridge")
except Exception:
    VERSION = "unknown"

APP_HELP = (
    "spybridge: SPY wholesale system bridge. "
    "Stock lookups, customer directory sync and fuzzy customer search. "
    "Config precedence: settings.default.toml -> settings.local.toml -> env vars (SPYBRIDGE_* with __) -> CLI flags."
)

app = typer.Typer(add_completion=True, help=APP_HELP)

app.add_typer(stock_app, name="stock")
app.add_typer(customers_app, name="customers")
app.add_typer(settings_app, name="settings")


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: bool = typer.Option(False, "--version", help="Show version and exit."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Show help when no subcommand is provided."""
    if version:
        typer.echo(f"spybridge {VERSION}")
        raise typer.Exit()
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


if __name__ == "__main__":
    app()
