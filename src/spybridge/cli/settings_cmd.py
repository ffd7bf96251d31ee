"""CLI commands for inspecting and validating spybridge settings."""

from __future__ import annotations

import json

import typer
from rich.console import Console

settings_app = typer.Typer(help="Inspect and validate spybridge configuration.")
console = Console()


@settings_app.command("show")
def show_settings() -> None:
    """Display the currently resolved settings (secrets masked)."""
    from spybridge.settings import get_settings

    settings = get_settings()
    console.print_json(json.dumps(settings.model_dump(mode="json"), indent=2, default=str))


@settings_app.command("validate")
def validate_settings() -> None:
    """Validate settings and report any issues."""
    from spybridge.settings import get_settings

    try:
        settings = get_settings()
    except Exception as e:
        console.print(f"[red]✗[/red] Settings validation failed: {e}")
        raise typer.Exit(code=1)

    console.print("[green]✓[/green] Settings are valid.")
    console.print(f"  Environment: {settings.env}")
    console.print(f"  SPY base URL: {settings.system.base_url}")
    console.print(f"  Storage backend: {settings.storage.backend}")
    creds = settings.credentials
    if not (creds.username and creds.password.get_secret_value()):
        console.print("[yellow]⚠[/yellow] SPY credentials are not set (SPY_USER / SPY_PASS).")
