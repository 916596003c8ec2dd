"""Configuration CLI commands."""

from __future__ import annotations

import click
from rich.table import Table
from sqlalchemy.engine.url import make_url

from adstudio.cli.ui import console
from adstudio.config import settings
from adstudio.config.provider_modes import effective_generation_provider, provider_mode_reason


@click.group()
def config() -> None:
    """Inspect configuration."""


@config.command("show")
def config_show() -> None:
    """Show the settings that shape generation and reconciliation."""
    table = Table(title="AdStudio Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")

    rows = [
        ("Environment", settings.environment),
        ("Database", make_url(settings.database_url).render_as_string(hide_password=True)),
        ("Generation Provider", effective_generation_provider(settings)),
        ("Provider Mode Source", provider_mode_reason(settings)),
        ("Generation Timeout (s)", str(settings.generation_timeout_seconds)),
        ("Reconcile Interval (s)", str(settings.reconcile_poll_interval_seconds)),
        ("Reconcile Concurrency", str(settings.reconcile_concurrency)),
        ("Segments per Script", str(settings.segment_count)),
        ("API", f"{settings.api_host}:{settings.api_port}"),
    ]
    for name, value in rows:
        table.add_row(name, value)
    console.print(table)


def register(cli: click.Group) -> None:
    cli.add_command(config)
