"""Cleanup CLI commands."""

from __future__ import annotations

import click

from adstudio.cli.ui import console


@click.group()
def cleanup() -> None:
    """Maintenance for stuck generation jobs."""


@cleanup.command("timeouts")
@click.option("--ceiling", type=int, default=None, help="Seconds before a job counts as stuck")
@click.option("--dry-run", is_flag=True, help="Only report what would be timed out")
def cleanup_timeouts(ceiling: int | None, dry_run: bool) -> None:
    """Fail in-flight assets that exceeded the generation timeout."""
    from adstudio.generation.cleanup import timeout_stuck_assets

    ids = timeout_stuck_assets(ceiling_seconds=ceiling, dry_run=dry_run)
    verb = "Would time out" if dry_run else "Timed out"
    console.print(f"{verb} {len(ids)} asset(s)")
    for asset_id in ids:
        console.print(f"  {asset_id}")


def register(cli: click.Group) -> None:
    cli.add_command(cleanup)
