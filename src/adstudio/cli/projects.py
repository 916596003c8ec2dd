"""Project inspection CLI commands."""

from __future__ import annotations

import click

from adstudio.cli.ui import render_projects_table
from adstudio.storage.database import get_session
from adstudio.storage.repositories import ProjectRepository


@click.group()
def projects() -> None:
    """Inspect projects."""


@projects.command("list")
@click.option("--limit", default=20, show_default=True, type=click.IntRange(1, 200))
@click.option("--status", "status", default=None, help="Filter by status")
def projects_list(limit: int, status: str | None) -> None:
    """List recent projects with status and spend."""
    with get_session() as session:
        rows = ProjectRepository(session).list(limit=limit, status=status)
        render_projects_table(rows)


def register(cli: click.Group) -> None:
    cli.add_command(projects)
