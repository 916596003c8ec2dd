"""Shared CLI UI helpers (Rich formatting)."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable

from rich.console import Console
from rich.table import Table

from adstudio.impact.analyzer import ImpactReport
from adstudio.pipeline.stages import PIPELINE, Stage

console = Console()


def format_status(status: str) -> str:
    """Return colorized status string for terminal output."""
    if status == Stage.COMPLETED.value:
        color = "green"
    elif status == Stage.FAILED.value:
        color = "red"
    elif PIPELINE.is_known(status) and PIPELINE.is_review_gate(status):
        color = "yellow"
    elif status == Stage.CREATED.value:
        color = "grey62"
    else:
        color = "cyan"
    return f"[{color}]{status}[/{color}]"


def render_projects_table(projects: Iterable[Any]) -> None:
    """Render a table of projects using Rich."""
    table = Table(title="Recent Projects", show_lines=False)
    table.add_column("Project ID", style="white")
    table.add_column("Name", style="cyan")
    table.add_column("Status", style="bold")
    table.add_column("Cost (USD)", style="magenta", justify="right")
    table.add_column("Created", style="white")

    for project in projects:
        created = getattr(project, "created_at", None)
        created_str = (
            created.isoformat(timespec="seconds") if isinstance(created, datetime) else "-"
        )
        table.add_row(
            str(getattr(project, "id", "")),
            getattr(project, "name", ""),
            format_status(getattr(project, "status", "")),
            f"{getattr(project, 'cost_usd', 0):.2f}",
            created_str,
        )

    console.print(table)


def render_impact(report: ImpactReport) -> None:
    table = Table(title=f"Impact of editing {report.stage}", show_lines=False)
    table.add_column("Field", style="cyan")
    table.add_column("Impact", style="bold")
    table.add_column("Affected stages", style="magenta")
    table.add_column("Description", style="white")

    for item in report.destructive:
        table.add_row(item.field, "[red]destructive[/red]", ", ".join(item.affected_stages), item.description)
    for item in report.safe:
        table.add_row(item.field, "[green]safe[/green]", "-", item.description)

    console.print(table)
    console.print(f"Restart from: {report.restart_from or '-'}")
    console.print(f"Estimated cost: ${report.estimated_cost_usd}")
    if report.warning:
        console.print(f"[yellow]{report.warning}[/yellow]")
