"""Impact preview CLI command."""

from __future__ import annotations

import click

from adstudio.cli.ui import console, render_impact
from adstudio.errors import UnknownStage
from adstudio.impact.analyzer import compute_impact


@click.command("impact")
@click.argument("stage")
@click.argument("fields", nargs=-1, required=True)
@click.option("--json", "as_json", is_flag=True, help="Print the report as JSON")
def impact(stage: str, fields: tuple[str, ...], as_json: bool) -> None:
    """Show what editing FIELDS of STAGE would invalidate and cost."""
    try:
        report = compute_impact(stage, fields)
    except UnknownStage as exc:
        raise click.BadParameter(str(exc), param_hint="STAGE") from exc

    if as_json:
        console.print_json(data=report.to_dict())
    else:
        render_impact(report)


def register(cli: click.Group) -> None:
    cli.add_command(impact)
