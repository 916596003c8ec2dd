"""AdStudio command-line interface.

The CLI is organized into submodules under `adstudio.cli.*`, each exposing a
`register(cli)` hook.
"""

from __future__ import annotations

import click

from adstudio.app_version import get_app_version
from adstudio.observability import init_observability


@click.group()
@click.version_option(version=get_app_version(), prog_name="adstudio")
def cli() -> None:
    """AdStudio - video ad pipeline orchestration."""
    init_observability()


def _register_commands() -> None:
    from adstudio.cli import cleanup, config, db, impact, projects, serve, worker

    cleanup.register(cli)
    config.register(cli)
    db.register(cli)
    impact.register(cli)
    projects.register(cli)
    serve.register(cli)
    worker.register(cli)


_register_commands()


if __name__ == "__main__":
    cli()
