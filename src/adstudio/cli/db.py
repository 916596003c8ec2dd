"""Database CLI commands."""

from __future__ import annotations

import click
from sqlalchemy.exc import SQLAlchemyError

from adstudio.cli.ui import console


@click.group()
def db() -> None:
    """Database management."""


@db.command("init")
def db_init() -> None:
    """Create all tables from the models (idempotent; for dev and tests)."""
    from adstudio.storage.database import init_db

    try:
        init_db()
    except SQLAlchemyError as exc:
        raise click.ClickException(f"Database initialization failed: {exc}") from exc
    console.print("[green]Database initialized[/green]")


@db.command("upgrade")
@click.argument("revision", default="head")
def db_upgrade(revision: str) -> None:
    """Apply Alembic migrations up to REVISION (default: head)."""
    from adstudio.storage import migrations

    try:
        migrations.upgrade(revision)
    except SQLAlchemyError as exc:
        raise click.ClickException(f"Migration failed: {exc}") from exc
    console.print(f"[green]Database at revision {migrations.current_revision()}[/green]")


@db.command("current")
def db_current() -> None:
    """Show the migration revision stamped in the database."""
    from adstudio.storage import migrations

    revision = migrations.current_revision()
    console.print(revision or "[yellow]not stamped (run `adstudio db upgrade`)[/yellow]")


def register(cli: click.Group) -> None:
    cli.add_command(db)
