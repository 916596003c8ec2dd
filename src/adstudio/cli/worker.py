"""Reconciler worker commands."""

from __future__ import annotations

from dataclasses import asdict
from functools import partial

import anyio
import click

from adstudio.cli.ui import console


@click.group()
def worker() -> None:
    """Generation reconciler (polls in-flight provider jobs)."""


@worker.command("run")
@click.option("--once", is_flag=True, help="Run a single sweep and exit")
def worker_run(once: bool) -> None:
    """Poll in-flight generation jobs and settle their assets until stopped."""
    from adstudio.workers import run_reconciler

    try:
        anyio.run(partial(run_reconciler, once=once))
    except Exception as exc:
        raise click.ClickException(str(exc)) from exc


@worker.command("sweep")
@click.option("--batch-size", type=int, default=None, help="In-flight assets to poll (default: RECONCILE_BATCH_SIZE)")
@click.option("--concurrency", type=int, default=None, help="Parallel provider polls (default: RECONCILE_CONCURRENCY)")
def worker_sweep(batch_size: int | None, concurrency: int | None) -> None:
    """Run one reconciliation sweep and print what it did."""
    from adstudio.workers import reconcile_sweep

    try:
        result = anyio.run(partial(reconcile_sweep, batch_size=batch_size, concurrency=concurrency))
    except Exception as exc:
        raise click.ClickException(str(exc)) from exc

    summary = ", ".join(f"{name}={count}" for name, count in asdict(result).items())
    style = "yellow" if result.errors else "green"
    console.print(f"[{style}]Sweep finished:[/{style}] {summary}", soft_wrap=True)


def register(cli: click.Group) -> None:
    cli.add_command(worker)
