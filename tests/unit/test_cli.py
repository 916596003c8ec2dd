"""Unit tests for the CLI."""

from __future__ import annotations

import json
from uuid import uuid4

from click.testing import CliRunner


def test_cli_registers_commands() -> None:
    from adstudio.cli.main import cli

    assert {"cleanup", "config", "db", "impact", "projects", "serve", "worker"} <= set(cli.commands)


def test_cli_version() -> None:
    from adstudio.cli.main import cli

    result = CliRunner().invoke(cli, ["--version"])

    assert result.exit_code == 0
    assert "adstudio" in result.output


def test_impact_table() -> None:
    from adstudio.cli.impact import impact

    result = CliRunner().invoke(impact, ["directing", "energy_arc", "director_notes"])

    assert result.exit_code == 0
    assert "destructive" in result.output
    assert "Restart from: casting" in result.output
    assert "Estimated cost: $5.36" in result.output


def test_impact_json() -> None:
    from adstudio.cli.impact import impact

    result = CliRunner().invoke(impact, ["scripting", "totally_made_up_field", "--json"])

    assert result.exit_code == 0
    payload = json.loads(result.output)
    assert payload["safe"][0]["field"] == "totally_made_up_field"
    assert payload["warning"] is None


def test_impact_unknown_stage() -> None:
    from adstudio.cli.impact import impact

    result = CliRunner().invoke(impact, ["rendering", "energy_arc"])

    assert result.exit_code == 2
    assert "Unknown stage" in result.output


def test_worker_run_invokes_reconciler_once(monkeypatch) -> None:
    from adstudio.cli.worker import worker

    called: dict[str, object] = {}

    async def fake_run_reconciler(*, once: bool) -> None:
        called["once"] = once

    monkeypatch.setattr("adstudio.workers.run_reconciler", fake_run_reconciler)

    result = CliRunner().invoke(worker, ["run", "--once"])
    assert result.exit_code == 0
    assert called["once"] is True


def test_worker_run_wraps_exceptions_as_click_exception(monkeypatch) -> None:
    from adstudio.cli.worker import worker

    async def boom(*, once: bool) -> None:  # noqa: ARG001 - signature match
        raise RuntimeError("boom")

    monkeypatch.setattr("adstudio.workers.run_reconciler", boom)

    result = CliRunner().invoke(worker, ["run", "--once"])
    assert result.exit_code != 0
    assert "boom" in result.output


def test_db_init() -> None:
    from adstudio.cli.db import db

    result = CliRunner().invoke(db, ["init"])

    assert result.exit_code == 0
    assert "Database initialized" in result.output


def test_cleanup_timeouts_dry_run(monkeypatch) -> None:
    from adstudio.cli.cleanup import cleanup

    ids = [uuid4(), uuid4()]
    seen: dict[str, object] = {}

    def fake_timeout(ceiling_seconds=None, dry_run=False):
        seen.update(ceiling=ceiling_seconds, dry_run=dry_run)
        return ids

    monkeypatch.setattr("adstudio.generation.cleanup.timeout_stuck_assets", fake_timeout)

    result = CliRunner().invoke(cleanup, ["timeouts", "--ceiling", "600", "--dry-run"])

    assert result.exit_code == 0
    assert "Would time out 2 asset(s)" in result.output
    assert str(ids[0]) in result.output
    assert seen == {"ceiling": 600, "dry_run": True}


def test_config_show() -> None:
    from adstudio.cli.config import config

    result = CliRunner().invoke(config, ["show"])

    assert result.exit_code == 0
    assert "Generation Provider" in result.output
    assert "fake" in result.output


def test_projects_list() -> None:
    from adstudio.cli.projects import projects
    from adstudio.storage.database import get_session, init_db
    from adstudio.storage.repositories import ProjectRepository

    init_db()
    with get_session() as session:
        ProjectRepository(session).create(name="CLI listing", status="casting_review")

    result = CliRunner().invoke(projects, ["list", "--status", "casting_review"])

    assert result.exit_code == 0
    assert "Recent Projects" in result.output


def test_serve_runs_uvicorn_with_settings(monkeypatch) -> None:
    from adstudio.cli.serve import serve

    seen: dict[str, object] = {}

    def fake_run(app: str, **kwargs) -> None:
        seen.update(app=app, **kwargs)

    monkeypatch.setattr("uvicorn.run", fake_run)

    result = CliRunner().invoke(serve, ["--port", "9100"])

    assert result.exit_code == 0
    assert seen["app"] == "adstudio.api.server:app"
    assert seen["host"] == "127.0.0.1"
    assert seen["port"] == 9100
    assert seen["reload"] is False


def test_worker_sweep_prints_summary(monkeypatch) -> None:
    from adstudio.cli.worker import worker
    from adstudio.workers import SweepResult

    seen: dict[str, object] = {}

    async def fake_sweep(provider=None, *, batch_size=None, concurrency=None) -> SweepResult:
        seen.update(batch_size=batch_size, concurrency=concurrency)
        return SweepResult(polled=3, settled=2, stages_completed=1)

    monkeypatch.setattr("adstudio.workers.reconcile_sweep", fake_sweep)

    result = CliRunner().invoke(worker, ["sweep", "--batch-size", "10", "--concurrency", "2"])

    assert result.exit_code == 0
    assert "polled=3" in result.output
    assert "stages_completed=1" in result.output
    assert seen == {"batch_size": 10, "concurrency": 2}


def test_db_current_reports_unstamped_database() -> None:
    from adstudio.cli.db import db

    result = CliRunner().invoke(db, ["current"])

    assert result.exit_code == 0
    assert "not stamped" in result.output
