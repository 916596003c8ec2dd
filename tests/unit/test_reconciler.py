"""Unit tests for the polling reconciler."""

from __future__ import annotations

import pytest

from adstudio.storage.models import AssetStatus, AssetType
from adstudio.workers.reconciler import SweepResult, reconcile_sweep, run_reconciler

from helpers import load_asset, load_project, seed_in_flight

pytestmark = pytest.mark.anyio

# Large enough that jobs left over by other tests never crowd ours out.
BATCH = 1000


async def test_sweep_settles_finished_jobs(provider) -> None:
    _, done_id, done_handle = seed_in_flight(provider)
    _, failed_id, failed_handle = seed_in_flight(provider)
    _, pending_id, _ = seed_in_flight(provider)
    provider.complete(done_handle, "https://cdn.example/kf.png")
    provider.fail(failed_handle, "content filter")

    result = await reconcile_sweep(provider, batch_size=BATCH, concurrency=1)

    assert result.polled >= 3
    assert result.settled >= 2
    assert load_asset(done_id).url == "https://cdn.example/kf.png"
    assert load_asset(failed_id).asset_metadata["lastError"] == "content filter"
    assert load_asset(pending_id).status == AssetStatus.GENERATING.value


async def test_sweep_completes_stage(provider) -> None:
    project_id, _, handle = seed_in_flight(provider, status="voiceover", asset_type=AssetType.AUDIO)
    provider.complete(handle)

    result = await reconcile_sweep(provider, batch_size=BATCH, concurrency=1)

    assert result.stages_completed >= 1
    assert load_project(project_id).status == "broll_generation"


async def test_sweep_times_out_stuck_jobs(provider) -> None:
    _, asset_id, handle = seed_in_flight(provider, age_seconds=7200)

    result = await reconcile_sweep(provider, batch_size=BATCH, concurrency=1)

    assert result.timed_out >= 1
    assert load_asset(asset_id).asset_metadata["errorCode"] == "generation_timeout"
    assert provider.was_cancelled(handle)


async def test_run_reconciler_once(monkeypatch) -> None:
    calls: list[object] = []

    async def fake_sweep(provider=None, **kwargs) -> SweepResult:
        calls.append(provider)
        return SweepResult()

    monkeypatch.setattr("adstudio.workers.reconciler.reconcile_sweep", fake_sweep)

    await run_reconciler(once=True, provider="sentinel")

    assert calls == ["sentinel"]


async def test_run_reconciler_once_propagates_errors(monkeypatch) -> None:
    async def boom(provider=None, **kwargs) -> SweepResult:
        raise RuntimeError("db down")

    monkeypatch.setattr("adstudio.workers.reconciler.reconcile_sweep", boom)

    with pytest.raises(RuntimeError, match="db down"):
        await run_reconciler(once=True)
