"""Polling reconciler worker loop.

Each sweep fails jobs past the generation timeout, polls every in-flight asset
with bounded concurrency, and completes the project's stage once all of its
required assets are in. Database work runs in worker threads with one session
per asset so a failure on one asset never touches another.
"""

from __future__ import annotations

import os
import socket
from dataclasses import dataclass
from uuid import UUID

import anyio

from adstudio.config import settings
from adstudio.generation.cleanup import timeout_stuck_assets
from adstudio.generation.lifecycle import GenerationLifecycle
from adstudio.generation.providers import GenerationProvider, get_generation_provider
from adstudio.observability.logging import get_logger
from adstudio.pipeline.state_machine import PipelineStateMachine
from adstudio.storage.database import get_session
from adstudio.storage.repositories import AssetRepository

logger = get_logger(__name__)

__all__ = ["SweepResult", "reconcile_sweep", "run_reconciler"]


def _default_worker_id() -> str:
    host = socket.gethostname()
    pid = os.getpid()
    return f"{host}:{pid}"


@dataclass
class SweepResult:
    timed_out: int = 0
    polled: int = 0
    settled: int = 0
    errors: int = 0
    stages_completed: int = 0


def _list_in_flight(limit: int) -> list[UUID]:
    with get_session() as session:
        return [asset.id for asset in AssetRepository(session).list_in_flight(limit=limit)]


def _reconcile_asset(asset_id: UUID, provider: GenerationProvider) -> tuple[bool, bool]:
    """Reconcile one asset. Returns (settled, stage_completed)."""
    with get_session() as session:
        lifecycle = GenerationLifecycle(session, provider)
        asset = lifecycle.reconcile(asset_id)
        if asset.is_in_flight:
            return False, False
        project_id = asset.project_id

    with get_session() as session:
        machine = PipelineStateMachine(session, lifecycle=GenerationLifecycle(session, provider))
        return True, machine.try_complete_stage(project_id) is not None


async def reconcile_sweep(
    provider: GenerationProvider | None = None,
    *,
    batch_size: int | None = None,
    concurrency: int | None = None,
) -> SweepResult:
    """Run one reconciliation pass over in-flight assets."""
    provider = provider or get_generation_provider()
    result = SweepResult()

    timed_out = await anyio.to_thread.run_sync(
        lambda: timeout_stuck_assets(provider=provider)
    )
    result.timed_out = len(timed_out)

    asset_ids = await anyio.to_thread.run_sync(
        _list_in_flight, int(batch_size or settings.reconcile_batch_size)
    )
    limiter = anyio.CapacityLimiter(max(1, int(concurrency or settings.reconcile_concurrency)))

    async def _one(asset_id: UUID) -> None:
        result.polled += 1
        try:
            settled, completed = await anyio.to_thread.run_sync(
                _reconcile_asset, asset_id, provider, limiter=limiter
            )
        except Exception:
            result.errors += 1
            logger.warning("reconcile_failed", asset_id=str(asset_id), exc_info=True)
            return
        if settled:
            result.settled += 1
        if completed:
            result.stages_completed += 1

    async with anyio.create_task_group() as tg:
        for asset_id in asset_ids:
            tg.start_soon(_one, asset_id)

    if result.polled or result.timed_out:
        logger.info(
            "reconcile_sweep_done",
            polled=result.polled,
            settled=result.settled,
            timed_out=result.timed_out,
            errors=result.errors,
            stages_completed=result.stages_completed,
        )
    return result


async def run_reconciler(*, once: bool = False, provider: GenerationProvider | None = None) -> None:
    """Run the reconciler loop.

    Args:
        once: If true, run a single sweep and exit (useful for tests/ops).
    """
    worker_id = settings.worker_id or _default_worker_id()
    poll_interval = float(settings.reconcile_poll_interval_seconds)
    logger.info(
        "reconciler_start",
        worker_id=worker_id,
        concurrency=int(settings.reconcile_concurrency),
        poll_interval=poll_interval,
    )

    while True:
        try:
            await reconcile_sweep(provider)
        except Exception:
            if once:
                raise
            logger.error("reconcile_sweep_failed", worker_id=worker_id, exc_info=True)
        if once:
            return
        await anyio.sleep(poll_interval)
