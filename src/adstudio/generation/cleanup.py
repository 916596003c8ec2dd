"""Cleanup utilities for stuck generation jobs.

Jobs whose provider result never arrives (missed webhook, provider outage)
would otherwise sit in `generating`/`editing` forever and block their slot.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID

from adstudio.config import settings
from adstudio.errors import DomainError
from adstudio.generation.lifecycle import GenerationLifecycle
from adstudio.generation.providers import GenerationProvider, get_generation_provider
from adstudio.observability.logging import get_logger
from adstudio.storage.database import get_session
from adstudio.storage.repositories import AssetRepository

logger = get_logger(__name__)

__all__ = ["timeout_stuck_assets", "get_stuck_assets"]


def _cutoff(ceiling_seconds: int) -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None) - timedelta(seconds=ceiling_seconds)


def _stuck_for_seconds(submitted_at: datetime | None) -> int:
    if submitted_at is None:
        return 0
    now = datetime.now(timezone.utc).replace(tzinfo=None)
    return int((now - submitted_at).total_seconds())


def get_stuck_assets(ceiling_seconds: int | None = None) -> list[dict[str, Any]]:
    """List in-flight assets older than the ceiling.

    Returns:
        List of dicts: {id, project_id, type, status, submitted_at, stuck_for_seconds}
    """
    ceiling = int(ceiling_seconds or settings.generation_timeout_seconds)
    with get_session() as session:
        assets = AssetRepository(session).find_in_flight_older_than(_cutoff(ceiling))
        return [
            {
                "id": asset.id,
                "project_id": asset.project_id,
                "type": asset.type,
                "status": asset.status,
                "submitted_at": asset.submitted_at.isoformat() if asset.submitted_at else None,
                "stuck_for_seconds": _stuck_for_seconds(asset.submitted_at),
            }
            for asset in assets
        ]


def timeout_stuck_assets(
    ceiling_seconds: int | None = None,
    dry_run: bool = False,
    provider: GenerationProvider | None = None,
) -> list[UUID]:
    """Fail in-flight assets that exceeded the generation timeout.

    Args:
        ceiling_seconds: Seconds after submission at which a job is considered stuck
        dry_run: If True, only log what would be done without making changes
        provider: Provider used for the best-effort remote cancel

    Returns:
        List of asset IDs that were (or would be) timed out
    """
    ceiling = int(ceiling_seconds or settings.generation_timeout_seconds)
    timed_out: list[UUID] = []

    with get_session() as session:
        lifecycle = GenerationLifecycle(
            session,
            provider or get_generation_provider(),
            timeout_seconds=ceiling,
        )
        for asset in AssetRepository(session).find_in_flight_older_than(_cutoff(ceiling)):
            stuck_seconds = _stuck_for_seconds(asset.submitted_at)
            if dry_run:
                logger.info(
                    "timeout_dry_run",
                    asset_id=asset.id,
                    status=asset.status,
                    stuck_seconds=stuck_seconds,
                )
                timed_out.append(asset.id)
                continue
            try:
                lifecycle.expire(asset.id)
            except DomainError as exc:
                # Another writer settled it between the query and the update.
                logger.info("timeout_skipped", asset_id=str(asset.id), error=str(exc))
                continue
            timed_out.append(asset.id)

    if timed_out:
        logger.info("stuck_assets_timed_out", count=len(timed_out), dry_run=dry_run)
    return timed_out
