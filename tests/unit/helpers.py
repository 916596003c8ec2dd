"""Shared builders for unit tests."""

from __future__ import annotations

from adstudio.storage.models import Asset, AssetType


def complete(lifecycle, provider, asset: Asset, url: str | None = None) -> Asset:
    """Finish a pending fake job and reconcile it."""
    provider.complete(asset.provider_task_id, url)
    return lifecycle.reconcile(asset.id)


def completed_keyframes(lifecycle, provider, project, scenes) -> dict[tuple[int, str], Asset]:
    """Start and end keyframes for every scene, all completed."""
    out: dict[tuple[int, str], Asset] = {}
    for scene in scenes:
        for asset_type in (AssetType.KEYFRAME_START, AssetType.KEYFRAME_END):
            asset = lifecycle.submit(project.id, scene.id, asset_type, {"prompt": "studio shot"})
            out[(scene.segment_index, asset_type.value)] = complete(lifecycle, provider, asset)
    return out


def at_status(session, project, status: str, **values):
    """Force a project to `status` without running stage side effects."""
    from adstudio.storage.repositories import ProjectRepository

    repo = ProjectRepository(session)
    current = repo.get(project.id)
    return repo.compare_and_set(current.id, current.version, status=status, **values)


def seed_in_flight(provider, *, status: str = "created", asset_type=AssetType.KEYFRAME_START, age_seconds: int = 0):
    """Commit a project with one scene and one in-flight asset to the app database.

    Returns (project_id, asset_id, provider_task_id).
    """
    from datetime import datetime, timedelta, timezone

    from sqlalchemy import update

    from adstudio.generation.lifecycle import GenerationLifecycle
    from adstudio.storage.database import get_session, init_db
    from adstudio.storage.repositories import ProjectRepository, ScriptRepository

    init_db()
    with get_session() as session:
        project = ProjectRepository(session).create(name="Worker", status=status)
        scripts = ScriptRepository(session)
        scene = scripts.add_scene(scripts.create(project.id).id, 1, "hook")
        asset = GenerationLifecycle(session, provider).submit(project.id, scene.id, asset_type)
        if age_seconds:
            submitted = datetime.now(timezone.utc).replace(tzinfo=None) - timedelta(seconds=age_seconds)
            session.execute(update(Asset).where(Asset.id == asset.id).values(submitted_at=submitted))
        return project.id, asset.id, asset.provider_task_id


def load_asset(asset_id):
    from adstudio.storage.database import get_session
    from adstudio.storage.repositories import AssetRepository

    with get_session() as session:
        return AssetRepository(session).get(asset_id)


def load_project(project_id):
    from adstudio.storage.database import get_session
    from adstudio.storage.repositories import ProjectRepository

    with get_session() as session:
        return ProjectRepository(session).get(project_id)
