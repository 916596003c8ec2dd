"""Data access repositories."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Iterable, List, Optional
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from adstudio.observability.logging import get_logger
from adstudio.storage.models import (
    IN_FLIGHT_STATUSES,
    Asset,
    CostEntry,
    Project,
    Scene,
    SceneSection,
    Script,
)

logger = get_logger(__name__)

__all__ = [
    "ProjectRepository",
    "ScriptRepository",
    "AssetRepository",
    "CostEntryRepository",
]


def _cas_update(
    session: Session,
    model: Any,
    row_id: UUID,
    expected_version: int,
    values: dict[str, Any],
) -> Any | None:
    """Apply `values` only if the row still has `expected_version`.

    Returns the refreshed row on success, or None when another writer bumped the
    version first (rowcount == 0).
    """
    session.flush()
    params = {getattr(model, key): value for key, value in values.items()}
    params[model.version] = model.version + 1
    stmt = (
        update(model)
        .where(model.id == row_id, model.version == expected_version)
        .values(params)
        .execution_options(synchronize_session=False)
    )
    res = session.execute(stmt)
    if int(getattr(res, "rowcount", 0) or 0) == 0:
        return None
    return session.get(model, row_id, populate_existing=True)


class ProjectRepository:
    """Repository for Project CRUD operations."""

    def __init__(self, session: Session):
        self.session = session

    def create(self, name: str = "Untitled", status: str = "created") -> Project:
        project = Project(name=name, status=status, cost_usd=Decimal("0"), version=1)
        self.session.add(project)
        self.session.flush()
        logger.info("project_created", project_id=project.id)
        return project

    def get(self, project_id: UUID) -> Optional[Project]:
        return self.session.get(Project, project_id)

    def get_for_update(self, project_id: UUID) -> Optional[Project]:
        """Get a project with a FOR UPDATE lock (no-op on SQLite).

        Always reloads from the database so a caller holding the per-project
        lock sees the latest committed version.
        """
        stmt = (
            select(Project)
            .where(Project.id == project_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def compare_and_set(
        self, project_id: UUID, expected_version: int, **values: Any
    ) -> Optional[Project]:
        project = _cas_update(self.session, Project, project_id, expected_version, values)
        if project is not None:
            logger.info("project_updated", project_id=project_id, fields=sorted(values))
        return project

    def increment_cost(self, project_id: UUID, amount: Decimal) -> None:
        """Atomically add `amount` to the running total (no read-modify-write)."""
        self.session.flush()
        stmt = (
            update(Project)
            .where(Project.id == project_id)
            .values({Project.cost_usd: Project.cost_usd + amount})
            .execution_options(synchronize_session=False)
        )
        res = self.session.execute(stmt)
        if int(getattr(res, "rowcount", 0) or 0) == 0:
            raise LookupError(f"Project {project_id} not found")
        self.session.get(Project, project_id, populate_existing=True)

    def list(self, limit: int = 20, offset: int = 0, status: str | None = None) -> List[Project]:
        stmt = select(Project)
        if status:
            stmt = stmt.where(Project.status == status)
        stmt = stmt.order_by(Project.created_at.desc()).offset(offset).limit(limit)
        return list(self.session.execute(stmt).scalars().all())


class ScriptRepository:
    """Repository for scripts and their versioned scenes."""

    def __init__(self, session: Session):
        self.session = session

    def create(self, project_id: UUID) -> Script:
        latest = self.session.execute(
            select(func.max(Script.version)).where(Script.project_id == project_id)
        ).scalar_one_or_none()
        script = Script(project_id=project_id, version=int(latest or 0) + 1)
        self.session.add(script)
        self.session.flush()
        return script

    def latest_for_project(self, project_id: UUID) -> Optional[Script]:
        stmt = (
            select(Script)
            .where(Script.project_id == project_id)
            .order_by(Script.version.desc())
            .limit(1)
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def add_scene(
        self,
        script_id: UUID,
        segment_index: int,
        section: SceneSection | str = SceneSection.HOOK,
        **inputs: Any,
    ) -> Scene:
        section_value = section.value if isinstance(section, SceneSection) else str(section)
        scene = Scene(
            script_id=script_id,
            segment_index=segment_index,
            section=section_value,
            version=1,
            **inputs,
        )
        self.session.add(scene)
        self.session.flush()
        return scene

    def get_scene(self, scene_id: UUID) -> Optional[Scene]:
        return self.session.get(Scene, scene_id)

    def revise_scene(self, scene_id: UUID, **changes: Any) -> Scene:
        """Insert a new version of a scene; history rows are never mutated."""
        base = self.get_scene(scene_id)
        if base is None:
            raise LookupError(f"Scene {scene_id} not found")
        latest = self.current_scene(base.script_id, base.segment_index)
        source = latest or base
        fields = {
            "section": source.section,
            "script_text": source.script_text,
            "shot_scripts": source.shot_scripts,
            "energy_arc": source.energy_arc,
            "camera_spec": source.camera_spec,
            "video_prompt_override": source.video_prompt_override,
        }
        fields.update(changes)
        scene = Scene(
            script_id=source.script_id,
            segment_index=source.segment_index,
            version=int(source.version) + 1,
            **fields,
        )
        self.session.add(scene)
        self.session.flush()
        logger.info(
            "scene_revised",
            segment_index=scene.segment_index,
            version=scene.version,
            fields=sorted(changes),
        )
        return scene

    def current_scene(self, script_id: UUID, segment_index: int) -> Optional[Scene]:
        stmt = (
            select(Scene)
            .where(Scene.script_id == script_id, Scene.segment_index == segment_index)
            .order_by(Scene.version.desc())
            .limit(1)
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def current_scenes(self, project_id: UUID) -> List[Scene]:
        """Return the highest-version scene per segment of the latest script."""
        script = self.latest_for_project(project_id)
        if script is None:
            return []
        rows = self.session.execute(
            select(Scene)
            .where(Scene.script_id == script.id)
            .order_by(Scene.segment_index.asc(), Scene.version.desc())
        ).scalars()
        current: dict[int, Scene] = {}
        for scene in rows:
            current.setdefault(int(scene.segment_index), scene)
        return [current[idx] for idx in sorted(current)]


class AssetRepository:
    """Repository for generated assets."""

    def __init__(self, session: Session):
        self.session = session

    def create(
        self,
        project_id: UUID,
        asset_type: str,
        *,
        scene_id: UUID | None = None,
        status: str,
        provider: str | None = None,
        provider_task_id: str | None = None,
        generation_inputs: dict[str, Any] | None = None,
        submitted_at: datetime | None = None,
        metadata: dict[str, Any] | None = None,
        url: str | None = None,
    ) -> Asset:
        asset = Asset(
            project_id=project_id,
            scene_id=scene_id,
            type=asset_type,
            status=status,
            provider=provider,
            provider_task_id=provider_task_id,
            generation_inputs=dict(generation_inputs or {}),
            submitted_at=submitted_at,
            asset_metadata=dict(metadata or {}),
            url=url,
            cost_usd=Decimal("0"),
            version=1,
        )
        self.session.add(asset)
        self.session.flush()
        logger.info("asset_created", asset_id=asset.id, asset_type=asset_type, project_id=project_id)
        return asset

    def get(self, asset_id: UUID) -> Optional[Asset]:
        return self.session.get(Asset, asset_id)

    def get_for_update(self, asset_id: UUID) -> Optional[Asset]:
        """Get an asset with a FOR UPDATE lock, always reloading from the database."""
        stmt = (
            select(Asset)
            .where(Asset.id == asset_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def compare_and_set(self, asset_id: UUID, expected_version: int, **values: Any) -> Optional[Asset]:
        return _cas_update(self.session, Asset, asset_id, expected_version, values)

    def find_in_flight_for_slot(
        self, project_id: UUID, scene_id: UUID | None, asset_type: str
    ) -> Optional[Asset]:
        stmt = select(Asset).where(
            Asset.project_id == project_id,
            Asset.type == asset_type,
            Asset.status.in_(IN_FLIGHT_STATUSES),
        )
        if scene_id is None:
            stmt = stmt.where(Asset.scene_id.is_(None))
        else:
            stmt = stmt.where(Asset.scene_id == scene_id)
        return self.session.execute(stmt.limit(1)).scalar_one_or_none()

    def list_for_project(
        self,
        project_id: UUID,
        *,
        types: Iterable[str] | None = None,
        statuses: Iterable[str] | None = None,
        scene_ids: Iterable[UUID] | None = None,
    ) -> List[Asset]:
        stmt = select(Asset).where(Asset.project_id == project_id)
        if types is not None:
            stmt = stmt.where(Asset.type.in_(list(types)))
        if statuses is not None:
            stmt = stmt.where(Asset.status.in_(list(statuses)))
        if scene_ids is not None:
            stmt = stmt.where(Asset.scene_id.in_(list(scene_ids)))
        stmt = stmt.order_by(Asset.created_at.asc())
        return list(self.session.execute(stmt).scalars().all())

    def list_with_segments(
        self, project_id: UUID, types: Iterable[str]
    ) -> List[tuple[Asset, int | None]]:
        """Return assets of the given types paired with their scene's segment index."""
        stmt = (
            select(Asset, Scene.segment_index)
            .outerjoin(Scene, Asset.scene_id == Scene.id)
            .where(Asset.project_id == project_id, Asset.type.in_(list(types)))
            .order_by(Scene.segment_index.asc(), Asset.type.desc(), Asset.created_at.asc())
        )
        return [(row[0], row[1]) for row in self.session.execute(stmt).all()]

    def list_in_flight(self, limit: int = 50) -> List[Asset]:
        stmt = (
            select(Asset)
            .where(Asset.status.in_(IN_FLIGHT_STATUSES))
            .order_by(Asset.submitted_at.asc())
            .limit(limit)
        )
        return list(self.session.execute(stmt).scalars().all())

    def find_in_flight_older_than(self, older_than: datetime) -> List[Asset]:
        """Find in-flight assets submitted before the cutoff."""
        stmt = (
            select(Asset)
            .where(Asset.status.in_(IN_FLIGHT_STATUSES))
            .where(Asset.submitted_at < older_than)
            .order_by(Asset.submitted_at.asc())
        )
        return list(self.session.execute(stmt).scalars().all())

    def find_by_provider_task(self, provider_task_id: str) -> Optional[Asset]:
        stmt = select(Asset).where(Asset.provider_task_id == provider_task_id).limit(1)
        return self.session.execute(stmt).scalar_one_or_none()

    def delete(self, asset: Asset) -> None:
        self.session.delete(asset)
        self.session.flush()
        logger.info("asset_deleted", asset_id=asset.id)


class CostEntryRepository:
    """Append-only access to ledger entries."""

    def __init__(self, session: Session):
        self.session = session

    def create(
        self,
        project_id: UUID,
        amount_usd: Decimal,
        reason: str,
        asset_id: UUID | None = None,
    ) -> CostEntry:
        entry = CostEntry(
            project_id=project_id,
            asset_id=asset_id,
            amount_usd=amount_usd,
            reason=reason,
        )
        self.session.add(entry)
        self.session.flush()
        return entry

    def list_for_project(self, project_id: UUID) -> List[CostEntry]:
        stmt = (
            select(CostEntry)
            .where(CostEntry.project_id == project_id)
            .order_by(CostEntry.created_at.asc())
        )
        return list(self.session.execute(stmt).scalars().all())

    def sum_for_project(self, project_id: UUID) -> Decimal:
        total = Decimal("0")
        for entry in self.list_for_project(project_id):
            total += Decimal(entry.amount_usd)
        return total
