"""Project stage transitions.

Every mutating operation takes the per-project keyed lock and then applies the
new status with a compare-and-swap on `projects.version`. The lock keeps one
process from racing itself; the version check catches writers in other
processes. A lost swap is reported as the operation's own domain error (two
racing approvals: the loser gets `NotAtReviewGate`).
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Type
from uuid import UUID

from sqlalchemy.orm import Session

from adstudio.config import settings
from adstudio.errors import (
    ConcurrentModification,
    DomainError,
    InvalidTransition,
    NotAtReviewGate,
    NotFoundError,
)
from adstudio.generation.lifecycle import GenerationLifecycle
from adstudio.generation.providers import get_generation_provider
from adstudio.observability.logging import get_logger
from adstudio.pipeline.stages import PIPELINE, RESTART_POINTS, STAGE_REQUIREMENTS, Stage, StageGraph
from adstudio.resilience.locks import KeyedLock, project_locks
from adstudio.storage.models import IN_FLIGHT_STATUSES, AssetStatus, Project
from adstudio.storage.repositories import AssetRepository, ProjectRepository, ScriptRepository

logger = get_logger(__name__)

__all__ = ["PipelineStateMachine", "StageProgress"]

# Bound on CAS retries for `fail`, which must not give up on a contended row.
_FAIL_ATTEMPTS = 5


def _utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


@dataclass(frozen=True)
class StageProgress:
    stage: str | None
    active: bool
    completed: int
    generating: int
    failed: int
    total: int
    label: str | None = None

    @property
    def is_done(self) -> bool:
        return self.total > 0 and self.completed >= self.total

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class PipelineStateMachine:
    """Validate and persist project status changes."""

    def __init__(
        self,
        session: Session,
        *,
        graph: StageGraph = PIPELINE,
        locks: KeyedLock = project_locks,
        lifecycle: GenerationLifecycle | None = None,
    ):
        self.session = session
        self.graph = graph
        self.locks = locks
        self.projects = ProjectRepository(session)
        self.scripts = ScriptRepository(session)
        self.assets = AssetRepository(session)
        self._lifecycle = lifecycle

    @property
    def lifecycle(self) -> GenerationLifecycle:
        if self._lifecycle is None:
            self._lifecycle = GenerationLifecycle(self.session, get_generation_provider())
        return self._lifecycle

    # Helpers

    def _load(self, project_id: UUID) -> Project:
        project = self.projects.get_for_update(project_id)
        if project is None:
            raise NotFoundError(f"Project {project_id} not found")
        return project

    def _swap(
        self,
        project: Project,
        error: Type[DomainError] = ConcurrentModification,
        **values: Any,
    ) -> Project:
        from_status = project.status
        updated = self.projects.compare_and_set(project.id, project.version, **values)
        if updated is None:
            current = self.projects.get_for_update(project.id)
            status = current.status if current is not None else "deleted"
            raise error(
                f"Project {project.id} moved to '{status}' while changing from '{from_status}'"
            )
        if "status" in values and values["status"] != from_status:
            logger.info(
                "project_transition",
                project_id=str(project.id),
                from_status=from_status,
                to_status=updated.status,
            )
        return updated

    def _enter(self, project: Project, target: str, error: Type[DomainError] = ConcurrentModification) -> Project:
        updated = self._swap(
            project,
            error,
            status=target,
            failed_at_status=None,
            error_message=None,
        )
        self._prepare_stage(updated, target)
        return updated

    def _prepare_stage(self, project: Project, stage: str) -> None:
        """Drop prior attempts for the slots a generating stage is about to fill."""
        requirement = STAGE_REQUIREMENTS.get(stage)
        if requirement is None:
            return
        self.lifecycle.clear_stale_assets(project.id, requirement.asset_types)

    def _effective_status(self, project: Project) -> str:
        if project.status == self.graph.failed:
            return project.failed_at_status or self.graph.initial
        return project.status

    # Operations

    def advance(self, project_id: UUID, target: Stage | str) -> Project:
        """Move to the immediate successor, or to `failed` from any non-terminal status."""
        target_key = target.value if isinstance(target, Stage) else str(target)
        with self.locks.hold(project_id):
            project = self._load(project_id)
            current = project.status
            if target_key == self.graph.failed:
                if self.graph.is_terminal(current):
                    raise InvalidTransition(f"Cannot fail a project in terminal status '{current}'")
                return self._swap(
                    project,
                    InvalidTransition,
                    status=self.graph.failed,
                    failed_at_status=current,
                )
            if self.graph.successor(current) != target_key:
                raise InvalidTransition(
                    f"Cannot move from '{current}' to '{target_key}'"
                    f" (next is '{self.graph.successor(current)}')"
                )
            return self._enter(project, target_key, InvalidTransition)

    def enter_review_gate(self, project_id: UUID, stage: Stage | str | None = None) -> Project:
        """Open the review gate after `stage` (default: the current stage).

        A project already at or past the gate is returned unchanged.
        """
        with self.locks.hold(project_id):
            project = self._load(project_id)
            current = project.status
            if stage is None and (self.graph.is_review_gate(current) or self.graph.is_terminal(current)):
                logger.debug("review_gate_already_entered", project_id=str(project_id), gate=current)
                return project
            stage_key = (stage.value if isinstance(stage, Stage) else stage) or current
            gate = self.graph.gate_for(stage_key)
            if gate is None:
                raise InvalidTransition(f"Stage '{stage_key}' has no review gate")
            if self.graph.is_terminal(current) or self.graph.index(current) >= self.graph.index(gate):
                logger.debug("review_gate_already_entered", project_id=str(project_id), gate=gate)
                return project
            if current != stage_key:
                raise InvalidTransition(f"Cannot open '{gate}' while project is at '{current}'")
            return self._swap(project, status=gate)

    def approve(self, project_id: UUID) -> Project:
        """Approve the current review gate and start the next production stage."""
        with self.locks.hold(project_id):
            project = self._load(project_id)
            if not self.graph.is_review_gate(project.status):
                raise NotAtReviewGate(f"Project is at '{project.status}', not at a review gate")
            target = self.graph.successor(project.status)
            if target is None:
                raise InvalidTransition(f"Review gate '{project.status}' has no successor")
            return self._enter(project, target, NotAtReviewGate)

    def fail(self, project_id: UUID, at_stage: Stage | str | None, reason: str) -> Project:
        """Record a fatal failure. Retries a lost swap instead of raising."""
        at_key = at_stage.value if isinstance(at_stage, Stage) else at_stage
        with self.locks.hold(project_id):
            for _ in range(_FAIL_ATTEMPTS):
                project = self._load(project_id)
                failed_at = at_key or self._effective_status(project)
                updated = self.projects.compare_and_set(
                    project.id,
                    project.version,
                    status=self.graph.failed,
                    failed_at_status=failed_at,
                    error_message=reason,
                )
                if updated is not None:
                    logger.warning(
                        "project_failed",
                        project_id=str(project_id),
                        failed_at_status=failed_at,
                        reason=reason,
                    )
                    return updated
        raise ConcurrentModification(f"Could not record failure for project {project_id}")

    def complete_stage(self, project_id: UUID, stage: Stage | str) -> Project:
        """Finish a production stage: open its gate, or advance when it has none."""
        stage_key = stage.value if isinstance(stage, Stage) else str(stage)
        if self.graph.gate_for(stage_key) is not None:
            return self.enter_review_gate(project_id, stage_key)
        with self.locks.hold(project_id):
            project = self._load(project_id)
            current = project.status
            if self.graph.is_terminal(current) or self.graph.index(current) > self.graph.index(stage_key):
                return project
            if current != stage_key:
                raise InvalidTransition(f"Cannot complete '{stage_key}' while project is at '{current}'")
            target = self.graph.successor(stage_key)
            if target is None:
                raise InvalidTransition(f"Stage '{stage_key}' has no successor")
            return self._enter(project, target)

    def try_complete_stage(self, project_id: UUID) -> Project | None:
        """Complete the current stage if all its required assets are completed."""
        progress = self.stage_progress(project_id)
        if not (progress.active and progress.is_done and progress.stage):
            return None
        return self.complete_stage(project_id, progress.stage)

    def retry(self, project_id: UUID) -> Project:
        """Resume a failed project at the status it failed in."""
        with self.locks.hold(project_id):
            project = self._load(project_id)
            if project.status != self.graph.failed:
                raise InvalidTransition(f"Only failed projects can be retried (status '{project.status}')")
            target = project.failed_at_status
            if not target or not self.graph.is_known(target):
                raise InvalidTransition("Failed project has no recorded stage to resume")
            updated = self._swap(
                project,
                status=target,
                failed_at_status=None,
                error_message=None,
                cancel_requested_at=None,
            )
            self._prepare_stage(updated, target)
            return updated

    def rollback(self, project_id: UUID) -> Project:
        """Return a failed project to the review gate before the failure."""
        with self.locks.hold(project_id):
            project = self._load(project_id)
            if project.status != self.graph.failed:
                raise InvalidTransition(f"Only failed projects can be rolled back (status '{project.status}')")
            failed_at = project.failed_at_status
            if failed_at and self.graph.is_known(failed_at):
                target = self.graph.rollback_target(failed_at)
            else:
                target = self.graph.initial
            return self._swap(
                project,
                status=target,
                failed_at_status=None,
                error_message=None,
                cancel_requested_at=None,
            )

    def restart(self, project_id: UUID, stage: Stage | str) -> Project:
        """Re-run the pipeline from a restart point at or before the current position."""
        stage_key = stage.value if isinstance(stage, Stage) else str(stage)
        if stage_key not in RESTART_POINTS:
            raise InvalidTransition(f"'{stage_key}' is not a restart point")
        with self.locks.hold(project_id):
            project = self._load(project_id)
            effective = self._effective_status(project)
            if self.graph.index(stage_key) > self.graph.index(effective):
                raise InvalidTransition(
                    f"Cannot restart from '{stage_key}': project has only reached '{effective}'"
                )
            self._cancel_in_flight(project)
            updated = self._swap(
                project,
                status=stage_key,
                failed_at_status=None,
                error_message=None,
                cancel_requested_at=None,
            )
            self._prepare_stage(updated, stage_key)
            return updated

    def cancel(self, project_id: UUID) -> Project:
        """Stop a running production stage and roll back to the previous gate."""
        with self.locks.hold(project_id):
            project = self._load(project_id)
            current = project.status
            if not self.graph.is_production_stage(current):
                raise InvalidTransition(f"Nothing to cancel: project is at '{current}'")
            cancelled = self._cancel_in_flight(project)
            target = self.graph.rollback_target(current)
            updated = self._swap(
                project,
                status=target,
                cancel_requested_at=_utc_now(),
                error_message=None,
            )
        logger.info(
            "project_cancelled",
            project_id=str(project_id),
            from_status=current,
            to_status=target,
            cancelled_assets=cancelled,
        )
        return updated

    def _cancel_in_flight(self, project: Project) -> int:
        cancelled = 0
        for asset in self.assets.list_for_project(project.id, statuses=IN_FLIGHT_STATUSES):
            try:
                self.lifecycle.cancel(asset.id)
                cancelled += 1
            except DomainError as exc:
                # Settled between listing and cancelling.
                logger.info("asset_cancel_skipped", asset_id=str(asset.id), error=str(exc))
        return cancelled

    def progress(self, project: Project) -> float:
        return self.graph.progress(project.status, project.failed_at_status)

    def stage_progress(self, project_id: UUID) -> StageProgress:
        """Asset completion counts for the project's current (or just-reviewed) generating stage."""
        project = self.projects.get(project_id)
        if project is None:
            raise NotFoundError(f"Project {project_id} not found")

        status = project.status
        stage = status if status in STAGE_REQUIREMENTS else self.graph.stage_for(status)
        requirement = STAGE_REQUIREMENTS.get(stage) if stage else None
        if requirement is None:
            return StageProgress(stage=None, active=False, completed=0, generating=0, failed=0, total=0)

        scenes = self.scripts.current_scenes(project_id)
        segments = len(scenes) or int(settings.segment_count)
        total = segments * len(requirement.asset_types)

        latest: dict[tuple[Any, str], str] = {}
        for asset in self.assets.list_for_project(project_id, types=requirement.asset_types):
            latest[(asset.scene_id, asset.type)] = asset.status

        statuses = list(latest.values())
        return StageProgress(
            stage=stage,
            active=status == stage,
            completed=sum(1 for s in statuses if s == AssetStatus.COMPLETED.value),
            generating=sum(1 for s in statuses if s in IN_FLIGHT_STATUSES),
            failed=sum(1 for s in statuses if s == AssetStatus.FAILED.value),
            total=total,
            label=requirement.label,
        )
