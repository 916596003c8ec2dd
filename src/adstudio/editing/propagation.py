"""Keyframe edit propagation.

After an edit to one keyframe completes, the same instruction can be reapplied
to the keyframes that come after it so the look stays continuous across
segments. Propagation is best-effort: each target is an independent billable
edit and a failure on one never rolls back the others.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, List
from uuid import UUID

from sqlalchemy.orm import Session

from adstudio.costs.rates import EDIT_JOB_KIND, price_for, round_cents
from adstudio.errors import AssetStateError, DomainError, InvalidTransition, NotFoundError
from adstudio.generation.lifecycle import GenerationLifecycle, TargetFailure
from adstudio.observability.logging import get_logger
from adstudio.pipeline.stages import Stage
from adstudio.storage.models import Asset, AssetStatus
from adstudio.storage.repositories import AssetRepository, ProjectRepository

logger = get_logger(__name__)

__all__ = ["PropagationEngine", "PropagationResult"]


@dataclass
class PropagationResult:
    submitted: List[Asset] = field(default_factory=list)
    failed: List[TargetFailure] = field(default_factory=list)

    @property
    def attempted(self) -> int:
        return len(self.submitted) + len(self.failed)

    def to_dict(self) -> dict[str, Any]:
        return {
            "submitted": [asset.to_dict() for asset in self.submitted],
            "failed": [f.to_dict() for f in self.failed],
        }


class PropagationEngine:
    def __init__(self, session: Session, lifecycle: GenerationLifecycle):
        self.session = session
        self.lifecycle = lifecycle
        self.assets = AssetRepository(session)
        self.projects = ProjectRepository(session)

    def _keyframe(self, asset_id: UUID) -> Asset:
        asset = self.assets.get(asset_id)
        if asset is None:
            raise NotFoundError(f"Asset {asset_id} not found")
        if not asset.is_keyframe:
            raise AssetStateError(f"Asset {asset_id} is a {asset.type}, not a keyframe")
        return asset

    def subsequent_keyframes(self, asset_id: UUID) -> List[Asset]:
        """Completed keyframes after the edited one, in segment order."""
        source = self._keyframe(asset_id)
        return [
            asset
            for asset in self.lifecycle.later_keyframes(source)
            if asset.status == AssetStatus.COMPLETED.value
        ]

    def count_subsequent(self, asset_id: UUID) -> int:
        return len(self.subsequent_keyframes(asset_id))

    def estimate_cost(self, asset_id: UUID) -> Decimal:
        return round_cents(self.count_subsequent(asset_id) * price_for(EDIT_JOB_KIND))

    def propagate(self, asset_id: UUID, instruction: str) -> PropagationResult:
        """Submit the instruction as an edit to every subsequent completed keyframe."""
        result = PropagationResult()
        for target in self.subsequent_keyframes(asset_id):
            try:
                edited = self.lifecycle.submit_edit(target.id, instruction)
            except DomainError as exc:
                logger.warning(
                    "propagation_target_failed",
                    source_id=str(asset_id),
                    asset_id=str(target.id),
                    error=exc.error,
                )
                result.failed.append(TargetFailure(target.id, exc.error, str(exc)))
                continue
            if edited.status == AssetStatus.FAILED.value:
                result.failed.append(TargetFailure.from_failed_asset(edited))
            else:
                result.submitted.append(edited)
        logger.info(
            "edit_propagated",
            source_id=str(asset_id),
            submitted=len(result.submitted),
            failed=len(result.failed),
        )
        return result

    def edit_keyframe(self, project_id: UUID, asset_id: UUID, instruction: str) -> Asset:
        """Edit one keyframe while the project waits at keyframe review."""
        project = self.projects.get(project_id)
        if project is None:
            raise NotFoundError(f"Project {project_id} not found")
        if project.status != Stage.CASTING_REVIEW.value:
            raise InvalidTransition(
                f"Keyframes can only be edited at '{Stage.CASTING_REVIEW.value}' (project is at '{project.status}')"
            )
        asset = self._keyframe(asset_id)
        if asset.project_id != project.id:
            raise NotFoundError(f"Asset {asset_id} not found in project {project_id}")
        return self.lifecycle.submit_edit(asset.id, instruction)
