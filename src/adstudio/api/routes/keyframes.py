"""Keyframe edit and propagation endpoints."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends

from adstudio.api.dependencies import get_asset_repo, get_propagation
from adstudio.api.schemas import (
    AssetResponse,
    EditRequest,
    ErrorResponse,
    PropagationPreviewResponse,
    PropagationResponse,
)
from adstudio.editing.propagation import PropagationEngine
from adstudio.errors import NotFoundError
from adstudio.storage.repositories import AssetRepository

router = APIRouter(tags=["Keyframes"])

_ERRORS = {404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}}


def _ensure_owned(repo: AssetRepository, project_id: UUID, asset_id: UUID) -> None:
    asset = repo.get(asset_id)
    if asset is None or asset.project_id != project_id:
        raise NotFoundError(f"Asset {asset_id} not found in project {project_id}")


@router.post("/{asset_id}/edit", response_model=AssetResponse, responses=_ERRORS)
def edit_keyframe(
    project_id: UUID,
    asset_id: UUID,
    body: EditRequest,
    engine: PropagationEngine = Depends(get_propagation),
) -> AssetResponse:
    """Apply a free-text edit to one keyframe (project must be at keyframe review)."""
    asset = engine.edit_keyframe(project_id, asset_id, body.instruction)
    return AssetResponse(**asset.to_dict())


@router.get("/{asset_id}/propagation", response_model=PropagationPreviewResponse, responses=_ERRORS)
def propagation_preview(
    project_id: UUID,
    asset_id: UUID,
    repo: AssetRepository = Depends(get_asset_repo),
    engine: PropagationEngine = Depends(get_propagation),
) -> PropagationPreviewResponse:
    """How many later keyframes an edit would be reapplied to, and the cost."""
    _ensure_owned(repo, project_id, asset_id)
    return PropagationPreviewResponse(
        asset_id=str(asset_id),
        count=engine.count_subsequent(asset_id),
        estimated_cost_usd=str(engine.estimate_cost(asset_id)),
    )


@router.post("/{asset_id}/propagate", response_model=PropagationResponse, responses=_ERRORS)
def propagate_edit(
    project_id: UUID,
    asset_id: UUID,
    body: EditRequest,
    repo: AssetRepository = Depends(get_asset_repo),
    engine: PropagationEngine = Depends(get_propagation),
) -> PropagationResponse:
    _ensure_owned(repo, project_id, asset_id)
    result = engine.propagate(asset_id, body.instruction)
    return PropagationResponse(**result.to_dict())
