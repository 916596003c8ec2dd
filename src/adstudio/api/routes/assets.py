"""Asset endpoints: submit, regenerate, reject, cancel, grade, reconcile."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from adstudio.api.dependencies import get_asset_repo, get_lifecycle
from adstudio.api.schemas import (
    AssetListResponse,
    AssetResponse,
    ErrorResponse,
    GradeRequest,
    RegenerateRequest,
    RegenerationResponse,
    RejectRequest,
    SubmitAssetRequest,
)
from adstudio.errors import NotFoundError
from adstudio.generation.lifecycle import GenerationLifecycle
from adstudio.storage.models import Asset
from adstudio.storage.repositories import AssetRepository

router = APIRouter(tags=["Assets"])

_ERRORS = {
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
    502: {"model": ErrorResponse},
}


def _owned(repo: AssetRepository, project_id: UUID, asset_id: UUID) -> Asset:
    asset = repo.get(asset_id)
    if asset is None or asset.project_id != project_id:
        raise NotFoundError(f"Asset {asset_id} not found in project {project_id}")
    return asset


def _to_response(asset: Asset) -> AssetResponse:
    return AssetResponse(**asset.to_dict())


@router.get("", response_model=AssetListResponse)
def list_assets(
    project_id: UUID,
    asset_type: list[str] | None = Query(None, alias="type"),
    asset_status: list[str] | None = Query(None, alias="status"),
    repo: AssetRepository = Depends(get_asset_repo),
) -> AssetListResponse:
    assets = repo.list_for_project(project_id, types=asset_type, statuses=asset_status)
    return AssetListResponse(assets=[_to_response(a) for a in assets], count=len(assets))


@router.post("", response_model=AssetResponse, status_code=status.HTTP_201_CREATED, responses=_ERRORS)
def submit_asset(
    project_id: UUID,
    body: SubmitAssetRequest,
    lifecycle: GenerationLifecycle = Depends(get_lifecycle),
) -> AssetResponse:
    """Start a generation job for one (scene, type) slot."""
    scene_id = UUID(body.scene_id) if body.scene_id else None
    asset = lifecycle.submit(project_id, scene_id, body.type, body.inputs)
    return _to_response(asset)


@router.post("/{asset_id}/regenerate", response_model=RegenerationResponse, responses=_ERRORS)
def regenerate_asset(
    project_id: UUID,
    asset_id: UUID,
    body: RegenerateRequest | None = None,
    repo: AssetRepository = Depends(get_asset_repo),
    lifecycle: GenerationLifecycle = Depends(get_lifecycle),
) -> RegenerationResponse:
    """Regenerate an asset; with `cascade` also every later keyframe."""
    _owned(repo, project_id, asset_id)
    cascade = bool(body and body.cascade)
    return RegenerationResponse(**lifecycle.regenerate(asset_id, cascade=cascade).to_dict())


@router.post("/{asset_id}/reject", response_model=AssetResponse, responses=_ERRORS)
def reject_asset(
    project_id: UUID,
    asset_id: UUID,
    body: RejectRequest | None = None,
    repo: AssetRepository = Depends(get_asset_repo),
    lifecycle: GenerationLifecycle = Depends(get_lifecycle),
) -> AssetResponse:
    _owned(repo, project_id, asset_id)
    return _to_response(lifecycle.reject(asset_id, reason=body.reason if body else None))


@router.post("/{asset_id}/cancel", response_model=AssetResponse, responses=_ERRORS)
def cancel_asset(
    project_id: UUID,
    asset_id: UUID,
    repo: AssetRepository = Depends(get_asset_repo),
    lifecycle: GenerationLifecycle = Depends(get_lifecycle),
) -> AssetResponse:
    _owned(repo, project_id, asset_id)
    return _to_response(lifecycle.cancel(asset_id))


@router.post("/{asset_id}/grade", response_model=AssetResponse, responses=_ERRORS)
def grade_asset(
    project_id: UUID,
    asset_id: UUID,
    body: GradeRequest,
    repo: AssetRepository = Depends(get_asset_repo),
    lifecycle: GenerationLifecycle = Depends(get_lifecycle),
) -> AssetResponse:
    _owned(repo, project_id, asset_id)
    return _to_response(lifecycle.grade(asset_id, body.grade))


@router.post("/{asset_id}/reconcile", response_model=AssetResponse, responses=_ERRORS)
def reconcile_asset(
    project_id: UUID,
    asset_id: UUID,
    repo: AssetRepository = Depends(get_asset_repo),
    lifecycle: GenerationLifecycle = Depends(get_lifecycle),
) -> AssetResponse:
    """Poll the provider now instead of waiting for the reconciler."""
    _owned(repo, project_id, asset_id)
    return _to_response(lifecycle.reconcile(asset_id))
