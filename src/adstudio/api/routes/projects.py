"""Project endpoints: lifecycle actions, progress, cost and impact preview."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from adstudio.api.dependencies import get_ledger, get_project_repo, get_state_machine
from adstudio.api.schemas import (
    CostEntryResponse,
    CostResponse,
    CreateProjectRequest,
    ErrorResponse,
    ImpactRequest,
    ImpactResponse,
    ProjectListResponse,
    ProjectResponse,
    RestartRequest,
    StageProgressResponse,
)
from adstudio.costs.ledger import CostLedger
from adstudio.errors import NotFoundError
from adstudio.impact.analyzer import compute_impact
from adstudio.observability.logging import get_logger
from adstudio.pipeline.state_machine import PipelineStateMachine
from adstudio.storage.models import Project
from adstudio.storage.repositories import ProjectRepository

logger = get_logger(__name__)

router = APIRouter(tags=["Projects"])

_CONFLICT = {409: {"model": ErrorResponse}, 404: {"model": ErrorResponse}}


def _to_response(project: Project, machine: PipelineStateMachine) -> ProjectResponse:
    return ProjectResponse(**project.to_dict(), progress=machine.progress(project))


def _get_or_404(repo: ProjectRepository, project_id: UUID) -> Project:
    project = repo.get(project_id)
    if project is None:
        raise NotFoundError(f"Project {project_id} not found")
    return project


@router.post("", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
def create_project(
    body: CreateProjectRequest,
    repo: ProjectRepository = Depends(get_project_repo),
    machine: PipelineStateMachine = Depends(get_state_machine),
) -> ProjectResponse:
    project = repo.create(name=body.name)
    logger.info("project_created", project_id=str(project.id))
    return _to_response(project, machine)


@router.get("", response_model=ProjectListResponse)
def list_projects(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    status_filter: str | None = Query(None, alias="status"),
    repo: ProjectRepository = Depends(get_project_repo),
    machine: PipelineStateMachine = Depends(get_state_machine),
) -> ProjectListResponse:
    projects = repo.list(limit=limit, offset=offset, status=status_filter)
    return ProjectListResponse(
        projects=[_to_response(p, machine) for p in projects],
        count=len(projects),
    )


@router.get("/{project_id}", response_model=ProjectResponse, responses=_CONFLICT)
def get_project(
    project_id: UUID,
    repo: ProjectRepository = Depends(get_project_repo),
    machine: PipelineStateMachine = Depends(get_state_machine),
) -> ProjectResponse:
    return _to_response(_get_or_404(repo, project_id), machine)


@router.post("/{project_id}/approve", response_model=ProjectResponse, responses=_CONFLICT)
def approve_project(
    project_id: UUID,
    machine: PipelineStateMachine = Depends(get_state_machine),
) -> ProjectResponse:
    """Approve the current review gate."""
    return _to_response(machine.approve(project_id), machine)


@router.post("/{project_id}/cancel", response_model=ProjectResponse, responses=_CONFLICT)
def cancel_project(
    project_id: UUID,
    machine: PipelineStateMachine = Depends(get_state_machine),
) -> ProjectResponse:
    """Cancel the running stage and roll back to the previous review gate."""
    return _to_response(machine.cancel(project_id), machine)


@router.post("/{project_id}/retry", response_model=ProjectResponse, responses=_CONFLICT)
def retry_project(
    project_id: UUID,
    machine: PipelineStateMachine = Depends(get_state_machine),
) -> ProjectResponse:
    return _to_response(machine.retry(project_id), machine)


@router.post("/{project_id}/rollback", response_model=ProjectResponse, responses=_CONFLICT)
def rollback_project(
    project_id: UUID,
    machine: PipelineStateMachine = Depends(get_state_machine),
) -> ProjectResponse:
    return _to_response(machine.rollback(project_id), machine)


@router.post("/{project_id}/restart", response_model=ProjectResponse, responses=_CONFLICT)
def restart_project(
    project_id: UUID,
    body: RestartRequest,
    machine: PipelineStateMachine = Depends(get_state_machine),
) -> ProjectResponse:
    """Restart the pipeline from a restart point (after a destructive edit)."""
    return _to_response(machine.restart(project_id, body.stage), machine)


@router.get("/{project_id}/progress", response_model=StageProgressResponse, responses=_CONFLICT)
def project_progress(
    project_id: UUID,
    repo: ProjectRepository = Depends(get_project_repo),
    machine: PipelineStateMachine = Depends(get_state_machine),
) -> StageProgressResponse:
    project = _get_or_404(repo, project_id)
    stage = machine.stage_progress(project_id)
    return StageProgressResponse(
        project_id=str(project.id),
        status=project.status,
        progress=machine.progress(project),
        **stage.to_dict(),
    )


@router.get("/{project_id}/cost", response_model=CostResponse, responses=_CONFLICT)
def project_cost(
    project_id: UUID,
    ledger: CostLedger = Depends(get_ledger),
) -> CostResponse:
    total = ledger.total(project_id)
    entries = [
        CostEntryResponse(**{k: v for k, v in entry.to_dict().items() if k != "project_id"})
        for entry in ledger.entries_for(project_id)
    ]
    return CostResponse(project_id=str(project_id), total_usd=str(total), entries=entries)


@router.post(
    "/{project_id}/impact",
    response_model=ImpactResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
def project_impact(
    project_id: UUID,
    body: ImpactRequest,
    repo: ProjectRepository = Depends(get_project_repo),
) -> ImpactResponse:
    """Preview which later stages an edit invalidates and what regenerating them costs."""
    _get_or_404(repo, project_id)
    report = compute_impact(body.stage, body.changes)
    return ImpactResponse(**report.to_dict())
