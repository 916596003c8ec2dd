"""Shared Pydantic request/response models for OpenAPI."""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from adstudio.storage.models import AssetType


class ErrorResponse(BaseModel):
    error: str = Field(..., description="Machine-readable error code")
    detail: Optional[str | Dict[str, Any]] = Field(
        None, description="Human-readable or structured error detail"
    )


class HealthResponse(BaseModel):
    status: str
    version: str
    generation_provider: str
    degraded_mode: bool = False
    database_ready: Optional[bool] = None
    provider_circuit: Optional[str] = Field(
        None, description="Circuit breaker state: closed, open, or half_open"
    )


class CreateProjectRequest(BaseModel):
    name: str = Field(default="Untitled", min_length=1, max_length=200)


class ProjectResponse(BaseModel):
    id: str
    name: str
    status: str
    failed_at_status: Optional[str] = None
    error_message: Optional[str] = None
    cost_usd: str
    cancel_requested_at: Optional[str] = None
    version: int
    progress: float = Field(..., ge=0.0, le=1.0)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class ProjectListResponse(BaseModel):
    projects: List[ProjectResponse]
    count: int


class RestartRequest(BaseModel):
    stage: str = Field(..., max_length=32)


class StageProgressResponse(BaseModel):
    project_id: str
    status: str
    progress: float
    stage: Optional[str] = None
    active: bool = False
    completed: int = 0
    generating: int = 0
    failed: int = 0
    total: int = 0
    label: Optional[str] = None


class CostEntryResponse(BaseModel):
    id: str
    asset_id: Optional[str] = None
    amount_usd: str
    reason: str
    created_at: Optional[str] = None


class CostResponse(BaseModel):
    project_id: str
    total_usd: str
    entries: List[CostEntryResponse]


class ImpactRequest(BaseModel):
    stage: str = Field(..., max_length=32)
    changes: List[str] = Field(..., min_length=1, description="Names of the fields being edited")


class SafeFieldResponse(BaseModel):
    field: str
    description: str


class DestructiveFieldResponse(SafeFieldResponse):
    affected_stages: List[str]


class ImpactResponse(BaseModel):
    stage: str
    safe: List[SafeFieldResponse]
    destructive: List[DestructiveFieldResponse]
    all_affected_stages: List[str]
    restart_from: Optional[str] = None
    estimated_cost_usd: str
    warning: Optional[str] = None


class SubmitAssetRequest(BaseModel):
    type: AssetType
    scene_id: Optional[str] = None
    inputs: Dict[str, Any] = Field(default_factory=dict)


class AssetResponse(BaseModel):
    id: str
    project_id: str
    scene_id: Optional[str] = None
    type: str
    status: str
    provider: Optional[str] = None
    provider_task_id: Optional[str] = None
    url: Optional[str] = None
    cost_usd: str
    grade: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    submitted_at: Optional[str] = None
    version: int
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class AssetListResponse(BaseModel):
    assets: List[AssetResponse]
    count: int


class RegenerateRequest(BaseModel):
    cascade: bool = False


class RejectRequest(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=500)


class GradeRequest(BaseModel):
    grade: Optional[str] = Field(default=None, max_length=16)


class EditRequest(BaseModel):
    instruction: str = Field(..., min_length=1, max_length=2000)


class PropagationPreviewResponse(BaseModel):
    asset_id: str
    count: int
    estimated_cost_usd: str


class TargetFailureResponse(BaseModel):
    asset_id: str
    error: str
    message: str


class PropagationResponse(BaseModel):
    submitted: List[AssetResponse]
    failed: List[TargetFailureResponse]


class RegenerationResponse(BaseModel):
    regenerated: List[AssetResponse]
    failed: List[TargetFailureResponse]


class GenerationWebhook(BaseModel):
    """Provider push for one job."""

    task_id: str = Field(..., min_length=1, max_length=128)
    status: Literal["pending", "done", "error"]
    result: Optional[str] = None
    error: Optional[str] = None


class WebhookAck(BaseModel):
    status: str
    asset_id: Optional[str] = None
    asset_status: Optional[str] = None
