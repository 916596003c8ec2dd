"""Provider push endpoint.

Applies a provider's job result through the same idempotent `reconcile` path
the polling worker uses, so a webhook and a poll racing for one job settle it
once.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from adstudio.api.dependencies import get_lifecycle
from adstudio.api.schemas import ErrorResponse, GenerationWebhook, WebhookAck
from adstudio.generation.lifecycle import GenerationLifecycle
from adstudio.generation.providers import JobPoll
from adstudio.observability.logging import get_logger
from adstudio.pipeline.state_machine import PipelineStateMachine

logger = get_logger(__name__)

router = APIRouter(prefix="/v1/webhooks", tags=["Webhooks"])


@router.post("/generation", response_model=WebhookAck, responses={404: {"model": ErrorResponse}})
def generation_webhook(
    body: GenerationWebhook,
    lifecycle: GenerationLifecycle = Depends(get_lifecycle),
) -> WebhookAck:
    poll = JobPoll(status=body.status, result=body.result, error=body.error, handle=body.task_id)
    asset = lifecycle.reconcile_handle(body.task_id, poll)
    logger.info(
        "generation_webhook_applied",
        task_id=body.task_id,
        asset_id=str(asset.id),
        status=asset.status,
    )
    if not asset.is_in_flight:
        machine = PipelineStateMachine(lifecycle.session, lifecycle=lifecycle)
        machine.try_complete_stage(asset.project_id)
    return WebhookAck(status="accepted", asset_id=str(asset.id), asset_status=asset.status)
