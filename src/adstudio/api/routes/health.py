"""Health check endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request

from adstudio.api.schemas import HealthResponse
from adstudio.app_version import get_app_version
from adstudio.config import settings
from adstudio.config.provider_modes import effective_generation_provider
from adstudio.errors import ProviderError
from adstudio.generation.providers import get_generation_provider

router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> dict[str, Any]:
    """Health check endpoint."""

    mode = effective_generation_provider(settings)  # type: ignore[arg-type]

    # Get circuit breaker state
    circuit_state = None
    if mode == "real":
        try:
            breaker = getattr(get_generation_provider(), "breaker", None)
        except ProviderError:
            breaker = None
        if breaker is not None:
            circuit_state = breaker.state.value

    return {
        "status": "healthy",
        "version": get_app_version(),
        "generation_provider": mode,
        "degraded_mode": mode != "real",
        "database_ready": getattr(request.app.state, "database_ready", None),
        "provider_circuit": circuit_state,
    }
