"""Common FastAPI dependencies for the AdStudio API."""

from __future__ import annotations

from typing import Generator

from fastapi import Depends, HTTPException, Security
from fastapi.security import APIKeyHeader
from sqlalchemy.orm import Session

from adstudio.config import settings
from adstudio.costs.ledger import CostLedger
from adstudio.editing.propagation import PropagationEngine
from adstudio.generation.lifecycle import GenerationLifecycle
from adstudio.generation.providers import GenerationProvider, get_generation_provider
from adstudio.pipeline.state_machine import PipelineStateMachine
from adstudio.storage.database import get_session
from adstudio.storage.repositories import AssetRepository, ProjectRepository

__all__ = [
    "get_db_session",
    "get_provider",
    "get_ledger",
    "get_lifecycle",
    "get_state_machine",
    "get_propagation",
    "get_project_repo",
    "get_asset_repo",
    "verify_api_key",
    "api_key_header",
]


def get_db_session() -> Generator[Session, None, None]:
    """Provide a SQLAlchemy session for request scope."""

    with get_session() as session:
        yield session


def get_provider() -> GenerationProvider:
    """Provide the generation provider selected by settings."""

    return get_generation_provider()


def get_project_repo(session: Session = Depends(get_db_session)) -> ProjectRepository:
    return ProjectRepository(session)


def get_asset_repo(session: Session = Depends(get_db_session)) -> AssetRepository:
    return AssetRepository(session)


def get_ledger(session: Session = Depends(get_db_session)) -> CostLedger:
    return CostLedger(session)


def get_lifecycle(
    session: Session = Depends(get_db_session),
    provider: GenerationProvider = Depends(get_provider),
    ledger: CostLedger = Depends(get_ledger),
) -> GenerationLifecycle:
    """Dependency that returns a GenerationLifecycle bound to the request session."""

    return GenerationLifecycle(session, provider, ledger=ledger)


def get_state_machine(
    session: Session = Depends(get_db_session),
    lifecycle: GenerationLifecycle = Depends(get_lifecycle),
) -> PipelineStateMachine:
    return PipelineStateMachine(session, lifecycle=lifecycle)


def get_propagation(
    session: Session = Depends(get_db_session),
    lifecycle: GenerationLifecycle = Depends(get_lifecycle),
) -> PropagationEngine:
    return PropagationEngine(session, lifecycle)


# API key verification (shared)
api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


async def verify_api_key(api_key: str = Security(api_key_header)) -> str:
    """Verify API key authentication for all endpoints."""

    if api_key is None:
        raise HTTPException(status_code=401, detail="Missing API key")
    if api_key != settings.api_key:
        raise HTTPException(status_code=401, detail="Invalid API key")
    return api_key
