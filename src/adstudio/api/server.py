"""FastAPI application for the AdStudio API.

`create_app()` builds the app; `app` is the instance uvicorn serves
(`adstudio serve` or `uvicorn adstudio.api.server:app`).
"""

from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Awaitable, Callable
from uuid import uuid4

import structlog
from fastapi import APIRouter, Depends, FastAPI, HTTPException
from fastapi.requests import Request
from fastapi.responses import JSONResponse, Response
from sqlalchemy.exc import SQLAlchemyError

from adstudio.api import routes
from adstudio.api.dependencies import verify_api_key
from adstudio.api.errors import DomainError, to_http_exception
from adstudio.app_version import get_app_version
from adstudio.config import settings
from adstudio.observability.logging import get_logger, request_id_var
from adstudio.storage.database import init_db, shutdown_db

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

# (router, prefix, requires API key)
_ROUTERS: list[tuple[APIRouter, str, bool]] = [
    (routes.health.router, "", False),
    (routes.projects.router, "/v1/projects", True),
    (routes.assets.router, "/v1/projects/{project_id}/assets", True),
    (routes.keyframes.router, "/v1/projects/{project_id}/keyframes", True),
    (routes.webhooks.router, "", True),
]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    from adstudio.observability import init_observability

    init_observability()
    try:
        init_db()
        app.state.database_ready = True
    except SQLAlchemyError as exc:
        app.state.database_ready = False
        logger.error("database_init_failed", error=str(exc))
        if settings.environment == "production":
            raise
    logger.info("api_started", environment=settings.environment, database_ready=app.state.database_ready)

    yield

    shutdown_db()
    logger.info("api_stopped")


async def _request_context(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid4())
    token = request_id_var.set(request_id)
    structlog.contextvars.bind_contextvars(method=request.method, path=request.url.path)
    started = time.perf_counter()
    try:
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info("request_complete", status=response.status_code, duration_ms=round(elapsed_ms, 2))
    finally:
        structlog.contextvars.unbind_contextvars("method", "path")
        request_id_var.reset(token)

    response.headers[REQUEST_ID_HEADER] = request_id
    response.headers["X-Response-Time-ms"] = f"{elapsed_ms:.2f}"
    return response


def _error_envelope(exc: HTTPException) -> JSONResponse:
    detail = exc.detail
    if isinstance(detail, dict):
        content = {"error": detail.get("error", "http_error"), **{k: v for k, v in detail.items() if k != "error"}}
    else:
        content = {"error": "http_error", "detail": detail}
    return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)


async def _http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return _error_envelope(exc)


async def _domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    if int(exc.status_code) >= 500:
        logger.warning("domain_error", error=exc.error, detail=str(exc))
    return _error_envelope(to_http_exception(exc))


def create_app() -> FastAPI:
    application = FastAPI(
        title="AdStudio API",
        description="Pipeline and generation-job orchestration for AI-produced video ads",
        version=get_app_version(),
        lifespan=lifespan,
    )
    application.middleware("http")(_request_context)
    application.add_exception_handler(HTTPException, _http_exception_handler)  # type: ignore[arg-type]
    application.add_exception_handler(DomainError, _domain_error_handler)  # type: ignore[arg-type]

    auth = [Depends(verify_api_key)]
    for router, prefix, protected in _ROUTERS:
        application.include_router(router, prefix=prefix, dependencies=auth if protected else [])
    return application


app = create_app()

__all__ = ["app", "create_app", "lifespan"]
