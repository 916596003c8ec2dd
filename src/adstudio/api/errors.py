"""Helpers for consistent API errors."""

from __future__ import annotations

from fastapi import HTTPException

from adstudio.errors import DomainError

__all__ = ["DomainError", "to_http_exception"]


def to_http_exception(err: DomainError) -> HTTPException:
    """Convert DomainError to HTTPException with consistent payload."""
    detail: dict[str, object] = {"error": err.error, "detail": str(err)}
    asset_id = getattr(err, "asset_id", None)
    if asset_id is not None:
        detail["asset_id"] = str(asset_id)
    return HTTPException(status_code=int(err.status_code), detail=detail)
