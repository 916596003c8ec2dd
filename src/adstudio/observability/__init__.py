"""Structured logging for AdStudio.

    from adstudio.observability import get_logger

    logger = get_logger(__name__)
    logger.info("asset_reconciled", asset_id=asset.id, status=asset.status)

Entry points (API lifespan, CLI group) call `init_observability()`; importing
the package as a library leaves global logging untouched.
"""

from __future__ import annotations

from adstudio.observability.logging import configure_logging, get_logger

__all__ = ["configure_logging", "get_logger", "init_observability"]

_configured = False


def init_observability() -> None:
    """Configure logging once per process from settings.

    Development gets the console renderer; every other environment logs JSON.
    """
    global _configured
    if _configured:
        return
    from adstudio.config import settings

    configure_logging(settings.log_level, json_output=settings.environment != "development")
    _configured = True
