"""structlog setup for AdStudio.

Events are snake_case names with keyword context::

    logger.info("asset_reconciled", asset_id=asset.id, status=asset.status)

UUIDs and Decimals are rendered as plain strings so ids and money amounts stay
exact in the JSON output.
"""

from __future__ import annotations

import logging
import sys
from contextvars import ContextVar
from decimal import Decimal
from typing import Any, MutableMapping
from uuid import UUID

import structlog

request_id_var: ContextVar[str] = ContextVar("request_id", default="")

EventDict = MutableMapping[str, Any]


def _add_request_id(_logger: Any, _method_name: str, event_dict: EventDict) -> EventDict:
    request_id = request_id_var.get("")
    if request_id:
        event_dict["request_id"] = request_id
    return event_dict


def _render_domain_values(_logger: Any, _method_name: str, event_dict: EventDict) -> EventDict:
    for key, value in event_dict.items():
        if isinstance(value, (UUID, Decimal)):
            event_dict[key] = str(value)
    return event_dict


def configure_logging(level: str = "INFO", *, json_output: bool = True) -> None:
    """Route structlog through stdlib logging at `level`.

    `json_output=False` switches to the human-readable console renderer.
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    renderer: Any = structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer()
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.processors.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            _add_request_id,
            _render_domain_values,
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter("%(message)s"))
        root.addHandler(handler)
    root.setLevel(numeric_level)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name) if name else structlog.get_logger()


def get_request_id() -> str:
    return request_id_var.get("")


logger = get_logger("adstudio")
