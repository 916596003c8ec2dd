"""Domain error taxonomy for the orchestration core.

Each error carries a stable `error` code and the HTTP status the API layer
maps it to (see `adstudio.api.errors.to_http_exception`).
"""

from __future__ import annotations

from http import HTTPStatus

__all__ = [
    "DomainError",
    "NotFoundError",
    "InvalidTransition",
    "NotAtReviewGate",
    "SlotBusy",
    "AssetStateError",
    "ConcurrentModification",
    "UnknownStage",
    "ProviderError",
    "GenerationTimeout",
    "PromptValidationError",
]


class DomainError(Exception):
    """Base class for domain errors."""

    error: str = "domain_error"
    status_code: int = HTTPStatus.BAD_REQUEST

    def __init__(self, message: str, *, error: str | None = None, status_code: int | None = None):
        super().__init__(message)
        if error:
            self.error = error
        if status_code:
            self.status_code = status_code


class NotFoundError(DomainError):
    error = "not_found"
    status_code = HTTPStatus.NOT_FOUND


class InvalidTransition(DomainError):
    """A requested stage move is not the legal next step."""

    error = "invalid_transition"
    status_code = HTTPStatus.CONFLICT


class NotAtReviewGate(DomainError):
    """An approval was attempted outside a review gate."""

    error = "not_at_review_gate"
    status_code = HTTPStatus.CONFLICT


class SlotBusy(DomainError):
    """A generation is already in flight for the (scene, asset type) slot."""

    error = "slot_busy"
    status_code = HTTPStatus.CONFLICT

    def __init__(self, message: str, *, asset_id: object | None = None):
        super().__init__(message)
        self.asset_id = asset_id


class AssetStateError(DomainError):
    """An asset operation is not valid for the asset's current status."""

    error = "invalid_asset_state"
    status_code = HTTPStatus.CONFLICT


class ConcurrentModification(DomainError):
    """A compare-and-swap update lost a race with another writer."""

    error = "concurrent_modification"
    status_code = HTTPStatus.CONFLICT


class UnknownStage(DomainError):
    error = "unknown_stage"
    status_code = HTTPStatus.BAD_REQUEST


class ProviderError(DomainError):
    """The external generation provider reported or caused a failure."""

    error = "provider_error"
    status_code = HTTPStatus.BAD_GATEWAY


class GenerationTimeout(ProviderError):
    """No provider response arrived within the configured ceiling."""

    error = "generation_timeout"
    status_code = HTTPStatus.GATEWAY_TIMEOUT


class PromptValidationError(ProviderError):
    """A structured generation prompt failed schema validation."""

    error = "invalid_prompt"
    status_code = HTTPStatus.UNPROCESSABLE_ENTITY
