"""WaveSpeed-style REST provider.

Submits prediction jobs (`POST /api/v3/{model}`), polls
`GET /api/v3/predictions/{id}/result`, and cancels through
`POST /api/v3/predictions/{id}/cancel`.
"""

from __future__ import annotations

from typing import Any

import httpx

from adstudio.config.settings import Settings
from adstudio.errors import ProviderError
from adstudio.generation.providers import JobPoll
from adstudio.observability.logging import get_logger
from adstudio.resilience.circuit_breaker import CircuitBreaker

logger = get_logger(__name__)

MODEL_PATHS: dict[str, str] = {
    "image": "/api/v3/google/nano-banana-pro/text-to-image-multi",
    "image_edit": "/api/v3/google/nano-banana-pro/edit",
    "video": "/api/v3/kwaivgi/kling-v3.0-pro/image-to-video",
    "tts": "/api/v3/minimax/speech-02-hd",
}

# Failures that say something about provider health, as opposed to a bad request.
BREAKER_TRIPS = (httpx.TransportError, httpx.HTTPStatusError)

_SUCCESS_STATUSES = {"completed"}
_FAILURE_STATUSES = {"failed"}


def _should_retry_status(status_code: int) -> bool:
    # Transient errors only; callers decide whether to retry.
    if status_code in {408, 409, 429}:
        return True
    return 500 <= status_code <= 599


class HttpGenerationProvider:
    name = "wavespeed"

    def __init__(
        self,
        *,
        api_key: str,
        base_url: str,
        timeout_seconds: float = 30.0,
        client: httpx.Client | None = None,
        breaker: CircuitBreaker | None = None,
    ):
        if not api_key:
            raise ProviderError("WAVESPEED_API_KEY is required for the real generation provider")
        self._client = client or httpx.Client(
            base_url=base_url,
            timeout=httpx.Timeout(timeout_seconds),
            headers={"Authorization": f"Bearer {api_key}"},
        )
        self._breaker = breaker

    @classmethod
    def from_settings(cls, settings: Settings) -> "HttpGenerationProvider":
        breaker = None
        if settings.circuit_breaker_enabled:
            breaker = CircuitBreaker(
                failure_threshold=settings.circuit_breaker_failure_threshold,
                recovery_timeout=settings.circuit_breaker_recovery_timeout,
                name="wavespeed",
                trips_on=BREAKER_TRIPS,
            )
        return cls(
            api_key=settings.wavespeed_api_key,
            base_url=settings.wavespeed_base_url,
            timeout_seconds=settings.provider_timeout_seconds,
            breaker=breaker,
        )

    @property
    def breaker(self) -> CircuitBreaker | None:
        return self._breaker

    def close(self) -> None:
        self._client.close()

    def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        def _do() -> httpx.Response:
            resp = self._client.request(method, path, **kwargs)
            if _should_retry_status(resp.status_code):
                # Count transient upstream failures against the breaker.
                resp.raise_for_status()
            return resp

        try:
            resp = self._breaker.call(_do) if self._breaker else _do()
        except httpx.HTTPError as exc:
            logger.warning("provider_request_failed", method=method, path=path, error=str(exc))
            raise ProviderError(f"WaveSpeed request failed: {exc}") from exc

        if resp.status_code >= 400:
            logger.warning(
                "provider_request_rejected",
                method=method,
                path=path,
                status_code=resp.status_code,
            )
            raise ProviderError(f"WaveSpeed API error ({resp.status_code}): {resp.text}")
        try:
            return resp.json()
        except ValueError as exc:
            raise ProviderError("WaveSpeed returned a non-JSON response") from exc

    def submit_job(self, kind: str, payload: dict[str, Any]) -> str:
        path = MODEL_PATHS.get(kind)
        if path is None:
            raise ProviderError(f"No WaveSpeed model configured for job kind '{kind}'")
        body = dict(payload)
        body.setdefault("enable_sync_mode", False)
        data = self._request("POST", path, json=body)
        task_id = (data.get("data") or {}).get("id")
        if not task_id:
            raise ProviderError("WaveSpeed response did not include a task id")
        logger.info("provider_job_submitted", kind=kind, task_id=task_id)
        return str(task_id)

    def poll_job(self, handle: str) -> JobPoll:
        data = self._request("GET", f"/api/v3/predictions/{handle}/result")
        body = data.get("data") or {}
        status = str(body.get("status") or "").lower()
        if status in _SUCCESS_STATUSES:
            outputs = body.get("outputs") or []
            if not outputs:
                return JobPoll.failed("Provider completed without outputs", handle=handle)
            return JobPoll.done(str(outputs[0]), handle=handle)
        if status in _FAILURE_STATUSES:
            error = body.get("error") or body.get("message") or "Unknown error"
            return JobPoll.failed(str(error), handle=handle)
        return JobPoll.pending(handle=handle)

    def cancel_job(self, handle: str) -> bool:
        try:
            self._request("POST", f"/api/v3/predictions/{handle}/cancel")
        except ProviderError as exc:
            logger.info("provider_cancel_not_acknowledged", task_id=handle, error=str(exc))
            return False
        return True
