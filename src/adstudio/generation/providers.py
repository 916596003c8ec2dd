"""Generation provider interface and local implementations.

Providers are opaque asynchronous job submitters: `submit_job` returns a task
handle immediately and the result is collected later through `poll_job` (or
pushed to the webhook route). The interface is intentionally small so the
lifecycle manager stays testable without network access.
"""

from __future__ import annotations

import threading
import uuid
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Literal, Protocol

from adstudio.config import settings as app_settings
from adstudio.config.provider_modes import effective_generation_provider
from adstudio.config.settings import Settings
from adstudio.errors import ProviderError
from adstudio.observability.logging import get_logger

logger = get_logger(__name__)

__all__ = [
    "JobPoll",
    "GenerationProvider",
    "FakeGenerationProvider",
    "DisabledGenerationProvider",
    "get_generation_provider",
]

PollStatus = Literal["pending", "done", "error"]


@dataclass(frozen=True)
class JobPoll:
    """Provider-reported state of one job."""

    status: PollStatus
    result: str | None = None
    error: str | None = None
    handle: str | None = None

    @classmethod
    def pending(cls, handle: str | None = None) -> "JobPoll":
        return cls(status="pending", handle=handle)

    @classmethod
    def done(cls, result: str, handle: str | None = None) -> "JobPoll":
        return cls(status="done", result=result, handle=handle)

    @classmethod
    def failed(cls, error: str, handle: str | None = None) -> "JobPoll":
        return cls(status="error", error=error, handle=handle)


class GenerationProvider(Protocol):
    name: str

    def submit_job(self, kind: str, payload: dict[str, Any]) -> str: ...

    def poll_job(self, handle: str) -> JobPoll: ...

    def cancel_job(self, handle: str) -> bool: ...


@dataclass
class _FakeJob:
    kind: str
    payload: dict[str, Any]
    polls: int = 0
    outcome: JobPoll | None = None
    cancelled: bool = False


class FakeGenerationProvider:
    """Deterministic in-memory provider for dev mode and tests.

    With `auto_complete=True` each job reports `done` after `polls_until_done`
    polls; otherwise jobs stay pending until `complete()` or `fail()` is called.
    """

    name = "fake"

    def __init__(self, *, auto_complete: bool = True, polls_until_done: int = 1):
        self.auto_complete = auto_complete
        self.polls_until_done = max(1, int(polls_until_done))
        self.submit_error: str | None = None
        self.cancel_error: str | None = None
        self._jobs: dict[str, _FakeJob] = {}
        self._lock = threading.Lock()

    def submit_job(self, kind: str, payload: dict[str, Any]) -> str:
        if self.submit_error:
            raise ProviderError(self.submit_error)
        handle = f"fake-{kind}-{uuid.uuid4().hex[:12]}"
        with self._lock:
            self._jobs[handle] = _FakeJob(kind=kind, payload=dict(payload))
        return handle

    def poll_job(self, handle: str) -> JobPoll:
        with self._lock:
            job = self._jobs.get(handle)
            if job is None:
                return JobPoll.failed(f"Unknown task {handle}", handle=handle)
            job.polls += 1
            if job.outcome is not None:
                return job.outcome
            if job.cancelled:
                return JobPoll.failed("cancelled", handle=handle)
            if self.auto_complete and job.polls >= self.polls_until_done:
                job.outcome = JobPoll.done(self._result_url(handle, job.kind), handle=handle)
                return job.outcome
            return JobPoll.pending(handle=handle)

    def cancel_job(self, handle: str) -> bool:
        if self.cancel_error:
            raise ProviderError(self.cancel_error)
        with self._lock:
            job = self._jobs.get(handle)
            if job is None:
                return False
            job.cancelled = True
            return True

    # Test helpers

    def complete(self, handle: str, url: str | None = None) -> JobPoll:
        with self._lock:
            job = self._jobs[handle]
            job.outcome = JobPoll.done(url or self._result_url(handle, job.kind), handle=handle)
            return job.outcome

    def fail(self, handle: str, error: str = "generation failed") -> JobPoll:
        with self._lock:
            job = self._jobs[handle]
            job.outcome = JobPoll.failed(error, handle=handle)
            return job.outcome

    def payload_for(self, handle: str) -> dict[str, Any]:
        with self._lock:
            return dict(self._jobs[handle].payload)

    def was_cancelled(self, handle: str) -> bool:
        with self._lock:
            job = self._jobs.get(handle)
            return bool(job and job.cancelled)

    @property
    def submitted(self) -> list[str]:
        with self._lock:
            return list(self._jobs)

    @staticmethod
    def _result_url(handle: str, kind: str) -> str:
        ext = {"video": "mp4", "tts": "mp3"}.get(kind, "png")
        return f"https://cdn.fake.adstudio.local/{kind}/{handle}.{ext}"


class DisabledGenerationProvider:
    """Provider used when generation is switched off."""

    name = "off"

    def submit_job(self, kind: str, payload: dict[str, Any]) -> str:
        raise ProviderError("Generation provider is disabled (GENERATION_PROVIDER=off)")

    def poll_job(self, handle: str) -> JobPoll:
        return JobPoll.failed("Generation provider is disabled", handle=handle)

    def cancel_job(self, handle: str) -> bool:
        return False


@lru_cache(maxsize=1)
def _shared_fake_provider() -> FakeGenerationProvider:
    return FakeGenerationProvider()


@lru_cache(maxsize=1)
def _shared_http_provider() -> GenerationProvider:
    from adstudio.config import get_settings
    from adstudio.generation.http_provider import HttpGenerationProvider

    return HttpGenerationProvider.from_settings(get_settings())


def get_generation_provider(settings: Settings | None = None) -> GenerationProvider:
    """Return the provider selected by settings (real|fake|off)."""
    cfg = settings or app_settings
    mode = effective_generation_provider(cfg)  # type: ignore[arg-type]
    if mode == "fake":
        return _shared_fake_provider()
    if mode == "off":
        return DisabledGenerationProvider()
    return _shared_http_provider()
