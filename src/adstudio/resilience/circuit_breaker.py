"""Fail-fast gate in front of a generation provider.

Once `failure_threshold` consecutive provider failures are recorded the gate
opens: calls raise `CircuitBreakerError` without touching the network. After
`recovery_timeout` seconds a limited number of probe calls are let through; a
successful probe closes the gate, a failed one opens it again.

Only exceptions listed in `trips_on` count as provider failures, so client
errors such as a rejected prompt never open the gate.
"""

from __future__ import annotations

import threading
import time
from enum import Enum
from http import HTTPStatus
from typing import Any, Callable, TypeVar

from adstudio.config import settings
from adstudio.errors import ProviderError
from adstudio.observability.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerError(ProviderError):
    """The provider is short-circuited; no request was sent."""

    error = "provider_unavailable"
    status_code = HTTPStatus.SERVICE_UNAVAILABLE


class CircuitBreaker:
    """Thread-safe breaker keyed on consecutive failures.

    State is derived from when the gate last opened rather than stored, so a
    read of `state` after the recovery window reports HALF_OPEN without any
    call having been made.
    """

    def __init__(
        self,
        failure_threshold: int | None = None,
        recovery_timeout: float | None = None,
        *,
        half_open_max_calls: int = 1,
        name: str = "provider",
        trips_on: tuple[type[BaseException], ...] = (Exception,),
        clock: Callable[[], float] = time.monotonic,
    ):
        self.failure_threshold = failure_threshold or settings.circuit_breaker_failure_threshold
        self.recovery_timeout = recovery_timeout or settings.circuit_breaker_recovery_timeout
        self.half_open_max_calls = half_open_max_calls
        self.name = name
        self.trips_on = trips_on
        self._clock = clock

        self._lock = threading.Lock()
        self._failures = 0
        self._opened_at: float | None = None
        self._probes = 0

    @property
    def state(self) -> CircuitState:
        with self._lock:
            return self._state_locked()

    def _state_locked(self) -> CircuitState:
        if self._opened_at is None:
            return CircuitState.CLOSED
        if self._clock() - self._opened_at < self.recovery_timeout:
            return CircuitState.OPEN
        return CircuitState.HALF_OPEN

    def _admit(self) -> None:
        with self._lock:
            state = self._state_locked()
            if state is CircuitState.OPEN:
                raise CircuitBreakerError(f"{self.name} is unavailable (circuit open)")
            if state is CircuitState.HALF_OPEN:
                if self._probes >= self.half_open_max_calls:
                    raise CircuitBreakerError(f"{self.name} is unavailable (probe in progress)")
                self._probes += 1

    def call(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Run `func` if the gate admits it, recording the outcome."""
        self._admit()
        try:
            result = func(*args, **kwargs)
        except self.trips_on:
            self._record_failure()
            raise
        self._record_success()
        return result

    def _record_success(self) -> None:
        with self._lock:
            if self._opened_at is not None:
                logger.info("circuit_closed", breaker=self.name)
            self._failures = 0
            self._opened_at = None
            self._probes = 0

    def _record_failure(self) -> None:
        with self._lock:
            self._failures += 1
            probing = self._opened_at is not None
            if not probing and self._failures < self.failure_threshold:
                return
            self._opened_at = self._clock()
            self._probes = 0
            logger.warning(
                "circuit_opened",
                breaker=self.name,
                failures=self._failures,
                probe_failed=probing,
            )

    def reset(self) -> None:
        with self._lock:
            self._failures = 0
            self._opened_at = None
            self._probes = 0
