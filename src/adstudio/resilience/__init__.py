"""Resilience patterns for production reliability."""

from adstudio.resilience.circuit_breaker import CircuitBreaker, CircuitBreakerError, CircuitState
from adstudio.resilience.locks import KeyedLock, asset_locks, project_locks

__all__ = [
    "CircuitBreaker",
    "CircuitBreakerError",
    "CircuitState",
    "KeyedLock",
    "asset_locks",
    "project_locks",
]
