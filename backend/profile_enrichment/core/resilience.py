"""Resilience patterns for the relay's external dependencies.

Provides:
- CircuitBreaker: gates calls to Supabase and the upstream enrichment backend
- reconnect_delay: exponential backoff schedule used by stream subscribers

All circuit breakers are registered in a global registry for health-check visibility.
"""

import enum
import logging
import time
from typing import Any

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Circuit Breaker
# ---------------------------------------------------------------------------


class CircuitState(enum.Enum):
    """Circuit breaker states."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerOpen(Exception):
    """Raised when a call is attempted on an open circuit."""

    def __init__(self, service_name: str, retry_after: float = 0.0) -> None:
        self.service_name = service_name
        self.retry_after = retry_after
        super().__init__(f"Circuit breaker is open for {service_name}")


# Every breaker registers itself here so /health can report it
_circuit_breaker_registry: dict[str, "CircuitBreaker"] = {}


def get_all_circuit_breakers() -> dict[str, "CircuitBreaker"]:
    """Return a snapshot of all registered circuit breakers."""
    return dict(_circuit_breaker_registry)


class CircuitBreaker:
    """Fail-fast gate in front of one external dependency.

    The circuit opens after ``failure_threshold`` consecutive failures.
    Once ``recovery_timeout`` seconds have passed it reports HALF_OPEN and
    lets calls through again: the next success closes it, the next failure
    re-opens it for another full timeout.

    Breakers are only touched from the event loop, so no locking is needed.
    """

    def __init__(
        self,
        service_name: str,
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0,
    ) -> None:
        self.service_name = service_name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._failure_count = 0
        self._opened_at: float | None = None
        _circuit_breaker_registry[service_name] = self

    def _elapsed_open(self) -> float:
        assert self._opened_at is not None
        return time.monotonic() - self._opened_at

    @property
    def state(self) -> CircuitState:
        if self._opened_at is None:
            return CircuitState.CLOSED
        if self._elapsed_open() >= self.recovery_timeout:
            return CircuitState.HALF_OPEN
        return CircuitState.OPEN

    def check(self) -> None:
        """Raise ``CircuitBreakerOpen`` while the circuit refuses calls."""
        if self.state == CircuitState.OPEN:
            retry_after = max(0.0, self.recovery_timeout - self._elapsed_open())
            raise CircuitBreakerOpen(self.service_name, retry_after=retry_after)

    def record_success(self) -> None:
        if self._opened_at is not None:
            logger.warning("Circuit breaker CLOSED for %s", self.service_name)
        self._failure_count = 0
        self._opened_at = None

    def record_failure(self) -> None:
        self._failure_count += 1
        state = self.state
        if state == CircuitState.HALF_OPEN or (
            state == CircuitState.CLOSED and self._failure_count >= self.failure_threshold
        ):
            logger.warning(
                "Circuit breaker OPEN for %s after %d consecutive failures",
                self.service_name,
                self._failure_count,
            )
            self._opened_at = time.monotonic()

    def reset(self) -> None:
        self._failure_count = 0
        self._opened_at = None

    def to_dict(self) -> dict[str, Any]:
        """Snapshot for the health endpoint."""
        return {
            "service": self.service_name,
            "state": self.state.value,
            "failure_count": self._failure_count,
            "failure_threshold": self.failure_threshold,
            "recovery_timeout": self.recovery_timeout,
        }


supabase_circuit_breaker = CircuitBreaker(
    "supabase", failure_threshold=10, recovery_timeout=30.0,
)
enrichment_backend_circuit_breaker = CircuitBreaker(
    "enrichment_backend", failure_threshold=5, recovery_timeout=60.0,
)


# ---------------------------------------------------------------------------
# Reconnect backoff
# ---------------------------------------------------------------------------


def reconnect_delay(attempt: int, base: float = 2.0, max_delay: float | None = None) -> float:
    """Seconds to wait before reconnect attempt number ``attempt`` (0-based).

    ``base ** attempt``: 1s, 2s, 4s, ... optionally capped at ``max_delay``.
    """
    if attempt < 0:
        raise ValueError("attempt must be >= 0")
    delay = float(base**attempt)
    if max_delay is not None:
        delay = min(delay, max_delay)
    return delay
