"""Tests for the resilience module (circuit breaker, reconnect backoff)."""

import time
from unittest.mock import patch

import pytest

from profile_enrichment.core.resilience import (
    CircuitBreaker,
    CircuitBreakerOpen,
    CircuitState,
    get_all_circuit_breakers,
    reconnect_delay,
)


# ---------------------------------------------------------------------------
# CircuitBreaker
# ---------------------------------------------------------------------------


class TestCircuitBreakerStates:
    """Circuit breaker state machine transitions."""

    def test_starts_closed(self) -> None:
        cb = CircuitBreaker("test_starts_closed", failure_threshold=5)
        assert cb.state == CircuitState.CLOSED

    def test_opens_at_failure_threshold(self) -> None:
        cb = CircuitBreaker("test_opens", failure_threshold=3)
        for _ in range(3):
            cb.record_failure()
        assert cb.state == CircuitState.OPEN

    def test_open_circuit_raises_with_retry_after(self) -> None:
        cb = CircuitBreaker("test_raises", failure_threshold=1, recovery_timeout=60.0)
        cb.record_failure()
        with pytest.raises(CircuitBreakerOpen, match="test_raises") as exc_info:
            cb.check()
        assert 0 < exc_info.value.retry_after <= 60.0

    def test_half_open_after_recovery_timeout(self) -> None:
        cb = CircuitBreaker("test_half_open", failure_threshold=1, recovery_timeout=30.0)
        cb.record_failure()
        with patch(
            "profile_enrichment.core.resilience.time.monotonic",
            return_value=time.monotonic() + 31,
        ):
            assert cb.state == CircuitState.HALF_OPEN

    def test_success_in_half_open_closes(self) -> None:
        cb = CircuitBreaker("test_close", failure_threshold=1, recovery_timeout=0.0)
        cb.record_failure()
        assert cb.state == CircuitState.HALF_OPEN
        cb.check()
        cb.record_success()
        assert cb.state == CircuitState.CLOSED
        assert cb.to_dict()["failure_count"] == 0

    def test_failure_in_half_open_reopens(self) -> None:
        cb = CircuitBreaker("test_reopen", failure_threshold=2, recovery_timeout=30.0)
        cb.record_failure()
        cb.record_failure()
        later = time.monotonic() + 31
        with patch("profile_enrichment.core.resilience.time.monotonic", return_value=later):
            assert cb.state == CircuitState.HALF_OPEN
            cb.record_failure()
            assert cb.state == CircuitState.OPEN
            with pytest.raises(CircuitBreakerOpen):
                cb.check()

    def test_success_below_threshold_resets_count(self) -> None:
        cb = CircuitBreaker("test_consecutive", failure_threshold=3)
        cb.record_failure()
        cb.record_failure()
        cb.record_success()
        cb.record_failure()
        assert cb.state == CircuitState.CLOSED

    def test_reset_closes_circuit(self) -> None:
        cb = CircuitBreaker("test_reset", failure_threshold=1)
        cb.record_failure()
        cb.reset()
        assert cb.state == CircuitState.CLOSED
        assert cb.to_dict()["failure_count"] == 0


def test_relay_breakers_are_registered() -> None:
    breakers = get_all_circuit_breakers()
    assert "supabase" in breakers
    assert "enrichment_backend" in breakers


# ---------------------------------------------------------------------------
# reconnect_delay
# ---------------------------------------------------------------------------


class TestReconnectDelay:
    """Backoff schedule as a pure function of the attempt number."""

    @pytest.mark.parametrize(("attempt", "expected"), [(0, 1.0), (1, 2.0), (2, 4.0), (3, 8.0)])
    def test_doubles_per_attempt(self, attempt: int, expected: float) -> None:
        assert reconnect_delay(attempt) == expected

    def test_custom_base(self) -> None:
        assert reconnect_delay(2, base=3.0) == 9.0

    def test_max_delay_caps(self) -> None:
        assert reconnect_delay(10, max_delay=30.0) == 30.0

    def test_negative_attempt_rejected(self) -> None:
        with pytest.raises(ValueError):
            reconnect_delay(-1)
