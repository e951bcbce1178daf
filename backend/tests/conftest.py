"""Shared fixtures for relay tests."""

import pytest

from profile_enrichment.core.resilience import get_all_circuit_breakers


@pytest.fixture(autouse=True)
def _reset_circuit_breakers() -> None:
    """Module-level breakers persist across tests; start each test closed."""
    for breaker in get_all_circuit_breakers().values():
        breaker.reset()
