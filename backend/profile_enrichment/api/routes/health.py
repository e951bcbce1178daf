"""Health check API routes.

Provides:
- GET /health: dependency circuit breaker states (public)
- GET /health/ping: lightweight 200 for external uptime monitors
"""

import logging
import time
from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, Response, status

from profile_enrichment import __version__
from profile_enrichment.core.resilience import CircuitState, get_all_circuit_breakers

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["health"])

_start_time = time.monotonic()


@router.get("", status_code=status.HTTP_200_OK)
async def health_check(response: Response) -> dict[str, Any]:
    """Report per-dependency circuit state, uptime, and version.

    - 200 → healthy, or degraded while the upstream backend circuit is open
      (streams fail fast, nothing to restart)
    - 503 → the Supabase circuit is open (phase results cannot be saved)
    """
    breakers = get_all_circuit_breakers()
    services = {name: cb.state.value for name, cb in breakers.items()}

    overall = "healthy"
    if any(state != CircuitState.CLOSED.value for state in services.values()):
        overall = "degraded"
    if services.get("supabase") == CircuitState.OPEN.value:
        overall = "unhealthy"
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return {
        "status": overall,
        "services": services,
        "circuit_breakers": {name: cb.to_dict() for name, cb in breakers.items()},
        "uptime_seconds": round(time.monotonic() - _start_time, 1),
        "version": __version__,
    }


@router.get("/ping", status_code=status.HTTP_200_OK)
async def ping() -> dict[str, str]:
    """Lightweight ping for external uptime monitors.

    No dependency checks. Returns 200 with current timestamp.
    """
    return {"status": "ok", "timestamp": datetime.now(UTC).isoformat()}
