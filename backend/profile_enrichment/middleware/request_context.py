"""Request ID and response-start timing middleware.

Event-stream responses stay open long after headers are sent, so the
duration logged here is time-to-headers, not total stream lifetime.
"""

import logging
import time
import uuid
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)

SLOW_START_THRESHOLD_MS = 1000.0


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Assign a unique request ID to every request.

    - Reuses an inbound ``X-Request-ID`` header when present.
    - Stores the ID in ``request.state.request_id``.
    - Returns the ID in the ``X-Request-ID`` response header.
    """

    async def dispatch(self, request: Request, call_next: Any) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id

        start = time.perf_counter()
        response: Response = await call_next(request)
        started_ms = (time.perf_counter() - start) * 1000.0

        response.headers["X-Request-ID"] = request_id
        if started_ms >= SLOW_START_THRESHOLD_MS:
            logger.warning(
                "Slow response start: %s %s in %.2f ms [request_id=%s, status=%d]",
                request.method,
                request.url.path,
                started_ms,
                request_id,
                response.status_code,
            )
        return response
