"""Progressive enrichment streaming route.

GET /instagram/enrich-stream?username=<handle>&userId=<owner> relays the
upstream enrichment event stream to the caller while persisting each phase.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse, Response, StreamingResponse
from starlette.background import BackgroundTask

from profile_enrichment.api.deps import Relay
from profile_enrichment.core.exceptions import EnrichmentError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/instagram", tags=["enrichment"])

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


@router.get("/enrich-stream", response_model=None)
async def enrich_stream(
    relay: Relay,
    username: Annotated[str | None, Query(description="Handle of the profile to enrich")] = None,
    user_id: Annotated[
        str | None, Query(alias="userId", description="Owner whose profile receives results")
    ] = None,
) -> Response:
    """Stream enrichment phases as Server-Sent Events.

    Emits the upstream frames unchanged:
    - ``event: phase`` {"phase": "profile|metrics|ai", "progress": 0-100, "data": {...}}
    - ``event: error`` {"phase": "...", "message": "..."}
    - ``event: done``

    Failures before the stream opens return ``{"error": "..."}`` with 400
    (missing parameters) or 502 (upstream unavailable).
    """
    try:
        stream = await relay.connect(username, user_id)
    except EnrichmentError as e:
        logger.warning(
            "Enrichment stream not started: %s",
            e.message,
            extra={"code": e.code, "status_code": e.status_code, "subject": username},
        )
        return JSONResponse(status_code=e.status_code, content={"error": e.message})

    return StreamingResponse(
        stream,
        media_type="text/event-stream",
        headers=SSE_HEADERS,
        background=BackgroundTask(stream.aclose),
    )
