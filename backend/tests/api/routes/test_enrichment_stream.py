"""Tests for the enrichment streaming route.

Tests cover:
- GET /api/v1/instagram/enrich-stream relays upstream frames with SSE headers
- Missing username/userId → 400 {"error": ...} without contacting upstream
- Upstream unreachable or non-2xx → 502 {"error": ...}
"""

from typing import Any

import httpx
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from profile_enrichment.api.deps import get_stream_relay
from profile_enrichment.api.routes import enrichment
from profile_enrichment.core.config import RelayConfig
from profile_enrichment.models.enrichment import EnrichmentPhase
from profile_enrichment.services.persistence import PersistenceSink
from profile_enrichment.streaming.relay import StreamRelay

PROFILE_FRAME = (
    'event: phase\ndata: {"phase":"profile","progress":33,'
    '"data":{"followers":1200,"bio":"x","profilePicture":null}}\n\n'
)
DONE_FRAME = "event: done\ndata: {}\n\n"


class NullSink(PersistenceSink):
    async def apply_phase(
        self, owner_id: str, phase: EnrichmentPhase, payload: dict[str, Any]
    ) -> None:
        return None


def create_test_app(handler: Any) -> tuple[FastAPI, list[httpx.Request]]:
    """Minimal app whose relay talks to a mocked upstream."""
    seen: list[httpx.Request] = []

    def recording_handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return handler(request)

    def override_get_stream_relay() -> StreamRelay:
        client = httpx.AsyncClient(transport=httpx.MockTransport(recording_handler))
        config = RelayConfig(backend_url="http://backend.test", timeout_seconds=5.0)
        return StreamRelay(config, NullSink(), client=client)

    app = FastAPI()
    app.include_router(enrichment.router, prefix="/api/v1")
    app.dependency_overrides[get_stream_relay] = override_get_stream_relay
    return app, seen


def _stream_ok(request: httpx.Request) -> httpx.Response:
    return httpx.Response(
        200,
        headers={"content-type": "text/event-stream"},
        content=(PROFILE_FRAME + DONE_FRAME).encode(),
    )


class TestEnrichStream:
    def test_relays_upstream_frames(self) -> None:
        app, seen = create_test_app(_stream_ok)
        client = TestClient(app)

        response = client.get(
            "/api/v1/instagram/enrich-stream", params={"username": "jane", "userId": "user-1"}
        )

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        assert response.headers["cache-control"] == "no-cache"
        assert response.headers["x-accel-buffering"] == "no"
        assert response.text == PROFILE_FRAME + DONE_FRAME
        assert len(seen) == 1
        assert seen[0].url.path == "/profile/jane/enrich-stream"

    @pytest.mark.parametrize(
        "params",
        [{}, {"username": "jane"}, {"userId": "user-1"}, {"username": "", "userId": "user-1"}],
    )
    def test_missing_parameters_returns_400(self, params: dict[str, str]) -> None:
        app, seen = create_test_app(_stream_ok)
        client = TestClient(app)

        response = client.get("/api/v1/instagram/enrich-stream", params=params)

        assert response.status_code == 400
        assert response.json() == {"error": "username and userId required"}
        assert seen == []

    def test_upstream_unreachable_returns_502(self) -> None:
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("Connection refused", request=request)

        app, _ = create_test_app(refuse)
        client = TestClient(app)

        response = client.get(
            "/api/v1/instagram/enrich-stream", params={"username": "jane", "userId": "user-1"}
        )

        assert response.status_code == 502
        assert response.json() == {"error": "Failed to connect to enrichment service"}

    def test_upstream_error_status_returns_502(self) -> None:
        app, _ = create_test_app(lambda request: httpx.Response(404, text="not found"))
        client = TestClient(app)

        response = client.get(
            "/api/v1/instagram/enrich-stream", params={"username": "ghost", "userId": "user-1"}
        )

        assert response.status_code == 502
        assert response.json() == {"error": "Backend enrichment failed"}
