"""Relay between the upstream enrichment stream and one downstream client.

``StreamRelay.connect`` opens the upstream request and fails fast (before any
downstream stream exists) on missing parameters, connection errors, or a
non-success status. The returned ``RelayStream`` is the response body: it
parses upstream bytes into frames, yields each frame as soon as it is
complete, and only then hands ``phase`` frames to the persistence sink as
background tasks. Storage latency or failure never delays or breaks delivery.
"""

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from urllib.parse import quote

import httpx
from pydantic import ValidationError as PydanticValidationError

from profile_enrichment.core.config import RelayConfig
from profile_enrichment.core.exceptions import UpstreamError, ValidationError, sanitize_error
from profile_enrichment.core.resilience import (
    CircuitBreakerOpen,
    enrichment_backend_circuit_breaker,
)
from profile_enrichment.models.enrichment import PhaseEvent
from profile_enrichment.services.persistence import PersistenceSink
from profile_enrichment.streaming.sse import (
    DONE_EVENT,
    ERROR_EVENT,
    PHASE_EVENT,
    SSEFrame,
    SSEParser,
    encode_frame,
)

logger = logging.getLogger(__name__)

# Strong references to in-flight persistence writes; asyncio keeps only weak ones
_inflight_writes: set[asyncio.Task[None]] = set()


class StreamRelay:
    """Opens upstream enrichment streams and wraps them as ``RelayStream``s.

    Args:
        config: Upstream location, credentials and time budget.
        sink: Where phase results are persisted.
        client: Optional shared ``httpx.AsyncClient``. When omitted, each
            stream gets its own client, closed together with the stream.
    """

    def __init__(
        self,
        config: RelayConfig,
        sink: PersistenceSink,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config
        self._sink = sink
        self._client = client

    def upstream_url(self, subject: str) -> str:
        """URL of the upstream enrichment stream for ``subject``."""
        return f"{self._config.backend_url}/profile/{quote(subject, safe='')}/enrich-stream"

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "text/event-stream"}
        if self._config.api_key:
            headers["x-api-key"] = self._config.api_key
        return headers

    def _new_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=httpx.Timeout(
                self._config.timeout_seconds,
                connect=self._config.connect_timeout_seconds,
            )
        )

    async def connect(self, subject: str | None, owner_id: str | None) -> "RelayStream":
        """Open the upstream stream for ``subject`` on behalf of ``owner_id``.

        Args:
            subject: Handle of the profile being enriched.
            owner_id: Identity whose stored profile receives the results.

        Returns:
            An open ``RelayStream`` ready to be iterated.

        Raises:
            ValidationError: If either parameter is missing. No upstream
                request is made.
            UpstreamError: If the upstream cannot be reached, times out
                before answering, or answers with a non-success status.
        """
        if not subject or not owner_id:
            raise ValidationError("username and userId required")

        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._config.timeout_seconds

        try:
            enrichment_backend_circuit_breaker.check()
        except CircuitBreakerOpen as e:
            logger.warning("Enrichment backend circuit open, refusing stream for @%s", subject)
            raise UpstreamError("Failed to connect to enrichment service") from e

        owns_client = self._client is None
        client = self._client or self._new_client()
        request = client.build_request("GET", self.upstream_url(subject), headers=self._headers())

        try:
            response = await asyncio.wait_for(
                client.send(request, stream=True),
                timeout=self._config.timeout_seconds,
            )
        except (httpx.HTTPError, TimeoutError) as e:
            enrichment_backend_circuit_breaker.record_failure()
            logger.error(
                "Error connecting to enrichment backend: %s",
                e,
                extra={"subject": subject, "user_id": owner_id},
            )
            if owns_client:
                await client.aclose()
            raise UpstreamError("Failed to connect to enrichment service") from e

        if not response.is_success:
            # 5xx counts against the backend; 4xx is about this request
            if response.status_code >= 500:
                enrichment_backend_circuit_breaker.record_failure()
            logger.error(
                "Enrichment backend returned status=%s for @%s",
                response.status_code,
                subject,
                extra={"user_id": owner_id},
            )
            await response.aclose()
            if owns_client:
                await client.aclose()
            raise UpstreamError("Backend enrichment failed", upstream_status=response.status_code)

        enrichment_backend_circuit_breaker.record_success()
        logger.info("Enrichment stream opened for @%s", subject, extra={"user_id": owner_id})
        return RelayStream(
            response,
            subject=subject,
            owner_id=owner_id,
            sink=self._sink,
            deadline=deadline,
            client=client if owns_client else None,
        )


class RelayStream:
    """One upstream response re-emitted as a downstream event-stream body.

    Iterate it exactly once. Closing is idempotent, so the response body and
    a post-response cleanup hook can both call ``aclose``.
    """

    def __init__(
        self,
        response: httpx.Response,
        *,
        subject: str,
        owner_id: str,
        sink: PersistenceSink,
        deadline: float,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.subject = subject
        self.owner_id = owner_id
        self.frames_forwarded = 0
        self._response = response
        self._sink = sink
        self._deadline = deadline
        self._client = client
        self._parser = SSEParser()
        self._pending: set[asyncio.Task[None]] = set()
        self._undispatched: PhaseEvent | None = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self._relay()

    async def _relay(self) -> AsyncIterator[bytes]:
        loop = asyncio.get_running_loop()
        chunks = self._response.aiter_bytes()
        try:
            while True:
                remaining = self._deadline - loop.time()
                if remaining <= 0:
                    raise TimeoutError("enrichment stream exceeded its time budget")
                try:
                    chunk = await asyncio.wait_for(anext(chunks), timeout=remaining)
                except StopAsyncIteration:
                    logger.info(
                        "Upstream closed enrichment stream for @%s after %d frames",
                        self.subject,
                        self.frames_forwarded,
                    )
                    return

                for frame in self._parser.feed(chunk):
                    if frame.event == PHASE_EVENT:
                        self._undispatched = self._decode_phase(frame)
                    self.frames_forwarded += 1
                    # a consumer may stop pulling here; finally still persists
                    yield encode_frame(frame)
                    self._dispatch_forwarded()
                    if frame.event == DONE_EVENT:
                        logger.info("Enrichment complete for @%s", self.subject)
                        return
        except TimeoutError as e:
            logger.warning("Enrichment stream timed out for @%s", self.subject)
            yield self._error_frame(e)
        except httpx.HTTPError as e:
            logger.error("Enrichment stream error for @%s: %s", self.subject, e)
            yield self._error_frame(e)
        finally:
            self._dispatch_forwarded()
            await self.aclose()

    def _error_frame(self, error: Exception) -> bytes:
        payload = json.dumps({"phase": "stream", "message": sanitize_error(error)})
        return encode_frame(SSEFrame(event=ERROR_EVENT, data=payload))

    def _decode_phase(self, frame: SSEFrame) -> PhaseEvent | None:
        try:
            return PhaseEvent.model_validate_json(frame.data)
        except PydanticValidationError as e:
            logger.warning(
                "Failed to decode phase frame for @%s: %s",
                self.subject,
                e,
                extra={"user_id": self.owner_id},
            )
            return None

    def _dispatch_forwarded(self) -> None:
        """Start persisting the last forwarded phase, if it has not been yet."""
        event, self._undispatched = self._undispatched, None
        if event is None:
            return
        task = asyncio.create_task(self._persist(event), name=f"persist-{event.phase.value}")
        self._pending.add(task)
        _inflight_writes.add(task)
        task.add_done_callback(self._pending.discard)
        task.add_done_callback(_inflight_writes.discard)

    async def _persist(self, event: PhaseEvent) -> None:
        try:
            await self._sink.apply_phase(self.owner_id, event.phase, event.data)
        except Exception:
            logger.exception(
                "Failed to save %s phase to database",
                event.phase.value,
                extra={"user_id": self.owner_id, "subject": self.subject},
            )

    async def wait_for_pending(self) -> None:
        """Wait until every persistence write dispatched so far has finished."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def aclose(self) -> None:
        """Close the upstream response (and owned client) once."""
        if self._closed:
            return
        self._closed = True
        await self._response.aclose()
        if self._client is not None:
            await self._client.aclose()
        logger.debug("Relay stream for @%s closed", self.subject)
