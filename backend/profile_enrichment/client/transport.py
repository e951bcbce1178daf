"""Transports that deliver relay frames to an ``EnrichmentSubscription``.

The subscription only needs "open a one-way stream of frames for
(subject, owner), and fail loudly when the connection breaks", so the
browser-style GET event stream sits behind ``EventStreamTransport`` and can
be swapped for long-polling or gRPC streaming.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

import httpx

from profile_enrichment.streaming.sse import SSEFrame, SSEParser

logger = logging.getLogger(__name__)

DEFAULT_STREAM_PATH = "/api/v1/instagram/enrich-stream"


class TransportError(Exception):
    """Raised when the stream cannot be opened or breaks mid-flight."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class EventStreamTransport(ABC):
    """One-way frame stream for a subject/owner pair."""

    @abstractmethod
    def stream(self, subject: str, owner_id: str) -> AsyncIterator[SSEFrame]:
        """Open the stream and yield frames as they arrive.

        Implementations are async generators. Ending without error means
        the server closed the stream; the caller decides whether that was
        a completed session or a drop.

        Raises:
            TransportError: On connection failure or a non-success response.
        """


class HttpxEventStreamTransport(EventStreamTransport):
    """GET-only ``text/event-stream`` transport built on ``httpx``.

    Mirrors what a browser ``EventSource`` can do: query parameters only,
    no custom headers, no request body.
    """

    def __init__(
        self,
        base_url: str,
        path: str = DEFAULT_STREAM_PATH,
        client: httpx.AsyncClient | None = None,
        connect_timeout: float = 10.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.path = path
        self._client = client
        self._connect_timeout = connect_timeout

    @property
    def url(self) -> str:
        return f"{self.base_url}{self.path}"

    async def stream(self, subject: str, owner_id: str) -> AsyncIterator[SSEFrame]:
        owns_client = self._client is None
        # No read timeout: the relay bounds the stream, we only detect closure
        client = self._client or httpx.AsyncClient(
            timeout=httpx.Timeout(None, connect=self._connect_timeout)
        )
        try:
            async with client.stream(
                "GET",
                self.url,
                params={"username": subject, "userId": owner_id},
            ) as response:
                if not response.is_success:
                    raise TransportError(
                        f"Enrichment stream rejected with status {response.status_code}",
                        status_code=response.status_code,
                    )
                parser = SSEParser()
                async for chunk in response.aiter_bytes():
                    for frame in parser.feed(chunk):
                        yield frame
        except httpx.HTTPError as e:
            raise TransportError(f"Enrichment stream connection failed: {e}") from e
        finally:
            if owns_client:
                await client.aclose()
