"""Client-side consumption of the enrichment relay stream."""

from profile_enrichment.client.subscription import (
    CONNECTION_LOST_MESSAGE,
    DEFAULT_MAX_RETRIES,
    EnrichmentSubscription,
    describe_phase,
    format_count,
)
from profile_enrichment.client.transport import (
    DEFAULT_STREAM_PATH,
    EventStreamTransport,
    HttpxEventStreamTransport,
    TransportError,
)

__all__ = [
    "CONNECTION_LOST_MESSAGE",
    "DEFAULT_MAX_RETRIES",
    "DEFAULT_STREAM_PATH",
    "EnrichmentSubscription",
    "EventStreamTransport",
    "HttpxEventStreamTransport",
    "TransportError",
    "describe_phase",
    "format_count",
]
