"""Event-stream parsing and the upstream relay."""

from profile_enrichment.streaming.relay import RelayStream, StreamRelay
from profile_enrichment.streaming.sse import (
    DONE_EVENT,
    ERROR_EVENT,
    PHASE_EVENT,
    SSEFrame,
    SSEParser,
    encode_frame,
)

__all__ = [
    "DONE_EVENT",
    "ERROR_EVENT",
    "PHASE_EVENT",
    "RelayStream",
    "SSEFrame",
    "SSEParser",
    "StreamRelay",
    "encode_frame",
]
