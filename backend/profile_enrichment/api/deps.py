"""FastAPI dependencies for relay construction."""

import logging
from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from profile_enrichment.core.config import RelayConfig, get_settings
from profile_enrichment.services.persistence import PersistenceSink, SupabaseProfileSink
from profile_enrichment.streaming.relay import StreamRelay

logger = logging.getLogger(__name__)


@lru_cache
def get_persistence_sink() -> PersistenceSink:
    """Shared sink writing enrichment phases to Supabase."""
    return SupabaseProfileSink()


def get_relay_config() -> RelayConfig:
    """Relay configuration derived from application settings."""
    return RelayConfig.from_settings(get_settings())


def get_stream_relay(
    config: Annotated[RelayConfig, Depends(get_relay_config)],
    sink: Annotated[PersistenceSink, Depends(get_persistence_sink)],
) -> StreamRelay:
    """Build a relay for one request.

    Each relay opens its own upstream client, so concurrent requests share
    no connection state.
    """
    return StreamRelay(config, sink)


Relay = Annotated[StreamRelay, Depends(get_stream_relay)]
