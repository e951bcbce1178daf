"""Service layer for the enrichment relay."""

from profile_enrichment.services.persistence import (
    PHASE_FIELD_GROUPS,
    PersistenceSink,
    SupabaseProfileSink,
    build_phase_update,
)

__all__ = ["PHASE_FIELD_GROUPS", "PersistenceSink", "SupabaseProfileSink", "build_phase_update"]
