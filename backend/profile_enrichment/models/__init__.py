"""Models package for the enrichment relay."""

from profile_enrichment.models.enrichment import (
    PHASE_PAYLOAD_MODELS,
    AiData,
    EnrichmentPhase,
    MetricsData,
    PhaseErrorEvent,
    PhaseEvent,
    PhaseNotification,
    PostTypeMix,
    ProfileData,
    SubscriptionState,
    SubscriptionStatus,
)

__all__ = [
    "PHASE_PAYLOAD_MODELS",
    "AiData",
    "EnrichmentPhase",
    "MetricsData",
    "PhaseErrorEvent",
    "PhaseEvent",
    "PhaseNotification",
    "PostTypeMix",
    "ProfileData",
    "SubscriptionState",
    "SubscriptionStatus",
]
