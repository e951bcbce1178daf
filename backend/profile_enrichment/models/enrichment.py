"""Pydantic models for the progressive enrichment stream."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class EnrichmentPhase(str, Enum):
    PROFILE = "profile"
    METRICS = "metrics"
    AI = "ai"


class SubscriptionStatus(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    STREAMING = "streaming"
    DONE = "done"
    ERROR = "error"


class _WireModel(BaseModel):
    """Base for payloads that arrive with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


# ---------------------------------------------------------------------------
# Stream events
# ---------------------------------------------------------------------------


class PhaseEvent(BaseModel):
    """Decoded ``phase`` frame: one enrichment stage and its partial result."""

    phase: EnrichmentPhase
    progress: int = Field(..., ge=0, le=100)
    data: dict[str, Any] = Field(default_factory=dict)


class PhaseErrorEvent(BaseModel):
    """Decoded ``error`` frame sent inside an open stream."""

    phase: str
    message: str


# ---------------------------------------------------------------------------
# Typed phase payloads
# ---------------------------------------------------------------------------


class ProfileData(_WireModel):
    username: str | None = None
    full_name: str | None = None
    bio: str | None = None
    followers: int | None = None
    following: int | None = None
    posts_count: int | None = None
    profile_picture: str | None = None
    is_verified: bool | None = None


class PostTypeMix(_WireModel):
    reels: float | None = None
    images: float | None = None
    carousels: float | None = None


class MetricsData(_WireModel):
    engagement_rate: float | None = None
    avg_views: float | None = None
    avg_likes: float | None = None
    avg_comments: float | None = None
    post_frequency: float | None = None
    post_type_mix: PostTypeMix | None = None
    posts_analyzed: int | None = None
    view_to_follower_ratio: float | None = None
    recent_hashtags: list[str] | None = None


class AiData(_WireModel):
    content_themes: list[str] | None = None
    sub_niches: list[str] | None = None
    primary_language: str | None = None
    location_display: str | None = None
    country_code: str | None = None


PHASE_PAYLOAD_MODELS: dict[EnrichmentPhase, type[_WireModel]] = {
    EnrichmentPhase.PROFILE: ProfileData,
    EnrichmentPhase.METRICS: MetricsData,
    EnrichmentPhase.AI: AiData,
}


# ---------------------------------------------------------------------------
# Client-side session view
# ---------------------------------------------------------------------------


class PhaseNotification(BaseModel):
    """User-facing notice tied to one phase (success or in-stream error)."""

    phase: str
    level: str = Field(..., pattern="^(success|error)$")
    title: str
    description: str = ""


class SubscriptionState(BaseModel):
    """Observable progress of one enrichment subscription."""

    status: SubscriptionStatus = SubscriptionStatus.IDLE
    progress: int = 0
    retry_count: int = 0
    error: str | None = None
    profile: ProfileData | None = None
    metrics: MetricsData | None = None
    ai: AiData | None = None
    phase_errors: dict[str, str] = Field(default_factory=dict)
