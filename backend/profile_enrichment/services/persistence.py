"""Phase-scoped persistence of enrichment results.

Each phase owns a disjoint group of ``creator_profile`` columns. Applying a
phase rewrites exactly that group (absent values become NULL) plus
``updated_at``, so phases for the same owner can land in any order without
read-modify-write coordination.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from profile_enrichment.core.exceptions import DatabaseError
from profile_enrichment.core.resilience import CircuitBreakerOpen, supabase_circuit_breaker
from profile_enrichment.db.supabase import SupabaseClient
from profile_enrichment.models.enrichment import EnrichmentPhase

logger = logging.getLogger(__name__)

PROFILE_TABLE = "creator_profile"
OWNER_COLUMN = "user_id"
ENRICHMENT_VERSION = 1


def _passthrough(key: str) -> Callable[[dict[str, Any]], Any]:
    return lambda payload: payload.get(key)


def _decimal(key: str) -> Callable[[dict[str, Any]], Any]:
    # Stored in numeric columns as strings to keep precision
    def convert(payload: dict[str, Any]) -> str | None:
        value = payload.get(key)
        return str(value) if value is not None else None

    return convert


# column -> extractor, per phase
PHASE_FIELD_GROUPS: dict[EnrichmentPhase, dict[str, Callable[[dict[str, Any]], Any]]] = {
    EnrichmentPhase.PROFILE: {
        "followers": _passthrough("followers"),
        "bio": _passthrough("bio"),
        "profile_picture": _passthrough("profilePicture"),
    },
    EnrichmentPhase.METRICS: {
        "engagement_rate": _decimal("engagementRate"),
        "avg_views": _passthrough("avgViews"),
        "avg_likes": _passthrough("avgLikes"),
        "avg_comments": _passthrough("avgComments"),
        "post_frequency": _decimal("postFrequency"),
        "view_to_follower_ratio": _decimal("viewToFollowerRatio"),
        "post_type_mix": _passthrough("postTypeMix"),
        "posts_analyzed": _passthrough("postsAnalyzed"),
    },
    EnrichmentPhase.AI: {
        "content_themes": _passthrough("contentThemes"),
        "sub_niches": _passthrough("subNiches"),
        "primary_language": _passthrough("primaryLanguage"),
        "location_display": _passthrough("locationDisplay"),
        "country_code": _passthrough("countryCode"),
    },
}


def build_phase_update(
    phase: EnrichmentPhase | str,
    payload: dict[str, Any],
    now: datetime | None = None,
) -> dict[str, Any]:
    """Translate one phase payload into the column update for that phase.

    Args:
        phase: Phase that produced the payload.
        payload: Phase-specific data object (camelCase keys). Unknown keys
            are ignored.
        now: Timestamp to stamp; defaults to the current UTC time.

    Returns:
        Column -> value mapping covering only the phase's field group and
        ``updated_at`` (plus the AI bookkeeping columns for ``ai``).

    Raises:
        ValueError: If ``phase`` is not a known enrichment phase.
    """
    phase = EnrichmentPhase(phase)
    stamp = (now or datetime.now(UTC)).isoformat()

    update: dict[str, Any] = {
        column: extract(payload) for column, extract in PHASE_FIELD_GROUPS[phase].items()
    }
    update["updated_at"] = stamp

    if phase == EnrichmentPhase.AI:
        update["enriched_at"] = stamp
        update["enrichment_version"] = ENRICHMENT_VERSION
        themes = payload.get("contentThemes")
        if themes:
            update["niche"] = themes[0]

    return update


class PersistenceSink(ABC):
    """Applies one phase's payload to an owner's durable profile record."""

    @abstractmethod
    async def apply_phase(
        self,
        owner_id: str,
        phase: EnrichmentPhase,
        payload: dict[str, Any],
    ) -> None:
        """Write the phase's field group for ``owner_id``.

        Raises:
            DatabaseError: If the write fails.
        """


class SupabaseProfileSink(PersistenceSink):
    """Upserts phase field groups into ``creator_profile`` keyed by user_id."""

    def __init__(self, client: Any = None) -> None:
        self._client = client

    @property
    def db(self) -> Any:
        """Get Supabase client lazily."""
        if self._client is None:
            self._client = SupabaseClient.get_client()
        return self._client

    def _upsert(self, row: dict[str, Any]) -> None:
        self.db.table(PROFILE_TABLE).upsert(row, on_conflict=OWNER_COLUMN).execute()

    async def apply_phase(
        self,
        owner_id: str,
        phase: EnrichmentPhase,
        payload: dict[str, Any],
    ) -> None:
        phase = EnrichmentPhase(phase)
        update = build_phase_update(phase, payload)
        row = {OWNER_COLUMN: owner_id, **update}
        try:
            supabase_circuit_breaker.check()
            # supabase-py is synchronous; keep it off the event loop
            await asyncio.to_thread(self._upsert, row)
            supabase_circuit_breaker.record_success()
        except CircuitBreakerOpen:
            raise
        except Exception as e:
            supabase_circuit_breaker.record_failure()
            logger.exception(
                "Error saving enrichment phase",
                extra={"user_id": owner_id, "phase": phase.value},
            )
            raise DatabaseError(f"Failed to save {phase.value} phase: {e}") from e

        logger.info(
            "Saved enrichment phase",
            extra={"user_id": owner_id, "phase": phase.value, "columns": len(update)},
        )
