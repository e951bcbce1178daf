"""Client-side subscription to the enrichment relay.

``EnrichmentSubscription`` drives one session through
idle -> connecting -> streaming -> done, reconnecting after transport drops
with exponential backoff until the retry budget runs out (-> error).

In-stream ``error`` frames are notifications only: they are recorded per
phase and reported to ``on_notification`` but never change the session
status or consume retries.
"""

import asyncio
import contextlib
import logging
from collections.abc import Callable
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from profile_enrichment.client.transport import EventStreamTransport
from profile_enrichment.core.resilience import reconnect_delay
from profile_enrichment.models.enrichment import (
    PHASE_PAYLOAD_MODELS,
    AiData,
    EnrichmentPhase,
    MetricsData,
    PhaseErrorEvent,
    PhaseEvent,
    PhaseNotification,
    ProfileData,
    SubscriptionState,
    SubscriptionStatus,
)
from profile_enrichment.streaming.sse import DONE_EVENT, ERROR_EVENT, PHASE_EVENT, SSEFrame

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 3
CONNECTION_LOST_MESSAGE = "Connection lost. Please try again."

StateListener = Callable[[SubscriptionState], None]
NotificationListener = Callable[[PhaseNotification], None]


def format_count(n: int) -> str:
    """Compact count for notifications: 1234 -> "1.2K", 2500000 -> "2.5M"."""
    if n >= 1_000_000:
        return f"{n / 1_000_000:.1f}M"
    if n >= 1_000:
        return f"{n / 1_000:.1f}K"
    return str(n)


def describe_phase(phase: EnrichmentPhase, payload: Any) -> PhaseNotification:
    """Build the success notice shown when a phase arrives."""
    if isinstance(payload, ProfileData):
        return PhaseNotification(
            phase=phase.value,
            level="success",
            title="Profile loaded",
            description=f"{format_count(payload.followers or 0)} followers",
        )
    if isinstance(payload, MetricsData):
        return PhaseNotification(
            phase=phase.value,
            level="success",
            title="Content analyzed",
            description=f"{payload.posts_analyzed or 0} posts analyzed",
        )
    if isinstance(payload, AiData):
        niche = payload.content_themes[0] if payload.content_themes else "your niche"
        return PhaseNotification(
            phase=phase.value,
            level="success",
            title="AI analysis complete",
            description=f"Detected: {niche}",
        )
    raise TypeError(f"Unexpected payload for phase {phase.value}: {type(payload).__name__}")


class EnrichmentSubscription:
    """Manages one enrichment stream subscription and its observable state.

    Args:
        transport: Source of relay frames.
        max_retries: Reconnect attempts allowed after consecutive drops.
        delay_fn: ``attempt -> seconds`` backoff schedule.
        on_change: Called with a state snapshot after every change.
        on_notification: Called with per-phase success/error notices.
    """

    def __init__(
        self,
        transport: EventStreamTransport,
        *,
        max_retries: int = DEFAULT_MAX_RETRIES,
        delay_fn: Callable[[int], float] = reconnect_delay,
        on_change: StateListener | None = None,
        on_notification: NotificationListener | None = None,
    ) -> None:
        self._transport = transport
        self._max_retries = max_retries
        self._delay_fn = delay_fn
        self._on_change = on_change
        self._on_notification = on_notification
        self._state = SubscriptionState()
        self._target: tuple[str, str] | None = None
        self._task: asyncio.Task[None] | None = None

    # -- Observable state -----------------------------------------------------

    @property
    def state(self) -> SubscriptionState:
        """Snapshot of the current session state."""
        return self._state.model_copy(deep=True)

    @property
    def status(self) -> SubscriptionStatus:
        return self._state.status

    @property
    def progress(self) -> int:
        return self._state.progress

    @property
    def retry_count(self) -> int:
        return self._state.retry_count

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def _update(self, **changes: Any) -> None:
        self._state = self._state.model_copy(update=changes)
        if self._on_change is not None:
            try:
                self._on_change(self.state)
            except Exception:
                logger.exception("Subscription state listener failed")

    def _notify(self, notification: PhaseNotification) -> None:
        if self._on_notification is not None:
            try:
                self._on_notification(notification)
            except Exception:
                logger.exception("Subscription notification listener failed")

    # -- Lifecycle -------------------------------------------------------------

    async def start(self, subject: str | None, owner_id: str | None) -> None:
        """Begin streaming for ``subject``/``owner_id``.

        Stays idle until both are available. Any session already running is
        torn down first.
        """
        await self._teardown()
        if not subject or not owner_id:
            logger.debug("Subscription waiting for subject and owner")
            self._target = None
            if self._state.status != SubscriptionStatus.IDLE:
                self._update(status=SubscriptionStatus.IDLE, error=None)
            return
        self._target = (subject, owner_id)
        self._update(retry_count=0)
        self._launch()

    async def retry(self) -> None:
        """Tear down the current session and restart it from idle."""
        await self._teardown()
        if self._target is None:
            return
        self._update(
            status=SubscriptionStatus.IDLE,
            progress=0,
            retry_count=0,
            error=None,
            profile=None,
            metrics=None,
            ai=None,
            phase_errors={},
        )
        self._launch()

    async def close(self) -> None:
        """Cancel the open transport and any scheduled reconnect."""
        await self._teardown()

    async def wait(self) -> SubscriptionState:
        """Wait for the current session to finish (done, error, or cancelled)."""
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)
        return self.state

    def _launch(self) -> None:
        assert self._target is not None
        subject, owner_id = self._target
        self._task = asyncio.create_task(
            self._run(subject, owner_id), name=f"enrichment-subscription-{subject}"
        )

    async def _teardown(self) -> None:
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

    # -- Session loop ----------------------------------------------------------

    async def _run(self, subject: str, owner_id: str) -> None:
        while True:
            self._update(status=SubscriptionStatus.CONNECTING, error=None)
            try:
                if await self._consume(subject, owner_id):
                    return
                logger.warning("Enrichment stream for @%s closed before completion", subject)
            except Exception as e:
                logger.warning("Enrichment stream for @%s dropped: %s", subject, e)

            attempt = self._state.retry_count
            if attempt >= self._max_retries:
                logger.error(
                    "Enrichment stream for @%s failed after %d retries", subject, attempt
                )
                self._update(status=SubscriptionStatus.ERROR, error=CONNECTION_LOST_MESSAGE)
                return

            delay = self._delay_fn(attempt)
            self._update(status=SubscriptionStatus.CONNECTING, retry_count=attempt + 1)
            logger.info(
                "Retry %d/%d for @%s in %.1fs", attempt + 1, self._max_retries, subject, delay
            )
            await asyncio.sleep(delay)

    async def _consume(self, subject: str, owner_id: str) -> bool:
        """Read one connection's frames. True when the session completed."""
        async with contextlib.aclosing(self._transport.stream(subject, owner_id)) as frames:
            async for frame in frames:
                if frame.event == PHASE_EVENT:
                    self._handle_phase(frame)
                elif frame.event == ERROR_EVENT:
                    self._handle_error_frame(frame)
                elif frame.event == DONE_EVENT:
                    logger.info("Enrichment stream for @%s completed", subject)
                    self._update(status=SubscriptionStatus.DONE)
                    return True
        return False

    def _handle_phase(self, frame: SSEFrame) -> None:
        try:
            event = PhaseEvent.model_validate_json(frame.data)
        except PydanticValidationError as e:
            logger.error("Failed to parse phase event: %s", e)
            return

        # a decodable envelope is enough to count the connection as healthy
        changes: dict[str, Any] = {
            "status": SubscriptionStatus.STREAMING,
            "progress": event.progress,
            "retry_count": 0,
            "error": None,
        }
        try:
            payload = PHASE_PAYLOAD_MODELS[event.phase].model_validate(event.data)
        except PydanticValidationError as e:
            logger.warning("Keeping previous %s data, payload rejected: %s", event.phase.value, e)
            payload = None
        else:
            changes[event.phase.value] = payload

        self._update(**changes)
        if payload is not None:
            self._notify(describe_phase(event.phase, payload))

    def _handle_error_frame(self, frame: SSEFrame) -> None:
        try:
            event = PhaseErrorEvent.model_validate_json(frame.data)
        except PydanticValidationError:
            logger.debug("Ignoring unparseable error frame: %s", frame.data)
            return

        logger.warning("Enrichment phase %s failed: %s", event.phase, event.message)
        self._update(phase_errors={**self._state.phase_errors, event.phase: event.message})
        self._notify(
            PhaseNotification(
                phase=event.phase,
                level="error",
                title=f"{event.phase} failed",
                description=event.message,
            )
        )
