"""
Matching engine: the consumption loop of the alert pipeline.

A single cooperative loop drains the price event queue one event at a time,
matches each event against every user's preferences and hands every match to
the delivery gateway. Cancellation is signalled through an asyncio.Event and
is honoured between events, never in the middle of one.
"""

import asyncio
import logging
import time
from enum import Enum
from typing import Optional

from ...core.config import settings
from ...core.logging_config import MetricsCollector, set_correlation_id
from ...shared.exceptions import MalformedEventError, TransientTransportError
from ...shared.interfaces import DeliveryGateway, PreferenceStore, PriceEventQueue
from ..price_events.models import PriceEvent
from .matching import find_matches, format_alert

logger = logging.getLogger(__name__)


class EngineState(Enum):
    """Matching engine lifecycle states"""
    IDLE = "idle"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"


class MatchingEngine:
    """Consumes price events and delivers alerts for matching preferences"""

    def __init__(
        self,
        queue: PriceEventQueue,
        store: PreferenceStore,
        gateway: DeliveryGateway,
        poll_interval: Optional[float] = None,
        metrics: Optional[MetricsCollector] = None
    ):
        self.queue = queue
        self.store = store
        self.gateway = gateway
        self.poll_interval = poll_interval if poll_interval is not None else settings.poll_interval_seconds
        self.metrics = metrics or MetricsCollector()
        self._state = EngineState.IDLE
        self._cancel_event: Optional[asyncio.Event] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def state(self) -> EngineState:
        # Stopping starts as soon as cancellation is signalled, mid-event included
        if self._state is EngineState.RUNNING and self._cancel_event is not None and self._cancel_event.is_set():
            return EngineState.STOPPING
        return self._state

    async def run(self, cancel_event: asyncio.Event) -> None:
        """Poll until cancel_event is set, then finish the event in hand and stop"""
        if self._state not in (EngineState.IDLE, EngineState.STOPPED):
            raise RuntimeError(f"Engine cannot start from state {self._state.value}")

        self._cancel_event = cancel_event
        self._state = EngineState.RUNNING
        logger.info("Matching engine started", extra={"poll_interval": self.poll_interval})

        try:
            while not cancel_event.is_set():
                try:
                    event = await self.queue.try_consume(cancel_event)
                except MalformedEventError as e:
                    self.metrics.increment('events_malformed')
                    logger.warning(f"Skipped malformed price event: {e}", extra={"validation_errors": len(e.validation_errors)})
                    continue
                except TransientTransportError as e:
                    self.metrics.increment('poll_errors')
                    logger.warning(f"Queue poll failed: {e}")
                    await self._idle(cancel_event)
                    continue
                except Exception:
                    self.metrics.increment('poll_errors')
                    logger.exception("Unexpected error while polling the queue")
                    await self._idle(cancel_event)
                    continue

                if event is None:
                    await self._idle(cancel_event)
                    continue

                await self.process_event(event)

            self._state = EngineState.STOPPING
            logger.info("Matching engine stopping")
        finally:
            self._state = EngineState.STOPPED
            logger.info("Matching engine stopped")

    def start(self, cancel_event: Optional[asyncio.Event] = None) -> asyncio.Task:
        """Run the loop as a background task"""
        if self._task is not None and not self._task.done():
            raise RuntimeError("Matching engine is already running")
        self._cancel_event = cancel_event or asyncio.Event()
        self._task = asyncio.create_task(self.run(self._cancel_event), name="matching-engine")
        return self._task

    async def stop(self) -> None:
        """Signal cancellation and wait for the loop to finish its current event"""
        if self._cancel_event is not None:
            self._cancel_event.set()
        if self._state is EngineState.RUNNING:
            self._state = EngineState.STOPPING
        if self._task is not None:
            await self._task
            self._task = None

    async def process_event(self, event: PriceEvent) -> int:
        """
        Match one event against the full user population.

        Returns the number of alerts handed to the gateway successfully.
        A store failure fails this event only; a gateway failure skips only
        the affected pair.
        """
        start_time = time.time()
        set_correlation_id(event.flight_id)
        self.metrics.increment('events_consumed')

        try:
            try:
                users = await self.store.list_users()
            except Exception as e:
                self.metrics.increment('events_failed')
                logger.error(
                    f"Could not load users for price event: {e}",
                    extra={"flight_id": event.flight_id, "destination": event.destination},
                    exc_info=not isinstance(e, TransientTransportError)
                )
                return 0

            delivered = 0
            for user, preference in find_matches(users, event):
                self.metrics.increment('alerts_matched')
                message = format_alert(user, event)
                try:
                    await self.gateway.send_alert(message)
                except Exception as e:
                    self.metrics.increment('alerts_failed')
                    logger.error(
                        f"Alert delivery failed: {e}",
                        extra={"user_id": user.id, "preference_id": preference.preference_id}
                    )
                    continue
                self.metrics.increment('alerts_delivered')
                delivered += 1

            logger.info(
                "Processed price event",
                extra={
                    "flight_id": event.flight_id,
                    "destination": event.destination,
                    "alerts_delivered": delivered,
                    "duration_ms": round((time.time() - start_time) * 1000, 2),
                }
            )
            return delivered
        finally:
            set_correlation_id(None)

    async def _idle(self, cancel_event: asyncio.Event) -> None:
        """Sleep for the poll interval, waking early on cancellation"""
        try:
            await asyncio.wait_for(cancel_event.wait(), timeout=self.poll_interval)
        except asyncio.TimeoutError:
            pass
