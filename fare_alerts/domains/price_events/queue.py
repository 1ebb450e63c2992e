"""
Redis-backed durable queue of price events.

Each queue is a Redis list: producers RPUSH, the consumer LPOPs. A pop both
retrieves and acknowledges the event.
"""

import asyncio
import logging
from typing import Optional

import redis.asyncio as aioredis
from pydantic import ValidationError
from redis.exceptions import ConnectionError as RedisConnectionError, RedisError, TimeoutError as RedisTimeoutError

from ...core.config import settings
from ...shared.exceptions import MalformedEventError, TransientTransportError
from ...shared.interfaces import PriceEventQueue
from .models import PriceEvent

logger = logging.getLogger(__name__)


class RedisPriceEventQueue(PriceEventQueue):
    """Price event queue on a single named Redis list"""

    def __init__(
        self,
        client: aioredis.Redis,
        queue_name: Optional[str] = None,
        dead_letter_queue: Optional[str] = None
    ):
        self.client = client
        self.queue_name = queue_name or settings.price_events_queue
        self.dead_letter_queue = dead_letter_queue or f"{self.queue_name}{settings.dead_letter_suffix}"

    async def publish(self, event: PriceEvent) -> None:
        payload = event.to_payload()
        try:
            depth = await self.client.rpush(self.queue_name, payload)
        except (RedisConnectionError, RedisTimeoutError) as e:
            logger.error(f"Failed to publish event {event.flight_id}: {e}")
            raise TransientTransportError(f"Publish to '{self.queue_name}' failed: {e}", transport="redis") from e

        logger.debug("Published price event", extra={"flight_id": event.flight_id, "queue_depth": depth})

    async def try_consume(self, cancel_event: asyncio.Event) -> Optional[PriceEvent]:
        if cancel_event.is_set():
            return None

        try:
            payload = await self.client.lpop(self.queue_name)
        except (RedisConnectionError, RedisTimeoutError) as e:
            raise TransientTransportError(f"Consume from '{self.queue_name}' failed: {e}", transport="redis") from e
        except UnicodeDecodeError as e:
            # Client decodes responses itself; the element is already popped
            logger.error(f"Popped a non UTF-8 payload that could not be kept: {e}")
            raise MalformedEventError(f"Non UTF-8 payload on '{self.queue_name}'") from e

        if payload is None:
            return None

        if isinstance(payload, bytes):
            try:
                payload = payload.decode("utf-8")
            except UnicodeDecodeError as e:
                await self._dead_letter(payload)
                raise MalformedEventError(
                    f"Non UTF-8 payload on '{self.queue_name}'",
                    raw_payload=repr(payload)
                ) from e

        try:
            return PriceEvent.from_payload(payload)
        except ValidationError as e:
            await self._dead_letter(payload)
            raise MalformedEventError(
                f"Undecodable payload on '{self.queue_name}'",
                raw_payload=payload if isinstance(payload, str) else repr(payload),
                validation_errors=e.errors(include_url=False)
            ) from e

    async def queue_depth(self, queue_name: Optional[str] = None) -> int:
        try:
            return int(await self.client.llen(queue_name or self.queue_name))
        except (RedisConnectionError, RedisTimeoutError) as e:
            raise TransientTransportError(f"Depth query failed: {e}", transport="redis") from e

    async def _dead_letter(self, payload) -> None:
        try:
            await self.client.rpush(self.dead_letter_queue, payload)
            logger.warning("Moved malformed payload to dead-letter queue", extra={"dead_letter_queue": self.dead_letter_queue})
        except RedisError as e:
            logger.error(f"Could not dead-letter malformed payload: {e}")
