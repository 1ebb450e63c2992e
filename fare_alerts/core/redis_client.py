"""
Redis connection management for the price event queue.

Responses are left as raw bytes; the queue decodes payloads itself so that
undecodable ones can still be dead-lettered verbatim.
"""

import logging
from typing import Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from .config import Settings, settings as default_settings
from ..shared.exceptions import TransportInitializationError

logger = logging.getLogger(__name__)


class RedisManager:
    """Owns one asyncio Redis client for the lifetime of the pipeline"""

    def __init__(self, config: Optional[Settings] = None):
        self.config = config or default_settings
        self.client: Optional[aioredis.Redis] = None

    async def connect(self) -> aioredis.Redis:
        """Create the client and verify it with a ping"""
        try:
            self.client = aioredis.from_url(
                self.config.redis_url,
                decode_responses=False,
                socket_keepalive=True,
                socket_connect_timeout=5,
                retry_on_timeout=True,
                health_check_interval=30,
            )
            await self.client.ping()
            logger.info("Redis connection established")
            return self.client
        except RedisError as e:
            logger.error(f"Redis connection failed: {e}")
            await self.close()
            raise TransportInitializationError(f"Redis unavailable: {e}", transport="redis") from e

    async def close(self) -> None:
        if self.client is not None:
            await self.client.aclose()
            self.client = None
            logger.info("Redis connection closed")

    async def is_healthy(self) -> bool:
        if self.client is None:
            return False
        try:
            return bool(await self.client.ping())
        except RedisError as e:
            logger.warning(f"Redis health check failed: {e}")
            return False
