"""
MongoDB connection management.

Owns one Motor client for the lifetime of the pipeline. Handles are created
and closed explicitly by the runtime rather than shared through a global.
"""

import logging
import time
from typing import Optional, Any, Dict

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from .config import Settings, settings as default_settings
from ..shared.exceptions import TransportInitializationError

logger = logging.getLogger(__name__)


class DatabaseManager:
    """Async MongoDB connection handle with health checks"""

    def __init__(self, config: Optional[Settings] = None):
        self.config = config or default_settings
        self.client: Optional[AsyncIOMotorClient] = None
        self.database: Optional[AsyncIOMotorDatabase] = None
        self._connection_healthy = False
        self._last_health_check = 0.0
        self._health_check_interval = 30  # seconds

    def _get_client_options(self) -> Dict[str, Any]:
        """Connection options for the async client"""
        return {
            # Connection pooling
            "maxPoolSize": 50,
            "minPoolSize": 5,
            "maxIdleTimeMS": 900000,
            "waitQueueTimeoutMS": 5000,

            # Timeout configurations
            "connectTimeoutMS": 5000,
            "socketTimeoutMS": 20000,
            "serverSelectionTimeoutMS": 5000,

            # Reliability options
            "retryWrites": True,
            "retryReads": True,
        }

    async def connect(self) -> AsyncIOMotorDatabase:
        """Create the MongoDB connection and verify it with a ping"""
        try:
            self.client = AsyncIOMotorClient(self.config.mongodb_url, **self._get_client_options())
            self.database = self.client[self.config.database_name]

            await self.client.admin.command("ping")
            self._connection_healthy = True
            self._last_health_check = time.time()

            logger.info("MongoDB connection established", extra={"database": self.config.database_name})
            return self.database

        except PyMongoError as e:
            logger.error(f"MongoDB connection failed: {e}")
            self._connection_healthy = False
            await self.close()
            raise TransportInitializationError(f"MongoDB unavailable: {e}", transport="mongodb") from e

    async def close(self) -> None:
        """Close the MongoDB connection"""
        if self.client is not None:
            self.client.close()
            self.client = None
            self.database = None
            logger.info("MongoDB connection closed")
        self._connection_healthy = False
        self._last_health_check = 0.0

    async def is_healthy(self, force: bool = False) -> bool:
        """Ping MongoDB, caching the result for the health check interval unless forced"""
        if self.client is None:
            self._connection_healthy = False
            return False

        current_time = time.time()
        if not force and (current_time - self._last_health_check) < self._health_check_interval:
            return self._connection_healthy

        try:
            await self.client.admin.command("ping")
            self._connection_healthy = True
        except PyMongoError as e:
            logger.warning(f"Database health check failed: {e}")
            self._connection_healthy = False

        self._last_health_check = current_time
        return self._connection_healthy
