"""
Pipeline lifecycle management.

PipelineRuntime acquires the MongoDB and Redis handles, assembles the queue,
store, gateway and matching engine, runs the engine in the background and
releases everything in reverse order on exit.
"""

import asyncio
import logging
import time
from typing import Any, Dict, Optional

from .config import Settings, settings as default_settings
from .database import DatabaseManager
from .logging_config import MetricsCollector
from .redis_client import RedisManager
from ..domains.alerts.delivery import create_gateway
from ..domains.alerts.engine import MatchingEngine
from ..domains.price_events.queue import RedisPriceEventQueue
from ..domains.users.repository import MongoPreferenceStore
from ..shared.interfaces import DeliveryGateway

logger = logging.getLogger(__name__)


class PipelineRuntime:
    """Owns every connection handle and the engine for one pipeline run"""

    def __init__(
        self,
        config: Optional[Settings] = None,
        gateway: Optional[DeliveryGateway] = None,
        metrics: Optional[MetricsCollector] = None
    ):
        self.config = config or default_settings
        self.metrics = metrics or MetricsCollector()
        self.db_manager = DatabaseManager(self.config)
        self.redis_manager = RedisManager(self.config)
        self._gateway = gateway
        self.queue: Optional[RedisPriceEventQueue] = None
        self.store: Optional[MongoPreferenceStore] = None
        self.gateway: Optional[DeliveryGateway] = None
        self.engine: Optional[MatchingEngine] = None
        self.cancel_event = asyncio.Event()
        self._startup_time: Optional[float] = None

    async def startup(self) -> None:
        """Connect transports and start the engine"""
        logger.info("Starting alert pipeline")
        # __aexit__ does not run when startup raises, so release here
        try:
            database = await self.db_manager.connect()
            redis_client = await self.redis_manager.connect()

            self.queue = RedisPriceEventQueue(
                redis_client,
                queue_name=self.config.price_events_queue,
                dead_letter_queue=self.config.dead_letter_queue
            )
            self.store = MongoPreferenceStore(database, self.config.users_collection)
            await self.store.ensure_indexes()
            self.gateway = self._gateway or create_gateway(self.config.delivery_backend)
            self.engine = MatchingEngine(
                self.queue,
                self.store,
                self.gateway,
                poll_interval=self.config.poll_interval_seconds,
                metrics=self.metrics
            )
        except Exception as e:
            logger.error(f"Alert pipeline startup failed: {e}")
            await self._release_connections()
            raise

        self.engine.start(self.cancel_event)
        self._startup_time = time.time()
        logger.info("Alert pipeline started")

    async def shutdown(self) -> None:
        """Stop the engine after its current event and close all handles"""
        logger.info("Stopping alert pipeline")
        if self.engine is not None:
            try:
                await self.engine.stop()
            except Exception as e:
                logger.error(f"Matching engine stopped with an error: {e}")
        await self._release_connections()
        logger.info("Alert pipeline stopped")

    async def _release_connections(self) -> None:
        await self.redis_manager.close()
        await self.db_manager.close()

    async def readiness(self) -> Dict[str, Any]:
        mongodb = await self.db_manager.is_healthy(force=True)
        redis = await self.redis_manager.is_healthy()
        return {
            "ready": mongodb and redis,
            "mongodb": "connected" if mongodb else "disconnected",
            "redis": "connected" if redis else "disconnected",
        }

    def get_status(self) -> Dict[str, Any]:
        return {
            "engine_state": self.engine.state.value if self.engine else "idle",
            "uptime_seconds": time.time() - self._startup_time if self._startup_time else 0,
            "shutdown_requested": self.cancel_event.is_set(),
            "metrics": self.metrics.get_metrics(),
        }

    async def __aenter__(self) -> "PipelineRuntime":
        await self.startup()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.shutdown()
