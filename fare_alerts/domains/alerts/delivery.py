"""
Delivery gateways for formatted alerts.

The engine hands every alert string to a DeliveryGateway and does not wait
for device confirmation. Retries and device-token resolution belong to the
gateway side.
"""

import asyncio
import logging
from typing import Optional

from ...core.config import settings
from ...shared.interfaces import DeliveryGateway

logger = logging.getLogger(__name__)


class PushNotificationService:
    """Device push endpoint; records every alert it sends"""

    def send_push_alert(self, message: str) -> None:
        if not message:
            raise ValueError("Push alert message must not be empty")
        logger.info(f"Push alert sent: {message}")


class InlinePushGateway(DeliveryGateway):
    """Sends alerts in-process through the push service"""

    def __init__(self, push_service: Optional[PushNotificationService] = None):
        self.push_service = push_service or PushNotificationService()

    async def send_alert(self, message: str) -> None:
        self.push_service.send_push_alert(message)


class CeleryPushGateway(DeliveryGateway):
    """Enqueues alerts as Celery tasks on the push queue"""

    def __init__(self, task=None, queue: Optional[str] = None):
        if task is None:
            from .tasks import send_push_alert
            task = send_push_alert
        self.task = task
        self.queue = queue or settings.push_alerts_queue

    async def send_alert(self, message: str) -> None:
        # apply_async talks to the broker synchronously
        result = await asyncio.to_thread(self.task.apply_async, args=(message,), queue=self.queue)
        logger.debug("Queued push alert", extra={"task_id": getattr(result, "id", None)})


def create_gateway(backend: Optional[str] = None) -> DeliveryGateway:
    backend = backend or settings.delivery_backend
    if backend == "celery":
        return CeleryPushGateway()
    if backend == "inline":
        return InlinePushGateway()
    raise ValueError(f"Unknown delivery backend: {backend}")
