from __future__ import annotations

import logging

from celery import shared_task

from ...core.celery_config import PUSH_ALERT_TASK
from ...shared.exceptions import TransientTransportError
from .delivery import PushNotificationService


logger = logging.getLogger(__name__)

push_service = PushNotificationService()


@shared_task(
    bind=True,
    name=PUSH_ALERT_TASK,
    autoretry_for=(TransientTransportError, ConnectionError),
    retry_backoff=True,
    max_retries=5,
)
def send_push_alert(self, message: str) -> bool:
    """Deliver one formatted alert to the device push endpoint."""
    try:
        push_service.send_push_alert(message)
        return True
    except ValueError as e:
        logger.warning("Dropping undeliverable push alert: %s", e)
        return False
