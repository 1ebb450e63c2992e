"""
Celery configuration for push alert delivery.

The matching engine hands alerts to the push queue; Celery workers deliver
them and retry transient failures.
"""

import logging
from celery import Celery
from celery.signals import task_failure, task_retry
from .config import settings

logger = logging.getLogger(__name__)

PUSH_ALERT_TASK = "fare_alerts.domains.alerts.tasks.send_push_alert"


class CeleryConfig:
    """Celery configuration class."""

    # Task execution settings
    task_time_limit = 60
    task_soft_time_limit = 45
    task_acks_late = True
    task_reject_on_worker_lost = True

    # Serialization settings
    task_serializer = "json"
    accept_content = ["json"]
    result_serializer = "json"

    # Timezone settings
    timezone = "UTC"
    enable_utc = True

    # Alerts are fire-and-forget
    task_ignore_result = True

    # Worker settings
    worker_prefetch_multiplier = 1
    worker_max_tasks_per_child = 1000
    worker_hijack_root_logger = False
    worker_log_color = False

    # Connection settings
    broker_connection_retry_on_startup = True
    broker_connection_max_retries = 100

    # Task routing
    task_routes = {
        PUSH_ALERT_TASK: {"queue": settings.push_alerts_queue},
    }
    task_default_queue = "default"

    task_annotations = {
        PUSH_ALERT_TASK: {"rate_limit": "600/m"},
    }


def create_celery_app() -> Celery:
    """
    Create and configure the Celery application.

    Returns:
        Configured Celery application instance
    """
    app = Celery(
        "fare_alerts",
        broker=settings.celery_broker_url,
        include=["fare_alerts.domains.alerts.tasks"],
    )
    app.config_from_object(CeleryConfig)
    setup_signal_handlers(app)
    return app


def setup_signal_handlers(app: Celery) -> None:
    """Set up Celery signal handlers for logging."""

    @task_failure.connect(weak=False)
    def task_failure_handler(sender=None, task_id=None, exception=None, **kwds):
        logger.error(f"Task {sender.name} [{task_id}] failed: {exception}")

    @task_retry.connect(weak=False)
    def task_retry_handler(sender=None, request=None, reason=None, **kwds):
        task_id = getattr(request, "id", None)
        logger.warning(f"Task {sender.name} [{task_id}] retrying: {reason}")


celery_app = create_celery_app()
