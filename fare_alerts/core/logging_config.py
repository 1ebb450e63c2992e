"""
Structured logging and pipeline metrics.

Provides JSON log output with correlation tracking and a small thread-safe
collector of matching/delivery counters.
"""

import logging
import json
import sys
import threading
import traceback
from contextvars import ContextVar
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Dict, Any, Optional


@dataclass
class LogEntry:
    """Structured log entry"""
    timestamp: str
    level: str
    logger_name: str
    message: str
    correlation_id: Optional[str] = None
    component: Optional[str] = None
    operation: Optional[str] = None
    duration_ms: Optional[float] = None
    extra: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization"""
        result = asdict(self)
        # Remove None values to reduce log size
        return {k: v for k, v in result.items() if v is not None}


class CorrelationContext:
    """Correlation context scoped to the current asyncio task"""

    def __init__(self):
        self._correlation_id: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

    def set_correlation_id(self, correlation_id: Optional[str]):
        """Set correlation ID for the current task"""
        self._correlation_id.set(correlation_id)

    def get_correlation_id(self) -> Optional[str]:
        """Get correlation ID for the current task"""
        return self._correlation_id.get()

    def clear(self):
        self._correlation_id.set(None)


_RESERVED_ATTRS = {
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname',
    'filename', 'module', 'lineno', 'funcName', 'created',
    'msecs', 'relativeCreated', 'thread', 'threadName',
    'processName', 'process', 'getMessage', 'exc_info',
    'exc_text', 'stack_info', 'message', 'taskName'
}


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging"""

    def __init__(self, include_extra: bool = True):
        super().__init__()
        self.include_extra = include_extra

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON"""
        extra = {}
        if self.include_extra:
            extra = {
                key: value for key, value in record.__dict__.items()
                if key not in _RESERVED_ATTRS
            }

        if record.exc_info:
            extra['exception'] = {
                'type': record.exc_info[0].__name__,
                'message': str(record.exc_info[1]),
                'traceback': traceback.format_exception(*record.exc_info)
            }

        log_entry = LogEntry(
            timestamp=datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            level=record.levelname,
            logger_name=record.name,
            message=record.getMessage(),
            correlation_id=correlation_context.get_correlation_id(),
            component=extra.pop('component', None),
            operation=extra.pop('operation', None),
            duration_ms=extra.pop('duration_ms', None),
            extra=extra if extra else None
        )

        return json.dumps(log_entry.to_dict(), ensure_ascii=False, default=str)


class MetricsCollector:
    """Collect pipeline counters"""

    COUNTERS = (
        'events_consumed',
        'events_failed',
        'events_malformed',
        'alerts_matched',
        'alerts_delivered',
        'alerts_failed',
        'poll_errors',
    )

    def __init__(self):
        self._lock = threading.Lock()
        self.metrics: Dict[str, int] = {name: 0 for name in self.COUNTERS}
        self.last_event_at: Optional[datetime] = None

    def increment(self, name: str, amount: int = 1):
        if name not in self.metrics:
            raise KeyError(f"Unknown metric: {name}")
        with self._lock:
            self.metrics[name] += amount
            if name == 'events_consumed':
                self.last_event_at = datetime.now(timezone.utc)

    def get_metrics(self) -> Dict[str, Any]:
        """Get current metrics snapshot"""
        with self._lock:
            snapshot: Dict[str, Any] = dict(self.metrics)
            snapshot['last_event_at'] = self.last_event_at.isoformat() if self.last_event_at else None
            return snapshot

    def reset_metrics(self):
        """Reset all metrics (useful for testing)"""
        with self._lock:
            self.metrics = {name: 0 for name in self.COUNTERS}
            self.last_event_at = None


correlation_context = CorrelationContext()


def setup_logging(log_level: str = "INFO", json_output: bool = True) -> None:
    """Configure the root logger with a single stdout handler"""
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    if json_output:
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(
            logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        )
    root_logger.addHandler(handler)

    logging.getLogger(__name__).info("Logging system initialized")


def set_correlation_id(correlation_id: Optional[str]):
    """Set correlation ID for the work in progress"""
    correlation_context.set_correlation_id(correlation_id)


def get_correlation_id() -> Optional[str]:
    return correlation_context.get_correlation_id()
