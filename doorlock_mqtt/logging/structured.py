"""
Structured JSON Logger
=====================

Bounded Context: Observability Infrastructure

JSON lines for the transport and the reconciler, one object per event.

Architecture:
- StructuredLogger builds the record (component, event, metadata, context)
- The record travels on the LogRecord (extra={'structured': ...})
- JSONFormatter serializes it; plain records fall back to a minimal object

Context binding:
    bind() returns a logger that adds fixed fields to every record's
    metadata, e.g. the MQTT client id of one transport.

Example:
    >>> logger = create_logger("transport").bind(client_id="doorlock_1a2b3c4d")
    >>> logger.info(
    ...     event=LogEvent.MQTT_CONNECTED,
    ...     message="Connected to MQTT broker",
    ...     metadata={'broker': 'broker.hivemq.com:8884'}
    ... )

Output:
    {"timestamp": "2025-10-24T15:30:45.123456+00:00", "level": "INFO",
     "component": "transport", "category": "mqtt", "event": "mqtt.connected",
     "message": "Connected to MQTT broker",
     "metadata": {"client_id": "doorlock_1a2b3c4d", "broker": "broker.hivemq.com:8884"}}
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .events import LogEvent

Metadata = Optional[Dict[str, Any]]


class JSONFormatter(logging.Formatter):
    """Serialize the structured payload attached by StructuredLogger."""

    def format(self, record: logging.LogRecord) -> str:
        entry = getattr(record, 'structured', None)
        if entry is None:
            entry = {
                'timestamp': datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
                'level': record.levelname,
                'component': record.name,
                'message': record.getMessage(),
            }
        return json.dumps(entry, default=str, ensure_ascii=False)


class StructuredLogger:
    """
    JSON structured logger.

    Attributes:
        component: Component name ("transport", "reconciler")
        context: Fields merged into every record's metadata
        logger: Underlying Python logger (doorlock.<component>)

    Bound loggers share the underlying Python logger and its handler.
    """

    def __init__(
        self,
        component: str,
        level: int = logging.INFO,
        logger_name: Optional[str] = None,
        context: Metadata = None,
    ):
        self.component = component
        self.context: Dict[str, Any] = dict(context or {})
        self.logger = logging.getLogger(logger_name or f"doorlock.{component}")
        self.logger.setLevel(level)

        if not self.logger.handlers:
            handler = logging.StreamHandler()
            handler.setFormatter(JSONFormatter())
            self.logger.addHandler(handler)
            self.logger.propagate = False

    def bind(self, **context: Any) -> 'StructuredLogger':
        """Logger for the same component with extra fixed metadata."""
        return StructuredLogger(
            component=self.component,
            level=self.logger.level,
            logger_name=self.logger.name,
            context={**self.context, **context},
        )

    def build_entry(
        self,
        level: int,
        event: LogEvent,
        message: str,
        metadata: Metadata = None,
        exc_info: Optional[BaseException] = None,
    ) -> Dict[str, Any]:
        entry: Dict[str, Any] = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': logging.getLevelName(level),
            'component': self.component,
            'category': event.category,
            'event': event.value,
            'message': message,
        }
        merged = {**self.context, **(metadata or {})}
        if merged:
            entry['metadata'] = merged
        if exc_info is not None:
            entry['exception'] = {
                'type': type(exc_info).__name__,
                'message': str(exc_info),
            }
        return entry

    def _emit(
        self,
        level: int,
        event: LogEvent,
        message: str,
        metadata: Metadata = None,
        exc_info: Optional[BaseException] = None,
    ) -> None:
        if not self.logger.isEnabledFor(level):
            return
        entry = self.build_entry(level, event, message, metadata, exc_info)
        self.logger.log(
            level,
            message,
            exc_info=exc_info if level >= logging.ERROR else None,
            extra={'structured': entry},
        )

    def debug(self, event: LogEvent, message: str, metadata: Metadata = None) -> None:
        self._emit(logging.DEBUG, event, message, metadata)

    def info(self, event: LogEvent, message: str, metadata: Metadata = None) -> None:
        self._emit(logging.INFO, event, message, metadata)

    def warning(self, event: LogEvent, message: str, metadata: Metadata = None) -> None:
        self._emit(logging.WARNING, event, message, metadata)

    def error(
        self,
        event: LogEvent,
        message: str,
        metadata: Metadata = None,
        exc_info: Optional[BaseException] = None
    ) -> None:
        """
        Log an ERROR record; exc_info adds the exception type and message.

        Example:
            >>> try:
            ...     store.insert("access_logs", row)
            ... except StoreError as e:
            ...     logger.error(
            ...         event=LogEvent.AUDIT_WRITE_ERROR,
            ...         message="Failed to record access log",
            ...         exc_info=e,
            ...     )
        """
        self._emit(logging.ERROR, event, message, metadata, exc_info)

    def set_level(self, level: int) -> None:
        """Change logging level (shared with bound loggers)."""
        self.logger.setLevel(level)


def create_logger(component: str, level: int = logging.INFO) -> StructuredLogger:
    """
    Factory function to create configured StructuredLogger.

    Example:
        >>> logger = create_logger("reconciler", level=logging.DEBUG)
    """
    return StructuredLogger(component=component, level=level)
