"""
Structured Logging for Doorlock
===============================

Bounded Context: Observability

JSON-structured logging for the transport adapter and the reconciler.

Public API
----------
    LogEvent: Typed event names (enum)
    StructuredLogger: JSON logger implementation
    create_logger: Factory function

Example:
    >>> from doorlock_mqtt.logging import StructuredLogger, LogEvent
    >>> logger = StructuredLogger(component="transport")
    >>> logger.info(
    ...     event=LogEvent.MQTT_CONNECTED,
    ...     message="Connected to broker",
    ...     metadata={'broker': 'broker.hivemq.com:8884'}
    ... )
"""

from .events import LogEvent
from .structured import StructuredLogger, create_logger

__all__ = [
    'LogEvent',
    'StructuredLogger',
    'create_logger',
]
