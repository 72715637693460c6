"""
Doorlock MQTT Communication Package
===================================

Bounded Context: Device Transport for the Door Lock

MQTT connection to the public broker, typed records for commands, status
reports and access log rows, and structured JSON logging.

Architecture:
- transport.py: MQTTTransport (publish, subscribe, reconnect)
- schemas/: Command, StatusReport, DeviceState, AccessLogEntry
- logging/: Structured JSON logging for observability

Public API
----------
Transport:
    MQTTTransport

Schemas:
    Command, DoorAction, DeliveryState, InvalidTransitionError
    StatusReport, DeviceState, AccessLogEntry

Logging:
    LogEvent, StructuredLogger, create_logger

Example:
    >>> from doorlock_mqtt import MQTTTransport, create_logger
    >>> transport = MQTTTransport(broker_host="broker.hivemq.com",
    ...                           logger=create_logger("transport"))
    >>> transport.connect()
    >>> transport.publish("esp32/door1/control", "open")
"""

__version__ = "1.0.0"

from .schemas import (
    Command,
    DoorAction,
    DeliveryState,
    InvalidTransitionError,
    StatusReport,
    DeviceState,
    AccessLogEntry,
)

from .transport import MQTTTransport

from .logging import (
    LogEvent,
    StructuredLogger,
    create_logger,
)

__all__ = [
    '__version__',
    # Schemas
    'Command',
    'DoorAction',
    'DeliveryState',
    'InvalidTransitionError',
    'StatusReport',
    'DeviceState',
    'AccessLogEntry',
    # Transport
    'MQTTTransport',
    # Logging
    'LogEvent',
    'StructuredLogger',
    'create_logger',
]
