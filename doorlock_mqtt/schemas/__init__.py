"""
Doorlock Schemas
================

Bounded Context: Data Structures

Typed records exchanged between the transport, the reconciler and the store.

Public API
----------
Commands:
    DoorAction: Enum (OPEN, CLOSE)
    DeliveryState: Enum (PENDING, ACKED, TIMED_OUT)
    Command: Operator command with forward-only delivery state

Status:
    StatusReport: Raw device status message
    DeviceState: Last known / requested state projection

Audit:
    AccessLogEntry: Row of the access_logs table

Example:
    >>> from doorlock_mqtt.schemas import Command, DoorAction
    >>> cmd = Command(device_id="door1", action=DoorAction.OPEN, issuer_user_id="42")
    >>> cmd.delivery_state.value
    'pending'
"""

from .common import utc_now, parse_timestamp, format_timestamp
from .command import Command, DoorAction, DeliveryState, InvalidTransitionError
from .status import StatusReport, DeviceState
from .access_log import (
    AccessLogEntry,
    STATUS_SUCCESS,
    STATUS_FAILURE,
    METHOD_EMERGENCY,
)

__all__ = [
    # Helpers
    'utc_now',
    'parse_timestamp',
    'format_timestamp',
    # Commands
    'Command',
    'DoorAction',
    'DeliveryState',
    'InvalidTransitionError',
    # Status
    'StatusReport',
    'DeviceState',
    # Audit
    'AccessLogEntry',
    'STATUS_SUCCESS',
    'STATUS_FAILURE',
    'METHOD_EMERGENCY',
]
