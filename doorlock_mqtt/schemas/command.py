"""
Door Command Schema
===================

Bounded Context: Command Lifecycle

A Command is created when an operator asks the door to open or close and is
retained for audit. Its delivery state only moves forward:

    PENDING ──► ACKED       (a later status report looked consistent)
       │
       └─────► TIMED_OUT    (expired without a consistent report)

"Acked" is inferred from the device status topic. The broker never confirms
delivery to the device.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from .common import format_timestamp, parse_timestamp, utc_now


class InvalidTransitionError(ValueError):
    """Raised when a command is moved to a state it cannot reach."""
    pass


class DoorAction(str, Enum):
    """Door command action (also the literal MQTT payload)."""
    OPEN = "open"
    CLOSE = "close"

    @classmethod
    def parse(cls, value: Any) -> 'DoorAction':
        """
        Parse an action name (case-insensitive).

        Raises:
            ValueError: If value is not "open" or "close"
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(
                f"Invalid door action: {value!r}. "
                f"Must be one of {[a.value for a in cls]}"
            )

    @property
    def log_method(self) -> str:
        """Access log method recorded for a remote command."""
        return f"remote-{self.value}"

    @property
    def transitional_status(self) -> str:
        """Optimistic status shown until the device reports."""
        return "Opening..." if self is DoorAction.OPEN else "Closing..."

    @property
    def confirmation_token(self) -> str:
        """Token a status report must contain to confirm this action."""
        return "open" if self is DoorAction.OPEN else "closed"


class DeliveryState(str, Enum):
    """Command delivery state."""
    PENDING = "pending"
    ACKED = "acked"
    TIMED_OUT = "timed_out"


_ALLOWED_TRANSITIONS = {
    DeliveryState.PENDING: {DeliveryState.ACKED, DeliveryState.TIMED_OUT},
    DeliveryState.ACKED: set(),
    DeliveryState.TIMED_OUT: set(),
}


@dataclass
class Command:
    """
    Door command issued by an operator.

    Attributes:
        device_id: Target device identifier
        action: Requested action
        issuer_user_id: Profile id of the operator (users.id)
        command_id: Unique identifier (uuid4 hex)
        issued_at: When the command was published
        delivery_state: Current delivery state
        resolved_at: When the command left PENDING
        audit_logged: True once the access log entry was stored

    Mutated only by the reconciler.
    """
    device_id: str
    action: DoorAction
    issuer_user_id: str
    command_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    issued_at: datetime = field(default_factory=utc_now)
    delivery_state: DeliveryState = DeliveryState.PENDING
    resolved_at: Optional[datetime] = None
    audit_logged: bool = False

    @property
    def is_pending(self) -> bool:
        return self.delivery_state is DeliveryState.PENDING

    def transition(self, new_state: DeliveryState, at: Optional[datetime] = None) -> None:
        """
        Move the command to a new delivery state.

        Raises:
            InvalidTransitionError: If the transition is not forward
        """
        if new_state not in _ALLOWED_TRANSITIONS[self.delivery_state]:
            raise InvalidTransitionError(
                f"Command {self.command_id} cannot move from "
                f"{self.delivery_state.value} to {new_state.value}"
            )
        self.delivery_state = new_state
        self.resolved_at = at or utc_now()

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {
            'command_id': self.command_id,
            'device_id': self.device_id,
            'action': self.action.value,
            'issuer_user_id': self.issuer_user_id,
            'issued_at': format_timestamp(self.issued_at),
            'delivery_state': self.delivery_state.value,
            'resolved_at': format_timestamp(self.resolved_at) if self.resolved_at else None,
            'audit_logged': self.audit_logged,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Command':
        """Deserialize from dict."""
        try:
            resolved_at = data.get('resolved_at')
            return cls(
                command_id=data['command_id'],
                device_id=data['device_id'],
                action=DoorAction.parse(data['action']),
                issuer_user_id=data['issuer_user_id'],
                issued_at=parse_timestamp(data['issued_at']),
                delivery_state=DeliveryState(data.get('delivery_state', 'pending')),
                resolved_at=parse_timestamp(resolved_at) if resolved_at else None,
                audit_logged=bool(data.get('audit_logged', False)),
            )
        except KeyError as e:
            raise ValueError(f"Missing required Command field: {e}")
