"""
Device Status Schema
====================

Bounded Context: Device State

StatusReport is one message from the device status topic. The device sends
free text ("Closed", "Opening...", "Open") with no schema or versioning, so
the payload is kept verbatim.

DeviceState is the reconciler's projection of one device. The authoritative
status (last_known_status) changes only on reports; the optimistic value set
when a command is sent lives separately in requested_status.
"""

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Dict, Optional, Union

from .command import DoorAction
from .common import format_timestamp, utc_now


@dataclass(frozen=True)
class StatusReport:
    """
    Immutable device status report.

    Attributes:
        device_id: Device the report belongs to
        reported_state: Raw status text from the device
        received_at: Arrival time at the transport
    """
    device_id: str
    reported_state: str
    received_at: datetime

    @classmethod
    def from_payload(
        cls,
        device_id: str,
        payload: Union[bytes, str],
        received_at: Optional[datetime] = None
    ) -> 'StatusReport':
        """
        Build a report from a raw MQTT payload.

        Raises:
            ValueError: If payload is not valid UTF-8
        """
        if isinstance(payload, bytes):
            try:
                payload = payload.decode('utf-8')
            except UnicodeDecodeError as e:
                raise ValueError(f"Status payload is not UTF-8: {e}") from e
        return cls(
            device_id=device_id,
            reported_state=payload.strip(),
            received_at=received_at or utc_now(),
        )

    def confirms(self, action: DoorAction) -> bool:
        """True if the reported text is consistent with the action."""
        return action.confirmation_token in self.reported_state.lower()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'device_id': self.device_id,
            'reported_state': self.reported_state,
            'received_at': format_timestamp(self.received_at),
        }


@dataclass
class DeviceState:
    """
    Last known and requested state of one device.

    Attributes:
        device_id: Device identifier
        last_known_status: Most recent reported status
        last_updated_at: Arrival time of that report (None until first report)
        requested_status: Optimistic status set by the last command
        requested_at: When requested_status was set
    """
    device_id: str
    last_known_status: str = "Closed"
    last_updated_at: Optional[datetime] = None
    requested_status: Optional[str] = None
    requested_at: Optional[datetime] = None

    @property
    def display_status(self) -> str:
        """Requested status while it is newer than the last report."""
        if self.requested_status is None:
            return self.last_known_status
        if self.last_updated_at is None or self.requested_at > self.last_updated_at:
            return self.requested_status
        return self.last_known_status

    @property
    def is_closed(self) -> bool:
        return "closed" in self.display_status.lower()

    def copy(self) -> 'DeviceState':
        return replace(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'device_id': self.device_id,
            'last_known_status': self.last_known_status,
            'last_updated_at': format_timestamp(self.last_updated_at) if self.last_updated_at else None,
            'requested_status': self.requested_status,
            'requested_at': format_timestamp(self.requested_at) if self.requested_at else None,
            'display_status': self.display_status,
        }
