"""
Access Log Schema
=================

Bounded Context: Audit Trail

One row of the `access_logs` table. Rows are written by the reconciler
(remote-open / remote-close) or directly by the lock firmware (RFID, keypad,
emergency). They are append-only and read newest first.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from .common import format_timestamp, parse_timestamp

STATUS_SUCCESS = "success"
STATUS_FAILURE = "failure"
METHOD_EMERGENCY = "emergency"


@dataclass(frozen=True)
class AccessLogEntry:
    """
    Immutable access log row.

    Attributes:
        id: Primary key (None before the store assigns one)
        user_id: Profile id of the user (None for device-originated rows)
        method: Access method ("remote-open", "rfid", "Emergency", ...)
        status: Outcome ("success", "failure", free text from firmware)
        created_at: Creation time (canonical ordering key)
    """
    id: Optional[Any]
    user_id: Optional[Any]
    method: str
    status: str
    created_at: datetime

    @property
    def is_emergency_success(self) -> bool:
        """Alert predicate: emergency method that succeeded."""
        return (
            METHOD_EMERGENCY in (self.method or "").lower()
            and STATUS_SUCCESS in (self.status or "").lower()
        )

    @property
    def is_success(self) -> bool:
        return (self.status or "").lower() == STATUS_SUCCESS

    @property
    def dedupe_key(self) -> Tuple:
        """Primary key, or the row content when no id was assigned."""
        if self.id is not None:
            return ('id', str(self.id))
        return ('row', str(self.user_id), self.method, self.status,
                format_timestamp(self.created_at))

    def to_insert_row(self) -> Dict[str, Any]:
        """Row for a store insert (id is assigned by the store)."""
        return {
            'user_id': self.user_id,
            'method': self.method,
            'status': self.status,
            'created_at': format_timestamp(self.created_at),
        }

    def to_dict(self) -> Dict[str, Any]:
        row = self.to_insert_row()
        row['id'] = self.id
        return row

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AccessLogEntry':
        """
        Deserialize from a store row.

        Raises:
            ValueError: If created_at is missing or invalid
        """
        if data.get('created_at') is None:
            raise ValueError("Missing required AccessLogEntry field: 'created_at'")
        return cls(
            id=data.get('id'),
            user_id=data.get('user_id'),
            method=str(data.get('method') or ""),
            status=str(data.get('status') or ""),
            created_at=parse_timestamp(data['created_at']),
        )
