"""
DeviceCommandReconciler - Command dispatch and status reconciliation

Bounded Context: Door command lifecycle and audit views
Responsibilities:
  - Issue open/close commands (publish + pending Command + audit entry)
  - Apply device status reports and ack consistent pending commands
  - Maintain the access log history, recent view and alert list
  - Raise alerts for emergency-open events

Consistency rules:
  - last_known_status is always the most recently *received* report
  - Commands move forward only: pending → acked | timed_out
  - Access log entries are de-duplicated by primary key; history is kept in
    created_at descending order and the recent view is its prefix
  - "success" is recorded in the access log when the command is sent, not
    when the device acts; Command.delivery_state carries the confirmation

Threading:
  - Inbound events (status, inserts) arrive through the EventDispatcher
  - issue_command() runs on the caller's thread
  - All state is guarded by one lock; network I/O happens outside it
"""

import bisect
import threading
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple, Union

from doorlock_mqtt.logging import LogEvent, StructuredLogger
from doorlock_mqtt.schemas import (
    AccessLogEntry,
    Command,
    DeliveryState,
    DeviceState,
    DoorAction,
    StatusReport,
    STATUS_SUCCESS,
    utc_now,
)
from doorlock_store.base import DataStore
from doorlock_store.errors import NotAuthenticatedError, StoreError, ValidationError

from .config import DeviceConfig
from .errors import UnknownDeviceError
from .notifications import Notifier


def _newest_first(entry: AccessLogEntry) -> float:
    return -entry.created_at.timestamp()


def _insert_newest_first(entries: List[AccessLogEntry], entry: AccessLogEntry) -> None:
    # Ties go in front, so a notification for an equal timestamp is prepended
    index = bisect.bisect_left(entries, _newest_first(entry), key=_newest_first)
    entries.insert(index, entry)


class DeviceCommandReconciler:
    """
    Tracks issued commands against asynchronous device status reports.

    Example:
        reconciler = DeviceCommandReconciler(
            devices=[DeviceConfig()],
            transport=transport,
            store=store,
            notifier=notifier,
            logger=create_logger("reconciler"),
        )
        command = reconciler.issue_command("door1", "open", issuer_user_id=7)
        reconciler.on_status_report(StatusReport.from_payload("door1", b"Open"))
        assert reconciler.get_command(command.command_id).delivery_state is DeliveryState.ACKED
    """

    def __init__(
        self,
        devices: Iterable[DeviceConfig],
        transport,  # MQTTTransport
        store: DataStore,
        notifier: Notifier,
        logger: StructuredLogger,
        recent_log_limit: int = 10,
    ):
        self.transport = transport
        self.store = store
        self.notifier = notifier
        self.logger = logger
        self.recent_log_limit = recent_log_limit

        self._devices: Dict[str, DeviceConfig] = {d.device_id: d for d in devices}
        self._states: Dict[str, DeviceState] = {
            d.device_id: DeviceState(device_id=d.device_id, last_known_status=d.initial_status)
            for d in self._devices.values()
        }
        self._commands: Dict[str, Command] = {}
        self._history: List[AccessLogEntry] = []
        self._alerts: List[AccessLogEntry] = []
        self._seen: Set[Tuple] = set()

        self._lock = threading.RLock()

    @property
    def device_ids(self) -> List[str]:
        return list(self._devices)

    # ─────────────────────────────────────────────────────────────────────
    # Commands
    # ─────────────────────────────────────────────────────────────────────

    def issue_command(
        self,
        device_id: str,
        action: Union[DoorAction, str],
        issuer_user_id: Any,
    ) -> Command:
        """
        Send an open/close command without waiting for the device.

        Args:
            device_id: Configured device identifier
            action: DoorAction or "open"/"close"
            issuer_user_id: Profile id (users.id) of the signed-in operator

        Returns:
            The pending Command

        Raises:
            NotAuthenticatedError: If issuer_user_id is empty
            UnknownDeviceError: If device_id is not configured
            ValidationError: If action is not open/close
        """
        if issuer_user_id is None or issuer_user_id == "":
            raise NotAuthenticatedError("A signed-in user is required to control the door.")

        device = self._devices.get(device_id)
        if device is None:
            raise UnknownDeviceError(f"Unknown device '{device_id}'")

        try:
            action = DoorAction.parse(action)
        except ValueError as e:
            raise ValidationError(str(e)) from e

        command = Command(
            device_id=device_id,
            action=action,
            issuer_user_id=str(issuer_user_id),
        )

        # Registered before publishing so any status it causes is matched
        with self._lock:
            self._commands[command.command_id] = command
            state = self._states[device_id]
            state.requested_status = action.transitional_status
            state.requested_at = command.issued_at

        published = self.transport.publish(device.control_topic, action.value)

        self.logger.info(
            event=LogEvent.COMMAND_ISSUED,
            message=f"{action.value.capitalize()} command sent",
            metadata={
                'command_id': command.command_id,
                'device_id': device_id,
                'topic': device.control_topic,
                'published': published,
            }
        )
        if action is DoorAction.OPEN:
            self.notifier.success("🚪 Open command sent!", command_id=command.command_id)
        else:
            self.notifier.info("🚪 Close command sent", icon="🔒", command_id=command.command_id)

        self._record_command(command, issuer_user_id)
        return command

    def _record_command(self, command: Command, issuer_user_id: Any) -> None:
        entry = AccessLogEntry(
            id=None,
            user_id=issuer_user_id,
            method=command.action.log_method,
            status=STATUS_SUCCESS,
            created_at=command.issued_at,
        )
        try:
            stored = self.store.record_access_log(entry)
        except StoreError as e:
            self.logger.error(
                event=LogEvent.AUDIT_WRITE_ERROR,
                message="Failed to record access log for command",
                exc_info=e,
                metadata={'command_id': command.command_id}
            )
            self.notifier.error(f"Failed to record access log: {e}", command_id=command.command_id)
            return

        with self._lock:
            command.audit_logged = True

        self.logger.info(
            event=LogEvent.AUDIT_WRITTEN,
            message="Access log recorded",
            metadata={'command_id': command.command_id, 'entry_id': stored.id, 'method': stored.method}
        )
        # The realtime notification for this row is dropped as a duplicate
        if stored.id is not None:
            self.on_access_log_inserted(stored)

    def expire_pending(
        self,
        timeout: Union[timedelta, float],
        now: Optional[datetime] = None,
    ) -> List[Command]:
        """
        Time out pending commands older than timeout.

        Returns:
            Copies of the commands that moved to TIMED_OUT
        """
        if not isinstance(timeout, timedelta):
            timeout = timedelta(seconds=timeout)
        now = now or utc_now()

        expired = []
        with self._lock:
            for command in self._commands.values():
                if command.is_pending and now - command.issued_at >= timeout:
                    command.transition(DeliveryState.TIMED_OUT, now)
                    expired.append(Command.from_dict(command.to_dict()))

        for command in expired:
            self.logger.warning(
                event=LogEvent.COMMAND_TIMED_OUT,
                message="No consistent status report before timeout",
                metadata={'command_id': command.command_id, 'device_id': command.device_id}
            )
        return expired

    # ─────────────────────────────────────────────────────────────────────
    # Inbound events (called by the dispatcher thread)
    # ─────────────────────────────────────────────────────────────────────

    def on_status_report(self, report: StatusReport) -> List[Command]:
        """
        Apply a status report; ack consistent pending commands.

        Returns:
            Copies of the commands acked by this report
        """
        acked = []
        with self._lock:
            state = self._states.get(report.device_id)
            if state is None:
                self.logger.warning(
                    event=LogEvent.UNKNOWN_DEVICE_ERROR,
                    message="Status report for unknown device dropped",
                    metadata=report.to_dict()
                )
                return []

            state.last_known_status = report.reported_state
            state.last_updated_at = report.received_at

            for command in self._commands.values():
                if (
                    command.device_id == report.device_id
                    and command.is_pending
                    and report.confirms(command.action)
                ):
                    command.transition(DeliveryState.ACKED, report.received_at)
                    acked.append(Command.from_dict(command.to_dict()))

        self.logger.info(
            event=LogEvent.STATUS_RECEIVED if acked else LogEvent.STATUS_UNSOLICITED,
            message=f"Door status: {report.reported_state}",
            metadata={
                'device_id': report.device_id,
                'acked': [c.command_id for c in acked],
            }
        )
        for command in acked:
            self.logger.info(
                event=LogEvent.COMMAND_ACKED,
                message="Command confirmed by device status",
                metadata={'command_id': command.command_id, 'status': report.reported_state}
            )
        return acked

    def on_access_log_inserted(self, entry: AccessLogEntry) -> bool:
        """
        Apply an access log insert notification.

        Returns:
            False if the entry was already known (duplicate notification)
        """
        with self._lock:
            added, is_alert = self._merge(entry)

        if not added:
            self.logger.debug(
                event=LogEvent.AUDIT_DUPLICATE,
                message="Duplicate access log notification dropped",
                metadata={'entry_id': entry.id}
            )
            return False

        self.logger.info(
            event=LogEvent.AUDIT_RECEIVED,
            message="Access log received",
            metadata={'entry_id': entry.id, 'method': entry.method, 'status': entry.status}
        )
        if is_alert:
            self._raise_alert(entry)
        return True

    def on_access_log_row(self, row: Dict[str, Any]) -> bool:
        """Parse a raw store row, then apply it as an insert notification."""
        try:
            entry = AccessLogEntry.from_dict(row)
        except ValueError as e:
            self.logger.error(
                event=LogEvent.DECODE_ERROR,
                message="Malformed access log row dropped",
                exc_info=e,
                metadata={'row_id': row.get('id') if isinstance(row, dict) else None}
            )
            return False
        return self.on_access_log_inserted(entry)

    def _merge(self, entry: AccessLogEntry) -> Tuple[bool, bool]:
        key = entry.dedupe_key
        if key in self._seen:
            return False, False
        self._seen.add(key)
        _insert_newest_first(self._history, entry)
        if entry.is_emergency_success:
            _insert_newest_first(self._alerts, entry)
            return True, True
        return True, False

    def _raise_alert(self, entry: AccessLogEntry) -> None:
        local_time = entry.created_at.astimezone().strftime("%H:%M:%S")
        self.logger.warning(
            event=LogEvent.ALERT_RAISED,
            message="Emergency access detected",
            metadata={'entry_id': entry.id, 'created_at': entry.created_at.isoformat()}
        )
        self.notifier.alert(
            f"🚨 Emergency detected at {local_time}",
            entry_id=entry.id,
            created_at=entry.created_at,
        )

    # ─────────────────────────────────────────────────────────────────────
    # Bulk loads (no alert signals)
    # ─────────────────────────────────────────────────────────────────────

    def load_history(self, entries: Iterable[AccessLogEntry]) -> int:
        """
        Merge a full-history query result.

        Emergency entries join the alert list without emitting alerts.

        Returns:
            Number of entries that were new
        """
        added = 0
        with self._lock:
            for entry in entries:
                if self._merge(entry)[0]:
                    added += 1
            total = len(self._history)

        self.logger.info(
            event=LogEvent.AUDIT_HISTORY_LOADED,
            message="Access log history merged",
            metadata={'added': added, 'total': total}
        )
        return added

    def load_recent(self, entries: Iterable[AccessLogEntry]) -> int:
        """Merge a recent-logs query result (same rules as load_history)."""
        return self.load_history(entries)

    # ─────────────────────────────────────────────────────────────────────
    # Snapshots (copies; callers never see live state)
    # ─────────────────────────────────────────────────────────────────────

    def get_device_state(self, device_id: str) -> DeviceState:
        with self._lock:
            state = self._states.get(device_id)
            if state is None:
                raise UnknownDeviceError(f"Unknown device '{device_id}'")
            return state.copy()

    def get_command(self, command_id: str) -> Optional[Command]:
        with self._lock:
            command = self._commands.get(command_id)
            return Command.from_dict(command.to_dict()) if command else None

    def pending_commands(self, device_id: Optional[str] = None) -> List[Command]:
        with self._lock:
            return [
                Command.from_dict(c.to_dict())
                for c in self._commands.values()
                if c.is_pending and (device_id is None or c.device_id == device_id)
            ]

    def commands(self) -> List[Command]:
        with self._lock:
            return [Command.from_dict(c.to_dict()) for c in self._commands.values()]

    def recent_logs(self) -> List[AccessLogEntry]:
        with self._lock:
            return self._history[:self.recent_log_limit]

    def history(self) -> List[AccessLogEntry]:
        with self._lock:
            return list(self._history)

    def list_alerts(self) -> List[AccessLogEntry]:
        with self._lock:
            return list(self._alerts)

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            by_state = {state.value: 0 for state in DeliveryState}
            for command in self._commands.values():
                by_state[command.delivery_state.value] += 1
            return {
                'devices': list(self._devices),
                'commands': by_state,
                'history': len(self._history),
                'alerts': len(self._alerts),
            }
