"""
Unit tests for doorlock_mqtt.schemas.
"""

from datetime import datetime, timedelta, timezone

import pytest

from conftest import BASE_TIME, make_entry
from doorlock_mqtt.schemas import (
    AccessLogEntry,
    Command,
    DeliveryState,
    DeviceState,
    DoorAction,
    InvalidTransitionError,
    StatusReport,
    parse_timestamp,
)


class TestTimestamps:
    def test_zulu_suffix(self):
        assert parse_timestamp("2025-03-01T10:00:00Z") == BASE_TIME

    def test_offset_converted_to_utc(self):
        assert parse_timestamp("2025-03-01T12:00:00+02:00") == BASE_TIME

    def test_naive_assumed_utc(self):
        assert parse_timestamp(datetime(2025, 3, 1, 10)).tzinfo == timezone.utc

    def test_invalid(self):
        with pytest.raises(ValueError):
            parse_timestamp("yesterday")


class TestDoorAction:
    def test_parse(self):
        assert DoorAction.parse(" OPEN ") is DoorAction.OPEN
        assert DoorAction.parse(DoorAction.CLOSE) is DoorAction.CLOSE
        with pytest.raises(ValueError):
            DoorAction.parse("unlock")

    def test_derived_values(self):
        assert DoorAction.OPEN.log_method == "remote-open"
        assert DoorAction.CLOSE.transitional_status == "Closing..."


class TestCommand:
    def test_forward_transitions_only(self):
        command = Command(device_id="door1", action=DoorAction.OPEN, issuer_user_id="7")

        command.transition(DeliveryState.ACKED)
        assert command.resolved_at is not None

        with pytest.raises(InvalidTransitionError):
            command.transition(DeliveryState.PENDING)
        with pytest.raises(InvalidTransitionError):
            command.transition(DeliveryState.TIMED_OUT)

    def test_dict_copy(self):
        command = Command(device_id="door1", action=DoorAction.CLOSE, issuer_user_id="7")
        command.audit_logged = True

        assert Command.from_dict(command.to_dict()) == command

    def test_missing_field(self):
        with pytest.raises(ValueError):
            Command.from_dict({'device_id': 'door1'})


class TestStatus:
    def test_payload_kept_verbatim(self):
        report = StatusReport.from_payload("door1", b" Opening...\n")
        assert report.reported_state == "Opening..."

    def test_non_utf8_rejected(self):
        with pytest.raises(ValueError):
            StatusReport.from_payload("door1", b"\xff")

    @pytest.mark.parametrize("text,action,expected", [
        ("Opening...", DoorAction.OPEN, True),
        ("OPEN", DoorAction.OPEN, True),
        ("Closed", DoorAction.OPEN, False),
        ("closed", DoorAction.CLOSE, True),
        ("Closing...", DoorAction.CLOSE, False),
    ])
    def test_confirms(self, text, action, expected):
        assert StatusReport.from_payload("door1", text).confirms(action) is expected

    def test_display_status(self):
        state = DeviceState(device_id="door1")
        assert state.display_status == "Closed"
        assert state.is_closed

        state.requested_status = "Opening..."
        state.requested_at = BASE_TIME
        assert state.display_status == "Opening..."

        state.last_known_status = "Open"
        state.last_updated_at = BASE_TIME + timedelta(seconds=1)
        assert state.display_status == "Open"
        assert not state.is_closed


class TestAccessLogEntry:
    @pytest.mark.parametrize("method,status,expected", [
        ("Emergency", "Success", True),
        ("emergency-button", "SUCCESS", True),
        ("emergency", "failure", False),
        ("rfid", "success", False),
        ("", "", False),
    ])
    def test_alert_predicate(self, method, status, expected):
        assert make_entry(1, method=method, status=status).is_emergency_success is expected

    def test_from_row(self):
        entry = AccessLogEntry.from_dict({
            'id': 12,
            'user_id': 7,
            'method': 'remote-open',
            'status': 'success',
            'created_at': '2025-03-01T10:00:00.000Z',
        })
        assert entry.created_at == BASE_TIME
        assert entry.dedupe_key == ('id', '12')

    def test_missing_created_at(self):
        with pytest.raises(ValueError):
            AccessLogEntry.from_dict({'id': 1, 'method': 'rfid'})

    def test_insert_row_has_no_id(self):
        row = make_entry(None, method="remote-close").to_insert_row()
        assert 'id' not in row
        assert row['created_at'] == "2025-03-01T10:00:00+00:00"
