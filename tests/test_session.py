"""
Integration tests for DashboardSession with in-memory collaborators.

Tests:
- Start requires a user; loads views and subscribes the status topic
- Status and realtime events flow through the dispatcher thread
- Door commands use the resolved profile id
- Sign out stops the session; a failed start releases what it started
- Settings and realtime failures reach the notifier
"""

import time

import pytest

from conftest import FakeAuth, FakeRealtime, make_entry
from doorlock_control import DashboardConfig, DashboardSession, DeviceConfig, NotificationLevel
from doorlock_mqtt.schemas import DeliveryState
from doorlock_store.errors import NotAuthenticatedError, StoreError, ValidationError


def wait_until(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


@pytest.fixture
def seeded_store(store):
    store.seed("users", [{'id': 7, 'auth_id': 'auth-1', 'email': 'ada@example.com'}])
    store.seed("access_logs", [
        make_entry(i, minutes=i, method="emergency" if i == 3 else "rfid").to_dict()
        for i in range(1, 13)
    ])
    store.seed("system_settings", [{'id': 1, 'rfid_tag': ['AA11']}])
    return store


@pytest.fixture
def realtime():
    return FakeRealtime()


@pytest.fixture
def session(dashboard_config, transport, seeded_store, user, realtime):
    session = DashboardSession(
        config=dashboard_config,
        transport=transport,
        store=seeded_store,
        auth=FakeAuth(user),
        realtime=realtime,
    )
    yield session
    session.stop()


class TestLifecycle:
    """Tests for start / stop."""

    def test_start_loads_views(self, session, transport, realtime):
        session.start()

        assert session.is_running
        assert session.profile_id == 7
        assert session.user.display_name == "Ada Lovelace"
        assert len(session.reconciler.history()) == 12
        assert len(session.reconciler.recent_logs()) == 10
        assert [e.id for e in session.reconciler.list_alerts()] == [3]
        assert session.settings.cached_tags == ['AA11']
        assert "esp32/door/status" in transport.subscriptions
        assert realtime.access_token == "token-123"
        assert session.dispatcher.is_running()

    def test_bulk_load_raises_no_alert(self, session):
        session.start()
        assert session.notifier.history(NotificationLevel.ALERT) == []

    def test_start_without_user(self, dashboard_config, transport, store):
        session = DashboardSession(dashboard_config, transport, store, auth=FakeAuth(None))

        with pytest.raises(NotAuthenticatedError):
            session.start()
        assert not session.is_running

    def test_failed_start_releases_listeners(self, dashboard_config, transport, seeded_store, user):
        session = DashboardSession(
            dashboard_config,
            transport,
            seeded_store,
            auth=FakeAuth(user),
            realtime=FakeRealtime(start_error=ConnectionError("realtime down")),
        )

        with pytest.raises(ConnectionError):
            session.start()

        assert not session.is_running
        assert not session.dispatcher.is_running()
        assert transport.disconnect_calls == 1
        assert transport.subscriptions == {}
        assert session.auth.callbacks == []

    def test_stop(self, session, transport, realtime):
        session.start()
        session.stop()

        assert not session.is_running
        assert realtime.stopped
        assert transport.disconnect_calls == 1
        assert transport.subscriptions == {}
        assert not session.dispatcher.is_running()

    def test_sign_out_stops_session(self, session):
        session.start()

        session.auth.sign_out()

        assert wait_until(lambda: not session.is_running)


class TestEvents:
    """Inbound events through the dispatcher."""

    def test_status_report_acks_command(self, session, transport):
        session.start()
        command = session.open_door()

        transport.deliver("esp32/door/status", "Opening...")
        transport.deliver("esp32/door/status", "Open")
        session.dispatcher.join()

        assert session.reconciler.get_command(command.command_id).delivery_state is DeliveryState.ACKED
        assert session.snapshot()['door_status'] == "Open"

    def test_realtime_emergency_alert(self, session, realtime):
        session.start()
        row = make_entry(50, minutes=50, method="Emergency", status="Success").to_dict()

        realtime.emit(row)
        realtime.emit(row)
        session.dispatcher.join()

        assert session.snapshot()['alert_count'] == 2
        assert len(session.notifier.history(NotificationLevel.ALERT)) == 1

    def test_realtime_failure_notifies(self, session, realtime):
        session.start()

        realtime.fail(ConnectionError("socket closed"))

        errors = session.notifier.history(NotificationLevel.ERROR)
        assert [n.message for n in errors] == ["⚠️ Realtime log feed unavailable, retrying..."]
        assert errors[0].metadata['error'] == "socket closed"

    def test_connection_notifications(self, session, transport):
        session.start()

        transport.drop_connection()
        transport.connect()

        errors = session.notifier.history(NotificationLevel.ERROR)
        infos = session.notifier.history(NotificationLevel.INFO)
        assert any("Lost connection" in n.message for n in errors)
        assert any("Reconnected" in n.message for n in infos)


class TestActions:
    """Operator actions."""

    def test_open_door_uses_profile_id(self, session, seeded_store, transport):
        session.start()

        session.open_door()

        assert transport.published == [("esp32/door1/control", "open")]
        rows = [r for r in seeded_store.rows("access_logs") if r['method'] == "remote-open"]
        assert len(rows) == 1
        assert rows[0]['user_id'] == 7

    def test_close_door(self, session, transport):
        session.start()

        session.close_door()

        assert transport.published == [("esp32/door1/control", "close")]
        assert session.snapshot()['door_status'] == "Closing..."

    def test_no_profile_blocks_commands(self, dashboard_config, transport, store, user):
        session = DashboardSession(dashboard_config, transport, store, auth=FakeAuth(user))
        session.start()
        try:
            with pytest.raises(NotAuthenticatedError):
                session.open_door()
            assert transport.published == []
        finally:
            session.stop()

    def test_rfid_actions_notify(self, session):
        session.start()

        assert session.add_rfid_tag("BB22") == ['AA11', 'BB22']
        assert session.remove_rfid_tag("AA11") == ['BB22']
        assert len(session.notifier.history(NotificationLevel.SUCCESS)) == 2

    def test_password_change_failures_notify(self, session, seeded_store):
        session.start()

        with pytest.raises(ValidationError):
            session.change_door_password("")
        seeded_store.fail_writes = True
        with pytest.raises(StoreError):
            session.change_door_password("2468")

        errors = [n.message for n in session.notifier.history(NotificationLevel.ERROR)]
        assert errors == ["Enter a new password", "Failed to update system_settings"]
        assert session.notifier.history(NotificationLevel.SUCCESS) == []

    def test_rfid_failures_notify(self, session, seeded_store):
        session.start()

        with pytest.raises(ValidationError):
            session.add_rfid_tag("")
        with pytest.raises(ValidationError):
            session.add_rfid_tag("AA11")
        seeded_store.fail_writes = True
        with pytest.raises(StoreError):
            session.add_rfid_tag("BB22")
        with pytest.raises(StoreError):
            session.remove_rfid_tag("AA11")

        errors = [n.message for n in session.notifier.history(NotificationLevel.ERROR)]
        assert errors == [
            "Please enter an RFID tag to add.",
            "This RFID tag already exists.",
            "Error adding RFID tag.",
            "Error removing RFID tag.",
        ]
        assert seeded_store.updates == 0
        assert session.settings.cached_tags == ['AA11']

    def test_tick_without_timeout(self, session):
        session.start()
        session.open_door()

        assert session.tick() == []

    def test_tick_times_out_commands(self, transport, seeded_store, user):
        config = DashboardConfig(devices=[DeviceConfig()], command_timeout_seconds=0.01)
        session = DashboardSession(config, transport, seeded_store, auth=FakeAuth(user))
        session.start()
        try:
            command = session.open_door()
            time.sleep(0.05)

            expired = session.tick()

            assert [c.command_id for c in expired] == [command.command_id]
            assert session.notifier.history(NotificationLevel.ERROR)
        finally:
            session.stop()

    def test_snapshot(self, session):
        session.start()

        snapshot = session.snapshot()

        assert snapshot['user'] == "Ada Lovelace"
        assert snapshot['door_status'] == "Closed"
        assert snapshot['door_closed'] is True
        assert snapshot['latest_activity']['id'] == 12
        assert [e['id'] for e in snapshot['latest']] == [12, 11, 10, 9, 8]
        assert snapshot['alert_count'] == 1
        assert snapshot['rfid_tags'] == ['AA11']
        assert snapshot['mqtt_connected'] is True
