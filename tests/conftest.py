"""
Shared fixtures and in-memory fakes.

No broker or Supabase project is needed: FakeTransport stands in for
MQTTTransport, FakeStore for SupabaseStore and FakeAuth for SupabaseAuth.
"""

import copy
import itertools
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pytest

from doorlock_control import DashboardConfig, DeviceCommandReconciler, DeviceConfig, Notifier
from doorlock_mqtt import create_logger
from doorlock_mqtt.schemas import AccessLogEntry
from doorlock_store.base import DataStore
from doorlock_store.errors import NotAuthenticatedError, StoreError
from doorlock_store.models import AuthUser

BASE_TIME = datetime(2025, 3, 1, 10, 0, 0, tzinfo=timezone.utc)


def make_entry(
    entry_id: Optional[int],
    minutes: int = 0,
    method: str = "rfid",
    status: str = "success",
    user_id: Optional[int] = 7,
) -> AccessLogEntry:
    return AccessLogEntry(
        id=entry_id,
        user_id=user_id,
        method=method,
        status=status,
        created_at=BASE_TIME + timedelta(minutes=minutes),
    )


class FakeTransport:
    """Records publishes and lets tests deliver messages by hand."""

    def __init__(self, connected: bool = True):
        self.connected = connected
        self.published: List[tuple] = []
        self.subscriptions: Dict[str, list] = {}
        self.listeners: List = []
        self.connect_calls = 0
        self.disconnect_calls = 0

    def connect(self, timeout: float = 10.0) -> bool:
        self.connect_calls += 1
        self.connected = True
        for listener in self.listeners:
            listener(True)
        return True

    def disconnect(self) -> None:
        self.disconnect_calls += 1
        self.connected = False

    def is_connected(self) -> bool:
        return self.connected

    def subscribe(self, topic, callback) -> None:
        self.subscriptions.setdefault(topic, []).append(callback)

    def unsubscribe(self, topic) -> None:
        self.subscriptions.pop(topic, None)

    def add_connection_listener(self, listener) -> None:
        self.listeners.append(listener)

    def publish(self, topic, payload, qos=None, retain=False) -> bool:
        self.published.append((topic, payload))
        return self.connected

    def deliver(self, topic: str, payload: str) -> None:
        for callback in self.subscriptions.get(topic, []):
            callback(topic, payload)

    def drop_connection(self) -> None:
        self.connected = False
        for listener in self.listeners:
            listener(False)

    def get_stats(self) -> Dict[str, Any]:
        return {'published': len(self.published), 'connected': self.connected}


class FakeStore(DataStore):
    """In-memory tables with auto-increment ids and write counters."""

    def __init__(self):
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        self._ids = itertools.count(1000)
        self.inserts = 0
        self.updates = 0
        self.fail_writes = False
        self.fail_reads = False

    def seed(self, table: str, rows: List[Dict[str, Any]]) -> None:
        self.tables.setdefault(table, []).extend(copy.deepcopy(rows))

    def rows(self, table: str) -> List[Dict[str, Any]]:
        return self.tables.get(table, [])

    def select(self, table, columns="*", match=None, order_by=None, descending=True, limit=None):
        if self.fail_reads:
            raise StoreError(f"Failed to query {table}")
        rows = [
            r for r in self.rows(table)
            if all(r.get(k) == v for k, v in (match or {}).items())
        ]
        if order_by:
            rows = sorted(rows, key=lambda r: str(r.get(order_by) or ""), reverse=descending)
        if limit is not None:
            rows = rows[:limit]
        return copy.deepcopy(rows)

    def insert(self, table, row):
        if self.fail_writes:
            raise StoreError(f"Failed to insert into {table}")
        self.inserts += 1
        stored = dict(row)
        stored.setdefault('id', next(self._ids))
        self.tables.setdefault(table, []).append(stored)
        return dict(stored)

    def update(self, table, values, match):
        if self.fail_writes:
            raise StoreError(f"Failed to update {table}")
        self.updates += 1
        updated = []
        for row in self.rows(table):
            if all(row.get(k) == v for k, v in match.items()):
                row.update(copy.deepcopy(values))
                updated.append(dict(row))
        return updated


class FakeAuth:
    """Session holder with the SupabaseAuth surface the session uses."""

    def __init__(self, user: Optional[AuthUser] = None):
        self.user = user
        self.callbacks = []

    def get_current_user(self):
        return self.user

    def require_user(self):
        if self.user is None:
            raise NotAuthenticatedError("Please log in to access the door dashboard.")
        return self.user

    def access_token(self):
        return "token-123" if self.user else None

    def sign_out(self):
        self.user = None
        for callback in list(self.callbacks):
            callback(None)

    def on_session_change(self, callback):
        self.callbacks.append(callback)
        return lambda: self.callbacks.remove(callback)


class FakeRealtime:
    def __init__(self, start_error: Optional[Exception] = None):
        self.on_insert = None
        self.on_error = None
        self.access_token = None
        self.start_error = start_error
        self.stopped = False

    def start(self, on_insert, on_error=None):
        if self.start_error is not None:
            raise self.start_error
        self.on_insert = on_insert
        self.on_error = on_error

    def stop(self):
        self.stopped = True

    def emit(self, row: Dict[str, Any]) -> None:
        self.on_insert(row)

    def fail(self, error: Exception) -> None:
        self.on_error(error)


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def notifier():
    return Notifier()


@pytest.fixture
def device():
    return DeviceConfig()


@pytest.fixture
def reconciler(transport, store, notifier, device):
    return DeviceCommandReconciler(
        devices=[device],
        transport=transport,
        store=store,
        notifier=notifier,
        logger=create_logger("test"),
    )


@pytest.fixture
def user():
    return AuthUser(id="auth-1", email="ada@example.com", full_name="Ada Lovelace")


@pytest.fixture
def dashboard_config():
    return DashboardConfig(devices=[DeviceConfig()])
