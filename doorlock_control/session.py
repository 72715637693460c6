"""
DashboardSession - Owning context for one signed-in operator

Bounded Context: Dashboard lifecycle
Responsibilities:
  - Own the transport, store, auth client, realtime listener and dispatcher
  - On start: require a user, resolve display name and profile id, load the
    access log views, subscribe device status topics and realtime inserts
  - Route inbound events through the EventDispatcher to the reconciler
  - Expose the operator actions (open/close door, settings) and snapshots
  - Stop everything when the operator signs out

Threading Model:
  - MQTT Network Thread (paho internal) → dispatcher.submit("status_report")
  - Realtime Thread (asyncio loop)      → dispatcher.submit("access_log_insert")
  - Dispatch Thread                     → reconciler handlers
  - Operator thread                     → open_door / close_door / snapshot

Usage:
    session = DashboardSession.from_config(config)
    session.auth.sign_in_with_password(email, password)
    session.start()
    session.open_door()
    ...
    session.stop()
"""

import logging
import threading
from typing import Any, Callable, Dict, List, Optional

from doorlock_mqtt import MQTTTransport, create_logger
from doorlock_mqtt.schemas import Command, DoorAction, StatusReport
from doorlock_store.base import DataStore
from doorlock_store.errors import DoorlockError, NotAuthenticatedError, StoreError, ValidationError
from doorlock_store.models import AuthUser
from doorlock_store.settings import SystemSettingsManager

from .config import DashboardConfig
from .dispatcher import EventDispatcher
from .notifications import Notifier
from .reconciler import DeviceCommandReconciler
from .registry import HandlerRegistry

logger = logging.getLogger(__name__)

EVENT_STATUS_REPORT = "status_report"
EVENT_ACCESS_LOG_INSERT = "access_log_insert"

# Dashboard "latest activity" card
LATEST_ACTIVITY_COUNT = 5


class DashboardSession:
    """
    Everything one dashboard page owned, as a long-lived object.

    Collaborators are injected so tests can pass fakes; from_config() builds
    the Supabase and MQTT ones.
    """

    def __init__(
        self,
        config: DashboardConfig,
        transport,  # MQTTTransport
        store: DataStore,
        auth=None,  # SupabaseAuth
        realtime=None,  # RealtimeListener
        notifier: Optional[Notifier] = None,
    ):
        self.config = config
        self.transport = transport
        self.store = store
        self.auth = auth
        self.realtime = realtime
        self.notifier = notifier or Notifier()

        self.settings = SystemSettingsManager(store)
        self.reconciler = DeviceCommandReconciler(
            devices=config.devices,
            transport=transport,
            store=store,
            notifier=self.notifier,
            logger=create_logger(component="reconciler"),
            recent_log_limit=config.recent_log_limit,
        )

        self.registry = HandlerRegistry()
        self._register_handlers()
        self.dispatcher = EventDispatcher(self.registry)

        self.user: Optional[AuthUser] = None
        self.profile_id: Optional[Any] = None

        self._running = False
        self._lock = threading.Lock()
        self._was_connected = False
        self._unsubscribe_auth: Optional[Callable[[], None]] = None

        self.transport.add_connection_listener(self._on_connection_change)

    @classmethod
    def from_config(cls, config: DashboardConfig, with_realtime: bool = True) -> "DashboardSession":
        """
        Build a session with real Supabase and MQTT collaborators.

        Args:
            with_realtime: Follow access_logs inserts (off for one-shot commands)

        Raises:
            StoreError: If Supabase credentials are missing
        """
        from doorlock_store.auth import SupabaseAuth
        from doorlock_store.realtime import RealtimeListener
        from doorlock_store.supabase_store import SupabaseStore, create_supabase_client

        supabase = config.supabase_config
        client = create_supabase_client(supabase.url, supabase.key)

        mqtt = config.mqtt_config
        transport = MQTTTransport(
            broker_host=mqtt.broker,
            logger=create_logger(component="transport"),
            broker_port=mqtt.port,
            client_id=mqtt.client_id,
            transport=mqtt.transport,
            ws_path=mqtt.ws_path,
            use_tls=mqtt.tls,
            username=mqtt.username,
            password=mqtt.password,
            qos=mqtt.qos,
            keepalive=mqtt.keepalive,
            reconnect_min_delay=mqtt.reconnect_min_delay,
            reconnect_max_delay=mqtt.reconnect_max_delay,
        )
        return cls(
            config=config,
            transport=transport,
            store=SupabaseStore(client),
            auth=SupabaseAuth(client),
            realtime=RealtimeListener(
                supabase.url,
                supabase.key,
                table=supabase.access_log_table,
            ) if with_realtime else None,
        )

    def _register_handlers(self) -> None:
        self.registry.register(
            EVENT_STATUS_REPORT,
            self.reconciler.on_status_report,
            "Apply a device status report"
        )
        self.registry.register(
            EVENT_ACCESS_LOG_INSERT,
            self.reconciler.on_access_log_row,
            "Apply an access_logs INSERT notification"
        )

    # ─────────────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────────────

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self, user: Optional[AuthUser] = None, connect_timeout: float = 10.0) -> None:
        """
        Start the dashboard for the signed-in user (non-blocking).

        Raises:
            NotAuthenticatedError: If nobody is signed in
            StoreError: If the initial queries fail
        """
        with self._lock:
            if self._running:
                logger.warning("⚠️ Session already running")
                return

            if user is None:
                if self.auth is None:
                    raise NotAuthenticatedError("Please log in to access the door dashboard.")
                user = self.auth.require_user()

            self.user = user
            profile = self.store.find_user_profile(user.id)
            self.profile_id = profile.id if profile else None
            if profile is None:
                logger.warning(f"⚠️ No users row linked to {user.display_name}; door commands disabled")
            logger.info(f"👤 Welcome, {user.display_name}")

            self.reconciler.load_recent(
                self.store.fetch_recent_access_logs(self.config.recent_log_limit)
            )
            self.reconciler.load_history(self.store.fetch_access_history())
            try:
                self.refresh_rfid_tags()
            except StoreError as e:
                logger.error(f"❌ Error fetching RFID tags: {e}")
                self.notifier.error("Failed to fetch RFID tags.")

            try:
                self._start_listeners(connect_timeout)
            except Exception:
                logger.error("❌ Dashboard start failed, releasing what was started")
                self._teardown()
                raise

            self._running = True
        logger.info("✅ Dashboard session started")

    def stop(self) -> None:
        """Stop listeners, the dispatcher and the broker connection."""
        with self._lock:
            if not self._running:
                return
            self._running = False
            self._teardown()
        logger.info("✅ Dashboard session stopped")

    def _start_listeners(self, connect_timeout: float) -> None:
        for device in self.config.devices:
            self.transport.subscribe(device.status_topic, self._status_callback(device.device_id))

        self.dispatcher.start()

        if not self.transport.connect(timeout=connect_timeout):
            # paho keeps retrying in the background
            logger.warning("⚠️ MQTT broker not reachable yet, retrying in background")

        if self.realtime is not None:
            if self.auth is not None:
                self.realtime.access_token = self.auth.access_token()
            self.realtime.start(
                on_insert=self._on_realtime_insert,
                on_error=self._on_realtime_error,
            )

        if self.auth is not None:
            self._unsubscribe_auth = self.auth.on_session_change(self._on_session_change)

    def _teardown(self) -> None:
        """Release everything _start_listeners may have started (safe on a partial start)."""
        if self._unsubscribe_auth is not None:
            try:
                self._unsubscribe_auth()
            except Exception as e:
                logger.error(f"❌ Error cancelling auth subscription: {e}")
            self._unsubscribe_auth = None

        if self.realtime is not None:
            self.realtime.stop()

        for device in self.config.devices:
            self.transport.unsubscribe(device.status_topic)
        self.transport.disconnect()
        self.dispatcher.stop()

    def sign_out(self) -> None:
        """Sign out and stop the session."""
        if self.auth is not None:
            self.auth.sign_out()
        self.stop()
        self.user = None
        self.profile_id = None

    def _on_session_change(self, session: Any) -> None:
        if session is None and self._running:
            logger.info("👋 Session ended, stopping dashboard")
            # Called from the auth client; stop off that thread
            threading.Thread(target=self.stop, name="doorlock-signout", daemon=True).start()

    # ─────────────────────────────────────────────────────────────────────
    # Inbound routing
    # ─────────────────────────────────────────────────────────────────────

    def _status_callback(self, device_id: str) -> Callable[[str, str], None]:
        def on_status(topic: str, payload: str) -> None:
            self.dispatcher.submit(
                EVENT_STATUS_REPORT,
                StatusReport.from_payload(device_id, payload),
            )
        return on_status

    def _on_realtime_insert(self, row: Dict[str, Any]) -> None:
        self.dispatcher.submit(EVENT_ACCESS_LOG_INSERT, row)

    def _on_realtime_error(self, error: Exception) -> None:
        self.notifier.error(
            "⚠️ Realtime log feed unavailable, retrying...",
            error=str(error),
        )

    def _on_connection_change(self, connected: bool) -> None:
        if connected:
            if self._was_connected:
                self.notifier.info("✅ Reconnected to MQTT broker")
            self._was_connected = True
        elif self._running:
            self.notifier.error("⚠️ Lost connection to MQTT broker, reconnecting...")

    # ─────────────────────────────────────────────────────────────────────
    # Operator actions
    # ─────────────────────────────────────────────────────────────────────

    def _require_profile(self) -> Any:
        if self.user is None:
            raise NotAuthenticatedError("Please log in to control the door.")
        if self.profile_id is None:
            raise NotAuthenticatedError(
                f"No user profile linked to {self.user.display_name}."
            )
        return self.profile_id

    def issue(self, action: DoorAction, device_id: Optional[str] = None) -> Command:
        return self.reconciler.issue_command(
            device_id or self.config.default_device_id,
            action,
            self._require_profile(),
        )

    def open_door(self, device_id: Optional[str] = None) -> Command:
        return self.issue(DoorAction.OPEN, device_id)

    def close_door(self, device_id: Optional[str] = None) -> Command:
        return self.issue(DoorAction.CLOSE, device_id)

    def change_door_password(self, new_password: str) -> None:
        try:
            self.settings.change_door_password(new_password)
        except DoorlockError as e:
            self.notifier.error(str(e) or "Error updating password")
            raise
        self.notifier.success("Password updated successfully!")

    def refresh_rfid_tags(self) -> List[str]:
        return self.settings.list_rfid_tags()

    def add_rfid_tag(self, tag: str) -> List[str]:
        try:
            tags = self.settings.add_rfid_tag(tag)
        except ValidationError as e:
            self.notifier.error(str(e))
            raise
        except StoreError as e:
            logger.error(f"❌ Error adding RFID tag: {e}")
            self.notifier.error("Error adding RFID tag.")
            raise
        self.notifier.success("RFID tag added successfully!")
        return tags

    def remove_rfid_tag(self, tag: str) -> List[str]:
        try:
            tags = self.settings.remove_rfid_tag(tag)
        except StoreError as e:
            logger.error(f"❌ Error removing RFID tag: {e}")
            self.notifier.error("Error removing RFID tag.")
            raise
        self.notifier.success("RFID tag removed successfully!")
        return tags

    def tick(self) -> List[Command]:
        """Time out stale commands when a command timeout is configured."""
        timeout = self.config.command_timeout_seconds
        if timeout is None:
            return []
        expired = self.reconciler.expire_pending(timeout)
        for command in expired:
            self.notifier.error(
                f"⏱️ No confirmation from {command.device_id} for {command.action.value}",
                command_id=command.command_id,
            )
        return expired

    # ─────────────────────────────────────────────────────────────────────
    # Views
    # ─────────────────────────────────────────────────────────────────────

    def snapshot(self, device_id: Optional[str] = None) -> Dict[str, Any]:
        """Everything the dashboard tabs show, as plain data."""
        device_id = device_id or self.config.default_device_id
        state = self.reconciler.get_device_state(device_id)
        recent = self.reconciler.recent_logs()
        history = self.reconciler.history()
        alerts = self.reconciler.list_alerts()

        return {
            'user': self.user.display_name if self.user else None,
            'device': state.to_dict(),
            'door_status': state.display_status,
            'door_closed': state.is_closed,
            'latest_activity': recent[0].to_dict() if recent else None,
            'latest': [e.to_dict() for e in recent[:LATEST_ACTIVITY_COUNT]],
            'recent': [e.to_dict() for e in recent],
            'history': [e.to_dict() for e in history],
            'alerts': [e.to_dict() for e in alerts],
            'alert_count': len(alerts),
            'pending_commands': [c.to_dict() for c in self.reconciler.pending_commands(device_id)],
            'rfid_tags': self.settings.cached_tags,
            'mqtt_connected': self.transport.is_connected(),
        }

    def get_stats(self) -> Dict[str, Any]:
        return {
            'running': self._running,
            'reconciler': self.reconciler.get_stats(),
            'dispatcher': self.dispatcher.get_stats(),
            'transport': self.transport.get_stats(),
        }
