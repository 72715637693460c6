"""
MQTT Transport Adapter
======================

Bounded Context: Device Transport

One broker connection shared by command publishing and status consumption.

Design:
- paho-mqtt network loop in a background thread (loop_start)
- connect_async so the first connection is retried like later ones
- Exponential reconnect backoff (reconnect_delay_set)
- Subscriptions re-issued on every (re)connect
- Best-effort, non-blocking publish (QoS 0 by default)

Architecture:
    Reconciler ──publish──► MQTTTransport ──► Broker ──► Device
    Device ──► Broker ──► MQTTTransport ──callback──► EventDispatcher

Delivery:
    There is no replay. Messages published while disconnected, or before a
    subscription is active, are lost. Callers must never assume delivery.

Example:
    >>> from doorlock_mqtt import MQTTTransport, create_logger
    >>> transport = MQTTTransport(
    ...     broker_host="broker.hivemq.com",
    ...     logger=create_logger("transport"),
    ... )
    >>> transport.subscribe("esp32/door/status", lambda topic, payload: print(payload))
    >>> transport.connect()
    >>> transport.publish("esp32/door1/control", "open")
"""

import threading
import uuid
from typing import Any, Callable, Dict, List, Optional

import paho.mqtt.client as mqtt

from .logging import StructuredLogger, LogEvent

MessageCallback = Callable[[str, str], None]
ConnectionListener = Callable[[bool], None]


class MQTTTransport:
    """
    Reconnecting MQTT publish/subscribe connection.

    Attributes:
        broker_host: MQTT broker hostname
        broker_port: MQTT broker port
        client_id: MQTT client identifier
        qos: Default Quality of Service for publish and subscribe
        logger: Structured logger instance

    Thread Safety:
        Callbacks run in the paho network thread. Registration methods are
        guarded by a lock; publish() is safe from any thread.
    """

    def __init__(
        self,
        broker_host: str,
        logger: StructuredLogger,
        broker_port: int = 8884,
        client_id: Optional[str] = None,
        transport: str = "websockets",
        ws_path: str = "/mqtt",
        use_tls: bool = True,
        username: Optional[str] = None,
        password: Optional[str] = None,
        qos: int = 0,
        keepalive: int = 60,
        reconnect_min_delay: int = 1,
        reconnect_max_delay: int = 60,
    ):
        """
        Initialize the transport (does not connect).

        Args:
            broker_host: MQTT broker hostname
            logger: Structured logger for observability
            broker_port: MQTT broker port (8884 = HiveMQ public wss)
            client_id: MQTT client ID (default: random doorlock_<hex>)
            transport: "websockets" or "tcp"
            ws_path: Websocket path (websockets transport only)
            use_tls: Enable TLS with system CA certificates
            username: MQTT auth username (optional)
            password: MQTT auth password (optional)
            qos: Default Quality of Service (0 = fire-and-forget)
            keepalive: Keepalive interval in seconds
            reconnect_min_delay: First reconnect delay in seconds
            reconnect_max_delay: Reconnect delay cap in seconds
        """
        self.broker_host = broker_host
        self.broker_port = broker_port
        self.client_id = client_id or f"doorlock_{uuid.uuid4().hex[:8]}"
        self.logger = logger.bind(client_id=self.client_id)
        self.qos = qos
        self.keepalive = keepalive

        self.client = mqtt.Client(
            callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
            client_id=self.client_id,
            transport=transport,
        )
        if transport == "websockets":
            self.client.ws_set_options(path=ws_path)
        if use_tls:
            self.client.tls_set()
        if username and password:
            self.client.username_pw_set(username, password)
        self.client.reconnect_delay_set(
            min_delay=reconnect_min_delay,
            max_delay=reconnect_max_delay,
        )

        self.client.on_connect = self._on_connect
        self.client.on_disconnect = self._on_disconnect
        self.client.on_message = self._on_message

        self._subscriptions: Dict[str, List[MessageCallback]] = {}
        self._connection_listeners: List[ConnectionListener] = []
        self._lock = threading.Lock()

        self._connected = threading.Event()
        self._running = False
        self._stats_lock = threading.Lock()
        self._stats = {
            'published': 0,
            'publish_failed': 0,
            'received': 0,
            'connects': 0,
            'disconnects': 0,
        }

    @property
    def broker(self) -> str:
        return f"{self.broker_host}:{self.broker_port}"

    def _bump(self, key: str) -> None:
        with self._stats_lock:
            self._stats[key] += 1

    # ===== MQTT Callbacks (run in MQTT thread) =====

    def _on_connect(self, client, userdata, flags, reason_code, properties=None) -> None:
        """Re-issue every registered subscription once the broker accepts us."""
        if reason_code.is_failure:
            self.logger.error(
                event=LogEvent.MQTT_CONNECTION_ERROR,
                message=f"Broker refused connection ({reason_code})",
                metadata={'broker': self.broker}
            )
            return

        self._connected.set()
        self._bump('connects')

        with self._lock:
            topics = list(self._subscriptions)
        for topic in topics:
            client.subscribe(topic, qos=self.qos)

        self.logger.info(
            event=LogEvent.MQTT_CONNECTED,
            message="Connected to MQTT broker",
            metadata={
                'broker': self.broker,
                'client_id': self.client_id,
                'topics': topics,
            }
        )
        self._notify_connection(True)

    def _on_disconnect(self, client, userdata, disconnect_flags, reason_code, properties=None) -> None:
        self._connected.clear()
        self._bump('disconnects')

        if self._running:
            self.logger.warning(
                event=LogEvent.MQTT_RECONNECTING,
                message="Disconnected from MQTT broker, reconnecting",
                metadata={'broker': self.broker, 'reason_code': str(reason_code)}
            )
        else:
            self.logger.info(
                event=LogEvent.MQTT_DISCONNECTED,
                message="Disconnected from MQTT broker",
                metadata={'broker': self.broker}
            )
        self._notify_connection(False)

    def _on_message(self, client, userdata, msg) -> None:
        """Decode the payload and fan it out to matching subscriptions."""
        try:
            payload = msg.payload.decode('utf-8')
        except UnicodeDecodeError as e:
            self.logger.error(
                event=LogEvent.DECODE_ERROR,
                message="Dropping non UTF-8 payload",
                exc_info=e,
                metadata={'topic': msg.topic}
            )
            return

        self._bump('received')
        self.logger.debug(
            event=LogEvent.MQTT_MESSAGE_RECEIVED,
            message="Message received",
            metadata={'topic': msg.topic, 'payload': payload}
        )

        with self._lock:
            callbacks = [
                callback
                for pattern, registered in self._subscriptions.items()
                if mqtt.topic_matches_sub(pattern, msg.topic)
                for callback in registered
            ]

        for callback in callbacks:
            try:
                callback(msg.topic, payload)
            except Exception as e:
                self.logger.error(
                    event=LogEvent.HANDLER_ERROR,
                    message="Message callback failed",
                    exc_info=e,
                    metadata={'topic': msg.topic}
                )

    def _notify_connection(self, connected: bool) -> None:
        with self._lock:
            listeners = list(self._connection_listeners)
        for listener in listeners:
            try:
                listener(connected)
            except Exception as e:
                self.logger.error(
                    event=LogEvent.HANDLER_ERROR,
                    message="Connection listener failed",
                    exc_info=e
                )

    # ===== Lifecycle =====

    def connect(self, timeout: float = 10.0) -> bool:
        """
        Start the network loop and wait for the first connection.

        The loop keeps retrying in the background after a timeout, so a
        False return only means "not connected yet".

        Args:
            timeout: Seconds to wait for the first CONNACK

        Returns:
            True if connected within timeout
        """
        if self._running:
            return self._connected.wait(timeout=timeout)

        try:
            self.client.connect_async(self.broker_host, self.broker_port, keepalive=self.keepalive)
            self.client.loop_start()
            self._running = True
        except (OSError, ValueError) as e:
            self.logger.error(
                event=LogEvent.MQTT_CONNECTION_ERROR,
                message="Failed to start MQTT connection",
                exc_info=e,
                metadata={'broker': self.broker}
            )
            return False

        if self._connected.wait(timeout=timeout):
            return True

        self.logger.warning(
            event=LogEvent.MQTT_RECONNECTING,
            message="Broker not reachable yet, retrying in background",
            metadata={'broker': self.broker, 'timeout': timeout}
        )
        return False

    def disconnect(self) -> None:
        """Stop the network loop and disconnect. Safe to call multiple times."""
        if not self._running:
            return
        self._running = False
        self.client.disconnect()
        self.client.loop_stop()
        self._connected.clear()

    def is_connected(self) -> bool:
        return self._connected.is_set()

    # ===== Pub/Sub =====

    def subscribe(self, topic: str, callback: MessageCallback) -> None:
        """
        Register a callback(topic, payload) for a topic filter.

        Wildcards (+, #) are supported. The subscription is sent now if
        connected and again on every reconnect.
        """
        with self._lock:
            first = topic not in self._subscriptions
            self._subscriptions.setdefault(topic, []).append(callback)

        if first and self._connected.is_set():
            self.client.subscribe(topic, qos=self.qos)

        self.logger.info(
            event=LogEvent.MQTT_SUBSCRIBED,
            message="Subscription registered",
            metadata={'topic': topic, 'active': self._connected.is_set()}
        )

    def unsubscribe(self, topic: str) -> None:
        with self._lock:
            removed = self._subscriptions.pop(topic, None)
        if removed and self._connected.is_set():
            self.client.unsubscribe(topic)

    def add_connection_listener(self, listener: ConnectionListener) -> None:
        """Register listener(connected: bool) for connection changes."""
        with self._lock:
            self._connection_listeners.append(listener)

    def publish(
        self,
        topic: str,
        payload: str,
        qos: Optional[int] = None,
        retain: bool = False
    ) -> bool:
        """
        Publish a string payload without waiting for delivery.

        Returns:
            True if the message was handed to the connection, False otherwise
        """
        if not self._connected.is_set():
            self._bump('publish_failed')
            self.logger.warning(
                event=LogEvent.MQTT_PUBLISH_FAILED,
                message="Cannot publish: not connected to broker",
                metadata={'topic': topic}
            )
            return False

        try:
            result = self.client.publish(
                topic=topic,
                payload=payload,
                qos=self.qos if qos is None else qos,
                retain=retain
            )
        except (OSError, ValueError) as e:
            self._bump('publish_failed')
            self.logger.error(
                event=LogEvent.MQTT_PUBLISH_ERROR,
                message="Error publishing message",
                exc_info=e,
                metadata={'topic': topic}
            )
            return False

        if result.rc != mqtt.MQTT_ERR_SUCCESS:
            self._bump('publish_failed')
            self.logger.warning(
                event=LogEvent.MQTT_PUBLISH_FAILED,
                message=f"Publish failed (rc={result.rc})",
                metadata={'topic': topic}
            )
            return False

        self._bump('published')
        self.logger.info(
            event=LogEvent.MQTT_PUBLISH_SUCCESS,
            message="Published message",
            metadata={'topic': topic, 'payload': payload}
        )
        return True

    def get_stats(self) -> Dict[str, Any]:
        """Message counters and connection status."""
        with self._stats_lock:
            stats = dict(self._stats)
        with self._lock:
            stats['topics'] = sorted(self._subscriptions)
        stats['connected'] = self._connected.is_set()
        stats['broker'] = self.broker
        return stats
