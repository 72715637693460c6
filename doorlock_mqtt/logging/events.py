"""
Structured Log Event Types
==========================

Bounded Context: Observability Event Taxonomy

Typed event names for the door lock structured logs.

Event Naming Convention:
    <category>.<name>   e.g. "command.acked", "error.audit_write"

The category is also written as its own JSON field, so a log pipeline
can filter on category = "alert" without parsing event names.
"""

from enum import Enum


class LogEvent(str, Enum):
    """
    Typed log event names for structured logging.

    Categories:
    - mqtt.*: MQTT broker interactions
    - command.*: Door command lifecycle
    - status.*: Device status reports
    - audit.*: Access log store interactions
    - alert.*: Emergency alerts
    - error.*: Error conditions
    """

    # ========== MQTT Events ==========
    MQTT_CONNECTED = "mqtt.connected"
    """MQTT broker connection established."""

    MQTT_DISCONNECTED = "mqtt.disconnected"
    """MQTT broker connection lost."""

    MQTT_SUBSCRIBED = "mqtt.subscribed"
    """Topic subscription issued to broker."""

    MQTT_PUBLISH_SUCCESS = "mqtt.publish.success"
    """Message handed to the broker connection."""

    MQTT_PUBLISH_FAILED = "mqtt.publish.failed"
    """Message publication failed."""

    MQTT_RECONNECTING = "mqtt.reconnecting"
    """Waiting for the network loop to reconnect."""

    MQTT_MESSAGE_RECEIVED = "mqtt.message.received"
    """Message received on a subscribed topic."""

    # ========== Command Events ==========
    COMMAND_ISSUED = "command.issued"
    """Door command published and registered as pending."""

    COMMAND_ACKED = "command.acked"
    """Pending command matched by a consistent status report."""

    COMMAND_TIMED_OUT = "command.timed_out"
    """Pending command expired without a consistent status report."""

    # ========== Status Events ==========
    STATUS_RECEIVED = "status.received"
    """Status report applied to device state."""

    STATUS_UNSOLICITED = "status.unsolicited"
    """Status report with no matching pending command."""

    # ========== Audit Events ==========
    AUDIT_WRITTEN = "audit.written"
    """Access log entry inserted into the store."""

    AUDIT_RECEIVED = "audit.received"
    """Access log insert notification applied to the views."""

    AUDIT_DUPLICATE = "audit.duplicate"
    """Access log notification already seen (dropped)."""

    AUDIT_HISTORY_LOADED = "audit.history_loaded"
    """Access log history merged from a store query."""

    # ========== Alert Events ==========
    ALERT_RAISED = "alert.raised"
    """Emergency access event detected."""

    # ========== Error Events ==========
    DECODE_ERROR = "error.decode"
    """Failed to decode an inbound payload."""

    AUDIT_WRITE_ERROR = "error.audit_write"
    """Access log insert failed."""

    UNKNOWN_DEVICE_ERROR = "error.unknown_device"
    """Event referenced a device that is not configured."""

    MQTT_CONNECTION_ERROR = "error.mqtt_connection"
    """Failed to connect to MQTT broker."""

    MQTT_PUBLISH_ERROR = "error.mqtt_publish"
    """Error during message publication."""

    HANDLER_ERROR = "error.handler"
    """Message callback raised."""

    @property
    def category(self) -> str:
        """Leading segment of the event name ("mqtt", "command", ...)."""
        return self.value.split(".", 1)[0]

    @property
    def is_error(self) -> bool:
        return self.category == "error"
