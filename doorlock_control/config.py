"""
Configuration schema for the door dashboard.

Defines broker settings, the devices (control/status topics), Supabase
credentials and reconciler tuning. Loaded from YAML; Supabase credentials
fall back to environment variables so secrets stay out of the file.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Sequence
import yaml


@dataclass(frozen=True)
class MQTTConfig:
    """MQTT broker configuration (defaults: HiveMQ public broker over wss)."""

    broker: str = "broker.hivemq.com"
    port: int = 8884
    transport: str = "websockets"  # "websockets" or "tcp"
    ws_path: str = "/mqtt"
    tls: bool = True
    username: Optional[str] = None
    password: Optional[str] = None
    client_id: Optional[str] = None
    qos: int = 0
    keepalive: int = 60
    reconnect_min_delay: int = 1
    reconnect_max_delay: int = 60

    def __post_init__(self):
        if not self.broker:
            raise ValueError("MQTT broker cannot be empty")

        if not 1 <= self.port <= 65535:
            raise ValueError(
                f"MQTT port must be in [1, 65535], got {self.port}"
            )

        if self.transport not in {"websockets", "tcp"}:
            raise ValueError(
                f"Invalid MQTT transport: {self.transport}. "
                f"Must be 'websockets' or 'tcp'"
            )

        if self.qos not in {0, 1, 2}:
            raise ValueError(
                f"MQTT QoS must be 0, 1, or 2, got {self.qos}"
            )

        if not 0 < self.reconnect_min_delay <= self.reconnect_max_delay:
            raise ValueError(
                f"Reconnect delays must satisfy 0 < min <= max, got "
                f"{self.reconnect_min_delay}/{self.reconnect_max_delay}"
            )


@dataclass(frozen=True)
class DeviceConfig:
    """One door lock and its topic namespace."""

    device_id: str = "door1"
    control_topic: str = "esp32/door1/control"
    status_topic: str = "esp32/door/status"
    initial_status: str = "Closed"

    def __post_init__(self):
        if not self.device_id:
            raise ValueError("device_id cannot be empty")
        if not self.control_topic or not self.status_topic:
            raise ValueError(
                f"Device '{self.device_id}' needs both control_topic and status_topic"
            )
        if any(c in self.control_topic for c in "+#"):
            raise ValueError(
                f"control_topic cannot contain wildcards, got {self.control_topic}"
            )


@dataclass(frozen=True)
class SupabaseConfig:
    """Supabase project credentials."""

    url: Optional[str] = None
    key: Optional[str] = None
    access_log_table: str = "access_logs"

    @classmethod
    def from_env(cls, url: Optional[str] = None, key: Optional[str] = None,
                 access_log_table: str = "access_logs") -> "SupabaseConfig":
        """Explicit values win over SUPABASE_URL / SUPABASE_ANON_KEY."""
        return cls(
            url=url or os.getenv("SUPABASE_URL"),
            key=key or os.getenv("SUPABASE_ANON_KEY"),
            access_log_table=access_log_table,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.url and self.key)


@dataclass(frozen=True)
class DashboardConfig:
    """
    Main configuration for the door dashboard.

    Immutable after construction (frozen dataclass).
    """

    mqtt_config: MQTTConfig = field(default_factory=MQTTConfig)
    devices: Sequence[DeviceConfig] = field(default_factory=lambda: (DeviceConfig(),))
    supabase_config: SupabaseConfig = field(default_factory=SupabaseConfig.from_env)

    # Recent activity view size
    recent_log_limit: int = 10

    # None keeps commands pending until a consistent status arrives
    command_timeout_seconds: Optional[float] = None

    def __post_init__(self):
        object.__setattr__(self, "devices", tuple(self.devices))

        if not self.devices:
            raise ValueError("At least one device must be configured")

        ids = [d.device_id for d in self.devices]
        if len(ids) != len(set(ids)):
            raise ValueError(f"Duplicate device_id in devices: {ids}")

        # One status callback per topic
        status_topics = [d.status_topic for d in self.devices]
        if len(status_topics) != len(set(status_topics)):
            raise ValueError(f"Devices cannot share a status_topic: {status_topics}")

        if self.recent_log_limit < 1:
            raise ValueError(
                f"recent_log_limit must be >= 1, got {self.recent_log_limit}"
            )

        if self.command_timeout_seconds is not None and self.command_timeout_seconds <= 0:
            raise ValueError(
                f"command_timeout_seconds must be > 0, got {self.command_timeout_seconds}"
            )

    @property
    def default_device_id(self) -> str:
        return self.devices[0].device_id

    @classmethod
    def from_yaml(cls, yaml_path: Path) -> "DashboardConfig":
        """
        Load configuration from YAML file.

        Example YAML:
            mqtt_config:
              broker: "broker.hivemq.com"
              port: 8884
              transport: "websockets"
              ws_path: "/mqtt"
              tls: true

            devices:
              - device_id: "door1"
                control_topic: "esp32/door1/control"
                status_topic: "esp32/door/status"

            supabase_config:
              url: null   # falls back to SUPABASE_URL
              key: null   # falls back to SUPABASE_ANON_KEY

            recent_log_limit: 10
            command_timeout_seconds: null
        """
        with open(yaml_path) as f:
            data = yaml.safe_load(f) or {}

        mqtt_config = MQTTConfig(**(data.get("mqtt_config") or {}))

        devices_data = data.get("devices")
        devices = (
            [DeviceConfig(**d) for d in devices_data]
            if devices_data
            else [DeviceConfig()]
        )

        supabase_data = data.get("supabase_config") or {}
        supabase_config = SupabaseConfig.from_env(
            url=supabase_data.get("url"),
            key=supabase_data.get("key"),
            access_log_table=supabase_data.get("access_log_table", "access_logs"),
        )

        return cls(
            mqtt_config=mqtt_config,
            devices=devices,
            supabase_config=supabase_config,
            recent_log_limit=data.get("recent_log_limit", 10),
            command_timeout_seconds=data.get("command_timeout_seconds"),
        )
