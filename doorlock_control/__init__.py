"""
Doorlock Control
================

Command reconciliation and the dashboard session.

Architecture:
- reconciler.py: DeviceCommandReconciler (commands, device state, audit views)
- dispatcher.py: EventDispatcher (one worker thread for inbound events)
- registry.py: HandlerRegistry (event kind → handler)
- notifications.py: Notifier (operator feedback)
- session.py: DashboardSession (owning context)
- config.py: DashboardConfig (YAML + env)

Example:
    >>> from doorlock_control import DashboardConfig, DashboardSession
    >>> session = DashboardSession.from_config(DashboardConfig.from_yaml(path))
    >>> session.start()
    >>> session.open_door()
"""

from .config import DashboardConfig, DeviceConfig, MQTTConfig, SupabaseConfig
from .dispatcher import EventDispatcher
from .errors import HandlerNotRegisteredError, InvalidTransitionError, UnknownDeviceError
from .notifications import Notification, NotificationLevel, Notifier
from .reconciler import DeviceCommandReconciler
from .registry import HandlerRegistry
from .session import DashboardSession

__all__ = [
    'DashboardConfig',
    'DeviceConfig',
    'MQTTConfig',
    'SupabaseConfig',
    'EventDispatcher',
    'HandlerNotRegisteredError',
    'InvalidTransitionError',
    'UnknownDeviceError',
    'Notification',
    'NotificationLevel',
    'Notifier',
    'DeviceCommandReconciler',
    'HandlerRegistry',
    'DashboardSession',
]
