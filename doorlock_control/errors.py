"""Control-plane errors (see doorlock_store.errors for the shared base)."""

from doorlock_mqtt.schemas import InvalidTransitionError
from doorlock_store.errors import DoorlockError

from .registry import HandlerNotRegisteredError


class UnknownDeviceError(DoorlockError):
    """Raised when a command or event names a device that is not configured"""
    pass


__all__ = [
    "UnknownDeviceError",
    "InvalidTransitionError",
    "HandlerNotRegisteredError",
]
