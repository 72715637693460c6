"""
Notifier - user-visible notifications

Bounded Context: Operator feedback
Responsibilities:
  - Advisory messages for command sends, settings changes, auth results
  - Error messages for store failures and broker disconnects
  - Alert messages for emergency access events

Notifications are never fatal. Subscribers are called synchronously on the
thread that emits; a failing subscriber is logged and skipped.
"""

import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Deque, Dict, List, Optional

from doorlock_mqtt.schemas import utc_now

logger = logging.getLogger(__name__)


class NotificationLevel(str, Enum):
    SUCCESS = "success"
    INFO = "info"
    ERROR = "error"
    ALERT = "alert"


@dataclass(frozen=True)
class Notification:
    level: NotificationLevel
    message: str
    created_at: datetime = field(default_factory=utc_now)
    metadata: Dict[str, Any] = field(default_factory=dict)


NotificationCallback = Callable[[Notification], None]


class Notifier:
    """
    Fan-out of notifications with a bounded history.

    Example:
        notifier = Notifier()
        notifier.subscribe(lambda n: print(n.level.value, n.message))
        notifier.success("🚪 Open command sent!")
    """

    def __init__(self, history_size: int = 100):
        self._history: Deque[Notification] = deque(maxlen=history_size)
        self._subscribers: List[NotificationCallback] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: NotificationCallback) -> None:
        with self._lock:
            self._subscribers.append(callback)

    def history(self, level: Optional[NotificationLevel] = None) -> List[Notification]:
        with self._lock:
            items = list(self._history)
        if level is None:
            return items
        return [n for n in items if n.level is level]

    def notify(self, level: NotificationLevel, message: str, **metadata: Any) -> Notification:
        notification = Notification(level=level, message=message, metadata=metadata)
        with self._lock:
            self._history.append(notification)
            subscribers = list(self._subscribers)

        for callback in subscribers:
            try:
                callback(notification)
            except Exception as e:
                logger.error(f"❌ Notification subscriber failed: {e}", exc_info=True)
        return notification

    def success(self, message: str, **metadata: Any) -> Notification:
        return self.notify(NotificationLevel.SUCCESS, message, **metadata)

    def info(self, message: str, **metadata: Any) -> Notification:
        return self.notify(NotificationLevel.INFO, message, **metadata)

    def error(self, message: str, **metadata: Any) -> Notification:
        return self.notify(NotificationLevel.ERROR, message, **metadata)

    def alert(self, message: str, **metadata: Any) -> Notification:
        return self.notify(NotificationLevel.ALERT, message, **metadata)
