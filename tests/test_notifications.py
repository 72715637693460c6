"""
Unit tests for Notifier.
"""

from doorlock_control import NotificationLevel, Notifier


class TestNotifier:
    """Tests for Notifier."""

    def test_levels_and_history(self):
        notifier = Notifier()
        notifier.success("🚪 Open command sent!")
        notifier.alert("🚨 Emergency detected at 10:00:00", entry_id=5)

        assert [n.level for n in notifier.history()] == [
            NotificationLevel.SUCCESS,
            NotificationLevel.ALERT,
        ]
        alert = notifier.history(NotificationLevel.ALERT)[0]
        assert alert.metadata == {'entry_id': 5}

    def test_history_bounded(self):
        notifier = Notifier(history_size=3)
        for i in range(5):
            notifier.info(f"message {i}")

        assert [n.message for n in notifier.history()] == ["message 2", "message 3", "message 4"]

    def test_subscribers_called_and_isolated(self):
        notifier = Notifier()
        received = []

        def explode(notification):
            raise RuntimeError("boom")

        notifier.subscribe(explode)
        notifier.subscribe(received.append)

        notification = notifier.error("Failed to record access log")

        assert received == [notification]
