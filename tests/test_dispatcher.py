"""
Unit tests for HandlerRegistry and EventDispatcher.
"""

import threading

import pytest

from doorlock_control import EventDispatcher, HandlerNotRegisteredError, HandlerRegistry


class TestHandlerRegistry:
    """Tests for HandlerRegistry."""

    def test_register_and_execute(self):
        registry = HandlerRegistry()
        received = []
        registry.register("status_report", received.append, "Apply a status report")

        registry.execute("status_report", "Open")

        assert received == ["Open"]
        assert registry.is_available("status_report")
        assert registry.count() == 1
        assert registry.get_help() == {"status_report": "Apply a status report"}

    def test_double_registration_rejected(self):
        registry = HandlerRegistry()
        registry.register("status_report", lambda p: None, "first")

        with pytest.raises(ValueError):
            registry.register("status_report", lambda p: None, "second")

    def test_unknown_kind(self):
        registry = HandlerRegistry()
        registry.register("status_report", lambda p: None, "Apply a status report")

        with pytest.raises(HandlerNotRegisteredError) as exc:
            registry.execute("reboot", None)
        assert "status_report" in str(exc.value)


class TestEventDispatcher:
    """Tests for EventDispatcher."""

    def test_process_pending_in_order(self):
        registry = HandlerRegistry()
        seen = []
        registry.register("a", lambda p: seen.append(("a", p)), "a")
        registry.register("b", lambda p: seen.append(("b", p)), "b")
        dispatcher = EventDispatcher(registry)

        dispatcher.submit("a", 1)
        dispatcher.submit("b", 2)
        dispatcher.submit("a", 3)

        assert dispatcher.pending() == 3
        assert dispatcher.process_pending() == 3
        assert seen == [("a", 1), ("b", 2), ("a", 3)]
        assert dispatcher.pending() == 0

    def test_failures_do_not_stop_processing(self):
        registry = HandlerRegistry()
        seen = []

        def explode(payload):
            raise RuntimeError("boom")

        registry.register("bad", explode, "always fails")
        registry.register("good", seen.append, "records payload")
        dispatcher = EventDispatcher(registry)

        dispatcher.submit("bad", None)
        dispatcher.submit("unknown", None)
        dispatcher.submit("good", "ok")
        dispatcher.process_pending()

        assert seen == ["ok"]
        stats = dispatcher.get_stats()
        assert stats['processed'] == 1
        assert stats['failed'] == 2

    def test_worker_thread_serializes_events(self):
        registry = HandlerRegistry()
        seen = []
        threads = set()

        def handler(payload):
            seen.append(payload)
            threads.add(threading.current_thread().name)

        registry.register("event", handler, "records payload")
        dispatcher = EventDispatcher(registry, name="test-dispatch")
        dispatcher.start()
        try:
            producers = [
                threading.Thread(target=lambda n=n: [dispatcher.submit("event", (n, i)) for i in range(50)])
                for n in range(4)
            ]
            for t in producers:
                t.start()
            for t in producers:
                t.join()
            dispatcher.join()
        finally:
            dispatcher.stop()

        assert len(seen) == 200
        assert threads == {"test-dispatch"}
        for n in range(4):
            assert [i for m, i in seen if m == n] == list(range(50))
        assert not dispatcher.is_running()
