"""
EventDispatcher - Single-consumer event loop

Bounded Context: Serializing inbound events
Responsibilities:
  - Accept events from any thread (paho network thread, realtime thread)
  - Execute them one at a time, in arrival order, on one worker thread
  - Route each event to its handler through the HandlerRegistry

Threading Model:
  - MQTT Network Thread (paho internal) → submit("status_report", ...)
  - Realtime Thread (asyncio loop)      → submit("access_log_insert", ...)
  - Dispatch Thread (ours)              → registry.execute(kind, payload)

No two handlers ever run concurrently, so reconciler state has a single
writer on the inbound side.
"""

import logging
import queue
import threading
from typing import Any, Dict, Optional

from .registry import HandlerNotRegisteredError, HandlerRegistry

logger = logging.getLogger(__name__)


class EventDispatcher:
    """
    Unbounded FIFO of (kind, payload) events drained by one worker thread.

    Example:
        dispatcher = EventDispatcher(registry)
        dispatcher.start()
        transport.subscribe(topic, lambda t, p: dispatcher.submit("status_report", p))
        ...
        dispatcher.stop()

    Without start(), events accumulate until process_pending() is called,
    which runs them on the calling thread.
    """

    def __init__(self, registry: HandlerRegistry, name: str = "doorlock-dispatch"):
        self.registry = registry
        self.name = name

        self._queue: "queue.Queue[tuple]" = queue.Queue()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

        self._stats_lock = threading.Lock()
        self._processed = 0
        self._failed = 0

    def submit(self, kind: str, payload: Any) -> None:
        """Enqueue an event. Thread-safe, never blocks."""
        self._queue.put((kind, payload))

    def start(self) -> None:
        if self._thread is not None:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._dispatch_loop, name=self.name, daemon=True)
        self._thread.start()
        logger.info("📬 Event dispatcher started")

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the worker after the event it is currently running."""
        if self._thread is None:
            return
        self._stop_event.set()
        self._thread.join(timeout=timeout)
        self._thread = None
        logger.info(f"✅ Event dispatcher stopped ({self.pending()} events left)")

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def pending(self) -> int:
        return self._queue.qsize()

    def join(self) -> None:
        """Block until every submitted event has been handled."""
        self._queue.join()

    def process_pending(self) -> int:
        """
        Run all queued events on the calling thread.

        Returns:
            Number of events handled
        """
        handled = 0
        while True:
            try:
                kind, payload = self._queue.get_nowait()
            except queue.Empty:
                return handled
            self._handle(kind, payload)
            handled += 1

    def _dispatch_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                kind, payload = self._queue.get(timeout=0.1)
            except queue.Empty:
                continue
            self._handle(kind, payload)

    def _handle(self, kind: str, payload: Any) -> None:
        try:
            self.registry.execute(kind, payload)
            with self._stats_lock:
                self._processed += 1
        except HandlerNotRegisteredError as e:
            with self._stats_lock:
                self._failed += 1
            logger.warning(f"⚠️ {e}")
        except Exception as e:
            with self._stats_lock:
                self._failed += 1
            logger.error(f"❌ Error handling {kind} event: {e}", exc_info=True)
        finally:
            self._queue.task_done()

    def get_stats(self) -> Dict[str, Any]:
        with self._stats_lock:
            return {
                'processed': self._processed,
                'failed': self._failed,
                'pending': self.pending(),
                'running': self.is_running(),
                'kinds': sorted(self.registry.available_kinds),
            }
