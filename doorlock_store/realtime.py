"""
Realtime Insert Listener
========================

Bounded Context: Change Notification (Supabase Realtime)

Follows INSERTs on one table through Supabase Realtime and hands each new
row to a callback.

Threading:
  - supabase-py realtime is asyncio based; the listener runs its own event
    loop in a daemon thread
  - on_insert and on_error are called from that thread (keep them fast)

Delivery:
  - At-least-once: the same row may be delivered more than once
  - No ordering guarantee against direct queries
"""

import asyncio
import inspect
import logging
import threading
from typing import Any, Callable, Dict, Optional

from supabase import acreate_client

logger = logging.getLogger(__name__)

InsertCallback = Callable[[Dict[str, Any]], None]
ErrorCallback = Callable[[Exception], None]


def extract_inserted_row(payload: Any) -> Optional[Dict[str, Any]]:
    """
    Pull the new row out of a postgres_changes payload.

    Handles the realtime-py shape ({"data": {"record": {...}}}) and the
    supabase-js shape ({"new": {...}}).
    """
    if not isinstance(payload, dict):
        return None
    data = payload.get('data')
    if isinstance(data, dict) and isinstance(data.get('record'), dict):
        return data['record']
    for key in ('record', 'new'):
        if isinstance(payload.get(key), dict) and payload[key]:
            return payload[key]
    return None


class RealtimeListener:
    """
    Background subscription to row inserts on a table.

    A failed connect or subscribe is reported to on_error and retried with
    exponential backoff until stop() is called.

    Example:
        listener = RealtimeListener(url, key, table="access_logs")
        listener.start(on_insert=lambda row: queue.put(row))
        ...
        listener.stop()
    """

    def __init__(
        self,
        url: str,
        key: str,
        table: str = "access_logs",
        schema: str = "public",
        channel_name: str = "realtime-logs",
        access_token: Optional[str] = None,
        retry_min_delay: float = 1.0,
        retry_max_delay: float = 30.0,
    ):
        self.url = url
        self.key = key
        self.table = table
        self.schema = schema
        self.channel_name = channel_name
        self.access_token = access_token
        self.retry_min_delay = retry_min_delay
        self.retry_max_delay = retry_max_delay

        self._on_insert: Optional[InsertCallback] = None
        self._on_error: Optional[ErrorCallback] = None
        self._thread: Optional[threading.Thread] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._stop: Optional[asyncio.Event] = None
        self._stop_requested = threading.Event()
        self._subscribed = threading.Event()
        self.failures = 0

    def start(self, on_insert: InsertCallback, on_error: Optional[ErrorCallback] = None) -> None:
        """Start listening in a daemon thread (non-blocking)."""
        if self._thread is not None:
            return
        self._on_insert = on_insert
        self._on_error = on_error
        self._stop_requested.clear()
        self._thread = threading.Thread(
            target=self._run_loop,
            name=f"realtime-{self.table}",
            daemon=True,
        )
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        """Unsubscribe and stop the listener thread."""
        if self._thread is None:
            return
        # _listen checks this flag, so a stop before its loop exists still lands
        self._stop_requested.set()
        loop, stop_event = self._loop, self._stop
        if loop is not None and stop_event is not None:
            try:
                loop.call_soon_threadsafe(stop_event.set)
            except RuntimeError:
                logger.debug("Realtime loop already closed")
        self._thread.join(timeout=timeout)
        if self._thread.is_alive():
            logger.warning(f"⚠️ Realtime listener did not stop within {timeout}s")
        self._thread = None
        self._subscribed.clear()
        logger.info(f"✅ Realtime listener stopped ({self.table})")

    def wait_subscribed(self, timeout: float = 10.0) -> bool:
        return self._subscribed.wait(timeout=timeout)

    def is_subscribed(self) -> bool:
        return self._subscribed.is_set()

    def handle_change(self, payload: Any) -> None:
        """postgres_changes callback: forward the inserted row."""
        row = extract_inserted_row(payload)
        if row is None:
            logger.warning(f"⚠️ Ignoring realtime payload without a row: {payload!r}")
            return
        if self._on_insert is not None:
            self._on_insert(row)

    def _on_status(self, status: Any, error: Optional[Exception] = None) -> None:
        status_text = getattr(status, 'value', status)
        logger.info(f"🔔 Realtime subscription status: {status_text}")
        if str(status_text).upper() == "SUBSCRIBED":
            self._subscribed.set()
        elif error is not None:
            logger.error(f"❌ Realtime subscription error: {error}")
            self._subscribed.clear()
            self._report_error(error)

    def _report_error(self, error: Exception) -> None:
        if self._on_error is None:
            return
        try:
            self._on_error(error)
        except Exception as e:
            logger.error(f"❌ Realtime error callback failed: {e}")

    def _run_loop(self) -> None:
        delay = self.retry_min_delay
        while not self._stop_requested.is_set():
            try:
                asyncio.run(self._listen())
                return
            except Exception as e:
                self.failures += 1
                self._subscribed.clear()
                logger.error(
                    f"❌ Realtime listener failed ({self.failures}), retrying in {delay:.1f}s: {e}"
                )
                self._report_error(e)
            finally:
                self._loop = None
                self._stop = None

            if self._stop_requested.wait(delay):
                return
            delay = min(delay * 2, self.retry_max_delay)

    async def _listen(self) -> None:
        self._loop = asyncio.get_running_loop()
        self._stop = asyncio.Event()
        if self._stop_requested.is_set():
            return

        client = await acreate_client(self.url, self.key)
        if self.access_token:
            result = client.realtime.set_auth(self.access_token)
            if inspect.isawaitable(result):
                await result

        channel = client.channel(self.channel_name)
        channel.on_postgres_changes(
            "INSERT",
            schema=self.schema,
            table=self.table,
            callback=self.handle_change,
        )
        await channel.subscribe(self._on_status)
        logger.info(f"📥 Listening for inserts on {self.schema}.{self.table}")

        if self._stop_requested.is_set():
            self._stop.set()
        await self._stop.wait()
        await client.remove_channel(channel)
