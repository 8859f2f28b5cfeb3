"""
Monitor WebSocket Management Module
====================================

Bookkeeping for live trip monitoring connections (``/trips/{id}/monitor``).

- One monitoring session per trip: a second connection for a trip that is
  already being monitored is refused, so two sample streams never evaluate
  the same trip concurrently.
- MonitorSession.send() may be called from any thread (monitor callbacks,
  persistence worker). Messages go through one outgoing queue drained by a
  writer task, so the client receives them in the order they were sent.
"""

import asyncio
from typing import Any, Dict, Optional

from fastapi import WebSocket

from .wsBase import WebSocketManager


class MonitorSession:
    """Outgoing message channel of one monitoring connection."""

    def __init__(self, trip_id: str, ws: WebSocket, loop: asyncio.AbstractEventLoop):
        self.trip_id = trip_id
        self.ws = ws
        self.loop = loop
        self._outbox: asyncio.Queue = asyncio.Queue()
        self._writer = loop.create_task(self._write_loop())

    async def _write_loop(self):
        while True:
            payload = await self._outbox.get()
            try:
                await self.ws.send_json(payload)
            except Exception as e:
                print(f"[MONITOR-WS] {self.trip_id}: could not send {payload.get('type')}: {e}")
            finally:
                self._outbox.task_done()

    def send(self, payload: Dict[str, Any]):
        """Queue a JSON message; safe from any thread."""
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is self.loop:
            self._outbox.put_nowait(payload)
        else:
            self.loop.call_soon_threadsafe(self._outbox.put_nowait, payload)

    async def drain(self):
        """Wait until every queued message has been written."""
        await self._outbox.join()

    async def close(self):
        """Flush the queue and stop the writer task."""
        await self.drain()
        self._writer.cancel()
        try:
            await self._writer
        except asyncio.CancelledError:
            pass


class MonitorWebSocketManager(WebSocketManager):
    """
    Tracks monitoring connections and the trip each one owns.

    Attributes:
        sessions: trip_id → active MonitorSession
    """

    def __init__(self):
        super().__init__()
        self.sessions: Dict[str, MonitorSession] = {}

    def claim(self, trip_id: str, ws: WebSocket) -> Optional[MonitorSession]:
        """
        Bind a connection to a trip. Must be called from the event loop.

        Returns:
            MonitorSession, or None if the trip is already monitored
        """
        with self._lock:
            if trip_id in self.sessions:
                return None
            session = MonitorSession(trip_id, ws, asyncio.get_running_loop())
            self.sessions[trip_id] = session
            return session

    def release(self, session: MonitorSession):
        """Unbind a session. Idempotent."""
        with self._lock:
            if self.sessions.get(session.trip_id) is session:
                del self.sessions[session.trip_id]

    def is_monitored(self, trip_id: str) -> bool:
        with self._lock:
            return trip_id in self.sessions


# ============================================================
# GLOBAL MONITOR WEBSOCKET MANAGER INSTANCE
# ============================================================
monitor_ws_manager = MonitorWebSocketManager()
