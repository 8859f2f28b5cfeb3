"""
WebSocket Base Manager Module
==============================

Thread-safe foundation for WebSocket connection management. Subclasses add
endpoint-specific behavior (log streaming, trip monitoring sessions).

Key Features:
-------------
1. **Thread Safety**: Lock-protected client list
2. **Graceful Degradation**: Clients that fail during a send are dropped
3. **Cross-Thread Communication**: send_from_thread() lets worker threads
   (persistence dispatcher, location callbacks) broadcast on the main loop
4. **Idempotent Cleanup**: unregister() can be called any number of times

Usage Example:
-------------
    manager = LogWebSocketManager()
    manager.set_main_loop(asyncio.get_running_loop())

    @app.websocket("/logs")
    async def websocket_endpoint(ws: WebSocket):
        await manager.register(ws)
        try:
            while True:
                message = await ws.receive_text()
                await manager.handle_message(ws, message)
        finally:
            manager.unregister(ws)
"""

from fastapi import WebSocket
import asyncio
from typing import List, Optional, Dict, Any
import json
import threading


class WebSocketManager:
    """
    Base WebSocket manager for multiple concurrent client connections.

    Attributes:
        clients (List[WebSocket]): Currently active WebSocket connections
        main_loop (Optional[asyncio.AbstractEventLoop]): FastAPI's event loop
        _lock (threading.Lock): Protects the client list
    """

    def __init__(self):
        self.clients: List[WebSocket] = []
        self.main_loop: Optional[asyncio.AbstractEventLoop] = None
        self._lock = threading.Lock()

    def set_main_loop(self, loop: asyncio.AbstractEventLoop):
        """
        Register FastAPI's main event loop.

        Must be called from the application lifespan so send_from_thread()
        can schedule broadcasts.
        """
        self.main_loop = loop

    async def register(self, ws: WebSocket):
        """
        Accept and register a WebSocket client.

        The client is added before accept() so no broadcast is lost during
        the handshake; a failed handshake unregisters it again.
        """
        with self._lock:
            if ws not in self.clients:
                self.clients.append(ws)

        try:
            await ws.accept()
            print(f"[WSBase] Client registered. Total clients: {len(self.clients)}")
        except Exception:
            self.unregister(ws)
            raise

    def unregister(self, ws: WebSocket):
        """Remove a client from the list. Idempotent; does not close the socket."""
        with self._lock:
            if ws in self.clients:
                self.clients.remove(ws)
                print(f"[WSBase] Client unregistered. Total clients: {len(self.clients)}")

    @property
    def has_clients(self) -> bool:
        with self._lock:
            return len(self.clients) > 0

    async def broadcast(self, message: Dict[str, Any]):
        """
        Send a JSON message to every client.

        The client list is snapshotted under the lock and sent to without
        holding it; clients that fail are unregistered afterwards.
        """
        to_remove = []

        with self._lock:
            current_clients = list(self.clients)

        for ws in current_clients:
            try:
                await ws.send_text(json.dumps(message, default=str))
            except Exception:
                to_remove.append(ws)

        for ws in to_remove:
            self.unregister(ws)

    def send_from_thread(self, message: Dict[str, Any]):
        """
        Broadcast from a non-async context.

        Schedules broadcast() on the main loop (fire and forget). Does nothing
        when no client is connected or the loop was never registered.
        """
        if not self.has_clients:
            print(f"[WSBase] No clients connected. Message not sent: {message}")
            return

        if self.main_loop:
            asyncio.run_coroutine_threadsafe(
                self.broadcast(message), self.main_loop
            )

    async def handle_message(self, ws: WebSocket, message: str):
        """Template method for incoming client messages; logs by default."""
        print(f"[WSBase] Received message: {message}")
