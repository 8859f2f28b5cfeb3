"""
Log WebSocket Management Module
================================

Real-time log streaming over the ``/logs`` WebSocket. Trip monitor events,
alarm commands, location errors and persistence failures are all reported
through log_from_thread(), which can be called from any thread.

Message Format:
--------------
    {
        "msg_type": "log" | "error" | "warning",
        "message": "[TRIP_MONITOR] 3f2a... ARRIVED (distance 412 m)"
    }

Usage Example:
-------------
    from wakeme.Core import log_ws

    log_ws.log_from_thread("[TRIP_MONITOR] Monitoring started")
    log_ws.log_from_thread("[PERSISTENCE] Save failed: timeout", "error")
"""

from typing import Dict, Any
from fastapi import WebSocket
from .wsBase import WebSocketManager


def log_from_thread(message: str, msg_type: str = "log"):
    """
    Thread-safe entry point for log messages.

    Every message is printed to the console; when monitoring clients are
    connected it is also broadcast to them.

    Args:
        message: Log message content
        msg_type: "log" (default), "warning" or "error"
    """
    print(message)
    if log_ws_manager.has_clients:
        payload: Dict[str, Any] = {"msg_type": msg_type, "message": str(message)}
        log_ws_manager.send_from_thread(payload)


class LogWebSocketManager(WebSocketManager):
    """WebSocket manager for the ``/logs`` stream."""

    async def handle_message(self, ws: WebSocket, message: str):
        # Clients only listen on this stream; a ping gets a pong
        if message.strip().lower() == "ping":
            await ws.send_text("pong")
            return
        print(f"[LOG-WS] Received message from client: {message}")


# ============================================================
# GLOBAL LOG WEBSOCKET MANAGER INSTANCE
# ============================================================
log_ws_manager = LogWebSocketManager()
