"""
wakeme/main.py
============================================
FastAPI Application for the WakeMe Trip Alarm
============================================

Entry point of the trip alarm backend. A traveller creates a trip with a
destination and a radius, then streams positions over a WebSocket; the
server runs the geofence evaluation and the alarm state machine and tells
the client when to sound the alarm.

Architecture Overview:
---------------------
- REST API: Trip records and their location history (/trips)
- WebSocket: Live trip monitoring (/trips/{id}/monitor)
- WebSocket: Real-time system logs (/logs)
- Background Services: One persistence worker thread per monitored trip

Run:
    uvicorn wakeme.main:app --reload
"""

# Environment Configuration
from dotenv import load_dotenv
load_dotenv()

# FastAPI Core
from fastapi import FastAPI, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import asyncio

from wakeme.Core.config import settings, parse_origins
from wakeme.Controller.Routes import trips, monitor

# WebSocket Management
from wakeme.Core import log_ws
from wakeme.Core.monitor_ws import monitor_ws_manager

# Database
from wakeme.DB.base import Base
from wakeme.DB.session import engine


_http_allow_all, _http_origins = parse_origins(settings.HTTP_ALLOWED_ORIGINS)
_ws_allow_all, _ws_origins = parse_origins(settings.WS_ALLOWED_ORIGINS)


# ============================================================
# APPLICATION LIFESPAN MANAGEMENT
# ============================================================
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan context manager.

    Startup Sequence:
        1. Configure event loop for WebSocket managers
        2. Create missing tables (schema changes go through Alembic)

    Shutdown Sequence:
        - Monitoring sockets are closed by the server; each one tears its
          trip monitor down on disconnect
    """
    loop = asyncio.get_running_loop()
    log_ws.log_ws_manager.set_main_loop(loop)
    monitor_ws_manager.set_main_loop(loop)

    Base.metadata.create_all(bind=engine)

    print("[STARTUP] ✅ Application initialization complete")

    yield

    active = len(monitor_ws_manager.sessions)
    print(f"[SHUTDOWN] 🛑 Application shutdown initiated ({active} trips still monitored)")


# ============================================================
# APPLICATION INSTANCE CREATION
# ============================================================
app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.PROJECT_VERSION,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_http_origins,
    allow_credentials=not _http_allow_all,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
def health():
    """Health check endpoint for load balancers and container probes."""
    return {"status": "ok"}


# ============================================================
# ROUTE REGISTRATION
# ============================================================
app.include_router(trips.router, prefix="/trips", tags=["trips"])
app.include_router(monitor.router, prefix="/trips", tags=["monitor"])


# ============================================================
# WEBSOCKET ENDPOINTS
# ============================================================
async def socket_handler(ws: WebSocket, manager):
    """
    Generic WebSocket connection handler with origin validation.

    Registers the connection, forwards every text frame to the manager and
    unregisters on disconnect.
    """
    origin = ws.headers.get("origin")

    if (not _ws_allow_all) and (origin not in _ws_origins):
        print(f"[WS] ❌ Connection rejected - unauthorized origin: {origin}")
        await ws.close(code=1008)
        return

    await manager.register(ws)

    try:
        while True:
            message = await ws.receive_text()
            await manager.handle_message(ws, message)
    except Exception as e:
        print(f"[WS] Connection closed: {e}")
    finally:
        manager.unregister(ws)


@app.websocket("/logs")
async def websocket_logs(ws: WebSocket):
    """
    WebSocket endpoint for streaming real-time system logs.

    Message Format:
        {"msg_type": "log" | "error" | "warning", "message": "..."}
    """
    await socket_handler(ws, log_ws.log_ws_manager)


# ============================================================
# API INFORMATION ENDPOINT
# ============================================================
@app.get("/api")
def api_info():
    """API information and current configuration."""
    return {
        "status": "online",
        "version": settings.PROJECT_VERSION,
        "features": {
            "websockets": ["/logs", "/trips/{trip_id}/monitor"],
            "persist_interval_s": settings.PERSIST_INTERVAL_S,
            "default_radius_m": settings.DEFAULT_RADIUS_M,
            "geofence_exit_margin_ratio": settings.GEOFENCE_EXIT_MARGIN_RATIO,
            "monitored_trips": len(monitor_ws_manager.sessions),
        },
        "endpoints": {
            "trips": "/trips/*",
            "monitor": "/trips/{trip_id}/monitor (WebSocket)",
            "logs": "/logs (WebSocket)",
            "health": "/health"
        }
    }
