# wakeme/Controller/Routes/monitor.py

"""
Live Trip Monitoring WebSocket

Runs the trip monitor for one trip while a client streams its positions.

Endpoint:
- WS /trips/{trip_id}/monitor

Query Parameters (optional alarm preferences):
    volume=0.8&vibrate=true&notifications=false

Client → Server messages:
    {"type": "sample", "lat": 40.73, "lng": -73.93, "timestamp": "..."}
    {"type": "sample", "lat": 40.73, "lng": -73.93, "ageMs": 2500}  (cached fix)
    {"type": "error", "code": "PERMISSION_DENIED", "message": "..."}
    {"type": "stop_alarm"}
    {"type": "alarm_blocked"}
    {"type": "retry_alarm"}
    {"type": "end_trip"}

Server → Client messages:
    Monitor events ('started', 'sample', 'alarm', 'location_error', 'persist',
    'persistence_error', 'ended'), alarm signal commands ('alarm_signal'),
    'trip_not_found', 'trip_ended', 'already_monitored', 'invalid_message',
    and 'trip_closed' once an ended trip has been fully persisted.

Disconnecting tears the monitor down exactly like ending the trip, except
that the trip is not marked ended.
"""

import asyncio
import json
from typing import Any, Dict

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from wakeme.Core.config import parse_origins, settings
from wakeme.Core.monitor_ws import MonitorSession, monitor_ws_manager
from wakeme.DB.session import SessionLocal
from wakeme.Repositories import trip as trip_repo
from wakeme.Schemas.geo import Coordinate, Destination, GeoSample
from wakeme.Schemas.monitor import AlarmPreferences, LocationError_message, Sample_message
from wakeme.Services.alarm_signal import WebSocketAlarmSignal
from wakeme.Services.location_source import LocationError, PushLocationSource
from wakeme.Services.persistence_gateway import RepositoryPersistenceGateway
from wakeme.Services.trip_monitor import TripMonitor

router = APIRouter()

_ws_allow_all, _ws_origins = parse_origins(settings.WS_ALLOWED_ORIGINS)

# Seconds to wait for pending saves before confirming an ended trip
END_TRIP_FLUSH_TIMEOUT_S = 5.0

CLOSE_TRIP_NOT_FOUND = 4404
CLOSE_CONFLICT = 4409


def _load_destination(trip_id: str):
    with SessionLocal() as db:
        trip = trip_repo.get_trip_by_id(db, trip_id)
        if trip is None:
            return None, False
        destination = Destination(
            coordinate=Coordinate(latitude=trip.dest_lat, longitude=trip.dest_lng),
            radius_meters=trip.radius_meters,
            place_name=trip.dest_place_name,
        )
        return destination, trip.ended_at is not None


def _handle_message(
    monitor: TripMonitor,
    source: PushLocationSource,
    session: MonitorSession,
    message: Dict[str, Any]
) -> bool:
    """
    Apply one client message.

    Returns:
        bool: True when the client ended the trip
    """
    msg_type = message.get("type") if isinstance(message, dict) else None

    try:
        if msg_type == "sample":
            data = Sample_message.model_validate(message)
            source.push(GeoSample.at(data.lat, data.lng, data.timestamp), age_ms=data.age_ms)
        elif msg_type == "error":
            data = LocationError_message.model_validate(message)
            source.push_error(LocationError(data.code, data.message))
        elif msg_type == "stop_alarm":
            monitor.stop_alarm()
        elif msg_type == "alarm_blocked":
            monitor.report_alarm_blocked()
        elif msg_type == "retry_alarm":
            monitor.retry_alarm()
        elif msg_type == "end_trip":
            monitor.end_trip()
            return True
        else:
            session.send({"type": "invalid_message", "detail": f"Unknown message type: {msg_type!r}"})
    except ValidationError as e:
        session.send({"type": "invalid_message", "detail": e.errors(include_url=False, include_context=False)})

    return False


@router.websocket("/{trip_id}/monitor")
async def monitor_trip(ws: WebSocket, trip_id: str):
    """
    Monitor one trip over a WebSocket connection.

    Security:
        The origin header is validated against WS_ALLOWED_ORIGINS.
    """
    origin = ws.headers.get("origin")
    if (not _ws_allow_all) and (origin not in _ws_origins):
        print(f"[MONITOR-WS] ❌ Connection rejected - unauthorized origin: {origin}")
        await ws.close(code=1008)
        return

    await monitor_ws_manager.register(ws)

    try:
        destination, already_ended = await asyncio.to_thread(_load_destination, trip_id)

        if destination is None:
            await ws.send_json({"type": "trip_not_found", "trip_id": trip_id})
            await ws.close(code=CLOSE_TRIP_NOT_FOUND)
            return

        if already_ended:
            await ws.send_json({"type": "trip_ended", "trip_id": trip_id})
            await ws.close(code=CLOSE_CONFLICT)
            return

        try:
            preferences = AlarmPreferences.model_validate(dict(ws.query_params))
        except ValidationError as e:
            await ws.send_json({"type": "invalid_message", "detail": e.errors(include_url=False, include_context=False)})
            await ws.close(code=1008)
            return

        session = monitor_ws_manager.claim(trip_id, ws)
        if session is None:
            await ws.send_json({"type": "already_monitored", "trip_id": trip_id})
            await ws.close(code=CLOSE_CONFLICT)
            return

        await _run_session(session, destination, preferences)

    finally:
        monitor_ws_manager.unregister(ws)


async def _run_session(session: MonitorSession, destination: Destination, preferences: AlarmPreferences):
    trip_id = session.trip_id
    source = PushLocationSource()
    monitor = TripMonitor(
        trip_id=trip_id,
        destination=destination,
        location_source=source,
        signal=WebSocketAlarmSignal(session),
        gateway=RepositoryPersistenceGateway(),
        preferences=preferences,
    )
    monitor.add_listener(session.send)

    ended = False
    try:
        monitor.start()

        while not ended:
            raw = await session.ws.receive_text()
            try:
                message = json.loads(raw)
            except ValueError:
                session.send({"type": "invalid_message", "detail": "Message is not valid JSON"})
                continue
            ended = _handle_message(monitor, source, session, message)

        # Confirm only once the final point and the end marker are stored
        await asyncio.to_thread(monitor.dispatcher.join, END_TRIP_FLUSH_TIMEOUT_S)
        session.send({"type": "trip_closed", "trip_id": trip_id})
        await session.drain()
        await session.ws.close()

    except WebSocketDisconnect:
        print(f"[MONITOR-WS] {trip_id}: client disconnected")
    finally:
        monitor.teardown()
        monitor_ws_manager.release(session)
        await session.close()
