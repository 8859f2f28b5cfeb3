# wakeme/Services/persistence_gateway.py
"""
Persistence Gateway
===================
Narrow save-point / end-trip interface between the trip monitor and trip
storage, plus the dispatchers that keep saves off the evaluation path.

Gateways:
- HttpPersistenceGateway: talks to the trip REST API with requests
- RepositoryPersistenceGateway: writes through the repositories directly
  (used by the server-side monitoring WebSocket)

Dispatchers:
- PersistenceDispatcher: background worker thread; submit() never blocks
  on I/O. Failures are logged and reported, never retried.
- InlineDispatcher: runs each call synchronously (tests, replays)
"""

import threading
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

import requests
from sqlalchemy.exc import SQLAlchemyError

from wakeme.Core import log_ws
from wakeme.Core.config import settings
from wakeme.DB.session import SessionLocal
from wakeme.Repositories import trip as trip_repo
from wakeme.Schemas.geo import Coordinate
from wakeme.Schemas.trip import LocationPoint_create


class PersistenceError(Exception):
    """A save or end-trip request failed (network, server error, unknown trip)."""


# ==========================================================
# GATEWAY INTERFACE
# ==========================================================

class PersistenceGateway:
    """Storage operations available to the trip monitor."""

    def save_point(self, trip_id: str, coordinate: Coordinate, timestamp: datetime) -> None:
        raise NotImplementedError

    def end_trip(self, trip_id: str) -> None:
        raise NotImplementedError


class HttpPersistenceGateway(PersistenceGateway):
    """
    Gateway backed by the trip REST API.

    Args:
        base_url: API root (defaults to settings.API_BASE_URL)
        timeout: Per-request timeout in seconds
        session: Optional requests.Session (connection reuse, testing)
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None
    ):
        self.base_url = (base_url or settings.API_BASE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.PERSIST_HTTP_TIMEOUT_S
        self.session = session or requests.Session()

    def _post(self, path: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.post(url, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            raise PersistenceError(f"POST {path} failed: {e}") from e

        if response.status_code == 404:
            raise PersistenceError(f"POST {path}: trip not found")
        if not response.ok:
            raise PersistenceError(f"POST {path}: HTTP {response.status_code}")

        return response.json()

    def save_point(self, trip_id: str, coordinate: Coordinate, timestamp: datetime) -> None:
        self._post(f"/trips/{trip_id}/point", {
            "lat": coordinate.latitude,
            "lng": coordinate.longitude,
            "ts": timestamp.isoformat(),
        })

    def end_trip(self, trip_id: str) -> None:
        self._post(f"/trips/{trip_id}/end")


class RepositoryPersistenceGateway(PersistenceGateway):
    """
    Gateway that writes through the repositories.

    Opens a fresh session per call, so it is safe to use from the
    dispatcher's worker thread.
    """

    def __init__(self, session_factory=SessionLocal):
        self.session_factory = session_factory

    def save_point(self, trip_id: str, coordinate: Coordinate, timestamp: datetime) -> None:
        point = LocationPoint_create(
            lat=coordinate.latitude,
            lng=coordinate.longitude,
            ts=timestamp
        )
        try:
            with self.session_factory() as db:
                trip = trip_repo.add_location_point(db, trip_id, point)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not save point for trip {trip_id}: {e}") from e

        if trip is None:
            raise PersistenceError(f"Trip {trip_id} not found")

    def end_trip(self, trip_id: str) -> None:
        try:
            with self.session_factory() as db:
                trip = trip_repo.end_trip(db, trip_id)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not end trip {trip_id}: {e}") from e

        if trip is None:
            raise PersistenceError(f"Trip {trip_id} not found")


# ==========================================================
# DISPATCHERS
# ==========================================================

ErrorHandler = Callable[[Exception], None]


def _run_job(description: str, fn: Callable, args: tuple, on_error: Optional[ErrorHandler]) -> bool:
    try:
        fn(*args)
        return True
    except Exception as e:
        log_ws.log_from_thread(f"[PERSISTENCE] {description} failed: {e}", msg_type="error")
        if on_error is not None:
            try:
                on_error(e)
            except Exception as handler_error:
                print(f"[PERSISTENCE] Error handler failed: {handler_error}")
        return False


class InlineDispatcher:
    """Runs each persistence call synchronously in the caller's thread."""

    def submit(self, description: str, fn: Callable, *args, on_error: Optional[ErrorHandler] = None) -> None:
        _run_job(description, fn, args, on_error)

    def close(self, wait: bool = False, timeout: Optional[float] = None) -> None:
        pass


class PersistenceDispatcher:
    """
    Fire-and-forget persistence worker.

    Jobs are appended to a pending buffer and executed in order by a daemon
    thread, so a slow or failing save never blocks sample evaluation.
    """

    MAX_PENDING = 100

    def __init__(self, name: str = "persistence"):
        self.name = name
        self.pending: List[tuple] = []
        self.lock = threading.Lock()
        self.event = threading.Event()
        self._idle = threading.Condition(self.lock)
        self._busy = False
        self._closing = False
        self._thread: Optional[threading.Thread] = None

    def submit(self, description: str, fn: Callable, *args, on_error: Optional[ErrorHandler] = None) -> None:
        with self.lock:
            if self._closing:
                print(f"[PERSISTENCE] Dispatcher closed, dropping: {description}")
                return

            if len(self.pending) >= self.MAX_PENDING:
                dropped = self.pending.pop(0)
                print(f"[PERSISTENCE] ⚠️ Buffer full ({self.MAX_PENDING}), dropping: {dropped[0]}")

            self.pending.append((description, fn, args, on_error))

            if self._thread is None:
                self._thread = threading.Thread(
                    target=self._worker_loop, daemon=True, name=f"Persistence-{self.name}"
                )
                self._thread.start()

        self.event.set()

    def _worker_loop(self):
        while True:
            self.event.wait()

            while True:
                with self.lock:
                    if not self.pending:
                        self.event.clear()
                        self._busy = False
                        self._idle.notify_all()
                        if self._closing:
                            return
                        break
                    job = self.pending.pop(0)
                    self._busy = True

                _run_job(*job)

    def join(self, timeout: Optional[float] = None) -> bool:
        """
        Wait until every submitted job has run.

        Returns:
            bool: False if the timeout expired first
        """
        with self._idle:
            return self._idle.wait_for(lambda: not self.pending and not self._busy, timeout=timeout)

    def close(self, wait: bool = False, timeout: Optional[float] = None) -> None:
        """Stop accepting jobs; the worker drains what is pending, then exits."""
        with self.lock:
            self._closing = True
            thread = self._thread
        self.event.set()

        if wait and thread is not None:
            thread.join(timeout)
