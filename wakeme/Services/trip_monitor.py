# wakeme/Services/trip_monitor.py
"""
Trip Monitor - location sampling loop for one active trip.

Responsibilities:
- Subscribe to the location source when the trip becomes active
- Run each sample through the geofence evaluator and the alarm state
  machine as one atomic unit of work
- Decide which samples are persisted and hand them to the dispatcher
- Report location errors without unsubscribing
- Tear everything down exactly once on trip end or host teardown

Persistence policy:
1. Arrival sample (IDLE → TRIGGERED)? → save
2. Periodic save due (every PERSIST_INTERVAL_S from trip start)? → save
3. Trip end and the last sample was never saved? → save
A sample satisfying several rules is saved once.

Events:
Listeners receive plain dicts with a 'type' key:
    'started', 'sample', 'alarm', 'location_error', 'persist',
    'persistence_error', 'ended'
"""

import threading
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

from wakeme.Core import log_ws
from wakeme.Core.config import settings
from wakeme.Schemas.geo import Destination, GeoSample
from wakeme.Schemas.monitor import AlarmPreferences
from wakeme.Services.alarm_signal import AlarmSignal
from wakeme.Services.alarm_state_machine import AlarmState, AlarmStateMachine
from wakeme.Services.distance import format_distance
from wakeme.Services.geofence_evaluator import ContainmentState, GeofenceEvaluator
from wakeme.Services.location_source import (
    LocationCapabilityError,
    LocationError,
    LocationErrorCode,
    LocationSource,
    WatchOptions,
)
from wakeme.Services.persistence_gateway import PersistenceDispatcher, PersistenceGateway


Listener = Callable[[Dict[str, Any]], None]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TripMonitor:
    """
    Sampling loop for a single trip.

    Args:
        trip_id: Persisted trip identifier
        destination: Destination geofence (fixed for the trip)
        location_source: Source to subscribe to on start()
        signal: Alarm signal owned by this monitor
        gateway: Persistence gateway for points and trip end
        dispatcher: Runs gateway calls; defaults to a background
                    PersistenceDispatcher owned by the monitor
        preferences: Alarm preferences (volume, vibration, notifications)
        watch_options: Options passed to location_source.watch()
        evaluator: Geofence evaluator (default uses configured hysteresis)
        persist_interval_s: Periodic save interval (default from settings)
        clock: Wall clock, injectable for tests
    """

    def __init__(
        self,
        trip_id: str,
        destination: Destination,
        location_source: LocationSource,
        signal: AlarmSignal,
        gateway: PersistenceGateway,
        dispatcher=None,
        preferences: Optional[AlarmPreferences] = None,
        watch_options: Optional[WatchOptions] = None,
        evaluator: Optional[GeofenceEvaluator] = None,
        persist_interval_s: Optional[int] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.trip_id = trip_id
        self.destination = destination
        self.location_source = location_source
        self.gateway = gateway
        self.watch_options = watch_options or WatchOptions()
        self.evaluator = evaluator or GeofenceEvaluator()
        self.clock = clock or _utcnow

        self._owns_dispatcher = dispatcher is None
        self.dispatcher = dispatcher or PersistenceDispatcher(name=trip_id[:8])

        self.alarm = AlarmStateMachine(signal, preferences, destination)
        self.containment = ContainmentState.OUTSIDE

        interval = persist_interval_s if persist_interval_s is not None else settings.PERSIST_INTERVAL_S
        if interval <= 0:
            raise ValueError("persist_interval_s must be positive")
        self.persist_interval = timedelta(seconds=interval)

        self.started_at: Optional[datetime] = None
        self._next_periodic_save: Optional[datetime] = None

        self.last_sample: Optional[GeoSample] = None
        self._last_sample_persisted = False
        self.last_error: Optional[LocationError] = None
        self.samples_processed = 0
        self.points_requested = 0

        self._handle: Optional[int] = None
        self._closed = False
        self._lock = threading.RLock()
        self._listeners: List[Listener] = []

    # ==========================================================
    # PUBLIC STATE
    # ==========================================================

    @property
    def alarm_state(self) -> AlarmState:
        return self.alarm.state

    @property
    def is_active(self) -> bool:
        return self.started_at is not None and not self._closed

    @property
    def elapsed_seconds(self) -> float:
        """Seconds since trip start, for display only."""
        if self.started_at is None:
            return 0.0
        return max(0.0, (self.clock() - self.started_at).total_seconds())

    def add_listener(self, listener: Listener):
        self._listeners.append(listener)

    # ==========================================================
    # LIFECYCLE
    # ==========================================================

    def start(self):
        """
        Subscribe to the location source.

        Raises:
            LocationCapabilityError: positioning is unavailable (fail fast)
            RuntimeError: the monitor was already started or ended
        """
        with self._lock:
            if self.started_at is not None or self._closed:
                raise RuntimeError(f"Trip monitor {self.trip_id} cannot be started twice")

            try:
                self._handle = self.location_source.watch(
                    self.on_sample, self.on_error, self.watch_options
                )
            except LocationCapabilityError as e:
                self._closed = True
                log_ws.log_from_thread(f"[TRIP_MONITOR] {self.trip_id}: {e}", msg_type="error")
                self._emit({'type': 'location_error', 'code': 'UNAVAILABLE', 'message': str(e)})
                raise

            self.started_at = self.clock()
            self._next_periodic_save = self.started_at + self.persist_interval

        log_ws.log_from_thread(
            f"[TRIP_MONITOR] {self.trip_id}: monitoring started "
            f"(radius {format_distance(self.destination.radius_meters)})"
        )
        self._emit({'type': 'started', 'alarm_state': self.alarm.state.value})

    def end_trip(self) -> bool:
        """
        Explicit trip end.

        Saves the final sample if needed and marks the trip ended through
        the gateway. Returns False if the monitor was already shut down.
        """
        return self._shutdown(reason='end_trip')

    def teardown(self) -> bool:
        """
        Host went away (socket closed, app shutting down).

        Same cleanup as end_trip() except the trip is not marked ended, so a
        reconnecting client can resume it.
        """
        return self._shutdown(reason='teardown')

    def _shutdown(self, reason: str) -> bool:
        with self._lock:
            if self._closed:
                return False
            self._closed = True

            handle, self._handle = self._handle, None
            if handle is not None:
                self.location_source.cancel(handle)

            self.alarm.terminate()

            if self.last_sample is not None and not self._last_sample_persisted:
                self._persist(self.last_sample, reason='final')

            if reason == 'end_trip':
                self.dispatcher.submit(
                    f"end trip {self.trip_id}",
                    self.gateway.end_trip,
                    self.trip_id,
                    on_error=self._on_persist_error
                )

        if self._owns_dispatcher:
            self.dispatcher.close()

        log_ws.log_from_thread(
            f"[TRIP_MONITOR] {self.trip_id}: stopped ({reason}, "
            f"{self.samples_processed} samples, {self.points_requested} points saved)"
        )
        self._emit({'type': 'ended', 'reason': reason})
        return True

    # ==========================================================
    # LOCATION CALLBACKS
    # ==========================================================

    def on_sample(self, sample: GeoSample) -> Optional[Dict[str, Any]]:
        """
        Process one sample: evaluate, update alarm, decide persistence.

        Samples arriving after shutdown (late callbacks from a cancelled
        subscription) are ignored and return None.
        """
        with self._lock:
            if self._closed or self.started_at is None:
                print(f"[TRIP_MONITOR] {self.trip_id}: ignoring sample outside an active trip")
                return None

            previous_containment = self.containment
            new_state, transitioned = self.evaluator.evaluate(
                sample, self.destination, previous_containment
            )
            distance_m = self.evaluator.last_distance_m
            self.containment = new_state
            self.samples_processed += 1
            self.last_error = None

            decision = None
            if transitioned:
                decision = self.alarm.on_containment_change(new_state)

            arrival = bool(decision and decision['persist_point'])
            periodic = self._periodic_save_due()
            persist = arrival or periodic

            self.last_sample = sample
            self._last_sample_persisted = persist
            if persist:
                self._persist(sample, reason='arrival' if arrival else 'periodic')

            event = {
                'type': 'sample',
                'lat': sample.coordinate.latitude,
                'lng': sample.coordinate.longitude,
                'distance_m': distance_m,
                'distance_text': format_distance(distance_m),
                'containment': new_state.value,
                'transitioned': transitioned,
                'alarm_state': self.alarm.state.value,
                'action': decision['action'] if decision else 'none',
                'persisted': persist,
                'signal_failed': self.alarm.signal_failed,
            }

            if decision and decision['action'] in ('trigger', 'clear', 'rearm'):
                log_ws.log_from_thread(
                    f"[TRIP_MONITOR] {self.trip_id}: {decision['action'].upper()} "
                    f"({decision['previous_state'].value} → {decision['state'].value}, "
                    f"distance {format_distance(distance_m)})"
                )

            self._emit(event)
            return event

    def on_error(self, error: LocationError):
        """
        Report a location failure. The subscription stays open and the alarm
        state is untouched until samples resume.
        """
        with self._lock:
            if self._closed:
                return
            self.last_error = error

        log_ws.log_from_thread(f"[TRIP_MONITOR] {self.trip_id}: location error {error}", msg_type="warning")
        self._emit({
            'type': 'location_error',
            'code': error.code.value,
            'message': error.message,
            'permission_denied': error.code == LocationErrorCode.PERMISSION_DENIED,
        })

    # ==========================================================
    # USER ACTIONS
    # ==========================================================

    def stop_alarm(self) -> Dict[str, Any]:
        """User pressed stop/acknowledge."""
        with self._lock:
            decision = self.alarm.stop_by_user()
            if decision['action'] == 'stop':
                log_ws.log_from_thread(f"[TRIP_MONITOR] {self.trip_id}: alarm stopped by user")
                self._emit({'type': 'alarm', 'action': 'stop', 'alarm_state': self.alarm.state.value})
            return decision

    def report_alarm_blocked(self) -> bool:
        """The client could not start the alarm audio."""
        with self._lock:
            recorded = self.alarm.report_signal_failure()
            if recorded:
                log_ws.log_from_thread(
                    f"[TRIP_MONITOR] {self.trip_id}: alarm audio blocked on device", msg_type="warning"
                )
                self._emit({
                    'type': 'alarm',
                    'action': 'blocked',
                    'alarm_state': self.alarm.state.value,
                    'signal_failed': True,
                })
            return recorded

    def retry_alarm(self) -> bool:
        """Retry alarm audio on a user interaction after a blocked start."""
        with self._lock:
            sounding = self.alarm.retry_signal()
            self._emit({
                'type': 'alarm',
                'action': 'retry',
                'alarm_state': self.alarm.state.value,
                'signal_failed': self.alarm.signal_failed,
            })
            return sounding

    # ==========================================================
    # HELPERS
    # ==========================================================

    def _periodic_save_due(self) -> bool:
        now = self.clock()
        if now < self._next_periodic_save:
            return False
        # Skip periods missed while no sample arrived; one save per sample
        while self._next_periodic_save <= now:
            self._next_periodic_save += self.persist_interval
        return True

    def _persist(self, sample: GeoSample, reason: str):
        self.points_requested += 1
        self.dispatcher.submit(
            f"save point ({reason}) for trip {self.trip_id}",
            self.gateway.save_point,
            self.trip_id,
            sample.coordinate,
            sample.timestamp,
            on_error=self._on_persist_error
        )
        self._emit({'type': 'persist', 'reason': reason})

    def _on_persist_error(self, error: Exception):
        # Runs on the dispatcher thread; must not take the monitor lock
        self._emit({'type': 'persistence_error', 'message': str(error)})

    def _emit(self, event: Dict[str, Any]):
        event = {'trip_id': self.trip_id, **event}
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                print(f"[TRIP_MONITOR] Listener failed for {event['type']}: {e}")
