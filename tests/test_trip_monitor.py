"""Tests for the trip monitor sampling loop."""

from datetime import timedelta

import pytest

from wakeme.Schemas.geo import Coordinate, Destination, GeoSample
from wakeme.Services.alarm_signal import RecordingAlarmSignal
from wakeme.Services.alarm_state_machine import AlarmState
from wakeme.Services.location_source import (
    LocationCapabilityError,
    LocationError,
    LocationErrorCode,
    PushLocationSource,
    ReplayLocationSource,
)
from wakeme.Services.persistence_gateway import InlineDispatcher
from wakeme.Services.trip_monitor import TripMonitor

DESTINATION = Destination(
    coordinate=Coordinate(latitude=40.7306, longitude=-73.9352),
    radius_meters=500,
    place_name="Home",
)
FAR = (40.7128, -74.0060)      # ~6.4 km away
INSIDE = (40.7310, -73.9355)   # ~50 m away


def _sample(point, clock):
    return GeoSample.at(point[0], point[1], clock())


class TestPersistencePolicy:

    def _monitor(self, source, gateway, clock, signal=None):
        return TripMonitor(
            trip_id="trip-1",
            destination=DESTINATION,
            location_source=source,
            signal=signal or RecordingAlarmSignal(),
            gateway=gateway,
            dispatcher=InlineDispatcher(),
            persist_interval_s=30,
            clock=clock,
        )

    def test_periodic_saves_over_65_seconds(self, clock, gateway):
        source = ReplayLocationSource([GeoSample.at(*FAR) for _ in range(66)])
        monitor = self._monitor(source, gateway, clock)
        monitor.start()

        # One sample per second, t = 0 .. 65
        source.play(before_each=lambda index, _: clock.advance(0 if index == 0 else 1))

        assert monitor.samples_processed == 66
        assert len(gateway.saved) == 2

    def test_arrival_saved_once_even_when_periodic_due(self, clock, gateway):
        source = PushLocationSource()
        monitor = self._monitor(source, gateway, clock)
        monitor.start()

        source.push(_sample(FAR, clock))
        clock.advance(30)
        source.push(_sample(INSIDE, clock))

        assert monitor.alarm_state == AlarmState.TRIGGERED
        assert len(gateway.saved) == 1
        assert monitor.points_requested == 1

    def test_arrival_saved_immediately(self, clock, gateway):
        source = PushLocationSource()
        monitor = self._monitor(source, gateway, clock)
        monitor.start()

        clock.advance(3)
        event = monitor.on_sample(_sample(INSIDE, clock))

        assert event['action'] == 'trigger'
        assert event['persisted'] is True
        assert gateway.saved[0][1:3] == INSIDE

    def test_final_sample_saved_on_end(self, clock, gateway):
        source = PushLocationSource()
        monitor = self._monitor(source, gateway, clock)
        monitor.start()

        clock.advance(5)
        source.push(_sample(FAR, clock))
        assert gateway.saved == []

        assert monitor.end_trip() is True
        assert len(gateway.saved) == 1
        assert gateway.ended == ["trip-1"]

    def test_already_saved_sample_not_saved_again_on_end(self, clock, gateway):
        source = PushLocationSource()
        monitor = self._monitor(source, gateway, clock)
        monitor.start()

        source.push(_sample(INSIDE, clock))
        monitor.end_trip()

        assert len(gateway.saved) == 1

    def test_failed_save_does_not_stop_monitoring(self, clock, failing_gateway):
        gateway = failing_gateway
        source = PushLocationSource()
        monitor = self._monitor(source, gateway, clock)
        events = []
        monitor.add_listener(events.append)
        monitor.start()

        source.push(_sample(INSIDE, clock))
        clock.advance(1)
        source.push(_sample(INSIDE, clock))

        assert monitor.samples_processed == 2
        assert any(e['type'] == 'persistence_error' for e in events)
        assert monitor.is_active

    def test_interval_must_be_positive(self, clock, gateway):
        with pytest.raises(ValueError):
            TripMonitor(
                "trip-1", DESTINATION, PushLocationSource(), RecordingAlarmSignal(), gateway,
                dispatcher=InlineDispatcher(), persist_interval_s=0, clock=clock,
            )


class TestLifecycle:

    def _monitor(self, source, gateway, clock, signal):
        return TripMonitor(
            trip_id="trip-2",
            destination=DESTINATION,
            location_source=source,
            signal=signal,
            gateway=gateway,
            dispatcher=InlineDispatcher(),
            clock=clock,
        )

    def test_end_trip_cleans_up(self, clock, gateway):
        signal = RecordingAlarmSignal()
        source = PushLocationSource()
        monitor = self._monitor(source, gateway, clock, signal)
        monitor.start()
        source.push(_sample(FAR, clock))

        monitor.end_trip()

        assert source.subscription_count == 0
        assert source.push(_sample(INSIDE, clock)) == 0
        assert monitor.on_sample(_sample(INSIDE, clock)) is None
        assert signal.count("start") == 0
        assert signal.count("stop") == 1

    def test_end_trip_is_idempotent(self, clock, gateway):
        signal = RecordingAlarmSignal()
        monitor = self._monitor(PushLocationSource(), gateway, clock, signal)
        monitor.start()

        assert monitor.end_trip() is True
        assert monitor.end_trip() is False
        assert monitor.teardown() is False
        assert signal.count("stop") == 1
        assert gateway.ended == ["trip-2"]

    def test_teardown_does_not_end_trip(self, clock, gateway):
        signal = RecordingAlarmSignal()
        source = PushLocationSource()
        monitor = self._monitor(source, gateway, clock, signal)
        monitor.start()
        source.push(_sample(INSIDE, clock))

        assert monitor.teardown() is True
        assert gateway.ended == []
        assert source.subscription_count == 0
        assert signal.count("stop") == 1

    def test_cannot_start_twice(self, clock, gateway):
        monitor = self._monitor(PushLocationSource(), gateway, clock, RecordingAlarmSignal())
        monitor.start()
        with pytest.raises(RuntimeError):
            monitor.start()

    def test_capability_error_fails_fast(self, clock, gateway):
        monitor = self._monitor(ReplayLocationSource(available=False), gateway, clock, RecordingAlarmSignal())
        events = []
        monitor.add_listener(events.append)

        with pytest.raises(LocationCapabilityError):
            monitor.start()

        assert monitor.is_active is False
        assert events[-1]['type'] == 'location_error'
        assert events[-1]['code'] == 'UNAVAILABLE'

    def test_location_error_keeps_subscription(self, clock, gateway):
        signal = RecordingAlarmSignal()
        source = PushLocationSource()
        monitor = self._monitor(source, gateway, clock, signal)
        events = []
        monitor.add_listener(events.append)
        monitor.start()

        source.push_error(LocationError(LocationErrorCode.PERMISSION_DENIED))

        error_event = events[-1]
        assert error_event['type'] == 'location_error'
        assert error_event['permission_denied'] is True
        assert source.subscription_count == 1
        assert monitor.last_error is not None

        source.push(_sample(INSIDE, clock))
        assert monitor.alarm_state == AlarmState.TRIGGERED
        assert monitor.last_error is None

    def test_old_cached_fix_reported_as_timeout(self, clock, gateway):
        source = PushLocationSource()
        monitor = self._monitor(source, gateway, clock, RecordingAlarmSignal())
        events = []
        monitor.add_listener(events.append)
        monitor.start()

        assert source.push(_sample(INSIDE, clock), age_ms=60000) == 0
        assert events[-1]['code'] == 'TIMEOUT'
        assert monitor.samples_processed == 0

    def test_recent_cached_fix_is_evaluated(self, clock, gateway):
        source = PushLocationSource()
        monitor = self._monitor(source, gateway, clock, RecordingAlarmSignal())
        monitor.start()

        assert source.push(_sample(INSIDE, clock), age_ms=2000) == 1
        assert monitor.alarm_state == AlarmState.TRIGGERED

    def test_lagging_device_clock_still_triggers(self, clock, gateway):
        signal = RecordingAlarmSignal()
        source = PushLocationSource()
        monitor = self._monitor(source, gateway, clock, signal)
        monitor.start()

        # Device clock runs 15 s behind the server
        for _ in range(5):
            clock.advance(1)
            lagging = GeoSample.at(INSIDE[0], INSIDE[1], clock.now - timedelta(seconds=15))
            source.push(lagging)

        assert monitor.samples_processed == 5
        assert monitor.alarm_state == AlarmState.TRIGGERED
        assert signal.count("start") == 1


class TestUserActions:

    def test_stop_and_rearm_through_monitor(self, clock, gateway):
        signal = RecordingAlarmSignal()
        source = PushLocationSource()
        monitor = TripMonitor(
            "trip-3", DESTINATION, source, signal, gateway,
            dispatcher=InlineDispatcher(), clock=clock,
        )
        monitor.start()

        source.push(_sample(INSIDE, clock))
        assert monitor.stop_alarm()['action'] == 'stop'

        source.push(_sample(INSIDE, clock))
        assert signal.count("start") == 1

        source.push(_sample(FAR, clock))
        source.push(_sample(INSIDE, clock))
        assert signal.count("start") == 2
        assert monitor.alarm_state == AlarmState.TRIGGERED

    def test_blocked_alarm_then_retry(self, clock, gateway):
        signal = RecordingAlarmSignal()
        source = PushLocationSource()
        monitor = TripMonitor(
            "trip-4", DESTINATION, source, signal, gateway,
            dispatcher=InlineDispatcher(), clock=clock,
        )
        monitor.start()
        source.push(_sample(INSIDE, clock))

        assert monitor.report_alarm_blocked() is True
        assert monitor.alarm.signal_failed is True

        assert monitor.retry_alarm() is True
        assert signal.count("start") == 2


class TestElapsedTime:

    def test_elapsed_seconds_follows_clock(self, clock, gateway):
        monitor = TripMonitor(
            "trip-5", DESTINATION, PushLocationSource(), RecordingAlarmSignal(), gateway,
            dispatcher=InlineDispatcher(), clock=clock,
        )
        assert monitor.elapsed_seconds == 0.0

        monitor.start()
        clock.advance(42)

        assert monitor.elapsed_seconds == 42.0
