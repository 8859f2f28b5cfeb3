"""Tests for the alarm lifecycle."""

from wakeme.Schemas.monitor import AlarmPreferences
from wakeme.Services.alarm_signal import LogAlarmSignal, RecordingAlarmSignal
from wakeme.Services.alarm_state_machine import AlarmState, AlarmStateMachine
from wakeme.Services.geofence_evaluator import ContainmentState

INSIDE = ContainmentState.INSIDE
OUTSIDE = ContainmentState.OUTSIDE


def _machine(**signal_kwargs):
    signal = RecordingAlarmSignal(**signal_kwargs)
    prefs = AlarmPreferences(volume=0.5, vibrate=True, notifications=True)
    return AlarmStateMachine(signal, prefs), signal


class TestArrival:

    def test_entering_triggers_alarm_once(self):
        machine, signal = _machine()

        decision = machine.on_containment_change(INSIDE)

        assert decision['action'] == 'trigger'
        assert decision['persist_point'] is True
        assert machine.state == AlarmState.TRIGGERED
        assert signal.count("start") == 1
        assert signal.count("vibrate") == 1
        assert signal.count("notify") == 1
        assert signal.playing is True

    def test_exit_while_triggered_clears(self):
        machine, signal = _machine()
        machine.on_containment_change(INSIDE)

        decision = machine.on_containment_change(OUTSIDE)

        assert decision['action'] == 'clear'
        assert machine.state == AlarmState.IDLE
        assert signal.last() == "stop"

    def test_reentry_triggers_again(self):
        machine, signal = _machine()
        machine.on_containment_change(INSIDE)
        machine.on_containment_change(OUTSIDE)
        machine.on_containment_change(INSIDE)
        assert signal.count("start") == 2

    def test_preferences_disable_vibration_and_notification(self):
        signal = RecordingAlarmSignal()
        machine = AlarmStateMachine(signal, AlarmPreferences(vibrate=False, notifications=False))
        machine.on_containment_change(INSIDE)
        assert [name for name, _ in signal.calls] == ["start"]


class TestUserStop:

    def test_stop_while_triggered(self):
        machine, signal = _machine()
        machine.on_containment_change(INSIDE)

        decision = machine.stop_by_user()

        assert decision['action'] == 'stop'
        assert machine.state == AlarmState.STOPPED_BY_USER
        assert signal.playing is False

    def test_stop_when_idle_does_nothing(self):
        machine, signal = _machine()
        assert machine.stop_by_user()['action'] == 'none'
        assert signal.calls == []

    def test_stopped_alarm_rearms_after_exit(self):
        machine, signal = _machine()
        machine.on_containment_change(INSIDE)
        machine.stop_by_user()

        decision = machine.on_containment_change(OUTSIDE)
        assert decision['action'] == 'rearm'
        assert machine.state == AlarmState.IDLE

        machine.on_containment_change(INSIDE)
        assert machine.state == AlarmState.TRIGGERED
        assert signal.count("start") == 2


class TestSignalFailure:

    def test_failed_start_keeps_triggered(self):
        machine, signal = _machine(fail_start=1)

        decision = machine.on_containment_change(INSIDE)

        assert decision['action'] == 'trigger'
        assert machine.state == AlarmState.TRIGGERED
        assert machine.signal_failed is True
        assert signal.playing is False

    def test_retry_after_failure(self):
        machine, signal = _machine(fail_start=1)
        machine.on_containment_change(INSIDE)

        assert machine.retry_signal() is True
        assert machine.signal_failed is False
        assert signal.count("start") == 2

    def test_stop_available_without_audio(self):
        machine, _ = _machine(fail_start=5)
        machine.on_containment_change(INSIDE)
        assert machine.stop_by_user()['action'] == 'stop'
        assert machine.state == AlarmState.STOPPED_BY_USER

    def test_reported_failure_only_while_triggered(self):
        machine, _ = _machine()
        assert machine.report_signal_failure() is False
        machine.on_containment_change(INSIDE)
        assert machine.report_signal_failure() is True
        assert machine.signal_failed is True


class TestTerminate:

    def test_terminate_stops_exactly_once(self):
        machine, signal = _machine()
        machine.on_containment_change(INSIDE)

        assert machine.terminate() is True
        assert machine.terminate() is False
        assert signal.count("stop") == 1

    def test_transitions_ignored_after_terminate(self):
        machine, signal = _machine()
        machine.terminate()

        decision = machine.on_containment_change(INSIDE)

        assert decision['action'] == 'ignored'
        assert signal.count("start") == 0
        assert machine.state == AlarmState.IDLE


class TestLogAlarmSignal:

    def test_headless_signal_drives_machine(self, capsys):
        machine = AlarmStateMachine(LogAlarmSignal("bus"), AlarmPreferences(vibrate=False, notifications=False))

        machine.on_containment_change(INSIDE)
        machine.terminate()

        output = capsys.readouterr().out
        assert "[ALARM] bus: start" in output
        assert "[ALARM] bus: stop" in output
