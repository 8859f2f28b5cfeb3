# wakeme/Services/alarm_state_machine.py
"""
Alarm State Machine
===================
Owns the alarm lifecycle of one trip.

Transitions:
    IDLE            --enter-->      TRIGGERED        start alarm, save arrival point
    TRIGGERED       --exit-->       IDLE             stop alarm (re-armed)
    TRIGGERED       --user stop-->  STOPPED_BY_USER  stop alarm, stay muted while inside
    STOPPED_BY_USER --exit-->       IDLE             re-armed for the next entry
    any             --terminate-->  (terminal)       stop alarm exactly once

Every transition is caused by exactly one containment transition or one
explicit user/system action, never by time alone.

A user-stopped alarm re-triggers after the user leaves the radius and comes
back; it is not muted for the rest of the trip.
"""

from enum import Enum
from typing import Any, Dict, Optional

from wakeme.Core import log_ws
from wakeme.Schemas.geo import Destination
from wakeme.Schemas.monitor import AlarmPreferences
from wakeme.Services.alarm_signal import AlarmSignal
from wakeme.Services.distance import format_distance
from wakeme.Services.geofence_evaluator import ContainmentState


class AlarmState(str, Enum):
    IDLE = "idle"
    TRIGGERED = "triggered"
    STOPPED_BY_USER = "stopped_by_user"


class AlarmStateMachine:
    """
    Alarm lifecycle driven by geofence transitions and user actions.

    Not thread-safe on its own: TripMonitor serializes every call.

    Attributes:
        state: Current AlarmState (IDLE on creation)
        signal_failed: True while TRIGGERED with an alarm start that failed
        terminated: True once the trip has ended; every later call is ignored
    """

    def __init__(
        self,
        signal: AlarmSignal,
        preferences: Optional[AlarmPreferences] = None,
        destination: Optional[Destination] = None
    ):
        self.signal = signal
        self.preferences = preferences or AlarmPreferences()
        self.destination = destination

        self.state = AlarmState.IDLE
        self.signal_failed = False
        self.terminated = False

    # ==========================================================
    # CONTAINMENT TRANSITIONS
    # ==========================================================

    def on_containment_change(self, new_containment: ContainmentState) -> Dict[str, Any]:
        """
        React to a containment transition reported by the evaluator.

        Returns:
            dict with keys:
                - action: 'trigger', 'clear', 'rearm', 'none' or 'ignored'
                - previous_state / state: AlarmState before and after
                - persist_point: True only for the arrival (IDLE → TRIGGERED)
        """
        previous = self.state

        if self.terminated:
            return self._decision('ignored', previous)

        if new_containment == ContainmentState.INSIDE:
            if self.state == AlarmState.IDLE:
                self.state = AlarmState.TRIGGERED
                self._start_signal()
                self._announce_arrival()
                return self._decision('trigger', previous, persist_point=True)
            return self._decision('none', previous)

        # OUTSIDE
        if self.state == AlarmState.TRIGGERED:
            self.state = AlarmState.IDLE
            self.signal_failed = False
            self._best_effort("stop", self.signal.stop)
            return self._decision('clear', previous)

        if self.state == AlarmState.STOPPED_BY_USER:
            self.state = AlarmState.IDLE
            return self._decision('rearm', previous)

        return self._decision('none', previous)

    # ==========================================================
    # USER ACTIONS
    # ==========================================================

    def stop_by_user(self) -> Dict[str, Any]:
        """
        Acknowledge the alarm.

        Available whether or not the audio actually played. Only meaningful
        while TRIGGERED; otherwise nothing changes.
        """
        previous = self.state
        if self.terminated or self.state != AlarmState.TRIGGERED:
            return self._decision('none', previous)

        self.state = AlarmState.STOPPED_BY_USER
        self.signal_failed = False
        self._best_effort("stop", self.signal.stop)
        return self._decision('stop', previous)

    def report_signal_failure(self) -> bool:
        """
        Record that the device could not play the alarm (e.g. autoplay block).

        Signals that play remotely report failures after start() returned.
        State is unchanged; only the retry path is enabled.
        """
        if self.terminated or self.state != AlarmState.TRIGGERED:
            return False
        self.signal_failed = True
        return True

    def retry_signal(self) -> bool:
        """
        Re-attempt alarm audio after a failed start.

        Called on the next user-initiated interaction.

        Returns:
            bool: True if the alarm is now sounding
        """
        if self.terminated or self.state != AlarmState.TRIGGERED:
            return False
        if not self.signal_failed:
            return True
        self._start_signal()
        return not self.signal_failed

    def terminate(self) -> bool:
        """
        End the lifecycle (trip end or host teardown).

        Silences the alarm exactly once, whatever the current state.

        Returns:
            bool: False if the machine was already terminated
        """
        if self.terminated:
            return False
        self.terminated = True
        self.signal_failed = False
        self._best_effort("stop", self.signal.stop)
        return True

    # ==========================================================
    # HELPERS
    # ==========================================================

    def _start_signal(self):
        try:
            self.signal.start(self.preferences.volume, self.preferences.loop)
            self.signal_failed = False
        except Exception as e:
            # State stays TRIGGERED; the stop control works without audio
            self.signal_failed = True
            log_ws.log_from_thread(f"[ALARM] Alarm audio failed to start: {e}", msg_type="warning")

    def _announce_arrival(self):
        if self.preferences.vibrate:
            self._best_effort("vibrate", self.signal.vibrate, self.preferences.vibration_pattern)
        if self.preferences.notifications:
            self._best_effort("notify", self.signal.notify, "Wake up!", self._arrival_body())

    def _arrival_body(self) -> str:
        if self.destination is None:
            return "You have arrived at your destination."
        place = self.destination.place_name or "your destination"
        return f"You are within {format_distance(self.destination.radius_meters)} of {place}."

    def _best_effort(self, name: str, fn, *args):
        try:
            fn(*args)
        except Exception as e:
            log_ws.log_from_thread(f"[ALARM] Alarm {name} failed: {e}", msg_type="warning")

    def _decision(self, action: str, previous: AlarmState, persist_point: bool = False) -> Dict[str, Any]:
        return {
            'action': action,
            'previous_state': previous,
            'state': self.state,
            'persist_point': persist_point,
        }
