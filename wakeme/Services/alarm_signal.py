# wakeme/Services/alarm_signal.py
"""
Alarm Signal
============
Owned, injectable alarm output (audio loop, vibration, notification).

Every command is best-effort: a capability the device does not have is
skipped, never fatal. The only error a caller has to care about is
AlarmSignalError from start(), raised when the platform refuses to play
audio (autoplay block); the state machine records it and offers a retry.

Implementations:
- LogAlarmSignal: writes commands to the log stream (headless runs)
- WebSocketAlarmSignal: forwards commands to the client owning the session
- RecordingAlarmSignal: records calls for assertions
"""

from typing import Any, Dict, List, Optional, Sequence, Tuple

from wakeme.Core import log_ws
from wakeme.Core.monitor_ws import MonitorSession


class AlarmSignalError(Exception):
    """Raised when the alarm audio could not be started."""


class AlarmSignal:
    """
    Base alarm signal: every command is a no-op.

    Subclasses override the capabilities they support.
    """

    def start(self, volume: float, loop: bool = True) -> None:
        pass

    def stop(self) -> None:
        pass

    def vibrate(self, pattern: Sequence[int]) -> None:
        pass

    def notify(self, title: str, body: str) -> None:
        pass


class LogAlarmSignal(AlarmSignal):
    """Alarm signal that only reports commands to the log stream."""

    def __init__(self, label: str = "alarm"):
        self.label = label

    def start(self, volume: float, loop: bool = True) -> None:
        log_ws.log_from_thread(f"[ALARM] {self.label}: start (volume={volume}, loop={loop})")

    def stop(self) -> None:
        log_ws.log_from_thread(f"[ALARM] {self.label}: stop")

    def vibrate(self, pattern: Sequence[int]) -> None:
        log_ws.log_from_thread(f"[ALARM] {self.label}: vibrate {list(pattern)}")

    def notify(self, title: str, body: str) -> None:
        log_ws.log_from_thread(f"[ALARM] {self.label}: notify {title!r} - {body}")


class WebSocketAlarmSignal(AlarmSignal):
    """
    Forwards alarm commands to the client of a monitoring session.

    The client plays the audio; delivery is asynchronous, so a blocked
    autoplay on the device is reported back as a client message rather than
    raised here.
    """

    def __init__(self, session: MonitorSession):
        self.session = session

    def _send(self, command: Dict[str, Any]):
        self.session.send({"type": "alarm_signal", **command})

    def start(self, volume: float, loop: bool = True) -> None:
        self._send({"command": "start", "volume": volume, "loop": loop})

    def stop(self) -> None:
        self._send({"command": "stop"})

    def vibrate(self, pattern: Sequence[int]) -> None:
        self._send({"command": "vibrate", "pattern": list(pattern)})

    def notify(self, title: str, body: str) -> None:
        self._send({"command": "notify", "title": title, "body": body})


class RecordingAlarmSignal(AlarmSignal):
    """
    Records every command as a (name, args) tuple.

    Args:
        fail_start: Number of start() calls that raise AlarmSignalError
                    before audio "plays" (simulates an autoplay block)
    """

    def __init__(self, fail_start: int = 0):
        self.calls: List[Tuple[str, tuple]] = []
        self.fail_start = fail_start
        self.playing = False

    def start(self, volume: float, loop: bool = True) -> None:
        self.calls.append(("start", (volume, loop)))
        if self.fail_start > 0:
            self.fail_start -= 1
            raise AlarmSignalError("audio playback blocked")
        self.playing = True

    def stop(self) -> None:
        self.calls.append(("stop", ()))
        self.playing = False

    def vibrate(self, pattern: Sequence[int]) -> None:
        self.calls.append(("vibrate", (tuple(pattern),)))

    def notify(self, title: str, body: str) -> None:
        self.calls.append(("notify", (title, body)))

    def count(self, name: str) -> int:
        return sum(1 for call, _ in self.calls if call == name)

    def last(self) -> Optional[str]:
        return self.calls[-1][0] if self.calls else None
