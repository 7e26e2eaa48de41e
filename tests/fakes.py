# tests/fakes.py

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta


@dataclass
class FakeDispatcher:
    """Records play/stop calls instead of making noise."""

    played: list[tuple[str, str | None]] = field(default_factory=list)
    stops: int = 0

    def play(self, ringtone, custom_audio_ref=None):
        self.played.append((getattr(ringtone, "value", ringtone), custom_audio_ref))

    def stop(self):
        self.stops += 1


@dataclass
class FakeNotifier:
    notified: list[str] = field(default_factory=list)

    def notify(self, task) -> bool:
        self.notified.append(task.id)
        return True


class FakeClock:
    """Manually advanced wall clock."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta) -> datetime:
        self.now = self.now + timedelta(**delta)
        return self.now


class FakeProcess:
    """Popen-like stand-in for a file playback child process."""

    def __init__(self, finish_after_polls: int | None = None) -> None:
        self.polls = 0
        self.finish_after_polls = finish_after_polls
        self.terminated = False

    def poll(self):
        self.polls += 1
        if self.terminated:
            return -15
        if self.finish_after_polls is not None and self.polls > self.finish_after_polls:
            return 0
        return None

    def terminate(self):
        self.terminated = True
