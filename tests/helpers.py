"""Shared test helpers: deterministic timers and edit builders.

Import from here instead of duplicating these classes in individual test files.
"""

from __future__ import annotations

from typing import Callable

from pastereview.core.edits import ContentChange, EditEvent, SelectionEvent
from pastereview.core.ranges import LineRange, Region


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 100.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ManualTimer:
    def __init__(self, scheduler: "ManualScheduler", due: float, callback: Callable[[], None]) -> None:
        self._scheduler = scheduler
        self.due = due
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True

    @property
    def pending(self) -> bool:
        return not (self.cancelled or self.fired)


class ManualScheduler:
    """``TimerScheduler`` whose timers only fire through :meth:`advance`/:meth:`run_all`."""

    def __init__(self) -> None:
        self.time = 0.0
        self.timers: list[ManualTimer] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> ManualTimer:
        timer = ManualTimer(self, self.time + delay, callback)
        self.timers.append(timer)
        return timer

    def pending(self) -> list[ManualTimer]:
        return [timer for timer in self.timers if timer.pending]

    def advance(self, seconds: float) -> int:
        """Move time forward and fire timers that became due, in due order."""

        self.time += seconds
        fired = 0
        while True:
            due = sorted(
                (timer for timer in self.timers if timer.pending and timer.due <= self.time),
                key=lambda timer: timer.due,
            )
            if not due:
                return fired
            timer = due[0]
            timer.fired = True
            timer.callback()
            fired += 1

    def run_all(self) -> int:
        fired = 0
        while self.pending():
            timer = min(self.pending(), key=lambda candidate: candidate.due)
            self.time = max(self.time, timer.due)
            timer.fired = True
            timer.callback()
            fired += 1
        return fired


def insert(document_id: str, line: int, text: str) -> EditEvent:
    """Edit event inserting ``text`` at the start of ``line``."""

    return EditEvent(document_id, (ContentChange(LineRange(line, line), text, 0),))


def replace_lines(document_id: str, start: int, end: int, text: str, replaced_length: int = 0) -> EditEvent:
    return EditEvent(document_id, (ContentChange(LineRange(start, end), text, replaced_length),))


def select(document_id: str, start: int, end: int | None = None) -> SelectionEvent:
    return SelectionEvent(document_id, (LineRange(start, start if end is None else end),))


def numbered_lines(count: int, prefix: str = "line") -> str:
    return "\n".join(f"{prefix} {index}" for index in range(count))


def spans(regions: tuple[Region, ...]) -> list[tuple[int, int]]:
    return [(region.start_line, region.end_line) for region in regions]
