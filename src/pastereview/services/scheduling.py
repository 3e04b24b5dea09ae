"""Cancelable single-shot timers used for debounce windows and deferred saves."""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Protocol

__all__ = [
    "AsyncioTimerScheduler",
    "QtTimerScheduler",
    "TimerHandle",
    "TimerScheduler",
]


class TimerHandle(Protocol):
    """Handle returned by :meth:`TimerScheduler.call_later`."""

    def cancel(self) -> None:  # pragma: no cover - protocol
        ...


class TimerScheduler(Protocol):
    """Runs ``callback`` once after ``delay`` seconds on the host event loop."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:  # pragma: no cover - protocol
        ...


class AsyncioTimerScheduler:
    """Scheduler backed by ``loop.call_later`` for headless hosts."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return self.loop.call_later(max(0.0, float(delay)), callback)


class _QtTimerHandle:
    __slots__ = ("_timer", "_owner")

    def __init__(self, timer: Any, owner: "QtTimerScheduler") -> None:
        self._timer = timer
        self._owner = owner

    def cancel(self) -> None:
        timer = self._timer
        if timer is None:
            return
        self._timer = None
        timer.stop()
        self._owner._release(timer)

    def _fired(self) -> None:
        timer = self._timer
        self._timer = None
        if timer is not None:
            self._owner._release(timer)

    @property
    def active(self) -> bool:
        return self._timer is not None


class QtTimerScheduler:
    """Scheduler that arms single-shot ``QTimer`` objects on the Qt event loop."""

    def __init__(self, parent: Any | None = None) -> None:
        try:  # Local import to avoid mandatory PySide6 dependency at import time.
            from PySide6.QtCore import QTimer
        except ImportError as exc:  # pragma: no cover - depends on desktop stack
            raise RuntimeError("PySide6 must be installed to use Qt timers.") from exc
        self._timer_cls = QTimer
        self._parent = parent
        self._live: set[Any] = set()

    def call_later(self, delay: float, callback: Callable[[], None]) -> _QtTimerHandle:
        timer = self._timer_cls(self._parent)
        timer.setSingleShot(True)
        timer.setInterval(max(0, int(round(float(delay) * 1000))))
        handle = _QtTimerHandle(timer, self)

        def _on_timeout() -> None:
            if not handle.active:
                return
            handle._fired()
            callback()

        timer.timeout.connect(_on_timeout)
        self._live.add(timer)
        timer.start()
        return handle

    def pending(self) -> int:
        return len(self._live)

    def _release(self, timer: Any) -> None:
        self._live.discard(timer)
        timer.deleteLater()
