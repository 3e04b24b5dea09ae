"""Service layer helpers (settings, timers)."""

from .scheduling import AsyncioTimerScheduler, QtTimerScheduler, TimerHandle, TimerScheduler
from .settings import ReviewSettings, SettingsProvider, SettingsStore

__all__ = [
    "AsyncioTimerScheduler",
    "QtTimerScheduler",
    "ReviewSettings",
    "SettingsProvider",
    "SettingsStore",
    "TimerHandle",
    "TimerScheduler",
]
