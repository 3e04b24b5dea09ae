"""Immediate or debounced manifest saves per document."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Dict

from ..services.scheduling import TimerHandle, TimerScheduler
from ..services.settings import ReviewSettings
from .gate import PersistenceGate

__all__ = ["SaveScheduler"]

LOGGER = logging.getLogger(__name__)

PathResolver = Callable[[str], Path | str | None]


class SaveScheduler:
    """Coalesces region mutations into manifest writes.

    Each document has at most one pending save timer; scheduling again
    cancels it first. ``path_resolver`` maps a document id to its file path at
    the moment the save runs, so renames between scheduling and firing are
    honoured. Documents that no longer resolve to a path are skipped.
    """

    def __init__(
        self,
        gate: PersistenceGate,
        scheduler: TimerScheduler,
        settings: Callable[[], ReviewSettings],
        path_resolver: PathResolver,
    ) -> None:
        self._gate = gate
        self._scheduler = scheduler
        self._settings = settings
        self._resolve_path = path_resolver
        self._timers: Dict[str, TimerHandle] = {}

    def schedule_save(self, document_id: str, immediate: bool = False) -> None:
        self.clear_timer(document_id)
        if immediate:
            self.save_now(document_id)
            return
        delay = self._settings().auto_save_delay
        self._timers[document_id] = self._scheduler.call_later(delay, lambda: self._fire(document_id))

    def save_now(self, document_id: str) -> bool:
        path = self._resolve_path(document_id)
        if path is None:
            LOGGER.debug("Skipping save for %s; no path registered", document_id)
            return False
        return self._gate.save(document_id, path)

    def has_pending(self, document_id: str) -> bool:
        return document_id in self._timers

    def clear_timer(self, document_id: str) -> None:
        timer = self._timers.pop(document_id, None)
        if timer is not None:
            timer.cancel()

    def flush(self) -> None:
        """Run every pending save now."""

        for document_id in list(self._timers):
            self.clear_timer(document_id)
            self.save_now(document_id)

    def clear_all(self) -> None:
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()

    def _fire(self, document_id: str) -> None:
        self._timers.pop(document_id, None)
        self.save_now(document_id)
