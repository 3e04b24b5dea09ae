"""Facade that routes host editor events through the review engine."""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Callable, Dict

from .core.edits import EditEvent, SelectionEvent
from .core.ranges import LineRange, Region
from .detection.classifier import ChangeClassifier
from .editor.shadow_text import ShadowTextManager
from .events import EventBus, RegionsChanged, RegionsDetected
from .persistence.gate import OpenOutcome, PersistenceGate
from .persistence.manifest import ManifestStore
from .persistence.save_scheduler import SaveScheduler
from .regions.store import RegionStore
from .services.scheduling import TimerScheduler
from .services.settings import SettingsProvider

__all__ = ["ReviewSession"]

LOGGER = logging.getLogger(__name__)


class ReviewSession:
    """Owns the region store, classifier and persistence for one workspace.

    Hosts report document lifecycle, edits and selections; consumers listen on
    :attr:`events` for :class:`~pastereview.events.RegionsChanged` and
    re-query :meth:`regions`. Everything runs on the caller's event loop.
    """

    def __init__(
        self,
        workspace_root: Path | str,
        *,
        scheduler: TimerScheduler,
        settings: SettingsProvider | None = None,
        event_bus: EventBus | None = None,
        store: RegionStore | None = None,
        manifest_store: ManifestStore | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._root = Path(workspace_root)
        self._bus = event_bus or EventBus()
        self._settings = settings or SettingsProvider(event_bus=self._bus)
        self._store = store or RegionStore()
        manifest_path = self._root / self._settings.current().manifest_filename
        self._manifest_store = manifest_store or ManifestStore(manifest_path)
        self._gate = PersistenceGate(self._manifest_store, self._store, self._root, event_bus=self._bus)
        self._classifier = ChangeClassifier(
            self._store,
            settings=self._settings.current,
            scheduler=scheduler,
            clock=clock,
            event_bus=self._bus,
        )
        self._saves = SaveScheduler(self._gate, scheduler, self._settings.current, self._paths_lookup)
        self._shadow = ShadowTextManager()
        self._paths: Dict[str, Path] = {}
        self._bus.subscribe(RegionsDetected, self._on_regions_detected)

    # ------------------------------------------------------------------
    # Collaborators
    # ------------------------------------------------------------------
    @property
    def events(self) -> EventBus:
        return self._bus

    @property
    def settings(self) -> SettingsProvider:
        return self._settings

    @property
    def store(self) -> RegionStore:
        return self._store

    @property
    def gate(self) -> PersistenceGate:
        return self._gate

    @property
    def classifier(self) -> ChangeClassifier:
        return self._classifier

    @property
    def saves(self) -> SaveScheduler:
        return self._saves

    @property
    def shadow(self) -> ShadowTextManager:
        return self._shadow

    def regions(self, document_id: str) -> tuple[Region, ...]:
        return self._store.get(document_id)

    def path_for(self, document_id: str) -> Path | None:
        return self._paths.get(document_id)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def start(self) -> list[str]:
        """Prune manifest entries for files that no longer exist."""

        return self._gate.prune_missing()

    def open_document(self, document_id: str, path: Path | str, text: str) -> OpenOutcome:
        """Start tracking ``document_id`` and restore its saved regions when still valid."""

        self._paths[document_id] = Path(path)
        self._shadow.open(document_id, text)
        outcome = self._gate.on_open(document_id, path, text)
        if outcome is OpenOutcome.DISCARDED:
            self._saves.schedule_save(document_id, immediate=True)
        LOGGER.debug("Opened %s (%s)", document_id, outcome.value)
        return outcome

    def save_document(self, document_id: str) -> bool:
        """Record regions against the file just written by the host."""

        if document_id not in self._paths:
            raise KeyError(document_id)
        self._saves.clear_timer(document_id)
        return self._saves.save_now(document_id)

    def close_document(self, document_id: str) -> None:
        """Stop tracking ``document_id``; pending saves are flushed first."""

        if self._saves.has_pending(document_id):
            self._saves.clear_timer(document_id)
            self._saves.save_now(document_id)
        self._classifier.stop_tracking(document_id)
        self._store.clear(document_id)
        self._shadow.close(document_id)
        self._paths.pop(document_id, None)

    def rename_document(self, old_document_id: str, new_document_id: str, new_path: Path | str) -> None:
        """Carry regions and the manifest entry over to a renamed file.

        Call after the file has been moved on disk.
        """

        old_path = self._paths.pop(old_document_id, None)
        if old_path is None:
            raise KeyError(old_document_id)
        self._saves.clear_timer(old_document_id)
        self._shadow.rename(old_document_id, new_document_id)
        self._store.rebind(old_document_id, new_document_id)
        self._classifier.rebind(old_document_id, new_document_id)
        self._paths[new_document_id] = Path(new_path)
        self._gate.rename(old_path, new_path)
        self._saves.schedule_save(new_document_id, immediate=True)

    def shutdown(self) -> None:
        self._saves.flush()
        self._saves.clear_all()
        self._classifier.clear_all()
        self._store.clear_all()
        self._shadow.clear_all()
        self._paths.clear()
        self._bus.unsubscribe(RegionsDetected, self._on_regions_detected)

    # ------------------------------------------------------------------
    # Host events
    # ------------------------------------------------------------------
    def handle_edit(self, event: EditEvent, new_text: str) -> bool:
        """Update regions for an applied edit and feed it to the classifier.

        ``new_text`` is the full document text after the edit. Returns whether
        existing regions were modified by the edit itself.
        """

        document_id = event.document_id
        old_text = self._shadow.swap(document_id, new_text)
        old_regions = self._store.get(document_id)
        for change in event.changes:
            self._store.remove_lines(document_id, change.range)
            self._store.shift_after_edit(document_id, change.range, change.inserted_text)
        modified = self._store.get(document_id) != old_regions
        if modified:
            self._bus.publish(RegionsChanged(document_id=document_id, reason="edit"))

        self._classifier.process_edit(
            event,
            old_text=old_text,
            old_regions=old_regions,
            new_text=new_text,
        )

        if modified:
            self._saves.schedule_save(document_id, immediate=False)
        return modified

    def handle_selection(self, event: SelectionEvent, line_count: int) -> bool:
        """Dismiss the region lines touched by each selection.

        Selections spanning the whole document (select all) are ignored.
        """

        document_id = event.document_id
        modified = False
        for selection in event.selections:
            if _is_select_all(selection, line_count):
                continue
            if self._store.remove_lines(document_id, selection):
                modified = True
        if modified:
            self._bus.publish(RegionsChanged(document_id=document_id, reason="selection"))
            self._saves.schedule_save(document_id, immediate=False)
        return modified

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------
    def dismiss_region(self, document_id: str, region_id: str) -> bool:
        if not self._store.remove_region(document_id, region_id):
            return False
        self._after_dismissal(document_id)
        return True

    def dismiss_all(self, document_id: str) -> bool:
        if not self._store.clear(document_id):
            return False
        self._after_dismissal(document_id)
        return True

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _after_dismissal(self, document_id: str) -> None:
        self._bus.publish(RegionsChanged(document_id=document_id, reason="dismissed"))
        self._saves.schedule_save(document_id, immediate=True)

    def _on_regions_detected(self, event: RegionsDetected) -> None:
        self._saves.schedule_save(event.document_id, immediate=True)

    def _paths_lookup(self, document_id: str) -> Path | None:
        return self._paths.get(document_id)


def _is_select_all(selection: LineRange, line_count: int) -> bool:
    if selection.start_line != 0 or selection.line_count < 2:
        return False
    # Allow for a trailing empty line once the document is long enough to have one.
    slack = 1 if line_count > 2 else 0
    return selection.end_line >= line_count - 1 - slack
