"""Classify raw insertions as pastes or fast streams and flag them for review."""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, Sequence

from ..core.edits import ContentChange, EditEvent, line_count
from ..core.ranges import LineRange, Region, group_contiguous_runs
from ..events import EventBus, RegionsChanged, RegionsDetected
from ..regions.store import RegionStore
from ..services.scheduling import TimerHandle, TimerScheduler
from ..services.settings import ReviewSettings
from .fingerprint import unreviewed_lines

__all__ = ["ChangeClassifier", "ChangeTrackingState", "DetectionKind"]

LOGGER = logging.getLogger(__name__)


class DetectionKind:
    """Tags carried by :class:`~pastereview.events.RegionsDetected`."""

    PASTE = "paste"
    FULL_REPLACE = "full_replace"
    STREAM = "stream"


@dataclass(slots=True)
class ChangeTrackingState:
    """Accumulator for one document's streaming window."""

    is_tracking: bool = False
    window_start_time: float = 0.0
    total_characters: int = 0
    affected_lines: set[int] = field(default_factory=set)
    last_event_time: float = 0.0
    pending_timer: TimerHandle | None = None

    def begin(self, now: float) -> None:
        self.is_tracking = True
        self.window_start_time = now
        self.last_event_time = now
        self.total_characters = 0
        self.affected_lines.clear()

    def reset(self) -> None:
        self.is_tracking = False
        self.total_characters = 0
        self.affected_lines.clear()
        self.pending_timer = None

    def cancel_timer(self) -> None:
        timer = self.pending_timer
        self.pending_timer = None
        if timer is not None:
            timer.cancel()

    def speed(self) -> float:
        """Characters per second over the window; infinite for a zero-length window."""

        elapsed = self.last_event_time - self.window_start_time
        if elapsed <= 0:
            return math.inf
        return self.total_characters / elapsed


class ChangeClassifier:
    """Turns edit events into paste and stream detections.

    Large single insertions are flagged immediately. Smaller insertions are
    accumulated per document until no edit has arrived for
    ``tracking_timeout`` seconds, then judged on speed and breadth as one
    decision. Thresholds are read from ``settings`` every time a decision is
    made.
    """

    def __init__(
        self,
        store: RegionStore,
        *,
        settings: Callable[[], ReviewSettings],
        scheduler: TimerScheduler,
        clock: Callable[[], float] = time.monotonic,
        event_bus: EventBus | None = None,
    ) -> None:
        self._store = store
        self._settings = settings
        self._scheduler = scheduler
        self._clock = clock
        self._bus = event_bus
        self._states: Dict[str, ChangeTrackingState] = {}

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def process_edit(
        self,
        event: EditEvent,
        *,
        old_text: str | None = None,
        old_regions: Sequence[Region] = (),
        new_text: str | None = None,
    ) -> None:
        """Classify every insertion in ``event``.

        ``old_text``/``old_regions`` describe the document before the edit and
        ``new_text`` after it; without them whole-document replacements are
        handled as ordinary pastes.
        """

        for change in event.changes:
            if change.is_deletion:
                continue
            settings = self._settings()
            if change.inserted_line_count >= settings.minimum_paste_lines:
                self._classify_paste(
                    event.document_id,
                    change,
                    settings,
                    old_text=old_text,
                    old_regions=old_regions,
                    new_text=new_text,
                )
            else:
                self._track(event.document_id, change, settings)

    def state(self, document_id: str) -> ChangeTrackingState | None:
        return self._states.get(document_id)

    def is_tracking(self, document_id: str) -> bool:
        state = self._states.get(document_id)
        return bool(state and state.is_tracking)

    def stop_tracking(self, document_id: str) -> None:
        """Cancel any pending window and forget the document's state."""

        state = self._states.pop(document_id, None)
        if state is not None:
            state.cancel_timer()

    def clear_all(self) -> None:
        for state in self._states.values():
            state.cancel_timer()
        self._states.clear()

    def rebind(self, old_document_id: str, new_document_id: str) -> None:
        if old_document_id == new_document_id:
            return
        self.stop_tracking(new_document_id)
        state = self._states.pop(old_document_id, None)
        if state is None:
            return
        state.cancel_timer()
        state.reset()
        self._states[new_document_id] = state

    # ------------------------------------------------------------------
    # Path A: single large insertion
    # ------------------------------------------------------------------
    def _classify_paste(
        self,
        document_id: str,
        change: ContentChange,
        settings: ReviewSettings,
        *,
        old_text: str | None,
        old_regions: Sequence[Region],
        new_text: str | None,
    ) -> None:
        inserted_lines = change.inserted_line_count
        start = change.range.start_line
        span = LineRange(start, start + inserted_lines - 1)
        if self._is_full_replace(inserted_lines, settings, old_text=old_text, new_text=new_text):
            if new_text is None:
                flagged = unreviewed_lines(
                    old_text or "",
                    old_regions,
                    change.inserted_text,
                    window=settings.fingerprint_window,
                    line_offset=start,
                )
            else:
                # Context windows reach past the block into the untouched lines.
                flagged = [
                    line
                    for line in unreviewed_lines(
                        old_text or "",
                        old_regions,
                        new_text,
                        window=settings.fingerprint_window,
                    )
                    if span.contains(line)
                ]
            runs = group_contiguous_runs(flagged, min_size=1)
            LOGGER.debug(
                "Whole-document replacement in %s: %d of %d line(s) unreviewed",
                document_id,
                len(flagged),
                inserted_lines,
            )
            self._emit(document_id, DetectionKind.FULL_REPLACE, runs)
            return
        LOGGER.debug("Paste of %d line(s) detected in %s", inserted_lines, document_id)
        self._emit(document_id, DetectionKind.PASTE, [span])

    @staticmethod
    def _is_full_replace(
        inserted_lines: int,
        settings: ReviewSettings,
        *,
        old_text: str | None,
        new_text: str | None,
    ) -> bool:
        if old_text is None:
            return False
        if not old_text.strip():
            return True
        if new_text is None:
            return False
        resulting = line_count(new_text)
        return inserted_lines / resulting >= settings.full_replace_ratio

    # ------------------------------------------------------------------
    # Path B: streamed insertions
    # ------------------------------------------------------------------
    def _track(self, document_id: str, change: ContentChange, settings: ReviewSettings) -> None:
        now = self._clock()
        state = self._states.get(document_id)
        if state is None:
            state = ChangeTrackingState()
            self._states[document_id] = state
        if not state.is_tracking:
            state.begin(now)
        state.cancel_timer()
        state.total_characters += len(change.inserted_text)
        state.last_event_time = now
        span = change.inserted_span()
        if span is not None:
            state.affected_lines.update(span.lines())
        state.pending_timer = self._scheduler.call_later(
            settings.tracking_timeout,
            lambda: self._end_window(document_id),
        )

    def _end_window(self, document_id: str) -> None:
        state = self._states.get(document_id)
        if state is None or not state.is_tracking:
            return
        settings = self._settings()
        speed = state.speed()
        affected = len(state.affected_lines)
        LOGGER.debug(
            "Window closed for %s: %.1f chars/s over %d line(s)",
            document_id,
            speed,
            affected,
        )
        try:
            if speed > settings.typing_speed_threshold and affected > settings.minimum_streaming_lines:
                runs = group_contiguous_runs(state.affected_lines, min_size=settings.minimum_streaming_lines)
                self._emit(document_id, DetectionKind.STREAM, runs)
        finally:
            state.reset()

    # ------------------------------------------------------------------
    # Emission
    # ------------------------------------------------------------------
    def _emit(self, document_id: str, kind: str, runs: Iterable[LineRange]) -> None:
        ranges = tuple(runs)
        if not ranges:
            return
        for span in ranges:
            self._store.add(document_id, span.start_line, span.end_line)
        if self._bus is None:
            return
        self._bus.publish(RegionsDetected(document_id=document_id, kind=kind, ranges=ranges))
        self._bus.publish(RegionsChanged(document_id=document_id, reason="detected"))
