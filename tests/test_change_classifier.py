"""Tests for :mod:`pastereview.detection.classifier`."""

from __future__ import annotations

import pytest

from pastereview.core.ranges import Region
from pastereview.detection.classifier import ChangeClassifier, DetectionKind
from pastereview.events import EventBus, RegionsChanged, RegionsDetected
from pastereview.regions.store import RegionStore
from pastereview.services.settings import SettingsProvider
from tests.helpers import FakeClock, ManualScheduler, insert, numbered_lines, replace_lines, spans

DOC = "doc"


@pytest.fixture
def classifier(
    store: RegionStore,
    settings: SettingsProvider,
    scheduler: ManualScheduler,
    clock: FakeClock,
    bus: EventBus,
) -> ChangeClassifier:
    return ChangeClassifier(store, settings=settings.current, scheduler=scheduler, clock=clock, event_bus=bus)


@pytest.fixture
def detections(bus: EventBus) -> list[RegionsDetected]:
    received: list[RegionsDetected] = []
    bus.subscribe(RegionsDetected, received.append)
    return received


def _stream_lines(
    classifier: ChangeClassifier,
    clock: FakeClock,
    *,
    lines: int,
    chars_per_line: int = 8,
    step: float = 0.001,
    start_line: int = 0,
) -> None:
    for offset in range(lines):
        text = "x" * (chars_per_line - 1) + "\n"
        classifier.process_edit(insert(DOC, start_line + offset, text))
        clock.advance(step)


class TestDirectPaste:
    def test_paste_at_threshold_creates_region(
        self, classifier: ChangeClassifier, store: RegionStore, scheduler: ManualScheduler
    ) -> None:
        classifier.process_edit(insert(DOC, 5, numbered_lines(20)))
        assert spans(store.get(DOC)) == [(5, 24)]
        assert scheduler.pending() == []

    def test_paste_below_threshold_is_not_immediate(
        self, classifier: ChangeClassifier, store: RegionStore, scheduler: ManualScheduler
    ) -> None:
        classifier.process_edit(insert(DOC, 5, numbered_lines(19)))
        assert store.get(DOC) == ()
        assert len(scheduler.pending()) == 1

    def test_trailing_newline_counts_as_a_line(self, classifier: ChangeClassifier, store: RegionStore) -> None:
        classifier.process_edit(insert(DOC, 5, numbered_lines(19) + "\n"))
        assert spans(store.get(DOC)) == [(5, 24)]

    def test_single_small_paste_never_flags(
        self, classifier: ChangeClassifier, store: RegionStore, scheduler: ManualScheduler
    ) -> None:
        classifier.process_edit(insert(DOC, 5, numbered_lines(19)))
        scheduler.run_all()
        assert store.get(DOC) == ()

    def test_paste_publishes_detection_and_change(
        self,
        classifier: ChangeClassifier,
        bus: EventBus,
        detections: list[RegionsDetected],
    ) -> None:
        changes: list[RegionsChanged] = []
        bus.subscribe(RegionsChanged, changes.append)
        classifier.process_edit(insert(DOC, 0, numbered_lines(25)))
        assert [event.kind for event in detections] == [DetectionKind.PASTE]
        assert detections[0].ranges[0].to_tuple() == (0, 24)
        assert [(event.document_id, event.reason) for event in changes] == [(DOC, "detected")]

    def test_threshold_read_at_decision_time(
        self, classifier: ChangeClassifier, store: RegionStore, settings: SettingsProvider
    ) -> None:
        settings.update(minimum_paste_lines=5)
        classifier.process_edit(insert(DOC, 0, numbered_lines(5)))
        assert spans(store.get(DOC)) == [(0, 4)]

    def test_deletions_are_ignored(
        self, classifier: ChangeClassifier, store: RegionStore, scheduler: ManualScheduler
    ) -> None:
        classifier.process_edit(replace_lines(DOC, 0, 40, "", replaced_length=400))
        assert store.get(DOC) == ()
        assert scheduler.pending() == []


class TestWholeDocumentReplacement:
    def test_paste_into_empty_document_flags_everything(
        self, classifier: ChangeClassifier, store: RegionStore, detections: list[RegionsDetected]
    ) -> None:
        content = numbered_lines(30)
        classifier.process_edit(insert(DOC, 0, content), old_text="", new_text=content)
        assert spans(store.get(DOC)) == [(0, 29)]
        assert detections[0].kind == DetectionKind.FULL_REPLACE

    def test_identical_reviewed_content_flags_nothing(
        self, classifier: ChangeClassifier, store: RegionStore, detections: list[RegionsDetected]
    ) -> None:
        content = numbered_lines(40)
        event = replace_lines(DOC, 0, 39, content, replaced_length=len(content))
        classifier.process_edit(event, old_text=content, old_regions=(), new_text=content)
        assert store.get(DOC) == ()
        assert detections == []

    def test_altered_line_is_flagged(self, classifier: ChangeClassifier, store: RegionStore) -> None:
        old_lines = [f"value_{index} = {index}" for index in range(40)]
        new_lines = list(old_lines)
        new_lines[17] = "value_17 = compute()"
        old_text = "\n".join(old_lines)
        new_text = "\n".join(new_lines)
        event = replace_lines(DOC, 0, 39, new_text, replaced_length=len(old_text))
        classifier.process_edit(event, old_text=old_text, old_regions=(), new_text=new_text)
        (region,) = store.get(DOC)
        assert region.start_line <= 17 <= region.end_line
        assert region.start_line >= 12 and region.end_line <= 22

    def test_identical_block_over_most_of_document_flags_nothing(
        self, classifier: ChangeClassifier, store: RegionStore
    ) -> None:
        content = numbered_lines(100)
        block = "\n".join(content.split("\n")[:90]) + "\n"
        event = replace_lines(DOC, 0, 90, block, replaced_length=len(block))
        classifier.process_edit(event, old_text=content, old_regions=(), new_text=content)
        assert store.get(DOC) == ()

    def test_altered_line_in_block_flags_only_its_neighbourhood(
        self, classifier: ChangeClassifier, store: RegionStore
    ) -> None:
        old_lines = [f"value_{index} = {index}" for index in range(100)]
        new_lines = list(old_lines)
        new_lines[3] = "value_3 = compute()"
        block = "\n".join(new_lines[:90]) + "\n"
        event = replace_lines(DOC, 0, 90, block, replaced_length=len(block))
        classifier.process_edit(
            event, old_text="\n".join(old_lines), old_regions=(), new_text="\n".join(new_lines)
        )
        (region,) = store.get(DOC)
        assert region.start_line <= 3 <= region.end_line
        assert region.end_line <= 8

    def test_previously_unreviewed_lines_are_reflagged(
        self, classifier: ChangeClassifier, store: RegionStore
    ) -> None:
        content = numbered_lines(40)
        old_regions = (Region(10, 12),)
        event = replace_lines(DOC, 0, 39, content, replaced_length=len(content))
        classifier.process_edit(event, old_text=content, old_regions=old_regions, new_text=content)
        (region,) = store.get(DOC)
        assert region.start_line <= 10 and region.end_line >= 12

    def test_partial_paste_below_ratio_flags_inserted_span(
        self, classifier: ChangeClassifier, store: RegionStore, detections: list[RegionsDetected]
    ) -> None:
        old_text = numbered_lines(100, prefix="old")
        pasted = numbered_lines(20, prefix="new")
        new_text = pasted + "\n" + old_text
        classifier.process_edit(insert(DOC, 0, pasted + "\n"), old_text=old_text, new_text=new_text)
        assert detections[0].kind == DetectionKind.PASTE
        assert spans(store.get(DOC)) == [(0, 20)]

    def test_ratio_boundary_is_inclusive(
        self, classifier: ChangeClassifier, detections: list[RegionsDetected]
    ) -> None:
        old_text = numbered_lines(5, prefix="old")
        pasted = numbered_lines(20, prefix="new")
        new_text = pasted + "\n" + old_text
        # 20 inserted lines out of 25 is exactly 0.8.
        classifier.process_edit(insert(DOC, 0, pasted), old_text=old_text, new_text=new_text)
        assert detections[0].kind == DetectionKind.FULL_REPLACE

    def test_without_old_text_falls_back_to_paste(
        self, classifier: ChangeClassifier, detections: list[RegionsDetected]
    ) -> None:
        content = numbered_lines(30)
        classifier.process_edit(insert(DOC, 0, content), new_text=content)
        assert detections[0].kind == DetectionKind.PASTE


class TestStreaming:
    def test_fast_stream_over_threshold_creates_region(
        self,
        classifier: ChangeClassifier,
        store: RegionStore,
        scheduler: ManualScheduler,
        clock: FakeClock,
        detections: list[RegionsDetected],
    ) -> None:
        # 25 lines, 200 characters, well under 0.1 seconds.
        _stream_lines(classifier, clock, lines=25, chars_per_line=8, step=0.002)
        assert store.get(DOC) == ()
        scheduler.advance(0.1)
        assert spans(store.get(DOC)) == [(0, 25)]
        assert detections[0].kind == DetectionKind.STREAM

    def test_too_few_lines_creates_nothing(
        self,
        classifier: ChangeClassifier,
        store: RegionStore,
        scheduler: ManualScheduler,
        clock: FakeClock,
    ) -> None:
        for line in range(15):
            classifier.process_edit(insert(DOC, line, "y" * 13))
            clock.advance(0.002)
        scheduler.advance(0.1)
        assert store.get(DOC) == ()

    def test_slow_typing_creates_nothing(
        self,
        classifier: ChangeClassifier,
        store: RegionStore,
        scheduler: ManualScheduler,
        clock: FakeClock,
    ) -> None:
        # One character per line every 0.05 seconds stays far below 110 chars/s.
        for line in range(30):
            classifier.process_edit(insert(DOC, line, "\n"))
            clock.advance(0.05)
            scheduler.advance(0.05)
        scheduler.run_all()
        assert store.get(DOC) == ()

    def test_exactly_minimum_lines_is_not_enough(
        self,
        classifier: ChangeClassifier,
        store: RegionStore,
        scheduler: ManualScheduler,
        clock: FakeClock,
    ) -> None:
        for line in range(20):
            classifier.process_edit(insert(DOC, line, "z" * 12))
            clock.advance(0.001)
        scheduler.run_all()
        assert store.get(DOC) == ()

    def test_zero_elapsed_counts_as_infinite_speed(
        self,
        classifier: ChangeClassifier,
        store: RegionStore,
        scheduler: ManualScheduler,
    ) -> None:
        for line in range(21):
            classifier.process_edit(insert(DOC, line, "q"))
        scheduler.run_all()
        assert spans(store.get(DOC)) == [(0, 20)]

    def test_short_fragments_are_dropped(
        self,
        classifier: ChangeClassifier,
        store: RegionStore,
        scheduler: ManualScheduler,
        clock: FakeClock,
    ) -> None:
        for line in list(range(0, 22)) + [50, 51, 52]:
            classifier.process_edit(insert(DOC, line, "abcdef"))
            clock.advance(0.001)
        scheduler.run_all()
        assert spans(store.get(DOC)) == [(0, 21)]

    def test_edits_within_window_coalesce_into_one_decision(
        self,
        classifier: ChangeClassifier,
        scheduler: ManualScheduler,
        clock: FakeClock,
        detections: list[RegionsDetected],
        settings: SettingsProvider,
    ) -> None:
        settings.update(minimum_streaming_lines=2)
        for line in (0, 1, 2):
            classifier.process_edit(insert(DOC, line, "abcdefgh"))
            clock.advance(0.01)
            scheduler.advance(0.05)
        assert len(scheduler.pending()) == 1
        assert scheduler.advance(0.1) == 1
        assert len(detections) == 1
        assert detections[0].ranges[0].to_tuple() == (0, 2)

    def test_window_resets_after_decision(
        self,
        classifier: ChangeClassifier,
        store: RegionStore,
        scheduler: ManualScheduler,
        clock: FakeClock,
    ) -> None:
        for line in range(12):
            classifier.process_edit(insert(DOC, line, "abcdefgh"))
        scheduler.run_all()
        state = classifier.state(DOC)
        assert state is not None
        assert not state.is_tracking
        assert state.affected_lines == set()
        for line in range(12, 24):
            classifier.process_edit(insert(DOC, line, "abcdefgh"))
        scheduler.run_all()
        # Two windows of 12 lines each never reach the 20 line threshold.
        assert store.get(DOC) == ()


class TestLifecycle:
    def test_stop_tracking_cancels_timer(
        self, classifier: ChangeClassifier, store: RegionStore, scheduler: ManualScheduler
    ) -> None:
        for line in range(25):
            classifier.process_edit(insert(DOC, line, "abc"))
        classifier.stop_tracking(DOC)
        assert classifier.state(DOC) is None
        assert scheduler.pending() == []
        assert store.get(DOC) == ()

    def test_late_timer_for_discarded_document_is_noop(
        self, classifier: ChangeClassifier, store: RegionStore, scheduler: ManualScheduler
    ) -> None:
        for line in range(25):
            classifier.process_edit(insert(DOC, line, "abc"))
        timer = scheduler.pending()[0]
        classifier.clear_all()
        timer.callback()
        assert store.get(DOC) == ()

    def test_documents_track_independently(
        self, classifier: ChangeClassifier, store: RegionStore, scheduler: ManualScheduler
    ) -> None:
        for line in range(25):
            classifier.process_edit(insert("a", line, "abc"))
        for line in range(5):
            classifier.process_edit(insert("b", line, "abc"))
        scheduler.run_all()
        assert spans(store.get("a")) == [(0, 24)]
        assert store.get("b") == ()
