"""Per-document collections of not-yet-reviewed line regions."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Dict, Iterable, Iterator, List

from ..core.ranges import LineRange, Region

__all__ = ["RegionStore"]

LOGGER = logging.getLogger(__name__)


class RegionStore:
    """Owns the disjoint, ordered region list of every tracked document.

    The store performs no I/O and schedules nothing; callers clamp line
    numbers to the document before handing them over. After each mutation
    the collection is canonical: sorted by ``start_line`` with no two regions
    overlapping or touching end to end.
    """

    def __init__(self) -> None:
        self._regions: Dict[str, List[Region]] = {}

    # ------------------------------------------------------------------
    # Query helpers
    # ------------------------------------------------------------------
    def get(self, document_id: str) -> tuple[Region, ...]:
        """Return the regions of ``document_id`` in ascending line order."""

        return tuple(self._regions.get(document_id, ()))

    def find(self, document_id: str, region_id: str) -> Region | None:
        for region in self._regions.get(document_id, ()):
            if region.id == region_id:
                return region
        return None

    def region_at(self, document_id: str, line: int) -> Region | None:
        for region in self._regions.get(document_id, ()):
            if region.contains(line):
                return region
        return None

    def documents(self) -> tuple[str, ...]:
        return tuple(self._regions)

    def __contains__(self, document_id: object) -> bool:
        return document_id in self._regions

    def __iter__(self) -> Iterator[str]:
        return iter(tuple(self._regions))

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------
    def add(self, document_id: str, start_line: int, end_line: int) -> Region:
        """Track ``[start_line, end_line]`` and return the region covering it.

        Overlapping or adjacent regions are coalesced, so the returned region
        may be wider than the requested span and may carry an older id.
        """

        region = Region(start_line=start_line, end_line=end_line)
        regions = self._regions.get(document_id, [])
        regions.append(region)
        merged = _canonicalize(regions)
        self._regions[document_id] = merged
        LOGGER.debug("Added region %s-%s to %s", start_line, end_line, document_id)
        for candidate in merged:
            if candidate.contains(start_line):
                return candidate
        return region  # pragma: no cover - canonical form always covers start_line

    def remove_lines(self, document_id: str, line_range: LineRange) -> bool:
        """Drop every tracked line inside ``line_range``.

        Regions fully covered disappear, regions covered at one end shrink and
        keep their id, and regions covered in the middle are split into two
        regions with fresh ids. Returns ``True`` when anything changed.
        """

        regions = self._regions.get(document_id)
        if not regions:
            return False
        touched_start = line_range.start_line
        touched_end = line_range.end_line
        remaining: List[Region] = []
        modified = False
        for region in regions:
            if region.end_line < touched_start or region.start_line > touched_end:
                remaining.append(region)
                continue
            modified = True
            covers_start = touched_start <= region.start_line
            covers_end = touched_end >= region.end_line
            if covers_start and covers_end:
                continue
            if covers_start:
                remaining.append(replace(region, start_line=touched_end + 1))
            elif covers_end:
                remaining.append(replace(region, end_line=touched_start - 1))
            else:
                LOGGER.debug(
                    "Splitting region %s-%s around %s-%s",
                    region.start_line,
                    region.end_line,
                    touched_start,
                    touched_end,
                )
                remaining.append(Region(start_line=region.start_line, end_line=touched_start - 1))
                remaining.append(Region(start_line=touched_end + 1, end_line=region.end_line))
        if modified:
            self._store(document_id, remaining)
        return modified

    def shift_after_edit(
        self,
        document_id: str,
        edit_range: LineRange,
        inserted_text: str,
        replaced_line_count: int | None = None,
    ) -> None:
        """Translate regions after an edit that changed the document's line count.

        ``replaced_line_count`` is the number of line breaks removed by the
        edit; it defaults to the height of ``edit_range``. Regions that start
        after the edit's end line move by the line delta, a region straddling
        the end line only has its end adjusted.
        """

        regions = self._regions.get(document_id)
        if not regions:
            return
        if replaced_line_count is None:
            replaced_line_count = edit_range.end_line - edit_range.start_line
        delta = inserted_text.count("\n") - replaced_line_count
        if delta == 0:
            return
        edit_end = edit_range.end_line
        shifted: List[Region] = []
        for region in regions:
            if region.start_line > edit_end:
                shifted.append(
                    replace(
                        region,
                        start_line=region.start_line + delta,
                        end_line=region.end_line + delta,
                    )
                )
            elif region.end_line >= edit_end:
                new_end = max(region.start_line, region.end_line + delta)
                shifted.append(replace(region, end_line=new_end))
            else:
                shifted.append(region)
        self._store(document_id, shifted)

    def remove_region(self, document_id: str, region_id: str) -> bool:
        regions = self._regions.get(document_id)
        if not regions:
            return False
        remaining = [region for region in regions if region.id != region_id]
        if len(remaining) == len(regions):
            return False
        self._store(document_id, remaining)
        return True

    def replace_all(self, document_id: str, regions: Iterable[Region]) -> None:
        """Install a known-good region list, bypassing edit bookkeeping."""

        self._store(document_id, list(regions))

    def clear(self, document_id: str) -> bool:
        return self._regions.pop(document_id, None) is not None

    def clear_all(self) -> None:
        self._regions.clear()

    def rebind(self, old_document_id: str, new_document_id: str) -> None:
        """Move the collection owned by ``old_document_id`` to a new identity."""

        if old_document_id == new_document_id:
            return
        regions = self._regions.pop(old_document_id, None)
        if regions is None:
            return
        if new_document_id in self._regions:
            LOGGER.debug("Rebinding %s over existing regions of %s", old_document_id, new_document_id)
        self._regions[new_document_id] = regions

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _store(self, document_id: str, regions: List[Region]) -> None:
        canonical = _canonicalize(regions)
        if canonical:
            self._regions[document_id] = canonical
        else:
            self._regions.pop(document_id, None)


def _canonicalize(regions: Iterable[Region]) -> List[Region]:
    """Sort regions and coalesce any that overlap or touch.

    The earliest region of a merged group keeps its id.
    """

    ordered = sorted(regions, key=lambda region: (region.start_line, region.end_line))
    merged: List[Region] = []
    for region in ordered:
        if merged and region.start_line <= merged[-1].end_line + 1:
            last = merged[-1]
            if region.end_line > last.end_line:
                merged[-1] = replace(last, end_line=region.end_line)
            continue
        merged.append(region)
    return merged
