"""Line-based span helpers shared by the region store and the classifier."""

from __future__ import annotations

import uuid
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any


def new_region_id() -> str:
    return uuid.uuid4().hex


@dataclass(slots=True, frozen=True)
class LineRange:
    """Line-based representation of a span using inclusive bounds."""

    start_line: int
    end_line: int

    def __post_init__(self) -> None:
        start = self._coerce_index(self.start_line, "start_line")
        end = self._coerce_index(self.end_line, "end_line")
        if end < start:
            start, end = end, start
        object.__setattr__(self, "start_line", start)
        object.__setattr__(self, "end_line", end)

    @staticmethod
    def _coerce_index(value: Any, label: str) -> int:
        try:
            number = int(value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"LineRange {label} must be an integer") from exc
        if number < 0:
            return 0
        return number

    @property
    def line_count(self) -> int:
        """Return the number of lines covered by the span (inclusive)."""

        return (self.end_line - self.start_line) + 1

    def contains(self, line: int) -> bool:
        return self.start_line <= line <= self.end_line

    def lines(self) -> range:
        return range(self.start_line, self.end_line + 1)

    def to_tuple(self) -> tuple[int, int]:
        return (self.start_line, self.end_line)

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "LineRange":
        """Read ``start_line``/``end_line`` keys from a manifest payload."""

        start = payload.get("start_line")
        end = payload.get("end_line")
        if start is None or end is None:
            raise ValueError("LineRange mappings require start_line and end_line")
        return cls(start, end)


@dataclass(slots=True, frozen=True)
class Region:
    """A contiguous, inclusive block of lines that still needs review.

    ``id`` survives shifts and shrinks so collaborators can keep pointing at
    the same region while the document is edited elsewhere.
    """

    start_line: int
    end_line: int
    id: str = field(default_factory=new_region_id)

    @property
    def line_count(self) -> int:
        return (self.end_line - self.start_line) + 1

    @property
    def span(self) -> LineRange:
        return LineRange(self.start_line, self.end_line)

    def contains(self, line: int) -> bool:
        return self.start_line <= line <= self.end_line

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "start_line": self.start_line, "end_line": self.end_line}

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Region":
        """Build a region from its manifest form, validating the bounds."""

        span = LineRange.from_mapping(payload)
        if int(payload["end_line"]) < int(payload["start_line"]):
            raise ValueError("Region end_line precedes start_line")
        region_id = payload.get("id")
        if not isinstance(region_id, str) or not region_id:
            region_id = new_region_id()
        return cls(start_line=span.start_line, end_line=span.end_line, id=region_id)


def group_contiguous_runs(lines: Iterable[int], *, min_size: int = 1) -> list[LineRange]:
    """Group line numbers into ascending contiguous runs.

    Runs shorter than ``min_size`` lines are dropped.
    """

    ordered = sorted(set(lines))
    if not ordered:
        return []
    runs: list[LineRange] = []
    run_start = run_end = ordered[0]
    for line in ordered[1:]:
        if line == run_end + 1:
            run_end = line
            continue
        runs.append(LineRange(run_start, run_end))
        run_start = run_end = line
    runs.append(LineRange(run_start, run_end))
    threshold = max(1, int(min_size))
    return [run for run in runs if run.line_count >= threshold]


__all__ = ["LineRange", "Region", "group_contiguous_runs", "new_region_id"]
