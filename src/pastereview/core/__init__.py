"""Core value types shared across the region engine."""

from .edits import ContentChange, EditEvent, SelectionEvent, line_count
from .ranges import LineRange, Region, group_contiguous_runs, new_region_id

__all__ = [
    "ContentChange",
    "EditEvent",
    "LineRange",
    "Region",
    "SelectionEvent",
    "group_contiguous_runs",
    "line_count",
    "new_region_id",
]
