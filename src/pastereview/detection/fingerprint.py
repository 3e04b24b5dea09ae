"""Context fingerprints used to match lines across whole-document replacements.

When the entire buffer is replaced (reload, "select all + paste"), lines that
were already reviewed should not light up again just because they moved. Each
line is keyed by its own text plus the character volume of a few neighbouring
lines, which survives line-number shifts while staying cheap to compute.
"""

from __future__ import annotations

from typing import Iterable, NamedTuple, Sequence

from ..core.ranges import Region

__all__ = [
    "DEFAULT_CONTEXT_WINDOW",
    "LineFingerprint",
    "line_fingerprint",
    "reviewed_fingerprints",
    "reviewed_line_indices",
    "split_lines",
    "unreviewed_lines",
]

DEFAULT_CONTEXT_WINDOW = 5


class LineFingerprint(NamedTuple):
    text: str
    above_length: int
    below_length: int


def split_lines(text: str) -> list[str]:
    """Split ``text`` the way the editor numbers lines; empty text has no lines."""

    if not text:
        return []
    return text.split("\n")


def reviewed_line_indices(line_count: int, regions: Iterable[Region]) -> set[int]:
    """Return the line indices in ``[0, line_count)`` outside every region."""

    reviewed = set(range(max(0, line_count)))
    for region in regions:
        reviewed.difference_update(range(region.start_line, region.end_line + 1))
    return reviewed


def line_fingerprint(lines: Sequence[str], index: int, window: int = DEFAULT_CONTEXT_WINDOW) -> LineFingerprint:
    """Fingerprint ``lines[index]`` with up to ``window`` lines of context each side.

    Windows are truncated at the top and bottom of the document.
    """

    size = max(0, int(window))
    above = lines[max(0, index - size) : index]
    below = lines[index + 1 : index + 1 + size]
    return LineFingerprint(
        text=lines[index],
        above_length=sum(len(line) for line in above),
        below_length=sum(len(line) for line in below),
    )


def reviewed_fingerprints(
    old_text: str,
    old_regions: Iterable[Region],
    window: int = DEFAULT_CONTEXT_WINDOW,
) -> set[LineFingerprint]:
    """Fingerprints of every old line that was not awaiting review."""

    lines = split_lines(old_text)
    reviewed = reviewed_line_indices(len(lines), old_regions)
    return {line_fingerprint(lines, index, window) for index in reviewed}


def unreviewed_lines(
    old_text: str,
    old_regions: Iterable[Region],
    new_text: str,
    *,
    window: int = DEFAULT_CONTEXT_WINDOW,
    line_offset: int = 0,
) -> list[int]:
    """Return the lines of ``new_text`` that do not match reviewed old content.

    ``line_offset`` is added to every returned index so callers can map lines
    of an inserted block back to document coordinates.
    """

    new_lines = split_lines(new_text)
    if not new_lines:
        return []
    known = reviewed_fingerprints(old_text, old_regions, window)
    return [
        index + line_offset
        for index in range(len(new_lines))
        if line_fingerprint(new_lines, index, window) not in known
    ]
