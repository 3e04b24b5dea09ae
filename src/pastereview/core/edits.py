"""Value types describing the raw events reported by the host editor."""

from __future__ import annotations

from dataclasses import dataclass, field

from .ranges import LineRange


@dataclass(slots=True, frozen=True)
class ContentChange:
    """One replacement inside a document.

    ``range`` covers the lines of the replaced text before the change was
    applied; deletions carry an empty ``inserted_text``.
    """

    range: LineRange
    inserted_text: str = ""
    replaced_length: int = 0

    @property
    def is_deletion(self) -> bool:
        return not self.inserted_text

    @property
    def inserted_line_count(self) -> int:
        """Number of lines spanned by the inserted text (``0`` for deletions).

        A trailing newline counts the line it leads into, so the line after a
        pasted block is part of its span.
        """

        if not self.inserted_text:
            return 0
        return self.inserted_text.count("\n") + 1

    @property
    def inserted_line_breaks(self) -> int:
        return self.inserted_text.count("\n")

    @property
    def replaced_line_breaks(self) -> int:
        return self.range.end_line - self.range.start_line

    @property
    def line_delta(self) -> int:
        return self.inserted_line_breaks - self.replaced_line_breaks

    def inserted_span(self) -> LineRange | None:
        """Return the lines occupied by the inserted text after the change."""

        count = self.inserted_line_count
        if count == 0:
            return None
        start = self.range.start_line
        return LineRange(start, start + count - 1)


@dataclass(slots=True, frozen=True)
class EditEvent:
    """A batch of content changes reported for one document."""

    document_id: str
    changes: tuple[ContentChange, ...] = field(default_factory=tuple)


@dataclass(slots=True, frozen=True)
class SelectionEvent:
    """Cursor or selection movement; each selection is a line span."""

    document_id: str
    selections: tuple[LineRange, ...] = field(default_factory=tuple)


def line_count(text: str) -> int:
    """Return the number of lines an editor shows for ``text``."""

    return text.count("\n") + 1


__all__ = ["ContentChange", "EditEvent", "SelectionEvent", "line_count"]
