"""Adapter feeding a PySide6 ``QPlainTextEdit`` into a :class:`ReviewSession`."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from PySide6.QtCore import QObject
from PySide6.QtWidgets import QPlainTextEdit

from ..core.edits import ContentChange, EditEvent, SelectionEvent, line_count
from ..core.ranges import LineRange

if TYPE_CHECKING:  # pragma: no cover - import cycle guard
    from ..persistence.gate import OpenOutcome
    from ..session import ReviewSession

__all__ = ["QtEditorBridge"]

LOGGER = logging.getLogger(__name__)


class QtEditorBridge(QObject):
    """Connects one editor widget to the session.

    The bridge is a child of the editor, so it lives as long as the widget
    does without the caller holding a reference.

    ``QTextDocument.contentsChange`` reports character offsets into the text
    after the change; the shadow copy held by the session supplies the text
    before it, which is where the replaced line range is measured. Cursor
    moves that come from the user (not from an edit) are forwarded as
    selections so touching a flagged line dismisses it.
    """

    def __init__(
        self,
        session: "ReviewSession",
        editor: QPlainTextEdit,
        document_id: str,
        path: Path | str,
    ) -> None:
        if not isinstance(editor, QPlainTextEdit):
            raise TypeError("QtEditorBridge expects a QPlainTextEdit")
        super().__init__(editor)
        self._session = session
        self._editor = editor
        self._document = editor.document()
        self._document_id = document_id
        self._attached = False
        self._last_revision = self._document.revision()
        self.outcome: "OpenOutcome" = session.open_document(document_id, path, editor.toPlainText())
        self._document.contentsChange.connect(self._handle_contents_change)
        self._editor.cursorPositionChanged.connect(self._handle_cursor_moved)
        self._attached = True

    @property
    def document_id(self) -> str:
        return self._document_id

    @property
    def attached(self) -> bool:
        return self._attached

    def detach(self) -> None:
        """Disconnect from the widget and close the document in the session.

        The editor gives up ownership; the bridge is collected once the
        caller drops it.
        """

        if not self._attached:
            return
        self._attached = False
        self._document.contentsChange.disconnect(self._handle_contents_change)
        self._editor.cursorPositionChanged.disconnect(self._handle_cursor_moved)
        self.setParent(None)
        self._session.close_document(self._document_id)

    def rename(self, new_document_id: str, new_path: Path | str) -> None:
        self._session.rename_document(self._document_id, new_document_id, new_path)
        self._document_id = new_document_id

    # ------------------------------------------------------------------
    # Qt signal handlers
    # ------------------------------------------------------------------
    def _handle_contents_change(self, position: int, chars_removed: int, chars_added: int) -> None:
        new_text = self._editor.toPlainText()
        old_text = self._session.shadow.get(self._document_id)
        if old_text is None:
            old_text = ""
        event = _build_edit_event(self._document_id, old_text, new_text, position, chars_removed, chars_added)
        if event is None:
            self._session.shadow.swap(self._document_id, new_text)
            return
        self._session.handle_edit(event, new_text)

    def _handle_cursor_moved(self) -> None:
        revision = self._document.revision()
        if revision != self._last_revision:
            # Cursor moved because the text changed underneath it.
            self._last_revision = revision
            return
        cursor = self._editor.textCursor()
        text = self._editor.toPlainText()
        start = text.count("\n", 0, cursor.selectionStart())
        end = text.count("\n", 0, cursor.selectionEnd())
        event = SelectionEvent(self._document_id, (LineRange(start, end),))
        self._session.handle_selection(event, line_count(text))


def _build_edit_event(
    document_id: str,
    old_text: str,
    new_text: str,
    position: int,
    chars_removed: int,
    chars_added: int,
) -> EditEvent | None:
    """Translate a ``contentsChange`` triple into an :class:`EditEvent`.

    Qt may over-report lengths by the trailing block separator when the whole
    document is replaced, so slices are clamped to the real text. Returns
    ``None`` for format-only changes.
    """

    position = max(0, min(position, len(old_text)))
    removed = old_text[position : position + max(0, chars_removed)]
    inserted = new_text[position : position + max(0, chars_added)]
    if not removed and not inserted:
        return None
    if removed == inserted:
        return None
    start_line = old_text.count("\n", 0, position)
    end_line = start_line + removed.count("\n")
    change = ContentChange(
        range=LineRange(start_line, end_line),
        inserted_text=inserted,
        replaced_length=len(removed),
    )
    return EditEvent(document_id, (change,))
