"""Last-known text per document so edits can be compared with the prior content."""

from __future__ import annotations

import logging
from typing import Dict

__all__ = ["ShadowTextManager"]

LOGGER = logging.getLogger(__name__)


class ShadowTextManager:
    """Keeps a copy of each open document's text.

    Hosts usually report changes after applying them; :meth:`swap` hands back
    the text as it was before the change and records the new text in its
    place.
    """

    def __init__(self) -> None:
        self._texts: Dict[str, str] = {}

    def open(self, document_id: str, text: str) -> None:
        self._texts[document_id] = text

    def close(self, document_id: str) -> None:
        self._texts.pop(document_id, None)

    def get(self, document_id: str) -> str | None:
        return self._texts.get(document_id)

    def swap(self, document_id: str, new_text: str) -> str | None:
        """Store ``new_text`` and return the previous text, or ``None`` if untracked."""

        previous = self._texts.get(document_id)
        if previous is None:
            LOGGER.debug("No shadow text for %s; starting from current content", document_id)
        self._texts[document_id] = new_text
        return previous

    def rename(self, old_document_id: str, new_document_id: str) -> None:
        text = self._texts.pop(old_document_id, None)
        if text is not None:
            self._texts[new_document_id] = text

    def clear_all(self) -> None:
        self._texts.clear()

    def __contains__(self, document_id: object) -> bool:
        return document_id in self._texts
