"""Digest-gated restore and save of region state against the workspace manifest."""

from __future__ import annotations

import enum
import logging
import os
from pathlib import Path

from ..events import Event, EventBus, ManifestSaveFailed, RegionsChanged
from ..regions.store import RegionStore
from ..utils.file_io import compute_file_digest, compute_text_digest
from .manifest import Manifest, ManifestEntry, ManifestStore

__all__ = ["OpenOutcome", "PersistenceGate"]

LOGGER = logging.getLogger(__name__)


class OpenOutcome(enum.Enum):
    """What :meth:`PersistenceGate.on_open` did with the saved state."""

    NO_STATE = "no_state"
    RESTORED = "restored"
    DISCARDED = "discarded"


class PersistenceGate:
    """Decides whether saved regions still describe a file's content.

    Saved regions are only trusted when the SHA-256 digest recorded with them
    matches the current content. Manifest write failures are logged and
    published as :class:`~pastereview.events.ManifestSaveFailed`; they never
    raise into callers and never touch the in-memory regions.
    """

    def __init__(
        self,
        manifest_store: ManifestStore,
        store: RegionStore,
        workspace_root: Path | str,
        *,
        event_bus: EventBus | None = None,
    ) -> None:
        self._manifest_store = manifest_store
        self._store = store
        self._root = Path(workspace_root)
        self._bus = event_bus
        self._manifest: Manifest | None = None

    @property
    def workspace_root(self) -> Path:
        return self._root

    @property
    def manifest(self) -> Manifest:
        if self._manifest is None:
            self._manifest = self._manifest_store.load()
        return self._manifest

    def reload(self) -> Manifest:
        self._manifest = self._manifest_store.load()
        return self._manifest

    def relative_key(self, path: Path | str) -> str:
        """Return the manifest key for ``path``.

        Paths inside the workspace become relative POSIX paths; anything else
        keeps its absolute POSIX form.
        """

        candidate = Path(path)
        if not candidate.is_absolute():
            candidate = self._root / candidate
        absolute = Path(os.path.abspath(candidate))
        root = Path(os.path.abspath(self._root))
        try:
            return absolute.relative_to(root).as_posix()
        except ValueError:
            return absolute.as_posix()

    def absolute_path(self, key: str) -> Path:
        candidate = Path(key)
        if candidate.is_absolute():
            return candidate
        return self._root / candidate

    # ------------------------------------------------------------------
    # Lifecycle hooks
    # ------------------------------------------------------------------
    def on_open(self, document_id: str, path: Path | str, content: str | None = None) -> OpenOutcome:
        """Restore saved regions for ``document_id`` when the digest still matches.

        ``content`` is the buffer text at open time; when omitted the file is
        read from disk.
        """

        key = self.relative_key(path)
        entry = self.manifest.get(key)
        if entry is None or not entry.regions:
            return OpenOutcome.NO_STATE

        try:
            digest = compute_text_digest(content) if content is not None else compute_file_digest(self.absolute_path(key))
        except OSError as exc:
            LOGGER.warning("Unable to read %s for digest check: %s", path, exc)
            return OpenOutcome.NO_STATE

        if digest == entry.digest:
            self._store.replace_all(document_id, entry.regions)
            LOGGER.debug("Restored %d region(s) for %s", len(entry.regions), key)
            self._publish(RegionsChanged(document_id=document_id, reason="restored"))
            return OpenOutcome.RESTORED

        LOGGER.info("Discarding stale regions for %s; content changed outside review", key)
        self.manifest.remove(key)
        if self._store.clear(document_id):
            self._publish(RegionsChanged(document_id=document_id, reason="discarded"))
        self._write()
        return OpenOutcome.DISCARDED

    def save(self, document_id: str, path: Path | str) -> bool:
        """Record the current regions of ``document_id`` under ``path``.

        The digest is taken from the file on disk. Entries are dropped when the
        document has no regions or the file no longer exists. Returns ``False``
        when the manifest could not be written.
        """

        key = self.relative_key(path)
        target = self.absolute_path(key)
        regions = self._store.get(document_id)
        manifest = self.manifest

        if not regions or not target.exists():
            if not manifest.remove(key):
                return True
            return self._write()

        try:
            digest = compute_file_digest(target)
        except OSError as exc:
            LOGGER.warning("Unable to digest %s; regions not saved: %s", target, exc)
            self._publish(ManifestSaveFailed(path=key, error=str(exc)))
            return False
        manifest.set(ManifestEntry(path=key, digest=digest, regions=regions))
        return self._write()

    def rename(self, old_path: Path | str, new_path: Path | str) -> bool:
        """Move the entry for ``old_path`` to ``new_path`` without touching its digest."""

        old_key = self.relative_key(old_path)
        new_key = self.relative_key(new_path)
        if old_key == new_key or not self.manifest.rename(old_key, new_key):
            return False
        LOGGER.debug("Manifest entry renamed %s -> %s", old_key, new_key)
        return self._write()

    def forget(self, path: Path | str) -> bool:
        """Remove the entry for ``path``; returns ``True`` when one existed."""

        if not self.manifest.remove(self.relative_key(path)):
            return False
        self._write()
        return True

    def prune_missing(self) -> list[str]:
        """Drop entries whose files no longer exist and return their keys."""

        manifest = self.manifest
        missing = [key for key in manifest.paths() if not self.absolute_path(key).exists()]
        for key in missing:
            manifest.remove(key)
        if missing:
            LOGGER.info("Pruned %d manifest entries for missing files", len(missing))
            self._write()
        return missing

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _write(self) -> bool:
        try:
            self._manifest_store.save(self.manifest)
        except OSError as exc:
            LOGGER.warning("Failed to write manifest %s: %s", self._manifest_store.path, exc)
            self._publish(ManifestSaveFailed(path=str(self._manifest_store.path), error=str(exc)))
            return False
        return True

    def _publish(self, event: Event) -> None:
        if self._bus is not None:
            self._bus.publish(event)
