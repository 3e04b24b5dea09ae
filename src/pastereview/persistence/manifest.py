"""Workspace manifest recording unreviewed regions per file."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, Mapping

from ..core.ranges import Region
from ..utils.file_io import write_text

__all__ = ["Manifest", "ManifestEntry", "ManifestStore", "DEFAULT_MANIFEST_FILENAME"]

LOGGER = logging.getLogger(__name__)
DEFAULT_MANIFEST_FILENAME = ".pastereview.json"
_MANIFEST_VERSION = 1


@dataclass(slots=True)
class ManifestEntry:
    """Saved regions of one file together with the digest they were recorded against."""

    path: str
    digest: str
    regions: tuple[Region, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        ordered = sorted(self.regions, key=lambda region: (region.start_line, region.end_line))
        return {
            "path": self.path,
            "digest": self.digest,
            "regions": [region.to_dict() for region in ordered],
        }


@dataclass(slots=True)
class Manifest:
    """In-memory form of the manifest file keyed by workspace-relative path."""

    entries: Dict[str, ManifestEntry] = field(default_factory=dict)

    def get(self, path: str) -> ManifestEntry | None:
        return self.entries.get(path)

    def set(self, entry: ManifestEntry) -> None:
        self.entries[entry.path] = entry

    def remove(self, path: str) -> bool:
        return self.entries.pop(path, None) is not None

    def rename(self, old_path: str, new_path: str) -> bool:
        """Rekey the entry for ``old_path``; returns ``False`` when there is none."""

        entry = self.entries.pop(old_path, None)
        if entry is None:
            return False
        entry.path = new_path
        self.entries[new_path] = entry
        return True

    def paths(self) -> list[str]:
        return sorted(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[ManifestEntry]:
        for path in self.paths():
            yield self.entries[path]

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": _MANIFEST_VERSION,
            "files": [entry.to_dict() for entry in self],
        }


class ManifestStore:
    """Reads and writes the manifest JSON file."""

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def exists(self) -> bool:
        return self._path.exists()

    def load(self) -> Manifest:
        """Load the manifest; missing or unreadable files give an empty one."""

        payload = self._read_payload()
        manifest = Manifest()
        files = payload.get("files")
        if files is None:
            return manifest
        if not isinstance(files, list):
            LOGGER.warning("Manifest %s has a malformed 'files' list", self._path)
            return manifest
        for raw in files:
            entry = _coerce_entry(raw)
            if entry is None:
                LOGGER.warning("Skipping malformed manifest entry in %s: %r", self._path, raw)
                continue
            manifest.set(entry)
        return manifest

    def save(self, manifest: Manifest) -> Path:
        """Write ``manifest`` atomically; ``OSError`` propagates to the caller."""

        body = json.dumps(manifest.to_dict(), indent=2) + "\n"
        write_text(self._path, body)
        LOGGER.debug("Manifest saved to %s (%d file(s))", self._path, len(manifest))
        return self._path

    def _read_payload(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            LOGGER.warning("Manifest %s is not valid JSON: %s", self._path, exc)
            return {}
        if not isinstance(data, Mapping):
            LOGGER.warning("Manifest %s does not contain an object", self._path)
            return {}
        return dict(data)


def _coerce_entry(value: Any) -> ManifestEntry | None:
    if not isinstance(value, Mapping):
        return None
    path = value.get("path")
    digest = value.get("digest")
    if not isinstance(path, str) or not path or not isinstance(digest, str):
        return None
    raw_regions = value.get("regions") or []
    if not isinstance(raw_regions, list):
        return None
    regions: list[Region] = []
    for raw in raw_regions:
        if not isinstance(raw, Mapping):
            return None
        try:
            regions.append(Region.from_dict(raw))
        except (KeyError, TypeError, ValueError):
            return None
    return ManifestEntry(path=path, digest=digest, regions=tuple(regions))
