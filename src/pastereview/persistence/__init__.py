"""Manifest persistence for review regions."""

from .gate import OpenOutcome, PersistenceGate
from .manifest import DEFAULT_MANIFEST_FILENAME, Manifest, ManifestEntry, ManifestStore
from .save_scheduler import SaveScheduler

__all__ = [
    "DEFAULT_MANIFEST_FILENAME",
    "Manifest",
    "ManifestEntry",
    "ManifestStore",
    "OpenOutcome",
    "PersistenceGate",
    "SaveScheduler",
]
