"""Region bookkeeping for reviewable line spans."""

from .store import RegionStore

__all__ = ["RegionStore"]
