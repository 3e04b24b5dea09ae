"""Flag pasted and streamed code for human review and track it across edits."""

from .core.edits import ContentChange, EditEvent, SelectionEvent
from .core.ranges import LineRange, Region
from .events import EventBus, ManifestSaveFailed, RegionsChanged, RegionsDetected
from .regions.store import RegionStore
from .services.settings import ReviewSettings
from .session import ReviewSession

__all__ = [
    "ContentChange",
    "EditEvent",
    "EventBus",
    "LineRange",
    "ManifestSaveFailed",
    "Region",
    "RegionStore",
    "RegionsChanged",
    "RegionsDetected",
    "ReviewSession",
    "ReviewSettings",
    "SelectionEvent",
    "__version__",
]

__version__ = "0.1.0"
