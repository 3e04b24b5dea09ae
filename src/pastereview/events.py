"""Typed notifications published by the review engine.

Rendering, code lenses and persistence scheduling react to these events
instead of calling into the region store directly. Consumers re-query
:meth:`pastereview.regions.RegionStore.get` for the current state.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Generic, TypeVar
from weakref import WeakMethod, ref

from .core.ranges import LineRange

if TYPE_CHECKING:  # pragma: no cover - imports for type checking only
    from typing import DefaultDict

logger = logging.getLogger(__name__)

E = TypeVar("E", bound="Event")

Handler = Callable[[E], None]


@dataclass(slots=True)
class Event:
    """Base class for all review engine events."""


@dataclass(slots=True)
class RegionsChanged(Event):
    """The region list of a document changed.

    Attributes:
        document_id: The document whose regions changed.
        reason: Short tag such as ``"edit"``, ``"selection"``, ``"detected"``,
            ``"dismissed"``, ``"restored"`` or ``"discarded"``.
    """

    document_id: str
    reason: str = "edit"


@dataclass(slots=True)
class RegionsDetected(Event):
    """The classifier flagged new lines for review.

    Attributes:
        document_id: The document that received the insertion.
        kind: ``"paste"``, ``"full_replace"`` or ``"stream"``.
        ranges: The contiguous spans handed to the region store.
    """

    document_id: str
    kind: str
    ranges: tuple[LineRange, ...] = ()


@dataclass(slots=True)
class ManifestSaveFailed(Event):
    """Writing the manifest failed; in-memory regions are unchanged."""

    path: str
    error: str


@dataclass(slots=True)
class SettingsChanged(Event):
    """Runtime settings were updated."""

    changed: tuple[str, ...] = ()


class EventBus(Generic[E]):
    """Synchronous publish/subscribe bus.

    Bound methods are held through weak references so a subscriber that goes
    away is dropped automatically; plain functions and lambdas are held
    strongly. Handlers run in registration order on the caller's thread and a
    failing handler never prevents the others from running.
    """

    __slots__ = ("_handlers",)

    def __init__(self) -> None:
        self._handlers: DefaultDict[type[Event], list[_HandlerRef]] = defaultdict(list)

    def subscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        self._handlers[event_type].append(_HandlerRef.create(handler))
        logger.debug("Subscribed %s to %s", _handler_name(handler), event_type.__name__)

    def unsubscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        """Remove the first registration of ``handler``; unknown handlers are ignored."""

        handlers = self._handlers.get(event_type)
        if handlers is None:
            return
        for index, handler_ref in enumerate(handlers):
            if handler_ref.matches(handler):
                handlers.pop(index)
                return

    def publish(self, event: E) -> None:
        event_type = type(event)
        handlers = self._handlers.get(event_type)
        if not handlers:
            return
        logger.debug("Publishing %s to %d handler(s)", event_type.__name__, len(handlers))
        dead: list[_HandlerRef] = []
        for handler_ref in list(handlers):
            handler = handler_ref.resolve()
            if handler is None:
                dead.append(handler_ref)
                continue
            try:
                handler(event)
            except Exception:
                logger.exception(
                    "Handler %s raised exception for event %s",
                    _handler_name(handler),
                    event_type.__name__,
                )
        for handler_ref in dead:
            if handler_ref in handlers:
                handlers.remove(handler_ref)

    def clear(self) -> None:
        self._handlers.clear()

    def handler_count(self, event_type: type[E] | None = None) -> int:
        if event_type is not None:
            return len(self._handlers.get(event_type, []))
        return sum(len(handlers) for handlers in self._handlers.values())


class _HandlerRef:
    """Weak reference for bound methods, strong reference otherwise."""

    __slots__ = ("_ref", "_is_weak")

    def __init__(self, handler_ref: WeakMethod | ref | Handler, is_weak: bool) -> None:
        self._ref = handler_ref
        self._is_weak = is_weak

    @classmethod
    def create(cls, handler: Handler) -> _HandlerRef:
        if hasattr(handler, "__self__") and hasattr(handler, "__func__"):
            try:
                return cls(WeakMethod(handler), is_weak=True)
            except TypeError:
                pass
        return cls(handler, is_weak=False)

    def resolve(self) -> Handler | None:
        if not self._is_weak:
            return self._ref  # type: ignore[return-value]
        return self._ref()  # type: ignore[operator]

    def matches(self, handler: Handler) -> bool:
        resolved = self.resolve()
        if resolved is None:
            return False
        return resolved == handler


def _handler_name(handler: Handler) -> str:
    if hasattr(handler, "__self__") and hasattr(handler, "__func__"):
        return f"{type(handler.__self__).__name__}.{handler.__func__.__name__}"
    if hasattr(handler, "__name__"):
        return handler.__name__
    return repr(handler)


__all__ = [
    "Event",
    "EventBus",
    "Handler",
    "ManifestSaveFailed",
    "RegionsChanged",
    "RegionsDetected",
    "SettingsChanged",
]
