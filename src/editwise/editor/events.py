"""Event bus for workspace change notifications.

Components subscribe to event types and receive published instances
synchronously. Bound-method handlers are held weakly so subscribers can be
garbage collected without unsubscribing.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Callable, Generic, TypeVar
from weakref import WeakMethod

LOGGER = logging.getLogger(__name__)

E = TypeVar("E", bound="Event")

Handler = Callable[[E], None]


@dataclass(slots=True)
class Event:
    """Base class for all workspace events."""


@dataclass(slots=True)
class DocumentOpened(Event):
    """Emitted when a document is added to the workspace.

    Attributes:
        uri: The document URI.
        language_id: Language of the opened document.
        version_id: Initial version number.
    """

    uri: str
    language_id: str
    version_id: int


@dataclass(slots=True)
class DocumentChanged(Event):
    """Emitted when a document's text or selection changes.

    Attributes:
        uri: The document URI.
        version_id: Version after the change.
        content_hash: Hash of the new content.
        selection_only: True when only the selection moved.
    """

    uri: str
    version_id: int
    content_hash: str
    selection_only: bool = False


@dataclass(slots=True)
class DocumentClosed(Event):
    uri: str


@dataclass(slots=True)
class DocumentFocused(Event):
    """Emitted when the active document changes; ``uri`` is None when nothing has focus."""

    uri: str | None


@dataclass(slots=True)
class WorkspaceFoldersChanged(Event):
    folders: tuple[str, ...]


class EventBus(Generic[E]):
    """Synchronous publish/subscribe dispatcher keyed by event type.

    Handlers run in subscription order. A handler that raises is logged and
    the remaining handlers still run.
    """

    def __init__(self) -> None:
        self._handlers: defaultdict[type, list[_HandlerRef]] = defaultdict(list)

    def subscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        handlers = self._handlers[event_type]
        if any(existing.matches(handler) for existing in handlers):
            return
        handlers.append(_HandlerRef.create(handler))
        LOGGER.debug("Subscribed %s to %s", _handler_name(handler), event_type.__name__)

    def unsubscribe(self, event_type: type[E], handler: Handler[E]) -> None:
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
        LOGGER.debug("Publishing %s to %d handler(s)", event_type.__name__, len(handlers))

        dead: list[_HandlerRef] = []
        for handler_ref in list(handlers):
            handler = handler_ref.resolve()
            if handler is None:
                dead.append(handler_ref)
                continue
            try:
                handler(event)
            except Exception:
                LOGGER.exception(
                    "Handler %s raised exception for event %s",
                    _handler_name(handler),
                    event_type.__name__,
                )
        for handler_ref in dead:
            handlers.remove(handler_ref)

    def clear(self) -> None:
        self._handlers.clear()

    def handler_count(self, event_type: type[E] | None = None) -> int:
        if event_type is not None:
            return sum(1 for ref in self._handlers.get(event_type, []) if ref.resolve() is not None)
        return sum(self.handler_count(kind) for kind in list(self._handlers))


class _HandlerRef:
    """Weak reference for bound methods, strong reference for everything else."""

    __slots__ = ("_ref", "_is_weak")

    def __init__(self, handler_ref: WeakMethod | Handler, is_weak: bool) -> None:
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
        return resolved is not None and resolved == handler


def _handler_name(handler: Handler) -> str:
    if hasattr(handler, "__self__") and hasattr(handler, "__func__"):
        return f"{type(handler.__self__).__name__}.{handler.__func__.__name__}"
    return getattr(handler, "__name__", repr(handler))


__all__ = [
    "DocumentChanged",
    "DocumentClosed",
    "DocumentFocused",
    "DocumentOpened",
    "Event",
    "EventBus",
    "Handler",
    "WorkspaceFoldersChanged",
]
