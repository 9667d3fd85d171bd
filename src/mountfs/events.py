"""EventBus and event types for filesystem change notification."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable

    EventHandler = Callable[["FileSystemEvent"], object]

logger = logging.getLogger(__name__)


class EventType(Enum):
    """Kinds of mutation reported to subscribers."""

    FILE_CREATED = "file:created"
    FILE_MODIFIED = "file:modified"
    FILE_DELETED = "file:deleted"
    DIRECTORY_CREATED = "directory:created"
    DIRECTORY_DELETED = "directory:deleted"


@dataclass(frozen=True, slots=True)
class FileSystemEvent:
    """Immutable record of a filesystem mutation.

    Attributes:
        type: The kind of mutation that occurred.
        path: Absolute virtual path of the affected file or directory.
    """

    type: EventType
    path: str


class EventBus:
    """Dispatches filesystem events to subscribed handlers.

    Handlers are plain callables, called synchronously in subscription
    order.  Exceptions are logged but never propagated, so one failing
    handler does not stop the others or fail the emitting operation.
    """

    def __init__(self) -> None:
        self._handlers: list[EventHandler] = []

    def subscribe(self, handler: EventHandler) -> Callable[[], None]:
        """Register *handler* and return a callable that unsubscribes it.

        Subscribing the same handler twice has no further effect.
        """
        if handler not in self._handlers:
            self._handlers.append(handler)

        def unsubscribe() -> None:
            self.unsubscribe(handler)

        return unsubscribe

    def unsubscribe(self, handler: EventHandler) -> bool:
        """Remove *handler*. Return True if it was registered."""
        try:
            self._handlers.remove(handler)
            return True
        except ValueError:
            return False

    def emit(self, event: FileSystemEvent) -> None:
        """Dispatch *event* to every handler."""
        # Copy: a handler may unsubscribe itself mid-dispatch
        for handler in list(self._handlers):
            try:
                handler(event)
            except Exception:
                logger.warning(
                    "Handler %r failed for %s on %s",
                    handler,
                    event.type.value,
                    event.path,
                    exc_info=True,
                )

    @property
    def handler_count(self) -> int:
        """Number of subscribed handlers."""
        return len(self._handlers)

    def clear(self) -> None:
        """Remove all subscribed handlers."""
        self._handlers.clear()
