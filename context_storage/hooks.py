"""Optional notification hooks.

Storages and contexts fire events into a ``Hooks`` instance when one is
given. Listeners are fire-and-forget: their return values are ignored and
their exceptions are logged, so a broken listener never changes what the
storage does.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Callable

logger = logging.getLogger(__name__)

BEFORE_ADD = "before_add"
AFTER_ADD = "after_add"
BEFORE_SAVE = "before_save"
AFTER_SAVE = "after_save"
AFTER_LOAD = "after_load"
AFTER_TRUNCATION = "after_truncation"
IDENTITY_ADDING = "identity_adding"
IDENTITY_ADDED = "identity_added"
STORAGE_REGISTERED = "storage_registered"
CONTEXT_SAVING = "context_saving"
CONTEXT_SAVED = "context_saved"
CONTEXT_READING = "context_reading"
CONTEXT_READ = "context_read"
CONTEXT_CLEARING = "context_clearing"
CONTEXT_CLEARED = "context_cleared"

Listener = Callable[..., Any]


class Hooks:
    """Registry of event listeners.

    Listeners receive the event payload as keyword arguments, so a listener
    that only cares about some of them should accept ``**kwargs``.
    """

    def __init__(self) -> None:
        """Initialize an empty registry."""
        self._listeners: dict[str, list[Listener]] = defaultdict(list)

    def on(self, event: str, listener: Listener) -> None:
        """Register a listener for an event.

        Args:
            event: Event name (see the module constants)
            listener: Callable invoked with the event payload

        """
        self._listeners[event].append(listener)

    def off(self, event: str, listener: Listener | None = None) -> None:
        """Unregister one listener, or every listener of an event.

        Args:
            event: Event name
            listener: Listener to remove. None removes all listeners

        """
        if listener is None:
            self._listeners.pop(event, None)
            return
        if listener in self._listeners.get(event, []):
            self._listeners[event].remove(listener)

    def listeners(self, event: str) -> list[Listener]:
        """Return the listeners registered for an event."""
        return list(self._listeners.get(event, []))

    def dispatch(self, event: str, **payload: Any) -> None:
        """Invoke every listener of an event.

        Args:
            event: Event name
            **payload: Keyword arguments passed to each listener

        """
        for listener in self.listeners(event):
            try:
                listener(**payload)
            except Exception:
                # Listener errors must not affect storage behaviour
                logger.warning("Hook listener for %s failed", event, exc_info=True)
