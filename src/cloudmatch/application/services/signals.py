"""Explicit change signals between services and presentation collaborators.

Hey future me - this replaces "everything observes a global singleton". A service
owns a Signal, the composition root (CloudMatchApp) or a view connects listeners,
and emit() calls them in connection order on the event loop. Listeners may be
plain functions or coroutine functions.

One failing listener must not stop the others or the emitting service, so its
exception is logged with traceback and the remaining listeners still run.
"""

import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Any

logger = logging.getLogger(__name__)

Listener = Callable[..., Awaitable[None] | None]


class Signal:
    """A named list of listeners."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._listeners: list[Listener] = []

    def connect(self, listener: Listener) -> Listener:
        """Register a listener (returned so this works as a decorator)."""
        if listener not in self._listeners:
            self._listeners.append(listener)
        return listener

    def disconnect(self, listener: Listener) -> bool:
        """Remove a listener.

        Returns:
            True if it was connected
        """
        try:
            self._listeners.remove(listener)
        except ValueError:
            return False
        return True

    def __len__(self) -> int:
        return len(self._listeners)

    async def emit(self, *args: Any) -> None:
        """Call every listener with args."""
        for listener in list(self._listeners):
            try:
                result = listener(*args)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Listener %r for signal '%s' failed", listener, self.name)
