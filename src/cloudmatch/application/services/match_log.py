"""Bounded, append-only log of match attempts."""

import logging
from collections import deque

from cloudmatch.application.services.signals import Signal
from cloudmatch.domain.entities import MatchLogEntry

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 500


class MatchLog:
    """Time-ordered record of match attempts for the log view.

    append() is the only mutator. Once capacity is reached the oldest entry
    is dropped (ring buffer). The view highlights latest().
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._entries: deque[MatchLogEntry] = deque(maxlen=capacity)
        self.on_append = Signal("match_log.append")

    @property
    def capacity(self) -> int:
        return self._entries.maxlen or DEFAULT_CAPACITY

    def __len__(self) -> int:
        return len(self._entries)

    async def append(self, entry: MatchLogEntry) -> None:
        """Append an entry and notify listeners."""
        if len(self._entries) == self.capacity:
            logger.debug("Match log full (%d), dropping oldest entry", self.capacity)
        self._entries.append(entry)
        await self.on_append.emit(entry)

    def entries(self) -> tuple[MatchLogEntry, ...]:
        """Snapshot in insertion order (oldest first)."""
        return tuple(self._entries)

    def latest(self) -> MatchLogEntry | None:
        """Most recent entry, or None if nothing was logged yet."""
        return self._entries[-1] if self._entries else None

    def counts(self) -> dict[str, int]:
        """Success/failure totals of the retained entries."""
        succeeded = sum(1 for entry in self._entries if entry.success)
        return {"total": len(self._entries), "succeeded": succeeded, "failed": len(self._entries) - succeeded}
