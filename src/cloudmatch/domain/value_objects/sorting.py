"""Sort comparators for cloud song views.

A sort is an ordered list of (field, order) pairs. They are evaluated left to
right and the first non-equal comparison decides; full ties keep the prior
relative order (Python's sort is stable).
"""

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from enum import Enum
from functools import cmp_to_key
from typing import Any

from cloudmatch.domain.entities import CloudSong, MatchState


class SortField(str, Enum):
    """Sortable cloud song columns."""

    NAME = "name"
    ARTIST = "artist"
    ALBUM = "album"
    ADD_TIME = "add_time"
    FILE_SIZE = "file_size"
    DURATION = "duration"
    MATCH_STATUS = "match_status"


class SortOrder(str, Enum):
    ASCENDING = "ascending"
    DESCENDING = "descending"


# not_matched first so the rows that still need work float to the top
_STATE_RANK = {
    MatchState.NOT_MATCHED: 0,
    MatchState.FAILED: 1,
    MatchState.MATCHED: 2,
}

_KEYS: dict[SortField, Callable[[CloudSong], Any]] = {
    SortField.NAME: lambda song: song.name.casefold(),
    SortField.ARTIST: lambda song: song.artist.casefold(),
    SortField.ALBUM: lambda song: song.album.casefold(),
    SortField.ADD_TIME: lambda song: song.add_time,
    SortField.FILE_SIZE: lambda song: song.file_size,
    SortField.DURATION: lambda song: song.duration_ms,
    SortField.MATCH_STATUS: lambda song: _STATE_RANK[song.match_status.state],
}


@dataclass(frozen=True)
class SortComparator:
    """One (field, order) pair."""

    field: SortField
    order: SortOrder = SortOrder.ASCENDING

    def compare(self, left: CloudSong, right: CloudSong) -> int:
        """Three-way compare: negative, zero or positive."""
        key = _KEYS[self.field]
        a, b = key(left), key(right)
        result = (a > b) - (a < b)
        return -result if self.order is SortOrder.DESCENDING else result


# Default view in the client: newest uploads first
DEFAULT_SORT: tuple[SortComparator, ...] = (
    SortComparator(SortField.ADD_TIME, SortOrder.DESCENDING),
)


def normalize_comparators(
    comparators: Iterable[SortComparator | tuple[SortField | str, SortOrder | str]],
) -> tuple[SortComparator, ...]:
    """Accept SortComparator objects or plain (field, order) tuples."""
    normalized = []
    for item in comparators:
        if isinstance(item, SortComparator):
            normalized.append(item)
        else:
            sort_field, order = item
            normalized.append(SortComparator(SortField(sort_field), SortOrder(order)))
    return tuple(normalized)


def sort_songs(
    songs: Sequence[CloudSong], comparators: Sequence[SortComparator]
) -> list[CloudSong]:
    """Return a new list ordered by the comparators (stable)."""
    if not comparators:
        return list(songs)

    def _compare(left: CloudSong, right: CloudSong) -> int:
        for comparator in comparators:
            result = comparator.compare(left, right)
            if result:
                return result
        return 0

    return sorted(songs, key=cmp_to_key(_compare))
