"""Domain value objects."""

from cloudmatch.domain.value_objects.formatting import (
    format_add_time,
    format_capacity,
    format_duration,
    format_file_size,
    format_log_time,
)
from cloudmatch.domain.value_objects.sorting import (
    DEFAULT_SORT,
    SortComparator,
    SortField,
    SortOrder,
    normalize_comparators,
    sort_songs,
)

__all__ = [
    "DEFAULT_SORT",
    "SortComparator",
    "SortField",
    "SortOrder",
    "format_add_time",
    "format_capacity",
    "format_duration",
    "format_file_size",
    "format_log_time",
    "normalize_comparators",
    "sort_songs",
]
