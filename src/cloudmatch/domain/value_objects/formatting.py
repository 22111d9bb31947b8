"""Display formatting helpers for cloud song fields.

These produce the strings the table and header collaborators show; keeping
them here means every view formats sizes and durations the same way.
"""

from datetime import datetime

_GB = 1024 * 1024 * 1024
_UNITS = ("KB", "MB", "GB")


def format_file_size(size: int) -> str:
    """Format a byte count as KB, MB or GB (file count style, 1000 based)."""
    value = max(size, 0) / 1000
    unit = _UNITS[0]
    for unit in _UNITS:
        if value < 1000 or unit == _UNITS[-1]:
            break
        value /= 1000
    if unit == "KB":
        return f"{value:.0f} KB"
    return f"{value:.1f} {unit}"


def format_capacity(used_bytes: int, capacity_bytes: int) -> str:
    """Header capacity label, e.g. '12.3G/60.0G'."""
    return f"{used_bytes / _GB:.1f}G/{capacity_bytes / _GB:.1f}G"


def format_duration(milliseconds: int) -> str:
    """m:ss (minutes are not wrapped into hours)."""
    total_seconds = max(milliseconds, 0) // 1000
    minutes, seconds = divmod(total_seconds, 60)
    return f"{minutes}:{seconds:02d}"


def format_add_time(value: datetime) -> str:
    """Upload time as 'YYYY-MM-DD HH:MM'."""
    return value.strftime("%Y-%m-%d %H:%M")


def format_log_time(value: datetime) -> str:
    """Log timestamp as 'HH:MM:SS'."""
    return value.strftime("%H:%M:%S")
