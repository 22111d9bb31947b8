"""Tests for the bounded match log."""

from unittest.mock import MagicMock

import pytest

from cloudmatch.application.services.match_log import MatchLog
from cloudmatch.domain.entities import MatchLogEntry


def _entry(n: int, success: bool = True) -> MatchLogEntry:
    return MatchLogEntry(
        song_name=f"Song {n}",
        cloud_song_id=str(n),
        match_song_id=str(1000 + n),
        success=success,
        message="" if success else "rejected",
    )


class TestMatchLog:
    """Test MatchLog behaviour."""

    async def test_entries_keep_insertion_order(self) -> None:
        log = MatchLog()
        for n in range(3):
            await log.append(_entry(n))

        assert [entry.cloud_song_id for entry in log.entries()] == ["0", "1", "2"]
        assert log.latest().cloud_song_id == "2"

    async def test_latest_is_none_when_empty(self) -> None:
        assert MatchLog().latest() is None
        assert MatchLog().entries() == ()

    async def test_oldest_entry_dropped_at_capacity(self) -> None:
        log = MatchLog(capacity=3)
        for n in range(5):
            await log.append(_entry(n))

        assert len(log) == 3
        assert [entry.cloud_song_id for entry in log.entries()] == ["2", "3", "4"]

    async def test_entries_snapshot_is_read_only(self) -> None:
        log = MatchLog()
        await log.append(_entry(1))

        snapshot = log.entries()
        await log.append(_entry(2))

        assert isinstance(snapshot, tuple)
        assert len(snapshot) == 1

    async def test_append_notifies_listeners(self) -> None:
        log = MatchLog()
        listener = MagicMock()
        log.on_append.connect(listener)

        entry = _entry(7)
        await log.append(entry)

        listener.assert_called_once_with(entry)

    async def test_counts(self) -> None:
        log = MatchLog()
        await log.append(_entry(1))
        await log.append(_entry(2, success=False))

        assert log.counts() == {"total": 2, "succeeded": 1, "failed": 1}

    def test_capacity_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            MatchLog(capacity=0)
