"""Tests for MatchWorkflow."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from factories import make_listing, make_song

from cloudmatch.application.services.auth_session import AuthSession
from cloudmatch.application.services.cloud_song_store import CloudSongStore
from cloudmatch.application.services.match_log import MatchLog
from cloudmatch.application.services.match_workflow import MatchWorkflow
from cloudmatch.config.settings import NeteaseSettings
from cloudmatch.domain.entities import Identity, MatchStatus
from cloudmatch.domain.exceptions import (
    AuthError,
    ConcurrentMatchError,
    EntityNotFoundError,
    MatchError,
    NetworkError,
    ValidationError,
)


@pytest.fixture
def auth(identity: Identity) -> MagicMock:
    """Logged-in session."""
    session = MagicMock(spec=AuthSession)
    session.require_credentials.return_value = (identity, "cookie")
    return session


@pytest.fixture
async def store(mock_client: AsyncMock) -> CloudSongStore:
    """Store holding songs A and B."""
    mock_client.list_cloud_songs.return_value = make_listing(
        [make_song("A", "Jiangnan"), make_song("B", "Sunny Day")]
    )
    store = CloudSongStore(mock_client, cookie_provider=lambda: "cookie", page_size=20)
    await store.fetch_page(1, 20)
    return store


@pytest.fixture
def match_log() -> MatchLog:
    return MatchLog()


@pytest.fixture
def workflow(
    mock_client: AsyncMock, auth: MagicMock, store: CloudSongStore, match_log: MatchLog
) -> MatchWorkflow:
    return MatchWorkflow(mock_client, auth, store, match_log)


class TestPerformMatchSuccess:
    """Happy path."""

    async def test_success_rebinds_song_in_place(
        self,
        workflow: MatchWorkflow,
        store: CloudSongStore,
        match_log: MatchLog,
        mock_client: AsyncMock,
    ) -> None:
        page_before = store.page

        outcome = await workflow.perform_match("A", "9999")

        mock_client.match_song.assert_awaited_once_with("cookie", 42, "A", "9999")
        assert outcome.success is True
        assert "9999" in outcome.message
        assert outcome.previous_id == "A"

        song = store.get("9999")
        assert song is not None
        assert song.match_status == MatchStatus.matched()
        assert store.get("A") is None
        assert store.page == page_before
        # no re-fetch
        assert mock_client.list_cloud_songs.await_count == 1

        entry = match_log.latest()
        assert (entry.cloud_song_id, entry.match_song_id, entry.success) == ("A", "9999", True)
        assert entry.song_name == "Jiangnan"

    async def test_other_songs_untouched(self, workflow: MatchWorkflow, store: CloudSongStore) -> None:
        other = store.get("B")

        await workflow.perform_match("A", "9999")

        assert store.get("B") is other
        assert other.match_status == MatchStatus.not_matched()

    async def test_target_id_is_trimmed(
        self, workflow: MatchWorkflow, mock_client: AsyncMock
    ) -> None:
        await workflow.perform_match("A", "  9999 ")
        mock_client.match_song.assert_awaited_once_with("cookie", 42, "A", "9999")

    async def test_provider_message_is_included(
        self, workflow: MatchWorkflow, mock_client: AsyncMock
    ) -> None:
        mock_client.match_song.return_value = "ok"
        outcome = await workflow.perform_match("A", "9999")
        assert "(ok)" in outcome.message

    async def test_page_replaced_mid_match_drops_update(
        self,
        workflow: MatchWorkflow,
        store: CloudSongStore,
        match_log: MatchLog,
        mock_client: AsyncMock,
    ) -> None:
        async def match_then_refresh(*args) -> str:
            await store.refresh()
            return ""

        mock_client.match_song.side_effect = match_then_refresh

        outcome = await workflow.perform_match("A", "9999")

        assert outcome.success is True
        assert outcome.song is None
        assert "refresh" in outcome.message
        assert store.get("9999") is None
        assert match_log.latest().success is True


class TestPerformMatchFailure:
    """Rejected and failed matches."""

    async def test_rejection_marks_failed_and_logs(
        self,
        workflow: MatchWorkflow,
        store: CloudSongStore,
        match_log: MatchLog,
        mock_client: AsyncMock,
    ) -> None:
        mock_client.match_song.side_effect = MatchError("song not found")

        with pytest.raises(MatchError):
            await workflow.perform_match("A", "123")

        song = store.get("A")
        assert song.match_status == MatchStatus.failed("song not found")
        entry = match_log.latest()
        assert entry.success is False
        assert entry.message == "song not found"
        assert (entry.cloud_song_id, entry.match_song_id) == ("A", "123")

    @pytest.mark.parametrize(
        "error", [NetworkError("Connection refused"), AuthError("Session expired")]
    )
    async def test_transport_and_auth_failures_are_recorded(
        self,
        workflow: MatchWorkflow,
        store: CloudSongStore,
        match_log: MatchLog,
        mock_client: AsyncMock,
        error: Exception,
    ) -> None:
        mock_client.match_song.side_effect = error

        with pytest.raises(type(error)):
            await workflow.perform_match("A", "123")

        assert store.get("A").match_status.is_failed
        assert match_log.latest().message == error.message

    async def test_failure_releases_song_for_retry(
        self, workflow: MatchWorkflow, mock_client: AsyncMock
    ) -> None:
        mock_client.match_song.side_effect = [NetworkError("down"), ""]

        with pytest.raises(NetworkError):
            await workflow.perform_match("A", "123")
        assert not workflow.is_matching("A")

        outcome = await workflow.perform_match("A", "123")
        assert outcome.success is True


class TestPerformMatchPreconditions:
    """Input and state checks before the provider is called."""

    @pytest.mark.parametrize("target", ["", "   ", None])
    async def test_blank_target_rejected(
        self, workflow: MatchWorkflow, match_log: MatchLog, mock_client: AsyncMock, target
    ) -> None:
        with pytest.raises(ValidationError):
            await workflow.perform_match("A", target)
        mock_client.match_song.assert_not_called()
        assert len(match_log) == 0

    async def test_unknown_song_rejected(
        self, workflow: MatchWorkflow, mock_client: AsyncMock
    ) -> None:
        with pytest.raises(EntityNotFoundError):
            await workflow.perform_match("missing", "123")
        mock_client.match_song.assert_not_called()

    async def test_not_logged_in(
        self,
        mock_client: AsyncMock,
        store: CloudSongStore,
        match_log: MatchLog,
        netease_settings: NeteaseSettings,
    ) -> None:
        workflow = MatchWorkflow(mock_client, AuthSession(mock_client, netease_settings), store, match_log)

        with pytest.raises(AuthError):
            await workflow.perform_match("A", "123")
        mock_client.match_song.assert_not_called()

    async def test_concurrent_match_for_same_song_rejected(
        self, workflow: MatchWorkflow, match_log: MatchLog, mock_client: AsyncMock
    ) -> None:
        gate = asyncio.Event()

        async def slow_match(*args) -> str:
            await gate.wait()
            return ""

        mock_client.match_song.side_effect = slow_match
        first = asyncio.create_task(workflow.perform_match("A", "9999"))
        await asyncio.sleep(0)
        assert workflow.is_matching("A")

        with pytest.raises(ConcurrentMatchError):
            await workflow.perform_match("A", "8888")

        gate.set()
        await first
        assert mock_client.match_song.await_count == 1
        assert len(match_log) == 1

    async def test_different_songs_can_match_concurrently(
        self, workflow: MatchWorkflow, store: CloudSongStore
    ) -> None:
        await asyncio.gather(
            workflow.perform_match("A", "1001"),
            workflow.perform_match("B", "1002"),
        )
        assert store.get("1001") is not None
        assert store.get("1002") is not None
