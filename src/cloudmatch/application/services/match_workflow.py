"""Match a cloud song to a catalog song.

Flow of perform_match(cloud_id, target_id):
1. Validate input, find the song on the current page, reserve cloud_id (in-flight set)
2. Call the provider
3a. Success: song.id = target_id, status matched, success log entry
3b. Rejected / transport failure: status failed(reason), id unchanged, failure log entry
4. Release cloud_id

Hey future me - NO automatic retry and NO page re-fetch after a match. The row is updated in
place; if the user wants the server's view they hit refresh. The page
version captured in step 1 protects against a refresh that replaced the page mid-match.
"""

import logging

from cloudmatch.application.services.auth_session import AuthSession
from cloudmatch.application.services.cloud_song_store import CloudSongStore
from cloudmatch.application.services.match_log import MatchLog
from cloudmatch.domain.entities import CloudSong, MatchLogEntry, MatchOutcome, MatchStatus
from cloudmatch.domain.exceptions import (
    AuthError,
    ConcurrentMatchError,
    EntityNotFoundError,
    MatchError,
    NetworkError,
    ValidationError,
)
from cloudmatch.domain.ports import ICloudMusicClient
from cloudmatch.infrastructure.observability.log_messages import LogMessages
from cloudmatch.infrastructure.observability.logging import set_correlation_id

logger = logging.getLogger(__name__)


class MatchWorkflow:
    """Runs match requests and reconciles their results into the store and log."""

    def __init__(
        self,
        client: ICloudMusicClient,
        auth: AuthSession,
        store: CloudSongStore,
        match_log: MatchLog,
    ) -> None:
        self._client = client
        self._auth = auth
        self._store = store
        self._log = match_log
        self._in_flight: set[str] = set()

    def is_matching(self, cloud_song_id: str) -> bool:
        """Check if a match for this song is running."""
        return cloud_song_id in self._in_flight

    async def perform_match(self, cloud_song_id: str, target_catalog_id: str) -> MatchOutcome:
        """Bind a cloud song to a catalog song id.

        Args:
            cloud_song_id: Id of a song on the current page
            target_catalog_id: Catalog song id (the provider validates the format)

        Returns:
            MatchOutcome with a human-readable message

        Raises:
            ValidationError: If target_catalog_id is blank
            EntityNotFoundError: If cloud_song_id is not on the current page
            ConcurrentMatchError: If this song is already being matched (nothing logged)
            AuthError: If not logged in, or the session expired during the call
            MatchError: If the provider rejected the match
            NetworkError: If the provider could not be reached
        """
        target_id = (target_catalog_id or "").strip()
        if not target_id:
            raise ValidationError("Target song id must not be empty")

        # Check-and-reserve with no await in between: the event loop can't interleave here
        if cloud_song_id in self._in_flight:
            raise ConcurrentMatchError(cloud_song_id)

        song = self._store.get(cloud_song_id)
        if song is None:
            raise EntityNotFoundError("CloudSong", cloud_song_id)

        identity, cookie = self._auth.require_credentials()
        version = self._store.version

        self._in_flight.add(cloud_song_id)
        set_correlation_id()
        try:
            try:
                message = await self._client.match_song(
                    cookie, identity.user_id, cloud_song_id, target_id
                )
            except MatchError as e:
                await self._record_failure(song, cloud_song_id, target_id, e.reason, version)
                raise
            except (NetworkError, AuthError) as e:
                await self._record_failure(song, cloud_song_id, target_id, e.message, version)
                raise

            return await self._record_success(song, cloud_song_id, target_id, message, version)
        finally:
            self._in_flight.discard(cloud_song_id)

    async def _record_success(
        self,
        song: CloudSong,
        cloud_song_id: str,
        target_id: str,
        provider_message: str,
        version: int,
    ) -> MatchOutcome:
        def _bind(record: CloudSong) -> None:
            record.match_status = MatchStatus.matched()
            # the one and only place a CloudSong id is reassigned
            record.id = target_id

        try:
            applied = await self._store.update_song(cloud_song_id, _bind, version=version)
        except EntityNotFoundError:
            logger.warning("Song %s vanished from the page before its match was recorded", cloud_song_id)
            applied = False

        entry = MatchLogEntry(
            song_name=song.name,
            cloud_song_id=cloud_song_id,
            match_song_id=target_id,
            success=True,
        )
        await self._log.append(entry)
        logger.info(LogMessages.match_succeeded(song.name, cloud_song_id, target_id))

        message = f"Matched '{song.name}': {cloud_song_id} → {target_id}"
        if provider_message:
            message = f"{message} ({provider_message})"
        if not applied:
            message = f"{message}. The page changed meanwhile - refresh to see it."

        return MatchOutcome(
            success=True,
            message=message,
            song=song if applied else None,
            previous_id=cloud_song_id,
            entry=entry,
        )

    async def _record_failure(
        self,
        song: CloudSong,
        cloud_song_id: str,
        target_id: str,
        reason: str,
        version: int,
    ) -> None:
        reason = reason or "Match failed"

        def _mark_failed(record: CloudSong) -> None:
            record.match_status = MatchStatus.failed(reason)

        try:
            await self._store.update_song(cloud_song_id, _mark_failed, version=version)
        except EntityNotFoundError:
            logger.warning("Song %s vanished from the page before its failure was recorded", cloud_song_id)

        await self._log.append(
            MatchLogEntry(
                song_name=song.name,
                cloud_song_id=cloud_song_id,
                match_song_id=target_id,
                success=False,
                message=reason,
            )
        )
        logger.warning(LogMessages.match_failed(song.name, cloud_song_id, target_id, reason))
