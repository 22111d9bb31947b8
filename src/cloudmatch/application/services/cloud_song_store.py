"""Paginated store of the user's cloud drive songs.

Hey future me - the store holds exactly ONE page (what the table shows). Rules:

1. fetch_page() builds the new list first and swaps it in with one assignment, so nobody
   ever sees half a page. On NetworkError/AuthError the old page stays untouched.
2. total_count (and therefore total_pages) ONLY comes from fetch responses. Local edits
   never change it - a match rewrites an id, it doesn't add or remove rows.
3. Every applied fetch bumps page.version. MatchWorkflow passes the version it saw when it
   started; if a refresh replaced the page in between, update_song() drops the edit and logs
   the conflict instead of writing into a row that no longer exists (or worse, a different one).
4. Out-of-range pages are CLAMPED, not rejected: fetch_page(4, 20) with 45 songs gives page 3.
"""

import asyncio
import logging
from collections.abc import Callable, Iterable

from cloudmatch.application.services.signals import Signal
from cloudmatch.domain.entities import CloudSong, Page, PageResult
from cloudmatch.domain.exceptions import (
    AuthError,
    EntityNotFoundError,
    NetworkError,
    ValidationError,
)
from cloudmatch.domain.ports import CloudSongListing, ICloudMusicClient
from cloudmatch.domain.value_objects.sorting import (
    DEFAULT_SORT,
    SortComparator,
    SortField,
    SortOrder,
    normalize_comparators,
    sort_songs,
)
from cloudmatch.infrastructure.observability.log_messages import LogMessages

logger = logging.getLogger(__name__)

CookieProvider = Callable[[], str]
SongMutation = Callable[[CloudSong], None]


def _require_positive(name: str, value: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValidationError(f"{name} must be a positive integer, got {value!r}")


class CloudSongStore:
    """Current page of cloud songs with search/sort views and in-place updates."""

    def __init__(
        self,
        client: ICloudMusicClient,
        cookie_provider: CookieProvider,
        page_size: int = 200,
    ) -> None:
        """Initialize store.

        Args:
            client: Provider API client
            cookie_provider: Returns the session cookie, raising AuthError when logged out
            page_size: Page size used until the first fetch says otherwise
        """
        _require_positive("page_size", page_size)
        self._client = client
        self._cookie_provider = cookie_provider
        self._songs: list[CloudSong] = []
        self._page = Page(number=1, size=page_size)
        self._has_total = False
        # Newest uploads first until the user picks another order
        self._sort: tuple[SortComparator, ...] = DEFAULT_SORT
        self._fetch_lock = asyncio.Lock()

        # on_change(store) after fetch/sort/update, on_usage(used, capacity) after fetch
        self.on_change = Signal("store.change")
        self.on_usage = Signal("store.usage")

    # === Read-only snapshot ===

    @property
    def page(self) -> Page:
        return self._page

    @property
    def version(self) -> int:
        return self._page.version

    @property
    def songs(self) -> tuple[CloudSong, ...]:
        return tuple(self._songs)

    @property
    def sort(self) -> tuple[SortComparator, ...]:
        return self._sort

    def __len__(self) -> int:
        return len(self._songs)

    def get(self, song_id: str) -> CloudSong | None:
        """Find a song on the current page."""
        for song in self._songs:
            if song.id == song_id:
                return song
        return None

    # === Commands ===

    async def fetch_page(self, page: int, limit: int) -> PageResult:
        """Load one page from the cloud drive and replace the current one.

        Args:
            page: 1-based page number (clamped to the known page range)
            limit: Page size

        Returns:
            PageResult for the page that was actually loaded

        Raises:
            ValidationError: If page or limit is not a positive integer
            NetworkError: On transport failure (previous page kept)
            AuthError: If the session expired (previous page kept)
        """
        _require_positive("page", page)
        _require_positive("limit", limit)

        async with self._fetch_lock:
            if self._has_total:
                page = min(page, Page.total_pages_for(self._page.total_count, limit))

            listing = await self._request(page, limit)
            total_pages = Page.total_pages_for(listing.total_count, limit)
            if page > total_pages and listing.total_count > 0:
                # Drive shrank (or first fetch asked too far) - load the real last page
                logger.debug("Page %d beyond %d pages, loading last page", page, total_pages)
                page = total_pages
                listing = await self._request(page, limit)

            result = self._apply(page, limit, listing)

        logger.info(
            LogMessages.page_fetched(
                result.page.number,
                result.page.total_pages,
                len(result.songs),
                result.page.total_count,
            )
        )
        await self.on_usage.emit(listing.used_bytes, listing.capacity_bytes)
        await self.on_change.emit(self)
        return result

    async def refresh(self) -> PageResult:
        """Reload the current page."""
        return await self.fetch_page(self._page.number, self._page.size)

    async def _request(self, page: int, limit: int) -> CloudSongListing:
        try:
            cookie = self._cookie_provider()
            return await self._client.list_cloud_songs(cookie, limit, (page - 1) * limit)
        except (NetworkError, AuthError) as e:
            logger.warning(LogMessages.page_fetch_failed(page, e.message))
            raise

    def _apply(self, page: int, limit: int, listing: CloudSongListing) -> PageResult:
        songs = list(listing.songs)
        if self._sort:
            songs = sort_songs(songs, self._sort)

        new_page = Page(
            number=min(page, Page.total_pages_for(listing.total_count, limit)),
            size=limit,
            total_count=listing.total_count,
            version=self._page.version + 1,
        )

        # Single swap point - nothing awaits between these assignments
        self._songs = songs
        self._page = new_page
        self._has_total = True

        return PageResult(
            page=new_page,
            songs=tuple(songs),
            used_bytes=listing.used_bytes,
            capacity_bytes=listing.capacity_bytes,
            has_more=listing.has_more,
        )

    def clear(self) -> None:
        """Forget the loaded page (used on logout)."""
        self._songs = []
        self._page = Page(number=1, size=self._page.size, version=self._page.version + 1)
        self._has_total = False

    # === Views ===

    def search(self, text: str) -> list[CloudSong]:
        """Filter the current page by name, artist or album (case-insensitive).

        Never fetches and never mutates the page. Blank text returns everything.
        """
        needle = (text or "").strip().casefold()
        if not needle:
            return list(self._songs)
        return [
            song
            for song in self._songs
            if needle in song.name.casefold()
            or needle in song.artist.casefold()
            or needle in song.album.casefold()
        ]

    async def apply_sort(
        self,
        comparators: Iterable[SortComparator | tuple[SortField | str, SortOrder | str]],
    ) -> None:
        """Reorder the current page (and future fetches) by the comparators.

        Comparators are evaluated left to right; ties keep their previous order.
        """
        self._sort = normalize_comparators(comparators)
        self._songs = sort_songs(self._songs, self._sort)
        await self.on_change.emit(self)

    async def update_song(
        self,
        song_id: str,
        mutation: SongMutation,
        version: int | None = None,
    ) -> bool:
        """Apply mutation to exactly one song in place.

        Args:
            song_id: Id of the song on the current page
            mutation: Callable editing the song
            version: Page version the caller saw; None skips the check

        Returns:
            True if applied, False if dropped because the page was replaced

        Raises:
            EntityNotFoundError: If the id is not on the current page
        """
        if version is not None and version != self._page.version:
            logger.warning(LogMessages.mutation_conflict(song_id, version, self._page.version))
            return False

        song = self.get(song_id)
        if song is None:
            raise EntityNotFoundError("CloudSong", song_id)

        mutation(song)
        await self.on_change.emit(self)
        return True
