"""In-memory image cache with LRU eviction and fetch coalescing."""

import asyncio
import logging
from collections import OrderedDict
from collections.abc import Awaitable, Callable
from io import BytesIO
from typing import Any

from PIL import Image, UnidentifiedImageError

from cloudmatch.domain.exceptions import ImageDecodeError

logger = logging.getLogger(__name__)

ImageFetcher = Callable[[str], Awaitable[bytes]]


def decode_image(url: str, data: bytes) -> Image.Image:
    """Decode bytes into a fully loaded Pillow image.

    Raises:
        ImageDecodeError: If the payload is not an image Pillow understands
    """
    try:
        with Image.open(BytesIO(data)) as img:
            img.load()
            # copy() detaches from the BytesIO so the context manager can close it
            return img.copy()
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise ImageDecodeError(url, str(e)) from e


def _retrieve_exception(task: asyncio.Task[Image.Image]) -> None:
    # Every caller may have been cancelled before the download failed
    if not task.cancelled():
        task.exception()


class ImageCache:
    """URL -> decoded image cache shared by every rendering context.

    Cover art and avatars are small but requested over and over while the
    table scrolls. Entries are kept in LRU order and bounded by capacity.
    """

    # Listen up future me, _in_flight is the coalescing map: url -> Task of the ONE running
    # download. The first caller starts the task, everyone (first caller included) awaits it
    # through asyncio.shield. Both dicts are only touched under _lock. Failures are never
    # cached - the task is dropped and the next caller starts a fresh download.
    def __init__(self, fetcher: ImageFetcher, capacity: int = 256) -> None:
        """Initialize image cache.

        Args:
            fetcher: Coroutine function returning the raw bytes for a URL
            capacity: Max number of decoded images kept (LRU eviction)
        """
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._fetcher = fetcher
        self._capacity = capacity
        self._entries: OrderedDict[str, Image.Image] = OrderedDict()
        self._in_flight: dict[str, asyncio.Task[Image.Image]] = {}
        self._lock = asyncio.Lock()
        self._hits = 0
        self._misses = 0
        self._fetches = 0
        self._evictions = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, url: object) -> bool:
        return url in self._entries

    # Hey, get() is the NON-blocking lookup for render paths. No lock needed: we're on the
    # event loop thread and never await in here, so nothing can interleave.
    def get(self, url: str) -> Image.Image | None:
        """Get a cached image without fetching."""
        image = self._entries.get(url)
        if image is None:
            return None
        self._entries.move_to_end(url)
        return image

    async def get_or_fetch(self, url: str) -> Image.Image:
        """Get the cached image or fetch it (once, however many callers ask).

        Raises:
            NetworkError: If the download failed (nothing is cached)
            ImageDecodeError: If the bytes are not an image (nothing is cached)
        """
        async with self._lock:
            image = self._entries.get(url)
            if image is not None:
                self._entries.move_to_end(url)
                self._hits += 1
                return image

            self._misses += 1
            task = self._in_flight.get(url)
            if task is None:
                task = asyncio.create_task(self._download(url), name=f"image-fetch:{url}")
                task.add_done_callback(_retrieve_exception)
                self._in_flight[url] = task
                self._fetches += 1

        # Every caller (the first one too) only shields the shared task, so cancelling a
        # caller never cancels the download the others are waiting on
        return await asyncio.shield(task)

    async def _download(self, url: str) -> Image.Image:
        try:
            image = await self._load(url)
        except asyncio.CancelledError:
            # Only happens on loop shutdown; a sync pop needs no lock on the loop thread
            self._in_flight.pop(url, None)
            raise
        except Exception as e:
            async with self._lock:
                self._in_flight.pop(url, None)
            logger.warning("Image fetch failed for %s: %s", url, e)
            raise

        async with self._lock:
            self._in_flight.pop(url, None)
            self._store(url, image)
        return image

    async def _load(self, url: str) -> Image.Image:
        data = await self._fetcher(url)
        # Pillow decoding is CPU-bound - keep it off the event loop
        return await asyncio.to_thread(decode_image, url, data)

    def _store(self, url: str, image: Image.Image) -> None:
        self._entries[url] = image
        self._entries.move_to_end(url)
        while len(self._entries) > self._capacity:
            evicted, _ = self._entries.popitem(last=False)
            self._evictions += 1
            logger.debug("Evicted %s from image cache", evicted)

    async def invalidate(self, url: str) -> bool:
        """Drop one cached image.

        Returns:
            True if it was cached
        """
        async with self._lock:
            return self._entries.pop(url, None) is not None

    async def clear(self) -> None:
        """Drop every cached image (in-flight downloads still complete)."""
        async with self._lock:
            self._entries.clear()

    def get_stats(self) -> dict[str, Any]:
        """Get cache statistics.

        Returns:
            Dictionary with cache statistics
        """
        return {
            "entries": len(self._entries),
            "capacity": self._capacity,
            "in_flight": len(self._in_flight),
            "hits": self._hits,
            "misses": self._misses,
            "fetches": self._fetches,
            "evictions": self._evictions,
        }
