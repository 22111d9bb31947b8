"""Application lifecycle: build every service once and wire them together.

Hey future me - this is the composition root. No service reaches for a global
singleton; CloudMatchApp constructs them in dependency order and hands each one
exactly what it needs:

    NeteaseClient ──┬──► AuthSession ──(on_login)──► CloudSongStore.fetch_page(1)
                    ├──► CloudSongStore ──(on_usage)──► AuthSession.update_usage
                    ├──► MatchWorkflow (auth + store + match log)
                    └──► ImageCache (client.fetch_bytes as fetcher)

Everything runs on ONE asyncio event loop. Services mutate their state only from
coroutines running on that loop, so no extra locking is needed beyond what the
store (fetch serialization) and the image cache (coalescing map) already do.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from PIL import Image
from pydantic import ValidationError as PydanticValidationError

from cloudmatch.application.cache.image_cache import ImageCache
from cloudmatch.application.services.auth_session import AuthSession
from cloudmatch.application.services.cloud_song_store import CloudSongStore
from cloudmatch.application.services.match_log import MatchLog
from cloudmatch.application.services.match_workflow import MatchWorkflow
from cloudmatch.config import Settings, get_settings
from cloudmatch.domain.entities import Identity
from cloudmatch.domain.exceptions import AuthError, ConfigurationError, NetworkError
from cloudmatch.domain.ports import ICloudMusicClient
from cloudmatch.infrastructure.integrations.netease_client import NeteaseClient
from cloudmatch.infrastructure.observability import configure_logging

logger = logging.getLogger(__name__)


class CloudMatchApp:
    """Container for the services the presentation layer talks to."""

    def __init__(self, settings: Settings, client: ICloudMusicClient | None = None) -> None:
        """Build and wire all services.

        Args:
            settings: Application settings
            client: Provider client (defaults to NeteaseClient; tests pass a fake)
        """
        self.settings = settings
        self.client: ICloudMusicClient = client or NeteaseClient(settings.netease)
        self.images = ImageCache(
            fetcher=self.client.fetch_bytes,
            capacity=settings.cache.image_cache_capacity,
        )
        self.match_log = MatchLog(capacity=settings.cache.match_log_capacity)
        self.auth = AuthSession(self.client, settings.netease)
        self.store = CloudSongStore(
            self.client,
            cookie_provider=self._cookie,
            page_size=settings.netease.page_size,
        )
        self.matcher = MatchWorkflow(self.client, self.auth, self.store, self.match_log)

        self.auth.on_login.connect(self._load_first_page)
        self.auth.on_logout.connect(self._forget_page)
        self.store.on_usage.connect(self.auth.update_usage)

    def _cookie(self) -> str:
        _, cookie = self.auth.require_credentials()
        return cookie

    async def _load_first_page(self, identity: Identity) -> None:
        try:
            await self.store.fetch_page(1, self.settings.netease.page_size)
        except (NetworkError, AuthError) as e:
            # The store already logged the details; the refresh button is the retry
            logger.warning("Initial cloud page for %s not loaded: %s", identity.nickname, e.message)

    def _forget_page(self) -> None:
        self.store.clear()

    async def avatar(self) -> Image.Image | None:
        """The logged in user's avatar through the shared image cache."""
        identity = self.auth.identity
        if identity is None or not identity.avatar_url:
            return None
        return await self.images.get_or_fetch(identity.avatar_url)

    async def close(self) -> None:
        """Stop polling and release HTTP connections."""
        await self.auth.close()
        await self.client.close()
        logger.info("CloudMatch shut down")

    async def __aenter__(self) -> "CloudMatchApp":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


@asynccontextmanager
async def lifespan(settings: Settings | None = None) -> AsyncGenerator[CloudMatchApp, None]:
    """Configure logging, build the app, and always close it again.

    Raises:
        ConfigurationError: If the CLOUDMATCH_ environment holds invalid values
    """
    if settings is None:
        try:
            settings = get_settings()
        except PydanticValidationError as e:
            raise ConfigurationError(f"Invalid settings: {e}") from e
    configure_logging(
        log_level=settings.observability.log_level,
        json_format=settings.observability.log_json_format,
        app_name=settings.app_name,
    )
    logger.info("Starting %s (API server %s)", settings.app_name, settings.netease.base_url)

    app = CloudMatchApp(settings)
    try:
        yield app
    finally:
        await app.close()
