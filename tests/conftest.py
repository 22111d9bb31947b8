"""Shared fixtures for CloudMatch tests."""

from unittest.mock import AsyncMock

import pytest
from factories import make_listing, png_bytes

from cloudmatch.config.settings import CacheSettings, NeteaseSettings, Settings
from cloudmatch.domain.entities import Identity
from cloudmatch.domain.ports import ICloudMusicClient, QrCode


@pytest.fixture
def netease_settings() -> NeteaseSettings:
    """Provider settings with a fast poll loop."""
    return NeteaseSettings(
        base_url="http://netease.test",
        http_timeout=1.0,
        qr_poll_interval=0.01,
        qr_ttl_seconds=300,
        qr_max_poll_failures=3,
        page_size=20,
    )


@pytest.fixture
def settings(netease_settings: NeteaseSettings) -> Settings:
    """Full settings for the app container."""
    return Settings(
        netease=netease_settings,
        cache=CacheSettings(image_cache_capacity=8, match_log_capacity=50),
    )


@pytest.fixture
def identity() -> Identity:
    """A logged in user."""
    return Identity(user_id=42, nickname="listener", avatar_url="http://img.test/avatar.jpg")


@pytest.fixture
def mock_client(identity: Identity) -> AsyncMock:
    """Provider client fake with happy-path defaults."""
    client = AsyncMock(spec=ICloudMusicClient)
    client.create_qr_key.return_value = "key-1"
    client.create_qr_code.return_value = QrCode(url="https://music.163.com/login?codekey=key-1")
    client.get_account.return_value = identity
    client.list_cloud_songs.return_value = make_listing([])
    client.match_song.return_value = ""
    client.fetch_bytes.return_value = png_bytes()
    return client
