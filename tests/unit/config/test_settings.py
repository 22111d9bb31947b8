"""Tests for settings loading."""

import pytest
from pydantic import ValidationError

from cloudmatch.config.settings import NeteaseSettings, Settings


def test_defaults() -> None:
    settings = Settings(_env_file=None)
    assert settings.netease.base_url == "http://localhost:3000"
    assert settings.netease.qr_poll_interval == 2.0
    assert settings.cache.image_cache_capacity == 256
    assert settings.cache.match_log_capacity == 500


def test_nested_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CLOUDMATCH_NETEASE__BASE_URL", "http://127.0.0.1:4000/")
    monkeypatch.setenv("CLOUDMATCH_NETEASE__PAGE_SIZE", "50")
    monkeypatch.setenv("CLOUDMATCH_OBSERVABILITY__LOG_LEVEL", "DEBUG")

    settings = Settings(_env_file=None)

    assert settings.netease.base_url == "http://127.0.0.1:4000"
    assert settings.netease.page_size == 50
    assert settings.observability.log_level == "DEBUG"


@pytest.mark.parametrize("interval", [0, 3.5])
def test_poll_interval_bounds(interval: float) -> None:
    with pytest.raises(ValidationError):
        NeteaseSettings(qr_poll_interval=interval)
