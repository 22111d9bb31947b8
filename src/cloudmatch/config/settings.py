"""Application settings loaded from environment variables.

Every value can be overridden with a CLOUDMATCH_ prefixed variable. Nested groups
use a double underscore, e.g. CLOUDMATCH_NETEASE__BASE_URL=http://127.0.0.1:3000.
"""

from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class NeteaseSettings(BaseModel):
    """Provider connection and login polling settings."""

    # Hey future me - base_url points at a NeteaseCloudMusicApi compatible server, not at
    # music.163.com directly. The server handles request signing (weapi/eapi) for us.
    base_url: str = "http://localhost:3000"
    http_timeout: float = Field(default=15.0, gt=0)
    qr_poll_interval: float = Field(default=2.0, gt=0, le=3.0)
    qr_ttl_seconds: int = Field(default=300, gt=0)
    qr_max_poll_failures: int = Field(default=3, ge=1)
    page_size: int = Field(default=200, ge=1, le=1000)

    @field_validator("base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


class CacheSettings(BaseModel):
    """Bounds for the in-memory caches."""

    image_cache_capacity: int = Field(default=256, ge=1)
    match_log_capacity: int = Field(default=500, ge=1)


class ObservabilitySettings(BaseModel):
    """Logging settings."""

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_json_format: bool = False


class Settings(BaseSettings):
    """Root settings object."""

    model_config = SettingsConfigDict(
        env_prefix="CLOUDMATCH_",
        env_nested_delimiter="__",
        env_file=".env",
        extra="ignore",
    )

    app_name: str = "cloudmatch"
    netease: NeteaseSettings = Field(default_factory=NeteaseSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)


# Listen, this cache is for the entrypoint only! Services get their settings passed in so
# tests can build them with plain constructors instead of patching the environment.
@lru_cache
def get_settings() -> Settings:
    """Get the process settings (loaded once)."""
    return Settings()
