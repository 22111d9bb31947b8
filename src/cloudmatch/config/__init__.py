"""Configuration module for CloudMatch."""

from .settings import (
    CacheSettings,
    NeteaseSettings,
    ObservabilitySettings,
    Settings,
    get_settings,
)

__all__ = [
    "CacheSettings",
    "NeteaseSettings",
    "ObservabilitySettings",
    "Settings",
    "get_settings",
]
