"""External service integrations."""

from cloudmatch.infrastructure.integrations.netease_client import NeteaseClient

__all__ = ["NeteaseClient"]
