"""CloudMatch - session and sync engine for Netease Cloud Music cloud drive matching."""

__version__ = "0.1.0"
