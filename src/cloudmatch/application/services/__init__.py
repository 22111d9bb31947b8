"""Application services."""

from cloudmatch.application.services.auth_session import AuthSession
from cloudmatch.application.services.cloud_song_store import CloudSongStore
from cloudmatch.application.services.match_log import MatchLog
from cloudmatch.application.services.match_workflow import MatchWorkflow
from cloudmatch.application.services.signals import Signal

__all__ = [
    "AuthSession",
    "CloudSongStore",
    "MatchLog",
    "MatchWorkflow",
    "Signal",
]
