"""Domain ports (interfaces) for the cloud music provider.

Hey future me - services only ever talk to ICloudMusicClient. The Netease
adapter in infrastructure/integrations implements it; tests hand in an
AsyncMock(spec=ICloudMusicClient) instead of patching HTTP.

FLOW:
    AuthSession ──► create_qr_key / create_qr_code / check_qr / get_account / logout
    CloudSongStore ──► list_cloud_songs
    MatchWorkflow ──► match_song
    ImageCache ──► fetch_bytes (passed in as the fetcher callable)
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from cloudmatch.domain.entities import CloudSong, Identity, QrStatus


@dataclass(frozen=True)
class QrCode:
    """QR payload for a login key."""

    url: str
    image: bytes | None = None  # PNG bytes when the provider rendered one


@dataclass(frozen=True)
class QrCheckResult:
    """One status poll of a QR login key.

    cookie is only set when status is CONFIRMED; nickname/avatar_url
    are set while SCANNED.
    """

    status: QrStatus
    message: str = ""
    cookie: str | None = None
    nickname: str | None = None
    avatar_url: str | None = None


@dataclass(frozen=True)
class CloudSongListing:
    """One page of the cloud drive as returned by the provider."""

    songs: list[CloudSong] = field(default_factory=list)
    total_count: int = 0
    used_bytes: int = 0
    capacity_bytes: int = 0
    has_more: bool = False


class ICloudMusicClient(ABC):
    """Port for the cloud music provider API.

    Every method raises NetworkError on transport failure or timeout and
    AuthError when the session is missing or expired.
    """

    @abstractmethod
    async def create_qr_key(self) -> str:
        """Request a new login key (unikey)."""

    @abstractmethod
    async def create_qr_code(self, key: str) -> QrCode:
        """Get the QR payload (URL and optional image) for a login key."""

    @abstractmethod
    async def check_qr(self, key: str) -> QrCheckResult:
        """Poll the status of a login key."""

    @abstractmethod
    async def get_account(self, cookie: str) -> Identity:
        """Load the profile of the logged in user."""

    @abstractmethod
    async def logout(self, cookie: str) -> None:
        """Invalidate the session on the provider side."""

    @abstractmethod
    async def list_cloud_songs(self, cookie: str, limit: int, offset: int) -> CloudSongListing:
        """Fetch one window of the cloud drive."""

    @abstractmethod
    async def match_song(
        self, cookie: str, user_id: int, cloud_song_id: str, target_id: str
    ) -> str:
        """Bind a cloud song to a catalog song.

        Returns:
            Provider message (may be empty)

        Raises:
            MatchError: If the provider rejected the match
        """

    @abstractmethod
    async def fetch_bytes(self, url: str) -> bytes:
        """Download raw bytes (cover art, avatars)."""

    @abstractmethod
    async def close(self) -> None:
        """Release HTTP resources."""


__all__ = [
    "CloudSongListing",
    "ICloudMusicClient",
    "QrCheckResult",
    "QrCode",
]
