"""Domain entities."""

import math
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import Enum

UNKNOWN_ARTIST = "Unknown Artist"


# Hey future me, these are the provider's QR states in OUR vocabulary. The provider speaks in
# numeric codes (800-803), the mapping lives in the Netease client. CONFIRMED and EXPIRED are
# terminal - once there, only a fresh start_login() moves things again.
class QrStatus(str, Enum):
    """State of a QR login ticket."""

    PENDING = "pending"  # QR shown, nobody scanned yet
    SCANNED = "scanned"  # Scanned in the app, waiting for confirm tap
    CONFIRMED = "confirmed"  # Provider issued credentials
    EXPIRED = "expired"  # Timed out, needs a fresh ticket

    @property
    def is_terminal(self) -> bool:
        """Check if polling should stop in this state."""
        return self in {QrStatus.CONFIRMED, QrStatus.EXPIRED}


@dataclass
class Identity:
    """The authenticated user.

    Replaced wholesale on re-login; usage figures are refreshed from the
    cloud listing after every page fetch.
    """

    user_id: int
    nickname: str
    avatar_url: str | None = None
    used_bytes: int = 0
    capacity_bytes: int = 0

    @property
    def usage_ratio(self) -> float:
        """Fraction of the cloud drive in use (0.0 if capacity unknown)."""
        if self.capacity_bytes <= 0:
            return 0.0
        return self.used_bytes / self.capacity_bytes


@dataclass
class LoginTicket:
    """A QR login handshake.

    key is the provider's opaque unikey. qr_url is the payload encoded in the
    QR code; qr_image holds the PNG the provider rendered for it (if requested).
    """

    key: str
    qr_url: str
    created_at: datetime
    expires_at: datetime
    qr_image: bytes | None = None
    status: QrStatus = QrStatus.PENDING
    # Filled while SCANNED so the UI can show "Scanned by <nickname>"
    scanned_by: str | None = None
    scanned_avatar_url: str | None = None

    @classmethod
    def issue(
        cls,
        key: str,
        qr_url: str,
        ttl_seconds: int,
        qr_image: bytes | None = None,
        now: datetime | None = None,
    ) -> "LoginTicket":
        """Create a pending ticket that expires ttl_seconds from now."""
        created = now or datetime.now(UTC)
        return cls(
            key=key,
            qr_url=qr_url,
            created_at=created,
            expires_at=created + timedelta(seconds=ttl_seconds),
            qr_image=qr_image,
        )

    def is_past_expiry(self, now: datetime | None = None) -> bool:
        """Check the local TTL (independent of what the provider says)."""
        return (now or datetime.now(UTC)) >= self.expires_at


class MatchState(str, Enum):
    """Tag of a MatchStatus."""

    NOT_MATCHED = "not_matched"
    MATCHED = "matched"
    FAILED = "failed"


@dataclass(frozen=True)
class MatchStatus:
    """Tagged match status: not_matched, matched or failed(reason)."""

    state: MatchState = MatchState.NOT_MATCHED
    reason: str | None = None

    @classmethod
    def not_matched(cls) -> "MatchStatus":
        return cls(MatchState.NOT_MATCHED)

    @classmethod
    def matched(cls) -> "MatchStatus":
        return cls(MatchState.MATCHED)

    @classmethod
    def failed(cls, reason: str) -> "MatchStatus":
        return cls(MatchState.FAILED, reason)

    @property
    def is_matched(self) -> bool:
        return self.state is MatchState.MATCHED

    @property
    def is_failed(self) -> bool:
        return self.state is MatchState.FAILED

    def __str__(self) -> str:
        if self.state is MatchState.FAILED:
            return f"failed({self.reason})"
        return self.state.value


# Hey future me - CloudSong is NOT frozen. The store mutates records in place so a
# match updates one row without a reload. BUT: id may only be reassigned by a successful match
# (MatchWorkflow -> CloudSongStore.update_song). Don't assign song.id anywhere else!
@dataclass
class CloudSong:
    """A track uploaded to the user's cloud drive."""

    id: str
    name: str
    artist: str = UNKNOWN_ARTIST
    album: str = ""
    cover_url: str | None = None
    add_time: datetime = field(default_factory=lambda: datetime.now(UTC))
    file_size: int = 0  # bytes
    duration_ms: int = 0
    file_name: str = ""
    bitrate: int = 0
    match_status: MatchStatus = field(default_factory=MatchStatus.not_matched)


@dataclass(frozen=True)
class Page:
    """Window over the cloud song collection.

    total_count is authoritative from the last fetch response; version bumps
    on every applied fetch so stale mutations can be detected.
    """

    number: int = 1
    size: int = 200
    total_count: int = 0
    version: int = 0

    @staticmethod
    def total_pages_for(total_count: int, page_size: int) -> int:
        """max(1, ceil(total / size))."""
        return max(1, math.ceil(total_count / page_size))

    @property
    def total_pages(self) -> int:
        return self.total_pages_for(self.total_count, self.size)

    @property
    def offset(self) -> int:
        return (self.number - 1) * self.size

    @property
    def has_previous(self) -> bool:
        return self.number > 1

    @property
    def has_next(self) -> bool:
        return self.number < self.total_pages

    def clamp(self, number: int) -> int:
        """Clamp a page number into [1, total_pages]."""
        return min(max(1, number), self.total_pages)


@dataclass(frozen=True)
class PageResult:
    """Outcome of a page fetch, as seen by the caller."""

    page: Page
    songs: tuple[CloudSong, ...]
    used_bytes: int = 0
    capacity_bytes: int = 0
    has_more: bool = False


@dataclass(frozen=True)
class MatchLogEntry:
    """One match attempt, as shown in the log view. Never mutated."""

    song_name: str
    cloud_song_id: str
    match_song_id: str
    success: bool
    message: str = ""  # empty on bare success
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass(frozen=True)
class MatchOutcome:
    """Result returned to the caller of a successful match."""

    success: bool
    message: str
    song: CloudSong | None = None
    previous_id: str | None = None
    entry: MatchLogEntry | None = None


__all__ = [
    "UNKNOWN_ARTIST",
    "CloudSong",
    "Identity",
    "LoginTicket",
    "MatchLogEntry",
    "MatchOutcome",
    "MatchState",
    "MatchStatus",
    "Page",
    "PageResult",
    "QrStatus",
]
