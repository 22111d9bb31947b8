"""Netease Cloud Music HTTP client (NeteaseCloudMusicApi compatible server).

Hey future me - we never talk to music.163.com directly. The NeteaseCloudMusicApi
server does the weapi/eapi encryption; we just call its plain GET routes:

    /login/qr/key        -> data.unikey
    /login/qr/create     -> data.qrurl, data.qrimg (data:image/png;base64,...)
    /login/qr/check      -> code 800 expired | 801 waiting | 802 scanned | 803 confirmed
    /login/status        -> data.profile / data.account
    /logout
    /user/cloud          -> data[], count, size, maxSize, hasMore
    /cloud/match         -> code 200 or an error message

The session cookie travels as the `cookie` query parameter and every request
carries a `timestamp` so the server's response cache never hands us a stale QR
status. This module is the ONLY place that knows those field names.
"""

import base64
import binascii
import logging
import time
from datetime import UTC, datetime
from typing import Any

import httpx

from cloudmatch.config.settings import NeteaseSettings
from cloudmatch.domain.entities import UNKNOWN_ARTIST, CloudSong, Identity, QrStatus
from cloudmatch.domain.exceptions import AuthError, MatchError, NetworkError
from cloudmatch.domain.ports import CloudSongListing, ICloudMusicClient, QrCheckResult, QrCode
from cloudmatch.infrastructure.observability.log_messages import LogMessages

logger = logging.getLogger(__name__)

SERVICE_NAME = "Netease"

# Provider QR codes -> our vocabulary
QR_STATUS_CODES: dict[int, QrStatus] = {
    800: QrStatus.EXPIRED,
    801: QrStatus.PENDING,
    802: QrStatus.SCANNED,
    803: QrStatus.CONFIRMED,
}

# Body code the provider uses for "you need to log in"
NEED_LOGIN_CODE = 301


def _to_int(value: Any, default: int = 0) -> int:
    # size/maxSize come back as strings, count as int, some fields as null
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _decode_data_url(data_url: str | None) -> bytes | None:
    if not data_url:
        return None
    _, _, payload = data_url.partition("base64,")
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        logger.warning("QR image payload is not valid base64, ignoring it")
        return None


def parse_cloud_song(item: dict[str, Any]) -> CloudSong:
    """Convert one /user/cloud item into a CloudSong.

    simpleSong carries the catalog view (id, ar, al, dt); the top level carries
    the upload view (fileName, fileSize, addTime). Upload fields win as fallbacks.
    """
    simple = item.get("simpleSong") or {}
    album = simple.get("al") or {}
    artists = [a.get("name") for a in simple.get("ar") or [] if a.get("name")]

    song_id = simple.get("id", item.get("songId"))
    artist = "/".join(artists) or item.get("artist") or UNKNOWN_ARTIST
    add_time_ms = _to_int(item.get("addTime"))

    return CloudSong(
        id=str(song_id),
        name=simple.get("name") or item.get("songName") or item.get("fileName") or "",
        artist=artist,
        album=album.get("name") or item.get("album") or "",
        cover_url=album.get("picUrl"),
        add_time=datetime.fromtimestamp(add_time_ms / 1000, tz=UTC),
        file_size=_to_int(item.get("fileSize")),
        duration_ms=_to_int(simple.get("dt")),
        file_name=item.get("fileName") or "",
        bitrate=_to_int(item.get("bitrate")),
    )


class NeteaseClient(ICloudMusicClient):
    """HTTP client for the NeteaseCloudMusicApi server."""

    def __init__(self, settings: NeteaseSettings) -> None:
        """
        Initialize Netease client.

        Args:
            settings: Provider connection settings
        """
        self.settings = settings
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.settings.base_url,
                headers={"Accept": "application/json"},
                timeout=httpx.Timeout(self.settings.http_timeout),
                follow_redirects=False,
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "NeteaseClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    # Yo, every provider call goes through here so the error mapping is in ONE place:
    # timeout -> NetworkError(is_timeout), transport -> NetworkError, 5xx -> NetworkError,
    # 301/401/403 or body code 301 -> AuthError. 4xx bodies are returned as-is because the
    # server mirrors the body code into the HTTP status (a rejected match comes back as 400).
    async def _send(self, url: str, params: dict[str, Any] | None = None) -> httpx.Response:
        client = await self._get_client()
        target = url if url.startswith("http") else f"{self.settings.base_url}{url}"
        try:
            return await client.get(url, params=params)
        except httpx.TimeoutException as exc:
            logger.warning(
                LogMessages.connection_timeout(SERVICE_NAME, target, self.settings.http_timeout)
            )
            raise NetworkError(f"Request to {url} timed out", is_timeout=True) from exc
        except httpx.TransportError as exc:
            logger.warning(LogMessages.connection_failed(SERVICE_NAME, target, str(exc)))
            raise NetworkError(f"Provider unreachable: {exc}") from exc

    async def _request(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        cookie: str | None = None,
    ) -> dict[str, Any]:
        query: dict[str, Any] = dict(params or {})
        query["timestamp"] = int(time.time() * 1000)
        if cookie:
            query["cookie"] = cookie

        response = await self._send(path, query)

        if response.status_code in (NEED_LOGIN_CODE, 401, 403):
            raise AuthError(http_status=response.status_code)
        if response.status_code >= 500:
            raise NetworkError(
                f"Provider error on {path}: HTTP {response.status_code}",
                http_status=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise NetworkError(f"Provider returned invalid JSON for {path}") from exc

        if not isinstance(body, dict):
            raise NetworkError(f"Unexpected response shape for {path}")
        if body.get("code") == NEED_LOGIN_CODE:
            raise AuthError()
        return body

    # === Login ===

    async def create_qr_key(self) -> str:
        """Request a new login key."""
        body = await self._request("/login/qr/key")
        key = (body.get("data") or {}).get("unikey")
        if not key:
            raise NetworkError("Provider did not return a QR login key")
        return str(key)

    async def create_qr_code(self, key: str) -> QrCode:
        """Get the QR URL and PNG for a login key."""
        body = await self._request("/login/qr/create", {"key": key, "qrimg": "true"})
        data = body.get("data") or {}
        url = data.get("qrurl")
        if not url:
            raise NetworkError("Provider did not return a QR code URL")
        return QrCode(url=url, image=_decode_data_url(data.get("qrimg")))

    async def check_qr(self, key: str) -> QrCheckResult:
        """Poll the status of a login key."""
        body = await self._request("/login/qr/check", {"key": key})
        code = _to_int(body.get("code"), default=-1)
        status = QR_STATUS_CODES.get(code)
        if status is None:
            raise NetworkError(f"Unexpected QR status code {code}: {body.get('message', '')}")

        return QrCheckResult(
            status=status,
            message=body.get("message") or "",
            cookie=body.get("cookie") if status is QrStatus.CONFIRMED else None,
            nickname=body.get("nickname"),
            avatar_url=body.get("avatarUrl"),
        )

    async def get_account(self, cookie: str) -> Identity:
        """Load the profile of the logged in user."""
        body = await self._request("/login/status", cookie=cookie)
        data = body.get("data") or body
        if not isinstance(data, dict):
            raise NetworkError("Unexpected response shape for /login/status")
        profile = data.get("profile")
        account = data.get("account") or {}
        if not isinstance(profile, dict) or not profile:
            raise AuthError("Login was confirmed but the provider returned no profile")

        return Identity(
            user_id=_to_int(profile.get("userId", account.get("id"))),
            nickname=profile.get("nickname") or "",
            avatar_url=profile.get("avatarUrl"),
        )

    async def logout(self, cookie: str) -> None:
        """Invalidate the session on the provider side."""
        await self._request("/logout", cookie=cookie)

    # === Cloud drive ===

    async def list_cloud_songs(self, cookie: str, limit: int, offset: int) -> CloudSongListing:
        """Fetch one window of the cloud drive."""
        body = await self._request(
            "/user/cloud", {"limit": limit, "offset": offset}, cookie=cookie
        )
        if _to_int(body.get("code"), default=200) != 200:
            raise NetworkError(f"Cloud listing failed: {body.get('message') or body.get('msg')}")

        songs = [parse_cloud_song(item) for item in body.get("data") or []]
        return CloudSongListing(
            songs=songs,
            total_count=_to_int(body.get("count")),
            used_bytes=_to_int(body.get("size")),
            capacity_bytes=_to_int(body.get("maxSize")),
            has_more=bool(body.get("hasMore")),
        )

    async def match_song(
        self, cookie: str, user_id: int, cloud_song_id: str, target_id: str
    ) -> str:
        """Bind a cloud song (sid) to a catalog song (asid)."""
        body = await self._request(
            "/cloud/match",
            {"uid": user_id, "sid": cloud_song_id, "asid": target_id},
            cookie=cookie,
        )
        code = _to_int(body.get("code"), default=-1)
        message = body.get("message") or body.get("msg") or ""
        if code != 200:
            raise MatchError(
                message or f"Match rejected (code {code})",
                song_id=cloud_song_id,
                target_id=target_id,
            )
        return message

    # === Assets ===

    async def fetch_bytes(self, url: str) -> bytes:
        """Download raw bytes from an absolute URL (cover art CDN)."""
        response = await self._send(url)
        if response.status_code >= 400:
            raise NetworkError(
                f"Download of {url} failed: HTTP {response.status_code}",
                http_status=response.status_code,
            )
        return response.content
