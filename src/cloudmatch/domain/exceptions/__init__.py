"""Domain exceptions."""

from typing import Any


class DomainException(Exception):
    """Base exception for all domain exceptions."""

    # Hey future me, message is stored as an attribute so log templates and the UI can read it
    # without parsing str(exception). Never raise this directly - pick a subclass below so
    # callers can catch precisely.
    def __init__(self, message: str, *args: Any) -> None:
        super().__init__(message, *args)
        self.message = message


class EntityNotFoundException(DomainException):
    """Raised when an entity is not found."""

    def __init__(self, entity_type: str, entity_id: Any) -> None:
        super().__init__(f"{entity_type} with id {entity_id} not found")
        self.entity_type = entity_type
        self.entity_id = entity_id


class ValidationError(DomainException):
    """Input validation failed.

    Example:
        raise ValidationError("Target song id must not be empty")
        raise ValidationError("Page must be a positive integer, got 0")
    """

    pass


class ConfigurationError(DomainException):
    """Application misconfiguration.

    Raised when required configuration is missing or invalid.
    """

    pass


# =============================================================================
# Provider / transport exceptions
# =============================================================================


class NetworkError(DomainException):
    """Transport failure talking to the provider (connection, timeout, 5xx).

    Hey future me - is_timeout lets the UI say "server too slow" instead of
    "server unreachable". Both are retryable by the user, neither is retried by us.
    """

    def __init__(
        self,
        message: str = "Network request failed",
        *,
        is_timeout: bool = False,
        http_status: int | None = None,
    ) -> None:
        super().__init__(message)
        self.is_timeout = is_timeout
        self.http_status = http_status


class AuthenticationError(DomainException):
    """Session is missing, expired or rejected by the provider.

    Example:
        raise AuthenticationError("Not logged in")
        raise AuthenticationError("Session expired - please scan the QR code again")
    """

    def __init__(
        self,
        message: str = "Session expired. Please log in again.",
        http_status: int | None = None,
    ) -> None:
        super().__init__(message)
        self.http_status = http_status

    @property
    def requires_reauth(self) -> bool:
        """Every authentication failure ends in a fresh QR login."""
        return True


class TicketExpiredError(AuthenticationError):
    """The QR login ticket timed out before the user confirmed it."""

    def __init__(self, ticket_key: str | None = None) -> None:
        super().__init__("QR code expired. Request a new one and scan again.")
        self.ticket_key = ticket_key


# =============================================================================
# Match exceptions
# =============================================================================


class MatchError(DomainException):
    """The provider rejected a match request.

    reason is the provider's message (e.g. catalog id not found), kept verbatim
    because it ends up in the match log and the song's failed status.
    """

    def __init__(self, reason: str, song_id: str | None = None, target_id: str | None = None) -> None:
        super().__init__(reason)
        self.reason = reason
        self.song_id = song_id
        self.target_id = target_id


class ConcurrentMatchError(DomainException):
    """A match for the same cloud song is already in flight."""

    def __init__(self, song_id: str) -> None:
        super().__init__(f"A match for cloud song {song_id} is already in progress")
        self.song_id = song_id


class ImageDecodeError(DomainException):
    """Downloaded bytes could not be decoded into an image."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"Could not decode image from {url}: {reason}")
        self.url = url
        self.reason = reason


# Short names used across the package
EntityNotFoundError = EntityNotFoundException
AuthError = AuthenticationError


__all__ = [
    # Base
    "DomainException",
    # Entity / input
    "EntityNotFoundException",
    "EntityNotFoundError",
    "ValidationError",
    "ConfigurationError",
    # Provider
    "NetworkError",
    "AuthenticationError",
    "AuthError",
    "TicketExpiredError",
    # Matching
    "MatchError",
    "ConcurrentMatchError",
    # Images
    "ImageDecodeError",
]
