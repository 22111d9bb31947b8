"""Structured log message templates for consistent, human-readable logging.

Instead of ad-hoc f-strings, services log through these templates:

    🔴 Netease Connection Failed
    ├─ Target: http://localhost:3000/user/cloud
    ├─ Reason: All connection attempts failed
    └─ 💡 Is the NeteaseCloudMusicApi server running? Check CLOUDMATCH_NETEASE__BASE_URL

Principles: icon first, then what happened, then context fields, then an
optional actionable hint.

Usage:
    from cloudmatch.infrastructure.observability.log_messages import LogMessages

    logger.warning(LogMessages.match_failed(song="Song", cloud_id="1", target_id="2", reason="..."))
"""

from dataclasses import dataclass
from typing import Any


@dataclass
class LogTemplate:
    """A reusable log message template with placeholders."""

    icon: str
    title: str
    fields: dict[str, str]
    hint: str | None = None

    def format(self, **kwargs: Any) -> str:
        """Format the template with provided values.

        Args:
            **kwargs: Values to fill into template placeholders

        Returns:
            Formatted multi-line log message with icon, title, fields, and optional hint
        """
        lines = [f"{self.icon} {self.title}"]

        field_items = list(self.fields.items())
        for i, (key, value_template) in enumerate(field_items):
            prefix = "└─" if i == len(field_items) - 1 and not self.hint else "├─"
            try:
                value = value_template.format(**kwargs)
            except KeyError as e:
                value = f"<missing: {e}>"
            lines.append(f"{prefix} {key}: {value}")

        if self.hint:
            try:
                hint_text = self.hint.format(**kwargs)
            except KeyError as e:
                hint_text = f"<missing: {e}>"
            lines.append(f"└─ 💡 {hint_text}")

        return "\n".join(lines)


def _literal(value: Any) -> str:
    # Field values are user data (song names with braces happen) - escape for str.format
    return str(value).replace("{", "{{").replace("}", "}}")


class LogMessages:
    """Collection of standardized log message templates.

    Template categories:
    - Connection errors (provider unreachable, timeouts)
    - Login (QR ticket lifecycle, logout)
    - Cloud drive (page fetches, stale mutations)
    - Matching (success, rejection)
    """

    # === Connection Errors ===

    @staticmethod
    def connection_failed(
        service: str,
        target: str,
        error: str | None = None,
        hint: str | None = None,
    ) -> str:
        """Format a connection failure message."""
        fields = {"Target": _literal(target)}
        if error:
            fields["Reason"] = _literal(error)

        template = LogTemplate(
            icon="🔴",
            title=f"{service} Connection Failed",
            fields=fields,
            hint=hint or f"Check if the {service} API server is running and reachable",
        )
        return template.format()

    @staticmethod
    def connection_timeout(service: str, target: str, timeout: float) -> str:
        """Format a request timeout message."""
        template = LogTemplate(
            icon="⏱️",
            title=f"{service} Request Timeout",
            fields={"Target": _literal(target), "Timeout": f"{timeout}s"},
            hint="Increase CLOUDMATCH_NETEASE__HTTP_TIMEOUT or check server load",
        )
        return template.format()

    # === Login ===

    @staticmethod
    def qr_ticket_issued(key: str, generation: int, ttl_seconds: int) -> str:
        """Format a new QR ticket message."""
        template = LogTemplate(
            icon="🔑",
            title="QR Login Ticket Issued",
            fields={
                "Key": f"{_literal(key[:8])}...",
                "Generation": str(generation),
                "Expires In": f"{ttl_seconds}s",
            },
        )
        return template.format()

    @staticmethod
    def qr_status_changed(key: str, old: str, new: str) -> str:
        """Format a QR state transition message."""
        template = LogTemplate(
            icon="🔄",
            title="QR Login Status Changed",
            fields={"Key": f"{_literal(key[:8])}...", "Transition": f"{old} → {new}"},
        )
        return template.format()

    @staticmethod
    def login_succeeded(user_id: int, nickname: str) -> str:
        """Format a successful login message."""
        template = LogTemplate(
            icon="✅",
            title="Logged In",
            fields={"User": f"{_literal(nickname)} ({user_id})"},
        )
        return template.format()

    @staticmethod
    def login_failed(reason: str, hint: str | None = None) -> str:
        """Format a failed login message."""
        template = LogTemplate(
            icon="❌",
            title="Login Failed",
            fields={"Reason": _literal(reason)},
            hint=hint or "Request a new QR code and scan it again",
        )
        return template.format()

    @staticmethod
    def stale_response_discarded(what: str, tagged: int, current: int) -> str:
        """Format a discarded stale response message."""
        template = LogTemplate(
            icon="⏭️",
            title=f"Stale {what} Discarded",
            fields={"Tagged": str(tagged), "Current": str(current)},
        )
        return template.format()

    @staticmethod
    def logged_out(user_id: int | None) -> str:
        """Format a logout message."""
        template = LogTemplate(
            icon="👋",
            title="Logged Out",
            fields={"User": str(user_id) if user_id is not None else "-"},
        )
        return template.format()

    # === Cloud Drive ===

    @staticmethod
    def page_fetched(page: int, total_pages: int, count: int, total_count: int) -> str:
        """Format a page fetch message."""
        template = LogTemplate(
            icon="📥",
            title="Cloud Page Loaded",
            fields={
                "Page": f"{page}/{total_pages}",
                "Songs": f"{count} of {total_count}",
            },
        )
        return template.format()

    @staticmethod
    def page_fetch_failed(page: int, reason: str) -> str:
        """Format a failed page fetch message."""
        template = LogTemplate(
            icon="🔴",
            title="Cloud Page Fetch Failed",
            fields={"Page": str(page), "Reason": _literal(reason)},
            hint="Previous page kept - use refresh to retry",
        )
        return template.format()

    @staticmethod
    def mutation_conflict(song_id: str, tagged: int, current: int) -> str:
        """Format a dropped stale mutation message."""
        template = LogTemplate(
            icon="⚠️",
            title="Song Update Dropped (page replaced)",
            fields={
                "Song": _literal(song_id),
                "Tagged Version": str(tagged),
                "Current Version": str(current),
            },
            hint="Refresh the page to see the server state",
        )
        return template.format()

    # === Matching ===

    @staticmethod
    def match_succeeded(song: str, cloud_id: str, target_id: str) -> str:
        """Format a successful match message."""
        template = LogTemplate(
            icon="✅",
            title="Cloud Song Matched",
            fields={
                "Song": _literal(song),
                "Binding": f"{_literal(cloud_id)} → {_literal(target_id)}",
            },
        )
        return template.format()

    @staticmethod
    def match_failed(song: str, cloud_id: str, target_id: str, reason: str) -> str:
        """Format a failed match message."""
        template = LogTemplate(
            icon="❌",
            title="Cloud Song Match Failed",
            fields={
                "Song": _literal(song),
                "Binding": f"{_literal(cloud_id)} → {_literal(target_id)}",
                "Reason": _literal(reason),
            },
            hint="Check the catalog id - the song may already be matched elsewhere",
        )
        return template.format()
