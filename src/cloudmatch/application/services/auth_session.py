"""QR login session.

Hey future me - this is the login state machine the whole client hangs off:

    start_login() ──► pending ──► scanned ──► confirmed  (Identity set, on_login fires once)
                         │            │
                         └────────────┴────► expired    (on_login_failed fires once)

Every failure ends the ticket in expired, not only a timeout, so the ticket status alone
tells presentation whether it is still worth showing.

The polling loop is an asyncio.Task. EVERY start_login() bumps _generation and cancels the
previous task. Cancelling isn't enough on its own: a check_qr() response can already be sitting
in the loop's ready queue when cancel() is called. So after every await the loop compares its
own generation with the session's and bails out if it was superseded. That's what keeps the
first ticket's confirmation from logging you in after you asked for a second QR code.

Credentials (the provider cookie) live in memory only - relaunch = scan again.
"""

import asyncio
import contextlib
import logging

from cloudmatch.application.services.signals import Signal
from cloudmatch.config.settings import NeteaseSettings
from cloudmatch.domain.entities import Identity, LoginTicket, QrStatus
from cloudmatch.domain.exceptions import (
    AuthError,
    DomainException,
    NetworkError,
    TicketExpiredError,
)
from cloudmatch.domain.ports import ICloudMusicClient, QrCheckResult
from cloudmatch.infrastructure.observability.log_messages import LogMessages
from cloudmatch.infrastructure.observability.logging import set_correlation_id

logger = logging.getLogger(__name__)


class AuthSession:
    """Owns the Identity, the provider cookie and the current LoginTicket."""

    def __init__(self, client: ICloudMusicClient, settings: NeteaseSettings) -> None:
        """Initialize auth session.

        Args:
            client: Provider API client
            settings: Polling interval, ticket TTL and failure budget
        """
        self._client = client
        self._settings = settings
        self._identity: Identity | None = None
        self._cookie: str | None = None
        self._ticket: LoginTicket | None = None
        self._generation = 0
        self._poll_task: asyncio.Task[None] | None = None
        self._result: asyncio.Future[Identity] | None = None

        # on_login(identity), on_login_failed(error), on_logout(), on_ticket_changed(ticket)
        self.on_login = Signal("auth.login")
        self.on_login_failed = Signal("auth.login_failed")
        self.on_logout = Signal("auth.logout")
        self.on_ticket_changed = Signal("auth.ticket_changed")

    # === Read-only snapshot for presentation ===

    @property
    def identity(self) -> Identity | None:
        return self._identity

    @property
    def ticket(self) -> LoginTicket | None:
        return self._ticket

    @property
    def cookie(self) -> str | None:
        return self._cookie

    @property
    def is_authenticated(self) -> bool:
        return self._identity is not None and self._cookie is not None

    @property
    def is_polling(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    @property
    def generation(self) -> int:
        return self._generation

    def require_credentials(self) -> tuple[Identity, str]:
        """Identity and cookie for an authenticated call.

        Raises:
            AuthError: If nobody is logged in
        """
        if self._identity is None or self._cookie is None:
            raise AuthError("Not logged in")
        return self._identity, self._cookie

    # === Commands ===

    async def start_login(self) -> LoginTicket:
        """Request a fresh QR ticket and start polling it.

        Cancels any polling loop that is still running.

        Returns:
            The new pending ticket

        Raises:
            NetworkError: If the provider is unreachable (no ticket is installed)
        """
        self._generation += 1
        generation = self._generation
        self._cancel_polling()
        self._supersede_result()
        self._ticket = None
        result: asyncio.Future[Identity] = asyncio.get_running_loop().create_future()
        self._result = result
        set_correlation_id()

        try:
            key = await self._client.create_qr_key()
            qr = await self._client.create_qr_code(key)
        except DomainException as e:
            if generation == self._generation:
                logger.error(LogMessages.login_failed(e.message, hint="Check the API server and retry"))
                self._settle_failure(result, e)
            raise

        ticket = LoginTicket.issue(
            key=key,
            qr_url=qr.url,
            qr_image=qr.image,
            ttl_seconds=self._settings.qr_ttl_seconds,
        )

        if generation != self._generation:
            # Another start_login() or a logout() ran while we waited for the key
            logger.debug(LogMessages.stale_response_discarded("QR ticket", generation, self._generation))
            ticket.status = QrStatus.EXPIRED
            return ticket

        self._ticket = ticket
        logger.info(LogMessages.qr_ticket_issued(key, generation, self._settings.qr_ttl_seconds))
        self._poll_task = asyncio.create_task(
            self._poll(generation, ticket, result), name=f"qr-poll-{generation}"
        )
        await self.on_ticket_changed.emit(ticket)
        return ticket

    async def wait_for_login(self) -> Identity:
        """Wait until the current ticket is confirmed.

        Raises:
            TicketExpiredError: If the ticket expired
            NetworkError: If polling gave up after repeated transport failures
            AuthError: If no login is in progress
            asyncio.CancelledError: If the login was superseded or logged out
        """
        if self._result is None:
            if self._identity is not None:
                return self._identity
            raise AuthError("No login in progress")
        return await asyncio.shield(self._result)

    async def logout(self) -> bool:
        """Forget the session. Safe to call repeatedly.

        Returns:
            True if there was anything to clear, False if already logged out
        """
        had_state = (
            self._identity is not None
            or self._cookie is not None
            or self._ticket is not None
            or self.is_polling
        )
        self._generation += 1
        self._cancel_polling()
        self._supersede_result()
        self._result = None
        if not had_state:
            return False

        cookie = self._cookie
        user_id = self._identity.user_id if self._identity else None
        self._identity = None
        self._cookie = None
        self._ticket = None

        if cookie:
            try:
                await self._client.logout(cookie)
            except (NetworkError, AuthError) as e:
                # Local state is already gone - the provider session just times out on its own
                logger.warning("Provider logout failed, local session cleared anyway: %s", e)

        logger.info(LogMessages.logged_out(user_id))
        await self.on_logout.emit()
        return True

    def update_usage(self, used_bytes: int, capacity_bytes: int) -> None:
        """Refresh cloud drive usage on the current Identity."""
        if self._identity is None:
            return
        self._identity.used_bytes = used_bytes
        self._identity.capacity_bytes = capacity_bytes

    async def close(self) -> None:
        """Stop polling and wait for the task to finish."""
        self._generation += 1
        task = self._poll_task
        self._cancel_polling()
        self._supersede_result()
        if task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await task

    # === Polling ===

    async def _poll(
        self,
        generation: int,
        ticket: LoginTicket,
        result: asyncio.Future[Identity],
    ) -> None:
        failures = 0
        while True:
            await asyncio.sleep(self._settings.qr_poll_interval)
            if generation != self._generation:
                return

            if ticket.is_past_expiry():
                self._transition(ticket, QrStatus.EXPIRED)
                await self._fail(generation, result, TicketExpiredError(ticket.key))
                return

            try:
                check = await self._client.check_qr(ticket.key)
            except NetworkError as e:
                if generation != self._generation:
                    return
                failures += 1
                logger.warning(
                    "QR status check failed (%d/%d): %s",
                    failures,
                    self._settings.qr_max_poll_failures,
                    e.message,
                )
                if failures >= self._settings.qr_max_poll_failures:
                    await self._fail(generation, result, e)
                    return
                continue
            except AuthError as e:
                if generation == self._generation:
                    await self._fail(generation, result, e)
                return
            except Exception as e:
                # Malformed response or client bug: the result must still be settled
                logger.exception("QR status check for %s... crashed", ticket.key[:8])
                await self._fail(generation, result, NetworkError(f"QR status check failed: {e}"))
                return

            if generation != self._generation:
                logger.debug(LogMessages.stale_response_discarded("QR status", generation, self._generation))
                return

            failures = 0
            self._apply_check(ticket, check)

            if check.status is QrStatus.CONFIRMED:
                await self._confirm(generation, ticket, result, check.cookie)
                return
            if check.status is QrStatus.EXPIRED:
                await self._fail(generation, result, TicketExpiredError(ticket.key))
                return

    def _apply_check(self, ticket: LoginTicket, check: QrCheckResult) -> None:
        if check.status is QrStatus.SCANNED:
            ticket.scanned_by = check.nickname
            ticket.scanned_avatar_url = check.avatar_url
        self._transition(ticket, check.status)

    def _transition(self, ticket: LoginTicket, status: QrStatus) -> None:
        if ticket.status is status:
            return
        logger.info(LogMessages.qr_status_changed(ticket.key, ticket.status.value, status.value))
        ticket.status = status

    async def _confirm(
        self,
        generation: int,
        ticket: LoginTicket,
        result: asyncio.Future[Identity],
        cookie: str | None,
    ) -> None:
        if not cookie:
            await self._fail(generation, result, AuthError("Login confirmed without credentials"))
            return

        try:
            identity = await self._client.get_account(cookie)
        except (NetworkError, AuthError) as e:
            if generation == self._generation:
                await self._fail(generation, result, e)
            return
        except Exception as e:
            logger.exception("Loading the account after QR confirmation crashed")
            await self._fail(generation, result, NetworkError(f"Account lookup failed: {e}"))
            return

        if generation != self._generation:
            logger.debug(LogMessages.stale_response_discarded("login confirmation", generation, self._generation))
            return

        self._identity = identity
        self._cookie = cookie
        # The task is finishing on its own; drop the handle so a listener calling
        # start_login()/logout() doesn't cancel the task it is running in.
        self._poll_task = None
        if result.done():
            return
        result.set_result(identity)
        logger.info(LogMessages.login_succeeded(identity.user_id, identity.nickname))
        await self.on_login.emit(identity)

    async def _fail(
        self,
        generation: int,
        result: asyncio.Future[Identity],
        error: DomainException,
    ) -> None:
        if generation != self._generation or result.done():
            return
        # Whatever the cause, nothing polls this ticket any more - show it as expired
        if self._ticket is not None:
            self._transition(self._ticket, QrStatus.EXPIRED)
        self._poll_task = None
        logger.warning(LogMessages.login_failed(error.message))
        self._settle_failure(result, error)
        await self.on_login_failed.emit(error)

    @staticmethod
    def _settle_failure(result: asyncio.Future[Identity], error: BaseException) -> None:
        if result.done():
            return
        result.set_exception(error)
        # Retrieved here so an unawaited future doesn't log "exception never retrieved"
        result.exception()

    def _supersede_result(self) -> None:
        if self._result is not None and not self._result.done():
            self._result.cancel()

    def _cancel_polling(self) -> None:
        if self._poll_task is not None and not self._poll_task.done():
            # Never cancel the task we're running inside (listener re-entrancy)
            if self._poll_task is not asyncio.current_task():
                self._poll_task.cancel()
        self._poll_task = None
