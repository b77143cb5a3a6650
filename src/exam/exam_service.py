"""
Exam Service: session and attempt workflows.

Orchestrates remote calls against the store:

- login / logout / profile hydration
- starting an attempt and submitting its drafts
- on-demand detection of an expired session

Remote failures are surfaced by the interception policy registered on the
client; this layer only records component-local errors (``Session.error``,
``Attempt.error``) for its own operations.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Awaitable

from loguru import logger

from src.core.api_client import ApiResult, ExamApiClient
from src.core.exceptions import NoActiveAttemptError, SubmissionInProgressError
from src.core.failures import describe_failure, is_unauthorized
from src.core.models import AttemptBundle, LoginResponse, NotificationKind, Role, UserProfile
from src.store.app_store import AppStore

SESSION_EXPIRED_MESSAGE = "Session expired. Please log in again."


class ExamService:
    """Session and attempt workflows over one store and one client."""

    def __init__(self, store: AppStore, client: ExamApiClient):
        self.store = store
        self.client = client

    @classmethod
    def connect(cls, store: AppStore, client: ExamApiClient) -> ExamService:
        """Wire the client to the store: token lookup and the failure policy."""
        client.token_provider = lambda: store.session.state.token
        client.add_failure_hook(store.failure_policy)
        return cls(store, client)

    # =========================================================================
    # Authentication
    # =========================================================================

    async def login_with_telegram(self, init_data: str, role_hint: Role | None = None) -> bool:
        """Log in with platform init data. Returns True when a profile was loaded."""
        if not init_data:
            self.store.session.set_error("Platform init data is missing. Open the app from the bot.")
            return False
        return await self._login(self.client.login_with_telegram(init_data, role_hint))

    async def login_with_credentials(
        self, username: str, password: str, role_hint: Role | None = None
    ) -> bool:
        return await self._login(self.client.login_with_credentials(username, password, role_hint))

    async def _login(self, call: Awaitable[ApiResult[LoginResponse]]) -> bool:
        session = self.store.session
        session.set_error(None)
        session.set_loading(True)
        try:
            result = await call
            if not result.ok:
                session.set_error(describe_failure(result.failure))
                return False

            session.set_session(result.data.token, result.data.expires_at)
            profile = await self.fetch_profile()
            if profile is None:
                session.set_error("Unable to load profile.")
                return False

            logger.info(f"Logged in as {profile.username} ({profile.role})")
            return True
        finally:
            session.set_loading(False)

    async def fetch_profile(self) -> UserProfile | None:
        result = await self.client.get_profile()
        if not result.ok:
            return None
        self.store.profile.set_profile(result.data)
        return result.data

    async def hydrate_profile(self) -> UserProfile | None:
        """Load the profile when a token is held but no profile is cached."""
        if not self.store.session.state.has_token:
            return None
        cached = self.store.profile.state.profile
        if cached is not None:
            return cached
        return await self.fetch_profile()

    async def logout(self) -> None:
        """Clear local state regardless of the remote outcome."""
        if self.store.session.state.has_token:
            result = await self.client.logout()
            if not result.ok:
                logger.debug("Remote logout failed; clearing local session anyway")
        self.store.reset_dependents()
        logger.info("Logged out")

    def expire_stale_session(self, now: datetime | None = None) -> bool:
        """
        Drop the session if its expiry has passed.

        Returns:
            True when a stale session was cleared.
        """
        session = self.store.session
        if session.state.expires_at is None or not session.is_expired(now):
            return False

        with self.store.batch():
            self.store.reset_dependents()
            self.store.notifications.push_notification(NotificationKind.WARNING, SESSION_EXPIRED_MESSAGE)
        logger.info("Session expired; local state cleared")
        return True

    # =========================================================================
    # Attempts
    # =========================================================================

    async def start_attempt(self, test_id: int) -> AttemptBundle | None:
        """Start (or resume) an attempt. A held attempt for the same test is reused."""
        current = self.store.attempt.state.current
        if current is not None and current.test.id == test_id:
            return current

        result = await self.client.start_attempt(test_id)
        if not result.ok:
            # A 401 has already reset the attempt section
            if not is_unauthorized(result.failure):
                self.store.attempt.set_error(describe_failure(result.failure))
            return None

        self.store.attempt.start_attempt(result.data)
        return result.data

    async def submit_attempt(self) -> dict[str, Any] | None:
        """
        Submit every draft of the held attempt.

        Returns:
            The server's result on success, None on failure.

        Raises:
            NoActiveAttemptError: No attempt is held
            SubmissionInProgressError: A submission is already in flight
        """
        attempt = self.store.attempt
        state = attempt.state
        if state.current is None:
            raise NoActiveAttemptError("No attempt to submit")
        if state.submit_in_flight:
            raise SubmissionInProgressError(f"Attempt {state.current.attempt.id} is already being submitted")

        attempt_id = state.current.attempt.id
        attempt.set_submit_in_flight(True)
        attempt.set_error(None)
        try:
            result = await self.client.submit_attempt(attempt_id, state.answers)
            if not result.ok:
                if not is_unauthorized(result.failure):
                    attempt.set_error(describe_failure(result.failure))
                return None

            attempt.clear()
            logger.info(f"Attempt {attempt_id} submitted")
            return result.data
        finally:
            attempt.set_submit_in_flight(False)
