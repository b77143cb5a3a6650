"""
Session Manager: authentication token, expiry and liveness.

Liveness is never polled. ``is_session_expired`` is a pure function of the
expiry and an evaluation instant, called on demand (e.g. by the access guard).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from loguru import logger

from src.core.clock import as_utc, utc_now
from src.core.exceptions import SessionInvariantError
from src.store.section import CommitCallback, StateSection


class AuthStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"


@dataclass(frozen=True)
class SessionState:
    """Token and expiry are both set or both None."""

    token: str | None = None
    expires_at: datetime | None = None
    status: AuthStatus = AuthStatus.IDLE
    error: str | None = None

    @property
    def has_token(self) -> bool:
        return self.token is not None


def is_session_expired(expires_at: datetime | None, now: datetime | None = None) -> bool:
    """
    True when there is no expiry or the evaluation instant has reached it.

    The boundary ``now == expires_at`` counts as expired.
    """
    if expires_at is None:
        return True
    current = as_utc(now) if now is not None else utc_now()
    return current >= as_utc(expires_at)


class SessionManager(StateSection[SessionState]):
    """Owns the session section of the store."""

    name = "session"

    def __init__(self, initial: SessionState | None = None, on_commit: CommitCallback | None = None):
        initial = initial or SessionState()
        if (initial.token is None) != (initial.expires_at is None):
            raise SessionInvariantError("Session token and expiry must be seeded together")
        super().__init__(initial, on_commit)

    def set_session(self, token: str, expires_at: datetime) -> None:
        """Overwrite token and expiry; clears any error and loading state."""
        if token is None or expires_at is None:
            raise SessionInvariantError("set_session requires both a token and an expiry")
        self._update(
            token=token,
            expires_at=as_utc(expires_at),
            error=None,
            status=AuthStatus.IDLE,
        )
        logger.info(f"Session established, expires at {self._state.expires_at.isoformat()}")

    def set_loading(self, loading: bool) -> None:
        self._update(status=AuthStatus.LOADING if loading else AuthStatus.IDLE)

    def set_error(self, message: str | None) -> None:
        """Record an auth failure reason. Loading never survives an error."""
        self._update(error=message, status=AuthStatus.IDLE)

    def clear_session(self) -> None:
        had_token = self._state.has_token
        self._update(token=None, expires_at=None, error=None, status=AuthStatus.IDLE)
        if had_token:
            logger.info("Session cleared")

    def is_expired(self, now: datetime | None = None) -> bool:
        return is_session_expired(self._state.expires_at, now)

    def is_alive(self, now: datetime | None = None) -> bool:
        return self._state.has_token and not self.is_expired(now)
