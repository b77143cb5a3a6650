"""
Process-wide state container.

Owns every section (session, profile, attempt, ui/notifications) and is
passed by reference to whoever needs it. Sections are read through frozen
snapshots and changed only through their managers' named operations.

Subscribers are notified once per commit. ``batch()`` groups several
operations into one commit, which is how multi-step transitions such as the
401 cascade stay atomic for observers.
"""

from __future__ import annotations

import asyncio
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterator

from loguru import logger

from config import Settings, get_settings
from src.store.attempt import AttemptManager, AttemptState
from src.store.interceptor import FailureInterceptionPolicy
from src.store.notifications import (
    DEFAULT_NOTIFICATION_TIMEOUT_SECONDS,
    NotificationChannel,
    UiState,
)
from src.store.persistence import JsonFileStorage, KeyValueStorage, PersistentStore
from src.store.profile import ProfileCache, ProfileState
from src.store.session import SessionManager, SessionState


@dataclass(frozen=True)
class AppState:
    """Snapshot of the whole store."""

    session: SessionState
    profile: ProfileState
    attempt: AttemptState
    ui: UiState


Listener = Callable[[AppState], None]


class AppStore:
    def __init__(
        self,
        session: SessionState | None = None,
        profile: ProfileState | None = None,
        ui: UiState | None = None,
        notification_timeout: float = DEFAULT_NOTIFICATION_TIMEOUT_SECONDS,
        loop: asyncio.AbstractEventLoop | None = None,
    ):
        self._listeners: list[Listener] = []
        self._batch_depth = 0
        self._pending_commit = False

        self.session = SessionManager(session, self._commit)
        self.profile = ProfileCache(profile, self._commit)
        self.attempt = AttemptManager(None, self._commit)
        self.notifications = NotificationChannel(
            ui, self._commit, timeout_seconds=notification_timeout, loop=loop
        )
        self.failure_policy = FailureInterceptionPolicy(self)
        self.persistence: PersistentStore | None = None

    @property
    def state(self) -> AppState:
        return AppState(
            session=self.session.state,
            profile=self.profile.state,
            attempt=self.attempt.state,
            ui=self.notifications.state,
        )

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    @contextmanager
    def batch(self) -> Iterator[None]:
        """Defer subscriber notification until the outermost batch exits."""
        self._batch_depth += 1
        try:
            yield
        finally:
            self._batch_depth -= 1
            if self._batch_depth == 0 and self._pending_commit:
                self._pending_commit = False
                self._notify()

    def _commit(self) -> None:
        if self._batch_depth:
            self._pending_commit = True
            return
        self._notify()

    def _notify(self) -> None:
        snapshot = self.state
        for listener in list(self._listeners):
            listener(snapshot)

    def reset_dependents(self) -> None:
        """Clear session and everything derived from it, as one commit."""
        with self.batch():
            self.session.clear_session()
            self.profile.clear_profile()
            self.attempt.clear()

    def close(self) -> None:
        """Tear down the notification queue and its timers."""
        self.notifications.clear_notifications()


def attach_persistence(store: AppStore, persistence: PersistentStore) -> Callable[[], None]:
    """Write auth, profile and theme through after every commit."""

    def write_through(state: AppState) -> None:
        persistence.save_auth(state.session.token, state.session.expires_at)
        persistence.save_profile(state.profile.profile)
        persistence.save_theme(state.ui.theme)

    store.persistence = persistence
    return store.subscribe(write_through)


def create_store(
    settings: Settings | None = None,
    storage: KeyValueStorage | None = None,
    loop: asyncio.AbstractEventLoop | None = None,
) -> AppStore:
    """
    Boot sequence: seed session, profile and theme from durable storage,
    then start writing through. Must run before any access decision.
    """
    settings = settings or get_settings()
    persistence = PersistentStore(storage or JsonFileStorage(settings.storage_dir))

    auth = persistence.load_auth()
    session = (
        SessionState(token=auth.token, expires_at=auth.expires_at)
        if auth.is_complete
        else SessionState()
    )
    profile = persistence.load_profile()

    store = AppStore(
        session=session,
        profile=ProfileState(profile=profile),
        ui=UiState(theme=persistence.load_theme()),
        notification_timeout=settings.notification_timeout_seconds,
        loop=loop,
    )
    attach_persistence(store, persistence)

    logger.debug(
        f"Store seeded: token={'yes' if session.has_token else 'no'}, "
        f"profile={'yes' if profile else 'no'}, theme={store.notifications.state.theme.value}"
    )
    return store
