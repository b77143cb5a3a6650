"""
Global notification and error channel.

Holds the ordered notification queue, the ambient "most recent error" slot,
and the UI preferences that live next to them (theme, online flag).

Each notification owns one auto-dismiss timer. Timers are tracked in a
registry keyed by notification id so that manual dismissal cancels exactly
that timer, and tearing down the queue cancels all of them at once.
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass
from typing import Callable

from loguru import logger

from src.core.models import NotificationKind, Theme
from src.store.section import CommitCallback, StateSection

DEFAULT_NOTIFICATION_TIMEOUT_SECONDS = 3.5


@dataclass(frozen=True)
class Notification:
    id: str
    kind: NotificationKind
    message: str


@dataclass(frozen=True)
class UiState:
    theme: Theme = Theme.LIGHT
    online: bool = True
    global_error: str | None = None
    notifications: tuple[Notification, ...] = ()


class TimerRegistry:
    """
    Cancellable delayed callbacks keyed by owner id.

    Uses the event loop passed in, or the running loop at scheduling time.
    Without a loop nothing is scheduled and ``schedule`` returns False.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None):
        self._loop = loop
        self._handles: dict[str, asyncio.TimerHandle] = {}

    def _resolve_loop(self) -> asyncio.AbstractEventLoop | None:
        if self._loop is not None:
            return self._loop
        try:
            return asyncio.get_running_loop()
        except RuntimeError:
            return None

    def schedule(self, key: str, delay: float, callback: Callable[[], None]) -> bool:
        loop = self._resolve_loop()
        if loop is None:
            logger.debug(f"No event loop; timer for {key} not scheduled")
            return False
        self.cancel(key)
        self._handles[key] = loop.call_later(delay, self._fire, key, callback)
        return True

    def _fire(self, key: str, callback: Callable[[], None]) -> None:
        if self._handles.pop(key, None) is None:
            return
        callback()

    def cancel(self, key: str) -> bool:
        handle = self._handles.pop(key, None)
        if handle is None:
            return False
        handle.cancel()
        return True

    def cancel_all(self) -> int:
        handles = list(self._handles.values())
        self._handles.clear()
        for handle in handles:
            handle.cancel()
        return len(handles)

    def __contains__(self, key: object) -> bool:
        return key in self._handles

    def __len__(self) -> int:
        return len(self._handles)


def _new_notification_id() -> str:
    return uuid.uuid4().hex


class NotificationChannel(StateSection[UiState]):
    """Process-wide sink for user-facing messages."""

    name = "ui"

    def __init__(
        self,
        initial: UiState | None = None,
        on_commit: CommitCallback | None = None,
        timeout_seconds: float = DEFAULT_NOTIFICATION_TIMEOUT_SECONDS,
        loop: asyncio.AbstractEventLoop | None = None,
    ):
        super().__init__(initial or UiState(), on_commit)
        self.timeout_seconds = timeout_seconds
        self.timers = TimerRegistry(loop)

    # =========================================================================
    # Notification queue
    # =========================================================================

    def push_notification(self, kind: NotificationKind, message: str) -> Notification:
        notification = Notification(id=_new_notification_id(), kind=NotificationKind(kind), message=message)
        self._update(notifications=self._state.notifications + (notification,))
        self.timers.schedule(
            notification.id,
            self.timeout_seconds,
            lambda: self._auto_dismiss(notification.id),
        )
        return notification

    def dismiss_notification(self, notification_id: str) -> None:
        """Remove a notification and cancel its timer. Unknown ids are ignored."""
        self.timers.cancel(notification_id)
        self._remove(notification_id)

    def _auto_dismiss(self, notification_id: str) -> None:
        logger.debug(f"Notification {notification_id} expired")
        self._remove(notification_id)

    def _remove(self, notification_id: str) -> None:
        remaining = tuple(n for n in self._state.notifications if n.id != notification_id)
        if len(remaining) != len(self._state.notifications):
            self._update(notifications=remaining)

    def clear_notifications(self) -> None:
        """Tear down the queue, cancelling every pending auto-dismiss."""
        cancelled = self.timers.cancel_all()
        if cancelled:
            logger.debug(f"Cancelled {cancelled} pending notification timers")
        if self._state.notifications:
            self._update(notifications=())

    # =========================================================================
    # Ambient error slot and UI preferences
    # =========================================================================

    def set_global_error(self, message: str | None) -> None:
        self._update(global_error=message)

    def set_theme(self, theme: Theme) -> None:
        self._update(theme=Theme(theme))

    def set_online(self, online: bool) -> None:
        if online == self._state.online:
            return
        self._update(online=online)
        if online:
            self.push_notification(NotificationKind.INFO, "Connection restored.")
        else:
            self.push_notification(
                NotificationKind.WARNING,
                "You are offline. Actions will fail until connection is back.",
            )
