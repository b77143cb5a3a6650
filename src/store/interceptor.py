"""
Failure interception policy.

Evaluated once for every failed remote call, wherever it was issued. A 401
invalidates the session and cascades to everything that depends on it
(profile, attempt) before the failure is surfaced, so no observer ever sees
the notification for a 401 while the old session is still held. A failed
login is surfaced the same way but never cascades.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from loguru import logger

from src.core.failures import Failure, describe_failure, failure_status, is_unauthorized
from src.core.models import NotificationKind

if TYPE_CHECKING:
    from src.store.app_store import AppStore


class FailureInterceptionPolicy:
    """Normalizes failures into the notification channel and ambient error slot."""

    def __init__(self, store: AppStore):
        self.store = store

    def __call__(self, failure: Failure, cascade: bool = True) -> str:
        return self.handle(failure, cascade=cascade)

    def handle(self, failure: Failure, cascade: bool = True) -> str:
        """
        Apply the policy to one failure.

        Args:
            failure: The normalized failure
            cascade: Whether a 401 may invalidate the session. Login calls
                pass False: their failure belongs to the login itself.

        Returns:
            The derived user-facing message.
        """
        detail = describe_failure(failure)
        unauthorized = is_unauthorized(failure)
        logger.warning(f"Remote call failed (status={failure_status(failure)}): {detail}")

        with self.store.batch():
            if unauthorized and cascade:
                self.store.reset_dependents()

            self.store.notifications.set_global_error(detail)
            self.store.notifications.push_notification(
                NotificationKind.WARNING if unauthorized else NotificationKind.ERROR,
                detail,
            )

        return detail
