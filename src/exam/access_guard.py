"""
Access guard for protected views.

Decides, on demand, whether the current session may enter a view restricted
to some roles. Liveness comes from ``is_session_expired``; nothing here
polls the clock in the background.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Iterable

from src.core.models import Role
from src.store.app_store import AppStore
from src.store.session import is_session_expired


class AccessOutcome(str, Enum):
    GRANTED = "granted"
    REDIRECT_LOGIN = "redirect_login"
    LOADING_PROFILE = "loading_profile"
    REDIRECT_HOME = "redirect_home"


@dataclass(frozen=True)
class AccessDecision:
    outcome: AccessOutcome
    home_role: Role | None = None

    @property
    def granted(self) -> bool:
        return self.outcome == AccessOutcome.GRANTED


class AccessGuard:
    def __init__(self, store: AppStore):
        self.store = store

    def evaluate(self, allow_roles: Iterable[Role], now: datetime | None = None) -> AccessDecision:
        session = self.store.session.state
        if not session.has_token or is_session_expired(session.expires_at, now):
            return AccessDecision(AccessOutcome.REDIRECT_LOGIN)

        profile = self.store.profile.state.profile
        if profile is None:
            return AccessDecision(AccessOutcome.LOADING_PROFILE)

        if profile.role not in set(allow_roles):
            # Send the user to the home view of the role they actually have
            return AccessDecision(AccessOutcome.REDIRECT_HOME, home_role=profile.role)

        return AccessDecision(AccessOutcome.GRANTED)
