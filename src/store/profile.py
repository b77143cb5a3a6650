"""Profile cache: the logged-in user's profile, dependent on the session."""

from __future__ import annotations

from dataclasses import dataclass

from src.core.models import UserProfile
from src.store.section import CommitCallback, StateSection


@dataclass(frozen=True)
class ProfileState:
    profile: UserProfile | None = None


class ProfileCache(StateSection[ProfileState]):
    name = "profile"

    def __init__(self, initial: ProfileState | None = None, on_commit: CommitCallback | None = None):
        super().__init__(initial or ProfileState(), on_commit)

    def set_profile(self, profile: UserProfile | None) -> None:
        self._update(profile=profile)

    def clear_profile(self) -> None:
        self._update(profile=None)
