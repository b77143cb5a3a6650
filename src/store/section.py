"""
Base class for store sections.

A section holds one immutable state snapshot. Mutation happens only through
the named operations of its manager, each of which swaps the snapshot and
reports the commit to the owning store.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Callable, Generic, TypeVar

from loguru import logger

StateT = TypeVar("StateT")

CommitCallback = Callable[[], None]


def _noop_commit() -> None:
    return None


class StateSection(Generic[StateT]):
    """Owns one section of the process-wide state."""

    name = "section"

    def __init__(self, initial: StateT, on_commit: CommitCallback | None = None):
        self._state = initial
        self._on_commit = on_commit or _noop_commit

    @property
    def state(self) -> StateT:
        """Current snapshot. Snapshots are frozen and never mutated in place."""
        return self._state

    def _set(self, new_state: StateT) -> None:
        self._state = new_state
        self._on_commit()

    def _update(self, **changes) -> None:
        logger.debug(f"{self.name}: {', '.join(sorted(changes))} updated")
        self._set(replace(self._state, **changes))
