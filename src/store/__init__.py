"""
Store Module - process-wide client state.

Components:
- session: Session Manager (token, expiry, liveness)
- profile: cached user profile
- attempt: Attempt Manager (in-progress attempt, draft answers)
- notifications: notification queue, ambient error slot, theme/online
- interceptor: failure interception policy (401 cascade)
- persistence: fail-soft durable storage of auth/profile/theme
- app_store: the container tying them together, plus the boot sequence
"""

from src.store.app_store import AppState, AppStore, attach_persistence, create_store
from src.store.attempt import AttemptManager, AttemptState
from src.store.interceptor import FailureInterceptionPolicy
from src.store.notifications import Notification, NotificationChannel, TimerRegistry, UiState
from src.store.persistence import (
    JsonFileStorage,
    MemoryStorage,
    PersistedAuth,
    PersistentStore,
)
from src.store.profile import ProfileCache, ProfileState
from src.store.session import (
    AuthStatus,
    SessionManager,
    SessionState,
    is_session_expired,
)

__all__ = [
    "AppState",
    "AppStore",
    "attach_persistence",
    "create_store",
    "AttemptManager",
    "AttemptState",
    "FailureInterceptionPolicy",
    "Notification",
    "NotificationChannel",
    "TimerRegistry",
    "UiState",
    "JsonFileStorage",
    "MemoryStorage",
    "PersistedAuth",
    "PersistentStore",
    "ProfileCache",
    "ProfileState",
    "AuthStatus",
    "SessionManager",
    "SessionState",
    "is_session_expired",
]
