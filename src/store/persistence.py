"""
Durable persistence for the recoverable subset of client state.

Three independent entries are kept, one JSON file each:

- auth: {"token": ..., "expiresAt": ISO-8601}, only ever written complete
- profile: the cached user profile
- theme: "light" or "dark"

Every read and write is best-effort. Storage failures (unwritable directory,
corrupt JSON, invalid content) are logged and treated as absence.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Protocol

from loguru import logger
from pydantic import ValidationError

from src.core.clock import parse_timestamp
from src.core.models import Theme, UserProfile

STORAGE_KEYS = {
    "auth": "tma.auth",
    "user": "tma.user",
    "theme": "tma.theme",
}

DEFAULT_STORAGE_DIR = Path.home() / ".tma-exam"


class KeyValueStorage(Protocol):
    """Raw key/value backend. Implementations may raise; the adapter absorbs it."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class JsonFileStorage:
    """
    Stores each key as ``<key>.json`` inside a directory.

    The directory is created lazily on first write.
    """

    def __init__(self, directory: Path | None = None):
        self.directory = Path(directory or DEFAULT_STORAGE_DIR)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def get(self, key: str) -> str | None:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set(self, key: str, value: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        self._path(key).write_text(value, encoding="utf-8")

    def remove(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)


class MemoryStorage:
    """In-process storage, lost when the process exits."""

    def __init__(self, initial: dict[str, str] | None = None):
        self.values: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self.values.get(key)

    def set(self, key: str, value: str) -> None:
        self.values[key] = value

    def remove(self, key: str) -> None:
        self.values.pop(key, None)


@dataclass(frozen=True)
class PersistedAuth:
    token: str | None = None
    expires_at: datetime | None = None

    @property
    def is_complete(self) -> bool:
        return bool(self.token) and self.expires_at is not None


class PersistentStore:
    """Fail-soft adapter over a key/value backend."""

    def __init__(self, storage: KeyValueStorage):
        self.storage = storage

    # =========================================================================
    # Safe primitives
    # =========================================================================

    def _read(self, key: str) -> Any | None:
        try:
            raw = self.storage.get(key)
            if not raw:
                return None
            return json.loads(raw)
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable storage entry {key}: {e}")
            return None

    def _write(self, key: str, value: Any) -> None:
        try:
            self.storage.set(key, json.dumps(value))
        except (OSError, TypeError, ValueError) as e:
            logger.warning(f"Failed to persist {key}: {e}")

    def _remove(self, key: str) -> None:
        try:
            self.storage.remove(key)
        except OSError as e:
            logger.warning(f"Failed to remove {key}: {e}")

    # =========================================================================
    # Auth
    # =========================================================================

    def load_auth(self) -> PersistedAuth:
        """Load the auth entry. A partial or malformed entry reads as absent."""
        data = self._read(STORAGE_KEYS["auth"])
        if not isinstance(data, dict):
            return PersistedAuth()

        token = data.get("token")
        expires_raw = data.get("expiresAt")
        if not isinstance(token, str) or not token or not isinstance(expires_raw, str):
            return PersistedAuth()

        try:
            expires_at = parse_timestamp(expires_raw)
        except ValueError:
            logger.warning(f"Ignoring persisted auth with bad expiry: {expires_raw!r}")
            return PersistedAuth()

        return PersistedAuth(token=token, expires_at=expires_at)

    def save_auth(self, token: str | None, expires_at: datetime | None) -> None:
        """Write the auth entry, or delete it unless both fields are present."""
        if not token or expires_at is None:
            self._remove(STORAGE_KEYS["auth"])
            return
        self._write(STORAGE_KEYS["auth"], {"token": token, "expiresAt": expires_at.isoformat()})

    # =========================================================================
    # Profile
    # =========================================================================

    def load_profile(self) -> UserProfile | None:
        data = self._read(STORAGE_KEYS["user"])
        if data is None:
            return None
        try:
            return UserProfile.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Ignoring invalid persisted profile: {e.error_count()} errors")
            return None

    def save_profile(self, profile: UserProfile | None) -> None:
        if profile is None:
            self._remove(STORAGE_KEYS["user"])
            return
        self._write(STORAGE_KEYS["user"], profile.to_wire())

    # =========================================================================
    # Theme
    # =========================================================================

    def load_theme(self) -> Theme:
        return Theme.DARK if self._read(STORAGE_KEYS["theme"]) == "dark" else Theme.LIGHT

    def save_theme(self, theme: Theme) -> None:
        self._write(STORAGE_KEYS["theme"], Theme(theme).value)
