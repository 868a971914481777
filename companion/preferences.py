"""File-backed key-value store for per-user credentials, sync state and profile.

All values live in one JSON object under the state directory.  Every write
rewrites the whole file through a temporary file and ``os.replace`` so a
crash never leaves a half-written store, and the file is kept at mode 0600
because it holds the bearer token and password.

Keys::

    server_url, jwt_token, email, password, allow_self_signed,
    last_sync_timestamp, sync_frequency_minutes,
    steps_per_min, weight_kg, height_cm, age, is_male
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from companion.health.base import UserProfile

logger = logging.getLogger("momentum.preferences")

DEFAULT_SYNC_FREQUENCY_MINUTES = 15
SUPPORTED_SYNC_FREQUENCIES = (15, 30, 60, 120)

# Edge bounds for profile values (inclusive)
STEPS_PER_MIN_RANGE = (50, 200)
WEIGHT_KG_RANGE = (30.0, 250.0)
HEIGHT_CM_RANGE = (100, 250)
AGE_RANGE = (10, 120)

_FILE_MODE = 0o600


@dataclass(frozen=True)
class SyncCredentials:
    """Snapshot of the stored server credentials.

    Attributes:
        server_url:   Base URL of the Momentum API (trailing slash).
        bearer_token: Cached bearer token, if logged in.
        email:        Account email, kept for re-login.
        password:     Account password, kept for re-login.
    """

    server_url: str | None = None
    bearer_token: str | None = None
    email: str | None = None
    password: str | None = None

    @property
    def is_configured(self) -> bool:
        return bool(self.server_url) and bool(self.bearer_token)

    @property
    def can_reauthenticate(self) -> bool:
        return bool(self.server_url) and bool(self.email) and bool(self.password)


@dataclass(frozen=True)
class SyncState:
    last_sync_epoch_millis: int = 0
    sync_interval_minutes: int = DEFAULT_SYNC_FREQUENCY_MINUTES


def _check_range(name: str, value: float, bounds: tuple[float, float]) -> None:
    low, high = bounds
    if not low <= value <= high:
        raise ValueError(f"{name} must be between {low} and {high}, got {value}")


class AppPreferences:
    """Persistent preferences for one user on this device.

    Constructed once per process and passed to whatever needs it.  Reads
    are served from memory; the file is loaded once at construction.

    Usage::

        prefs = AppPreferences(settings.preferences_path)
        if prefs.is_configured:
            creds = prefs.credentials()
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()
        self._values: dict[str, Any] = self._load()

    @property
    def path(self) -> Path:
        return self._path

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    def _load(self) -> dict[str, Any]:
        if not self._path.is_file():
            return {}
        try:
            with self._path.open("r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable preferences file %s: %s", self._path, exc)
            return {}
        if not isinstance(data, dict):
            logger.warning("Ignoring preferences file %s: not a JSON object", self._path)
            return {}
        return data

    def _write(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=".preferences-", suffix=".tmp", dir=self._path.parent
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(self._values, fh, indent=2, sort_keys=True)
            os.chmod(tmp_name, _FILE_MODE)
            os.replace(tmp_name, self._path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def _get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._values.get(key, default)

    def update(self, **values: Any) -> None:
        """Set several keys in one atomic write.  ``None`` removes a key."""
        with self._lock:
            for key, value in values.items():
                if value is None:
                    self._values.pop(key, None)
                else:
                    self._values[key] = value
            self._write()

    def clear_all(self) -> None:
        with self._lock:
            self._values = {}
            self._write()
        logger.info("Cleared all preferences")

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    @property
    def server_url(self) -> str | None:
        return self._get("server_url")

    @property
    def jwt_token(self) -> str | None:
        return self._get("jwt_token")

    @property
    def email(self) -> str | None:
        return self._get("email")

    @property
    def password(self) -> str | None:
        return self._get("password")

    @property
    def allow_self_signed(self) -> bool:
        return bool(self._get("allow_self_signed", False))

    def set_token(self, token: str | None) -> None:
        self.update(jwt_token=token)

    def clear_token(self) -> None:
        self.update(jwt_token=None)

    def credentials(self) -> SyncCredentials:
        with self._lock:
            return SyncCredentials(
                server_url=self._values.get("server_url"),
                bearer_token=self._values.get("jwt_token"),
                email=self._values.get("email"),
                password=self._values.get("password"),
            )

    @property
    def is_configured(self) -> bool:
        """True when both the server URL and a bearer token are stored."""
        return self.credentials().is_configured

    @property
    def can_reauthenticate(self) -> bool:
        return self.credentials().can_reauthenticate

    # ------------------------------------------------------------------
    # Sync state
    # ------------------------------------------------------------------

    @property
    def last_sync_timestamp(self) -> int:
        return int(self._get("last_sync_timestamp", 0))

    def set_last_sync_timestamp(self, epoch_millis: int) -> None:
        self.update(last_sync_timestamp=int(epoch_millis))

    @property
    def sync_frequency_minutes(self) -> int:
        return int(self._get("sync_frequency_minutes", DEFAULT_SYNC_FREQUENCY_MINUTES))

    def set_sync_frequency_minutes(self, minutes: int) -> None:
        if minutes not in SUPPORTED_SYNC_FREQUENCIES:
            raise ValueError(
                f"sync frequency must be one of {SUPPORTED_SYNC_FREQUENCIES}, got {minutes}"
            )
        self.update(sync_frequency_minutes=minutes)

    def sync_state(self) -> SyncState:
        return SyncState(
            last_sync_epoch_millis=self.last_sync_timestamp,
            sync_interval_minutes=self.sync_frequency_minutes,
        )

    # ------------------------------------------------------------------
    # User profile
    # ------------------------------------------------------------------

    def user_profile(self) -> UserProfile:
        defaults = UserProfile()
        return UserProfile(
            steps_per_minute=int(self._get("steps_per_min", defaults.steps_per_minute)),
            weight_kg=float(self._get("weight_kg", defaults.weight_kg)),
            height_cm=int(self._get("height_cm", defaults.height_cm)),
            age=int(self._get("age", defaults.age)),
            is_male=bool(self._get("is_male", defaults.is_male)),
        )

    def set_user_profile(
        self,
        steps_per_minute: int | None = None,
        weight_kg: float | None = None,
        height_cm: int | None = None,
        age: int | None = None,
        is_male: bool | None = None,
    ) -> UserProfile:
        """Validate and store any of the given profile values.

        Nothing is written if any value is out of bounds.

        Raises:
            ValueError: If a value is outside its allowed range.
        """
        if steps_per_minute is not None:
            _check_range("steps_per_min", steps_per_minute, STEPS_PER_MIN_RANGE)
        if weight_kg is not None:
            _check_range("weight_kg", weight_kg, WEIGHT_KG_RANGE)
        if height_cm is not None:
            _check_range("height_cm", height_cm, HEIGHT_CM_RANGE)
        if age is not None:
            _check_range("age", age, AGE_RANGE)

        changes = {
            "steps_per_min": steps_per_minute,
            "weight_kg": weight_kg,
            "height_cm": height_cm,
            "age": age,
            "is_male": is_male,
        }
        self.update(**{k: v for k, v in changes.items() if v is not None})
        return self.user_profile()
