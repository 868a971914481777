"""Process configuration loaded from environment variables."""

from functools import lru_cache
from pathlib import Path
import platform

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All configuration is loaded from environment variables (or .env file).

    Per-user state (server URL, token, profile, last sync) lives in the
    preferences file under ``state_dir``, not here.
    """

    # --- App ---
    app_name: str = "Momentum Companion"
    app_version: str = "1.0.0"
    log_level: str = "INFO"

    # --- Storage ---
    state_dir: Path = Path.home() / ".momentum-companion"
    health_export_path: Path = Path.home() / ".momentum-companion" / "health_export.json"

    # --- Sync ---
    device_name: str = platform.node() or "momentum-companion"
    http_timeout_seconds: float = 30.0
    initial_import_days: int = 30
    sync_settle_seconds: float = 3.0

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_prefix": "MOMENTUM_",
    }

    @property
    def preferences_path(self) -> Path:
        return self.state_dir / "preferences.json"

    @property
    def sync_log_path(self) -> Path:
        return self.state_dir / "sync_logs.jsonl"


@lru_cache
def get_settings() -> Settings:
    return Settings()
