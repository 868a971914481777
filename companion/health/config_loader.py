"""Load, validate, and hot-reload the source reconciliation settings.

The config lives in ``sources.yaml`` alongside this module.  It is loaded once
and cached.  Call ``reload_sources_config()`` to re-read it from disk.

Usage::

    from companion.health.config_loader import get_sources_config

    config = get_sources_config()
    config.is_ignored("com.google.android.apps.fitness")   # True
    config.preferred_step_sources                          # ['com.sec.android.app.shealth']
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger("momentum.health.config")

# Path to the YAML file sitting next to this module
_CONFIG_PATH = Path(__file__).parent / "sources.yaml"


@dataclass
class SourcesConfig:
    """Validated reconciliation settings.

    Attributes:
        version:                Config schema version string.
        ignored_sources:        Package ids always dropped, for every record kind.
        preferred_step_sources: Ordered step-source priority list.
    """

    version: str
    ignored_sources: frozenset[str]
    preferred_step_sources: list[str]
    _raw: dict = field(default_factory=dict, repr=False)

    def is_ignored(self, source_app: str) -> bool:
        return source_app in self.ignored_sources


class ConfigValidationError(ValueError):
    """Raised when sources.yaml fails validation."""


def _load_yaml(path: Path) -> dict:
    """Read and parse a YAML file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigValidationError: If the YAML is malformed.
    """
    if not path.exists():
        raise FileNotFoundError(f"Sources config not found: {path}")

    with path.open("r", encoding="utf-8") as fh:
        try:
            return yaml.safe_load(fh) or {}
        except yaml.YAMLError as exc:
            raise ConfigValidationError(f"YAML parse error in {path}: {exc}") from exc


def _string_list(raw: dict, key: str, errors: list[str]) -> list[str]:
    value = raw.get(key) or []
    if not isinstance(value, list):
        errors.append(f"'{key}' must be a list of package ids, got {type(value).__name__}")
        return []
    items: list[str] = []
    for item in value:
        if not isinstance(item, str) or not item.strip():
            errors.append(f"'{key}' entries must be non-empty strings, got {item!r}")
            continue
        items.append(item.strip())
    return items


def _validate_and_build(raw: dict) -> SourcesConfig:
    """Validate the raw YAML dict and construct a SourcesConfig.

    Raises:
        ConfigValidationError: If a section has the wrong shape, or a source
            is both ignored and preferred.
    """
    if not isinstance(raw, dict):
        raise ConfigValidationError("sources.yaml must contain a mapping at the top level")

    errors: list[str] = []
    version = str(raw.get("version", "1.0"))
    ignored = _string_list(raw, "ignored_sources", errors)
    preferred = _string_list(raw, "preferred_step_sources", errors)

    for source in preferred:
        if source in ignored:
            errors.append(f"'{source}' is listed in both ignored_sources and preferred_step_sources")

    if len(set(preferred)) != len(preferred):
        errors.append("preferred_step_sources contains duplicates")

    if errors:
        raise ConfigValidationError(
            f"sources.yaml has {len(errors)} validation error(s):\n"
            + "\n".join(f"  • {e}" for e in errors)
        )

    return SourcesConfig(
        version=version,
        ignored_sources=frozenset(ignored),
        preferred_step_sources=preferred,
        _raw=raw,
    )


def load_sources_config(path: Path | None = None) -> SourcesConfig:
    """Load and validate the sources config from disk.

    Args:
        path: Override path to YAML. Uses the bundled sources.yaml by default.
    """
    target = path or _CONFIG_PATH
    config = _validate_and_build(_load_yaml(target))
    logger.info(
        "Loaded sources config v%s from %s (%d ignored, %d preferred)",
        config.version,
        target,
        len(config.ignored_sources),
        len(config.preferred_step_sources),
    )
    return config


# ---------------------------------------------------------------------------
# Global singleton with hot-reload support
# ---------------------------------------------------------------------------

_config: SourcesConfig | None = None
_config_lock = threading.Lock()


def get_sources_config() -> SourcesConfig:
    """Return the global SourcesConfig singleton, loading it on first call."""
    global _config
    if _config is None:
        with _config_lock:
            if _config is None:
                _config = load_sources_config()
    return _config


def reload_sources_config(path: Path | None = None) -> SourcesConfig:
    """Reload the config from disk and replace the global singleton.

    If validation fails, the old config is retained and the error re-raised.
    """
    global _config
    new_config = load_sources_config(path)
    with _config_lock:
        old_version = _config.version if _config else "none"
        _config = new_config
    logger.info("Reloaded sources config: %s → %s", old_version, new_config.version)
    return new_config
