from __future__ import annotations

"""Configuration loading and access helpers.

Declarative settings (asset quotas and logging) live in YAML
files packaged with *wordforge*. They are optionally merged with user
overrides found in one of:

* ``$WORDFORGE_CONFIG_DIR/*.yml``
* ``~/.wordforge/*.yml``

Overrides are merged one level deep so a user file only has to name the keys
it changes.
"""

import importlib.resources as pkg_resources
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

logger = logging.getLogger(__name__)

__all__ = ["ConfigManager"]


def _get_user_config_dir() -> Path:
    """Return the directory searched for user overrides."""
    env_dir = os.environ.get("WORDFORGE_CONFIG_DIR")
    if env_dir:
        return Path(env_dir)
    return Path.home() / ".wordforge"


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            section = dict(merged[key])
            section.update(value)
            merged[key] = section
        else:
            merged[key] = value
    return merged


class _Singleton(type):
    _instance: "ConfigManager" | None = None

    def __call__(cls, *args, **kwargs):
        if cls._instance is None:
            cls._instance = super().__call__(*args, **kwargs)
        return cls._instance


class ConfigManager(metaclass=_Singleton):
    """Lazy-loads and exposes configuration sections as dictionaries."""

    _DEFAULT_FILENAMES = {
        "limits": "default_limits.yml",
        "logging": "logging.yml",
    }

    def __init__(self, user_config_dir: Optional[Path] = None) -> None:
        self._user_config_dir = user_config_dir
        self._data: Dict[str, Dict[str, Any]] = {}
        self._ensure_loaded()

    # ------------------------------------------------------------------
    # Public helpers
    # ------------------------------------------------------------------
    def get_limits(self) -> Dict[str, Any]:
        return self._data.get("limits", {})

    def get_image_limits(self) -> Dict[str, Any]:
        return self.get_limits().get("images", {})

    def get_logging_config(self) -> Dict[str, Any]:
        return self._data.get("logging", {})

    def get_defaults(self) -> Dict[str, Dict[str, Any]]:
        return {key: dict(value) for key, value in self._data.items()}

    def reload(self) -> None:
        """Drop cached sections and read every file again."""
        self._data = {}
        self._ensure_loaded()

    @classmethod
    def reset_instance(cls) -> None:
        """Forget the shared instance so the next call builds a fresh one."""
        cls._instance = None

    # ------------------------------------------------------------------
    # Internal loading logic
    # ------------------------------------------------------------------
    def _ensure_loaded(self) -> None:
        if self._data:
            return

        override_dir = self._user_config_dir or _get_user_config_dir()
        summary = []
        for section, filename in self._DEFAULT_FILENAMES.items():
            packaged, state = _read_packaged(filename)
            overrides = _read_override(override_dir / filename)
            if overrides is not None:
                packaged = _merge(packaged, overrides)
                state = f"{state}+user" if state == "ok" else state
            self._data[section] = packaged
            summary.append(f"{filename}={state}")

        logger.debug("Configuration sources: %s", ", ".join(summary))


def _read_packaged(filename: str) -> Tuple[Dict[str, Any], str]:
    """Load a YAML file shipped inside ``wordforge.config``."""
    try:
        text = pkg_resources.files(__package__).joinpath(filename).read_text(encoding="utf-8")
    except OSError:
        logger.error("Packaged config %s is missing", filename)
        return {}, "missing"
    try:
        return yaml.safe_load(text) or {}, "ok"
    except yaml.YAMLError as exc:
        logger.error("Packaged config %s is not valid YAML: %s", filename, exc)
        return {}, "invalid"


def _read_override(path: Path) -> Optional[Dict[str, Any]]:
    """Load a user override file; ``None`` when absent or unreadable."""
    if not path.is_file():
        return None
    try:
        return yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as exc:
        logger.error("Could not parse user config %s: %s", path, exc)
        return None
