"""Version detection for the installed distribution."""

from __future__ import annotations

from importlib import metadata
from typing import Optional

_CACHED_VERSION: Optional[str] = None


def get_version() -> str:
    """Return the installed version (e.g. ``0.1.0``), or ``dev`` from a source tree."""
    global _CACHED_VERSION
    if _CACHED_VERSION:
        return _CACHED_VERSION
    try:
        _CACHED_VERSION = metadata.version("wordforge")
    except metadata.PackageNotFoundError:
        _CACHED_VERSION = "dev"
    return _CACHED_VERSION
