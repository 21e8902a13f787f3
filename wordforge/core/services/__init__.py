from __future__ import annotations

"""High-level orchestration services (saving, loading, progress)."""

from .package_service import PackageService  # noqa: F401
from .progress_service import ProgressService  # noqa: F401

__all__: list[str] = [
    "PackageService",
    "ProgressService",
]
