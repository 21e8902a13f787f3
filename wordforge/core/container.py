from __future__ import annotations

"""ZIP container for package parts."""

import io
import logging
import zipfile
from pathlib import Path
from typing import Dict, Union

from wordforge.core.exceptions import PackageImportError
from wordforge.core.package_utils import Package

logger = logging.getLogger(__name__)

__all__ = ["ZipContainer"]

PathLike = Union[str, Path]


class ZipContainer:
    """Reads and writes package parts as ZIP members.

    Member names are part paths without a leading slash. Unsafe member
    names (absolute or climbing out with ``..``) are rejected on read.
    """

    compression = zipfile.ZIP_DEFLATED

    @classmethod
    def write(cls, package: Package, target: Union[PathLike, io.BufferedIOBase]) -> None:
        with zipfile.ZipFile(target, "w", cls.compression) as archive:
            for name, data in package.parts.items():
                archive.writestr(name, data)
        logger.debug("Wrote %d part(s)", len(package))

    @classmethod
    def to_bytes(cls, package: Package) -> bytes:
        buffer = io.BytesIO()
        cls.write(package, buffer)
        return buffer.getvalue()

    @classmethod
    def read(cls, source: Union[PathLike, bytes]) -> Dict[str, bytes]:
        """Return every member as ``{part path: bytes}``.

        Raises
        ------
        PackageImportError
            If the source is not a ZIP archive or holds an unsafe member name.
        """
        file_path = None if isinstance(source, bytes) else str(source)
        handle = io.BytesIO(source) if isinstance(source, bytes) else source
        try:
            with zipfile.ZipFile(handle, "r") as archive:
                parts: Dict[str, bytes] = {}
                for member in archive.infolist():
                    if member.is_dir():
                        continue
                    name = member.filename
                    if name.startswith("/") or ".." in name.split("/"):
                        raise PackageImportError(f"Unsafe path in package: {name}", file_path)
                    parts[name] = archive.read(member)
        except zipfile.BadZipFile as exc:
            raise PackageImportError(f"Invalid package archive: {exc}", file_path, exc) from exc
        except OSError as exc:
            raise PackageImportError(f"Failed to read package: {exc}", file_path, exc) from exc
        logger.debug("Read %d part(s) from %s", len(parts), file_path or "memory")
        return parts

    @classmethod
    def read_member(cls, source: Union[PathLike, bytes], name: str) -> bytes:
        """Return one member; used to reload parts after their bytes were released."""
        file_path = None if isinstance(source, bytes) else str(source)
        handle = io.BytesIO(source) if isinstance(source, bytes) else source
        try:
            with zipfile.ZipFile(handle, "r") as archive:
                return archive.read(name)
        except KeyError as exc:
            raise PackageImportError(f"Package has no member {name}", file_path, exc) from exc
        except zipfile.BadZipFile as exc:
            raise PackageImportError(f"Invalid package archive: {exc}", file_path, exc) from exc
        except OSError as exc:
            raise PackageImportError(f"Failed to read package: {exc}", file_path, exc) from exc
