from __future__ import annotations

"""High-level save/load service for word-processing packages.

Entry point for callers that want a file (or bytes) from a
:class:`DocumentContext`, or a context from an existing package.
"""

import asyncio
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

from wordforge.core.container import ZipContainer
from wordforge.core.context import DocumentContext
from wordforge.core.exceptions import ImageLoadError
from wordforge.core.importers import DocxPackageImporter
from wordforge.core.package_utils import Package, PackageAssembler
from wordforge.core.services.progress_service import ProgressService

__all__ = ["PackageService"]


class PackageService:
    """Save and load packages.

    Saving loads every pending image first (reporting through the progress
    service), re-checks the image quotas now that sizes are known, assembles
    and validates the package, writes it and finally releases the image
    bytes again.
    """

    def __init__(self, importer: Optional[DocxPackageImporter] = None,
                 progress: Optional[ProgressService] = None) -> None:
        self.logger = logging.getLogger(f"{__name__}.PackageService")
        self.importer = importer or DocxPackageImporter()
        self.progress = progress or ProgressService()

    # Saving ---------------------------------------------------------------
    async def _prepare(self, context: DocumentContext, concurrency: Optional[int]) -> Package:
        result = await context.images.load_all_image_data(concurrency, on_progress=self.progress.update)
        if result.failed:
            raise ImageLoadError(f"Could not load image data for: {', '.join(result.failed)}")
        context.images.validate_limits()
        return PackageAssembler(context).assemble()

    async def save_async(self, context: DocumentContext, output_path: str | Path, *,
                         concurrency: Optional[int] = None) -> Path:
        """Write *context* to *output_path*.

        The file is written next to its destination and moved into place,
        so a failed save never leaves a truncated package behind.
        """
        output_path = Path(output_path)
        self.logger.info("Export: writing package")
        self.logger.debug("Destination: %s", output_path)
        try:
            package = await self._prepare(context, concurrency)
            await asyncio.to_thread(self._write_file, package, output_path)
        finally:
            context.images.release_all_image_data()
        self.logger.info("Export OK: size_bytes=%d", output_path.stat().st_size)
        return output_path

    def save(self, context: DocumentContext, output_path: str | Path, *,
             concurrency: Optional[int] = None) -> Path:
        """Blocking :meth:`save_async`; must not be called from a running event loop."""
        return asyncio.run(self.save_async(context, output_path, concurrency=concurrency))

    async def to_bytes_async(self, context: DocumentContext, *, concurrency: Optional[int] = None) -> bytes:
        try:
            package = await self._prepare(context, concurrency)
        finally:
            context.images.release_all_image_data()
        return ZipContainer.to_bytes(package)

    def to_bytes(self, context: DocumentContext, *, concurrency: Optional[int] = None) -> bytes:
        return asyncio.run(self.to_bytes_async(context, concurrency=concurrency))

    @staticmethod
    def _write_file(package: Package, output_path: Path) -> None:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=".wordforge_", suffix=".tmp", dir=output_path.parent)
        try:
            with os.fdopen(fd, "wb") as handle:
                ZipContainer.write(package, handle)
            os.replace(tmp_name, output_path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    # Loading --------------------------------------------------------------
    def load(self, input_path: str | Path) -> DocumentContext:
        self.logger.info("Import: reading package %s", input_path)
        return self.importer.import_package(Path(input_path))

    def load_bytes(self, data: bytes) -> DocumentContext:
        return self.importer.import_bytes(data)
