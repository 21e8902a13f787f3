from __future__ import annotations

"""Image assets and the quota-enforced image store.

An :class:`Image` owns the bytes of one picture, which may be loaded lazily
from a file, a URL or a loader callable supplied by the package importer.
:class:`ImageManager` registers images against relationship ids, assigns
``image<N>.<ext>`` filenames and drawing-property ids, enforces the count and
size quotas, and loads pending bytes in bounded concurrent batches.
"""

import asyncio
import io
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple, Union
from urllib.parse import urlparse

import requests
from PIL import Image as PILImage
from PIL import UnidentifiedImageError

from wordforge.core.exceptions import (
    ImageCountLimitError,
    ImageLoadError,
    ImageNotLoadedError,
    ImageSizeLimitError,
    TotalImageSizeLimitError,
    ValidationError,
)
from wordforge.core.registry import IdentifierRegistry, IdSpace
from wordforge.core.xml.element import XmlNode, el, w

logger = logging.getLogger(__name__)

__all__ = [
    "Image",
    "InlineImage",
    "ImageEntry",
    "ImageManager",
    "ImageManagerOptions",
    "BulkLoadResult",
]

EMU_PER_INCH = 914400
DEFAULT_DPI = 96
MAX_CONCURRENCY = 50
_MB = 1024 * 1024

_MIME_TYPES = {
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "gif": "image/gif",
    "bmp": "image/bmp",
    "tiff": "image/tiff",
    "tif": "image/tiff",
}
_FILENAME_PATTERN = re.compile(r"image(\d+)\.")

ImageSource = Union[bytes, str, Path, Callable[[], bytes]]


def _sniff_extension(data: bytes) -> Optional[str]:
    if data.startswith(b"\x89PNG"):
        return "png"
    if data.startswith(b"\xff\xd8"):
        return "jpeg"
    if data[:6] in (b"GIF87a", b"GIF89a"):
        return "gif"
    if data.startswith(b"BM"):
        return "bmp"
    if data[:4] in (b"II*\x00", b"MM\x00*"):
        return "tiff"
    return None


# ---------------------------------------------------------------------------
# Image value
# ---------------------------------------------------------------------------


class Image:
    """Binary image value with lazily materialized bytes.

    Parameters
    ----------
    source
        Raw bytes, a filesystem path, an ``http(s)`` URL, or a zero-argument
        callable returning bytes.
    extension
        File extension without the dot. Derived from the source when omitted.
    width_emu, height_emu
        Display extent. Computed from the pixel size when omitted.
    """

    def __init__(self, source: ImageSource, extension: Optional[str] = None,
                 width_emu: Optional[int] = None, height_emu: Optional[int] = None,
                 description: str = "", download_timeout: float = 10) -> None:
        self._data: Optional[bytes] = None
        self._path: Optional[Path] = None
        self._url: Optional[str] = None
        self._loader: Optional[Callable[[], bytes]] = None
        self._download_timeout = download_timeout
        self.width_emu = width_emu
        self.height_emu = height_emu
        self.description = description
        self.relationship_id: Optional[str] = None
        self.doc_pr_id: Optional[int] = None

        if isinstance(source, (bytes, bytearray)):
            self._data = bytes(source)
        elif callable(source):
            self._loader = source
        elif isinstance(source, str) and urlparse(source).scheme in ("http", "https"):
            self._url = source
        else:
            self._path = Path(source)

        self._extension = (extension or self._guess_extension()).lower().lstrip(".")

    def __repr__(self) -> str:
        origin = self._url or self._path or ("loader" if self._loader else "bytes")
        return f"Image({origin!s}, ext={self._extension}, loaded={self.is_loaded})"

    @property
    def extension(self) -> str:
        return self._extension

    @property
    def is_loaded(self) -> bool:
        return self._data is not None

    @property
    def can_reload(self) -> bool:
        return self._path is not None or self._url is not None or self._loader is not None

    def _guess_extension(self) -> str:
        if self._data is not None:
            return _sniff_extension(self._data) or "png"
        location = self._url and urlparse(self._url).path or (str(self._path) if self._path else "")
        suffix = Path(location).suffix.lstrip(".")
        return suffix or "png"

    # ------------------------------------------------------------------
    # Bytes
    # ------------------------------------------------------------------
    def get_image_data(self) -> bytes:
        """Loaded bytes; raises :class:`ImageNotLoadedError` when not loaded."""
        if self._data is None:
            raise ImageNotLoadedError(str(self._path or self._url or "image"))
        return self._data

    def get_size(self) -> Optional[int]:
        """Byte length, or None while the bytes are not loaded."""
        return len(self._data) if self._data is not None else None

    async def ensure_data_loaded(self) -> bytes:
        """Load the bytes if needed, without blocking the event loop."""
        if self._data is None:
            self._data = await asyncio.to_thread(self._read)
        return self._data

    def load(self) -> bytes:
        """Synchronous counterpart of :meth:`ensure_data_loaded`."""
        if self._data is None:
            self._data = self._read()
        return self._data

    def release_data(self) -> None:
        """Drop cached bytes. In-memory images keep theirs since they cannot be reloaded."""
        if self.can_reload:
            self._data = None

    def _read(self) -> bytes:
        if self._loader is not None:
            return self._loader()
        if self._url is not None:
            try:
                response = requests.get(self._url, timeout=self._download_timeout,
                                        headers={"User-Agent": "wordforge"})
                response.raise_for_status()
            except requests.RequestException as exc:
                raise ImageLoadError(f"Could not download image {self._url}: {exc}", cause=exc) from exc
            return response.content
        if self._path is not None:
            try:
                return self._path.read_bytes()
            except OSError as exc:
                raise ImageLoadError(f"Could not read image {self._path}: {exc}", cause=exc) from exc
        raise ImageLoadError("Image has no source")

    # ------------------------------------------------------------------
    # Geometry
    # ------------------------------------------------------------------
    def get_pixel_size(self) -> Tuple[int, int, float]:
        """``(width, height, dpi)`` read with Pillow from the loaded bytes."""
        data = self.get_image_data()
        try:
            with PILImage.open(io.BytesIO(data)) as img:
                dpi = img.info.get("dpi", (DEFAULT_DPI, DEFAULT_DPI))[0] or DEFAULT_DPI
                return img.width, img.height, float(dpi)
        except (UnidentifiedImageError, OSError) as exc:
            raise ImageLoadError(f"Unreadable image data: {exc}", cause=exc) from exc

    def get_extent_emu(self) -> Tuple[int, int]:
        if self.width_emu and self.height_emu:
            return self.width_emu, self.height_emu
        try:
            width, height, dpi = self.get_pixel_size()
        except (ImageNotLoadedError, ImageLoadError) as exc:
            logger.warning("Using a 1in extent for image without readable size: %s", exc)
            return EMU_PER_INCH, EMU_PER_INCH
        cx = int(width * EMU_PER_INCH / dpi)
        cy = int(height * EMU_PER_INCH / dpi)
        if self.width_emu and not self.height_emu:
            return self.width_emu, int(self.width_emu * cy / max(cx, 1))
        if self.height_emu and not self.width_emu:
            return int(self.height_emu * cx / max(cy, 1)), self.height_emu
        return cx, cy

    def to_drawing_xml(self, filename: Optional[str] = None) -> XmlNode:
        """Inline ``w:drawing`` referencing this image's relationship and docPr ids."""
        if self.relationship_id is None or self.doc_pr_id is None:
            raise ValidationError("Image must be registered before it can be drawn")
        cx, cy = self.get_extent_emu()
        name = filename or f"Picture {self.doc_pr_id}"
        pic = el("pic:pic", {}, [
            el("pic:nvPicPr", {}, [
                el("pic:cNvPr", {"id": 0, "name": name}),
                el("pic:cNvPicPr"),
            ]),
            el("pic:blipFill", {}, [
                el("a:blip", {"r:embed": self.relationship_id}),
                el("a:stretch", {}, [el("a:fillRect")]),
            ]),
            el("pic:spPr", {}, [
                el("a:xfrm", {}, [el("a:off", {"x": 0, "y": 0}), el("a:ext", {"cx": cx, "cy": cy})]),
                el("a:prstGeom", {"prst": "rect"}, [el("a:avLst")]),
            ]),
        ])
        inline = el("wp:inline", {"distT": 0, "distB": 0, "distL": 0, "distR": 0}, [
            el("wp:extent", {"cx": cx, "cy": cy}),
            el("wp:effectExtent", {"l": 0, "t": 0, "r": 0, "b": 0}),
            el("wp:docPr", {"id": self.doc_pr_id, "name": name, "descr": self.description}),
            el("wp:cNvGraphicFramePr", {}, [el("a:graphicFrameLocks", {"noChangeAspect": 1})]),
            el("a:graphic", {}, [
                el("a:graphicData", {"uri": "http://schemas.openxmlformats.org/drawingml/2006/picture"}, [pic]),
            ]),
        ])
        return w("drawing", children=[inline])


class InlineImage:
    """Paragraph content item that renders a registered image as a run."""

    def __init__(self, image: Image, manager: "ImageManager") -> None:
        self.image = image
        self._manager = manager

    def to_xml(self) -> XmlNode:
        filename = self._manager.get_filename(self.image)
        return w("r", children=[self.image.to_drawing_xml(filename)])


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


@dataclass
class ImageManagerOptions:
    max_image_count: int = 20
    max_total_image_size_mb: float = 100
    max_single_image_size_mb: float = 20
    default_concurrency: int = 5

    @classmethod
    def from_config(cls, config: Optional[Any] = None) -> "ImageManagerOptions":
        """Build options from the ``images`` section of ``default_limits.yml``."""
        if config is None:
            from wordforge.config import ConfigManager

            config = ConfigManager()
        limits = config.get_image_limits()
        defaults = cls()
        return cls(
            max_image_count=int(limits.get("max_image_count", defaults.max_image_count)),
            max_total_image_size_mb=float(limits.get("max_total_image_size_mb", defaults.max_total_image_size_mb)),
            max_single_image_size_mb=float(limits.get("max_single_image_size_mb", defaults.max_single_image_size_mb)),
            default_concurrency=int(limits.get("default_concurrency", defaults.default_concurrency)),
        )


@dataclass
class ImageEntry:
    image: Image
    filename: str
    relationship_id: str
    doc_pr_id: int

    @property
    def part_name(self) -> str:
        return f"word/media/{self.filename}"


@dataclass
class BulkLoadResult:
    total: int = 0
    loaded: int = 0
    failed: List[str] = field(default_factory=list)  # filenames


_SCOPE = "images"


class ImageManager:
    """Quota-enforced store of images keyed by relationship id."""

    def __init__(self, registry: Optional[IdentifierRegistry] = None,
                 options: Optional[ImageManagerOptions] = None) -> None:
        self._registry = registry or IdentifierRegistry()
        self.options = options or ImageManagerOptions()
        self._entries: Dict[Image, ImageEntry] = {}

    @property
    def max_single_bytes(self) -> int:
        return int(self.options.max_single_image_size_mb * _MB)

    @property
    def max_total_bytes(self) -> int:
        return int(self.options.max_total_image_size_mb * _MB)

    # -------------------------------------------------------------------------
    # Registration
    # -------------------------------------------------------------------------

    def register_image(self, image: Image, relationship_id: str, filename: Optional[str] = None) -> str:
        """Register *image* under *relationship_id* and return its filename.

        Registering an already known relationship id returns the existing
        filename and binds *image* to that entry; no new asset is minted.
        ``filename`` keeps the name an image had in a loaded package.

        Raises
        ------
        ImageCountLimitError, ImageSizeLimitError, TotalImageSizeLimitError
            When the configured quotas would be exceeded.
        """
        existing = self._registry.lookup_external(relationship_id, _SCOPE)
        if existing is not None:
            self._entries[image] = existing
            self._bind(image, existing)
            return existing.filename

        if image in self._entries:
            return self._entries[image].filename

        def create() -> ImageEntry:
            self._check_quotas(image)
            name = filename or f"image{self._registry.allocate(IdSpace.IMAGE)}.{image.extension}"
            entry = ImageEntry(image, name, relationship_id, self._registry.allocate(IdSpace.DRAWING_PROPERTY))
            logger.debug("Registered %s as %s (%s)", image, name, relationship_id)
            return entry

        entry = self._registry.register_by_external_key(relationship_id, create, scope=_SCOPE)
        self._entries[image] = entry
        self._bind(image, entry)
        return entry.filename

    @staticmethod
    def _bind(image: Image, entry: ImageEntry) -> None:
        image.relationship_id = entry.relationship_id
        image.doc_pr_id = entry.doc_pr_id

    def _check_quotas(self, image: Image) -> None:
        count = self.get_image_count()
        if count >= self.options.max_image_count:
            raise ImageCountLimitError(
                f"Cannot add image: maximum image count ({self.options.max_image_count}) exceeded.",
                limit=self.options.max_image_count,
                actual=count + 1,
                remediation="Consider:\n"
                            "  - Reducing the number of images\n"
                            "  - Increasing max_image_count in default_limits.yml\n"
                            "  - Splitting into multiple documents",
            )
        size = image.get_size()
        if size is None:
            # deferred to validate_limits() after the bulk load
            return
        self._check_single(size)
        new_total = self.get_total_size() + size
        if new_total > self.max_total_bytes:
            raise self._total_error(new_total, "after adding this image")

    def _check_single(self, size: int, filename: str = "Image") -> None:
        if size > self.max_single_bytes:
            raise ImageSizeLimitError(
                f"{filename} size ({size / _MB:.1f}MB) exceeds maximum single image size "
                f"({self.options.max_single_image_size_mb:.0f}MB).",
                limit=self.max_single_bytes,
                actual=size,
                remediation="Consider:\n"
                            "  - Compressing the image\n"
                            "  - Resizing to lower resolution\n"
                            "  - Converting to a more efficient format (e.g., JPEG)\n"
                            "  - Increasing max_single_image_size_mb in default_limits.yml",
            )

    def _total_error(self, total: int, when: str) -> TotalImageSizeLimitError:
        return TotalImageSizeLimitError(
            f"Total image size ({total / _MB:.1f}MB) would exceed maximum "
            f"({self.options.max_total_image_size_mb:.0f}MB) {when}.",
            limit=self.max_total_bytes,
            actual=total,
            remediation="Consider:\n"
                        "  - Compressing existing images\n"
                        "  - Removing unnecessary images\n"
                        "  - Increasing max_total_image_size_mb in default_limits.yml\n"
                        "  - Splitting into multiple documents",
        )

    def validate_limits(self) -> None:
        """Run the size checks that were skipped for images registered unloaded."""
        for entry in self.get_all_images():
            size = entry.image.get_size()
            if size is not None:
                self._check_single(size, entry.filename)
        total = self.get_total_size()
        if total > self.max_total_bytes:
            raise self._total_error(total, "in this document")

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    def get_filename(self, image: Image) -> Optional[str]:
        entry = self._entries.get(image)
        return entry.filename if entry else None

    def get_relationship_id(self, image: Image) -> Optional[str]:
        entry = self._entries.get(image)
        return entry.relationship_id if entry else None

    def get_entry(self, relationship_id: str) -> Optional[ImageEntry]:
        return self._registry.lookup_external(relationship_id, _SCOPE)

    def get_all_images(self) -> List[ImageEntry]:
        """Distinct entries in registration order."""
        unique: Dict[int, ImageEntry] = {}
        for entry in self._entries.values():
            unique.setdefault(id(entry), entry)
        return list(unique.values())

    def get_image_count(self) -> int:
        return len(self.get_all_images())

    def has_image(self, image: Image) -> bool:
        return image in self._entries

    def remove_image(self, image: Image) -> bool:
        entry = self._entries.get(image)
        if entry is None:
            return False
        for key in [k for k, v in self._entries.items() if v is entry]:
            del self._entries[key]
        self._registry.forget_external(entry.relationship_id, _SCOPE)
        return True

    @staticmethod
    def get_mime_type(extension: str) -> str:
        return _MIME_TYPES.get(extension.lower().lstrip("."), "image/png")

    # -------------------------------------------------------------------------
    # Bulk load / release
    # -------------------------------------------------------------------------

    async def load_all_image_data(self, concurrency: Optional[int] = None,
                                  on_progress: Optional[Callable[[int, int], None]] = None) -> BulkLoadResult:
        """Load every pending image in sequential batches of at most *concurrency*.

        Loads inside a batch run concurrently. A failing load is logged and
        counted; it does not abort its batch. *on_progress* receives
        ``(processed, total)`` with a strictly increasing ``processed``.
        """
        if concurrency is None:
            concurrency = self.options.default_concurrency
        if isinstance(concurrency, bool) or not isinstance(concurrency, int) \
                or not 1 <= concurrency <= MAX_CONCURRENCY:
            raise ValidationError(f"Concurrency must be an integer between 1 and {MAX_CONCURRENCY}")

        pending = [e for e in self.get_all_images() if not e.image.is_loaded]
        result = BulkLoadResult(total=len(pending))
        if not pending:
            return result

        processed = 0

        async def load_one(entry: ImageEntry) -> None:
            nonlocal processed
            try:
                await entry.image.ensure_data_loaded()
                result.loaded += 1
            except Exception as exc:  # counted per item, never re-raised
                logger.warning("Failed to load image data for %s: %s", entry.filename, exc)
                result.failed.append(entry.filename)
            processed += 1
            if on_progress is not None:
                on_progress(processed, result.total)

        for start in range(0, len(pending), concurrency):
            batch = pending[start:start + concurrency]
            await asyncio.gather(*(load_one(entry) for entry in batch))

        logger.info("Loaded %d/%d image(s), %d failed", result.loaded, result.total, len(result.failed))
        return result

    def release_all_image_data(self) -> None:
        """Drop cached bytes; registrations, filenames and ids are kept."""
        for entry in self.get_all_images():
            entry.image.release_data()

    def get_total_size(self) -> int:
        """Sum of loaded byte lengths; unloaded images are not counted."""
        return sum(e.image.get_size() or 0 for e in self.get_all_images())

    async def get_total_size_async(self) -> int:
        total = 0
        for entry in self.get_all_images():
            try:
                total += len(await entry.image.ensure_data_loaded())
            except Exception as exc:
                logger.warning("Skipping %s in size total: %s", entry.filename, exc)
        return total

    def get_stats(self) -> Dict[str, int]:
        count = self.get_image_count()
        total = self.get_total_size()
        return {
            "count": count,
            "total_size": total,
            "average_size": round(total / count) if count else 0,
        }

    def initialize_from_loaded_images(self) -> None:
        """Advance the filename counter past every ``image<N>.`` already registered."""
        highest = 0
        for entry in self.get_all_images():
            match = _FILENAME_PATTERN.search(entry.filename)
            if match:
                highest = max(highest, int(match.group(1)))
            self._registry.observe(IdSpace.DRAWING_PROPERTY, entry.doc_pr_id)
        if highest:
            self._registry.observe(IdSpace.IMAGE, highest)

    def clear(self) -> None:
        self._entries.clear()
        self._registry.clear_scope(_SCOPE)
        self._registry.reset(IdSpace.IMAGE)
        self._registry.reset(IdSpace.DRAWING_PROPERTY)
