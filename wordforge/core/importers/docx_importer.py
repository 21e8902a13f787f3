from __future__ import annotations

"""Word-processing package importer.

Reads a ``.docx`` container into a :class:`DocumentContext`: modelled parts
are decoded into their stores, everything else is kept verbatim so saving
the context writes it back. Ids found in the package are re-registered so
new ids never collide with loaded ones.
"""

import logging
import posixpath
import re
import zipfile
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Set, Union

from wordforge.core.container import ZipContainer
from wordforge.core.context import DOCUMENT_PART, DocumentContext
from wordforge.core.elements.images import Image, ImageManagerOptions
from wordforge.core.elements.sdt import StructuredDocumentTag
from wordforge.core.exceptions import ImageLoadError, PackageImportError, WordforgeError
from wordforge.core.models.content import decode_block
from wordforge.core.models.properties import CoreProperties
from wordforge.core.package_utils import CONTENT_TYPES_PART, resolve_target
from wordforge.core.registry import IdSpace, RelationshipManager, RelationshipType
from wordforge.core.xml.element import XmlNode
from wordforge.core.xml.parser import parse

__all__ = ["DocxPackageImporter"]

_MEDIA_NAME = re.compile(r"^word/media/image(\d+)\.")


def _member_loader(source: Union[Path, bytes], part: str) -> Callable[[], bytes]:
    def load() -> bytes:
        try:
            return ZipContainer.read_member(source, part)
        except PackageImportError as exc:
            raise ImageLoadError(f"Could not reread {part} from the source package: {exc}", cause=exc) from exc
    return load


class DocxPackageImporter:
    """Importer for word-processing packages (``.docx``)."""

    def __init__(self, image_options: Optional[ImageManagerOptions] = None):
        self.logger = logging.getLogger(f"{__name__}.DocxPackageImporter")
        self.image_options = image_options

    def can_import(self, file_path: Path) -> bool:
        """True when *file_path* is a ZIP archive with a main document part."""
        file_path = Path(file_path)
        if not file_path.exists() or not file_path.is_file():
            return False
        if file_path.suffix.lower() not in self.get_supported_extensions():
            return False
        try:
            with zipfile.ZipFile(file_path, "r") as zip_ref:
                names = zip_ref.namelist()
                return CONTENT_TYPES_PART in names and "_rels/.rels" in names
        except (zipfile.BadZipFile, OSError):
            return False

    def import_package(self, file_path: Union[str, Path],
                       progress_callback: Optional[Callable[[str], None]] = None) -> DocumentContext:
        """Import the package at *file_path*.

        Raises
        ------
        PackageImportError
            If the file cannot be read or lacks a main document part.
        """
        file_path = Path(file_path)
        if progress_callback:
            progress_callback(f"Importing package: {file_path.name}")
        self.logger.debug("Importing package: %s", file_path)
        context = self._import(file_path, str(file_path))
        context.metadata["source_file"] = str(file_path)
        if progress_callback:
            progress_callback(
                f"Imported {len(context.body)} block(s) and {context.images.get_image_count()} image(s)"
            )
        return context

    def import_bytes(self, data: bytes) -> DocumentContext:
        return self._import(data, None)

    def _import(self, source: Union[Path, bytes], file_path: Optional[str]) -> DocumentContext:
        try:
            return self._build_context(ZipContainer.read(source), source, file_path)
        except WordforgeError:
            raise
        except Exception as e:
            raise PackageImportError(f"Failed to import package: {e}", file_path, e) from e

    # -------------------------------------------------------------------------
    # Parts
    # -------------------------------------------------------------------------

    def _build_context(self, parts: Dict[str, bytes], source: Union[Path, bytes],
                       file_path: Optional[str]) -> DocumentContext:
        context = DocumentContext(image_options=self.image_options)
        handled: Set[str] = {CONTENT_TYPES_PART}

        if CONTENT_TYPES_PART in parts:
            self._read_content_types(context, parse(parts[CONTENT_TYPES_PART], CONTENT_TYPES_PART))

        package_rels = context.package_relationships
        if package_rels.rels_part not in parts:
            raise PackageImportError("Package has no _rels/.rels part", file_path)
        package_rels.load_xml(parse(parts[package_rels.rels_part], package_rels.rels_part))
        handled.add(package_rels.rels_part)

        main = package_rels.find_by_type(RelationshipType.OFFICE_DOCUMENT)
        main_part = resolve_target("", main[0].target) if main else None
        if main_part is None or main_part not in parts:
            raise PackageImportError("Package has no main document part", file_path)
        if main_part != DOCUMENT_PART:
            self.logger.warning("Main document part '%s' will be written as '%s'", main_part, DOCUMENT_PART)
            main[0].target = DOCUMENT_PART
            context.content_types.pop(main_part, None)
        handled.add(main_part)

        doc_rels = RelationshipManager(main_part).rels_part
        if doc_rels in parts:
            context.relationships.load_xml(parse(parts[doc_rels], doc_rels))
            handled.add(doc_rels)

        self._read_document(context, parse(parts[main_part], main_part))
        handled.update(self._read_stores(context, parts, main_part))
        handled.update(self._read_images(context, parts, main_part, source))

        core = package_rels.find_by_type(RelationshipType.CORE_PROPERTIES)
        core_part = resolve_target("", core[0].target) if core else None
        if core_part in parts:
            context.core_properties = CoreProperties.from_xml(parse(parts[core_part], core_part))
            handled.add(core_part)

        context.preserved_parts = {name: data for name, data in parts.items() if name not in handled}
        for name in context.preserved_parts:
            match = _MEDIA_NAME.match(name)
            if match:
                context.registry.observe(IdSpace.IMAGE, int(match.group(1)))
        self.logger.debug("Preserved %d unmodelled part(s)", len(context.preserved_parts))
        return context

    @staticmethod
    def _read_content_types(context: DocumentContext, root: XmlNode) -> None:
        for child in root.element_children():
            if child.local_name == "Default":
                context.default_content_types[child.get("Extension", "").lower()] = child.get("ContentType", "")
            elif child.local_name == "Override":
                context.content_types[child.get("PartName", "").lstrip("/")] = child.get("ContentType", "")

    def _read_document(self, context: DocumentContext, root: XmlNode) -> None:
        context.document_attributes = dict(root.attributes)
        body = root.find("w:body")
        blocks: List[Any] = []
        context.section_properties = None
        for child in body.element_children() if body is not None else []:
            if child.name == "w:sectPr":
                context.section_properties = child
            else:
                blocks.append(decode_block(child))
        context.body = blocks

        registry = context.registry
        for block in blocks:
            if isinstance(block, StructuredDocumentTag):
                for tag in block.iter_tags():
                    if tag.id is not None and tag.id >= 0:
                        registry.observe(IdSpace.CONTENT_CONTROL, tag.id)
        for node in root.iter("w:bookmarkStart"):
            value = node.get("w:id", "")
            if value.isdigit():
                registry.observe(IdSpace.BOOKMARK, int(value))
        for node in root.iter("wp:docPr"):
            value = node.get("id", "")
            if value.isdigit():
                registry.observe(IdSpace.DRAWING_PROPERTY, int(value))
        self.logger.debug("Read %d body block(s)", len(blocks))

    def _part_for(self, context: DocumentContext, parts: Dict[str, bytes], main_part: str,
                  rel_type: str) -> Optional[str]:
        for relationship in context.relationships.find_by_type(rel_type):
            if relationship.is_external:
                continue
            part = resolve_target(main_part, relationship.target)
            if part in parts:
                return part
            self.logger.warning("Relationship %s targets missing part '%s'", relationship.rel_id, part)
        return None

    def _read_stores(self, context: DocumentContext, parts: Dict[str, bytes], main_part: str) -> Set[str]:
        handled: Set[str] = set()

        styles_part = self._part_for(context, parts, main_part, RelationshipType.STYLES)
        if styles_part is not None:
            context.styles.clear()
            context.styles.load_xml(parse(parts[styles_part], styles_part))
            handled.add(styles_part)

        numbering_part = self._part_for(context, parts, main_part, RelationshipType.NUMBERING)
        if numbering_part is not None:
            context.numbering.load_xml(parse(parts[numbering_part], numbering_part))
            handled.add(numbering_part)

        comments_part = self._part_for(context, parts, main_part, RelationshipType.COMMENTS)
        if comments_part is not None:
            extended_part = self._part_for(context, parts, main_part, RelationshipType.COMMENTS_EXTENDED)
            extended = parse(parts[extended_part], extended_part) if extended_part else None
            context.comments.load_xml(parse(parts[comments_part], comments_part), extended)
            handled.add(comments_part)
            if extended_part:
                handled.add(extended_part)
        return handled

    def _read_images(self, context: DocumentContext, parts: Dict[str, bytes], main_part: str,
                     source: Union[Path, bytes]) -> Set[str]:
        """Register document images lazily under their original filenames.

        The images reread their bytes from *source* so releasing them frees memory.
        """
        handled: Set[str] = set()
        for relationship in context.relationships.find_by_type(RelationshipType.IMAGE):
            if relationship.is_external:
                continue
            part = resolve_target(main_part, relationship.target)
            if part not in parts or posixpath.dirname(part) != "word/media":
                self.logger.warning("Image relationship %s targets '%s'; kept as is", relationship.rel_id, part)
                continue
            filename = posixpath.basename(part)
            extension = filename.rsplit(".", 1)[-1] if "." in filename else None
            image = Image(_member_loader(source, part), extension=extension)
            context.images.register_image(image, relationship.rel_id, filename)
            handled.add(part)
        context.images.initialize_from_loaded_images()
        return handled

    def get_supported_extensions(self) -> List[str]:
        return [".docx"]

    def get_format_description(self) -> str:
        return "Word-processing package (.docx)"
