"""Package assembly: turn a :class:`DocumentContext` into package parts.

The assembler builds every part tree, makes sure the relationships and
content types those parts need exist, and validates cross-part references
before anything is serialized. A package with a dangling reference is never
produced.
"""

from __future__ import annotations

import logging
import posixpath
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional, Set

from wordforge.core.context import DOCUMENT_PART, DocumentContext
from wordforge.core.elements.comments import EXTENDED_PART_NAME as COMMENTS_EXTENDED_PART
from wordforge.core.elements.comments import PART_NAME as COMMENTS_PART
from wordforge.core.exceptions import PackageIntegrityError
from wordforge.core.formatting.numbering_manager import PART_NAME as NUMBERING_PART
from wordforge.core.models.properties import PART_NAME as CORE_PROPERTIES_PART
from wordforge.core.registry import Relationship, RelationshipManager, RelationshipType
from wordforge.core.xml.builder import to_bytes
from wordforge.core.xml.element import XmlNode
from wordforge.core.xml.namespaces import CONTENT_TYPES_NS

logger = logging.getLogger(__name__)

__all__ = ["Package", "PackageAssembler", "ContentType", "CONTENT_TYPES_PART"]

CONTENT_TYPES_PART = "[Content_Types].xml"
STYLES_PART = "word/styles.xml"
_REFERENCE_ATTRIBUTES = ("r:id", "r:embed", "r:link", "r:pict")
_COMMENT_MARKERS = ("w:commentReference", "w:commentRangeStart", "w:commentRangeEnd")


class ContentType:
    _WML = "application/vnd.openxmlformats-officedocument.wordprocessingml"

    DOCUMENT = f"{_WML}.document.main+xml"
    STYLES = f"{_WML}.styles+xml"
    NUMBERING = f"{_WML}.numbering+xml"
    COMMENTS = f"{_WML}.comments+xml"
    COMMENTS_EXTENDED = f"{_WML}.commentsExtended+xml"
    CORE_PROPERTIES = "application/vnd.openxmlformats-package.core-properties+xml"
    RELATIONSHIPS = "application/vnd.openxmlformats-package.relationships+xml"
    XML = "application/xml"


@dataclass
class Package:
    """Assembled parts in write order, with their content types and relationships."""

    parts: Dict[str, bytes] = field(default_factory=dict)
    content_types: Dict[str, str] = field(default_factory=dict)
    default_content_types: Dict[str, str] = field(default_factory=dict)
    relationships: Dict[str, List[Relationship]] = field(default_factory=dict)

    def __contains__(self, part_name: str) -> bool:
        return part_name in self.parts

    def __len__(self) -> int:
        return len(self.parts)

    def get(self, part_name: str) -> Optional[bytes]:
        return self.parts.get(part_name)

    @property
    def part_names(self) -> List[str]:
        return list(self.parts)

    def content_type_of(self, part_name: str) -> Optional[str]:
        if part_name in self.content_types:
            return self.content_types[part_name]
        extension = part_name.rsplit(".", 1)[-1].lower()
        return self.default_content_types.get(extension)


def resolve_target(source_part: str, target: str) -> str:
    """Resolve a relationship target against the folder of *source_part*."""
    if target.startswith("/"):
        return target.lstrip("/")
    folder = posixpath.dirname(source_part)
    return posixpath.normpath(posixpath.join(folder, target)) if folder else posixpath.normpath(target)


def _iter_nodes(node: XmlNode) -> Iterator[XmlNode]:
    yield node
    for child in node.element_children():
        yield from _iter_nodes(child)


class PackageAssembler:
    """Builds a :class:`Package` from one document context."""

    def __init__(self, context: DocumentContext) -> None:
        self.context = context

    def assemble(self) -> Package:
        """Build, validate and serialize every part.

        Raises
        ------
        PackageIntegrityError
            If any part references a relationship, numbering instance,
            comment or part that does not exist.
        """
        ctx = self.context
        logger.info("Assembling package")
        trees = self._build_trees()
        media = self._collect_media()
        ctx.images.validate_limits()

        content_types, defaults = self._content_types(trees, media)
        preserved = {name: data for name, data in ctx.preserved_parts.items()
                     if name not in trees and name not in media}
        available: Set[str] = set(trees) | set(media) | set(preserved)

        relationship_sets = [ctx.package_relationships, ctx.relationships]
        problems = self.validate(trees, relationship_sets, available)
        if problems:
            for problem in problems:
                logger.error("Package integrity: %s", problem)
            raise PackageIntegrityError(problems)

        package = Package(content_types=content_types, default_content_types=defaults)
        package.parts[CONTENT_TYPES_PART] = to_bytes(self._content_types_xml(content_types, defaults))
        for manager in relationship_sets:
            package.parts[manager.rels_part] = to_bytes(manager.to_xml())
            package.relationships[manager.source_part] = manager.all()
        for name, tree in trees.items():
            package.parts[name] = to_bytes(tree)
        package.parts.update(media)
        for name, data in preserved.items():
            package.parts.setdefault(name, data)

        logger.info("Package assembled: %d part(s), %d image(s)", len(package), len(media))
        return package

    # -------------------------------------------------------------------------
    # Parts
    # -------------------------------------------------------------------------

    def _build_trees(self) -> Dict[str, XmlNode]:
        ctx = self.context
        rels = ctx.relationships
        trees: Dict[str, XmlNode] = {}

        ctx.package_relationships.ensure(RelationshipType.OFFICE_DOCUMENT, DOCUMENT_PART)
        ctx.package_relationships.ensure(RelationshipType.CORE_PROPERTIES, CORE_PROPERTIES_PART)
        rels.ensure(RelationshipType.STYLES, "styles.xml")
        rels.ensure(RelationshipType.COMMENTS, "comments.xml")

        trees[DOCUMENT_PART] = ctx.to_document_xml()
        trees[STYLES_PART] = ctx.styles.to_xml()

        if ctx.numbering.is_empty():
            self._drop_relationships(rels, RelationshipType.NUMBERING)
        else:
            rels.ensure(RelationshipType.NUMBERING, "numbering.xml")
            trees[NUMBERING_PART] = ctx.numbering.to_xml()

        trees[COMMENTS_PART] = ctx.comments.to_xml()
        comments = ctx.comments.get_all_comments_with_replies()
        if ctx.comments.has_threads() or any(c.done for c in comments):
            rels.ensure(RelationshipType.COMMENTS_EXTENDED, "commentsExtended.xml")
            trees[COMMENTS_EXTENDED_PART] = ctx.comments.to_extended_xml()
        else:
            self._drop_relationships(rels, RelationshipType.COMMENTS_EXTENDED)

        ctx.core_properties.touch()
        trees[CORE_PROPERTIES_PART] = ctx.core_properties.to_xml()
        return trees

    @staticmethod
    def _drop_relationships(rels: RelationshipManager, rel_type: str) -> None:
        for relationship in rels.find_by_type(rel_type):
            rels.remove(relationship.rel_id)

    def _collect_media(self) -> Dict[str, bytes]:
        """Media part bytes; registered images get a relationship if they lack one."""
        ctx = self.context
        media: Dict[str, bytes] = {}
        for entry in ctx.images.get_all_images():
            if not ctx.relationships.has(entry.relationship_id):
                ctx.relationships.register_existing(
                    Relationship(entry.relationship_id, RelationshipType.IMAGE, f"media/{entry.filename}")
                )
            image = entry.image
            media[entry.part_name] = image.get_image_data() if image.is_loaded else image.load()
        return media

    def _content_types(self, trees: Dict[str, XmlNode],
                       media: Dict[str, bytes]) -> tuple[Dict[str, str], Dict[str, str]]:
        ctx = self.context
        defaults: Dict[str, str] = {"rels": ContentType.RELATIONSHIPS, "xml": ContentType.XML}
        defaults.update(ctx.default_content_types)
        for name in media:
            extension = name.rsplit(".", 1)[-1].lower()
            defaults.setdefault(extension, ctx.images.get_mime_type(extension))

        overrides: Dict[str, str] = {}
        for name, content_type in ctx.content_types.items():
            if name in ctx.preserved_parts:
                overrides[name] = content_type
        overrides.update({
            DOCUMENT_PART: ContentType.DOCUMENT,
            STYLES_PART: ContentType.STYLES,
            COMMENTS_PART: ContentType.COMMENTS,
            CORE_PROPERTIES_PART: ContentType.CORE_PROPERTIES,
        })
        if NUMBERING_PART in trees:
            overrides[NUMBERING_PART] = ContentType.NUMBERING
        if COMMENTS_EXTENDED_PART in trees:
            overrides[COMMENTS_EXTENDED_PART] = ContentType.COMMENTS_EXTENDED
        return overrides, defaults

    @staticmethod
    def _content_types_xml(overrides: Dict[str, str], defaults: Dict[str, str]) -> XmlNode:
        root = XmlNode("Types", {"xmlns": CONTENT_TYPES_NS})
        for extension, content_type in defaults.items():
            root.append(XmlNode("Default", {"Extension": extension, "ContentType": content_type}))
        for name, content_type in overrides.items():
            root.append(XmlNode("Override", {"PartName": f"/{name}", "ContentType": content_type}))
        return root

    # -------------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------------

    def validate(self, trees: Dict[str, XmlNode], relationship_sets: Iterable[RelationshipManager],
                 available: Set[str]) -> List[str]:
        """Every cross-part reference problem, in a stable order."""
        ctx = self.context
        problems: List[str] = []

        document = trees[DOCUMENT_PART]
        for node in _iter_nodes(document):
            for attr in _REFERENCE_ATTRIBUTES:
                rel_id = node.get(attr)
                if rel_id is not None and not ctx.relationships.has(rel_id):
                    problems.append(f"{DOCUMENT_PART}: {node.name} references unknown relationship '{rel_id}'")

        for manager in relationship_sets:
            for relationship in manager.all():
                if relationship.is_external:
                    continue
                part = resolve_target(manager.source_part, relationship.target)
                if part not in available:
                    problems.append(
                        f"{manager.rels_part}: relationship '{relationship.rel_id}' targets missing part '{part}'"
                    )

        scanned = [(name, trees.get(name)) for name in (DOCUMENT_PART, STYLES_PART, COMMENTS_PART)]
        scanned.extend(ctx.iter_story_parts())
        for part_name, tree in scanned:
            if tree is None:
                continue
            for num_id in tree.iter("w:numId"):
                value = num_id.get("w:val", "")
                if value.isdigit() and int(value) != 0 and not ctx.numbering.has_numbering_instance(int(value)):
                    problems.append(f"{part_name}: paragraph references unknown numbering instance {value}")

        for node in _iter_nodes(document):
            if node.name in _COMMENT_MARKERS:
                value = node.get("w:id", "")
                if not value.lstrip("-").isdigit() or not ctx.comments.has_comment(int(value)):
                    problems.append(f"{DOCUMENT_PART}: {node.name} references unknown comment '{value}'")
        return problems
