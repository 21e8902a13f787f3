from __future__ import annotations

"""In-memory document: stores, body blocks and preserved package parts."""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Set, Tuple

from wordforge.core.elements.comments import Comment, CommentManager
from wordforge.core.elements.fields import TableOfContents
from wordforge.core.elements.images import Image, ImageManager, ImageManagerOptions, InlineImage
from wordforge.core.elements.sdt import StructuredDocumentTag
from wordforge.core.exceptions import CapacityError, XmlParseError
from wordforge.core.formatting.numbering_manager import NumberingManager
from wordforge.core.formatting.style_manager import StyleManager
from wordforge.core.formatting.styles import Style
from wordforge.core.models.content import Paragraph, Table
from wordforge.core.models.formatting import RunFormatting
from wordforge.core.models.properties import CoreProperties
from wordforge.core.registry import IdentifierRegistry, IdSpace, RelationshipManager, RelationshipType
from wordforge.core.xml.element import XmlNode, w
from wordforge.core.xml.namespaces import NAMESPACES
from wordforge.core.xml.parser import parse

logger = logging.getLogger(__name__)

__all__ = ["DocumentContext", "default_section_properties", "iter_paragraphs"]

DOCUMENT_PART = "word/document.xml"
# roots of the other WordprocessingML stories: headers, footers, notes
STORY_ROOTS = ("w:hdr", "w:ftr", "w:footnotes", "w:endnotes")


def default_section_properties() -> XmlNode:
    """US Letter portrait with one-inch margins."""
    return w("sectPr", children=[
        w("pgSz", {"w": 12240, "h": 15840}),
        w("pgMar", {"top": 1440, "right": 1440, "bottom": 1440, "left": 1440,
                    "header": 720, "footer": 720, "gutter": 0}),
        w("cols", {"space": 720}),
        w("docGrid", {"linePitch": 360}),
    ])


def iter_paragraphs(blocks: List[Any]) -> Iterator[Paragraph]:
    """Yield paragraphs in *blocks*, descending into tables and content controls."""
    for block in blocks:
        if isinstance(block, Paragraph):
            yield block
        elif isinstance(block, Table):
            for row in block.rows:
                for cell in row.cells:
                    yield from iter_paragraphs(cell.content)
        elif isinstance(block, StructuredDocumentTag):
            yield from iter_paragraphs(block.content)


def _raw_values(node: XmlNode, element: str) -> Iterator[str]:
    for child in node.iter(element):
        value = child.get("w:val")
        if value is not None:
            yield value


@dataclass
class DocumentContext:
    """Everything needed to write one word-processing package.

    Attributes
    ----------
    registry
        Shared id counters; every store draws from it.
    relationships
        Relationships of ``word/document.xml``.
    package_relationships
        Package-level relationships (``_rels/.rels``).
    body
        Block content: paragraphs, tables, content controls and raw nodes.
    preserved_parts
        Parts the engine does not model (theme, settings, headers...),
        written back unchanged.
    content_types
        Content-type overrides keyed by part path, as read from a package.
    """

    registry: IdentifierRegistry = field(default_factory=IdentifierRegistry)
    body: List[Any] = field(default_factory=list)
    section_properties: Optional[XmlNode] = field(default_factory=default_section_properties)
    core_properties: CoreProperties = field(default_factory=CoreProperties)
    preserved_parts: Dict[str, bytes] = field(default_factory=dict)
    content_types: Dict[str, str] = field(default_factory=dict)
    default_content_types: Dict[str, str] = field(default_factory=dict)
    document_attributes: Dict[str, Any] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)
    image_options: Optional[ImageManagerOptions] = None

    def __post_init__(self) -> None:
        self.relationships = RelationshipManager(DOCUMENT_PART, self.registry)
        self.package_relationships = RelationshipManager("", self.registry)
        self.numbering = NumberingManager(self.registry)
        self.styles = StyleManager.create_default(self.registry)
        self.images = ImageManager(self.registry, self.image_options or ImageManagerOptions.from_config())
        self.comments = CommentManager(self.registry)

    @classmethod
    def create_empty(cls, image_options: Optional[ImageManagerOptions] = None) -> "DocumentContext":
        """Context for a new document holding only the default styles."""
        return cls(image_options=image_options)

    # -------------------------------------------------------------------------
    # Authoring helpers
    # -------------------------------------------------------------------------

    def add_body_element(self, block: Any) -> Any:
        """Append a block; content controls without an id get one."""
        if isinstance(block, StructuredDocumentTag):
            for tag in block.iter_tags():
                if tag.id is None:
                    tag.id = self.registry.allocate(IdSpace.CONTENT_CONTROL)
                else:
                    self.registry.observe(IdSpace.CONTENT_CONTROL, tag.id)
        self.body.append(block)
        return block

    def add_paragraph(self, text: str = "", style_id: Optional[str] = None,
                      formatting: Optional[RunFormatting] = None) -> Paragraph:
        return self.add_body_element(Paragraph.from_text(text, style_id, formatting))

    def add_heading(self, text: str, level: int = 1) -> Paragraph:
        style = Style.heading(level)
        if not self.styles.has_style(style.style_id):
            self.styles.add_style(style)
        return self.add_paragraph(text, style.style_id)

    def add_table(self, rows: int, cols: int, style_id: Optional[str] = None) -> Table:
        return self.add_body_element(Table.create(rows, cols, style_id))

    def add_list_item(self, text: str, num_id: int, level: int = 0) -> Paragraph:
        """Paragraph in list *num_id* at *level*, styled ``ListParagraph``."""
        paragraph = self.add_paragraph(text, "ListParagraph")
        paragraph.set_numbering(num_id, level)
        return paragraph

    def add_image(self, image: Image, paragraph: Optional[Paragraph] = None) -> InlineImage:
        """Register *image* and place it inline in *paragraph* (a new one by default).

        Raises
        ------
        CapacityError
            When a quota would be exceeded; nothing is added in that case.
        """
        rel_id = self.images.get_relationship_id(image)
        if rel_id is None:
            rel_id = self.relationships.add(RelationshipType.IMAGE, "")
            try:
                filename = self.images.register_image(image, rel_id)
            except CapacityError:
                self.relationships.remove(rel_id)
                raise
            self.relationships.get(rel_id).target = f"media/{filename}"
        inline = InlineImage(image, self.images)
        if paragraph is None:
            paragraph = self.add_body_element(Paragraph())
        paragraph.content.append(inline)
        return inline

    def add_comment(self, paragraph: Paragraph, author: str, text: str,
                    initials: Optional[str] = None) -> Comment:
        """Create a comment and anchor it to *paragraph*."""
        comment = self.comments.create_comment(author, text, initials)
        paragraph.mark_comment(comment.id)
        return comment

    def add_table_of_contents(self, toc: Optional[TableOfContents] = None) -> TableOfContents:
        toc = toc or TableOfContents.standard()
        if not self.styles.has_style("TOCHeading"):
            self.styles.add_style(Style.toc_heading())
        for paragraph in toc.to_paragraphs():
            self.add_body_element(paragraph)
        return toc

    def set_title(self, title: str) -> None:
        self.core_properties.title = title

    # -------------------------------------------------------------------------
    # Traversal
    # -------------------------------------------------------------------------

    def iter_paragraphs(self) -> Iterator[Paragraph]:
        yield from iter_paragraphs(self.body)
        for comment in self.comments.get_all_comments_with_replies():
            yield from iter_paragraphs(comment.content)

    def _raw_nodes(self) -> Iterator[XmlNode]:
        """Raw nodes in the body that were not decoded into objects."""
        stack: List[Any] = list(self.body)
        while stack:
            block = stack.pop()
            if isinstance(block, XmlNode):
                yield block
            elif isinstance(block, Paragraph):
                stack.extend(item for item in block.content if isinstance(item, XmlNode))
            elif isinstance(block, Table):
                stack.extend(node for _, node in block.extra)
                for row in block.rows:
                    stack.extend(node for _, node in row.extra)
                    stack.extend(c for cell in row.cells for c in cell.content)
            elif isinstance(block, StructuredDocumentTag):
                stack.extend(block.content)

    def iter_story_parts(self) -> Iterator[Tuple[str, XmlNode]]:
        """Preserved headers, footers and notes, parsed.

        These parts are written back as stored bytes; the trees are only read
        to find the lists and styles they use.
        """
        for name, data in self.preserved_parts.items():
            if not (name.startswith("word/") and name.endswith(".xml")) or "/" in name[len("word/"):]:
                continue
            try:
                root = parse(data, part=name)
            except XmlParseError as exc:
                logger.warning("Cannot scan preserved part %s: %s", name, exc)
                continue
            if root.name in STORY_ROOTS:
                yield name, root

    def used_numbering_ids(self) -> Set[int]:
        """Numbering instance ids referenced by paragraphs, styles or other stories."""
        used: Set[int] = set()
        for paragraph in self.iter_paragraphs():
            if paragraph.num_id is not None:
                used.add(paragraph.num_id)
        values: List[str] = []
        for node in self._raw_nodes():
            values.extend(_raw_values(node, "w:numId"))
        for style in self.styles.get_all_styles():
            for node in style.paragraph_formatting.extra if style.paragraph_formatting else []:
                values.extend(_raw_values(node, "w:numId"))
        for _, root in self.iter_story_parts():
            values.extend(_raw_values(root, "w:numId"))
        for value in values:
            if value.isdigit():
                used.add(int(value))
        used.discard(0)
        return used

    def used_style_ids(self) -> Set[str]:
        """Style ids referenced from content, other stories and list definitions."""
        used: Set[str] = set()
        for paragraph in self.iter_paragraphs():
            if paragraph.style_id:
                used.add(paragraph.style_id)
            for run in paragraph.runs:
                if run.formatting.style_id:
                    used.add(run.formatting.style_id)
        stack: List[Any] = list(self.body)
        while stack:
            block = stack.pop()
            if isinstance(block, Table):
                if block.style_id:
                    used.add(block.style_id)
                stack.extend(c for row in block.rows for cell in row.cells for c in cell.content)
            elif isinstance(block, StructuredDocumentTag):
                stack.extend(block.content)
        trees: List[XmlNode] = list(self._raw_nodes())
        trees.extend(root for _, root in self.iter_story_parts())
        for tree in trees:
            for name in ("w:pStyle", "w:rStyle", "w:tblStyle"):
                used.update(_raw_values(tree, name))
        if not self.numbering.is_empty():
            numbering = self.numbering.to_xml()
            for name in ("w:pStyle", "w:rStyle", "w:styleLink", "w:numStyleLink"):
                used.update(_raw_values(numbering, name))
        return used

    def cleanup(self) -> Dict[str, int]:
        """Drop numbering and styles nothing references."""
        numbering = self.numbering.cleanup_unused_numbering(self.used_numbering_ids())
        styles = self.styles.cleanup_unused(self.used_style_ids())
        return {
            "instances_removed": numbering.instances_removed,
            "abstracts_removed": numbering.abstracts_removed,
            "styles_removed": styles,
        }

    def get_text(self) -> str:
        return "\n".join(p.text for p in iter_paragraphs(self.body))

    def to_document_xml(self) -> XmlNode:
        """Build ``w:document`` from the body and section properties."""
        attrs: Dict[str, Any] = {"xmlns:w": NAMESPACES["w"], "xmlns:r": NAMESPACES["r"]}
        for key, value in self.document_attributes.items():
            attrs.setdefault(key, value)
        body = w("body")
        for block in self.body:
            encoded = block.copy() if isinstance(block, XmlNode) else block.to_xml()
            if isinstance(encoded, list):
                body.extend(encoded)
            else:
                body.append(encoded)
        if self.section_properties is not None:
            body.append(self.section_properties.copy())
        return XmlNode("w:document", attrs, [body])
