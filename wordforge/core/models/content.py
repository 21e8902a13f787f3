from __future__ import annotations

"""Body content value structs: runs, paragraphs and tables.

These structs hold data and convert to and from element trees. They do not
enforce cross-part invariants; the stores and the package assembler do that.
Anything the structs do not model is carried as raw :class:`XmlNode` so a
loaded document writes back without loss.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

from wordforge.core.models.formatting import ParagraphFormatting, RunFormatting
from wordforge.core.xml.element import XmlNode, w

logger = logging.getLogger(__name__)

__all__ = [
    "Run",
    "Paragraph",
    "Table",
    "TableRow",
    "TableCell",
    "decode_block",
    "decode_blocks",
    "encode_blocks",
]

DEFAULT_TABLE_WIDTH = 9360  # twips; 6.5in text column


def _needs_preserve(text: str) -> bool:
    return text != text.strip() or "  " in text


def text_node(text: str, name: str = "w:t") -> XmlNode:
    attrs = {"xml:space": "preserve"} if _needs_preserve(text) or name == "w:instrText" else {}
    return XmlNode(name, attrs, [text] if text else [])


# ---------------------------------------------------------------------------
# Run
# ---------------------------------------------------------------------------


@dataclass
class Run:
    """A ``w:r``: optional run properties plus raw run content nodes."""

    content: List[XmlNode] = field(default_factory=list)
    formatting: RunFormatting = field(default_factory=RunFormatting)
    attributes: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_text(cls, text: str, formatting: Optional[RunFormatting] = None) -> "Run":
        """Run for *text*; tabs and newlines become ``w:tab``/``w:br``."""
        run = cls(formatting=formatting or RunFormatting())
        run.add_text(text)
        return run

    def add_text(self, text: str) -> None:
        buffer = ""
        for ch in text:
            if ch in "\t\n":
                if buffer:
                    self.content.append(text_node(buffer))
                    buffer = ""
                self.content.append(w("tab") if ch == "\t" else w("br"))
            else:
                buffer += ch
        if buffer:
            self.content.append(text_node(buffer))

    @property
    def text(self) -> str:
        parts = []
        for node in self.content:
            if node.name == "w:t":
                parts.append(node.text_content())
            elif node.name == "w:tab":
                parts.append("\t")
            elif node.name in ("w:br", "w:cr"):
                parts.append("\n")
        return "".join(parts)

    def has(self, name: str) -> bool:
        return any(node.name == name for node in self.content)

    def to_xml(self) -> XmlNode:
        node = XmlNode("w:r", dict(self.attributes))
        rpr = self.formatting.to_xml()
        if rpr is not None:
            node.append(rpr)
        node.extend(n.copy() for n in self.content)
        return node

    @classmethod
    def from_xml(cls, node: XmlNode) -> "Run":
        run = cls(attributes=dict(node.attributes))
        for child in node.element_children():
            if child.name == "w:rPr":
                run.formatting = RunFormatting.from_xml(child)
            else:
                run.content.append(child)
        return run


# ---------------------------------------------------------------------------
# Paragraph
# ---------------------------------------------------------------------------


ParagraphItem = Union[Run, XmlNode, Any]


@dataclass
class Paragraph:
    """A ``w:p``.

    ``content`` holds :class:`Run` objects, raw nodes (bookmarks, hyperlinks,
    comment ranges) and any object with a ``to_xml()`` returning a node or a
    list of nodes, such as a complex field.
    """

    content: List[ParagraphItem] = field(default_factory=list)
    style_id: Optional[str] = None
    num_id: Optional[int] = None
    level: int = 0
    formatting: ParagraphFormatting = field(default_factory=ParagraphFormatting)
    attributes: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_text(cls, text: str = "", style_id: Optional[str] = None,
                  formatting: Optional[RunFormatting] = None) -> "Paragraph":
        paragraph = cls(style_id=style_id)
        if text:
            paragraph.add_run(text, formatting)
        return paragraph

    def add_run(self, text: str = "", formatting: Optional[RunFormatting] = None) -> Run:
        run = Run.from_text(text, formatting)
        self.content.append(run)
        return run

    def set_numbering(self, num_id: Optional[int], level: int = 0) -> None:
        self.num_id = num_id
        self.level = level

    @property
    def numbering(self) -> Optional[Tuple[int, int]]:
        return (self.num_id, self.level) if self.num_id is not None else None

    @property
    def runs(self) -> List[Run]:
        return [item for item in self.content if isinstance(item, Run)]

    @property
    def text(self) -> str:
        parts = []
        for item in self.content:
            if isinstance(item, Run):
                parts.append(item.text)
            elif isinstance(item, XmlNode):
                parts.extend(Run.from_xml(r).text for r in item.iter("w:r"))
        return "".join(parts)

    def mark_comment(self, comment_id: int) -> None:
        """Anchor comment *comment_id* to the whole paragraph."""
        self.content.insert(0, w("commentRangeStart", {"id": comment_id}))
        self.content.append(w("commentRangeEnd", {"id": comment_id}))
        self.content.append(Run(content=[w("commentReference", {"id": comment_id})]))

    def to_xml(self) -> XmlNode:
        node = XmlNode("w:p", dict(self.attributes))
        ppr = self.formatting.to_xml(self.style_id, self.numbering)
        if ppr is not None:
            node.append(ppr)
        for item in self.content:
            encoded = item.copy() if isinstance(item, XmlNode) else item.to_xml()
            if isinstance(encoded, list):
                node.extend(encoded)
            else:
                node.append(encoded)
        return node

    @classmethod
    def from_xml(cls, node: XmlNode) -> "Paragraph":
        paragraph = cls(attributes=dict(node.attributes))
        for child in node.element_children():
            if child.name == "w:pPr":
                fmt, style_id, numbering = ParagraphFormatting.from_xml(child)
                paragraph.formatting = fmt
                paragraph.style_id = style_id
                if numbering is not None:
                    paragraph.num_id, paragraph.level = numbering
            elif child.name == "w:r":
                paragraph.content.append(Run.from_xml(child))
            else:
                paragraph.content.append(child)
        return paragraph


# ---------------------------------------------------------------------------
# Tables
# ---------------------------------------------------------------------------


@dataclass
class TableCell:
    content: List[Any] = field(default_factory=list)
    width: Optional[int] = None
    grid_span: int = 1
    v_merge: Optional[str] = None  # "restart" | "continue"
    properties: List[XmlNode] = field(default_factory=list)

    @property
    def paragraphs(self) -> List[Paragraph]:
        return [c for c in self.content if isinstance(c, Paragraph)]

    @property
    def text(self) -> str:
        return "\n".join(p.text for p in self.paragraphs)

    def add_paragraph(self, text: str = "", style_id: Optional[str] = None) -> Paragraph:
        paragraph = Paragraph.from_text(text, style_id)
        self.content.append(paragraph)
        return paragraph

    def to_xml(self) -> XmlNode:
        tcpr = w("tcPr")
        if self.width is not None:
            tcpr.append(w("tcW", {"w": self.width, "type": "dxa"}))
        if self.grid_span > 1:
            tcpr.append(w("gridSpan", {"val": self.grid_span}))
        if self.v_merge == "restart":
            tcpr.append(w("vMerge", {"val": "restart"}))
        elif self.v_merge == "continue":
            # continuation is the bare element
            tcpr.append(w("vMerge"))
        tcpr.extend(n.copy() for n in self.properties)

        node = w("tc")
        if not tcpr.is_empty():
            node.append(tcpr)
        blocks = encode_blocks(self.content)
        if not any(b.name == "w:p" for b in blocks):
            blocks.append(w("p"))
        node.extend(blocks)
        return node

    @classmethod
    def from_xml(cls, node: XmlNode) -> "TableCell":
        cell = cls()
        for child in node.element_children():
            if child.name != "w:tcPr":
                cell.content.append(decode_block(child))
                continue
            for prop in child.element_children():
                if prop.name == "w:tcW" and prop.get("w:type") == "dxa" and set(prop.attributes) == {"w:w", "w:type"}:
                    cell.width = int(prop.get("w:w", "0"))
                elif prop.name == "w:gridSpan":
                    cell.grid_span = int(prop.get("w:val", "1"))
                elif prop.name == "w:vMerge":
                    cell.v_merge = prop.get("w:val", "continue")
                else:
                    cell.properties.append(prop)
        return cell


def _interleave(items: List[Any], extra: List[Tuple[int, XmlNode]]) -> List[XmlNode]:
    """Encode *items*, putting each raw node back before the item it preceded.

    ``extra`` pairs hold the number of items that came before the raw node.
    """
    encoded: List[XmlNode] = []
    pending = sorted(extra, key=lambda pair: pair[0])
    for index, item in enumerate(items):
        while pending and pending[0][0] <= index:
            encoded.append(pending.pop(0)[1].copy())
        encoded.append(item.to_xml())
    encoded.extend(node.copy() for _, node in pending)
    return encoded


@dataclass
class TableRow:
    cells: List[TableCell] = field(default_factory=list)
    properties: Optional[XmlNode] = None
    # cell-level content controls, bookmarks and the like, keyed by position
    extra: List[Tuple[int, XmlNode]] = field(default_factory=list)

    def to_xml(self) -> XmlNode:
        node = w("tr")
        if self.properties is not None:
            node.append(self.properties.copy())
        node.extend(_interleave(self.cells, self.extra))
        return node

    @classmethod
    def from_xml(cls, node: XmlNode) -> "TableRow":
        row = cls()
        for child in node.element_children():
            if child.name == "w:trPr":
                row.properties = child
            elif child.name == "w:tc":
                row.cells.append(TableCell.from_xml(child))
            else:
                row.extra.append((len(row.cells), child))
        return row


@dataclass
class Table:
    rows: List[TableRow] = field(default_factory=list)
    style_id: Optional[str] = None
    column_widths: Optional[List[int]] = None
    properties: List[XmlNode] = field(default_factory=list)
    # row-level content controls, bookmarks and custom XML, keyed by position
    extra: List[Tuple[int, XmlNode]] = field(default_factory=list)

    @classmethod
    def create(cls, rows: int, cols: int, style_id: Optional[str] = None,
               width: int = DEFAULT_TABLE_WIDTH) -> "Table":
        """Table of *rows* x *cols* empty cells with equal column widths."""
        if rows < 1 or cols < 1:
            raise ValueError("A table needs at least one row and one column")
        col_width = width // cols
        table = cls(style_id=style_id, column_widths=[col_width] * cols)
        for _ in range(rows):
            table.rows.append(TableRow([TableCell(width=col_width) for _ in range(cols)]))
        return table

    @property
    def row_count(self) -> int:
        return len(self.rows)

    @property
    def column_count(self) -> int:
        if self.column_widths:
            return len(self.column_widths)
        return max((sum(c.grid_span for c in r.cells) for r in self.rows), default=0)

    def get_cell(self, row: int, col: int) -> Optional[TableCell]:
        if 0 <= row < len(self.rows) and 0 <= col < len(self.rows[row].cells):
            return self.rows[row].cells[col]
        return None

    def _grid(self) -> List[int]:
        if self.column_widths:
            return list(self.column_widths)
        count = self.column_count
        if count == 0:
            return []
        if self.rows and all(c.width is not None and c.grid_span == 1 for c in self.rows[0].cells) \
                and len(self.rows[0].cells) == count:
            return [c.width for c in self.rows[0].cells]
        return [DEFAULT_TABLE_WIDTH // count] * count

    def to_xml(self) -> XmlNode:
        tblpr = w("tblPr")
        if self.style_id:
            tblpr.append(w("tblStyle", {"val": self.style_id}))
        tblpr.extend(n.copy() for n in self.properties)
        if tblpr.find("w:tblW") is None:
            tblpr.append(w("tblW", {"w": 0, "type": "auto"}))
        grid = w("tblGrid", children=[w("gridCol", {"w": width}) for width in self._grid()])
        node = w("tbl", children=[tblpr, grid])
        node.extend(_interleave(self.rows, self.extra))
        return node

    @classmethod
    def from_xml(cls, node: XmlNode) -> "Table":
        table = cls()
        for child in node.element_children():
            if child.name == "w:tblPr":
                for prop in child.element_children():
                    if prop.name == "w:tblStyle":
                        table.style_id = prop.get("w:val")
                    else:
                        table.properties.append(prop)
            elif child.name == "w:tblGrid":
                table.column_widths = [int(c.get("w:w", "0")) for c in child.find_all("w:gridCol")]
            elif child.name == "w:tr":
                table.rows.append(TableRow.from_xml(child))
            else:
                table.extra.append((len(table.rows), child))
        return table


# ---------------------------------------------------------------------------
# Block dispatch
# ---------------------------------------------------------------------------


def decode_block(node: XmlNode) -> Any:
    """Decode one block-level node: paragraph, table, content control or raw node."""
    if node.name == "w:p":
        return Paragraph.from_xml(node)
    if node.name == "w:tbl":
        return Table.from_xml(node)
    if node.name == "w:sdt":
        from wordforge.core.elements.sdt import StructuredDocumentTag

        return StructuredDocumentTag.from_xml(node)
    return node


def decode_blocks(nodes: List[XmlNode]) -> List[Any]:
    return [decode_block(n) for n in nodes]


def encode_blocks(blocks: List[Any]) -> List[XmlNode]:
    encoded: List[XmlNode] = []
    for block in blocks:
        result = block.copy() if isinstance(block, XmlNode) else block.to_xml()
        if isinstance(result, list):
            encoded.extend(result)
        else:
            encoded.append(result)
    return encoded
