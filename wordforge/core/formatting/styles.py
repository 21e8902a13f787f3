from __future__ import annotations

"""Style definitions (``w:style``).

A :class:`Style` carries its identity (id, name, type), inheritance links
(``based_on``, ``next``, ``link``), style-gallery metadata and opaque
formatting value structs. Direct self-reference through ``based_on`` or
``link`` is rejected when set; longer cycles are the style store's concern.
"""

import copy
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from wordforge.core.exceptions import StyleValidationError
from wordforge.core.models.formatting import ParagraphFormatting, RunFormatting
from wordforge.core.xml.element import XmlNode, w

logger = logging.getLogger(__name__)

__all__ = ["Style", "StyleType"]


class StyleType(str, Enum):
    PARAGRAPH = "paragraph"
    CHARACTER = "character"
    TABLE = "table"
    NUMBERING = "numbering"


_STYLE_ORDER = [
    "w:name", "w:aliases", "w:basedOn", "w:next", "w:link", "w:autoRedefine",
    "w:hidden", "w:uiPriority", "w:semiHidden", "w:unhideWhenUsed", "w:qFormat",
    "w:locked", "w:personal", "w:personalCompose", "w:personalReply", "w:rsid",
    "w:pPr", "w:rPr", "w:tblPr", "w:trPr", "w:tcPr", "w:tblStylePr",
]
_FLAGS = {
    "w:autoRedefine": "auto_redefine",
    "w:semiHidden": "semi_hidden",
    "w:unhideWhenUsed": "unhide_when_used",
    "w:locked": "locked",
    "w:personal": "personal",
}


def _is_on(node: XmlNode) -> bool:
    return node.get("w:val", "true") not in ("0", "false", "off")


@dataclass
class Style:
    """One style definition.

    Table-region properties (``w:trPr``, ``w:tcPr``, ``w:tblStylePr``) and
    the children of a table style's ``w:tblPr`` are kept as raw nodes.
    """

    style_id: str
    name: str
    type: StyleType = StyleType.PARAGRAPH
    based_on: Optional[str] = None
    next: Optional[str] = None
    link: Optional[str] = None
    is_default: bool = False
    custom_style: bool = False
    paragraph_formatting: Optional[ParagraphFormatting] = None
    run_formatting: Optional[RunFormatting] = None
    table_properties: List[XmlNode] = field(default_factory=list)
    table_regions: List[XmlNode] = field(default_factory=list)
    row_band_size: Optional[int] = None
    col_band_size: Optional[int] = None
    q_format: Optional[bool] = None
    ui_priority: Optional[int] = None
    semi_hidden: bool = False
    unhide_when_used: bool = False
    locked: bool = False
    personal: bool = False
    auto_redefine: bool = False
    aliases: Optional[str] = None
    attributes: Dict[str, Any] = field(default_factory=dict)
    extra: List[XmlNode] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.style_id:
            raise StyleValidationError("Style id must not be empty")
        try:
            self.type = StyleType(self.type)
        except ValueError:
            raise StyleValidationError(f"Invalid style type: {self.type!r}") from None
        self.set_based_on(self.based_on)
        self.set_link(self.link)
        self.set_ui_priority(self.ui_priority)
        self.set_band_sizes(self.row_band_size, self.col_band_size)

    # ------------------------------------------------------------------
    # Validated setters
    # ------------------------------------------------------------------
    def set_based_on(self, style_id: Optional[str]) -> None:
        if style_id is not None and style_id == self.style_id:
            raise StyleValidationError(f"Style '{self.style_id}' cannot be based on itself")
        self.based_on = style_id

    def set_link(self, style_id: Optional[str]) -> None:
        if style_id is not None and style_id == self.style_id:
            raise StyleValidationError(f"Style '{self.style_id}' cannot link to itself")
        self.link = style_id

    def set_ui_priority(self, priority: Optional[int]) -> None:
        if priority is not None and not 0 <= priority <= 99:
            raise StyleValidationError("UI priority must be between 0 and 99")
        self.ui_priority = priority

    def set_band_sizes(self, rows: Optional[int] = None, cols: Optional[int] = None) -> None:
        for value in (rows, cols):
            if value is not None and value < 0:
                raise StyleValidationError("Band sizes must be non-negative")
        self.row_band_size = rows
        self.col_band_size = cols

    def validate(self) -> List[str]:
        """List every problem with this style; empty when valid."""
        problems: List[str] = []
        if not self.name:
            problems.append("Style name must not be empty")
        if self.based_on == self.style_id:
            problems.append("Style is based on itself")
        if self.link == self.style_id:
            problems.append("Style links to itself")
        if self.ui_priority is not None and not 0 <= self.ui_priority <= 99:
            problems.append("UI priority out of range")
        if self.paragraph_formatting is not None:
            problems.extend(self.paragraph_formatting.validate())
        if self.run_formatting is not None:
            problems.extend(self.run_formatting.validate())
        return problems

    def is_valid(self) -> bool:
        return not self.validate()

    def references(self) -> List[str]:
        """Style ids this style points at through ``based_on``, ``next`` and ``link``."""
        return [ref for ref in (self.based_on, self.next, self.link) if ref]

    def clone(self, style_id: Optional[str] = None, name: Optional[str] = None) -> "Style":
        duplicate = copy.deepcopy(self)
        if style_id is not None:
            duplicate.style_id = style_id
        if name is not None:
            duplicate.name = name
        return duplicate

    def merge_with(self, other: "Style") -> "Style":
        """Overlay the set formatting fields and links of *other* onto this style."""
        for attr in ("paragraph_formatting", "run_formatting"):
            theirs = getattr(other, attr)
            if theirs is None:
                continue
            mine = getattr(self, attr)
            if mine is None:
                setattr(self, attr, copy.deepcopy(theirs))
                continue
            for name, value in vars(theirs).items():
                if name == "extra":
                    mine.extra.extend(copy.deepcopy(value))
                elif value is not None:
                    setattr(mine, name, value)
        if other.name:
            self.name = other.name
        if other.based_on and other.based_on != self.style_id:
            self.based_on = other.based_on
        if other.next:
            self.next = other.next
        return self

    # ------------------------------------------------------------------
    # Factories
    # ------------------------------------------------------------------
    @classmethod
    def normal(cls) -> "Style":
        return cls(
            "Normal", "Normal", is_default=True, next="Normal",
            paragraph_formatting=ParagraphFormatting(space_after=200, line_spacing=276, line_rule="auto"),
            run_formatting=RunFormatting(font="Calibri", size=22),
        )

    @classmethod
    def heading(cls, level: int) -> "Style":
        if not 1 <= level <= 9:
            raise StyleValidationError("Heading level must be between 1 and 9")
        sizes = [32, 26, 24, 22, 22, 22, 22, 22, 22]
        return cls(
            f"Heading{level}", f"heading {level}", based_on="Normal", next="Normal",
            ui_priority=9,
            paragraph_formatting=ParagraphFormatting(
                space_before=240 if level == 1 else 120, space_after=120,
                keep_next=True, keep_lines=True, outline_level=level - 1,
            ),
            run_formatting=RunFormatting(
                font="Calibri Light", size=sizes[level - 1], bold=level <= 4,
                color="2E74B5" if level == 1 else "1F4D78",
            ),
        )

    @classmethod
    def list_paragraph(cls) -> "Style":
        return cls(
            "ListParagraph", "List Paragraph", based_on="Normal", next="ListParagraph",
            ui_priority=34, paragraph_formatting=ParagraphFormatting(indent_left=720),
        )

    @classmethod
    def toc_heading(cls) -> "Style":
        return cls(
            "TOCHeading", "TOC Heading", based_on="Heading1", next="Normal",
            ui_priority=39, unhide_when_used=True,
            paragraph_formatting=ParagraphFormatting(space_before=480, space_after=240),
            run_formatting=RunFormatting(font="Calibri", size=28, bold=True, color="000000"),
        )

    @classmethod
    def toc_entry(cls, level: int) -> "Style":
        """``TOC1``..``TOC9`` entry styles a reader applies when it refreshes a TOC field."""
        return cls(
            f"TOC{level}", f"toc {level}", based_on="Normal", next="Normal",
            ui_priority=39, unhide_when_used=True,
            paragraph_formatting=ParagraphFormatting(space_after=100, indent_left=220 * (level - 1) or None),
        )

    @classmethod
    def table_normal(cls) -> "Style":
        margins = w("tblCellMar", children=[
            w("top", {"w": 0, "type": "dxa"}),
            w("left", {"w": 108, "type": "dxa"}),
            w("bottom", {"w": 0, "type": "dxa"}),
            w("right", {"w": 108, "type": "dxa"}),
        ])
        return cls(
            "TableNormal", "Normal Table", StyleType.TABLE, is_default=True,
            ui_priority=99, semi_hidden=True, unhide_when_used=True,
            table_properties=[w("tblInd", {"w": 0, "type": "dxa"}), margins],
        )

    @classmethod
    def table_grid(cls) -> "Style":
        border = {"val": "single", "sz": 4, "space": 0, "color": "000000"}
        borders = w("tblBorders", children=[
            w(side, dict(border)) for side in ("top", "left", "bottom", "right", "insideH", "insideV")
        ])
        return cls("TableGrid", "Table Grid", StyleType.TABLE, based_on="TableNormal",
                   ui_priority=59, table_properties=[borders])

    # ------------------------------------------------------------------
    # XML
    # ------------------------------------------------------------------
    def to_xml(self) -> XmlNode:
        attrs: Dict[str, Any] = {"w:type": self.type.value}
        if self.is_default:
            attrs["w:default"] = "1"
        if self.custom_style:
            attrs["w:customStyle"] = "1"
        attrs["w:styleId"] = self.style_id
        for key, value in self.attributes.items():
            attrs.setdefault(key, value)

        children: List[XmlNode] = [w("name", {"val": self.name})]
        if self.aliases:
            children.append(w("aliases", {"val": self.aliases}))
        for ref, local in ((self.based_on, "basedOn"), (self.next, "next"), (self.link, "link")):
            if ref:
                children.append(w(local, {"val": ref}))
        q_format = self.q_format if self.q_format is not None else not self.custom_style
        if q_format:
            children.append(w("qFormat"))
        if self.ui_priority is not None:
            children.append(w("uiPriority", {"val": self.ui_priority}))
        for tag, attr in _FLAGS.items():
            if getattr(self, attr):
                children.append(XmlNode(tag))

        if self.paragraph_formatting is not None:
            ppr = self.paragraph_formatting.to_xml()
            if ppr is not None:
                children.append(ppr)
        if self.run_formatting is not None:
            rpr = self.run_formatting.to_xml()
            if rpr is not None:
                children.append(rpr)

        tblpr_children = [n.copy() for n in self.table_properties]
        if self.row_band_size is not None:
            tblpr_children.insert(0, w("tblStyleRowBandSize", {"val": self.row_band_size}))
        if self.col_band_size is not None:
            tblpr_children.insert(1 if self.row_band_size is not None else 0,
                                  w("tblStyleColBandSize", {"val": self.col_band_size}))
        if tblpr_children:
            children.append(w("tblPr", children=tblpr_children))
        children.extend(n.copy() for n in self.table_regions)
        children.extend(n.copy() for n in self.extra)

        rank = {name: i for i, name in enumerate(_STYLE_ORDER)}
        children.sort(key=lambda n: rank.get(n.name, len(_STYLE_ORDER)))
        return XmlNode("w:style", attrs, children)

    @classmethod
    def from_xml(cls, node: XmlNode) -> "Style":
        style_id = node.get("w:styleId", "")
        kwargs: Dict[str, Any] = {
            "type": node.get("w:type", "paragraph"),
            "is_default": node.get("w:default") in ("1", "true"),
            "custom_style": node.get("w:customStyle") in ("1", "true"),
            "q_format": False,
        }
        attributes = {k: v for k, v in node.attributes.items()
                      if k not in ("w:type", "w:styleId", "w:default", "w:customStyle")}
        name = style_id
        extra: List[XmlNode] = []
        table_properties: List[XmlNode] = []
        table_regions: List[XmlNode] = []
        based_on = link = None
        for child in node.element_children():
            tag = child.name
            if tag == "w:name":
                name = child.get("w:val", style_id)
            elif tag == "w:aliases":
                kwargs["aliases"] = child.get("w:val")
            elif tag == "w:basedOn":
                based_on = child.get("w:val")
            elif tag == "w:next":
                kwargs["next"] = child.get("w:val")
            elif tag == "w:link":
                link = child.get("w:val")
            elif tag == "w:qFormat":
                kwargs["q_format"] = _is_on(child)
            elif tag == "w:uiPriority" and (child.get("w:val") or "").isdigit() and int(child.get("w:val")) <= 99:
                kwargs["ui_priority"] = int(child.get("w:val"))
            elif tag in _FLAGS and not child.attributes:
                kwargs[_FLAGS[tag]] = True
            elif tag == "w:pPr":
                fmt, pstyle, numbering = ParagraphFormatting.from_xml(child)
                if pstyle is not None or numbering is not None:
                    # numbering in a style's pPr is kept verbatim
                    fmt.extra.extend(c for c in child.element_children()
                                     if c.name in ("w:pStyle", "w:numPr") and c not in fmt.extra)
                kwargs["paragraph_formatting"] = fmt
            elif tag == "w:rPr":
                kwargs["run_formatting"] = RunFormatting.from_xml(child)
            elif tag == "w:tblPr":
                for prop in child.element_children():
                    if prop.name == "w:tblStyleRowBandSize":
                        kwargs["row_band_size"] = int(prop.get("w:val", "0"))
                    elif prop.name == "w:tblStyleColBandSize":
                        kwargs["col_band_size"] = int(prop.get("w:val", "0"))
                    else:
                        table_properties.append(prop)
            elif tag in ("w:trPr", "w:tcPr", "w:tblStylePr"):
                table_regions.append(child)
            else:
                extra.append(child)

        # Self-references in a loaded part are dropped rather than rejected
        if based_on == style_id:
            logger.warning("Style '%s' is based on itself; dropping basedOn", style_id)
            based_on = None
        if link == style_id:
            logger.warning("Style '%s' links to itself; dropping link", style_id)
            link = None
        return cls(style_id, name, based_on=based_on, link=link, attributes=attributes,
                   extra=extra, table_properties=table_properties,
                   table_regions=table_regions, **kwargs)
