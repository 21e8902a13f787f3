from __future__ import annotations

"""Paragraph and run property value structs.

These are plain data carried by paragraphs, runs and styles. Only the common
properties are modelled; any other property element read from a package is
kept verbatim in ``extra`` and written back in place.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from wordforge.core.xml.element import XmlNode, w

__all__ = [
    "ParagraphFormatting",
    "RunFormatting",
    "ALIGNMENTS",
    "HIGHLIGHT_COLORS",
]

ALIGNMENTS = {"left", "start", "center", "right", "end", "both", "distribute"}

HIGHLIGHT_COLORS = {
    "black", "blue", "cyan", "green", "magenta", "red", "yellow", "white",
    "darkBlue", "darkCyan", "darkGreen", "darkMagenta", "darkRed", "darkYellow",
    "darkGray", "lightGray", "none",
}

# Child order inside w:pPr and w:rPr; unknown elements sort last.
_PPR_ORDER = [
    "w:pStyle", "w:keepNext", "w:keepLines", "w:pageBreakBefore", "w:framePr",
    "w:widowControl", "w:numPr", "w:suppressLineNumbers", "w:pBdr", "w:shd",
    "w:tabs", "w:suppressAutoHyphens", "w:kinsoku", "w:wordWrap",
    "w:overflowPunct", "w:topLinePunct", "w:autoSpaceDE", "w:autoSpaceDN",
    "w:bidi", "w:adjustRightInd", "w:snapToGrid", "w:spacing", "w:ind",
    "w:contextualSpacing", "w:mirrorIndents", "w:suppressOverlap", "w:jc",
    "w:textDirection", "w:textAlignment", "w:textboxTightWrap", "w:outlineLvl",
    "w:divId", "w:cnfStyle", "w:rPr", "w:sectPr", "w:pPrChange",
]
_RPR_ORDER = [
    "w:rStyle", "w:rFonts", "w:b", "w:bCs", "w:i", "w:iCs", "w:caps",
    "w:smallCaps", "w:strike", "w:dstrike", "w:outline", "w:shadow", "w:emboss",
    "w:imprint", "w:noProof", "w:snapToGrid", "w:vanish", "w:webHidden",
    "w:color", "w:spacing", "w:w", "w:kern", "w:position", "w:sz", "w:szCs",
    "w:highlight", "w:u", "w:effect", "w:bdr", "w:shd", "w:fitText",
    "w:vertAlign", "w:rtl", "w:cs", "w:em", "w:lang", "w:eastAsianLayout",
    "w:specVanish", "w:oMath",
]


def _ordered(nodes: List[XmlNode], order: List[str]) -> List[XmlNode]:
    rank = {name: i for i, name in enumerate(order)}
    return sorted(nodes, key=lambda n: rank.get(n.name, len(order)))


def _on_off(node: Optional[XmlNode]) -> Optional[bool]:
    if node is None:
        return None
    return node.get("w:val", "true") not in ("0", "false", "off")


def _single_font(node: XmlNode) -> bool:
    return set(node.attributes) == {"w:ascii", "w:hAnsi", "w:cs"} and len(set(node.attributes.values())) == 1


def _int(node: Optional[XmlNode], attr: str) -> Optional[int]:
    if node is None:
        return None
    value = node.get(attr)
    return int(value) if value is not None and value.lstrip("-").isdigit() else None


@dataclass
class ParagraphFormatting:
    """Direct paragraph properties (``w:pPr``) other than style and numbering.

    Spacing and indents are in twips.
    """

    alignment: Optional[str] = None
    space_before: Optional[int] = None
    space_after: Optional[int] = None
    line_spacing: Optional[int] = None
    line_rule: Optional[str] = None
    indent_left: Optional[int] = None
    indent_right: Optional[int] = None
    indent_first_line: Optional[int] = None
    indent_hanging: Optional[int] = None
    keep_next: Optional[bool] = None
    keep_lines: Optional[bool] = None
    page_break_before: Optional[bool] = None
    outline_level: Optional[int] = None
    extra: List[XmlNode] = field(default_factory=list)

    def validate(self) -> List[str]:
        problems = []
        if self.alignment is not None and self.alignment not in ALIGNMENTS:
            problems.append(f"Invalid alignment '{self.alignment}'")
        for name in ("space_before", "space_after", "line_spacing"):
            value = getattr(self, name)
            if value is not None and value < 0:
                problems.append(f"{name} must be non-negative")
        if self.outline_level is not None and not 0 <= self.outline_level <= 9:
            problems.append("outline_level must be between 0 and 9")
        return problems

    def is_empty(self) -> bool:
        return not self.to_nodes()

    def to_nodes(self) -> List[XmlNode]:
        nodes: List[XmlNode] = []
        for flag, name in ((self.keep_next, "keepNext"), (self.keep_lines, "keepLines"),
                           (self.page_break_before, "pageBreakBefore")):
            if flag is not None:
                nodes.append(w(name) if flag else w(name, {"val": "0"}))
        spacing = {
            "before": self.space_before,
            "after": self.space_after,
            "line": self.line_spacing,
            "lineRule": self.line_rule,
        }
        if any(v is not None for v in spacing.values()):
            nodes.append(w("spacing", spacing))
        ind = {
            "left": self.indent_left,
            "right": self.indent_right,
            "firstLine": self.indent_first_line,
            "hanging": self.indent_hanging,
        }
        if any(v is not None for v in ind.values()):
            nodes.append(w("ind", ind))
        if self.alignment:
            nodes.append(w("jc", {"val": self.alignment}))
        if self.outline_level is not None:
            nodes.append(w("outlineLvl", {"val": self.outline_level}))
        nodes.extend(n.copy() for n in self.extra)
        return nodes

    def to_xml(self, style_id: Optional[str] = None,
               numbering: Optional[Tuple[int, int]] = None) -> Optional[XmlNode]:
        """Build ``w:pPr``; *numbering* is ``(num_id, level)``. None when empty."""
        nodes = self.to_nodes()
        if style_id:
            nodes.append(w("pStyle", {"val": style_id}))
        if numbering is not None:
            num_id, level = numbering
            nodes.append(w("numPr", children=[w("ilvl", {"val": level}), w("numId", {"val": num_id})]))
        if not nodes:
            return None
        return w("pPr", children=_ordered(nodes, _PPR_ORDER))

    @classmethod
    def from_xml(cls, ppr: Optional[XmlNode]) -> Tuple["ParagraphFormatting", Optional[str], Optional[Tuple[int, int]]]:
        """Split a ``w:pPr`` into formatting, style id and numbering reference."""
        fmt = cls()
        style_id: Optional[str] = None
        numbering: Optional[Tuple[int, int]] = None
        if ppr is None:
            return fmt, style_id, numbering
        for child in ppr.element_children():
            if child.name == "w:pStyle":
                style_id = child.get("w:val")
            elif child.name == "w:numPr" and child.find("w:numId") is not None:
                num_id = _int(child.find("w:numId"), "w:val")
                level = _int(child.find("w:ilvl"), "w:val") or 0
                if num_id is None:
                    fmt.extra.append(child)
                else:
                    numbering = (num_id, level)
            elif child.name == "w:keepNext":
                fmt.keep_next = _on_off(child)
            elif child.name == "w:keepLines":
                fmt.keep_lines = _on_off(child)
            elif child.name == "w:pageBreakBefore":
                fmt.page_break_before = _on_off(child)
            elif child.name == "w:spacing" and set(child.attributes) <= {"w:before", "w:after", "w:line", "w:lineRule"}:
                fmt.space_before = _int(child, "w:before")
                fmt.space_after = _int(child, "w:after")
                fmt.line_spacing = _int(child, "w:line")
                fmt.line_rule = child.get("w:lineRule")
            elif child.name == "w:ind" and set(child.attributes) <= {"w:left", "w:right", "w:firstLine", "w:hanging"}:
                fmt.indent_left = _int(child, "w:left")
                fmt.indent_right = _int(child, "w:right")
                fmt.indent_first_line = _int(child, "w:firstLine")
                fmt.indent_hanging = _int(child, "w:hanging")
            elif child.name == "w:jc":
                fmt.alignment = child.get("w:val")
            elif child.name == "w:outlineLvl":
                fmt.outline_level = _int(child, "w:val")
            else:
                fmt.extra.append(child)
        return fmt, style_id, numbering


@dataclass
class RunFormatting:
    """Direct run properties (``w:rPr``).

    Sizes are in half-points. ``complex_size`` (``w:szCs``) follows ``size``
    unless set to a different value.
    """

    style_id: Optional[str] = None
    font: Optional[str] = None
    bold: Optional[bool] = None
    italic: Optional[bool] = None
    strike: Optional[bool] = None
    no_proof: Optional[bool] = None
    color: Optional[str] = None
    size: Optional[int] = None
    complex_size: Optional[int] = None
    highlight: Optional[str] = None
    underline: Optional[str] = None
    vertical_align: Optional[str] = None
    extra: List[XmlNode] = field(default_factory=list)

    def validate(self) -> List[str]:
        problems = []
        if self.size is not None and not 0 < self.size <= 1638:
            problems.append("Font size must be between 1 and 1638 half-points")
        if self.complex_size is not None and not 0 < self.complex_size <= 1638:
            problems.append("Complex script font size must be between 1 and 1638 half-points")
        if self.color is not None and self.color != "auto":
            if len(self.color) != 6 or any(c not in "0123456789abcdefABCDEF" for c in self.color):
                problems.append(f"Invalid color '{self.color}'; expected 6 hex digits")
        if self.highlight is not None and self.highlight not in HIGHLIGHT_COLORS:
            problems.append(f"Invalid highlight '{self.highlight}'")
        return problems

    def is_empty(self) -> bool:
        return self.to_xml() is None

    def to_xml(self) -> Optional[XmlNode]:
        nodes: List[XmlNode] = []
        if self.style_id:
            nodes.append(w("rStyle", {"val": self.style_id}))
        if self.font:
            nodes.append(w("rFonts", {"ascii": self.font, "hAnsi": self.font, "cs": self.font}))
        for flag, name in ((self.bold, "b"), (self.italic, "i"),
                           (self.strike, "strike"), (self.no_proof, "noProof")):
            if flag is not None:
                nodes.append(w(name) if flag else w(name, {"val": "0"}))
        if self.color:
            nodes.append(w("color", {"val": self.color}))
        if self.size is not None:
            nodes.append(w("sz", {"val": self.size}))
        complex_size = self.complex_size if self.complex_size is not None else self.size
        if complex_size is not None:
            nodes.append(w("szCs", {"val": complex_size}))
        if self.highlight:
            nodes.append(w("highlight", {"val": self.highlight}))
        if self.underline:
            nodes.append(w("u", {"val": self.underline}))
        if self.vertical_align:
            nodes.append(w("vertAlign", {"val": self.vertical_align}))
        nodes.extend(n.copy() for n in self.extra)
        if not nodes:
            return None
        return w("rPr", children=_ordered(nodes, _RPR_ORDER))

    @classmethod
    def from_xml(cls, rpr: Optional[XmlNode]) -> "RunFormatting":
        fmt = cls()
        if rpr is None:
            return fmt
        for child in rpr.element_children():
            name = child.name
            if name == "w:rStyle":
                fmt.style_id = child.get("w:val")
            elif name == "w:rFonts" and _single_font(child):
                fmt.font = child.get("w:ascii")
            elif name == "w:b":
                fmt.bold = _on_off(child)
            elif name == "w:i":
                fmt.italic = _on_off(child)
            elif name == "w:strike":
                fmt.strike = _on_off(child)
            elif name == "w:noProof":
                fmt.no_proof = _on_off(child)
            elif name == "w:color" and set(child.attributes) == {"w:val"}:
                fmt.color = child.get("w:val")
            elif name == "w:sz" and _int(child, "w:val") is not None:
                fmt.size = _int(child, "w:val")
            elif name == "w:szCs" and _int(child, "w:val") is not None:
                fmt.complex_size = _int(child, "w:val")
            elif name == "w:highlight":
                fmt.highlight = child.get("w:val")
            elif name == "w:u" and set(child.attributes) == {"w:val"}:
                fmt.underline = child.get("w:val")
            elif name == "w:vertAlign":
                fmt.vertical_align = child.get("w:val")
            else:
                fmt.extra.append(child)
        if fmt.complex_size == fmt.size:
            fmt.complex_size = None
        return fmt
