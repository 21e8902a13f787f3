from __future__ import annotations

"""Structured document tags (content controls).

A ``w:sdt`` holds its type metadata in ``w:sdtPr`` and its content in
``w:sdtContent``. Content is decoded block by block, so paragraphs, tables
and nested tags come back as objects; anything else is kept as raw nodes.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, List, Optional

from wordforge.core.exceptions import ContentControlError
from wordforge.core.models.content import Paragraph, Run, decode_block, encode_blocks
from wordforge.core.models.formatting import RunFormatting
from wordforge.core.xml.element import XmlNode, w

logger = logging.getLogger(__name__)

__all__ = ["ControlType", "LockType", "ListItem", "BuildingBlock", "StructuredDocumentTag"]

CHECKED_GLYPH = "☒"
UNCHECKED_GLYPH = "☐"
CHECKBOX_FONT = "MS Gothic"


class ControlType(str, Enum):
    RICH_TEXT = "richText"
    PLAIN_TEXT = "plainText"
    COMBO_BOX = "comboBox"
    DROP_DOWN_LIST = "dropDownList"
    DATE_PICKER = "datePicker"
    CHECKBOX = "checkbox"
    BUILDING_BLOCK = "buildingBlock"
    PICTURE = "picture"
    GROUP = "group"


class LockType(str, Enum):
    UNLOCKED = "unlocked"
    SDT_LOCKED = "sdtLocked"
    CONTENT_LOCKED = "contentLocked"
    SDT_CONTENT_LOCKED = "sdtContentLocked"


@dataclass(frozen=True)
class ListItem:
    display_text: str
    value: str

    def to_xml(self) -> XmlNode:
        return w("listItem", {"displayText": self.display_text, "value": self.value})


@dataclass(frozen=True)
class BuildingBlock:
    gallery: str
    category: Optional[str] = None
    unique: bool = True


# type element name -> control type
_TYPE_ELEMENTS = {
    "w:richText": ControlType.RICH_TEXT,
    "w:text": ControlType.PLAIN_TEXT,
    "w:comboBox": ControlType.COMBO_BOX,
    "w:dropDownList": ControlType.DROP_DOWN_LIST,
    "w:date": ControlType.DATE_PICKER,
    "w14:checkbox": ControlType.CHECKBOX,
    "w:docPartObj": ControlType.BUILDING_BLOCK,
    "w:picture": ControlType.PICTURE,
    "w:group": ControlType.GROUP,
}


@dataclass
class StructuredDocumentTag:
    """A content control around block content."""

    content: List[Any] = field(default_factory=list)
    control_type: ControlType = ControlType.RICH_TEXT
    id: Optional[int] = None
    tag: Optional[str] = None
    alias: Optional[str] = None
    lock: Optional[LockType] = None
    temporary: bool = False
    showing_placeholder: bool = False
    list_items: List[ListItem] = field(default_factory=list)
    last_value: Optional[str] = None
    date_format: Optional[str] = None
    full_date: Optional[str] = None
    locale: str = "en-US"
    checked: bool = False
    building_block: Optional[BuildingBlock] = None
    multiline: bool = False
    properties: List[XmlNode] = field(default_factory=list)
    end_properties: Optional[XmlNode] = None

    # -------------------------------------------------------------------------
    # Factories
    # -------------------------------------------------------------------------

    @classmethod
    def create_rich_text(cls, content: Optional[Iterable[Any]] = None, tag: Optional[str] = None,
                         alias: Optional[str] = None) -> "StructuredDocumentTag":
        return cls(list(content or []), ControlType.RICH_TEXT, tag=tag, alias=alias)

    @classmethod
    def create_plain_text(cls, text: str = "", multiline: bool = False,
                          tag: Optional[str] = None, alias: Optional[str] = None) -> "StructuredDocumentTag":
        return cls([Paragraph.from_text(text)], ControlType.PLAIN_TEXT, tag=tag, alias=alias,
                   multiline=multiline)

    @classmethod
    def create_combo_box(cls, items: Iterable[ListItem], tag: Optional[str] = None,
                         alias: Optional[str] = None) -> "StructuredDocumentTag":
        items = list(items)
        text = items[0].display_text if items else ""
        return cls([Paragraph.from_text(text)], ControlType.COMBO_BOX, tag=tag, alias=alias,
                   list_items=items)

    @classmethod
    def create_drop_down_list(cls, items: Iterable[ListItem], tag: Optional[str] = None,
                              alias: Optional[str] = None) -> "StructuredDocumentTag":
        items = list(items)
        text = items[0].display_text if items else ""
        return cls([Paragraph.from_text(text)], ControlType.DROP_DOWN_LIST, tag=tag, alias=alias,
                   list_items=items)

    @classmethod
    def create_date_picker(cls, date_format: str = "M/d/yyyy", full_date: Optional[str] = None,
                           tag: Optional[str] = None, alias: Optional[str] = None) -> "StructuredDocumentTag":
        return cls([Paragraph()], ControlType.DATE_PICKER, tag=tag, alias=alias,
                   date_format=date_format, full_date=full_date)

    @classmethod
    def create_checkbox(cls, checked: bool = False, tag: Optional[str] = None,
                        alias: Optional[str] = None) -> "StructuredDocumentTag":
        glyph = Run.from_text(CHECKED_GLYPH if checked else UNCHECKED_GLYPH,
                              RunFormatting(font=CHECKBOX_FONT))
        return cls([Paragraph(content=[glyph])], ControlType.CHECKBOX, tag=tag, alias=alias,
                   checked=checked)

    @classmethod
    def create_building_block(cls, gallery: str, category: Optional[str] = None,
                              content: Optional[Iterable[Any]] = None) -> "StructuredDocumentTag":
        return cls(list(content or []), ControlType.BUILDING_BLOCK,
                   building_block=BuildingBlock(gallery, category))

    # -------------------------------------------------------------------------
    # Content helpers
    # -------------------------------------------------------------------------

    def add_content(self, block: Any) -> "StructuredDocumentTag":
        self.content.append(block)
        return self

    @property
    def paragraphs(self) -> List[Paragraph]:
        return [block for block in self.content if isinstance(block, Paragraph)]

    @property
    def text(self) -> str:
        return "\n".join(p.text for p in self.paragraphs)

    def iter_tags(self):
        """Yield this tag and every nested tag, depth first."""
        yield self
        for block in self.content:
            if isinstance(block, StructuredDocumentTag):
                yield from block.iter_tags()

    def validate(self) -> None:
        """Raise :class:`ContentControlError` for an inconsistent payload."""
        if self.control_type in (ControlType.COMBO_BOX, ControlType.DROP_DOWN_LIST):
            values = [item.value for item in self.list_items]
            if len(values) != len(set(values)):
                raise ContentControlError(
                    f"{self.control_type.value} content control has duplicate list item values"
                )
        if self.control_type == ControlType.BUILDING_BLOCK and self.building_block is None:
            raise ContentControlError("Building block content control needs a gallery")

    # -------------------------------------------------------------------------
    # XML
    # -------------------------------------------------------------------------

    def _type_element(self) -> Optional[XmlNode]:
        ctype = self.control_type
        if ctype == ControlType.PLAIN_TEXT:
            return w("text", {"multiLine": "1" if self.multiline else None})
        if ctype in (ControlType.COMBO_BOX, ControlType.DROP_DOWN_LIST):
            name = "comboBox" if ctype == ControlType.COMBO_BOX else "dropDownList"
            return w(name, {"lastValue": self.last_value},
                     [item.to_xml() for item in self.list_items])
        if ctype == ControlType.DATE_PICKER:
            children = [w("dateFormat", {"val": self.date_format})] if self.date_format else []
            children += [
                w("lid", {"val": self.locale}),
                w("storeMappedDataAs", {"val": "dateTime"}),
                w("calendar", {"val": "gregorian"}),
            ]
            return w("date", {"fullDate": self.full_date}, children)
        if ctype == ControlType.CHECKBOX:
            return XmlNode("w14:checkbox", children=[
                XmlNode("w14:checked", {"w14:val": "1" if self.checked else "0"}),
                XmlNode("w14:checkedState", {"w14:val": "2612", "w14:font": CHECKBOX_FONT}),
                XmlNode("w14:uncheckedState", {"w14:val": "2610", "w14:font": CHECKBOX_FONT}),
            ])
        if ctype == ControlType.BUILDING_BLOCK and self.building_block is not None:
            block = self.building_block
            children = [w("docPartGallery", {"val": block.gallery})]
            if block.category:
                children.append(w("docPartCategory", {"val": block.category}))
            if block.unique:
                children.append(w("docPartUnique"))
            return w("docPartObj", children=children)
        if ctype == ControlType.PICTURE:
            return w("picture")
        if ctype == ControlType.GROUP:
            return w("group")
        return None

    def to_xml(self) -> XmlNode:
        self.validate()
        sdt_pr = w("sdtPr")
        sdt_pr.extend(n.copy() for n in self.properties if n.name == "w:rPr")
        if self.alias:
            sdt_pr.append(w("alias", {"val": self.alias}))
        if self.tag:
            sdt_pr.append(w("tag", {"val": self.tag}))
        if self.id is not None:
            sdt_pr.append(w("id", {"val": self.id}))
        if self.lock is not None:
            sdt_pr.append(w("lock", {"val": LockType(self.lock).value}))
        sdt_pr.extend(n.copy() for n in self.properties if n.name != "w:rPr")
        if self.temporary:
            sdt_pr.append(w("temporary"))
        if self.showing_placeholder:
            sdt_pr.append(w("showingPlcHdr"))
        type_element = self._type_element()
        if type_element is not None:
            sdt_pr.append(type_element)

        node = w("sdt", children=[sdt_pr])
        if self.end_properties is not None:
            node.append(self.end_properties.copy())
        node.append(w("sdtContent", children=encode_blocks(self.content)))
        return node

    @classmethod
    def from_xml(cls, node: XmlNode) -> "StructuredDocumentTag":
        sdt = cls()
        sdt_pr = node.find("w:sdtPr")
        for child in sdt_pr.element_children() if sdt_pr is not None else []:
            sdt._read_property(child)
        sdt.end_properties = node.find("w:sdtEndPr")
        content = node.find("w:sdtContent")
        if content is not None:
            sdt.content = [decode_block(child) for child in content.element_children()]
        return sdt

    def _read_property(self, child: XmlNode) -> None:
        name = child.name
        if name == "w:alias":
            self.alias = child.get("w:val")
        elif name == "w:tag":
            self.tag = child.get("w:val")
        elif name == "w:id":
            self.id = int(child.get("w:val", "0"))
        elif name == "w:lock":
            try:
                self.lock = LockType(child.get("w:val"))
            except ValueError:
                logger.warning("Unknown content control lock '%s'", child.get("w:val"))
                self.properties.append(child)
        elif name == "w:temporary":
            self.temporary = child.get("w:val", "true") not in ("false", "0", "off")
        elif name == "w:showingPlcHdr":
            self.showing_placeholder = child.get("w:val", "true") not in ("false", "0", "off")
        elif name in _TYPE_ELEMENTS:
            self.control_type = _TYPE_ELEMENTS[name]
            self._read_type_element(child)
        else:
            self.properties.append(child)

    def _read_type_element(self, child: XmlNode) -> None:
        ctype = self.control_type
        if ctype == ControlType.PLAIN_TEXT:
            self.multiline = child.get("w:multiLine") in ("1", "true", "on")
        elif ctype in (ControlType.COMBO_BOX, ControlType.DROP_DOWN_LIST):
            self.last_value = child.get("w:lastValue")
            self.list_items = [
                ListItem(item.get("w:displayText", item.get("w:value", "")), item.get("w:value", ""))
                for item in child.find_all("w:listItem")
            ]
        elif ctype == ControlType.DATE_PICKER:
            self.full_date = child.get("w:fullDate")
            date_format = child.find("w:dateFormat")
            lid = child.find("w:lid")
            self.date_format = date_format.get("w:val") if date_format is not None else None
            if lid is not None:
                self.locale = lid.get("w:val", self.locale)
        elif ctype == ControlType.CHECKBOX:
            checked = child.find("w14:checked")
            self.checked = checked is not None and checked.get("w14:val") in ("1", "true")
        elif ctype == ControlType.BUILDING_BLOCK:
            gallery = child.find("w:docPartGallery")
            category = child.find("w:docPartCategory")
            self.building_block = BuildingBlock(
                gallery.get("w:val", "") if gallery is not None else "",
                category.get("w:val") if category is not None else None,
                child.find("w:docPartUnique") is not None,
            )

