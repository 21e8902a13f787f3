from __future__ import annotations

"""Numbering definitions: levels, abstract definitions and instances.

An abstract definition describes up to nine levels (0-8) of list formatting.
A numbering instance (``w:num``) points at one abstract definition by id and
may override the start value of individual levels; paragraphs reference
instances, never abstract definitions.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from wordforge.core.exceptions import NumberingValidationError
from wordforge.core.xml.element import XmlNode, w

logger = logging.getLogger(__name__)

__all__ = [
    "NumberFormat",
    "LevelAlignment",
    "LevelSuffix",
    "NumberingLevel",
    "AbstractNumbering",
    "NumberingInstance",
    "MAX_LEVEL",
    "standard_left_indent",
    "STANDARD_HANGING_INDENT",
]

MAX_LEVEL = 8
LEVEL_INDENT_STEP = 720
STANDARD_HANGING_INDENT = 360


def standard_left_indent(level: int) -> int:
    """Default left indent in twips for *level*: ``720 * (level + 1)``."""
    return LEVEL_INDENT_STEP * (level + 1)


class NumberFormat(str, Enum):
    """Values of ``w:numFmt/@w:val``."""

    DECIMAL = "decimal"
    UPPER_ROMAN = "upperRoman"
    LOWER_ROMAN = "lowerRoman"
    UPPER_LETTER = "upperLetter"
    LOWER_LETTER = "lowerLetter"
    ORDINAL = "ordinal"
    CARDINAL_TEXT = "cardinalText"
    ORDINAL_TEXT = "ordinalText"
    HEX = "hex"
    CHICAGO = "chicago"
    IDEOGRAPH_DIGITAL = "ideographDigital"
    JAPANESE_COUNTING = "japaneseCounting"
    AIUEO = "aiueo"
    IROHA = "iroha"
    DECIMAL_FULL_WIDTH = "decimalFullWidth"
    DECIMAL_HALF_WIDTH = "decimalHalfWidth"
    JAPANESE_LEGAL = "japaneseLegal"
    JAPANESE_DIGITAL_TEN_THOUSAND = "japaneseDigitalTenThousand"
    DECIMAL_ENCLOSED_CIRCLE = "decimalEnclosedCircle"
    DECIMAL_FULL_WIDTH2 = "decimalFullWidth2"
    AIUEO_FULL_WIDTH = "aiueoFullWidth"
    IROHA_FULL_WIDTH = "irohaFullWidth"
    DECIMAL_ZERO = "decimalZero"
    BULLET = "bullet"
    GANADA = "ganada"
    CHOSUNG = "chosung"
    DECIMAL_ENCLOSED_FULLSTOP = "decimalEnclosedFullstop"
    DECIMAL_ENCLOSED_PAREN = "decimalEnclosedParen"
    DECIMAL_ENCLOSED_CIRCLE_CHINESE = "decimalEnclosedCircleChinese"
    IDEOGRAPH_ENCLOSED_CIRCLE = "ideographEnclosedCircle"
    IDEOGRAPH_TRADITIONAL = "ideographTraditional"
    IDEOGRAPH_ZODIAC = "ideographZodiac"
    IDEOGRAPH_ZODIAC_TRADITIONAL = "ideographZodiacTraditional"
    TAIWANESE_COUNTING = "taiwaneseCounting"
    IDEOGRAPH_LEGAL_TRADITIONAL = "ideographLegalTraditional"
    TAIWANESE_COUNTING_THOUSAND = "taiwaneseCountingThousand"
    TAIWANESE_DIGITAL = "taiwaneseDigital"
    CHINESE_COUNTING = "chineseCounting"
    CHINESE_LEGAL_SIMPLIFIED = "chineseLegalSimplified"
    CHINESE_COUNTING_THOUSAND = "chineseCountingThousand"
    KOREAN_DIGITAL = "koreanDigital"
    KOREAN_COUNTING = "koreanCounting"
    KOREAN_LEGAL = "koreanLegal"
    KOREAN_DIGITAL2 = "koreanDigital2"
    VIETNAMESE_COUNTING = "vietnameseCounting"
    RUSSIAN_LOWER = "russianLower"
    RUSSIAN_UPPER = "russianUpper"
    NONE = "none"
    NUMBER_IN_DASH = "numberInDash"
    HEBREW1 = "hebrew1"
    HEBREW2 = "hebrew2"
    ARABIC_ALPHA = "arabicAlpha"
    ARABIC_ABJAD = "arabicAbjad"
    HINDI_VOWELS = "hindiVowels"
    HINDI_CONSONANTS = "hindiConsonants"
    HINDI_NUMBERS = "hindiNumbers"
    HINDI_COUNTING = "hindiCounting"
    THAI_LETTERS = "thaiLetters"
    THAI_NUMBERS = "thaiNumbers"
    THAI_COUNTING = "thaiCounting"
    BAHT_TEXT = "bahtText"
    DOLLAR_TEXT = "dollarText"
    CUSTOM = "custom"


class LevelAlignment(str, Enum):
    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"
    START = "start"
    END = "end"
    BOTH = "both"
    DISTRIBUTE = "distribute"


class LevelSuffix(str, Enum):
    TAB = "tab"
    SPACE = "space"
    NOTHING = "nothing"


# Default bullet glyphs paired with the fonts Word uses to draw them.
DEFAULT_BULLETS = ("\uf0b7", "o", "\uf0a7")
BULLET_FONTS = {"\uf0b7": "Symbol", "o": "Courier New", "\uf0a7": "Wingdings"}

_LVL_ORDER = [
    "w:start", "w:numFmt", "w:lvlRestart", "w:pStyle", "w:isLgl", "w:suff",
    "w:lvlText", "w:lvlPicBulletId", "w:legacy", "w:lvlJc", "w:pPr", "w:rPr",
]
_ABSTRACT_ORDER = ["w:nsid", "w:multiLevelType", "w:tmpl", "w:name", "w:styleLink", "w:numStyleLink", "w:lvl"]


def _coerce(enum_cls, value: Any, what: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        raise NumberingValidationError(f"Invalid {what}: {value!r}") from None


def _check_level(level: int) -> None:
    if not isinstance(level, int) or not 0 <= level <= MAX_LEVEL:
        raise NumberingValidationError(f"Level must be between 0 and {MAX_LEVEL}, got {level!r}")


def _int_attr(node: Optional[XmlNode], attr: str = "w:val") -> Optional[int]:
    if node is None:
        return None
    value = node.get(attr)
    try:
        return int(value) if value is not None else None
    except ValueError:
        return None


def _enum_value(node: XmlNode, enum_cls) -> bool:
    """True when *node* is a plain ``w:val`` the enum can carry."""
    return set(node.attributes) == {"w:val"} and node.get("w:val") in enum_cls._value2member_map_


def _sort_children(nodes: List[XmlNode], order: List[str]) -> List[XmlNode]:
    rank = {name: i for i, name in enumerate(order)}
    return sorted(nodes, key=lambda n: rank.get(n.name, len(order)))


# ---------------------------------------------------------------------------
# Level
# ---------------------------------------------------------------------------


@dataclass
class NumberingLevel:
    """One level (``w:lvl``) of an abstract numbering definition.

    Indents are twips; ``font_size`` is in half-points. ``left_indent``
    defaults to ``720 * (level + 1)`` and ``hanging_indent`` to 360.
    ``complex_font_size`` (``w:szCs``) follows ``font_size`` unless set.
    """

    level: int
    format: NumberFormat = NumberFormat.DECIMAL
    text: str = ""
    start: int = 1
    alignment: LevelAlignment = LevelAlignment.LEFT
    left_indent: Optional[int] = None
    hanging_indent: int = STANDARD_HANGING_INDENT
    font: Optional[str] = None
    font_size: Optional[int] = None
    suffix: LevelSuffix = LevelSuffix.TAB
    is_legal: bool = False
    attributes: Dict[str, Any] = field(default_factory=dict)
    extra: List[XmlNode] = field(default_factory=list)
    ppr_extra: List[XmlNode] = field(default_factory=list)
    rpr_extra: List[XmlNode] = field(default_factory=list)
    complex_font_size: Optional[int] = None
    # w:ind attributes besides left and hanging (firstLine, right, ...)
    indent_attributes: Dict[str, Any] = field(default_factory=dict)
    # loaded numFmt/lvlJc elements the enums cannot express, written back as is
    verbatim: Dict[str, XmlNode] = field(default_factory=dict)

    def __post_init__(self) -> None:
        _check_level(self.level)
        self.format = _coerce(NumberFormat, self.format, "number format")
        self.alignment = _coerce(LevelAlignment, self.alignment, "level alignment")
        self.suffix = _coerce(LevelSuffix, self.suffix, "level suffix")
        if self.left_indent is None:
            self.left_indent = standard_left_indent(self.level)
        self.set_indentation(self.left_indent, self.hanging_indent)
        self.set_start(self.start)
        if not self.text:
            self.text = f"%{self.level + 1}."

    # ------------------------------------------------------------------
    # Validated setters
    # ------------------------------------------------------------------
    def set_indentation(self, left: int, hanging: Optional[int] = None) -> None:
        if left < 0:
            raise NumberingValidationError("Left indent must be non-negative")
        if hanging is not None and hanging < 0:
            raise NumberingValidationError("Hanging indent must be non-negative")
        self.left_indent = left
        if hanging is not None:
            self.hanging_indent = hanging

    def set_start(self, start: int) -> None:
        if start < 0:
            raise NumberingValidationError("Start value must be non-negative")
        self.start = start

    def set_format(self, fmt: Any, text: Optional[str] = None) -> None:
        self.format = _coerce(NumberFormat, fmt, "number format")
        self.verbatim.pop("w:numFmt", None)
        if text is not None:
            self.text = text

    def set_alignment(self, alignment: Any) -> None:
        self.alignment = _coerce(LevelAlignment, alignment, "level alignment")
        self.verbatim.pop("w:lvlJc", None)

    def reset_indentation(self) -> None:
        """Restore the standard indentation for this level."""
        self.left_indent = standard_left_indent(self.level)
        self.hanging_indent = STANDARD_HANGING_INDENT

    @property
    def is_bullet(self) -> bool:
        return self.format is NumberFormat.BULLET

    # ------------------------------------------------------------------
    # Factories
    # ------------------------------------------------------------------
    @classmethod
    def bullet(cls, level: int, char: Optional[str] = None, font: Optional[str] = None) -> "NumberingLevel":
        char = char or DEFAULT_BULLETS[level % len(DEFAULT_BULLETS)]
        return cls(level, NumberFormat.BULLET, char, font=font or BULLET_FONTS.get(char, "Symbol"))

    @classmethod
    def numbered(cls, level: int, fmt: Any = NumberFormat.DECIMAL, text: Optional[str] = None,
                 start: int = 1) -> "NumberingLevel":
        return cls(level, fmt, text or f"%{level + 1}.", start)

    @classmethod
    def decimal(cls, level: int, start: int = 1) -> "NumberingLevel":
        return cls.numbered(level, NumberFormat.DECIMAL, start=start)

    @classmethod
    def lower_letter(cls, level: int, start: int = 1) -> "NumberingLevel":
        return cls.numbered(level, NumberFormat.LOWER_LETTER, start=start)

    @classmethod
    def upper_letter(cls, level: int, start: int = 1) -> "NumberingLevel":
        return cls.numbered(level, NumberFormat.UPPER_LETTER, start=start)

    @classmethod
    def lower_roman(cls, level: int, start: int = 1) -> "NumberingLevel":
        return cls.numbered(level, NumberFormat.LOWER_ROMAN, start=start)

    @classmethod
    def upper_roman(cls, level: int, start: int = 1) -> "NumberingLevel":
        return cls.numbered(level, NumberFormat.UPPER_ROMAN, start=start)

    # ------------------------------------------------------------------
    # XML
    # ------------------------------------------------------------------
    def to_xml(self) -> XmlNode:
        attrs: Dict[str, Any] = {"w:ilvl": self.level}
        attrs.update(self.attributes)
        children = [
            w("start", {"val": self.start}),
            w("numFmt", {"val": self.format.value}),
            w("suff", {"val": self.suffix.value}),
            w("lvlText", {"val": self.text}),
            w("lvlJc", {"val": self.alignment.value}),
        ]
        children = [self.verbatim[c.name].copy() if c.name in self.verbatim else c for c in children]
        if self.is_legal:
            children.append(w("isLgl"))
        ind = w("ind", {"left": self.left_indent, "hanging": self.hanging_indent})
        ind.attributes.update(self.indent_attributes)
        children.append(w("pPr", children=[n.copy() for n in self.ppr_extra] + [ind]))
        rpr_children = [n.copy() for n in self.rpr_extra]
        if self.font:
            rpr_children.insert(0, w("rFonts", {"ascii": self.font, "hAnsi": self.font, "hint": "default"}))
        if self.font_size is not None:
            rpr_children.append(w("sz", {"val": self.font_size}))
        complex_size = self.complex_font_size if self.complex_font_size is not None else self.font_size
        if complex_size is not None:
            rpr_children.append(w("szCs", {"val": complex_size}))
        if rpr_children:
            children.append(w("rPr", children=rpr_children))
        children.extend(n.copy() for n in self.extra)
        return XmlNode("w:lvl", attrs, _sort_children(children, _LVL_ORDER))

    @classmethod
    def from_xml(cls, node: XmlNode) -> "NumberingLevel":
        level = _int_attr(node, "w:ilvl") or 0
        attributes = {k: v for k, v in node.attributes.items() if k != "w:ilvl"}
        kwargs: Dict[str, Any] = {}
        extra: List[XmlNode] = []
        ppr_extra: List[XmlNode] = []
        rpr_extra: List[XmlNode] = []
        verbatim: Dict[str, XmlNode] = {}
        for child in node.element_children():
            if child.name == "w:start":
                kwargs["start"] = _int_attr(child) or 0
            elif child.name == "w:numFmt" and _enum_value(child, NumberFormat):
                kwargs["format"] = child.get("w:val")
            elif child.name == "w:lvlJc" and _enum_value(child, LevelAlignment):
                kwargs["alignment"] = child.get("w:val")
            elif child.name in ("w:numFmt", "w:lvlJc"):
                verbatim[child.name] = child
            elif child.name == "w:suff":
                kwargs["suffix"] = child.get("w:val", "tab")
            elif child.name == "w:lvlText":
                kwargs["text"] = child.get("w:val", "")
            elif child.name == "w:isLgl":
                kwargs["is_legal"] = child.get("w:val", "true") not in ("0", "false")
            elif child.name == "w:pPr":
                for prop in child.element_children():
                    if prop.name == "w:ind":
                        left = _int_attr(prop, "w:left")
                        if left is None:
                            left = _int_attr(prop, "w:start")
                        if left is not None:
                            kwargs["left_indent"] = max(left, 0)
                        hanging = _int_attr(prop, "w:hanging")
                        if hanging is not None:
                            kwargs["hanging_indent"] = max(hanging, 0)
                        kwargs["indent_attributes"] = {
                            k: v for k, v in prop.attributes.items()
                            if k not in ("w:left", "w:start", "w:hanging")
                        }
                    else:
                        ppr_extra.append(prop)
            elif child.name == "w:rPr":
                for prop in child.element_children():
                    if prop.name == "w:rFonts" and prop.get("w:ascii"):
                        kwargs["font"] = prop.get("w:ascii")
                    elif prop.name == "w:sz" and _int_attr(prop) is not None:
                        kwargs["font_size"] = _int_attr(prop)
                    elif prop.name == "w:szCs" and _int_attr(prop) is not None:
                        kwargs["complex_font_size"] = _int_attr(prop)
                    else:
                        rpr_extra.append(prop)
            else:
                extra.append(child)
        if kwargs.get("complex_font_size") == kwargs.get("font_size"):
            kwargs.pop("complex_font_size", None)
        if "text" in kwargs and kwargs["text"] == "":
            # an explicitly empty level text must stay empty
            lvl = cls(level, attributes=attributes, extra=extra, ppr_extra=ppr_extra,
                      rpr_extra=rpr_extra, verbatim=verbatim, **{k: v for k, v in kwargs.items() if k != "text"})
            lvl.text = ""
            return lvl
        return cls(level, attributes=attributes, extra=extra, ppr_extra=ppr_extra,
                   rpr_extra=rpr_extra, verbatim=verbatim, **kwargs)


# ---------------------------------------------------------------------------
# Abstract definition
# ---------------------------------------------------------------------------


@dataclass
class AbstractNumbering:
    """An abstract numbering definition (``w:abstractNum``)."""

    abstract_num_id: int
    levels: Dict[int, NumberingLevel] = field(default_factory=dict)
    name: Optional[str] = None
    multi_level_type: str = "hybridMultilevel"
    attributes: Dict[str, Any] = field(default_factory=dict)
    extra: List[XmlNode] = field(default_factory=list)

    def add_level(self, level: NumberingLevel) -> NumberingLevel:
        self.levels[level.level] = level
        return level

    def get_level(self, level: int) -> Optional[NumberingLevel]:
        return self.levels.get(level)

    def remove_level(self, level: int) -> bool:
        return self.levels.pop(level, None) is not None

    def get_levels(self) -> List[NumberingLevel]:
        return [self.levels[i] for i in sorted(self.levels)]

    @classmethod
    def bullet_list(cls, abstract_num_id: int, levels: int = 9,
                    bullets: Optional[Sequence[str]] = None) -> "AbstractNumbering":
        _check_count(levels)
        definition = cls(abstract_num_id)
        for i in range(levels):
            char = bullets[i % len(bullets)] if bullets else None
            definition.add_level(NumberingLevel.bullet(i, char))
        return definition

    @classmethod
    def numbered_list(cls, abstract_num_id: int, levels: int = 9,
                      formats: Optional[Sequence[Any]] = None) -> "AbstractNumbering":
        """Decimal / lowerLetter / lowerRoman, repeating, unless *formats* is given."""
        _check_count(levels)
        cycle = list(formats or (NumberFormat.DECIMAL, NumberFormat.LOWER_LETTER, NumberFormat.LOWER_ROMAN))
        definition = cls(abstract_num_id)
        for i in range(levels):
            definition.add_level(NumberingLevel.numbered(i, cycle[i % len(cycle)]))
        return definition

    @classmethod
    def outline_list(cls, abstract_num_id: int, levels: int = 9) -> "AbstractNumbering":
        cycle = (NumberFormat.UPPER_ROMAN, NumberFormat.UPPER_LETTER, NumberFormat.DECIMAL,
                 NumberFormat.LOWER_LETTER, NumberFormat.LOWER_ROMAN)
        definition = cls.numbered_list(abstract_num_id, levels, cycle)
        definition.multi_level_type = "multilevel"
        return definition

    @classmethod
    def multi_level_list(cls, abstract_num_id: int, levels: int = 9) -> "AbstractNumbering":
        """Legal style numbering: ``1.``, ``1.1.``, ``1.1.1.`` ..."""
        _check_count(levels)
        definition = cls(abstract_num_id, multi_level_type="multilevel")
        for i in range(levels):
            text = "".join(f"%{n + 1}." for n in range(i + 1))
            definition.add_level(NumberingLevel.numbered(i, NumberFormat.DECIMAL, text))
        return definition

    def to_xml(self) -> XmlNode:
        attrs: Dict[str, Any] = {"w:abstractNumId": self.abstract_num_id}
        attrs.update(self.attributes)
        children = [w("multiLevelType", {"val": self.multi_level_type})]
        if self.name:
            children.append(w("name", {"val": self.name}))
        children.extend(n.copy() for n in self.extra)
        children.extend(level.to_xml() for level in self.get_levels())
        return XmlNode("w:abstractNum", attrs, _sort_children(children, _ABSTRACT_ORDER))

    @classmethod
    def from_xml(cls, node: XmlNode) -> "AbstractNumbering":
        definition = cls(
            abstract_num_id=_int_attr(node, "w:abstractNumId") or 0,
            attributes={k: v for k, v in node.attributes.items() if k != "w:abstractNumId"},
        )
        for child in node.element_children():
            if child.name == "w:lvl":
                definition.add_level(NumberingLevel.from_xml(child))
            elif child.name == "w:multiLevelType":
                definition.multi_level_type = child.get("w:val", "hybridMultilevel")
            elif child.name == "w:name":
                definition.name = child.get("w:val")
            else:
                definition.extra.append(child)
        return definition


def _check_count(levels: int) -> None:
    if not 1 <= levels <= MAX_LEVEL + 1:
        raise NumberingValidationError(f"Level count must be between 1 and {MAX_LEVEL + 1}, got {levels}")


# ---------------------------------------------------------------------------
# Instance
# ---------------------------------------------------------------------------


@dataclass
class NumberingInstance:
    """A numbering instance (``w:num``) bound to an abstract definition."""

    num_id: int
    abstract_num_id: int
    start_overrides: Dict[int, int] = field(default_factory=dict)
    attributes: Dict[str, Any] = field(default_factory=dict)
    extra: List[XmlNode] = field(default_factory=list)

    def set_start_override(self, level: int, start: int) -> None:
        _check_level(level)
        if start < 0:
            raise NumberingValidationError("Start value must be non-negative")
        self.start_overrides[level] = start

    def clear_start_override(self, level: int) -> None:
        self.start_overrides.pop(level, None)

    def to_xml(self) -> XmlNode:
        attrs: Dict[str, Any] = {"w:numId": self.num_id}
        attrs.update(self.attributes)
        node = XmlNode("w:num", attrs, [w("abstractNumId", {"val": self.abstract_num_id})])
        for level in sorted(self.start_overrides):
            node.append(w("lvlOverride", {"ilvl": level},
                          [w("startOverride", {"val": self.start_overrides[level]})]))
        node.extend(n.copy() for n in self.extra)
        return node

    @classmethod
    def from_xml(cls, node: XmlNode) -> "NumberingInstance":
        instance = cls(
            num_id=_int_attr(node, "w:numId") or 0,
            abstract_num_id=_int_attr(node.find("w:abstractNumId")) or 0,
            attributes={k: v for k, v in node.attributes.items() if k != "w:numId"},
        )
        for child in node.element_children():
            if child.name == "w:abstractNumId":
                continue
            start = child.find("w:startOverride") if child.name == "w:lvlOverride" else None
            if start is not None and len(child.element_children()) == 1:
                instance.start_overrides[_int_attr(child, "w:ilvl") or 0] = _int_attr(start) or 0
            else:
                instance.extra.append(child)
        return instance
