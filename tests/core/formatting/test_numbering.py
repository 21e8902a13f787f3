import pytest

from wordforge.core.exceptions import NumberingValidationError
from wordforge.core.formatting.numbering import (
    AbstractNumbering,
    LevelAlignment,
    NumberFormat,
    NumberingInstance,
    NumberingLevel,
)
from wordforge.core.xml import NAMESPACES, parse

W = NAMESPACES["w"]


class TestNumberingLevel:
    """Test cases for a single list level."""

    def test_defaults(self):
        """Test default indentation and level text."""
        level = NumberingLevel(2)
        assert level.left_indent == 2160
        assert level.hanging_indent == 360
        assert level.text == "%3."
        assert level.format is NumberFormat.DECIMAL

    def test_validation(self):
        """Test that out-of-range values are rejected."""
        with pytest.raises(NumberingValidationError):
            NumberingLevel(9)
        with pytest.raises(NumberingValidationError):
            NumberingLevel(0, start=-1)
        with pytest.raises(NumberingValidationError):
            NumberingLevel(0, format="notAFormat")
        level = NumberingLevel(0)
        with pytest.raises(NumberingValidationError):
            level.set_indentation(-10)
        with pytest.raises(NumberingValidationError):
            level.set_alignment("sideways")

    def test_string_values_coerced(self):
        """Test that enum literals are accepted as strings."""
        level = NumberingLevel(1, format="lowerRoman", alignment="right")
        assert level.format is NumberFormat.LOWER_ROMAN
        assert level.alignment is LevelAlignment.RIGHT

    def test_bullet_factory(self):
        """Test bullet levels pick a glyph and font."""
        level = NumberingLevel.bullet(0)
        assert level.is_bullet
        assert level.font == "Symbol"
        assert NumberingLevel.bullet(1).font == "Courier New"

    def test_child_order(self):
        """Test that level children follow schema order."""
        names = [c.name for c in NumberingLevel.decimal(0).to_xml().element_children()]
        assert names == ["w:start", "w:numFmt", "w:suff", "w:lvlText", "w:lvlJc", "w:pPr"]

    def test_bullet_round_trip(self):
        """Test that a bullet level survives encoding and decoding."""
        level = NumberingLevel.bullet(3)
        level.font_size = 20
        decoded = NumberingLevel.from_xml(level.to_xml())
        assert decoded == level

    def test_unknown_children_preserved(self):
        """Test that unmodelled level children come back verbatim."""
        node = NumberingLevel.decimal(0).to_xml()
        node.append(parse('<w:lvlRestart xmlns:w="http://schemas.openxmlformats.org/'
                          'wordprocessingml/2006/main" w:val="0"/>'))
        decoded = NumberingLevel.from_xml(node)
        assert [n.local_name for n in decoded.extra] == ["lvlRestart"]
        names = [c.name for c in decoded.to_xml().element_children()]
        assert names.index("w:lvlRestart") == names.index("w:numFmt") + 1

    def test_indent_and_font_sizes_kept(self):
        """Test that extra indent attributes and a distinct szCs are written back."""
        node = parse(
            f'<w:lvl xmlns:w="{W}" w:ilvl="0"><w:numFmt w:val="decimal"/>'
            '<w:pPr><w:ind w:left="720" w:right="144" w:firstLine="0" w:hanging="360"/></w:pPr>'
            '<w:rPr><w:sz w:val="24"/><w:szCs w:val="20"/></w:rPr></w:lvl>'
        )
        level = NumberingLevel.from_xml(node)
        assert level.left_indent == 720
        assert level.indent_attributes == {"w:right": "144", "w:firstLine": "0"}
        assert level.complex_font_size == 20
        assert level.rpr_extra == []
        out = level.to_xml()
        ind = out.find_path("w:pPr", "w:ind")
        assert ind.get("w:right") == "144"
        assert ind.get("w:firstLine") == "0"
        assert [n.get("w:val") for n in out.find("w:rPr").find_all("w:szCs")] == ["20"]

    def test_unknown_format_written_once(self):
        """Test that a number format outside the enum is kept as read, without a duplicate."""
        node = parse(
            f'<w:lvl xmlns:w="{W}" w:ilvl="1"><w:start w:val="1"/><w:numFmt w:val="decimalZero"/>'
            '<w:lvlText w:val="%2."/><w:lvlJc w:val="left"/></w:lvl>'
        )
        level = NumberingLevel.from_xml(node)
        assert level.extra == []
        formats = level.to_xml().find_all("w:numFmt")
        assert [n.get("w:val") for n in formats] == ["decimalZero"]
        level.set_format(NumberFormat.LOWER_ROMAN)
        assert [n.get("w:val") for n in level.to_xml().find_all("w:numFmt")] == ["lowerRoman"]

    def test_custom_format_attributes_kept(self):
        """Test that a numFmt with a format code survives."""
        node = parse(
            f'<w:lvl xmlns:w="{W}" w:ilvl="0"><w:numFmt w:val="custom" w:format="001, 002, 003, ..."/>'
            '<w:lvlJc w:val="left"/></w:lvl>'
        )
        out = NumberingLevel.from_xml(node).to_xml()
        formats = out.find_all("w:numFmt")
        assert len(formats) == 1
        assert formats[0].get("w:format") == "001, 002, 003, ..."


class TestAbstractNumbering:
    """Test cases for abstract definitions."""

    def test_numbered_list_cycles_formats(self):
        """Test the decimal / lowerLetter / lowerRoman cycle."""
        definition = AbstractNumbering.numbered_list(0)
        formats = [lvl.format for lvl in definition.get_levels()]
        assert formats[:4] == [NumberFormat.DECIMAL, NumberFormat.LOWER_LETTER,
                               NumberFormat.LOWER_ROMAN, NumberFormat.DECIMAL]
        assert len(formats) == 9

    def test_multi_level_text(self):
        """Test legal numbering level text."""
        definition = AbstractNumbering.multi_level_list(4, levels=3)
        assert definition.get_level(2).text == "%1.%2.%3."
        assert definition.multi_level_type == "multilevel"

    def test_outline_list(self):
        """Test the outline format cycle."""
        definition = AbstractNumbering.outline_list(1, levels=2)
        assert definition.get_level(0).format is NumberFormat.UPPER_ROMAN
        assert definition.get_level(1).format is NumberFormat.UPPER_LETTER

    def test_level_count_validated(self):
        """Test that 0 or more than 9 levels are rejected."""
        with pytest.raises(NumberingValidationError):
            AbstractNumbering.bullet_list(0, levels=10)
        with pytest.raises(NumberingValidationError):
            AbstractNumbering.numbered_list(0, levels=0)

    def test_xml(self):
        """Test the abstractNum element."""
        definition = AbstractNumbering.bullet_list(3, levels=2)
        definition.name = "Bullets"
        node = definition.to_xml()
        assert node.get("w:abstractNumId") == "3"
        assert [c.name for c in node.element_children()] == [
            "w:multiLevelType", "w:name", "w:lvl", "w:lvl"
        ]
        decoded = AbstractNumbering.from_xml(node)
        assert decoded.name == "Bullets"
        assert sorted(decoded.levels) == [0, 1]


class TestNumberingInstance:
    """Test cases for numbering instances."""

    def test_start_override_xml(self):
        """Test the lvlOverride encoding."""
        instance = NumberingInstance(5, 2)
        instance.set_start_override(1, 4)
        node = instance.to_xml()
        assert node.get("w:numId") == "5"
        assert node.find("w:abstractNumId").get("w:val") == "2"
        override = node.find("w:lvlOverride")
        assert override.get("w:ilvl") == "1"
        assert override.find("w:startOverride").get("w:val") == "4"

        decoded = NumberingInstance.from_xml(node)
        assert decoded.start_overrides == {1: 4}
        assert decoded.abstract_num_id == 2

    def test_start_override_validated(self):
        """Test invalid overrides."""
        instance = NumberingInstance(1, 0)
        with pytest.raises(NumberingValidationError):
            instance.set_start_override(9, 1)
        with pytest.raises(NumberingValidationError):
            instance.set_start_override(0, -1)
