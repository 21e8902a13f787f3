import pytest

from wordforge.core.elements.fields import (
    FIELD_STAGE_ORDER,
    PLACEHOLDER_TEXT,
    ComplexField,
    FieldStage,
    TableOfContents,
    decode_complex_field,
    validate_stage_sequence,
)
from wordforge.core.exceptions import FieldValidationError, IncompleteFieldError
from wordforge.core.models.content import Paragraph, Run
from wordforge.core.xml import build, parse, w


def _marker(kind):
    return Run(content=[w("fldChar", {"fldCharType": kind})])


def _instr(text):
    return Run(content=[w("instrText", children=[text])])


class TestStageSequence:
    """Test cases for field stage validation."""

    def test_full_sequence(self):
        """Test that the five stages in order pass."""
        validate_stage_sequence(FIELD_STAGE_ORDER)
        validate_stage_sequence(["begin", "instruction", "separate", "result", "end"])

    def test_missing_stage(self):
        """Test that a missing separate marker is named."""
        with pytest.raises(IncompleteFieldError) as excinfo:
            validate_stage_sequence([FieldStage.BEGIN, FieldStage.INSTRUCTION,
                                     FieldStage.RESULT, FieldStage.END])
        assert "missing separate" in str(excinfo.value)

    def test_out_of_order(self):
        """Test that swapped stages are rejected."""
        with pytest.raises(IncompleteFieldError) as excinfo:
            validate_stage_sequence([FieldStage.BEGIN, FieldStage.SEPARATE,
                                     FieldStage.INSTRUCTION, FieldStage.RESULT, FieldStage.END])
        assert "out of order" in str(excinfo.value)


class TestComplexField:
    """Test cases for encoding and decoding complex fields."""

    def test_encode_with_placeholder(self):
        """Test the five runs written for a field without a cached result."""
        runs = ComplexField("PAGE", dirty=True).to_xml()
        assert len(runs) == 5
        assert runs[0].find("w:fldChar").get("w:fldCharType") == "begin"
        assert runs[0].find("w:fldChar").get("w:dirty") == "true"
        instr = runs[1].find("w:instrText")
        assert instr.text_content() == " PAGE "
        assert instr.get("xml:space") == "preserve"
        assert runs[3].find("w:t").text_content() == PLACEHOLDER_TEXT
        assert runs[4].find("w:fldChar").get("w:fldCharType") == "end"

    def test_empty_instruction(self):
        """Test that a field needs an instruction."""
        with pytest.raises(IncompleteFieldError):
            ComplexField("   ").to_xml()

    def test_multiple_result_runs(self):
        """Test that several cached result runs are one result stage."""
        field = ComplexField("NUMPAGES", [Run.from_text("1"), Run.from_text("2")])
        assert len(field.to_xml()) == 6

    def test_round_trip_in_paragraph(self):
        """Test decoding a field written inside a paragraph."""
        paragraph = Paragraph(content=[ComplexField("DATE \\@ \"yyyy\"", [Run.from_text("2024")])])
        decoded = Paragraph.from_xml(parse(build(paragraph.to_xml())))
        field = decode_complex_field(decoded.runs)
        assert field.instruction == 'DATE \\@ "yyyy"'
        assert [r.text for r in field.result_runs] == ["2024"]
        assert field.dirty is False

    def test_decode_split_instruction(self):
        """Test that instruction text across several runs is joined."""
        field = decode_complex_field([
            _marker("begin"), _instr(" HYPER"), _instr("LINK x "), _marker("separate"), _marker("end"),
        ])
        assert field.instruction == "HYPERLINK x"
        assert field.result_runs == []

    def test_decode_nested_field(self):
        """Test that a field inside the cached result stays in the result."""
        runs = [
            _marker("begin"), _instr("IF 1 = 1 "), _marker("separate"),
            _marker("begin"), _instr("PAGE"), _marker("separate"), Run.from_text("3"), _marker("end"),
            _marker("end"),
            Run.from_text("after"),
        ]
        field = decode_complex_field(runs)
        assert field.instruction == "IF 1 = 1"
        assert len(field.result_runs) == 5

    @pytest.mark.parametrize("runs", [
        [],
        [_instr("PAGE")],
        [_marker("begin"), _instr("PAGE"), _marker("end")],
        [_marker("begin"), _instr("PAGE"), _marker("separate"), Run.from_text("1")],
        [_marker("begin"), _marker("separate"), _marker("end")],
    ])
    def test_decode_incomplete(self, runs):
        """Test that every missing marker or instruction is reported."""
        with pytest.raises(IncompleteFieldError):
            decode_complex_field(runs)


class TestTableOfContents:
    """Test cases for the TOC field."""

    def test_default_instruction(self):
        """Test the standard three-level instruction."""
        toc = TableOfContents()
        assert toc.build_field_instruction() == 'TOC \\o "1-3" \\* MERGEFORMAT'

    def test_switches(self):
        """Test hyperlinks, page numbers, leaders and custom styles."""
        toc = TableOfContents(levels=2, use_hyperlinks=True, show_page_numbers=False, tab_leader="hyphen")
        toc.set_include_styles(["Heading 1", "Title"])
        assert toc.build_field_instruction() == (
            'TOC \\t "Heading 1,1,Title,1" \\h \\n \\p "-" \\* MERGEFORMAT'
        )

    def test_validation(self):
        """Test levels and leader validation."""
        with pytest.raises(FieldValidationError):
            TableOfContents(levels=10)
        with pytest.raises(FieldValidationError):
            TableOfContents().set_tab_leader("wavy")

    def test_presets(self):
        """Test the preset constructors."""
        assert TableOfContents.standard().levels == 3
        assert TableOfContents.simple().title == "Contents"
        assert TableOfContents.detailed().levels == 4
        linked = TableOfContents.hyperlinked()
        assert linked.use_hyperlinks and not linked.show_page_numbers

    def test_paragraphs(self):
        """Test the heading paragraph and the dirty field paragraph."""
        title, body = TableOfContents(title="Contents").to_xml()
        assert title.find_path("w:pPr", "w:pStyle").get("w:val") == "TOCHeading"
        begin = body.find("w:r").find("w:fldChar")
        assert begin.get("w:dirty") == "true"

    def test_untitled(self):
        """Test that an empty title writes only the field paragraph."""
        assert len(TableOfContents(title="").to_xml()) == 1

    def test_parse_instruction(self):
        """Test reading switches back from an instruction."""
        toc = TableOfContents.from_instruction('TOC \\o "1-5" \\h \\n \\p "_" \\z \\* MERGEFORMAT')
        assert toc.levels == 5
        assert toc.use_hyperlinks
        assert not toc.show_page_numbers
        assert toc.tab_leader == "underscore"
        assert toc.field_switches == "\\z"

    def test_parse_round_trip(self):
        """Test that a built instruction parses to the same settings."""
        original = TableOfContents(use_hyperlinks=True, tab_leader="none")
        original.set_include_styles(["Heading 1", "Appendix"])
        parsed = TableOfContents.from_instruction(original.build_field_instruction())
        assert parsed.include_styles == ["Heading 1", "Appendix"]
        assert parsed.tab_leader == "none"
        assert parsed.build_field_instruction() == original.build_field_instruction()

    def test_not_a_toc(self):
        """Test that other field instructions are rejected."""
        with pytest.raises(FieldValidationError):
            TableOfContents.from_instruction("PAGE")
