import pytest

from wordforge.core.context import DocumentContext
from wordforge.core.elements.images import Image, ImageManagerOptions
from wordforge.core.elements.sdt import StructuredDocumentTag
from wordforge.core.exceptions import ImageCountLimitError
from wordforge.core.formatting.styles import Style, StyleType
from wordforge.core.models.content import Paragraph
from wordforge.core.registry import RelationshipType
from wordforge.core.xml import NAMESPACES, el, w


class TestDocumentContext:
    """Test cases for the in-memory document."""

    def test_create_empty(self, context):
        """Test the starting state of a new document."""
        assert context.body == []
        assert context.numbering.is_empty()
        assert context.comments.is_empty()
        assert context.styles.has_style("Normal")
        assert context.section_properties.name == "w:sectPr"

    def test_options_from_config(self, isolated_config):
        """Test that quotas come from the config files by default."""
        (isolated_config / "default_limits.yml").write_text("images:\n  max_image_count: 3\n")
        assert DocumentContext().images.options.max_image_count == 3

    def test_content_control_ids(self, context):
        """Test that controls and nested controls get ids on insertion."""
        inner = StructuredDocumentTag.create_plain_text("x")
        outer = StructuredDocumentTag.create_rich_text([inner])
        context.add_body_element(outer)
        assert (outer.id, inner.id) == (1, 2)
        kept = StructuredDocumentTag.create_plain_text("y")
        kept.id = 10
        context.add_body_element(kept)
        fresh = context.add_body_element(StructuredDocumentTag.create_plain_text("z"))
        assert fresh.id == 11

    def test_add_heading_adds_style(self, context):
        """Test that missing heading styles are created on demand."""
        paragraph = context.add_heading("Intro", level=3)
        assert paragraph.style_id == "Heading3"
        assert context.styles.has_style("Heading3")

    def test_add_image(self, context, png_bytes):
        """Test image registration and its relationship."""
        image = Image(png_bytes)
        inline = context.add_image(image)
        rel = context.relationships.get(image.relationship_id)
        assert rel.rel_type == RelationshipType.IMAGE
        assert rel.target == "media/image1.png"
        assert context.body[0].content == [inline]
        again = context.add_image(image, context.add_paragraph())
        assert again.image is image
        assert len(context.relationships) == 1

    def test_add_image_over_quota(self, png_bytes):
        """Test that a refused image leaves no relationship behind."""
        context = DocumentContext.create_empty(ImageManagerOptions(max_image_count=1))
        context.add_image(Image(png_bytes))
        with pytest.raises(ImageCountLimitError):
            context.add_image(Image(png_bytes))
        assert len(context.relationships) == 1
        assert len(context.body) == 1

    def test_add_comment(self, context):
        """Test anchoring a comment to a paragraph."""
        paragraph = context.add_paragraph("Reviewed text")
        comment = context.add_comment(paragraph, "Ada Lovelace", "Fine")
        assert comment.id == 0
        assert paragraph.content[0].name == "w:commentRangeStart"

    def test_add_table_of_contents(self, context):
        """Test the heading and field paragraphs."""
        context.styles.remove_style("TOCHeading")
        context.add_table_of_contents()
        assert len(context.body) == 2
        assert context.body[0].style_id == "TOCHeading"
        assert context.styles.has_style("TOCHeading")

    def test_used_numbering_ids(self, context):
        """Test numbering references from paragraphs, tables and raw nodes."""
        first = context.numbering.create_bullet_list()
        second = context.numbering.create_numbered_list()
        table = context.add_table(1, 1)
        table.get_cell(0, 0).content.append(Paragraph(num_id=first))
        raw = w("p", children=[w("pPr", children=[w("numPr", children=[w("numId", {"val": second})])])])
        context.add_paragraph().content.append(w("ins", children=[raw]))
        context.add_list_item("zero means none", 0)
        assert context.used_numbering_ids() == {first, second}

    def test_used_style_ids(self, context):
        """Test style references from paragraphs, runs and tables."""
        context.add_paragraph("p", "Heading1")
        context.add_table(1, 1, style_id="TableGrid")
        context.add_paragraph().content.append(el("w:r", children=[w("rPr", children=[w("rStyle", {"val": "Strong"})])]))
        assert context.used_style_ids() >= {"Heading1", "TableGrid", "Strong"}

    def test_cleanup(self, context):
        """Test that unreferenced lists and styles are dropped."""
        used = context.numbering.create_bullet_list()
        context.numbering.create_numbered_list()
        context.add_list_item("item", used)
        removed = context.cleanup()
        assert removed["instances_removed"] == 1
        assert removed["abstracts_removed"] == 1
        assert removed["styles_removed"] == 2
        assert context.styles.has_style("ListParagraph")
        assert not context.styles.has_style("TOCHeading")

    def test_cleanup_keeps_header_references(self, context):
        """Test that a list and style used only in a preserved header survive cleanup."""
        num_id = context.numbering.create_bullet_list()
        context.styles.add_style(Style("Header", "header"))
        context.preserved_parts["word/header1.xml"] = (
            f'<w:hdr xmlns:w="{NAMESPACES["w"]}"><w:p><w:pPr><w:pStyle w:val="Header"/>'
            f'<w:numPr><w:ilvl w:val="0"/><w:numId w:val="{num_id}"/></w:numPr></w:pPr></w:p></w:hdr>'
        ).encode()
        context.preserved_parts["word/settings.xml"] = (
            f'<w:settings xmlns:w="{NAMESPACES["w"]}"><w:pStyle w:val="Ignored"/></w:settings>'
        ).encode()
        assert [name for name, _ in context.iter_story_parts()] == ["word/header1.xml"]
        removed = context.cleanup()
        assert removed["instances_removed"] == 0
        assert context.numbering.has_numbering_instance(num_id)
        assert context.styles.has_style("Header")

    def test_cleanup_keeps_styles_named_by_lists(self, context):
        """Test that styles linked from list definitions survive cleanup."""
        num_id = context.numbering.create_bullet_list()
        context.add_list_item("item", num_id)
        instance = context.numbering.get_numbering_instance(num_id)
        definition = context.numbering.get_abstract_numbering(instance.abstract_num_id)
        definition.extra.append(w("styleLink", {"val": "BulletList"}))
        definition.get_level(0).extra.append(w("pStyle", {"val": "ListBullet"}))
        context.styles.add_style(Style("BulletList", "Bullet List", StyleType.NUMBERING))
        context.styles.add_style(Style("ListBullet", "List Bullet"))
        context.cleanup()
        assert context.styles.has_style("BulletList")
        assert context.styles.has_style("ListBullet")

    def test_unreadable_preserved_part_skipped(self, context, caplog):
        """Test that a malformed preserved part is logged and not scanned."""
        context.preserved_parts["word/footer1.xml"] = b"<w:ftr"
        assert list(context.iter_story_parts()) == []
        assert context.used_numbering_ids() == set()
        assert "Cannot scan preserved part word/footer1.xml" in caplog.text

    def test_document_xml(self, context):
        """Test body layout with the section properties last."""
        context.add_paragraph("Hello")
        context.add_body_element(w("bookmarkStart", {"id": 0, "name": "_Top"}))
        root = context.to_document_xml()
        body = root.find("w:body")
        assert [c.name for c in body.element_children()] == ["w:p", "w:bookmarkStart", "w:sectPr"]
        assert context.get_text() == "Hello"
