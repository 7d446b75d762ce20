"""Unit tests for TOC removal, element extraction and section trees."""

from odp_import.models.document import ContentElement
from odp_import.models.enums import ElementType
from odp_import.parsers.element_extractor import ElementExtractor, remove_toc
from odp_import.parsers.exceptions import ErrorHandler
from odp_import.parsers.section_builder import SectionTreeBuilder, split_images


def _heading(text, level, position):
    return ContentElement(type=ElementType.HEADING, text=text, level=level, source_position=position)


def _paragraph(text, position, is_list=False):
    return ContentElement(type=ElementType.PARAGRAPH, text=text, source_position=position, is_list=is_list)


class TestTocRemoval:
    """Tests for structural table-of-contents detection."""

    def test_run_of_link_paragraphs_is_removed(self):
        """Test N TOC entries before a normal paragraph are exactly removed."""
        entries = "".join(
            f'<p><a href="#_Toc{i}">{i} Heading {i}</a></p>\n' for i in range(1, 4)
        )
        rest = "<h1>Heading 1</h1>\n<p>Body text</p>"
        handler = ErrorHandler("doc.docx")

        result = remove_toc(entries + rest, handler)

        assert result == rest
        assert "Removed table of contents (3 entries)" in handler.warnings

    def test_paragraph_with_other_text_is_kept(self):
        """Test a paragraph mixing text and a link is not a TOC entry."""
        markup = '<p>See <a href="#sec2">section 2</a></p>'

        assert remove_toc(markup) == markup

    def test_external_link_is_kept(self):
        """Test links to other documents are not TOC entries."""
        markup = '<p><a href="https://example.org">site</a></p>'

        assert remove_toc(markup) == markup

    def test_nothing_to_remove(self):
        """Test markup without a TOC is returned unchanged."""
        markup = "<h1>Title</h1>\n<p>text</p>"

        assert remove_toc(markup) == markup


class TestElementExtractor:
    """Tests for element extraction from markup."""

    def test_headings_paragraphs_lists_tables(self):
        """Test every block kind is extracted in source order."""
        markup = (
            "<h1>Intro</h1>\n"
            "<p>Some <strong>text</strong></p>\n"
            "<ul><li>one</li><li>two</li></ul>\n"
            "<table><tr><td>Code</td><td>ON-1</td></tr><tr><td>Title</td><td>Need</td></tr></table>"
        )

        elements = ElementExtractor().extract(markup)

        assert [e.type for e in elements] == [
            ElementType.HEADING, ElementType.PARAGRAPH, ElementType.PARAGRAPH, ElementType.TABLE,
        ]
        assert elements[0].level == 1
        assert elements[1].text == "Some **text**"
        assert elements[2].is_list
        assert elements[2].text == "* one\n* two"
        assert elements[3].table.rows == [["Code", "ON-1"], ["Title", "Need"]]
        assert elements[3].text == "Code | ON-1\nTitle | Need"

    def test_heading_anchor_ignores_toc_bookmarks(self):
        """Test Word TOC bookmarks are not used as anchors."""
        markup = '<h2><a id="_Toc123"></a><a id="scope"></a>Scope</h2>'

        elements = ElementExtractor().extract(markup)

        assert elements[0].anchor_id == "scope"
        assert elements[0].level == 2

    def test_empty_heading_is_skipped(self):
        """Test headings without text produce no element."""
        elements = ElementExtractor().extract("<h1> </h1><p>x</p>")

        assert [e.type for e in elements] == [ElementType.PARAGRAPH]

    def test_paragraph_with_image(self):
        """Test image-bearing paragraphs are flagged."""
        elements = ElementExtractor().extract('<p>Figure <img src="data:image/png;base64,AAAA"></p>')

        assert elements[0].has_image

    def test_unterminated_list_is_truncated(self):
        """Test a list without its closer is kept with a warning."""
        handler = ErrorHandler("doc.docx")

        elements = ElementExtractor().extract("<p>a</p><ul><li>b</li>", handler)

        assert elements[-1].is_list
        assert any("Unterminated <ul> truncated" in w for w in handler.warnings)

    def test_containers_are_descended(self):
        """Test blocks wrapped in containers are still found."""
        elements = ElementExtractor().extract("<div><h1>T</h1><p>x</p></div>")

        assert [e.text for e in elements] == ["T", "x"]


class TestSectionTreeBuilder:
    """Tests for numbered section tree construction."""

    def test_numbering_and_nesting(self):
        """Test dotted numbers and parent-child links."""
        elements = [
            _heading("A", 1, 0),
            _paragraph("a text", 1),
            _heading("B", 2, 2),
            _heading("C", 2, 3),
            _heading("D", 1, 4),
        ]

        roots = SectionTreeBuilder().build(elements)

        assert [r.section_number for r in roots] == ["1", "2"]
        assert [s.section_number for s in roots[0].subsections] == ["1.1", "1.2"]
        assert roots[0].content.paragraphs == ["a text"]
        assert roots[0].subsections[1].path == ("A", "C")

    def test_skipped_levels_keep_zero_counters(self):
        """Test an h3 directly below an h1 numbers as 1.0.1."""
        roots = SectionTreeBuilder().build([_heading("A", 1, 0), _heading("B", 3, 1)])

        assert roots[0].subsections[0].section_number == "1.0.1"
        assert roots[0].subsections[0].level == 3

    def test_preamble_is_dropped_with_warning(self):
        """Test content before the first heading is reported and dropped."""
        handler = ErrorHandler("doc.docx")

        roots = SectionTreeBuilder().build([_paragraph("pre", 0), _heading("A", 1, 1)], handler)

        assert len(roots) == 1
        assert roots[0].content.is_empty()
        assert "Dropped 1 content elements before the first heading" in handler.warnings

    def test_default_root_from_bold_run(self):
        """Test the synthesized root takes the first bold run as title."""
        roots = SectionTreeBuilder().build([
            _paragraph("Intro with **Key Title** inside", 0),
            _paragraph("more", 1),
        ])

        assert len(roots) == 1
        assert roots[0].title == "Key Title"
        assert roots[0].section_number == "1"
        assert roots[0].content.paragraphs == ["Intro with **Key Title** inside", "more"]

    def test_default_root_from_short_paragraph(self):
        """Test the first short non-list paragraph is the fallback title."""
        roots = SectionTreeBuilder().build([
            _paragraph("* item", 0, is_list=True),
            _paragraph("Short title", 1),
        ])

        assert roots[0].title == "Short title"

    def test_default_root_title(self):
        """Test the configured default title is the last resort."""
        long_text = "x" * 150

        roots = SectionTreeBuilder(default_title="Document").build([_paragraph(long_text, 0)])

        assert roots[0].title == "Document"

    def test_no_elements(self):
        """Test an empty element list gives no sections."""
        assert SectionTreeBuilder().build([]) == []

    def test_images_are_lifted_out(self):
        """Test image tokens move to the section images."""
        text, images = split_images("Figure\nimage:data:image/png;base64,AAAA[]")

        assert text == "Figure"
        assert images[0].content_type == "image/png"
        assert images[0].data == "AAAA"
