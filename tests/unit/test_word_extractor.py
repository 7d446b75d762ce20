"""Unit tests for Word conversion and extraction."""

import io
import json
import zipfile

import pytest
from docx import Document

from odp_import.models.enums import DocumentType
from odp_import.parsers import (
    DocumentCorruptedError,
    DocumentParser,
    DocxHtmlConverter,
    HierarchicalDocxExtractor,
    StructuralParseFailure,
    UnsupportedFormatError,
    WordDocumentExtractor,
    deserialize_raw_data,
    serialize_raw_data,
)


def _save(document) -> bytes:
    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()


def _simple_docx() -> bytes:
    document = Document()
    document.add_heading("Introduction", level=1)
    paragraph = document.add_paragraph("Plain ")
    paragraph.add_run("bold").bold = True
    document.add_paragraph("First", style="List Bullet")
    document.add_paragraph("Second", style="List Bullet")
    table = document.add_table(rows=1, cols=2)
    table.cell(0, 0).text = "Code"
    table.cell(0, 1).text = "ON-1"
    document.add_heading("Details", level=2)
    document.add_paragraph("Detail text")
    return _save(document)


def _zip(entries) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for name, data in entries:
            archive.writestr(name, data)
    return buffer.getvalue()


class TestDocxHtmlConverter:
    """Tests for python-docx based markup conversion."""

    def test_headings_runs_and_lists(self):
        """Test heading styles, run styles and list styles are rendered."""
        result = DocxHtmlConverter().convert(_simple_docx(), "simple.docx")

        assert "<h1>Introduction</h1>" in result.html
        assert "<p>Plain <strong>bold</strong></p>" in result.html
        assert "<ul><li>First</li><li>Second</li></ul>" in result.html
        assert "<h2>Details</h2>" in result.html

    def test_table_cells(self):
        """Test tables keep their cell paragraphs."""
        result = DocxHtmlConverter().convert(_simple_docx(), "simple.docx")

        assert "<table><tr><td><p>Code</p></td><td><p>ON-1</p></td></tr></table>" in result.html

    def test_corrupted_file(self):
        """Test non-Word bytes raise DocumentCorruptedError."""
        with pytest.raises(DocumentCorruptedError) as exc_info:
            DocxHtmlConverter().convert(b"not a word file", "broken.docx")

        assert exc_info.value.file_path == "broken.docx"
        assert "recovery mode" in " ".join(exc_info.value.get_recovery_suggestions())


class TestWordDocumentExtractor:
    """Tests for single document extraction."""

    def test_extracts_section_tree(self):
        """Test the full pipeline from bytes to sections."""
        raw = WordDocumentExtractor().extract(_simple_docx(), "simple.docx")

        assert raw.document_type == DocumentType.WORD
        assert raw.metadata.filename == "simple.docx"
        assert len(raw.sections) == 1
        intro = raw.sections[0]
        assert intro.title == "Introduction"
        assert intro.content.paragraphs == ["Plain **bold**", "* First\n* Second"]
        assert intro.content.tables[0].rows == [["Code", "ON-1"]]
        assert intro.subsections[0].section_number == "1.1"
        assert intro.subsections[0].content.paragraphs == ["Detail text"]

    def test_result_is_frozen(self):
        """Test the extraction result cannot be modified."""
        raw = WordDocumentExtractor().extract(_simple_docx(), "simple.docx")

        with pytest.raises(AttributeError):
            raw.sections = ()

    def test_empty_markup_fails_structurally(self):
        """Test markup without content raises StructuralParseFailure."""
        with pytest.raises(StructuralParseFailure):
            WordDocumentExtractor().extract_markup("   ", "empty.docx")

    def test_toc_warning_reaches_metadata(self):
        """Test extraction warnings are copied into the metadata."""
        markup = '<p><a href="#_Toc1">1 Scope</a></p>\n<h1>Scope</h1>\n<p>text</p>'

        raw = WordDocumentExtractor().extract_markup(markup, "toc.docx")

        assert "Removed table of contents (1 entries)" in raw.metadata.messages
        assert raw.sections[0].title == "Scope"

    def test_document_without_headings(self):
        """Test a synthesized root holds all content."""
        document = Document()
        document.add_paragraph("Operational Requirement (OR)")
        document.add_paragraph("Body")

        raw = WordDocumentExtractor().extract(_save(document), "plain.docx")

        assert raw.sections[0].title == "Operational Requirement (OR)"
        assert raw.sections[0].content.paragraphs == ["Operational Requirement (OR)", "Body"]


class TestHierarchicalDocxExtractor:
    """Tests for ZIP archive extraction."""

    def test_folders_and_documents(self):
        """Test folders become organizational sections and files leaves."""
        marker_doc = Document()
        marker_doc.add_paragraph("Operational Need (ON)")
        marker_doc.add_paragraph("Need body")
        archive = _zip([
            ("Airspace/", b""),
            ("Airspace/need-1.docx", _save(marker_doc)),
            ("Airspace/Sub/req-1.docx", _simple_docx()),
            ("__MACOSX/Airspace/._need-1.docx", b"junk"),
            ("Airspace/.hidden.docx", b"junk"),
            ("notes.txt", b"ignored"),
        ])

        raw = HierarchicalDocxExtractor().extract(archive, "export.zip")

        assert raw.document_type == DocumentType.HIERARCHICAL_WORD
        folder = raw.sections[0]
        assert folder.is_organizational
        assert folder.title == "Airspace"
        need, sub = folder.subsections
        assert need.title == "Operational Need (ON)"
        assert need.identifier == "need-1"
        assert need.section_number == "1.1"
        assert need.content.paragraphs == ["Operational Need (ON)", "Need body"]
        assert sub.is_organizational
        leaf = sub.subsections[0]
        assert leaf.title == "Introduction"
        assert leaf.path == ("Airspace", "Sub", "Introduction")
        assert "Detail text" in leaf.content.paragraphs

    def test_failing_document_fails_everything(self):
        """Test one unreadable document fails the whole archive."""
        archive = _zip([
            ("good.docx", _simple_docx()),
            ("bad.docx", b"broken"),
        ])

        with pytest.raises(StructuralParseFailure) as exc_info:
            HierarchicalDocxExtractor().extract(archive, "export.zip")

        assert isinstance(exc_info.value.cause, DocumentCorruptedError)

    def test_not_a_zip(self):
        """Test non-archive bytes raise DocumentCorruptedError."""
        with pytest.raises(DocumentCorruptedError):
            HierarchicalDocxExtractor().extract(b"nope", "export.zip")


class TestDocumentParser:
    """Tests for format dispatch and serialization."""

    def test_unsupported_format(self, tmp_path):
        """Test unknown suffixes are rejected."""
        path = tmp_path / "file.pdf"
        path.write_bytes(b"%PDF")

        with pytest.raises(UnsupportedFormatError):
            DocumentParser().parse(str(path))

    def test_missing_file(self):
        """Test a missing file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            DocumentParser().parse("/nonexistent/file.docx")

    def test_parse_docx_from_disk(self, tmp_path):
        """Test a .docx on disk is extracted as a Word document."""
        path = tmp_path / "simple.docx"
        path.write_bytes(_simple_docx())

        raw = DocumentParser().parse(str(path))

        assert raw.document_type == DocumentType.WORD
        assert raw.metadata.filename == "simple.docx"

    def test_serialization_uses_camel_case(self):
        """Test the JSON wire form and its reverse."""
        raw = WordDocumentExtractor().extract(_simple_docx(), "simple.docx")

        payload = serialize_raw_data(raw)
        data = json.loads(payload)
        restored = deserialize_raw_data(payload)

        assert data["documentType"] == "word"
        assert "parsedAt" in data["metadata"]
        assert data["sections"][0]["sectionNumber"] == "1"
        assert restored.sections[0].title == "Introduction"
        assert restored.sections[0].content.tables[0].rows == [["Code", "ON-1"]]

    def test_deserialize_invalid_json(self):
        """Test invalid JSON raises ValueError."""
        with pytest.raises(ValueError):
            deserialize_raw_data("{not json")
