"""Document-related data models for the ODP import pipeline."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .enums import DocumentType, ElementType


@dataclass
class ImageData:
    """
    Embedded image lifted out of a paragraph.

    The payload is kept base64-encoded, exactly as carried by the
    image token emitted during normalization.
    """
    content_type: str
    data: str
    encoding: str = "base64"


@dataclass
class TableData:
    """Row-major grid of normalized cell text."""
    rows: List[List[str]] = field(default_factory=list)

    @property
    def row_count(self) -> int:
        return len(self.rows)

    @property
    def column_count(self) -> int:
        return len(self.rows[0]) if self.rows else 0


@dataclass
class ContentElement:
    """
    One typed piece of content recovered from the markup.

    Elements are ephemeral: they only live between element extraction and
    section tree construction, ordered by their offset in the source.
    """
    type: ElementType
    text: str
    source_position: int
    level: Optional[int] = None  # headings only, 1-9
    anchor_id: Optional[str] = None
    has_image: bool = False
    is_list: bool = False
    table: Optional[TableData] = None


@dataclass
class SectionContent:
    """Content attached directly to a section."""
    paragraphs: List[str] = field(default_factory=list)
    tables: List[TableData] = field(default_factory=list)
    images: List[ImageData] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.paragraphs or self.tables or self.images)

    def extend(self, other: "SectionContent") -> None:
        self.paragraphs.extend(other.paragraphs)
        self.tables.extend(other.tables)
        self.images.extend(other.images)


@dataclass
class Section:
    """
    Node of the extracted section tree.

    The path holds the titles of all ancestors followed by the section's
    own title and is fixed when the section is created.
    """
    level: int
    section_number: str
    title: str
    path: Tuple[str, ...]
    subsections: List["Section"] = field(default_factory=list)
    content: SectionContent = field(default_factory=SectionContent)
    anchor_id: Optional[str] = None
    identifier: Optional[str] = None
    is_organizational: bool = False

    def iter_sections(self):
        """Yield this section and all descendants in document order."""
        stack = [self]
        while stack:
            section = stack.pop()
            yield section
            stack.extend(reversed(section.subsections))


@dataclass(frozen=True)
class SheetData:
    """
    One worksheet of a workbook.

    Each row maps the header cells of the sheet to the formatted cell
    text; empty cells are empty strings.
    """
    name: str
    rows: Tuple[Dict[str, str], ...] = ()


@dataclass(frozen=True)
class ExtractionMetadata:
    """Provenance of one extraction run."""
    filename: str
    parsed_at: str
    messages: Tuple[str, ...] = ()
    sheet_count: Optional[int] = None  # workbooks only


@dataclass(frozen=True)
class RawExtractedData:
    """
    Sole output of document extraction.

    Frozen so that mappers can only read it; the sections are stored as a
    tuple for the same reason.
    """
    document_type: DocumentType
    metadata: ExtractionMetadata
    sections: Tuple[Section, ...] = ()
    sheets: Tuple[SheetData, ...] = ()  # workbooks only

    def iter_sections(self):
        """Yield every section of the tree in document order."""
        for root in self.sections:
            yield from root.iter_sections()
