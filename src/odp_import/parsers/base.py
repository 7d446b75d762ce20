"""Format-dispatching document parser."""

from pathlib import Path
from typing import List, Optional

from ..models.document import RawExtractedData
from ..models.enums import DocumentType
from .exceptions import UnsupportedFormatError
from .hierarchical_extractor import HierarchicalDocxExtractor
from .serialization import RawDataSerializer
from .word_extractor import WordDocumentExtractor
from .xlsx_extractor import XlsxExtractor

SUPPORTED_FORMATS = [".docx", ".zip", ".xlsx"]


class DocumentParser:
    """
    Main document parser that delegates to format-specific extractors.

    ``.docx`` files are extracted as single Word documents, ``.zip``
    archives as folder hierarchies of Word documents and ``.xlsx``
    workbooks as sheets of rows.
    """

    def __init__(
        self,
        word_extractor: Optional[WordDocumentExtractor] = None,
        hierarchical_extractor: Optional[HierarchicalDocxExtractor] = None,
        xlsx_extractor: Optional[XlsxExtractor] = None,
    ):
        self._word_extractor = word_extractor or WordDocumentExtractor()
        self._hierarchical_extractor = hierarchical_extractor or HierarchicalDocxExtractor(
            self._word_extractor
        )
        self._xlsx_extractor = xlsx_extractor or XlsxExtractor()
        self._serializer = RawDataSerializer()

    def parse(self, file_path: str) -> RawExtractedData:
        """
        Extract a document from disk.

        Raises:
            FileNotFoundError: If the file does not exist.
            UnsupportedFormatError: If the file format is not supported.
        """
        path = Path(file_path)
        if not path.exists():
            raise FileNotFoundError(f"File not found: {file_path}")
        return self.parse_bytes(path.read_bytes(), path.name)

    def parse_bytes(self, data: bytes, filename: str) -> RawExtractedData:
        """Extract an uploaded document, dispatching on the file name suffix."""
        document_type = self.detect_document_type(filename)
        if document_type == DocumentType.WORD:
            return self._word_extractor.extract(data, filename)
        if document_type == DocumentType.EXCEL:
            return self._xlsx_extractor.extract(data, filename)
        return self._hierarchical_extractor.extract(data, filename)

    def serialize(self, raw: RawExtractedData) -> str:
        return self._serializer.serialize(raw)

    def deserialize(self, json_str: str) -> RawExtractedData:
        return self._serializer.deserialize(json_str)

    def get_supported_formats(self) -> List[str]:
        """Return list of supported file formats."""
        return list(SUPPORTED_FORMATS)

    def detect_document_type(self, filename: str) -> DocumentType:
        """
        Detect the document type from the file extension.

        Raises:
            UnsupportedFormatError: If format is not supported.
        """
        suffix = Path(filename).suffix.lower()
        if suffix == ".docx":
            return DocumentType.WORD
        elif suffix == ".zip":
            return DocumentType.HIERARCHICAL_WORD
        elif suffix == ".xlsx":
            return DocumentType.EXCEL
        raise UnsupportedFormatError(
            message=f"Unsupported file format: {suffix or '(none)'}",
            file_path=filename,
            location="file extension",
            details={"supported_formats": list(SUPPORTED_FORMATS)},
        )
