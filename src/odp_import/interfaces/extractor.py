"""Document extractor interface for the ODP import pipeline."""

from abc import ABC, abstractmethod

from ..models.document import RawExtractedData


class IDocumentExtractor(ABC):
    """
    Abstract interface for document extraction.

    Implementations turn the bytes of one uploaded file into a
    RawExtractedData section tree.
    """

    @abstractmethod
    def extract(self, data: bytes, filename: str) -> RawExtractedData:
        """
        Extract the structure of a document.

        Args:
            data: Raw bytes of the uploaded file.
            filename: Original file name, used for diagnostics.

        Returns:
            Immutable RawExtractedData.

        Raises:
            ParseError: If the document is corrupted or has no structure.
        """
        pass
