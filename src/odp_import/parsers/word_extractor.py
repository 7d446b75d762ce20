"""Word document extraction into RawExtractedData."""

import logging
from datetime import datetime, timezone
from typing import Iterable, Optional

from ..interfaces.extractor import IDocumentExtractor
from ..models.document import ExtractionMetadata, RawExtractedData
from ..models.enums import DocumentType
from .docx_converter import DocxHtmlConverter
from .element_extractor import ElementExtractor
from .exceptions import DocumentCorruptedError, ErrorHandler, StructuralParseFailure
from .image_transcoder import ImageTranscoder
from .section_builder import SectionTreeBuilder
from .text_normalizer import TextNormalizer

logger = logging.getLogger(__name__)


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class WordDocumentExtractor(IDocumentExtractor):
    """
    Orchestrates conversion, element extraction and section tree
    construction for a single Word document.

    The result is always a frozen RawExtractedData; anything short of a
    usable section tree raises StructuralParseFailure.
    """

    def __init__(
        self,
        converter: Optional[DocxHtmlConverter] = None,
        normalizer: Optional[TextNormalizer] = None,
        section_builder: Optional[SectionTreeBuilder] = None,
        excluded_anchor_prefix: str = "_Toc",
    ):
        self.converter = converter or DocxHtmlConverter()
        self.normalizer = normalizer or TextNormalizer(image_transcoder=ImageTranscoder())
        self.element_extractor = ElementExtractor(self.normalizer, excluded_anchor_prefix)
        self.section_builder = section_builder or SectionTreeBuilder()

    def extract(self, data: bytes, filename: str) -> RawExtractedData:
        """
        Extract the section tree of a .docx file.

        Raises:
            DocumentCorruptedError: If the file is not a readable Word document.
            StructuralParseFailure: If no structure could be recovered.
        """
        logger.info(f"Extracting Word document {filename}")
        conversion = self.converter.convert(data, filename)
        return self.extract_markup(conversion.html, filename, conversion.messages)

    def extract_markup(
        self,
        markup: str,
        filename: str,
        messages: Iterable[str] = (),
    ) -> RawExtractedData:
        """Run element extraction and tree construction over converted markup."""
        error_handler = ErrorHandler(filename)
        try:
            elements = self.element_extractor.extract(markup, error_handler)
            if not elements:
                raise StructuralParseFailure(
                    message="No content could be extracted from the document",
                    file_path=filename,
                )
            sections = self.section_builder.build(elements, error_handler)
        except (StructuralParseFailure, DocumentCorruptedError):
            raise
        except Exception as e:
            raise StructuralParseFailure(
                message=f"Failed to build document structure: {e}",
                file_path=filename,
                details={"original_error": str(e)},
            ) from e

        all_messages = tuple(messages) + tuple(error_handler.warnings)
        for message in all_messages:
            logger.warning(f"{filename}: {message}")
        logger.info(
            f"Extracted {sum(1 for _ in _iter_all(sections))} sections from {filename}"
        )
        return RawExtractedData(
            document_type=DocumentType.WORD,
            metadata=ExtractionMetadata(
                filename=filename,
                parsed_at=utc_timestamp(),
                messages=all_messages,
            ),
            sections=tuple(sections),
        )


def _iter_all(sections):
    for section in sections:
        yield from section.iter_sections()
