"""Document extraction for the ODP import pipeline."""

from .base import DocumentParser
from .docx_converter import ConversionResult, DocxHtmlConverter
from .element_extractor import ElementExtractor, remove_toc
from .exceptions import (
    DocumentCorruptedError,
    ErrorHandler,
    ParseError,
    StructuralParseFailure,
    UnsupportedFormatError,
)
from .hierarchical_extractor import HierarchicalDocxExtractor
from .image_transcoder import ImageTranscoder
from .section_builder import SectionTreeBuilder
from .serialization import RawDataSerializer, deserialize_raw_data, serialize_raw_data
from .text_normalizer import TextNormalizer
from .word_extractor import WordDocumentExtractor
from .xlsx_extractor import XlsxExtractor

__all__ = [
    "DocumentParser",
    "ConversionResult",
    "DocxHtmlConverter",
    "ElementExtractor",
    "remove_toc",
    "DocumentCorruptedError",
    "ErrorHandler",
    "ParseError",
    "StructuralParseFailure",
    "UnsupportedFormatError",
    "HierarchicalDocxExtractor",
    "ImageTranscoder",
    "SectionTreeBuilder",
    "RawDataSerializer",
    "deserialize_raw_data",
    "serialize_raw_data",
    "TextNormalizer",
    "WordDocumentExtractor",
    "XlsxExtractor",
]
