"""Errors raised while extracting documents, and the warning collector."""

import logging
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class ParseError(Exception):
    """
    Base class of extraction failures.

    Attributes:
        message: Human-readable error description.
        file_path: Upload name or archive entry that failed.
        location: Where in the file the problem was found, if known.
        details: Extra data such as the underlying error text.
    """
    message: str
    file_path: Optional[str] = None
    location: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    recovery_hints: ClassVar[Dict[str, List[str]]] = {}

    def __post_init__(self):
        super().__init__(str(self))

    def __str__(self) -> str:
        text = self.message
        if self.file_path:
            text += f" [{self.file_path}"
            text += f" @ {self.location}]" if self.location else "]"
        return text

    def to_dict(self) -> Dict[str, Any]:
        return {
            "errorType": type(self).__name__,
            "message": self.message,
            "filePath": self.file_path,
            "location": self.location,
            "details": dict(self.details),
        }

    def get_recovery_suggestions(self) -> List[str]:
        """Hints for the uploader, generic ones first, then per file type."""
        suffix = ""
        if self.file_path and "." in self.file_path:
            suffix = self.file_path.rsplit(".", 1)[1].lower()
        return list(self.recovery_hints.get("*", [])) + list(self.recovery_hints.get(suffix, []))


@dataclass
class DocumentCorruptedError(ParseError):
    """The upload is not a readable Word package, workbook or ZIP archive."""

    recovery_hints: ClassVar[Dict[str, List[str]]] = {
        "*": ["Re-export the document from its authoring tool and upload it again"],
        "docx": ["Open the document in Word recovery mode and save a new copy"],
        "xlsx": ["Save the workbook again as .xlsx from its authoring tool"],
        "zip": ["Re-create the archive without encryption or split volumes"],
    }


@dataclass
class UnsupportedFormatError(ParseError):
    """The upload has a suffix no extractor handles."""

    recovery_hints: ClassVar[Dict[str, List[str]]] = {
        "*": ["Upload a .docx document or a .zip archive of .docx documents"],
        "doc": ["Save legacy .doc files as .docx first"],
    }

    def get_supported_formats(self) -> List[str]:
        return self.details.get("supported_formats", [".docx", ".zip", ".xlsx"])


@dataclass
class StructuralParseFailure(ParseError):
    """
    No section tree could be recovered.

    Fatal to the whole extraction. The triggering exception, if any, is
    available as ``cause``.
    """

    @property
    def cause(self) -> Optional[BaseException]:
        return self.__cause__


class ErrorHandler:
    """
    Warning sink for a single extraction.

    The normalizer, TOC removal and section builder report recoverable
    problems here; the extractor copies them into the extraction
    metadata.
    """

    def __init__(self, file_path: str):
        self.file_path = file_path
        self.warnings: List[str] = []

    def add_warning(self, message: str, location: Optional[str] = None) -> None:
        warning = f"{message} (at {location})" if location else message
        logger.debug(f"{self.file_path}: {warning}")
        self.warnings.append(warning)
