"""Extraction of ZIP archives holding a folder hierarchy of Word documents."""

import io
import logging
import zipfile
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import List, Optional, Tuple, Union

from ..interfaces.extractor import IDocumentExtractor
from ..models.document import ExtractionMetadata, RawExtractedData, Section, SectionContent
from ..models.enums import DocumentType
from .exceptions import DocumentCorruptedError, ParseError, StructuralParseFailure
from .word_extractor import WordDocumentExtractor, utc_timestamp

logger = logging.getLogger(__name__)

ENTITY_MARKERS = (
    "Operational Need (ON)",
    "Operational Requirement (OR)",
    "Use Case",
)


@dataclass
class _FileNode:
    name: str
    full_path: str
    data: bytes


@dataclass
class _DirectoryNode:
    name: str
    children: List[Union["_DirectoryNode", _FileNode]] = field(default_factory=list)

    def directory(self, name: str) -> "_DirectoryNode":
        for child in self.children:
            if isinstance(child, _DirectoryNode) and child.name == name:
                return child
        node = _DirectoryNode(name=name)
        self.children.append(node)
        return node


def _plain(text: str) -> str:
    """Text with style markers removed, for marker comparison."""
    for marker in ("**", "__", "~~", "*"):
        text = text.replace(marker, "")
    return text.strip()


class HierarchicalDocxExtractor(IDocumentExtractor):
    """
    Extracts a ZIP archive of folders and .docx files.

    Folders become organizational sections; every document becomes a leaf
    section whose content is the flattened content of the whole document.
    A failure on any single document fails the whole extraction.
    """

    def __init__(self, word_extractor: Optional[WordDocumentExtractor] = None):
        self.word_extractor = word_extractor or WordDocumentExtractor()

    def extract(self, data: bytes, filename: str) -> RawExtractedData:
        """
        Extract the archive into one RawExtractedData.

        Raises:
            DocumentCorruptedError: If the archive cannot be read.
            StructuralParseFailure: If any contained document fails.
        """
        logger.info(f"Extracting hierarchical archive {filename}")
        root, total_files = self._unpack(data, filename)

        messages: List[str] = []
        sections = []
        for index, child in enumerate(root.children, start=1):
            sections.append(self._process_node(child, (), 1, str(index), messages))

        if total_files == 0:
            messages.append("Archive contains no Word documents")
        logger.info(f"Extracted {total_files} documents from {filename}")
        return RawExtractedData(
            document_type=DocumentType.HIERARCHICAL_WORD,
            metadata=ExtractionMetadata(
                filename=filename,
                parsed_at=utc_timestamp(),
                messages=tuple(messages),
            ),
            sections=tuple(sections),
        )

    def _unpack(self, data: bytes, filename: str) -> Tuple[_DirectoryNode, int]:
        try:
            archive = zipfile.ZipFile(io.BytesIO(data))
        except zipfile.BadZipFile as e:
            raise DocumentCorruptedError(
                message="Archive is corrupted or not a ZIP file",
                file_path=filename,
                details={"original_error": str(e)},
            ) from e

        root = _DirectoryNode(name="/")
        total_files = 0
        with archive:
            for info in archive.infolist():
                name = info.filename
                if name.startswith("__MACOSX") or "/." in name or name.startswith("."):
                    continue
                parts = [part for part in name.split("/") if part]
                if not parts:
                    continue

                node = root
                for part in parts[:-1]:
                    node = node.directory(part)
                if info.is_dir():
                    node.directory(parts[-1])
                elif PurePosixPath(parts[-1]).suffix.lower() == ".docx":
                    node.children.append(_FileNode(
                        name=parts[-1],
                        full_path=name,
                        data=archive.read(info),
                    ))
                    total_files += 1
                else:
                    logger.debug(f"Ignoring non-Word archive entry {name}")
        return root, total_files

    def _process_node(self, node, parent_path, level, number, messages) -> Section:
        if isinstance(node, _DirectoryNode):
            path = parent_path + (node.name,)
            section = Section(
                level=level,
                section_number=number,
                title=node.name,
                path=path,
                is_organizational=True,
            )
            for index, child in enumerate(node.children, start=1):
                section.subsections.append(
                    self._process_node(child, path, level + 1, f"{number}.{index}", messages)
                )
            return section
        return self._process_file(node, parent_path, level, number, messages)

    def _process_file(self, node: _FileNode, parent_path, level, number, messages) -> Section:
        identifier = PurePosixPath(node.name).stem
        try:
            raw = self.word_extractor.extract(node.data, node.name)
        except ParseError as e:
            raise StructuralParseFailure(
                message=f"Failed to process document {node.full_path}: {e.message}",
                file_path=node.full_path,
                details={"original_error": str(e)},
            ) from e

        title = self._document_title(raw) or identifier
        content = SectionContent()
        for section in raw.iter_sections():
            content.extend(section.content)
        messages.extend(f"{node.full_path}: {message}" for message in raw.metadata.messages)
        logger.debug(f"Document {identifier} titled '{title}'")

        return Section(
            level=level,
            section_number=number,
            title=title,
            path=parent_path + (title,),
            content=content,
            identifier=identifier,
            is_organizational=False,
        )

    @staticmethod
    def _document_title(raw: RawExtractedData) -> Optional[str]:
        """First entity marker paragraph, else the first section title."""
        if not raw.sections:
            return None
        for section in raw.iter_sections():
            for paragraph in section.content.paragraphs:
                text = _plain(paragraph)
                if text in ENTITY_MARKERS:
                    return text
        return raw.sections[0].title
