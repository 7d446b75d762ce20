"""Import service wiring extraction, mapping and reference resolution.

The service owns the mapper registry and the extractors. Entity services
are either injected or built lazily over the SQL store, so extraction and
mapping never need a database.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

from .config.models import ExtractionSettings, SystemConfiguration
from .importer.resolution import EntityServices, ReferenceResolutionEngine
from .importer.standard_importer import StandardImporter
from .mappers import STANDARD_GROUP, MapperRegistry, register_default_mappers
from .models.document import RawExtractedData
from .models.import_data import ImportSummary, StandardImportSummary, StructuredImportData
from .parsers.base import DocumentParser
from .parsers.hierarchical_extractor import HierarchicalDocxExtractor
from .parsers.image_transcoder import ImageTranscoder
from .parsers.section_builder import SectionTreeBuilder
from .parsers.text_normalizer import TextNormalizer
from .parsers.word_extractor import WordDocumentExtractor
from .parsers.xlsx_extractor import XlsxExtractor
from .performance import PerformanceMonitor
from .store.database import DatabaseManager
from .store.entity_service import build_entity_services

logger = logging.getLogger(__name__)

DEFAULT_USER_ID = "odp-import"


def build_word_extractor(settings: ExtractionSettings) -> WordDocumentExtractor:
    """Create a Word extractor honouring the extraction settings."""
    transcoder = ImageTranscoder(
        supported_types=settings.supported_image_types,
        target_format=settings.image_target_format,
    )
    return WordDocumentExtractor(
        normalizer=TextNormalizer(
            max_list_depth=settings.max_list_depth,
            image_transcoder=transcoder,
        ),
        section_builder=SectionTreeBuilder(
            default_title=settings.default_section_title,
            max_default_title_length=settings.max_default_title_length,
        ),
        excluded_anchor_prefix=settings.excluded_anchor_prefix,
    )


class ImportService:
    """
    Entry point of the import pipeline.

    Args:
        configuration: System configuration; defaults apply when omitted.
        entity_services: Persistence services. When omitted they are built
            over the SQL store on first use.
        registry: Mapper registry. When omitted the shipped mappers are
            registered in a fresh one.
    """

    def __init__(
        self,
        configuration: Optional[SystemConfiguration] = None,
        entity_services: Optional[EntityServices] = None,
        registry: Optional[MapperRegistry] = None,
    ):
        self.configuration = configuration or SystemConfiguration()
        self.registry = registry or register_default_mappers(MapperRegistry())
        self.performance_monitor = PerformanceMonitor()

        self._word_extractor = build_word_extractor(self.configuration.extraction)
        self._hierarchical_extractor = HierarchicalDocxExtractor(self._word_extractor)
        self._xlsx_extractor = XlsxExtractor()
        self._parser = DocumentParser(self._word_extractor, self._hierarchical_extractor, self._xlsx_extractor)

        self._entity_services = entity_services
        self._db_manager: Optional[DatabaseManager] = None

    @property
    def parser(self) -> DocumentParser:
        return self._parser

    @property
    def entity_services(self) -> EntityServices:
        """Entity services, creating the SQL store on first access."""
        if self._entity_services is None:
            store = self.configuration.store
            self._db_manager = DatabaseManager(database_url=store.database_url, echo=store.echo)
            self._db_manager.init_database()
            self._entity_services = build_entity_services(self._db_manager)
            logger.info("Entity services connected to the SQL store")
        return self._entity_services

    def close(self) -> None:
        if self._db_manager is not None:
            self._db_manager.close()

    def extract_word_document(self, data: bytes, filename: str) -> RawExtractedData:
        """Extract one .docx file into its section tree."""
        with self.performance_monitor.track("extract_word_document", filename=filename):
            return self._word_extractor.extract(data, filename)

    def extract_hierarchical_document(self, data: bytes, filename: str) -> RawExtractedData:
        """Extract a ZIP archive of folders and .docx files."""
        with self.performance_monitor.track("extract_hierarchical_document", filename=filename):
            return self._hierarchical_extractor.extract(data, filename)

    def extract_excel_document(self, data: bytes, filename: str) -> RawExtractedData:
        """Extract every sheet of an .xlsx workbook as rows."""
        with self.performance_monitor.track("extract_excel_document", filename=filename):
            return self._xlsx_extractor.extract(data, filename)

    def extract_file(self, file_path: Union[str, Path]) -> RawExtractedData:
        """Extract a document from disk, dispatching on its suffix."""
        return self._parser.parse(str(file_path))

    def map_to_structured_data(
        self,
        raw: RawExtractedData,
        group: str,
        subgroup: Optional[str] = None,
    ) -> StructuredImportData:
        """
        Map extracted data with the mapper registered for the drafting group.

        Raises:
            MapperNotFoundError: If no mapper is registered for the key.
        """
        mapper = self.registry.get_mapper(group, subgroup)
        structured = mapper.map(raw)
        logger.info(
            f"Mapped {raw.metadata.filename} with {self.registry.build_key(group, subgroup)}: "
            f"{len(structured.requirements)} requirements, {len(structured.changes)} changes"
        )
        return structured

    def _engine_options(self) -> Dict[str, Any]:
        """Resolution engine options; an in-memory store is seeded from one thread."""
        settings = self.configuration.importing
        in_memory = self._db_manager is not None and self._db_manager.is_in_memory
        return {
            "seed_workers": 1 if in_memory else settings.seed_workers,
            "default_event_type": settings.default_event_type,
            "default_visibility": settings.default_visibility,
        }

    def import_structured_data(
        self,
        data: StructuredImportData,
        user_id: str = DEFAULT_USER_ID,
    ) -> ImportSummary:
        """Create every entity of ``data`` and resolve its references."""
        services = self.entity_services
        engine = ReferenceResolutionEngine(services, **self._engine_options())
        with self.performance_monitor.track("import_structured_data") as timing:
            summary = engine.import_structured_data(data, user_id)
            if summary.has_errors:
                timing.stop(error=summary.errors[0])
        return summary

    def import_standard_data(
        self,
        data: StructuredImportData,
        user_id: str = DEFAULT_USER_ID,
    ) -> StandardImportSummary:
        """
        Re-import requirements and changes of a standard export.

        Entities whose external id is already stored are updated in place
        (or skipped when unchanged); the others are created.
        """
        services = self.entity_services
        importer = StandardImporter(services, **self._engine_options())
        with self.performance_monitor.track("import_standard_data") as timing:
            summary = importer.import_standard_data(data, user_id)
            if summary.has_errors:
                timing.stop(error=summary.errors[0])
        return summary

    def import_document(
        self,
        data: bytes,
        filename: str,
        group: str,
        subgroup: Optional[str] = None,
        user_id: str = DEFAULT_USER_ID,
    ) -> ImportSummary:
        """
        Extract, map and import one uploaded document.

        Documents of the standard export format are matched to stored
        entities by external id. Failures before the import itself
        (unreadable file, unknown mapper, unreachable store) are reported
        as a single error in the summary.
        """
        logger.info(f"Importing {filename} for drafting group {group}")
        try:
            raw = self._parser.parse_bytes(data, filename)
            structured = self.map_to_structured_data(raw, group, subgroup)
            if group == STANDARD_GROUP and subgroup is None:
                summary = self.import_standard_data(structured, user_id)
            else:
                summary = self.import_structured_data(structured, user_id)
        except Exception as e:
            logger.exception(f"Import of {filename} failed: {e}")
            return ImportSummary(errors=[f"Import failed: {e}"])

        summary.warnings = list(raw.metadata.messages) + summary.warnings
        return summary
