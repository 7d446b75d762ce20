"""
ODP Import Pipeline

Extracts Word documents into section trees, maps them to operational
needs, requirements and changes, and imports them with every textual
cross-reference resolved. Excel workbooks are extracted as sheets of rows.
"""

__version__ = "0.1.0"

# Export main components
from .models.enums import DocumentType, ElementType, RequirementType, Visibility
from .models.document import RawExtractedData, Section, SectionContent
from .models.import_data import (
    ChangeData,
    ImportSummary,
    RequirementData,
    StandardImportSummary,
    StructuredImportData,
)
from .parsers import (
    DocumentParser,
    HierarchicalDocxExtractor,
    StructuralParseFailure,
    TextNormalizer,
    WordDocumentExtractor,
    XlsxExtractor,
)
from .mappers import MapperRegistry, StandardMapper, register_default_mappers
from .importer import (
    CircularDependencyError,
    EntityServices,
    ImportContext,
    MapperNotFoundError,
    ReferenceResolutionEngine,
    StandardImporter,
    VersionConflictError,
)
from .store import DatabaseManager, build_entity_services
from .config import (
    ConfigurationManager,
    SystemConfiguration,
    ConfigurationError,
    ValidationResult,
)
from .service import ImportService

__all__ = [
    "DocumentType",
    "ElementType",
    "RequirementType",
    "Visibility",
    "RawExtractedData",
    "Section",
    "SectionContent",
    "ChangeData",
    "ImportSummary",
    "RequirementData",
    "StandardImportSummary",
    "StructuredImportData",
    "DocumentParser",
    "HierarchicalDocxExtractor",
    "StructuralParseFailure",
    "TextNormalizer",
    "WordDocumentExtractor",
    "XlsxExtractor",
    "MapperRegistry",
    "StandardMapper",
    "register_default_mappers",
    "CircularDependencyError",
    "EntityServices",
    "ImportContext",
    "MapperNotFoundError",
    "ReferenceResolutionEngine",
    "StandardImporter",
    "VersionConflictError",
    "DatabaseManager",
    "build_entity_services",
    "ConfigurationManager",
    "SystemConfiguration",
    "ConfigurationError",
    "ValidationResult",
    "ImportService",
]
