"""Data models for the ODP import pipeline."""

from .enums import (
    DocumentType,
    ElementType,
    EntityClass,
    ListType,
    RequirementType,
    Visibility,
)
from .document import (
    ContentElement,
    ExtractionMetadata,
    ImageData,
    RawExtractedData,
    Section,
    SectionContent,
    SheetData,
    TableData,
)
from .import_data import (
    ChangeData,
    DocumentData,
    DocumentReferenceData,
    ImportSummary,
    StandardImportSummary,
    MilestoneData,
    RequirementData,
    SetupEntityData,
    StructuredImportData,
    WaveData,
)

__all__ = [
    "DocumentType",
    "ElementType",
    "EntityClass",
    "ListType",
    "RequirementType",
    "Visibility",
    "ContentElement",
    "ExtractionMetadata",
    "ImageData",
    "RawExtractedData",
    "Section",
    "SectionContent",
    "SheetData",
    "TableData",
    "ChangeData",
    "DocumentData",
    "DocumentReferenceData",
    "ImportSummary",
    "StandardImportSummary",
    "MilestoneData",
    "RequirementData",
    "SetupEntityData",
    "StructuredImportData",
    "WaveData",
]
