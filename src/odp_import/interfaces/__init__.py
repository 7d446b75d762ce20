"""Abstract interfaces for the ODP import pipeline."""

from .extractor import IDocumentExtractor
from .mapper import Mapper
from .entity_service import EntityRecord, IEntityService, IRequirementService

__all__ = [
    "IDocumentExtractor",
    "Mapper",
    "EntityRecord",
    "IEntityService",
    "IRequirementService",
]
