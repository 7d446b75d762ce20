"""SQLAlchemy entity store."""

from .database import DatabaseManager, get_database_url
from .entity_service import (
    ENTITY_CLASSES,
    SqlEntityService,
    SqlRequirementService,
    build_entity_services,
)
from .models import Base, EntityModel, JSONType

__all__ = [
    "DatabaseManager",
    "get_database_url",
    "ENTITY_CLASSES",
    "SqlEntityService",
    "SqlRequirementService",
    "build_entity_services",
    "Base",
    "EntityModel",
    "JSONType",
]
