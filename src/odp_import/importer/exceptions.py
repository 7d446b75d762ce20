"""Custom exceptions for mapping and importing."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class ImportFailure(Exception):
    """
    Base exception for import errors.

    Attributes:
        message: Human-readable error description.
        entity_class: Entity class concerned (``requirements``, ``waves``...).
        external_id: External id of the entity concerned, if any.
        details: Additional error details.
    """
    message: str = ""
    entity_class: Optional[str] = None
    external_id: Optional[str] = None
    details: Optional[dict] = field(default_factory=dict)

    def __post_init__(self):
        if self.details is None:
            self.details = {}
        super().__init__(str(self))

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "entity_class": self.entity_class,
            "external_id": self.external_id,
            "details": self.details,
        }


@dataclass
class MapperNotFoundError(ImportFailure):
    """Raised when no mapper is registered for a group/subgroup key."""
    group: str = ""
    subgroup: Optional[str] = None

    def __post_init__(self):
        if not self.message:
            key = f"{self.group}/{self.subgroup}" if self.subgroup else self.group
            self.message = f"No mapper registered for key '{key}'"
        super().__post_init__()


@dataclass
class CircularDependencyError(ImportFailure):
    """Raised when parent links form a cycle."""
    cycle: List[str] = field(default_factory=list)

    def __post_init__(self):
        if not self.message:
            self.message = f"Circular dependency detected: {' -> '.join(self.cycle)}"
        super().__post_init__()


@dataclass
class EntityNotFoundError(ImportFailure):
    """Raised when an entity expected in the store does not exist."""
    entity_id: Optional[str] = None

    def __post_init__(self):
        if not self.message:
            self.message = f"Entity {self.entity_id} not found"
        super().__post_init__()


@dataclass
class VersionConflictError(ImportFailure):
    """Raised when an update carries a stale version token."""
    entity_id: Optional[str] = None
    expected_version: Optional[int] = None
    actual_version: Optional[int] = None

    def __post_init__(self):
        if not self.message:
            self.message = (
                f"Version conflict on {self.entity_id}: expected version "
                f"{self.expected_version}, current version is {self.actual_version}"
            )
        super().__post_init__()


@dataclass
class ReferenceMapError(ImportFailure):
    """Raised when the reference maps cannot be built from the store."""
