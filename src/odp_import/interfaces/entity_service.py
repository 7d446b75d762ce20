"""Entity persistence service interfaces."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class EntityRecord:
    """
    Persisted entity as returned by an entity service.

    ``data`` holds the stored request fields; requirements returned by
    ``get_all`` additionally carry ``parent_id`` (their REFINES target).
    """
    id: str
    version_id: int
    data: Dict[str, Any] = field(default_factory=dict)
    parent_id: Optional[str] = None

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    @property
    def external_id(self) -> Optional[str]:
        return self.data.get("externalId")

    @property
    def title(self) -> Optional[str]:
        return self.data.get("title") or self.data.get("name")


class IEntityService(ABC):
    """
    Create/update/read contract of one entity class.

    Updates are optimistic: the caller passes the version it read and the
    service raises VersionConflictError when the stored version moved on.
    """

    @abstractmethod
    def create(self, request: Dict[str, Any], user_id: str) -> EntityRecord:
        """Create a new entity and return the persisted record."""
        pass

    @abstractmethod
    def update(self, entity_id: str, request: Dict[str, Any], version_id: int, user_id: str) -> EntityRecord:
        """
        Replace the fields of an entity.

        Raises:
            EntityNotFoundError: If the entity does not exist.
            VersionConflictError: If ``version_id`` is stale.
        """
        pass

    @abstractmethod
    def get_by_id(self, entity_id: str, user_id: str) -> Optional[EntityRecord]:
        """Return the current record, or None when it does not exist."""
        pass

    @abstractmethod
    def list_items(self, user_id: str) -> List[EntityRecord]:
        """Return every entity of this class."""
        pass


class IRequirementService(IEntityService):
    """Requirement service, adding hierarchy-aware listing."""

    @abstractmethod
    def get_all(self, user_id: str) -> List[EntityRecord]:
        """Return every requirement with ``parent_id`` populated."""
        pass
