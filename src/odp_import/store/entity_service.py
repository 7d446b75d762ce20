"""SQLAlchemy-backed entity services."""

import copy
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select

from ..importer.exceptions import EntityNotFoundError, VersionConflictError
from ..importer.resolution import EntityServices
from ..interfaces.entity_service import EntityRecord, IEntityService, IRequirementService
from ..models.enums import EntityClass
from .database import DatabaseManager
from .models import EntityModel

logger = logging.getLogger(__name__)

ENTITY_CLASSES = tuple(entity_class.value for entity_class in EntityClass)


class SqlEntityService(IEntityService):
    """
    Entity service storing one entity class in the ``odp_entities`` table.

    Every update increments ``version_id``; an update carrying an older
    version raises VersionConflictError.
    """

    def __init__(self, db_manager: DatabaseManager, entity_class: str):
        if entity_class not in ENTITY_CLASSES:
            raise ValueError(f"Unknown entity class '{entity_class}'")
        self.db_manager = db_manager
        self.entity_class = entity_class

    @staticmethod
    def _name_of(request: Dict[str, Any]) -> Optional[str]:
        return request.get("title") or request.get("name")

    def _parent_of(self, request: Dict[str, Any]) -> Optional[str]:
        return request.get("parentId")

    @staticmethod
    def _to_record(model: EntityModel) -> EntityRecord:
        return EntityRecord(
            id=model.id,
            version_id=model.version_id,
            data=copy.deepcopy(model.payload or {}),
            parent_id=model.parent_id,
        )

    def create(self, request: Dict[str, Any], user_id: str) -> EntityRecord:
        model = EntityModel(
            entity_class=self.entity_class,
            external_id=request.get("externalId"),
            name=self._name_of(request),
            version_id=1,
            payload=copy.deepcopy(request),
            parent_id=self._parent_of(request),
            created_by=user_id,
            updated_by=user_id,
        )
        with self.db_manager.get_session() as session:
            session.add(model)
            session.flush()
            record = self._to_record(model)
        logger.debug(f"Stored {self.entity_class} {record.id}")
        return record

    def update(self, entity_id: str, request: Dict[str, Any], version_id: int, user_id: str) -> EntityRecord:
        with self.db_manager.get_session() as session:
            model = session.get(EntityModel, entity_id)
            if model is None or model.entity_class != self.entity_class:
                raise EntityNotFoundError(entity_class=self.entity_class, entity_id=entity_id)
            if model.version_id != version_id:
                raise VersionConflictError(
                    entity_class=self.entity_class,
                    external_id=model.external_id,
                    entity_id=entity_id,
                    expected_version=version_id,
                    actual_version=model.version_id,
                )
            model.payload = copy.deepcopy(request)
            model.name = self._name_of(request)
            model.parent_id = self._parent_of(request)
            model.version_id = model.version_id + 1
            model.updated_by = user_id
            session.flush()
            return self._to_record(model)

    def get_by_id(self, entity_id: str, user_id: str) -> Optional[EntityRecord]:
        with self.db_manager.get_session() as session:
            model = session.get(EntityModel, entity_id)
            if model is None or model.entity_class != self.entity_class:
                return None
            return self._to_record(model)

    def list_items(self, user_id: str) -> List[EntityRecord]:
        with self.db_manager.get_session() as session:
            stmt = (
                select(EntityModel)
                .where(EntityModel.entity_class == self.entity_class)
                .order_by(EntityModel.created_at, EntityModel.id)
            )
            return [self._to_record(model) for model in session.scalars(stmt)]


class SqlRequirementService(SqlEntityService, IRequirementService):
    """Requirement service; ``parent_id`` is the first REFINES target."""

    def __init__(self, db_manager: DatabaseManager):
        super().__init__(db_manager, EntityClass.REQUIREMENTS.value)

    def _parent_of(self, request: Dict[str, Any]) -> Optional[str]:
        parents = request.get("refinesParents") or []
        return parents[0] if parents else None

    def get_all(self, user_id: str) -> List[EntityRecord]:
        return self.list_items(user_id)


def build_entity_services(db_manager: DatabaseManager) -> EntityServices:
    """Wire one SQL service per entity class."""
    return EntityServices(
        documents=SqlEntityService(db_manager, EntityClass.DOCUMENTS.value),
        stakeholder_categories=SqlEntityService(db_manager, EntityClass.STAKEHOLDER_CATEGORIES.value),
        data_categories=SqlEntityService(db_manager, EntityClass.DATA_CATEGORIES.value),
        services=SqlEntityService(db_manager, EntityClass.SERVICES.value),
        waves=SqlEntityService(db_manager, EntityClass.WAVES.value),
        requirements=SqlRequirementService(db_manager),
        changes=SqlEntityService(db_manager, EntityClass.CHANGES.value),
    )
