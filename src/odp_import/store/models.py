"""SQLAlchemy models for the entity store."""

from datetime import datetime, timezone
import uuid

from sqlalchemy import (
    Column,
    String,
    DateTime,
    Integer,
    Index,
    JSON,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.types import TypeDecorator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


class JSONType(TypeDecorator):
    """Platform-independent JSON type.

    Uses JSONB for PostgreSQL and JSON for other databases (like SQLite).
    """
    impl = JSON
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == 'postgresql':
            return dialect.type_descriptor(JSONB())
        else:
            return dialect.type_descriptor(JSON())


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


class EntityModel(Base):
    """
    Versioned entity table shared by every entity class.

    ``payload`` holds the request fields as sent by the importer;
    ``parent_id`` mirrors the first REFINES target of requirements and the
    parent of hierarchical reference data.
    """
    __tablename__ = "odp_entities"

    id = Column(String(36), primary_key=True, default=_new_id)
    entity_class = Column(String(50), nullable=False)
    external_id = Column(String(255))
    name = Column(String(500))
    version_id = Column(Integer, nullable=False, default=1)
    payload = Column(JSONType, nullable=False)
    parent_id = Column(String(36))
    created_by = Column(String(255))
    updated_by = Column(String(255))
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        Index("idx_odp_entities_entity_class", "entity_class"),
        Index("idx_odp_entities_external_id", "entity_class", "external_id"),
    )

    def __repr__(self) -> str:
        return f"<EntityModel(id={self.id}, class={self.entity_class}, version={self.version_id})>"
