"""Shared fixtures: in-memory entity services and document builders."""

import copy
import io
import itertools
from typing import Any, Dict, List, Optional

import pytest
from docx import Document

from odp_import.importer.exceptions import EntityNotFoundError, VersionConflictError
from odp_import.importer.resolution import EntityServices, ReferenceResolutionEngine
from odp_import.interfaces.entity_service import EntityRecord, IEntityService, IRequirementService


class InMemoryEntityService(IEntityService):
    """Entity service keeping records in a dict, with optimistic versions."""

    def __init__(self, entity_class: str):
        self.entity_class = entity_class
        self.records: Dict[str, EntityRecord] = {}
        self.created_order: List[str] = []
        self.fail_on_create = set()
        self._ids = itertools.count(1)

    def _parent_of(self, request: Dict[str, Any]) -> Optional[str]:
        return request.get("parentId")

    def create(self, request, user_id):
        external_id = request.get("externalId")
        if external_id in self.fail_on_create:
            raise RuntimeError(f"store rejected {external_id}")
        entity_id = f"{self.entity_class}-{next(self._ids)}"
        record = EntityRecord(
            id=entity_id,
            version_id=1,
            data=copy.deepcopy(request),
            parent_id=self._parent_of(request),
        )
        self.records[entity_id] = record
        self.created_order.append(external_id)
        return copy.deepcopy(record)

    def update(self, entity_id, request, version_id, user_id):
        current = self.records.get(entity_id)
        if current is None:
            raise EntityNotFoundError(entity_class=self.entity_class, entity_id=entity_id)
        if current.version_id != version_id:
            raise VersionConflictError(
                entity_class=self.entity_class,
                entity_id=entity_id,
                expected_version=version_id,
                actual_version=current.version_id,
            )
        record = EntityRecord(
            id=entity_id,
            version_id=version_id + 1,
            data=copy.deepcopy(request),
            parent_id=self._parent_of(request),
        )
        self.records[entity_id] = record
        return copy.deepcopy(record)

    def get_by_id(self, entity_id, user_id):
        record = self.records.get(entity_id)
        return copy.deepcopy(record) if record else None

    def list_items(self, user_id):
        return [copy.deepcopy(record) for record in self.records.values()]

    def find(self, external_id: str) -> Optional[EntityRecord]:
        """Record created with ``external_id``, for assertions."""
        for record in self.records.values():
            if record.external_id == external_id:
                return record
        return None


class InMemoryRequirementService(InMemoryEntityService, IRequirementService):
    """Requirement flavour: the parent is the first REFINES target."""

    def __init__(self):
        super().__init__("requirements")

    def _parent_of(self, request):
        parents = request.get("refinesParents") or []
        return parents[0] if parents else None

    def get_all(self, user_id):
        return self.list_items(user_id)


def make_entity_services() -> EntityServices:
    return EntityServices(
        documents=InMemoryEntityService("documents"),
        stakeholder_categories=InMemoryEntityService("stakeholder-categories"),
        data_categories=InMemoryEntityService("data-categories"),
        services=InMemoryEntityService("services"),
        waves=InMemoryEntityService("waves"),
        requirements=InMemoryRequirementService(),
        changes=InMemoryEntityService("changes"),
    )


@pytest.fixture
def entity_services() -> EntityServices:
    return make_entity_services()


@pytest.fixture
def engine(entity_services) -> ReferenceResolutionEngine:
    return ReferenceResolutionEngine(entity_services, seed_workers=2)


def docx_bytes(document) -> bytes:
    """Serialize a python-docx Document to bytes."""
    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()


def add_field_table(document, rows):
    """Append a two-column field table (name, value) to ``document``."""
    table = document.add_table(rows=len(rows), cols=2)
    for index, (name, value) in enumerate(rows):
        table.cell(index, 0).text = name
        table.cell(index, 1).text = value
    return table


@pytest.fixture
def standard_export_docx() -> bytes:
    """A small document in the standard export format."""
    document = Document()
    document.add_heading("Operational Needs and Requirements", level=1)
    document.add_heading("Airspace", level=2)
    document.add_heading("ON-1 Shared situational awareness", level=3)
    add_field_table(document, [
        ("Code", "ON-1"),
        ("Title", "Shared situational awareness"),
        ("Statement", "All actors share one picture."),
    ])
    document.add_heading("OR-1 Publish flight plans", level=3)
    add_field_table(document, [
        ("Code", "OR-1"),
        ("Title", "Publish flight plans"),
        ("Statement", "Flight plans are published."),
        ("Implements", "* ON-1"),
    ])
    document.add_heading("OR-2 Publish updates", level=4)
    add_field_table(document, [
        ("Code", "OR-2"),
        ("Title", "Publish updates"),
        ("Depends on Requirements", "* OR-1"),
    ])
    document.add_heading("Operational Changes", level=1)
    document.add_heading("OC-1 Flight plan service", level=2)
    add_field_table(document, [
        ("Code", "OC-1"),
        ("Title", "Flight plan service"),
        ("Purpose", "Deploy the service."),
        ("Satisfies Requirements", "* [OR-1] Publish flight plans\n* OR-2"),
    ])
    return docx_bytes(document)
