"""Mapper for the system's own standard export format."""

import logging
from typing import Dict, List, Optional, Tuple

from ..interfaces.mapper import Mapper
from ..models.document import RawExtractedData, Section, TableData
from ..models.import_data import (
    ChangeData,
    DocumentReferenceData,
    RequirementData,
    StructuredImportData,
)
from ..models.enums import RequirementType
from .utils import (
    extract_list_items,
    extract_plain_text,
    parse_annotated_reference,
    parse_code_reference,
    strip_numbering,
)

logger = logging.getLogger(__name__)

REQUIREMENTS_SECTION = "operational needs and requirements"
CHANGES_SECTION = "operational changes"


class StandardMapper(Mapper):
    """
    Maps documents exported in the standard format back to import data.

    Level-1 sections select the entity family. Below "Operational Needs
    and Requirements", a section with a field table is an entity (ON or
    OR, from its code prefix), a section without one is an organizational
    folder extending the path. Entity sections nested in an entity refine
    it. Below "Operational Changes" every field table is a change.

    Args:
        drg: Drafting group stamped on every produced entity.
    """

    def __init__(self, drg: Optional[str] = None):
        self.drg = drg

    def map(self, raw: RawExtractedData) -> StructuredImportData:
        result = StructuredImportData()
        level_one = [section for section in raw.sections if section.level == 1]
        if not level_one:
            logger.warning("No level 1 sections found in standard document")
            return result

        for section in level_one:
            title = section.title.lower()
            if REQUIREMENTS_SECTION in title:
                entities = self._map_requirement_folder(section, [], None)
                result.requirements.extend(entities)
                logger.info(f"Mapped {len(entities)} requirements from '{section.title}'")
            elif CHANGES_SECTION in title:
                entities = self._map_changes(section)
                result.changes.extend(entities)
                logger.info(f"Mapped {len(entities)} changes from '{section.title}'")
            else:
                logger.warning(f"Unknown top-level section '{section.title}'")
        return result

    # Requirements

    def _map_requirement_folder(
        self,
        section: Section,
        path: List[str],
        parent: Optional[RequirementData],
    ) -> List[RequirementData]:
        entities: List[RequirementData] = []
        for subsection in section.subsections:
            if subsection.content.tables:
                entity_type = self.detect_entity_type(subsection.content.tables[0])
                if entity_type is None:
                    logger.warning(f"Could not determine entity type for section '{subsection.title}'")
                    continue
                entities.extend(self._map_requirement_entity(subsection, entity_type, path, parent))
            else:
                folder_path = path + [strip_numbering(subsection.title)]
                entities.extend(self._map_requirement_folder(subsection, folder_path, parent))
        return entities

    def _map_requirement_entity(
        self,
        section: Section,
        entity_type: RequirementType,
        path: List[str],
        parent: Optional[RequirementData],
    ) -> List[RequirementData]:
        entities: List[RequirementData] = []
        current: Optional[RequirementData] = None
        for table in section.content.tables:
            entity = self._requirement_from_table(table, entity_type, section.title, path, parent)
            if entity is not None:
                current = entity
                entities.append(entity)

        for subsection in section.subsections:
            if subsection.content.tables:
                child_type = self.detect_entity_type(subsection.content.tables[0])
                if child_type is not None:
                    entities.extend(self._map_requirement_entity(subsection, child_type, path, current))
            else:
                folder_path = path + [strip_numbering(subsection.title)]
                entities.extend(self._map_requirement_folder(subsection, folder_path, current))
        return entities

    def _requirement_from_table(
        self,
        table: TableData,
        entity_type: RequirementType,
        section_title: str,
        path: List[str],
        parent: Optional[RequirementData],
    ) -> Optional[RequirementData]:
        fields = self.build_field_map(table)
        identity = self._identity(fields, section_title)
        if identity is None:
            return None
        code, title = identity

        entity = RequirementData(
            external_id=code,
            title=title,
            type=entity_type.value,
            drg=self.drg,
            statement=fields.get("Statement", ""),
            rationale=fields.get("Rationale", ""),
            flows=fields.get("Flows", ""),
            private_notes=fields.get("Private Notes", ""),
            implemented_ons=self._code_references(fields.get("Implements")),
            depends_on_requirements=self._code_references(fields.get("Depends on Requirements")),
            document_references=self._document_references(fields.get("References")),
            impacts_stakeholder_categories=self._annotated_ids(fields.get("Impacts Stakeholders")),
            impacts_data=self._annotated_ids(fields.get("Impacts Data")),
            impacts_services=self._annotated_ids(fields.get("Impacts Services")),
        )
        if parent is not None:
            entity.refines = parent.external_id
        elif path:
            entity.path = list(path)
        logger.debug(f"Mapped {entity.type} {entity.external_id}")
        return entity

    # Changes

    def _map_changes(self, section: Section) -> List[ChangeData]:
        entities: List[ChangeData] = []
        stack = [section]
        while stack:
            current = stack.pop()
            for table in current.content.tables:
                entity = self._change_from_table(table, current.title)
                if entity is not None:
                    entities.append(entity)
            stack.extend(reversed(current.subsections))
        return entities

    def _change_from_table(self, table: TableData, section_title: str) -> Optional[ChangeData]:
        fields = self.build_field_map(table)
        identity = self._identity(fields, section_title)
        if identity is None:
            return None
        code, title = identity
        return ChangeData(
            external_id=code,
            title=title,
            drg=self.drg,
            purpose=fields.get("Purpose", ""),
            initial_state=fields.get("Initial State", ""),
            final_state=fields.get("Final State", ""),
            details=fields.get("Details", ""),
            private_notes=fields.get("Private Notes", ""),
            satisfied_ors=self._code_references(fields.get("Satisfies Requirements")),
            superseded_ors=self._code_references(fields.get("Supersedes Requirements")),
            depends_on_changes=self._code_references(fields.get("Depends on Changes")),
            document_references=self._document_references(fields.get("References")),
        )

    # Field helpers

    @staticmethod
    def build_field_map(table: TableData) -> Dict[str, str]:
        """Two-column table rows as ``{field name: raw value}``."""
        fields: Dict[str, str] = {}
        for row in table.rows:
            if len(row) >= 2:
                name = extract_plain_text(row[0])
                if name:
                    fields[name] = row[1]
        return fields

    @staticmethod
    def detect_entity_type(table: TableData) -> Optional[RequirementType]:
        """ON or OR from the Code (or ODP Id) field of a field table."""
        for row in table.rows:
            if len(row) < 2:
                continue
            name = extract_plain_text(row[0]).lower()
            value = extract_plain_text(row[1])
            if not value:
                continue
            if name == "code":
                upper = value.upper()
                if upper.startswith(("ON-", "ON ")):
                    return RequirementType.ON
                if upper.startswith(("OR-", "OR ")):
                    return RequirementType.OR
            if name == "odp id":
                lower = value.lower()
                if lower.startswith("on:"):
                    return RequirementType.ON
                if lower.startswith("or:"):
                    return RequirementType.OR
        return None

    @staticmethod
    def _identity(fields: Dict[str, str], section_title: str) -> Optional[Tuple[str, str]]:
        title = extract_plain_text(fields["Title"]) if "Title" in fields else strip_numbering(section_title)
        if not title.strip():
            logger.warning(f"Could not determine title for entity in section '{section_title}'")
            return None
        code = extract_plain_text(fields.get("Code") or fields.get("code"))
        if not code:
            logger.warning(f"Skipping entity without Code field in section '{section_title}'")
            return None
        return code, title.strip()

    @staticmethod
    def _code_references(text: Optional[str]) -> List[str]:
        return [parse_code_reference(item) for item in extract_list_items(text)]

    @staticmethod
    def _annotated_ids(text: Optional[str]) -> List[str]:
        return [parse_annotated_reference(item)[0] for item in extract_list_items(text)]

    @staticmethod
    def _document_references(text: Optional[str]) -> List[DocumentReferenceData]:
        references = []
        for item in extract_list_items(text):
            document_id, note = parse_annotated_reference(item)
            references.append(DocumentReferenceData(document_external_id=document_id, note=note))
        return references
