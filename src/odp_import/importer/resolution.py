"""
Reference resolution engine.

Flow A imports reference data (documents, stakeholder categories,
services, data categories, waves), parents before children. Flow B
imports requirements and changes in three phases:

1. seed: load everything already persisted, concurrently, into the
   case-insensitive reference maps;
2. create: create every requirement with empty references, registering
   its external id as soon as it exists;
3. resolve: re-read each created requirement and update it with every
   reference resolved against the now complete maps.

Changes resolve their references and milestones while being created.
Per-entity failures are recorded and the import continues; anything that
breaks the maps themselves aborts the import with one top-level error.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence

from ..interfaces.entity_service import EntityRecord, IEntityService, IRequirementService
from ..models.import_data import (
    ChangeData,
    DocumentData,
    DocumentReferenceData,
    ImportSummary,
    RequirementData,
    SetupEntityData,
    StructuredImportData,
    WaveData,
)
from ..performance import timed_operation
from .context import Diagnostics, IdMap, ImportContext
from .exceptions import EntityNotFoundError, ReferenceMapError
from .topology import build_title_paths, topological_sort

logger = logging.getLogger(__name__)

DEFAULT_EVENT_TYPE = "OPS_DEPLOYMENT"
DEFAULT_VISIBILITY = "NETWORK"

REQUIREMENT_REFERENCE_FIELDS = (
    "refinesParents",
    "impactsStakeholderCategories",
    "impactsData",
    "impactsServices",
    "implementedONs",
    "documentReferences",
    "dependsOnRequirements",
)


@dataclass
class EntityServices:
    """The persistence services the engine writes through."""
    documents: IEntityService
    stakeholder_categories: IEntityService
    data_categories: IEntityService
    services: IEntityService
    waves: IEntityService
    requirements: IRequirementService
    changes: IEntityService


def wave_keys(name: Optional[str], year: Any, quarter: Any) -> List[str]:
    """Every key a wave can be referenced by: name, ``2027-Q1`` and ``2027-1``."""
    keys = [name] if name else []
    if year is not None and quarter is not None:
        keys.append(f"{year}-Q{quarter}")
        keys.append(f"{year}-{quarter}")
    return keys


class ReferenceResolutionEngine:
    """
    Creates and cross-links the entities of one StructuredImportData.

    Args:
        services: Entity services to write through.
        seed_workers: Thread pool size for the seed loads.
        default_event_type: Milestone event type when none is given.
        default_visibility: Change visibility when none is given.
    """

    def __init__(
        self,
        services: EntityServices,
        seed_workers: int = 4,
        default_event_type: str = DEFAULT_EVENT_TYPE,
        default_visibility: str = DEFAULT_VISIBILITY,
    ):
        self.services = services
        self.seed_workers = max(1, seed_workers)
        self.default_event_type = default_event_type
        self.default_visibility = default_visibility

    def import_structured_data(self, data: StructuredImportData, user_id: str) -> ImportSummary:
        """Import ``data``; the summary always carries every diagnostic."""
        context = ImportContext()
        summary = ImportSummary()
        try:
            self._import_setup_entities(data, user_id, context, summary)

            if data.requirements or data.changes:
                self._seed_reference_maps(user_id, context)

            if data.requirements:
                created = self._run_phase(
                    context, lambda diagnostics: self._create_requirements(
                        data.requirements, user_id, context, diagnostics
                    )
                )
                summary.requirements = len(created)
                self._run_phase(
                    context, lambda diagnostics: self._resolve_requirements(
                        data.requirements, created, user_id, context, diagnostics
                    )
                )

            if data.changes:
                summary.changes = self._run_phase(
                    context, lambda diagnostics: self._create_changes(
                        data.changes, user_id, context, diagnostics
                    )
                )
        except Exception as e:
            logger.exception(f"Import failed: {e}")
            context.diagnostics.add_error(f"Import failed: {e}")

        summary.errors = list(context.errors)
        summary.warnings = list(context.warnings)
        logger.info(
            f"Import finished: {summary.requirements} requirements, {summary.changes} changes, "
            f"{len(summary.errors)} errors, {len(summary.warnings)} warnings"
        )
        return summary

    @staticmethod
    def _run_phase(context: ImportContext, phase: Callable[[Diagnostics], Any]) -> Any:
        """Run one phase with its own diagnostics and merge them afterwards."""
        diagnostics = Diagnostics()
        try:
            return phase(diagnostics)
        finally:
            context.diagnostics.merge(diagnostics)

    # Flow A

    @timed_operation("import_setup_entities")
    def _import_setup_entities(
        self,
        data: StructuredImportData,
        user_id: str,
        context: ImportContext,
        summary: ImportSummary,
    ) -> None:
        if data.documents:
            summary.documents = self._run_phase(
                context, lambda d: self._import_documents(data.documents, user_id, context, d)
            )
        if data.stakeholder_categories:
            summary.stakeholder_categories = self._run_phase(
                context, lambda d: self._import_hierarchy(
                    data.stakeholder_categories, self.services.stakeholder_categories,
                    "stakeholder category", user_id, context, d,
                )
            )
        if data.services:
            summary.services = self._run_phase(
                context, lambda d: self._import_hierarchy(
                    data.services, self.services.services, "service", user_id, context, d,
                )
            )
        if data.data_categories:
            summary.data_categories = self._run_phase(
                context, lambda d: self._import_hierarchy(
                    data.data_categories, self.services.data_categories,
                    "data category", user_id, context, d,
                )
            )
        if data.waves:
            summary.waves = self._run_phase(
                context, lambda d: self._import_waves(data.waves, user_id, context, d)
            )

    def _import_documents(
        self,
        documents: Sequence[DocumentData],
        user_id: str,
        context: ImportContext,
        diagnostics: Diagnostics,
    ) -> int:
        count = 0
        for document in documents:
            request = {
                "externalId": document.external_id,
                "name": document.title,
                "version": document.version,
                "description": document.description,
                "url": document.url,
            }
            try:
                created = self.services.documents.create(request, user_id)
            except Exception as e:
                diagnostics.add_error(f"Failed to create document {document.external_id}: {e}")
                continue
            context.setup_id_map.register(document.external_id, created.id)
            context.document_id_map.register(document.external_id, created.id)
            context.document_id_map.register(document.title, created.id)
            count += 1
            logger.debug(f"Created document {document.external_id}")
        return count

    def _import_hierarchy(
        self,
        items: Sequence[SetupEntityData],
        service: IEntityService,
        label: str,
        user_id: str,
        context: ImportContext,
        diagnostics: Diagnostics,
    ) -> int:
        batch_keys = {IdMap.normalize_key(item.external_id) for item in items}
        count = 0
        for item in topological_sort(items, diagnostics):
            parent_id = None
            if item.parent_external_id:
                parent_id = context.setup_id_map.resolve(item.parent_external_id)
                if parent_id is None and IdMap.normalize_key(item.parent_external_id) in batch_keys:
                    diagnostics.add_error(
                        f"Skipped {label} {item.external_id}: parent {item.parent_external_id} was not created"
                    )
                    continue
            request = {
                "externalId": item.external_id,
                "name": item.title,
                "description": item.description,
                "parentId": parent_id,
            }
            try:
                created = service.create(request, user_id)
            except Exception as e:
                diagnostics.add_error(f"Failed to create {label} {item.external_id}: {e}")
                continue
            context.setup_id_map.register(item.external_id, created.id)
            count += 1
            logger.debug(f"Created {label} {item.external_id}")
        return count

    def _import_waves(
        self,
        waves: Sequence[WaveData],
        user_id: str,
        context: ImportContext,
        diagnostics: Diagnostics,
    ) -> int:
        count = 0
        for wave in waves:
            request = {
                "externalId": wave.external_id,
                "name": wave.title,
                "year": wave.year,
                "quarter": wave.quarter,
                "date": wave.date,
            }
            try:
                created = self.services.waves.create(request, user_id)
            except Exception as e:
                diagnostics.add_error(f"Failed to create wave {wave.external_id}: {e}")
                continue
            context.setup_id_map.register(wave.external_id, created.id)
            context.wave_id_map.register(wave.external_id, created.id)
            for key in wave_keys(wave.title, wave.year, wave.quarter):
                context.wave_id_map.register(key, created.id)
            count += 1
            logger.debug(f"Created wave {wave.external_id}")
        return count

    # Flow B, phase 1

    @timed_operation("seed_reference_maps")
    def _seed_reference_maps(self, user_id: str, context: ImportContext) -> Dict[str, List[EntityRecord]]:
        """
        Load every persisted entity and register it in the maps.

        Returns the loaded records keyed by entity class. With a single
        seed worker the loads run on the calling thread.

        Raises:
            ReferenceMapError: If any load fails.
            CircularDependencyError: If persisted requirement parents loop.
        """
        loaders: Dict[str, Callable[[], List[EntityRecord]]] = {
            "stakeholderCategories": lambda: self.services.stakeholder_categories.list_items(user_id),
            "services": lambda: self.services.services.list_items(user_id),
            "dataCategories": lambda: self.services.data_categories.list_items(user_id),
            "documents": lambda: self.services.documents.list_items(user_id),
            "waves": lambda: self.services.waves.list_items(user_id),
            "changes": lambda: self.services.changes.list_items(user_id),
            "requirements": lambda: self.services.requirements.get_all(user_id),
        }
        loaded: Dict[str, List[EntityRecord]] = {}
        try:
            if self.seed_workers == 1:
                loaded = {name: loader() for name, loader in loaders.items()}
            else:
                with ThreadPoolExecutor(max_workers=self.seed_workers) as executor:
                    futures = {executor.submit(loader): name for name, loader in loaders.items()}
                    for future in as_completed(futures):
                        loaded[futures[future]] = future.result()
        except Exception as e:
            raise ReferenceMapError(message=f"Failed to build global reference maps: {e}") from e

        for name in ("stakeholderCategories", "services", "dataCategories"):
            for record in loaded[name]:
                context.global_ref_map.register(record.title, record.id)
                context.global_ref_map.register(record.external_id, record.id)

        for record in loaded["documents"]:
            context.document_id_map.register(record.title, record.id)
            context.document_id_map.register(record.external_id, record.id)

        for record in loaded["waves"]:
            context.wave_id_map.register(record.external_id, record.id)
            for key in wave_keys(record.title, record.get("year"), record.get("quarter")):
                context.wave_id_map.register(key, record.id)

        for record in loaded["changes"]:
            context.change_id_map.register(record.title, record.id)
            context.change_id_map.register(record.external_id, record.id)

        phase_diagnostics = Diagnostics()
        try:
            for path, requirement_id in build_title_paths(loaded["requirements"], phase_diagnostics).items():
                context.global_ref_map.register(path, requirement_id)
        finally:
            context.diagnostics.merge(phase_diagnostics)
        for record in loaded["requirements"]:
            context.global_ref_map.register(record.external_id, record.id)

        context.global_ref_map.merge(context.setup_id_map)
        context.seeded = True
        logger.info(
            f"Reference maps seeded: {len(context.global_ref_map)} references, "
            f"{len(context.document_id_map)} documents, {len(context.wave_id_map)} wave keys, "
            f"{len(context.change_id_map)} changes"
        )
        return loaded

    # Flow B, phase 2

    @timed_operation("create_requirements")
    def _create_requirements(
        self,
        requirements: Sequence[RequirementData],
        user_id: str,
        context: ImportContext,
        diagnostics: Diagnostics,
    ) -> Dict[str, str]:
        """Create requirements without references; returns external key -> id."""
        created_ids: Dict[str, str] = {}
        for requirement in requirements:
            key = IdMap.normalize_key(requirement.external_id)
            if key in created_ids:
                diagnostics.add_error(f"Duplicate requirement external id {requirement.external_id}")
                continue
            request = self._requirement_fields(requirement)
            request.update({field_name: [] for field_name in REQUIREMENT_REFERENCE_FIELDS})
            try:
                created = self.services.requirements.create(request, user_id)
            except Exception as e:
                diagnostics.add_error(f"Failed to create requirement {requirement.external_id}: {e}")
                continue
            context.global_ref_map.register(requirement.external_id, created.id)
            created_ids[key] = created.id
            logger.debug(f"Created requirement {requirement.external_id}")
        logger.info(f"Created {len(created_ids)} of {len(requirements)} requirements")
        return created_ids

    # Flow B, phase 3

    @timed_operation("resolve_requirements")
    def _resolve_requirements(
        self,
        requirements: Sequence[RequirementData],
        created_ids: Dict[str, str],
        user_id: str,
        context: ImportContext,
        diagnostics: Diagnostics,
    ) -> int:
        resolved = 0
        seen = set()
        for requirement in requirements:
            key = IdMap.normalize_key(requirement.external_id)
            if key not in created_ids or key in seen:
                continue
            seen.add(key)
            try:
                self._resolve_requirement(requirement, created_ids[key], user_id, context, diagnostics)
                resolved += 1
            except Exception as e:
                diagnostics.add_error(
                    f"Failed to resolve references for {requirement.external_id}: {e}"
                )
        return resolved

    def _resolve_requirement(
        self,
        requirement: RequirementData,
        requirement_id: str,
        user_id: str,
        context: ImportContext,
        diagnostics: Diagnostics,
    ) -> None:
        current = self.services.requirements.get_by_id(requirement_id, user_id)
        if current is None:
            raise EntityNotFoundError(
                entity_class="requirements",
                external_id=requirement.external_id,
                entity_id=requirement_id,
            )

        request = dict(current.data)
        request.update(self._requirement_references(requirement, context, diagnostics))
        self.services.requirements.update(requirement_id, request, current.version_id, user_id)
        logger.debug(f"Resolved references for {requirement.external_id}")

    @staticmethod
    def _requirement_fields(requirement: RequirementData) -> Dict[str, Any]:
        return {
            "externalId": requirement.external_id,
            "title": requirement.title,
            "type": requirement.type,
            "statement": requirement.statement,
            "rationale": requirement.rationale,
            "flows": requirement.flows,
            "privateNotes": requirement.private_notes,
            "path": list(requirement.path),
            "drg": requirement.drg,
        }

    def _requirement_references(
        self,
        requirement: RequirementData,
        context: ImportContext,
        diagnostics: Diagnostics,
    ) -> Dict[str, Any]:
        """Every reference field of ``requirement`` resolved against the maps."""
        owner = requirement.external_id
        refs = context.global_ref_map
        return {
            "refinesParents": refs.resolve_many(
                [requirement.refines] if requirement.refines else [], diagnostics, owner
            ),
            "impactsStakeholderCategories": refs.resolve_many(
                requirement.impacts_stakeholder_categories, diagnostics, owner
            ),
            "impactsData": refs.resolve_many(requirement.impacts_data, diagnostics, owner),
            "impactsServices": refs.resolve_many(requirement.impacts_services, diagnostics, owner),
            "implementedONs": refs.resolve_many(requirement.implemented_ons, diagnostics, owner),
            "documentReferences": self._resolve_document_references(
                requirement.document_references, context, diagnostics, owner
            ),
            "dependsOnRequirements": refs.resolve_many(
                requirement.depends_on_requirements, diagnostics, owner
            ),
        }

    # Changes

    def _change_request(
        self,
        change: ChangeData,
        context: ImportContext,
        diagnostics: Diagnostics,
    ) -> Dict[str, Any]:
        """Full change payload with references and milestones resolved."""
        owner = change.external_id
        refs = context.global_ref_map
        return {
            "externalId": change.external_id,
            "title": change.title,
            "purpose": change.purpose,
            "initialState": change.initial_state,
            "finalState": change.final_state,
            "details": change.details,
            "privateNotes": change.private_notes,
            "path": list(change.path),
            "visibility": change.visibility or self.default_visibility,
            "drg": change.drg,
            "satisfiesRequirements": refs.resolve_many(change.satisfied_ors, diagnostics, owner),
            "supersedsRequirements": refs.resolve_many(change.superseded_ors, diagnostics, owner),
            "documentReferences": self._resolve_document_references(
                change.document_references, context, diagnostics, owner
            ),
            "dependsOnChanges": context.change_id_map.resolve_many(
                change.depends_on_changes, diagnostics, owner
            ),
            "milestones": self._resolve_milestones(change, context, diagnostics),
        }

    @timed_operation("create_changes")
    def _create_changes(
        self,
        changes: Sequence[ChangeData],
        user_id: str,
        context: ImportContext,
        diagnostics: Diagnostics,
    ) -> int:
        count = 0
        for change in changes:
            request = self._change_request(change, context, diagnostics)
            try:
                created = self.services.changes.create(request, user_id)
            except Exception as e:
                diagnostics.add_error(f"Failed to create change {change.external_id}: {e}")
                continue
            context.change_id_map.register(change.external_id, created.id)
            count += 1
            logger.debug(f"Created change {change.external_id}")
        logger.info(f"Created {count} of {len(changes)} changes")
        return count

    def _resolve_milestones(
        self,
        change: ChangeData,
        context: ImportContext,
        diagnostics: Diagnostics,
    ) -> List[Dict[str, Any]]:
        milestones = []
        for index, milestone in enumerate(change.milestones, start=1):
            wave_id = None
            if milestone.wave:
                wave_id = context.wave_id_map.resolve(milestone.wave)
                if wave_id is None:
                    diagnostics.add_warning(
                        f"Wave '{milestone.wave}' not found for milestone {index} in {change.external_id}"
                    )
            milestones.append({
                "milestoneKey": f"{change.external_id}-M{index}",
                "title": milestone.title,
                "eventType": milestone.event_type or self.default_event_type,
                "waveId": wave_id,
            })
        return milestones

    @staticmethod
    def _resolve_document_references(
        references: Sequence[DocumentReferenceData],
        context: ImportContext,
        diagnostics: Diagnostics,
        owner: str,
    ) -> List[Dict[str, str]]:
        resolved = []
        missing = []
        for reference in references:
            if not reference.document_external_id:
                diagnostics.add_warning(f"Document reference missing documentExternalId in {owner}")
                continue
            document_id = context.document_id_map.resolve(reference.document_external_id)
            if document_id is None:
                missing.append(reference.document_external_id)
                continue
            resolved.append({"id": document_id, "note": reference.note or ""})
        if missing:
            diagnostics.add_warning(f"Missing document references in {owner}: {', '.join(missing)}")
        return resolved
