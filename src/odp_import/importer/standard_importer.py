"""
Re-import of documents in the standard export format.

A standard export carries the codes the store already knows, so its
requirements and changes are matched to persisted entities by external
id. Unknown ones go through the regular create and resolve phases;
known ones are rebuilt from the export, compared with the stored payload
and updated under their current version, or skipped when nothing
changed.
"""

import logging
from typing import Any, Dict, List, Sequence, Tuple, TypeVar

from ..interfaces.entity_service import EntityRecord, IEntityService
from ..models.import_data import (
    ChangeData,
    RequirementData,
    StandardImportSummary,
    StructuredImportData,
)
from ..performance import timed_operation
from .context import Diagnostics, IdMap, ImportContext
from .exceptions import EntityNotFoundError
from .resolution import ReferenceResolutionEngine

logger = logging.getLogger(__name__)

Item = TypeVar("Item", RequirementData, ChangeData)


def index_by_external_id(records: Sequence[EntityRecord]) -> Dict[str, EntityRecord]:
    """Persisted records keyed by their normalized external id."""
    return {
        IdMap.normalize_key(record.external_id): record
        for record in records
        if record.external_id
    }


def classify(items: Sequence[Item], existing: Dict[str, EntityRecord]) -> Tuple[List[Item], List[Item]]:
    """Split ``items`` into (to create, to update) by external id."""
    to_create: List[Item] = []
    to_update: List[Item] = []
    for item in items:
        if IdMap.normalize_key(item.external_id) in existing:
            to_update.append(item)
        else:
            to_create.append(item)
    return to_create, to_update


class StandardImporter(ReferenceResolutionEngine):
    """Create-or-update import of requirements and changes keyed by code."""

    def import_standard_data(self, data: StructuredImportData, user_id: str) -> StandardImportSummary:
        context = ImportContext()
        summary = StandardImportSummary()
        try:
            ignored = (
                len(data.documents) + len(data.stakeholder_categories) + len(data.data_categories)
                + len(data.services) + len(data.waves)
            )
            if ignored:
                context.diagnostics.add_warning(
                    f"Ignored {ignored} reference data items; a standard import only updates "
                    f"requirements and changes"
                )

            if data.requirements or data.changes:
                loaded = self._seed_reference_maps(user_id, context)
                self._import_requirements(
                    data.requirements, index_by_external_id(loaded["requirements"]), user_id, context, summary
                )
                self._import_changes(
                    data.changes, index_by_external_id(loaded["changes"]), user_id, context, summary
                )
        except Exception as e:
            logger.exception(f"Import failed: {e}")
            context.diagnostics.add_error(f"Import failed: {e}")

        summary.errors = list(context.errors)
        summary.warnings = list(context.warnings)
        logger.info(
            f"Standard import finished: {summary.requirements + summary.changes} created, "
            f"{len(summary.updated)} updated, {len(summary.skipped)} unchanged, "
            f"{len(summary.errors)} errors"
        )
        return summary

    def _import_requirements(
        self,
        requirements: Sequence[RequirementData],
        existing: Dict[str, EntityRecord],
        user_id: str,
        context: ImportContext,
        summary: StandardImportSummary,
    ) -> None:
        to_create, to_update = classify(requirements, existing)
        logger.info(f"Requirements: {len(to_create)} to create, {len(to_update)} already stored")
        if to_create:
            created = self._run_phase(
                context, lambda d: self._create_requirements(to_create, user_id, context, d)
            )
            summary.requirements = len(created)
            self._run_phase(
                context, lambda d: self._resolve_requirements(to_create, created, user_id, context, d)
            )
        if to_update:
            self._run_phase(
                context, lambda d: self._update_existing(
                    to_update, existing, self.services.requirements, "requirement",
                    user_id, context, d, summary,
                )
            )

    def _import_changes(
        self,
        changes: Sequence[ChangeData],
        existing: Dict[str, EntityRecord],
        user_id: str,
        context: ImportContext,
        summary: StandardImportSummary,
    ) -> None:
        to_create, to_update = classify(changes, existing)
        logger.info(f"Changes: {len(to_create)} to create, {len(to_update)} already stored")
        if to_create:
            summary.changes = self._run_phase(
                context, lambda d: self._create_changes(to_create, user_id, context, d)
            )
        if to_update:
            self._run_phase(
                context, lambda d: self._update_existing(
                    to_update, existing, self.services.changes, "change",
                    user_id, context, d, summary,
                )
            )

    @timed_operation("update_existing_entities")
    def _update_existing(
        self,
        items: Sequence[Item],
        existing: Dict[str, EntityRecord],
        service: IEntityService,
        label: str,
        user_id: str,
        context: ImportContext,
        diagnostics: Diagnostics,
        summary: StandardImportSummary,
    ) -> None:
        seen = set()
        for item in items:
            key = IdMap.normalize_key(item.external_id)
            if key in seen:
                diagnostics.add_error(f"Duplicate {label} external id {item.external_id}")
                continue
            seen.add(key)
            entity_id = existing[key].id
            try:
                current = service.get_by_id(entity_id, user_id)
                if current is None:
                    raise EntityNotFoundError(
                        entity_class=f"{label}s",
                        external_id=item.external_id,
                        entity_id=entity_id,
                    )
                request = dict(current.data)
                request.update(self._rebuild(item, context, diagnostics))
                if request == current.data:
                    summary.skipped.append(item.external_id)
                    logger.debug(f"Unchanged {label} {item.external_id}")
                    continue
                service.update(entity_id, request, current.version_id, user_id)
            except Exception as e:
                diagnostics.add_error(f"Failed to update {label} {item.external_id}: {e}")
                continue
            summary.updated.append(item.external_id)
            logger.debug(f"Updated {label} {item.external_id}")

    def _rebuild(self, item: Item, context: ImportContext, diagnostics: Diagnostics) -> Dict[str, Any]:
        """Payload fields of ``item`` with every reference resolved."""
        if isinstance(item, ChangeData):
            return self._change_request(item, context, diagnostics)
        request = self._requirement_fields(item)
        request.update(self._requirement_references(item, context, diagnostics))
        return request
