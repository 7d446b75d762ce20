"""
Hierarchy ordering helpers.

Both functions walk parent chains with explicit loops instead of recursion,
so deep hierarchies cannot exhaust the interpreter stack.
"""

import logging
from typing import Dict, List, Optional, Sequence

from ..interfaces.entity_service import EntityRecord
from ..models.import_data import SetupEntityData
from .context import Diagnostics, IdMap
from .exceptions import CircularDependencyError, ReferenceMapError

logger = logging.getLogger(__name__)

_VISITING = "visiting"
_DONE = "done"
_FAILED = "failed"

TITLE_PATH_SEPARATOR = "/"


def topological_sort(items: Sequence[SetupEntityData], diagnostics: Diagnostics) -> List[SetupEntityData]:
    """
    Order hierarchical items so every parent precedes its children.

    Items whose parent chain loops are left out: cycle members get a
    circular dependency error, their descendants a skip error, and the
    rest of the batch is ordered normally. A parent missing from the batch
    only produces a warning.
    """
    by_key: Dict[str, SetupEntityData] = {}
    unique: List[SetupEntityData] = []
    for item in items:
        key = IdMap.normalize_key(item.external_id)
        if key in by_key:
            diagnostics.add_error(f"Duplicate external id {item.external_id}")
            continue
        by_key[key] = item
        unique.append(item)

    state: Dict[str, str] = {}
    ordered: List[SetupEntityData] = []

    for item in unique:
        key = IdMap.normalize_key(item.external_id)
        if key in state:
            continue

        chain: List[str] = []
        current = key
        failed = False
        while True:
            state[current] = _VISITING
            chain.append(current)
            entity = by_key[current]
            if not entity.parent_external_id:
                break
            parent_key = IdMap.normalize_key(entity.parent_external_id)
            if parent_key not in by_key:
                diagnostics.add_warning(
                    f"Parent {entity.parent_external_id} not found for {entity.external_id}"
                )
                break
            parent_state = state.get(parent_key)
            if parent_state == _DONE:
                break
            if parent_state == _FAILED:
                ancestor = by_key[parent_key].external_id
                for member in chain:
                    diagnostics.add_error(
                        f"Skipped {by_key[member].external_id}: ancestor {ancestor} is part of a circular dependency"
                    )
                failed = True
                break
            if parent_state == _VISITING:
                start = chain.index(parent_key)
                cycle = chain[start:]
                for member in cycle:
                    diagnostics.add_error(f"Circular dependency detected for {by_key[member].external_id}")
                for member in chain[:start]:
                    diagnostics.add_error(
                        f"Skipped {by_key[member].external_id}: ancestor {by_key[parent_key].external_id} "
                        f"is part of a circular dependency"
                    )
                logger.warning(
                    f"Circular dependency: {' -> '.join(by_key[m].external_id for m in cycle)}"
                )
                failed = True
                break
            current = parent_key

        if failed:
            for member in chain:
                state[member] = _FAILED
            continue
        for member in reversed(chain):
            state[member] = _DONE
            ordered.append(by_key[member])

    return ordered


def _parent_of(record: EntityRecord, diagnostics: Diagnostics) -> Optional[str]:
    if record.parent_id:
        return record.parent_id
    parents = record.get("refinesParents") or []
    if not parents:
        return None
    if len(parents) > 1:
        diagnostics.add_warning(
            f"Requirement {record.title} has multiple parents, using first one only"
        )
    first = parents[0]
    return first.get("id") if isinstance(first, dict) else first


def build_title_paths(records: Sequence[EntityRecord], diagnostics: Diagnostics) -> Dict[str, str]:
    """
    Map the title path of every persisted requirement to its id.

    A title path joins the titles from the root ancestor down to the
    requirement with ``/``.

    Raises:
        CircularDependencyError: If persisted parent links form a cycle.
        ReferenceMapError: If a parent link points to a missing requirement.
    """
    by_id: Dict[str, EntityRecord] = {record.id: record for record in records}
    parent_of: Dict[str, Optional[str]] = {
        record.id: _parent_of(record, diagnostics) for record in records
    }
    memo: Dict[str, str] = {}
    paths: Dict[str, str] = {}

    for record in records:
        if record.id in memo:
            continue
        chain: List[str] = []
        on_chain = set()
        current: Optional[str] = record.id
        while current is not None and current not in memo:
            if current in on_chain:
                start = chain.index(current)
                cycle = [by_id[i].title or i for i in chain[start:]] + [by_id[current].title or current]
                raise CircularDependencyError(entity_class="requirements", cycle=cycle)
            if current not in by_id:
                raise ReferenceMapError(
                    message=f"Requirement with ID {current} not found",
                    entity_class="requirements",
                )
            chain.append(current)
            on_chain.add(current)
            current = parent_of[current]

        prefix = memo[current] if current is not None else None
        for node in reversed(chain):
            title = by_id[node].title or ""
            path = f"{prefix}{TITLE_PATH_SEPARATOR}{title}" if prefix is not None else title
            memo[node] = path
            paths[path] = node
            prefix = path

    return paths
