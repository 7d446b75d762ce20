"""Per-import resolution state."""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

logger = logging.getLogger(__name__)


@dataclass
class Diagnostics:
    """Ordered errors and warnings collected during one phase of an import."""
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return len(self.errors) > 0

    def add_error(self, message: str) -> None:
        logger.debug(f"Import error: {message}")
        self.errors.append(message)

    def add_warning(self, message: str) -> None:
        logger.debug(f"Import warning: {message}")
        self.warnings.append(message)

    def merge(self, other: "Diagnostics") -> "Diagnostics":
        """Append the messages of ``other``, keeping their order."""
        self.errors.extend(other.errors)
        self.warnings.extend(other.warnings)
        return self


class IdMap:
    """
    Case-insensitive map from external identifiers to internal ids.

    Keys are trimmed and lower-cased on the way in and on lookup, so
    ``"Doc-1"``, ``"doc-1"`` and ``"DOC-1"`` are the same key.
    """

    def __init__(self, name: str):
        self.name = name
        self._ids: Dict[str, str] = {}

    @staticmethod
    def normalize_key(key: str) -> str:
        return key.strip().lower()

    def register(self, key: Optional[str], internal_id: str) -> None:
        if key is None or not str(key).strip():
            return
        self._ids[self.normalize_key(str(key))] = internal_id

    def resolve(self, key: Optional[str]) -> Optional[str]:
        if key is None:
            return None
        return self._ids.get(self.normalize_key(str(key)))

    def resolve_many(self, keys: Iterable[str], diagnostics: Diagnostics, owner: Optional[str] = None) -> List[str]:
        """
        Resolve ``keys`` in order, dropping the unknown ones.

        A single warning names every unresolved key.
        """
        resolved: List[str] = []
        missing: List[str] = []
        for key in keys:
            internal_id = self.resolve(key)
            if internal_id is not None:
                resolved.append(internal_id)
            else:
                missing.append(key)
        if missing:
            suffix = f" in {owner}" if owner else ""
            diagnostics.add_warning(f"Missing external references{suffix}: {', '.join(missing)}")
        return resolved

    def merge(self, other: "IdMap") -> None:
        self._ids.update(other._ids)

    def items(self) -> Iterator[Tuple[str, str]]:
        return iter(self._ids.items())

    def __contains__(self, key: str) -> bool:
        return self.resolve(key) is not None

    def __len__(self) -> int:
        return len(self._ids)


@dataclass
class ImportContext:
    """
    Mutable state of one import invocation.

    Never shared between invocations. ``diagnostics`` accumulates the
    messages of every finished phase.
    """
    setup_id_map: IdMap = field(default_factory=lambda: IdMap("setup"))
    global_ref_map: IdMap = field(default_factory=lambda: IdMap("global"))
    document_id_map: IdMap = field(default_factory=lambda: IdMap("documents"))
    wave_id_map: IdMap = field(default_factory=lambda: IdMap("waves"))
    change_id_map: IdMap = field(default_factory=lambda: IdMap("changes"))
    diagnostics: Diagnostics = field(default_factory=Diagnostics)
    seeded: bool = False

    @property
    def errors(self) -> List[str]:
        return self.diagnostics.errors

    @property
    def warnings(self) -> List[str]:
        return self.diagnostics.warnings

