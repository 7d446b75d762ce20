"""Import engine: reference maps, hierarchy ordering and resolution."""

from .context import Diagnostics, IdMap, ImportContext
from .exceptions import (
    CircularDependencyError,
    EntityNotFoundError,
    ImportFailure,
    MapperNotFoundError,
    ReferenceMapError,
    VersionConflictError,
)
from .resolution import EntityServices, ReferenceResolutionEngine, wave_keys
from .standard_importer import StandardImporter
from .topology import TITLE_PATH_SEPARATOR, build_title_paths, topological_sort

__all__ = [
    "Diagnostics",
    "IdMap",
    "ImportContext",
    "ImportFailure",
    "MapperNotFoundError",
    "CircularDependencyError",
    "EntityNotFoundError",
    "VersionConflictError",
    "ReferenceMapError",
    "EntityServices",
    "ReferenceResolutionEngine",
    "StandardImporter",
    "wave_keys",
    "TITLE_PATH_SEPARATOR",
    "build_title_paths",
    "topological_sort",
]
