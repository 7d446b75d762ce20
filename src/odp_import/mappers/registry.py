"""Mapper lookup by drafting group and optional subgroup."""

import inspect
import logging
from typing import Callable, Dict, List, Optional, Type, Union

from ..importer.exceptions import MapperNotFoundError
from ..interfaces.mapper import Mapper

logger = logging.getLogger(__name__)

MapperFactory = Union[Type[Mapper], Callable[[], Mapper]]


class MapperRegistry:
    """
    Registry of mapper implementations.

    Keys are ``group`` or ``group/subgroup``. Lookups require an exact key
    match; a subgroup never falls back to its group. Each lookup builds a
    fresh mapper instance.
    """

    def __init__(self):
        self._registry: Dict[str, MapperFactory] = {}

    @staticmethod
    def build_key(group: str, subgroup: Optional[str] = None) -> str:
        return f"{group}/{subgroup}" if subgroup else group

    def register(self, group: str, implementation: MapperFactory, subgroup: Optional[str] = None) -> None:
        """
        Register a mapper class, or a zero-argument factory, for a key.

        Raises:
            ValueError: If ``group`` is empty or ``implementation`` is not
                a Mapper subclass or callable.
        """
        if not group or not isinstance(group, str):
            raise ValueError("Group identifier must be a non-empty string")
        if inspect.isclass(implementation):
            if not issubclass(implementation, Mapper):
                raise ValueError("Mapper class must extend Mapper")
        elif not callable(implementation):
            raise ValueError("Mapper implementation must be a Mapper class or factory")

        key = self.build_key(group, subgroup)
        if key in self._registry:
            logger.warning(f"Replacing mapper registered for {key}")
        self._registry[key] = implementation
        logger.debug(f"Registered mapper for {key}")

    def get_mapper(self, group: str, subgroup: Optional[str] = None) -> Mapper:
        """
        Build the mapper registered for exactly ``group``/``subgroup``.

        Raises:
            MapperNotFoundError: If nothing is registered under that key.
        """
        key = self.build_key(group, subgroup)
        implementation = self._registry.get(key)
        if implementation is None:
            raise MapperNotFoundError(group=group, subgroup=subgroup)
        mapper = implementation()
        if not isinstance(mapper, Mapper):
            raise TypeError(f"Factory registered for {key} did not return a Mapper")
        return mapper

    def is_registered(self, group: str, subgroup: Optional[str] = None) -> bool:
        return self.build_key(group, subgroup) in self._registry

    def registered_keys(self) -> List[str]:
        return sorted(self._registry)
