"""Mappers turning extracted documents into structured import data."""

from functools import partial

from .registry import MapperRegistry
from .standard_mapper import StandardMapper

STANDARD_GROUP = "STANDARD"


def register_default_mappers(registry: MapperRegistry) -> MapperRegistry:
    """Register the mappers shipped with the package."""
    registry.register(STANDARD_GROUP, partial(StandardMapper, STANDARD_GROUP))
    return registry


__all__ = [
    "MapperRegistry",
    "StandardMapper",
    "STANDARD_GROUP",
    "register_default_mappers",
]
