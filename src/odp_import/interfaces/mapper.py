"""Mapper interface for the ODP import pipeline."""

from abc import ABC, abstractmethod

from ..models.document import RawExtractedData
from ..models.import_data import StructuredImportData


class Mapper(ABC):
    """
    Transforms extracted documents of one drafting group into import data.

    Implementations must be pure: the same RawExtractedData always gives
    the same StructuredImportData, and the input is never modified.
    """

    @abstractmethod
    def map(self, raw: RawExtractedData) -> StructuredImportData:
        """
        Map an extracted document to structured import data.

        Args:
            raw: The extracted section tree.

        Returns:
            Entities with unresolved external-id references.
        """
        pass
