"""Enumerations for the ODP import pipeline."""

from enum import Enum


class DocumentType(Enum):
    """Source document kinds produced by extraction."""
    WORD = "word"
    HIERARCHICAL_WORD = "hierarchical-word"
    EXCEL = "excel"


class ElementType(Enum):
    """Kinds of content elements recovered from markup."""
    HEADING = "heading"
    PARAGRAPH = "paragraph"
    TABLE = "table"


class ListType(Enum):
    """List flavours and the marker character used for their items."""
    ORDERED = "."
    BULLET = "*"


class RequirementType(Enum):
    """Operational Need or Operational Requirement."""
    ON = "ON"
    OR = "OR"


class Visibility(Enum):
    """Visibility of an operational change."""
    NM = "NM"
    NETWORK = "NETWORK"


class EntityClass(Enum):
    """Entity classes handled by the import, keyed as in the import summary."""
    DOCUMENTS = "documents"
    STAKEHOLDER_CATEGORIES = "stakeholderCategories"
    DATA_CATEGORIES = "dataCategories"
    SERVICES = "services"
    WAVES = "waves"
    REQUIREMENTS = "requirements"
    CHANGES = "changes"
