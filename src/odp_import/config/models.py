"""Data models for configuration management."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..parsers.image_transcoder import DEFAULT_SUPPORTED_TYPES


@dataclass
class ExtractionSettings:
    """
    Settings of document extraction.

    Controls list prefix depth, which heading bookmarks are ignored, the
    synthesized root section and image re-encoding.
    """
    max_list_depth: int = 3
    excluded_anchor_prefix: str = "_Toc"
    default_section_title: str = "Content"
    max_default_title_length: int = 100
    image_target_format: str = "PNG"
    supported_image_types: List[str] = field(default_factory=lambda: list(DEFAULT_SUPPORTED_TYPES))


@dataclass
class ImportSettings:
    """Settings of the reference resolution engine."""
    seed_workers: int = 4
    default_event_type: str = "OPS_DEPLOYMENT"
    default_visibility: str = "NETWORK"


@dataclass
class StoreSettings:
    """Settings of the SQL entity store. No URL means the environment decides."""
    database_url: Optional[str] = None
    echo: bool = False


@dataclass
class ValidationResult:
    """Errors and warnings collected while validating one settings group."""
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def add_error(self, message: str) -> None:
        self.errors.append(message)

    def add_warning(self, message: str) -> None:
        self.warnings.append(message)

    def merge(self, other: "ValidationResult") -> "ValidationResult":
        """Combined result; neither operand is modified."""
        return ValidationResult(
            errors=[*self.errors, *other.errors],
            warnings=[*self.warnings, *other.warnings],
        )


@dataclass
class ConfigurationError(Exception):
    """Configuration could not be read or failed validation."""
    message: str
    validation_result: Optional[ValidationResult] = None

    def __post_init__(self):
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message


@dataclass
class SystemConfiguration:
    """
    Complete system configuration.

    Aggregates all settings groups into a single structure.
    """
    extraction: ExtractionSettings = field(default_factory=ExtractionSettings)
    importing: ImportSettings = field(default_factory=ImportSettings)
    store: StoreSettings = field(default_factory=StoreSettings)
    version: int = 1
    metadata: Dict[str, Any] = field(default_factory=dict)
