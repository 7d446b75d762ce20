"""Configuration Manager implementation for the ODP import pipeline.

This module provides functionality to load, validate, and manage the
extraction, import and store settings, including environment overrides.
"""

import json
import logging
import os
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from ..models.enums import Visibility
from .models import (
    ConfigurationError,
    ExtractionSettings,
    ImportSettings,
    StoreSettings,
    SystemConfiguration,
    ValidationResult,
)

logger = logging.getLogger(__name__)

ENV_DATABASE_URL = "ODP_IMPORT_DATABASE_URL"
ENV_MAX_LIST_DEPTH = "ODP_IMPORT_MAX_LIST_DEPTH"
ENV_SEED_WORKERS = "ODP_IMPORT_SEED_WORKERS"

SECTION_NAMES = ("extraction", "import", "store")
IMAGE_FORMATS = ("PNG", "JPEG", "GIF")


class ConfigurationManager:
    """
    Manager for system configuration.

    Handles loading, validation, and access to extraction, import and
    store settings.
    """

    def __init__(self, config_path: Optional[Union[str, Path]] = None):
        """
        Initialize the configuration manager.

        Args:
            config_path: Optional path of the JSON configuration file.
        """
        self._config_path = Path(config_path) if config_path else None
        self._configuration = SystemConfiguration()
        self._is_loaded = False

    @property
    def configuration(self) -> SystemConfiguration:
        """Get the current system configuration."""
        return self._configuration

    @property
    def is_loaded(self) -> bool:
        """Check if configuration has been loaded."""
        return self._is_loaded

    def load(self, source: Optional[Union[str, Path, Dict[str, Any]]] = None) -> ValidationResult:
        """
        Load and validate a configuration.

        Args:
            source: JSON file path or dictionary. Defaults to the path
                given at construction; with neither, defaults are validated.

        Returns:
            ValidationResult with any warnings.

        Raises:
            ConfigurationError: If validation fails and configuration cannot be applied.
        """
        if source is None:
            source = self._config_path if self._config_path else {}
        raw_data = self._parse_source(source)
        if not isinstance(raw_data, dict):
            raise ConfigurationError("Configuration must be a JSON object")

        result = ValidationResult()
        for key in raw_data:
            if key not in SECTION_NAMES and key not in ("version", "metadata"):
                result.add_warning(f"Unknown configuration section '{key}' ignored")

        extraction_result, extraction = self._validate_extraction(raw_data.get("extraction") or {})
        import_result, importing = self._validate_import(raw_data.get("import") or {})
        store_result, store = self._validate_store(raw_data.get("store") or {})
        result = result.merge(extraction_result).merge(import_result).merge(store_result)

        if not result.is_valid:
            raise ConfigurationError(
                "Configuration validation failed",
                validation_result=result
            )

        self._configuration = SystemConfiguration(
            extraction=extraction,
            importing=importing,
            store=store,
            version=raw_data.get("version", 1),
            metadata=raw_data.get("metadata", {}),
        )
        self._is_loaded = True
        for warning in result.warnings:
            logger.warning(warning)
        return result

    def apply_environment(self, environ: Optional[Mapping[str, str]] = None) -> ValidationResult:
        """
        Apply environment overrides on top of the loaded configuration.

        Raises:
            ConfigurationError: If an override is not a valid value.
        """
        environ = os.environ if environ is None else environ
        result = ValidationResult()
        config = self._configuration

        if environ.get(ENV_DATABASE_URL):
            config.store.database_url = environ[ENV_DATABASE_URL]

        for name, target, attribute in (
            (ENV_MAX_LIST_DEPTH, config.extraction, "max_list_depth"),
            (ENV_SEED_WORKERS, config.importing, "seed_workers"),
        ):
            value = environ.get(name)
            if value is None or not value.strip():
                continue
            try:
                number = int(value)
            except ValueError:
                result.add_error(f"{name}: '{value}' is not an integer")
                continue
            if number < 1:
                result.add_error(f"{name}: must be at least 1")
                continue
            setattr(target, attribute, number)

        if not result.is_valid:
            raise ConfigurationError(
                "Environment override validation failed",
                validation_result=result
            )
        return result

    def _validate_extraction(self, data: Dict[str, Any]) -> Tuple[ValidationResult, Optional[ExtractionSettings]]:
        """Validate the extraction settings dictionary."""
        result = ValidationResult()
        prefix = "extraction"
        defaults = ExtractionSettings()

        max_list_depth = data.get("max_list_depth", defaults.max_list_depth)
        if not isinstance(max_list_depth, int) or isinstance(max_list_depth, bool) or max_list_depth < 1:
            result.add_error(f"{prefix}: 'max_list_depth' must be a positive integer")

        excluded_anchor_prefix = data.get("excluded_anchor_prefix", defaults.excluded_anchor_prefix)
        if not isinstance(excluded_anchor_prefix, str):
            result.add_error(f"{prefix}: 'excluded_anchor_prefix' must be a string")

        default_section_title = data.get("default_section_title", defaults.default_section_title)
        if not isinstance(default_section_title, str) or not default_section_title.strip():
            result.add_error(f"{prefix}: 'default_section_title' must be a non-empty string")

        max_title = data.get("max_default_title_length", defaults.max_default_title_length)
        if not isinstance(max_title, int) or isinstance(max_title, bool) or max_title < 1:
            result.add_error(f"{prefix}: 'max_default_title_length' must be a positive integer")

        image_format = data.get("image_target_format", defaults.image_target_format)
        if not isinstance(image_format, str) or image_format.upper() not in IMAGE_FORMATS:
            result.add_error(f"{prefix}: 'image_target_format' must be one of {list(IMAGE_FORMATS)}")

        image_types = data.get("supported_image_types", defaults.supported_image_types)
        if not isinstance(image_types, list) or not all(isinstance(t, str) for t in image_types):
            result.add_error(f"{prefix}: 'supported_image_types' must be a list of strings")
        elif not image_types:
            result.add_warning(f"{prefix}: no supported image types, every image will be converted")

        if not result.is_valid:
            return result, None

        return result, ExtractionSettings(
            max_list_depth=max_list_depth,
            excluded_anchor_prefix=excluded_anchor_prefix,
            default_section_title=default_section_title.strip(),
            max_default_title_length=max_title,
            image_target_format=image_format.upper(),
            supported_image_types=[t.strip().lower() for t in image_types if t.strip()],
        )

    def _validate_import(self, data: Dict[str, Any]) -> Tuple[ValidationResult, Optional[ImportSettings]]:
        """Validate the import settings dictionary."""
        result = ValidationResult()
        prefix = "import"
        defaults = ImportSettings()

        seed_workers = data.get("seed_workers", defaults.seed_workers)
        if not isinstance(seed_workers, int) or isinstance(seed_workers, bool) or seed_workers < 1:
            result.add_error(f"{prefix}: 'seed_workers' must be a positive integer")

        event_type = data.get("default_event_type", defaults.default_event_type)
        if not isinstance(event_type, str) or not event_type.strip():
            result.add_error(f"{prefix}: 'default_event_type' must be a non-empty string")

        visibility = data.get("default_visibility", defaults.default_visibility)
        valid_visibilities = [v.value for v in Visibility]
        if visibility not in valid_visibilities:
            result.add_error(f"{prefix}: 'default_visibility' must be one of {valid_visibilities}")

        if not result.is_valid:
            return result, None

        return result, ImportSettings(
            seed_workers=seed_workers,
            default_event_type=event_type.strip(),
            default_visibility=visibility,
        )

    def _validate_store(self, data: Dict[str, Any]) -> Tuple[ValidationResult, Optional[StoreSettings]]:
        """Validate the store settings dictionary."""
        result = ValidationResult()
        prefix = "store"

        database_url = data.get("database_url")
        if database_url is not None and (not isinstance(database_url, str) or "://" not in database_url):
            result.add_error(f"{prefix}: 'database_url' must be a database URL")

        echo = data.get("echo", False)
        if not isinstance(echo, bool):
            result.add_error(f"{prefix}: 'echo' must be a boolean")

        if not result.is_valid:
            return result, None

        return result, StoreSettings(database_url=database_url, echo=echo)

    def _parse_source(
        self,
        source: Union[str, Path, Dict[str, Any]]
    ) -> Any:
        """Parse configuration source to raw data."""
        if isinstance(source, (str, Path)):
            path = Path(source)
            if not path.exists():
                raise ConfigurationError(f"Configuration file not found: {path}")

            with open(path, "r", encoding="utf-8") as f:
                try:
                    return json.load(f)
                except json.JSONDecodeError as e:
                    raise ConfigurationError(f"Invalid JSON in {path}: {e}") from e

        return source

    def save(self, config_path: Optional[Union[str, Path]] = None) -> None:
        """
        Save current configuration as JSON.

        Args:
            config_path: File to save to. Uses the current path if None.
        """
        config_path = Path(config_path) if config_path else self._config_path
        if not config_path:
            raise ConfigurationError("No configuration file specified")

        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2, ensure_ascii=False)

    def reset(self) -> None:
        """Reset configuration to defaults."""
        self._configuration = SystemConfiguration()
        self._is_loaded = False

    def to_dict(self) -> Dict[str, Any]:
        """Export current configuration as a dictionary."""
        return {
            "version": self._configuration.version,
            "extraction": asdict(self._configuration.extraction),
            "import": asdict(self._configuration.importing),
            "store": asdict(self._configuration.store),
            "metadata": self._configuration.metadata,
        }
