"""Unit tests for the Configuration Manager."""

import json
from typing import Optional, Tuple, get_type_hints

import pytest

from odp_import.config import (
    ConfigurationError,
    ConfigurationManager,
    ExtractionSettings,
    ImportSettings,
    StoreSettings,
    ValidationResult,
)


class TestLoading:
    """Tests for loading configuration from dictionaries and files."""

    def test_defaults(self):
        """Test loading nothing validates the defaults."""
        manager = ConfigurationManager()

        result = manager.load()

        assert result.is_valid
        assert manager.is_loaded
        assert manager.configuration.extraction == ExtractionSettings()
        assert manager.configuration.importing.seed_workers == 4
        assert manager.configuration.store.database_url is None

    def test_load_from_dict(self):
        """Test every section is read from a dictionary."""
        manager = ConfigurationManager()

        manager.load({
            "extraction": {"max_list_depth": 5, "image_target_format": "jpeg"},
            "import": {"seed_workers": 8, "default_visibility": "NM"},
            "store": {"database_url": "sqlite:///odp.db", "echo": True},
            "metadata": {"owner": "ops"},
        })

        config = manager.configuration
        assert config.extraction.max_list_depth == 5
        assert config.extraction.image_target_format == "JPEG"
        assert config.importing.seed_workers == 8
        assert config.importing.default_visibility == "NM"
        assert config.store.database_url == "sqlite:///odp.db"
        assert config.store.echo is True
        assert config.metadata == {"owner": "ops"}

    def test_load_from_file(self, tmp_path):
        """Test loading a JSON file given at construction."""
        path = tmp_path / "odp.json"
        path.write_text(json.dumps({"extraction": {"default_section_title": "Document"}}), encoding="utf-8")
        manager = ConfigurationManager(path)

        manager.load()

        assert manager.configuration.extraction.default_section_title == "Document"

    def test_missing_file(self, tmp_path):
        manager = ConfigurationManager()

        with pytest.raises(ConfigurationError) as exc_info:
            manager.load(tmp_path / "missing.json")

        assert "Configuration file not found" in str(exc_info.value)

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")

        with pytest.raises(ConfigurationError) as exc_info:
            ConfigurationManager().load(path)

        assert "Invalid JSON" in str(exc_info.value)

    def test_non_object_configuration(self):
        with pytest.raises(ConfigurationError):
            ConfigurationManager().load([1, 2])

    def test_unknown_section_is_a_warning(self):
        """Test unknown top-level keys do not fail validation."""
        result = ConfigurationManager().load({"matching": {}})

        assert result.is_valid
        assert result.warnings == ["Unknown configuration section 'matching' ignored"]


class TestValidation:
    """Tests for settings validation."""

    def test_invalid_values_collect_every_error(self):
        """Test all invalid settings are reported together."""
        manager = ConfigurationManager()

        with pytest.raises(ConfigurationError) as exc_info:
            manager.load({
                "extraction": {"max_list_depth": 0, "image_target_format": "BMP"},
                "import": {"seed_workers": "many", "default_visibility": "PUBLIC"},
                "store": {"database_url": "odp.db", "echo": "yes"},
            })

        errors = exc_info.value.validation_result.errors
        assert len(errors) == 6
        assert "extraction: 'max_list_depth' must be a positive integer" in errors
        assert not manager.is_loaded

    def test_boolean_is_not_an_integer(self):
        with pytest.raises(ConfigurationError):
            ConfigurationManager().load({"import": {"seed_workers": True}})

    def test_empty_image_types_is_a_warning(self):
        result = ConfigurationManager().load({"extraction": {"supported_image_types": []}})

        assert result.is_valid
        assert len(result.warnings) == 1

    def test_validation_result_merge(self):
        first = ValidationResult(warnings=["w"])
        second = ValidationResult()
        second.add_error("e")

        merged = first.merge(second)

        assert not merged.is_valid
        assert merged.errors == ["e"]
        assert merged.warnings == ["w"]


class TestEnvironmentOverrides:
    """Tests for environment variable overrides."""

    def test_overrides_are_applied(self):
        manager = ConfigurationManager()
        manager.load()

        manager.apply_environment({
            "ODP_IMPORT_DATABASE_URL": "sqlite:///env.db",
            "ODP_IMPORT_MAX_LIST_DEPTH": "2",
            "ODP_IMPORT_SEED_WORKERS": "6",
        })

        config = manager.configuration
        assert config.store.database_url == "sqlite:///env.db"
        assert config.extraction.max_list_depth == 2
        assert config.importing.seed_workers == 6

    def test_blank_values_are_ignored(self):
        manager = ConfigurationManager()

        manager.apply_environment({"ODP_IMPORT_SEED_WORKERS": " "})

        assert manager.configuration.importing.seed_workers == 4

    def test_invalid_override(self):
        """Test non-integer and non-positive values are rejected."""
        manager = ConfigurationManager()

        with pytest.raises(ConfigurationError) as exc_info:
            manager.apply_environment({
                "ODP_IMPORT_MAX_LIST_DEPTH": "deep",
                "ODP_IMPORT_SEED_WORKERS": "0",
            })

        assert exc_info.value.validation_result.errors == [
            "ODP_IMPORT_MAX_LIST_DEPTH: 'deep' is not an integer",
            "ODP_IMPORT_SEED_WORKERS: must be at least 1",
        ]


class TestPersistence:
    """Tests for saving and exporting configuration."""

    def test_save_and_reload(self, tmp_path):
        path = tmp_path / "conf" / "odp.json"
        manager = ConfigurationManager()
        manager.load({"import": {"seed_workers": 3}})

        manager.save(path)
        reloaded = ConfigurationManager(path)
        reloaded.load()

        assert reloaded.configuration.importing.seed_workers == 3
        assert set(json.loads(path.read_text(encoding="utf-8"))) == {
            "version", "extraction", "import", "store", "metadata",
        }

    def test_save_without_path(self):
        with pytest.raises(ConfigurationError):
            ConfigurationManager().save()

    def test_reset(self):
        manager = ConfigurationManager()
        manager.load({"import": {"seed_workers": 9}})

        manager.reset()

        assert not manager.is_loaded
        assert manager.configuration.importing.seed_workers == 4


class TestValidatorSignatures:
    """Tests for the section validator annotations."""

    @pytest.mark.parametrize(
        "validator,settings",
        [
            ("_validate_extraction", ExtractionSettings),
            ("_validate_import", ImportSettings),
            ("_validate_store", StoreSettings),
        ],
    )
    def test_returns_result_and_settings(self, validator, settings):
        hints = get_type_hints(getattr(ConfigurationManager, validator))

        assert hints["return"] == Tuple[ValidationResult, Optional[settings]]
