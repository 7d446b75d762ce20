"""Configuration management for the ODP import pipeline."""

from .config_manager import ConfigurationManager
from .models import (
    ConfigurationError,
    ExtractionSettings,
    ImportSettings,
    StoreSettings,
    SystemConfiguration,
    ValidationResult,
)

__all__ = [
    "ConfigurationManager",
    "ConfigurationError",
    "ExtractionSettings",
    "ImportSettings",
    "StoreSettings",
    "SystemConfiguration",
    "ValidationResult",
]
