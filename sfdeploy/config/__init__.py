"""
Configuration Management Module.

Handles loading and validation of:
- The project configuration file (YAML/JSON).
- ``.env`` credentials and environment overrides.
"""

from sfdeploy.config.loader import ConfigLoader, ConfigurationError
from sfdeploy.config.schema_registry import SchemaValidationError, validate_config
from sfdeploy.config.settings import (
    DeployConfig,
    GitHubSettings,
    PortalSettings,
    SalesforceSettings,
)

__all__ = [
    "ConfigLoader",
    "ConfigurationError",
    "SchemaValidationError",
    "validate_config",
    "DeployConfig",
    "GitHubSettings",
    "PortalSettings",
    "SalesforceSettings",
]
