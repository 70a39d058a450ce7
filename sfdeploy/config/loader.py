"""
Project Configuration Loader.

Finds and reads the project config (``sfdeploy.yaml``, ``sfdeploy.yml`` or
``sfdeploy.json`` in the project root), checks it against the bundled
schema and builds a :class:`DeployConfig`. A ``.env`` file is loaded into
the environment first, so credentials such as ``GITHUB_TOKEN`` never have
to live in the config file.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import yaml
from dotenv import load_dotenv
from loguru import logger

from sfdeploy.config.schema_registry import SchemaValidationError, validate_config
from sfdeploy.config.settings import DeployConfig

CONFIG_FILENAMES = ("sfdeploy.yaml", "sfdeploy.yml", "sfdeploy.json")

PARSERS: Dict[str, Callable[[str], Any]] = {
    ".yaml": yaml.safe_load,
    ".yml": yaml.safe_load,
    ".json": json.loads,
}


class ConfigurationError(Exception):
    """Raised when the project config cannot be read or is invalid."""


class ConfigLoader:
    """
    Locates and reads the project config.

    Usage::

        config = ConfigLoader(".").load_deploy_config(env_file=".env")
        alias = config.salesforce.org_alias
    """

    def __init__(self, config_dir: str | Path = ".") -> None:
        self.config_dir = Path(config_dir)
        logger.debug(f"ConfigLoader initialized — config_dir={self.config_dir}")

    def find_config_file(self) -> Optional[Path]:
        """First of the standard config file names present in config_dir."""
        for name in CONFIG_FILENAMES:
            path = self.config_dir / name
            if path.is_file():
                return path
        return None

    def resolve(self, filename: str | Path) -> Path:
        """
        Locate an explicitly named config file, relative to config_dir first.

        Raises:
            FileNotFoundError: If the file exists in neither place.
        """
        for candidate in (self.config_dir / filename, Path(filename)):
            if candidate.is_file():
                return candidate
        raise FileNotFoundError(
            f"Configuration file not found: {filename} "
            f"(searched in {self.config_dir} and current directory)"
        )

    def read(self, path: str | Path) -> Dict[str, Any]:
        """
        Parse and validate one config file. An empty file reads as ``{}``.

        Raises:
            ConfigurationError: On unsupported format, parse errors, a
                top level that is not a mapping, or schema violations.
        """
        path = Path(path)
        parser = PARSERS.get(path.suffix.lower())
        if parser is None:
            raise ConfigurationError(
                f"Unsupported config format '{path.suffix}' "
                f"(use {', '.join(sorted(PARSERS))}): {path}"
            )

        try:
            data = parser(path.read_text(encoding="utf-8"))
        except OSError as e:
            raise ConfigurationError(f"Failed to read {path}: {e}") from e
        except (yaml.YAMLError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Failed to parse {path}: {e}") from e

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigurationError(
                f"{path} must contain a mapping of sections, got {type(data).__name__}"
            )

        try:
            validate_config(data, source=str(path))
        except SchemaValidationError as e:
            raise ConfigurationError(str(e)) from e

        logger.debug(f"Loaded configuration: {path}")
        return data

    @staticmethod
    def load_env_file(env_file: str | Path) -> bool:
        """Load a ``.env`` file without overriding variables already set."""
        env_path = Path(env_file)
        if not env_path.is_file():
            return False
        load_dotenv(env_path, override=False)
        logger.debug(f"Loaded environment from {env_path}")
        return True

    def load_deploy_config(
        self,
        filename: Optional[str | Path] = None,
        env_file: Optional[str | Path] = ".env",
    ) -> DeployConfig:
        """
        Build the DeployConfig for the project.

        A project without a config file gets the defaults plus environment
        overrides. An explicitly named file must exist.

        Raises:
            FileNotFoundError: If ``filename`` was given but does not exist.
            ConfigurationError: If the config file is invalid.
        """
        if env_file:
            self.load_env_file(env_file)

        path = self.resolve(filename) if filename else self.find_config_file()
        if path is None:
            logger.debug("No project config file found, using defaults")
            return DeployConfig.from_dict({})
        return DeployConfig.from_dict(self.read(path))
