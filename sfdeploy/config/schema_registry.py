"""
Config File Schema.

The project config is checked against ``schemas/deploy_config_schema.json``
with ``jsonschema`` (Draft 7) before any value is used, so a misspelt key
such as ``org_alais`` is reported instead of silently falling back to a
default.
"""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List

import jsonschema
from loguru import logger

SCHEMA_DIR = Path(__file__).parent / "schemas"
DEPLOY_CONFIG_SCHEMA = "deploy_config_schema"


class SchemaValidationError(Exception):
    """Raised when a config does not match its schema."""

    def __init__(self, message: str, errors: List[str] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []


@lru_cache(maxsize=None)
def load_schema(name: str = DEPLOY_CONFIG_SCHEMA) -> Dict[str, Any]:
    """
    Raises:
        FileNotFoundError: If no schema with that name is bundled.
    """
    path = SCHEMA_DIR / f"{name}.json"
    if not path.is_file():
        raise FileNotFoundError(f"Schema not found: {name} (expected at {path})")
    return json.loads(path.read_text(encoding="utf-8"))


def _describe(error: jsonschema.ValidationError) -> str:
    where = ".".join(str(part) for part in error.absolute_path) or "(root)"
    return f"{where}: {error.message}"


def validate_config(
    data: Dict[str, Any],
    source: str = "config",
    schema_name: str = DEPLOY_CONFIG_SCHEMA,
) -> None:
    """
    Check a parsed config against a bundled schema.

    Args:
        data: Parsed config mapping.
        source: Where the data came from, used in the error message.
        schema_name: Bundled schema to check against.

    Raises:
        SchemaValidationError: Listing every invalid setting, e.g.
            ``salesforce: Additional properties are not allowed ('org_alais' was unexpected)``.
    """
    validator = jsonschema.Draft7Validator(load_schema(schema_name))
    problems = sorted(
        validator.iter_errors(data), key=lambda e: [str(part) for part in e.absolute_path]
    )
    if problems:
        errors = [_describe(error) for error in problems]
        raise SchemaValidationError(
            f"{source} has {len(errors)} invalid setting(s):\n  " + "\n  ".join(errors),
            errors=errors,
        )
    logger.debug(f"{source} matches {schema_name}")
