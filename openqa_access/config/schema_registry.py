"""
Schema Registry Module.

Validates configuration mappings against the JSON schemas packaged in
``openqa_access/config/schemas`` (Draft 7, via jsonschema).
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import jsonschema
from loguru import logger

SCHEMA_DIR = Path(__file__).parent / "schemas"


class SchemaValidationError(Exception):
    """Raised when a configuration does not match its schema."""

    def __init__(self, message: str, errors: Optional[List[str]] = None) -> None:
        super().__init__(message)
        self.errors = errors or []


class SchemaRegistry:
    """Loads ``<name>.json`` schemas from ``schema_dir`` once and validates against them."""

    def __init__(self, schema_dir: str | Path = SCHEMA_DIR) -> None:
        self.schema_dir = Path(schema_dir)
        self._validators: Dict[str, jsonschema.Draft7Validator] = {}

    def get_schema(self, schema_name: str) -> Dict[str, Any]:
        """
        Return the named schema.

        Raises:
            FileNotFoundError: If ``<schema_dir>/<schema_name>.json`` does not exist.
        """
        return self._validator(schema_name).schema

    def _validator(self, schema_name: str) -> jsonschema.Draft7Validator:
        validator = self._validators.get(schema_name)
        if validator is None:
            path = self.schema_dir / f"{schema_name}.json"
            if not path.is_file():
                raise FileNotFoundError(f"Schema not found: {schema_name} (expected at {path})")
            schema = json.loads(path.read_text(encoding="utf-8"))
            jsonschema.Draft7Validator.check_schema(schema)
            validator = self._validators[schema_name] = jsonschema.Draft7Validator(schema)
            logger.debug(f"Schema loaded: {schema_name}")
        return validator

    def validate(self, data: Dict[str, Any], schema_name: str) -> None:
        """
        Check ``data`` against a schema, reporting every violation at once.

        Raises:
            SchemaValidationError: With one ``[path] message`` line per violation.
        """
        errors = [
            f"[{'.'.join(str(p) for p in error.absolute_path) or '(root)'}] {error.message}"
            for error in self._validator(schema_name).iter_errors(data)
        ]
        if errors:
            raise SchemaValidationError(
                f"'{schema_name}' has {len(errors)} error(s): " + "; ".join(errors),
                errors=errors,
            )
