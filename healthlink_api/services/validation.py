"""
JSON Schema validation service.

Errors are collected rather than stopping at the first one, and each message
is prefixed with the JSON path of the offending element.
"""

from typing import Any

import jsonschema


def validate_against_schema(data: Any, schema: dict[str, Any]) -> list[str]:
    """
    Validate a decoded JSON document against a JSON schema.
    Returns a list of error messages ordered by location (empty list = valid).
    """
    validator = jsonschema.Draft7Validator(schema)
    errors = sorted(validator.iter_errors(data), key=lambda e: list(map(str, e.absolute_path)))
    return [f"{_json_path(error)}: {error.message}" for error in errors]


def _json_path(error: jsonschema.ValidationError) -> str:
    path = "$"
    for part in error.absolute_path:
        path += f"[{part}]" if isinstance(part, int) else f".{part}"
    return path
