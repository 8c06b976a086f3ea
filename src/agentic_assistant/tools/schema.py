"""Flat JSON-Schema validation for tool input.

Only the subset tools actually declare is supported:

- top-level ``{"type": "object"}``
- ``required`` field names
- per-property ``type`` (string, number, integer, boolean, object, array)
- per-property ``enum`` of strings

Fields without a ``properties`` entry are accepted.
"""

from typing import Any

from agentic_assistant.core.exceptions import (
    InvalidEnumValueError,
    InvalidSchemaError,
    MissingRequiredFieldError,
    TypeMismatchError,
)


def json_type_name(value: Any) -> str:
    """Name of the JSON type a Python value decodes from."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


def _is_number(value: Any) -> bool:
    # bool is an int subclass but never a JSON number
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _matches_type(value: Any, expected: str) -> bool:
    if expected == "string":
        return isinstance(value, str)
    if expected == "number":
        return _is_number(value)
    if expected == "integer":
        # ints of any size; floats only with a zero fractional part
        return _is_number(value) and (isinstance(value, int) or value.is_integer())
    if expected == "boolean":
        return isinstance(value, bool)
    if expected == "object":
        return isinstance(value, dict)
    if expected == "array":
        return isinstance(value, (list, tuple))
    return True


def validate_input(input: dict[str, Any], schema: Any) -> None:
    """
    Validate tool input against a schema.

    Raises:
        InvalidSchemaError: Schema is not an object schema
        MissingRequiredFieldError: A required field is absent
        TypeMismatchError: A declared property has the wrong runtime type
        InvalidEnumValueError: A value is not one of the enum members
    """
    if not isinstance(schema, dict):
        raise InvalidSchemaError("Schema must be a JSON object")
    if "type" not in schema:
        raise InvalidSchemaError('Schema missing "type" field')
    if schema["type"] != "object":
        raise InvalidSchemaError('Schema top-level type must be "object"')

    properties = schema.get("properties")
    if not isinstance(properties, dict):
        properties = {}

    required = schema.get("required")
    if isinstance(required, list):
        for field in required:
            if isinstance(field, str) and field not in input:
                raise MissingRequiredFieldError(field)

    for field, value in input.items():
        prop = properties.get(field)
        if not isinstance(prop, dict):
            continue

        expected = prop.get("type")
        if isinstance(expected, str) and not _matches_type(value, expected):
            raise TypeMismatchError(field, expected, json_type_name(value))

        enum = prop.get("enum")
        if isinstance(enum, list):
            allowed = [item for item in enum if isinstance(item, str)]
            if not isinstance(value, str) or value not in allowed:
                got = value if isinstance(value, str) else json_type_name(value)
                raise InvalidEnumValueError(field, got, allowed)
