"""JSON Schema validation for plugin definitions

Argument definitions and decoding attributes arrive as plain dicts (parsed
from whatever file format the host application uses). They are validated
against JSON Schema Draft-07 before any object is constructed from them.
"""

import json
from typing import Dict, Any

from jsonschema import Draft7Validator


class SchemaValidationError(Exception):
    """Schema validation error"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class SchemaCompilationError(SchemaValidationError):
    """Schema compilation failed"""
    def __init__(self, msg: str):
        super().__init__(f"Schema compilation failed: {msg}")


class DefinitionValidationError(SchemaValidationError):
    """A plugin definition dict does not match its schema"""
    def __init__(self, name: str, details: str):
        super().__init__(f"Validation failed for {name}: {details}")
        self.name = name
        self.details = details


ARGUMENT_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "name": {"type": "string"},
        "type": {
            "type": "string",
            "enum": ["TEXT", "LONGTEXT", "FEATURE_TRACK", "DATA_TRACK", "MULTI_FEATURE_TRACK"],
        },
        "id": {"type": ["string", "null"], "pattern": "^\\w+$"},
        "cmd_arg": {"type": "string"},
        "output": {"type": "boolean"},
        "default_value": {"type": ["string", "null"]},
        "encoding_codec": {"type": ["string", "null"]},
        "libs": {"type": "array", "items": {"type": "string"}},
    },
    "required": ["name", "type"],
    "additionalProperties": False,
}

PARSING_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "decoding_codec": {"type": ["string", "null"]},
        "strict": {"type": ["string", "boolean"]},
        "format": {"type": "string", "minLength": 1},
        "libs": {"type": ["string", "null"]},
    },
}


class SchemaValidator:
    """Schema validator with caching for performance"""

    def __init__(self):
        self.schema_cache: Dict[str, Draft7Validator] = {}

    def _validator_for(self, schema: Dict[str, Any]) -> Draft7Validator:
        # Cache compiled schemas by schema JSON
        schema_key = json.dumps(schema, sort_keys=True)

        if schema_key not in self.schema_cache:
            try:
                Draft7Validator.check_schema(schema)
            except Exception as e:
                raise SchemaCompilationError(str(e))
            self.schema_cache[schema_key] = Draft7Validator(schema)

        return self.schema_cache[schema_key]

    def validate(self, name: str, value: Any, schema: Dict[str, Any]) -> None:
        """Validate a JSON value against a schema"""
        validator = self._validator_for(schema)

        errors = sorted(validator.iter_errors(value), key=lambda e: list(e.path))
        if errors:
            error_details = "\n".join([f"  - {e.message}" for e in errors])
            raise DefinitionValidationError(name, error_details)

    def validate_argument(self, data: Dict[str, Any]) -> None:
        """Validate an argument definition dict"""
        self.validate(f"argument '{data.get('name', '?')}'", data, ARGUMENT_SCHEMA)

    def validate_parsing_attributes(self, data: Dict[str, Any]) -> None:
        """Validate the decoding attribute map of a plugin command"""
        self.validate("parsing attributes", data, PARSING_SCHEMA)


_default_validator = SchemaValidator()


def default_validator() -> SchemaValidator:
    return _default_validator
