"""Tests for schema_validation"""

import pytest
from trackplug.schema_validation import (
    ARGUMENT_SCHEMA,
    DefinitionValidationError,
    SchemaCompilationError,
    SchemaValidator,
)


# TEST120: Test a complete argument definition validates
def test_argument_definition_valid():
    validator = SchemaValidator()
    validator.validate_argument({
        "name": "Track A",
        "type": "FEATURE_TRACK",
        "id": "a",
        "cmd_arg": "-a",
        "output": True,
        "encoding_codec": None,
        "libs": ["codecs.zip"],
    })


# TEST121: Test every violation is listed in the error details
def test_argument_definition_errors_listed():
    validator = SchemaValidator()

    with pytest.raises(DefinitionValidationError) as exc_info:
        validator.validate_argument({"name": "B", "type": "VIDEO", "id": "has space", "output": "yes"})

    error = exc_info.value
    assert error.name == "argument 'B'"
    assert error.details.count("  - ") == 3
    assert "VIDEO" in error.details


# TEST122: Test compiled validators are cached per schema
def test_validator_cache():
    validator = SchemaValidator()
    validator.validate("a", {"name": "x", "type": "TEXT"}, ARGUMENT_SCHEMA)
    validator.validate("b", {"name": "y", "type": "LONGTEXT"}, ARGUMENT_SCHEMA)

    assert len(validator.schema_cache) == 1


# TEST123: Test an invalid schema is a compilation error
def test_invalid_schema():
    validator = SchemaValidator()

    with pytest.raises(SchemaCompilationError, match="Schema compilation failed"):
        validator.validate("bad", {}, {"type": "no-such-type"})


# TEST124: Test parsing attributes accept string or boolean strictness
def test_parsing_attributes():
    validator = SchemaValidator()
    validator.validate_parsing_attributes({"strict": "false", "format": "bedgraph"})
    validator.validate_parsing_attributes({"strict": False, "libs": None})

    with pytest.raises(DefinitionValidationError, match="parsing attributes"):
        validator.validate_parsing_attributes({"libs": ["a", "b"]})
