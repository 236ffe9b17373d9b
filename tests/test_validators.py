"""Tests for the validator compiler"""

import pytest

from openapi_mcp_adapter.errors import ValidationError
from openapi_mcp_adapter.models import NUMBER, OBJECT, QUERY, OperationDescriptor, ParameterSpec
from openapi_mcp_adapter.openapi import extract_operations
from openapi_mcp_adapter.validators import compile_operation_schema, compile_schema


def _operation(document, verb, path):
    for op in extract_operations(document):
        if op.verb == verb and op.path == path:
            return op
    raise AssertionError(f"{verb} {path} not extracted")


class TestRequiredFields:
    def test_missing_required_query_param_names_field(self, document):
        schema = compile_operation_schema(_operation(document, "GET", "/user"))

        with pytest.raises(ValidationError) as exc_info:
            schema.validate({})

        assert exc_info.value.fields == ["id"]
        assert "id" in str(exc_info.value)

    def test_required_query_param_present(self, document):
        schema = compile_operation_schema(_operation(document, "GET", "/user"))

        validated = schema.validate({"id": "5"})

        assert validated.known["id"] == "5"

    def test_body_required_list_is_honored(self, document):
        schema = compile_operation_schema(_operation(document, "POST", "/user"))

        with pytest.raises(ValidationError) as exc_info:
            schema.validate({"age": 3})

        assert exc_info.value.fields == ["name"]


class TestScalarTypes:
    def test_numbers_are_not_coerced_from_strings(self, document):
        schema = compile_operation_schema(_operation(document, "GET", "/order/{orderId}"))

        with pytest.raises(ValidationError) as exc_info:
            schema.validate({"orderId": "42"})

        assert exc_info.value.fields == ["orderId"]

    def test_integers_stay_integers(self, document):
        schema = compile_operation_schema(_operation(document, "GET", "/order/{orderId}"))

        assert schema.validate({"orderId": 42}).known == {"orderId": 42}

    def test_floats_accepted_for_numbers(self):
        schema = compile_schema("price", [ParameterSpec("price", QUERY, value_type=NUMBER)])

        assert schema.validate({"price": 9.5}).known == {"price": 9.5}

    def test_strings_are_not_coerced_from_numbers(self, document):
        schema = compile_operation_schema(_operation(document, "GET", "/user"))

        with pytest.raises(ValidationError):
            schema.validate({"id": 5})


class TestEnumAndDefault:
    def test_enum_rejects_unknown_member(self, document):
        schema = compile_operation_schema(_operation(document, "GET", "/user"))

        with pytest.raises(ValidationError) as exc_info:
            schema.validate({"id": "1", "status": "deleted"})

        assert exc_info.value.fields == ["status"]

    def test_enum_accepts_member(self, document):
        schema = compile_operation_schema(_operation(document, "GET", "/user"))

        assert schema.validate({"id": "1", "status": "active"}).known["status"] == "active"

    def test_default_is_applied(self, document):
        schema = compile_operation_schema(_operation(document, "GET", "/user"))

        assert schema.validate({"id": "1"}).known == {"id": "1", "limit": 10}

    def test_absent_optional_fields_are_left_out(self, document):
        schema = compile_operation_schema(_operation(document, "POST", "/user"))

        assert schema.validate({"name": "Ada"}).known == {"name": "Ada"}


class TestOpenSchema:
    def test_unknown_fields_pass_through(self, document):
        schema = compile_operation_schema(_operation(document, "GET", "/user"))

        validated = schema.validate(
            {"id": "1", "bearerToken": "abc", "headers": {"X-Trace": "1"}}
        )

        assert validated.extra == {"bearerToken": "abc", "headers": {"X-Trace": "1"}}
        assert validated.as_dict() == {
            "id": "1",
            "limit": 10,
            "bearerToken": "abc",
            "headers": {"X-Trace": "1"},
        }

    def test_field_names_that_are_not_identifiers(self):
        specs = [
            ParameterSpec("X-Request-Id", QUERY, required=True),
            ParameterSpec("model_config", QUERY),
            ParameterSpec("_private", QUERY),
        ]
        schema = compile_schema("odd names", specs)

        validated = schema.validate({"X-Request-Id": "r1", "model_config": "m", "_private": "p"})

        assert validated.known == {"X-Request-Id": "r1", "model_config": "m", "_private": "p"}
        assert validated.extra == {}

    def test_non_mapping_arguments_are_rejected(self):
        schema = compile_schema("empty", [])

        with pytest.raises(ValidationError):
            schema.validate(["not", "an", "object"])

    def test_object_fields(self):
        schema = compile_schema("req", [ParameterSpec("params", QUERY, value_type=OBJECT)])

        assert schema.validate({"params": {"a": 1}}).known == {"params": {"a": 1}}
        with pytest.raises(ValidationError):
            schema.validate({"params": "a=1"})


class TestJsonSchema:
    def test_input_schema_shape(self, document):
        schema = compile_operation_schema(_operation(document, "GET", "/user"))

        assert schema.json_schema() == {
            "type": "object",
            "properties": {
                "id": {"type": "string", "description": "Query parameter: id"},
                "limit": {"type": "number", "default": 10, "description": "Query parameter: limit"},
                "status": {
                    "type": "string",
                    "enum": ["active", "inactive"],
                    "description": "Account status",
                },
            },
            "additionalProperties": True,
            "required": ["id"],
        }

    def test_empty_operation_schema(self):
        schema = compile_operation_schema(OperationDescriptor(path="/ping", verb="GET"))

        assert schema.json_schema() == {
            "type": "object",
            "properties": {},
            "additionalProperties": True,
        }
