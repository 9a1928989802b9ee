from datetime import date, datetime, timezone
from decimal import Decimal

from pydantic import BaseModel

from magento_admin_mcp.utils.jsonschema import format_field_errors, validate_arguments
from magento_admin_mcp.utils.masking import is_sensitive_key, redact_sensitive_fields
from magento_admin_mcp.utils.serialization import json_default

SCHEMA = {
    "type": "object",
    "properties": {
        "sku": {"type": "string", "minLength": 1},
        "status": {"enum": [1, 2]},
        "qty": {"type": "integer", "minimum": 0},
    },
    "required": ["sku"],
    "additionalProperties": False,
}


def test_validate_arguments_valid():
    assert validate_arguments(SCHEMA, {"sku": "MUG-1", "status": 1}) == []


def test_validate_arguments_reports_paths_and_types():
    errors = validate_arguments(SCHEMA, {"status": 3, "qty": -1, "colour": "red"})
    types = {err.type for err in errors}

    assert {"missing_required", "enum_violation", "minimum_violation", "additional_property"} <= types
    enum_error = next(err for err in errors if err.type == "enum_violation")
    assert enum_error.path == "status"
    assert enum_error.hint == "Use one of: 1, 2"


def test_format_field_errors():
    details = format_field_errors(validate_arguments(SCHEMA, {"qty": "many"}))

    assert details["missing"] == ["sku"]
    assert details["invalid"] == [
        {"path": "qty", "type": "invalid_type", "reason": "'many' is not of type 'integer'"}
    ]
    assert details["hint"] == "Add the missing required field."


def test_format_field_errors_empty():
    assert format_field_errors([]) == {"missing": None, "invalid": None, "hint": None}


def test_sensitive_keys():
    assert is_sensitive_key("password")
    assert is_sensitive_key("oauth_token_secret")
    assert is_sensitive_key("Authorization")
    assert not is_sensitive_key("sku")


def test_redact_nested():
    value = {
        "username": "admin",
        "password": "pw",
        "items": [{"integration_token": "t", "sku": "MUG-1"}],
    }
    assert redact_sensitive_fields(value) == {
        "username": "admin",
        "password": "***",
        "items": [{"integration_token": "***", "sku": "MUG-1"}],
    }


def test_redact_depth_limit():
    assert redact_sensitive_fields({"a": {"b": 1}}, max_depth=1) == {"a": "***"}


class _Rule(BaseModel):
    name: str
    to_date: str | None = None


def test_json_default():
    assert json_default(datetime(2026, 1, 1, tzinfo=timezone.utc)) == "2026-01-01T00:00:00+00:00"
    assert json_default(date(2026, 10, 31)) == "2026-10-31"
    assert json_default(Decimal("10")) == 10
    assert json_default(Decimal("19.99")) == 19.99
    assert json_default(_Rule(name="Autumn")) == {"name": "Autumn"}
    assert json_default({"a", "a"}) == ["a"]
    assert json_default(b"abc") == "abc"
