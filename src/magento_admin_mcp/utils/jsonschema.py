"""JSON Schema validation of tool arguments."""

from __future__ import annotations

from dataclasses import dataclass

from jsonschema import Draft202012Validator

_TYPE_BY_VALIDATOR = {
    "required": "missing_required",
    "type": "invalid_type",
    "enum": "enum_violation",
    "const": "const_mismatch",
    "pattern": "pattern_mismatch",
    "minLength": "min_length_violation",
    "maxLength": "max_length_violation",
    "minimum": "minimum_violation",
    "maximum": "maximum_violation",
    "minItems": "min_items_violation",
    "maxItems": "max_items_violation",
    "additionalProperties": "additional_property",
    "format": "format_error",
    "anyOf": "any_of_violation",
}


@dataclass
class FieldError:
    """One schema violation, addressed by dotted path."""

    type: str
    message: str
    path: str | None = None
    hint: str | None = None


def validate_arguments(schema: dict[str, object], payload: dict[str, object]) -> list[FieldError]:
    """Validate tool arguments and return structured errors (empty when valid)."""
    validator = Draft202012Validator(schema)
    errors: list[FieldError] = []
    for error in sorted(validator.iter_errors(payload), key=lambda e: list(e.absolute_path)):
        path = ".".join(str(p) for p in error.absolute_path) or None
        hint = None
        if error.validator == "required":
            hint = "Add the missing required field."
        elif error.validator == "additionalProperties":
            hint = "Remove the unexpected property or check for typos."
        elif error.validator == "enum":
            hint = "Use one of: " + ", ".join(str(v) for v in error.validator_value)
        errors.append(
            FieldError(
                type=_TYPE_BY_VALIDATOR.get(str(error.validator), "validation_error"),
                message=error.message,
                path=path,
                hint=hint,
            )
        )
    return errors


def format_field_errors(errors: list[FieldError]) -> dict[str, object]:
    """Shape errors for the ``details`` of a VALIDATION_ERROR response."""
    missing: list[str] = []
    invalid: list[dict[str, object]] = []
    for err in errors:
        if err.type == "missing_required" and "'" in err.message:
            missing.append(err.message.split("'")[1])
        else:
            invalid.append({"path": err.path, "type": err.type, "reason": err.message})
    hints = [err.hint for err in errors if err.hint]
    return {
        "missing": missing or None,
        "invalid": invalid or None,
        "hint": hints[0] if hints else None,
    }
