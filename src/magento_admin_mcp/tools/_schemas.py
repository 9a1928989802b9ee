"""Shared JSON Schema fragments for tool inputs."""

from __future__ import annotations

import copy

SCOPE_SCHEMA: dict[str, object] = {
    "type": "object",
    "description": (
        "Multi-store scope. Set at least one of website_code, store_code, "
        'store_view_code, or scope: "global".'
    ),
    "properties": {
        "website_code": {"type": "string", "minLength": 1},
        "store_code": {"type": "string", "minLength": 1},
        "store_view_code": {"type": "string", "minLength": 1},
        "scope": {"const": "global"},
    },
    "additionalProperties": False,
}

CONFIRM_PROPERTIES: dict[str, object] = {
    "confirm": {
        "type": "boolean",
        "description": "Must be true to execute a risky action.",
    },
    "reason": {
        "type": "string",
        "description": "Business justification recorded in the audit log.",
    },
}

PAGINATION_PROPERTIES: dict[str, object] = {
    "page_size": {"type": "integer", "minimum": 1, "maximum": 200, "default": 20},
    "current_page": {"type": "integer", "minimum": 1, "default": 1},
}

PRODUCT_MATCH_SCHEMA: dict[str, object] = {
    "type": "object",
    "description": "Product selection. Criteria are combined with AND.",
    "properties": {
        "sku_list": {"type": "array", "items": {"type": "string", "minLength": 1}},
        "sku_prefix": {"type": "string", "minLength": 1},
        "attribute_filters": {
            "type": "object",
            "description": (
                "Attribute filters, either a plain value (eq) or "
                '{"value": ..., "condition": "like|gt|lt|in|..."}.'
            ),
        },
        "category_id": {"type": "integer"},
    },
    "additionalProperties": False,
}

COMMIT_SCHEMA: dict[str, object] = {
    "type": "object",
    "properties": {
        "plan_id": {"type": "string", "minLength": 1, "description": "Plan id from the prepare call."},
        **CONFIRM_PROPERTIES,
        "idempotency_key": {
            "type": "string",
            "minLength": 1,
            "description": "Repeat-safe key. A known key returns the earlier result.",
        },
    },
    "required": ["plan_id"],
    "additionalProperties": False,
}


def object_schema(
    properties: dict[str, object],
    required: list[str] | None = None,
    *,
    confirm: bool = False,
) -> dict[str, object]:
    props = copy.deepcopy(properties)
    req = list(required or [])
    if confirm:
        props.update(copy.deepcopy(CONFIRM_PROPERTIES))
    schema: dict[str, object] = {
        "type": "object",
        "properties": props,
        "additionalProperties": False,
    }
    if req:
        schema["required"] = req
    return schema


def with_pagination(properties: dict[str, object]) -> dict[str, object]:
    return {**properties, **PAGINATION_PROPERTIES}
