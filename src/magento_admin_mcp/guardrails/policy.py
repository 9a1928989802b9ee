"""Field allow-lists loaded from policy.yaml."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationInfo, field_validator

DEFAULT_CATALOG_FIELDS = [
    "name",
    "description",
    "short_description",
    "meta_title",
    "meta_description",
    "meta_keyword",
    "url_key",
    "status",
    "visibility",
    "price",
    "special_price",
    "special_from_date",
    "special_to_date",
    "weight",
    "category_ids",
]

DEFAULT_CMS_PAGE_FIELDS = [
    "title",
    "content",
    "content_heading",
    "meta_title",
    "meta_description",
    "meta_keywords",
    "is_active",
]

DEFAULT_CMS_BLOCK_FIELDS = ["title", "content", "is_active"]

_DEFAULTS = {
    "catalog": DEFAULT_CATALOG_FIELDS,
    "cms_page": DEFAULT_CMS_PAGE_FIELDS,
    "cms_block": DEFAULT_CMS_BLOCK_FIELDS,
}


class AllowedFields(BaseModel):
    catalog: list[str] = Field(default_factory=lambda: list(DEFAULT_CATALOG_FIELDS))
    cms_page: list[str] = Field(default_factory=lambda: list(DEFAULT_CMS_PAGE_FIELDS))
    cms_block: list[str] = Field(default_factory=lambda: list(DEFAULT_CMS_BLOCK_FIELDS))

    @field_validator("catalog", "cms_page", "cms_block", mode="before")
    @classmethod
    def _none_is_default(cls, v: Any, info: ValidationInfo) -> Any:
        if v is None:
            return list(_DEFAULTS[info.field_name])
        return v


class GuardrailPolicy(BaseModel):
    version: int = Field(default=1)
    allowed_fields: AllowedFields = Field(default_factory=AllowedFields)

    @classmethod
    def from_yaml(cls, data: dict[str, Any]) -> GuardrailPolicy:
        if data.get("allowed_fields") is None:
            data = {**data, "allowed_fields": {}}
        return cls.model_validate(data)

    def fields_for(self, resource_kind: str) -> list[str]:
        return list(getattr(self.allowed_fields, resource_kind))


def load_policy(path: str) -> GuardrailPolicy:
    policy_path = Path(path)
    if not policy_path.exists():
        raise FileNotFoundError(f"Policy file not found: {policy_path}")
    with policy_path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    return GuardrailPolicy.from_yaml(data)
