"""Typed plan payloads, one variant per committable action.

Payloads are frozen. Bulk variants carry the scope they were prepared for, so the
scope attached to a plan cannot change between prepare and commit.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from magento_admin_mcp.session.registry import StoreScope


class _Payload(BaseModel):
    model_config = ConfigDict(frozen=True)


class ProductBulkUpdatePayload(_Payload):
    kind: Literal["catalog.bulk_update"] = "catalog.bulk_update"
    skus: tuple[str, ...]
    updates: dict[str, Any]
    scope: StoreScope


class PriceUpdates(_Payload):
    price: float | None = None
    special_price: float | None = None
    special_from_date: str | None = None
    special_to_date: str | None = None


class PriceBulkUpdatePayload(_Payload):
    kind: Literal["pricing.bulk_price_update"] = "pricing.bulk_price_update"
    skus: tuple[str, ...]
    price_updates: PriceUpdates
    scope: StoreScope


class CmsPageBulkUpdatePayload(_Payload):
    kind: Literal["cms.bulk_update_pages"] = "cms.bulk_update_pages"
    page_ids: tuple[int, ...]
    updates: dict[str, Any]
    scope: StoreScope


class CmsBlockBulkUpdatePayload(_Payload):
    kind: Literal["cms.bulk_update_blocks"] = "cms.bulk_update_blocks"
    block_ids: tuple[int, ...]
    updates: dict[str, Any]
    scope: StoreScope


class UrlKeyChange(_Payload):
    sku: str
    old_url_key: str
    new_url_key: str


class UrlKeyBulkUpdatePayload(_Payload):
    kind: Literal["seo.bulk_update_url_keys"] = "seo.bulk_update_url_keys"
    changes: tuple[UrlKeyChange, ...]
    scope: StoreScope


SimpleAction = Literal["by_percent", "by_fixed", "cart_fixed", "buy_x_get_y"]
CouponType = Literal["no_coupon", "specific_coupon", "auto"]

COUPON_TYPE_CODES: dict[str, int] = {"no_coupon": 1, "specific_coupon": 2, "auto": 3}


class CartPriceRuleCreatePayload(_Payload):
    kind: Literal["promotions.cart_price_rule_create"] = "promotions.cart_price_rule_create"
    name: str
    description: str = ""
    website_ids: tuple[int, ...]
    customer_group_ids: tuple[int, ...]
    from_date: str | None = None
    to_date: str | None = None
    is_active: bool = False
    simple_action: SimpleAction
    discount_amount: float
    discount_qty: float = 0
    apply_to_shipping: bool = False
    stop_rules_processing: bool = False
    sort_order: int = 0
    coupon_type: CouponType = "no_coupon"
    uses_per_customer: int = 0
    uses_per_coupon: int = 0

    def to_sales_rule(self) -> dict[str, object]:
        """Body for ``POST /V1/salesRules``."""
        return {
            "rule": {
                "name": self.name,
                "description": self.description,
                "is_active": self.is_active,
                "website_ids": list(self.website_ids),
                "customer_group_ids": list(self.customer_group_ids),
                "from_date": self.from_date,
                "to_date": self.to_date,
                "simple_action": self.simple_action,
                "discount_amount": self.discount_amount,
                "discount_qty": self.discount_qty,
                "apply_to_shipping": self.apply_to_shipping,
                "stop_rules_processing": self.stop_rules_processing,
                "sort_order": self.sort_order,
                "coupon_type": COUPON_TYPE_CODES[self.coupon_type],
                "uses_per_customer": self.uses_per_customer,
                "uses_per_coupon": self.uses_per_coupon,
            }
        }


PlanPayload = Annotated[
    Union[
        ProductBulkUpdatePayload,
        PriceBulkUpdatePayload,
        CmsPageBulkUpdatePayload,
        CmsBlockBulkUpdatePayload,
        UrlKeyBulkUpdatePayload,
        CartPriceRuleCreatePayload,
    ],
    Field(discriminator="kind"),
]
