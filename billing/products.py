# billing/products.py
"""
Plan and catalog projections of Stripe objects.

- resolve_plan: product ID and name of the plan a subscription is on
- ProductView / PriceView: simplified catalog entries for pricing pages

Subscriptions are assumed to carry a single price; items after the first
are ignored.
"""

from __future__ import annotations

from typing import Any, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from billing.errors import MalformedPayloadError
from billing.models import PlanInfo
from billing.stripe_client import resolve_id


def _nested(parent: Mapping[str, Any], key: str, where: str) -> Mapping[str, Any]:
    """parent[key] as a mapping; absent or null is empty, any other shape is malformed."""
    value = parent.get(key)
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise MalformedPayloadError(f"{where}.{key} must be an object")
    return value


def _text(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def first_subscription_item(subscription: Mapping[str, Any]) -> Mapping[str, Any]:
    """
    Return the first line item of a subscription, or an empty mapping.

    Raises:
        MalformedPayloadError: If items, items.data or the first item has
            an unexpected shape
    """
    items = _nested(subscription, "items", "subscription")
    data = items.get("data")
    if data is None:
        return {}
    if not isinstance(data, list):
        raise MalformedPayloadError("subscription.items.data must be a list")
    if not data:
        return {}
    if not isinstance(data[0], Mapping):
        raise MalformedPayloadError("subscription.items.data[0] must be an object")
    return data[0]


def resolve_plan(item: Mapping[str, Any], legacy_name: bool = True) -> PlanInfo:
    """
    Resolve the plan of a subscription item.

    Product ID: price.product (expanded object's id or bare id), else the
    deprecated plan.product. Name: the expanded product's name, else
    plan.name when legacy_name is set.

    Raises:
        MalformedPayloadError: If price or plan is present but not an object
    """
    price = _nested(item, "price", "item")
    plan = _nested(item, "plan", "item")
    product = price.get("product")

    product_id = resolve_id(product) or resolve_id(plan.get("product"))

    name = None
    if isinstance(product, Mapping):
        name = _text(product.get("name"))
    if name is None and legacy_name:
        name = _text(plan.get("name"))

    return PlanInfo(product_id=product_id, name=name)


class ProductView(BaseModel):
    """Catalog product as returned by GET /api/stripe/products."""

    id: str
    name: str
    description: Optional[str] = None
    default_price_id: Optional[str] = Field(default=None, alias="defaultPriceId")

    model_config = ConfigDict(populate_by_name=True)


class PriceView(BaseModel):
    """Catalog price as returned by GET /api/stripe/prices."""

    id: str
    product_id: Optional[str] = Field(default=None, alias="productId")
    unit_amount: Optional[int] = Field(default=None, alias="unitAmount")
    currency: str
    interval: Optional[str] = None
    trial_period_days: Optional[int] = Field(default=None, alias="trialPeriodDays")

    model_config = ConfigDict(populate_by_name=True)


def project_product(product: Mapping[str, Any]) -> ProductView:
    return ProductView(
        id=product["id"],
        name=product.get("name") or product["id"],
        description=product.get("description"),
        default_price_id=resolve_id(product.get("default_price")),
    )


def project_price(price: Mapping[str, Any]) -> PriceView:
    recurring = price.get("recurring") or {}
    return PriceView(
        id=price["id"],
        product_id=resolve_id(price.get("product")),
        unit_amount=price.get("unit_amount"),
        currency=price.get("currency", ""),
        interval=recurring.get("interval"),
        trial_period_days=recurring.get("trial_period_days"),
    )


def project_products(products: List[Mapping[str, Any]]) -> List[ProductView]:
    return [project_product(p) for p in products]


def project_prices(prices: List[Mapping[str, Any]]) -> List[PriceView]:
    return [project_price(p) for p in prices]
