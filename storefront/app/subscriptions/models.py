"""Domain models for products, subscriptions and orders."""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, FrozenSet, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ProductType(str, Enum):
    """Catalog product types relevant to subscription purchases."""

    SIMPLE = "simple"
    VARIABLE = "variable"
    VARIATION = "variation"
    SUBSCRIPTION = "subscription"
    VARIABLE_SUBSCRIPTION = "variable-subscription"
    SUBSCRIPTION_VARIATION = "subscription_variation"


class ProductStatus(str, Enum):
    """Publication status of a catalog product."""

    PUBLISH = "publish"
    PRIVATE = "private"
    DRAFT = "draft"


class SubscriptionStatus(str, Enum):
    """Lifecycle states a subscription can be in."""

    PENDING = "pending"
    ACTIVE = "active"
    ON_HOLD = "on-hold"
    CANCELLED = "cancelled"
    SWITCHED = "switched"
    EXPIRED = "expired"
    PENDING_CANCEL = "pending-cancel"


class LimitationPolicy(str, Enum):
    """Store-wide limitation rules for subscription products.

    Besides these values a product may be limited to an explicit
    :class:`SubscriptionStatus`, in which case any subscription in that status
    blocks a new purchase.
    """

    NONE = "no"
    ACTIVE = "active"
    ANY = "any"


Limitation = Union[LimitationPolicy, SubscriptionStatus]

_LIMITATION_ALIASES = {"": LimitationPolicy.NONE, "none": LimitationPolicy.NONE}


def parse_limitation(value: Union[str, Limitation, None]) -> Limitation:
    """Interpret a configured limitation value.

    ``"active"`` is both a policy and a status; the policy wins because the
    limit-to-one-active rule behaves differently from a status match.
    """

    if isinstance(value, (LimitationPolicy, SubscriptionStatus)):
        return value
    normalized = (value or "").strip().lower()
    if normalized in _LIMITATION_ALIASES:
        return _LIMITATION_ALIASES[normalized]
    try:
        return LimitationPolicy(normalized)
    except ValueError:
        pass
    try:
        return SubscriptionStatus(normalized)
    except ValueError as exc:
        raise ValueError(f"Unknown subscription limitation {value!r}") from exc


class Product(BaseModel):
    """Purchasable catalog item."""

    product_id: int
    name: str = ""
    product_type: ProductType = ProductType.SIMPLE
    parent_id: int = 0
    status: ProductStatus = ProductStatus.PUBLISH
    limitation: Optional[str] = Field(
        default=None,
        description="Configured limitation policy; unset means the store default applies",
    )

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @field_validator("limitation")
    @classmethod
    def _known_limitation(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return parse_limitation(value).value

    @property
    def is_variation(self) -> bool:
        return self.product_type in {ProductType.VARIATION, ProductType.SUBSCRIPTION_VARIATION}

    @property
    def is_subscription(self) -> bool:
        """Return ``True`` for simple, variable and variation subscription products."""
        return self.product_type in {
            ProductType.SUBSCRIPTION,
            ProductType.VARIABLE_SUBSCRIPTION,
            ProductType.SUBSCRIPTION_VARIATION,
        }


class SubscriptionLineItem(BaseModel):
    """Product reference held by a subscription."""

    product_id: int
    variation_id: int = 0
    quantity: int = Field(default=1, ge=1)

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class Subscription(BaseModel):
    """A customer's recurring commitment to one or more products."""

    subscription_id: int
    customer_id: int
    status: SubscriptionStatus
    line_items: Tuple[SubscriptionLineItem, ...] = ()
    payment_count: int = Field(default=0, ge=0)
    parent_order_id: Optional[int] = None
    date_created: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    date_modified: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    def has_product(self, product_id: int) -> bool:
        return any(
            item.product_id == product_id or item.variation_id == product_id
            for item in self.line_items
        )

    def has_status(self, *statuses: SubscriptionStatus) -> bool:
        return self.status in statuses

    @property
    def needs_payment(self) -> bool:
        """Return ``True`` while the subscription has not been paid for yet."""
        return self.status == SubscriptionStatus.PENDING or self.payment_count == 0


class OrderStatus(str, Enum):
    """Order lifecycle states."""

    PENDING = "pending"
    FAILED = "failed"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ON_HOLD = "on-hold"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class OrderRelation(str, Enum):
    """Ways in which an order can relate to subscriptions."""

    PARENT = "parent"
    RENEWAL = "renewal"
    RESUBSCRIBE = "resubscribe"
    SWITCH = "switch"


class OrderLineItem(BaseModel):
    """Historical order line with everything needed to recreate it in a cart."""

    item_id: int
    product_id: int
    variation_id: int = 0
    name: str = ""
    quantity: int = Field(default=1, ge=1)
    subtotal: int = 0
    total: int = 0
    tax: int = 0
    meta: Dict[str, str] = Field(default_factory=dict)

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class Order(BaseModel):
    """Point-in-time commercial transaction."""

    order_id: int
    order_key: str
    customer_id: int = 0
    status: OrderStatus = OrderStatus.PENDING
    relations: FrozenSet[OrderRelation] = frozenset()
    line_items: Tuple[OrderLineItem, ...] = ()
    meta: Dict[str, str] = Field(default_factory=dict)
    cart_hash: Optional[str] = None
    date_created: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    def has_status(self, *statuses: OrderStatus) -> bool:
        return self.status in statuses

    def contains_subscription(self, relation: OrderRelation) -> bool:
        return relation in self.relations

    def contains_product(self, product_id: int) -> bool:
        return any(
            item.product_id == product_id or item.variation_id == product_id
            for item in self.line_items
        )
