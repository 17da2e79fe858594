"""Catalog, subscription and order records shared by limits and checkout."""

from .models import (
    Limitation,
    LimitationPolicy,
    Order,
    OrderLineItem,
    OrderRelation,
    OrderStatus,
    Product,
    ProductStatus,
    ProductType,
    Subscription,
    SubscriptionLineItem,
    SubscriptionStatus,
    parse_limitation,
)
from .repository import InMemoryStoreRepository

__all__ = [
    "InMemoryStoreRepository",
    "Limitation",
    "LimitationPolicy",
    "Order",
    "OrderLineItem",
    "OrderRelation",
    "OrderStatus",
    "Product",
    "ProductStatus",
    "ProductType",
    "Subscription",
    "SubscriptionLineItem",
    "SubscriptionStatus",
    "parse_limitation",
]
