"""In-memory record store for products, subscriptions and orders."""
from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Sequence

from .models import Order, Product, Subscription, SubscriptionStatus


class InMemoryStoreRepository:
    """Simple in-memory store suitable for tests and local development.

    Implements the catalog, subscription history and order store protocols
    used by the limits and checkout services.
    """

    def __init__(self) -> None:
        self._products: Dict[int, Product] = {}
        self._subscriptions: Dict[int, Subscription] = {}
        self._orders: Dict[int, Order] = {}

    def add_product(self, product: Product) -> Product:
        self._products[product.product_id] = product
        return product

    def add_subscription(self, subscription: Subscription) -> Subscription:
        self._subscriptions[subscription.subscription_id] = subscription
        return subscription

    def add_order(self, order: Order) -> Order:
        self._orders[order.order_id] = order
        return order

    def find_product_by_id(self, product_id: int) -> Optional[Product]:
        return self._products.get(product_id)

    def find_subscriptions_by_customer(self, customer_id: int) -> Sequence[Subscription]:
        return [
            subscription
            for subscription in self._subscriptions.values()
            if subscription.customer_id == customer_id
        ]

    def find_subscriptions_by_customer_and_product(
        self,
        customer_id: int,
        product_id: int,
        statuses: Optional[Iterable[SubscriptionStatus]] = None,
    ) -> Sequence[Subscription]:
        wanted = set(statuses) if statuses is not None else None
        matching: List[Subscription] = []
        for subscription in self.find_subscriptions_by_customer(customer_id):
            if not subscription.has_product(product_id):
                continue
            if wanted is not None and subscription.status not in wanted:
                continue
            matching.append(subscription)
        return matching

    def find_subscriptions_for_order(self, order_id: int) -> Sequence[Subscription]:
        return [
            subscription
            for subscription in self._subscriptions.values()
            if subscription.parent_order_id == order_id
        ]

    def find_order_by_id(self, order_id: int) -> Optional[Order]:
        return self._orders.get(order_id)

    def set_cart_hash(self, order_id: int, cart_hash: str) -> Optional[Order]:
        order = self._orders.get(order_id)
        if order is None:
            return None
        updated = order.model_copy(update={"cart_hash": cart_hash})
        self._orders[order_id] = updated
        return updated
