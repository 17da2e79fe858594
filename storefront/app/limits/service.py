"""Decides whether a customer may start a new subscription to a product."""
from __future__ import annotations

import logging
import sys
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional, Protocol, Sequence, Tuple

from ..sorting import ObjectSorter, SortProperty
from ..subscriptions.models import (
    Limitation,
    LimitationPolicy,
    Order,
    OrderStatus,
    Product,
    Subscription,
    SubscriptionStatus,
    parse_limitation,
)
from .exceptions import PurchaseLimitError

logger = logging.getLogger(__name__)


class SubscriptionHistory(Protocol):
    """Read access to the subscriptions customers hold."""

    def find_subscriptions_by_customer_and_product(
        self,
        customer_id: int,
        product_id: int,
        statuses: Optional[Iterable[SubscriptionStatus]] = None,
    ) -> Sequence[Subscription]:
        ...

    def find_subscriptions_by_customer(self, customer_id: int) -> Sequence[Subscription]:
        """Return every subscription of the customer, without pagination."""

    def find_subscriptions_for_order(self, order_id: int) -> Sequence[Subscription]:
        ...


class ProductCatalog(Protocol):
    """Product lookups, including parents of variations."""

    def find_product_by_id(self, product_id: int) -> Optional[Product]:
        ...


LimitationFilter = Callable[[Limitation, Product], Limitation]
DecisionFilter = Callable[[bool, Product, int], bool]

_AWAITING_PAYMENT_ORDER_STATUSES = (OrderStatus.PENDING, OrderStatus.FAILED)
_AWAITING_PAYMENT_SUBSCRIPTION_STATUSES = (
    SubscriptionStatus.ACTIVE,
    SubscriptionStatus.PENDING,
    SubscriptionStatus.ON_HOLD,
)

# ``slots`` support for ``dataclass`` was added in Python 3.10.
_dataclass_kwargs = {"slots": True} if sys.version_info >= (3, 10) else {}


@dataclass(**_dataclass_kwargs)
class PurchaseLimitEvaluator:
    """Applies a product's limitation policy to a customer's subscription history.

    Two ordered lists of callbacks let other components adjust the outcome:
    ``limitation_filters`` receive the resolved policy before it is
    interpreted and ``decision_filters`` receive the final allowed flag.
    """

    history: SubscriptionHistory
    catalog: ProductCatalog
    default_limitation: str = LimitationPolicy.NONE.value
    current_customer: Optional[Callable[[], Optional[int]]] = None
    sorter: ObjectSorter = field(default_factory=lambda: ObjectSorter(SortProperty.DATE_CREATED))
    limitation_filters: List[LimitationFilter] = field(default_factory=list)
    decision_filters: List[DecisionFilter] = field(default_factory=list)

    def __post_init__(self) -> None:
        parse_limitation(self.default_limitation)

    def add_limitation_filter(self, callback: LimitationFilter) -> None:
        self.limitation_filters.append(callback)

    def add_decision_filter(self, callback: DecisionFilter) -> None:
        self.decision_filters.append(callback)

    def get_product_limitation(self, product: Product) -> Limitation:
        """Return the policy governing ``product``; variations use their parent's."""

        source = product
        if product.is_variation and product.parent_id:
            parent = self.catalog.find_product_by_id(product.parent_id)
            if parent is not None:
                source = parent

        configured = source.limitation if source.limitation is not None else self.default_limitation
        limitation = parse_limitation(configured)
        for callback in self.limitation_filters:
            limitation = parse_limitation(callback(limitation, product))
        return limitation

    def is_purchase_allowed(self, customer_id: Optional[int], product: Product) -> bool:
        if not product.is_subscription:
            return True

        resolved_customer = self._resolve_customer(customer_id)
        allowed = not self.is_limited_for_customer(resolved_customer, product)
        for callback in self.decision_filters:
            allowed = bool(callback(allowed, product, resolved_customer))
        return allowed

    def is_limited_for_customer(self, customer_id: Optional[int], product: Product) -> bool:
        """Return ``True`` when the customer's history blocks a new purchase."""

        resolved_customer = self._resolve_customer(customer_id)
        limitation = self.get_product_limitation(product)

        if limitation == LimitationPolicy.NONE:
            return False

        if limitation == LimitationPolicy.ACTIVE:
            limited = self._holds_subscription(resolved_customer, product, (SubscriptionStatus.ON_HOLD,))
        elif limitation == LimitationPolicy.ANY:
            limited = self._holds_subscription(resolved_customer, product, None)
            if limited:
                # Cancelled subscriptions that never took a payment were abandoned
                # at checkout and do not use up the customer's one purchase.
                limited = any(
                    not _is_abandoned(subscription)
                    for subscription in self.history.find_subscriptions_by_customer(resolved_customer)
                    if subscription.has_product(product.product_id)
                )
        else:
            limited = self._holds_subscription(resolved_customer, product, (limitation,))

        if limited:
            logger.debug(
                "Product %s limited to %s for customer %s",
                product.product_id,
                limitation.value,
                resolved_customer,
            )
        return limited

    def assert_purchase_allowed(self, customer_id: Optional[int], product: Product) -> None:
        """Raise :class:`PurchaseLimitError` when the purchase is not allowed."""

        if self.is_purchase_allowed(customer_id, product):
            return
        raise PurchaseLimitError(
            product.product_id,
            self.get_product_limitation(product),
            customer_id=self._resolve_customer(customer_id),
            product_name=product.name,
        )

    def get_limiting_subscriptions(self, customer_id: Optional[int], product: Product) -> List[Subscription]:
        """Return the subscriptions that count against the policy, newest first."""

        resolved_customer = self._resolve_customer(customer_id)
        limitation = self.get_product_limitation(product)
        if limitation == LimitationPolicy.NONE:
            return []

        if limitation == LimitationPolicy.ACTIVE:
            statuses: Optional[Tuple[SubscriptionStatus, ...]] = (SubscriptionStatus.ON_HOLD,)
        elif limitation == LimitationPolicy.ANY:
            statuses = None
        else:
            statuses = (limitation,)

        subscriptions = self.history.find_subscriptions_by_customer_and_product(
            resolved_customer, product.product_id, statuses
        )
        if limitation == LimitationPolicy.ANY:
            subscriptions = [subscription for subscription in subscriptions if not _is_abandoned(subscription)]
        return self.sorter.sort(subscriptions, descending=True)

    def is_purchasable(
        self,
        customer_id: Optional[int],
        product: Product,
        *,
        order_awaiting_payment: Optional[Order] = None,
    ) -> bool:
        """Like :meth:`is_purchase_allowed`, but lets an unpaid order for the product through."""

        if self.is_purchase_allowed(customer_id, product):
            return True
        return self.order_awaiting_payment_for_product(order_awaiting_payment, product.product_id)

    def order_awaiting_payment_for_product(self, order: Optional[Order], product_id: int) -> bool:
        if order is None or not order.has_status(*_AWAITING_PAYMENT_ORDER_STATUSES):
            return False
        if not order.contains_product(product_id):
            return False

        for subscription in self.history.find_subscriptions_for_order(order.order_id):
            if (
                subscription.has_status(*_AWAITING_PAYMENT_SUBSCRIPTION_STATUSES)
                and subscription.has_product(product_id)
                and subscription.needs_payment
            ):
                return True
        return False

    def order_again_statuses(
        self,
        order: Order,
        customer_id: Optional[int],
        statuses: Sequence[OrderStatus],
    ) -> Tuple[OrderStatus, ...]:
        """Return no statuses when re-ordering would buy a limited subscription again."""

        for line_item in order.line_items:
            product = self.catalog.find_product_by_id(line_item.variation_id or line_item.product_id)
            if product is None or not product.is_subscription:
                continue
            if self.is_limited_for_customer(customer_id, product):
                return ()
        return tuple(statuses)

    def _resolve_customer(self, customer_id: Optional[int]) -> int:
        if customer_id:
            return int(customer_id)
        if self.current_customer is not None:
            return int(self.current_customer() or 0)
        return 0

    def _holds_subscription(
        self,
        customer_id: int,
        product: Product,
        statuses: Optional[Tuple[SubscriptionStatus, ...]],
    ) -> bool:
        subscriptions = self.history.find_subscriptions_by_customer_and_product(
            customer_id, product.product_id, statuses
        )
        return len(subscriptions) > 0


def _is_abandoned(subscription: Subscription) -> bool:
    return subscription.has_status(SubscriptionStatus.CANCELLED) and subscription.payment_count == 0


__all__ = [
    "DecisionFilter",
    "LimitationFilter",
    "ProductCatalog",
    "PurchaseLimitEvaluator",
    "SubscriptionHistory",
]
