"""Rebuilds the cart from an unpaid parent order so the customer can pay for it."""
from __future__ import annotations

import hmac
import logging
import sys
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, Tuple, Union
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from ..limits.service import ProductCatalog
from ..subscriptions.models import Order, OrderLineItem, OrderRelation, OrderStatus, ProductType
from .cart import Cart, CartLine
from .models import (
    CartSetupOutcome,
    CartSetupReport,
    Continue,
    LinkedItemsChange,
    Notice,
    NoticeKind,
    PayForOrderRequest,
    Redirect,
    ValidationMode,
)

logger = logging.getLogger(__name__)

INITIAL_PAYMENT_MARKER = "subscription_initial_payment"
ORDER_AWAITING_PAYMENT_KEY = "order_awaiting_payment"
DRAFT_ORDER_KEY = "store_api_draft_order"
SESSION_CUSTOMER_KEY = "customer_id"
PRICE_LOCK_META_KEY = "_manual_price_increases_locked"

NOT_YOUR_ORDER_MESSAGE = "That doesn't appear to be your order."
PRODUCT_DELETED_MESSAGE = (
    "The {name} product has been deleted and can no longer be renewed. "
    "Please choose a new product or contact us for assistance."
)
ORDER_NOT_ADDED_MESSAGE = "Order #{order_id} has not been added to the cart."
LINKED_ITEMS_REMOVED_MESSAGE = "All linked subscription items have been removed from the cart."

_PAYABLE_STATUSES = (OrderStatus.PENDING, OrderStatus.FAILED)
_RESERVED_ITEM_META_KEYS = frozenset(
    {
        "_item_meta",
        "_item_meta_array",
        "_qty",
        "_tax_class",
        "_product_id",
        "_variation_id",
        "_line_subtotal",
        "_line_total",
        "_line_tax",
        "_line_tax_data",
        "_line_subtotal_tax",
        f"_cart_item_key_{INITIAL_PAYMENT_MARKER}",
        "Backordered",
    }
)
_ATTRIBUTE_PREFIXES = ("pa_", "attribute_")
_LOGIN_REDIRECT_ARGS = ("wcs_redirect", "wcs_redirect_id")


class OrderStore(Protocol):
    """Order lookups and the one write the cart flow performs."""

    def find_order_by_id(self, order_id: int) -> Optional[Order]:
        ...

    def set_cart_hash(self, order_id: int, cart_hash: str) -> Optional[Order]:
        ...


class SessionStore(Protocol):
    """Key/value storage scoped to the shopping session."""

    def get(self, key: str, default: Any = None) -> Any:
        ...

    def set(self, key: str, value: Any) -> None:
        ...

    def delete(self, key: str) -> None:
        ...

    def destroy(self) -> None:
        ...


class CustomerIdentity(Protocol):
    """Authentication and order ownership checks."""

    def current_customer_id(self) -> Optional[int]:
        ...

    def customer_can_pay(self, customer_id: int, order_id: int) -> bool:
        ...


SetupFilter = Callable[[bool, Order], bool]

# ``slots`` support for ``dataclass`` was added in Python 3.10.
_dataclass_kwargs = {"slots": True} if sys.version_info >= (3, 10) else {}


@dataclass(**_dataclass_kwargs)
class InitialPaymentCartBuilder:
    """Sets up the cart for paying a pending or failed initial subscription order.

    Every outcome is returned as a value: :class:`Continue` when the flow does
    not apply and :class:`Redirect` (optionally carrying notices) when the
    request handler must stop and send the customer elsewhere.
    """

    orders: OrderStore
    catalog: ProductCatalog
    identity: CustomerIdentity
    session: SessionStore
    cart: Cart
    account_url: str = "/my-account/"
    checkout_url: str = "/checkout/"
    cart_url: str = "/cart/"
    validation_mode: ValidationMode = ValidationMode.ALL_ITEMS_NOT_REQUIRED
    setup_filters: List[SetupFilter] = field(default_factory=list)
    cart_item_key: str = INITIAL_PAYMENT_MARKER

    def add_setup_filter(self, callback: SetupFilter) -> None:
        self.setup_filters.append(callback)

    def maybe_setup_cart(self, request: PayForOrderRequest) -> CartSetupOutcome:
        if not request.is_complete:
            return Continue()

        order = self.orders.find_order_by_id(int(request.order_id))
        if order is None or not self._is_payable_initial_order(order, request.order_key or ""):
            logger.debug("Order %s does not qualify for an initial payment cart", request.order_id)
            return Continue()

        recreate_cart = True
        for callback in self.setup_filters:
            recreate_cart = bool(callback(recreate_cart, order))
        if not recreate_cart:
            return Continue()

        customer_id = self.identity.current_customer_id()
        if not customer_id:
            location = _add_query_args(
                self.account_url,
                {"wcs_redirect": "pay_for_order", "wcs_redirect_id": str(order.order_id)},
            )
            return Redirect(location=location, order_id=order.order_id)

        if not self.identity.customer_can_pay(customer_id, order.order_id):
            logger.info("Customer %s may not pay for order %s", customer_id, order.order_id)
            return Redirect(
                location=self.account_url,
                notices=(Notice(kind=NoticeKind.ERROR, message=NOT_YOUR_ORDER_MESSAGE),),
                order_id=order.order_id,
            )

        report = self.setup_cart(order, {"order_id": order.order_id})
        if not report.success and self.validation_mode == ValidationMode.ALL_ITEMS_REQUIRED:
            return Redirect(location=self.cart_url, notices=report.notices, order_id=order.order_id)

        cart_hash = self.set_order_awaiting_payment(order)
        self.session.set(SESSION_CUSTOMER_KEY, customer_id)
        logger.info(
            "Cart set up for initial payment of order %s with %s line(s)",
            order.order_id,
            len(report.added_keys),
        )
        return Redirect(
            location=self.checkout_url,
            notices=report.notices,
            order_id=order.order_id,
            cart_hash=cart_hash,
        )

    def setup_cart(
        self,
        order: Order,
        cart_item_data: Mapping[str, Any],
        validation_mode: Optional[ValidationMode] = None,
    ) -> CartSetupReport:
        """Replace the cart contents with one line per order line item."""

        mode = validation_mode or self.validation_mode
        self.cart.empty()

        added: List[str] = []
        notices: List[Notice] = []
        success = True

        for line_item in order.line_items:
            if not self._product_exists(line_item):
                notices.append(
                    Notice(
                        kind=NoticeKind.ERROR,
                        message=PRODUCT_DELETED_MESSAGE.format(name=line_item.name or f"#{line_item.product_id}"),
                    )
                )
                success = False
                continue

            variation, custom_meta = _split_item_meta(line_item.meta)
            item_data = {
                self.cart_item_key: {
                    **cart_item_data,
                    "line_item_id": line_item.item_id,
                    "custom_line_item_meta": custom_meta,
                }
            }
            key = self.cart.add_item(
                line_item.product_id,
                line_item.quantity,
                variation_id=line_item.variation_id,
                variation=variation,
                data=item_data,
                subtotal=line_item.subtotal,
                total=line_item.total,
                tax=line_item.tax,
            )
            added.append(key)

        if not success and mode == ValidationMode.ALL_ITEMS_REQUIRED:
            notices.append(
                Notice(kind=NoticeKind.ERROR, message=ORDER_NOT_ADDED_MESSAGE.format(order_id=order.order_id))
            )
            self.cart.empty()
            added = []

        return CartSetupReport(added_keys=tuple(added), notices=tuple(notices), success=success)

    def set_order_awaiting_payment(self, order: Union[Order, int, None]) -> Optional[str]:
        """Record the order this session's checkout completes, or clear it.

        Returns the cart hash stored against the order.
        """

        order_id = order.order_id if isinstance(order, Order) else int(order or 0)
        if not order_id:
            self.session.delete(ORDER_AWAITING_PAYMENT_KEY)
            self.session.delete(DRAFT_ORDER_KEY)
            return None

        self.session.set(ORDER_AWAITING_PAYMENT_KEY, order_id)
        self.session.set(DRAFT_ORDER_KEY, order_id)
        return self.set_cart_hash(order_id)

    def set_cart_hash(self, order_id: int) -> str:
        cart_hash = self.cart.get_cart_hash()
        self.orders.set_cart_hash(order_id, cart_hash)
        return cart_hash

    def update_cart_hash(self) -> Optional[str]:
        """Refresh the stored hash right before checkout turns the cart into an order."""

        line = self.cart_contains()
        if line is None:
            return None
        order_id = (line.marker(self.cart_item_key) or {}).get("order_id")
        if not order_id:
            return None
        return self.set_cart_hash(int(order_id))

    def cart_contains(self) -> Optional[CartLine]:
        """Return the first cart line carrying the initial payment marker."""

        for line in self.cart.lines():
            if line.marker(self.cart_item_key) is not None:
                return line
        return None

    def get_order(self, line: Optional[CartLine] = None) -> Optional[Order]:
        if line is None:
            line = self.cart_contains()
        if line is None:
            return None

        marker = line.marker(self.cart_item_key)
        if not marker or not marker.get("order_id"):
            return None
        return self.orders.find_order_by_id(int(marker["order_id"]))

    def should_honor_order_prices(self, line: Optional[CartLine] = None) -> bool:
        order = self.get_order(line)
        return order is not None and PRICE_LOCK_META_KEY in order.meta

    def maybe_remove_items(self, key: str) -> LinkedItemsChange:
        """Remove every line of the same order when one of them is removed."""

        order_id = self._marker_order_id(self.cart.get(key))
        if order_id is None:
            return LinkedItemsChange()

        linked = [line.key for line in self.cart.lines() if self._marker_order_id(line) == order_id]
        for linked_key in linked:
            self.cart.remove(linked_key)
        self.set_order_awaiting_payment(None)

        notices: Tuple[Notice, ...] = ()
        if len(linked) > 1:
            notices = (Notice(kind=NoticeKind.NOTICE, message=LINKED_ITEMS_REMOVED_MESSAGE),)
        return LinkedItemsChange(order_id=order_id, keys=tuple(linked), notices=notices)

    def maybe_restore_items(self, key: str) -> LinkedItemsChange:
        """Restore the siblings of a restored line and re-record its order."""

        if key in self.cart.removed_contents:
            self.cart.restore(key)
        order_id = self._marker_order_id(self.cart.get(key))
        if order_id is None:
            return LinkedItemsChange()

        restored = [key]
        for removed_key, line in list(self.cart.removed_contents.items()):
            if removed_key != key and self._marker_order_id(line) == order_id:
                self.cart.restore(removed_key)
                restored.append(removed_key)

        self.set_order_awaiting_payment(order_id)
        return LinkedItemsChange(order_id=order_id, keys=tuple(restored))

    def verify_session_belongs_to_customer(self) -> bool:
        """Destroy the session if it holds an order the current customer may not pay.

        Returns ``False`` when the session was destroyed.
        """

        current_customer = self.identity.current_customer_id()
        stored_customer = self.session.get(SESSION_CUSTOMER_KEY)

        for line in self.cart.lines():
            order = self.get_order(line)
            if order is None:
                continue

            belongs = (
                bool(current_customer)
                and (not stored_customer or int(stored_customer) == int(current_customer))
                and self.identity.customer_can_pay(int(current_customer), order.order_id)
            )
            if not belongs:
                logger.warning(
                    "Destroying session holding order %s for customer %s",
                    order.order_id,
                    current_customer,
                )
                self.cart.empty()
                self.session.destroy()
                return False
        return True

    def checkout_payment_url(self, order: Order) -> str:
        base = f"{self.checkout_url.rstrip('/')}/order-pay/{order.order_id}/"
        return _add_query_args(base, {"pay_for_order": "true", "key": order.order_key})

    def redirect_after_login(
        self,
        redirect: str,
        customer_id: Optional[int],
        query: Mapping[str, str],
    ) -> str:
        """Send a freshly logged-in customer back to the order they were paying for."""

        if query.get("wcs_redirect") != "pay_for_order" or "wcs_redirect_id" not in query:
            return redirect

        try:
            order = self.orders.find_order_by_id(int(query["wcs_redirect_id"]))
        except (TypeError, ValueError):
            order = None

        if (
            order is not None
            and order.customer_id
            and customer_id
            and self.identity.customer_can_pay(customer_id, order.order_id)
        ):
            return self.checkout_payment_url(order)
        return _remove_query_args(redirect, _LOGIN_REDIRECT_ARGS)

    def _is_payable_initial_order(self, order: Order, order_key: str) -> bool:
        return (
            hmac.compare_digest(order.order_key.encode("utf-8"), order_key.encode("utf-8"))
            and order.has_status(*_PAYABLE_STATUSES)
            and order.contains_subscription(OrderRelation.PARENT)
            and not order.contains_subscription(OrderRelation.RESUBSCRIBE)
        )

    def _product_exists(self, line_item: OrderLineItem) -> bool:
        product = self.catalog.find_product_by_id(line_item.product_id)
        if product is None:
            return False
        if product.product_type == ProductType.VARIABLE_SUBSCRIPTION and line_item.variation_id:
            return self.catalog.find_product_by_id(line_item.variation_id) is not None
        return True

    def _marker_order_id(self, line: Optional[CartLine]) -> Optional[int]:
        if line is None:
            return None
        marker = line.marker(self.cart_item_key)
        if not marker or not marker.get("order_id"):
            return None
        return int(marker["order_id"])


def _split_item_meta(meta: Mapping[str, str]) -> Tuple[Dict[str, str], Dict[str, str]]:
    variation: Dict[str, str] = {}
    custom: Dict[str, str] = {}
    for key, value in meta.items():
        if key.startswith(_ATTRIBUTE_PREFIXES):
            attribute = key if key.startswith("attribute_") else f"attribute_{key}"
            variation[attribute] = value
        elif key not in _RESERVED_ITEM_META_KEYS:
            custom[key] = value
    return variation, custom


def _add_query_args(url: str, args: Mapping[str, str]) -> str:
    parts = urlsplit(url)
    query = [(key, value) for key, value in parse_qsl(parts.query, keep_blank_values=True) if key not in args]
    query.extend(args.items())
    return urlunsplit(parts._replace(query=urlencode(query)))


def _remove_query_args(url: str, names: Tuple[str, ...]) -> str:
    parts = urlsplit(url)
    query = [(key, value) for key, value in parse_qsl(parts.query, keep_blank_values=True) if key not in names]
    return urlunsplit(parts._replace(query=urlencode(query)))


__all__ = [
    "CustomerIdentity",
    "InitialPaymentCartBuilder",
    "OrderStore",
    "SessionStore",
    "SetupFilter",
]
