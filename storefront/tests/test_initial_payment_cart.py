"""Tests for rebuilding the cart of an unpaid initial subscription order."""
from __future__ import annotations

from typing import Any, Dict, Optional, Set, Tuple

import pytest

from storefront.app.checkout import (
    INITIAL_PAYMENT_MARKER,
    ORDER_AWAITING_PAYMENT_KEY,
    Cart,
    Continue,
    InitialPaymentCartBuilder,
    NoticeKind,
    PayForOrderRequest,
    Redirect,
    ValidationMode,
)
from storefront.app.checkout.service import (
    DRAFT_ORDER_KEY,
    NOT_YOUR_ORDER_MESSAGE,
    PRICE_LOCK_META_KEY,
    SESSION_CUSTOMER_KEY,
)
from storefront.app.subscriptions import (
    InMemoryStoreRepository,
    Order,
    OrderLineItem,
    OrderRelation,
    OrderStatus,
    Product,
    ProductType,
)


class FakeSession:
    def __init__(self) -> None:
        self.values: Dict[str, Any] = {}
        self.destroyed = False

    def get(self, key: str, default: Any = None) -> Any:
        return self.values.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self.values[key] = value

    def delete(self, key: str) -> None:
        self.values.pop(key, None)

    def destroy(self) -> None:
        self.values.clear()
        self.destroyed = True


class FakeIdentity:
    def __init__(self, customer_id: Optional[int] = None) -> None:
        self.customer_id = customer_id
        self.payable: Set[Tuple[int, int]] = set()

    def current_customer_id(self) -> Optional[int]:
        return self.customer_id

    def customer_can_pay(self, customer_id: int, order_id: int) -> bool:
        return (customer_id, order_id) in self.payable


ORDER_ID = 500
ORDER_KEY = "wc_order_abc"


def _parent_order(**overrides: Any) -> Order:
    values: Dict[str, Any] = {
        "order_id": ORDER_ID,
        "order_key": ORDER_KEY,
        "customer_id": 7,
        "status": OrderStatus.PENDING,
        "relations": frozenset({OrderRelation.PARENT}),
        "line_items": (
            OrderLineItem(
                item_id=1,
                product_id=10,
                name="Coffee box",
                quantity=2,
                subtotal=2000,
                total=2000,
                tax=200,
                meta={"gift_note": "Happy birthday", "_qty": "2"},
            ),
            OrderLineItem(
                item_id=2,
                product_id=20,
                variation_id=21,
                name="Tea box - large",
                total=1500,
                meta={"pa_size": "large"},
            ),
        ),
    }
    values.update(overrides)
    return Order(**values)


@pytest.fixture
def cart_components():
    repository = InMemoryStoreRepository()
    repository.add_product(Product(product_id=10, name="Coffee box", product_type=ProductType.SUBSCRIPTION))
    repository.add_product(Product(product_id=20, name="Tea box", product_type=ProductType.VARIABLE_SUBSCRIPTION))
    repository.add_product(
        Product(product_id=21, name="Tea box - large", product_type=ProductType.SUBSCRIPTION_VARIATION, parent_id=20)
    )
    repository.add_order(_parent_order())

    identity = FakeIdentity(customer_id=7)
    identity.payable.add((7, ORDER_ID))
    session = FakeSession()
    cart = Cart()
    builder = InitialPaymentCartBuilder(
        orders=repository,
        catalog=repository,
        identity=identity,
        session=session,
        cart=cart,
    )
    return repository, identity, session, cart, builder


def _request(order_id: Optional[int] = ORDER_ID, key: Optional[str] = ORDER_KEY, pay: bool = True) -> PayForOrderRequest:
    return PayForOrderRequest(order_id=order_id, order_key=key, pay_for_order=pay)


@pytest.mark.parametrize(
    "request_args",
    [
        {"pay": False},
        {"key": None},
        {"order_id": None},
        {"key": "wc_order_wrong"},
        {"order_id": 999},
    ],
)
def test_incomplete_or_mismatched_request_continues(cart_components, request_args) -> None:
    _, _, session, cart, builder = cart_components

    outcome = builder.maybe_setup_cart(_request(**request_args))

    assert isinstance(outcome, Continue)
    assert cart.is_empty
    assert session.values == {}


@pytest.mark.parametrize(
    "overrides",
    [
        {"status": OrderStatus.COMPLETED},
        {"status": OrderStatus.PROCESSING},
        {"relations": frozenset()},
        {"relations": frozenset({OrderRelation.RENEWAL})},
        {"relations": frozenset({OrderRelation.PARENT, OrderRelation.RESUBSCRIBE})},
    ],
)
def test_ineligible_order_continues(cart_components, overrides) -> None:
    repository, _, _, cart, builder = cart_components
    repository.add_order(_parent_order(**overrides))

    assert isinstance(builder.maybe_setup_cart(_request()), Continue)
    assert cart.is_empty


def test_failed_order_is_also_payable(cart_components) -> None:
    repository, _, _, _, builder = cart_components
    repository.add_order(_parent_order(status=OrderStatus.FAILED))

    outcome = builder.maybe_setup_cart(_request())

    assert isinstance(outcome, Redirect)
    assert outcome.location == "/checkout/"


def test_anonymous_customer_is_sent_to_login(cart_components) -> None:
    _, identity, session, cart, builder = cart_components
    identity.customer_id = None

    outcome = builder.maybe_setup_cart(_request())

    assert isinstance(outcome, Redirect)
    assert outcome.location == "/my-account/?wcs_redirect=pay_for_order&wcs_redirect_id=500"
    assert outcome.notices == ()
    assert cart.is_empty
    assert session.values == {}


def test_customer_without_permission_gets_one_notice_and_untouched_cart(cart_components) -> None:
    _, identity, session, cart, builder = cart_components
    identity.customer_id = 8
    existing_key = cart.add_item(99, 1, total=500)

    outcome = builder.maybe_setup_cart(_request())

    assert isinstance(outcome, Redirect)
    assert outcome.location == "/my-account/"
    assert len(outcome.notices) == 1
    assert outcome.notices[0].kind == NoticeKind.ERROR
    assert outcome.notices[0].message == NOT_YOUR_ORDER_MESSAGE
    assert [line.key for line in cart] == [existing_key]
    assert ORDER_AWAITING_PAYMENT_KEY not in session.values


def test_valid_request_rebuilds_cart_from_order_lines(cart_components) -> None:
    repository, _, session, cart, builder = cart_components
    cart.add_item(99, 1, total=500)

    outcome = builder.maybe_setup_cart(_request())

    assert isinstance(outcome, Redirect)
    assert outcome.location == "/checkout/"
    assert outcome.notices == ()
    lines = cart.lines()
    assert [(line.product_id, line.variation_id, line.quantity) for line in lines] == [(10, 0, 2), (20, 21, 1)]

    first, second = lines
    assert first.marker(INITIAL_PAYMENT_MARKER) == {
        "order_id": ORDER_ID,
        "line_item_id": 1,
        "custom_line_item_meta": {"gift_note": "Happy birthday"},
    }
    assert second.variation == {"attribute_pa_size": "large"}
    assert second.marker(INITIAL_PAYMENT_MARKER)["line_item_id"] == 2
    assert cart.total == 3700

    assert session.get(ORDER_AWAITING_PAYMENT_KEY) == ORDER_ID
    assert session.get(DRAFT_ORDER_KEY) == ORDER_ID
    assert session.get(SESSION_CUSTOMER_KEY) == 7
    assert outcome.cart_hash == cart.get_cart_hash()
    assert repository.find_order_by_id(ORDER_ID).cart_hash == outcome.cart_hash


def test_repeated_setup_produces_same_cart_hash(cart_components) -> None:
    _, _, _, cart, builder = cart_components

    first = builder.maybe_setup_cart(_request())
    keys = [line.key for line in cart]
    second = builder.maybe_setup_cart(_request())

    assert first.cart_hash == second.cart_hash
    assert [line.key for line in cart] == keys


def test_deleted_product_is_skipped_with_notice(cart_components) -> None:
    repository, _, session, cart, builder = cart_components
    repository.add_order(
        _parent_order(
            line_items=(
                OrderLineItem(item_id=1, product_id=10, name="Coffee box", total=1000),
                OrderLineItem(item_id=2, product_id=404, name="Retired box", total=900),
            )
        )
    )

    outcome = builder.maybe_setup_cart(_request())

    assert isinstance(outcome, Redirect)
    assert outcome.location == "/checkout/"
    assert len(outcome.notices) == 1
    assert "Retired box" in outcome.notices[0].message
    assert [line.product_id for line in cart] == [10]
    assert session.get(ORDER_AWAITING_PAYMENT_KEY) == ORDER_ID


def test_deleted_variation_counts_as_deleted_product(cart_components) -> None:
    repository, _, _, cart, builder = cart_components
    repository.add_order(
        _parent_order(line_items=(OrderLineItem(item_id=3, product_id=20, variation_id=77, name="Tea box - small"),))
    )

    report = builder.setup_cart(repository.find_order_by_id(ORDER_ID), {"order_id": ORDER_ID})

    assert report.success is False
    assert report.added_keys == ()
    assert cart.is_empty


def test_all_items_required_mode_sends_customer_to_cart(cart_components) -> None:
    repository, _, session, cart, builder = cart_components
    builder.validation_mode = ValidationMode.ALL_ITEMS_REQUIRED
    repository.add_order(
        _parent_order(
            line_items=(
                OrderLineItem(item_id=1, product_id=10, name="Coffee box", total=1000),
                OrderLineItem(item_id=2, product_id=404, name="Retired box", total=900),
            )
        )
    )

    outcome = builder.maybe_setup_cart(_request())

    assert isinstance(outcome, Redirect)
    assert outcome.location == "/cart/"
    assert [notice.message for notice in outcome.notices][-1] == "Order #500 has not been added to the cart."
    assert cart.is_empty
    assert ORDER_AWAITING_PAYMENT_KEY not in session.values


def test_setup_filter_can_veto_cart_creation(cart_components) -> None:
    _, _, _, cart, builder = cart_components
    seen = []

    def veto(recreate: bool, order: Order) -> bool:
        seen.append((recreate, order.order_id))
        return False

    builder.add_setup_filter(veto)

    assert isinstance(builder.maybe_setup_cart(_request()), Continue)
    assert seen == [(True, ORDER_ID)]
    assert cart.is_empty


def test_cart_lookup_helpers(cart_components) -> None:
    repository, _, _, cart, builder = cart_components
    assert builder.cart_contains() is None
    assert builder.get_order() is None

    builder.maybe_setup_cart(_request())

    line = builder.cart_contains()
    assert line is not None and line.product_id == 10
    assert builder.get_order().order_id == ORDER_ID
    assert builder.should_honor_order_prices() is False

    repository.add_order(_parent_order(meta={PRICE_LOCK_META_KEY: "true"}))
    assert builder.should_honor_order_prices(line) is True


def test_update_cart_hash_tracks_cart_changes(cart_components) -> None:
    repository, _, _, cart, builder = cart_components
    outcome = builder.maybe_setup_cart(_request())

    cart.add_item(99, 1, total=500)
    refreshed = builder.update_cart_hash()

    assert refreshed != outcome.cart_hash
    assert repository.find_order_by_id(ORDER_ID).cart_hash == refreshed


def test_clearing_order_awaiting_payment(cart_components) -> None:
    _, _, session, _, builder = cart_components
    builder.maybe_setup_cart(_request())

    assert builder.set_order_awaiting_payment(None) is None
    assert ORDER_AWAITING_PAYMENT_KEY not in session.values
    assert DRAFT_ORDER_KEY not in session.values


def test_removing_one_line_removes_linked_lines(cart_components) -> None:
    _, _, session, cart, builder = cart_components
    builder.maybe_setup_cart(_request())
    unrelated = cart.add_item(99, 1, total=500)
    first_key = cart.lines()[0].key

    change = builder.maybe_remove_items(first_key)

    assert change.order_id == ORDER_ID
    assert len(change.keys) == 2
    assert len(change.notices) == 1
    assert [line.key for line in cart] == [unrelated]
    assert ORDER_AWAITING_PAYMENT_KEY not in session.values

    restored = builder.maybe_restore_items(first_key)

    assert restored.order_id == ORDER_ID
    assert set(restored.keys) == set(change.keys)
    assert len(cart) == 3
    assert session.get(ORDER_AWAITING_PAYMENT_KEY) == ORDER_ID


def test_removing_unrelated_line_changes_nothing(cart_components) -> None:
    _, _, session, cart, builder = cart_components
    builder.maybe_setup_cart(_request())
    unrelated = cart.add_item(99, 1, total=500)
    cart.remove(unrelated)

    change = builder.maybe_remove_items(unrelated)

    assert change.order_id is None
    assert len(cart) == 2
    assert session.get(ORDER_AWAITING_PAYMENT_KEY) == ORDER_ID


def test_session_is_destroyed_when_another_customer_logs_in(cart_components) -> None:
    _, identity, session, cart, builder = cart_components
    builder.maybe_setup_cart(_request())
    assert builder.verify_session_belongs_to_customer() is True

    identity.customer_id = 8

    assert builder.verify_session_belongs_to_customer() is False
    assert session.destroyed is True
    assert cart.is_empty


def test_login_redirect_returns_to_order_payment(cart_components) -> None:
    _, _, _, _, builder = cart_components
    query = {"wcs_redirect": "pay_for_order", "wcs_redirect_id": str(ORDER_ID)}
    redirect = "/my-account/?wcs_redirect=pay_for_order&wcs_redirect_id=500"

    assert builder.redirect_after_login(redirect, 7, query) == (
        "/checkout/order-pay/500/?pay_for_order=true&key=wc_order_abc"
    )
    assert builder.redirect_after_login(redirect, 8, query) == "/my-account/"
    assert builder.redirect_after_login("/shop/", 7, {}) == "/shop/"
    assert builder.redirect_after_login(redirect, 7, {**query, "wcs_redirect_id": "abc"}) == "/my-account/"
