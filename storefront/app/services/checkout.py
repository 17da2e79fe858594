"""Application wiring for purchase limits and the pay-for-order cart."""
from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Dict, List, Optional

from ..checkout import Cart, InitialPaymentCartBuilder, NoticeKind
from ..checkout.service import ORDER_AWAITING_PAYMENT_KEY
from ..limits import PurchaseLimitEvaluator
from ..subscriptions import InMemoryStoreRepository, Order
from ...store_config import StoreConfig, load_store_config


logger = logging.getLogger("checkout")

AUTHENTICATED_CUSTOMER_KEY = "authenticated_customer_id"
NOTICES_KEY = "notices"


class InMemorySessionStore:
    """Dictionary-backed session storage for local development and tests."""

    def __init__(self) -> None:
        self._data: Dict[str, Any] = {}

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def destroy(self) -> None:
        self._data.clear()


@dataclass
class StorefrontSession:
    """A shopping session: its key/value storage and its cart."""

    token: str
    store: InMemorySessionStore = field(default_factory=InMemorySessionStore)
    cart: Cart = field(default_factory=Cart)

    def login(self, customer_id: int) -> None:
        self.store.set(AUTHENTICATED_CUSTOMER_KEY, int(customer_id))

    def logout(self) -> None:
        self.store.delete(AUTHENTICATED_CUSTOMER_KEY)


class SessionRegistry:
    """Maps session cookie values to live sessions."""

    def __init__(self) -> None:
        self._sessions: Dict[str, StorefrontSession] = {}

    def get_or_create(self, token: Optional[str]) -> StorefrontSession:
        if token and token in self._sessions:
            return self._sessions[token]
        session = StorefrontSession(token=token or secrets.token_urlsafe(24))
        self._sessions[session.token] = session
        return session

    def clear(self) -> None:
        self._sessions.clear()


class SessionCustomerIdentity:
    """Identity backed by the login recorded in the session.

    A customer may pay for an order when the order belongs to them.
    """

    def __init__(self, session: StorefrontSession, repository: InMemoryStoreRepository) -> None:
        self._session = session
        self._repository = repository

    def current_customer_id(self) -> Optional[int]:
        customer_id = self._session.store.get(AUTHENTICATED_CUSTOMER_KEY)
        return int(customer_id) if customer_id else None

    def customer_can_pay(self, customer_id: int, order_id: int) -> bool:
        order = self._repository.find_order_by_id(order_id)
        return order is not None and bool(order.customer_id) and order.customer_id == customer_id


class LoggingNoticeSurface:
    """Queues notices on the session for the next page and logs them."""

    def __init__(self, session: StorefrontSession) -> None:
        self._session = session

    def show_notice(self, kind: NoticeKind, message: str) -> None:
        level = logging.WARNING if kind == NoticeKind.ERROR else logging.INFO
        logger.log(level, "Notice for session %s (%s): %s", self._session.token[:8], kind.value, message)
        pending: List[Dict[str, str]] = list(self._session.store.get(NOTICES_KEY, []))
        pending.append({"kind": kind.value, "message": message})
        self._session.store.set(NOTICES_KEY, pending)


@lru_cache(maxsize=1)
def get_store_config() -> StoreConfig:
    return load_store_config()


@lru_cache(maxsize=1)
def get_repository() -> InMemoryStoreRepository:
    return InMemoryStoreRepository()


@lru_cache(maxsize=1)
def get_session_registry() -> SessionRegistry:
    return SessionRegistry()


def build_limit_evaluator(session: StorefrontSession) -> PurchaseLimitEvaluator:
    config = get_store_config()
    repository = get_repository()
    identity = SessionCustomerIdentity(session, repository)
    return PurchaseLimitEvaluator(
        history=repository,
        catalog=repository,
        default_limitation=config.default_limitation,
        current_customer=identity.current_customer_id,
    )


def build_cart_builder(session: StorefrontSession) -> InitialPaymentCartBuilder:
    config = get_store_config()
    repository = get_repository()
    return InitialPaymentCartBuilder(
        orders=repository,
        catalog=repository,
        identity=SessionCustomerIdentity(session, repository),
        session=session.store,
        cart=session.cart,
        account_url=config.account_url,
        checkout_url=config.checkout_url,
        cart_url=config.cart_url,
        validation_mode=config.validation_mode,
    )


def build_notice_surface(session: StorefrontSession) -> LoggingNoticeSurface:
    return LoggingNoticeSurface(session)


def get_order_awaiting_payment(session: StorefrontSession) -> Optional[Order]:
    order_id = session.store.get(ORDER_AWAITING_PAYMENT_KEY)
    if not order_id:
        return None
    return get_repository().find_order_by_id(int(order_id))


__all__ = [
    "InMemorySessionStore",
    "LoggingNoticeSurface",
    "SessionCustomerIdentity",
    "SessionRegistry",
    "StorefrontSession",
    "build_cart_builder",
    "build_limit_evaluator",
    "build_notice_surface",
    "get_order_awaiting_payment",
    "get_repository",
    "get_session_registry",
    "get_store_config",
]
