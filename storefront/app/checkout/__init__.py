"""Cart reconstruction for paying an existing initial subscription order."""

from .cart import Cart, CartLine, generate_cart_key
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
from .service import (
    INITIAL_PAYMENT_MARKER,
    ORDER_AWAITING_PAYMENT_KEY,
    CustomerIdentity,
    InitialPaymentCartBuilder,
    OrderStore,
    SessionStore,
    SetupFilter,
)

__all__ = [
    "INITIAL_PAYMENT_MARKER",
    "ORDER_AWAITING_PAYMENT_KEY",
    "Cart",
    "CartLine",
    "CartSetupOutcome",
    "CartSetupReport",
    "Continue",
    "CustomerIdentity",
    "InitialPaymentCartBuilder",
    "LinkedItemsChange",
    "Notice",
    "NoticeKind",
    "OrderStore",
    "PayForOrderRequest",
    "Redirect",
    "SessionStore",
    "SetupFilter",
    "ValidationMode",
    "generate_cart_key",
]
