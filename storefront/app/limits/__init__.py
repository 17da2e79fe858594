"""Purchase limitation rules for subscription products."""

from .exceptions import PurchaseLimitError
from .service import (
    DecisionFilter,
    LimitationFilter,
    ProductCatalog,
    PurchaseLimitEvaluator,
    SubscriptionHistory,
)

__all__ = [
    "DecisionFilter",
    "LimitationFilter",
    "ProductCatalog",
    "PurchaseLimitError",
    "PurchaseLimitEvaluator",
    "SubscriptionHistory",
]
