"""Exceptions raised when purchase limits are enforced."""
from __future__ import annotations

from typing import Any, Dict

from fastapi import HTTPException, status

from ..subscriptions.models import Limitation


class PurchaseLimitError(Exception):
    """A new subscription to ``product_id`` is blocked by its ``limitation``."""

    code = "subscription_limited"

    def __init__(
        self,
        product_id: int,
        limitation: Limitation,
        *,
        customer_id: int = 0,
        product_name: str = "",
    ) -> None:
        self.product_id = product_id
        self.limitation = limitation
        self.customer_id = customer_id
        self.product_name = product_name
        super().__init__(self.message)

    @property
    def message(self) -> str:
        return f"You already have a subscription to {self.product_name or 'this product'}."

    @property
    def payload(self) -> Dict[str, Any]:
        # Customer ids stay out of client responses.
        return {
            "error": self.code,
            "message": self.message,
            "product_id": self.product_id,
            "limitation": self.limitation.value,
        }

    def to_http_exception(self) -> HTTPException:
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=self.payload)
