"""Request and outcome models for the pay-for-order cart flow."""
from __future__ import annotations

from enum import Enum
from typing import Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field


class NoticeKind(str, Enum):
    """Severity of a user-facing notice."""

    ERROR = "error"
    SUCCESS = "success"
    NOTICE = "notice"


class ValidationMode(str, Enum):
    """How strictly every order line must make it into the cart."""

    ALL_ITEMS_NOT_REQUIRED = "all_items_not_required"
    ALL_ITEMS_REQUIRED = "all_items_required"


class Notice(BaseModel):
    """Message shown to the customer on the next rendered page."""

    kind: NoticeKind
    message: str

    model_config = ConfigDict(frozen=True)


class PayForOrderRequest(BaseModel):
    """Parameters of a request to pay for an existing order."""

    order_id: Optional[int] = None
    order_key: Optional[str] = None
    pay_for_order: bool = False

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @property
    def is_complete(self) -> bool:
        return bool(self.order_id) and self.order_key is not None and self.pay_for_order


class Continue(BaseModel):
    """The flow did not engage; the host's default checkout handling proceeds."""

    outcome: Literal["continue"] = "continue"

    model_config = ConfigDict(frozen=True)


class Redirect(BaseModel):
    """Terminal outcome: send the customer to ``location`` after showing ``notices``."""

    outcome: Literal["redirect"] = "redirect"
    location: str
    notices: Tuple[Notice, ...] = ()
    order_id: Optional[int] = None
    cart_hash: Optional[str] = None

    model_config = ConfigDict(frozen=True)


CartSetupOutcome = Union[Continue, Redirect]


class CartSetupReport(BaseModel):
    """Result of copying order lines into the cart."""

    added_keys: Tuple[str, ...] = ()
    notices: Tuple[Notice, ...] = ()
    success: bool = True

    model_config = ConfigDict(frozen=True)


class LinkedItemsChange(BaseModel):
    """Lines moved by removing or restoring a cart line tied to an order."""

    order_id: Optional[int] = None
    keys: Tuple[str, ...] = Field(default_factory=tuple)
    notices: Tuple[Notice, ...] = ()

    model_config = ConfigDict(frozen=True)
