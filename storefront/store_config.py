"""Store configuration helpers."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional
import os

from .app.checkout.models import ValidationMode
from .app.subscriptions.models import parse_limitation


@dataclass(frozen=True)
class StoreConfig:
    """Settings shared by the purchase limits and the pay-for-order flow."""

    default_limitation: str
    account_url: str
    checkout_url: str
    cart_url: str
    require_all_items: bool
    session_cookie_name: str

    @property
    def validation_mode(self) -> ValidationMode:
        if self.require_all_items:
            return ValidationMode.ALL_ITEMS_REQUIRED
        return ValidationMode.ALL_ITEMS_NOT_REQUIRED


def _to_bool(value: Optional[str], *, default: bool) -> bool:
    if value is None:
        return default
    lowered = value.strip().lower()
    if lowered in {"1", "true", "yes", "on"}:
        return True
    if lowered in {"0", "false", "no", "off"}:
        return False
    return default


def _to_path(value: Optional[str], *, default: str) -> str:
    path = (value or default).strip() or default
    if not path.startswith("/"):
        path = f"/{path}"
    if not path.endswith("/"):
        path = f"{path}/"
    return path


def load_store_config(env: Optional[Mapping[str, str]] = None) -> StoreConfig:
    """Load :class:`StoreConfig` from environment variables."""

    env_mapping = os.environ if env is None else env

    raw_limitation = env_mapping.get("SUBSCRIPTION_DEFAULT_LIMIT") or "no"
    default_limitation = parse_limitation(raw_limitation).value

    return StoreConfig(
        default_limitation=default_limitation,
        account_url=_to_path(env_mapping.get("MY_ACCOUNT_PATH"), default="/my-account/"),
        checkout_url=_to_path(env_mapping.get("CHECKOUT_PATH"), default="/checkout/"),
        cart_url=_to_path(env_mapping.get("CART_PATH"), default="/cart/"),
        require_all_items=_to_bool(env_mapping.get("INITIAL_PAYMENT_REQUIRE_ALL_ITEMS"), default=False),
        session_cookie_name=env_mapping.get("SESSION_COOKIE_NAME", "session") or "session",
    )
