"""Session-scoped cart holding the lines of an order being paid for."""
from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Mapping, Optional


@dataclass
class CartLine:
    """A single cart entry keyed by a hash of its product and item data."""

    key: str
    product_id: int
    quantity: int
    variation_id: int = 0
    variation: Dict[str, str] = field(default_factory=dict)
    data: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    line_subtotal: int = 0
    line_total: int = 0
    line_tax: int = 0

    def marker(self, name: str) -> Optional[Dict[str, Any]]:
        """Return the marker data stored under ``name``, if any."""
        return self.data.get(name)

    def to_session(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "product_id": self.product_id,
            "variation_id": self.variation_id,
            "variation": dict(self.variation),
            "quantity": self.quantity,
            "line_subtotal": self.line_subtotal,
            "line_total": self.line_total,
            "line_tax": self.line_tax,
            **{name: dict(value) for name, value in self.data.items()},
        }


def generate_cart_key(
    product_id: int,
    variation_id: int = 0,
    variation: Optional[Mapping[str, str]] = None,
    data: Optional[Mapping[str, Any]] = None,
) -> str:
    """Return a deterministic key for a product/variation/item-data combination."""

    parts = [str(product_id), str(variation_id)]
    if variation:
        parts.append(json.dumps(dict(variation), sort_keys=True, separators=(",", ":")))
    if data:
        parts.append(json.dumps(dict(data), sort_keys=True, separators=(",", ":"), default=str))
    return hashlib.md5("_".join(parts).encode("utf-8")).hexdigest()


class Cart:
    """Ordered mapping of cart keys to lines, plus lines removed but restorable."""

    def __init__(self) -> None:
        self.contents: Dict[str, CartLine] = {}
        self.removed_contents: Dict[str, CartLine] = {}

    def __len__(self) -> int:
        return len(self.contents)

    def __iter__(self) -> Iterator[CartLine]:
        return iter(list(self.contents.values()))

    def __contains__(self, key: object) -> bool:
        return key in self.contents

    @property
    def is_empty(self) -> bool:
        return not self.contents

    def lines(self) -> List[CartLine]:
        return list(self.contents.values())

    def get(self, key: str) -> Optional[CartLine]:
        return self.contents.get(key)

    def empty(self) -> None:
        self.contents.clear()
        self.removed_contents.clear()

    def add_item(
        self,
        product_id: int,
        quantity: int = 1,
        *,
        variation_id: int = 0,
        variation: Optional[Mapping[str, str]] = None,
        data: Optional[Mapping[str, Dict[str, Any]]] = None,
        subtotal: int = 0,
        total: int = 0,
        tax: int = 0,
    ) -> str:
        """Add a line and return its key; identical lines are merged."""

        if quantity < 1:
            raise ValueError("quantity must be >= 1")

        key = generate_cart_key(product_id, variation_id, variation, data)
        existing = self.contents.get(key)
        if existing is not None:
            existing.quantity += quantity
            existing.line_subtotal += subtotal
            existing.line_total += total
            existing.line_tax += tax
            return key

        self.contents[key] = CartLine(
            key=key,
            product_id=product_id,
            quantity=quantity,
            variation_id=variation_id,
            variation=dict(variation or {}),
            data={name: dict(value) for name, value in (data or {}).items()},
            line_subtotal=subtotal,
            line_total=total,
            line_tax=tax,
        )
        return key

    def remove(self, key: str) -> Optional[CartLine]:
        line = self.contents.pop(key, None)
        if line is not None:
            self.removed_contents[key] = line
        return line

    def restore(self, key: str) -> Optional[CartLine]:
        line = self.removed_contents.pop(key, None)
        if line is not None:
            self.contents[key] = line
        return line

    @property
    def subtotal(self) -> int:
        return sum(line.line_subtotal for line in self.contents.values())

    @property
    def total(self) -> int:
        return sum(line.line_total + line.line_tax for line in self.contents.values())

    def get_cart_for_session(self) -> Dict[str, Dict[str, Any]]:
        return {key: line.to_session() for key, line in self.contents.items()}

    def get_cart_hash(self) -> str:
        """Hash of the cart contents and total, stable across identical rebuilds."""

        serialized = json.dumps(self.get_cart_for_session(), sort_keys=True, separators=(",", ":"), default=str)
        return hashlib.md5((serialized + str(self.total)).encode("utf-8")).hexdigest()
