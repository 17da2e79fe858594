"""Comparator helpers for ordering orders, subscriptions and other records."""
from __future__ import annotations

from enum import Enum
from functools import cmp_to_key
from typing import Any, Callable, Iterable, List, Union

_MISSING = object()


class SortProperty(str, Enum):
    """Record attributes commonly used to order orders and subscriptions."""

    ID = "id"
    DATE_CREATED = "date_created"
    DATE_MODIFIED = "date_modified"
    DATE_PAID = "date_paid"
    DATE_COMPLETED = "date_completed"


Selector = Callable[[Any], Any]


def attribute_selector(name: str) -> Selector:
    """Return a selector reading ``name`` from an object, or a sentinel when absent."""

    def _select(obj: Any) -> Any:
        return getattr(obj, name, _MISSING)

    return _select


# Domain models expose their identifiers under a prefixed name.
_ID_ATTRIBUTES = ("id", "order_id", "subscription_id", "product_id")


def _id_selector(obj: Any) -> Any:
    for name in _ID_ATTRIBUTES:
        value = getattr(obj, name, _MISSING)
        if value is not _MISSING:
            return value
    return _MISSING


class ObjectSorter:
    """Orders two objects by a single comparable attribute.

    ``sort_by`` may be a :class:`SortProperty`, a plain attribute name or a
    selector callable. When either object does not expose the attribute the
    comparison reports the pair as equal so sorting never fails on mixed
    collections.
    """

    def __init__(self, sort_by: Union[SortProperty, str, Selector]) -> None:
        if callable(sort_by):
            self._selector: Selector = sort_by
            self.sort_by = getattr(sort_by, "__name__", "selector")
        else:
            name = sort_by.value if isinstance(sort_by, SortProperty) else str(sort_by)
            if not name:
                raise ValueError("sort_by must name an attribute")
            self._selector = _id_selector if name == SortProperty.ID.value else attribute_selector(name)
            self.sort_by = name

    def _value(self, obj: Any) -> Any:
        try:
            return self._selector(obj)
        except AttributeError:
            return _MISSING

    def ascending_compare(self, first: Any, second: Any) -> int:
        value_one = self._value(first)
        value_two = self._value(second)
        if value_one is _MISSING or value_two is _MISSING:
            return 0
        return _compare_values(value_one, value_two)

    def descending_compare(self, first: Any, second: Any) -> int:
        return -1 * self.ascending_compare(first, second)

    def key(self, *, descending: bool = False):
        """Return a ``sorted()`` key wrapping the matching comparator."""

        comparator = self.descending_compare if descending else self.ascending_compare
        return cmp_to_key(comparator)

    def sort(self, objects: Iterable[Any], *, descending: bool = False) -> List[Any]:
        return sorted(objects, key=self.key(descending=descending))


def _compare_values(value_one: Any, value_two: Any) -> int:
    try:
        if value_one == value_two:
            return 0
        return -1 if value_one < value_two else 1
    except TypeError:
        text_one, text_two = str(value_one), str(value_two)
        if text_one == text_two:
            return 0
        return -1 if text_one < text_two else 1
