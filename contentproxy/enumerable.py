"""
Enumerable capability and an observable list.

A value is an enumerable when its class reports `is_enumerable = True`. The
check looks at the class, never at the nominal type, so plain lists and
tuples are ordinary values and any iterable class can opt in.
"""

from typing import Any, Iterable, List

from .observable import ObservableObject, get_property, set_property
from .store import values_equal

# Pseudo-key announced whenever an observable enumerable's members change
MEMBERSHIP_KEY = "[]"


def is_enumerable(value: Any) -> bool:
    return value is not None and getattr(type(value), "is_enumerable", False) is True


def length(enumerable: Iterable) -> int:
    try:
        return len(enumerable)
    except TypeError:
        return sum(1 for _ in enumerable)


def first_object(enumerable: Iterable) -> Any:
    return next(iter(enumerable), None)


def last_object(enumerable: Iterable) -> Any:
    last = None
    for item in enumerable:
        last = item
    return last


def get_each(enumerable: Iterable, key: str) -> List[Any]:
    """Read `key` from every element, in order."""
    return [get_property(item, key) for item in enumerable]


def set_each(enumerable: Iterable, key: str, value: Any) -> None:
    """Write `key` on every element."""
    for item in enumerable:
        set_property(item, key, value)


def uniq(values: Iterable) -> List[Any]:
    """
    Distinct values in first-seen order.

    Compares with equality rather than hashing, so dicts, lists and numpy
    arrays are supported.
    """
    distinct: List[Any] = []
    for value in values:
        if not any(values_equal(value, seen) for seen in distinct):
            distinct.append(value)
    return distinct


class Enumerable:
    """Mixin giving an iterable class the enumerable capability."""

    is_enumerable = True

    def get_each(self, key: str) -> List[Any]:
        return get_each(self, key)

    def set_each(self, key: str, value: Any) -> None:
        set_each(self, key, value)

    def uniq(self) -> List[Any]:
        return uniq(self)


class ObservableList(Enumerable, ObservableObject):
    """
    Ordered, mutable, observable enumerable.

    Every mutation announces the membership key `[]`, which in turn
    invalidates `length`, `first_object` and `last_object`.

    Example:
        ```python
        selection = ObservableList([contact])
        selection.add_observer("[]", lambda change: print("selection changed"))
        selection.append(other)   # prints: selection changed
        selection.length          # 2
        ```
    """

    def __init__(self, items: Iterable = (), **attrs: Any):
        self._items = list(items)
        super().__init__(**attrs)
        self._store.source(MEMBERSHIP_KEY, None)
        self.define_property(
            "length", lambda: len(self._items), depends_on=[MEMBERSHIP_KEY]
        )
        self.define_property(
            "first_object",
            lambda: self._items[0] if self._items else None,
            depends_on=[MEMBERSHIP_KEY],
        )
        self.define_property(
            "last_object",
            lambda: self._items[-1] if self._items else None,
            depends_on=[MEMBERSHIP_KEY],
        )

    def _members_did_change(self) -> None:
        self.notify_property_change(MEMBERSHIP_KEY)

    # ========================================================================
    # MUTATION
    # ========================================================================

    def append(self, item: Any) -> None:
        self._items.append(item)
        self._members_did_change()

    def extend(self, items: Iterable) -> None:
        self._items.extend(items)
        self._members_did_change()

    def insert(self, index: int, item: Any) -> None:
        self._items.insert(index, item)
        self._members_did_change()

    def remove(self, item: Any) -> None:
        self._items.remove(item)
        self._members_did_change()

    def pop(self, index: int = -1) -> Any:
        item = self._items.pop(index)
        self._members_did_change()
        return item

    def clear(self) -> None:
        self._items.clear()
        self._members_did_change()

    def replace(self, start: int, count: int, items: Iterable = ()) -> None:
        """Replace `count` elements from `start` with `items`."""
        self._items[start : start + count] = list(items)
        self._members_did_change()

    def __setitem__(self, index, value) -> None:
        self._items[index] = value
        self._members_did_change()

    def __delitem__(self, index) -> None:
        del self._items[index]
        self._members_did_change()

    # ========================================================================
    # SEQUENCE PROTOCOL
    # ========================================================================

    def __getitem__(self, index):
        return self._items[index]

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self):
        return iter(list(self._items))

    def __contains__(self, item: Any) -> bool:
        return item in self._items

    def index(self, item: Any) -> int:
        return self._items.index(item)

    def object_at(self, index: int) -> Any:
        if 0 <= index < len(self._items):
            return self._items[index]
        return None

    def to_list(self) -> List[Any]:
        return list(self._items)

    def __repr__(self) -> str:
        return f"ObservableList({self._items!r})"


__all__ = [
    "MEMBERSHIP_KEY",
    "Enumerable",
    "ObservableList",
    "is_enumerable",
    "length",
    "first_object",
    "last_object",
    "get_each",
    "set_each",
    "uniq",
]
