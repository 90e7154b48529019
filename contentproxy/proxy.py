"""
contentproxy ObjectProxy - A Stable Controller over Swappable Content
=====================================================================

An `ObjectProxy` lets observers bind to one long-lived object while the
object it actually represents, its `content`, is swapped freely.

Any key that is not declared on the proxy is forwarded to the content. The
first time such a key is read or written, the proxy installs a cached computed
property for it that reads and writes through to the content. Whenever
`content` changes, every forwarded key is re-announced so that anything
observing the proxy refreshes.

Single Content
--------------

```python
from contentproxy import ObjectProxy

contact = {"name": "Ann"}
controller = ObjectProxy(content=contact)

controller.name               # "Ann"
controller.content = {"name": "Bea"}
controller.name               # "Bea"
controller.name = "Cy"        # writes contact["name"]
```

Enumerable Content
------------------

When `content` is an enumerable (see `contentproxy.enumerable`), the proxy
tries to treat it as one object:

- One element: the element itself is the target.
- No elements: there is no target.
- Several elements: no target, unless `allows_multiple_content` is True, in
  which case reads gather the key from every element (collapsing to a single
  value when all elements agree) and writes set it on every element.

Editability
-----------

Setting `is_editable = False` makes every forwarded write raise
`EditabilityError`. Reads are unaffected.
"""

import functools
import logging
from typing import Any, FrozenSet, Set

from .enumerable import (
    MEMBERSHIP_KEY,
    first_object,
    get_each,
    is_enumerable,
    length,
    set_each,
    uniq,
)
from .observable import (
    ObservableObject,
    attribute,
    computed,
    get_property,
    has_destroy,
    observes,
    set_property,
)
from .store import Change


# ============================================================================
# EXCEPTIONS
# ============================================================================


class EditabilityError(Exception):
    """Raised when a forwarded key is written on a proxy that is not editable."""

    def __init__(self, proxy: "ObjectProxy", key: str):
        self.proxy = proxy
        self.key = key
        super().__init__(f"{proxy!r}.{key} is not editable")


# ============================================================================
# CONTENT RESOLUTION
# ============================================================================


def resolve_content(content: Any, allows_multiple_content: bool = False) -> Any:
    """
    Reduce `content` to the single object a proxy should forward to.

    Non-enumerable content is returned unchanged. An enumerable with one
    element resolves to that element, an empty one to None, and one with
    several elements to None unless `allows_multiple_content` is set, in which
    case it resolves to itself. In single-content mode an enumerable is never
    returned, even when it was the sole element of the content.
    """
    if content is None or not is_enumerable(content):
        return content

    count = length(content)
    if count == 1:
        content = first_object(content)
    elif count == 0 or not allows_multiple_content:
        content = None

    if content is not None and not allows_multiple_content and is_enumerable(content):
        content = None

    return content


# ============================================================================
# OBJECT PROXY
# ============================================================================


class ObjectProxy(ObservableObject):
    """
    Forwards every undeclared key to the object held in `content`.

    The proxy is meant to stay put while its content changes: bind views or
    other observers to the proxy once and reassign `content` as the selection
    changes.

    Attributes:
        content: The proxied value. May be None, any object, or an enumerable.
        allows_multiple_content: Whether an enumerable with several elements
            is proxied as a whole (True) or treated as no content (False).
        is_editable: Whether forwarded keys may be written.
        observable_content: The resolved target, cached.
        has_content: True when there is a resolved target.
    """

    _accepts_undeclared = False

    content = attribute(None)
    allows_multiple_content = attribute(False)
    is_editable = attribute(True)

    def __init__(self, **attrs: Any):
        self._forwarded_keys: Set[str] = set()
        super().__init__(**attrs)

    @computed("content", f"content.{MEMBERSHIP_KEY}", "allows_multiple_content")
    def observable_content(self):
        """Primarily for internal use; mirrors `content` unless it is enumerable."""
        return resolve_content(self.content, self.allows_multiple_content)

    @computed("observable_content")
    def has_content(self):
        return self.observable_content is not None

    @property
    def forwarded_keys(self) -> FrozenSet[str]:
        return frozenset(self._forwarded_keys)

    # ========================================================================
    # LIFECYCLE
    # ========================================================================

    def destroy(self) -> "ObjectProxy":
        """
        Destroy the content, if it can be destroyed, and clear `content`.

        The proxy itself is not destroyed and can be given new content.
        """
        content = self.observable_content
        if has_destroy(content):
            logging.debug(f"Destroying content of {self!r}")
            content.destroy()
        self.set("content", None)
        return self

    # ========================================================================
    # FORWARDING
    # ========================================================================

    def unknown_property(self, key: str) -> Any:
        self._forward(key)
        return self.get(key)

    def set_unknown_property(self, key: str, value: Any) -> Any:
        self._forward(key)
        return self.set(key, value)

    def _forward(self, key: str) -> None:
        if key in self._forwarded_keys:
            return
        logging.debug(f"Forwarding '{key}' from {self!r} to its content")
        self._forwarded_keys.add(key)
        # Depending on `content` itself re-announces the key on every content
        # write, once, in the same pass as the write
        self.define_property(
            key,
            functools.partial(self._read_content, key),
            setter=functools.partial(self._write_content, key),
            depends_on=["content", f"observable_content.{key}"],
        )

    def _read_content(self, key: str) -> Any:
        content = self.observable_content
        if content is None:
            return None

        if is_enumerable(content):
            values = get_each(content, key)
            if not values:
                return None
            if len(uniq(values)) == 1:
                return values[0]
            return values

        return get_property(content, key)

    def _write_content(self, key: str, value: Any) -> Any:
        if not self.is_editable:
            raise EditabilityError(self, key)

        content = self.observable_content
        if content is None:
            return value

        if is_enumerable(content):
            set_each(content, key, value)
        else:
            set_property(content, key, value)
        return value

    @observes("content")
    def content_did_change(self, change: Change) -> None:
        if self._forwarded_keys:
            logging.debug(
                f"Content of {self!r} changed, "
                f"{len(self._forwarded_keys)} forwarded keys invalidated"
            )


__all__ = ["ObjectProxy", "EditabilityError", "resolve_content"]
