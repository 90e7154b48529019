"""
contentproxy Observable Objects - Declared Attributes over a Reactive Store
==========================================================================

This module provides `ObservableObject`, the base class for objects whose
attributes can be observed, computed from other attributes and cached.

Every instance owns a `ReactiveStore`. Class-level declarations decide what
goes into it:

- `attribute(default)` declares a plain, writable attribute.
- `computed(*deps)` declares a cached property recomputed when any dependency
  changes. Dotted dependencies (`"owner.name"`) also watch `name` on whatever
  object `owner` currently holds.
- `observes(*keys)` marks a method to be called with a `Change` whenever one of
  the keys changes on the instance.

Basic Usage
-----------

```python
from contentproxy import ObservableObject, attribute, computed

class Person(ObservableObject):
    first = attribute("Ann")
    last = attribute("Lee")

    @computed("first", "last")
    def full_name(self):
        return f"{self.first} {self.last}"

person = Person(last="Smith")
person.full_name          # "Ann Smith"
person.first = "Bea"      # full_name is invalidated, not recomputed
person.get("full_name")   # "Bea Smith"
```

Unknown Keys
------------

Reading a key the object does not hold calls `unknown_property(key)`, which
returns None. Writing one calls `set_unknown_property(key, value)`, which
turns the key into a plain attribute. Subclasses override both hooks to give
unknown keys other meanings; `ObjectProxy` forwards them to its content.

Attribute syntax (`obj.name`, `obj.name = value`) is routed through
`get()`/`set()` for every public name, so both spellings behave the same.
"""

import functools
import weakref
from collections.abc import Mapping, MutableMapping
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Type

from .store import Change, ReactiveStore

_MISSING = object()


# ============================================================================
# DECLARATIONS
# ============================================================================


class attribute:
    """Declared plain attribute on an ObservableObject subclass."""

    def __init__(
        self,
        default: Any = None,
        *,
        default_factory: Optional[Callable[[], Any]] = None,
    ):
        self.default = default
        self.default_factory = default_factory
        self.name: Optional[str] = None

    def __set_name__(self, owner: Type, name: str) -> None:
        self.name = name

    def initial_value(self) -> Any:
        if self.default_factory is not None:
            return self.default_factory()
        return self.default

    def __get__(self, instance, owner):
        if instance is None:
            return self
        return instance.get(self.name)

    def __set__(self, instance, value: Any) -> None:
        instance.set(self.name, value)

    def __repr__(self) -> str:
        return f"attribute({self.default!r})"


class computed:
    """
    Declared computed property.

    Used as a decorator; the decorated method receives the instance and
    returns the value. A setter registered with `.setter` receives the
    instance and the written value and returns the value to cache.
    """

    def __init__(self, *deps: str, cacheable: bool = True):
        self.deps: Tuple[str, ...] = deps
        self.cacheable = cacheable
        self.fget: Optional[Callable[[Any], Any]] = None
        self.fset: Optional[Callable[[Any, Any], Any]] = None
        self.name: Optional[str] = None

    def __call__(self, fget: Callable[[Any], Any]) -> "computed":
        self.fget = fget
        self.__doc__ = fget.__doc__
        return self

    def setter(self, fset: Callable[[Any, Any], Any]) -> "computed":
        self.fset = fset
        return self

    def __set_name__(self, owner: Type, name: str) -> None:
        self.name = name

    def __get__(self, instance, owner):
        if instance is None:
            return self
        return instance.get(self.name)

    def __set__(self, instance, value: Any) -> None:
        instance.set(self.name, value)


def observes(*keys: str) -> Callable:
    """Mark a method as an observer of `keys` on its instance."""

    def decorator(func: Callable) -> Callable:
        func._observes = keys
        return func

    return decorator


# ============================================================================
# GENERIC ACCESSORS
# ============================================================================


def get_property(obj: Any, key: str) -> Any:
    """Read `key` from an observable object, a mapping or a plain object."""
    if obj is None:
        return None
    if isinstance(obj, ObservableObject):
        return obj.get(key)
    if isinstance(obj, Mapping):
        return obj.get(key)
    return getattr(obj, key, None)


def set_property(obj: Any, key: str, value: Any) -> Any:
    """Write `key` on an observable object, a mutable mapping or a plain object."""
    if isinstance(obj, ObservableObject):
        obj.set(key, value)
    elif isinstance(obj, MutableMapping):
        obj[key] = value
    else:
        setattr(obj, key, value)
    return value


def get_path(obj: Any, path: str) -> Any:
    """Follow a dotted path; any missing step yields None."""
    for key in path.split("."):
        if obj is None:
            return None
        obj = get_property(obj, key)
    return obj


def has_destroy(obj: Any) -> bool:
    return obj is not None and callable(getattr(obj, "destroy", None))


# ============================================================================
# CHAINED DEPENDENCIES
# ============================================================================


class _ChainWatcher:
    """
    Watches `key` on the current value of `root` for a computed property.

    Rebound each time the property is computed, and released when the
    property goes stale, so only the root value the cached result was read
    from is watched. The owner is held weakly: watched objects never keep
    the owner alive.
    """

    def __init__(self, owner: "ObservableObject", prop: str, root: str, key: str):
        self._owner_ref = weakref.ref(owner)
        self._prop = prop
        self._root = root
        self._key = key.split(".")[0]
        self._unsubscribers: List[Callable[[], None]] = []

    def rebind(self) -> None:
        self.release()
        owner = self._owner_ref()
        if owner is None:
            return
        target = owner.get(self._root)
        for obj, key in _watch_points(target, self._key):
            self._unsubscribers.append(obj.add_observer(key, self._fire))

    def release(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

    def _fire(self, change: Change) -> None:
        owner = self._owner_ref()
        if owner is None:
            self.release()
            return
        owner.notify_property_change(self._prop)


def _release_chains(chains: Dict[str, List[_ChainWatcher]]) -> None:
    for watchers in chains.values():
        for watcher in watchers:
            watcher.release()


def _watch_points(target: Any, key: str) -> List[Tuple["ObservableObject", str]]:
    # Import here to avoid circular imports
    from .enumerable import MEMBERSHIP_KEY, is_enumerable

    if target is None:
        return []
    points = []
    if is_enumerable(target):
        if isinstance(target, ObservableObject):
            points.append((target, MEMBERSHIP_KEY))
        if key != MEMBERSHIP_KEY:
            for item in target:
                if isinstance(item, ObservableObject):
                    points.append((item, key))
    elif isinstance(target, ObservableObject) and key != MEMBERSHIP_KEY:
        points.append((target, key))
    return points


# ============================================================================
# SNAPSHOT
# ============================================================================


class ObjectSnapshot:
    """
    Immutable snapshot of an object's declared values at a point in time.
    """

    def __init__(self, obj: "ObservableObject", keys: Sequence[str]):
        self._object = obj
        self._keys = list(keys)
        self._snapshot_values: Dict[str, Any] = {}
        self._take_snapshot()

    def _take_snapshot(self) -> None:
        """Capture current values of all declared keys."""
        for key in self._keys:
            self._snapshot_values[key] = self._object.get(key)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        if name in self._snapshot_values:
            return self._snapshot_values[name]
        raise AttributeError(f"Snapshot has no value for '{name}'")

    def __repr__(self) -> str:
        if not self._snapshot_values:
            return "ObjectSnapshot()"
        fields = [f"{key}={self._snapshot_values[key]!r}" for key in self._keys]
        return f"ObjectSnapshot({', '.join(fields)})"


# ============================================================================
# OBSERVABLE OBJECT
# ============================================================================


class ObservableMeta(type):
    """
    Metaclass collecting declared attributes, computed properties and
    observer methods across the class hierarchy.
    """

    def __new__(mcs, name: str, bases: tuple, namespace: dict) -> Type:
        cls = super().__new__(mcs, name, bases, namespace)

        declared: Dict[str, attribute] = {}
        computed_props: Dict[str, computed] = {}
        observers: Dict[str, Tuple[str, ...]] = {}

        for klass in reversed(cls.__mro__):
            for attr_name, value in vars(klass).items():
                if isinstance(value, attribute):
                    computed_props.pop(attr_name, None)
                    declared[attr_name] = value
                elif isinstance(value, computed):
                    declared.pop(attr_name, None)
                    computed_props[attr_name] = value
                elif callable(value) and hasattr(value, "_observes"):
                    observers[attr_name] = value._observes
                elif attr_name in declared or attr_name in computed_props:
                    # Overridden by a plain class member
                    declared.pop(attr_name, None)
                    computed_props.pop(attr_name, None)

        cls._declared_attrs = declared
        cls._computed_props = computed_props
        cls._observer_methods = observers
        return cls


class ObservableObject(metaclass=ObservableMeta):
    """
    Base class for objects with observable, computable attributes.

    Example:
        ```python
        class Counter(ObservableObject):
            count = attribute(0)

            @computed("count")
            def doubled(self):
                return self.count * 2

            @observes("count")
            def count_did_change(self, change):
                print(f"count is now {change.new_value}")

        counter = Counter()
        counter.count = 2   # prints: count is now 2
        counter.doubled     # 4
        ```
    """

    _declared_attrs: Dict[str, attribute]
    _computed_props: Dict[str, computed]
    _observer_methods: Dict[str, Tuple[str, ...]]

    # Undeclared constructor keywords become plain attributes when True
    _accepts_undeclared = True

    is_destroyed = attribute(False)

    def __init__(self, **attrs: Any):
        self._store = ReactiveStore()
        self._chains: Dict[str, List[_ChainWatcher]] = {}
        self._store.on_any(self._drop_stale_chains)
        weakref.finalize(self, _release_chains, self._chains)

        if not self._accepts_undeclared:
            allowed = set(self._declared_attrs) | {
                k for k, p in self._computed_props.items() if p.fset is not None
            }
            unexpected = sorted(set(attrs) - allowed)
            if unexpected:
                raise TypeError(
                    f"{type(self).__name__}() got unexpected keyword arguments: "
                    f"{', '.join(unexpected)}"
                )

        for key, declaration in self._declared_attrs.items():
            self._store.source(key, declaration.initial_value())

        for key, prop in self._computed_props.items():
            self.define_property(
                key,
                functools.partial(prop.fget, self),
                setter=(
                    functools.partial(prop.fset, self)
                    if prop.fset is not None
                    else None
                ),
                depends_on=prop.deps,
                cacheable=prop.cacheable,
            )

        for method_name, keys in self._observer_methods.items():
            method = getattr(self, method_name)
            for key in keys:
                self.add_observer(key, method)

        for key, value in attrs.items():
            self.set(key, value)

    # ========================================================================
    # GET / SET
    # ========================================================================

    def get(self, key: str) -> Any:
        """Read `key`, falling back to `unknown_property` for unknown keys."""
        if key in self._store:
            return self._store[key]
        if getattr(type(self), key, _MISSING) is not _MISSING:
            return getattr(self, key)
        return self.unknown_property(key)

    def set(self, key: str, value: Any) -> Any:
        """Write `key`, falling back to `set_unknown_property` for unknown keys."""
        if key in self._store:
            self._store[key] = value
        elif getattr(type(self), key, _MISSING) is not _MISSING:
            raise AttributeError(
                f"'{key}' is not an observable property of {self!r}"
            )
        else:
            self.set_unknown_property(key, value)
        return value

    def get_path(self, path: str) -> Any:
        return get_path(self, path)

    def set_path(self, path: str, value: Any) -> Any:
        """Write the last key of a dotted path; no-op if an earlier step is None."""
        head, _, last = path.rpartition(".")
        target = self.get_path(head) if head else self
        if target is None:
            return value
        return set_property(target, last, value)

    def has_property(self, key: str) -> bool:
        return key in self._store

    def unknown_property(self, key: str) -> Any:
        """Called when reading a key the object does not hold."""
        return None

    def set_unknown_property(self, key: str, value: Any) -> Any:
        """Called when writing a key the object does not hold."""
        self._store[key] = value
        return value

    # ========================================================================
    # COMPUTED PROPERTIES
    # ========================================================================

    def define_property(
        self,
        key: str,
        getter: Callable[[], Any],
        setter: Optional[Callable[[Any], Any]] = None,
        depends_on: Sequence[str] = (),
        cacheable: bool = True,
    ) -> None:
        """
        Install a computed property on this instance.

        Args:
            key: Property name
            getter: Zero-argument function producing the value
            setter: Optional one-argument function handling writes; its
                return value becomes the cached value
            depends_on: Keys (or dotted paths) that invalidate the value
            cacheable: When False the getter runs on every read
        """
        local_deps: List[str] = []
        watchers: List[_ChainWatcher] = []
        for dep in depends_on:
            root, _, rest = dep.partition(".")
            if root not in local_deps:
                local_deps.append(root)
            if rest:
                watchers.append(_ChainWatcher(self, key, root, rest))

        for watcher in self._chains.pop(key, []):
            watcher.release()

        if watchers:
            self._chains[key] = watchers
            getter = _rebinding(getter, watchers)
            if setter is not None:
                setter = _rebinding(setter, watchers)

        self._store.computed(
            key, getter, local_deps, setter=setter, cacheable=cacheable
        )

    def notify_property_change(self, key: str) -> None:
        """Treat `key` as changed: drop its cached value and notify observers."""
        self._store.invalidate(key)

    def _drop_stale_chains(self, change: Change) -> None:
        # A stale value rewatches on its next read; an observer that already
        # re-read it left it clean
        watchers = self._chains.get(change.key)
        if watchers and change.is_invalidation and self._store.is_dirty(change.key):
            for watcher in watchers:
                watcher.release()

    # ========================================================================
    # OBSERVERS
    # ========================================================================

    def add_observer(
        self, key: str, callback: Callable[[Change], None]
    ) -> Callable[[], None]:
        """Call `callback(change)` whenever `key` changes. Returns an unsubscriber."""
        return self._store.on(key, callback)

    def remove_observer(self, key: str, callback: Callable[[Change], None]) -> None:
        observers = self._store._observers.get(key, [])
        if callback in observers:
            observers.remove(callback)

    def batch(self):
        """Defer change notifications until the block exits."""
        return self._store.batch()

    # ========================================================================
    # STATE
    # ========================================================================

    def to_dict(self) -> Dict[str, Any]:
        """Values of all declared plain attributes."""
        return {key: self.get(key) for key in self._declared_attrs}

    def load_state(self, state: Dict[str, Any]) -> None:
        """Write declared attributes from a dictionary; other keys are ignored."""
        with self.batch():
            for key, value in state.items():
                if key in self._declared_attrs:
                    self.set(key, value)

    def snapshot(self) -> ObjectSnapshot:
        return ObjectSnapshot(
            self, list(self._declared_attrs) + list(self._computed_props)
        )

    def destroy(self) -> "ObservableObject":
        self.set("is_destroyed", True)
        return self

    # ========================================================================
    # ATTRIBUTE SYNTAX
    # ========================================================================

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(
                f"'{type(self).__name__}' object has no attribute '{name}'"
            )
        return self.get(name)

    def __setattr__(self, name: str, value: Any) -> None:
        if name.startswith("_"):
            object.__setattr__(self, name, value)
            return
        member = getattr(type(self), name, _MISSING)
        if member is _MISSING or isinstance(member, (attribute, computed)):
            self.set(name, value)
        else:
            object.__setattr__(self, name, value)

    def __repr__(self) -> str:
        return f"<{type(self).__name__}:{id(self):#x}>"


def _rebinding(func: Callable, watchers: List[_ChainWatcher]) -> Callable:
    @functools.wraps(func)
    def wrapper(*args):
        result = func(*args)
        for watcher in watchers:
            watcher.rebind()
        return result

    return wrapper


__all__ = [
    "ObservableObject",
    "ObservableMeta",
    "ObjectSnapshot",
    "attribute",
    "computed",
    "observes",
    "get_property",
    "set_property",
    "get_path",
    "has_destroy",
]
