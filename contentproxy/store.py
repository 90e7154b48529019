"""
Reactive Store - Cached Computed Values over an Explicit Dependency Graph

Each observable object owns one ReactiveStore. The store holds two kinds of
keys:

- Source values: plain values written with `set()`.
- Computed values: produced by a getter from explicit dependencies and cached
  until one of those dependencies changes.

Invalidation is lazy. Writing a source marks every transitive dependent dirty
and emits a change event for each of them, but nothing is recomputed until it
is read again.

Example:
    store = ReactiveStore()
    store['first'] = 'Ann'
    store['last'] = 'Lee'
    store.computed('full', lambda: f"{store['first']} {store['last']}",
                   deps=['first', 'last'])

    store.on('full', lambda change: print(change))
    store['first'] = 'Bea'  # prints Change(full: invalidated)
    store['full']           # 'Bea Lee'
"""

import logging
import threading
import time
from collections import defaultdict, deque
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Set

import numpy as np


# ============================================================================
# EXCEPTIONS
# ============================================================================


class CircularDependencyError(Exception):
    """Raised when a circular dependency is detected."""

    pass


# ============================================================================
# VALUE COMPARISON
# ============================================================================


_SCALAR_TYPES = (bool, int, float, complex, str, bytes, type(None))


def values_equal(a: Any, b: Any) -> bool:
    """Equality that tolerates numpy arrays and objects with odd __eq__."""
    try:
        if isinstance(a, np.ndarray) or isinstance(b, np.ndarray):
            if type(a) != type(b):
                return False
            return np.array_equal(a, b)
        return bool(a == b)
    except (ValueError, TypeError):
        return False


def same_value(a: Any, b: Any) -> bool:
    """
    Identity test used to skip no-op source writes.

    Objects compare by identity; immutable scalars of the same type compare by
    value. Two equal but distinct dicts are different values.
    """
    if a is b:
        return True
    if type(a) is type(b) and isinstance(a, _SCALAR_TYPES):
        return values_equal(a, b)
    return False


# ============================================================================
# CHANGE EVENTS
# ============================================================================


class ChangeType(Enum):
    """Type of change that occurred."""

    SOURCE_UPDATE = "source"
    COMPUTED_UPDATE = "computed"
    INVALIDATED = "invalidated"
    DELETED = "deleted"


@dataclass(frozen=True)
class Change:
    """Immutable change event."""

    key: str
    change_type: ChangeType
    old_value: Any
    new_value: Any
    timestamp: float

    def is_identity(self) -> bool:
        if self.change_type == ChangeType.INVALIDATED:
            return False
        return same_value(self.old_value, self.new_value)

    def compose(self, other: "Change") -> "Change":
        if self.key != other.key:
            raise ValueError("Cannot compose changes for different keys")

        return Change(
            key=self.key,
            change_type=other.change_type,
            old_value=self.old_value,
            new_value=other.new_value,
            timestamp=max(self.timestamp, other.timestamp),
        )

    @property
    def is_invalidation(self) -> bool:
        return self.change_type == ChangeType.INVALIDATED

    @property
    def is_deletion(self) -> bool:
        return self.change_type == ChangeType.DELETED

    def __repr__(self) -> str:
        if self.is_invalidation:
            return f"Change({self.key}: invalidated)"
        elif self.is_deletion:
            return f"Change({self.key}: deleted)"
        else:
            return f"Change({self.key}: {self.old_value!r} → {self.new_value!r})"


# ============================================================================
# GRAPH TOPOLOGY
# ============================================================================


class _DependencyGraph:
    """Edges from each key to the computed keys that read it."""

    def __init__(self):
        self._dependents: Dict[str, Set[str]] = defaultdict(set)

    def link(self, dep: str, key: str) -> None:
        self._dependents[dep].add(key)

    def unlink(self, dep: str, key: str) -> None:
        self._dependents[dep].discard(key)

    def dependents_of(self, key: str) -> Set[str]:
        return set(self._dependents.get(key, ()))

    def affected_by(self, key: str) -> List[str]:
        """
        Every transitive dependent of `key`, each listed after all of its own
        dependencies (reverse DFS post-order).
        """
        seen: Set[str] = set()
        order: List[str] = []

        def visit(node: str) -> None:
            for dependent in sorted(self._dependents.get(node, ())):
                if dependent not in seen:
                    seen.add(dependent)
                    visit(dependent)
                    order.append(dependent)

        visit(key)
        order.reverse()
        return order

    def edge_count(self) -> int:
        return sum(len(keys) for keys in self._dependents.values())

    def clear(self) -> None:
        self._dependents.clear()


# ============================================================================
# COMPUTED VALUE
# ============================================================================


class _ComputedValue:
    """Computed value with explicit dependencies and an optional setter."""

    def __init__(
        self,
        key: str,
        getter: Callable[[], Any],
        deps: List[str],
        store: "ReactiveStore",
        setter: Optional[Callable[[Any], Any]] = None,
        cacheable: bool = True,
    ):
        self.key = key
        self._store = store
        self._getter = getter
        self._setter = setter
        self.cacheable = cacheable
        self.cached_value: Any = None
        self.is_dirty = True
        self._deps = list(deps)

        for dep in self._deps:
            store._graph.link(dep, key)

    def get(self) -> Any:
        """Return the cached value, running the getter first if it is stale."""
        if self.cacheable and not self.is_dirty:
            return self.cached_value

        stack = self._store._ctx.__dict__.setdefault("computing", [])
        if self.key in stack:
            raise CircularDependencyError(
                f"Circular dependency detected involving '{self.key}'. "
                f"Chain: {' → '.join(stack + [self.key])}"
            )

        stack.append(self.key)
        try:
            logging.debug(f"Recomputing '{self.key}'")
            value = self._getter()
        finally:
            stack.pop()

        self._remember(value)
        return value

    def set(self, value: Any) -> Any:
        """Write through the setter and cache whatever it returns."""
        if self._setter is None:
            raise ValueError(f"Cannot update computed value '{self.key}'")

        result = self._setter(value)
        self._remember(result)
        return result

    def _remember(self, value: Any) -> None:
        if self.cacheable:
            self.cached_value = value
            self.is_dirty = False

    def detach(self) -> None:
        for dep in self._deps:
            self._store._graph.unlink(dep, self.key)
        self._deps = []


# ============================================================================
# MAIN STORE
# ============================================================================


class ReactiveStore:
    """
    Key/value store with lazily recomputed, cached computed values.

    Writes propagate synchronously: by the time `set()` returns, every
    dependent has been marked dirty and every observer has been called.
    """

    _MAX_HISTORY = 1000

    def __init__(self):
        self._values: Dict[str, Any] = {}
        self._computed: Dict[str, _ComputedValue] = {}
        self._graph = _DependencyGraph()

        self._observers: Dict[str, List[Callable[[Change], None]]] = defaultdict(
            list
        )
        self._global_observers: List[Callable[[Change], None]] = []

        self._lock = threading.RLock()
        self._ctx = threading.local()

        self._batch_depth = 0
        self._pending_changes: List[Change] = []
        self._history: deque = deque(maxlen=self._MAX_HISTORY)

    # ========================================================================
    # CORE API
    # ========================================================================

    def __getitem__(self, key: str) -> Any:
        with self._lock:
            return self._get_internal(key)

    def __setitem__(self, key: str, value: Any) -> None:
        with self._lock:
            self._set_internal(key, value)

    def __delitem__(self, key: str) -> None:
        with self._lock:
            self._delete_internal(key)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._values or key in self._computed

    def get(self, key: str, default: Any = None) -> Any:
        try:
            return self[key]
        except KeyError:
            return default

    def set(self, key: str, value: Any) -> None:
        self[key] = value

    def delete(self, key: str) -> None:
        del self[key]

    def source(self, key: str, value: Any) -> None:
        """Declare a source value without treating it as a change."""
        with self._lock:
            if key in self._computed:
                raise ValueError(f"'{key}' is already a computed value")
            self._values[key] = value

    def is_dirty(self, key: str) -> bool:
        """True for a computed key whose cached value is stale."""
        computed = self._computed.get(key)
        return computed is not None and computed.is_dirty

    # ========================================================================
    # COMPUTED VALUES
    # ========================================================================

    def computed(
        self,
        key: str,
        getter: Callable[[], Any],
        deps: Optional[List[str]] = None,
        setter: Optional[Callable[[Any], Any]] = None,
        cacheable: bool = True,
    ) -> None:
        """
        Create a computed value.

        Args:
            key: Name for the computed value
            getter: Zero-argument function producing the value
            deps: Keys whose changes invalidate the cached value
            setter: Optional function called on write; its return value
                becomes the cached value
            cacheable: When False the getter runs on every read

        Examples:
            store.computed('total', lambda: store['price'] * store['qty'],
                           deps=['price', 'qty'])
        """
        deps = list(deps or [])
        with self._lock:
            for dep in deps:
                if dep not in self._values and dep not in self._computed:
                    raise KeyError(f"Dependency '{dep}' does not exist")

            if key in self._values:
                raise ValueError(f"'{key}' is already a source value")

            previous = self._computed.get(key)
            if previous is not None:
                previous.detach()

            self._computed[key] = _ComputedValue(
                key, getter, deps, self, setter=setter, cacheable=cacheable
            )

    def invalidate(self, key: str) -> None:
        """
        Force a change for `key` whether or not its value differs.

        Computed values are marked dirty, dependents are invalidated and
        observers are notified. Keys the store does not hold still notify
        their observers.
        """
        with self._lock:
            logging.debug(f"Forcing change for '{key}'")
            computed = self._computed.get(key)
            if computed is not None:
                old_value = computed.cached_value
                computed.is_dirty = True
            else:
                old_value = self._values.get(key)

            self._propagate(
                Change(key, ChangeType.INVALIDATED, old_value, None, time.time())
            )

    # ========================================================================
    # SUBSCRIPTION
    # ========================================================================

    def on(self, key: str, callback: Callable[[Change], None]) -> Callable[[], None]:
        """Subscribe to changes on a key."""
        with self._lock:
            self._observers[key].append(callback)

            def unsubscribe():
                with self._lock:
                    if callback in self._observers[key]:
                        self._observers[key].remove(callback)

            return unsubscribe

    def on_any(self, callback: Callable[[Change], None]) -> Callable[[], None]:
        """Subscribe to all changes in the store."""
        with self._lock:
            self._global_observers.append(callback)

            def unsubscribe():
                with self._lock:
                    if callback in self._global_observers:
                        self._global_observers.remove(callback)

            return unsubscribe

    # ========================================================================
    # BATCHING
    # ========================================================================

    def batch(self) -> "BatchContext":
        """Defer notifications until the outermost batch exits."""
        return BatchContext(self)

    # ========================================================================
    # INTERNAL IMPLEMENTATION
    # ========================================================================

    def _get_internal(self, key: str) -> Any:
        if key in self._computed:
            return self._computed[key].get()
        if key in self._values:
            return self._values[key]
        raise KeyError(f"Key not found: {key}")

    def _set_internal(self, key: str, value: Any) -> None:
        if key in self._notifying():
            raise CircularDependencyError(
                f"Cannot modify '{key}' from within its own notification"
            )

        computed = self._computed.get(key)
        if computed is not None:
            old_value = computed.cached_value
            new_value = computed.set(value)
            change_type = ChangeType.COMPUTED_UPDATE
        else:
            old_value = self._values.get(key)
            if key in self._values and same_value(old_value, value):
                return
            self._values[key] = value
            new_value = value
            change_type = ChangeType.SOURCE_UPDATE

        self._propagate(Change(key, change_type, old_value, new_value, time.time()))

    def _delete_internal(self, key: str) -> None:
        if key not in self:
            raise KeyError(f"Key not found: {key}")
        if self._graph.dependents_of(key):
            raise ValueError(f"Cannot delete '{key}': other values depend on it")

        computed = self._computed.pop(key, None)
        if computed is not None:
            computed.detach()
            old_value = computed.cached_value
        else:
            old_value = self._values.pop(key)

        self._propagate(Change(key, ChangeType.DELETED, old_value, None, time.time()))

    def _propagate(self, change: Change) -> None:
        """Invalidate dependents now; notify now or at the end of the batch."""
        self._history.append(change)

        changes = [change]
        for key in self._graph.affected_by(change.key):
            computed = self._computed.get(key)
            if computed is None:
                continue
            computed.is_dirty = True
            changes.append(
                Change(
                    key,
                    ChangeType.INVALIDATED,
                    computed.cached_value,
                    None,
                    change.timestamp,
                )
            )

        if self._batch_depth > 0:
            self._pending_changes.extend(changes)
            return

        for c in changes:
            self._notify(c)

    def _notifying(self) -> List[str]:
        # One entry per active notification; nested notifications of the
        # same key stack up
        return self._ctx.__dict__.setdefault("notifying", [])

    def _notify(self, change: Change) -> None:
        notifying = self._notifying()
        notifying.append(change.key)
        try:
            for callback in list(self._observers.get(change.key, [])):
                callback(change)
            for callback in list(self._global_observers):
                callback(change)
        finally:
            notifying.remove(change.key)

    def _merge_changes(self, changes: List[Change]) -> List[Change]:
        if not changes:
            return []

        by_key: Dict[str, List[Change]] = {}
        for change in changes:
            by_key.setdefault(change.key, []).append(change)

        merged = []
        for key_changes in by_key.values():
            result = key_changes[0]
            for c in key_changes[1:]:
                result = result.compose(c)
            merged.append(result)

        return merged

    # ========================================================================
    # UTILITY METHODS
    # ========================================================================

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._values.keys()) + list(self._computed.keys())

    def snapshot(self) -> Dict[str, Any]:
        """Current value of every key, computing dirty values on the way."""
        with self._lock:
            result = dict(self._values)
            for key, computed in self._computed.items():
                result[key] = computed.get()
            return result

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "total_keys": len(self._values) + len(self._computed),
                "source_keys": len(self._values),
                "computed_keys": len(self._computed),
                "dirty_keys": sum(1 for c in self._computed.values() if c.is_dirty),
                "observers": sum(len(obs) for obs in self._observers.values()),
                "global_observers": len(self._global_observers),
                "history_size": len(self._history),
                "total_dependencies": self._graph.edge_count(),
            }

    def history(self, limit: int = 100) -> List[Change]:
        with self._lock:
            return list(self._history)[-limit:]

    def close(self) -> None:
        """Drop all observers, values and dependency edges."""
        with self._lock:
            self._observers.clear()
            self._global_observers.clear()
            self._history.clear()
            self._computed.clear()
            self._values.clear()
            self._graph.clear()

    def __repr__(self) -> str:
        return f"ReactiveStore(keys={len(self.keys())})"


# ============================================================================
# BATCH CONTEXT
# ============================================================================


class BatchContext:
    def __init__(self, store: ReactiveStore):
        self._store = store

    def __enter__(self):
        self._store._batch_depth += 1
        if self._store._batch_depth == 1:
            self._store._pending_changes = []
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self._store._batch_depth -= 1

        if self._store._batch_depth == 0:
            pending = self._store._pending_changes
            self._store._pending_changes = []
            for change in self._store._merge_changes(pending):
                self._store._notify(change)

        return False


__all__ = [
    "ReactiveStore",
    "Change",
    "ChangeType",
    "BatchContext",
    "CircularDependencyError",
    "same_value",
    "values_equal",
]
