"""
contentproxy - Delegating Proxies for Observable Objects

Bind to a stable ObjectProxy once and swap the object it stands for as often
as needed. Reads and writes of undeclared keys are forwarded to the proxy's
content, cached, and refreshed whenever the content changes.
"""

__version__ = "0.1.0"

# Reactive key/value store backing every observable object
from .store import (
    BatchContext,
    Change,
    ChangeType,
    CircularDependencyError,
    ReactiveStore,
)

# Observable objects and their declarations
from .observable import (
    ObjectSnapshot,
    ObservableMeta,
    ObservableObject,
    attribute,
    computed,
    get_path,
    get_property,
    has_destroy,
    observes,
    set_property,
)

# Enumerable capability
from .enumerable import (
    MEMBERSHIP_KEY,
    Enumerable,
    ObservableList,
    is_enumerable,
)

# The proxy
from .proxy import EditabilityError, ObjectProxy, resolve_content

__all__ = [
    # Store
    "ReactiveStore",
    "Change",
    "ChangeType",
    "BatchContext",
    # Observable objects
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
    # Enumerables
    "MEMBERSHIP_KEY",
    "Enumerable",
    "ObservableList",
    "is_enumerable",
    # Proxy
    "ObjectProxy",
    "resolve_content",
    # Exceptions
    "CircularDependencyError",
    "EditabilityError",
]
