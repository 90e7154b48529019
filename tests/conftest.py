"""
Shared pytest fixtures and configuration for contentproxy tests.
"""

import pytest

from contentproxy import ObjectProxy, ObservableObject
from contentproxy.store import ReactiveStore


@pytest.fixture
def store():
    """Provide a fresh ReactiveStore instance for tests that need it."""
    return ReactiveStore()


@pytest.fixture
def proxy():
    """Provide an ObjectProxy with no content."""
    return ObjectProxy()


@pytest.fixture
def make_item():
    """Factory for observable elements with arbitrary attributes."""

    def factory(**attrs):
        return ObservableObject(**attrs)

    return factory


class Destroyable:
    """Plain content object counting destroy() calls."""

    def __init__(self, name="Ann"):
        self.name = name
        self.destroy_calls = 0

    def destroy(self):
        self.destroy_calls += 1


@pytest.fixture
def destroyable():
    return Destroyable()
