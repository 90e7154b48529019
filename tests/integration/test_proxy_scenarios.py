"""Integration tests: controllers bound to swappable content."""

from unittest.mock import Mock

import pytest

from contentproxy import (
    EditabilityError,
    ObjectProxy,
    ObservableList,
    ObservableObject,
    attribute,
    computed,
    observes,
)


class NameLabel(ObservableObject):
    """A tiny view that re-renders whenever the controller's name changes."""

    controller = attribute(None)

    def __init__(self, **attrs):
        self._renders = []
        super().__init__(**attrs)
        self.controller.add_observer("name", self._render)
        self._render(None)

    def _render(self, change):
        self._renders.append(self.controller.get("name"))

    @property
    def renders(self):
        return list(self._renders)


class ContactController(ObjectProxy):
    """Controller with a derived property of its own."""

    @computed("observable_content.first", "observable_content.last")
    def display_name(self):
        if not self.has_content:
            return "(no selection)"
        return f"{self.first} {self.last}"


@pytest.mark.integration
@pytest.mark.proxy
def test_scalar_content_swap_is_seen_synchronously():
    """Swapping content is visible on the very next read"""
    proxy = ObjectProxy(content={"name": "Ann"})
    assert proxy.get("name") == "Ann"

    proxy.set("content", {"name": "Bea"})

    assert proxy.get("name") == "Bea"


@pytest.mark.integration
@pytest.mark.proxy
def test_multiple_content_collapses_then_fans_out(make_item):
    """Agreeing elements collapse; one disagreement fans out in order"""
    items = ObservableList([make_item(status="ok") for _ in range(3)])
    proxy = ObjectProxy(content=items, allows_multiple_content=True)
    assert proxy.get("status") == "ok"

    items[2].set("status", "fail")

    assert proxy.get("status") == ["ok", "ok", "fail"]


@pytest.mark.integration
@pytest.mark.proxy
def test_non_editable_proxy_leaves_content_untouched(make_item):
    contact = make_item(name="Ann")
    proxy = ObjectProxy(content=contact, is_editable=False)

    with pytest.raises(EditabilityError):
        proxy.set("name", "X")

    assert contact.name == "Ann"


@pytest.mark.integration
@pytest.mark.proxy
def test_absent_content_reads_none_and_tolerates_writes():
    proxy = ObjectProxy(content=None)

    assert proxy.get("name") is None
    proxy.set("name", "X")
    assert proxy.content is None


@pytest.mark.integration
@pytest.mark.proxy
def test_destroy_runs_content_destroy_exactly_once(destroyable):
    proxy = ObjectProxy(content=destroyable)

    proxy.destroy()
    proxy.destroy()

    assert destroyable.destroy_calls == 1
    assert proxy.content is None
    assert proxy.has_content is False


@pytest.mark.integration
@pytest.mark.proxy
def test_bound_view_re_renders_on_every_content_swap():
    """A view bound once to the controller follows every content swap"""
    controller = ObjectProxy(content={"name": "Ann"})
    label = NameLabel(controller=controller)

    controller.content = {"name": "Bea"}
    controller.content = {"name": "Cy"}

    renders = label.renders
    assert renders[0] == "Ann"
    assert renders[-1] == "Cy"
    assert "Ann" not in renders[1:]


@pytest.mark.integration
@pytest.mark.proxy
def test_bound_view_re_renders_when_content_is_edited_through_proxy(make_item):
    contact = make_item(name="Ann")
    controller = ObjectProxy(content=contact)
    label = NameLabel(controller=controller)

    controller.name = "Bea"

    assert contact.name == "Bea"
    assert label.renders[-1] == "Bea"


@pytest.mark.integration
@pytest.mark.proxy
def test_selection_driven_controller(make_item):
    """A controller following a selection list as it grows and shrinks"""
    ann, bea = make_item(name="Ann"), make_item(name="Bea")
    selection = ObservableList()
    controller = ObjectProxy(content=selection)
    observer = Mock()
    controller.add_observer("has_content", observer)

    assert controller.has_content is False

    selection.append(ann)
    assert controller.has_content is True
    assert controller.name == "Ann"

    selection.append(bea)
    assert controller.has_content is False
    assert controller.name is None

    controller.allows_multiple_content = True
    assert controller.name == ["Ann", "Bea"]

    controller.name = "Cy"
    assert (ann.name, bea.name) == ("Cy", "Cy")
    assert controller.name == "Cy"

    selection.clear()
    assert controller.has_content is False
    assert observer.called


@pytest.mark.integration
@pytest.mark.proxy
def test_controller_subclass_with_derived_property(make_item):
    contact = make_item(first="Ann", last="Lee")
    controller = ContactController()
    assert controller.display_name == "(no selection)"

    controller.content = contact
    assert controller.display_name == "Ann Lee"

    contact.first = "Bea"
    assert controller.display_name == "Bea Lee"


@pytest.mark.integration
@pytest.mark.proxy
def test_observer_method_on_controller_subclass(make_item):
    """Subclasses can observe forwarded keys like any other key"""

    class AuditedController(ObjectProxy):
        def __init__(self, **attrs):
            self._log = []
            super().__init__(**attrs)

        @observes("name")
        def name_did_change(self, change):
            self._log.append(self.get("name"))

    contact = make_item(name="Ann")
    controller = AuditedController(content=contact)
    assert controller.name == "Ann"

    contact.name = "Bea"

    assert controller._log[-1] == "Bea"


@pytest.mark.integration
@pytest.mark.proxy
def test_two_controllers_share_content_without_interference(make_item):
    contact = make_item(name="Ann")
    editor = ObjectProxy(content=contact)
    viewer = ObjectProxy(content=contact, is_editable=False)
    assert viewer.name == "Ann"

    editor.name = "Bea"

    assert viewer.name == "Bea"
    assert editor.forwarded_keys == viewer.forwarded_keys == {"name"}
    with pytest.raises(EditabilityError):
        viewer.name = "Cy"


@pytest.mark.integration
@pytest.mark.proxy
def test_view_can_redirect_controller_while_rendering(make_item):
    """A view reacting to a forwarded key may swap the controller's content"""
    retired, successor = make_item(name="Ann", retired=True), make_item(name="Bea")
    controller = ObjectProxy(content=make_item(name="Cy"))
    label = NameLabel(controller=controller)

    def follow_successor(change):
        if controller.get("retired"):
            controller.content = successor

    controller.add_observer("name", follow_successor)

    controller.content = retired

    assert controller.content is successor
    assert controller.name == "Bea"
    assert label.renders[-1] == "Bea"
