# tests/test_merge.py
import pytest

from pico_beans import ComponentContainer, ComponentDescriptor, DescriptorHolder
from pico_beans.exceptions import AbstractComponentError, ComponentNotFoundError, UnresolvableParentError


class Widget:
    def __init__(self, size=0, color="red"):
        self.size = size
        self.color = color


def test_child_overrides_only_what_it_sets(container):
    container.register_descriptor(
        "base", ComponentDescriptor(component_type=Widget, properties={"x": 1, "y": 2}, abstract=True)
    )
    container.register_descriptor("child", ComponentDescriptor(parent_name="base", properties={"x": 10}))

    merged = container.get_merged_descriptor("child")
    assert merged.properties == {"x": 10, "y": 2}
    assert merged.component_type is Widget
    assert merged.abstract is False
    assert merged.parent_name == "base"


def test_merge_inherits_scope_and_defaults_to_singleton(container):
    container.register_descriptor("base", ComponentDescriptor(component_type=Widget, scope="prototype"))
    container.register_descriptor("child", ComponentDescriptor(parent_name="base"))
    container.register_descriptor("plain", ComponentDescriptor(component_type=Widget))

    assert container.get_merged_descriptor("child").scope == "prototype"
    assert container.get_merged_descriptor("plain").scope == "singleton"


def test_child_type_name_replaces_parent_type(container):
    container.register_descriptor("base", ComponentDescriptor(component_type=Widget))
    container.register_descriptor("child", ComponentDescriptor(parent_name="base", type_name="collections.OrderedDict"))

    merged = container.get_merged_descriptor("child")
    assert merged.component_type is None
    assert merged.type_name == "collections.OrderedDict"


def test_multi_level_chain(container):
    container.register_descriptor("a", ComponentDescriptor(component_type=Widget, constructor_args=(1,), lazy_init=True))
    container.register_descriptor("b", ComponentDescriptor(parent_name="a", constructor_args=(2, "blue")))
    container.register_descriptor("c", ComponentDescriptor(parent_name="b", lazy_init=False))

    merged = container.get_merged_descriptor("c")
    assert merged.constructor_args == (2, "blue")
    assert merged.lazy_init is False
    w = container.get("c")
    assert (w.size, w.color) == (2, "blue")


def test_merge_is_cached_until_invalidated(container):
    d = ComponentDescriptor(component_type=Widget)
    container.register_descriptor("w", d)

    first = container.get_merged_descriptor("w")
    assert container.get_merged_descriptor("w") is first

    container.invalidate("w")
    assert first.stale is True
    assert container.get_merged_descriptor("w") is not first


def test_merge_not_cached_when_metadata_caching_disabled(container):
    container.cache_metadata = False
    container.register_descriptor("w", ComponentDescriptor(component_type=Widget))
    assert container.get_merged_descriptor("w") is not container.get_merged_descriptor("w")


def test_clear_metadata_cache_keeps_created_entries(container):
    container.register_descriptor("created", ComponentDescriptor(component_type=Widget))
    container.register_descriptor("idle", ComponentDescriptor(component_type=Widget))
    container.get("created")

    created = container.get_merged_descriptor("created")
    idle = container.get_merged_descriptor("idle")
    container.clear_metadata_cache()

    assert container.get_merged_descriptor("created") is created
    assert container.get_merged_descriptor("idle") is not idle


def test_first_creation_remerges_changed_metadata(container):
    d = ComponentDescriptor(component_type=Widget, constructor_args=(1,))
    container.register_descriptor("w", d)
    container.get_merged_descriptor("w")

    d.constructor_args = (42,)
    assert container.get("w").size == 42


def test_missing_parent_is_unresolvable(container):
    container.register_descriptor("child", ComponentDescriptor(parent_name="nope"))
    with pytest.raises(UnresolvableParentError) as ei:
        container.get_merged_descriptor("child")
    assert ei.value.parent_name == "nope"
    assert isinstance(ei.value.cause, ComponentNotFoundError)


def test_parent_loop_is_unresolvable(container):
    container.register_descriptor("a", ComponentDescriptor(parent_name="b"))
    container.register_descriptor("b", ComponentDescriptor(parent_name="a"))
    with pytest.raises(UnresolvableParentError):
        container.get_merged_descriptor("a")


def test_self_named_parent_resolves_from_parent_container():
    parent = ComponentContainer()
    parent.register_descriptor("svc", ComponentDescriptor(component_type=Widget, properties={"color": "green"}))
    child = ComponentContainer(parent=parent)
    child.register_descriptor("svc", ComponentDescriptor(parent_name="svc", properties={"size": 3}))

    w = child.get("svc")
    assert (w.size, w.color) == (3, "green")
    assert w is not parent.get("svc")


def test_self_named_parent_without_parent_container(container):
    container.register_descriptor("svc", ComponentDescriptor(parent_name="svc"))
    with pytest.raises(UnresolvableParentError, match="cannot be resolved without a parent container"):
        container.get_merged_descriptor("svc")


def test_parent_found_through_alias(container):
    container.register_descriptor("base", ComponentDescriptor(component_type=Widget, properties={"size": 5}))
    container.register_alias("base", "template")
    container.register_descriptor("child", ComponentDescriptor(parent_name="template"))
    assert container.get("child").size == 5


def test_abstract_descriptor_cannot_be_resolved(container):
    container.register_descriptor("base", ComponentDescriptor(component_type=Widget, abstract=True))
    with pytest.raises(AbstractComponentError, match="abstract"):
        container.get("base")


def test_inner_descriptor_inherits_owner_scope(container):
    owner = container.merge_descriptor("owner", ComponentDescriptor(component_type=Widget, scope="prototype"))
    inner = container.merge_descriptor("inner", ComponentDescriptor(component_type=Widget), owner)
    assert inner.scope == "prototype"
    assert "inner" not in container._merged


def test_descriptor_holder_parent_alias_is_registered():
    from pico_beans import init

    c = init([DescriptorHolder("w", ComponentDescriptor(component_type=Widget), aliases=("gadget",))], eager=False)
    assert c.get("gadget") is c.get("w")
