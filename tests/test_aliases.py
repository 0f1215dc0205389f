# tests/test_aliases.py
import threading

import pytest

from pico_beans import AliasRegistry
from pico_beans.exceptions import AliasConflictError, CircularAliasError, UnknownAliasError


@pytest.fixture
def registry():
    return AliasRegistry()


def test_canonical_name_follows_chains(registry):
    registry.register_alias("real", "a")
    registry.register_alias("a", "b")
    registry.register_alias("b", "c")

    assert registry.canonical_name("c") == "real"
    assert registry.canonical_name("real") == "real"
    assert registry.canonical_name("unknown") == "unknown"


@pytest.mark.parametrize("name", ["real", "a", "b", "unknown"])
def test_canonical_name_is_idempotent(registry, name):
    registry.register_alias("real", "a")
    registry.register_alias("a", "b")
    once = registry.canonical_name(name)
    assert registry.canonical_name(once) == once


def test_direct_cycle_is_rejected_and_nothing_applied(registry):
    registry.register_alias("A", "B")
    with pytest.raises(CircularAliasError, match="circular reference"):
        registry.register_alias("B", "A")

    assert registry.aliases() == {"B": "A"}
    assert registry.canonical_name("B") == "A"
    assert not registry.is_alias("A")


def test_indirect_cycle_is_rejected(registry):
    registry.register_alias("x", "y")
    registry.register_alias("y", "z")
    with pytest.raises(CircularAliasError):
        registry.register_alias("z", "x")
    assert registry.canonical_name("z") == "x"


def test_alias_equal_to_name_removes_stale_mapping(registry):
    registry.register_alias("one", "svc")
    registry.register_alias("svc", "svc")
    assert not registry.is_alias("svc")


def test_re_registering_same_pair_is_noop_even_without_overriding():
    registry = AliasRegistry(allow_overriding=False)
    registry.register_alias("name", "alias")
    registry.register_alias("name", "alias")
    assert registry.aliases() == {"alias": "name"}


def test_overriding_disabled_raises_conflict():
    registry = AliasRegistry(allow_overriding=False)
    registry.register_alias("first", "alias")
    with pytest.raises(AliasConflictError) as ei:
        registry.register_alias("second", "alias")
    assert ei.value.registered_name == "first"
    assert registry.canonical_name("alias") == "first"


def test_overriding_enabled_repoints_alias(registry):
    registry.register_alias("first", "alias")
    registry.register_alias("second", "alias")
    assert registry.canonical_name("alias") == "second"


def test_empty_arguments_rejected(registry):
    with pytest.raises(ValueError):
        registry.register_alias("", "alias")
    with pytest.raises(ValueError):
        registry.register_alias("name", "")


def test_has_alias_is_transitive(registry):
    registry.register_alias("target", "mid")
    registry.register_alias("mid", "outer")
    assert registry.has_alias("target", "mid")
    assert registry.has_alias("target", "outer")
    assert not registry.has_alias("mid", "target")


def test_get_aliases_reverse_lookup(registry):
    registry.register_alias("svc", "s1")
    registry.register_alias("svc", "s2")
    registry.register_alias("s1", "s1x")
    assert sorted(registry.get_aliases("svc")) == ["s1", "s1x", "s2"]
    assert registry.get_aliases("s1") == ["s1x"]
    assert registry.get_aliases("nothing") == []


def test_remove_alias(registry):
    registry.register_alias("svc", "s")
    registry.remove_alias("s")
    assert not registry.is_alias("s")
    with pytest.raises(UnknownAliasError, match="No alias 's'"):
        registry.remove_alias("s")


# --- Bulk rewrite ---

def test_resolve_aliases_rewrites_keys_and_targets(registry):
    registry.register_alias("${name}", "${alias}")
    registry.register_alias("plain", "other")

    values = {"${name}": "svc", "${alias}": "svc-alias"}
    registry.resolve_aliases(lambda v: values.get(v, v))

    assert registry.aliases() == {"svc-alias": "svc", "other": "plain"}


def test_resolve_aliases_drops_collapsed_entries(registry):
    registry.register_alias("svc", "${x}")
    registry.resolve_aliases(lambda v: "svc" if v == "${x}" else v)
    assert registry.aliases() == {}


def test_resolve_aliases_drops_none(registry):
    registry.register_alias("svc", "gone")
    registry.resolve_aliases(lambda v: None if v == "gone" else v)
    assert registry.aliases() == {}


def test_resolve_aliases_conflict(registry):
    registry.register_alias("a", "alias1")
    registry.register_alias("b", "${alias}")
    with pytest.raises(AliasConflictError):
        registry.resolve_aliases(lambda v: "alias1" if v == "${alias}" else v)
    assert registry.aliases() == {"alias1": "a", "${alias}": "b"}


def test_resolve_aliases_rejects_retargeting_into_a_cycle(registry):
    registry.register_alias("p", "a")
    registry.register_alias("a", "c")

    with pytest.raises(CircularAliasError):
        registry.resolve_aliases(lambda v: "c" if v == "p" else v)

    assert registry.aliases() == {"a": "p", "c": "a"}
    assert registry.canonical_name("a") == "p"
    assert registry.canonical_name("c") == "p"


def test_resolve_aliases_applies_nothing_when_a_later_entry_fails(registry):
    registry.register_alias("${first}", "one")
    registry.register_alias("x", "two")
    registry.register_alias("y", "${clash}")

    values = {"${first}": "svc", "${clash}": "two"}
    with pytest.raises(AliasConflictError):
        registry.resolve_aliases(lambda v: values.get(v, v))

    assert registry.aliases() == {"one": "${first}", "two": "x", "${clash}": "y"}


def test_resolve_aliases_requires_resolver(registry):
    with pytest.raises(ValueError):
        registry.resolve_aliases(None)


def test_concurrent_registration_and_lookup(registry):
    errors = []

    def writer(i):
        try:
            for j in range(50):
                registry.register_alias(f"svc{i}", f"alias{i}_{j}")
        except Exception as e:
            errors.append(e)

    def reader():
        try:
            for _ in range(200):
                registry.canonical_name("alias0_10")
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=writer, args=(i,)) for i in range(4)] + [threading.Thread(target=reader)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert registry.canonical_name("alias3_49") == "svc3"
    assert len(registry.get_aliases("svc2")) == 50
