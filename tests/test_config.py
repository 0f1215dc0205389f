# tests/test_config.py
import json

import pytest

import pico_beans
from pico_beans import (
    ComponentContainer,
    ComponentDescriptor,
    ContainerConfig,
    DictSource,
    EnvSource,
    FlatDictSource,
    JsonTreeSource,
    PlaceholderResolver,
    YamlTreeSource,
    configuration,
    tree_source_for,
)
from pico_beans.exceptions import AliasConflictError, ComponentTypeResolutionError, ConfigurationError


def test_defaults():
    cfg = configuration()
    assert cfg == ContainerConfig()
    assert cfg.allow_alias_overriding is True
    assert cfg.cache_metadata is True
    assert cfg.creation_lock_poll_interval == 0.05


def test_tree_source_section_is_coerced():
    cfg = configuration(DictSource({"container": {"cache_metadata": "false", "creation_lock_poll_interval": "0.2"}}))
    assert cfg.cache_metadata is False
    assert cfg.creation_lock_poll_interval == 0.2


def test_precedence_tree_then_flat_then_overrides(monkeypatch):
    monkeypatch.setenv("PICO_BEANS_CACHE_METADATA", "no")
    monkeypatch.setenv("PICO_BEANS_ALLOW_ALIAS_OVERRIDING", "off")
    cfg = configuration(
        DictSource({"container": {"cache_metadata": True, "allow_alias_overriding": True}}),
        EnvSource(),
        overrides={"allow_alias_overriding": "yes"},
    )
    assert cfg.cache_metadata is False
    assert cfg.allow_alias_overriding is True


def test_first_flat_source_wins():
    cfg = configuration(
        FlatDictSource({"CACHE_METADATA": "false"}),
        FlatDictSource({"CACHE_METADATA": "true"}),
    )
    assert cfg.cache_metadata is False


def test_tree_sources_are_deep_merged(tmp_path):
    f = tmp_path / "cfg.json"
    f.write_text(json.dumps({"container": {"cache_metadata": False}}), encoding="utf-8")
    cfg = configuration(
        DictSource({"container": {"allow_alias_overriding": False, "cache_metadata": True}}),
        JsonTreeSource(str(f)),
    )
    assert cfg.allow_alias_overriding is False
    assert cfg.cache_metadata is False


def test_yaml_source(tmp_path):
    pytest.importorskip("yaml")
    f = tmp_path / "cfg.yaml"
    f.write_text("container:\n  creation_lock_poll_interval: 0.5\n", encoding="utf-8")
    assert configuration(YamlTreeSource(str(f))).creation_lock_poll_interval == 0.5


def test_unreadable_json_source(tmp_path):
    with pytest.raises(ConfigurationError, match="Failed to load JSON config"):
        configuration(JsonTreeSource(str(tmp_path / "missing.json")))


@pytest.mark.parametrize(
    "kwargs, match",
    [
        ({"overrides": {"nope": 1}}, "Unknown override keys"),
        ({"overrides": {"cache_metadata": "maybe"}}, "Invalid value for 'cache_metadata'"),
    ],
)
def test_invalid_values(kwargs, match):
    with pytest.raises(ConfigurationError, match=match):
        configuration(**kwargs)


def test_unknown_keys_and_sources_rejected():
    with pytest.raises(ConfigurationError, match="Unknown keys"):
        configuration(DictSource({"container": {"mystery": 1}}))
    with pytest.raises(ConfigurationError, match="Unknown configuration source type"):
        configuration(object())
    with pytest.raises(ConfigurationError, match="must be a mapping"):
        configuration(DictSource({"container": [1, 2]}))


def test_config_drives_container():
    c = ComponentContainer(config=configuration(overrides={"allow_alias_overriding": False, "cache_metadata": False}))
    c.register_alias("a", "x")
    with pytest.raises(AliasConflictError):
        c.register_alias("b", "x")
    assert c.cache_metadata is False


# --- Placeholders and value resolvers ---

def test_placeholder_resolver(monkeypatch):
    monkeypatch.setenv("PB_SUFFIX", "prod")
    resolver = PlaceholderResolver({"db": {"name": "main"}})
    assert resolver("svc-${ENV:PB_SUFFIX}") == "svc-prod"
    assert resolver("${ref:db.name}-db") == "main-db"
    assert resolver(None) is None


def test_placeholder_resolver_errors(monkeypatch):
    monkeypatch.delenv("PB_MISSING", raising=False)
    resolver = PlaceholderResolver({"db": {"opts": {"a": 1}}})
    with pytest.raises(ConfigurationError, match="Missing ENV var"):
        resolver("${ENV:PB_MISSING}")
    with pytest.raises(ConfigurationError, match="Invalid ref path"):
        resolver("${ref:db.nothing}")
    with pytest.raises(ConfigurationError, match="non-scalar"):
        resolver("${ref:db.opts}")


def test_value_resolvers_apply_to_type_names_and_aliases(container):
    container.add_value_resolver(PlaceholderResolver({"impl": {"module": "collections", "alias": "od"}}))
    container.add_value_resolver(lambda v: v.strip())
    assert container.has_value_resolvers()

    container.register_descriptor("ordered", ComponentDescriptor(type_name=" ${ref:impl.module}.OrderedDict "))
    container.register_alias("ordered", "${ref:impl.alias}")
    container.resolve_aliases()

    from collections import OrderedDict

    assert isinstance(container.get("od"), OrderedDict)


def test_resolve_embedded_value_short_circuits_on_none(container):
    container.add_value_resolver(lambda v: None)
    container.add_value_resolver(lambda v: v.upper())
    assert container.resolve_embedded_value("x") is None


def test_unresolvable_type_name(container):
    container.register_descriptor("bad", ComponentDescriptor(type_name="no_such_module_xyz.Thing"))
    with pytest.raises(ComponentTypeResolutionError, match="no_such_module_xyz"):
        container.get("bad")
    container.register_descriptor("notclass", ComponentDescriptor(type_name="os.path:join"))
    with pytest.raises(ComponentTypeResolutionError, match="is not a class"):
        container.get("notclass")


def test_unreadable_json_source_names_the_file(tmp_path):
    missing = tmp_path / "missing.json"
    with pytest.raises(ConfigurationError, match="missing.json"):
        JsonTreeSource(str(missing)).get_tree()


def test_file_source_must_hold_a_mapping(tmp_path):
    f = tmp_path / "list.json"
    f.write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(ConfigurationError, match="must hold a mapping at the top level"):
        configuration(JsonTreeSource(str(f)))


def test_empty_yaml_file_is_an_empty_tree(tmp_path):
    pytest.importorskip("yaml")
    f = tmp_path / "empty.yaml"
    f.write_text("", encoding="utf-8")
    assert configuration(YamlTreeSource(str(f))) == ContainerConfig()


def test_section_error_names_the_source(tmp_path):
    f = tmp_path / "bad.json"
    f.write_text(json.dumps({"container": "off"}), encoding="utf-8")
    with pytest.raises(ConfigurationError, match=r"JSON config '.*bad\.json' must be a mapping, got str"):
        configuration(JsonTreeSource(str(f)))


def test_missing_section_reads_defaults():
    assert DictSource({"other": {"x": 1}}).section("container") == {}
    assert configuration(DictSource({"other": {"x": 1}})) == ContainerConfig()


def test_dict_source_requires_mapping():
    with pytest.raises(ConfigurationError, match="DictSource needs a mapping"):
        DictSource([("container", {})])


@pytest.mark.parametrize(
    "filename, source_type",
    [("app.json", JsonTreeSource), ("app.yaml", YamlTreeSource), ("APP.YML", YamlTreeSource)],
)
def test_tree_source_for_picks_by_extension(filename, source_type):
    src = tree_source_for(filename)
    assert type(src) is source_type
    assert src.path == filename


def test_tree_source_for_unknown_extension():
    with pytest.raises(ConfigurationError, match="No configuration source"):
        tree_source_for("app.toml")


def test_version_is_exposed():
    assert isinstance(pico_beans.__version__, str)
    assert pico_beans.__version__ != "0.0.0"
