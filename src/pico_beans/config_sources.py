"""Tree-shaped configuration sources for container settings.

A tree source yields a nested mapping; the container only reads one
section of it (``container`` by default), which :meth:`TreeSource.section`
extracts and validates. File-backed sources share a single loader, so a
missing file, a parse error or a non-mapping document all surface as
:class:`ConfigurationError` naming the file.
"""

import json
import os
from typing import Any, Callable, Mapping, TextIO

from .exceptions import ConfigurationError


class TreeSource:
    """Base class for nested configuration sources."""

    def get_tree(self) -> Mapping[str, Any]:
        raise NotImplementedError

    def describe(self) -> str:
        return type(self).__name__

    def section(self, name: str) -> Mapping[str, Any]:
        """Return the *name* section of the tree, or an empty mapping if absent.

        Raises:
            ConfigurationError: If the section exists but is not a mapping.
        """
        value = self.get_tree().get(name)
        if value is None:
            return {}
        if not isinstance(value, Mapping):
            raise ConfigurationError(
                f"Config section '{name}' in {self.describe()} must be a mapping, got {type(value).__name__}"
            )
        return value


class DictSource(TreeSource):
    """In-memory tree, e.g. ``DictSource({"container": {"cache_metadata": False}})``."""

    def __init__(self, data: Mapping[str, Any]):
        if not isinstance(data, Mapping):
            raise ConfigurationError(f"DictSource needs a mapping, got {type(data).__name__}")
        self._data = data

    def get_tree(self) -> Mapping[str, Any]:
        return self._data


def _load_tree(path: str, fmt: str, parse: Callable[[TextIO], Any]) -> Mapping[str, Any]:
    try:
        with open(path, encoding="utf-8") as f:
            data = parse(f)
    except ConfigurationError:
        raise
    except Exception as e:
        raise ConfigurationError(f"Failed to load {fmt} config from '{path}': {e}") from e
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise ConfigurationError(f"{fmt} config '{path}' must hold a mapping at the top level")
    return data


class FileTreeSource(TreeSource):
    """Tree read from a file on every :meth:`get_tree` call."""

    format_name = "file"

    def __init__(self, path: str):
        self._path = path

    @property
    def path(self) -> str:
        return self._path

    def describe(self) -> str:
        return f"{self.format_name} config '{self._path}'"

    def _parse(self, stream: TextIO) -> Any:
        raise NotImplementedError

    def get_tree(self) -> Mapping[str, Any]:
        return _load_tree(self._path, self.format_name, self._parse)


class JsonTreeSource(FileTreeSource):
    format_name = "JSON"

    def _parse(self, stream: TextIO) -> Any:
        return json.load(stream)


class YamlTreeSource(FileTreeSource):
    """YAML file source; requires ``PyYAML`` (``pip install pico-beans[yaml]``)."""

    format_name = "YAML"

    def _parse(self, stream: TextIO) -> Any:
        try:
            import yaml
        except ImportError as e:
            raise ConfigurationError("PyYAML not installed") from e
        return yaml.safe_load(stream)


_BY_SUFFIX = {".json": JsonTreeSource, ".yaml": YamlTreeSource, ".yml": YamlTreeSource}


def tree_source_for(path: str) -> FileTreeSource:
    """Pick the file source matching the extension of *path*.

    Raises:
        ConfigurationError: If the extension is not ``.json``, ``.yaml`` or ``.yml``.
    """
    suffix = os.path.splitext(path)[1].lower()
    cls = _BY_SUFFIX.get(suffix)
    if cls is None:
        raise ConfigurationError(f"No configuration source for '{path}' (expected .json, .yaml or .yml)")
    return cls(path)
