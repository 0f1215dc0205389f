"""Container configuration builder and flat source abstractions.

Provides the :func:`configuration` builder that assembles flat and tree-based
configuration sources into an immutable :class:`ContainerConfig`, and the
built-in flat source classes :class:`EnvSource` and :class:`FlatDictSource`.
"""

import os
from dataclasses import dataclass, fields
from typing import Any, Dict, List, Mapping, Optional, Protocol, Union

from .config_runtime import _deep_merge
from .config_sources import TreeSource
from .conversion import TypeConverter
from .exceptions import ConfigurationError, ConversionError

CONFIG_SECTION = "container"


class ConfigSource(Protocol):
    """Protocol for flat (key-value) configuration sources."""

    def get(self, key: str) -> Optional[str]: ...


class EnvSource:
    """Configuration source backed by OS environment variables.

    Args:
        prefix: Prefix prepended to every key lookup (``"CACHE_METADATA"``
            reads ``PICO_BEANS_CACHE_METADATA`` by default).
    """

    def __init__(self, prefix: str = "PICO_BEANS_") -> None:
        self.prefix = prefix

    def get(self, key: str) -> Optional[str]:
        return os.environ.get(self.prefix + key)


class FlatDictSource:
    """Configuration source backed by an in-memory dictionary.

    Args:
        data: The key-value mapping.
        prefix: Optional prefix prepended to every key lookup.
        case_sensitive: If ``False``, keys are normalised to upper-case
            for lookup.
    """

    def __init__(self, data: Mapping[str, Any], prefix: str = "", case_sensitive: bool = True):
        base = dict(data)
        if case_sensitive:
            self._data = {str(k): v for k, v in base.items()}
            self._prefix = prefix
        else:
            self._data = {str(k).upper(): v for k, v in base.items()}
            self._prefix = prefix.upper()
        self._case_sensitive = case_sensitive

    def get(self, key: str) -> Optional[str]:
        if not key:
            return None
        k = f"{self._prefix}{key}" if self._prefix else key
        if not self._case_sensitive:
            k = k.upper()
        v = self._data.get(k)
        if v is None:
            return None
        if isinstance(v, (str, int, float, bool)):
            return str(v)
        return None


@dataclass(frozen=True)
class ContainerConfig:
    """Immutable container settings.

    Attributes:
        allow_alias_overriding: Whether an alias may be re-pointed to a
            different name.
        cache_metadata: Whether merged descriptors are cached.
        creation_lock_poll_interval: Seconds between cross-thread deadlock
            checks while waiting for another thread's singleton creation.
    """

    allow_alias_overriding: bool = True
    cache_metadata: bool = True
    creation_lock_poll_interval: float = 0.05


def configuration(*sources: Any, overrides: Optional[Dict[str, Any]] = None) -> ContainerConfig:
    """Build a :class:`ContainerConfig` from one or more sources.

    Tree sources are deep-merged in order and read under the ``container``
    section using field names; flat sources are consulted afterwards with
    upper-cased field names (first source holding a value wins); *overrides*
    take highest precedence.

    Raises:
        ConfigurationError: If an unknown source type is provided or a value
            cannot be coerced to its field type.

    Example:
        >>> cfg = configuration(
        ...     DictSource({"container": {"cache_metadata": False}}),
        ...     EnvSource(),
        ...     overrides={"allow_alias_overriding": "false"},
        ... )
    """
    flat: List[Union[EnvSource, FlatDictSource]] = []
    section: Dict[str, Any] = {}

    for src in sources:
        if isinstance(src, (EnvSource, FlatDictSource)):
            flat.append(src)
        elif isinstance(src, TreeSource):
            section = _deep_merge(section, dict(src.section(CONFIG_SECTION)))
        else:
            raise ConfigurationError(f"Unknown configuration source type: {type(src)}")

    known = {f.name for f in fields(ContainerConfig)}
    unknown = set(section) - known
    if unknown:
        raise ConfigurationError(f"Unknown keys {sorted(unknown)} at {CONFIG_SECTION}")
    unknown = set(overrides or {}) - known
    if unknown:
        raise ConfigurationError(f"Unknown override keys {sorted(unknown)}")

    converter = TypeConverter()
    values: Dict[str, Any] = {}
    for f in fields(ContainerConfig):
        raw: Any = section.get(f.name)
        for src in flat:
            v = src.get(f.name.upper())
            if v is not None:
                raw = v
                break
        if overrides and f.name in overrides:
            raw = overrides[f.name]
        if raw is None:
            continue
        target = type(f.default)
        try:
            values[f.name] = converter.convert_if_necessary(raw, target)
        except ConversionError as e:
            raise ConfigurationError(f"Invalid value for '{f.name}': {e}") from e

    return ContainerConfig(**values)
