import os
import re
from typing import Any, Mapping, Optional

from .exceptions import ConfigurationError


def _deep_merge(a: Any, b: Any) -> Any:
    if isinstance(a, dict) and isinstance(b, dict):
        out = dict(a)
        for k, v in b.items():
            if k in out:
                out[k] = _deep_merge(out[k], v)
            else:
                out[k] = v
        return out
    return b


def _walk_path(root: Any, path: str) -> Any:
    cur = root
    for part in path.split("."):
        if isinstance(cur, Mapping) and part in cur:
            cur = cur[part]
        else:
            raise ConfigurationError(f"Invalid ref path: {path}")
    return cur


_env_pat = re.compile(r"\$\{ENV:([A-Za-z_][A-Za-z0-9_]*)\}")
_ref_pat = re.compile(r"\$\{ref:([A-Za-z0-9_.]+)\}")


def _interpolate_string(s: str, root: Any) -> str:
    def repl_env(m):
        v = os.environ.get(m.group(1))
        if v is None:
            raise ConfigurationError(f"Missing ENV var {m.group(1)}")
        return v

    def repl_ref(m):
        v = _walk_path(root, m.group(1))
        if isinstance(v, (dict, list)):
            raise ConfigurationError("Cannot interpolate non-scalar ref")
        return str(v)

    s = _env_pat.sub(repl_env, s)
    s = _ref_pat.sub(repl_ref, s)
    return s


class PlaceholderResolver:
    """String value resolver expanding ``${ENV:NAME}`` and ``${ref:dotted.path}``.

    Usable anywhere a value resolver is accepted, e.g.
    ``container.add_value_resolver(PlaceholderResolver({"env": {"suffix": "dev"}}))``.

    Args:
        root: Tree that ``${ref:...}`` placeholders are looked up in.
    """

    def __init__(self, root: Optional[Mapping[str, Any]] = None) -> None:
        self._root = root or {}

    def __call__(self, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return _interpolate_string(value, self._root)
