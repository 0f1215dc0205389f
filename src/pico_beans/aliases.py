"""Alias registry.

Maps alias names onto canonical component names. Chains are allowed
(``a -> b -> c``) but cycles never are: every insert is checked, which is
what guarantees :meth:`AliasRegistry.canonical_name` terminates.
"""

import threading
from typing import Callable, Dict, List, Optional

from .exceptions import AliasConflictError, CircularAliasError, UnknownAliasError

ValueResolver = Callable[[str], Optional[str]]


def _has_alias(alias_map: Dict[str, str], name: str, alias: str) -> bool:
    for registered_alias, registered_name in list(alias_map.items()):
        if registered_name == name:
            if registered_alias == alias or _has_alias(alias_map, registered_alias, alias):
                return True
    return False


def _check_for_alias_circle(alias_map: Dict[str, str], name: str, alias: str) -> None:
    if _has_alias(alias_map, alias, name):
        raise CircularAliasError(alias, name)


class AliasRegistry:
    """Bidirectional alias bookkeeping.

    Mutations are serialized on an internal lock. Lookups read the live map
    without locking; bulk rewrites (:meth:`resolve_aliases`) iterate over a
    snapshot so concurrent readers never see a half-applied rewrite of the
    key set.

    Args:
        allow_overriding: Whether an alias already registered for another
            name may be re-pointed.
    """

    def __init__(self, allow_overriding: bool = True) -> None:
        self._alias_map: Dict[str, str] = {}
        self._lock = threading.RLock()
        self.allow_overriding = allow_overriding

    def register_alias(self, name: str, alias: str) -> None:
        """Register *alias* for *name*.

        Registering a name as its own alias removes any stale mapping for
        it. Re-registering the same pair is a no-op.

        Raises:
            ValueError: If either argument is empty.
            AliasConflictError: If *alias* already maps elsewhere and
                overriding is disabled.
            CircularAliasError: If the mapping would introduce a cycle.
        """
        if not name:
            raise ValueError("'name' must not be empty")
        if not alias:
            raise ValueError("'alias' must not be empty")
        with self._lock:
            if alias == name:
                self._alias_map.pop(alias, None)
                return
            registered_name = self._alias_map.get(alias)
            if registered_name is not None:
                if registered_name == name:
                    return
                if not self.allow_overriding:
                    raise AliasConflictError(alias, name, registered_name)
            self._check_for_alias_circle(name, alias)
            self._alias_map[alias] = name

    def has_alias(self, name: str, alias: str) -> bool:
        """Return ``True`` if *alias* resolves, directly or transitively, to *name*."""
        return _has_alias(self._alias_map, name, alias)

    def remove_alias(self, alias: str) -> None:
        with self._lock:
            if self._alias_map.pop(alias, None) is None:
                raise UnknownAliasError(alias)

    def is_alias(self, name: str) -> bool:
        return name in self._alias_map

    def get_aliases(self, name: str) -> List[str]:
        """Return every alias whose chain terminates at *name* (transitive reverse lookup)."""
        result: List[str] = []
        with self._lock:
            self._retrieve_aliases(name, result)
        return result

    def _retrieve_aliases(self, name: str, result: List[str]) -> None:
        for alias, registered_name in self._alias_map.items():
            if registered_name == name:
                result.append(alias)
                self._retrieve_aliases(alias, result)

    def resolve_aliases(self, value_resolver: ValueResolver) -> None:
        """Rewrite every alias and target through *value_resolver*.

        The rewritten map is built from a snapshot and swapped in only when
        every entry succeeded; on error the registry is left untouched.
        Entries collapsing to ``alias == name`` (or to ``None``) are dropped.

        Raises:
            AliasConflictError: If a rewritten alias collides with an
                existing mapping to a different name.
            CircularAliasError: If a rewritten mapping would form a cycle.
        """
        if value_resolver is None:
            raise ValueError("value_resolver must not be None")
        with self._lock:
            snapshot = dict(self._alias_map)
            rewritten = dict(snapshot)
            for alias, registered_name in snapshot.items():
                resolved_alias = value_resolver(alias)
                resolved_name = value_resolver(registered_name)
                if resolved_alias is None or resolved_name is None or resolved_alias == resolved_name:
                    rewritten.pop(alias, None)
                elif resolved_alias != alias:
                    existing_name = rewritten.get(resolved_alias)
                    if existing_name is not None:
                        if existing_name == resolved_name:
                            rewritten.pop(alias, None)
                            continue
                        raise AliasConflictError(resolved_alias, resolved_name, existing_name)
                    _check_for_alias_circle(rewritten, resolved_name, resolved_alias)
                    rewritten.pop(alias, None)
                    rewritten[resolved_alias] = resolved_name
                elif registered_name != resolved_name:
                    _check_for_alias_circle(rewritten, resolved_name, alias)
                    rewritten[alias] = resolved_name
            self._alias_map = rewritten

    def _check_for_alias_circle(self, name: str, alias: str) -> None:
        _check_for_alias_circle(self._alias_map, name, alias)

    def canonical_name(self, name: str) -> str:
        """Follow the alias chain from *name* until an unmapped name is reached."""
        canonical = name
        resolved = self._alias_map.get(canonical)
        while resolved is not None:
            canonical = resolved
            resolved = self._alias_map.get(canonical)
        return canonical

    def aliases(self) -> Dict[str, str]:
        """Return a snapshot of the alias map (alias to target)."""
        return dict(self._alias_map)
