"""Scope strategies for custom component lifecycles.

Provides :class:`ScopeProtocol`, the two ready-made strategies
:class:`ContextVarScope` and :class:`ThreadScope`, and :class:`ScopeRegistry`
which maps scope names onto strategies. The built-in ``singleton`` and
``prototype`` lifecycles are handled by the container itself and can never
be registered here.
"""

import contextvars
import logging
import threading
from typing import Any, Callable, Dict, Optional, Protocol, Tuple

from .constants import SCOPE_PROTOTYPE, SCOPE_SINGLETON
from .exceptions import ScopeError, ScopeNotActiveError

_logger = logging.getLogger(__name__)

ObjectFactory = Callable[[], Any]


class ScopeProtocol(Protocol):
    """Protocol for scope implementations.

    ``get`` must raise :class:`ScopeNotActiveError` when the strategy has no
    active context for the calling thread.
    """

    def get(self, name: str, object_factory: ObjectFactory) -> Any: ...

    def remove(self, name: str) -> Any | None: ...

    def register_destruction_callback(self, name: str, callback: Callable[[], None]) -> None: ...

    def get_conversation_id(self) -> Any | None: ...


class ContextVarScope:
    """Scope implementation backed by a :class:`contextvars.ContextVar`.

    The scope is active while the var holds a scope ID. Instances and
    destruction callbacks are bucketed per scope ID; :meth:`close` drops a
    bucket and runs its callbacks. Creation within one scope ID is
    serialized on a reentrant per-ID lock, so concurrent first lookups
    share a single instance.

    Args:
        scope_name: The scope name, used in diagnostics and as the var name.
        var: An existing context variable to use instead of a fresh one.
    """

    def __init__(self, scope_name: str, var: Optional[contextvars.ContextVar] = None) -> None:
        self.scope_name = scope_name
        self._var = var if var is not None else contextvars.ContextVar(f"pico_{scope_name}_id", default=None)
        self._lock = threading.RLock()
        self._id_locks: Dict[Any, threading.RLock] = {}
        self._instances: Dict[Any, Dict[str, Any]] = {}
        self._callbacks: Dict[Any, Dict[str, Callable[[], None]]] = {}

    def get_conversation_id(self) -> Any | None:
        return self._var.get()

    def activate(self, scope_id: Any) -> contextvars.Token:
        return self._var.set(scope_id)

    def deactivate(self, token: contextvars.Token) -> None:
        self._var.reset(token)

    def _require_id(self) -> Any:
        sid = self._var.get()
        if sid is None:
            raise ScopeNotActiveError(self.scope_name)
        return sid

    def _id_lock(self, sid: Any) -> threading.RLock:
        with self._lock:
            lock = self._id_locks.get(sid)
            if lock is None:
                lock = self._id_locks[sid] = threading.RLock()
            return lock

    def get(self, name: str, object_factory: ObjectFactory) -> Any:
        sid = self._require_id()
        with self._lock:
            bucket = self._instances.get(sid)
            if bucket is not None and name in bucket:
                return bucket[name]
        with self._id_lock(sid):
            with self._lock:
                bucket = self._instances.setdefault(sid, {})
                if name in bucket:
                    return bucket[name]
            obj = object_factory()
            with self._lock:
                self._instances.setdefault(sid, {})[name] = obj
            return obj

    def remove(self, name: str) -> Any | None:
        sid = self._require_id()
        with self._lock:
            self._callbacks.get(sid, {}).pop(name, None)
            return self._instances.get(sid, {}).pop(name, None)

    def register_destruction_callback(self, name: str, callback: Callable[[], None]) -> None:
        sid = self._require_id()
        with self._lock:
            self._callbacks.setdefault(sid, {})[name] = callback

    def close(self, scope_id: Any) -> None:
        """Drop every instance of *scope_id*, running destruction callbacks newest first."""
        with self._lock:
            self._instances.pop(scope_id, None)
            self._id_locks.pop(scope_id, None)
            callbacks = self._callbacks.pop(scope_id, {})
        for name, cb in reversed(list(callbacks.items())):
            try:
                cb()
            except Exception as e:
                _logger.warning("Destruction callback for '%s' in scope '%s' failed: %s", name, self.scope_name, e)

    def active_ids(self) -> Tuple[Any, ...]:
        with self._lock:
            return tuple(self._instances)


class ThreadScope:
    """Scope holding one instance per name per thread.

    Always active. Destruction callbacks are not supported: thread-scoped
    instances are dropped with their thread, so registering one only logs
    a warning.
    """

    def __init__(self, scope_name: str = "thread") -> None:
        self.scope_name = scope_name
        self._local = threading.local()

    def _instances(self) -> Dict[str, Any]:
        instances = getattr(self._local, "instances", None)
        if instances is None:
            instances = {}
            self._local.instances = instances
        return instances

    def get(self, name: str, object_factory: ObjectFactory) -> Any:
        instances = self._instances()
        if name not in instances:
            instances[name] = object_factory()
        return instances[name]

    def remove(self, name: str) -> Any | None:
        return self._instances().pop(name, None)

    def register_destruction_callback(self, name: str, callback: Callable[[], None]) -> None:
        _logger.warning(
            "ThreadScope does not support destruction callbacks; consider a ContextVarScope for '%s'", name
        )

    def get_conversation_id(self) -> Any | None:
        return threading.current_thread().name


class ScopeRegistry:
    """Registry of custom scope strategies, keyed by scope name."""

    def __init__(self) -> None:
        self._scopes: Dict[str, ScopeProtocol] = {}

    def register_scope(self, name: str, scope: Optional[ScopeProtocol] = None) -> ScopeProtocol:
        """Register *scope* under *name*.

        Args:
            name: The scope name (must be a non-empty string, not
                ``'singleton'`` or ``'prototype'``).
            scope: The strategy; a fresh :class:`ContextVarScope` when omitted.

        Returns:
            The registered strategy.

        Raises:
            ScopeError: If *name* is empty or is a reserved scope name.
        """
        if not isinstance(name, str) or not name:
            raise ScopeError("Scope name must be a non-empty string")
        if name in (SCOPE_SINGLETON, SCOPE_PROTOTYPE):
            raise ScopeError(f"Cannot replace existing scopes '{SCOPE_SINGLETON}' and '{SCOPE_PROTOTYPE}'")
        impl = scope if scope is not None else ContextVarScope(name)
        previous = self._scopes.get(name)
        self._scopes[name] = impl
        if previous is not None and previous is not impl:
            _logger.info("Replacing scope '%s' from [%r] to [%r]", name, previous, impl)
        else:
            _logger.debug("Registering scope '%s' with implementation [%r]", name, impl)
        return impl

    def get(self, name: str) -> Optional[ScopeProtocol]:
        return self._scopes.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._scopes

    def names(self) -> Tuple[str, ...]:
        return tuple(self._scopes)

    def update(self, other: "ScopeRegistry") -> None:
        self._scopes.update(other._scopes)
