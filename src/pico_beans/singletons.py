"""Singleton instance cache and creation tracker.

:class:`SingletonRegistry` owns the fully-created singletons of one
container, the early references exposed while a singleton is still being
built, the per-name creation locks, the dependency graph between components
and the disposables to run at shutdown.

Creation is serialized per name: two threads asking for the same singleton
never run its creation callback twice, while different names create
concurrently. A thread waiting on a name whose creator is (transitively)
waiting on the current thread is a cross-thread circular reference; the
waiter is handed the early reference instead of deadlocking.
"""

import logging
import threading
from collections import OrderedDict
from typing import Any, Callable, Dict, List, Optional, Set

from .exceptions import CurrentlyInCreationError, SingletonAlreadyRegisteredError

_logger = logging.getLogger(__name__)

_NULL = object()


class Disposable:
    """Anything with a zero-argument ``destroy()``."""

    def destroy(self) -> None: ...


class SingletonRegistry:
    """Per-container singleton cache, creation markers and dependency graph.

    All names passed in must already be canonical.

    Args:
        poll_interval: Seconds between deadlock checks while waiting on
            another thread's creation lock.
    """

    def __init__(self, poll_interval: float = 0.05) -> None:
        self._lock = threading.RLock()
        self._poll_interval = poll_interval

        self._singleton_objects: Dict[str, Any] = {}
        self._singleton_factories: Dict[str, Callable[[], Any]] = {}
        self._early_singleton_objects: Dict[str, Any] = {}
        self._registered_singletons: "OrderedDict[str, None]" = OrderedDict()

        self._creation_locks: Dict[str, threading.RLock] = {}
        self._creating_thread: Dict[str, int] = {}
        self._waiting_for: Dict[int, str] = {}
        self._destruction_in_progress = False

        self._disposables: "OrderedDict[str, Disposable]" = OrderedDict()
        self._dependent_map: Dict[str, Set[str]] = {}
        self._dependencies_map: Dict[str, Set[str]] = {}

    # -- registration -------------------------------------------------

    def register_singleton(self, name: str, instance: Any) -> None:
        """Register a manually created instance under *name*.

        Raises:
            SingletonAlreadyRegisteredError: If *name* is already bound.
        """
        with self._lock:
            existing = self._singleton_objects.get(name)
            if existing is not None:
                raise SingletonAlreadyRegisteredError(name, None if existing is _NULL else existing)
            self.add_singleton(name, instance)

    def add_singleton(self, name: str, instance: Any) -> None:
        with self._lock:
            self._singleton_objects[name] = _NULL if instance is None else instance
            self._singleton_factories.pop(name, None)
            self._early_singleton_objects.pop(name, None)
            self._registered_singletons[name] = None

    def add_singleton_factory(self, name: str, factory: Callable[[], Any]) -> None:
        """Expose an early reference to a singleton that is still being built."""
        with self._lock:
            if name not in self._singleton_objects:
                self._singleton_factories[name] = factory
                self._early_singleton_objects.pop(name, None)
                self._registered_singletons[name] = None

    def remove_singleton(self, name: str) -> None:
        with self._lock:
            self._singleton_objects.pop(name, None)
            self._singleton_factories.pop(name, None)
            self._early_singleton_objects.pop(name, None)
            self._registered_singletons.pop(name, None)

    # -- lookup -------------------------------------------------------

    def get_singleton(self, name: str, allow_early_reference: bool = True) -> Any:
        """Return the finished singleton, or the calling thread's early reference, or ``None``."""
        with self._lock:
            obj = self._singleton_objects.get(name)
            if obj is None and self._creating_thread.get(name) == threading.get_ident():
                obj = self._early_reference(name, allow_early_reference)
            return None if obj is _NULL else obj

    def _early_reference(self, name: str, allow_factory: bool = True) -> Any:
        obj = self._early_singleton_objects.get(name)
        if obj is None and allow_factory:
            factory = self._singleton_factories.pop(name, None)
            if factory is not None:
                obj = factory()
                self._early_singleton_objects[name] = _NULL if obj is None else obj
        return obj

    def contains_singleton(self, name: str) -> bool:
        return name in self._singleton_objects

    def singleton_names(self) -> List[str]:
        with self._lock:
            return list(self._registered_singletons)

    @property
    def singleton_count(self) -> int:
        return len(self._registered_singletons)

    # -- creation -----------------------------------------------------

    def get_or_create(self, name: str, creation_callback: Callable[[], Any]) -> Any:
        """Return the singleton for *name*, running *creation_callback* at most once.

        A concurrent caller for the same name blocks until the creating
        thread finishes and then observes its result. On failure every
        early reference for *name* is evicted and the error propagates;
        nothing is cached, so the next call re-attempts from scratch.
        """
        with self._lock:
            obj = self._singleton_objects.get(name)
            if obj is not None:
                return None if obj is _NULL else obj
            if self._destruction_in_progress:
                raise CurrentlyInCreationError(
                    name, f"Singleton '{name}' requested while the container's singletons are being destroyed"
                )
            lock = self._creation_locks.setdefault(name, threading.RLock())

        if not self._acquire(name, lock):
            with self._lock:
                early = self._early_reference(name)
            if early is None:
                raise CurrentlyInCreationError(
                    name, f"Singleton '{name}' is being created by another thread that waits on this one"
                )
            _logger.debug("Handing out early reference to '%s' to break a cross-thread circular wait", name)
            return None if early is _NULL else early

        try:
            with self._lock:
                obj = self._singleton_objects.get(name)
                if obj is not None:
                    return None if obj is _NULL else obj
                self._before_singleton_creation(name)
            try:
                instance = creation_callback()
            except BaseException:
                self._evict_early(name)
                raise
            finally:
                self._after_singleton_creation(name)
            self.add_singleton(name, instance)
            return instance
        finally:
            lock.release()

    def _acquire(self, name: str, lock: threading.RLock) -> bool:
        me = threading.get_ident()
        if lock.acquire(blocking=False):
            return True
        with self._lock:
            self._waiting_for[me] = name
        try:
            while not lock.acquire(timeout=self._poll_interval):
                with self._lock:
                    if self._is_deadlocked(name, me):
                        return False
            return True
        finally:
            with self._lock:
                self._waiting_for.pop(me, None)

    def _is_deadlocked(self, name: str, me: int) -> bool:
        seen: Set[int] = set()
        owner = self._creating_thread.get(name)
        while owner is not None and owner not in seen:
            if owner == me:
                return True
            seen.add(owner)
            waiting = self._waiting_for.get(owner)
            if waiting is None:
                return False
            owner = self._creating_thread.get(waiting)
        return False

    def _before_singleton_creation(self, name: str) -> None:
        if name in self._creating_thread:
            raise CurrentlyInCreationError(name)
        self._creating_thread[name] = threading.get_ident()

    def _after_singleton_creation(self, name: str) -> None:
        with self._lock:
            self._creating_thread.pop(name, None)

    def _evict_early(self, name: str) -> None:
        with self._lock:
            if name not in self._singleton_objects:
                self._singleton_factories.pop(name, None)
                self._early_singleton_objects.pop(name, None)
                self._registered_singletons.pop(name, None)

    def is_currently_in_creation(self, name: str) -> bool:
        return name in self._creating_thread

    # -- dependency graph ---------------------------------------------

    def register_dependent(self, name: str, dependent_name: str) -> None:
        """Record that *dependent_name* depends on *name*."""
        with self._lock:
            self._dependent_map.setdefault(name, set()).add(dependent_name)
            self._dependencies_map.setdefault(dependent_name, set()).add(name)

    def is_dependent(self, name: str, dependent_name: str, _seen: Optional[Set[str]] = None) -> bool:
        """Return ``True`` if *dependent_name* depends on *name*, directly or transitively."""
        with self._lock:
            seen = _seen if _seen is not None else set()
            if name in seen:
                return False
            dependents = self._dependent_map.get(name)
            if not dependents:
                return False
            if dependent_name in dependents:
                return True
            seen.add(name)
            return any(self.is_dependent(d, dependent_name, seen) for d in list(dependents))

    def has_dependents(self, name: str) -> bool:
        with self._lock:
            return bool(self._dependent_map.get(name))

    def dependents_of(self, name: str) -> List[str]:
        with self._lock:
            return sorted(self._dependent_map.get(name, ()))

    def dependencies_of(self, name: str) -> List[str]:
        with self._lock:
            return sorted(self._dependencies_map.get(name, ()))

    # -- destruction --------------------------------------------------

    def register_disposable(self, name: str, disposable: Disposable) -> None:
        with self._lock:
            self._disposables[name] = disposable

    def destroy_singletons(self) -> None:
        """Destroy every disposable singleton, newest first, then clear all state."""
        with self._lock:
            self._destruction_in_progress = True
            names = list(reversed(self._disposables))
        try:
            for name in names:
                self.destroy_singleton(name)
            with self._lock:
                self._dependent_map.clear()
                self._dependencies_map.clear()
                self._singleton_objects.clear()
                self._singleton_factories.clear()
                self._early_singleton_objects.clear()
                self._registered_singletons.clear()
        finally:
            with self._lock:
                self._destruction_in_progress = False

    def destroy_singleton(self, name: str) -> None:
        """Evict *name*, destroying the components that depend on it first."""
        self.remove_singleton(name)
        with self._lock:
            disposable = self._disposables.pop(name, None)
        self._destroy(name, disposable)

    def _destroy(self, name: str, disposable: Optional[Disposable]) -> None:
        with self._lock:
            dependents = self._dependent_map.pop(name, set())
        for dependent in sorted(dependents):
            self.destroy_singleton(dependent)
        if disposable is not None:
            try:
                disposable.destroy()
            except Exception as e:
                _logger.warning("Destroy callback of component '%s' failed: %s", name, e)
        with self._lock:
            for deps in self._dependent_map.values():
                deps.discard(name)
            self._dependencies_map.pop(name, None)
