"""Indirect-factory components.

A component whose instance is a :class:`FactoryComponent` is exposed through
its product: ``container.get("name")`` returns ``get_object()`` while
``container.get("&name")`` returns the factory itself.
:class:`FactoryProductCache` caches the products of singleton factories so
``get_object()`` runs once per factory.
"""

import threading
from typing import Any, Callable, Dict, Optional, Protocol

from .constants import FACTORY_PREFIX
from .exceptions import ComponentCreationError, CurrentlyInCreationError, FactoryComponentCreationError, PicoBeansError

_NULL = object()


class FactoryComponent:
    """Base class for components that produce another object."""

    def get_object(self) -> Any:
        raise NotImplementedError

    def object_type(self) -> Optional[type]:
        """Type of the product, or ``None`` if not known in advance."""
        return None

    def is_singleton(self) -> bool:
        """Whether ``get_object`` returns the same shared instance every time."""
        return True


class SmartFactoryComponent(FactoryComponent):
    def is_prototype(self) -> bool:
        return False

    def is_eager_init(self) -> bool:
        return False


class TypePredictor(Protocol):
    """Optional capability predicting a factory component's product type without creating it."""

    def predict_product_type(self, name: str, descriptor: Any) -> Optional[type]: ...


def is_factory_dereference(name: Optional[str]) -> bool:
    return bool(name) and name.startswith(FACTORY_PREFIX)


def transformed_name(name: str) -> str:
    """Strip every leading dereference prefix from *name*."""
    if not name:
        raise ValueError("Component name must not be empty")
    while name.startswith(FACTORY_PREFIX):
        name = name[len(FACTORY_PREFIX):]
    return name


def type_for_factory(factory: FactoryComponent) -> Optional[type]:
    """Ask *factory* for its product type; ``None`` when it cannot tell."""
    try:
        return factory.object_type()
    except Exception:
        return None


class FactoryProductCache:
    """Caches products of singleton factory components, keyed by canonical name.

    Args:
        singleton_registry: The container's singleton registry; a product is
            only cached while its factory is a registered singleton.
        post_process: Hook applied to freshly obtained products.
    """

    def __init__(self, singleton_registry: Any, post_process: Callable[[Any, str], Any]) -> None:
        self._singletons = singleton_registry
        self._post_process = post_process
        self._objects: Dict[str, Any] = {}
        self._locks: Dict[str, threading.RLock] = {}
        self._lock = threading.Lock()

    def get_cached(self, name: str) -> Any:
        obj = self._objects.get(name)
        if obj is not None and not self._singletons.contains_singleton(name):
            self._objects.pop(name, None)
            return None
        return None if obj is _NULL else obj

    def remove(self, name: str) -> None:
        self._objects.pop(name, None)

    def clear(self) -> None:
        self._objects.clear()

    def _lock_for(self, name: str) -> threading.RLock:
        with self._lock:
            return self._locks.setdefault(name, threading.RLock())

    def get_object_from_factory(self, factory: FactoryComponent, name: str, should_post_process: bool) -> Any:
        """Obtain the product of *factory*, caching it for shared singleton factories."""
        if factory.is_singleton() and self._singletons.contains_singleton(name):
            with self._lock_for(name):
                obj = self._objects.get(name)
                if obj is None:
                    obj = self._obtain(factory, name, should_post_process)
                    if self._singletons.contains_singleton(name):
                        self._objects[name] = _NULL if obj is None else obj
                return None if obj is _NULL else obj
        return self._obtain(factory, name, should_post_process)

    def _obtain(self, factory: FactoryComponent, name: str, should_post_process: bool) -> Any:
        try:
            obj = factory.get_object()
        except PicoBeansError:
            raise
        except Exception as e:
            raise FactoryComponentCreationError(name, e) from e
        if obj is None and self._singletons.is_currently_in_creation(name):
            raise CurrentlyInCreationError(
                name, f"Factory component '{name}' which is currently in creation returned None from get_object"
            )
        if obj is not None and should_post_process:
            try:
                obj = self._post_process(obj, name)
            except PicoBeansError:
                raise
            except Exception as e:
                raise ComponentCreationError(
                    name, e, msg=f"Post-processing of factory component '{name}' product failed: {e}"
                ) from e
        return obj
