"""Post-processor protocols and the destruction adapter.

:class:`DisposableAdapter` gathers every way a component can ask to be torn
down (a ``destroy_method_name`` on its descriptor, methods marked with
:func:`~pico_beans.decorators.cleanup`, a ``destroy()`` method from
:class:`DisposableComponent`, and destruction-aware post-processors) behind
one ``destroy()`` call.
"""

import inspect
from typing import Any, List, Optional, Sequence

from .constants import LOGGER
from .decorators import has_marker
from .descriptors import ComponentDescriptor


class ComponentPostProcessor:
    """Hook applied to every component the creation capability initialises."""

    def before_initialization(self, instance: Any, name: str) -> Any:
        return instance

    def after_initialization(self, instance: Any, name: str) -> Any:
        return instance


class DestructionAwarePostProcessor(ComponentPostProcessor):
    def before_destruction(self, instance: Any, name: str) -> None:
        pass

    def requires_destruction(self, instance: Any) -> bool:
        return True


class DisposableComponent:
    def destroy(self) -> None:
        raise NotImplementedError


def _cleanup_methods(instance: Any) -> List[Any]:
    out = []
    for _, m in inspect.getmembers(type(instance), predicate=inspect.isfunction):
        if has_marker(m, "cleanup"):
            out.append(m)
    return out


def _destroy_method(instance: Any, descriptor: Optional[ComponentDescriptor]) -> Optional[str]:
    if descriptor is None or not descriptor.destroy_method_name:
        return None
    return descriptor.destroy_method_name


def has_destroy_method(instance: Any, descriptor: Optional[ComponentDescriptor]) -> bool:
    if isinstance(instance, DisposableComponent):
        return True
    if _destroy_method(instance, descriptor) is not None:
        return True
    return bool(_cleanup_methods(instance))


def applicable_processors(instance: Any, processors: Sequence[ComponentPostProcessor]) -> List[DestructionAwarePostProcessor]:
    return [
        p
        for p in processors
        if isinstance(p, DestructionAwarePostProcessor) and p.requires_destruction(instance)
    ]


class DisposableAdapter:
    """Runs every destruction hook applicable to one component instance.

    Errors from individual hooks are logged and do not stop the remaining
    hooks from running.
    """

    def __init__(
        self,
        instance: Any,
        name: str,
        descriptor: Optional[ComponentDescriptor],
        processors: Sequence[ComponentPostProcessor] = (),
    ) -> None:
        self.instance = instance
        self.name = name
        self._destroy_method_name = _destroy_method(instance, descriptor)
        self._processors = applicable_processors(instance, processors)

    def destroy(self) -> None:
        for p in self._processors:
            p.before_destruction(self.instance, self.name)

        called = set()
        if isinstance(self.instance, DisposableComponent):
            self._invoke("destroy", self.instance.destroy)
            called.add("destroy")

        for m in _cleanup_methods(self.instance):
            if m.__name__ in called:
                continue
            self._invoke(m.__name__, getattr(self.instance, m.__name__))
            called.add(m.__name__)

        if self._destroy_method_name and self._destroy_method_name not in called:
            method = getattr(self.instance, self._destroy_method_name, None)
            if method is None:
                LOGGER.warning(
                    "Destroy method '%s' not found on component '%s'", self._destroy_method_name, self.name
                )
            else:
                self._invoke(self._destroy_method_name, method)

    def _invoke(self, label: str, method: Any) -> None:
        try:
            method()
        except Exception as e:
            LOGGER.warning("Destroy method '%s' of component '%s' failed: %s", label, self.name, e)
