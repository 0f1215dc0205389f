"""Creation capabilities.

The container never builds objects itself: it hands a merged descriptor to a
:class:`CreationCapability`. :class:`SimpleCreator` is the reference
implementation used by default. It supports instance suppliers, factory
methods and plain constructors, resolves :class:`ComponentRef` values
through the container, exposes singleton early references before property
population, and runs post-processors and init hooks.
"""

import inspect
from typing import Any, Dict, Optional, Protocol, Sequence

from .decorators import has_marker
from .descriptors import ComponentRef, MergedDescriptor
from .exceptions import ComponentCreationError


class CreationCapability(Protocol):
    def create(self, name: str, descriptor: MergedDescriptor, args: Optional[Sequence[Any]]) -> Any: ...


class SimpleCreator:
    """Reference creation capability.

    Must be attached to its container before use; the container does this
    itself when the creator defines ``attach``.

    Raises:
        RuntimeError: If :meth:`create` is called before :meth:`attach`.
    """

    def __init__(self) -> None:
        self._container: Any = None

    def attach(self, container: Any) -> None:
        self._container = container

    def create(self, name: str, descriptor: MergedDescriptor, args: Optional[Sequence[Any]] = None) -> Any:
        container = self._container
        if container is None:
            raise RuntimeError("SimpleCreator must be attached before use")

        raw_args = tuple(args) if args is not None else descriptor.constructor_args
        resolved_args = [self._resolve_value(name, a) for a in raw_args]
        instance = self._instantiate(name, descriptor, resolved_args)

        if descriptor.is_singleton and container.is_singleton_currently_in_creation(name):
            early = instance
            container.add_singleton_factory(name, lambda: early)

        self._populate(name, descriptor, instance)
        instance = self._initialize(name, descriptor, instance)
        container.register_disposable_if_necessary(name, instance, descriptor)
        return instance

    def _instantiate(self, name: str, descriptor: MergedDescriptor, args: list) -> Any:
        container = self._container
        if descriptor.instance_supplier is not None:
            return descriptor.instance_supplier(*args)

        if descriptor.factory_method_name:
            if descriptor.factory_component_name:
                if container.transformed_name(descriptor.factory_component_name) == name:
                    raise ComponentCreationError(name, msg=f"Factory component reference points back to '{name}'")
                host = container.get(descriptor.factory_component_name)
                container.register_dependent(descriptor.factory_component_name, name)
            else:
                host = container.resolve_component_type(name, descriptor)
                if host is None:
                    raise ComponentCreationError(
                        name, msg=f"Static factory method '{descriptor.factory_method_name}' needs a component type"
                    )
            method = getattr(host, descriptor.factory_method_name, None)
            if not callable(method):
                raise ComponentCreationError(
                    name, msg=f"No factory method '{descriptor.factory_method_name}' on {host!r}"
                )
            return method(*args)

        cls = container.resolve_component_type(name, descriptor)
        if cls is None:
            raise ComponentCreationError(name, msg=f"Descriptor of component '{name}' declares no type or supplier")
        return cls(*args)

    def _resolve_value(self, name: str, value: Any) -> Any:
        if isinstance(value, ComponentRef):
            ref = self._container.get(value.name)
            self._container.register_dependent(value.name, name)
            return ref
        if isinstance(value, list):
            return [self._resolve_value(name, v) for v in value]
        if isinstance(value, tuple):
            return tuple(self._resolve_value(name, v) for v in value)
        if isinstance(value, dict):
            return {k: self._resolve_value(name, v) for k, v in value.items()}
        return value

    def _populate(self, name: str, descriptor: MergedDescriptor, instance: Any) -> None:
        props: Dict[str, Any] = descriptor.properties
        for attr, value in props.items():
            setattr(instance, attr, self._resolve_value(name, value))

    def _initialize(self, name: str, descriptor: MergedDescriptor, instance: Any) -> Any:
        processors = self._container.post_processors
        for p in processors:
            result = p.before_initialization(instance, name)
            if result is None:
                return instance
            instance = result

        called = set()
        for attr, fn in inspect.getmembers(type(instance), predicate=inspect.isfunction):
            if has_marker(fn, "init"):
                getattr(instance, attr)()
                called.add(attr)
        init_name = descriptor.init_method_name
        if init_name and init_name not in called:
            method = getattr(instance, init_name, None)
            if not callable(method):
                raise ComponentCreationError(name, msg=f"Init method '{init_name}' not found on component '{name}'")
            method()

        for p in processors:
            result = p.after_initialization(instance, name)
            if result is None:
                return instance
            instance = result
        return instance
