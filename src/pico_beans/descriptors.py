"""Component descriptors and the in-memory descriptor store.

This module defines :class:`ComponentDescriptor` (the declarative recipe for a
component), :class:`MergedDescriptor` (a descriptor with its parent chain
flattened in), :class:`DescriptorHolder` (a named descriptor reference used
for decorated definitions), :class:`ComponentRef` (a by-name reference to
another component inside argument and property values), and
:class:`DescriptorRegistry` (a simple name-to-descriptor store).
"""

from dataclasses import dataclass, field, fields
from typing import Any, Callable, Dict, Iterator, List, Optional, Protocol, Tuple

from .constants import SCOPE_PROTOTYPE, SCOPE_SINGLETON
from .exceptions import ComponentNotFoundError


@dataclass(frozen=True)
class ComponentRef:
    """Reference to another component by name, resolved at creation time."""

    name: str


@dataclass
class ComponentDescriptor:
    """Declarative recipe for producing a component.

    ``None`` (or an empty collection) means "not set": when a child
    descriptor is merged over its parent, only attributes the child sets
    explicitly win. ``abstract`` is the exception and is always taken from
    the child, so children of abstract templates are concrete by default.

    Attributes:
        component_type: The class to instantiate, if known.
        type_name: Dotted import path of the class (``"pkg.mod.Class"`` or
            ``"pkg.mod:Class"``), used when ``component_type`` is unset.
        parent_name: Name of the descriptor to inherit from.
        scope: ``"singleton"``, ``"prototype"`` or a registered scope name;
            empty means "default".
        abstract: Whether the descriptor is a template only.
        lazy_init: Whether eager pre-instantiation should skip it.
        depends_on: Names that must be created before this component.
        factory_method_name: Name of a factory method producing the instance.
        factory_component_name: Component hosting ``factory_method_name``;
            unset means a static method on ``component_type``.
        instance_supplier: Callable producing the instance directly.
        constructor_args: Positional constructor / factory-method arguments.
        properties: Attribute values set after construction.
        init_method_name: Method invoked after properties are populated.
        destroy_method_name: Method invoked when the component is destroyed.
        decorated: The descriptor this one decorates (proxy scenarios).
        primary: Whether this is the preferred candidate for its type.
        synthetic: Whether the descriptor is infrastructure-defined
            (factory products of synthetic descriptors are not post-processed).
        description: Free-form text for diagnostics.
    """

    component_type: Optional[type] = None
    type_name: Optional[str] = None
    parent_name: Optional[str] = None
    scope: str = ""
    abstract: bool = False
    lazy_init: Optional[bool] = None
    depends_on: Tuple[str, ...] = ()
    factory_method_name: Optional[str] = None
    factory_component_name: Optional[str] = None
    instance_supplier: Optional[Callable[..., Any]] = None
    constructor_args: Tuple[Any, ...] = ()
    properties: Dict[str, Any] = field(default_factory=dict)
    init_method_name: Optional[str] = None
    destroy_method_name: Optional[str] = None
    decorated: Optional["DescriptorHolder"] = None
    primary: bool = False
    synthetic: bool = False
    description: Optional[str] = None

    @property
    def is_singleton(self) -> bool:
        return self.scope in (SCOPE_SINGLETON, "")

    @property
    def is_prototype(self) -> bool:
        return self.scope == SCOPE_PROTOTYPE

    @property
    def is_lazy_init(self) -> bool:
        return bool(self.lazy_init)

    def clone(self) -> "ComponentDescriptor":
        return self._copy_into(type(self)())

    def _copy_into(self, target: "ComponentDescriptor") -> "ComponentDescriptor":
        for f in fields(ComponentDescriptor):
            setattr(target, f.name, getattr(self, f.name))
        target.depends_on = tuple(self.depends_on)
        target.constructor_args = tuple(self.constructor_args)
        target.properties = dict(self.properties)
        return target

    def override_from(self, other: "ComponentDescriptor") -> None:
        """Overlay every attribute explicitly set on *other* onto this descriptor."""
        if other.component_type is not None:
            self.component_type = other.component_type
            if other.type_name is None:
                self.type_name = None
        if other.type_name is not None:
            self.type_name = other.type_name
            if other.component_type is None:
                self.component_type = None
        if other.scope:
            self.scope = other.scope
        self.abstract = other.abstract
        if other.lazy_init is not None:
            self.lazy_init = other.lazy_init
        if other.depends_on:
            self.depends_on = tuple(other.depends_on)
        if other.factory_method_name is not None:
            self.factory_method_name = other.factory_method_name
            self.factory_component_name = other.factory_component_name
        if other.instance_supplier is not None:
            self.instance_supplier = other.instance_supplier
        if other.constructor_args:
            self.constructor_args = tuple(other.constructor_args)
        self.properties.update(other.properties)
        if other.init_method_name is not None:
            self.init_method_name = other.init_method_name
        if other.destroy_method_name is not None:
            self.destroy_method_name = other.destroy_method_name
        if other.decorated is not None:
            self.decorated = other.decorated
        if other.primary:
            self.primary = True
        self.synthetic = other.synthetic
        if other.description is not None:
            self.description = other.description


@dataclass
class MergedDescriptor(ComponentDescriptor):
    """A descriptor with all parent-inherited attributes flattened in.

    Attributes:
        resolved_type: Cache for the imported ``type_name``.
        is_factory_component: Cache for the factory-component check; ``None``
            until first computed.
        stale: Set when the cached merge has been invalidated but the
            instance is still referenced by an in-flight resolution.
    """

    resolved_type: Optional[type] = None
    is_factory_component: Optional[bool] = None
    stale: bool = False

    @classmethod
    def from_descriptor(cls, descriptor: ComponentDescriptor) -> "MergedDescriptor":
        merged = descriptor._copy_into(cls())
        if isinstance(descriptor, MergedDescriptor):
            merged.resolved_type = descriptor.resolved_type
            merged.is_factory_component = descriptor.is_factory_component
        return merged

    def clone(self) -> "MergedDescriptor":
        return MergedDescriptor.from_descriptor(self)


@dataclass(frozen=True)
class DescriptorHolder:
    """A descriptor together with the name it is registered under."""

    name: str
    descriptor: ComponentDescriptor
    aliases: Tuple[str, ...] = ()


class DescriptorStore(Protocol):
    """The descriptor storage backend consumed by the container."""

    def has_descriptor(self, name: str) -> bool: ...

    def get_descriptor(self, name: str) -> ComponentDescriptor: ...


class DescriptorRegistry:
    """Simple name-to-descriptor store.

    Registration order is preserved, which is the order eager
    pre-instantiation walks.
    """

    def __init__(self) -> None:
        self._descriptors: Dict[str, ComponentDescriptor] = {}

    def register_descriptor(self, name: str, descriptor: ComponentDescriptor) -> None:
        """Bind *descriptor* to *name*, replacing any previous binding."""
        if not name:
            raise ValueError("Descriptor name must not be empty")
        self._descriptors[name] = descriptor

    def remove_descriptor(self, name: str) -> None:
        if self._descriptors.pop(name, None) is None:
            raise ComponentNotFoundError(name)

    def has_descriptor(self, name: str) -> bool:
        return name in self._descriptors

    def get_descriptor(self, name: str) -> ComponentDescriptor:
        """Retrieve the descriptor bound to *name*.

        Raises:
            ComponentNotFoundError: If nothing is bound to *name*.
        """
        try:
            return self._descriptors[name]
        except KeyError:
            raise ComponentNotFoundError(name) from None

    def names(self) -> List[str]:
        return list(self._descriptors)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._descriptors))

    def __len__(self) -> int:
        return len(self._descriptors)
