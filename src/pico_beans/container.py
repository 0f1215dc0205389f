# src/pico_beans/container.py
import random
import threading
import time
from contextlib import contextmanager
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence, Tuple

from .aliases import AliasRegistry, ValueResolver
from .config_builder import ContainerConfig
from .constants import FACTORY_PREFIX, LOGGER
from .container_merge import _MergeMixin
from .container_queries import _QueryMixin, _is_instance
from .conversion import TypeConverter
from .creation import CreationCapability, SimpleCreator
from .descriptors import ComponentDescriptor, DescriptorRegistry, DescriptorStore, MergedDescriptor
from .exceptions import (
    CircularDependsOnError,
    CircularPrototypeError,
    ComponentCreationError,
    ComponentNotFoundError,
    ConfigurationError,
    ConversionError,
    InactiveScopeError,
    NotAFactoryError,
    PicoBeansError,
    ScopeError,
    ScopeNotActiveError,
    TypeMismatchError,
    UnknownScopeError,
)
from .factory_components import (
    FactoryComponent,
    FactoryProductCache,
    SmartFactoryComponent,
    TypePredictor,
    is_factory_dereference,
    transformed_name,
)
from .lifecycle import ComponentPostProcessor, DisposableAdapter, applicable_processors, has_destroy_method
from .scope import ScopeProtocol, ScopeRegistry
from .singletons import SingletonRegistry
from .tracking import PrototypeCreationTracker


class ContainerObserver(Protocol):
    """Protocol for observing container resolution events.

    Pass instances to ``init(observers=[...])`` to receive a callback for
    every component created through :meth:`ComponentContainer.get` and for
    every singleton cache hit.
    """

    def on_resolve(self, name: str, took_ms: float): ...
    def on_cache_hit(self, name: str): ...


class ComponentContainer(_MergeMixin, _QueryMixin):
    """Hierarchical, name-based component container.

    Resolves names (and aliases) against a descriptor store, caching
    singletons, tracking prototypes per thread, dispatching custom scopes to
    registered strategies and delegating unknown names to an optional parent
    container. Object construction is left to a :class:`CreationCapability`.

    Args:
        store: Descriptor store; a fresh :class:`DescriptorRegistry` when
            omitted.
        creator: Creation capability; a :class:`SimpleCreator` when omitted.
            Creators defining ``attach`` are attached to this container.
        parent: Optional parent container consulted for names without a
            local descriptor.
        config: Container settings.
        scopes: Custom scope strategies to start from.
        type_converter: Converter used when a resolved instance does not
            match the requested type.
        type_predictor: Optional factory product type predictor.
        observers: Resolution observers.
        container_id: Identifier used in logs and stats; generated when
            omitted.
    """

    def __init__(
        self,
        store: Optional[DescriptorStore] = None,
        *,
        creator: Optional[CreationCapability] = None,
        parent: Optional["ComponentContainer"] = None,
        config: Optional[ContainerConfig] = None,
        scopes: Optional[ScopeRegistry] = None,
        type_converter: Optional[TypeConverter] = None,
        type_predictor: Optional[TypePredictor] = None,
        observers: Optional[List[ContainerObserver]] = None,
        container_id: Optional[str] = None,
    ) -> None:
        self.config = config or ContainerConfig()
        self.container_id = container_id or self._generate_container_id()
        self._store = store if store is not None else DescriptorRegistry()
        self._parent = parent
        self._aliases = AliasRegistry(allow_overriding=self.config.allow_alias_overriding)
        self._singletons = SingletonRegistry(poll_interval=self.config.creation_lock_poll_interval)
        self._products = FactoryProductCache(self._singletons, self._post_process_product)
        self._prototypes = PrototypeCreationTracker(f"pico_prototypes_{self.container_id}")
        self._scopes = ScopeRegistry()
        if scopes is not None:
            self._scopes.update(scopes)
        self._type_converter = type_converter or TypeConverter()
        self._type_predictor = type_predictor
        self._value_resolvers: List[ValueResolver] = []
        self._post_processors: List[ComponentPostProcessor] = []
        self._pp_lock = threading.Lock()

        self._merged: Dict[str, MergedDescriptor] = {}
        self._already_created = set()
        self._merging = set()
        self._merge_lock = threading.RLock()
        self._cache_metadata = self.config.cache_metadata

        self._observers = list(observers or [])
        self._created_at = time.time()
        self._resolve_count = 0
        self._cache_hit_count = 0

        self._creator = creator if creator is not None else SimpleCreator()
        attach = getattr(self._creator, "attach", None)
        if callable(attach):
            attach(self)

    @staticmethod
    def _generate_container_id() -> str:
        return f"c{time.time_ns():x}{random.randrange(1 << 16):04x}"

    # -- names ----------------------------------------------------------

    def transformed_name(self, name: str) -> str:
        """Return the canonical name: dereference prefix stripped, aliases followed."""
        return self._aliases.canonical_name(transformed_name(name))

    def _original_name(self, name: str) -> str:
        canonical = self.transformed_name(name)
        if is_factory_dereference(name):
            return FACTORY_PREFIX + canonical
        return canonical

    # -- resolution -----------------------------------------------------

    def get(self, name: str, required_type: Any = None, *, args: Optional[Sequence[Any]] = None) -> Any:
        """Return the component registered under *name*.

        Args:
            name: Component name, alias, or ``&``-prefixed name to obtain a
                factory component itself.
            required_type: If given, the result must be an instance of this
                type (after conversion, where one applies).
            args: Explicit construction arguments replacing the
                descriptor's. Only honoured when an instance is actually
                created.

        Raises:
            ComponentNotFoundError: If *name* is unknown in the hierarchy.
            ComponentCreationError: If creation fails (see subclasses).
            TypeMismatchError: If the result cannot satisfy *required_type*.
        """
        return self._do_get(name, required_type, args, False)

    def _do_get(self, name: str, required_type: Any, args: Optional[Sequence[Any]], type_check_only: bool) -> Any:
        canonical = self.transformed_name(name)

        shared = self._singletons.get_singleton(canonical)
        if shared is not None and args is None:
            if self._singletons.is_currently_in_creation(canonical):
                LOGGER.debug(
                    "Returning early reference to singleton '%s' that is not fully initialized yet "
                    "(circular reference)",
                    canonical,
                )
            else:
                LOGGER.debug("Returning cached instance of singleton '%s'", canonical)
            self._cache_hit_count += 1
            for o in self._observers:
                o.on_cache_hit(canonical)
            component = self._object_for_instance(shared, name, canonical, None)
            return self._adapt(component, name, required_type)

        if self._prototypes.is_in_creation(canonical):
            raise CircularPrototypeError(canonical)

        parent = self._parent
        if parent is not None and not self.contains_descriptor(canonical):
            original = self._original_name(name)
            if isinstance(parent, ComponentContainer):
                return parent._do_get(original, required_type, args, type_check_only)
            return parent.get(original, required_type, args=args)

        if not type_check_only:
            self.mark_as_created(canonical)

        t0 = time.perf_counter()
        try:
            mbd = self._merged_local_descriptor(canonical)
            self.check_merged_descriptor(mbd, canonical, args)

            for dep in mbd.depends_on:
                if self.is_dependent(canonical, dep):
                    raise CircularDependsOnError(canonical, dep)
                self.register_dependent(dep, canonical)
                try:
                    self.get(dep)
                except ComponentNotFoundError as e:
                    raise ComponentCreationError(
                        canonical, e, msg=f"Component '{canonical}' depends on missing component '{dep}'"
                    ) from e

            if mbd.is_singleton:
                if args is not None and self._singletons.contains_singleton(canonical):
                    LOGGER.debug("Ignoring explicit args for already created singleton '%s'", canonical)
                instance = self._singletons.get_or_create(
                    canonical, lambda: self._create_singleton(canonical, mbd, args)
                )
            elif mbd.is_prototype:
                self._prototypes.before_creation(canonical)
                try:
                    instance = self._create_component(canonical, mbd, args)
                finally:
                    self._prototypes.after_creation(canonical)
            else:
                instance = self._get_scoped(canonical, mbd, args)

            component = self._object_for_instance(instance, name, canonical, mbd)
            component = self._adapt(component, name, required_type)
        except Exception:
            self.cleanup_after_creation_failure(canonical)
            raise

        self._resolve_count += 1
        took_ms = (time.perf_counter() - t0) * 1000
        for o in self._observers:
            o.on_resolve(canonical, took_ms)
        return component

    def _create_singleton(self, name: str, mbd: MergedDescriptor, args: Optional[Sequence[Any]]) -> Any:
        try:
            return self._create_component(name, mbd, args)
        except Exception:
            self._singletons.destroy_singleton(name)
            raise

    def _get_scoped(self, name: str, mbd: MergedDescriptor, args: Optional[Sequence[Any]]) -> Any:
        scope_name = mbd.scope
        scope = self._scopes.get(scope_name)
        if scope is None:
            raise UnknownScopeError(scope_name)

        def object_factory() -> Any:
            self._prototypes.before_creation(name)
            try:
                return self._create_component(name, mbd, args)
            finally:
                self._prototypes.after_creation(name)

        try:
            return scope.get(name, object_factory)
        except ScopeNotActiveError as e:
            raise InactiveScopeError(name, scope_name, e) from e

    def _create_component(self, name: str, mbd: MergedDescriptor, args: Optional[Sequence[Any]]) -> Any:
        try:
            return self._creator.create(name, mbd, args)
        except PicoBeansError:
            raise
        except Exception as e:
            raise ComponentCreationError(name, e) from e

    def _adapt(self, component: Any, name: str, required_type: Any) -> Any:
        if required_type is None or component is None or _is_instance(component, required_type):
            return component
        try:
            return self._type_converter.convert_if_necessary(component, required_type)
        except ConversionError as e:
            raise TypeMismatchError(name, required_type, type(component)) from e

    def _object_for_instance(
        self, instance: Any, name: str, canonical: str, mbd: Optional[MergedDescriptor]
    ) -> Any:
        if is_factory_dereference(name):
            if instance is None:
                return None
            if not isinstance(instance, FactoryComponent):
                raise NotAFactoryError(canonical, type(instance))
            if mbd is not None:
                mbd.is_factory_component = True
            return instance

        if not isinstance(instance, FactoryComponent):
            return instance

        obj = None
        if mbd is not None:
            mbd.is_factory_component = True
        else:
            obj = self._products.get_cached(canonical)
        if obj is None:
            if mbd is None and self.contains_descriptor(canonical):
                mbd = self._merged_local_descriptor(canonical)
            synthetic = mbd is not None and mbd.synthetic
            obj = self._products.get_object_from_factory(instance, canonical, not synthetic)
        return obj

    def _post_process_product(self, obj: Any, name: str) -> Any:
        for p in self.post_processors:
            result = p.after_initialization(obj, name)
            if result is None:
                return obj
            obj = result
        return obj

    def preinstantiate_singletons(self) -> None:
        """Create every non-abstract, non-lazy singleton that has a descriptor.

        Factory components are created themselves; their product is only
        created as well for a :class:`SmartFactoryComponent` asking for
        eager init.
        """
        for name in self.descriptor_names():
            mbd = self._merged_local_descriptor(name)
            if mbd.abstract or not mbd.is_singleton or mbd.is_lazy_init:
                continue
            if self._is_factory_component(name, mbd):
                factory = self.get(FACTORY_PREFIX + name)
                if isinstance(factory, SmartFactoryComponent) and factory.is_eager_init():
                    self.get(name)
            else:
                self.get(name)

    # -- descriptors ----------------------------------------------------

    def contains_descriptor(self, name: str) -> bool:
        return self._store.has_descriptor(name)

    def descriptor_names(self) -> List[str]:
        names = getattr(self._store, "names", None)
        return list(names()) if callable(names) else []

    def register_descriptor(self, name: str, descriptor: ComponentDescriptor) -> None:
        """Bind *descriptor* to *name* and reset any state derived from a previous binding.

        Raises:
            ConfigurationError: If the store is read-only.
        """
        register = getattr(self._store, "register_descriptor", None)
        if not callable(register):
            raise ConfigurationError(f"Descriptor store {type(self._store).__name__} is read-only")
        if self._aliases.is_alias(name):
            LOGGER.debug("Descriptor '%s' replaces an alias of the same name", name)
            self._aliases.remove_alias(name)
        existed = self.contains_descriptor(name)
        register(name, descriptor)
        if existed or self._singletons.contains_singleton(name):
            self._reset_component(name)

    def remove_descriptor(self, name: str) -> None:
        remove = getattr(self._store, "remove_descriptor", None)
        if not callable(remove):
            raise ConfigurationError(f"Descriptor store {type(self._store).__name__} is read-only")
        remove(name)
        self._reset_component(name)

    def _reset_component(self, name: str) -> None:
        self.invalidate(name)
        self._singletons.destroy_singleton(name)
        self._products.remove(name)
        with self._merge_lock:
            children = [
                n for n, mbd in self._merged.items()
                if mbd.parent_name is not None and n != name and self.transformed_name(mbd.parent_name) == name
            ]
        for child in children:
            self._reset_component(child)

    # -- aliases --------------------------------------------------------

    def register_alias(self, name: str, alias: str) -> None:
        self._aliases.register_alias(name, alias)

    def remove_alias(self, alias: str) -> None:
        self._aliases.remove_alias(alias)

    def is_alias(self, name: str) -> bool:
        return self._aliases.is_alias(name)

    def has_alias(self, name: str, alias: str) -> bool:
        return self._aliases.has_alias(name, alias)

    def resolve_aliases(self, value_resolver: Optional[ValueResolver] = None) -> None:
        """Rewrite every alias through *value_resolver* (the embedded value resolvers by default)."""
        self._aliases.resolve_aliases(value_resolver or self.resolve_embedded_value)

    # -- value resolvers ------------------------------------------------

    def add_value_resolver(self, resolver: ValueResolver) -> None:
        if resolver is None:
            raise ValueError("resolver must not be None")
        self._value_resolvers.append(resolver)

    def has_value_resolvers(self) -> bool:
        return bool(self._value_resolvers)

    def resolve_embedded_value(self, value: Optional[str]) -> Optional[str]:
        """Pass *value* through every value resolver in order; ``None`` short-circuits."""
        result = value
        for resolver in self._value_resolvers:
            if result is None:
                return None
            result = resolver(result)
        return result

    # -- singletons and dependencies -------------------------------------

    def register_singleton(self, name: str, instance: Any) -> None:
        """Register a ready-made instance as a singleton under *name*.

        Raises:
            SingletonAlreadyRegisteredError: If *name* is already bound.
        """
        if not name:
            raise ValueError("Singleton name must not be empty")
        self._singletons.register_singleton(name, instance)

    def add_singleton_factory(self, name: str, factory: Callable[[], Any]) -> None:
        self._singletons.add_singleton_factory(name, factory)

    def is_singleton_currently_in_creation(self, name: str) -> bool:
        return self._singletons.is_currently_in_creation(name)

    def singleton_names(self) -> List[str]:
        return self._singletons.singleton_names()

    def register_dependent(self, name: str, dependent_name: str) -> None:
        """Record that *dependent_name* depends on *name*."""
        self._singletons.register_dependent(self.transformed_name(name), self.transformed_name(dependent_name))

    def is_dependent(self, name: str, dependent_name: str) -> bool:
        return self._singletons.is_dependent(self.transformed_name(name), self.transformed_name(dependent_name))

    def get_dependents(self, name: str) -> List[str]:
        return self._singletons.dependents_of(self.transformed_name(name))

    def get_dependencies(self, name: str) -> List[str]:
        return self._singletons.dependencies_of(self.transformed_name(name))

    # -- scopes ---------------------------------------------------------

    def register_scope(self, name: str, scope: Optional[ScopeProtocol] = None) -> ScopeProtocol:
        return self._scopes.register_scope(name, scope)

    def registered_scope_names(self) -> Tuple[str, ...]:
        return self._scopes.names()

    def get_registered_scope(self, name: str) -> Optional[ScopeProtocol]:
        if not name:
            raise ValueError("Scope name must not be empty")
        return self._scopes.get(name)

    @contextmanager
    def scope(self, name: str, scope_id: Any):
        """Activate *scope_id* of the :class:`ContextVarScope` *name* for the enclosed block."""
        impl = self._scopes.get(name)
        if impl is None:
            raise UnknownScopeError(name)
        activate = getattr(impl, "activate", None)
        if not callable(activate):
            raise ScopeError(f"Scope '{name}' cannot be activated explicitly")
        token = activate(scope_id)
        try:
            yield self
        finally:
            impl.deactivate(token)

    # -- configuration --------------------------------------------------

    @property
    def parent(self) -> Optional["ComponentContainer"]:
        return self._parent

    def set_parent(self, parent: Optional["ComponentContainer"]) -> None:
        """Attach *parent*.

        Raises:
            ConfigurationError: If a different parent is already attached,
                or *parent* is this container.
        """
        if parent is self:
            raise ConfigurationError("A container cannot be its own parent")
        if self._parent is not None and self._parent is not parent:
            raise ConfigurationError(
                f"Already associated with parent container {self._parent!r}: cannot be replaced by {parent!r}"
            )
        self._parent = parent

    @property
    def cache_metadata(self) -> bool:
        return self._cache_metadata

    @cache_metadata.setter
    def cache_metadata(self, value: bool) -> None:
        self._cache_metadata = bool(value)

    @property
    def type_converter(self) -> TypeConverter:
        return self._type_converter

    def set_type_converter(self, converter: TypeConverter) -> None:
        self._type_converter = converter

    def add_post_processor(self, processor: ComponentPostProcessor) -> None:
        """Append *processor*; adding an already registered one moves it to the end."""
        if processor is None:
            raise ValueError("processor must not be None")
        with self._pp_lock:
            if processor in self._post_processors:
                self._post_processors.remove(processor)
            self._post_processors.append(processor)

    @property
    def post_processors(self) -> Tuple[ComponentPostProcessor, ...]:
        return tuple(self._post_processors)

    @property
    def post_processor_count(self) -> int:
        return len(self._post_processors)

    def copy_configuration_from(self, other: "ComponentContainer") -> None:
        """Copy settings (not descriptors or instances) from *other*."""
        self._cache_metadata = other._cache_metadata
        self._type_converter = other._type_converter
        self._type_predictor = other._type_predictor
        for p in other.post_processors:
            self.add_post_processor(p)
        self._scopes.update(other._scopes)
        self._value_resolvers.extend(other._value_resolvers)

    # -- destruction ----------------------------------------------------

    def requires_destruction(self, instance: Any, descriptor: Optional[ComponentDescriptor] = None) -> bool:
        if instance is None:
            return False
        return has_destroy_method(instance, descriptor) or bool(applicable_processors(instance, self._post_processors))

    def register_disposable_if_necessary(self, name: str, instance: Any, descriptor: ComponentDescriptor) -> None:
        """Arrange for *instance* to be destroyed with its scope.

        Singletons are destroyed by :meth:`destroy_singletons`, custom-scoped
        instances through their scope's destruction callbacks. Prototypes
        are never tracked.
        """
        if descriptor.is_prototype or not self.requires_destruction(instance, descriptor):
            return
        adapter = DisposableAdapter(instance, name, descriptor, self.post_processors)
        if descriptor.is_singleton:
            self._singletons.register_disposable(name, adapter)
            return
        scope = self._scopes.get(descriptor.scope)
        if scope is None:
            raise UnknownScopeError(descriptor.scope)
        scope.register_destruction_callback(name, adapter.destroy)

    def destroy_component(self, name: str, instance: Any) -> None:
        """Run every destruction hook of *instance*, typically a prototype."""
        canonical = self.transformed_name(name)
        mbd = self._merged_local_descriptor(canonical) if self.contains_descriptor(canonical) else None
        DisposableAdapter(instance, canonical, mbd, self.post_processors).destroy()

    def destroy_scoped(self, name: str) -> None:
        """Remove *name* from its custom scope's active context and destroy it.

        Raises:
            ScopeError: If *name* is a singleton or prototype.
            UnknownScopeError: If its scope is not registered.
        """
        canonical = self.transformed_name(name)
        mbd = self._merged_local_descriptor(canonical)
        if mbd.is_singleton or mbd.is_prototype:
            raise ScopeError(f"Component '{canonical}' is not custom-scoped")
        scope = self._scopes.get(mbd.scope)
        if scope is None:
            raise UnknownScopeError(mbd.scope)
        instance = scope.remove(canonical)
        if instance is not None:
            DisposableAdapter(instance, canonical, mbd, self.post_processors).destroy()

    def destroy_singletons(self) -> None:
        """Destroy every singleton, dependents before their dependencies."""
        self._singletons.destroy_singletons()
        self._products.clear()

    def shutdown(self) -> None:
        LOGGER.info("[%s] Shutting down container", self.container_id[:8])
        self.destroy_singletons()

    # -- diagnostics ----------------------------------------------------

    def stats(self) -> Dict[str, Any]:
        resolves = self._resolve_count
        hits = self._cache_hit_count
        total = resolves + hits
        return {
            "container_id": self.container_id,
            "uptime_seconds": time.time() - self._created_at,
            "total_resolves": resolves,
            "cache_hits": hits,
            "cache_hit_rate": (hits / total) if total > 0 else 0.0,
            "registered_components": len(self.descriptor_names()),
            "singletons": self._singletons.singleton_count,
        }

    def __repr__(self) -> str:
        return f"ComponentContainer(id={self.container_id!r})"
