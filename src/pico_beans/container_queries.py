import importlib
from typing import Any, List, Optional

from .constants import FACTORY_PREFIX, LOGGER
from .descriptors import MergedDescriptor
from .exceptions import ComponentCreationError, ComponentTypeResolutionError, CurrentlyInCreationError
from .factory_components import (
    FactoryComponent,
    SmartFactoryComponent,
    is_factory_dereference,
    type_for_factory,
)


def _import_type(path: str) -> Any:
    if ":" in path:
        module_name, _, qualname = path.partition(":")
    else:
        module_name, _, qualname = path.rpartition(".")
        if not module_name:
            raise ImportError(f"'{path}' is not a dotted path")
    obj: Any = importlib.import_module(module_name)
    for part in qualname.split("."):
        obj = getattr(obj, part)
    return obj


def _is_subclass(t: Any, base: Any) -> bool:
    try:
        return isinstance(t, type) and issubclass(t, base)
    except TypeError:
        return False


def _is_instance(obj: Any, t: Any) -> bool:
    try:
        return isinstance(obj, t)
    except TypeError:
        return False


class _QueryMixin:
    """Read-only queries.

    Each query follows the precedence of ``get``: a manually registered or
    already created singleton first, then parent delegation when the name
    has no local descriptor, then the merged local descriptor.
    """

    def contains(self, name: str) -> bool:
        canonical = self.transformed_name(name)
        if self._singletons.contains_singleton(canonical) or self.contains_descriptor(canonical):
            return not is_factory_dereference(name) or self.is_factory(name)
        parent = self._parent
        return parent is not None and parent.contains(self._original_name(name))

    def contains_local(self, name: str) -> bool:
        canonical = self.transformed_name(name)
        return (self._singletons.contains_singleton(canonical) or self.contains_descriptor(canonical)) and (
            not is_factory_dereference(name) or self.is_factory(canonical)
        )

    def is_singleton(self, name: str) -> bool:
        """Return whether ``get(name)`` always yields the same shared instance.

        Raises:
            ComponentNotFoundError: If *name* is unknown in the hierarchy.
        """
        canonical = self.transformed_name(name)
        instance = self._singletons.get_singleton(canonical, allow_early_reference=False)
        if instance is not None:
            if isinstance(instance, FactoryComponent):
                return is_factory_dereference(name) or instance.is_singleton()
            return not is_factory_dereference(name)
        if self._singletons.contains_singleton(canonical):
            return True

        parent = self._parent
        if parent is not None and not self.contains_descriptor(canonical):
            return parent.is_singleton(self._original_name(name))

        mbd = self._merged_local_descriptor(canonical)
        if not mbd.is_singleton:
            return False
        if self._is_factory_component(canonical, mbd):
            if is_factory_dereference(name):
                return True
            factory = self.get(FACTORY_PREFIX + canonical)
            return factory.is_singleton()
        return not is_factory_dereference(name)

    def is_prototype(self, name: str) -> bool:
        """Return whether ``get(name)`` yields an independent instance every time.

        Raises:
            ComponentNotFoundError: If *name* is unknown in the hierarchy.
        """
        canonical = self.transformed_name(name)
        parent = self._parent
        if parent is not None and not self.contains_descriptor(canonical):
            return parent.is_prototype(self._original_name(name))

        mbd = self._merged_local_descriptor(canonical)
        if mbd.is_prototype:
            return not is_factory_dereference(name) or self._is_factory_component(canonical, mbd)
        if is_factory_dereference(name):
            return False
        if self._is_factory_component(canonical, mbd):
            factory = self.get(FACTORY_PREFIX + canonical)
            return (isinstance(factory, SmartFactoryComponent) and factory.is_prototype()) or not factory.is_singleton()
        return False

    def is_type_match(self, name: str, type_to_match: type) -> bool:
        """Return whether ``get(name)`` would yield an instance of *type_to_match*.

        Answers without creating anything when possible; a factory's product
        type may require a speculative creation of the factory, whose
        failure yields ``False``.
        """
        canonical = self.transformed_name(name)
        instance = self._singletons.get_singleton(canonical, allow_early_reference=False)
        if instance is not None:
            if isinstance(instance, FactoryComponent):
                if not is_factory_dereference(name):
                    t = type_for_factory(instance)
                    return t is not None and _is_subclass(t, type_to_match)
                return _is_instance(instance, type_to_match)
            return not is_factory_dereference(name) and _is_instance(instance, type_to_match)
        if self._singletons.contains_singleton(canonical) and not self.contains_descriptor(canonical):
            return False

        parent = self._parent
        if parent is not None and not self.contains_descriptor(canonical):
            return parent.is_type_match(self._original_name(name), type_to_match)

        mbd = self._merged_local_descriptor(canonical)

        dbd = mbd.decorated
        if dbd is not None and not is_factory_dereference(name):
            tbd = self.merge_descriptor(dbd.name, dbd.descriptor, mbd)
            target = self.predict_component_type(dbd.name, tbd)
            if target is not None and not _is_subclass(target, FactoryComponent):
                return _is_subclass(target, type_to_match)

        component_type = self.predict_component_type(canonical, mbd)
        if component_type is None:
            return False
        if _is_subclass(component_type, FactoryComponent):
            if not is_factory_dereference(name):
                component_type = self.get_type_for_factory(canonical, mbd)
                if component_type is None:
                    return False
        elif is_factory_dereference(name):
            return False
        return _is_subclass(component_type, type_to_match)

    def get_type(self, name: str) -> Optional[type]:
        """Return the type ``get(name)`` would yield, or ``None`` if it cannot be determined."""
        canonical = self.transformed_name(name)
        instance = self._singletons.get_singleton(canonical, allow_early_reference=False)
        if instance is not None:
            if isinstance(instance, FactoryComponent) and not is_factory_dereference(name):
                return type_for_factory(instance)
            return type(instance)
        if self._singletons.contains_singleton(canonical) and not self.contains_descriptor(canonical):
            return None

        parent = self._parent
        if parent is not None and not self.contains_descriptor(canonical):
            return parent.get_type(self._original_name(name))

        mbd = self._merged_local_descriptor(canonical)

        dbd = mbd.decorated
        if dbd is not None and not is_factory_dereference(name):
            tbd = self.merge_descriptor(dbd.name, dbd.descriptor, mbd)
            target = self.predict_component_type(dbd.name, tbd)
            if target is not None and not _is_subclass(target, FactoryComponent):
                return target

        component_type = self.predict_component_type(canonical, mbd)
        if component_type is not None and _is_subclass(component_type, FactoryComponent):
            if not is_factory_dereference(name):
                return self.get_type_for_factory(canonical, mbd)
            return component_type
        return None if is_factory_dereference(name) else component_type

    def get_aliases(self, name: str) -> List[str]:
        """Return the other names *name* is known by, including the canonical name and parent aliases."""
        canonical = self.transformed_name(name)
        factory_prefix = is_factory_dereference(name)
        full_name = FACTORY_PREFIX + canonical if factory_prefix else canonical
        aliases: List[str] = []
        if full_name != name:
            aliases.append(full_name)
        for retrieved in self._aliases.get_aliases(canonical):
            alias = (FACTORY_PREFIX if factory_prefix else "") + retrieved
            if alias != name:
                aliases.append(alias)
        if not self._singletons.contains_singleton(canonical) and not self.contains_descriptor(canonical):
            parent = self._parent
            if parent is not None:
                aliases.extend(parent.get_aliases(full_name))
        return aliases

    def is_factory(self, name: str) -> bool:
        """Return whether *name* is backed by a :class:`FactoryComponent`."""
        canonical = self.transformed_name(name)
        instance = self._singletons.get_singleton(canonical, allow_early_reference=False)
        if instance is not None:
            return isinstance(instance, FactoryComponent)
        if self._singletons.contains_singleton(canonical):
            return False
        parent = self._parent
        if not self.contains_descriptor(canonical) and parent is not None and hasattr(parent, "is_factory"):
            return parent.is_factory(name)
        return self._is_factory_component(canonical, self._merged_local_descriptor(canonical))

    def is_currently_in_creation(self, name: str) -> bool:
        canonical = self.transformed_name(name)
        return self._singletons.is_currently_in_creation(canonical) or self._prototypes.is_in_creation(canonical)

    def is_name_in_use(self, name: str) -> bool:
        return self._aliases.is_alias(name) or self.contains_local(name) or self._singletons.has_dependents(name)

    # -- type prediction ------------------------------------------------

    def resolve_component_type(self, name: str, mbd: MergedDescriptor) -> Optional[type]:
        """Return the class declared by *mbd*, importing ``type_name`` on first use.

        Raises:
            ComponentTypeResolutionError: If ``type_name`` cannot be imported.
        """
        if mbd.component_type is not None:
            return mbd.component_type
        if mbd.resolved_type is not None:
            return mbd.resolved_type
        if not mbd.type_name:
            return None
        path = self.resolve_embedded_value(mbd.type_name)
        try:
            resolved = _import_type(path)
        except (ImportError, AttributeError, ValueError) as e:
            raise ComponentTypeResolutionError(name, path, e) from e
        if not isinstance(resolved, type):
            raise ComponentTypeResolutionError(name, path, TypeError(f"{resolved!r} is not a class"))
        mbd.resolved_type = resolved
        return resolved

    def predict_component_type(self, name: str, mbd: MergedDescriptor) -> Optional[type]:
        """Best-effort type of the raw instance *mbd* produces, without creating it.

        Factory-method and supplier descriptors are opaque here and yield
        ``None``.
        """
        if mbd.factory_method_name or mbd.instance_supplier is not None:
            return None
        return self.resolve_component_type(name, mbd)

    def _is_factory_component(self, name: str, mbd: MergedDescriptor) -> bool:
        if mbd.is_factory_component is None:
            t = self.predict_component_type(name, mbd)
            mbd.is_factory_component = _is_subclass(t, FactoryComponent)
        return mbd.is_factory_component

    def get_type_for_factory(self, name: str, mbd: MergedDescriptor) -> Optional[type]:
        """Determine the product type of the factory component *name*.

        Asks the optional type predictor first; otherwise creates the
        factory speculatively (singletons only) and asks it. Creation
        failures are logged and yield ``None``.
        """
        predictor = self._type_predictor
        if predictor is not None:
            predicted = predictor.predict_product_type(name, mbd)
            if predicted is not None:
                return predicted
        if mbd.abstract or not mbd.is_singleton:
            return None
        existed = self._singletons.contains_singleton(name)
        try:
            factory = self._do_get(FACTORY_PREFIX + name, FactoryComponent, None, True)
        except ComponentCreationError as e:
            if isinstance(e, CurrentlyInCreationError):
                LOGGER.debug("Component currently in creation on factory type check: %s", e)
            elif mbd.is_lazy_init:
                LOGGER.debug("Creation exception on lazy factory component type check: %s", e)
            else:
                LOGGER.warning("Creation exception on non-lazy factory component type check: %s", e)
            return None
        product_type = type_for_factory(factory)
        if not existed:
            self.remove_singleton_if_created_for_type_check_only(name)
        return product_type
