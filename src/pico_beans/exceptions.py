"""Exception hierarchy for pico-beans.

All framework-specific exceptions inherit from :class:`PicoBeansError`, making
it easy to catch any pico-beans error with a single ``except PicoBeansError``
clause.
"""

from typing import Any, Optional


def _type_name(t: Any) -> str:
    return getattr(t, "__qualname__", None) or getattr(t, "__name__", str(t))


class PicoBeansError(Exception):
    """Base exception for all pico-beans errors."""

    pass


class ConfigurationError(PicoBeansError):
    """Raised for configuration problems (invalid sources, bad values, re-parenting)."""

    def __init__(self, msg: str):
        super().__init__(msg)


class ComponentNotFoundError(PicoBeansError):
    """Raised when no descriptor exists for a name anywhere in the hierarchy.

    Attributes:
        name: The requested component name.
    """

    def __init__(self, name: str, msg: Optional[str] = None):
        super().__init__(msg or f"No component named '{name}' is defined")
        self.name = name


class UnresolvableParentError(PicoBeansError):
    """Raised when a child descriptor's parent cannot be found locally or in any ancestor.

    Attributes:
        name: The child descriptor name.
        parent_name: The parent name that could not be resolved.
    """

    def __init__(self, name: str, parent_name: str, cause: Optional[BaseException] = None):
        detail = f"; cause: {cause}" if cause is not None else ""
        super().__init__(f"Could not resolve parent descriptor '{parent_name}' of component '{name}'{detail}")
        self.name = name
        self.parent_name = parent_name
        self.cause = cause


class AbstractComponentError(PicoBeansError):
    """Raised when an abstract descriptor is requested directly."""

    def __init__(self, name: str):
        super().__init__(f"Component '{name}' is abstract and cannot be instantiated")
        self.name = name


class ComponentCreationError(PicoBeansError):
    """Raised when the creation capability fails while creating a component.

    Attributes:
        name: The component name whose creation failed.
        cause: The original exception that caused the failure, if any.
    """

    def __init__(self, name: str, cause: Optional[BaseException] = None, msg: Optional[str] = None):
        if msg is None:
            if cause is not None:
                msg = f"Failed to create component '{name}'; cause: {cause.__class__.__name__}: {cause}"
            else:
                msg = f"Failed to create component '{name}'"
        super().__init__(msg)
        self.name = name
        self.cause = cause


class CurrentlyInCreationError(ComponentCreationError):
    """Raised when a component is requested while it is still being created
    and no early reference can be handed out (an unresolvable circular reference)."""

    def __init__(self, name: str, msg: Optional[str] = None):
        super().__init__(
            name,
            msg=msg or f"Component '{name}' is currently in creation: is there an unresolvable circular reference?",
        )


class CircularPrototypeError(CurrentlyInCreationError):
    """Raised when a prototype-scoped component is requested while it is already being created on the current thread."""

    def __init__(self, name: str):
        super().__init__(
            name,
            msg=f"Prototype component '{name}' is already in creation on this thread: "
            f"prototypes cannot resolve circular references",
        )


class CircularDependsOnError(ComponentCreationError):
    """Raised when declared ``depends_on`` relationships form a cycle.

    Attributes:
        dependency: The declared dependency closing the cycle.
    """

    def __init__(self, name: str, dependency: str):
        super().__init__(name, msg=f"Circular depends-on relationship between '{name}' and '{dependency}'")
        self.dependency = dependency


class FactoryComponentCreationError(ComponentCreationError):
    """Raised when a factory component fails to produce its object."""

    def __init__(self, name: str, cause: Optional[BaseException] = None, msg: Optional[str] = None):
        super().__init__(name, cause, msg=msg or f"Factory component '{name}' threw exception on object creation: {cause}")


class NotAFactoryError(PicoBeansError):
    """Raised when a dereference-form name addresses an instance that is not a factory component.

    Attributes:
        name: The canonical component name.
        actual_type: The type of the instance found.
    """

    def __init__(self, name: str, actual_type: type):
        super().__init__(f"Component '{name}' is expected to be a factory component but is of type {_type_name(actual_type)}")
        self.name = name
        self.actual_type = actual_type


class TypeMismatchError(PicoBeansError):
    """Raised when a resolved instance is not, and cannot be converted to, the required type.

    Attributes:
        name: The requested name.
        required_type: The type the caller asked for.
        actual_type: The runtime type of the resolved instance.
    """

    def __init__(self, name: str, required_type: Any, actual_type: Any):
        super().__init__(
            f"Component named '{name}' is expected to be of type '{_type_name(required_type)}' "
            f"but was actually of type '{_type_name(actual_type)}'"
        )
        self.name = name
        self.required_type = required_type
        self.actual_type = actual_type


class ConversionError(PicoBeansError):
    """Raised by the type converter when a value cannot be converted."""

    def __init__(self, value: Any, required_type: Any, msg: Optional[str] = None):
        super().__init__(msg or f"Cannot convert value of type '{_type_name(type(value))}' to '{_type_name(required_type)}'")
        self.value = value
        self.required_type = required_type


class ComponentTypeResolutionError(PicoBeansError):
    """Raised when a descriptor's ``type_name`` cannot be imported."""

    def __init__(self, name: str, type_name: str, cause: Optional[BaseException] = None):
        super().__init__(f"Cannot resolve type '{type_name}' for component '{name}': {cause}")
        self.name = name
        self.type_name = type_name
        self.cause = cause


class SingletonAlreadyRegisteredError(PicoBeansError):
    """Raised when registering a singleton under a name that is already bound to one."""

    def __init__(self, name: str, existing: Any):
        super().__init__(f"Could not register singleton under name '{name}': there is already {existing!r} bound")
        self.name = name
        self.existing = existing


class AliasError(PicoBeansError):
    """Base class for alias registry errors."""

    pass


class AliasConflictError(AliasError):
    """Raised when an alias is already registered for a different name and overriding is disabled."""

    def __init__(self, alias: str, name: str, registered_name: str):
        super().__init__(
            f"Cannot register alias '{alias}' for name '{name}': it is already registered for name '{registered_name}'"
        )
        self.alias = alias
        self.name = name
        self.registered_name = registered_name


class CircularAliasError(AliasError):
    """Raised when an alias registration would introduce an alias cycle."""

    def __init__(self, alias: str, name: str):
        super().__init__(
            f"Cannot register alias '{alias}' for name '{name}': circular reference - "
            f"'{name}' is a direct or indirect alias for '{alias}' already"
        )
        self.alias = alias
        self.name = name


class UnknownAliasError(AliasError):
    """Raised when removing an alias that is not registered."""

    def __init__(self, alias: str):
        super().__init__(f"No alias '{alias}' registered")
        self.alias = alias


class ScopeError(PicoBeansError):
    """Raised for scope-related errors (reserved names, invalid scope usage)."""

    def __init__(self, msg: str):
        super().__init__(msg)


class ScopeNotActiveError(ScopeError):
    """Raised by a scope strategy that has no active context for the calling thread."""

    def __init__(self, scope_name: str):
        super().__init__(f"Scope '{scope_name}' is not active for the current thread")
        self.scope_name = scope_name


class UnknownScopeError(ScopeError):
    """Raised when a descriptor names a scope that has not been registered."""

    def __init__(self, scope_name: str):
        super().__init__(f"No scope registered for scope name '{scope_name}'")
        self.scope_name = scope_name


class InactiveScopeError(ComponentCreationError):
    """Raised when a custom-scoped component is requested outside of its scope's context."""

    def __init__(self, name: str, scope_name: str, cause: Optional[BaseException] = None):
        super().__init__(
            name,
            cause,
            msg=f"Scope '{scope_name}' is not active for the current thread; consider defining a "
            f"scoped proxy for component '{name}' if you intend to refer to it from a singleton",
        )
        self.scope_name = scope_name
