# pico_beans/__init__.py
from importlib import metadata as _metadata

try:
    __version__ = _metadata.version("pico-beans")
except _metadata.PackageNotFoundError:
    __version__ = "0.1.0"

from .aliases import AliasRegistry
from .api import init
from .config_builder import ContainerConfig, EnvSource, FlatDictSource, configuration
from .config_runtime import PlaceholderResolver
from .config_sources import DictSource, FileTreeSource, JsonTreeSource, TreeSource, YamlTreeSource, tree_source_for
from .container import ComponentContainer, ContainerObserver
from .conversion import TypeAdapterRegistry, TypeConverter
from .creation import CreationCapability, SimpleCreator
from .decorators import cleanup, initializer
from .descriptors import (
    ComponentDescriptor,
    ComponentRef,
    DescriptorHolder,
    DescriptorRegistry,
    DescriptorStore,
    MergedDescriptor,
)
from .exceptions import (
    AbstractComponentError,
    AliasConflictError,
    AliasError,
    CircularAliasError,
    CircularDependsOnError,
    CircularPrototypeError,
    ComponentCreationError,
    ComponentNotFoundError,
    ComponentTypeResolutionError,
    ConfigurationError,
    ConversionError,
    CurrentlyInCreationError,
    FactoryComponentCreationError,
    InactiveScopeError,
    NotAFactoryError,
    PicoBeansError,
    ScopeError,
    ScopeNotActiveError,
    SingletonAlreadyRegisteredError,
    TypeMismatchError,
    UnknownAliasError,
    UnknownScopeError,
    UnresolvableParentError,
)
from .factory_components import FactoryComponent, SmartFactoryComponent, TypePredictor
from .lifecycle import ComponentPostProcessor, DestructionAwarePostProcessor, DisposableComponent
from .scope import ContextVarScope, ScopeProtocol, ScopeRegistry, ThreadScope

__all__ = [
    "__version__",
    "ComponentContainer",
    "ContainerObserver",
    "init",
    "ComponentDescriptor",
    "MergedDescriptor",
    "DescriptorHolder",
    "DescriptorRegistry",
    "DescriptorStore",
    "ComponentRef",
    "AliasRegistry",
    "FactoryComponent",
    "SmartFactoryComponent",
    "TypePredictor",
    "CreationCapability",
    "SimpleCreator",
    "ComponentPostProcessor",
    "DestructionAwarePostProcessor",
    "DisposableComponent",
    "cleanup",
    "initializer",
    "ScopeProtocol",
    "ScopeRegistry",
    "ContextVarScope",
    "ThreadScope",
    "TypeConverter",
    "TypeAdapterRegistry",
    "ContainerConfig",
    "configuration",
    "EnvSource",
    "FlatDictSource",
    "TreeSource",
    "DictSource",
    "FileTreeSource",
    "JsonTreeSource",
    "YamlTreeSource",
    "tree_source_for",
    "PlaceholderResolver",
    "PicoBeansError",
    "ConfigurationError",
    "ComponentNotFoundError",
    "UnresolvableParentError",
    "AbstractComponentError",
    "ComponentCreationError",
    "CurrentlyInCreationError",
    "CircularPrototypeError",
    "CircularDependsOnError",
    "FactoryComponentCreationError",
    "NotAFactoryError",
    "TypeMismatchError",
    "ConversionError",
    "ComponentTypeResolutionError",
    "SingletonAlreadyRegisteredError",
    "AliasError",
    "AliasConflictError",
    "CircularAliasError",
    "UnknownAliasError",
    "ScopeError",
    "ScopeNotActiveError",
    "UnknownScopeError",
    "InactiveScopeError",
]
