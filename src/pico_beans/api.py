from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Tuple, Union

from .config_builder import ContainerConfig
from .constants import LOGGER
from .container import ComponentContainer, ContainerObserver
from .creation import CreationCapability
from .descriptors import ComponentDescriptor, DescriptorHolder, DescriptorRegistry
from .exceptions import CircularDependsOnError
from .scope import ScopeProtocol

DescriptorsT = Union[Mapping[str, ComponentDescriptor], Iterable[DescriptorHolder]]


def _iter_descriptors(descriptors: DescriptorsT) -> Iterable[Tuple[str, ComponentDescriptor, Tuple[str, ...]]]:
    if isinstance(descriptors, Mapping):
        for name, d in descriptors.items():
            if isinstance(d, DescriptorHolder):
                yield name, d.descriptor, d.aliases
            else:
                yield name, d, ()
        return
    for holder in descriptors:
        yield holder.name, holder.descriptor, holder.aliases


def init(
    descriptors: DescriptorsT,
    *,
    aliases: Optional[Mapping[str, str]] = None,
    singletons: Optional[Mapping[str, Any]] = None,
    parent: Optional[ComponentContainer] = None,
    config: Optional[ContainerConfig] = None,
    scopes: Optional[Mapping[str, ScopeProtocol]] = None,
    creator: Optional[CreationCapability] = None,
    observers: Optional[List[ContainerObserver]] = None,
    container_id: Optional[str] = None,
    eager: bool = True,
) -> ComponentContainer:
    """Build and populate a :class:`ComponentContainer`.

    Args:
        descriptors: Name-to-descriptor mapping, or an iterable of
            :class:`DescriptorHolder` (whose aliases are registered too).
        aliases: Alias-to-name mapping.
        singletons: Ready-made instances registered as singletons.
        parent: Parent container.
        config: Container settings.
        scopes: Custom scope strategies by name.
        creator: Creation capability; :class:`SimpleCreator` by default.
        observers: Resolution observers.
        container_id: Identifier used in logs and stats.
        eager: Pre-instantiate non-lazy singletons before returning.

    Raises:
        CircularDependsOnError: If the declared ``depends_on`` graph has a
            cycle. Nothing is created in that case.
    """
    container = ComponentContainer(
        DescriptorRegistry(),
        creator=creator,
        parent=parent,
        config=config,
        observers=observers,
        container_id=container_id,
    )
    for scope_name, impl in (scopes or {}).items():
        container.register_scope(scope_name, impl)
    for name, descriptor, holder_aliases in _iter_descriptors(descriptors):
        container.register_descriptor(name, descriptor)
        for alias in holder_aliases:
            container.register_alias(name, alias)
    for alias, name in (aliases or {}).items():
        container.register_alias(name, alias)
    for name, instance in (singletons or {}).items():
        container.register_singleton(name, instance)

    _fail_fast_depends_on_check(container)
    if eager:
        container.preinstantiate_singletons()
    LOGGER.info(
        "[%s] Container initialised with %d descriptors", container.container_id[:8], len(container.descriptor_names())
    )
    return container


def _find_cycle(graph: Dict[str, Tuple[str, ...]]) -> Optional[Tuple[str, ...]]:
    temp: Set[str] = set()
    perm: Set[str] = set()
    stack: List[str] = []

    def visit(n: str) -> Optional[Tuple[str, ...]]:
        if n in perm:
            return None
        if n in temp:
            idx = stack.index(n)
            return tuple(stack[idx:] + [n])

        temp.add(n)
        stack.append(n)

        for m in graph.get(n, ()):
            c = visit(m)
            if c:
                return c

        stack.pop()
        temp.remove(n)
        perm.add(n)
        return None

    for node in graph.keys():
        c = visit(node)
        if c:
            return c
    return None


def _depends_on_graph(container: ComponentContainer) -> Dict[str, Tuple[str, ...]]:
    graph: Dict[str, Tuple[str, ...]] = {}
    for name in container.descriptor_names():
        mbd = container.get_merged_descriptor(name)
        graph[name] = tuple(container.transformed_name(d) for d in mbd.depends_on)
    return graph


def _fail_fast_depends_on_check(container: ComponentContainer) -> None:
    cyc = _find_cycle(_depends_on_graph(container))
    if not cyc:
        return
    LOGGER.debug("Circular depends-on declaration: %s", " -> ".join(cyc))
    raise CircularDependsOnError(cyc[0], cyc[1])
