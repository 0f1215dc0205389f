from typing import Any, Dict, Optional, Set

from .constants import LOGGER, SCOPE_SINGLETON
from .descriptors import ComponentDescriptor, MergedDescriptor
from .exceptions import AbstractComponentError, ComponentNotFoundError, UnresolvableParentError


class _MergeMixin:
    """Descriptor merging and creation-started bookkeeping.

    The merge cache and the already-created set share ``_merge_lock``:
    merge-cache writes, created-marking and invalidation never interleave,
    so no caller observes a half-merged descriptor and a cached name never
    gets two diverging merges.
    """

    _merged: Dict[str, MergedDescriptor]
    _already_created: Set[str]
    _merging: Set[str]

    def get_merged_descriptor(self, name: str) -> MergedDescriptor:
        """Return the merged descriptor for *name*, consulting the parent when it is not local."""
        canonical = self.transformed_name(name)
        if not self.contains_descriptor(canonical) and isinstance(self._parent, _MergeMixin):
            return self._parent.get_merged_descriptor(canonical)
        return self._merged_local_descriptor(canonical)

    def _merged_local_descriptor(self, name: str) -> MergedDescriptor:
        mbd = self._merged.get(name)
        if mbd is not None and not mbd.stale:
            return mbd
        return self.merge_descriptor(name, self._store.get_descriptor(name))

    def merge_descriptor(
        self,
        name: str,
        descriptor: ComponentDescriptor,
        containing: Optional[ComponentDescriptor] = None,
    ) -> MergedDescriptor:
        """Flatten *descriptor* over its parent chain.

        Args:
            name: Name the descriptor is registered under.
            descriptor: The raw descriptor.
            containing: Descriptor of the owning component for inner
                descriptors; inner merges are never cached.

        Raises:
            UnresolvableParentError: If the parent cannot be found locally
                or in any ancestor container, or the parent chain loops.
        """
        with self._merge_lock:
            mbd: Optional[MergedDescriptor] = None
            if containing is None:
                mbd = self._merged.get(name)
                if mbd is not None and mbd.stale:
                    mbd = None
            if mbd is not None:
                return mbd

            if descriptor.parent_name is None:
                mbd = MergedDescriptor.from_descriptor(descriptor)
            else:
                parent = self._merged_parent(name, descriptor)
                mbd = MergedDescriptor.from_descriptor(parent)
                mbd.resolved_type = None
                mbd.is_factory_component = None
                mbd.override_from(descriptor)
                mbd.parent_name = descriptor.parent_name

            if not mbd.scope:
                mbd.scope = SCOPE_SINGLETON
            if containing is not None and not containing.is_singleton and mbd.is_singleton:
                mbd.scope = containing.scope
            if containing is None and self._cache_metadata:
                self._merged[name] = mbd
            return mbd

    def _merged_parent(self, name: str, descriptor: ComponentDescriptor) -> MergedDescriptor:
        parent_name = self.transformed_name(descriptor.parent_name)
        if name in self._merging:
            raise UnresolvableParentError(name, descriptor.parent_name, ValueError("parent chain loops back"))
        self._merging.add(name)
        try:
            if parent_name != name:
                return self.get_merged_descriptor(parent_name)
            if isinstance(self._parent, _MergeMixin):
                return self._parent.get_merged_descriptor(parent_name)
            raise ComponentNotFoundError(
                descriptor.parent_name,
                msg=f"Parent name '{descriptor.parent_name}' is equal to component name '{name}': "
                f"cannot be resolved without a parent container",
            )
        except ComponentNotFoundError as e:
            raise UnresolvableParentError(name, descriptor.parent_name, e) from e
        finally:
            self._merging.discard(name)

    def check_merged_descriptor(self, mbd: MergedDescriptor, name: str, args: Any = None) -> None:
        if mbd.abstract:
            raise AbstractComponentError(name)

    def invalidate(self, name: str) -> None:
        """Drop the cached merge of *name*."""
        with self._merge_lock:
            mbd = self._merged.pop(name, None)
            if mbd is not None:
                mbd.stale = True

    def clear_metadata_cache(self) -> None:
        """Drop cached merges of every name whose creation has not started yet."""
        with self._merge_lock:
            for name in list(self._merged):
                if not self.is_eligible_for_metadata_caching(name):
                    self._merged.pop(name).stale = True

    def mark_as_created(self, name: str) -> None:
        """Record that creation of *name* has started.

        The first marking drops the cached merge so metadata changed before
        first creation is re-merged exactly once.
        """
        if name not in self._already_created:
            with self._merge_lock:
                if name not in self._already_created:
                    mbd = self._merged.pop(name, None)
                    if mbd is not None:
                        mbd.stale = True
                    self._already_created.add(name)

    def cleanup_after_creation_failure(self, name: str) -> None:
        with self._merge_lock:
            self._already_created.discard(name)

    def is_eligible_for_metadata_caching(self, name: str) -> bool:
        return name in self._already_created

    def has_creation_started(self) -> bool:
        return bool(self._already_created)

    def remove_singleton_if_created_for_type_check_only(self, name: str) -> bool:
        """Discard a singleton that was only created to answer a type query."""
        if name not in self._already_created:
            LOGGER.debug("Discarding singleton '%s' created for a type check only", name)
            self._singletons.destroy_singleton(name)
            self._products.remove(name)
            return True
        return False
