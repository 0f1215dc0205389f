"""Per-thread tracking of prototype and custom-scoped creations.

Markers live in a :class:`contextvars.ContextVar` owned by one tracker, so
unrelated threads (and tasks with their own context) never see each other's
in-flight names. The common non-nested case stores a bare string; a
frozenset is only built once a second name is in flight.
"""

import contextvars
from typing import FrozenSet, Optional, Union

_Marker = Optional[Union[str, FrozenSet[str]]]


class PrototypeCreationTracker:
    def __init__(self, label: str = "pico_prototypes_in_creation") -> None:
        self._var: contextvars.ContextVar[_Marker] = contextvars.ContextVar(label, default=None)

    def is_in_creation(self, name: str) -> bool:
        current = self._var.get()
        if current is None:
            return False
        if isinstance(current, str):
            return current == name
        return name in current

    def before_creation(self, name: str) -> None:
        current = self._var.get()
        if current is None:
            self._var.set(name)
        elif isinstance(current, str):
            self._var.set(frozenset((current, name)))
        else:
            self._var.set(current | {name})

    def after_creation(self, name: str) -> None:
        current = self._var.get()
        if isinstance(current, str):
            if current == name:
                self._var.set(None)
        elif current is not None:
            remaining = current - {name}
            self._var.set(remaining or None)

    def names(self) -> FrozenSet[str]:
        current = self._var.get()
        if current is None:
            return frozenset()
        if isinstance(current, str):
            return frozenset((current,))
        return current
