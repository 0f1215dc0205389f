"""Type conversion applied when a resolved instance does not match the requested type."""

from enum import Enum
from typing import Any, Callable, Dict, Optional

from .exceptions import ConversionError

_TRUE = ("1", "true", "yes", "on", "y", "t")
_FALSE = ("0", "false", "no", "off", "n", "f")


class TypeAdapterRegistry:
    def __init__(self):
        self._adapters: Dict[type, Callable[[Any], Any]] = {}

    def register(self, t: type, fn: Callable[[Any], Any]) -> None:
        self._adapters[t] = fn

    def get(self, t: type) -> Optional[Callable[[Any], Any]]:
        return self._adapters.get(t)

    def copy(self) -> "TypeAdapterRegistry":
        other = TypeAdapterRegistry()
        other._adapters.update(self._adapters)
        return other


class TypeConverter:
    """Converts values to a required type.

    Resolution order: identity when *value* already is an instance, a
    registered adapter for the exact type, enum lookup by name or value,
    then primitive coercion (``str``, ``int``, ``float``, ``bool``).

    Args:
        adapters: Adapter registry to consult; a fresh one when omitted.
    """

    def __init__(self, adapters: Optional[TypeAdapterRegistry] = None) -> None:
        self.adapters = adapters if adapters is not None else TypeAdapterRegistry()

    def register_adapter(self, t: type, fn: Callable[[Any], Any]) -> None:
        self.adapters.register(t, fn)

    def convert_if_necessary(self, value: Any, required_type: Any) -> Any:
        """Return *value* converted to *required_type*.

        Raises:
            ConversionError: If no conversion applies or the adapter fails.
        """
        if required_type is None or required_type is Any or required_type is object:
            return value
        if not isinstance(required_type, type):
            raise ConversionError(value, required_type, f"Unsupported conversion target: {required_type!r}")
        if isinstance(value, required_type):
            return value

        adapter = self.adapters.get(required_type)
        if adapter is not None:
            try:
                return adapter(value)
            except ConversionError:
                raise
            except Exception as e:
                raise ConversionError(value, required_type, f"Adapter for {required_type.__name__} failed: {e}") from e

        if issubclass(required_type, Enum):
            return self._convert_enum(value, required_type)
        if required_type is bool:
            return self._coerce_bool(value)
        if required_type is int:
            return self._coerce_int(value)
        if required_type is float:
            return self._coerce_float(value)
        if required_type is str and isinstance(value, (int, float, bool)):
            return str(value)
        raise ConversionError(value, required_type)

    def _convert_enum(self, value: Any, t: type) -> Any:
        if isinstance(value, str):
            try:
                return t[value]
            except KeyError:
                pass
        for e in t:
            if e.value == value or str(e.value) == str(value):
                return e
        raise ConversionError(value, t, f"Invalid {t.__name__} value: {value!r}")

    def _coerce_int(self, value: Any) -> int:
        if isinstance(value, bool):
            raise ConversionError(value, int)
        if isinstance(value, int):
            return value
        if isinstance(value, str):
            try:
                return int(value.strip())
            except ValueError:
                pass
        raise ConversionError(value, int, f"Expected int, got {value!r}")

    def _coerce_float(self, value: Any) -> float:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return float(value)
        if isinstance(value, str):
            try:
                return float(value)
            except ValueError:
                pass
        raise ConversionError(value, float, f"Expected float, got {value!r}")

    def _coerce_bool(self, value: Any) -> bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            s = value.strip().lower()
            if s in _TRUE:
                return True
            if s in _FALSE:
                return False
        raise ConversionError(value, bool, f"Expected bool, got {value!r}")
