# pico_beans/decorators.py
from __future__ import annotations

from typing import Any, Callable

from .constants import PICO_META


def _mark(fn: Callable[..., Any], flag: str) -> Callable[..., Any]:
    meta = dict(getattr(fn, PICO_META, {}))
    meta[flag] = True
    setattr(fn, PICO_META, meta)
    return fn


def cleanup(fn):
    """Mark a method to be called when its component is destroyed."""
    return _mark(fn, "cleanup")


def initializer(fn):
    """Mark a method to be called once the component's properties are populated."""
    return _mark(fn, "init")


def has_marker(fn: Any, flag: str) -> bool:
    return bool(getattr(fn, PICO_META, {}).get(flag, False))


__all__ = ["cleanup", "initializer", "has_marker"]
