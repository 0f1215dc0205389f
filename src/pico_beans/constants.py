"""Constants used throughout the pico-beans framework.

This module defines the framework logger, the built-in scope identifiers,
the dereference prefix used to address a factory component itself, and the
attribute name stamped onto lifecycle-marked methods.
"""

import logging

LOGGER_NAME: str = "pico_beans"
"""Default logger name for the pico-beans framework."""

LOGGER: logging.Logger = logging.getLogger(LOGGER_NAME)
"""Pre-configured logger instance for pico-beans internal diagnostics."""

PICO_META: str = "_pico_meta"
"""Attribute name storing the lifecycle metadata dictionary (``cleanup``, ``init``)."""

SCOPE_SINGLETON: str = "singleton"
"""Built-in scope: one instance per container lifetime."""

SCOPE_PROTOTYPE: str = "prototype"
"""Built-in scope: a new instance on every resolution."""

FACTORY_PREFIX: str = "&"
"""Prefix requesting a factory component itself rather than its product."""
