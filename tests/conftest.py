import logging

import pytest

from pico_beans import ComponentContainer, ComponentDescriptor
from pico_beans.constants import LOGGER_NAME

log_capture: list[str] = []


class ListLogHandler(logging.Handler):
    def emit(self, record):
        log_capture.append(self.format(record))


@pytest.fixture(autouse=True)
def reset_logging_capture():
    log_capture.clear()
    logger = logging.getLogger(LOGGER_NAME)
    handler = ListLogHandler(level=logging.DEBUG)
    previous = logger.level
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    yield log_capture
    logger.removeHandler(handler)
    logger.setLevel(previous)


@pytest.fixture
def container():
    c = ComponentContainer()
    yield c
    c.shutdown()


@pytest.fixture
def define(container):
    """Register a descriptor on the ``container`` fixture and return it."""

    def _define(name, component_type=None, **kwargs):
        d = ComponentDescriptor(component_type=component_type, **kwargs)
        container.register_descriptor(name, d)
        return d

    return _define
