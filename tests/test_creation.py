# tests/test_creation.py
import pytest

from pico_beans import ComponentDescriptor, ComponentRef, SimpleCreator
from pico_beans.exceptions import ComponentCreationError


class Engine:
    def __init__(self, power=100):
        self.power = power

    @classmethod
    def turbo(cls, power):
        return cls(power * 2)


class Garage:
    def build(self, power):
        return Engine(power + 1)


class Car:
    def __init__(self, engines=None, spec=None):
        self.engines = engines
        self.spec = spec


def test_unattached_creator_fails():
    with pytest.raises(RuntimeError, match="attached"):
        SimpleCreator().create("x", ComponentDescriptor(component_type=Engine))


def test_instance_supplier(container, define):
    define("engine", instance_supplier=lambda power: Engine(power), constructor_args=(7,))
    assert container.get("engine").power == 7


def test_static_factory_method(container, define):
    define("engine", Engine, factory_method_name="turbo", constructor_args=(10,))
    assert container.get("engine").power == 20


def test_component_hosted_factory_method(container, define):
    define("garage", Garage)
    define("engine", factory_component_name="garage", factory_method_name="build", constructor_args=(1,))
    assert container.get("engine").power == 2
    assert container.get_dependents("garage") == ["engine"]


def test_factory_method_pointing_back_to_itself(container, define):
    define("engine", factory_component_name="engine", factory_method_name="build")
    with pytest.raises(ComponentCreationError, match="points back"):
        container.get("engine")


def test_missing_factory_method(container, define):
    define("engine", Engine, factory_method_name="nope")
    with pytest.raises(ComponentCreationError, match="No factory method 'nope'"):
        container.get("engine")


def test_descriptor_without_type_or_supplier(container, define):
    define("empty")
    with pytest.raises(ComponentCreationError, match="declares no type or supplier"):
        container.get("empty")


def test_references_resolved_inside_collections(container, define):
    define("e1", Engine, constructor_args=(1,))
    define("e2", Engine, constructor_args=(2,))
    define(
        "car",
        Car,
        properties={
            "engines": [ComponentRef("e1"), ComponentRef("e2")],
            "spec": {"main": ComponentRef("e1"), "count": 2, "pair": (ComponentRef("e2"), "x")},
        },
    )

    car = container.get("car")
    e1, e2 = container.get("e1"), container.get("e2")
    assert car.engines == [e1, e2]
    assert car.spec == {"main": e1, "count": 2, "pair": (e2, "x")}
    assert container.get_dependencies("car") == ["e1", "e2"]
