# tests/test_singletons.py
import threading
import time

import pytest

from pico_beans.exceptions import CurrentlyInCreationError, SingletonAlreadyRegisteredError
from pico_beans.singletons import SingletonRegistry


@pytest.fixture
def registry():
    return SingletonRegistry(poll_interval=0.01)


def test_register_and_lookup(registry):
    obj = object()
    registry.register_singleton("svc", obj)
    assert registry.get_singleton("svc") is obj
    assert registry.contains_singleton("svc")
    assert registry.singleton_names() == ["svc"]
    assert registry.singleton_count == 1


def test_register_twice_fails(registry):
    registry.register_singleton("svc", 1)
    with pytest.raises(SingletonAlreadyRegisteredError) as ei:
        registry.register_singleton("svc", 2)
    assert ei.value.existing == 1


def test_none_singleton_is_cached(registry):
    calls = []

    def create():
        calls.append(1)
        return None

    assert registry.get_or_create("nothing", create) is None
    assert registry.get_or_create("nothing", create) is None
    assert registry.contains_singleton("nothing")
    assert calls == [1]


def test_get_or_create_runs_callback_once(registry):
    calls = []
    first = registry.get_or_create("svc", lambda: calls.append(1) or object())
    second = registry.get_or_create("svc", lambda: calls.append(1) or object())
    assert first is second
    assert calls == [1]


def test_failure_evicts_early_reference_and_is_not_cached(registry):
    def create():
        registry.add_singleton_factory("svc", lambda: "early")
        assert registry.get_singleton("svc") == "early"
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError, match="boom"):
        registry.get_or_create("svc", create)

    assert registry.get_singleton("svc") is None
    assert not registry.contains_singleton("svc")
    assert not registry.is_currently_in_creation("svc")
    assert "svc" not in registry.singleton_names()
    assert registry.get_or_create("svc", lambda: "second") == "second"


def test_early_reference_visible_only_to_creating_thread(registry):
    seen = {}
    started = threading.Event()
    release = threading.Event()

    def create():
        registry.add_singleton_factory("svc", lambda: "early")
        seen["creator"] = registry.get_singleton("svc")
        started.set()
        release.wait(5)
        return "done"

    t = threading.Thread(target=registry.get_or_create, args=("svc", create))
    t.start()
    started.wait(5)
    seen["other"] = registry.get_singleton("svc")
    release.set()
    t.join(5)

    assert seen == {"creator": "early", "other": None}
    assert registry.get_singleton("svc") == "done"


def test_reentrant_creation_raises_currently_in_creation(registry):
    def create():
        return registry.get_or_create("svc", lambda: "inner")

    with pytest.raises(CurrentlyInCreationError):
        registry.get_or_create("svc", create)


def test_concurrent_callers_share_one_creation(registry):
    calls = []
    barrier = threading.Barrier(8)
    results = []

    def create():
        calls.append(threading.get_ident())
        time.sleep(0.05)
        return object()

    def worker():
        barrier.wait()
        results.append(registry.get_or_create("svc", create))

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(5)

    assert len(calls) == 1
    assert len(results) == 8
    assert all(r is results[0] for r in results)


def test_different_names_create_concurrently(registry):
    inside = threading.Barrier(2, timeout=5)

    def create():
        inside.wait()
        return object()

    threads = [threading.Thread(target=registry.get_or_create, args=(n, create)) for n in ("a", "b")]
    for t in threads:
        t.start()
    for t in threads:
        t.join(5)

    assert registry.contains_singleton("a") and registry.contains_singleton("b")


# --- Dependency graph ---

def test_dependency_graph_is_transitive(registry):
    registry.register_dependent("a", "b")
    registry.register_dependent("b", "c")
    assert registry.is_dependent("a", "b")
    assert registry.is_dependent("a", "c")
    assert not registry.is_dependent("c", "a")
    assert registry.dependents_of("a") == ["b"]
    assert registry.dependencies_of("c") == ["b"]
    assert registry.has_dependents("b")


def test_is_dependent_terminates_on_cycles(registry):
    registry.register_dependent("a", "b")
    registry.register_dependent("b", "a")
    assert registry.is_dependent("a", "a")
    assert not registry.is_dependent("a", "z")


def test_dependency_queries_while_graph_grows(registry):
    errors = []
    done = threading.Event()

    def writer():
        try:
            for i in range(2000):
                registry.register_dependent("root", f"dep{i}")
                registry.register_dependent(f"dep{i}", f"leaf{i}")
        except Exception as e:
            errors.append(e)
        finally:
            done.set()

    def reader():
        try:
            while not done.is_set():
                registry.is_dependent("root", "missing")
                registry.dependents_of("root")
                registry.has_dependents("root")
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=writer)] + [threading.Thread(target=reader) for _ in range(3)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert registry.is_dependent("root", "leaf1999")
    assert len(registry.dependents_of("root")) == 2000


# --- Destruction ---

class Recorder:
    def __init__(self, log, name):
        self.log = log
        self.name = name

    def destroy(self):
        self.log.append(self.name)


def test_destroy_singletons_reverse_order_and_dependents_first(registry):
    log = []
    for name in ("a", "b", "c"):
        registry.add_singleton(name, object())
        registry.register_disposable(name, Recorder(log, name))
    registry.register_dependent("a", "c")

    registry.destroy_singletons()

    assert log == ["c", "b", "a"]
    assert registry.singleton_count == 0


def test_destroying_dependency_destroys_dependents_first(registry):
    log = []
    for name in ("db", "repo", "service"):
        registry.add_singleton(name, object())
        registry.register_disposable(name, Recorder(log, name))
    registry.register_dependent("db", "repo")
    registry.register_dependent("repo", "service")

    registry.destroy_singleton("db")

    assert log == ["service", "repo", "db"]
    assert not registry.contains_singleton("repo")


def test_failing_destroy_is_logged_and_others_continue(registry, reset_logging_capture):
    log = []

    class Broken:
        def destroy(self):
            raise RuntimeError("cannot close")

    registry.add_singleton("ok", object())
    registry.register_disposable("ok", Recorder(log, "ok"))
    registry.add_singleton("broken", object())
    registry.register_disposable("broken", Broken())

    registry.destroy_singletons()

    assert log == ["ok"]
    assert any("cannot close" in line for line in reset_logging_capture)


def test_get_or_create_during_destruction_fails(registry):
    class Reentrant:
        def destroy(self):
            registry.get_or_create("late", object)

    registry.add_singleton("x", object())
    registry.register_disposable("x", Reentrant())
    registry.destroy_singletons()
    assert not registry.contains_singleton("late")
