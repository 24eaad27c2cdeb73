"""
Thread names from heap thread objects.
"""

import pytest

from thread_registry import EmptyThreadRegistry, FieldNameCache, ThreadRegistry


def test_empty_registry():
    assert EmptyThreadRegistry().get_thread_name(1) is None


def test_core_field_names():
    objects = [
        {"_executionContext": 0, "_name": "Main", "_managedThreadId": 1},
        {"_executionContext": 0, "_name": None, "_managedThreadId": 4},
    ]
    registry = ThreadRegistry.from_thread_objects(objects, FieldNameCache())
    assert len(registry) == 2
    assert registry.get_thread_name(1) == "Main"
    assert registry.get_thread_name(4) is None
    assert registry.get_thread_name(42) is None


def test_framework_field_names():
    objects = [{"m_ManagedThreadId": 9, "m_Name": ".NET ThreadPool Worker"}]
    registry = ThreadRegistry.from_thread_objects(objects, FieldNameCache())
    assert registry.get_thread_name(9) == ".NET ThreadPool Worker"


def test_stops_once_all_live_threads_are_named():
    objects = [{"_managedThreadId": i, "_name": f"t{i}"} for i in range(1, 100)]
    registry = ThreadRegistry.from_thread_objects(objects, FieldNameCache(), live_ids=[1, 2, 3])
    assert len(registry) == 3


def test_field_cache_resolves_once():
    cache = FieldNameCache()
    assert cache.resolve_field_name("T", ["_name", "_managedThreadId"], "ManagedThreadId") == "_managedThreadId"
    # cached by (type, substring): the field list is not consulted again
    assert cache.resolve_field_name("T", [], "managedthreadid") == "_managedThreadId"


def test_field_cache_is_scoped_per_instance():
    FieldNameCache().resolve_field_name("T", ["_name"], "name")
    with pytest.raises(KeyError):
        FieldNameCache().resolve_field_name("T", ["_priority"], "name")
