#!/usr/bin/env python3
"""
Unit tests for PersistentStore: fail-soft reads and writes, read cache
"""

import sys
import pytest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from storage.backends import MemoryBackend
from storage.errors import StorageReadError, StorageWriteError
from storage.persistent_store import PersistentStore


class CountingBackend(MemoryBackend):
    """MemoryBackend that counts reads."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.reads = 0

    def get_item(self, key):
        self.reads += 1
        return super().get_item(key)


class Clock:
    def __init__(self):
        self.now = 500.0

    def __call__(self):
        return self.now


@pytest.fixture
def backend():
    return CountingBackend()


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def store(backend, clock):
    return PersistentStore(backend, default_cache_timeout_ms=1000, clock=clock)


def nested(depth):
    value = []
    for _ in range(depth):
        value = [value]
    return value


# ── Reads ────────────────────────────────────────────────────────

class TestGet:

    def test_round_trip(self, store):
        value = [{"id": "o1", "status": "pending", "items": [1, 2]}]
        assert store.set("orders", value) is True
        assert store.get("orders") == value

    def test_missing_returns_fallback(self, store):
        assert store.get("orders") is None
        assert store.get("orders", fallback=[]) == []

    def test_falsy_fallback_is_respected(self, store):
        assert store.get("count", fallback=0) == 0
        assert store.get("flag", fallback=False) is False

    def test_corrupt_payload_degrades_to_fallback(self, store, backend):
        backend.set_item("orders", "{not json")
        assert store.get("orders", fallback=[]) == []

    def test_unavailable_backend_degrades_to_fallback(self, store, backend):
        backend.available = False
        assert store.get("settings", fallback={"theme": "light"}) == {"theme": "light"}

    def test_stored_falsy_value_is_returned(self, store):
        store.set("orders", [])
        assert store.get("orders", fallback=["default"]) == []

    def test_deeply_nested_payload_degrades_to_fallback(self, store, backend):
        backend.set_item("routes", "[" * 100_000 + "]" * 100_000)
        assert store.get("routes", fallback=[]) == []
        assert store.get("routes", fallback=[], use_cache=True) == []


class TestReadCache:

    def test_cached_read_skips_backend(self, store, backend):
        store.set("orders", [1])
        store.get("orders", use_cache=True)
        reads = backend.reads

        assert store.get("orders", use_cache=True) == [1]
        assert backend.reads == reads

    def test_uncached_read_always_hits_backend(self, store, backend):
        store.set("orders", [1])
        store.get("orders")
        store.get("orders")
        assert backend.reads == 2

    def test_cache_expires(self, store, backend, clock):
        store.set("orders", [1])
        store.get("orders", use_cache=True, cache_timeout_ms=100)
        clock.now += 0.2
        reads = backend.reads

        store.get("orders", use_cache=True)
        assert backend.reads == reads + 1

    def test_write_with_cache_populates(self, store, backend):
        store.set("orders", [7], use_cache=True)
        assert store.get("orders", use_cache=True) == [7]
        assert backend.reads == 0

    def test_plain_write_evicts_stale_cache(self, store, backend):
        store.set("orders", [1], use_cache=True)
        store.set("orders", [2])
        assert store.get("orders", use_cache=True) == [2]

    def test_timeout_is_capped(self, backend, clock):
        store = PersistentStore(backend, default_cache_timeout_ms=1000, max_cache_timeout_ms=2000, clock=clock)
        store.set("orders", [1], use_cache=True, cache_timeout_ms=10_000)
        clock.now += 3
        reads = backend.reads
        store.get("orders", use_cache=True)
        assert backend.reads == reads + 1

    def test_zero_timeout_disables_caching(self, store, backend):
        store.set("orders", [1])
        store.get("orders", use_cache=True, cache_timeout_ms=0)
        store.get("orders", use_cache=True, cache_timeout_ms=0)
        assert backend.reads == 2


# ── Writes ───────────────────────────────────────────────────────

class TestSet:

    def test_quota_failure_preserves_prior_value(self, clock):
        backend = MemoryBackend(quota_bytes=40)
        store = PersistentStore(backend, clock=clock)
        assert store.set("orders", ["a"]) is True

        assert store.set("orders", ["x" * 200]) is False
        assert store.get("orders") == ["a"]

    def test_failed_write_does_not_touch_cache(self, clock):
        backend = MemoryBackend(quota_bytes=40)
        store = PersistentStore(backend, clock=clock)
        store.set("orders", ["a"], use_cache=True)

        assert store.set("orders", ["x" * 200], use_cache=True) is False
        assert store.get("orders", use_cache=True) == ["a"]

    def test_unserializable_value(self, store):
        store.set("settings", {"ok": True})
        assert store.set("settings", {"bad": object()}) is False
        assert store.get("settings") == {"ok": True}

    def test_unavailable_backend(self, store, backend):
        backend.available = False
        assert store.set("orders", []) is False

    def test_deeply_nested_value_is_rejected(self, store, backend):
        store.set("routes", [1])
        assert store.set("routes", nested(100_000), use_cache=True) is False
        assert store.get("routes", use_cache=True) == [1]
        assert backend.get_item("routes") == "[1]"

    @pytest.mark.parametrize("value", [
        {1: "a"},
        ("x", "y"),
        [float("nan")],
    ])
    def test_value_that_changes_in_json_is_rejected(self, store, value):
        store.set("settings", {"ok": True})

        assert store.set("settings", value, use_cache=True) is False
        assert store.get("settings") == {"ok": True}
        assert store.get("settings", use_cache=True) == {"ok": True}

    def test_cached_and_durable_reads_agree(self, store):
        store.set("settings", {"rates": [1.5, 2]}, use_cache=True)
        cached = store.get("settings", use_cache=True)
        store.invalidate_cache("settings")
        assert store.get("settings", use_cache=True) == cached

    def test_caller_mutation_does_not_reach_cache(self, store):
        value = {"items": [1]}
        store.set("settings", value, use_cache=True)

        value["items"].append(2)

        assert store.get("settings", use_cache=True) == {"items": [1]}


class TestRemoveAndClear:

    def test_remove(self, store):
        store.set("routes", [1], use_cache=True)
        assert store.remove("routes") is True
        assert store.get("routes", use_cache=True) is None

    def test_remove_unavailable(self, store, backend):
        backend.available = False
        assert store.remove("routes") is False

    def test_clear(self, store, backend):
        store.set("orders", [1], use_cache=True)
        store.set("drivers", [2])

        assert store.clear() is True
        assert backend.keys() == []
        assert store.get("orders", use_cache=True) is None


class TestErrorReporting:

    def test_listener_receives_write_error(self, store, backend):
        seen = []
        store.reporter.add_listener(seen.append)
        backend.available = False

        store.set("orders", [])

        assert len(seen) == 1
        assert isinstance(seen[0], StorageWriteError)
        assert seen[0].key == "orders"

    def test_listener_receives_read_error(self, store, backend):
        seen = []
        store.reporter.add_listener(seen.append)
        backend.set_item("orders", "garbage{")

        store.get("orders")

        assert isinstance(seen[0], StorageReadError)

    def test_unsubscribe(self, store, backend):
        seen = []
        remove = store.reporter.add_listener(seen.append)
        remove()
        backend.available = False
        store.set("orders", [])
        assert seen == []

    def test_failing_listener_does_not_break_store(self, store, backend):
        def boom(error):
            raise RuntimeError("listener bug")

        seen = []
        store.reporter.add_listener(boom)
        store.reporter.add_listener(seen.append)
        backend.available = False

        assert store.set("orders", []) is False
        assert len(seen) == 1

    def test_missing_key_is_not_reported(self, store):
        seen = []
        store.reporter.add_listener(seen.append)
        store.get("orders", fallback=[])
        assert seen == []
