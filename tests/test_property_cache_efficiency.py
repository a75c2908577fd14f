"""Property-based tests for the TTL cache and view registry."""

from hypothesis import given, settings
from hypothesis import strategies as st

from app.execution.notifications import Notifier
from app.execution.registry import ViewRegistry
from app.services.cache import TTLCache, cache_meta
from tests.test_base import FakeStore


class TestCacheEfficiency:
    @settings(max_examples=50, deadline=None)
    @given(
        key_parts=st.lists(st.text(min_size=1, max_size=10), min_size=1, max_size=5),
        value=st.one_of(st.text(), st.integers(), st.dictionaries(st.text(), st.integers())),
    )
    def test_values_round_trip_with_expiry(self, key_parts, value):
        cache = TTLCache(ttl_seconds=60, maxsize=10)
        expires_at = cache.set(tuple(key_parts), value)
        cached_value, cached_expires_at = cache.get(tuple(key_parts))
        assert cached_expires_at == expires_at
        assert cached_value == value
        if isinstance(value, dict):
            assert cached_value is not value

    @settings(max_examples=50, deadline=None)
    @given(maxsize=st.integers(min_value=1, max_value=10), num_items=st.integers(min_value=1, max_value=25))
    def test_size_limit_evicts_least_recently_used(self, maxsize, num_items):
        cache = TTLCache(ttl_seconds=300, maxsize=maxsize)
        for i in range(num_items):
            cache.set((f"key_{i}",), i)
        assert cache.size() == min(maxsize, num_items)
        assert cache.get((f"key_{num_items - 1}",))[0] == num_items - 1
        if num_items > maxsize:
            assert cache.get(("key_0",)) is None


def test_recently_read_entries_survive_eviction():
    cache = TTLCache(ttl_seconds=300, maxsize=2)
    cache.set(("a",), 1)
    cache.set(("b",), 2)
    cache.get(("a",))
    cache.set(("c",), 3)
    assert cache.get(("a",)) is not None
    assert cache.get(("b",)) is None


def test_expired_entries_are_dropped(monkeypatch):
    now = [1000.0]
    monkeypatch.setattr("app.services.cache.time.time", lambda: now[0])
    cache = TTLCache(ttl_seconds=5)
    cache.set(("k",), "v")
    now[0] += 6
    assert cache.get(("k",)) is None
    assert cache.stats()["misses"] == 1


def test_cache_meta_reports_remaining_time():
    meta = cache_meta(True, 0)["cache"]
    assert meta["hit"] is True
    assert meta["seconds_remaining"] == 0


def test_registry_hands_out_one_controller_per_key():
    registry = ViewRegistry(TTLCache(ttl_seconds=60, maxsize=4), page_size=5, notification_history=3)
    store = FakeStore()
    first, created = registry.get_or_create(store, "manual", "run-1")
    again, created_again = registry.get_or_create(store, "manual", "run-1")
    other, _ = registry.get_or_create(store, "manual", "run-2")
    automated, _ = registry.get_or_create(store, "automated", "run-1")
    assert created and not created_again
    assert first is again
    assert other is not first and automated is not first
    assert other.filter_state is not first.filter_state
    assert first.page_fetcher.page_size == 5
    registry.discard("manual", "run-1")
    replaced, created = registry.get_or_create(store, "manual", "run-1")
    assert created and replaced is not first


def test_notifier_keeps_bounded_history():
    notifier = Notifier(history=2)
    for i in range(3):
        notifier.notify(f"n{i}")
    assert [n.title for n in notifier.history()] == ["n1", "n2"]
