"""Tests for the derived-value cache."""

from __future__ import annotations

import asyncio
import threading
from datetime import date

import pytest

from app.fitness.cache import (
    DerivedValueCache,
    dated_key,
    dated_prefix,
    metrics_key,
    run_sweeper,
)
from app.fitness.errors import CacheUnavailableError


class TestKeys:
    def test_metrics_key(self):
        assert metrics_key("42") == "metrics:42"

    def test_dated_key(self):
        assert dated_key("projection", "42", date(2026, 3, 7)) == "projection:42:2026-03-07"

    def test_dated_prefix_matches_dated_key(self):
        assert dated_key("stat", "42", date(2026, 3, 7)).startswith(dated_prefix("stat", "42"))

    def test_prefix_does_not_match_other_user(self):
        assert not dated_key("stat", "421", date(2026, 3, 7)).startswith(dated_prefix("stat", "42"))


# ---------------------------------------------------------------------------
# get / put / TTL
# ---------------------------------------------------------------------------

class TestGetPut:
    def test_roundtrip(self, cache):
        cache.put("k", "v", 60)
        assert cache.get("k") == "v"

    def test_missing(self, cache):
        assert cache.get("nope") is None

    def test_overwrite(self, cache):
        cache.put("k", "v1", 60)
        cache.put("k", "v2", 60)
        assert cache.get("k") == "v2"
        assert len(cache) == 1

    def test_hit_before_ttl(self, cache, clock):
        cache.put("k", "v", 60)
        clock.advance(59.9)
        assert cache.get("k") == "v"

    def test_miss_after_ttl(self, cache, clock):
        cache.put("k", "v", 60)
        clock.advance(60)
        assert cache.get("k") is None

    def test_default_ttl(self, cache, clock):
        cache.put("k", "v")
        clock.advance(299)
        assert cache.get("k") == "v"
        clock.advance(1)
        assert cache.get("k") is None

    def test_expired_entry_reads_as_miss_before_sweep(self, cache, clock):
        cache.put("k", "v", 10)
        clock.advance(11)
        assert cache.get("k") is None
        assert "k" not in cache.keys()

    def test_overwrite_resets_ttl(self, cache, clock):
        cache.put("k", "v1", 10)
        clock.advance(8)
        cache.put("k", "v2", 10)
        clock.advance(8)
        assert cache.get("k") == "v2"


# ---------------------------------------------------------------------------
# Invalidation & version stamps
# ---------------------------------------------------------------------------

class TestInvalidation:
    def test_invalidate(self, cache):
        cache.put("k", "v1", 60)
        assert cache.invalidate("k") is True
        assert cache.get("k") is None

    def test_invalidate_missing(self, cache):
        assert cache.invalidate("k") is False

    def test_invalidate_by_prefix(self, cache):
        cache.put("stat:1:2026-01-01", 1, 60)
        cache.put("stat:1:2026-01-02", 2, 60)
        cache.put("stat:2:2026-01-01", 3, 60)
        assert cache.invalidate_by_prefix("stat:1:") == 2
        assert cache.get("stat:1:2026-01-01") is None
        assert cache.get("stat:2:2026-01-01") == 3

    def test_stale_put_rejected_after_invalidate(self, cache):
        cache.put("k", "v1", 60)
        stamp = cache.reserve("k")
        cache.invalidate("k")
        assert cache.put("k", "v1", 60, expected_version=stamp) is False
        cache.release("k")
        assert cache.get("k") is None

    def test_stale_put_rejected_after_newer_put(self, cache):
        stamp = cache.reserve("k")
        cache.put("k", "fresh", 60)
        assert cache.put("k", "stale", 60, expected_version=stamp) is False
        cache.release("k")
        assert cache.get("k") == "fresh"

    def test_matching_version_accepted(self, cache):
        stamp = cache.reserve("k")
        assert cache.put("k", "v", 60, expected_version=stamp) is True
        cache.release("k")
        assert cache.get("k") == "v"

    def test_prefix_invalidation_rejects_in_flight_key(self, cache):
        key = "projection:u1:2026-01-01"
        stamp = cache.reserve(key)
        cache.invalidate_by_prefix("projection:u1:")
        assert cache.put(key, "stale", 60, expected_version=stamp) is False
        cache.release(key)

    def test_invalidating_idle_key_keeps_no_version(self, cache):
        cache.put("k", "v", 60)
        cache.invalidate("k")
        assert "k" not in cache._versions

    def test_release_forgets_version_of_unstored_key(self, cache):
        cache.reserve("k")
        cache.invalidate("k")
        assert cache._versions == {"k": 1}
        assert cache.version("k") == 1
        cache.release("k")
        assert cache._versions == {}
        assert cache._inflight == {}

    def test_nested_reservations_keep_version_until_last_release(self, cache):
        first = cache.reserve("k")
        cache.reserve("k")
        cache.invalidate("k")
        cache.release("k")
        assert cache.put("k", "stale", 60, expected_version=first) is False
        cache.release("k")
        assert cache._versions == {}


# ---------------------------------------------------------------------------
# get_or_compute
# ---------------------------------------------------------------------------

class TestGetOrCompute:
    def test_computes_once(self, cache):
        calls = []

        def compute():
            calls.append(1)
            return "value"

        assert cache.get_or_compute("k", compute, 60) == "value"
        assert cache.get_or_compute("k", compute, 60) == "value"
        assert len(calls) == 1

    def test_recomputes_after_invalidate(self, cache):
        values = iter(["a", "b"])
        cache.get_or_compute("k", lambda: next(values), 60)
        cache.invalidate("k")
        assert cache.get_or_compute("k", lambda: next(values), 60) == "b"

    def test_result_racing_invalidation_not_stored(self, cache):
        def compute():
            cache.invalidate("k")  # a writer lands mid-computation
            return "stale"

        assert cache.get_or_compute("k", compute, 60) == "stale"
        assert cache.get("k") is None

    def test_exception_propagates_and_nothing_stored(self, cache):
        def compute():
            raise ValueError("boom")

        with pytest.raises(ValueError):
            cache.get_or_compute("k", compute, 60)
        assert cache.get("k") is None

    def test_concurrent_threads_agree(self, cache):
        results: list[str] = []
        lock = threading.Lock()

        def worker():
            value = cache.get_or_compute("k", lambda: "same", 60)
            with lock:
                results.append(value)

        threads = [threading.Thread(target=worker) for _ in range(16)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert results == ["same"] * 16
        assert cache.get("k") == "same"


# ---------------------------------------------------------------------------
# Maintenance
# ---------------------------------------------------------------------------

class TestMaintenance:
    def test_purge_expired(self, cache, clock):
        cache.put("old", 1, 10)
        cache.put("new", 2, 100)
        clock.advance(50)
        assert cache.purge_expired() == 1
        assert cache.keys() == ["new"]

    def test_purge_forgets_versions_of_expired_keys(self, cache, clock):
        for day in range(1, 29):
            cache.get_or_compute(f"projection:u1:2026-02-{day:02d}", lambda: "p", 300)
        cache.put("metrics:u1", "m", 600)
        clock.advance(301)
        assert cache.purge_expired() == 28
        assert cache._versions == {"metrics:u1": 1}
        assert cache._inflight == {}

    def test_clear(self, cache):
        cache.put("k", 1, 10)
        stamp = cache.reserve("k")
        cache.clear()
        assert cache.get("k") is None
        assert cache.put("k", 1, 10, expected_version=stamp) is False
        cache.release("k")

    def test_clear_rejects_in_flight_key_without_entry(self, cache):
        stamp = cache.reserve("k")
        cache.clear()
        assert cache.put("k", "stale", 10, expected_version=stamp) is False
        cache.release("k")
        assert cache.get("k") is None
        assert cache._versions == {}

    def test_closed_cache_raises(self, cache):
        cache.close()
        with pytest.raises(CacheUnavailableError):
            cache.get("k")
        with pytest.raises(CacheUnavailableError):
            cache.put("k", 1)
        assert cache.purge_expired() == 0

    @pytest.mark.asyncio
    async def test_sweeper_purges(self, cache, clock):
        cache.put("k", 1, 10)
        clock.advance(11)
        task = asyncio.create_task(run_sweeper(cache, 0.01))
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert cache._entries == {}
