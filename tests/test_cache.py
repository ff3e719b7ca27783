"""Tests for the in-memory TTL response cache."""
from __future__ import annotations

import threading

import pytest

from app.services.cache import (
    InvalidPatternError,
    ResponseCache,
    default_cache_key,
    normalize_path,
)


@pytest.fixture
def cache(clock) -> ResponseCache:
    return ResponseCache(clock=clock)


# ── get / set ─────────────────────────────────────────────────────────────────


def test_unknown_key_is_not_found(cache: ResponseCache) -> None:
    assert cache.get("absent") == (None, False)


def test_set_then_get(cache: ResponseCache) -> None:
    cache.set("k", {"data": 42}, 10)
    assert cache.get("k") == ({"data": 42}, True)


def test_health_scenario(cache: ResponseCache, clock) -> None:
    cache.set("GET:/health:{}", {"status": "ok"}, 30)
    assert cache.get("GET:/health:{}") == ({"status": "ok"}, True)

    clock.advance(31)
    assert cache.get("GET:/health:{}") == (None, False)


def test_entry_expires_exactly_at_ttl(cache: ResponseCache, clock) -> None:
    cache.set("k", "v", 5)
    clock.advance(4)
    assert cache.get("k") == ("v", True)
    clock.advance(1)
    assert cache.get("k") == (None, False)


def test_expired_read_removes_entry(cache: ResponseCache, clock) -> None:
    cache.set("k", "v", 1)
    clock.advance(2)
    assert "k" in cache  # still stored until read or swept
    cache.get("k")
    assert "k" not in cache
    assert cache.stats()["total_entries"] == 0


def test_set_overwrites_and_resets_age(cache: ResponseCache, clock) -> None:
    cache.set("k", "original", 10)
    clock.advance(8)
    cache.set("k", "updated", 10)
    clock.advance(8)
    assert cache.get("k") == ("updated", True)
    assert len(cache) == 1


def test_per_entry_ttl(cache: ResponseCache, clock) -> None:
    cache.set("short", 1, 5)
    cache.set("long", 2, 300)
    clock.advance(91)
    assert cache.get("short") == (None, False)
    assert cache.get("long") == (2, True)


def test_value_is_snapshotted_on_write(cache: ResponseCache) -> None:
    payload = {"items": [1, 2]}
    cache.set("k", payload, 10)
    payload["items"].append(3)
    assert cache.get("k") == ({"items": [1, 2]}, True)


@pytest.mark.parametrize("ttl", [0, -1])
def test_non_positive_ttl_rejected(cache: ResponseCache, ttl: int) -> None:
    with pytest.raises(ValueError):
        cache.set("k", "v", ttl)


def test_lookup_reports_age(cache: ResponseCache, clock) -> None:
    cache.set("k", "v", 60)
    clock.advance(12.5)
    hit = cache.lookup("k")
    assert hit is not None
    assert hit.value == "v"
    assert hit.age_seconds == pytest.approx(12.5)


# ── sweep ─────────────────────────────────────────────────────────────────────


def test_sweep_removes_only_expired(cache: ResponseCache, clock) -> None:
    cache.set("old", 1, 10)
    cache.set("fresh", 2, 100)
    clock.advance(50)
    assert cache.sweep() == 1
    assert "old" not in cache
    assert cache.get("fresh") == (2, True)


def test_sweep_is_idempotent(cache: ResponseCache, clock) -> None:
    cache.set("a", 1, 10)
    cache.set("b", 2, 100)
    clock.advance(20)
    cache.sweep()
    after_first = [e["key"] for e in cache.stats()["entries"]]
    assert cache.sweep() == 0
    assert [e["key"] for e in cache.stats()["entries"]] == after_first


# ── clear ─────────────────────────────────────────────────────────────────────


def test_clear_without_pattern_empties_store(cache: ResponseCache) -> None:
    cache.set("a", 1, 10)
    cache.set("b", 2, 10)
    assert cache.clear() == 2
    assert len(cache) == 0


def test_clear_with_pattern_removes_matching_only(cache: ResponseCache) -> None:
    cache.set("GET:/api/health:{}", 1, 10)
    cache.set("GET:/api/health/detailed:{}", 2, 10)
    cache.set("GET:/api/media/files:{}", 3, 10)

    assert cache.clear(r"/api/health") == 2
    assert cache.get("GET:/api/media/files:{}") == (3, True)
    assert len(cache) == 1


def test_clear_pattern_is_a_search_not_a_full_match(cache: ResponseCache) -> None:
    cache.set("GET:/a:{}", 1, 10)
    assert cache.clear("/a") == 1


def test_clear_with_malformed_pattern_raises_and_keeps_entries(cache: ResponseCache) -> None:
    cache.set("k", "v", 10)
    with pytest.raises(InvalidPatternError):
        cache.clear("([unclosed")
    assert cache.get("k") == ("v", True)


# ── capacity ──────────────────────────────────────────────────────────────────


def test_unbounded_by_default(clock) -> None:
    cache = ResponseCache(clock=clock)
    for i in range(500):
        cache.set(f"k{i}", i, 10)
    assert len(cache) == 500


def test_capacity_evicts_least_recently_used(clock) -> None:
    cache = ResponseCache(clock=clock, max_entries=2)
    cache.set("a", 1, 10)
    cache.set("b", 2, 10)
    cache.get("a")  # "b" is now least recently used
    cache.set("c", 3, 10)

    assert cache.get("b") == (None, False)
    assert cache.get("a") == (1, True)
    assert cache.get("c") == (3, True)
    assert cache.stats()["evictions"] == 1


def test_negative_capacity_rejected() -> None:
    with pytest.raises(ValueError):
        ResponseCache(max_entries=-1)


# ── stats ─────────────────────────────────────────────────────────────────────


def test_stats_reports_age_ttl_and_expiry(cache: ResponseCache, clock) -> None:
    cache.set("a", 1, 10)
    cache.set("b", 2, 100)
    clock.advance(15)
    cache.get("b")
    cache.get("missing")

    stats = cache.stats()
    entries = {e["key"]: e for e in stats["entries"]}

    assert stats["total_entries"] == 2
    assert entries["a"] == {"key": "a", "age": 15, "ttl": 10, "expired": True}
    assert entries["b"]["expired"] is False
    assert stats["hits"] == 1
    assert stats["misses"] == 1
    assert "peak_rss_bytes" in stats["memory_usage"]


# ── concurrency ───────────────────────────────────────────────────────────────


def test_concurrent_writers_last_writer_wins() -> None:
    cache = ResponseCache()
    barrier = threading.Barrier(2)

    def writer(value: str) -> None:
        barrier.wait()
        cache.set("k", value, 10)

    threads = [threading.Thread(target=writer, args=(v,)) for v in ("v1", "v2")]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(cache) == 1
    value, found = cache.get("k")
    assert found is True
    assert value in {"v1", "v2"}


def test_concurrent_mixed_operations_keep_store_consistent() -> None:
    cache = ResponseCache()
    errors: list[BaseException] = []

    def worker(n: int) -> None:
        try:
            for i in range(200):
                key = f"k{i % 20}"
                cache.set(key, (n, i), 10)
                value, found = cache.get(key)
                if found:
                    assert isinstance(value, tuple) and len(value) == 2
                if i % 50 == 0:
                    cache.sweep()
                    cache.clear(r"^k1\d$")
        except BaseException as exc:  # noqa: BLE001 - surfaced via the errors list
            errors.append(exc)

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert len(cache) <= 20


# ── key derivation ────────────────────────────────────────────────────────────


def test_default_key_for_empty_query() -> None:
    assert default_cache_key("get", "/health", {}) == "GET:/health:{}"


def test_default_key_sorts_query_params() -> None:
    a = default_cache_key("GET", "/items", {"b": "2", "a": "1"})
    b = default_cache_key("GET", "/items", {"a": "1", "b": "2"})
    assert a == b == 'GET:/items:{"a":"1","b":"2"}'


@pytest.mark.parametrize(
    "raw, expected",
    [("/api/health/", "/api/health"), ("//api//health", "/api/health"), ("/", "/"), ("", "/")],
)
def test_normalize_path(raw: str, expected: str) -> None:
    assert normalize_path(raw) == expected
