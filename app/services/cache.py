"""
app/services/cache.py – in-memory TTL cache for HTTP responses.

Entries are keyed by a request fingerprint (method, path and query by default)
and carry their own TTL. Validity is checked on every read; a background
sweeper removes entries that are never read again. All access to the store is
serialised by a single re-entrant lock so request handlers running in the
threadpool and the sweeper on the event loop never observe a half-written
entry.

The clock is injectable so expiry can be tested without sleeping.
"""
from __future__ import annotations

import asyncio
import copy
import json
import logging
import re
import resource
import sys
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Mapping, NamedTuple, Optional

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class InvalidPatternError(ValueError):
    """Raised when `clear()` receives a pattern that is not a valid regex."""

    def __init__(self, pattern: str, cause: re.error) -> None:
        super().__init__(f"Invalid cache key pattern {pattern!r}: {cause}")
        self.pattern = pattern


@dataclass(frozen=True)
class CacheEntry:
    key: str
    value: Any
    stored_at: float
    ttl_seconds: float

    def age(self, now: float) -> float:
        return now - self.stored_at

    def is_expired(self, now: float) -> bool:
        return self.age(now) >= self.ttl_seconds


class CacheHit(NamedTuple):
    value: Any
    age_seconds: float


# ── Key derivation ────────────────────────────────────────────────────────────


def normalize_path(path: str) -> str:
    """Collapse duplicate slashes and drop a trailing slash (except for '/')."""
    path = re.sub(r"/{2,}", "/", path or "/")
    if len(path) > 1 and path.endswith("/"):
        path = path.rstrip("/") or "/"
    return path


def default_cache_key(method: str, path: str, query: Mapping[str, Any]) -> str:
    """`METHOD:path:{sorted query json}` – e.g. ``GET:/health:{}``."""
    serialized = json.dumps(dict(query), sort_keys=True, separators=(",", ":"), default=str)
    return f"{method.upper()}:{normalize_path(path)}:{serialized}"


# ── Cache ─────────────────────────────────────────────────────────────────────


class ResponseCache:
    """Thread-safe key/value store with per-entry TTL.

    ``max_entries`` bounds the store; once full, writing a new key evicts the
    least recently used entry. ``None`` (or 0) keeps the store unbounded.
    """

    def __init__(
        self,
        *,
        clock: Clock = time.monotonic,
        max_entries: Optional[int] = None,
    ) -> None:
        if max_entries is not None and max_entries < 0:
            raise ValueError("max_entries must be >= 0")
        self._store: OrderedDict[str, CacheEntry] = OrderedDict()
        self._lock = threading.RLock()
        self._clock = clock
        self._max_entries = max_entries or None
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    # ── Public API ────────────────────────────────────────────────────────────

    def lookup(self, key: str) -> Optional[CacheHit]:
        """Return the live entry's value and age, or None (expired entries are dropped)."""
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                self._misses += 1
                return None
            now = self._clock()
            if entry.is_expired(now):
                del self._store[key]
                self._misses += 1
                logger.debug("Cache entry expired on read", extra={"key": key})
                return None
            self._store.move_to_end(key)
            self._hits += 1
            return CacheHit(entry.value, entry.age(now))

    def get(self, key: str) -> tuple[Any, bool]:
        """Return ``(value, True)`` for a live entry, ``(None, False)`` otherwise."""
        hit = self.lookup(key)
        if hit is None:
            return None, False
        return hit.value, True

    def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        """Store (or replace) ``key``; the entry's age restarts at zero."""
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        snapshot = copy.deepcopy(value)
        with self._lock:
            self._store[key] = CacheEntry(key, snapshot, self._clock(), ttl_seconds)
            self._store.move_to_end(key)
            if self._max_entries is not None:
                while len(self._store) > self._max_entries:
                    evicted, _ = self._store.popitem(last=False)
                    self._evictions += 1
                    logger.debug("Cache entry evicted (capacity)", extra={"key": evicted})

    def clear(self, pattern: Optional[str] = None) -> int:
        """Remove every entry, or only keys matching ``pattern``. Returns the count removed."""
        if pattern is None:
            with self._lock:
                removed = len(self._store)
                self._store.clear()
            return removed

        try:
            regex = re.compile(pattern)
        except re.error as exc:
            raise InvalidPatternError(pattern, exc) from exc

        with self._lock:
            doomed = [key for key in self._store if regex.search(key)]
            for key in doomed:
                del self._store[key]
        return len(doomed)

    def sweep(self) -> int:
        """Drop all expired entries. Returns the count removed."""
        with self._lock:
            now = self._clock()
            expired = [key for key, entry in self._store.items() if entry.is_expired(now)]
            for key in expired:
                del self._store[key]
        return len(expired)

    def stats(self) -> dict[str, Any]:
        """Introspection snapshot for the admin endpoints."""
        with self._lock:
            now = self._clock()
            entries = [
                {
                    "key": entry.key,
                    "age": int(entry.age(now)),
                    "ttl": entry.ttl_seconds,
                    "expired": entry.is_expired(now),
                }
                for entry in self._store.values()
            ]
            return {
                "total_entries": len(entries),
                "max_entries": self._max_entries,
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
                "memory_usage": process_memory_usage(),
                "entries": entries,
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._store


def process_memory_usage() -> dict[str, int]:
    """Peak resident set size of this process so far (not current usage)."""
    peak = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    # ru_maxrss is bytes on macOS and kilobytes elsewhere.
    if sys.platform != "darwin":
        peak *= 1024
    return {"peak_rss_bytes": peak}


# ── Background sweeper ────────────────────────────────────────────────────────


async def sweep_periodically(cache: ResponseCache, interval_seconds: float) -> None:
    """Run `cache.sweep()` every ``interval_seconds`` until cancelled."""
    while True:
        await asyncio.sleep(interval_seconds)
        removed = cache.sweep()
        if removed:
            logger.info("Cache sweep removed expired entries", extra={"removed": removed})
