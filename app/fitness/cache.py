"""Per-user derived-value cache with TTL expiry and explicit invalidation.

Key scheme:
  metrics:<user_id>                    derived metrics
  <kind>:<user_id>:<YYYY-MM-DD>        per-date derived artifacts

Every live key carries a version number. A computation takes a stamp
with ``reserve`` and hands it back with ``release``; ``put`` and the
invalidations move the version on, and a ``put`` that names an
``expected_version`` is rejected when the key moved on in between, so a
computation started before an invalidation can never be stored after it.
Versions of keys with no entry and no reservation are forgotten.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable

from app.fitness.errors import CacheUnavailableError

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 300.0
METRICS_KIND = "metrics"
PROJECTION_KIND = "projection"

# Per-date artifact kinds dropped when a user's profile or goal changes.
DATED_KINDS: tuple[str, ...] = (PROJECTION_KIND,)


def metrics_key(user_id: str) -> str:
    return f"{METRICS_KIND}:{user_id}"


def dated_key(kind: str, user_id: str, day: date) -> str:
    return f"{kind}:{user_id}:{day.isoformat()}"


def dated_prefix(kind: str, user_id: str) -> str:
    return f"{kind}:{user_id}:"


@dataclass(frozen=True, slots=True)
class CacheEntry:
    key: str
    value: Any
    created_at: float
    ttl_seconds: float

    def expired(self, now: float) -> bool:
        return now - self.created_at >= self.ttl_seconds


class DerivedValueCache:
    """Thread-safe in-memory TTL cache.

    `clock` returns seconds on a monotonic scale; tests inject a fake one.
    """

    def __init__(
        self,
        default_ttl: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.default_ttl = default_ttl
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[str, CacheEntry] = {}
        self._versions: dict[str, int] = {}
        self._inflight: dict[str, int] = {}
        self._closed = False

    # -- internals (caller holds the lock) ---------------------------------

    def _check_open(self) -> None:
        if self._closed:
            raise CacheUnavailableError("Derived-value cache is closed")

    def _bump(self, key: str) -> None:
        self._versions[key] = self._versions.get(key, 0) + 1

    def _forget_if_idle(self, key: str) -> None:
        # A version only matters while an entry exists or a computation holds a stamp.
        if key not in self._entries and key not in self._inflight:
            self._versions.pop(key, None)

    def _drop(self, key: str) -> None:
        """Remove the entry; in-flight stamps for `key` become stale."""
        self._entries.pop(key, None)
        if key in self._inflight:
            self._bump(key)
        else:
            self._versions.pop(key, None)

    # -- reads ---------------------------------------------------------------

    def get(self, key: str) -> Any | None:
        """Live value for `key`, or None. Expired entries read as misses."""
        with self._lock:
            self._check_open()
            entry = self._entries.get(key)
            if entry is None:
                logger.debug("cache miss: %s", key)
                return None
            if entry.expired(self._clock()):
                logger.debug("cache expired: %s", key)
                return None
            logger.debug("cache hit: %s", key)
            return entry.value

    def version(self, key: str) -> int:
        with self._lock:
            self._check_open()
            return self._versions.get(key, 0)

    def reserve(self, key: str) -> int:
        """Stamp `key` before loading the inputs of a computation.

        Every call must be paired with ``release(key)`` once the result
        has been stored or discarded.
        """
        with self._lock:
            self._check_open()
            self._inflight[key] = self._inflight.get(key, 0) + 1
            return self._versions.get(key, 0)

    def release(self, key: str) -> None:
        with self._lock:
            remaining = self._inflight.get(key, 0) - 1
            if remaining > 0:
                self._inflight[key] = remaining
            else:
                self._inflight.pop(key, None)
                self._forget_if_idle(key)

    def keys(self) -> list[str]:
        with self._lock:
            now = self._clock()
            return [k for k, e in self._entries.items() if not e.expired(now)]

    def __len__(self) -> int:
        return len(self.keys())

    # -- writes --------------------------------------------------------------

    def put(
        self,
        key: str,
        value: Any,
        ttl_seconds: float | None = None,
        expected_version: int | None = None,
    ) -> bool:
        """Install `value` under `key`. Returns False if rejected as stale."""
        ttl = self.default_ttl if ttl_seconds is None else ttl_seconds
        with self._lock:
            self._check_open()
            current = self._versions.get(key, 0)
            if expected_version is not None and expected_version != current:
                logger.debug(
                    "cache put rejected (stale): %s expected v%d, now v%d",
                    key,
                    expected_version,
                    current,
                )
                return False
            self._entries[key] = CacheEntry(key=key, value=value, created_at=self._clock(), ttl_seconds=ttl)
            self._bump(key)
            return True

    def invalidate(self, key: str) -> bool:
        """Drop `key`. Returns True if a live or expired entry was removed."""
        with self._lock:
            self._check_open()
            removed = key in self._entries
            self._drop(key)
        if removed:
            logger.debug("cache invalidated: %s", key)
        return removed

    def invalidate_by_prefix(self, prefix: str) -> int:
        """Drop every key starting with `prefix`. Returns the number of entries removed."""
        with self._lock:
            self._check_open()
            matched = [k for k in self._entries if k.startswith(prefix)]
            # Keys being computed have a reservation but no entry yet.
            pending = [k for k in self._inflight if k.startswith(prefix) and k not in self._entries]
            for k in matched + pending:
                self._drop(k)
        if matched:
            logger.debug("cache invalidated %d keys with prefix %s", len(matched), prefix)
        return len(matched)

    def get_or_compute(
        self,
        key: str,
        compute_fn: Callable[[], Any],
        ttl_seconds: float | None = None,
    ) -> Any:
        """Cached value for `key`, else `compute_fn()` stored and returned.

        Concurrent misses may each call `compute_fn`; a result computed
        across an invalidation of `key` is returned but not stored.
        """
        cached = self.get(key)
        if cached is not None:
            return cached
        stamp = self.reserve(key)
        try:
            value = compute_fn()
            self.put(key, value, ttl_seconds, expected_version=stamp)
        finally:
            self.release(key)
        return value

    # -- maintenance ---------------------------------------------------------

    def purge_expired(self) -> int:
        """Remove expired entries and the versions nothing still holds."""
        with self._lock:
            if self._closed:
                return 0
            now = self._clock()
            expired = [k for k, e in self._entries.items() if e.expired(now)]
            for k in expired:
                del self._entries[k]
                self._forget_if_idle(k)
        if expired:
            logger.debug("cache sweep purged %d expired entries", len(expired))
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            for k in set(self._entries) | set(self._inflight):
                self._drop(k)

    def close(self) -> None:
        with self._lock:
            self._closed = True
            self._entries.clear()


async def run_sweeper(cache: DerivedValueCache, interval: float) -> None:
    """Purge expired entries every `interval` seconds until cancelled."""
    logger.info("cache sweeper started (every %.0fs)", interval)
    try:
        while True:
            await asyncio.sleep(interval)
            cache.purge_expired()
    except asyncio.CancelledError:
        logger.info("cache sweeper stopped")
        raise
