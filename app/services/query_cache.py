"""In-process read-through cache for tenant-scoped query results.

Entries live for a fixed TTL and are dropped on read once expired. Writes
invalidate by substring so every key of a tenant's query family goes at once.

NOTE: This is a per-process cache without single-flight: concurrent misses on
the same key each run the fetcher. The cached queries are read-only, so the
cost is an extra query, never a wrong answer.
"""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from prometheus_client import Counter

from app.config import settings
from app.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

CACHE_HITS = Counter("omnidesk_query_cache_hits_total", "Query cache hits")
CACHE_MISSES = Counter("omnidesk_query_cache_misses_total", "Query cache misses")


@dataclass
class _CacheEntry:
    value: Any
    expires_at: float | None


@dataclass(eq=False)
class _PendingFetch:
    key: str
    invalidated: bool = False


class QueryCache:
    def __init__(
        self,
        default_ttl_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if default_ttl_seconds is None:
            default_ttl_seconds = settings.query_cache_ttl_seconds
        self.default_ttl_seconds = default_ttl_seconds
        self._clock = clock
        self._entries: dict[str, _CacheEntry] = {}
        self._pending: set[_PendingFetch] = set()
        self._hits = 0
        self._misses = 0

    def _expired(self, entry: _CacheEntry) -> bool:
        return entry.expires_at is not None and entry.expires_at <= self._clock()

    def _expiry(self, ttl_seconds: float | None) -> float | None:
        ttl = self.default_ttl_seconds if ttl_seconds is None else ttl_seconds
        if ttl < 0:
            raise ValueError("ttl_seconds must not be negative")
        # A TTL of zero keeps the entry until it is invalidated.
        if ttl == 0:
            return None
        return self._clock() + ttl

    async def get(
        self,
        key: str,
        fetch: Callable[[], Awaitable[T]],
        ttl_seconds: float | None = None,
    ) -> T:
        """Return the cached value for ``key`` or compute it with ``fetch``.

        Exceptions raised by ``fetch`` reach the caller and leave the cache
        untouched. A result whose key was invalidated while ``fetch`` ran is
        returned but not stored.
        """
        entry = self._entries.get(key)
        if entry is not None and not self._expired(entry):
            self._hits += 1
            CACHE_HITS.inc()
            return entry.value
        if entry is not None:
            self._entries.pop(key, None)

        self._misses += 1
        CACHE_MISSES.inc()
        pending = _PendingFetch(key)
        self._pending.add(pending)
        try:
            value = await fetch()
        finally:
            self._pending.discard(pending)

        if pending.invalidated:
            logger.debug("query_cache_discarded_stale key=%s", key)
            return value
        self._entries[key] = _CacheEntry(value=value, expires_at=self._expiry(ttl_seconds))
        logger.debug("query_cache_stored key=%s", key)
        return value

    def invalidate(self, pattern: str) -> int:
        for pending in self._pending:
            if pattern in pending.key:
                pending.invalidated = True
        keys = [key for key in self._entries if pattern in key]
        for key in keys:
            self._entries.pop(key, None)
        if keys:
            logger.debug("query_cache_invalidated pattern=%s removed=%s", pattern, len(keys))
        return len(keys)

    def clear(self) -> None:
        for pending in self._pending:
            pending.invalidated = True
        self._entries.clear()

    def _purge_expired(self) -> None:
        for key in [key for key, entry in self._entries.items() if self._expired(entry)]:
            self._entries.pop(key, None)

    def keys(self) -> list[str]:
        self._purge_expired()
        return list(self._entries)

    def stats(self) -> dict[str, int]:
        self._purge_expired()
        return {
            "keys": len(self._entries),
            "hits": self._hits,
            "misses": self._misses,
        }


def conversation_list_key(company_id: int) -> str:
    return f"conversations:{company_id}:list"


def analytics_key(company_id: int) -> str:
    return f"analytics:{company_id}:summary"


def invalidate_company(cache: QueryCache, company_id: int) -> None:
    """Drop every cached read derived from the company's conversations."""
    cache.invalidate(f"conversations:{company_id}:")
    cache.invalidate(f"analytics:{company_id}:")


_cache: QueryCache | None = None


def get_query_cache() -> QueryCache:
    global _cache
    if _cache is None:
        _cache = QueryCache()
    return _cache
