"""
Entity Identity Cache

Memoizes entity resolution per EntityKey with:
- Single-flight loading: concurrent gets for one key share a single load
- Expire-after-write eviction (0 disables time-based expiry)
- Optional size bound, evicting the oldest write first
- No negative caching of failures: a failed load is retried on the next get

All methods must be called from the event loop that owns the cache.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from src.common.telemetry import get_tracer
from src.rule_engine.models import EntityContainer, EntityKey

logger = logging.getLogger(__name__)
tracer = get_tracer(__name__)

EntityLoader = Callable[[EntityKey], Awaitable[EntityContainer]]


def _consume_exception(task: asyncio.Task[EntityContainer]) -> None:
    # Every waiter may have been cancelled; _load already recorded the failure
    if not task.cancelled():
        task.exception()


@dataclass
class CacheStats:
    """Statistics for cache operations."""

    hits: int = 0
    misses: int = 0
    coalesced: int = 0  # Gets that joined a load already in flight
    loads: int = 0
    load_failures: int = 0
    evictions: int = 0

    @property
    def hit_rate(self) -> float:
        """Get cache hit rate."""
        total = self.hits + self.misses + self.coalesced
        return (self.hits / total) if total > 0 else 0.0


class EntityCache:
    """
    Single-flight, expire-after-write cache of resolved entities.

    Example:
        cache = EntityCache(loader, expire_after_write_seconds=300)
        container = await cache.get(EntityKey("sensor-1", None, EntityType.DEVICE))
    """

    def __init__(
        self,
        loader: EntityLoader,
        expire_after_write_seconds: float = 0,
        max_size: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the cache.

        Args:
            loader: Coroutine function resolving a key on a miss
            expire_after_write_seconds: Entry lifetime measured from the
                write; 0 keeps entries until invalidated
            max_size: Optional bound on the number of entries
            clock: Monotonic time source, in seconds
        """
        if expire_after_write_seconds < 0:
            raise ValueError("expire_after_write_seconds must be >= 0")
        if max_size is not None and max_size <= 0:
            raise ValueError("max_size must be positive")

        self._loader = loader
        self._ttl = expire_after_write_seconds
        self._max_size = max_size
        self._clock = clock
        self._entries: dict[EntityKey, tuple[EntityContainer, float]] = {}
        self._in_flight: dict[EntityKey, asyncio.Task[EntityContainer]] = {}
        self._generation = 0
        self._stats = CacheStats()

    @property
    def stats(self) -> CacheStats:
        """Get cache statistics."""
        return self._stats

    @property
    def size(self) -> int:
        """Number of stored entries, including any not yet purged."""
        return len(self._entries)

    @property
    def expire_after_write_seconds(self) -> float:
        return self._ttl

    @property
    def max_size(self) -> int | None:
        return self._max_size

    async def get(self, key: EntityKey) -> EntityContainer:
        """
        Get the container for a key, loading it on a miss.

        Concurrent calls for the same key while a load is in flight wait for
        that load and receive its result or its exception.

        Raises:
            Whatever the loader raises for this key's load.
        """
        entry = self._entries.get(key)
        if entry is not None:
            container, written_at = entry
            if not self._is_expired(written_at):
                self._stats.hits += 1
                return container
            del self._entries[key]
            self._stats.evictions += 1
            logger.debug(f"Entity cache entry expired: {key}")

        task = self._in_flight.get(key)
        if task is not None:
            self._stats.coalesced += 1
        else:
            self._stats.misses += 1
            task = asyncio.ensure_future(self._load(key, self._generation))
            task.add_done_callback(_consume_exception)
            self._in_flight[key] = task

        # Shield so one cancelled caller does not cancel the load for the others
        return await asyncio.shield(task)

    def get_if_present(self, key: EntityKey) -> EntityContainer | None:
        """Return a fresh cached container without loading, or None."""
        entry = self._entries.get(key)
        if entry is None or self._is_expired(entry[1]):
            return None
        return entry[0]

    def invalidate(self, key: EntityKey) -> bool:
        """Drop a key. Returns True if an entry was removed."""
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        """Drop all entries. Loads already in flight will not be stored."""
        self._entries.clear()
        self._in_flight.clear()
        self._generation += 1

    def purge_expired(self) -> int:
        """
        Remove every expired entry.

        Returns:
            Number of entries removed
        """
        expired = [k for k, (_, written_at) in self._entries.items() if self._is_expired(written_at)]
        for key in expired:
            del self._entries[key]
        self._stats.evictions += len(expired)
        return len(expired)

    def _is_expired(self, written_at: float) -> bool:
        return self._ttl > 0 and self._clock() - written_at >= self._ttl

    async def _load(self, key: EntityKey, generation: int) -> EntityContainer:
        with tracer.start_as_current_span("entity_cache.load") as span:
            span.set_attribute("entity.type", key.entity_type.value)
            span.set_attribute("entity.name", key.entity_name[:50])
            try:
                self._stats.loads += 1
                container = await self._loader(key)
            except Exception as e:
                self._stats.load_failures += 1
                logger.debug(f"Entity load failed for {key}: {e!r}")
                span.set_attribute("cache.load_failed", True)
                raise
            finally:
                if self._in_flight.get(key) is asyncio.current_task():
                    del self._in_flight[key]

            span.set_attribute("entity.found", container.found)
            if generation == self._generation:
                self._store(key, container)
            return container

    def _store(self, key: EntityKey, container: EntityContainer) -> None:
        self._entries.pop(key, None)
        self._entries[key] = (container, self._clock())
        if self._max_size is not None:
            while len(self._entries) > self._max_size:
                oldest = next(iter(self._entries))
                del self._entries[oldest]
                self._stats.evictions += 1
