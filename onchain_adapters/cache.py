"""
On-chain Adapters - Metrics Cache.

Bounded TTL + LRU cache keyed by address.

- get() moves the entry to most-recent and, with refresh_on_hit,
  pushes its expiry out by a full TTL
- put() purges expired entries first, then evicts least recently
  used until there is room
- All reads and writes hold one threading.Lock
"""

import logging
import threading
from collections import OrderedDict
from typing import Optional

from core.clock import ClockProtocol, get_clock
from core.constants import METRICS_CACHE_CAPACITY, METRICS_CACHE_TTL_SECONDS
from onchain_adapters.models import CacheEntry, CacheStats, MetricsFetchReport


logger = logging.getLogger(__name__)


class MetricsCache:
    """Address -> CacheEntry with capacity and TTL bounds."""

    def __init__(
        self,
        capacity: int = METRICS_CACHE_CAPACITY,
        ttl_seconds: float = METRICS_CACHE_TTL_SECONDS,
        clock: Optional[ClockProtocol] = None,
        refresh_on_hit: bool = True,
    ) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")

        self._capacity = capacity
        self._ttl = ttl_seconds
        self._clock = clock or get_clock()
        self._refresh_on_hit = refresh_on_hit
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = threading.Lock()

        self._hits = 0
        self._misses = 0
        self._evictions = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get(self, address: str) -> Optional[CacheEntry]:
        """Return a live entry and mark it most recently used."""
        now = self._clock.timestamp()
        with self._lock:
            entry = self._entries.get(address)
            if entry is None:
                self._misses += 1
                return None
            if entry.is_expired(now):
                del self._entries[address]
                self._misses += 1
                return None

            self._entries.move_to_end(address)
            entry.hits += 1
            if self._refresh_on_hit:
                entry.expires_at = now + self._ttl
            self._hits += 1
            return entry

    def peek(self, address: str) -> Optional[CacheEntry]:
        """Return a live entry without touching recency, expiry or counters."""
        now = self._clock.timestamp()
        with self._lock:
            entry = self._entries.get(address)
            if entry is None or entry.is_expired(now):
                return None
            return entry

    def put(self, address: str, report: MetricsFetchReport) -> CacheEntry:
        """Insert or replace the entry for address."""
        now = self._clock.timestamp()
        entry = CacheEntry(report=report, created_at=now, expires_at=now + self._ttl)

        with self._lock:
            self._entries.pop(address, None)
            if len(self._entries) >= self._capacity:
                self._purge_expired(now)
            while len(self._entries) >= self._capacity:
                evicted, _ = self._entries.popitem(last=False)
                self._evictions += 1
                logger.debug(f"[MetricsCache] Evicted LRU entry {evicted}")
            self._entries[address] = entry

        return entry

    def invalidate(self, address: str) -> bool:
        with self._lock:
            return self._entries.pop(address, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                size=len(self._entries),
                capacity=self._capacity,
                ttl_seconds=self._ttl,
                hits=self._hits,
                misses=self._misses,
                evictions=self._evictions,
            )

    def _purge_expired(self, now: float) -> None:
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug(f"[MetricsCache] Purged {len(expired)} expired entries")
