"""In-process cache of scan results.

Entries are keyed by session id and expire after a per-entry TTL. The cache
is bounded by entry count and by approximate serialized size; when either
ceiling is exceeded, expired entries are reclaimed first and then the
least-recently-used live entries are evicted.
"""

import logging
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass

from txscan.models import CacheStats, ScanResult


logger = logging.getLogger(__name__)

DEFAULT_TTL = 10.0  # seconds
DEFAULT_MAX_ENTRIES = 100
DEFAULT_MAX_SIZE_BYTES = 10 * 1024 * 1024


@dataclass
class CacheEntry:
    result: ScanResult
    expiry: float  # Clock value after which the entry is stale
    size: int  # Approximate size in bytes


def estimate_size(result: ScanResult) -> int:
    """Approximate memory footprint of a result from its JSON length."""
    return len(result.model_dump_json())


class ResultCache:
    """TTL and size bounded LRU cache of ScanResult objects."""

    def __init__(
        self,
        default_ttl: float = DEFAULT_TTL,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        max_size_bytes: int = DEFAULT_MAX_SIZE_BYTES,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the cache.

        Args:
            default_ttl: TTL in seconds used when set() gets no ttl
            max_entries: Maximum number of entries
            max_size_bytes: Maximum total estimated size of all entries
            clock: Monotonic time source (injectable for tests)
        """
        if default_ttl <= 0 or max_entries <= 0 or max_size_bytes <= 0:
            raise ValueError('default_ttl, max_entries and max_size_bytes must be positive')
        self.default_ttl = default_ttl
        self.max_entries = max_entries
        self.max_size_bytes = max_size_bytes
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._total_size = 0
        self._hits = 0
        self._misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, session_id: str) -> bool:
        entry = self._entries.get(session_id)
        return entry is not None and self._clock() <= entry.expiry

    def get(self, session_id: str) -> ScanResult | None:
        """Get a cached result, or None if missing or expired (expired entries are evicted)."""
        entry = self._entries.get(session_id)
        if entry is None:
            self._misses += 1
            return None

        if self._clock() > entry.expiry:
            self._remove(session_id)
            self._misses += 1
            logger.debug(f'Result cache entry for {session_id} expired')
            return None

        self._entries.move_to_end(session_id)
        self._hits += 1
        return entry.result

    def set(self, session_id: str, result: ScanResult, ttl: float | None = None) -> None:
        """Store a result.

        Args:
            session_id: Cache key
            result: Scan result to cache
            ttl: TTL in seconds (default_ttl if None)
        """
        if ttl is None:
            ttl = self.default_ttl
        if ttl <= 0:
            raise ValueError(f'Invalid ttl: {ttl} (must be > 0)')

        if session_id in self._entries:
            self._remove(session_id)

        size = estimate_size(result)
        self._entries[session_id] = CacheEntry(result=result, expiry=self._clock() + ttl, size=size)
        self._total_size += size
        self._evict_if_needed()

    def invalidate(self, session_id: str) -> bool:
        """Drop one entry. Returns True if it existed."""
        if session_id not in self._entries:
            return False
        self._remove(session_id)
        return True

    def clear(self) -> None:
        """Drop all entries and reset hit/miss counters."""
        self._entries.clear()
        self._total_size = 0
        self._hits = 0
        self._misses = 0

    def cleanup(self) -> int:
        """Remove expired entries only.

        Returns:
            Number of entries removed
        """
        now = self._clock()
        expired = [sid for sid, entry in self._entries.items() if now > entry.expiry]
        for session_id in expired:
            self._remove(session_id)
        return len(expired)

    def get_stats(self) -> CacheStats:
        """Report live entry count, their estimated size, and the hit rate."""
        now = self._clock()
        live = [entry for entry in self._entries.values() if now <= entry.expiry]
        lookups = self._hits + self._misses
        return CacheStats(
            entries=len(live),
            size_bytes=sum(entry.size for entry in live),
            hits=self._hits,
            misses=self._misses,
            hit_rate=self._hits / lookups if lookups else 0.0,
        )

    def _over_limits(self) -> bool:
        return len(self._entries) > self.max_entries or self._total_size > self.max_size_bytes

    def _evict_if_needed(self) -> None:
        if not self._over_limits():
            return

        reclaimed = self.cleanup()
        evicted = 0
        # OrderedDict keeps least recently used first
        while self._over_limits() and self._entries:
            session_id = next(iter(self._entries))
            self._remove(session_id)
            evicted += 1

        logger.debug(f'Result cache over limits: reclaimed {reclaimed} expired, evicted {evicted} LRU entries')

    def _remove(self, session_id: str) -> None:
        entry = self._entries.pop(session_id)
        self._total_size -= entry.size
