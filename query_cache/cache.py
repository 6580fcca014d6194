"""In-memory LRU cache for query results."""

import asyncio
from collections import OrderedDict
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional


@dataclass
class CacheStats:
    """A snapshot of cache counters."""
    hits: int
    misses: int
    hit_rate: float
    entries: int
    max_entries: int
    size_bytes: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class Cache:
    """
    Bounded in-memory cache for query results.

    Features:
    - Content-addressable storage (hash-based keys)
    - Fixed capacity with LRU eviction
    - Hit/miss statistics

    The store itself does no locking. Async callers serialize access
    through ``lock``.
    """

    def __init__(self, max_entries: int = 1000):
        """
        Initialize the cache.

        Args:
            max_entries: Maximum number of entries. Must be positive.
        """
        if isinstance(max_entries, bool) or not isinstance(max_entries, int) or max_entries < 1:
            raise ValueError(f"max_entries must be a positive integer, got {max_entries!r}")

        self.max_entries = max_entries
        self.lock = asyncio.Lock()

        self._entries: "OrderedDict[str, bytes]" = OrderedDict()
        self._hits = 0
        self._misses = 0

    def get(self, key: str) -> Optional[bytes]:
        """
        Get a cached result by key.

        A hit moves the entry to the most recently used position.

        Args:
            key: Cache key

        Returns:
            Cached bytes or None if not found
        """
        value = self._entries.get(key)
        if value is None:
            self._misses += 1
            return None

        self._entries.move_to_end(key)
        self._hits += 1
        return value

    def set(self, key: str, value: bytes):
        """
        Store a result in the cache.

        An existing entry for the key is replaced. Least recently used
        entries are evicted while the cache is over capacity.

        Args:
            key: Cache key
            value: Result bytes
        """
        self._entries[key] = bytes(value)
        self._entries.move_to_end(key)

        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def delete(self, key: str) -> bool:
        """
        Delete a cache entry.

        Args:
            key: Cache key

        Returns:
            True if entry was deleted, False if not found
        """
        return self._entries.pop(key, None) is not None

    def clear(self):
        """Drop all entries and reset statistics."""
        self._entries.clear()
        self._hits = 0
        self._misses = 0

    def keys(self) -> List[str]:
        """Keys ordered from least to most recently used."""
        return list(self._entries)

    def stats(self) -> CacheStats:
        """Get cache statistics."""
        total = self._hits + self._misses
        return CacheStats(
            hits=self._hits,
            misses=self._misses,
            hit_rate=self._hits / total if total > 0 else 0.0,
            entries=len(self._entries),
            max_entries=self.max_entries,
            size_bytes=sum(len(v) for v in self._entries.values()),
        )

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        # Membership checks do not count as use.
        return key in self._entries
