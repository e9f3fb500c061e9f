"""Bounded descriptor cache with batch eviction."""
from collections import OrderedDict
from typing import Optional

import numpy as np

from faceverify.core.config import settings
from faceverify.core.logging import get_logger
from faceverify.domain.value_objects.verification import CacheStats

logger = get_logger(__name__)


def make_cache_key(context: str, fingerprint: str, time_bucket: int) -> str:
    """Build an opaque cache key from caller context, frame hash and time bucket."""
    return f"{context}:{time_bucket}:{fingerprint}"


class DescriptorCache:
    """Recently computed descriptors, keyed by caller context and time bucket.

    Entries are kept in insertion order. When a put takes the cache over its
    ceiling, the oldest half is evicted in one pass; reads do not refresh an
    entry's position. A miss only costs a recomputation.
    """

    def __init__(self, max_entries: int = settings.CACHE_MAX_ENTRIES) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self._entries: "OrderedDict[str, np.ndarray]" = OrderedDict()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def get(self, key: str) -> Optional[np.ndarray]:
        descriptor = self._entries.get(key)
        if descriptor is None:
            self._misses += 1
        else:
            self._hits += 1
        return descriptor

    def put(self, key: str, descriptor: np.ndarray) -> None:
        # A re-put counts as a fresh insertion
        self._entries.pop(key, None)
        self._entries[key] = descriptor
        if len(self._entries) > self.max_entries:
            self._evict_oldest_half()

    def _evict_oldest_half(self) -> None:
        count = len(self._entries) // 2
        for _ in range(count):
            self._entries.popitem(last=False)
        self._evictions += count
        logger.debug("Evicted cache entries", evicted=count, remaining=len(self._entries))

    def invalidate(self, prefix: str) -> int:
        """Drop every entry whose key starts with ``prefix``.

        Returns:
            Number of entries removed
        """
        stale = [key for key in self._entries if key.startswith(prefix)]
        for key in stale:
            del self._entries[key]
        return len(stale)

    def clear(self) -> None:
        self._entries.clear()

    def stats(self) -> CacheStats:
        return CacheStats(
            size=len(self._entries),
            max_entries=self.max_entries,
            hits=self._hits,
            misses=self._misses,
            evictions=self._evictions,
        )
