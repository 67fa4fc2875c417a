"""
Provider Cache - Session-lifetime memo of recommendation-provider responses
"""
import copy
import logging
import threading
from typing import Any, Dict, Optional, Sequence, Tuple

from .string_utils import canonical_key

logger = logging.getLogger(__name__)

CacheKey = Tuple[str, Tuple[str, ...], int]


class ProviderCache:
    """
    In-memory cache shared by the provider adapters for one host session.

    Entries are keyed by (provider call, canonical keys of the arguments, limit)
    so "the beatles" and "The Beatles" hit the same entry. Writes are
    last-write-wins; the only removal is clear(). Empty results are cached,
    failures are never stored.
    """

    def __init__(self):
        self._entries: Dict[CacheKey, Any] = {}
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    @staticmethod
    def make_key(call: str, args: Sequence[Any], limit: int) -> CacheKey:
        """Build the cache key for a provider call."""
        return (call, tuple(canonical_key(str(arg)) for arg in args), int(limit))

    def get(self, call: str, args: Sequence[Any], limit: int) -> Optional[Any]:
        """
        Look up a cached response.

        Returns:
            A copy of the cached value, or None on a miss
        """
        key = self.make_key(call, args, limit)
        with self._lock:
            if key not in self._entries:
                self.misses += 1
                return None
            self.hits += 1
            value = self._entries[key]
        logger.debug(f"Cache HIT: {call} {key[1]} limit={limit}")
        return copy.deepcopy(value)

    def set(self, call: str, args: Sequence[Any], limit: int, value: Any) -> None:
        """Store a response (a copy is kept so callers may mutate theirs)."""
        key = self.make_key(call, args, limit)
        with self._lock:
            self._entries[key] = copy.deepcopy(value)

    def clear(self) -> int:
        """Drop every entry. Returns the number of entries removed."""
        with self._lock:
            removed = len(self._entries)
            self._entries.clear()
            self.hits = 0
            self.misses = 0
        if removed:
            logger.info(f"Cleared {removed} cached provider responses")
        return removed

    def get_cache_stats(self) -> Dict[str, int]:
        """Get statistics about the cache"""
        with self._lock:
            return {
                "entries": len(self._entries),
                "hits": self.hits,
                "misses": self.misses,
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
