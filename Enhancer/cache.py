"""
Memoization of optimizer results keyed by (item id, enhancement level).

Entries are evicted least-recently-used once the cache is full, and the
whole cache is dropped when the market snapshot changes. Change detection
hashes only a sample of the snapshot, trading accuracy for speed in tight
refresh loops.
"""
from __future__ import annotations

import hashlib
import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Optional, Tuple

from .market import MarketSnapshot

DEFAULT_MAX_SIZE = 100
DEFAULT_HASH_SAMPLE_SIZE = 10

CacheKey = Tuple[str, int]


@dataclass
class CacheStats:
    size: int
    max_size: int
    hits: int
    misses: int
    market_hash: Optional[str]

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0


def compute_market_hash(
    snapshot: MarketSnapshot,
    sample_size: int = DEFAULT_HASH_SAMPLE_SIZE,
    salt: str = "",
) -> str:
    """
    SHA-256 over the first ``sample_size`` snapshot entries.

    Parameters
    ----------
    snapshot : MarketSnapshot
        Prices to fingerprint, in load order.
    sample_size : int
        Number of leading entries included.
    salt : str
        Extra text folded into the hash (e.g. a settings fingerprint).
    """
    if len(snapshot) == 0:
        return "empty" if not salt else f"empty:{salt}"

    hasher = hashlib.sha256()
    hasher.update(salt.encode("utf-8"))
    for index, (item_id, price) in enumerate(snapshot.entries()):
        if index >= sample_size:
            break
        hasher.update(f"{item_id}:{price.ask}:{price.bid}|".encode("utf-8"))
    return hasher.hexdigest()


class EnhancementCostCache:
    """
    Thread-safe bounded LRU cache of optimizer results.

    Usage:
        cache = EnhancementCostCache()
        cache.check_and_invalidate(snapshot)

        result = cache.get(item_id, level)
        if result is None:
            result = optimizer.calculate_enhancement_path(item_id, level, settings)
            cache.set(item_id, level, result)
    """

    def __init__(
        self,
        max_size: int = DEFAULT_MAX_SIZE,
        sample_size: int = DEFAULT_HASH_SAMPLE_SIZE,
        enabled: bool = True,
    ):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self._max_size = max_size
        self._sample_size = sample_size
        self._enabled = enabled
        self._lock = threading.Lock()
        self._entries: "OrderedDict[CacheKey, Any]" = OrderedDict()
        self._market_hash: Optional[str] = None
        self._hits = 0
        self._misses = 0

    @staticmethod
    def make_key(item_id: str, enhancement_level: int) -> CacheKey:
        return (item_id, int(enhancement_level))

    def check_and_invalidate(self, snapshot: MarketSnapshot, salt: str = "") -> bool:
        """
        Clear the cache if the snapshot fingerprint changed.

        Returns
        -------
        bool
            True if entries were dropped.
        """
        new_hash = compute_market_hash(snapshot, self._sample_size, salt)
        with self._lock:
            changed = self._market_hash is not None and self._market_hash != new_hash
            if changed:
                self._entries.clear()
            self._market_hash = new_hash
            return changed

    def get(self, item_id: str, enhancement_level: int) -> Optional[Any]:
        """Return the cached value and mark it most recently used."""
        if not self._enabled:
            return None
        key = self.make_key(item_id, enhancement_level)
        with self._lock:
            if key not in self._entries:
                self._misses += 1
                return None
            self._entries.move_to_end(key)
            self._hits += 1
            return self._entries[key]

    def set(self, item_id: str, enhancement_level: int, value: Any) -> None:
        """Store ``value``, evicting the least recently used entry when full."""
        if not self._enabled:
            return
        key = self.make_key(item_id, enhancement_level)
        with self._lock:
            self._entries[key] = value
            self._entries.move_to_end(key)
            while len(self._entries) > self._max_size:
                self._entries.popitem(last=False)

    def __contains__(self, key: CacheKey) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def clear(self) -> None:
        """Drop all entries and forget the market fingerprint."""
        with self._lock:
            self._entries.clear()
            self._market_hash = None

    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                size=len(self._entries),
                max_size=self._max_size,
                hits=self._hits,
                misses=self._misses,
                market_hash=self._market_hash,
            )

    @property
    def enabled(self) -> bool:
        return self._enabled

    @enabled.setter
    def enabled(self, value: bool) -> None:
        self._enabled = value


# Module-level singleton
_cache: Optional[EnhancementCostCache] = None
_cache_lock = threading.Lock()


def get_cost_cache(
    max_size: int = DEFAULT_MAX_SIZE,
    sample_size: int = DEFAULT_HASH_SAMPLE_SIZE,
) -> EnhancementCostCache:
    """Get or create the shared cost cache. Sizes only apply on first creation."""
    global _cache
    if _cache is None:
        with _cache_lock:
            if _cache is None:
                _cache = EnhancementCostCache(max_size=max_size, sample_size=sample_size)
    return _cache


def clear_cost_cache() -> None:
    """Clear the shared cost cache. Call when prices are refreshed."""
    if _cache is not None:
        _cache.clear()


def reset_cost_cache() -> None:
    """Drop the shared cost cache so the next get_cost_cache call re-sizes it."""
    global _cache
    with _cache_lock:
        _cache = None
