"""
Hit / miss / eviction accounting.

One :class:`CacheStatistics` recorder is created per
:class:`~tiercache.cache.manager.CacheManager` and shared by reference
with every tier it owns.  Counters only ever grow; :meth:`reset` is an
explicit operator action.
"""

import logging
import threading
from typing import Dict

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class CacheStats(BaseModel):
    """Read-only snapshot of cache statistics.

    Attributes:
        hits: Total hit count across all tiers.
        misses: Total miss count (absent or expired on access).
        evictions: Live entries removed to satisfy a size bound.
        hit_rate: Ratio of hits to total lookups (0.0 if no lookups).
        tier_sizes: Current entry count per tier name.
    """

    hits: int = 0
    misses: int = 0
    evictions: int = 0
    hit_rate: float = 0.0
    tier_sizes: Dict[str, int] = Field(default_factory=dict)


class CacheStatistics:
    """Thread-safe process-wide counters.

    Expiration sweeps (on ``set`` or by the reaper) are not recorded
    anywhere: they change no caller-visible outcome.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._hits: int = 0
        self._misses: int = 0
        self._evictions: int = 0

    def record_hit(self) -> None:
        with self._lock:
            self._hits += 1

    def record_miss(self) -> None:
        with self._lock:
            self._misses += 1

    def record_evictions(self, count: int = 1) -> None:
        if count <= 0:
            return
        with self._lock:
            self._evictions += count

    @property
    def hits(self) -> int:
        return self._hits

    @property
    def misses(self) -> int:
        return self._misses

    @property
    def evictions(self) -> int:
        return self._evictions

    def snapshot(self, tier_sizes: Dict[str, int]) -> CacheStats:
        """Build a :class:`CacheStats` without touching any counter.

        Args:
            tier_sizes: Entry count per tier, supplied by the caller.
        """
        with self._lock:
            hits, misses, evictions = self._hits, self._misses, self._evictions
        total = hits + misses
        return CacheStats(
            hits=hits,
            misses=misses,
            evictions=evictions,
            hit_rate=hits / total if total > 0 else 0.0,
            tier_sizes=dict(tier_sizes),
        )

    def reset(self) -> None:
        """Zero all counters.  Operator action only."""
        with self._lock:
            self._hits = 0
            self._misses = 0
            self._evictions = 0
        logger.info("Cache statistics reset")
