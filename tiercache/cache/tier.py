"""
A single bounded cache tier.

Each tier has its own TTL and entry bound.  Entries live in an
insertion-ordered dict; when the bound is exceeded the oldest-inserted
entry goes first (FIFO, not LRU: reads never reorder).
"""

import logging
import re
import threading
import time
from typing import Any, Callable, Dict, List, Optional, Pattern, Tuple, Union

from pydantic import BaseModel, Field

from tiercache.cache.entry import CacheEntry
from tiercache.cache.stats import CacheStatistics

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class TierConfig(BaseModel):
    """Static configuration of one tier.

    Attributes:
        name: Stable tier identifier (e.g. ``"master"``, ``"api"``).
        ttl_seconds: Lifetime added to the insertion instant of each entry.
        max_entries: Upper bound on live entries.
    """

    name: str = Field(min_length=1)
    ttl_seconds: float = Field(gt=0)
    max_entries: int = Field(default=100, ge=1)


class CacheTier:
    """Bounded TTL cache segment.

    Thread-safe: every access to the entry map holds ``_lock``.  Callers
    never hold the lock while producing a value.

    Args:
        config: Name, TTL and size bound.
        stats: Shared statistics recorder.  A private one is created if
            omitted.
        clock: Monotonic time source in seconds (injectable for tests).
    """

    def __init__(
        self,
        config: TierConfig,
        stats: Optional[CacheStatistics] = None,
        clock: Clock = time.monotonic,
    ) -> None:
        self._config = config
        self._stats = stats if stats is not None else CacheStatistics()
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.RLock()

    @property
    def name(self) -> str:
        return self._config.name

    @property
    def ttl_seconds(self) -> float:
        return self._config.ttl_seconds

    @property
    def max_entries(self) -> int:
        return self._config.max_entries

    @property
    def config(self) -> TierConfig:
        return self._config

    # ------------------------------------------------------------------
    # Lookup / store
    # ------------------------------------------------------------------

    def get(self, key: str) -> Tuple[Any, bool]:
        """Look up *key*.

        An expired entry is removed and counted as a miss, not an
        eviction.  Falsy values (``None``, ``0``, ``[]``) are ordinary
        hits.

        Returns:
            ``(value, True)`` on a hit, ``(None, False)`` on a miss.
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._stats.record_miss()
                logger.debug("Cache miss", extra={"tier": self.name, "cache_key": key})
                return None, False

            if entry.is_expired(self._clock()):
                del self._entries[key]
                self._stats.record_miss()
                logger.debug(
                    "Cache entry expired",
                    extra={"tier": self.name, "cache_key": key},
                )
                return None, False

            self._stats.record_hit()
            logger.debug("Cache hit", extra={"tier": self.name, "cache_key": key})
            return entry.value, True

    def set(self, key: str, value: Any) -> None:
        """Store *value* at *key*, then sweep expired entries and evict.

        Replacing a key moves it to the end of the insertion order.
        """
        with self._lock:
            now = self._clock()
            entry = CacheEntry(
                value=value,
                inserted_at=now,
                expires_at=now + self._config.ttl_seconds,
            )
            self._entries.pop(key, None)
            self._entries[key] = entry

            self._remove_expired(now)
            evicted = self._evict_overflow()
        logger.debug("Cache set", extra={"tier": self.name, "cache_key": key})
        if evicted:
            logger.info(
                "Cache eviction: removed oldest entries",
                extra={"tier": self.name, "count": evicted},
            )

    def contains(self, key: str) -> bool:
        """Whether a live entry exists at *key*.  Records no statistics."""
        with self._lock:
            entry = self._entries.get(key)
            return entry is not None and not entry.is_expired(self._clock())

    # ------------------------------------------------------------------
    # Removal
    # ------------------------------------------------------------------

    def invalidate(self, key: str) -> bool:
        """Remove *key* if present.  Statistics are not affected.

        Returns:
            ``True`` if an entry was removed.
        """
        with self._lock:
            removed = self._entries.pop(key, None) is not None
        if removed:
            logger.info(
                "Cache entry invalidated",
                extra={"tier": self.name, "cache_key": key},
            )
        return removed

    def invalidate_matching(self, pattern: Pattern[str]) -> int:
        """Remove every key for which ``pattern.search(key)`` matches.

        Returns:
            Number of entries removed.
        """
        with self._lock:
            doomed = [key for key in self._entries if pattern.search(key)]
            for key in doomed:
                del self._entries[key]
        if doomed:
            logger.info(
                "Cache entries invalidated by pattern",
                extra={
                    "tier": self.name,
                    "pattern": pattern.pattern,
                    "count": len(doomed),
                },
            )
        return len(doomed)

    def clear(self) -> int:
        """Remove all entries.

        Returns:
            Number of entries removed.
        """
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        logger.info("Cache tier cleared", extra={"tier": self.name, "entries_removed": count})
        return count

    def purge_expired(self) -> int:
        """Remove all expired entries without recording statistics.

        Returns:
            Number of entries removed.
        """
        with self._lock:
            removed = self._remove_expired(self._clock())
        if removed:
            logger.info(
                "Expired entries cleaned up",
                extra={"tier": self.name, "count": removed},
            )
        return removed

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def size(self) -> int:
        """Current number of stored entries (expired ones included until swept)."""
        with self._lock:
            return len(self._entries)

    def __len__(self) -> int:
        return self.size

    def keys(self) -> List[str]:
        """Snapshot of stored keys, oldest-inserted first."""
        with self._lock:
            return list(self._entries)

    # ------------------------------------------------------------------
    # Internal helpers (caller holds ``_lock``)
    # ------------------------------------------------------------------

    def _remove_expired(self, now: float) -> int:
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def _evict_overflow(self) -> int:
        evicted = 0
        while len(self._entries) > self._config.max_entries:
            oldest = next(iter(self._entries))
            del self._entries[oldest]
            evicted += 1
        self._stats.record_evictions(evicted)
        return evicted


def compile_pattern(pattern: Union[str, Pattern[str]]) -> Pattern[str]:
    """Accept a regex string or a pre-compiled pattern."""
    if isinstance(pattern, re.Pattern):
        return pattern
    return re.compile(pattern)
