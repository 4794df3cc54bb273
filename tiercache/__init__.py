"""tiercache: multi-tier in-process caching with TTL, FIFO eviction and memoization."""

from tiercache.cache import (
    CacheEntry,
    CacheManager,
    CacheReaper,
    CacheStats,
    CacheTier,
    TierConfig,
    cached,
)
from tiercache.exceptions import (
    BackendError,
    CacheError,
    ConfigurationError,
    ProducerError,
    TierCacheException,
    UncacheableValueError,
    UnknownTierError,
)

__all__ = [
    "BackendError",
    "CacheEntry",
    "CacheError",
    "CacheManager",
    "CacheReaper",
    "CacheStats",
    "CacheTier",
    "ConfigurationError",
    "ProducerError",
    "TierCacheException",
    "TierConfig",
    "UncacheableValueError",
    "UnknownTierError",
    "cached",
]
