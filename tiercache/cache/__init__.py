"""Multi-tier in-process caching (master / api / computed)."""

from tiercache.cache.entry import CacheEntry
from tiercache.cache.manager import CacheManager, tier_configs_from_settings
from tiercache.cache.memoize import cached
from tiercache.cache.reaper import CacheReaper
from tiercache.cache.stats import CacheStatistics, CacheStats
from tiercache.cache.tier import CacheTier, TierConfig

__all__ = [
    "CacheEntry",
    "CacheManager",
    "CacheReaper",
    "CacheStatistics",
    "CacheStats",
    "CacheTier",
    "TierConfig",
    "cached",
    "tier_configs_from_settings",
]
