"""
Cache manager: routes operations to named tiers.

The set of tiers is fixed when the manager is built, either from an
explicit list of :class:`TierConfig` or from the ``cache.tiers`` section
of the settings.  Construct one manager at process start and pass it to
every call site that needs caching.
"""

import asyncio
import inspect
import logging
import threading
import time
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    Iterable,
    List,
    Optional,
    Pattern,
    TypeVar,
    Union,
)

from pydantic import ValidationError

from tiercache.cache.memoize import cached
from tiercache.cache.stats import CacheStatistics, CacheStats
from tiercache.cache.tier import CacheTier, Clock, TierConfig, compile_pattern
from tiercache.config import Settings, get_settings
from tiercache.exceptions import ConfigurationError, UnknownTierError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def tier_configs_from_settings(settings: Settings) -> List[TierConfig]:
    """Validate the ``cache.tiers`` settings section into tier configs.

    Raises:
        ConfigurationError: If any tier has a non-positive TTL or bound.
    """
    configs: List[TierConfig] = []
    for name, tier in settings.cache.tiers.items():
        try:
            configs.append(
                TierConfig(
                    name=name,
                    ttl_seconds=tier.ttl_seconds,
                    max_entries=tier.max_entries,
                )
            )
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid settings for cache tier {name!r}: {exc}") from exc
    return configs


class CacheManager:
    """Facade over a fixed set of :class:`CacheTier` objects.

    All tiers share one :class:`CacheStatistics` recorder.  Producers are
    always invoked with no tier lock held; concurrent misses on the same
    key each run the producer and the last store wins.

    Args:
        tiers: Tier configurations.  Defaults to the ``cache.tiers``
            section of :func:`~tiercache.config.get_settings`.
        clock: Monotonic time source shared by all tiers.

    Raises:
        ConfigurationError: If no tiers are configured or a name repeats.
    """

    def __init__(
        self,
        tiers: Optional[Iterable[TierConfig]] = None,
        clock: Clock = time.monotonic,
    ) -> None:
        configs = list(tiers) if tiers is not None else tier_configs_from_settings(get_settings())
        if not configs:
            raise ConfigurationError("At least one cache tier must be configured")

        self._stats = CacheStatistics()
        self._tiers: Dict[str, CacheTier] = {}
        for config in configs:
            if config.name in self._tiers:
                raise ConfigurationError(f"Duplicate cache tier name: {config.name!r}")
            self._tiers[config.name] = CacheTier(config, stats=self._stats, clock=clock)

        logger.info(
            "CacheManager initialised",
            extra={
                "tiers": {
                    c.name: {"ttl_seconds": c.ttl_seconds, "max_entries": c.max_entries}
                    for c in configs
                }
            },
        )

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "CacheManager":
        """Build a manager from a :class:`Settings` object (or the singleton)."""
        return cls(tier_configs_from_settings(settings or get_settings()))

    # ------------------------------------------------------------------
    # Tier routing
    # ------------------------------------------------------------------

    def get_tier(self, name: str) -> CacheTier:
        """Resolve a configured tier.

        Raises:
            UnknownTierError: If *name* is not configured.
        """
        try:
            return self._tiers[name]
        except KeyError:
            raise UnknownTierError(name) from None

    @property
    def tier_names(self) -> List[str]:
        return list(self._tiers)

    @property
    def statistics(self) -> CacheStatistics:
        return self._stats

    # ------------------------------------------------------------------
    # Get-or-compute
    # ------------------------------------------------------------------

    def get_or_compute(
        self,
        tier: str,
        key: str,
        producer: Callable[[], T],
        *,
        cancel_event: Optional[threading.Event] = None,
    ) -> T:
        """Return the cached value for *key*, computing it on a miss.

        On a miss *producer* is called with no lock held.  A successful
        result is stored; an exception propagates unchanged and nothing
        is stored.

        Args:
            tier: Tier name.
            key: Cache key.
            producer: Zero-argument callable computing the value.
            cancel_event: If set by the time *producer* returns, the
                result is handed back but not stored.

        Raises:
            UnknownTierError: If *tier* is not configured.
        """
        cache_tier = self.get_tier(tier)
        value, found = cache_tier.get(key)
        if found:
            return value

        logger.debug("Cache miss, computing", extra={"tier": tier, "cache_key": key})
        try:
            result = producer()
        except Exception:
            logger.debug(
                "Producer failed; nothing cached",
                extra={"tier": tier, "cache_key": key},
                exc_info=True,
            )
            raise

        if cancel_event is not None and cancel_event.is_set():
            logger.debug(
                "Caller cancelled; result discarded",
                extra={"tier": tier, "cache_key": key},
            )
            return result

        cache_tier.set(key, result)
        return result

    async def aget_or_compute(
        self,
        tier: str,
        key: str,
        producer: Callable[[], Union[Awaitable[T], T]],
    ) -> T:
        """Async variant of :meth:`get_or_compute`.

        *producer* may return an awaitable or a plain value.  If the
        awaiting task is cancelled the :class:`asyncio.CancelledError`
        propagates and nothing is stored; a result that arrives while a
        cancellation request is pending is discarded as well.

        Raises:
            UnknownTierError: If *tier* is not configured.
        """
        cache_tier = self.get_tier(tier)
        value, found = cache_tier.get(key)
        if found:
            return value

        logger.debug("Cache miss, computing", extra={"tier": tier, "cache_key": key})
        try:
            result = producer()
            if inspect.isawaitable(result):
                result = await result
        except asyncio.CancelledError:
            logger.debug(
                "Caller cancelled; nothing cached",
                extra={"tier": tier, "cache_key": key},
            )
            raise
        except Exception:
            logger.debug(
                "Producer failed; nothing cached",
                extra={"tier": tier, "cache_key": key},
                exc_info=True,
            )
            raise

        task = asyncio.current_task()
        if task is not None and task.cancelling():
            logger.debug(
                "Caller cancelled; result discarded",
                extra={"tier": tier, "cache_key": key},
            )
            return result

        cache_tier.set(key, result)
        return result

    # ------------------------------------------------------------------
    # Direct access
    # ------------------------------------------------------------------

    def get(self, tier: str, key: str) -> Any:
        """Return the cached value or ``None``.  Use :meth:`CacheTier.get`
        when a cached ``None`` must be told apart from a miss."""
        value, _ = self.get_tier(tier).get(key)
        return value

    def set(self, tier: str, key: str, value: Any) -> None:
        self.get_tier(tier).set(key, value)

    # ------------------------------------------------------------------
    # Invalidation
    # ------------------------------------------------------------------

    def invalidate(self, tier: str, key: str) -> bool:
        """Remove one key from *tier*.  Absent keys are a no-op."""
        return self.get_tier(tier).invalidate(key)

    def invalidate_pattern(self, tier: str, pattern: Union[str, Pattern[str]]) -> int:
        """Remove every key in *tier* matching *pattern*.

        *pattern* is a regular expression applied with ``search``
        semantics, so a literal substring matches anywhere in the key
        and ``^`` anchors to the start.  Other tiers are untouched.

        Returns:
            Number of entries removed.

        Raises:
            UnknownTierError: If *tier* is not configured.
            re.error: If *pattern* is not a valid regular expression.
        """
        return self.get_tier(tier).invalidate_matching(compile_pattern(pattern))

    def clear_all(self) -> int:
        """Clear every tier.  Statistics are kept.

        Returns:
            Total number of entries removed.
        """
        removed = sum(t.clear() for t in self._tiers.values())
        logger.info("All caches cleared", extra={"entries_removed": removed})
        return removed

    def purge_expired(self) -> int:
        """Drop expired entries from every tier without touching statistics."""
        return sum(t.purge_expired() for t in self._tiers.values())

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    def stats(self) -> CacheStats:
        """Read-only snapshot of counters and per-tier sizes."""
        return self._stats.snapshot({name: t.size for name, t in self._tiers.items()})

    def log_stats(self) -> CacheStats:
        """Log the current snapshot at INFO level and return it."""
        snapshot = self.stats()
        logger.info(
            "Cache statistics: hit rate %.2f%%, %d hits, %d misses, %d evictions",
            snapshot.hit_rate * 100,
            snapshot.hits,
            snapshot.misses,
            snapshot.evictions,
            extra={"tier_sizes": snapshot.tier_sizes},
        )
        return snapshot

    # ------------------------------------------------------------------
    # Memoization
    # ------------------------------------------------------------------

    def memoize(
        self,
        tier: str,
        *,
        name: Optional[str] = None,
    ) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Decorator form of :func:`tiercache.cache.memoize.cached` bound to this manager."""
        return cached(self, tier, name=name)
