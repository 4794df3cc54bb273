"""
Memoizing wrapper built on :meth:`CacheManager.get_or_compute`.

    api = CacheManager()

    @cached(api, "api")
    async def fetch_periods(year: int, active: bool = True) -> list:
        ...

Calls are keyed ``tier:module.qualname:canonical(bound arguments)``.
Arguments are bound against the function signature with defaults
applied, so positional and keyword spellings of the same call share a
key.  The wrapper holds no state of its own.

Calls whose arguments have no canonical form (plain objects, for
instance) skip the cache and run the function directly.
"""

import functools
import inspect
import logging
from typing import TYPE_CHECKING, Any, Callable, Optional, TypeVar

from tiercache.exceptions import UncacheableValueError
from tiercache.keys import call_key, function_identity, normalize_call

if TYPE_CHECKING:
    from tiercache.cache.manager import CacheManager

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


def _log_bypass(identity: str, exc: UncacheableValueError) -> None:
    logger.debug(
        "Uncacheable arguments, calling through",
        extra={"function": identity, "value_type": exc.value_type},
    )


def cached(
    manager: "CacheManager",
    tier: str,
    *,
    name: Optional[str] = None,
) -> Callable[[F], F]:
    """Return a decorator that serves repeated calls from *tier*.

    Coroutine functions get an async wrapper; plain functions get a sync
    one.  Failures are never cached.  The wrapper also exposes
    ``cache_key(*args, **kwargs)`` and ``invalidate(*args, **kwargs)``;
    both raise :class:`UncacheableValueError` for uncacheable arguments.

    Args:
        manager: The cache manager that owns *tier*.
        tier: Tier name; validated immediately.
        name: Function identity used in keys.  Defaults to
            ``module.qualname``.

    Raises:
        UnknownTierError: If *tier* is not configured.
    """
    manager.get_tier(tier)

    def decorator(fn: F) -> F:
        identity = name or function_identity(fn)

        def cache_key(*args: Any, **kwargs: Any) -> str:
            return call_key(tier, identity, normalize_call(fn, args, kwargs))

        def invalidate(*args: Any, **kwargs: Any) -> bool:
            return manager.invalidate(tier, cache_key(*args, **kwargs))

        if inspect.iscoroutinefunction(fn):
            @functools.wraps(fn)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                try:
                    key = cache_key(*args, **kwargs)
                except UncacheableValueError as exc:
                    _log_bypass(identity, exc)
                    return await fn(*args, **kwargs)
                return await manager.aget_or_compute(
                    tier, key, lambda: fn(*args, **kwargs)
                )

            wrapper: Any = async_wrapper
        else:
            @functools.wraps(fn)
            def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
                try:
                    key = cache_key(*args, **kwargs)
                except UncacheableValueError as exc:
                    _log_bypass(identity, exc)
                    return fn(*args, **kwargs)
                return manager.get_or_compute(
                    tier, key, lambda: fn(*args, **kwargs)
                )

            wrapper = sync_wrapper

        wrapper.cache_key = cache_key
        wrapper.invalidate = invalidate
        wrapper.cache_tier = tier
        return wrapper

    return decorator
