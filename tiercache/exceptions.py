"""
tiercache exception hierarchy.

All custom exceptions inherit from TierCacheException so callers can
catch a single base type when they want a broad safety net.

Misses, expirations and evictions are normal control flow and have no
exception type.
"""


class TierCacheException(Exception):
    """Base exception for all tiercache errors."""


class ConfigurationError(TierCacheException, ValueError):
    """Raised when configuration is invalid or cannot be loaded."""


class CacheError(TierCacheException):
    """Raised when cache machinery is misused (e.g. double-starting the reaper)."""


class UnknownTierError(CacheError, KeyError):
    """Raised when a tier name is not part of the static configuration."""

    def __init__(self, name: str) -> None:
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return f"Unknown cache tier: {self.name!r}"


class ProducerError(TierCacheException):
    """Base for failures raised by producers shipped with tiercache.

    The cache never stores a failure; whatever a producer raises reaches
    the caller unchanged, whether or not it derives from this class.
    """


class BackendError(ProducerError):
    """Raised when a backend response carries an error payload."""

    def __init__(self, message: str, error: object = None) -> None:
        super().__init__(message)
        self.error = error


class UncacheableValueError(CacheError, TypeError):
    """Raised when a value has no canonical form and cannot be part of a key.

    Plain objects are rejected rather than keyed on ``repr()``, whose
    default form embeds a memory address that can be reused.
    """

    def __init__(self, value: object) -> None:
        self.value_type = f"{type(value).__module__}.{type(value).__qualname__}"
        super().__init__(f"Cannot build a cache key from a {self.value_type} value")
