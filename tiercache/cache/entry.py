"""Cache entry model shared by all tiers."""

from typing import Any

from pydantic import BaseModel, ConfigDict


class CacheEntry(BaseModel):
    """A single cached value.

    Entries are immutable: re-setting a key creates a new entry, which
    also moves the key to the end of its tier's insertion order.

    Attributes:
        value: The cached payload.  Opaque to the cache and never copied.
        inserted_at: Tier-clock instant at which the entry was stored.
        expires_at: ``inserted_at + ttl``; the entry is stale from this
            instant on.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    value: Any
    inserted_at: float
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at

    def ttl_remaining(self, now: float) -> float:
        """Seconds until expiry (negative once expired)."""
        return self.expires_at - now
