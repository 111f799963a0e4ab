"""
Core cache data structures.
"""
from dataclasses import dataclass
from typing import Any
from enum import Enum


class CacheSource(Enum):
    """Where the value handed back by a coordinated fetch came from."""
    FRESH = "fresh"           # Within TTL, served from cache
    UPSTREAM = "upstream"     # Produced by this call
    IN_FLIGHT = "in_flight"   # Another fetch owns the key, nothing started
    ERROR = "error"           # Producer failed
    CANCELLED = "cancelled"   # Producer task was cancelled


@dataclass
class CacheEntry:
    """
    A cached value with the wall-clock time it was stored and its TTL.

    Entries are replaced wholesale on every write, never updated in place.
    """
    value: Any
    stored_at: float
    ttl_seconds: float

    def age_seconds(self, now: float) -> float:
        """Seconds since the value was stored."""
        return now - self.stored_at

    def is_fresh(self, now: float) -> bool:
        """Check if the value is within its TTL."""
        return self.age_seconds(now) < self.ttl_seconds
