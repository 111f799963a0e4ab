"""
TTL caching module with a persistent mirror and in-flight request tracking.
"""
from .core import CacheEntry, CacheSource
from .persistence import SQLiteCacheMirror
from .service import CacheService, get_cache_service, reset_cache_service
from .coalescer import InFlightRegistry, InFlightRequest
from .ttl_policies import (
    CacheTTL,
    CacheKeys,
    RESOURCE_TTL,
    get_ttl_for_resource,
    invalidate_user_caches,
    invalidate_event_caches,
    invalidate_event_attendance_caches,
)

__all__ = [
    # Core types
    "CacheEntry",
    "CacheSource",
    # Storage
    "SQLiteCacheMirror",
    "CacheService",
    "get_cache_service",
    "reset_cache_service",
    # In-flight tracking
    "InFlightRegistry",
    "InFlightRequest",
    # TTL policies and keys
    "CacheTTL",
    "CacheKeys",
    "RESOURCE_TTL",
    "get_ttl_for_resource",
    "invalidate_user_caches",
    "invalidate_event_caches",
    "invalidate_event_attendance_caches",
]
