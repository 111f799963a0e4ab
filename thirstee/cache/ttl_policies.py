"""
TTL configuration and cache key construction.
"""
from typing import Dict, Optional

from .service import CacheService, get_cache_service


class CacheTTL:
    """Standard TTLs in seconds."""
    SHORT = 2 * 60          # 2 minutes
    MEDIUM = 5 * 60         # 5 minutes
    LONG = 15 * 60          # 15 minutes
    VERY_LONG = 60 * 60     # 1 hour


# TTL by resource name (seconds)
RESOURCE_TTL: Dict[str, float] = {
    "user_stats": 3 * 60,
    "upcoming_sessions": 3 * 60,
    "all_sessions": 3 * 60,
    "user_sessions": 3 * 60,
}


def get_ttl_for_resource(name: str) -> float:
    """TTL for a named resource, MEDIUM when it has no entry."""
    return RESOURCE_TTL.get(name, CacheTTL.MEDIUM)


class CacheKeys:
    """Key builders for entities cached across the app."""

    @staticmethod
    def user_profile(user_id: str) -> str:
        return f"user_profile_{user_id}"

    @staticmethod
    def user_events(user_id: str) -> str:
        return f"user_events_{user_id}"

    @staticmethod
    def user_crews(user_id: str) -> str:
        return f"user_crews_{user_id}"

    @staticmethod
    def user_stats(user_id: str) -> str:
        return f"user_stats_{user_id}"

    @staticmethod
    def follow_counts(user_id: str) -> str:
        return f"follow_counts_{user_id}"

    @staticmethod
    def my_events(user_id: str) -> str:
        return f"my_events_{user_id}"

    @staticmethod
    def accessible_events(user_id: str) -> str:
        return f"accessible_events_{user_id}"

    @staticmethod
    def is_following(follower_id: str, following_id: str) -> str:
        return f"is_following_{follower_id}_{following_id}"

    @staticmethod
    def event_details(event_id: str) -> str:
        return f"event_details_{event_id}"

    @staticmethod
    def event_attendees(event_id: str) -> str:
        return f"event_attendees_{event_id}"

    @staticmethod
    def event_ratings(event_id: str) -> str:
        return f"event_ratings_{event_id}"

    @staticmethod
    def event_attendance(event_id: str, user_id: str) -> str:
        return f"event_attendance_{event_id}_{user_id}"

    @staticmethod
    def crew_details(crew_id: str) -> str:
        return f"crew_details_{crew_id}"

    @staticmethod
    def crew_members(crew_id: str) -> str:
        return f"crew_members_{crew_id}"

    @staticmethod
    def discover_events(filters: str) -> str:
        return f"discover_events_{filters}"

    PUBLIC_EVENTS = "public_events"


def invalidate_user_caches(user_id: str, cache: Optional[CacheService] = None) -> None:
    """Drop everything cached about one user after a profile or membership change."""
    cache = cache or get_cache_service()
    cache.delete(CacheKeys.user_profile(user_id))
    cache.delete(CacheKeys.follow_counts(user_id))
    cache.delete(CacheKeys.my_events(user_id))
    cache.delete(CacheKeys.accessible_events(user_id))
    cache.delete(CacheKeys.user_stats(user_id))


def invalidate_event_caches(cache: Optional[CacheService] = None) -> int:
    """Drop public and per-user event listings after an event is created or changed."""
    cache = cache or get_cache_service()
    cache.delete(CacheKeys.PUBLIC_EVENTS)
    return (
        cache.invalidate_pattern("accessible_events_")
        + cache.invalidate_pattern("my_events_")
    )


def invalidate_event_attendance_caches(
    event_id: Optional[str] = None,
    cache: Optional[CacheService] = None,
) -> int:
    """Drop attendance entries for one event, or for every event when no id is given."""
    cache = cache or get_cache_service()
    if event_id:
        return cache.invalidate_pattern(f"event_attendance_{event_id}_")
    return cache.invalidate_pattern("event_attendance_")
