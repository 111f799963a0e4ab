"""
Coordinated, auth-gated data fetching on top of the TTL cache.
"""
from .state import DataState, FetchState, FetchResult
from .retry import RetryPolicy, call_with_retry
from .coordinator import (
    FetchCoordinator,
    Subscription,
    get_fetch_coordinator,
    reset_fetch_coordinator,
)
from .resources import (
    ResourceSpec,
    GatedResource,
    RESOURCES,
    USER_STATS,
    UPCOMING_SESSIONS,
    ALL_SESSIONS,
    USER_SESSIONS,
    clear_resource_cache,
)

__all__ = [
    # State
    "DataState",
    "FetchState",
    "FetchResult",
    # Retry
    "RetryPolicy",
    "call_with_retry",
    # Coordinator
    "FetchCoordinator",
    "Subscription",
    "get_fetch_coordinator",
    "reset_fetch_coordinator",
    # Resources
    "ResourceSpec",
    "GatedResource",
    "RESOURCES",
    "USER_STATS",
    "UPCOMING_SESSIONS",
    "ALL_SESSIONS",
    "USER_SESSIONS",
    "clear_resource_cache",
]
