"""
Auth lifecycle tracking and the gate that holds fetches until auth settles.
"""
from .state import (
    AuthState,
    AuthSnapshot,
    AuthStateTracker,
    Principal,
    derive_auth_state,
)
from .gate import (
    AuthView,
    should_fetch,
    ensure_principal,
    require_auth_view,
    optional_auth_view,
)

__all__ = [
    # State
    "AuthState",
    "AuthSnapshot",
    "AuthStateTracker",
    "Principal",
    "derive_auth_state",
    # Gate
    "AuthView",
    "should_fetch",
    "ensure_principal",
    "require_auth_view",
    "optional_auth_view",
]
