"""
Auth gate consulted before any fetch is issued.

No request goes out while auth is still initializing, since its
authorization context would be incomplete. A closed gate suppresses the fetch
silently instead of raising.
"""
from dataclasses import dataclass
from typing import Optional, Union

from thirstee.errors import GuardViolationError
from .state import AuthSnapshot, AuthState, Principal


def should_fetch(
    auth_state: Union[AuthState, str],
    require_auth: bool,
    principal: Optional[Principal],
) -> bool:
    """
    Decide whether a fetch may be issued for the given auth state.

    Args:
        auth_state: Current lifecycle state (enum or its string value)
        require_auth: Whether the resource needs a signed-in principal
        principal: The current user, if any

    Returns:
        False while loading or on error. With ``require_auth`` only an
        authenticated principal with a non-empty id opens the gate. Without
        it any determinate state opens the gate, unless a principal is present
        but has an empty id.
    """
    state = AuthState(auth_state)

    if not state.is_determinate:
        return False

    if require_auth:
        return (
            state is AuthState.AUTHENTICATED
            and principal is not None
            and principal.has_identity
        )

    if principal is not None and not principal.has_identity:
        return False
    return True


def ensure_principal(principal: Optional[Principal], resource: str = "resource") -> Principal:
    """
    Return ``principal`` or raise if it cannot authorize a request.

    Raises:
        GuardViolationError: If the principal is missing or has no id
    """
    if principal is None or not principal.has_identity:
        raise GuardViolationError(f"{resource} requires a signed-in user")
    return principal


@dataclass(frozen=True)
class AuthView:
    """What a page needs to decide whether and how to render."""
    user: Optional[Principal]
    is_authenticated: bool
    is_loading: bool
    error: Optional[str]
    should_render: bool


def require_auth_view(snapshot: AuthSnapshot) -> AuthView:
    """View for pages that only render for a signed-in user."""
    authenticated = snapshot.state is AuthState.AUTHENTICATED
    return AuthView(
        user=snapshot.user if authenticated else None,
        is_authenticated=authenticated,
        is_loading=snapshot.state is AuthState.LOADING,
        error=snapshot.error if snapshot.state is AuthState.ERROR else None,
        should_render=authenticated,
    )


def optional_auth_view(snapshot: AuthSnapshot) -> AuthView:
    """View for pages that render once auth is determined, signed in or not."""
    authenticated = snapshot.state is AuthState.AUTHENTICATED
    return AuthView(
        user=snapshot.user if authenticated else None,
        is_authenticated=authenticated,
        is_loading=snapshot.state is AuthState.LOADING,
        error=snapshot.error if snapshot.state is AuthState.ERROR else None,
        should_render=snapshot.state is not AuthState.LOADING,
    )
