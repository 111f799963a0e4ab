"""
Auth lifecycle state as seen by the data layer.

The auth provider owns the lifecycle; this module only derives a single state
from its flags and tells listeners when that state changes.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

logger = logging.getLogger("auth.state")


class AuthState(Enum):
    """Lifecycle of the external auth provider."""
    LOADING = "loading"
    AUTHENTICATED = "authenticated"
    UNAUTHENTICATED = "unauthenticated"
    ERROR = "error"

    @property
    def is_determinate(self) -> bool:
        return self in (AuthState.AUTHENTICATED, AuthState.UNAUTHENTICATED)


@dataclass(frozen=True)
class Principal:
    """The signed-in user."""
    id: str
    email: Optional[str] = None
    display_name: Optional[str] = None

    @property
    def has_identity(self) -> bool:
        """False for a half-initialized session that carries no user id."""
        return bool(self.id)


@dataclass(frozen=True)
class AuthSnapshot:
    """Auth state at one point in time."""
    state: AuthState = AuthState.LOADING
    user: Optional[Principal] = None
    error: Optional[str] = None

    @property
    def is_ready(self) -> bool:
        return self.state is not AuthState.LOADING


def derive_auth_state(
    is_initialized: bool,
    loading: bool,
    error: Optional[str],
    user: Optional[Principal],
) -> AuthState:
    """
    Collapse the provider flags into one lifecycle state.

    Precedence: not initialized, then error, then loading, then user presence.
    """
    if not is_initialized:
        return AuthState.LOADING
    if error:
        return AuthState.ERROR
    if loading:
        return AuthState.LOADING
    if user is not None:
        return AuthState.AUTHENTICATED
    return AuthState.UNAUTHENTICATED


AuthListener = Callable[[AuthSnapshot, AuthSnapshot], None]


class AuthStateTracker:
    """
    Holds the current auth snapshot and notifies listeners on every transition.

    Listeners receive ``(previous, current)``. A failing listener is logged and
    does not stop the remaining listeners from being called.
    """

    def __init__(self, initial: Optional[AuthSnapshot] = None):
        self._snapshot = initial or AuthSnapshot()
        self._listeners: List[AuthListener] = []

    @property
    def snapshot(self) -> AuthSnapshot:
        return self._snapshot

    @property
    def state(self) -> AuthState:
        return self._snapshot.state

    @property
    def user(self) -> Optional[Principal]:
        return self._snapshot.user

    def subscribe(self, listener: AuthListener) -> Callable[[], None]:
        """Register a listener. Returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def update(
        self,
        is_initialized: bool,
        loading: bool = False,
        error: Optional[str] = None,
        user: Optional[Principal] = None,
    ) -> AuthSnapshot:
        """Apply raw provider flags."""
        state = derive_auth_state(is_initialized, loading, error, user)
        return self.set(state, user=user, error=error)

    def set(
        self,
        state: AuthState,
        user: Optional[Principal] = None,
        error: Optional[str] = None,
    ) -> AuthSnapshot:
        """Move to ``state``. Listeners are only called if something changed."""
        current = AuthSnapshot(state=state, user=user, error=error)
        previous = self._snapshot
        if current == previous:
            return current

        self._snapshot = current
        logger.info(f"Auth transition: {previous.state.value} -> {state.value}")
        for listener in list(self._listeners):
            try:
                listener(previous, current)
            except Exception:
                logger.exception("Auth listener failed")
        return current

    def sign_in(self, user: Principal) -> AuthSnapshot:
        return self.set(AuthState.AUTHENTICATED, user=user)

    def sign_out(self) -> AuthSnapshot:
        return self.set(AuthState.UNAUTHENTICATED)

    def fail(self, error: str) -> AuthSnapshot:
        return self.set(AuthState.ERROR, user=self._snapshot.user, error=error)
