"""
Auth-gated resources: one parameterized coordinator client per resource type.

Each resource knows how to build its cache key from the signed-in user and
its parameters. A ``GatedResource`` watches the auth tracker and fetches
whenever the gate opens, so nothing is requested while auth is initializing.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from thirstee.auth.gate import ensure_principal, should_fetch
from thirstee.auth.state import AuthSnapshot, AuthState, AuthStateTracker, Principal
from thirstee.cache.ttl_policies import get_ttl_for_resource
from thirstee.errors import GuardViolationError
from .coordinator import FetchCoordinator, Producer, StateListener, Subscription
from .retry import RetryPolicy
from .state import DataState, FetchState

logger = logging.getLogger("fetching.resources")

# Loads a resource for a principal (None when signed out) and parameters
ResourceFetcher = Callable[[Optional[Principal], Dict[str, Any]], Awaitable[Any]]


@dataclass(frozen=True)
class ResourceSpec:
    """How one kind of resource is keyed, cached and gated."""
    name: str
    key_template: str
    ttl: float
    require_auth: bool = True
    retry: Optional[RetryPolicy] = None
    empty: Any = None
    defaults: Dict[str, Any] = field(default_factory=dict, hash=False)

    @property
    def key_prefix(self) -> str:
        """Literal text before the first placeholder, shared by every key."""
        return self.key_template.split("{", 1)[0]

    def build_key(self, principal: Optional[Principal], **params) -> str:
        values = {**self.defaults, **params}
        user_id = principal.id if principal is not None else "anonymous"
        return self.key_template.format(user_id=user_id, **values)

    def empty_value(self) -> Any:
        # Fresh copy so callers can't mutate the shared default
        if isinstance(self.empty, dict):
            return dict(self.empty)
        if isinstance(self.empty, list):
            return list(self.empty)
        return self.empty


USER_STATS = ResourceSpec(
    name="user_stats",
    key_template="stats-{user_id}-{refresh_trigger}",
    ttl=get_ttl_for_resource("user_stats"),
    empty={"total_events": 0, "upcoming_events": 0, "total_rsvps": 0},
    defaults={"refresh_trigger": 0},
)

UPCOMING_SESSIONS = ResourceSpec(
    name="upcoming_sessions",
    key_template="upcoming-sessions-{user_id}-{refresh_trigger}-{limit}",
    ttl=get_ttl_for_resource("upcoming_sessions"),
    empty=[],
    defaults={"refresh_trigger": 0, "limit": 10},
)

ALL_SESSIONS = ResourceSpec(
    name="all_sessions",
    key_template="all-sessions-{user_id}-{filter}-{refresh_trigger}",
    ttl=get_ttl_for_resource("all_sessions"),
    empty=[],
    defaults={"refresh_trigger": 0, "filter": "all"},
)

USER_SESSIONS = ResourceSpec(
    name="user_sessions",
    key_template="user-sessions-{user_id}-{refresh_trigger}",
    ttl=get_ttl_for_resource("user_sessions"),
    empty={"upcoming": [], "past": []},
    defaults={"refresh_trigger": 0},
)

RESOURCES: Dict[str, ResourceSpec] = {
    spec.name: spec
    for spec in (USER_STATS, UPCOMING_SESSIONS, ALL_SESSIONS, USER_SESSIONS)
}


def clear_resource_cache(spec: ResourceSpec, coordinator: FetchCoordinator) -> int:
    """
    Drop every cached value of one resource and release its in-flight claims.

    Released fetches keep running and may still settle into the cache unless a
    newer fetch for the same key lands first.
    """
    coordinator.registry.release_matching(spec.key_prefix)
    return coordinator.cache.invalidate_pattern(spec.key_prefix)


class GatedResource:
    """
    A resource bound to the auth lifecycle.

    Re-evaluates the gate on every auth transition. While the gate is closed
    no producer runs; when a required user goes away the state falls back to
    the resource's empty value.
    """

    def __init__(
        self,
        coordinator: FetchCoordinator,
        tracker: AuthStateTracker,
        spec: ResourceSpec,
        fetcher: ResourceFetcher,
        **params,
    ):
        self._coordinator = coordinator
        self._tracker = tracker
        self.spec = spec
        self._fetcher = fetcher
        self.params: Dict[str, Any] = {**spec.defaults, **params}
        self._subscription: Optional[Subscription] = None
        self._closed_state = self._state_for_closed_gate(tracker.snapshot)
        self._listeners: List[StateListener] = []
        self._pending: Set[asyncio.Task] = set()
        self._closed = False
        self._unsubscribe_auth = tracker.subscribe(self._on_auth_change)

    @property
    def state(self) -> FetchState:
        if self._subscription is not None:
            return self._subscription.state
        return self._closed_state

    @property
    def key(self) -> Optional[str]:
        return self._subscription.key if self._subscription is not None else None

    def on_change(self, listener: StateListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, state: FetchState) -> None:
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception(f"Listener failed for {self.spec.name}")

    def _state_for_closed_gate(self, snapshot: AuthSnapshot) -> FetchState:
        if snapshot.state is AuthState.LOADING:
            return FetchState(is_loading=True, status=DataState.LOADING)
        return FetchState(data=self.spec.empty_value())

    def _make_producer(self, principal: Optional[Principal]) -> Producer:
        spec = self.spec
        params = dict(self.params)

        async def producer():
            if spec.require_auth:
                ensure_principal(principal, spec.name)
            return await self._fetcher(principal, params)

        return producer

    def _close_gate(self, snapshot: AuthSnapshot) -> FetchState:
        if self._subscription is not None:
            self._subscription.close()
            self._subscription = None
        self._closed_state = self._state_for_closed_gate(snapshot)
        logger.debug(f"Gate closed for {self.spec.name} ({snapshot.state.value})")
        self._notify(self._closed_state)
        return self._closed_state

    def _bind(self, principal: Optional[Principal]) -> Subscription:
        key = self.spec.build_key(principal, **self.params)
        producer = self._make_producer(principal)
        if self._subscription is None:
            self._subscription = self._coordinator.subscribe(
                key, self.spec.ttl, producer, retry=self.spec.retry
            )
            self._subscription.on_change(self._notify)
        else:
            self._subscription.rekey(key, producer)
        return self._subscription

    async def evaluate(self) -> FetchState:
        """Check the gate against the current auth state and fetch if it is open."""
        if self._closed:
            return self.state

        snapshot = self._tracker.snapshot
        if not should_fetch(snapshot.state, self.spec.require_auth, snapshot.user):
            return self._close_gate(snapshot)

        return await self._bind(snapshot.user).load()

    async def refetch(self) -> FetchState:
        """
        Fetch again, bypassing the cache.

        Raises:
            GuardViolationError: If the resource needs a signed-in user and
                                 there is no valid one
        """
        snapshot = self._tracker.snapshot
        if self.spec.require_auth:
            if snapshot.state is not AuthState.AUTHENTICATED:
                raise GuardViolationError(f"{self.spec.name} requires a signed-in user")
            ensure_principal(snapshot.user, self.spec.name)

        if self._closed or not should_fetch(snapshot.state, self.spec.require_auth, snapshot.user):
            return self.state

        return await self._bind(snapshot.user).refetch()

    async def update_params(self, **params) -> FetchState:
        """Change parameters (e.g. bump ``refresh_trigger``) and re-evaluate."""
        self.params.update(params)
        return await self.evaluate()

    def invalidate(self) -> None:
        if self._subscription is not None:
            self._subscription.invalidate()

    def _on_auth_change(self, previous: AuthSnapshot, current: AuthSnapshot) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop yet: the next explicit evaluate() picks the change up
            logger.debug(f"Auth changed outside the event loop for {self.spec.name}")
            return
        task = loop.create_task(self.evaluate())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def wait_idle(self) -> None:
        """Wait for every evaluation triggered by auth transitions so far."""
        while self._pending:
            await asyncio.wait(list(self._pending))

    def close(self) -> None:
        """Stop following auth changes and release the subscription."""
        if self._closed:
            return
        self._closed = True
        self._unsubscribe_auth()
        for task in list(self._pending):
            task.cancel()
        if self._subscription is not None:
            self._subscription.close()
            self._subscription = None
