"""
Fetch coordination: in-flight guard, freshness check and delivery to subscribers.

When several subscribers want the same key, only one producer call is made.
Its outcome is written to the cache and pushed to every subscriber of the key
that is still open.
"""
import asyncio
import logging
from collections import defaultdict
from typing import Any, Awaitable, Callable, Dict, List, Optional

from thirstee.cache.core import CacheSource
from thirstee.cache.coalescer import InFlightRegistry, InFlightRequest
from thirstee.cache.service import CacheService, get_cache_service
from thirstee.errors import FetchTimeoutError
from .retry import RetryPolicy, call_with_retry
from .state import FetchResult, FetchState, error_message

logger = logging.getLogger("fetching.coordinator")

Producer = Callable[[], Awaitable[Any]]
StateListener = Callable[[FetchState], None]


class FetchCoordinator:
    """
    Runs producers on behalf of subscribers with:
    - At most one in-flight producer call per key, process-wide
    - Cache-first reads within the TTL
    - Failures surfaced as messages and never cached
    - Out-of-order completions discarded via per-key sequence numbers
    - Optional timeout and optional cancellation of orphaned fetches
    """

    def __init__(
        self,
        cache: CacheService,
        registry: Optional[InFlightRegistry] = None,
        timeout: Optional[float] = None,
        cancel_orphaned: bool = False,
        use_cache: bool = True,
        default_retry: Optional[RetryPolicy] = None,
    ):
        """
        Initialize the coordinator.

        Args:
            cache: Where results are read from and written to
            registry: In-flight tracking, shared if several coordinators
                      must not fetch the same key at once
            timeout: Seconds before a producer is cancelled and reported as
                     failed; None waits forever
            cancel_orphaned: Cancel a fetch once the last open subscriber of
                             its key closes. Otherwise the fetch runs to
                             completion and still fills the cache
            use_cache: When False every call goes to the producer and
                       nothing is written back
            default_retry: Retry policy for calls that do not pass one
        """
        self._cache = cache
        self._registry = registry or InFlightRegistry()
        self._timeout = timeout
        self._cancel_orphaned = cancel_orphaned
        self._use_cache = use_cache
        self._default_retry = default_retry
        self._subscribers: Dict[str, List["Subscription"]] = defaultdict(list)

        self._stats = {
            "fresh_hits": 0,
            "in_flight_skips": 0,
            "fetches": 0,
            "errors": 0,
            "timeouts": 0,
            "cancelled": 0,
            "discarded": 0,
        }

    @property
    def cache(self) -> CacheService:
        return self._cache

    @property
    def registry(self) -> InFlightRegistry:
        return self._registry

    async def fetch_with_coordination(
        self,
        key: str,
        ttl: float,
        producer: Producer,
        force_refresh: bool = False,
        retry: Optional[RetryPolicy] = None,
    ) -> FetchResult:
        """
        Get the value for ``key`` without ever running two producers for it.

        Args:
            key: Uniquely identifies the request, including user and filters
            ttl: Freshness window in seconds for the produced value
            producer: Zero-argument coroutine function
            force_refresh: Skip the freshness check. The in-flight guard
                           still applies
            retry: Optional backoff policy for this call site

        Returns:
            FetchResult with source IN_FLIGHT if another fetch owns the key,
            FRESH for a cache hit, UPSTREAM or ERROR once the producer settles
        """
        if self._registry.is_in_flight(key):
            logger.debug(f"Fetch already in flight: {key}")
            self._stats["in_flight_skips"] += 1
            return FetchResult(source=CacheSource.IN_FLIGHT)

        if not force_refresh and self._use_cache:
            entry = self._cache.get_entry(key)
            if entry is not None:
                self._stats["fresh_hits"] += 1
                return FetchResult(source=CacheSource.FRESH, data=entry.value)

        logger.info(f"{'FORCE REFRESH' if force_refresh else 'CACHE MISS'}: {key}")
        request = self._start(key, ttl, producer, retry or self._default_retry)
        # Shield so a cancelled caller does not stop the shared fetch
        return await asyncio.shield(request.future)

    async def join(self, key: str, timeout: Optional[float] = None) -> Optional[FetchResult]:
        """Wait for the in-flight fetch of ``key``; None if there is none."""
        return await self._registry.join(key, timeout)

    def _start(
        self,
        key: str,
        ttl: float,
        producer: Producer,
        retry: Optional[RetryPolicy],
    ) -> InFlightRequest:
        request = self._registry.begin(key)
        self._stats["fetches"] += 1
        self._deliver(key, lambda state: state.loading())

        request.task = asyncio.ensure_future(call_with_retry(producer, retry))
        request.task.add_done_callback(lambda _task: self._complete(request, ttl))
        if self._timeout is not None:
            request.timer = asyncio.get_running_loop().call_later(
                self._timeout, self._expire, request
            )
        return request

    def _complete(self, request: InFlightRequest, ttl: float) -> None:
        """Settle ``request`` once its producer task is done."""
        try:
            self._resolve(request, ttl)
        finally:
            self._registry.settle(request)

    def _resolve(self, request: InFlightRequest, ttl: float) -> None:
        key = request.key
        task = request.task
        if request.timer is not None:
            request.timer.cancel()
        self._registry.finish(request)

        if request.future.done():
            # Already settled by the timeout
            return

        if task.cancelled():
            self._stats["cancelled"] += 1
            logger.info(f"Fetch cancelled: {key}")
            result = FetchResult(source=CacheSource.CANCELLED)

        elif task.exception() is not None:
            message = error_message(task.exception())
            self._stats["errors"] += 1
            logger.warning(f"Fetch failed for {key}: {message}")
            if self._registry.should_apply(request):
                self._deliver(key, lambda state: state.failed(message))
            result = FetchResult(source=CacheSource.ERROR, error=message)

        else:
            data = task.result()
            if self._registry.should_apply(request):
                self._registry.mark_applied(request)
                if self._use_cache:
                    self._cache.set(key, data, ttl)
                self._deliver(key, lambda state: state.succeeded(data))
            else:
                self._stats["discarded"] += 1
                logger.info(
                    f"Discarding out-of-order completion for {key} "
                    f"(seq={request.sequence})"
                )
            result = FetchResult(source=CacheSource.UPSTREAM, data=data)

        request.future.set_result(result)

    def _expire(self, request: InFlightRequest) -> None:
        """Timeout handler: fail the request and cancel its producer."""
        if request.task is None or request.task.done():
            return

        self._registry.finish(request)
        message = error_message(FetchTimeoutError(request.key, self._timeout))
        self._stats["timeouts"] += 1
        logger.error(message)
        self._deliver(request.key, lambda state: state.failed(message))
        request.future.set_result(FetchResult(source=CacheSource.ERROR, error=message))
        request.task.cancel()

    def _deliver(self, key: str, update: Callable[[FetchState], FetchState]) -> None:
        for subscription in list(self._subscribers.get(key, ())):
            subscription._apply(update)

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(
        self,
        key: str,
        ttl: float,
        producer: Producer,
        retry: Optional[RetryPolicy] = None,
    ) -> "Subscription":
        """Open a subscription. Call ``load()`` on it to fetch."""
        return Subscription(self, key, ttl, producer, retry)

    def _register(self, subscription: "Subscription") -> None:
        self._subscribers[subscription.key].append(subscription)

    def _unregister(self, subscription: "Subscription") -> None:
        key = subscription.key
        subscribers = self._subscribers.get(key)
        if subscribers and subscription in subscribers:
            subscribers.remove(subscription)
        if not subscribers:
            self._subscribers.pop(key, None)
            if self._cancel_orphaned:
                request = self._registry.get(key)
                if request is not None and request.task is not None and not request.task.done():
                    logger.info(f"Cancelling orphaned fetch: {key}")
                    request.task.cancel()

    def subscriber_count(self, key: str) -> int:
        return len(self._subscribers.get(key, ()))

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def release_in_flight(self) -> int:
        """
        Drop every in-flight claim without cancelling the producers.

        Fetches that are still running settle normally, but a newer fetch for
        the same key wins if it is applied first.
        """
        return len(self._registry.release_all())

    def dispose(self) -> None:
        """Cancel every in-flight fetch and close every subscription."""
        for request in self._registry.release_all():
            if request.task is not None and not request.task.done():
                request.task.cancel()
        self._registry.reset()
        for subscriptions in list(self._subscribers.values()):
            for subscription in list(subscriptions):
                subscription.close()
        self._subscribers.clear()

    def get_stats(self) -> Dict[str, Any]:
        """Get coordinator statistics."""
        return {
            **self._stats,
            "subscribed_keys": len(self._subscribers),
            "in_flight": self._registry.get_stats(),
        }


class Subscription:
    """
    One consumer of a coordinated key, the equivalent of a mounted hook.

    State changes are pushed while the subscription is open. Closing it stops
    delivery; whether the underlying fetch is cancelled is up to the
    coordinator.
    """

    def __init__(
        self,
        coordinator: FetchCoordinator,
        key: str,
        ttl: float,
        producer: Producer,
        retry: Optional[RetryPolicy] = None,
    ):
        self._coordinator = coordinator
        self.key = key
        self.ttl = ttl
        self.retry = retry
        self._producer = producer
        self._state = FetchState()
        self._active = True
        self._listeners: List[StateListener] = []
        coordinator._register(self)

    @property
    def state(self) -> FetchState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._active

    def on_change(self, listener: StateListener) -> Callable[[], None]:
        """Register a state listener. Returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _apply(self, update: Callable[[FetchState], FetchState]) -> None:
        if not self._active:
            return
        self._state = update(self._state)
        for listener in list(self._listeners):
            try:
                listener(self._state)
            except Exception:
                logger.exception(f"State listener failed for {self.key}")

    async def load(self, force_refresh: bool = False) -> FetchState:
        """Fetch through the coordinator and return the resulting state."""
        if not self._active:
            return self._state

        result = await self._coordinator.fetch_with_coordination(
            self.key,
            self.ttl,
            self._producer,
            force_refresh=force_refresh,
            retry=self.retry,
        )
        if result.source is CacheSource.FRESH:
            self._apply(lambda state: state.succeeded(result.data))
        elif result.source is CacheSource.IN_FLIGHT:
            # The owner of the fetch delivers the outcome later
            self._apply(lambda state: state.loading())
        return self._state

    async def refetch(self) -> FetchState:
        """Fetch again, ignoring any cached value."""
        return await self.load(force_refresh=True)

    def invalidate(self) -> None:
        """Drop the cached value for this key without fetching."""
        self._coordinator.cache.delete(self.key)

    def rekey(self, key: str, producer: Optional[Producer] = None) -> None:
        """Point the subscription at a different key. State starts over."""
        if key == self.key:
            if producer is not None:
                self._producer = producer
            return
        if self._active:
            self._coordinator._unregister(self)
        self.key = key
        if producer is not None:
            self._producer = producer
        self._state = FetchState()
        if self._active:
            self._coordinator._register(self)

    def reset(self, state: Optional[FetchState] = None) -> None:
        """Replace the current state, e.g. with an empty value after sign-out."""
        self._apply(lambda _state: state or FetchState())

    def close(self) -> None:
        """Stop receiving updates."""
        if not self._active:
            return
        self._active = False
        self._coordinator._unregister(self)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


# Global coordinator instance
_coordinator: Optional[FetchCoordinator] = None


def get_fetch_coordinator() -> FetchCoordinator:
    """Get or create the process-wide coordinator from settings."""
    global _coordinator
    if _coordinator is None:
        from config.settings import settings

        _coordinator = FetchCoordinator(
            cache=get_cache_service(),
            timeout=settings.fetch_timeout_seconds,
            cancel_orphaned=settings.cancel_orphaned_fetches,
            use_cache=settings.cache_enabled,
            default_retry=RetryPolicy(
                retry_count=settings.fetch_retry_count,
                retry_delay=settings.fetch_retry_delay_seconds,
            ),
        )
    return _coordinator


def reset_fetch_coordinator() -> None:
    """Dispose the process-wide coordinator; the next access builds a new one."""
    global _coordinator
    if _coordinator is not None:
        _coordinator.dispose()
    _coordinator = None
