"""
In-flight request tracking to prevent duplicate producer calls.

While a key is being fetched, other requests for the same key observe the
guard instead of starting a second fetch. They can either return right away
or join the outstanding request and receive its outcome.
"""
import asyncio
import time
import logging
from typing import Dict, Optional, Any, List
from dataclasses import dataclass, field

logger = logging.getLogger("cache.coalescer")


@dataclass
class InFlightRequest:
    """Tracks an in-progress fetch for one key."""
    key: str
    sequence: int
    future: asyncio.Future
    started_at: float = field(default_factory=time.monotonic)
    task: Optional[asyncio.Task] = None
    timer: Optional[asyncio.TimerHandle] = None
    waiter_count: int = 0

    @property
    def age_seconds(self) -> float:
        return time.monotonic() - self.started_at


class InFlightRegistry:
    """
    Process-wide set of keys currently being fetched.

    Pattern:
    - ``begin`` claims a key and hands out a per-key sequence number
    - ``finish`` releases the claim; a released fetch may still be running
    - ``settle`` is called once per request after its outcome is handled and
      forgets the key's sequence numbers when nothing is outstanding for it
    - ``should_apply`` rejects completions older than the last applied one,
      so a slow earlier fetch never overwrites a newer result
    - ``join`` lets a caller wait on someone else's fetch

    All methods run on the event loop thread and never await between checking
    and mutating the map, so no lock is needed.

    Usage:
        registry = InFlightRegistry()
        if not registry.is_in_flight(key):
            request = registry.begin(key)
            request.task = asyncio.ensure_future(fetch())
            request.task.add_done_callback(lambda _: registry.settle(request))
    """

    def __init__(self):
        self._in_flight: Dict[str, InFlightRequest] = {}
        self._issued: Dict[str, int] = {}
        self._applied: Dict[str, int] = {}
        # Begun but not yet settled, including released claims still running
        self._outstanding: Dict[str, int] = {}

    def is_in_flight(self, key: str) -> bool:
        return key in self._in_flight

    def get(self, key: str) -> Optional[InFlightRequest]:
        return self._in_flight.get(key)

    def begin(self, key: str) -> InFlightRequest:
        """
        Claim ``key`` for a new fetch.

        Raises:
            RuntimeError: If the key is already claimed
        """
        if key in self._in_flight:
            raise RuntimeError(f"Fetch already in flight for {key}")

        sequence = self._issued.get(key, 0) + 1
        self._issued[key] = sequence
        self._outstanding[key] = self._outstanding.get(key, 0) + 1
        request = InFlightRequest(
            key=key,
            sequence=sequence,
            future=asyncio.get_running_loop().create_future(),
        )
        self._in_flight[key] = request
        logger.debug(f"Initiating fetch for {key} (seq={sequence})")
        return request

    def finish(self, request: InFlightRequest) -> None:
        """Release the claim held by ``request``. No-op if it was already released."""
        if self._in_flight.get(request.key) is request:
            del self._in_flight[request.key]

    def settle(self, request: InFlightRequest) -> None:
        """
        Mark ``request`` as fully handled.

        Once no request for the key is outstanding its sequence numbers are
        dropped, since no older completion can arrive any more.
        """
        self.finish(request)
        key = request.key
        if key not in self._outstanding:
            # Begun before the last reset
            return
        remaining = self._outstanding[key] - 1
        if remaining > 0:
            self._outstanding[key] = remaining
            return
        self._outstanding.pop(key, None)
        self._issued.pop(key, None)
        self._applied.pop(key, None)

    def should_apply(self, request: InFlightRequest) -> bool:
        """True unless a newer fetch for the same key has already been applied."""
        return request.sequence > self._applied.get(request.key, 0)

    def mark_applied(self, request: InFlightRequest) -> None:
        self._applied[request.key] = max(request.sequence, self._applied.get(request.key, 0))

    async def join(self, key: str, timeout: Optional[float] = None) -> Optional[Any]:
        """
        Wait for the outstanding fetch of ``key`` and return its outcome.

        Returns:
            Whatever the fetch owner resolved the request with, or None if
            nothing is in flight

        Raises:
            asyncio.TimeoutError: If the fetch does not finish within ``timeout``
        """
        request = self._in_flight.get(key)
        if request is None:
            return None

        request.waiter_count += 1
        logger.debug(
            f"Joining fetch for {key} "
            f"(waiters: {request.waiter_count}, age: {request.age_seconds:.1f}s)"
        )
        # Shield so a waiter timing out does not cancel the shared future
        return await asyncio.wait_for(asyncio.shield(request.future), timeout)

    def release_all(self) -> List[InFlightRequest]:
        """Drop every claim and return the released requests."""
        released = list(self._in_flight.values())
        self._in_flight.clear()
        if released:
            logger.info(f"Released {len(released)} in-flight claims")
        return released

    def release_matching(self, prefix: str) -> List[InFlightRequest]:
        """Drop the claims whose key starts with ``prefix``."""
        released = [r for k, r in self._in_flight.items() if k.startswith(prefix)]
        for request in released:
            del self._in_flight[request.key]
        return released

    def reset(self) -> None:
        """Forget every claim and sequence number."""
        self._in_flight.clear()
        self._issued.clear()
        self._applied.clear()
        self._outstanding.clear()

    def get_stats(self) -> Dict[str, Any]:
        """Get in-flight statistics."""
        return {
            "active_requests": len(self._in_flight),
            "active_keys": list(self._in_flight.keys()),
            "tracked_keys": len(self._issued),
        }
