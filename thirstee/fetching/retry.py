"""
Optional exponential-backoff retry around producers.
"""
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from thirstee.errors import GuardViolationError

logger = logging.getLogger("fetching.retry")


@dataclass(frozen=True)
class RetryPolicy:
    """
    Retry ``retry_count`` times, sleeping ``retry_delay * 2**attempt`` seconds
    before retry number ``attempt + 1``.
    """
    retry_count: int = 0
    retry_delay: float = 1.0

    @property
    def enabled(self) -> bool:
        return self.retry_count > 0

    def build(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self.retry_count + 1),
            wait=wait_exponential(multiplier=self.retry_delay, exp_base=2),
            # Cancellation is not an Exception subclass and is never retried
            retry=(
                retry_if_exception_type(Exception)
                & retry_if_not_exception_type(GuardViolationError)
            ),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )


async def call_with_retry(
    producer: Callable[[], Awaitable[Any]],
    policy: Optional[RetryPolicy] = None,
) -> Any:
    """Await ``producer()``, retrying per ``policy``. The last error is re-raised."""
    if policy is None or not policy.enabled:
        return await producer()
    return await policy.build()(producer)
