"""
Exception types shared across the data layer.
"""


class ThirsteeError(Exception):
    """Base class for data layer errors."""
    pass


class GuardViolationError(ThirsteeError):
    """Raised when an auth-requiring fetch is forced without a valid principal."""
    pass


class FetchTimeoutError(ThirsteeError):
    """Raised when a producer does not complete within the coordinator timeout."""

    def __init__(self, key: str, timeout: float):
        self.key = key
        self.timeout = timeout
        super().__init__(f"Request for {key} timed out after {timeout}s")
