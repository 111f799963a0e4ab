"""
State delivered to subscribers and results of coordinated fetches.
"""
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Optional

from thirstee.cache.core import CacheSource

DEFAULT_ERROR_MESSAGE = "An unexpected error occurred"


class DataState(Enum):
    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class FetchState:
    """What a subscriber renders from."""
    data: Any = None
    is_loading: bool = False
    error: Optional[str] = None
    status: DataState = DataState.IDLE

    def loading(self) -> "FetchState":
        """Same data, now loading. Any previous error is cleared."""
        return replace(self, is_loading=True, error=None, status=DataState.LOADING)

    def succeeded(self, data: Any) -> "FetchState":
        return FetchState(data=data, is_loading=False, error=None, status=DataState.SUCCESS)

    def failed(self, message: str) -> "FetchState":
        """Keeps the last good data next to the error."""
        return replace(self, is_loading=False, error=message, status=DataState.ERROR)


@dataclass(frozen=True)
class FetchResult:
    """Outcome of one ``fetch_with_coordination`` call."""
    source: CacheSource
    data: Any = None
    error: Optional[str] = None


def error_message(exc: BaseException) -> str:
    """Turn a producer failure into a string the UI can show."""
    return str(exc) or DEFAULT_ERROR_MESSAGE
