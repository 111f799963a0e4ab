"""
In-memory event store backing the HTTP stub.
"""
import threading
import uuid
import logging
from typing import Dict, List, Optional

from thirstee.errors import ThirsteeError
from thirstee.schemas import CreateEventRequest, EventResponse

logger = logging.getLogger("events.store")


class EventNotFoundError(ThirsteeError):
    pass


class AlreadyRsvpedError(ThirsteeError):
    pass


class EventStore:
    """Thread-safe dictionary of events keyed by id."""

    def __init__(self):
        self._events: Dict[str, EventResponse] = {}
        self._lock = threading.Lock()

    def create(self, data: CreateEventRequest) -> EventResponse:
        event = EventResponse(
            id=uuid.uuid4().hex[:9],
            attendees=[],
            **data.model_dump(),
        )
        with self._lock:
            self._events[event.id] = event
        logger.info(f"Created event {event.id}")
        return event

    def get(self, event_id: str) -> Optional[EventResponse]:
        with self._lock:
            return self._events.get(event_id)

    def list_events(self) -> List[EventResponse]:
        with self._lock:
            return list(self._events.values())

    def rsvp(self, event_id: str, user_id: str) -> EventResponse:
        """
        Add ``user_id`` to the attendees.

        Raises:
            EventNotFoundError: Unknown event
            AlreadyRsvpedError: The user is already attending
        """
        with self._lock:
            event = self._events.get(event_id)
            if event is None:
                raise EventNotFoundError(f"Event {event_id} not found")
            if user_id in event.attendees:
                raise AlreadyRsvpedError(f"{user_id} already RSVPed to {event_id}")
            event.attendees.append(user_id)
            return event

    def clear(self) -> None:
        with self._lock:
            self._events.clear()
