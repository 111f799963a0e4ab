"""
Thirstee - Main FastAPI Application
Event stub endpoints plus health and cache administration
"""
import re
import logging

from fastapi import FastAPI, HTTPException
from typing import Dict, Any, List

from thirstee import __version__
from thirstee.cache import (
    get_cache_service,
    invalidate_event_caches,
    invalidate_event_attendance_caches,
)
from thirstee.events.store import EventStore, EventNotFoundError, AlreadyRsvpedError
from thirstee.fetching import get_fetch_coordinator
from thirstee.schemas import (
    CreateEventRequest,
    EventResponse,
    RsvpRequest,
    InvalidateRequest,
    InvalidateResponse,
)

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("thirstee.main")

APP_NAME = "Thirstee"
APP_STAGE = "Beta"

app = FastAPI(
    title=f"{APP_NAME} ({APP_STAGE})",
    description="Event stub and data-layer cache administration",
    version=__version__,
)

event_store = EventStore()


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "ok"}


@app.get("/version")
def version_info():
    """Version information endpoint."""
    return {
        "name": APP_NAME,
        "version": __version__,
        "stage": APP_STAGE,
        "full": f"{APP_NAME} {__version__} ({APP_STAGE})"
    }


# ===== CACHE =====

@app.get("/cache/stats")
def cache_stats() -> Dict[str, Any]:
    """Get cache and fetch coordinator statistics."""
    return {
        "cache": get_cache_service().get_stats(),
        "coordinator": get_fetch_coordinator().get_stats(),
    }


@app.post("/cache/invalidate", response_model=InvalidateResponse)
def cache_invalidate(body: InvalidateRequest):
    """Invalidate every key containing ``pattern`` (or matching it, with ``regex``)."""
    if body.regex:
        try:
            pattern = re.compile(body.pattern)
        except re.error as e:
            raise HTTPException(status_code=422, detail=f"Invalid pattern: {e}")
    else:
        pattern = body.pattern
    count = get_cache_service().invalidate_pattern(pattern)
    return InvalidateResponse(pattern=body.pattern, invalidated=count)


@app.post("/cache/clear")
def cache_clear():
    """Clear every cache entry."""
    return {"cleared": get_cache_service().clear()}


# ===== EVENTS =====

@app.get("/events", response_model=List[EventResponse])
def list_events():
    return event_store.list_events()


@app.post("/events", response_model=EventResponse, status_code=201)
def create_event(body: CreateEventRequest):
    """Create an event with an empty attendee list."""
    event = event_store.create(body)
    invalidate_event_caches(get_cache_service())
    return event


@app.get("/events/{event_id}", response_model=EventResponse)
def get_event(event_id: str):
    event = event_store.get(event_id)
    if event is None:
        raise HTTPException(status_code=404, detail="Event not found")
    return event


@app.post("/events/{event_id}/rsvp", response_model=EventResponse)
def rsvp_event(event_id: str, body: RsvpRequest):
    """RSVP a user to an event; a user can only RSVP once."""
    try:
        event = event_store.rsvp(event_id, body.user_id)
    except EventNotFoundError:
        raise HTTPException(status_code=404, detail="Event not found")
    except AlreadyRsvpedError:
        raise HTTPException(status_code=400, detail="Already RSVPed")
    invalidate_event_attendance_caches(event_id, get_cache_service())
    return event
