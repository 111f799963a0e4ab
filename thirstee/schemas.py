"""
Pydantic schemas for API request/response models
"""
from pydantic import BaseModel, ConfigDict, Field
from typing import List


# ===== EVENT SCHEMAS =====

class CreateEventRequest(BaseModel):
    """Body of POST /events"""
    model_config = ConfigDict(populate_by_name=True)

    title: str
    description: str = ""
    date: str
    location: str
    organizer_id: str = Field(alias="organizerId")


class EventResponse(CreateEventRequest):
    """Event with its id and attendee list"""
    id: str
    attendees: List[str] = Field(default_factory=list)


class RsvpRequest(BaseModel):
    """Body of POST /events/{id}/rsvp"""
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(alias="userId")


# ===== CACHE SCHEMAS =====

class InvalidateRequest(BaseModel):
    """Body of POST /cache/invalidate"""
    pattern: str = Field(min_length=1)
    regex: bool = False


class InvalidateResponse(BaseModel):
    pattern: str
    invalidated: int
