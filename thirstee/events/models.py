"""
Data models for events and the people attached to them.

Field names follow the database rows so ``from_dict`` can take a row as-is.
"""
from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any
from enum import Enum


class RsvpStatus(Enum):
    GOING = "going"
    MAYBE = "maybe"
    NOT_GOING = "not_going"


class MemberStatus(Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"


class JoinStatus(Enum):
    NOT_JOINED = "not_joined"
    JOINED_RSVP = "joined_rsvp"
    JOINED_CREW = "joined_crew"
    HOST = "host"


class AccessReason(Enum):
    PUBLIC = "public"
    HOST = "host"
    INVITED = "invited"
    CREW_MEMBER = "crew_member"
    RSVP = "rsvp"


@dataclass
class UserProfile:
    """A user as far as permissions are concerned."""
    id: str
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None


@dataclass
class Rsvp:
    id: str
    user_id: str
    status: RsvpStatus = RsvpStatus.GOING

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Rsvp":
        return cls(
            id=str(data.get("id", "")),
            user_id=str(data.get("user_id", "")),
            status=RsvpStatus(data.get("status", RsvpStatus.GOING.value)),
        )


@dataclass
class EventMember:
    """A user invited to an event directly or through a crew."""
    id: str
    event_id: str
    user_id: str
    invited_by: str
    status: MemberStatus = MemberStatus.PENDING

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EventMember":
        return cls(
            id=str(data.get("id", "")),
            event_id=str(data.get("event_id", "")),
            user_id=str(data.get("user_id", "")),
            invited_by=str(data.get("invited_by", "")),
            status=MemberStatus(data.get("status", MemberStatus.PENDING.value)),
        )


@dataclass
class Event:
    """A drinking session."""
    id: str
    title: str
    date_time: str
    location: str
    created_by: str
    is_public: bool = True
    notes: Optional[str] = None
    drink_type: Optional[str] = None
    vibe: Optional[str] = None
    rsvps: List[Rsvp] = field(default_factory=list)
    event_members: List[EventMember] = field(default_factory=list)

    def rsvp_for(self, user_id: Optional[str]) -> Optional[Rsvp]:
        if not user_id:
            return None
        return next((r for r in self.rsvps if r.user_id == user_id), None)

    def member_for(self, user_id: Optional[str]) -> Optional[EventMember]:
        if not user_id:
            return None
        return next((m for m in self.event_members if m.user_id == user_id), None)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Event":
        return cls(
            id=str(data["id"]),
            title=data.get("title", ""),
            date_time=data.get("date_time", ""),
            location=data.get("location", ""),
            created_by=str(data.get("created_by", "")),
            is_public=bool(data.get("is_public", True)),
            notes=data.get("notes"),
            drink_type=data.get("drink_type"),
            vibe=data.get("vibe"),
            rsvps=[Rsvp.from_dict(r) for r in data.get("rsvps") or []],
            event_members=[EventMember.from_dict(m) for m in data.get("event_members") or []],
        )
