"""
Per-user permissions on an event.
"""
from dataclasses import dataclass
from typing import Optional, Sequence

from .models import (
    AccessReason,
    Event,
    JoinStatus,
    MemberStatus,
    RsvpStatus,
    UserProfile,
)


@dataclass(frozen=True)
class EventPermissions:
    can_view: bool = False
    can_join: bool = False
    can_edit: bool = False
    can_delete: bool = False
    can_invite: bool = False
    is_host: bool = False
    is_joined: bool = False
    join_status: JoinStatus = JoinStatus.NOT_JOINED
    access_reason: Optional[AccessReason] = None

    def to_dict(self) -> dict:
        return {
            "canView": self.can_view,
            "canJoin": self.can_join,
            "canEdit": self.can_edit,
            "canDelete": self.can_delete,
            "canInvite": self.can_invite,
            "isHost": self.is_host,
            "isJoined": self.is_joined,
            "joinStatus": self.join_status.value,
            "accessReason": self.access_reason.value if self.access_reason else None,
        }


def get_event_permissions(
    event: Optional[Event],
    user: Optional[UserProfile],
    user_crew_ids: Sequence[str] = (),
) -> EventPermissions:
    """
    Work out what ``user`` may do with ``event``.

    Public events are visible to everyone. Private events are visible to the
    host, to invited members and to anyone holding an RSVP. Only the host
    can edit, delete or invite.

    ``user_crew_ids`` is accepted for crew-based invitations, which events do
    not record yet, so it does not affect the result.
    """
    if event is None:
        return EventPermissions()

    user_id = user.id if user is not None else None
    is_host = user_id is not None and user_id == event.created_by

    rsvp = event.rsvp_for(user_id)
    member = event.member_for(user_id)
    has_rsvp_joined = rsvp is not None and rsvp.status is RsvpStatus.GOING
    has_crew_joined = member is not None and member.status is MemberStatus.ACCEPTED

    if is_host:
        join_status = JoinStatus.HOST
    elif has_rsvp_joined:
        join_status = JoinStatus.JOINED_RSVP
    elif has_crew_joined:
        join_status = JoinStatus.JOINED_CREW
    else:
        join_status = JoinStatus.NOT_JOINED

    is_joined = has_rsvp_joined or has_crew_joined

    can_view = False
    access_reason = None
    if event.is_public:
        can_view, access_reason = True, AccessReason.PUBLIC
    elif is_host:
        can_view, access_reason = True, AccessReason.HOST
    elif user is not None:
        if member is not None:
            can_view, access_reason = True, AccessReason.INVITED
        elif rsvp is not None:
            can_view, access_reason = True, AccessReason.RSVP

    return EventPermissions(
        can_view=can_view,
        can_join=can_view and not is_host and not is_joined and user is not None,
        can_edit=is_host,
        can_delete=is_host,
        can_invite=is_host,
        is_host=is_host,
        is_joined=is_joined,
        join_status=join_status,
        access_reason=access_reason,
    )


def can_view_event(event: Optional[Event], user: Optional[UserProfile]) -> bool:
    return get_event_permissions(event, user).can_view


def can_join_event(event: Optional[Event], user: Optional[UserProfile]) -> bool:
    return get_event_permissions(event, user).can_join


def get_private_event_message(event: Optional[Event], user: Optional[UserProfile]) -> str:
    """Explain why a private event is hidden; empty when nothing is hidden."""
    if event is None or event.is_public:
        return ""

    if user is None:
        return "This is a private event. Please sign in to see if you have access."

    if get_event_permissions(event, user).can_view:
        return ""

    return "This event is private and you haven't been invited. Contact the host for access."


def get_join_button_text(permissions: EventPermissions) -> str:
    if permissions.is_host:
        return "You're hosting!"

    if permissions.join_status is JoinStatus.JOINED_RSVP:
        return "Joined"
    if permissions.join_status is JoinStatus.JOINED_CREW:
        return "Joined (Crew)"
    return "Join Event" if permissions.can_join else "Cannot Join"


def get_join_button_variant(permissions: EventPermissions) -> str:
    """One of ``default``, ``secondary`` or ``outline``."""
    if permissions.is_host or permissions.is_joined:
        return "secondary"
    return "default" if permissions.can_join else "outline"


def is_join_button_disabled(permissions: EventPermissions) -> bool:
    return permissions.is_host or permissions.is_joined or not permissions.can_join
