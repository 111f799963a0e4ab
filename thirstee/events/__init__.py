"""
Event models, permission rules and the in-memory store behind the HTTP stub.
"""
from .models import (
    Event,
    EventMember,
    Rsvp,
    UserProfile,
    RsvpStatus,
    MemberStatus,
    JoinStatus,
    AccessReason,
)
from .permissions import (
    EventPermissions,
    get_event_permissions,
    can_view_event,
    can_join_event,
    get_private_event_message,
    get_join_button_text,
    get_join_button_variant,
    is_join_button_disabled,
)

__all__ = [
    # Models
    "Event",
    "EventMember",
    "Rsvp",
    "UserProfile",
    "RsvpStatus",
    "MemberStatus",
    "JoinStatus",
    "AccessReason",
    # Permissions
    "EventPermissions",
    "get_event_permissions",
    "can_view_event",
    "can_join_event",
    "get_private_event_message",
    "get_join_button_text",
    "get_join_button_variant",
    "is_join_button_disabled",
]
