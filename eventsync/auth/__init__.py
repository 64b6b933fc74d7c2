"""Authentication module."""

from eventsync.auth.session import (
    create_session_token,
    verify_session_token,
    get_current_user,
    get_session_user,
)
from eventsync.auth.access import require_event_member

__all__ = [
    "create_session_token",
    "verify_session_token",
    "get_current_user",
    "get_session_user",
    "require_event_member",
]
