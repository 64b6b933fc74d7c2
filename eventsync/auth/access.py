"""Event membership checks for API callers."""

from typing import Optional

from fastapi import HTTPException, status

from eventsync.auth.session import User
from eventsync.database import get_database

# Members with these roles may read but not change calendar entries
READ_ONLY_ROLES = {"viewer", "commentator"}


async def get_member_role(event_id: int, user_id: int) -> Optional[str]:
    """Get a user's role on an event, or None if they are not a member."""
    db = await get_database()
    cursor = await db.execute(
        "SELECT role FROM event_members WHERE event_id = ? AND user_id = ?",
        (event_id, user_id)
    )
    row = await cursor.fetchone()
    return row["role"] if row else None


async def require_event_member(event_id: int, user: User, editor: bool = False) -> str:
    """Raise 403 unless the user is a member (with edit rights, if asked)."""
    role = await get_member_role(event_id, user.id)
    if role is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied",
        )
    if editor and role in READ_ONLY_ROLES:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied - requires editor or higher role",
        )
    return role
