"""Per-user Google Calendar credential storage."""

import logging
from datetime import datetime, timedelta
from typing import Optional

from pydantic import BaseModel

from eventsync.calendar.mapping import format_timestamp, parse_timestamp, utcnow
from eventsync.database import get_database
from eventsync.encryption import decrypt_token, encrypt_token

logger = logging.getLogger(__name__)

PRIMARY_CALENDAR = "primary"


class Credential(BaseModel):
    """Decrypted Google credentials for one user."""
    user_id: int
    access_token: str
    refresh_token: str
    token_expiry: Optional[datetime] = None
    calendar_id: str = PRIMARY_CALENDAR


async def get_credentials(user_id: int) -> Optional[Credential]:
    """Get the stored credentials for a user."""
    db = await get_database()
    cursor = await db.execute(
        "SELECT * FROM google_credentials WHERE user_id = ?", (user_id,)
    )
    row = await cursor.fetchone()
    if not row:
        return None

    return Credential(
        user_id=row["user_id"],
        access_token=decrypt_token(row["access_token_encrypted"]),
        refresh_token=decrypt_token(row["refresh_token_encrypted"]),
        token_expiry=parse_timestamp(row["token_expiry"]),
        calendar_id=row["calendar_id"] or PRIMARY_CALENDAR,
    )


async def get_calendar_id(user_id: int) -> Optional[str]:
    """Get the Google calendar a user syncs with, or None if not connected."""
    db = await get_database()
    cursor = await db.execute(
        "SELECT calendar_id FROM google_credentials WHERE user_id = ?", (user_id,)
    )
    row = await cursor.fetchone()
    if not row:
        return None
    return row["calendar_id"] or PRIMARY_CALENDAR


async def upsert_credentials(
    user_id: int,
    access_token: str,
    refresh_token: str,
    expires_in: Optional[int] = None,
    calendar_id: Optional[str] = None,
) -> None:
    """Store credentials after the OAuth flow completes (one row per user)."""
    db = await get_database()
    now = utcnow()

    expiry = None
    if expires_in:
        expiry = format_timestamp(now + timedelta(seconds=expires_in))

    await db.execute(
        """INSERT INTO google_credentials
           (user_id, access_token_encrypted, refresh_token_encrypted,
            token_expiry, calendar_id, updated_at)
           VALUES (?, ?, ?, ?, ?, ?)
           ON CONFLICT(user_id) DO UPDATE SET
           access_token_encrypted = excluded.access_token_encrypted,
           refresh_token_encrypted = excluded.refresh_token_encrypted,
           token_expiry = excluded.token_expiry,
           calendar_id = excluded.calendar_id,
           updated_at = excluded.updated_at""",
        (
            user_id,
            encrypt_token(access_token),
            encrypt_token(refresh_token),
            expiry,
            calendar_id or PRIMARY_CALENDAR,
            format_timestamp(now),
        )
    )
    await db.commit()
    logger.info(f"Stored Google credentials for user {user_id}")


async def update_access_token(
    user_id: int,
    access_token: str,
    token_expiry: datetime,
    expected_expiry: Optional[datetime],
) -> bool:
    """
    Store a refreshed access token.

    The write only applies while ``token_expiry`` still equals
    ``expected_expiry``; returns False if another refresh got there first.
    """
    db = await get_database()
    expected = format_timestamp(expected_expiry) if expected_expiry else None

    cursor = await db.execute(
        """UPDATE google_credentials SET
           access_token_encrypted = ?, token_expiry = ?, updated_at = ?
           WHERE user_id = ? AND token_expiry IS ?""",
        (
            encrypt_token(access_token),
            format_timestamp(token_expiry),
            format_timestamp(utcnow()),
            user_id,
            expected,
        )
    )
    await db.commit()
    return cursor.rowcount == 1


async def delete_credentials(user_id: int) -> bool:
    """Remove a user's credentials (calendar disconnect)."""
    db = await get_database()
    cursor = await db.execute(
        "DELETE FROM google_credentials WHERE user_id = ?", (user_id,)
    )
    await db.commit()
    return cursor.rowcount > 0
