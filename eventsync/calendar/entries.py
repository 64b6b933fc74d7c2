"""Persistence for the calendar entries of an event."""

import logging
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel

from eventsync.calendar.mapping import format_timestamp, utcnow
from eventsync.database import get_database

logger = logging.getLogger(__name__)

WRITABLE_COLUMNS = (
    "event_id",
    "title",
    "description",
    "location",
    "start_time",
    "end_time",
    "is_all_day",
    "google_event_id",
    "google_meet_link",
    "synced_at",
    "google_updated_at",
    "updated_at",
)

TIMESTAMP_COLUMNS = {"start_time", "end_time", "synced_at", "google_updated_at", "updated_at"}


class CalendarEntry(BaseModel):
    """A calendar entry belonging to an event."""
    id: int
    event_id: int
    title: str
    description: Optional[str] = None
    location: Optional[str] = None
    start_time: datetime
    end_time: datetime
    is_all_day: bool = False
    google_event_id: Optional[str] = None
    google_meet_link: Optional[str] = None
    synced_at: Optional[datetime] = None
    google_updated_at: Optional[datetime] = None
    created_at: Optional[str] = None
    updated_at: datetime

    def sync_fields(self) -> dict[str, Any]:
        """Fields pushed to the calendar provider."""
        return {
            "title": self.title,
            "description": self.description,
            "location": self.location,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "is_all_day": self.is_all_day,
        }


def _prepare(fields: dict[str, Any]) -> dict[str, Any]:
    unknown = set(fields) - set(WRITABLE_COLUMNS)
    if unknown:
        raise ValueError(f"Unknown calendar entry fields: {sorted(unknown)}")

    prepared = {}
    for key, value in fields.items():
        if key in TIMESTAMP_COLUMNS and value is not None:
            value = format_timestamp(value)
        prepared[key] = value
    return prepared


async def list_by_event(event_id: int) -> list[CalendarEntry]:
    """Get every calendar entry of an event."""
    db = await get_database()
    cursor = await db.execute(
        "SELECT * FROM calendar_events WHERE event_id = ? ORDER BY start_time, id",
        (event_id,)
    )
    rows = await cursor.fetchall()
    return [CalendarEntry(**dict(row)) for row in rows]


async def get_entry(entry_id: int) -> Optional[CalendarEntry]:
    """Get a single calendar entry."""
    db = await get_database()
    cursor = await db.execute(
        "SELECT * FROM calendar_events WHERE id = ?", (entry_id,)
    )
    row = await cursor.fetchone()
    if row:
        return CalendarEntry(**dict(row))
    return None


async def insert_entry(fields: dict[str, Any]) -> CalendarEntry:
    """
    Insert a calendar entry.

    ``updated_at`` defaults to ``synced_at`` when given so that an entry
    pulled from the provider does not look locally modified.
    """
    data = dict(fields)
    data.setdefault("updated_at", data.get("synced_at") or utcnow())
    data = _prepare(data)

    columns = ", ".join(data)
    placeholders = ", ".join("?" for _ in data)

    db = await get_database()
    cursor = await db.execute(
        f"INSERT INTO calendar_events ({columns}) VALUES ({placeholders}) RETURNING *",
        tuple(data.values())
    )
    row = await cursor.fetchone()
    await db.commit()
    return CalendarEntry(**dict(row))


async def update_entry(
    entry_id: int,
    fields: dict[str, Any],
    touch: bool = True,
) -> Optional[CalendarEntry]:
    """
    Update a calendar entry.

    ``touch`` bumps ``updated_at``, marking the entry as locally modified.
    Sync bookkeeping passes ``touch=False``.
    """
    data = dict(fields)
    if touch:
        data["updated_at"] = utcnow()
    data = _prepare(data)
    if not data:
        return await get_entry(entry_id)

    assignments = ", ".join(f"{column} = ?" for column in data)

    db = await get_database()
    cursor = await db.execute(
        f"UPDATE calendar_events SET {assignments} WHERE id = ? RETURNING *",
        (*data.values(), entry_id)
    )
    row = await cursor.fetchone()
    await db.commit()
    if row:
        return CalendarEntry(**dict(row))
    return None


async def delete_entry(entry_id: int) -> bool:
    """Delete a calendar entry. Returns False if it did not exist."""
    db = await get_database()
    cursor = await db.execute(
        "DELETE FROM calendar_events WHERE id = ?", (entry_id,)
    )
    await db.commit()
    return cursor.rowcount > 0
