"""Calendar entry endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from eventsync.auth.access import require_event_member
from eventsync.auth.session import get_current_user, User
from eventsync.calendar.entries import CalendarEntry, delete_entry, get_entry, list_by_event
from eventsync.calendar.google_calendar import delete_event
from eventsync.database import log_sync_action

logger = logging.getLogger(__name__)
router = APIRouter(tags=["calendar-events"])


class DeleteEntryResponse(BaseModel):
    """Calendar entry deletion response."""
    success: bool = True
    deleted_from_google: bool


@router.get("/events/{event_id}/calendar-events", response_model=list[CalendarEntry])
async def list_calendar_events(event_id: int, user: User = Depends(get_current_user)):
    """List the calendar entries of an event."""
    await require_event_member(event_id, user)
    return await list_by_event(event_id)


@router.delete("/calendar-events/{entry_id}", response_model=DeleteEntryResponse)
async def delete_calendar_event(entry_id: int, user: User = Depends(get_current_user)):
    """Delete a calendar entry, removing its Google event first when synced."""
    entry = await get_entry(entry_id)
    if not entry:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Event not found",
        )

    await require_event_member(entry.event_id, user)

    deleted_from_google = False
    if entry.google_event_id:
        logger.info(f"Deleting Google event {entry.google_event_id} for entry {entry_id}")
        deleted_from_google = await delete_event(user.id, entry.google_event_id)
        if not deleted_from_google:
            # The Google copy is left behind; the local delete still goes ahead
            logger.warning(f"Failed to delete Google event for entry {entry_id}")

    await delete_entry(entry_id)
    await log_sync_action(
        user.id,
        entry.event_id,
        "delete_entry",
        "success" if deleted_from_google or not entry.google_event_id else "failure",
        entry.google_event_id,
    )

    return DeleteEntryResponse(deleted_from_google=deleted_from_google)
