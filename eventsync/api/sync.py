"""Google Calendar sync and Meet link endpoints."""

import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel

from eventsync.auth.access import require_event_member
from eventsync.auth.session import get_current_user, User
from eventsync.calendar.entries import get_entry
from eventsync.database import log_sync_action
from eventsync.limiter import limiter, sync_rate_limit
from eventsync.sync.engine import add_meet_link_to_entry, sync_calendar_events

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/google", tags=["google"])


class SyncRequest(BaseModel):
    """Request to sync an event's calendar."""
    event_id: int


class MeetLinkRequest(BaseModel):
    """Request to add a Meet link to a calendar entry."""
    calendar_event_id: int


class MeetLinkResponse(BaseModel):
    """Meet link creation response."""
    success: bool = True
    meet_link: str


@router.post("/sync")
@limiter.limit(sync_rate_limit)
async def sync_event_calendar(
    request: Request,
    body: SyncRequest,
    user: User = Depends(get_current_user),
):
    """Run a two-way sync of an event's calendar entries with Google Calendar."""
    await require_event_member(body.event_id, user)

    logger.info(f"Starting sync for user {user.id}, event {body.event_id}")
    result = await sync_calendar_events(user.id, body.event_id)

    await log_sync_action(
        user.id,
        body.event_id,
        "google_sync",
        "failure" if result.errors else "success",
        json.dumps(result.model_dump(by_alias=True)),
    )

    return {"success": True, **result.model_dump(by_alias=True)}


@router.post("/meet", response_model=MeetLinkResponse)
@limiter.limit(sync_rate_limit)
async def create_meet_link(
    request: Request,
    body: MeetLinkRequest,
    user: User = Depends(get_current_user),
):
    """Create a Google Meet link for a calendar entry."""
    entry = await get_entry(body.calendar_event_id)
    if not entry:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Calendar event not found",
        )

    await require_event_member(entry.event_id, user, editor=True)

    meet_link = await add_meet_link_to_entry(user.id, entry.id)
    if not meet_link:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create Meet link. Make sure Google Calendar is connected.",
        )

    await log_sync_action(user.id, entry.event_id, "meet_link", "success", meet_link)
    return MeetLinkResponse(meet_link=meet_link)
