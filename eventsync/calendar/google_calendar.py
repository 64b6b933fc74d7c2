"""Google Calendar API adapter.

The module-level operations resolve the user's token and calendar first and
fail closed: provider and transport errors are logged and reported as
``None``, ``False`` or an empty list, never raised.
"""

import logging
import uuid
from datetime import datetime
from typing import Any, Optional

from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from eventsync.auth.google import get_valid_access_token
from eventsync.calendar.mapping import (
    extract_meet_link,
    format_timestamp,
    meet_create_request,
    to_google_body,
)
from eventsync.credentials import get_calendar_id

logger = logging.getLogger(__name__)

__all__ = [
    "GoogleCalendarClient",
    "create_event",
    "update_event",
    "delete_event",
    "list_events",
    "extract_meet_link",
]


class GoogleCalendarClient:
    """Wrapper around the Google Calendar events API."""

    def __init__(self, access_token: str):
        """Initialize with access token."""
        self.credentials = Credentials(token=access_token)
        self.service = build("calendar", "v3", credentials=self.credentials)

    def insert_event(self, calendar_id: str, body: dict, conference_data: bool = False) -> dict:
        """Create an event on a calendar."""
        params = {"calendarId": calendar_id, "body": body}
        if conference_data:
            params["conferenceDataVersion"] = 1
        return self.service.events().insert(**params).execute()

    def patch_event(self, calendar_id: str, event_id: str, body: dict) -> dict:
        """Patch (partial update) an event."""
        return self.service.events().patch(
            calendarId=calendar_id,
            eventId=event_id,
            body=body,
        ).execute()

    def delete_event(self, calendar_id: str, event_id: str) -> bool:
        """Delete an event. An event that is already gone counts as deleted."""
        try:
            self.service.events().delete(
                calendarId=calendar_id,
                eventId=event_id,
            ).execute()
            return True
        except HttpError as e:
            if e.resp.status in (404, 410):
                return True
            raise

    def list_events(
        self,
        calendar_id: str,
        time_min: datetime,
        time_max: datetime,
        max_results: int,
    ) -> list[dict]:
        """List single-occurrence events in a time range."""
        result = self.service.events().list(
            calendarId=calendar_id,
            timeMin=format_timestamp(time_min),
            timeMax=format_timestamp(time_max),
            maxResults=max_results,
            singleEvents=True,
            orderBy="startTime",
        ).execute()
        return result.get("items", [])


async def _open_calendar(user_id: int) -> Optional[tuple[GoogleCalendarClient, str]]:
    """Get a client and the target calendar id for a user."""
    access_token = await get_valid_access_token(user_id)
    if not access_token:
        return None

    try:
        calendar_id = await get_calendar_id(user_id)
        if calendar_id is None:
            return None
        return GoogleCalendarClient(access_token), calendar_id
    except Exception as e:
        logger.error(f"Could not open Google Calendar for user {user_id}: {e}")
        return None


async def create_event(
    user_id: int,
    fields: dict[str, Any],
    add_meet_link: bool = False,
) -> Optional[dict]:
    """Create a Google event from local entry fields, optionally with a Meet link."""
    opened = await _open_calendar(user_id)
    if not opened:
        return None
    client, calendar_id = opened

    body = to_google_body(fields)
    if add_meet_link:
        body["conferenceData"] = meet_create_request(f"meet-{uuid.uuid4().hex}")

    try:
        return client.insert_event(calendar_id, body, conference_data=add_meet_link)
    except HttpError as e:
        logger.error(f"Failed to create Google event: {e.resp.status} {e}")
    except Exception as e:
        logger.error(f"Error creating Google Calendar event: {e}")
    return None


async def update_event(
    user_id: int,
    google_event_id: str,
    fields: dict[str, Any],
) -> Optional[dict]:
    """Patch a Google event with the local fields present in ``fields``."""
    opened = await _open_calendar(user_id)
    if not opened:
        return None
    client, calendar_id = opened

    try:
        return client.patch_event(calendar_id, google_event_id, to_google_body(fields, patch=True))
    except HttpError as e:
        logger.error(f"Failed to update Google event {google_event_id}: {e.resp.status} {e}")
    except Exception as e:
        logger.error(f"Error updating Google event {google_event_id}: {e}")
    return None


async def delete_event(user_id: int, google_event_id: str) -> bool:
    """Delete a Google event; an event that no longer exists counts as deleted."""
    opened = await _open_calendar(user_id)
    if not opened:
        return False
    client, calendar_id = opened

    try:
        return client.delete_event(calendar_id, google_event_id)
    except HttpError as e:
        logger.error(f"Failed to delete Google event {google_event_id}: {e.resp.status} {e}")
    except Exception as e:
        logger.error(f"Error deleting Google event {google_event_id}: {e}")
    return False


async def list_events(
    user_id: int,
    time_min: datetime,
    time_max: datetime,
    max_results: int = 250,
) -> list[dict]:
    """List Google events in a window. Failures yield an empty list."""
    opened = await _open_calendar(user_id)
    if not opened:
        return []
    client, calendar_id = opened

    try:
        return client.list_events(calendar_id, time_min, time_max, max_results)
    except HttpError as e:
        logger.error(f"Failed to fetch Google events: {e.resp.status} {e}")
    except Exception as e:
        logger.error(f"Error fetching Google Calendar events: {e}")
    return []
