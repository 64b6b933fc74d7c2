"""Two-way sync between an event's calendar entries and Google Calendar."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import aiosqlite
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from eventsync.calendar.entries import (
    CalendarEntry,
    get_entry,
    insert_entry,
    list_by_event,
    update_entry,
)
from eventsync.calendar.google_calendar import (
    create_event,
    extract_meet_link,
    list_events,
    update_event,
)
from eventsync.calendar.mapping import (
    UNTITLED_EVENT,
    from_google_event,
    parse_timestamp,
    utcnow,
)
from eventsync.config import get_settings

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class SyncResult(BaseModel):
    """Outcome of one sync pass."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    pushed_to_google: int = 0
    pulled_from_google: int = 0
    conflicts: int = 0
    errors: list[str] = Field(default_factory=list)


def _sync_stamp(google_updated: Optional[str]) -> datetime:
    """
    Timestamp recorded as ``synced_at`` after touching an entry.

    Never earlier than the provider's ``updated`` value, so a provider clock
    running ahead of ours does not read as a remote change on the next pass.
    """
    now = utcnow()
    remote = parse_timestamp(google_updated)
    if remote and remote > now:
        return remote
    return now


async def _record_created(entry_id: int, created: dict) -> None:
    """Link a local entry to the Google event just created for it."""
    await update_entry(
        entry_id,
        {
            "google_event_id": created["id"],
            "google_meet_link": extract_meet_link(created),
            "synced_at": _sync_stamp(created.get("updated")),
            "google_updated_at": created.get("updated"),
        },
        touch=False,
    )


async def _push_new_entry(user_id: int, entry: CalendarEntry, result: SyncResult) -> None:
    created = await create_event(user_id, entry.sync_fields(), add_meet_link=True)
    if not created:
        result.errors.append(f"Failed to push event: {entry.title}")
        return

    await _record_created(entry.id, created)
    result.pushed_to_google += 1


async def _push_changes(
    user_id: int,
    entry: CalendarEntry,
    result: SyncResult,
) -> None:
    updated = await update_event(user_id, entry.google_event_id, entry.sync_fields())
    if not updated:
        # Not recorded in result.errors; the entry is retried on the next pass
        logger.warning(f"Could not push changes of entry {entry.id} to Google")
        return

    await update_entry(
        entry.id,
        {
            "synced_at": _sync_stamp(updated.get("updated")),
            "google_updated_at": updated.get("updated"),
        },
        touch=False,
    )
    result.pushed_to_google += 1


async def _pull_changes(entry: CalendarEntry, google_event: dict, result: SyncResult) -> None:
    fields = from_google_event(google_event)
    fields["synced_at"] = _sync_stamp(google_event.get("updated"))
    fields["google_updated_at"] = google_event.get("updated")

    await update_entry(entry.id, fields, touch=False)
    result.pulled_from_google += 1


async def _reconcile_entry(
    user_id: int,
    entry: CalendarEntry,
    google_event: dict,
    result: SyncResult,
) -> None:
    """Apply last-modified-wins to an entry present on both sides."""
    local_updated = parse_timestamp(entry.updated_at) or EPOCH
    google_updated = parse_timestamp(google_event.get("updated")) or EPOCH
    last_synced = parse_timestamp(entry.synced_at) or EPOCH

    local_changed = local_updated > last_synced
    google_changed = google_updated > last_synced

    if local_changed and google_changed:
        result.conflicts += 1
        if google_updated > local_updated:
            logger.info(f"Conflict on entry {entry.id}: Google copy is newer, pulling")
            await _pull_changes(entry, google_event, result)
        else:
            logger.info(f"Conflict on entry {entry.id}: local copy is newer, pushing")
            await _push_changes(user_id, entry, result)
    elif local_changed:
        await _push_changes(user_id, entry, result)
    elif google_changed:
        await _pull_changes(entry, google_event, result)


async def _pull_new_event(event_id: int, google_event: dict) -> None:
    fields = from_google_event(google_event)
    fields.update(
        event_id=event_id,
        google_event_id=google_event["id"],
        synced_at=_sync_stamp(google_event.get("updated")),
        google_updated_at=google_event.get("updated"),
    )
    await insert_entry(fields)


async def sync_calendar_events(user_id: int, event_id: int) -> SyncResult:
    """
    Reconcile an event's calendar entries with the user's Google Calendar.

    Entries never pushed are created on Google (with a Meet link). Entries
    already linked to a Google event in the sync window are pushed or pulled
    depending on which side changed since the last sync, the later change
    winning when both did. Linked entries whose Google event is not in the
    window are left alone. Google events with no local entry are pulled in.

    Failures are isolated per entry and collected in ``SyncResult.errors``.
    The caller must have checked that the user may access ``event_id``.
    """
    result = SyncResult()
    settings = get_settings()

    try:
        local_entries = await list_by_event(event_id)
    except aiosqlite.Error as e:
        logger.error(f"Failed to fetch local entries for event {event_id}: {e}")
        result.errors.append(f"Failed to fetch local events: {e}")
        return result

    now = utcnow()
    google_events = await list_events(
        user_id,
        time_min=now - timedelta(days=settings.sync_window_past_days),
        time_max=now + timedelta(days=settings.sync_window_future_days),
        max_results=settings.sync_max_results,
    )
    google_by_id = {e["id"]: e for e in google_events if e.get("id")}

    logger.info(
        f"Syncing event {event_id} for user {user_id}: "
        f"{len(local_entries)} local entries, {len(google_by_id)} Google events"
    )

    for entry in local_entries:
        try:
            if not entry.google_event_id:
                await _push_new_entry(user_id, entry, result)
            elif entry.google_event_id in google_by_id:
                await _reconcile_entry(user_id, entry, google_by_id[entry.google_event_id], result)
        except Exception as e:
            logger.error(f"Error syncing calendar entry {entry.id}: {e}")
            result.errors.append(f"Failed to sync event: {entry.title}")

    local_google_ids = {entry.google_event_id for entry in local_entries if entry.google_event_id}

    for google_id, google_event in google_by_id.items():
        if google_id in local_google_ids:
            continue

        try:
            await _pull_new_event(event_id, google_event)
        except Exception as e:
            logger.error(f"Failed to insert Google event {google_id} locally: {e}")
            result.errors.append(
                f"Failed to pull event: {google_event.get('summary') or UNTITLED_EVENT}"
            )
        else:
            result.pulled_from_google += 1

    logger.info(
        f"Sync of event {event_id} done: {result.pushed_to_google} pushed, "
        f"{result.pulled_from_google} pulled, {result.conflicts} conflicts, "
        f"{len(result.errors)} errors"
    )
    return result


async def add_meet_link_to_entry(user_id: int, entry_id: int) -> Optional[str]:
    """
    Create the Google event for an entry with a Meet link and return the link.

    Entries already on Google keep whatever link they were created with;
    a link cannot be added to an existing Google event here.
    """
    entry = await get_entry(entry_id)
    if not entry:
        logger.warning(f"Calendar entry {entry_id} not found")
        return None

    if entry.google_event_id:
        logger.info(f"Entry {entry_id} is already on Google; returning its existing Meet link")
        return entry.google_meet_link

    created = await create_event(user_id, entry.sync_fields(), add_meet_link=True)
    if not created:
        return None

    await _record_created(entry.id, created)
    return extract_meet_link(created)
