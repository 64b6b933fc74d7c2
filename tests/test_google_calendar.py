"""Tests for the Google Calendar adapter."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from eventsync.calendar import google_calendar
from eventsync.credentials import upsert_credentials
from eventsync.database import get_database

ENTRY_FIELDS = {
    "title": "Stage build",
    "description": "Crew of six",
    "location": "Field A",
    "start_time": "2025-07-01T08:00:00Z",
    "end_time": "2025-07-01T12:00:00Z",
    "is_all_day": False,
}


async def _connect_user(email: str = "crew@example.com", calendar_id: str = "team-cal") -> int:
    db = await get_database()
    cursor = await db.execute(
        "INSERT INTO users (email) VALUES (?) RETURNING id", (email,)
    )
    row = await cursor.fetchone()
    await db.commit()
    await upsert_credentials(row["id"], "access", "refresh", expires_in=3600, calendar_id=calendar_id)
    return row["id"]


@pytest.mark.asyncio
async def test_create_event_with_meet_link(test_db, fake_google):
    """Meet requests should carry a conference request id and conferenceDataVersion=1."""
    user_id = await _connect_user()

    created = await google_calendar.create_event(user_id, ENTRY_FIELDS, add_meet_link=True)

    assert created["id"]
    assert google_calendar.extract_meet_link(created) == f"https://meet.google.com/{created['id']}"

    _, calendar_id, body, conference_version = fake_google.calls_of("insert")[0]
    assert calendar_id == "team-cal"
    assert conference_version == 1
    assert body["summary"] == "Stage build"
    assert body["start"] == {"dateTime": "2025-07-01T08:00:00Z"}
    request_id = body["conferenceData"]["createRequest"]["requestId"]
    assert request_id.startswith("meet-")


@pytest.mark.asyncio
async def test_meet_request_ids_are_unique(test_db, fake_google):
    user_id = await _connect_user()

    await google_calendar.create_event(user_id, ENTRY_FIELDS, add_meet_link=True)
    await google_calendar.create_event(user_id, ENTRY_FIELDS, add_meet_link=True)

    ids = [call[2]["conferenceData"]["createRequest"]["requestId"] for call in fake_google.calls_of("insert")]
    assert len(set(ids)) == 2


@pytest.mark.asyncio
async def test_create_event_without_meet_link(test_db, fake_google):
    user_id = await _connect_user()

    created = await google_calendar.create_event(user_id, ENTRY_FIELDS)

    _, _, body, conference_version = fake_google.calls_of("insert")[0]
    assert "conferenceData" not in body
    assert conference_version == 0
    assert google_calendar.extract_meet_link(created) is None


@pytest.mark.asyncio
async def test_operations_fail_closed_without_credentials(test_db, fake_google):
    """Without a token every operation should return its empty value, not raise."""
    now = datetime.now(timezone.utc)

    assert await google_calendar.create_event(42, ENTRY_FIELDS) is None
    assert await google_calendar.update_event(42, "g1", ENTRY_FIELDS) is None
    assert await google_calendar.delete_event(42, "g1") is False
    assert await google_calendar.list_events(42, now, now + timedelta(days=1)) == []
    assert fake_google.calls == []


@pytest.mark.asyncio
async def test_provider_errors_fail_closed(test_db, fake_google):
    user_id = await _connect_user()
    existing = fake_google.add_event(
        "Existing",
        {"dateTime": "2025-07-01T08:00:00Z"},
        {"dateTime": "2025-07-01T09:00:00Z"},
    )
    for operation in ("insert", "patch", "delete", "list"):
        fake_google.fail(operation, status=500)

    now = datetime.now(timezone.utc)
    assert await google_calendar.create_event(user_id, ENTRY_FIELDS) is None
    assert await google_calendar.update_event(user_id, existing["id"], ENTRY_FIELDS) is None
    assert await google_calendar.delete_event(user_id, existing["id"]) is False
    assert await google_calendar.list_events(user_id, now, now + timedelta(days=1)) == []


@pytest.mark.asyncio
async def test_transport_errors_fail_closed(test_db, monkeypatch):
    user_id = await _connect_user()

    def broken_build(*_args, **_kwargs):
        raise OSError("network unreachable")

    monkeypatch.setattr("eventsync.calendar.google_calendar.build", broken_build)

    assert await google_calendar.create_event(user_id, ENTRY_FIELDS) is None
    assert await google_calendar.delete_event(user_id, "g1") is False


@pytest.mark.asyncio
async def test_update_event_patches_only_given_fields(test_db, fake_google):
    user_id = await _connect_user()
    existing = fake_google.add_event(
        "Old title",
        {"dateTime": "2025-07-01T08:00:00Z"},
        {"dateTime": "2025-07-01T09:00:00Z"},
        location="Field B",
    )

    updated = await google_calendar.update_event(user_id, existing["id"], {"title": "New title"})

    assert updated["summary"] == "New title"
    assert updated["location"] == "Field B"
    assert updated["start"] == {"dateTime": "2025-07-01T08:00:00Z"}
    _, _, event_id, body = fake_google.calls_of("patch")[0]
    assert event_id == existing["id"]
    assert body == {"summary": "New title"}


@pytest.mark.asyncio
async def test_update_missing_event_returns_none(test_db, fake_google):
    user_id = await _connect_user()
    assert await google_calendar.update_event(user_id, "missing", {"title": "x"}) is None


@pytest.mark.asyncio
async def test_delete_event_treats_missing_as_deleted(test_db, fake_google):
    """Deleting an event that is already gone (404) counts as success."""
    user_id = await _connect_user()
    existing = fake_google.add_event(
        "Teardown",
        {"dateTime": "2025-07-02T08:00:00Z"},
        {"dateTime": "2025-07-02T09:00:00Z"},
    )

    assert await google_calendar.delete_event(user_id, existing["id"]) is True
    assert existing["id"] not in fake_google.events_by_id
    assert await google_calendar.delete_event(user_id, existing["id"]) is True


@pytest.mark.asyncio
async def test_list_events_requests_single_events_in_window(test_db, fake_google):
    user_id = await _connect_user()
    now = datetime.now(timezone.utc)
    inside = fake_google.add_event(
        "Inside",
        {"dateTime": (now + timedelta(days=1)).isoformat()},
        {"dateTime": (now + timedelta(days=1, hours=1)).isoformat()},
    )
    fake_google.add_event(
        "Outside",
        {"dateTime": (now + timedelta(days=400)).isoformat()},
        {"dateTime": (now + timedelta(days=400, hours=1)).isoformat()},
    )

    events = await google_calendar.list_events(user_id, now - timedelta(days=30), now + timedelta(days=180), 250)

    assert [e["id"] for e in events] == [inside["id"]]
    _, calendar_id, params = fake_google.calls_of("list")[0]
    assert calendar_id == "team-cal"
    assert params["singleEvents"] is True
    assert params["orderBy"] == "startTime"
    assert params["maxResults"] == 250
