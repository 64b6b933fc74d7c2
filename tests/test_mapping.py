"""Tests for local <-> Google field mapping."""

from datetime import datetime, timezone

import pytest

from eventsync.calendar.mapping import (
    UNTITLED_EVENT,
    extract_meet_link,
    format_timestamp,
    from_google_event,
    meet_create_request,
    parse_timestamp,
    to_google_body,
)


def test_parse_timestamp_normalises_to_utc():
    """Z suffixes, offsets and naive values should all become aware UTC."""
    assert parse_timestamp("2025-03-10T10:00:00Z") == datetime(2025, 3, 10, 10, tzinfo=timezone.utc)
    assert parse_timestamp("2025-03-10T05:00:00-05:00") == datetime(2025, 3, 10, 10, tzinfo=timezone.utc)
    assert parse_timestamp("2025-03-10T10:00:00") == datetime(2025, 3, 10, 10, tzinfo=timezone.utc)
    assert parse_timestamp("2025-03-10T10:00:00.000Z") == datetime(2025, 3, 10, 10, tzinfo=timezone.utc)
    assert parse_timestamp(None) is None
    assert parse_timestamp("") is None


def test_format_timestamp_uses_z_suffix():
    assert format_timestamp(datetime(2025, 3, 10, 10, tzinfo=timezone.utc)) == "2025-03-10T10:00:00Z"
    assert format_timestamp("2025-03-10T12:00:00+02:00") == "2025-03-10T10:00:00Z"


def test_to_google_body_timed_entry():
    """Timed entries should serialise as UTC date-times."""
    body = to_google_body({
        "title": "Load-in",
        "description": "Trucks at dock B",
        "location": "Hall 3",
        "start_time": "2025-03-10T09:00:00Z",
        "end_time": "2025-03-10T11:30:00Z",
        "is_all_day": False,
    })

    assert body == {
        "summary": "Load-in",
        "description": "Trucks at dock B",
        "location": "Hall 3",
        "start": {"dateTime": "2025-03-10T09:00:00Z"},
        "end": {"dateTime": "2025-03-10T11:30:00Z"},
    }


def test_to_google_body_all_day_entry_uses_exclusive_end_date():
    """All-day entries should serialise as dates, with Google's exclusive end."""
    body = to_google_body({
        "title": "Festival day",
        "start_time": "2025-03-10T00:00:00Z",
        "end_time": "2025-03-10T23:59:59Z",
        "is_all_day": True,
    })

    assert body["start"] == {"date": "2025-03-10"}
    assert body["end"] == {"date": "2025-03-11"}


def test_to_google_body_all_day_midnight_end_is_already_exclusive():
    body = to_google_body({
        "start_time": "2025-03-10T00:00:00Z",
        "end_time": "2025-03-12T00:00:00Z",
        "is_all_day": True,
    })

    assert body["start"] == {"date": "2025-03-10"}
    assert body["end"] == {"date": "2025-03-12"}


def test_to_google_body_partial_fields_only():
    """Absent or null fields should be left out so a PATCH leaves them untouched."""
    body = to_google_body({"title": "Renamed", "description": None})
    assert body == {"summary": "Renamed"}


def test_to_google_body_patch_clears_other_time_key():
    body = to_google_body(
        {"start_time": "2025-03-10T09:00:00Z", "end_time": "2025-03-10T10:00:00Z"},
        patch=True,
    )
    assert body["start"] == {"dateTime": "2025-03-10T09:00:00Z", "date": None}
    assert body["end"] == {"dateTime": "2025-03-10T10:00:00Z", "date": None}


def test_meet_create_request_shape():
    data = meet_create_request("meet-123")
    assert data["createRequest"]["requestId"] == "meet-123"
    assert data["createRequest"]["conferenceSolutionKey"]["type"] == "hangoutsMeet"


def test_extract_meet_link_picks_first_video_entry_point():
    event = {
        "conferenceData": {
            "entryPoints": [
                {"entryPointType": "phone", "uri": "tel:+1-555-0100"},
                {"entryPointType": "video", "uri": "https://meet.google.com/abc-defg-hij"},
                {"entryPointType": "video", "uri": "https://meet.google.com/other"},
            ]
        }
    }
    assert extract_meet_link(event) == "https://meet.google.com/abc-defg-hij"


@pytest.mark.parametrize("event", [
    {},
    {"conferenceData": {}},
    {"conferenceData": {"entryPoints": [{"entryPointType": "phone", "uri": "tel:1"}]}},
])
def test_extract_meet_link_none_without_video(event):
    assert extract_meet_link(event) is None


def test_from_google_event_timed():
    fields = from_google_event({
        "id": "g1",
        "summary": "Sound check",
        "location": "Main stage",
        "start": {"dateTime": "2025-03-10T14:00:00+01:00"},
        "end": {"dateTime": "2025-03-10T15:00:00+01:00"},
    })

    assert fields == {
        "title": "Sound check",
        "description": None,
        "location": "Main stage",
        "start_time": "2025-03-10T13:00:00Z",
        "end_time": "2025-03-10T14:00:00Z",
        "is_all_day": False,
        "google_meet_link": None,
    }


def test_from_google_event_all_day_uses_day_sentinels():
    """Date-only events should map to T00:00:00Z .. T23:59:59Z of the covered days."""
    fields = from_google_event({
        "id": "g2",
        "start": {"date": "2025-03-10"},
        "end": {"date": "2025-03-12"},
    })

    assert fields["title"] == UNTITLED_EVENT
    assert fields["is_all_day"] is True
    assert fields["start_time"] == "2025-03-10T00:00:00Z"
    assert fields["end_time"] == "2025-03-11T23:59:59Z"


def test_from_google_event_without_start_raises():
    with pytest.raises(ValueError):
        from_google_event({"id": "broken", "start": {}, "end": {}})


def test_all_day_round_trip_keeps_calendar_day():
    """Pushing an all-day entry and pulling it back should keep the same day."""
    local = {
        "title": "Build day",
        "start_time": "2025-06-01T00:00:00Z",
        "end_time": "2025-06-01T23:59:59Z",
        "is_all_day": True,
    }

    remote = {"id": "g3", **to_google_body(local)}
    pulled = from_google_event(remote)

    assert pulled["is_all_day"] is True
    assert pulled["start_time"] == local["start_time"]
    assert pulled["end_time"] == local["end_time"]
    assert to_google_body(pulled)["start"] == remote["start"]
