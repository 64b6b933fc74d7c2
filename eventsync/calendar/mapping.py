"""Field mapping between local calendar entries and Google Calendar events."""

from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Optional, Union

UNTITLED_EVENT = "Untitled Event"
MEET_SOLUTION_TYPE = "hangoutsMeet"

# Keys copied verbatim between local entries and Google events
_TEXT_FIELDS = {
    "title": "summary",
    "description": "description",
    "location": "location",
}

Timestamp = Union[str, datetime, None]


def parse_timestamp(value: Timestamp) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp into an aware UTC datetime.

    Naive values are taken to be UTC.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        dt = datetime.fromisoformat(text)
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_timestamp(value: Timestamp) -> str:
    """Format a timestamp as an RFC 3339 UTC string."""
    return parse_timestamp(value).isoformat().replace("+00:00", "Z")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _all_day_end(end: datetime, start_day: Optional[date]) -> date:
    """Google's exclusive end date for an all-day entry ending at ``end``."""
    if end.time() == time(0) and (start_day is None or end.date() > start_day):
        # Already an exclusive midnight boundary
        day = end.date()
    else:
        day = end.date() + timedelta(days=1)
    if start_day is not None and day <= start_day:
        day = start_day + timedelta(days=1)
    return day


def to_google_body(fields: dict[str, Any], patch: bool = False) -> dict:
    """
    Build a Google event body from local entry fields.

    Only keys present in ``fields`` are mapped, so the result can be sent
    as a partial PATCH. All-day entries use date-only values; timed entries
    use UTC date-times.
    """
    body: dict[str, Any] = {}

    for local_key, google_key in _TEXT_FIELDS.items():
        if local_key in fields:
            value = fields[local_key]
            if value is None or (local_key == "title" and not value):
                continue
            body[google_key] = value

    all_day = bool(fields.get("is_all_day"))
    start = parse_timestamp(fields.get("start_time"))
    end = parse_timestamp(fields.get("end_time"))

    if start is not None:
        body["start"] = _time_value(start.date() if all_day else start, patch)
    if end is not None:
        if all_day:
            body["end"] = _time_value(
                _all_day_end(end, start.date() if start else None), patch
            )
        else:
            body["end"] = _time_value(end, patch)

    return body


def _time_value(value: Union[date, datetime], patch: bool) -> dict:
    if isinstance(value, datetime):
        result = {"dateTime": format_timestamp(value)}
        if patch:
            result["date"] = None
    else:
        result = {"date": value.isoformat()}
        if patch:
            result["dateTime"] = None
    return result


def meet_create_request(request_id: str) -> dict:
    """Conference data asking Google to create a Meet link."""
    return {
        "createRequest": {
            "requestId": request_id,
            "conferenceSolutionKey": {"type": MEET_SOLUTION_TYPE},
        }
    }


def extract_meet_link(event: dict) -> Optional[str]:
    """Return the URI of the first video entry point of an event, if any."""
    entry_points = (event.get("conferenceData") or {}).get("entryPoints") or []
    for entry_point in entry_points:
        if entry_point.get("entryPointType") == "video" and entry_point.get("uri"):
            return entry_point["uri"]
    return None


def from_google_event(event: dict) -> dict[str, Any]:
    """
    Map a Google event into local entry fields.

    Date-only starts become ``T00:00:00Z`` of that day and date-only ends
    become ``T23:59:59Z`` of the last day the event covers.
    """
    start = event.get("start") or {}
    end = event.get("end") or {}
    is_all_day = "date" in start and not start.get("dateTime")

    if is_all_day:
        start_day = date.fromisoformat(start["date"])
        end_day = date.fromisoformat(end["date"]) - timedelta(days=1) if end.get("date") else start_day
        end_day = max(end_day, start_day)
        start_time = f"{start_day.isoformat()}T00:00:00Z"
        end_time = f"{end_day.isoformat()}T23:59:59Z"
    else:
        if not start.get("dateTime"):
            raise ValueError(f"Event {event.get('id')} has no start time")
        start_time = format_timestamp(start["dateTime"])
        end_time = format_timestamp(end.get("dateTime") or start["dateTime"])

    return {
        "title": event.get("summary") or UNTITLED_EVENT,
        "description": event.get("description") or None,
        "location": event.get("location") or None,
        "start_time": start_time,
        "end_time": end_time,
        "is_all_day": is_all_day,
        "google_meet_link": extract_meet_link(event),
    }
