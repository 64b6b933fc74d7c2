"""Sync engine module."""

from eventsync.sync.engine import (
    SyncResult,
    add_meet_link_to_entry,
    sync_calendar_events,
)

__all__ = [
    "SyncResult",
    "add_meet_link_to_entry",
    "sync_calendar_events",
]
