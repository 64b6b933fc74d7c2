"""Two-way Google Calendar sync for event calendars."""

__version__ = "1.0.0"
