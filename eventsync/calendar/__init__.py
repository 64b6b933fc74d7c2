"""Calendar entries and the Google Calendar adapter."""
