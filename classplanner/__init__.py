"""Course scheduling assistant: catalog search, schedules, conflicts and calendars."""
