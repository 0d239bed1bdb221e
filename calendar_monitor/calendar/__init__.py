"""ICS reading, parsing, recurrence expansion and merging."""
