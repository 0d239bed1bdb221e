"""Configuration, HTTP client and timezone plumbing shared across calendar_monitor."""
