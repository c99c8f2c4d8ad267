"""SQLite connection management and schema for Warden."""
