"""Database, correlation and deadline plumbing shared by the API."""
