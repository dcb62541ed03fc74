"""Identity provider helpers (JWT bearer tokens)."""
